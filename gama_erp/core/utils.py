"""Shared money and date helpers"""
import math
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

ZERO = Decimal('0')
HUNDRED = Decimal('100')


def to_decimal(value):
    """
    Convert a number or numeric string to Decimal.

    None and empty strings count as zero. Floats go through str() so
    that 0.1 stays 0.1 instead of its binary expansion.
    """
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f'Not a number: {value!r}')
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f'Not a number: {value!r}') from None


def round_money(value, places=2):
    """Round half up to the given number of decimal places"""
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def js_round(value):
    """Round to the nearest integer, halves toward positive infinity"""
    return math.floor(float(value) + 0.5)


def to_date(value):
    """Accept a date, datetime or ISO string and return a date"""
    if value is None:
        return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        parsed = parse_date(value)
        if parsed is None:
            parsed_dt = parse_datetime(value)
            if parsed_dt is None:
                raise ValueError(f'Invalid date: {value!r}')
            return to_date(parsed_dt)
        return parsed
    raise ValueError(f'Invalid date: {value!r}')


def to_datetime(value):
    """
    Accept a datetime, date or ISO string and return an aware datetime.

    Naive values are interpreted in the current time zone so that values
    from different sources compare safely.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            day = parse_date(value)
            if day is None:
                raise ValueError(f'Invalid datetime: {value!r}')
            parsed = datetime.combine(day, time.min)
    else:
        raise ValueError(f'Invalid datetime: {value!r}')

    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone.get_current_timezone())
    return parsed


def days_between(start, end):
    """Signed number of calendar days from start to end"""
    return (to_date(end) - to_date(start)).days


def minutes_between(start, end):
    """Signed number of minutes from start to end, rounded"""
    delta = to_datetime(end) - to_datetime(start)
    return js_round(delta.total_seconds() / 60)


def today():
    return timezone.localdate()
