"""
Sync mapping engine.

A sync mapping filters local records with a list of conditions (all must
pass) and renames their fields to the remote entity's fields, optionally
transforming the values on the way. Fields are addressed with dot paths
such as 'customer.address.city'.

Input records are never modified.
"""
import copy
import logging
from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal, InvalidOperation

from django.utils.dateparse import parse_date, parse_datetime

from gama_erp.core.utils import round_money
from .utils import validate_sync_mapping_input

logger = logging.getLogger(__name__)


# Dot paths

def get_nested_value(record, path):
    """Value at a dot path, None when any part of the path is missing"""
    current = record
    for part in path.split('.'):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def set_nested_value(target, path, value):
    """Set a value at a dot path, creating (or replacing) intermediate dicts"""
    parts = path.split('.')
    current = target
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


# Transforms

def _is_number(value):
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _format_date(value):
    """YYYY-MM-DD in UTC; unparseable values are returned unchanged"""
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value) or parse_date(value)
        except ValueError:
            return value
        if parsed is None:
            return value
        value = parsed
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt_timezone.utc)
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _format_currency(value):
    """Round to 2 decimal places; non-numeric values are returned unchanged"""
    if isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return value
        if not number.is_finite():
            return value
        value = number
    if _is_number(value):
        return round_money(value)
    return value


def apply_transform(value, transform):
    """
    Apply a named transform to a mapped value.

    None passes through every transform. 'custom' transforms run outside
    this engine, so the value is returned as is.
    """
    if value is None:
        return None
    if transform == 'date_format':
        return _format_date(value)
    if transform == 'currency_format':
        return _format_currency(value)
    if transform == 'uppercase':
        return value.upper() if isinstance(value, str) else value
    if transform == 'lowercase':
        return value.lower() if isinstance(value, str) else value
    return value


def apply_field_mappings(record, field_mappings):
    """Build the remote record from a local one"""
    result = {}
    for mapping in field_mappings:
        value = copy.deepcopy(get_nested_value(record, mapping['local_field']))
        if mapping.get('transform'):
            value = apply_transform(value, mapping['transform'])
        set_nested_value(result, mapping['remote_field'], value)
    return result


# Filters

def _strict_equal(left, right):
    # True == 1 in Python; a boolean only ever equals another boolean
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) != _is_number(right):
        return False
    return left == right


def _comparable(left, right):
    """Ordering is only defined between values of the same kind"""
    if _is_number(left) and _is_number(right):
        return True
    if isinstance(left, str) and isinstance(right, str):
        return True
    if isinstance(left, datetime) and isinstance(right, datetime):
        return (left.tzinfo is None) == (right.tzinfo is None)
    if isinstance(left, datetime) or isinstance(right, datetime):
        return False
    return isinstance(left, date) and isinstance(right, date)


def evaluate_operator(field_value, operator, filter_value):
    """
    Compare a record value with a condition value.

    Ordering operators are False for values of different kinds. Unknown
    operators never match.
    """
    if operator == 'eq':
        return _strict_equal(field_value, filter_value)
    if operator == 'neq':
        return not _strict_equal(field_value, filter_value)

    if operator in ('gt', 'lt', 'gte', 'lte'):
        if not _comparable(field_value, filter_value):
            return False
        if operator == 'gt':
            return field_value > filter_value
        if operator == 'lt':
            return field_value < filter_value
        if operator == 'gte':
            return field_value >= filter_value
        return field_value <= filter_value

    if operator == 'in':
        if isinstance(filter_value, (list, tuple)):
            return any(_strict_equal(field_value, item) for item in filter_value)
        return False

    if operator == 'contains':
        if isinstance(field_value, str) and isinstance(filter_value, str):
            return filter_value.lower() in field_value.lower()
        if isinstance(field_value, (list, tuple)):
            return any(_strict_equal(item, filter_value) for item in field_value)
        return False

    return False


def evaluate_filter_condition(record, condition):
    field_value = get_nested_value(record, condition['field'])
    return evaluate_operator(field_value, condition.get('operator'), condition.get('value'))


def evaluate_filter_conditions(record, conditions):
    """All conditions must pass; no conditions means every record passes"""
    if not conditions:
        return True
    return all(evaluate_filter_condition(record, condition) for condition in conditions)


def filter_records(records, conditions):
    if not conditions:
        return list(records)
    return [record for record in records if evaluate_filter_conditions(record, conditions)]


# Mappings

def transform_record_batch(records, field_mappings):
    return [apply_field_mappings(record, field_mappings) for record in records]


def process_sync_mapping(records, mapping):
    """
    Run records through a sync mapping: filter first, then transform.

    Args:
        records: Local records (dicts)
        mapping: Sync mapping with 'field_mappings' and optional 'filter_conditions'

    Returns:
        list: Remote records, in input order
    """
    filtered = filter_records(records, mapping.get('filter_conditions'))
    result = transform_record_batch(filtered, mapping['field_mappings'])
    logger.debug(f"Sync mapping {mapping.get('local_table', '?')} -> {mapping.get('remote_entity', '?')}: "
                 f"{len(result)} of {len(records)} record(s) passed")
    return result


def _clean_field_mappings(field_mappings):
    cleaned = []
    for mapping in field_mappings:
        entry = {
            'local_field': mapping['local_field'].strip(),
            'remote_field': mapping['remote_field'].strip(),
        }
        if mapping.get('transform'):
            entry['transform'] = mapping['transform']
        cleaned.append(entry)
    return cleaned


def prepare_sync_mapping_for_create(data):
    """
    Validate and normalize a new sync mapping.

    Returns:
        dict: {'valid': True, 'data': {...}} or {'valid': False, 'errors': [str]}
    """
    validation = validate_sync_mapping_input(data)
    if not validation['valid']:
        return {'valid': False, 'errors': validation['errors']}

    is_active = data.get('is_active')
    return {
        'valid': True,
        'data': {
            'connection_id': data['connection_id'],
            'local_table': data['local_table'].strip(),
            'remote_entity': data['remote_entity'].strip(),
            'field_mappings': _clean_field_mappings(data['field_mappings']),
            'sync_direction': data.get('sync_direction') or 'push',
            'sync_frequency': data.get('sync_frequency') or 'realtime',
            'filter_conditions': data.get('filter_conditions') or None,
            'is_active': True if is_active is None else is_active,
        },
    }


def prepare_sync_mapping_for_update(data):
    """Only the fields present in data are returned"""
    update = {}
    if 'local_table' in data:
        update['local_table'] = data['local_table'].strip()
    if 'remote_entity' in data:
        update['remote_entity'] = data['remote_entity'].strip()
    if 'field_mappings' in data:
        update['field_mappings'] = _clean_field_mappings(data['field_mappings'])
    for field in ('sync_direction', 'sync_frequency', 'filter_conditions', 'is_active'):
        if field in data:
            update[field] = data[field]
    return update


def is_mapping_active(mapping):
    return mapping.get('is_active') is True


def filter_active_mappings(mappings):
    return [mapping for mapping in mappings if is_mapping_active(mapping)]
