"""
Finance calculations for proforma job orders (PJO) and job orders (JO)
All money values are handled as Decimal
"""
import re
from decimal import Decimal, InvalidOperation

from gama_erp.core.utils import HUNDRED, ZERO, round_money, to_date, to_decimal

COST_CATEGORY_LABELS = {
    'trucking': 'Trucking',
    'port_charges': 'Port Charges',
    'documentation': 'Documentation',
    'handling': 'Handling',
    'customs': 'Customs',
    'insurance': 'Insurance',
    'storage': 'Storage',
    'labor': 'Labor',
    'fuel': 'Fuel',
    'tolls': 'Tolls',
    'other': 'Other',
}

ROMAN_MONTHS = {
    1: 'I', 2: 'II', 3: 'III', 4: 'IV', 5: 'V', 6: 'VI',
    7: 'VII', 8: 'VIII', 9: 'IX', 10: 'X', 11: 'XI', 12: 'XII',
}

BUDGET_WARNING_THRESHOLD = Decimal('0.9')


# Profit and margin

def calculate_profit(revenue, expenses):
    """Profit = revenue - expenses"""
    return to_decimal(revenue) - to_decimal(expenses)


def calculate_margin(revenue, expenses):
    """Margin percentage (profit / revenue * 100), 0 when revenue is 0"""
    revenue = to_decimal(revenue)
    if revenue == 0:
        return ZERO
    return calculate_profit(revenue, expenses) / revenue * HUNDRED


def calculate_net_profit(revenue, direct_cost, overhead):
    """Net profit = revenue - direct cost - overhead"""
    return to_decimal(revenue) - to_decimal(direct_cost) - to_decimal(overhead)


def calculate_net_margin(net_profit, revenue):
    """Net margin = net profit / revenue * 100 for positive revenue, else 0"""
    revenue = to_decimal(revenue)
    if revenue <= 0:
        return ZERO
    return to_decimal(net_profit) / revenue * HUNDRED


# Line items and budget

def calculate_revenue_total(items):
    """Sum revenue line items, using quantity x unit price when subtotal is missing"""
    total = ZERO
    for item in items:
        subtotal = item.get('subtotal')
        if subtotal:
            total += to_decimal(subtotal)
        else:
            total += to_decimal(item.get('quantity')) * to_decimal(item.get('unit_price'))
    return total


def calculate_cost_total(items, kind='estimated'):
    """Sum cost line items by 'estimated' or 'actual' amount"""
    if kind not in ('estimated', 'actual'):
        raise ValueError(f"kind must be 'estimated' or 'actual', got {kind!r}")
    field = f'{kind}_amount'
    return sum((to_decimal(item.get(field)) for item in items), ZERO)


def determine_cost_status(estimated, actual):
    """Classify a cost item as exceeded, under_budget or confirmed"""
    estimated = to_decimal(estimated)
    actual = to_decimal(actual)
    if actual > estimated:
        return 'exceeded'
    if actual < estimated:
        return 'under_budget'
    return 'confirmed'


def analyze_budget(cost_items):
    """
    Analyze estimated vs actual costs of a job.

    Items without an actual amount are pending; variance is computed
    against the full estimate.
    """
    total_estimated = calculate_cost_total(cost_items, 'estimated')
    confirmed_items = [item for item in cost_items if item.get('actual_amount') is not None]
    total_actual = sum((to_decimal(item['actual_amount']) for item in confirmed_items), ZERO)
    total_variance = total_actual - total_estimated
    variance_pct = total_variance / total_estimated * HUNDRED if total_estimated > 0 else ZERO

    items_confirmed = len(confirmed_items)
    items_pending = len(cost_items) - items_confirmed
    items_over_budget = len([item for item in cost_items if item.get('status') == 'exceeded'])
    items_under_budget = len([item for item in cost_items if item.get('status') == 'under_budget'])

    return {
        'total_estimated': total_estimated,
        'total_actual': total_actual,
        'total_variance': total_variance,
        'variance_pct': variance_pct,
        'items_confirmed': items_confirmed,
        'items_pending': items_pending,
        'items_over_budget': items_over_budget,
        'items_under_budget': items_under_budget,
        'all_confirmed': items_pending == 0 and len(cost_items) > 0,
        'has_overruns': items_over_budget > 0,
    }


def get_budget_warning_level(estimated, actual):
    """'safe' below 90% of budget, 'warning' from 90% to 100%, 'exceeded' above"""
    estimated = to_decimal(estimated)
    actual = to_decimal(actual)
    if actual > estimated:
        return 'exceeded'
    if actual >= estimated * BUDGET_WARNING_THRESHOLD:
        return 'warning'
    return 'safe'


def get_budget_usage_percent(estimated, actual):
    estimated = to_decimal(estimated)
    if estimated == 0:
        return ZERO
    return to_decimal(actual) / estimated * HUNDRED


def validate_positive_margin(total_revenue, total_cost):
    """A PJO can only be submitted when revenue exceeds estimated cost"""
    total_revenue = to_decimal(total_revenue)
    total_cost = to_decimal(total_cost)
    if total_cost >= total_revenue:
        margin = round_money(calculate_margin(total_revenue, total_cost)) if total_revenue > 0 else Decimal('0.00')
        return {
            'valid': False,
            'error': (
                f'Cannot submit: Estimated cost ({format_idr(total_cost)}) exceeds or equals '
                f'revenue ({format_idr(total_revenue)}). Current margin: {margin}%'
            ),
        }
    return {'valid': True, 'error': None}


def validate_date_order(etd, eta):
    """ETA must be on or after ETD when both are given"""
    if etd and eta and to_date(eta) < to_date(etd):
        return {'valid': False, 'error': 'ETA must be on or after ETD'}
    return {'valid': True, 'error': None}


def filter_pjos(pjos, status_filter=None, date_from=None, date_to=None):
    """
    Filter PJOs by status and jo_date range.

    A status of None or 'all' disables the status filter. Both date bounds
    are inclusive; PJOs without a jo_date are never excluded by dates.
    """
    date_from = to_date(date_from)
    date_to = to_date(date_to)
    result = []
    for pjo in pjos:
        if status_filter and status_filter != 'all' and pjo.get('status') != status_filter:
            continue
        if pjo.get('jo_date'):
            jo_date = to_date(pjo['jo_date'])
            if date_from and jo_date < date_from:
                continue
            if date_to and jo_date > date_to:
                continue
        result.append(pjo)
    return result


# Numbering and formatting

def to_roman_month(month):
    return ROMAN_MONTHS.get(month, '')


def generate_jo_number(sequence, when):
    """JO-NNNN/CARGO/<roman month>/YYYY"""
    when = to_date(when)
    return f'JO-{sequence:04d}/CARGO/{to_roman_month(when.month)}/{when.year}'


def _format_id_number(value):
    # id-ID grouping: '.' for thousands, ',' for decimals, at most 3 decimals
    value = round_money(abs(to_decimal(value)), 3)
    integer_part, _, fraction = f'{value:f}'.partition('.')
    grouped = f'{int(integer_part):,}'.replace(',', '.')
    fraction = fraction.rstrip('0')
    return f'{grouped},{fraction}' if fraction else grouped


def format_idr(amount):
    """Format as Indonesian Rupiah, e.g. 'Rp 30.000.000' or '-Rp 5.000'"""
    amount = to_decimal(amount)
    if amount < 0:
        return f'-Rp {_format_id_number(amount)}'
    return f'Rp {_format_id_number(amount)}'


def parse_idr(value):
    """Parse 'Rp 30.000.000' (or '30.000.000,50') back to a Decimal, 0 if unparseable"""
    cleaned = re.sub(r'Rp\s?', '', value or '').replace('.', '').replace(',', '.').strip()
    match = re.match(r'^[+-]?\d+(\.\d+)?', cleaned)
    if not match:
        return ZERO
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return ZERO
