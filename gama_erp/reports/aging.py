"""
Accounts receivable aging and overdue invoice checks
"""
from gama_erp.core.exceptions import InvalidChoiceError
from gama_erp.core.utils import ZERO, days_between, to_date, to_decimal, today

# (label, min days, max days); None means unbounded
AGING_BUCKETS = (
    ('Current', None, 0),
    ('1-30 Days', 1, 30),
    ('31-60 Days', 31, 60),
    ('61-90 Days', 61, 90),
    ('90+ Days', 91, None),
)

CUSTOMER_BUCKET_FIELDS = {
    'Current': 'current',
    '1-30 Days': 'days_1_to_30',
    '31-60 Days': 'days_31_to_60',
    '61-90 Days': 'days_61_to_90',
    '90+ Days': 'over_90',
}

OVERDUE_ELIGIBLE_STATUSES = ('sent', 'partial')

# Severity applies above each threshold
OVERDUE_SEVERITY_THRESHOLDS = {
    'critical': 60,
    'high': 30,
    'medium': 14,
}

FOLLOW_UP_PRIORITIES = {
    'critical': 'urgent',
    'high': 'high',
    'medium': 'medium',
    'low': 'low',
}


def calculate_days_outstanding(due_date, as_of=None):
    """Signed days past due; zero or negative when not yet due"""
    return days_between(due_date, as_of or today())


def calculate_days_overdue(due_date, as_of=None):
    """Days past due, 0 when not overdue"""
    return max(0, calculate_days_outstanding(due_date, as_of))


def assign_aging_bucket(days_overdue):
    for label, min_days, max_days in AGING_BUCKETS:
        if min_days is not None and days_overdue < min_days:
            continue
        if max_days is not None and days_overdue > max_days:
            continue
        return label
    return 'Current'


def determine_severity(days_overdue):
    if days_overdue >= 90:
        return 'critical'
    if days_overdue >= 31:
        return 'warning'
    return 'normal'


def aggregate_by_bucket(items):
    """Count and total per bucket, every bucket present in fixed order"""
    totals = {label: {'count': 0, 'total_amount': ZERO} for label, _, _ in AGING_BUCKETS}
    for item in items:
        if item['bucket'] in totals:
            totals[item['bucket']]['count'] += 1
            totals[item['bucket']]['total_amount'] += to_decimal(item['amount'])

    return [
        {
            'label': label,
            'min_days': 0 if min_days is None else min_days,
            'max_days': max_days,
            'count': totals[label]['count'],
            'total_amount': totals[label]['total_amount'],
        }
        for label, min_days, max_days in AGING_BUCKETS
    ]


def transform_invoices_to_aging_items(invoices, as_of=None):
    as_of = to_date(as_of) or today()
    items = []
    for invoice in invoices:
        days_overdue = calculate_days_overdue(invoice['due_date'], as_of)
        items.append({
            'invoice_id': invoice.get('id'),
            'invoice_number': invoice.get('invoice_number'),
            'customer_id': invoice.get('customer_id'),
            'customer_name': invoice.get('customer_name') or 'Unknown',
            'invoice_date': to_date(invoice.get('invoice_date')),
            'due_date': to_date(invoice['due_date']),
            'amount': to_decimal(invoice.get('total_amount')),
            'days_overdue': days_overdue,
            'bucket': assign_aging_bucket(days_overdue),
            'severity': determine_severity(days_overdue),
        })
    return items


def build_ar_aging_report(invoices, as_of=None):
    """
    Build the AR aging report.

    Returns:
        dict: summary per bucket, details sorted by days overdue
        (most overdue first) and grand totals
    """
    details = sorted(
        transform_invoices_to_aging_items(invoices, as_of),
        key=lambda item: item['days_overdue'],
        reverse=True,
    )
    return {
        'summary': aggregate_by_bucket(details),
        'details': details,
        'totals': {
            'total_count': len(details),
            'total_amount': sum((item['amount'] for item in details), ZERO),
        },
    }


def aggregate_by_customer(items):
    """Per-customer bucket totals, customers in order of first appearance"""
    customers = {}
    for item in items:
        key = item.get('customer_id') or item['customer_name']
        if key not in customers:
            customers[key] = {
                'customer_id': item.get('customer_id'),
                'customer_name': item['customer_name'],
                'current': ZERO,
                'days_1_to_30': ZERO,
                'days_31_to_60': ZERO,
                'days_61_to_90': ZERO,
                'over_90': ZERO,
                'total': ZERO,
            }
        row = customers[key]
        row[CUSTOMER_BUCKET_FIELDS[item['bucket']]] += item['amount']
        row['total'] += item['amount']
    return list(customers.values())


def filter_by_bucket(items, bucket):
    return [item for item in items if item['bucket'] == bucket]


def filter_by_customer(items, customer_id):
    return [item for item in items if item.get('customer_id') == customer_id]


def filter_unpaid_invoices(invoices):
    """Invoices with an outstanding amount; amount_due falls back to total_amount"""
    result = []
    for invoice in invoices:
        amount_due = invoice.get('amount_due')
        if amount_due is None:
            amount_due = invoice.get('total_amount')
        if to_decimal(amount_due) > 0:
            result.append(invoice)
    return result


# Overdue check

def classify_overdue_severity(days_overdue):
    for severity, threshold in OVERDUE_SEVERITY_THRESHOLDS.items():
        if days_overdue > threshold:
            return severity
    return 'low'


def is_eligible_for_overdue(status):
    """Only sent or partially paid invoices can become overdue"""
    return status in OVERDUE_ELIGIBLE_STATUSES


def is_invoice_overdue(due_date, status, as_of=None):
    if not is_eligible_for_overdue(status):
        return False
    return calculate_days_overdue(due_date, as_of) > 0


def create_overdue_invoice(invoice, as_of=None):
    """Overdue entry for an invoice, or None when it is not overdue"""
    if not is_eligible_for_overdue(invoice.get('status')):
        return None
    days_overdue = calculate_days_overdue(invoice['due_date'], as_of)
    if days_overdue <= 0:
        return None
    return {
        'id': invoice.get('id'),
        'invoice_number': invoice.get('invoice_number'),
        'customer_id': invoice.get('customer_id'),
        'customer_name': invoice.get('customer_name'),
        'amount': to_decimal(invoice.get('total_amount')),
        'due_date': to_date(invoice['due_date']),
        'days_overdue': days_overdue,
        'severity': classify_overdue_severity(days_overdue),
        'status': invoice.get('status'),
        'jo_id': invoice.get('jo_id'),
    }


def filter_overdue_invoices(invoices, as_of=None):
    overdue = []
    for invoice in invoices:
        entry = create_overdue_invoice(invoice, as_of)
        if entry is not None:
            overdue.append(entry)
    return overdue


def group_overdue_invoices(overdue_invoices):
    """Group overdue entries by severity with overall totals"""
    result = {'critical': [], 'high': [], 'medium': [], 'low': [], 'total_count': 0, 'total_amount': ZERO}
    for invoice in overdue_invoices:
        result[invoice['severity']].append(invoice)
        result['total_count'] += 1
        result['total_amount'] += to_decimal(invoice['amount'])
    return result


def get_follow_up_priority(severity):
    if severity not in FOLLOW_UP_PRIORITIES:
        raise InvalidChoiceError('severity', severity, FOLLOW_UP_PRIORITIES)
    return FOLLOW_UP_PRIORITIES[severity]


def get_most_critical_invoices(grouped, limit=5):
    combined = grouped['critical'] + grouped['high'] + grouped['medium'] + grouped['low']
    return sorted(combined, key=lambda invoice: invoice['days_overdue'], reverse=True)[:limit]
