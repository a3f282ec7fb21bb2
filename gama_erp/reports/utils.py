"""
Job profitability report helpers
"""
from gama_erp.core.utils import ZERO, to_date, to_decimal
from gama_erp.finance.utils import calculate_net_margin, calculate_net_profit


def build_job_profitability(jo_id, jo_number, revenue, direct_cost, overhead,
                            customer_name='', project_name='', created_at=None):
    """Build one report row with net profit and net margin"""
    revenue = to_decimal(revenue)
    direct_cost = to_decimal(direct_cost)
    overhead = to_decimal(overhead)
    net_profit = calculate_net_profit(revenue, direct_cost, overhead)
    return {
        'jo_id': jo_id,
        'jo_number': jo_number,
        'customer_name': customer_name,
        'project_name': project_name,
        'revenue': revenue,
        'direct_cost': direct_cost,
        'overhead': overhead,
        'net_profit': net_profit,
        'net_margin': calculate_net_margin(net_profit, revenue),
        'created_at': created_at,
    }


def filter_jobs_by_date_range(jobs, date_from=None, date_to=None):
    """Keep jobs created within [date_from, date_to]; a None bound is open"""
    date_from = to_date(date_from)
    date_to = to_date(date_to)
    result = []
    for job in jobs:
        created = to_date(job.get('created_at'))
        if created is None and (date_from or date_to):
            continue
        if date_from and created < date_from:
            continue
        if date_to and created > date_to:
            continue
        result.append(job)
    return result


def filter_jobs_by_margin_range(jobs, min_margin=None, max_margin=None):
    """Keep jobs whose net margin lies within [min_margin, max_margin]"""
    min_margin = None if min_margin is None else to_decimal(min_margin)
    max_margin = None if max_margin is None else to_decimal(max_margin)
    result = []
    for job in jobs:
        margin = to_decimal(job['net_margin'])
        if min_margin is not None and margin < min_margin:
            continue
        if max_margin is not None and margin > max_margin:
            continue
        result.append(job)
    return result


def sort_jobs_by_margin(jobs):
    """New list ordered by net margin, highest first; ties keep input order"""
    return sorted(jobs, key=lambda job: to_decimal(job['net_margin']), reverse=True)


def calculate_profitability_summary(jobs):
    if not jobs:
        return {
            'total_revenue': ZERO,
            'total_direct_cost': ZERO,
            'total_overhead': ZERO,
            'total_net_profit': ZERO,
            'total_jobs': 0,
            'average_margin': ZERO,
        }

    total_margin = sum((to_decimal(job['net_margin']) for job in jobs), ZERO)
    return {
        'total_revenue': sum((to_decimal(job['revenue']) for job in jobs), ZERO),
        'total_direct_cost': sum((to_decimal(job['direct_cost']) for job in jobs), ZERO),
        'total_overhead': sum((to_decimal(job['overhead']) for job in jobs), ZERO),
        'total_net_profit': sum((to_decimal(job['net_profit']) for job in jobs), ZERO),
        'total_jobs': len(jobs),
        'average_margin': total_margin / len(jobs),
    }


def validate_profitability_filters(filters):
    """
    Check report filters for inverted ranges.

    Returns:
        dict: {'valid': True} or {'valid': False, 'error': str}
    """
    date_from = filters.get('date_from')
    date_to = filters.get('date_to')
    if date_from and date_to and to_date(date_from) > to_date(date_to):
        return {'valid': False, 'error': 'Start date must be before or equal to end date'}

    min_margin = filters.get('min_margin')
    max_margin = filters.get('max_margin')
    if min_margin is not None and max_margin is not None and to_decimal(min_margin) > to_decimal(max_margin):
        return {'valid': False, 'error': 'Minimum margin cannot be greater than maximum margin'}

    return {'valid': True}


def build_profitability_report(jobs, filters=None):
    """Filter, sort and summarize job profitability rows"""
    filters = filters or {}
    rows = filter_jobs_by_date_range(jobs, filters.get('date_from'), filters.get('date_to'))
    rows = filter_jobs_by_margin_range(rows, filters.get('min_margin'), filters.get('max_margin'))
    rows = sort_jobs_by_margin(rows)
    return {
        'jobs': rows,
        'summary': calculate_profitability_summary(rows),
    }
