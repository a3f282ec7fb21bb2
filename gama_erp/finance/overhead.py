"""
Overhead allocation and job profitability
"""
import re

from gama_erp.core.exceptions import InvalidChoiceError
from gama_erp.core.utils import HUNDRED, ZERO, round_money, to_decimal

ALLOCATION_METHODS = ('revenue_percentage', 'fixed_per_job', 'manual', 'none')

CATEGORY_CODE_RE = re.compile(r'[a-z0-9_]{1,30}')
MAX_CATEGORY_NAME_LENGTH = 100


def calculate_revenue_percentage_allocation(revenue, rate):
    """revenue x rate / 100 rounded to whole rupiah, 0 for non-positive inputs"""
    revenue = to_decimal(revenue)
    rate = to_decimal(rate)
    if revenue <= 0 or rate <= 0:
        return ZERO
    return round_money(revenue * rate, 0) / HUNDRED


def calculate_gross_profit(revenue, direct_costs):
    return to_decimal(revenue) - to_decimal(direct_costs)


def calculate_overhead_net_profit(gross_profit, total_overhead):
    return to_decimal(gross_profit) - to_decimal(total_overhead)


def calculate_rounded_margin(profit, revenue):
    """Margin percentage rounded to 2 decimals, 0 when revenue <= 0"""
    revenue = to_decimal(revenue)
    if revenue <= 0:
        return ZERO
    return round_money(to_decimal(profit) / revenue * HUNDRED)


def _is_allocatable(category):
    return bool(category.get('is_active')) and category.get('allocation_method') == 'revenue_percentage'


def sum_overhead_rates(categories):
    """Total rate of active revenue_percentage categories"""
    return sum((to_decimal(c.get('default_rate')) for c in categories if _is_allocatable(c)), ZERO)


def calculate_overhead_allocation(revenue, categories):
    """
    Allocate overhead to a job from its revenue.

    Args:
        revenue: Job revenue
        categories: Overhead category dicts (category_code, category_name,
            allocation_method, default_rate, is_active)

    Returns:
        list: One allocation per active revenue_percentage category,
        empty when revenue is not positive
    """
    revenue = to_decimal(revenue)
    if revenue <= 0:
        return []

    allocations = []
    for category in categories:
        if not _is_allocatable(category):
            continue
        rate = to_decimal(category.get('default_rate'))
        allocations.append({
            'category_id': category.get('id'),
            'category_code': category['category_code'],
            'category_name': category.get('category_name', ''),
            'method': category['allocation_method'],
            'rate': rate,
            'base_amount': revenue,
            'allocated_amount': calculate_revenue_percentage_allocation(revenue, rate),
        })
    return allocations


def sum_allocated_overhead(allocations):
    return sum((to_decimal(a['allocated_amount']) for a in allocations), ZERO)


def calculate_job_profitability(revenue, direct_costs, categories):
    """Gross and net profitability of a job after overhead allocation"""
    revenue = to_decimal(revenue)
    direct_costs = to_decimal(direct_costs)
    allocations = calculate_overhead_allocation(revenue, categories)
    total_overhead = sum_allocated_overhead(allocations)
    gross_profit = calculate_gross_profit(revenue, direct_costs)
    net_profit = calculate_overhead_net_profit(gross_profit, total_overhead)

    return {
        'revenue': revenue,
        'direct_costs': direct_costs,
        'gross_profit': gross_profit,
        'gross_margin': calculate_rounded_margin(gross_profit, revenue),
        'total_overhead': total_overhead,
        'net_profit': net_profit,
        'net_margin': calculate_rounded_margin(net_profit, revenue),
        'allocations': allocations,
    }


def validate_allocation_rate(rate, method):
    """Rates cannot be negative; percentage rates are capped at 100"""
    if method not in ALLOCATION_METHODS:
        raise InvalidChoiceError('allocation_method', method, ALLOCATION_METHODS)
    rate = to_decimal(rate)
    if rate < 0:
        return {'valid': False, 'error': 'Rate cannot be negative'}
    if method == 'revenue_percentage' and rate > HUNDRED:
        return {'valid': False, 'error': 'Percentage rate cannot exceed 100'}
    return {'valid': True, 'error': None}


def validate_category_code(code):
    if not code or not code.strip():
        return {'valid': False, 'error': 'Category code is required'}
    if not CATEGORY_CODE_RE.fullmatch(code):
        return {
            'valid': False,
            'error': 'Category code must be 1-30 lowercase letters, digits or underscores',
        }
    return {'valid': True, 'error': None}


def validate_category_name(name):
    if not name or not name.strip():
        return {'valid': False, 'error': 'Category name is required'}
    if len(name.strip()) > MAX_CATEGORY_NAME_LENGTH:
        return {'valid': False, 'error': f'Category name cannot exceed {MAX_CATEGORY_NAME_LENGTH} characters'}
    return {'valid': True, 'error': None}
