"""
Test suite for Finance module
Tests: margin math, budget analysis, overhead allocation, IDR formatting and finance endpoints
"""
from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from rest_framework import status

from gama_erp.core.exceptions import InvalidChoiceError
from gama_erp.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gama_erp.finance.overhead import (
    calculate_job_profitability, calculate_overhead_allocation, calculate_revenue_percentage_allocation,
    calculate_rounded_margin, sum_allocated_overhead, sum_overhead_rates, validate_allocation_rate,
    validate_category_code, validate_category_name,
)
from gama_erp.finance.utils import (
    analyze_budget, calculate_cost_total, calculate_margin, calculate_net_margin, calculate_net_profit,
    calculate_profit, calculate_revenue_total, determine_cost_status, filter_pjos, format_idr,
    generate_jo_number, get_budget_usage_percent, get_budget_warning_level, parse_idr, to_roman_month,
    validate_date_order, validate_positive_margin,
)


class ProfitAndMarginTests(SimpleTestCase):
    """Test profit and margin calculations"""

    def test_profit_and_margin(self):
        """Test basic profit and margin"""
        self.assertEqual(calculate_profit(1000, 600), Decimal('400'))
        self.assertEqual(calculate_margin(1000, 600), Decimal('40'))

    def test_margin_zero_revenue(self):
        """Test margin is 0 when revenue is 0"""
        self.assertEqual(calculate_margin(0, 500), Decimal('0'))

    def test_net_profit_is_exact(self):
        """Test net profit equals revenue minus direct cost minus overhead"""
        cases = [
            ('0', '0', '0'),
            ('1000000', '600000', '100000'),
            ('0.10', '0.20', '0.05'),
            ('99999999.99', '12345678.91', '0.01'),
        ]
        for revenue, direct_cost, overhead in cases:
            expected = Decimal(revenue) - Decimal(direct_cost) - Decimal(overhead)
            self.assertEqual(calculate_net_profit(revenue, direct_cost, overhead), expected)

    def test_net_margin(self):
        """Test net margin for positive and zero revenue"""
        self.assertEqual(calculate_net_margin(Decimal('300000'), Decimal('1000000')), Decimal('30'))
        self.assertEqual(calculate_net_margin(Decimal('-50'), Decimal('200')), Decimal('-25'))
        self.assertEqual(calculate_net_margin(Decimal('100'), Decimal('0')), Decimal('0'))

    def test_net_margin_float_inputs(self):
        """Test floats are converted without binary noise"""
        self.assertEqual(calculate_net_profit(0.3, 0.1, 0.1), Decimal('0.1'))


class BudgetTests(SimpleTestCase):
    """Test cost and budget helpers"""

    def test_revenue_total_uses_subtotal_or_quantity(self):
        """Test revenue total from subtotal or quantity x unit price"""
        items = [
            {'subtotal': Decimal('500000')},
            {'quantity': 2, 'unit_price': Decimal('250000')},
        ]
        self.assertEqual(calculate_revenue_total(items), Decimal('1000000'))

    def test_cost_total(self):
        """Test estimated and actual totals"""
        items = [
            {'estimated_amount': Decimal('100'), 'actual_amount': Decimal('120')},
            {'estimated_amount': Decimal('50'), 'actual_amount': None},
        ]
        self.assertEqual(calculate_cost_total(items, 'estimated'), Decimal('150'))
        self.assertEqual(calculate_cost_total(items, 'actual'), Decimal('120'))
        with self.assertRaises(ValueError):
            calculate_cost_total(items, 'planned')

    def test_determine_cost_status(self):
        """Test cost status classification"""
        self.assertEqual(determine_cost_status(100, 120), 'exceeded')
        self.assertEqual(determine_cost_status(100, 80), 'under_budget')
        self.assertEqual(determine_cost_status(100, 100), 'confirmed')

    def test_analyze_budget(self):
        """Test budget analysis over mixed items"""
        items = [
            {'estimated_amount': Decimal('1000'), 'actual_amount': Decimal('1200'), 'status': 'exceeded'},
            {'estimated_amount': Decimal('500'), 'actual_amount': Decimal('400'), 'status': 'under_budget'},
            {'estimated_amount': Decimal('500'), 'actual_amount': None, 'status': 'estimated'},
        ]
        result = analyze_budget(items)
        self.assertEqual(result['total_estimated'], Decimal('2000'))
        self.assertEqual(result['total_actual'], Decimal('1600'))
        self.assertEqual(result['total_variance'], Decimal('-400'))
        self.assertEqual(result['variance_pct'], Decimal('-20'))
        self.assertEqual(result['items_confirmed'], 2)
        self.assertEqual(result['items_pending'], 1)
        self.assertEqual(result['items_over_budget'], 1)
        self.assertEqual(result['items_under_budget'], 1)
        self.assertFalse(result['all_confirmed'])
        self.assertTrue(result['has_overruns'])

    def test_analyze_empty_budget(self):
        """Test empty budget is not all confirmed"""
        result = analyze_budget([])
        self.assertEqual(result['variance_pct'], Decimal('0'))
        self.assertFalse(result['all_confirmed'])

    def test_budget_warning_level(self):
        """Test warning thresholds"""
        self.assertEqual(get_budget_warning_level(1000, 899), 'safe')
        self.assertEqual(get_budget_warning_level(1000, 900), 'warning')
        self.assertEqual(get_budget_warning_level(1000, 1000), 'warning')
        self.assertEqual(get_budget_warning_level(1000, 1001), 'exceeded')

    def test_budget_usage_percent(self):
        """Test usage percent and zero estimate"""
        self.assertEqual(get_budget_usage_percent(200, 50), Decimal('25'))
        self.assertEqual(get_budget_usage_percent(0, 50), Decimal('0'))

    def test_validate_positive_margin(self):
        """Test submission requires revenue above cost"""
        self.assertTrue(validate_positive_margin(1000000, 900000)['valid'])
        result = validate_positive_margin(1000000, 1200000)
        self.assertFalse(result['valid'])
        self.assertEqual(
            result['error'],
            'Cannot submit: Estimated cost (Rp 1.200.000) exceeds or equals revenue (Rp 1.000.000). '
            'Current margin: -20.00%',
        )
        self.assertIn('Current margin: 0.00%', validate_positive_margin(1000000, 1000000)['error'])

    def test_validate_date_order(self):
        """Test ETA on or after ETD"""
        self.assertTrue(validate_date_order('2025-01-10', '2025-01-10')['valid'])
        self.assertTrue(validate_date_order(None, '2025-01-01')['valid'])
        result = validate_date_order('2025-01-10', '2025-01-09')
        self.assertEqual(result['error'], 'ETA must be on or after ETD')


class PJOFilterTests(SimpleTestCase):
    """Test PJO filtering"""

    def setUp(self):
        self.pjos = [
            {'id': 1, 'status': 'draft', 'jo_date': '2025-01-05'},
            {'id': 2, 'status': 'approved', 'jo_date': '2025-01-31'},
            {'id': 3, 'status': 'draft', 'jo_date': '2025-02-01'},
            {'id': 4, 'status': 'approved', 'jo_date': None},
        ]

    def test_status_all_disables_filter(self):
        """Test 'all' keeps every PJO"""
        self.assertEqual(filter_pjos(self.pjos, 'all'), self.pjos)

    def test_status_filter(self):
        """Test filtering by status preserves order"""
        result = filter_pjos(self.pjos, 'approved')
        self.assertEqual([p['id'] for p in result], [2, 4])

    def test_date_range_inclusive(self):
        """Test both date bounds are inclusive"""
        result = filter_pjos(self.pjos, None, '2025-01-05', '2025-01-31')
        self.assertEqual([p['id'] for p in result], [1, 2, 4])

    def test_filter_does_not_mutate(self):
        """Test input list is untouched"""
        before = list(self.pjos)
        filter_pjos(self.pjos, 'draft', '2025-01-01', '2025-01-31')
        self.assertEqual(self.pjos, before)


class FormattingTests(SimpleTestCase):
    """Test IDR formatting and numbering"""

    def test_format_idr(self):
        """Test Rupiah formatting"""
        self.assertEqual(format_idr(30000000), 'Rp 30.000.000')
        self.assertEqual(format_idr(0), 'Rp 0')
        self.assertEqual(format_idr(-5000), '-Rp 5.000')
        self.assertEqual(format_idr('1234.5'), 'Rp 1.234,5')

    def test_parse_idr(self):
        """Test Rupiah parsing"""
        self.assertEqual(parse_idr('Rp 30.000.000'), Decimal('30000000'))
        self.assertEqual(parse_idr('Rp 1.234,50'), Decimal('1234.50'))
        self.assertEqual(parse_idr('abc'), Decimal('0'))
        self.assertEqual(parse_idr(''), Decimal('0'))

    def test_roman_month(self):
        """Test month numerals"""
        self.assertEqual(to_roman_month(1), 'I')
        self.assertEqual(to_roman_month(12), 'XII')
        self.assertEqual(to_roman_month(13), '')

    def test_generate_jo_number(self):
        """Test JO number format"""
        self.assertEqual(generate_jo_number(1, date(2025, 12, 5)), 'JO-0001/CARGO/XII/2025')
        self.assertEqual(generate_jo_number(123, '2025-04-01'), 'JO-0123/CARGO/IV/2025')


class OverheadTests(SimpleTestCase):
    """Test overhead allocation"""

    def setUp(self):
        self.categories = [
            TestDataFactory.overhead_category('office_rent', rate='2'),
            TestDataFactory.overhead_category('salaries', rate='3.5'),
            TestDataFactory.overhead_category('old_rent', rate='5', is_active=False),
            TestDataFactory.overhead_category('vehicle', rate='500000', method='fixed_per_job'),
        ]

    def test_revenue_percentage_allocation(self):
        """Test revenue x rate / 100 and non-positive inputs"""
        self.assertEqual(calculate_revenue_percentage_allocation(100000000, 2), Decimal('2000000'))
        self.assertEqual(calculate_revenue_percentage_allocation(0, 2), Decimal('0'))
        self.assertEqual(calculate_revenue_percentage_allocation(-100, 2), Decimal('0'))
        self.assertEqual(calculate_revenue_percentage_allocation(100, 0), Decimal('0'))

    def test_sum_overhead_rates(self):
        """Test only active revenue_percentage rates are summed"""
        self.assertEqual(sum_overhead_rates(self.categories), Decimal('5.5'))
        self.assertEqual(sum_overhead_rates([]), Decimal('0'))

    def test_allocation_includes_active_percentage_categories(self):
        """Test one allocation per active revenue_percentage category"""
        allocations = calculate_overhead_allocation(100000000, self.categories)
        self.assertEqual([a['category_code'] for a in allocations], ['office_rent', 'salaries'])
        self.assertEqual(allocations[0]['allocated_amount'], Decimal('2000000'))
        self.assertEqual(allocations[1]['allocated_amount'], Decimal('3500000'))

    def test_allocation_zero_revenue(self):
        """Test zero revenue allocates nothing"""
        self.assertEqual(calculate_overhead_allocation(0, self.categories), [])

    def test_sum_allocated_overhead(self):
        """Test allocation sum"""
        allocations = calculate_overhead_allocation(100000000, self.categories)
        self.assertEqual(sum_allocated_overhead(allocations), Decimal('5500000'))
        self.assertEqual(sum_allocated_overhead([]), Decimal('0'))

    def test_job_profitability(self):
        """Test net profit is gross profit minus allocated overhead"""
        result = calculate_job_profitability(100000000, 60000000, self.categories)
        self.assertEqual(result['gross_profit'], Decimal('40000000'))
        self.assertEqual(result['gross_margin'], Decimal('40.00'))
        self.assertEqual(result['total_overhead'], Decimal('5500000'))
        self.assertEqual(result['net_profit'], Decimal('34500000'))
        self.assertEqual(result['net_margin'], Decimal('34.50'))
        self.assertEqual(result['total_overhead'], sum_allocated_overhead(result['allocations']))

    def test_job_profitability_is_repeatable(self):
        """Test calculating twice gives identical results"""
        first = calculate_job_profitability(12345678, 2345678, self.categories)
        second = calculate_job_profitability(12345678, 2345678, self.categories)
        self.assertEqual(first, second)

    def test_rounded_margin(self):
        """Test margin rounding to two places"""
        self.assertEqual(calculate_rounded_margin(1, 3), Decimal('33.33'))
        self.assertEqual(calculate_rounded_margin(2, 3), Decimal('66.67'))
        self.assertEqual(calculate_rounded_margin(10, 0), Decimal('0'))

    def test_validate_allocation_rate(self):
        """Test rate validation per allocation method"""
        self.assertIn('negative', validate_allocation_rate(-5, 'revenue_percentage')['error'])
        self.assertIn('100', validate_allocation_rate(150, 'revenue_percentage')['error'])
        self.assertTrue(validate_allocation_rate(14, 'revenue_percentage')['valid'])
        self.assertTrue(validate_allocation_rate(500000, 'fixed_per_job')['valid'])
        with self.assertRaises(InvalidChoiceError):
            validate_allocation_rate(1, 'per_kg')

    def test_validate_category_code(self):
        """Test category code format"""
        self.assertFalse(validate_category_code('')['valid'])
        self.assertFalse(validate_category_code('Office_Rent')['valid'])
        self.assertFalse(validate_category_code('a' * 31)['valid'])
        self.assertFalse(validate_category_code('office_rent\n')['valid'])
        self.assertTrue(validate_category_code('office_rent')['valid'])

    def test_validate_category_name(self):
        """Test category name length"""
        self.assertFalse(validate_category_name('')['valid'])
        self.assertFalse(validate_category_name('   ')['valid'])
        self.assertFalse(validate_category_name('x' * 101)['valid'])
        self.assertTrue(validate_category_name('Office Rent')['valid'])


class FinanceAPITests(TestCase):
    """Test finance endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_job_profitability(self):
        """Test job profitability endpoint"""
        response = self.client.post('/api/v1/finance/job-profitability/', {
            'revenue': '100000000',
            'direct_costs': '60000000',
            'categories': [
                {'category_code': 'office_rent', 'category_name': 'Office Rent',
                 'allocation_method': 'revenue_percentage', 'default_rate': '2'},
                {'category_code': 'old', 'category_name': 'Old',
                 'allocation_method': 'revenue_percentage', 'default_rate': '5', 'is_active': False},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_overhead'], Decimal('2000000'))
        self.assertEqual(response.data['net_profit'], Decimal('38000000'))
        self.assertEqual(response.data['net_margin'], Decimal('38.00'))
        self.assertEqual(len(response.data['allocations']), 1)

    def test_job_profitability_invalid_method(self):
        """Test unknown allocation method is rejected"""
        response = self.client.post('/api/v1/finance/job-profitability/', {
            'revenue': '1000',
            'direct_costs': '100',
            'categories': [
                {'category_code': 'x', 'category_name': 'X', 'allocation_method': 'per_kg', 'default_rate': '1'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('categories', response.data)

    def test_budget_analysis(self):
        """Test budget analysis endpoint fills statuses"""
        response = self.client.post('/api/v1/finance/budget-analysis/', {
            'items': [
                {'category': 'trucking', 'estimated_amount': '1000', 'actual_amount': '1200'},
                {'category': 'customs', 'estimated_amount': '500'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['status'], 'exceeded')
        self.assertEqual(response.data['items'][0]['warning_level'], 'exceeded')
        self.assertEqual(response.data['items'][1]['status'], 'estimated')
        self.assertTrue(response.data['analysis']['has_overruns'])
        self.assertEqual(response.data['analysis']['items_pending'], 1)

    def test_budget_analysis_requires_items(self):
        """Test empty item list is rejected"""
        response = self.client.post('/api/v1/finance/budget-analysis/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_requires_authentication(self):
        """Test anonymous access is rejected"""
        self.client.logout()
        response = self.client.post('/api/v1/finance/budget-analysis/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
