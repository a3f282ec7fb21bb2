"""
Test suite for Reports module
Tests: job profitability report, AR aging, overdue invoice check and report endpoints
"""
from datetime import date
from decimal import Decimal

from django.core.cache import cache
from django.test import SimpleTestCase, TestCase
from rest_framework import status

from gama_erp.core.exceptions import InvalidChoiceError
from gama_erp.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gama_erp.reports.aging import (
    aggregate_by_bucket, aggregate_by_customer, assign_aging_bucket, build_ar_aging_report,
    calculate_days_outstanding, calculate_days_overdue, classify_overdue_severity, determine_severity,
    filter_by_bucket, filter_by_customer, filter_overdue_invoices, filter_unpaid_invoices, get_follow_up_priority,
    get_most_critical_invoices, group_overdue_invoices, is_eligible_for_overdue, is_invoice_overdue,
    transform_invoices_to_aging_items,
)
from gama_erp.reports.utils import (
    build_job_profitability, calculate_profitability_summary, filter_jobs_by_date_range,
    filter_jobs_by_margin_range, sort_jobs_by_margin, validate_profitability_filters,
)

AS_OF = date(2025, 3, 31)


class JobProfitabilityTests(SimpleTestCase):
    """Test profitability rows, filters and summary"""

    def setUp(self):
        self.jobs = [
            TestDataFactory.job('JO-1', net_margin='10', created_at='2025-01-01'),
            TestDataFactory.job('JO-2', net_margin='35', created_at='2025-01-15'),
            TestDataFactory.job('JO-3', net_margin='10', created_at='2025-01-31'),
            TestDataFactory.job('JO-4', net_margin='-5', created_at='2025-02-10'),
            TestDataFactory.job('JO-5', net_margin='35', created_at='2025-03-01'),
        ]

    def test_build_row(self):
        """Test net profit and margin of a row"""
        row = build_job_profitability('1', 'JO-1', '1000000', '600000', '100000', created_at='2025-01-01')
        self.assertEqual(row['net_profit'], Decimal('300000'))
        self.assertEqual(row['net_margin'], Decimal('30'))

    def test_build_row_zero_revenue(self):
        """Test zero revenue has zero margin"""
        row = build_job_profitability('1', 'JO-1', '0', '100', '0')
        self.assertEqual(row['net_profit'], Decimal('-100'))
        self.assertEqual(row['net_margin'], Decimal('0'))

    def test_date_range_inclusive(self):
        """Test both bounds are inclusive"""
        result = filter_jobs_by_date_range(self.jobs, '2025-01-15', '2025-01-31')
        self.assertEqual([j['jo_number'] for j in result], ['JO-2', 'JO-3'])

    def test_date_range_open_bounds(self):
        """Test None bounds do not filter"""
        self.assertEqual(filter_jobs_by_date_range(self.jobs), self.jobs)
        result = filter_jobs_by_date_range(self.jobs, date_from='2025-02-01')
        self.assertEqual([j['jo_number'] for j in result], ['JO-4', 'JO-5'])

    def test_margin_range_inclusive(self):
        """Test margin bounds are inclusive"""
        result = filter_jobs_by_margin_range(self.jobs, 10, 35)
        self.assertEqual([j['jo_number'] for j in result], ['JO-1', 'JO-2', 'JO-3', 'JO-5'])

    def test_filters_partition_input(self):
        """Test retained rows satisfy the predicate and excluded rows fail it"""
        retained = filter_jobs_by_margin_range(self.jobs, min_margin=0)
        excluded = [job for job in self.jobs if job not in retained]
        self.assertLessEqual(len(retained), len(self.jobs))
        self.assertTrue(all(job['net_margin'] >= 0 for job in retained))
        self.assertTrue(all(job['net_margin'] < 0 for job in excluded))
        self.assertEqual(len(retained) + len(excluded), len(self.jobs))

    def test_sort_by_margin_descending_stable(self):
        """Test descending order keeps ties in input order"""
        result = sort_jobs_by_margin(self.jobs)
        self.assertEqual([j['jo_number'] for j in result], ['JO-2', 'JO-5', 'JO-1', 'JO-3', 'JO-4'])

    def test_sort_does_not_mutate(self):
        """Test input order is untouched"""
        before = [j['jo_number'] for j in self.jobs]
        sort_jobs_by_margin(self.jobs)
        self.assertEqual([j['jo_number'] for j in self.jobs], before)

    def test_summary(self):
        """Test totals and average margin"""
        jobs = [
            build_job_profitability('1', 'JO-1', '1000', '500', '100'),
            build_job_profitability('2', 'JO-2', '2000', '1000', '400'),
        ]
        summary = calculate_profitability_summary(jobs)
        self.assertEqual(summary['total_revenue'], Decimal('3000'))
        self.assertEqual(summary['total_direct_cost'], Decimal('1500'))
        self.assertEqual(summary['total_overhead'], Decimal('500'))
        self.assertEqual(summary['total_net_profit'], Decimal('1000'))
        self.assertEqual(summary['total_jobs'], 2)
        self.assertEqual(summary['average_margin'], Decimal('35'))

    def test_summary_empty(self):
        """Test empty summary is all zeros"""
        summary = calculate_profitability_summary([])
        self.assertEqual(summary['total_jobs'], 0)
        self.assertEqual(summary['average_margin'], Decimal('0'))

    def test_validate_filters(self):
        """Test inverted ranges are rejected"""
        self.assertEqual(validate_profitability_filters({}), {'valid': True})
        self.assertEqual(validate_profitability_filters({'min_margin': 0, 'max_margin': 50}), {'valid': True})
        result = validate_profitability_filters({'date_from': '2025-02-01', 'date_to': '2025-01-01'})
        self.assertFalse(result['valid'])
        self.assertIn('date', result['error'])
        result = validate_profitability_filters({'min_margin': 50, 'max_margin': 10})
        self.assertIn('margin', result['error'])


class ARAgingTests(SimpleTestCase):
    """Test AR aging buckets and report"""

    def test_days_outstanding_and_overdue(self):
        """Test signed and clamped day counts"""
        self.assertEqual(calculate_days_outstanding('2025-04-10', AS_OF), -10)
        self.assertEqual(calculate_days_overdue('2025-04-10', AS_OF), 0)
        self.assertEqual(calculate_days_overdue('2025-03-01', AS_OF), 30)

    def test_bucket_boundaries(self):
        """Test bucket edges"""
        expected = {
            -5: 'Current', 0: 'Current', 1: '1-30 Days', 30: '1-30 Days', 31: '31-60 Days',
            60: '31-60 Days', 61: '61-90 Days', 90: '61-90 Days', 91: '90+ Days', 400: '90+ Days',
        }
        for days, label in expected.items():
            self.assertEqual(assign_aging_bucket(days), label, days)

    def test_severity(self):
        """Test aging severity thresholds"""
        self.assertEqual(determine_severity(30), 'normal')
        self.assertEqual(determine_severity(31), 'warning')
        self.assertEqual(determine_severity(89), 'warning')
        self.assertEqual(determine_severity(90), 'critical')

    def test_report(self):
        """Test report details, summary and totals"""
        invoices = [
            TestDataFactory.invoice('INV-1', due_date='2025-03-21', total_amount='100'),
            TestDataFactory.invoice('INV-2', due_date='2024-12-01', total_amount='200'),
            TestDataFactory.invoice('INV-3', due_date='2025-04-30', total_amount='300'),
        ]
        report = build_ar_aging_report(invoices, AS_OF)
        self.assertEqual([d['invoice_number'] for d in report['details']], ['INV-2', 'INV-1', 'INV-3'])
        self.assertEqual(report['details'][0]['days_overdue'], 120)
        self.assertEqual(report['details'][0]['severity'], 'critical')
        self.assertEqual(report['totals'], {'total_count': 3, 'total_amount': Decimal('600')})
        summary = {bucket['label']: bucket for bucket in report['summary']}
        self.assertEqual(len(report['summary']), 5)
        self.assertEqual(summary['Current']['total_amount'], Decimal('300'))
        self.assertEqual(summary['1-30 Days']['count'], 1)
        self.assertEqual(summary['90+ Days']['count'], 1)
        self.assertEqual(summary['31-60 Days']['count'], 0)

    def test_aggregate_by_bucket_conserves_count(self):
        """Test bucket counts add up to the number of items"""
        invoices = [TestDataFactory.invoice(due_date=f'2025-0{m}-01') for m in range(1, 5)]
        items = transform_invoices_to_aging_items(invoices, AS_OF)
        self.assertEqual(sum(b['count'] for b in aggregate_by_bucket(items)), len(items))

    def test_aggregate_by_customer(self):
        """Test per-customer bucket totals"""
        invoices = [
            TestDataFactory.invoice(due_date='2025-03-21', total_amount='100', customer_id='c1', customer_name='A'),
            TestDataFactory.invoice(due_date='2024-12-01', total_amount='200', customer_id='c1', customer_name='A'),
            TestDataFactory.invoice(due_date='2025-04-30', total_amount='300', customer_id='c2', customer_name='B'),
        ]
        rows = aggregate_by_customer(transform_invoices_to_aging_items(invoices, AS_OF))
        self.assertEqual([r['customer_id'] for r in rows], ['c1', 'c2'])
        self.assertEqual(rows[0]['days_1_to_30'], Decimal('100'))
        self.assertEqual(rows[0]['over_90'], Decimal('200'))
        self.assertEqual(rows[0]['total'], Decimal('300'))
        self.assertEqual(rows[1]['current'], Decimal('300'))

    def test_filter_by_bucket(self):
        """Test bucket filter keeps only matching items"""
        invoices = [TestDataFactory.invoice(due_date=d) for d in ('2025-03-21', '2024-12-01', '2025-03-25')]
        items = transform_invoices_to_aging_items(invoices, AS_OF)
        result = filter_by_bucket(items, '1-30 Days')
        self.assertEqual(len(result), 2)
        self.assertTrue(all(item['bucket'] == '1-30 Days' for item in result))

    def test_filter_by_customer(self):
        """Test customer filter keeps order and only matching invoices"""
        invoices = [
            TestDataFactory.invoice('INV-1', customer_id='c1'),
            TestDataFactory.invoice('INV-2', customer_id='c2'),
            TestDataFactory.invoice('INV-3', customer_id='c1'),
        ]
        result = filter_by_customer(invoices, 'c1')
        self.assertEqual([i['invoice_number'] for i in result], ['INV-1', 'INV-3'])
        self.assertEqual(filter_by_customer(invoices, 'c9'), [])
        self.assertEqual(len(invoices), 3)

    def test_filter_unpaid(self):
        """Test amount_due falls back to total_amount"""
        invoices = [
            TestDataFactory.invoice('INV-1', total_amount='100', amount_due='0'),
            TestDataFactory.invoice('INV-2', total_amount='100', amount_due='50'),
            TestDataFactory.invoice('INV-3', total_amount='100'),
            TestDataFactory.invoice('INV-4', total_amount='0'),
        ]
        self.assertEqual([i['invoice_number'] for i in filter_unpaid_invoices(invoices)], ['INV-2', 'INV-3'])


class OverdueCheckTests(SimpleTestCase):
    """Test overdue invoice detection"""

    def test_classify_severity(self):
        """Test overdue severity thresholds"""
        self.assertEqual(classify_overdue_severity(1), 'low')
        self.assertEqual(classify_overdue_severity(14), 'low')
        self.assertEqual(classify_overdue_severity(15), 'medium')
        self.assertEqual(classify_overdue_severity(31), 'high')
        self.assertEqual(classify_overdue_severity(60), 'high')
        self.assertEqual(classify_overdue_severity(61), 'critical')

    def test_eligibility(self):
        """Test only sent and partial invoices are eligible"""
        self.assertTrue(is_eligible_for_overdue('sent'))
        self.assertTrue(is_eligible_for_overdue('partial'))
        self.assertFalse(is_eligible_for_overdue('paid'))
        self.assertFalse(is_eligible_for_overdue('draft'))

    def test_is_invoice_overdue(self):
        """Test overdue requires eligibility and a past due date"""
        self.assertTrue(is_invoice_overdue('2025-03-30', 'sent', AS_OF))
        self.assertFalse(is_invoice_overdue('2025-03-31', 'sent', AS_OF))
        self.assertFalse(is_invoice_overdue('2025-01-01', 'paid', AS_OF))

    def test_group_overdue_invoices(self):
        """Test grouping by severity with totals"""
        invoices = [
            TestDataFactory.invoice('INV-1', due_date='2025-03-25', total_amount='100'),
            TestDataFactory.invoice('INV-2', due_date='2025-01-01', total_amount='200'),
            TestDataFactory.invoice('INV-3', due_date='2025-01-01', total_amount='300', status='paid'),
            TestDataFactory.invoice('INV-4', due_date='2025-04-30', total_amount='400'),
        ]
        overdue = filter_overdue_invoices(invoices, AS_OF)
        self.assertEqual([i['invoice_number'] for i in overdue], ['INV-1', 'INV-2'])
        grouped = group_overdue_invoices(overdue)
        self.assertEqual(len(grouped['low']), 1)
        self.assertEqual(len(grouped['critical']), 1)
        self.assertEqual(grouped['total_count'], 2)
        self.assertEqual(grouped['total_amount'], Decimal('300'))
        self.assertEqual(get_most_critical_invoices(grouped, limit=1)[0]['invoice_number'], 'INV-2')

    def test_follow_up_priority(self):
        """Test priority per severity"""
        self.assertEqual(get_follow_up_priority('critical'), 'urgent')
        self.assertEqual(get_follow_up_priority('low'), 'low')
        with self.assertRaises(InvalidChoiceError):
            get_follow_up_priority('severe')


class ReportsAPITests(TestCase):
    """Test report endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _job(self, jo_number, revenue, direct_cost, overhead, created_at):
        return {
            'jo_id': jo_number,
            'jo_number': jo_number,
            'customer_name': 'PT Maju Jaya',
            'revenue': revenue,
            'direct_cost': direct_cost,
            'overhead': overhead,
            'created_at': created_at,
        }

    def test_profitability_report(self):
        """Test filtering, sorting and summary"""
        payload = {
            'jobs': [
                self._job('JO-1', '1000', '800', '100', '2025-01-05'),
                self._job('JO-2', '1000', '500', '100', '2025-01-10'),
                self._job('JO-3', '1000', '200', '100', '2025-03-10'),
            ],
            'filters': {'date_from': '2025-01-01', 'date_to': '2025-01-31'},
        }
        response = self.client.post('/api/v1/reports/profitability/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([j['jo_number'] for j in response.data['jobs']], ['JO-2', 'JO-1'])
        self.assertEqual(response.data['summary']['total_jobs'], 2)
        self.assertEqual(response.data['summary']['total_net_profit'], Decimal('500'))

    def test_profitability_report_is_cached(self):
        """Test repeated requests return the cached report"""
        payload = {'jobs': [self._job('JO-1', '1000', '800', '100', '2025-01-05')]}
        first = self.client.post('/api/v1/reports/profitability/', payload, format='json')
        second = self.client.post('/api/v1/reports/profitability/', payload, format='json')
        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first.data, second.data)

    def test_profitability_inverted_dates(self):
        """Test inverted date range is rejected"""
        payload = {'jobs': [], 'filters': {'date_from': '2025-02-01', 'date_to': '2025-01-01'}}
        response = self.client.post('/api/v1/reports/profitability/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date', response.data['error'])

    def test_ar_aging(self):
        """Test AR aging skips paid invoices"""
        payload = {
            'as_of_date': '2025-03-31',
            'invoices': [
                {'id': '1', 'invoice_number': 'INV-1', 'customer_id': 'c1', 'customer_name': 'A',
                 'due_date': '2025-03-21', 'total_amount': '100'},
                {'id': '2', 'invoice_number': 'INV-2', 'customer_id': 'c1', 'customer_name': 'A',
                 'due_date': '2024-12-01', 'total_amount': '200'},
                {'id': '3', 'invoice_number': 'INV-3', 'customer_id': 'c2', 'customer_name': 'B',
                 'due_date': '2024-12-01', 'total_amount': '200', 'amount_due': '0'},
            ],
        }
        response = self.client.post('/api/v1/reports/ar-aging/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['totals']['total_count'], 2)
        self.assertEqual(response.data['details'][0]['invoice_number'], 'INV-2')
        self.assertEqual(len(response.data['by_customer']), 1)

    def test_ar_aging_customer_filter(self):
        """Test customer_id limits the report to one customer"""
        payload = {
            'as_of_date': '2025-03-31',
            'customer_id': 'c2',
            'invoices': [
                {'id': '1', 'invoice_number': 'INV-1', 'customer_id': 'c1', 'customer_name': 'A',
                 'due_date': '2025-03-21', 'total_amount': '100'},
                {'id': '2', 'invoice_number': 'INV-2', 'customer_id': 'c2', 'customer_name': 'B',
                 'due_date': '2024-12-01', 'total_amount': '200'},
            ],
        }
        response = self.client.post('/api/v1/reports/ar-aging/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([d['invoice_number'] for d in response.data['details']], ['INV-2'])
        self.assertEqual(response.data['totals']['total_count'], 1)

    def test_ar_aging_bucket_filter(self):
        """Test bucket filter on details"""
        payload = {
            'as_of_date': '2025-03-31',
            'bucket': '90+ Days',
            'invoices': [
                {'id': '1', 'invoice_number': 'INV-1', 'due_date': '2025-03-21', 'total_amount': '100'},
                {'id': '2', 'invoice_number': 'INV-2', 'due_date': '2024-12-01', 'total_amount': '200'},
            ],
        }
        response = self.client.post('/api/v1/reports/ar-aging/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([d['invoice_number'] for d in response.data['details']], ['INV-2'])

    def test_ar_aging_invalid_bucket(self):
        """Test unknown bucket is rejected"""
        payload = {'bucket': '120+ Days', 'invoices': []}
        response = self.client.post('/api/v1/reports/ar-aging/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
