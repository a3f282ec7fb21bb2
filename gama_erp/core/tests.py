"""
Test suite for core module
Tests: status workflows, registry, money/date helpers, caching, auth and workflow endpoints
"""
from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase
from rest_framework import status

from gama_erp.core.cache_utils import (
    cache_report, get_cached_report, invalidate_cache_pattern, invalidate_reports_cache, make_cache_key,
)
from gama_erp.core.exceptions import InvalidChoiceError, UnknownStatusError, UnknownWorkflowError
from gama_erp.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gama_erp.core.utils import days_between, minutes_between, round_money, to_date, to_decimal
from gama_erp.core.workflows import StatusWorkflow, all_workflows, get_workflow

DOCUMENT_FLOW = {
    'draft': ['submitted', 'cancelled'],
    'submitted': ['approved', 'draft'],
    'approved': [],
    'cancelled': [],
}


class StatusWorkflowTests(SimpleTestCase):
    """Test the allowlist transition table"""

    def setUp(self):
        self.workflow = StatusWorkflow('document', DOCUMENT_FLOW, labels={'draft': 'Draft copy'})

    def test_can_transition_follows_allowlist(self):
        """Test every pair against the allowlist"""
        for current in DOCUMENT_FLOW:
            for target in DOCUMENT_FLOW:
                self.assertEqual(
                    self.workflow.can_transition(current, target),
                    target in DOCUMENT_FLOW[current],
                    f'{current} -> {target}',
                )

    def test_unknown_current_status_is_rejected(self):
        """Test unknown statuses never transition"""
        self.assertFalse(self.workflow.can_transition('archived', 'draft'))
        self.assertEqual(self.workflow.next_statuses('archived'), [])

    def test_terminal_statuses(self):
        """Test terminal statuses have empty allowlists"""
        self.assertEqual(self.workflow.terminal_statuses, ['approved', 'cancelled'])
        self.assertTrue(self.workflow.is_terminal('approved'))
        self.assertFalse(self.workflow.is_terminal('draft'))

    def test_is_terminal_unknown_status_raises(self):
        """Test is_terminal rejects statuses outside the table"""
        with self.assertRaises(UnknownStatusError):
            self.workflow.is_terminal('archived')

    def test_next_statuses_returns_copy(self):
        """Test callers cannot mutate the table through next_statuses"""
        targets = self.workflow.next_statuses('draft')
        targets.append('approved')
        self.assertFalse(self.workflow.can_transition('draft', 'approved'))

    def test_labels(self):
        """Test explicit labels and title-cased fallback"""
        self.assertEqual(self.workflow.label('draft'), 'Draft copy')
        self.assertEqual(self.workflow.label('submitted'), 'Submitted')

    def test_check_transition_message(self):
        """Test rejection message names both statuses"""
        result = self.workflow.check_transition('approved', 'draft')
        self.assertFalse(result['valid'])
        self.assertEqual(result['error'], "Cannot change status from 'approved' to 'draft'")
        self.assertEqual(self.workflow.check_transition('draft', 'submitted'), {'valid': True, 'error': None})

    def test_undeclared_target_rejected(self):
        """Test tables must declare every target status"""
        with self.assertRaises(UnknownStatusError):
            StatusWorkflow('broken', {'draft': ['done']})

    def test_unknown_status_error_is_value_error(self):
        """Test exception hierarchy"""
        self.assertTrue(issubclass(UnknownStatusError, InvalidChoiceError))
        self.assertTrue(issubclass(InvalidChoiceError, ValueError))


class WorkflowRegistryTests(SimpleTestCase):
    """Test the workflows registered by the installed apps"""

    def test_document_workflows_registered(self):
        """Test every document workflow is available"""
        names = [workflow.name for workflow in all_workflows()]
        for name in ('berita_acara', 'bill_of_lading', 'jmp', 'pib', 'safety_document', 'sync_log'):
            self.assertIn(name, names)
        self.assertEqual(names, sorted(names))

    def test_unknown_workflow(self):
        """Test lookup of an unregistered workflow"""
        with self.assertRaises(UnknownWorkflowError):
            get_workflow('purchase_order')


class MoneyAndDateHelperTests(SimpleTestCase):
    """Test shared conversion helpers"""

    def test_to_decimal(self):
        """Test numeric conversion"""
        self.assertEqual(to_decimal(None), Decimal('0'))
        self.assertEqual(to_decimal(''), Decimal('0'))
        self.assertEqual(to_decimal(0.1), Decimal('0.1'))
        self.assertEqual(to_decimal('12.50'), Decimal('12.50'))
        with self.assertRaises(ValueError):
            to_decimal('abc')
        with self.assertRaises(ValueError):
            to_decimal(True)

    def test_round_money_half_up(self):
        """Test half-up rounding"""
        self.assertEqual(round_money('2.345'), Decimal('2.35'))
        self.assertEqual(round_money('2.5', 0), Decimal('3'))

    def test_to_date(self):
        """Test date parsing from several inputs"""
        self.assertEqual(to_date('2025-03-01'), date(2025, 3, 1))
        self.assertEqual(to_date(datetime(2025, 3, 1, 10, 0)), date(2025, 3, 1))
        self.assertIsNone(to_date(None))
        with self.assertRaises(ValueError):
            to_date('not a date')

    def test_days_between_is_signed(self):
        """Test signed day difference"""
        self.assertEqual(days_between('2025-01-01', '2025-01-31'), 30)
        self.assertEqual(days_between('2025-01-31', '2025-01-01'), -30)

    def test_minutes_between(self):
        """Test minute difference between datetimes"""
        self.assertEqual(minutes_between('2025-01-01T08:00:00', '2025-01-01T09:30:00'), 90)


class CacheUtilsTests(SimpleTestCase):
    """Test report caching helpers"""

    def setUp(self):
        cache.clear()

    def test_cache_key_ignores_dict_order(self):
        """Test equal payloads share a key"""
        self.assertEqual(
            make_cache_key('report', {'a': 1, 'b': 2}),
            make_cache_key('report', {'b': 2, 'a': 1}),
        )

    def test_cache_report_round_trip(self):
        """Test cached report is returned on the next lookup"""
        payload = {'date_from': '2025-01-01'}
        data, key = get_cached_report('profitability', payload)
        self.assertIsNone(data)
        cache_report(key, {'total_jobs': 3})
        data, _ = get_cached_report('profitability', payload)
        self.assertEqual(data, {'total_jobs': 3})

    def test_invalidate_reports_cache_without_redis(self):
        """Test the local cache is cleared when pattern deletes are unsupported"""
        _, key = get_cached_report('profitability', {})
        cache_report(key, {'total_jobs': 1})
        invalidate_reports_cache()
        self.assertIsNone(get_cached_report('profitability', {})[0])

    def test_invalidate_cache_pattern_with_redis(self):
        """Test matching keys are scanned and deleted on Redis"""
        redis_conn = mock.Mock()
        redis_conn.scan.side_effect = [(7, [b'report_a']), (0, [b'report_b'])]
        with mock.patch('django_redis.get_redis_connection', return_value=redis_conn):
            invalidate_cache_pattern('report_')
        redis_conn.scan.assert_called_with(7, match='*report_*', count=100)
        redis_conn.delete.assert_called_once_with(b'report_a', b'report_b')

    def test_clear_report_cache_command(self):
        """Test the management command drops cached reports"""
        _, key = get_cached_report('profitability', {'jobs': []})
        cache_report(key, {'total_jobs': 0})
        out = StringIO()
        call_command('clear_report_cache', '--report', 'profitability', stdout=out)
        self.assertIn("Cleared cached 'profitability' reports", out.getvalue())
        self.assertIsNone(get_cached_report('profitability', {'jobs': []})[0])


class AuthAPITests(TestCase):
    """Test JWT endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='ops_admin')
        self.client = AuthenticatedAPIClient()

    def test_login_returns_tokens(self):
        """Test login with valid credentials"""
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'ops_admin',
            'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        """Test login with wrong password"""
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'ops_admin',
            'password': 'wrong',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        """Test refreshing an access token"""
        login = self.client.post('/api/v1/auth/login/', {
            'username': 'ops_admin',
            'password': 'testpass123',
        }, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_endpoints_require_authentication(self):
        """Test anonymous requests are rejected"""
        response = self.client.get('/api/v1/workflows/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class WorkflowAPITests(TestCase):
    """Test workflow endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_list_workflows(self):
        """Test listing all workflows"""
        response = self.client.get('/api/v1/workflows/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [item['name'] for item in response.data]
        self.assertIn('pib', names)

    def test_workflow_detail(self):
        """Test one workflow table"""
        response = self.client.get('/api/v1/workflows/jmp/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        statuses = {item['status']: item for item in response.data['statuses']}
        self.assertEqual(statuses['draft']['next'], ['pending_review', 'cancelled'])
        self.assertTrue(statuses['completed']['terminal'])

    def test_workflow_detail_unknown(self):
        """Test unknown workflow returns 404"""
        response = self.client.get('/api/v1/workflows/unknown/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_check_allowed_transition(self):
        """Test an allowed transition"""
        response = self.client.post('/api/v1/workflows/pib/check/', {
            'current': 'duties_paid',
            'target': 'released',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertFalse(response.data['terminal'])

    def test_check_rejected_transition(self):
        """Test a rejected transition lists the allowed targets"""
        response = self.client.post('/api/v1/workflows/pib/check/', {
            'current': 'draft',
            'target': 'released',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['allowed'], ['submitted', 'cancelled'])

    def test_check_missing_fields(self):
        """Test validation errors"""
        response = self.client.post('/api/v1/workflows/pib/check/', {'current': 'draft'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('target', response.data)


class ShowWorkflowsCommandTests(SimpleTestCase):
    """Test the show_workflows management command"""

    def test_prints_all_workflows(self):
        """Test output lists every workflow"""
        out = StringIO()
        call_command('show_workflows', stdout=out)
        output = out.getvalue()
        self.assertIn('WORKFLOW: bill_of_lading', output)
        self.assertIn('WORKFLOW: pib', output)
        self.assertIn('draft (Draft) -> pending_review, cancelled', output)

    def test_unknown_workflow_name(self):
        """Test unknown names raise CommandError"""
        with self.assertRaises(CommandError):
            call_command('show_workflows', 'unknown', stdout=StringIO())
