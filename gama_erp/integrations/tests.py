"""
Test suite for Integrations module
Tests: connection and mapping validation, sync log status, retry backoff, token expiry,
sync mapping engine and the sync preview endpoint
"""
import copy
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from rest_framework import status

from gama_erp.core.exceptions import UnknownStatusError
from gama_erp.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gama_erp.integrations.sync_mapping import (
    apply_field_mappings, apply_transform, evaluate_filter_conditions, evaluate_operator, filter_active_mappings,
    filter_records, get_nested_value, prepare_sync_mapping_for_create, prepare_sync_mapping_for_update,
    process_sync_mapping, set_nested_value, transform_record_batch,
)
from gama_erp.integrations.utils import (
    SYNC_LOG_WORKFLOW, calculate_backoff_minutes, calculate_next_retry_at, calculate_retry_delay,
    format_integration_type,
    format_provider, format_sync_status, generate_connection_code, is_sync_terminal, is_token_expired,
    is_valid_sync_status_transition, validate_connection_code,
    validate_connection_input, validate_connection_name, validate_field_mapping, validate_filter_condition,
    validate_sync_mapping_input,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=dt_timezone.utc)


def sync_mapping_input(**overrides):
    data = {
        'connection_id': 'conn-1',
        'local_table': ' invoices ',
        'remote_entity': ' SalesInvoice ',
        'field_mappings': [
            {'local_field': ' invoice_number ', 'remote_field': ' number '},
            {'local_field': 'total_amount', 'remote_field': 'amount', 'transform': 'currency_format'},
        ],
    }
    data.update(overrides)
    return data


class ConnectionValidationTests(SimpleTestCase):
    """Test connection code, name and input validation"""

    def test_connection_code(self):
        """Test allowed characters and length"""
        self.assertTrue(validate_connection_code('ACCURATE_main-01'))
        self.assertTrue(validate_connection_code('a' * 50))
        self.assertFalse(validate_connection_code('a' * 51))
        self.assertFalse(validate_connection_code('with space'))
        self.assertFalse(validate_connection_code('ACC_1\n'))
        self.assertFalse(validate_connection_code('  '))
        self.assertFalse(validate_connection_code(None))

    def test_connection_name(self):
        """Test non-empty names up to 100 characters"""
        self.assertTrue(validate_connection_name('Accurate Online'))
        self.assertFalse(validate_connection_name('x' * 101))
        self.assertFalse(validate_connection_name(' '))

    def test_connection_input(self):
        """Test each field error"""
        valid = {'connection_code': 'XERO_1', 'connection_name': 'Xero', 'integration_type': 'accounting',
                 'provider': 'xero'}
        self.assertEqual(validate_connection_input(valid), {'valid': True, 'errors': []})

        result = validate_connection_input({'connection_code': 'bad code', 'integration_type': 'erp',
                                            'provider': 'sap'})
        self.assertFalse(result['valid'])
        self.assertEqual(result['errors'][0],
                         'connection_code must be alphanumeric with underscores/hyphens, max 50 chars')
        self.assertEqual(result['errors'][1], 'connection_name is required')
        self.assertTrue(result['errors'][2].startswith('integration_type must be one of: accounting'))
        self.assertTrue(result['errors'][3].startswith('provider must be one of: accurate'))

    def test_generate_connection_code(self):
        """Test generated codes are valid and prefixed by the provider"""
        code = generate_connection_code('jurnal')
        self.assertTrue(code.startswith('JURNAL_'))
        self.assertTrue(validate_connection_code(code))


class SyncMappingValidationTests(SimpleTestCase):
    """Test field mapping, filter condition and sync mapping validation"""

    def test_field_mapping(self):
        """Test required fields and known transforms"""
        self.assertTrue(validate_field_mapping({'local_field': 'a', 'remote_field': 'b'}))
        self.assertTrue(validate_field_mapping({'local_field': 'a', 'remote_field': 'b', 'transform': 'uppercase'}))
        self.assertFalse(validate_field_mapping({'local_field': 'a', 'remote_field': 'b', 'transform': 'reverse'}))
        self.assertFalse(validate_field_mapping({'local_field': ' ', 'remote_field': 'b'}))

    def test_filter_condition(self):
        """Test field and operator, any value"""
        self.assertTrue(validate_filter_condition({'field': 'status', 'operator': 'eq', 'value': None}))
        self.assertFalse(validate_filter_condition({'field': 'status', 'operator': 'like', 'value': 'x'}))
        self.assertFalse(validate_filter_condition({'field': '', 'operator': 'eq'}))

    def test_sync_mapping_input(self):
        """Test error messages for a bad mapping"""
        self.assertTrue(validate_sync_mapping_input(sync_mapping_input())['valid'])
        result = validate_sync_mapping_input({
            'local_table': 'invoices',
            'field_mappings': [{'local_field': 'a', 'remote_field': ''}],
            'sync_direction': 'sideways',
            'filter_conditions': [{'field': 'status', 'operator': 'eq'}, {'field': 'x', 'operator': '~'}],
        })
        self.assertEqual(result['errors'], [
            'connection_id is required',
            'remote_entity is required',
            'field_mappings[0] is invalid',
            'sync_direction must be one of: push, pull, bidirectional',
            'filter_conditions[1] is invalid',
        ])

    def test_field_mappings_required(self):
        """Test missing and empty field mappings"""
        missing = validate_sync_mapping_input(sync_mapping_input(field_mappings=None))
        self.assertIn('field_mappings is required and must be an array', missing['errors'])
        empty = validate_sync_mapping_input(sync_mapping_input(field_mappings=[]))
        self.assertIn('field_mappings must have at least one mapping', empty['errors'])


class SyncLogStatusTests(SimpleTestCase):
    """Test sync log status transitions"""

    def test_running_moves_to_any_outcome(self):
        """Test running can complete, fail or partially succeed"""
        for outcome in ('completed', 'failed', 'partial'):
            self.assertTrue(is_valid_sync_status_transition('running', outcome))
        self.assertFalse(is_valid_sync_status_transition('running', 'running'))

    def test_outcomes_are_final(self):
        """Test finished runs never change status"""
        for outcome in ('completed', 'failed', 'partial'):
            self.assertTrue(is_sync_terminal(outcome))
            for target in SYNC_LOG_WORKFLOW.statuses:
                self.assertFalse(is_valid_sync_status_transition(outcome, target))
        self.assertFalse(is_sync_terminal('running'))

    def test_unknown_status(self):
        """Test unknown statuses"""
        self.assertFalse(is_valid_sync_status_transition('queued', 'running'))
        with self.assertRaises(UnknownStatusError):
            is_sync_terminal('queued')


class RetryAndTokenTests(SimpleTestCase):
    """Test backoff and token expiry"""

    def test_backoff_minutes(self):
        """Test min(2^n, 2^10) with negative counts as 0"""
        self.assertEqual(calculate_backoff_minutes(0), 1)
        self.assertEqual(calculate_backoff_minutes(3), 8)
        self.assertEqual(calculate_backoff_minutes(10), 1024)
        self.assertEqual(calculate_backoff_minutes(25), 1024)
        self.assertEqual(calculate_backoff_minutes(-4), 1)
        for count in range(0, 15):
            self.assertEqual(calculate_backoff_minutes(count), min(2 ** count, 2 ** 10))

    def test_retry_delay(self):
        """Test millisecond delay with cap"""
        self.assertEqual(calculate_retry_delay(0), 1000)
        self.assertEqual(calculate_retry_delay(2), 4000)
        self.assertEqual(calculate_retry_delay(10), 30000)
        self.assertEqual(calculate_retry_delay(-1), 1000)
        self.assertEqual(calculate_retry_delay(3, base_delay_ms=500, max_delay_ms=2000), 2000)

    def test_retry_delay_huge_count(self):
        """Test a runaway retry counter still returns the cap"""
        self.assertEqual(calculate_retry_delay(10 ** 9), 30000)
        self.assertEqual(calculate_retry_delay(10 ** 9, base_delay_ms=1, max_delay_ms=10 ** 12), 2 ** 30)

    def test_next_retry_at(self):
        """Test next attempt time"""
        self.assertEqual(calculate_next_retry_at(4, now=NOW), NOW + timedelta(minutes=16))

    def test_token_expiry(self):
        """Test the 5 minute buffer"""
        self.assertTrue(is_token_expired(None, now=NOW))
        self.assertTrue(is_token_expired(NOW + timedelta(minutes=5), now=NOW))
        self.assertFalse(is_token_expired(NOW + timedelta(minutes=6), now=NOW))
        self.assertFalse(is_token_expired('2025-06-01T12:10:00+00:00', now=NOW))
        self.assertTrue(is_token_expired('2025-06-01T11:00:00+00:00', now=NOW))

    def test_labels(self):
        """Test display labels"""
        self.assertEqual(format_sync_status('partial'), 'Partial Success')
        self.assertEqual(format_integration_type('tracking'), 'GPS Tracking')
        self.assertEqual(format_provider('jurnal'), 'Jurnal.id')
        self.assertEqual(format_provider('sap'), 'sap')


class NestedValueTests(SimpleTestCase):
    """Test dot path access"""

    def test_get_nested_value(self):
        """Test present and missing paths"""
        record = {'customer': {'address': {'city': 'Surabaya'}}, 'total': 5}
        self.assertEqual(get_nested_value(record, 'customer.address.city'), 'Surabaya')
        self.assertEqual(get_nested_value(record, 'total'), 5)
        self.assertIsNone(get_nested_value(record, 'customer.phone'))
        self.assertIsNone(get_nested_value(record, 'total.amount'))

    def test_set_nested_value(self):
        """Test intermediate dicts are created or replaced"""
        target = {'a': 1}
        set_nested_value(target, 'a.b.c', 2)
        set_nested_value(target, 'x', 3)
        self.assertEqual(target, {'a': {'b': {'c': 2}}, 'x': 3})


class TransformTests(SimpleTestCase):
    """Test value transforms"""

    def test_date_format(self):
        """Test ISO date output in UTC"""
        self.assertEqual(apply_transform('2025-03-01', 'date_format'), '2025-03-01')
        self.assertEqual(apply_transform('2025-03-01T23:30:00+07:00', 'date_format'), '2025-03-01')
        self.assertEqual(apply_transform('2025-03-01T03:00:00+07:00', 'date_format'), '2025-02-28')
        self.assertEqual(apply_transform(date(2025, 1, 2), 'date_format'), '2025-01-02')
        self.assertEqual(apply_transform('not a date', 'date_format'), 'not a date')
        self.assertEqual(apply_transform(42, 'date_format'), 42)

    def test_currency_format(self):
        """Test rounding to 2 places"""
        self.assertEqual(apply_transform(12.345, 'currency_format'), Decimal('12.35'))
        self.assertEqual(apply_transform('1000.5', 'currency_format'), Decimal('1000.50'))
        self.assertEqual(apply_transform('abc', 'currency_format'), 'abc')
        self.assertEqual(apply_transform(True, 'currency_format'), True)

    def test_case_transforms(self):
        """Test upper/lower case on strings only"""
        self.assertEqual(apply_transform('Inv-1', 'uppercase'), 'INV-1')
        self.assertEqual(apply_transform('Inv-1', 'lowercase'), 'inv-1')
        self.assertEqual(apply_transform(5, 'uppercase'), 5)

    def test_passthrough(self):
        """Test None, custom and unknown transforms"""
        self.assertIsNone(apply_transform(None, 'uppercase'))
        self.assertEqual(apply_transform('x', 'custom'), 'x')
        self.assertEqual(apply_transform('x', 'reverse'), 'x')


class OperatorTests(SimpleTestCase):
    """Test filter operators"""

    def test_equality(self):
        """Test strict equality, booleans never equal numbers"""
        self.assertTrue(evaluate_operator('paid', 'eq', 'paid'))
        self.assertFalse(evaluate_operator(1, 'eq', True))
        self.assertFalse(evaluate_operator(0, 'eq', False))
        self.assertFalse(evaluate_operator('1', 'eq', 1))
        self.assertTrue(evaluate_operator(True, 'eq', True))
        self.assertTrue(evaluate_operator(1, 'neq', True))
        self.assertTrue(evaluate_operator(None, 'eq', None))

    def test_ordering(self):
        """Test ordering only between values of the same kind"""
        self.assertTrue(evaluate_operator(10, 'gt', 5))
        self.assertTrue(evaluate_operator(Decimal('5'), 'gte', 5))
        self.assertTrue(evaluate_operator('b', 'gt', 'a'))
        self.assertTrue(evaluate_operator(date(2025, 1, 1), 'lt', date(2025, 2, 1)))
        self.assertTrue(evaluate_operator(4, 'lte', 4))
        self.assertFalse(evaluate_operator('10', 'gt', 5))
        self.assertFalse(evaluate_operator(None, 'lt', 5))
        self.assertFalse(evaluate_operator(True, 'gt', 0))
        self.assertFalse(evaluate_operator(NOW, 'gt', date(2025, 1, 1)))

    def test_in_and_contains(self):
        """Test membership operators"""
        self.assertTrue(evaluate_operator('sent', 'in', ['sent', 'overdue']))
        self.assertFalse(evaluate_operator('sent', 'in', 'sent'))
        self.assertFalse(evaluate_operator(1, 'in', [True]))
        self.assertTrue(evaluate_operator('PT Maju Jaya', 'contains', 'maju'))
        self.assertTrue(evaluate_operator(['a', 'b'], 'contains', 'b'))
        self.assertFalse(evaluate_operator(5, 'contains', 5))

    def test_unknown_operator(self):
        """Test unknown operators never match"""
        self.assertFalse(evaluate_operator(1, 'like', 1))


class SyncEngineTests(SimpleTestCase):
    """Test filtering and transforming records"""

    def setUp(self):
        self.records = [
            {'id': 1, 'status': 'sent', 'total': 1500.456, 'customer': {'name': 'PT Maju'}},
            {'id': 2, 'status': 'draft', 'total': 200, 'customer': {'name': 'CV Baja'}},
            {'id': 3, 'status': 'sent', 'total': 50, 'customer': None},
        ]
        self.mapping = {
            'local_table': 'invoices',
            'remote_entity': 'SalesInvoice',
            'field_mappings': [
                {'local_field': 'id', 'remote_field': 'externalId'},
                {'local_field': 'customer.name', 'remote_field': 'contact.name', 'transform': 'uppercase'},
                {'local_field': 'total', 'remote_field': 'amount', 'transform': 'currency_format'},
            ],
            'filter_conditions': [{'field': 'status', 'operator': 'eq', 'value': 'sent'}],
        }

    def test_field_mappings(self):
        """Test renaming into nested remote fields"""
        result = apply_field_mappings(self.records[0], self.mapping['field_mappings'])
        self.assertEqual(result, {'externalId': 1, 'contact': {'name': 'PT MAJU'}, 'amount': Decimal('1500.46')})

    def test_missing_source_field(self):
        """Test missing local fields map to None"""
        result = apply_field_mappings(self.records[2], self.mapping['field_mappings'])
        self.assertIsNone(result['contact']['name'])

    def test_filter_conditions(self):
        """Test AND logic and empty condition lists"""
        conditions = [
            {'field': 'status', 'operator': 'eq', 'value': 'sent'},
            {'field': 'total', 'operator': 'gt', 'value': 100},
        ]
        self.assertTrue(evaluate_filter_conditions(self.records[0], conditions))
        self.assertFalse(evaluate_filter_conditions(self.records[2], conditions))
        self.assertTrue(evaluate_filter_conditions(self.records[1], []))
        self.assertTrue(evaluate_filter_conditions(self.records[1], None))

    def test_filter_records(self):
        """Test order is kept and retained records satisfy the conditions"""
        conditions = self.mapping['filter_conditions']
        result = filter_records(self.records, conditions)
        self.assertEqual([record['id'] for record in result], [1, 3])
        self.assertEqual(filter_records(self.records, None), self.records)
        self.assertIsNot(filter_records(self.records, None), self.records)

    def test_process_sync_mapping(self):
        """Test filter then transform"""
        result = process_sync_mapping(self.records, self.mapping)
        self.assertEqual([record['externalId'] for record in result], [1, 3])
        self.assertEqual(result[1]['amount'], Decimal('50.00'))

    def test_input_not_mutated(self):
        """Test records and nested values are left untouched"""
        original = copy.deepcopy(self.records)
        mappings = [
            {'local_field': 'customer', 'remote_field': 'contact'},
            {'local_field': 'status', 'remote_field': 'contact.status'},
        ]
        result = transform_record_batch(self.records, mappings)
        self.assertEqual(result[0]['contact'], {'name': 'PT Maju', 'status': 'sent'})
        self.assertEqual(self.records, original)


class SyncMappingPreparationTests(SimpleTestCase):
    """Test create/update preparation and active mappings"""

    def test_prepare_for_create(self):
        """Test trimming and defaults"""
        result = prepare_sync_mapping_for_create(sync_mapping_input())
        self.assertTrue(result['valid'])
        data = result['data']
        self.assertEqual(data['local_table'], 'invoices')
        self.assertEqual(data['remote_entity'], 'SalesInvoice')
        self.assertEqual(data['field_mappings'][0], {'local_field': 'invoice_number', 'remote_field': 'number'})
        self.assertEqual(data['field_mappings'][1]['transform'], 'currency_format')
        self.assertEqual(data['sync_direction'], 'push')
        self.assertEqual(data['sync_frequency'], 'realtime')
        self.assertIsNone(data['filter_conditions'])
        self.assertTrue(data['is_active'])

    def test_prepare_for_create_keeps_inactive(self):
        """Test an explicit is_active False is kept"""
        result = prepare_sync_mapping_for_create(sync_mapping_input(is_active=False, sync_frequency='daily'))
        self.assertFalse(result['data']['is_active'])
        self.assertEqual(result['data']['sync_frequency'], 'daily')

    def test_prepare_for_create_invalid(self):
        """Test validation errors are returned"""
        result = prepare_sync_mapping_for_create(sync_mapping_input(connection_id=None))
        self.assertEqual(result, {'valid': False, 'errors': ['connection_id is required']})

    def test_prepare_for_update(self):
        """Test only provided fields are returned"""
        self.assertEqual(prepare_sync_mapping_for_update({}), {})
        update = prepare_sync_mapping_for_update({'local_table': ' jobs ', 'is_active': False,
                                                  'filter_conditions': None})
        self.assertEqual(update, {'local_table': 'jobs', 'is_active': False, 'filter_conditions': None})

    def test_filter_active_mappings(self):
        """Test only mappings with is_active True are kept"""
        mappings = [{'id': 1, 'is_active': True}, {'id': 2, 'is_active': False}, {'id': 3}]
        self.assertEqual([mapping['id'] for mapping in filter_active_mappings(mappings)], [1])


class IntegrationsAPITests(TestCase):
    """Test sync preview endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_sync_preview(self):
        """Test filtered and mapped records are returned"""
        response = self.client.post('/api/v1/integrations/sync-preview/', {
            'local_table': 'invoices',
            'remote_entity': 'SalesInvoice',
            'field_mappings': [
                {'local_field': 'invoice_number', 'remote_field': 'number', 'transform': 'uppercase'},
                {'local_field': 'customer.name', 'remote_field': 'contact.name'},
            ],
            'filter_conditions': [{'field': 'status', 'operator': 'in', 'value': ['sent', 'overdue']}],
            'records': [
                {'invoice_number': 'inv-1', 'status': 'sent', 'customer': {'name': 'PT Maju'}},
                {'invoice_number': 'inv-2', 'status': 'paid', 'customer': {'name': 'CV Baja'}},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['matched'], 1)
        self.assertEqual(response.data['records'], [{'number': 'INV-1', 'contact': {'name': 'PT Maju'}}])

    def test_sync_preview_invalid_operator(self):
        """Test unknown operators are rejected"""
        response = self.client.post('/api/v1/integrations/sync-preview/', {
            'field_mappings': [{'local_field': 'a', 'remote_field': 'b'}],
            'filter_conditions': [{'field': 'a', 'operator': 'like', 'value': 'x'}],
            'records': [],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('filter_conditions', response.data)

    def test_sync_preview_requires_mappings(self):
        """Test an empty field mapping list is rejected"""
        response = self.client.post('/api/v1/integrations/sync-preview/', {
            'field_mappings': [],
            'records': [{'a': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
