"""
Test suite for Customs module
Tests: PIB duty calculation, references, validation, status workflow, filtering and duties endpoint
"""
from decimal import Decimal

from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status

from gama_erp.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gama_erp.customs.utils import (
    PIB_WORKFLOW, aggregate_pib_duties, calculate_cif_value, calculate_item_duties,
    calculate_item_total_price, can_delete_pib, can_edit_pib, can_transition_status, convert_to_idr,
    filter_pib_documents, format_pib_date, format_pib_reference, format_pib_status, format_transport_mode,
    generate_pib_internal_ref, get_next_allowed_statuses, is_valid_pib_internal_ref, search_pib_documents,
    validate_hs_code, validate_pib_document, validate_pib_item,
)

PIB_TRANSITIONS = {
    'draft': ['submitted', 'cancelled'],
    'submitted': ['document_check', 'cancelled'],
    'document_check': ['physical_check', 'duties_paid', 'cancelled'],
    'physical_check': ['duties_paid', 'cancelled'],
    'duties_paid': ['released'],
    'released': ['completed'],
    'completed': [],
    'cancelled': [],
}


class DutyCalculationTests(SimpleTestCase):
    """Test CIF and duty calculations"""

    def test_cif_value(self):
        """Test CIF = FOB + freight + insurance"""
        self.assertEqual(calculate_cif_value(1000, 100, 10), Decimal('1110'))
        self.assertEqual(calculate_cif_value(1000), Decimal('1000'))

    def test_item_total_price(self):
        """Test quantity x unit price"""
        self.assertEqual(calculate_item_total_price(3, '12.50'), Decimal('37.50'))

    def test_item_duties(self):
        """Test bea masuk, PPN and PPh on price + bea masuk"""
        duties = calculate_item_duties(1000, bm_rate=10, ppn_rate=11, pph_rate=2.5)
        self.assertEqual(duties, {
            'bea_masuk': Decimal('100.00'),
            'ppn': Decimal('121.00'),
            'pph_import': Decimal('27.50'),
            'total': Decimal('248.50'),
        })

    def test_item_duties_total_uses_unrounded_components(self):
        """Test total is rounded once from exact components"""
        duties = calculate_item_duties(Decimal('333.33'), bm_rate='7.5', ppn_rate=11, pph_rate='2.5')
        self.assertEqual(duties['bea_masuk'], Decimal('25.00'))
        self.assertEqual(duties['ppn'], Decimal('39.42'))
        self.assertEqual(duties['pph_import'], Decimal('8.96'))
        self.assertEqual(duties['total'], Decimal('73.37'))

    def test_default_ppn_rate(self):
        """Test PPN defaults to the configured rate"""
        self.assertEqual(calculate_item_duties(1000)['ppn'], Decimal('110.00'))
        with override_settings(GAMA_DEFAULT_PPN_RATE=12):
            self.assertEqual(calculate_item_duties(1000)['ppn'], Decimal('120.00'))

    def test_default_pph_rate_is_zero(self):
        """Test PPh import is only charged when a rate is given"""
        duties = calculate_item_duties(1000, bm_rate=10)
        self.assertEqual(duties['pph_import'], Decimal('0.00'))
        self.assertEqual(duties['total'], Decimal('221.00'))

    def test_aggregate_duties(self):
        """Test PIB totals are sums of item duties"""
        items = [
            calculate_item_duties(1000, 10, 11, 2.5),
            calculate_item_duties(500, 0, 11, 0),
        ]
        totals = aggregate_pib_duties(items)
        self.assertEqual(totals['bea_masuk'], Decimal('100.00'))
        self.assertEqual(totals['ppn'], Decimal('176.00'))
        self.assertEqual(totals['pph_import'], Decimal('27.50'))
        self.assertEqual(totals['total_duties'], Decimal('303.50'))
        self.assertEqual(aggregate_pib_duties([])['total_duties'], Decimal('0.00'))

    def test_convert_to_idr(self):
        """Test conversion rounds to whole rupiah"""
        self.assertEqual(convert_to_idr('1000.50', 15500), Decimal('15507750'))
        self.assertEqual(convert_to_idr('10.33', '15500.5'), Decimal('160120'))


class ReferenceAndValidationTests(SimpleTestCase):
    """Test references, HS codes and form validation"""

    def test_internal_ref(self):
        """Test PIB-YYYY-NNNNN format"""
        ref = generate_pib_internal_ref(1, 2025)
        self.assertEqual(ref, 'PIB-2025-00001')
        self.assertTrue(is_valid_pib_internal_ref(ref))
        self.assertFalse(is_valid_pib_internal_ref('PIB-25-00001'))
        self.assertFalse(is_valid_pib_internal_ref('PIB-2025-00001\n'))
        self.assertFalse(is_valid_pib_internal_ref(''))
        self.assertTrue(is_valid_pib_internal_ref(generate_pib_internal_ref(42)))

    def test_hs_code(self):
        """Test 6-10 digits with optional dots"""
        self.assertTrue(validate_hs_code('8471.30.10'))
        self.assertTrue(validate_hs_code('847130'))
        self.assertFalse(validate_hs_code('12345'))
        self.assertFalse(validate_hs_code('12345678901'))
        self.assertFalse(validate_hs_code('8471ab'))
        self.assertFalse(validate_hs_code('847130\n'))
        self.assertFalse(validate_hs_code('８４７１３０'))

    def test_validate_document(self):
        """Test document field errors"""
        self.assertTrue(validate_pib_document(TestDataFactory.pib_document())['valid'])
        result = validate_pib_document({'importer_name': ' ', 'fob_value': -1, 'exchange_rate': 0})
        fields = [error['field'] for error in result['errors']]
        self.assertEqual(fields, [
            'importer_name', 'import_type_id', 'customs_office_id', 'transport_mode', 'fob_value', 'exchange_rate',
        ])

    def test_validate_item(self):
        """Test item field errors"""
        valid = {'hs_code': '8471.30.10', 'goods_description': 'Laptop', 'quantity': 1, 'unit': 'pcs',
                 'unit_price': 0}
        self.assertTrue(validate_pib_item(valid)['valid'])
        result = validate_pib_item({'hs_code': '12', 'quantity': 0, 'unit_price': -1})
        self.assertEqual(result['errors'][0], {'field': 'hs_code', 'message': 'Invalid HS code format'})
        fields = [error['field'] for error in result['errors']]
        self.assertEqual(fields, ['hs_code', 'goods_description', 'quantity', 'unit', 'unit_price'])


class PIBStatusTests(SimpleTestCase):
    """Test PIB workflow"""

    def test_transition_table(self):
        """Test every pair against the allowlist"""
        for current, allowed in PIB_TRANSITIONS.items():
            self.assertEqual(get_next_allowed_statuses(current), allowed)
            for target in PIB_TRANSITIONS:
                self.assertEqual(can_transition_status(current, target), target in allowed)

    def test_terminal_statuses(self):
        """Test completed and cancelled are terminal"""
        self.assertEqual(PIB_WORKFLOW.terminal_statuses, ['completed', 'cancelled'])

    def test_edit_and_delete_only_drafts(self):
        """Test draft-only editing"""
        self.assertTrue(can_edit_pib('draft'))
        self.assertTrue(can_delete_pib('draft'))
        self.assertFalse(can_edit_pib('submitted'))
        self.assertFalse(can_delete_pib('released'))


class PIBFilterTests(SimpleTestCase):
    """Test filtering, search and formatting"""

    def setUp(self):
        self.documents = [
            TestDataFactory.pib_document('PIB-2025-00001', status='draft', eta_date='2025-03-01'),
            TestDataFactory.pib_document('PIB-2025-00002', status='submitted', eta_date='2025-03-15',
                                         customs_office_id='office-2', pib_number='000123'),
            TestDataFactory.pib_document('PIB-2025-00003', status='draft', eta_date=None,
                                         importer_name='CV Baja Makmur', aju_number='AJU-778'),
            TestDataFactory.pib_document('PIB-2025-00004', status='draft', eta_date='2025-03-31'),
        ]

    def _refs(self, documents):
        return [doc['internal_ref'] for doc in documents]

    def test_filter_by_status_and_office(self):
        """Test status and customs office filters"""
        self.assertEqual(self._refs(filter_pib_documents(self.documents, {'status': 'draft'})),
                         ['PIB-2025-00001', 'PIB-2025-00003', 'PIB-2025-00004'])
        self.assertEqual(self._refs(filter_pib_documents(self.documents, {'customs_office_id': 'office-2'})),
                         ['PIB-2025-00002'])

    def test_filter_by_eta_range(self):
        """Test inclusive range and exclusion of documents without ETA"""
        result = filter_pib_documents(self.documents, {'date_from': '2025-03-01', 'date_to': '2025-03-15'})
        self.assertEqual(self._refs(result), ['PIB-2025-00001', 'PIB-2025-00002'])
        self.assertEqual(len(filter_pib_documents(self.documents, {})), 4)

    def test_search(self):
        """Test case-insensitive search across reference fields"""
        self.assertEqual(self._refs(search_pib_documents(self.documents, 'baja')), ['PIB-2025-00003'])
        self.assertEqual(self._refs(search_pib_documents(self.documents, '000123')), ['PIB-2025-00002'])
        self.assertEqual(self._refs(search_pib_documents(self.documents, 'aju-778')), ['PIB-2025-00003'])
        self.assertEqual(len(search_pib_documents(self.documents, '  ')), 4)

    def test_formatting(self):
        """Test display helpers"""
        self.assertEqual(format_pib_status('duties_paid'), 'Duties Paid')
        self.assertEqual(format_transport_mode('sea'), 'Sea Freight')
        self.assertEqual(format_transport_mode('rail'), 'rail')
        self.assertEqual(format_pib_reference('PIB-2025-00001', '000123'), 'PIB-2025-00001 (000123)')
        self.assertEqual(format_pib_reference('PIB-2025-00001'), 'PIB-2025-00001')
        self.assertEqual(format_pib_date('2025-03-01'), '01/03/2025')
        self.assertEqual(format_pib_date(None), '-')


class CustomsAPITests(TestCase):
    """Test PIB duties endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _item(self, **overrides):
        item = {
            'hs_code': '8471.30.10',
            'goods_description': 'Laptop',
            'quantity': '10',
            'unit': 'pcs',
            'unit_price': '100',
            'bm_rate': '10',
            'ppn_rate': '11',
            'pph_rate': '2.5',
        }
        item.update(overrides)
        return item

    def test_pib_duties(self):
        """Test item duties, totals and CIF in rupiah"""
        response = self.client.post('/api/v1/customs/pib-duties/', {
            'items': [self._item()],
            'fob_value': '1000',
            'freight_value': '100',
            'insurance_value': '10',
            'exchange_rate': '15000',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['total'], Decimal('248.50'))
        self.assertEqual(response.data['totals']['total_duties'], Decimal('248.50'))
        self.assertEqual(response.data['cif_value'], Decimal('1110'))
        self.assertEqual(response.data['cif_value_idr'], Decimal('16650000'))

    def test_pib_duties_invalid_item(self):
        """Test item validation errors are reported per index"""
        response = self.client.post('/api/v1/customs/pib-duties/', {
            'items': [self._item(), self._item(hs_code='12', quantity='0')],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(list(response.data['items'].keys()), [1])

    def test_pib_duties_invalid_exchange_rate(self):
        """Test non-positive exchange rate is rejected"""
        response = self.client.post('/api/v1/customs/pib-duties/', {
            'items': [self._item()],
            'exchange_rate': '0',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('exchange_rate', response.data)
