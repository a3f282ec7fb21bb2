"""
Test suite for HSE module
Tests: risk matrix, JMP and safety document workflows, form/checkpoint validation, permits, journey progress and endpoints
"""
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase
from rest_framework import status

from gama_erp.core.exceptions import InvalidChoiceError, UnknownStatusError
from gama_erp.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gama_erp.hse.utils import (
    CONSEQUENCES, JMP_WORKFLOW, LIKELIHOODS, RISK_LEVELS, SAFETY_DOCUMENT_WORKFLOW,
    calculate_journey_progress, calculate_risk_level, calculate_stop_duration, calculate_time_variance,
    format_duration, format_jmp_status, format_location_type, format_risk_level, format_safety_document_status,
    format_time_variance, is_safety_document_terminal, is_valid_safety_document_transition,
    get_permit_status, highest_risk_level, is_checkpoint_behind_schedule, is_permit_valid,
    is_valid_status_transition, risk_level_rank, sort_checkpoints_by_distance, validate_checkpoint,
    validate_checkpoint_sequence, validate_jmp_form,
)

JMP_TRANSITIONS = {
    'draft': ['pending_review', 'cancelled'],
    'pending_review': ['approved', 'draft'],
    'approved': ['active', 'cancelled'],
    'active': ['completed', 'cancelled'],
    'completed': [],
    'cancelled': [],
}

SAFETY_DOCUMENT_TRANSITIONS = {
    'draft': ['pending_review'],
    'pending_review': ['approved', 'draft'],
    'approved': ['superseded', 'archived', 'expired'],
    'expired': ['archived'],
    'superseded': ['archived'],
    'archived': [],
}


class RiskMatrixTests(SimpleTestCase):
    """Test the 5x5 risk matrix"""

    def test_known_cells(self):
        """Test corner and middle cells"""
        self.assertEqual(calculate_risk_level('rare', 'insignificant'), 'low')
        self.assertEqual(calculate_risk_level('almost_certain', 'catastrophic'), 'extreme')
        self.assertEqual(calculate_risk_level('possible', 'moderate'), 'medium')
        self.assertEqual(calculate_risk_level('almost_certain', 'insignificant'), 'medium')
        self.assertEqual(calculate_risk_level('rare', 'catastrophic'), 'medium')
        self.assertEqual(calculate_risk_level('likely', 'major'), 'high')

    def test_every_cell_is_a_risk_level(self):
        """Test the whole grid yields known levels"""
        for likelihood in LIKELIHOODS:
            for consequence in CONSEQUENCES:
                self.assertIn(calculate_risk_level(likelihood, consequence), RISK_LEVELS)

    def test_monotonic_in_likelihood(self):
        """Test risk never decreases as likelihood increases"""
        for consequence in CONSEQUENCES:
            ranks = [risk_level_rank(calculate_risk_level(likelihood, consequence)) for likelihood in LIKELIHOODS]
            self.assertEqual(ranks, sorted(ranks), consequence)

    def test_monotonic_in_consequence(self):
        """Test risk never decreases as consequence increases"""
        for likelihood in LIKELIHOODS:
            ranks = [risk_level_rank(calculate_risk_level(likelihood, c)) for c in CONSEQUENCES]
            self.assertEqual(ranks, sorted(ranks), likelihood)

    def test_unknown_inputs_raise(self):
        """Test values outside the vocabulary are rejected"""
        with self.assertRaises(InvalidChoiceError):
            calculate_risk_level('often', 'minor')
        with self.assertRaises(InvalidChoiceError):
            calculate_risk_level('rare', 'fatal')
        with self.assertRaises(InvalidChoiceError):
            risk_level_rank('severe')

    def test_labels_and_highest(self):
        """Test display labels and highest level"""
        self.assertEqual(format_risk_level('extreme'), 'Extreme')
        self.assertEqual(highest_risk_level(['low', 'high', 'medium']), 'high')
        self.assertIsNone(highest_risk_level([]))


class JMPWorkflowTests(SimpleTestCase):
    """Test JMP status transitions"""

    def test_transition_table(self):
        """Test every pair against the allowlist"""
        for current, allowed in JMP_TRANSITIONS.items():
            for target in JMP_TRANSITIONS:
                self.assertEqual(is_valid_status_transition(current, target), target in allowed)

    def test_terminal_statuses(self):
        """Test completed and cancelled are terminal"""
        self.assertEqual(JMP_WORKFLOW.terminal_statuses, ['completed', 'cancelled'])

    def test_unknown_status(self):
        """Test unknown statuses never transition"""
        self.assertFalse(is_valid_status_transition('archived', 'draft'))

    def test_labels(self):
        """Test status and location type labels"""
        self.assertEqual(format_jmp_status('pending_review'), 'Pending Review')
        self.assertEqual(format_jmp_status('unknown'), 'unknown')
        self.assertEqual(format_location_type('rest_stop'), 'Rest Stop')


class SafetyDocumentWorkflowTests(SimpleTestCase):
    """Test safety document status transitions"""

    def test_transition_table(self):
        """Test every pair against the allowlist"""
        for current, allowed in SAFETY_DOCUMENT_TRANSITIONS.items():
            self.assertEqual(SAFETY_DOCUMENT_WORKFLOW.next_statuses(current), allowed)
            for target in SAFETY_DOCUMENT_TRANSITIONS:
                self.assertEqual(is_valid_safety_document_transition(current, target), target in allowed)

    def test_approved_document_cannot_return_to_draft(self):
        """Test an approved document is only superseded, archived or expired"""
        self.assertFalse(is_valid_safety_document_transition('approved', 'draft'))
        self.assertFalse(is_valid_safety_document_transition('expired', 'approved'))

    def test_terminal_statuses(self):
        """Test only archived is terminal"""
        self.assertEqual(SAFETY_DOCUMENT_WORKFLOW.terminal_statuses, ['archived'])
        self.assertTrue(is_safety_document_terminal('archived'))
        self.assertFalse(is_safety_document_terminal('superseded'))
        with self.assertRaises(UnknownStatusError):
            is_safety_document_terminal('cancelled')

    def test_labels(self):
        """Test status labels"""
        self.assertEqual(format_safety_document_status('superseded'), 'Superseded')
        self.assertEqual(format_safety_document_status('lost'), 'lost')


class JMPValidationTests(SimpleTestCase):
    """Test JMP form and checkpoint validation"""

    def test_valid_form(self):
        """Test a complete form"""
        result = validate_jmp_form({
            'journey_title': 'Transformer move',
            'cargo_description': '120t transformer',
            'origin_location': 'Tanjung Priok',
            'destination_location': 'Cilegon',
            'planned_departure': '2025-05-01T22:00:00',
            'planned_arrival': '2025-05-02T05:00:00',
        })
        self.assertEqual(result, {'valid': True, 'errors': []})

    def test_missing_fields(self):
        """Test required fields and arrival order"""
        result = validate_jmp_form({
            'journey_title': '  ',
            'planned_departure': '2025-05-01T22:00:00',
            'planned_arrival': '2025-05-01T22:00:00',
        })
        self.assertFalse(result['valid'])
        self.assertEqual(result['errors'], [
            'Journey title is required',
            'Cargo description is required',
            'Origin location is required',
            'Destination location is required',
            'Planned arrival must be after planned departure',
        ])

    def test_checkpoint_validation(self):
        """Test checkpoint errors"""
        result = validate_checkpoint({
            'location_name': '',
            'km_from_start': -1,
            'planned_arrival': '2025-05-01T10:00:00',
            'planned_departure': '2025-05-01T09:00:00',
        })
        self.assertEqual(result['errors'], [
            'Location name is required',
            'Location type is required',
            'KM from start cannot be negative',
            'Planned departure cannot be before planned arrival',
        ])
        self.assertTrue(validate_checkpoint(TestDataFactory.checkpoint())['valid'])


class PermitTests(SimpleTestCase):
    """Test permit validity"""

    def setUp(self):
        self.permit = {'valid_from': '2025-05-01', 'valid_to': '2025-05-31'}

    def test_is_permit_valid(self):
        """Test inclusive validity window"""
        self.assertTrue(is_permit_valid(self.permit, '2025-05-01'))
        self.assertTrue(is_permit_valid(self.permit, '2025-05-31'))
        self.assertFalse(is_permit_valid(self.permit, '2025-06-01'))

    def test_permit_status(self):
        """Test valid, expiring soon and expired"""
        self.assertEqual(get_permit_status(self.permit, '2025-05-10'), 'valid')
        self.assertEqual(get_permit_status(self.permit, '2025-05-24'), 'expiring_soon')
        self.assertEqual(get_permit_status(self.permit, '2025-06-01'), 'expired')
        self.assertEqual(get_permit_status(self.permit, '2025-04-30'), 'expired')


class CheckpointTests(SimpleTestCase):
    """Test checkpoint timing, ordering and progress"""

    def test_stop_duration_and_variance(self):
        """Test minute differences"""
        self.assertEqual(calculate_stop_duration('2025-05-01T10:00:00', '2025-05-01T10:45:00'), 45)
        self.assertEqual(calculate_time_variance('2025-05-01T10:00:00', '2025-05-01T09:30:00'), -30)

    def test_behind_schedule(self):
        """Test late arrival detection"""
        late = TestDataFactory.checkpoint(planned_arrival='2025-05-01T10:00:00', actual_arrival='2025-05-01T10:05:00')
        self.assertTrue(is_checkpoint_behind_schedule(late))
        self.assertFalse(is_checkpoint_behind_schedule(TestDataFactory.checkpoint()))

    def test_journey_progress(self):
        """Test completed count, percent and current checkpoint"""
        checkpoints = [
            TestDataFactory.checkpoint('Port', 'departure', 0, status='departed', jmp_id='jmp-1'),
            TestDataFactory.checkpoint('Rest', 'rest_stop', 40, status='skipped'),
            TestDataFactory.checkpoint('Toll gate', 'checkpoint', 80, status='arrived',
                                       planned_arrival='2025-05-01T10:00:00',
                                       actual_arrival='2025-05-01T10:30:00'),
        ]
        progress = calculate_journey_progress(checkpoints)
        self.assertEqual(progress['jmp_id'], 'jmp-1')
        self.assertEqual(progress['checkpoints_completed'], 1)
        self.assertEqual(progress['total_checkpoints'], 3)
        self.assertEqual(progress['progress_percent'], 33)
        self.assertEqual(progress['current_checkpoint'], 'Toll gate')
        self.assertFalse(progress['is_on_schedule'])

    def test_empty_progress(self):
        """Test no checkpoints"""
        progress = calculate_journey_progress([])
        self.assertEqual(progress['progress_percent'], 0)
        self.assertIsNone(progress['current_checkpoint'])

    def test_sort_by_distance(self):
        """Test ascending km, missing km first, ties stable, input untouched"""
        checkpoints = [
            TestDataFactory.checkpoint('C', km_from_start=50),
            TestDataFactory.checkpoint('A', km_from_start=None),
            TestDataFactory.checkpoint('B', km_from_start=10),
            TestDataFactory.checkpoint('D', km_from_start=10),
        ]
        result = sort_checkpoints_by_distance(checkpoints)
        self.assertEqual([cp['location_name'] for cp in result], ['A', 'B', 'D', 'C'])
        self.assertEqual([cp['location_name'] for cp in checkpoints], ['C', 'A', 'B', 'D'])

    def test_checkpoint_sequence(self):
        """Test departure and arrival requirements"""
        self.assertEqual(validate_checkpoint_sequence([], 100)['errors'], ['At least one checkpoint is required'])

        valid = [
            TestDataFactory.checkpoint('Port', 'departure', 0),
            TestDataFactory.checkpoint('Site', 'arrival', 98),
        ]
        self.assertTrue(validate_checkpoint_sequence(valid, 100)['valid'])

        far = [
            TestDataFactory.checkpoint('Port', 'departure', 0),
            TestDataFactory.checkpoint('Site', 'arrival', 80),
        ]
        self.assertEqual(validate_checkpoint_sequence(far, 100)['errors'],
                         ['Arrival checkpoint should be at or near the route end'])

        missing = [TestDataFactory.checkpoint('Rest', 'rest_stop', 10)]
        self.assertEqual(validate_checkpoint_sequence(missing, 100)['errors'], [
            'A departure checkpoint at km 0 is required',
            'An arrival checkpoint at the destination is required',
        ])

    def test_format_duration(self):
        """Test human readable durations"""
        self.assertEqual(format_duration(45), '45 min')
        self.assertEqual(format_duration(120), '2h')
        self.assertEqual(format_duration(150), '2h 30m')

    def test_format_time_variance(self):
        """Test delayed, early and on time"""
        self.assertEqual(format_time_variance(30), '+30 min (delayed)')
        self.assertEqual(format_time_variance(-90), '-1h 30m (early)')
        self.assertEqual(format_time_variance(0), 'On time')


class HSEAPITests(TestCase):
    """Test HSE endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_risk_level(self):
        """Test risk level lookup"""
        response = self.client.post('/api/v1/hse/risk-level/', {
            'likelihood': 'likely',
            'consequence': 'catastrophic',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['risk_level'], 'extreme')
        self.assertEqual(response.data['label'], 'Extreme')
        self.assertEqual(response.data['rank'], 3)

    def test_risk_level_invalid_choice(self):
        """Test unknown likelihood is rejected"""
        response = self.client.post('/api/v1/hse/risk-level/', {
            'likelihood': 'often',
            'consequence': 'minor',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('likelihood', response.data)

    def test_risk_matrix(self):
        """Test the full matrix"""
        response = self.client.get('/api/v1/hse/risk-matrix/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['matrix']), 5)
        self.assertEqual(response.data['matrix']['unlikely']['catastrophic'], 'high')
