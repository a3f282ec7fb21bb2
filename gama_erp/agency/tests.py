"""
Test suite for Agency module
Tests: B/L and Berita Acara status transitions, status updates, protection rules and the status endpoint
"""
from datetime import datetime, timezone as dt_timezone

from django.test import SimpleTestCase, TestCase
from rest_framework import status

from gama_erp.core.exceptions import UnknownStatusError
from gama_erp.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gama_erp.agency.utils import (
    BA_WORKFLOW, BL_WORKFLOW, calculate_bl_stats, can_delete_bl, can_modify_bl, format_ba_status, format_bl_status,
    is_ba_terminal, is_valid_ba_status_transition, is_valid_bl_status_transition,
    issue, prepare_bl_status_update, release, submit, surrender,
)

BL_TRANSITIONS = {
    'draft': ['submitted', 'amended'],
    'submitted': ['issued', 'draft', 'amended'],
    'issued': ['released', 'surrendered', 'amended'],
    'released': ['amended'],
    'surrendered': ['amended'],
    'amended': ['submitted', 'issued'],
}

BA_TRANSITIONS = {
    'draft': ['pending_signature'],
    'pending_signature': ['signed', 'archived'],
    'signed': [],
    'archived': [],
}

NOW = datetime(2025, 5, 1, 8, 30, tzinfo=dt_timezone.utc)


class BLTransitionTests(SimpleTestCase):
    """Test the B/L transition table"""

    def test_transition_table(self):
        """Test every pair against the allowlist"""
        for current, allowed in BL_TRANSITIONS.items():
            self.assertEqual(BL_WORKFLOW.next_statuses(current), allowed)
            for target in BL_TRANSITIONS:
                self.assertEqual(is_valid_bl_status_transition(current, target), target in allowed)

    def test_no_terminal_status(self):
        """Test every status can still be amended or moved on"""
        self.assertEqual(BL_WORKFLOW.terminal_statuses, [])

    def test_unknown_status(self):
        """Test unknown statuses never transition"""
        self.assertFalse(is_valid_bl_status_transition('archived', 'draft'))
        self.assertFalse(is_valid_bl_status_transition('draft', 'archived'))


class BLStatusUpdateTests(SimpleTestCase):
    """Test status update preparation"""

    def test_submit(self):
        """Test submit only stamps updated_at"""
        result = submit('draft', now=NOW)
        self.assertEqual(result, {'success': True, 'data': {'status': 'submitted', 'updated_at': NOW}})

    def test_issue_stamps_issued_at(self):
        """Test issued_at is set on issue"""
        result = issue('submitted', now=NOW)
        self.assertTrue(result['success'])
        self.assertEqual(result['data']['issued_at'], NOW)
        self.assertNotIn('released_at', result['data'])

    def test_release_and_surrender_stamp_released_at(self):
        """Test released_at is set on release and surrender"""
        for action, target in ((release, 'released'), (surrender, 'surrendered')):
            result = action('issued', now=NOW)
            self.assertEqual(result['data']['status'], target)
            self.assertEqual(result['data']['released_at'], NOW)
            self.assertNotIn('issued_at', result['data'])

    def test_invalid_transition(self):
        """Test rejected transitions carry an explanation"""
        result = prepare_bl_status_update('draft', 'released', now=NOW)
        self.assertEqual(result, {'success': False, 'error': "Cannot change status from 'draft' to 'released'"})
        self.assertFalse(release('released')['success'])

    def test_default_timestamp(self):
        """Test the current time is used when none is given"""
        result = submit('amended')
        self.assertIsNotNone(result['data']['updated_at'].tzinfo)


class BLRulesTests(SimpleTestCase):
    """Test protection rules, stats and labels"""

    def test_protected_statuses(self):
        """Test issued, released and surrendered B/Ls are locked"""
        for bl_status in ('issued', 'released', 'surrendered'):
            self.assertFalse(can_modify_bl(bl_status))
            self.assertFalse(can_delete_bl(bl_status))
        for bl_status in ('draft', 'submitted', 'amended'):
            self.assertTrue(can_modify_bl(bl_status))
            self.assertTrue(can_delete_bl(bl_status))

    def test_stats(self):
        """Test counts per status"""
        bills = [{'status': 'draft'}, {'status': 'draft'}, {'status': 'issued'}, {'status': 'unknown'}]
        stats = calculate_bl_stats(bills)
        self.assertEqual(stats['total'], 4)
        self.assertEqual(stats['draft'], 2)
        self.assertEqual(stats['issued'], 1)
        self.assertEqual(stats['surrendered'], 0)

    def test_format_status(self):
        """Test labels"""
        self.assertEqual(format_bl_status('surrendered'), 'Surrendered')
        self.assertEqual(format_bl_status('archived'), 'archived')


class BATransitionTests(SimpleTestCase):
    """Test the Berita Acara transition table"""

    def test_transition_table(self):
        """Test every pair against the allowlist"""
        for current, allowed in BA_TRANSITIONS.items():
            self.assertEqual(BA_WORKFLOW.next_statuses(current), allowed)
            for target in BA_TRANSITIONS:
                self.assertEqual(is_valid_ba_status_transition(current, target), target in allowed)

    def test_no_skipping_signature(self):
        """Test a draft cannot be signed or archived directly"""
        self.assertFalse(is_valid_ba_status_transition('draft', 'signed'))
        self.assertFalse(is_valid_ba_status_transition('draft', 'archived'))

    def test_terminal_statuses(self):
        """Test signed and archived are final"""
        self.assertTrue(is_ba_terminal('signed'))
        self.assertTrue(is_ba_terminal('archived'))
        self.assertFalse(is_ba_terminal('draft'))
        self.assertFalse(is_ba_terminal('pending_signature'))
        with self.assertRaises(UnknownStatusError):
            is_ba_terminal('amended')

    def test_labels(self):
        """Test status labels"""
        self.assertEqual(format_ba_status('pending_signature'), 'Pending Signature')
        self.assertEqual(format_ba_status('lost'), 'lost')


class AgencyAPITests(TestCase):
    """Test B/L status endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_status_update(self):
        """Test an allowed change returns the fields to update"""
        response = self.client.post('/api/v1/agency/bl-status/', {
            'bl_number': 'BL-0001', 'current_status': 'submitted', 'new_status': 'issued',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'issued')
        self.assertIn('issued_at', response.data)

    def test_rejected_status_update(self):
        """Test a disallowed change lists the allowed targets"""
        response = self.client.post('/api/v1/agency/bl-status/', {
            'current_status': 'draft', 'new_status': 'released',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['allowed'], ['submitted', 'amended'])

    def test_unknown_status(self):
        """Test statuses outside the workflow are rejected by the serializer"""
        response = self.client.post('/api/v1/agency/bl-status/', {
            'current_status': 'draft', 'new_status': 'archived',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('new_status', response.data)

    def test_requires_authentication(self):
        """Test anonymous requests are rejected"""
        self.client.logout()
        response = self.client.post('/api/v1/agency/bl-status/', {
            'current_status': 'draft', 'new_status': 'submitted',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
