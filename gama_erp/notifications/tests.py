"""
Test suite for Notifications module
Tests: placeholder substitution, channel rendering, template validation and render endpoint
"""
from django.test import SimpleTestCase, TestCase
from rest_framework import status

from gama_erp.core.exceptions import InvalidChoiceError
from gama_erp.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gama_erp.notifications.utils import (
    TEMPLATE_CODE_RE, extract_placeholder_keys, format_event_type, get_template_supported_channels, render_template,
    replace_placeholders, validate_placeholder_data, validate_template,
)

JOB_DATA = {'jo_number': 'JO-0001/CARGO/I/2025', 'jo_id': '42'}


class PlaceholderTests(SimpleTestCase):
    """Test placeholder extraction and replacement"""

    def test_extract_keys(self):
        """Test unique keys in order, inline defaults included"""
        text = 'Hi {{name}}, order {{order_id}} for {{ name }} at {{site|Depot}}'
        self.assertEqual(extract_placeholder_keys(text), ['name', 'order_id', 'site'])
        self.assertEqual(extract_placeholder_keys(''), [])
        self.assertEqual(extract_placeholder_keys(None), [])

    def test_replace_with_data(self):
        """Test every key in data is replaced"""
        result = replace_placeholders('{{a}} and {{b}}', {'a': 'x', 'b': 5})
        self.assertEqual(result, 'x and 5')

    def test_priority(self):
        """Test data > definition default > inline default > unchanged"""
        definitions = [{'key': 'name', 'description': 'Name', 'default_value': 'Team'}]
        self.assertEqual(replace_placeholders('Hello {{name|Bob}}!', {'name': 'Ana'}, definitions), 'Hello Ana!')
        self.assertEqual(replace_placeholders('Hello {{name|Bob}}!', {}, definitions), 'Hello Team!')
        self.assertEqual(replace_placeholders('Hello {{name|Bob}}!', {}), 'Hello Bob!')
        self.assertEqual(replace_placeholders('Hello {{name}}!', {}), 'Hello {{name}}!')

    def test_none_data_value_falls_back(self):
        """Test None values count as missing"""
        self.assertEqual(replace_placeholders('{{x|-}}', {'x': None}), '-')

    def test_text_without_placeholders(self):
        """Test empty and plain text are unchanged"""
        self.assertEqual(replace_placeholders('', {'key': 'value'}), '')
        self.assertEqual(replace_placeholders('No {placeholders} here', {'any': 'value'}), 'No {placeholders} here')

    def test_validate_placeholder_data(self):
        """Test keys without data or default are reported"""
        template = TestDataFactory.notification_template()
        self.assertEqual(validate_placeholder_data(template, JOB_DATA), {'valid': True, 'missing_keys': []})
        result = validate_placeholder_data(template, {'jo_number': 'JO-1'})
        self.assertEqual(result, {'valid': False, 'missing_keys': ['jo_id']})


class RenderTests(SimpleTestCase):
    """Test channel support and rendering"""

    def test_supported_channels(self):
        """Test channels follow body content"""
        template = TestDataFactory.notification_template()
        self.assertEqual(get_template_supported_channels(template), ['email', 'whatsapp', 'in_app', 'push'])
        template = TestDataFactory.notification_template(email_body_html=None, email_body_text='', push_body=None)
        self.assertEqual(get_template_supported_channels(template), ['whatsapp', 'in_app'])

    def test_render_email(self):
        """Test html body is preferred and defaults apply"""
        rendered = render_template(TestDataFactory.notification_template(), JOB_DATA, 'email')
        self.assertEqual(rendered, {
            'channel': 'email',
            'subject': 'Job JO-0001/CARGO/I/2025 assigned',
            'body': '<p>Hello Team, job JO-0001/CARGO/I/2025 is yours.</p>',
            'action_url': None,
        })

    def test_render_email_text_fallback(self):
        """Test text body is used without html"""
        template = TestDataFactory.notification_template(email_body_html=None)
        rendered = render_template(template, {'user_name': 'Budi', **JOB_DATA}, 'email')
        self.assertEqual(rendered['body'], 'Hello Budi, job JO-0001/CARGO/I/2025 is yours.')

    def test_render_in_app(self):
        """Test title, body and action url"""
        rendered = render_template(TestDataFactory.notification_template(), JOB_DATA, 'in_app')
        self.assertEqual(rendered['subject'], 'New job')
        self.assertEqual(rendered['body'], 'Job JO-0001/CARGO/I/2025 assigned')
        self.assertEqual(rendered['action_url'], '/job-orders/42')

    def test_render_whatsapp_has_no_subject(self):
        """Test whatsapp messages are body only"""
        rendered = render_template(TestDataFactory.notification_template(), JOB_DATA, 'whatsapp')
        self.assertIsNone(rendered['subject'])
        self.assertEqual(rendered['body'], 'Job JO-0001/CARGO/I/2025 assigned to Team')

    def test_render_channel_without_content(self):
        """Test None is returned for channels without a body"""
        template = TestDataFactory.notification_template(push_body=None)
        self.assertIsNone(render_template(template, JOB_DATA, 'push'))

    def test_render_unknown_channel(self):
        """Test unknown channels raise"""
        with self.assertRaises(InvalidChoiceError):
            render_template(TestDataFactory.notification_template(), JOB_DATA, 'sms')


class TemplateValidationTests(SimpleTestCase):
    """Test template validation"""

    def test_valid_template(self):
        """Test the factory template is valid without warnings"""
        result = validate_template(TestDataFactory.notification_template())
        self.assertEqual(result, {'valid': True, 'error': None, 'warnings': []})

    def test_template_code(self):
        """Test missing and malformed codes"""
        result = validate_template({'template_code': '', 'template_name': 'Test', 'event_type': 'invoice.sent'})
        self.assertFalse(result['valid'])
        self.assertIn('Template code', result['error'])
        for code in ('job_assigned', 'AB', '1ABC', 'A' * 31, 'JOB-ASSIGNED'):
            result = validate_template({'template_code': code, 'template_name': 'Test',
                                        'event_type': 'invoice.sent'})
            self.assertFalse(result['valid'], code)

    def test_template_code_pattern_matches_whole_code(self):
        """Test the code pattern rejects embedded and trailing newlines"""
        self.assertIsNotNone(TEMPLATE_CODE_RE.fullmatch('TEST_CODE'))
        self.assertIsNone(TEMPLATE_CODE_RE.fullmatch('TEST_CODE\n'))
        result = validate_template({'template_code': 'TEST\nCODE', 'template_name': 'Test',
                                    'event_type': 'invoice.sent'})
        self.assertFalse(result['valid'])

    def test_template_name_and_event(self):
        """Test name and event type"""
        result = validate_template({'template_code': 'TEST_CODE', 'template_name': ' ',
                                    'event_type': 'invoice.sent'})
        self.assertEqual(result['error'], 'Template name is required')
        result = validate_template({'template_code': 'TEST_CODE', 'template_name': 'Test',
                                    'event_type': 'invalid.event'})
        self.assertIn('Invalid event type', result['error'])

    def test_warnings(self):
        """Test empty templates and undefined placeholders warn"""
        result = validate_template({'template_code': 'TEST_CODE', 'template_name': 'Test',
                                    'event_type': 'job_order.assigned'})
        self.assertTrue(result['valid'])
        self.assertIn('Template has no content for any channel', result['warnings'])

        template = TestDataFactory.notification_template(push_body='{{jo_number}} by {{driver}}', placeholders=[])
        result = validate_template(template)
        self.assertTrue(result['valid'])
        self.assertEqual(result['warnings'], ['Undefined placeholders: jo_number, user_name, jo_id, driver'])

    def test_format_event_type(self):
        """Test event type labels"""
        self.assertEqual(format_event_type('job_order.status_changed'), 'Job Order Status Changed')


class NotificationsAPITests(TestCase):
    """Test render endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_render(self):
        """Test rendered content and missing keys"""
        response = self.client.post('/api/v1/notifications/render/', {
            'template': TestDataFactory.notification_template(),
            'data': {'jo_number': 'JO-0007/CARGO/II/2025'},
            'channel': 'in_app',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['body'], 'Job JO-0007/CARGO/II/2025 assigned')
        self.assertEqual(response.data['action_url'], '/job-orders/{{jo_id}}')
        self.assertEqual(response.data['missing_keys'], ['jo_id'])

    def test_render_invalid_template(self):
        """Test unknown event types are rejected by the serializer"""
        response = self.client.post('/api/v1/notifications/render/', {
            'template': TestDataFactory.notification_template(event_type='invoice.paid'),
            'channel': 'email',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('event_type', response.data['template'])

    def test_render_malformed_template_code(self):
        """Test a numeric template code fails the code format check"""
        response = self.client.post('/api/v1/notifications/render/', {
            'template': TestDataFactory.notification_template(template_code=123),
            'channel': 'email',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(response.data['error'].startswith('Template code must be'))

    def test_render_numeric_content(self):
        """Test numeric content is rendered as text"""
        response = self.client.post('/api/v1/notifications/render/', {
            'template': TestDataFactory.notification_template(push_body=42),
            'channel': 'push',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['body'], '42')

    def test_render_wrongly_typed_template_fields(self):
        """Test non-string content and bad placeholder lists are rejected"""
        for extra in ({'push_body': ['x']}, {'in_app_body': {'text': 'x'}}, {'template_name': True},
                      {'placeholders': 'jo_number'}, {'placeholders': [{'description': 'no key'}]}):
            response = self.client.post('/api/v1/notifications/render/', {
                'template': TestDataFactory.notification_template(**extra),
                'channel': 'push',
            }, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, extra)
            self.assertIn('template', response.data, extra)

    def test_render_template_not_an_object(self):
        """Test a template that is not an object is rejected"""
        response = self.client.post('/api/v1/notifications/render/', {
            'template': 'JOB_ASSIGNED',
            'channel': 'email',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('template', response.data)

    def test_render_channel_without_content(self):
        """Test channels without content are rejected"""
        response = self.client.post('/api/v1/notifications/render/', {
            'template': TestDataFactory.notification_template(push_body=None),
            'data': {},
            'channel': 'push',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_render_unknown_channel(self):
        """Test unknown channels are rejected by the serializer"""
        response = self.client.post('/api/v1/notifications/render/', {
            'template': TestDataFactory.notification_template(),
            'channel': 'sms',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('channel', response.data)
