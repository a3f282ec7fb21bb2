"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        return user

    @staticmethod
    def overhead_category(code='office_rent', rate='2', method='revenue_percentage', is_active=True, name=None):
        """Build an overhead category record"""
        return {
            'id': TestDataFactory.random_string(8),
            'category_code': code,
            'category_name': name or code.replace('_', ' ').title(),
            'allocation_method': method,
            'default_rate': Decimal(rate),
            'is_active': is_active,
        }

    @staticmethod
    def job(jo_number=None, revenue='1000000', direct_cost='600000', overhead='100000',
            net_margin=None, created_at='2025-01-15', customer_name='PT Maju Jaya'):
        """Build a job profitability row"""
        revenue = Decimal(revenue)
        net_profit = revenue - Decimal(direct_cost) - Decimal(overhead)
        if net_margin is None:
            net_margin = net_profit / revenue * 100 if revenue > 0 else Decimal('0')
        return {
            'jo_id': TestDataFactory.random_string(8),
            'jo_number': jo_number or f'JO-{random.randint(1, 9999):04d}/CARGO/I/2025',
            'customer_name': customer_name,
            'project_name': 'Heavy Lift',
            'revenue': revenue,
            'direct_cost': Decimal(direct_cost),
            'overhead': Decimal(overhead),
            'net_profit': net_profit,
            'net_margin': Decimal(net_margin),
            'created_at': created_at,
        }

    @staticmethod
    def invoice(invoice_number=None, due_date='2025-01-01', total_amount='1000000', amount_due=None,
                status='sent', customer_id='cust-1', customer_name='PT Maju Jaya', invoice_date='2024-12-01'):
        """Build an invoice record"""
        return {
            'id': TestDataFactory.random_string(8),
            'invoice_number': invoice_number or f'INV-{random.randint(1, 9999):04d}',
            'customer_id': customer_id,
            'customer_name': customer_name,
            'invoice_date': invoice_date,
            'due_date': due_date,
            'total_amount': Decimal(total_amount),
            'amount_due': None if amount_due is None else Decimal(amount_due),
            'status': status,
        }

    @staticmethod
    def checkpoint(location_name='Port', location_type='waypoint', km_from_start=0, **extra):
        """Build a JMP checkpoint record"""
        data = {
            'id': TestDataFactory.random_string(8),
            'location_name': location_name,
            'location_type': location_type,
            'km_from_start': km_from_start,
            'planned_arrival': None,
            'planned_departure': None,
            'actual_arrival': None,
            'actual_departure': None,
            'status': 'pending',
        }
        data.update(extra)
        return data

    @staticmethod
    def pib_document(internal_ref='PIB-2025-00001', status='draft', customs_office_id='office-1', eta_date=None, **extra):
        """Build a PIB document record"""
        data = {
            'id': TestDataFactory.random_string(8),
            'internal_ref': internal_ref,
            'pib_number': None,
            'aju_number': None,
            'importer_name': 'PT Importir Sejahtera',
            'import_type_id': 'type-1',
            'customs_office_id': customs_office_id,
            'transport_mode': 'sea',
            'fob_value': Decimal('10000'),
            'exchange_rate': Decimal('15500'),
            'eta_date': eta_date,
            'status': status,
        }
        data.update(extra)
        return data

    @staticmethod
    def notification_template(**extra):
        """Build a notification template with content on every channel"""
        data = {
            'template_code': 'JOB_ASSIGNED',
            'template_name': 'Job assigned',
            'event_type': 'job_order.assigned',
            'email_subject': 'Job {{jo_number}} assigned',
            'email_body_html': '<p>Hello {{user_name}}, job {{jo_number}} is yours.</p>',
            'email_body_text': 'Hello {{user_name}}, job {{jo_number}} is yours.',
            'whatsapp_template_id': None,
            'whatsapp_body': 'Job {{jo_number}} assigned to {{user_name}}',
            'in_app_title': 'New job',
            'in_app_body': 'Job {{jo_number}} assigned',
            'in_app_action_url': '/job-orders/{{jo_id}}',
            'push_title': 'New job',
            'push_body': '{{jo_number}}',
            'placeholders': [
                {'key': 'jo_number', 'description': 'Job order number', 'default_value': None},
                {'key': 'user_name', 'description': 'Assignee', 'default_value': 'Team'},
                {'key': 'jo_id', 'description': 'Job order id', 'default_value': None},
            ],
            'is_active': True,
        }
        data.update(extra)
        return data


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
