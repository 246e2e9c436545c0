"""
Test suite for the core module
Tests: authentication, company details, audit logs, global search, data commands
"""
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from datetime import timedelta
from decimal import Decimal
from diamondbook.clients.models import Client
from diamondbook.core.models import AuditLog, CompanyDetails
from diamondbook.core.test_utils import TestDataFactory, AuthenticatedAPIClient, AuthenticatedTestCase
from diamondbook.core.utils import create_audit_log, field_changes, snapshot
from diamondbook.diamonds.models import Diamond
from diamondbook.invoices.models import Invoice
from diamondbook.pricing.models import MarketRate


class AuthTests(TestCase):
    """Test registration, login and token refresh"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register_user(self):
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'trader',
            'email': 'trader@test.com',
            'password': 'Kapan-203A-Secure',
            'password_confirm': 'Kapan-203A-Secure',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['username'], 'trader')
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_register_password_mismatch(self):
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'trader',
            'password': 'Kapan-203A-Secure',
            'password_confirm': 'Kapan-415B-Secure',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_and_refresh(self):
        TestDataFactory.create_user(username='trader', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'trader', 'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        access = response.data['access']

        refreshed = self.client.post('/api/v1/auth/refresh/', {'refresh': response.data['refresh']}, format='json')
        self.assertEqual(refreshed.status_code, status.HTTP_200_OK)
        self.assertIn('access', refreshed.data)

        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
        me = self.client.get('/api/v1/auth/me/')
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data['username'], 'trader')
        self.assertFalse(me.data['is_admin'])

    def test_login_wrong_password(self):
        TestDataFactory.create_user(username='trader', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'trader', 'password': 'wrong',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_with_garbage_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_protected_endpoint_requires_token(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserTests(AuthenticatedTestCase):
    """Test profile and user list endpoints"""

    def test_update_profile(self):
        response = self.client.patch('/api/v1/auth/me/', {'phone': '9876543210'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['phone'], '9876543210')

    def test_user_list_staff_only(self):
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        staff = TestDataFactory.create_user(is_staff=True)
        self.client.authenticate_user(staff)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)


class CompanyDetailsTests(AuthenticatedTestCase):
    """Test the single company details record"""

    def test_get_before_setup(self):
        response = self.client.get('/api/v1/company/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_put_creates_then_updates(self):
        data = {
            'company_name': 'Test Diamonds Pvt Ltd',
            'address': '12 Diamond Market, Surat',
            'bank_name': 'Test Bank',
            'account_number': '1234567890',
            'ifsc_code': 'TEST0001234',
            'branch': 'Varachha',
        }
        response = self.client.put('/api/v1/company/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.patch('/api/v1/company/', {'branch': 'Mahidharpura'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(CompanyDetails.objects.count(), 1)
        self.assertEqual(CompanyDetails.load().branch, 'Mahidharpura')

    def test_put_missing_bank_details(self):
        response = self.client.put('/api/v1/company/', {'company_name': 'Incomplete'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('bank_name', response.data)


class AuditLogTests(AuthenticatedTestCase):
    """Test audit log visibility"""

    def setUp(self):
        super().setUp()
        self.other_user = TestDataFactory.create_user()
        self.own = create_audit_log(user=self.user, action='create', model_name='Client', object_id=1)
        self.foreign = create_audit_log(user=self.other_user, action='delete', model_name='Client', object_id=2)

    def test_non_staff_sees_own_logs(self):
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([log['id'] for log in response.data['results']], [self.own.id])

        response = self.client.get(f'/api/v1/audit-logs/{self.foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_sees_all_and_filters(self):
        staff = TestDataFactory.create_user(is_staff=True)
        self.client.authenticate_user(staff)

        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/audit-logs/?action=delete')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['object_id'], '2')
        self.assertEqual(response.data['results'][0]['username'], self.other_user.username)

        response = self.client.get('/api/v1/audit-logs/?limit=1&page=2')
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['previous'], 1)

    def test_list_rejects_bad_filter_values(self):
        for query in ('date_from=bad', 'date_to=31-12-2024', 'action=shred'):
            response = self.client.get(f'/api/v1/audit-logs/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)
            self.assertIn(query.split('=')[0], response.data)

    def test_date_range_filter(self):
        today = timezone.localdate()
        AuditLog.objects.filter(pk=self.own.pk).update(created_at=timezone.now() - timedelta(days=5))
        create_audit_log(user=self.user, action='update', model_name='Client', object_id=1)

        response = self.client.get(f'/api/v1/audit-logs/?date_from={(today - timedelta(days=1)).isoformat()}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['action'], 'update')

    def test_field_changes_lists_only_differences(self):
        trader = TestDataFactory.create_client(location='Surat')
        before = snapshot(trader, ('location', 'four_p_plus_rate', 'notes'))
        trader.location = 'Mumbai'
        after = snapshot(trader, ('location', 'four_p_plus_rate', 'notes'))
        self.assertEqual(before['notes'], None)
        self.assertEqual(field_changes(before, after), {'location': {'from': 'Surat', 'to': 'Mumbai'}})

    def test_company_update_records_changed_fields(self):
        TestDataFactory.create_company_details()
        self.client.patch('/api/v1/company/', {'branch': 'Mahidharpura'}, format='json')
        log = AuditLog.objects.get(model_name='CompanyDetails')
        self.assertEqual(log.changes, {'branch': {'from': 'Varachha', 'to': 'Mahidharpura'}})

    def test_missing_fields_skip_logging(self):
        self.assertIsNone(create_audit_log(user=self.user, action='create', model_name='Client'))
        self.assertEqual(AuditLog.objects.count(), 2)


class GlobalSearchTests(AuthenticatedTestCase):
    """Test search across clients, lots and invoices"""

    def setUp(self):
        super().setUp()
        self.trader = TestDataFactory.create_client(name='Diamond Traders Inc')
        self.lot = TestDataFactory.create_diamond(self.trader, kapan_id='203A')
        self.invoice = TestDataFactory.create_invoice(self.trader, [self.lot])

    def test_empty_query(self):
        response = self.client.get('/api/v1/search/')
        self.assertEqual(response.data, {'clients': [], 'diamonds': [], 'invoices': []})

    def test_search_by_kapan(self):
        response = self.client.get('/api/v1/search/?q=203a')
        self.assertEqual(len(response.data['diamonds']), 1)
        self.assertEqual(response.data['clients'], [])

    def test_search_by_client_and_invoice(self):
        response = self.client.get('/api/v1/search/?q=traders')
        self.assertEqual(len(response.data['clients']), 1)

        response = self.client.get(f'/api/v1/search/?q={self.invoice.invoice_number}')
        self.assertEqual(len(response.data['invoices']), 1)


class DataCommandTests(TestCase):
    """Test seed_demo_data and clear_data"""

    def test_seed_demo_data(self):
        call_command('seed_demo_data', stdout=StringIO())

        self.assertEqual(Client.objects.count(), 2)
        self.assertEqual(MarketRate.objects.count(), 1)
        self.assertIsNotNone(CompanyDetails.load())
        values = sorted(Diamond.objects.values_list('total_value', flat=True))
        self.assertEqual(values, [Decimal('40800.00'), Decimal('52500.00'), Decimal('134160.00')])
        minus_lot = Diamond.objects.get(number_of_diamonds=136)
        self.assertEqual(minus_lot.category, '4P Minus')
        self.assertEqual(minus_lot.market_rate, Decimal('305.00'))

    def test_seed_is_idempotent(self):
        call_command('seed_demo_data', stdout=StringIO())
        call_command('seed_demo_data', stdout=StringIO())
        self.assertEqual(Diamond.objects.count(), 3)

    def test_seed_with_invoice(self):
        call_command('seed_demo_data', '--with-invoice', stdout=StringIO())
        invoice = Invoice.objects.get()
        self.assertEqual(invoice.client.name, 'Diamond Traders Inc')
        self.assertEqual(invoice.total_amount, Decimal('93300.00'))

    def test_clear_data(self):
        call_command('seed_demo_data', '--with-invoice', stdout=StringIO())
        call_command('clear_data', '--confirm', '--keep-clients', stdout=StringIO())
        self.assertEqual(Invoice.objects.count(), 0)
        self.assertEqual(Diamond.objects.count(), 0)
        self.assertEqual(MarketRate.objects.count(), 0)
        self.assertEqual(Client.objects.count(), 2)

        call_command('clear_data', '--confirm', stdout=StringIO())
        self.assertEqual(Client.objects.count(), 0)
