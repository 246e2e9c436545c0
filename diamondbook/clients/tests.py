"""
Test suite for the clients module
Tests: client CRUD, rate validation, rate change audit, caching, summary, CSV import
"""
import os
import tempfile
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from rest_framework import status
from decimal import Decimal
from diamondbook.clients.models import Client
from diamondbook.core.models import AuditLog
from diamondbook.core.test_utils import TestDataFactory, AuthenticatedTestCase


class ClientAPITests(AuthenticatedTestCase):
    """Test client API endpoints"""

    def _payload(self, **overrides):
        data = {
            'name': 'Diamond Traders Inc',
            'contact_person': 'John Smith',
            'phone': '123-456-7890',
            'email': 'john@diamondtraders.com',
            'company': 'Diamond Traders Inc',
            'four_p_plus_rate': '5000.00',
            'four_p_minus_rate': '300.00',
            'payment_terms': 'Net 30',
        }
        data.update(overrides)
        return data

    def test_create_client(self):
        """Test creating a client with its 4P rates"""
        response = self.client.post('/api/v1/clients/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Diamond Traders Inc')
        self.assertEqual(response.data['created_by'], self.user.id)
        self.assertTrue(AuditLog.objects.filter(model_name='Client', action='create').exists())

    def test_create_client_invalid_phone(self):
        response = self.client.post('/api/v1/clients/', self._payload(phone='call me'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('phone', response.data)

    def test_create_client_negative_rate(self):
        response = self.client.post('/api/v1/clients/', self._payload(four_p_minus_rate='-1'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('four_p_minus_rate', response.data)

    def test_create_client_requires_rates(self):
        data = self._payload()
        del data['four_p_plus_rate']
        response = self.client.post('/api/v1/clients/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_and_search_clients(self):
        TestDataFactory.create_client(name='Diamond Traders Inc')
        TestDataFactory.create_client(name='Gem Solutions LLC')

        response = self.client.get('/api/v1/clients/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/clients/?search=gem')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['name'], 'Gem Solutions LLC')

    def test_list_cache_invalidated_on_create(self):
        """A cached client list must not hide a client created afterwards"""
        TestDataFactory.create_client()
        self.assertEqual(len(self.client.get('/api/v1/clients/').data), 1)

        self.client.post('/api/v1/clients/', self._payload(), format='json')
        self.assertEqual(len(self.client.get('/api/v1/clients/').data), 2)

    def test_detail_reflects_update(self):
        trader = TestDataFactory.create_client()
        self.client.get(f'/api/v1/clients/{trader.id}/')

        self.client.patch(f'/api/v1/clients/{trader.id}/', {'location': 'Surat'}, format='json')
        response = self.client.get(f'/api/v1/clients/{trader.id}/')
        self.assertEqual(response.data['location'], 'Surat')

    def test_rate_change_is_audited(self):
        trader = TestDataFactory.create_client()
        response = self.client.patch(
            f'/api/v1/clients/{trader.id}/', {'four_p_plus_rate': '5500.00'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        log = AuditLog.objects.get(model_name='Client', action='rate_change')
        self.assertEqual(log.changes['four_p_plus_rate'], {'from': '5000.00', 'to': '5500.00'})
        self.assertEqual(log.user, self.user)

    def test_rate_change_leaves_existing_lots(self):
        """Existing lots keep their stored value until recalculated"""
        trader = TestDataFactory.create_client()
        lot = TestDataFactory.create_diamond(trader, pieces=20, karats='10.5')
        self.client.patch(f'/api/v1/clients/{trader.id}/', {'four_p_plus_rate': '5500.00'}, format='json')
        lot.refresh_from_db()
        self.assertEqual(lot.total_value, Decimal('52500.00'))

    def test_delete_client(self):
        trader = TestDataFactory.create_client()
        response = self.client.delete(f'/api/v1/clients/{trader.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Client.objects.filter(id=trader.id).exists())

    def test_delete_client_with_lots_conflicts(self):
        trader = TestDataFactory.create_client()
        TestDataFactory.create_diamond(trader)
        response = self.client.delete(f'/api/v1/clients/{trader.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Client.objects.filter(id=trader.id).exists())

    def test_get_missing_client(self):
        response = self.client.get('/api/v1/clients/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ClientSummaryTests(AuthenticatedTestCase):
    """Test client summary, lots and invoices endpoints"""

    def setUp(self):
        super().setUp()
        self.trader = TestDataFactory.create_client(name='Diamond Traders Inc')
        self.plus_lot = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        self.minus_lot = TestDataFactory.create_diamond(self.trader, pieces=136, karats='18.2')
        self.invoice = TestDataFactory.create_invoice(self.trader, [self.plus_lot])

    def test_summary_totals(self):
        response = self.client.get(f'/api/v1/clients/{self.trader.id}/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        totals = response.data['totals']
        self.assertEqual(totals['lots'], 2)
        self.assertEqual(totals['pieces'], 156)
        self.assertAlmostEqual(totals['karats'], 28.7)
        self.assertEqual(totals['value'], 93300.0)
        self.assertEqual(totals['invoiced'], 52500.0)
        self.assertEqual(totals['outstanding'], 52500.0)

        categories = {row['category']: row for row in response.data['category_breakdown']}
        self.assertEqual(categories['4P Plus']['pieces'], 20)
        self.assertEqual(categories['4P Minus']['value'], 40800.0)
        self.assertEqual(len(response.data['invoices']), 1)

    def test_uninvoiced_diamonds(self):
        response = self.client.get(f'/api/v1/clients/{self.trader.id}/diamonds/?uninvoiced=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([d['id'] for d in response.data], [self.minus_lot.id])

        response = self.client.get(f'/api/v1/clients/{self.trader.id}/diamonds/')
        self.assertEqual(len(response.data), 2)

    def test_client_invoices(self):
        response = self.client.get(f'/api/v1/clients/{self.trader.id}/invoices/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['invoice_number'], self.invoice.invoice_number)

        response = self.client.get(f'/api/v1/clients/{self.trader.id}/invoices/?status=paid')
        self.assertEqual(response.data, [])

        response = self.client.get(f'/api/v1/clients/{self.trader.id}/invoices/?status=lost')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ImportClientsCommandTests(AuthenticatedTestCase):
    """Test the import_clients management command"""

    HEADER = 'name,contact_person,company,phone,four_p_plus_rate,four_p_minus_rate,payment_terms\n'

    def _write_csv(self, content):
        handle, path = tempfile.mkstemp(suffix='.csv')
        with os.fdopen(handle, 'w', encoding='utf-8') as f:
            f.write(content)
        self.addCleanup(os.remove, path)
        return path

    def test_import_creates_clients(self):
        path = self._write_csv(
            self.HEADER
            + 'Diamond Traders Inc,John Smith,Diamond Traders Inc,123-456-7890,5000,300,Net 30\n'
            + 'Gem Solutions LLC,Sarah Johnson,Gem Solutions LLC,,5200,310,\n'
            + 'Broken Rates,Nobody,Broken Co,,-5,310,\n'
        )
        out = StringIO()
        call_command('import_clients', path, stdout=out)

        self.assertEqual(Client.objects.count(), 2)
        gem = Client.objects.get(name='Gem Solutions LLC')
        self.assertEqual(gem.four_p_minus_rate, Decimal('310.00'))
        self.assertIsNone(gem.phone)
        self.assertIn('Rows with Errors: 1', out.getvalue())

    def test_import_skips_existing_unless_update(self):
        TestDataFactory.create_client(name='Diamond Traders Inc')
        path = self._write_csv(
            self.HEADER + 'Diamond Traders Inc,John Smith,Diamond Traders Inc,,6000,350,\n'
        )

        call_command('import_clients', path, stdout=StringIO())
        self.assertEqual(Client.objects.get(name='Diamond Traders Inc').four_p_plus_rate, Decimal('5000.00'))

        call_command('import_clients', path, '--update', stdout=StringIO())
        self.assertEqual(Client.objects.get(name='Diamond Traders Inc').four_p_plus_rate, Decimal('6000.00'))
        self.assertEqual(Client.objects.count(), 1)

    def test_import_missing_columns(self):
        path = self._write_csv('name,company\nSolo,Solo Co\n')
        with self.assertRaises(CommandError):
            call_command('import_clients', path, stdout=StringIO())

    def test_import_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('import_clients', '/nonexistent/clients.csv', stdout=StringIO())
