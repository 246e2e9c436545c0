"""
Test suite for the reports module
Tests: dashboard, analytics, top clients, invoice summary
"""
from rest_framework import status
from datetime import timedelta
from django.utils import timezone
from diamondbook.core.test_utils import TestDataFactory, AuthenticatedTestCase
from diamondbook.invoices.models import Invoice


class ReportsTests(AuthenticatedTestCase):
    """Test report endpoints"""

    def setUp(self):
        super().setUp()
        self.today = timezone.localdate()
        self.trader = TestDataFactory.create_client(name='Diamond Traders Inc')
        self.gems = TestDataFactory.create_client(name='Gem Solutions LLC', plus_rate=5200, minus_rate=310)
        # 52500 and 134160
        self.trader_lot = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        self.gems_lot = TestDataFactory.create_diamond(self.gems, pieces=45, karats='25.8')
        TestDataFactory.create_market_rate()

    def test_dashboard(self):
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        data = response.data
        self.assertEqual(data['total_pieces'], 65)
        self.assertAlmostEqual(data['total_karats'], 36.3)
        self.assertEqual(data['total_value'], 186660.0)
        self.assertEqual(data['client_count'], 2)
        self.assertEqual(data['recent_value'], 186660.0)
        self.assertEqual(
            data['category_distribution'],
            [{'name': '4P Plus', 'value': 65}, {'name': '4P Minus', 'value': 0}]
        )
        self.assertEqual(data['client_distribution'][0]['name'], 'Gem Solutions LLC')
        self.assertEqual(data['market_rate']['four_p_minus_rate'], 305)

        trend = data['trend']
        self.assertEqual(len(trend), 5)
        self.assertEqual(trend[-1]['date'], self.today.isoformat())
        self.assertEqual(trend[-1]['count'], 65)
        self.assertAlmostEqual(trend[-1]['value'], 186.66)
        self.assertEqual(trend[0]['count'], 0)

    def test_dashboard_refreshes_after_new_lot(self):
        self.assertEqual(self.client.get('/api/v1/reports/dashboard/').data['total_pieces'], 65)

        TestDataFactory.create_diamond(self.trader, pieces=136, karats='18.2')
        data = self.client.get('/api/v1/reports/dashboard/').data
        self.assertEqual(data['total_pieces'], 201)
        self.assertEqual(data['total_value'], 227460.0)
        self.assertEqual(data['category_distribution'][1], {'name': '4P Minus', 'value': 136})

    def test_dashboard_old_lots_excluded_from_recent(self):
        TestDataFactory.create_diamond(self.trader, pieces=136, karats='18.2',
                                       entry_date=self.today - timedelta(days=20))
        data = self.client.get('/api/v1/reports/dashboard/').data
        self.assertEqual(data['recent_value'], 186660.0)
        self.assertEqual(data['total_value'], 227460.0)

    def test_analytics(self):
        response = self.client.get('/api/v1/reports/analytics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        data = response.data
        self.assertEqual(data['period_days'], 30)
        self.assertEqual(len(data['daily_trend']), 30)
        self.assertEqual(len(data['weight_by_month']), 6)
        self.assertEqual(data['weight_by_month'][-1]['month'], self.today.strftime('%Y-%m'))
        self.assertAlmostEqual(data['weight_by_month'][-1]['four_p_plus'], 36.3)
        self.assertEqual(data['weight_by_month'][-1]['four_p_minus'], 0.0)

        summary = data['summary']
        self.assertEqual(summary['total_pieces'], 65)
        self.assertEqual(summary['avg_karats_per_diamond'], 0.558)
        self.assertEqual(summary['avg_value_per_karat'], 5142.15)
        self.assertEqual(data['top_clients'][0]['name'], 'Gem Solutions LLC')

    def test_analytics_days_param(self):
        response = self.client.get('/api/v1/reports/analytics/?days=7')
        self.assertEqual(len(response.data['daily_trend']), 7)

        for bad in ('abc', '0', '400'):
            response = self.client.get(f'/api/v1/reports/analytics/?days={bad}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_top_clients(self):
        response = self.client.get('/api/v1/reports/top-clients/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        clients = response.data['clients']
        self.assertEqual([c['name'] for c in clients], ['Gem Solutions LLC', 'Diamond Traders Inc'])
        self.assertEqual(clients[0]['percent'], 71.9)
        self.assertEqual(clients[1]['percent'], 28.1)
        self.assertEqual(clients[1]['value'], 52500.0)
        self.assertEqual(response.data['total_value'], 186660.0)
        self.assertEqual(response.data['others_value'], 0.0)

    def test_top_clients_limit(self):
        response = self.client.get('/api/v1/reports/top-clients/?limit=1')
        self.assertEqual(len(response.data['clients']), 1)
        self.assertEqual(response.data['others_value'], 52500.0)

        response = self.client.get('/api/v1/reports/top-clients/?limit=x')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invoice_summary(self):
        TestDataFactory.create_invoice(self.trader, [self.trader_lot], status=Invoice.STATUS_PAID)
        TestDataFactory.create_invoice(
            self.gems, [self.gems_lot],
            issue_date=self.today - timedelta(days=40), due_date=self.today - timedelta(days=10),
        )

        response = self.client.get('/api/v1/reports/invoices/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['by_status']['paid'], {'count': 1, 'total': 52500.0})
        self.assertEqual(response.data['by_status']['cancelled'], {'count': 0, 'total': 0.0})
        self.assertEqual(response.data['outstanding'], {'count': 1, 'total': 134160.0})
        self.assertEqual(response.data['overdue'], {'count': 1, 'total': 134160.0})

    def test_reports_require_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
