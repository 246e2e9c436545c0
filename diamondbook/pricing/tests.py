"""
Test suite for the pricing module
Tests: daily market rate upsert, latest rate, rate history
"""
from rest_framework import status
from datetime import timedelta
from decimal import Decimal
from django.utils import timezone
from diamondbook.core.models import AuditLog
from diamondbook.core.test_utils import TestDataFactory, AuthenticatedTestCase
from diamondbook.pricing.models import MarketRate


class MarketRateAPITests(AuthenticatedTestCase):
    """Test market rate API endpoints"""

    def test_record_rates_for_today(self):
        """Date defaults to today when omitted"""
        response = self.client.post('/api/v1/market-rates/', {
            'four_p_plus_rate': '5100.00',
            'four_p_minus_rate': '305.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['date'], timezone.localdate().isoformat())
        self.assertEqual(response.data['created_by'], self.user.id)

    def test_same_date_replaces_rates(self):
        day = (timezone.localdate() - timedelta(days=1)).isoformat()
        self.client.post('/api/v1/market-rates/', {
            'date': day, 'four_p_plus_rate': '5100.00', 'four_p_minus_rate': '305.00',
        }, format='json')
        response = self.client.post('/api/v1/market-rates/', {
            'date': day, 'four_p_plus_rate': '5150.00', 'four_p_minus_rate': '310.00',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(MarketRate.objects.count(), 1)
        self.assertEqual(MarketRate.objects.get().four_p_plus_rate, Decimal('5150.00'))
        self.assertEqual(AuditLog.objects.filter(model_name='MarketRate', action='rate_change').count(), 2)

    def test_negative_rate_rejected(self):
        response = self.client.post('/api/v1/market-rates/', {
            'four_p_plus_rate': '-1', 'four_p_minus_rate': '305.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_newest_first(self):
        today = timezone.localdate()
        TestDataFactory.create_market_rate(date=today - timedelta(days=2))
        TestDataFactory.create_market_rate(date=today)

        response = self.client.get('/api/v1/market-rates/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['date'], today.isoformat())

        response = self.client.get(f'/api/v1/market-rates/?date_from={(today - timedelta(days=1)).isoformat()}')
        self.assertEqual(len(response.data), 1)

    def test_list_rejects_bad_dates(self):
        response = self.client.get('/api/v1/market-rates/?date_from=x')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date_from', response.data)

        response = self.client.get('/api/v1/market-rates/?date_to=2024-02-30')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_to_taken_date_rejected(self):
        today = timezone.localdate()
        TestDataFactory.create_market_rate(date=today)
        older = TestDataFactory.create_market_rate(date=today - timedelta(days=1))
        response = self.client.patch(
            f'/api/v1/market-rates/{older.id}/', {'date': today.isoformat()}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_latest_without_rates(self):
        response = self.client.get('/api/v1/market-rates/latest/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_latest_rate(self):
        today = timezone.localdate()
        TestDataFactory.create_market_rate(date=today - timedelta(days=3), plus_rate=Decimal('5000.00'))
        TestDataFactory.create_market_rate(date=today - timedelta(days=1), plus_rate=Decimal('5200.00'))

        response = self.client.get('/api/v1/market-rates/latest/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['four_p_plus_rate'], Decimal('5200.00'))

    def test_history_window(self):
        today = timezone.localdate()
        TestDataFactory.create_market_rate(date=today - timedelta(days=40))
        TestDataFactory.create_market_rate(date=today - timedelta(days=5))
        TestDataFactory.create_market_rate(date=today)

        response = self.client.get('/api/v1/market-rates/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['days'], 30)
        self.assertEqual(len(response.data['rates']), 2)
        self.assertEqual(response.data['rates'][-1]['date'], today.isoformat())

        response = self.client.get('/api/v1/market-rates/history/?days=3')
        self.assertEqual(len(response.data['rates']), 1)

    def test_history_rejects_bad_days(self):
        self.assertEqual(self.client.get('/api/v1/market-rates/history/?days=abc').status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.get('/api/v1/market-rates/history/?days=0').status_code, status.HTTP_400_BAD_REQUEST)
