"""
Test suite for the diamond inventory module
Tests: valuation rule, lot entry, recalculation, filters, valuation endpoints
"""
from django.test import SimpleTestCase
from rest_framework import status
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
from types import SimpleNamespace
from diamondbook.core.models import AuditLog
from diamondbook.core.test_utils import TestDataFactory, AuthenticatedTestCase
from diamondbook.diamonds.models import Diamond
from diamondbook.diamonds.valuation import (
    FOUR_P_PLUS, FOUR_P_MINUS, ValuationError,
    applied_rate, billed_rate, calculate_value, determine_category, invoice_total, weight_per_diamond,
)
from diamondbook.invoices.models import Invoice


class ValuationRuleTests(SimpleTestCase):
    """Test the category and value formulas without the database"""

    def test_heavy_lot_is_four_p_plus(self):
        """20 pieces weighing 10.5 ct average 0.525 ct each"""
        self.assertEqual(determine_category(Decimal('10.5'), 20), FOUR_P_PLUS)

    def test_light_lot_is_four_p_minus(self):
        """136 pieces weighing 18.2 ct average about 0.134 ct each"""
        self.assertEqual(determine_category(Decimal('18.2'), 136), FOUR_P_MINUS)

    def test_threshold_is_exclusive(self):
        """Exactly 0.15 ct per piece is still 4P Minus"""
        self.assertEqual(determine_category(Decimal('1.5'), 10), FOUR_P_MINUS)
        self.assertEqual(determine_category(Decimal('1.51'), 10), FOUR_P_PLUS)

    def test_accepts_plain_numbers(self):
        """Floats and strings are converted to Decimal before comparing"""
        self.assertEqual(determine_category('0.15', 1), FOUR_P_MINUS)
        self.assertEqual(determine_category(0.16, 1), FOUR_P_PLUS)

    def test_zero_pieces_rejected(self):
        """A lot without pieces has no weight per piece"""
        with self.assertRaises(ValuationError):
            determine_category(Decimal('1.0'), 0)

    def test_weight_per_diamond(self):
        self.assertEqual(weight_per_diamond(Decimal('10.5'), 20), Decimal('0.525'))

    def test_four_p_plus_value_uses_weight(self):
        """4P Plus: weight x per-karat rate"""
        value = calculate_value(FOUR_P_PLUS, Decimal('10.5'), 20, Decimal('5000'), Decimal('300'))
        self.assertEqual(value, Decimal('52500.00'))

    def test_four_p_plus_value_subtracts_damage(self):
        """4P Plus: raw damage weight is not billed"""
        value = calculate_value(FOUR_P_PLUS, Decimal('10.5'), 20, Decimal('5000'), Decimal('300'), Decimal('0.5'))
        self.assertEqual(value, Decimal('50000.00'))

    def test_four_p_minus_value_uses_count(self):
        """4P Minus: pieces x per-piece rate"""
        value = calculate_value(FOUR_P_MINUS, Decimal('18.2'), 136, Decimal('5000'), Decimal('300'))
        self.assertEqual(value, Decimal('40800.00'))

    def test_four_p_minus_ignores_damage(self):
        value = calculate_value(FOUR_P_MINUS, Decimal('18.2'), 136, Decimal('5000'), Decimal('300'), Decimal('1.0'))
        self.assertEqual(value, Decimal('40800.00'))

    def test_value_rounds_half_up(self):
        """Money is quantized to 2 places, halves rounded up"""
        value = calculate_value(FOUR_P_PLUS, Decimal('0.001'), 1, Decimal('5'), Decimal('0'))
        self.assertEqual(value, Decimal('0.01'))

    def test_damage_cannot_exceed_weight(self):
        with self.assertRaises(ValuationError):
            calculate_value(FOUR_P_PLUS, Decimal('1.0'), 2, Decimal('5000'), Decimal('300'), Decimal('1.5'))

    def test_negative_damage_rejected(self):
        with self.assertRaises(ValuationError):
            calculate_value(FOUR_P_PLUS, Decimal('1.0'), 2, Decimal('5000'), Decimal('300'), Decimal('-0.1'))

    def test_unknown_category_rejected(self):
        with self.assertRaises(ValuationError):
            calculate_value('5P', Decimal('1.0'), 2, Decimal('5000'), Decimal('300'))

    def test_invoice_total_sums_lot_values(self):
        lots = [SimpleNamespace(total_value=Decimal('52500.00')), SimpleNamespace(total_value=Decimal('40800.00'))]
        self.assertEqual(invoice_total(lots), Decimal('93300.00'))
        self.assertEqual(invoice_total([]), Decimal('0.00'))

    def test_applied_rate_per_karat_and_per_piece(self):
        """Invoice lines show the rate per karat (4P Plus) or per piece (4P Minus)"""
        plus = SimpleNamespace(category=FOUR_P_PLUS, total_value=Decimal('50000.00'),
                               weight_in_karats=Decimal('10.5'), number_of_diamonds=20)
        minus = SimpleNamespace(category=FOUR_P_MINUS, total_value=Decimal('40800.00'),
                                weight_in_karats=Decimal('18.2'), number_of_diamonds=136)
        self.assertEqual(applied_rate(plus), Decimal('4762'))
        self.assertEqual(applied_rate(minus), Decimal('300'))

    def test_billed_rate_from_totals(self):
        self.assertEqual(billed_rate(FOUR_P_PLUS, Decimal('186660.00'), Decimal('36.300'), 65), Decimal('5142'))
        self.assertEqual(billed_rate(FOUR_P_MINUS, Decimal('40800.00'), Decimal('18.200'), 136), Decimal('300'))
        self.assertEqual(billed_rate(FOUR_P_PLUS, Decimal('0'), Decimal('0'), 0), Decimal('0'))


class DiamondModelTests(AuthenticatedTestCase):
    """Test valuation applied on save"""

    def setUp(self):
        super().setUp()
        self.trader = TestDataFactory.create_client(plus_rate=Decimal('5000'), minus_rate=Decimal('300'))

    def test_save_derives_category_and_value(self):
        diamond = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        self.assertEqual(diamond.category, FOUR_P_PLUS)
        self.assertEqual(diamond.total_value, Decimal('52500.00'))

    def test_apply_valuation_uses_current_client_rates(self):
        diamond = TestDataFactory.create_diamond(self.trader, pieces=136, karats='18.2')
        self.trader.four_p_minus_rate = Decimal('320')
        self.trader.save()
        diamond.apply_valuation(self.trader)
        self.assertEqual(diamond.total_value, Decimal('43520.00'))

    def test_str(self):
        diamond = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5', kapan_id='203A')
        self.assertIn('203A', str(diamond))


class DiamondAPITests(AuthenticatedTestCase):
    """Test diamond lot API endpoints"""

    def setUp(self):
        super().setUp()
        self.trader = TestDataFactory.create_client(name='Diamond Traders Inc', plus_rate=Decimal('5000'), minus_rate=Decimal('300'))
        self.other = TestDataFactory.create_client(name='Gem Solutions LLC', plus_rate=Decimal('5200'), minus_rate=Decimal('310'))

    def _lot(self, **overrides):
        data = {
            'client': self.trader.id,
            'kapan_id': '203A',
            'entry_date': timezone.localdate().isoformat(),
            'number_of_diamonds': 20,
            'weight_in_karats': '10.500',
        }
        data.update(overrides)
        return data

    def test_create_diamond_computes_value(self):
        """Entering a lot classifies and values it with the client's rates"""
        response = self.client.post('/api/v1/diamonds/', self._lot(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category'], FOUR_P_PLUS)
        self.assertEqual(Decimal(str(response.data['total_value'])), Decimal('52500.00'))
        self.assertEqual(response.data['client_name'], 'Diamond Traders Inc')
        self.assertTrue(AuditLog.objects.filter(model_name='Diamond', action='create').exists())

    def test_client_supplied_value_is_ignored(self):
        response = self.client.post(
            '/api/v1/diamonds/', self._lot(category=FOUR_P_MINUS, total_value='1.00'), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category'], FOUR_P_PLUS)
        self.assertEqual(Decimal(str(response.data['total_value'])), Decimal('52500.00'))

    def test_create_with_damage(self):
        response = self.client.post('/api/v1/diamonds/', self._lot(raw_damage_weight='0.500'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(str(response.data['total_value'])), Decimal('50000.00'))

    def test_damage_above_weight_rejected(self):
        response = self.client.post('/api/v1/diamonds/', self._lot(raw_damage_weight='11.000'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('raw_damage_weight', response.data)

    def test_zero_pieces_rejected(self):
        response = self.client.post('/api/v1/diamonds/', self._lot(number_of_diamonds=0), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_market_rate_defaults_to_latest_for_category(self):
        TestDataFactory.create_market_rate(plus_rate=Decimal('5100'), minus_rate=Decimal('305'))
        response = self.client.post(
            '/api/v1/diamonds/', self._lot(number_of_diamonds=136, weight_in_karats='18.200'), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category'], FOUR_P_MINUS)
        self.assertEqual(Decimal(str(response.data['market_rate'])), Decimal('305.00'))

    def test_market_rate_zero_without_rates(self):
        response = self.client.post('/api/v1/diamonds/', self._lot(), format='json')
        self.assertEqual(Decimal(str(response.data['market_rate'])), Decimal('0.00'))

    def test_update_recomputes_value(self):
        diamond = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        response = self.client.patch(
            f'/api/v1/diamonds/{diamond.id}/',
            {'number_of_diamonds': 136, 'weight_in_karats': '18.200'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        diamond.refresh_from_db()
        self.assertEqual(diamond.category, FOUR_P_MINUS)
        self.assertEqual(diamond.total_value, Decimal('40800.00'))

    def test_moving_lot_to_other_client_revalues(self):
        diamond = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        response = self.client.patch(f'/api/v1/diamonds/{diamond.id}/', {'client': self.other.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(str(response.data['total_value'])), Decimal('54600.00'))

    def test_recalculate_uses_new_client_rates(self):
        diamond = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        self.trader.four_p_plus_rate = Decimal('5500')
        self.trader.save()

        response = self.client.post(f'/api/v1/diamonds/{diamond.id}/recalculate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(str(response.data['total_value'])), Decimal('57750.00'))
        self.assertTrue(AuditLog.objects.filter(action='diamond_recalculate', object_id=str(diamond.id)).exists())

    def test_billed_lot_cannot_move_to_other_client(self):
        diamond = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        invoice = TestDataFactory.create_invoice(self.trader, [diamond], user=self.user)

        response = self.client.patch(f'/api/v1/diamonds/{diamond.id}/', {'client': self.other.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn(invoice.invoice_number, response.data['error'])
        diamond.refresh_from_db()
        self.assertEqual(diamond.client, self.trader)

    def test_billed_lot_weight_and_pieces_locked(self):
        diamond = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        TestDataFactory.create_invoice(self.trader, [diamond])

        for change in ({'weight_in_karats': '21.000'}, {'number_of_diamonds': 136}, {'raw_damage_weight': '0.500'}):
            response = self.client.patch(f'/api/v1/diamonds/{diamond.id}/', change, format='json')
            self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, change)
        diamond.refresh_from_db()
        self.assertEqual(diamond.weight_in_karats, Decimal('10.500'))
        self.assertEqual(diamond.total_value, Decimal('52500.00'))

    def test_billed_lot_recalculate_conflicts(self):
        diamond = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        TestDataFactory.create_invoice(self.trader, [diamond])
        self.trader.four_p_plus_rate = Decimal('5500')
        self.trader.save()

        response = self.client.post(f'/api/v1/diamonds/{diamond.id}/recalculate/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('error', response.data)
        diamond.refresh_from_db()
        self.assertEqual(diamond.total_value, Decimal('52500.00'))

    def test_billed_lot_other_edits_keep_billed_value(self):
        """Unchanged valuation inputs and other fields can still be edited"""
        diamond = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5', kapan_id='203A')
        TestDataFactory.create_invoice(self.trader, [diamond])
        self.trader.four_p_plus_rate = Decimal('5500')
        self.trader.save()

        response = self.client.patch(
            f'/api/v1/diamonds/{diamond.id}/',
            {'market_rate': '5100.00', 'kapan_id': '203B', 'weight_in_karats': '10.500'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['kapan_id'], '203B')
        self.assertEqual(Decimal(str(response.data['total_value'])), Decimal('52500.00'))

    def test_lot_on_cancelled_invoice_can_change(self):
        diamond = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        TestDataFactory.create_invoice(self.trader, [diamond], status=Invoice.STATUS_CANCELLED)

        response = self.client.patch(f'/api/v1/diamonds/{diamond.id}/', {'client': self.other.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post(f'/api/v1/diamonds/{diamond.id}/recalculate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_delete_diamond(self):
        diamond = TestDataFactory.create_diamond(self.trader)
        response = self.client.delete(f'/api/v1/diamonds/{diamond.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Diamond.objects.filter(id=diamond.id).exists())

    def test_delete_invoiced_diamond_conflicts(self):
        diamond = TestDataFactory.create_diamond(self.trader)
        TestDataFactory.create_invoice(self.trader, [diamond], user=self.user)
        response = self.client.delete(f'/api/v1/diamonds/{diamond.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('error', response.data)
        self.assertTrue(Diamond.objects.filter(id=diamond.id).exists())

    def test_list_is_paginated_with_totals(self):
        TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5')
        TestDataFactory.create_diamond(self.trader, pieces=136, karats='18.2')
        response = self.client.get('/api/v1/diamonds/?limit=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['next'], 2)
        self.assertEqual(response.data['totals']['pieces'], 156)
        self.assertEqual(response.data['totals']['value'], 93300.0)

    def test_list_filters(self):
        today = timezone.localdate()
        TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5', kapan_id='203A', entry_date=today)
        TestDataFactory.create_diamond(self.trader, pieces=136, karats='18.2', kapan_id='203A',
                                       entry_date=today - timedelta(days=10))
        TestDataFactory.create_diamond(self.other, pieces=45, karats='25.8', kapan_id='415B', entry_date=today)

        response = self.client.get(f'/api/v1/diamonds/?client={self.trader.id}')
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/diamonds/', {'category': FOUR_P_MINUS})
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/v1/diamonds/?kapan=415b')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/v1/diamonds/?date_from={(today - timedelta(days=1)).isoformat()}')
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/diamonds/?search=Gem')
        self.assertEqual(response.data['count'], 1)

    def test_invoiced_filter(self):
        billed = TestDataFactory.create_diamond(self.trader)
        TestDataFactory.create_diamond(self.trader)
        TestDataFactory.create_invoice(self.trader, [billed])

        response = self.client.get('/api/v1/diamonds/?invoiced=true')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/diamonds/?invoiced=false')
        self.assertEqual(response.data['count'], 1)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/diamonds/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class ValuationEndpointTests(AuthenticatedTestCase):
    """Test the category, value and estimate endpoints"""

    def setUp(self):
        super().setUp()
        self.trader = TestDataFactory.create_client(plus_rate=Decimal('5000'), minus_rate=Decimal('300'))

    def test_determine_category(self):
        response = self.client.post(
            '/api/v1/diamonds/determine-category/',
            {'weight_in_karats': '1.500', 'number_of_diamonds': 10},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['category'], FOUR_P_MINUS)

    def test_calculate_value_with_client_rates(self):
        response = self.client.post('/api/v1/diamonds/calculate-value/', {
            'client': self.trader.id,
            'category': FOUR_P_PLUS,
            'weight_in_karats': '10.500',
            'number_of_diamonds': 20,
            'raw_damage_weight': '0.500',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_value'], Decimal('50000.00'))

    def test_calculate_value_with_explicit_rates(self):
        response = self.client.post('/api/v1/diamonds/calculate-value/', {
            'category': FOUR_P_MINUS,
            'weight_in_karats': '18.200',
            'number_of_diamonds': 136,
            'four_p_plus_rate': '5000',
            'four_p_minus_rate': '310',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_value'], Decimal('42160.00'))

    def test_calculate_value_needs_rates(self):
        response = self.client.post('/api/v1/diamonds/calculate-value/', {
            'category': FOUR_P_MINUS,
            'weight_in_karats': '18.200',
            'number_of_diamonds': 136,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_estimate(self):
        response = self.client.post('/api/v1/diamonds/estimate/', {
            'client': self.trader.id,
            'weight_in_karats': '25.800',
            'number_of_diamonds': 45,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['category'], FOUR_P_PLUS)
        self.assertEqual(response.data['total_value'], Decimal('129000.00'))
        self.assertEqual(response.data['weight_per_diamond'], Decimal('0.5733'))
