"""
Test suite for the invoices module
Tests: invoice creation rules, numbering, payment status, printable invoice, overdue command
"""
import re
from io import StringIO
from unittest import mock

from django.core.management import call_command
from rest_framework import serializers, status
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
from diamondbook.core.models import AuditLog
from diamondbook.core.test_utils import TestDataFactory, AuthenticatedTestCase
from diamondbook.diamonds.models import Diamond
from diamondbook.diamonds.valuation import FOUR_P_MINUS, FOUR_P_PLUS
from diamondbook.invoices.models import Invoice, InvoiceItem
from diamondbook.invoices.serializers import InvoiceSerializer


class InvoiceModelTests(AuthenticatedTestCase):
    """Test invoice numbering and overdue detection"""

    def setUp(self):
        super().setUp()
        self.trader = TestDataFactory.create_client()

    def test_number_sequence_per_issue_day(self):
        day = timezone.localdate()
        first = Invoice.objects.create(client=self.trader, issue_date=day)
        second = Invoice.objects.create(client=self.trader, issue_date=day)
        other_day = Invoice.objects.create(client=self.trader, issue_date=day - timedelta(days=1))

        stamp = day.strftime('%Y%m%d')
        self.assertEqual(first.invoice_number, f'INV-{stamp}-001')
        self.assertEqual(second.invoice_number, f'INV-{stamp}-002')
        self.assertTrue(other_day.invoice_number.endswith('-001'))

    def test_default_due_date_is_thirty_days(self):
        invoice = Invoice.objects.create(client=self.trader)
        self.assertEqual(invoice.due_date, timezone.localdate() + timedelta(days=30))

    def test_changing_issue_date_renumbers(self):
        day = timezone.localdate()
        invoice = Invoice.objects.create(client=self.trader, issue_date=day)
        invoice.issue_date = day - timedelta(days=3)
        invoice.save()
        invoice.refresh_from_db()
        self.assertTrue(invoice.invoice_number.startswith(Invoice.number_prefix(day - timedelta(days=3))))
        self.assertTrue(invoice.invoice_number.endswith('-001'))

    def test_unrelated_save_keeps_number(self):
        invoice = Invoice.objects.create(client=self.trader)
        number = invoice.invoice_number
        invoice.notes = 'Parcel 203A'
        invoice.save()
        self.assertEqual(invoice.invoice_number, number)

    def test_taken_number_is_retried(self):
        """A number claimed by a concurrent save is replaced by the next free one"""
        day = timezone.localdate()
        taken = Invoice.objects.create(client=self.trader, issue_date=day).invoice_number
        free = f'{Invoice.number_prefix(day)}002'
        with mock.patch.object(Invoice, 'next_invoice_number', side_effect=[taken, free]) as numbering:
            invoice = Invoice.objects.create(client=self.trader, issue_date=day)
        self.assertEqual(invoice.invoice_number, free)
        self.assertEqual(numbering.call_count, 2)
        self.assertEqual(Invoice.objects.count(), 2)

    def test_is_overdue(self):
        today = timezone.localdate()
        late = Invoice.objects.create(client=self.trader, issue_date=today - timedelta(days=40),
                                      due_date=today - timedelta(days=10))
        paid = Invoice.objects.create(client=self.trader, issue_date=today - timedelta(days=40),
                                      due_date=today - timedelta(days=10), status=Invoice.STATUS_PAID)
        current = Invoice.objects.create(client=self.trader)
        self.assertTrue(late.is_overdue)
        self.assertFalse(paid.is_overdue)
        self.assertFalse(current.is_overdue)


class InvoiceAPITests(AuthenticatedTestCase):
    """Test invoice API endpoints"""

    def setUp(self):
        super().setUp()
        self.trader = TestDataFactory.create_client(name='Diamond Traders Inc', plus_rate=Decimal('5000'), minus_rate=Decimal('300'))
        self.other = TestDataFactory.create_client(name='Gem Solutions LLC', plus_rate=Decimal('5200'), minus_rate=Decimal('310'))
        self.plus_lot = TestDataFactory.create_diamond(self.trader, pieces=20, karats='10.5', kapan_id='203A')
        self.minus_lot = TestDataFactory.create_diamond(self.trader, pieces=136, karats='18.2', kapan_id='203A')
        self.foreign_lot = TestDataFactory.create_diamond(self.other, pieces=45, karats='25.8', kapan_id='415B')

    def _create(self, diamonds, **overrides):
        data = {
            'client': self.trader.id,
            'issue_date': timezone.localdate().isoformat(),
            'diamonds': [d.id for d in diamonds],
            'notes': 'Parcel 203A',
        }
        data.update(overrides)
        return self.client.post('/api/v1/invoices/', data, format='json')

    def test_create_invoice(self):
        """Creating an invoice bills the selected lots and totals their values"""
        response = self._create([self.plus_lot, self.minus_lot])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertRegex(response.data['invoice_number'], r'^INV-\d{8}-001$')
        self.assertEqual(response.data['status'], Invoice.STATUS_PENDING)
        self.assertEqual(Decimal(str(response.data['total_amount'])), Decimal('93300.00'))
        self.assertEqual(len(response.data['items']), 2)
        self.assertEqual(
            response.data['due_date'],
            (timezone.localdate() + timedelta(days=30)).isoformat()
        )
        self.assertTrue(AuditLog.objects.filter(action='invoice_create').exists())

    def test_item_snapshots_lot(self):
        response = self._create([self.plus_lot])
        item = InvoiceItem.objects.get(invoice_id=response.data['id'])
        self.assertEqual(item.quantity, 20)
        self.assertEqual(item.price, Decimal('52500.00'))
        self.assertEqual(item.weight_in_karats, Decimal('10.500'))
        self.assertIsNone(item.raw_damage_weight)
        self.assertEqual(item.category, FOUR_P_PLUS)
        self.assertEqual(item.applied_rate, Decimal('5000'))
        self.assertIn('203A', item.description)

    def test_second_invoice_same_day_numbers_next(self):
        self._create([self.plus_lot])
        response = self._create([self.minus_lot])
        self.assertTrue(response.data['invoice_number'].endswith('-002'))

    def test_requires_at_least_one_diamond(self):
        response = self._create([])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('diamonds', response.data)

    def test_rejects_other_clients_lot(self):
        response = self._create([self.plus_lot, self.foreign_lot])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('diamonds', response.data)

    def test_lot_cannot_be_billed_twice(self):
        self._create([self.plus_lot])
        response = self._create([self.plus_lot, self.minus_lot])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Invoice.objects.count(), 1)

    def test_same_lot_twice_in_one_invoice_rejected(self):
        """Repeating a lot id must not bill the lot twice"""
        response = self._create([self.plus_lot, self.plus_lot])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('diamonds', response.data)
        self.assertEqual(Invoice.objects.count(), 0)
        self.assertFalse(InvoiceItem.objects.exists())

    def test_lot_billed_after_validation_rejected(self):
        """The lots are checked again under lock when the invoice is saved"""
        serializer = InvoiceSerializer(data={
            'client': self.trader.id,
            'issue_date': timezone.localdate().isoformat(),
            'diamonds': [self.plus_lot.id],
        })
        self.assertTrue(serializer.is_valid(), serializer.errors)
        competing = TestDataFactory.create_invoice(self.trader, [self.plus_lot])

        with self.assertRaises(serializers.ValidationError):
            serializer.save()
        self.assertEqual(list(Invoice.objects.all()), [competing])
        self.assertEqual(InvoiceItem.objects.filter(diamond=self.plus_lot).count(), 1)

    def test_invoice_bills_lot_values_read_under_lock(self):
        serializer = InvoiceSerializer(data={
            'client': self.trader.id,
            'issue_date': timezone.localdate().isoformat(),
            'diamonds': [self.plus_lot.id],
        })
        self.assertTrue(serializer.is_valid(), serializer.errors)
        Diamond.objects.filter(pk=self.plus_lot.pk).update(total_value=Decimal('50000.00'))

        invoice = serializer.save()
        self.assertEqual(invoice.total_amount, Decimal('50000.00'))
        self.assertEqual(invoice.items.get().price, Decimal('50000.00'))

    def test_cancelled_invoice_releases_lots(self):
        first = self._create([self.plus_lot])
        self.client.post(f"/api/v1/invoices/{first.data['id']}/cancel/")
        response = self._create([self.plus_lot])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_due_date_before_issue_date_rejected(self):
        today = timezone.localdate()
        response = self._create([self.plus_lot], due_date=(today - timedelta(days=1)).isoformat())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('due_date', response.data)

    def test_update_replaces_items(self):
        created = self._create([self.plus_lot, self.minus_lot])
        response = self.client.patch(
            f"/api/v1/invoices/{created.data['id']}/",
            {'diamonds': [self.minus_lot.id]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 1)
        self.assertEqual(Decimal(str(response.data['total_amount'])), Decimal('40800.00'))

    def test_update_keeps_own_lots(self):
        """Re-saving an invoice with its own lots is not double billing"""
        created = self._create([self.plus_lot])
        response = self.client.put(f"/api/v1/invoices/{created.data['id']}/", {
            'client': self.trader.id,
            'issue_date': timezone.localdate().isoformat(),
            'diamonds': [self.plus_lot.id],
            'notes': 'Updated',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['notes'], 'Updated')

    def test_mark_paid_and_pending(self):
        created = self._create([self.plus_lot])
        url = f"/api/v1/invoices/{created.data['id']}"

        response = self.client.post(f'{url}/mark-paid/', {'payment_method': 'upi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Invoice.STATUS_PAID)
        self.assertEqual(response.data['payment_method'], 'upi')
        self.assertEqual(response.data['payment_date'], timezone.localdate().isoformat())

        response = self.client.post(f'{url}/mark-pending/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Invoice.STATUS_PENDING)
        self.assertIsNone(response.data['payment_date'])
        self.assertTrue(AuditLog.objects.filter(action='invoice_paid').exists())
        self.assertTrue(AuditLog.objects.filter(action='invoice_pending').exists())

    def test_mark_paid_requires_valid_method(self):
        created = self._create([self.plus_lot])
        response = self.client.post(
            f"/api/v1/invoices/{created.data['id']}/mark-paid/", {'payment_method': 'barter'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_paid_with_date(self):
        created = self._create([self.plus_lot])
        paid_on = (timezone.localdate() - timedelta(days=2)).isoformat()
        response = self.client.post(
            f"/api/v1/invoices/{created.data['id']}/mark-paid/",
            {'payment_method': 'cheque', 'payment_date': paid_on},
            format='json'
        )
        self.assertEqual(response.data['payment_date'], paid_on)

    def test_cannot_cancel_paid_invoice(self):
        invoice = TestDataFactory.create_invoice(self.trader, [self.plus_lot], status=Invoice.STATUS_PAID)
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters(self):
        TestDataFactory.create_invoice(self.trader, [self.plus_lot], status=Invoice.STATUS_PAID)
        TestDataFactory.create_invoice(self.other, [self.foreign_lot])

        response = self.client.get('/api/v1/invoices/?status=paid')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/v1/invoices/?client={self.other.id}')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['client_name'], 'Gem Solutions LLC')

        response = self.client.get('/api/v1/invoices/?search=INV-')
        self.assertEqual(response.data['count'], 2)

    def test_list_rejects_bad_filter_values(self):
        for query in ('client=abc', 'date_from=notadate', 'date_to=2024-13-40', 'status=lost'):
            response = self.client.get(f'/api/v1/invoices/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)
            self.assertIn(query.split('=')[0], response.data)

    def test_list_date_range(self):
        today = timezone.localdate()
        TestDataFactory.create_invoice(self.trader, [self.plus_lot], issue_date=today - timedelta(days=10))
        TestDataFactory.create_invoice(self.trader, [self.minus_lot], issue_date=today)

        response = self.client.get(f'/api/v1/invoices/?date_from={(today - timedelta(days=1)).isoformat()}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_patch_issue_date_renumbers(self):
        created = self._create([self.plus_lot])
        new_date = timezone.localdate() - timedelta(days=5)
        response = self.client.patch(
            f"/api/v1/invoices/{created.data['id']}/",
            {'issue_date': new_date.isoformat(), 'due_date': (new_date + timedelta(days=30)).isoformat()},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['invoice_number'], f"INV-{new_date.strftime('%Y%m%d')}-001")

    def test_delete_invoice_frees_lots(self):
        created = self._create([self.plus_lot])
        response = self.client.delete(f"/api/v1/invoices/{created.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(InvoiceItem.objects.filter(diamond=self.plus_lot).exists())

    def test_complete_invoice(self):
        """Printable invoice carries client, company and per-lot rates"""
        TestDataFactory.create_company_details()
        created = self._create([self.plus_lot, self.minus_lot])

        response = self.client.get(f"/api/v1/invoices/{created.data['id']}/complete/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['client']['name'], 'Diamond Traders Inc')
        self.assertEqual(response.data['company']['ifsc_code'], 'TEST0001234')
        self.assertEqual(len(response.data['entries']), 2)
        rates = sorted(entry['applied_rate'] for entry in response.data['entries'])
        self.assertEqual(rates, [300.0, 5000.0])
        self.assertEqual(response.data['totals']['pieces'], 156)
        self.assertEqual(Decimal(str(response.data['totals']['karats'])), Decimal('28.700'))
        self.assertEqual(Decimal(str(response.data['totals']['value'])), Decimal('93300.00'))

    def test_complete_invoice_category_summary(self):
        """Per-category block: 4P Plus rate per karat, 4P Minus rate per piece"""
        created = self._create([self.plus_lot, self.minus_lot])
        response = self.client.get(f"/api/v1/invoices/{created.data['id']}/complete/")

        plus = response.data['categories'][FOUR_P_PLUS]
        self.assertEqual(plus['lots'], 1)
        self.assertEqual(plus['pieces'], 20)
        self.assertEqual(Decimal(str(plus['karats'])), Decimal('10.500'))
        self.assertEqual(Decimal(str(plus['rate'])), Decimal('5000'))
        self.assertEqual(Decimal(str(plus['value'])), Decimal('52500.00'))

        minus = response.data['categories'][FOUR_P_MINUS]
        self.assertEqual(minus['pieces'], 136)
        self.assertEqual(Decimal(str(minus['rate'])), Decimal('300'))
        self.assertEqual(Decimal(str(minus['value'])), Decimal('40800.00'))

    def test_complete_invoice_empty_category_shows_client_rate(self):
        created = self._create([self.plus_lot])
        response = self.client.get(f"/api/v1/invoices/{created.data['id']}/complete/")
        minus = response.data['categories'][FOUR_P_MINUS]
        self.assertEqual(minus['lots'], 0)
        self.assertEqual(Decimal(str(minus['rate'])), Decimal('300'))
        self.assertEqual(Decimal(str(minus['value'])), Decimal('0.00'))

    def test_complete_invoice_reads_billed_lot(self):
        """Entries, summary and totals come from the invoice lines, not the lot as it is now"""
        created = self._create([self.plus_lot])
        Diamond.objects.filter(pk=self.plus_lot.pk).update(weight_in_karats=Decimal('21.000'))

        response = self.client.get(f"/api/v1/invoices/{created.data['id']}/complete/")
        entry = response.data['entries'][0]
        self.assertEqual(Decimal(str(entry['weight_in_karats'])), Decimal('10.500'))
        self.assertEqual(entry['applied_rate'], 5000.0)
        self.assertEqual(Decimal(str(response.data['totals']['karats'])), Decimal('10.500'))
        self.assertEqual(Decimal(str(response.data['categories'][FOUR_P_PLUS]['rate'])), Decimal('5000'))

    def test_complete_invoice_without_company(self):
        created = self._create([self.plus_lot])
        response = self.client.get(f"/api/v1/invoices/{created.data['id']}/complete/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['company'])

    def test_client_with_invoice_cannot_be_deleted(self):
        TestDataFactory.create_invoice(self.trader, [self.plus_lot])
        response = self.client.delete(f'/api/v1/clients/{self.trader.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class MarkOverdueCommandTests(AuthenticatedTestCase):
    """Test the mark_overdue_invoices management command"""

    def setUp(self):
        super().setUp()
        self.trader = TestDataFactory.create_client()
        today = timezone.localdate()
        self.late = TestDataFactory.create_invoice(
            self.trader, [TestDataFactory.create_diamond(self.trader)],
            issue_date=today - timedelta(days=45), due_date=today - timedelta(days=15),
        )
        self.late_paid = TestDataFactory.create_invoice(
            self.trader, [TestDataFactory.create_diamond(self.trader)],
            issue_date=today - timedelta(days=45), due_date=today - timedelta(days=15),
            status=Invoice.STATUS_PAID,
        )
        self.current = TestDataFactory.create_invoice(self.trader, [TestDataFactory.create_diamond(self.trader)])

    def test_marks_only_pending_past_due(self):
        out = StringIO()
        call_command('mark_overdue_invoices', stdout=out)
        self.late.refresh_from_db()
        self.late_paid.refresh_from_db()
        self.current.refresh_from_db()
        self.assertEqual(self.late.status, Invoice.STATUS_OVERDUE)
        self.assertEqual(self.late_paid.status, Invoice.STATUS_PAID)
        self.assertEqual(self.current.status, Invoice.STATUS_PENDING)
        self.assertTrue(re.search(r'Marked 1 invoice', out.getvalue()))
        self.assertTrue(AuditLog.objects.filter(action='invoice_overdue').exists())

    def test_dry_run_changes_nothing(self):
        call_command('mark_overdue_invoices', '--dry-run', stdout=StringIO())
        self.late.refresh_from_db()
        self.assertEqual(self.late.status, Invoice.STATUS_PENDING)
