import logging

from django.core.validators import MinValueValidator
from django.db import IntegrityError, models, transaction
from django.utils import timezone
from datetime import timedelta
from decimal import Decimal
from diamondbook.clients.models import Client
from diamondbook.core.models import User
from diamondbook.diamonds.models import Diamond
from diamondbook.diamonds.valuation import CATEGORY_CHOICES, billed_rate

logger = logging.getLogger('diamondbook.invoices')

DEFAULT_PAYMENT_TERM_DAYS = 30
NUMBERING_ATTEMPTS = 5


def default_due_date():
    return timezone.localdate() + timedelta(days=DEFAULT_PAYMENT_TERM_DAYS)


def item_description(diamond):
    return f"Kapan {diamond.kapan_id} - {diamond.category}, {diamond.number_of_diamonds} pcs, {diamond.weight_in_karats} ct"


class Invoice(models.Model):
    """Invoices billing a client for one or more diamond lots"""
    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # A lot billed on an invoice in any of these states cannot be billed again
    ACTIVE_STATUSES = [STATUS_PENDING, STATUS_PAID, STATUS_OVERDUE]
    UNPAID_STATUSES = [STATUS_PENDING, STATUS_OVERDUE]

    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('cheque', 'Cheque'),
        ('upi', 'UPI'),
        ('netbanking', 'Net Banking'),
        ('card', 'Card'),
        ('other', 'Other'),
    ]

    invoice_number = models.CharField(max_length=100, unique=True)
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name='invoices')
    issue_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(default=default_due_date)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payment_date = models.DateField(null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True, null=True)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'), validators=[MinValueValidator(Decimal('0'))])
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.invoice_number

    @staticmethod
    def number_prefix(issue_date):
        return f"INV-{issue_date.strftime('%Y%m%d')}-"

    @classmethod
    def next_invoice_number(cls, issue_date=None):
        """INV-YYYYMMDD-NNN, numbered from 001 within each issue day"""
        issue_date = issue_date or timezone.localdate()
        prefix = cls.number_prefix(issue_date)
        sequence = 1
        last = cls.objects.filter(invoice_number__startswith=prefix).order_by('-invoice_number').first()
        if last:
            try:
                sequence = int(last.invoice_number[len(prefix):]) + 1
            except ValueError:
                sequence = cls.objects.filter(invoice_number__startswith=prefix).count() + 1
        invoice_number = f"{prefix}{sequence:03d}"
        while cls.objects.filter(invoice_number=invoice_number).exists():
            sequence += 1
            invoice_number = f"{prefix}{sequence:03d}"
        return invoice_number

    @property
    def is_overdue(self):
        if self.status == self.STATUS_OVERDUE:
            return True
        return self.status == self.STATUS_PENDING and self.due_date is not None and self.due_date < timezone.localdate()

    def needs_number(self):
        """No number yet, or a generated number whose date is no longer the issue date"""
        if not self.invoice_number:
            return True
        return self.invoice_number.startswith('INV-') and not self.invoice_number.startswith(self.number_prefix(self.issue_date))

    def save(self, *args, **kwargs):
        if not self.needs_number():
            return super().save(*args, **kwargs)

        if kwargs.get('update_fields') is not None:
            kwargs['update_fields'] = {*kwargs['update_fields'], 'invoice_number'}
        # Concurrent saves can pick the same number; the unique index decides
        for attempt in range(1, NUMBERING_ATTEMPTS + 1):
            self.invoice_number = self.next_invoice_number(self.issue_date)
            try:
                with transaction.atomic():
                    return super().save(*args, **kwargs)
            except IntegrityError:
                if attempt == NUMBERING_ATTEMPTS:
                    raise
                logger.warning(f"Invoice number {self.invoice_number} was taken, retrying ({attempt}/{NUMBERING_ATTEMPTS})")

    class Meta:
        db_table = 'invoices'
        ordering = ['-issue_date', '-id']
        indexes = [
            models.Index(fields=['client', 'status'], name='idx_invoice_client_status'),
            models.Index(fields=['status', 'due_date'], name='idx_invoice_status_due'),
            models.Index(fields=['issue_date'], name='idx_invoice_issue_date'),
        ]


class InvoiceItem(models.Model):
    """Invoice line items: one per billed diamond lot"""
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    diamond = models.ForeignKey(Diamond, on_delete=models.PROTECT, related_name='invoice_items')
    description = models.CharField(max_length=255, blank=True)
    # Lot as billed: pieces, weight, damage, category and total value at the time of invoicing
    quantity = models.PositiveIntegerField()
    weight_in_karats = models.DecimalField(max_digits=10, decimal_places=3)
    raw_damage_weight = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    price = models.DecimalField(max_digits=14, decimal_places=2)

    @property
    def applied_rate(self):
        return billed_rate(self.category, self.price, self.weight_in_karats, self.quantity)

    @classmethod
    def for_lot(cls, invoice, diamond):
        return cls(
            invoice=invoice,
            diamond=diamond,
            description=item_description(diamond),
            quantity=diamond.number_of_diamonds,
            weight_in_karats=diamond.weight_in_karats,
            raw_damage_weight=diamond.raw_damage_weight,
            category=diamond.category,
            price=diamond.total_value,
        )

    def __str__(self):
        return f"{self.invoice.invoice_number}: {self.description}"

    class Meta:
        db_table = 'invoice_items'
        ordering = ['id']
        indexes = [
            models.Index(fields=['invoice', 'diamond'], name='idx_invitem_inv_diamond'),
        ]
