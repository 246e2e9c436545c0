from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from decimal import Decimal
from diamondbook.clients.models import Client
from diamondbook.core.models import User
from .valuation import CATEGORY_CHOICES, applied_rate, value_for_client, weight_per_diamond


class Diamond(models.Model):
    """A diamond lot (part of a kapan) entered into inventory for a client"""
    entry_date = models.DateField(default=timezone.localdate)
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name='diamonds')
    kapan_id = models.CharField(max_length=100, help_text='Free-text lot identifier of the kapan (parcel)')
    number_of_diamonds = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    weight_in_karats = models.DecimalField(max_digits=10, decimal_places=3, validators=[MinValueValidator(Decimal('0.001'))])
    # Reference market rate at entry time, for the lot's category
    market_rate = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'), validators=[MinValueValidator(Decimal('0'))])
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, editable=False)
    raw_damage_weight = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True, validators=[MinValueValidator(Decimal('0'))])
    total_value = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'), editable=False)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='diamonds')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.kapan_id} ({self.number_of_diamonds} pcs, {self.weight_in_karats} ct)"

    def apply_valuation(self, client=None):
        """Derive category and total value from the client's current rates"""
        self.category, self.total_value = value_for_client(
            client or self.client,
            self.weight_in_karats,
            self.number_of_diamonds,
            self.raw_damage_weight,
        )
        return self.total_value

    @property
    def weight_per_diamond(self):
        return weight_per_diamond(self.weight_in_karats, self.number_of_diamonds)

    @property
    def applied_rate(self):
        return applied_rate(self)

    def active_invoice_item(self):
        """The line billing this lot on a pending, paid or overdue invoice, if any"""
        from diamondbook.invoices.models import Invoice
        return self.invoice_items.select_related('invoice').filter(
            invoice__status__in=Invoice.ACTIVE_STATUSES
        ).first()

    def save(self, *args, **kwargs):
        if not self.category:
            self.apply_valuation()
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'diamonds'
        ordering = ['-entry_date', '-id']
        indexes = [
            models.Index(fields=['client', 'entry_date'], name='idx_diamond_client_date'),
            models.Index(fields=['kapan_id'], name='idx_diamond_kapan'),
            models.Index(fields=['category'], name='idx_diamond_category'),
        ]
