from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from decimal import Decimal
from diamondbook.core.models import User


phone_validator = RegexValidator(
    regex=r'^[0-9+\- ]{10,15}$',
    message='Phone number must be 10-15 characters of digits, spaces, "+" or "-".',
)


class Client(models.Model):
    """Trading clients with their negotiated 4P rates"""
    name = models.CharField(max_length=200)
    contact_person = models.CharField(max_length=200)
    phone = models.CharField(max_length=20, blank=True, null=True, validators=[phone_validator])
    email = models.EmailField(blank=True, null=True)
    company = models.CharField(max_length=200)
    location = models.CharField(max_length=200, blank=True, null=True)
    # Rate per karat, applied to 4P Plus lots
    four_p_plus_rate = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    # Rate per piece, applied to 4P Minus lots
    four_p_minus_rate = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    payment_terms = models.CharField(max_length=100, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='clients')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'clients'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['name'], name='idx_client_name'),
        ]
