from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from decimal import Decimal
from diamondbook.core.models import User
from diamondbook.diamonds.valuation import FOUR_P_PLUS


class MarketRate(models.Model):
    """Daily reference rates, suggested as defaults for new diamond entries"""
    date = models.DateField(default=timezone.localdate, unique=True)
    # Reference rate per karat for 4P Plus lots
    four_p_plus_rate = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    # Reference rate per piece for 4P Minus lots
    four_p_minus_rate = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='market_rates')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.date}: {self.four_p_plus_rate} / {self.four_p_minus_rate}"

    @classmethod
    def latest(cls):
        """Most recent market rate, or None when none has been recorded"""
        return cls.objects.order_by('-date', '-id').first()

    def rate_for_category(self, category):
        if category == FOUR_P_PLUS:
            return self.four_p_plus_rate
        return self.four_p_minus_rate

    class Meta:
        db_table = 'market_rates'
        ordering = ['-date']
