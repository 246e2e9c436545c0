from django.contrib import admin
from .models import MarketRate


@admin.register(MarketRate)
class MarketRateAdmin(admin.ModelAdmin):
    list_display = ['date', 'four_p_plus_rate', 'four_p_minus_rate', 'created_by', 'created_at']
    list_filter = ['date']
    ordering = ['-date']
    date_hierarchy = 'date'
    readonly_fields = ['created_by', 'created_at', 'updated_at']
