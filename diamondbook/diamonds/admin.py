from django.contrib import admin
from .models import Diamond


@admin.register(Diamond)
class DiamondAdmin(admin.ModelAdmin):
    list_display = ['kapan_id', 'client', 'entry_date', 'number_of_diamonds', 'weight_in_karats', 'category', 'raw_damage_weight', 'total_value']
    list_filter = ['category', 'entry_date', 'client']
    search_fields = ['kapan_id', 'client__name', 'client__company']
    ordering = ['-entry_date']
    date_hierarchy = 'entry_date'
    readonly_fields = ['category', 'total_value', 'created_by', 'created_at', 'updated_at']

    def save_model(self, request, obj, form, change):
        # Category and value are always derived from the client's rates
        obj.apply_valuation()
        if not change:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)
