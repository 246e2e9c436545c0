from django.contrib import admin
from .models import Invoice, InvoiceItem


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ['diamond', 'description', 'category', 'quantity', 'weight_in_karats', 'raw_damage_weight', 'price']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'client', 'issue_date', 'due_date', 'status', 'total_amount', 'payment_method', 'payment_date', 'created_by']
    list_filter = ['status', 'payment_method', 'issue_date']
    search_fields = ['invoice_number', 'client__name']
    ordering = ['-issue_date']
    date_hierarchy = 'issue_date'
    inlines = [InvoiceItemInline]
    readonly_fields = ['invoice_number', 'total_amount', 'created_by', 'created_at', 'updated_at']
