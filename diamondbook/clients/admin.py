from django.contrib import admin
from .models import Client


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'contact_person', 'phone', 'four_p_plus_rate', 'four_p_minus_rate', 'payment_terms', 'created_at']
    list_filter = ['payment_terms', 'created_at']
    search_fields = ['name', 'company', 'contact_person', 'phone', 'email']
    ordering = ['name']
    readonly_fields = ['created_by', 'created_at', 'updated_at']
