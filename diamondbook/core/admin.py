from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, CompanyDetails, AuditLog


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'phone', 'is_active', 'is_staff', 'last_login']
    list_filter = ['is_active', 'is_staff']
    search_fields = ['username', 'email', 'phone']
    ordering = ['username']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Contact', {'fields': ('phone',)}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Contact', {'fields': ('phone',)}),
    )


@admin.register(CompanyDetails)
class CompanyDetailsAdmin(admin.ModelAdmin):
    list_display = ['company_name', 'gst_number', 'bank_name', 'ifsc_code', 'updated_at']
    readonly_fields = ['created_at', 'updated_at']
    fieldsets = (
        ('Company', {'fields': ('company_name', 'address', 'phone', 'email', 'gst_number')}),
        ('Bank details (printed on invoices)', {
            'fields': ('bank_name', 'account_holder_name', 'account_number', 'ifsc_code', 'branch'),
        }),
        ('Timestamps', {'fields': ('created_at', 'updated_at')}),
    )

    def has_add_permission(self, request):
        # Single record
        return not CompanyDetails.objects.exists()


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'user', 'action', 'model_name', 'object_name', 'object_reference']
    list_filter = ['action', 'model_name']
    search_fields = ['user__username', 'object_name', 'object_reference']
    date_hierarchy = 'created_at'
    readonly_fields = [
        'user', 'action', 'model_name', 'object_id', 'object_name', 'object_reference',
        'changes', 'ip_address', 'created_at'
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
