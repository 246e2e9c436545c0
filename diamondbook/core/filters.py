import django_filters
from .models import AuditLog


class AuditLogFilter(django_filters.FilterSet):
    """Filter for the audit trail using django-filter"""

    action = django_filters.ChoiceFilter(choices=AuditLog.ACTION_CHOICES)
    model = django_filters.CharFilter(field_name='model_name', lookup_expr='exact')
    # Kapan id, invoice number, rate date, ...
    reference = django_filters.CharFilter(field_name='object_reference', lookup_expr='exact')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = AuditLog
        fields = ['action', 'model', 'reference', 'date_from', 'date_to']
