import django_filters
from .models import Invoice


class InvoiceFilter(django_filters.FilterSet):
    """Filter for the invoice list using django-filter"""

    # Invoice number search
    search = django_filters.CharFilter(method='filter_search', label='Search')

    client = django_filters.NumberFilter(field_name='client_id', lookup_expr='exact')
    status = django_filters.ChoiceFilter(choices=Invoice.STATUS_CHOICES)
    date_from = django_filters.DateFilter(field_name='issue_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='issue_date', lookup_expr='lte')

    class Meta:
        model = Invoice
        fields = ['search', 'client', 'status', 'date_from', 'date_to']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(invoice_number__icontains=value)
