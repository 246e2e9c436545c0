import django_filters
from django.db.models import Q
from diamondbook.invoices.models import Invoice
from .models import Diamond
from .valuation import CATEGORY_CHOICES


class DiamondFilter(django_filters.FilterSet):
    """Filter for the diamond inventory list using django-filter"""

    # Basic search - kapan id, client name or company
    search = django_filters.CharFilter(method='filter_search', label='Search')

    client = django_filters.NumberFilter(field_name='client_id', lookup_expr='exact')
    category = django_filters.ChoiceFilter(choices=CATEGORY_CHOICES)
    kapan = django_filters.CharFilter(field_name='kapan_id', lookup_expr='iexact')
    date_from = django_filters.DateFilter(field_name='entry_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='entry_date', lookup_expr='lte')
    min_weight = django_filters.NumberFilter(field_name='weight_in_karats', lookup_expr='gte')
    max_weight = django_filters.NumberFilter(field_name='weight_in_karats', lookup_expr='lte')
    invoiced = django_filters.BooleanFilter(method='filter_invoiced', label='Invoiced')

    class Meta:
        model = Diamond
        fields = ['search', 'client', 'category', 'kapan', 'date_from', 'date_to',
                  'min_weight', 'max_weight', 'invoiced']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(kapan_id__icontains=value) |
            Q(client__name__icontains=value) |
            Q(client__company__icontains=value)
        )

    def filter_invoiced(self, queryset, name, value):
        """Lots that are (or are not) billed on a pending, paid or overdue invoice"""
        on_invoice = Q(invoice_items__invoice__status__in=Invoice.ACTIVE_STATUSES)
        if value:
            return queryset.filter(on_invoice).distinct()
        return queryset.exclude(on_invoice)
