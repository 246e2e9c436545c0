import django_filters
from .models import MarketRate


class MarketRateFilter(django_filters.FilterSet):
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    class Meta:
        model = MarketRate
        fields = ['date_from', 'date_to']
