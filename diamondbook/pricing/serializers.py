from rest_framework import serializers
from .models import MarketRate


class MarketRateSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True)

    class Meta:
        model = MarketRate
        fields = [
            'id', 'date', 'four_p_plus_rate', 'four_p_minus_rate',
            'created_by', 'created_by_username', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']
        # Uniqueness of date is handled as an upsert in the view
        validators = []
        extra_kwargs = {'date': {'validators': []}}

    def validate_date(self, value):
        if self.instance is not None:
            clash = MarketRate.objects.filter(date=value).exclude(pk=self.instance.pk)
            if clash.exists():
                raise serializers.ValidationError('Market rates for this date already exist.')
        return value
