from rest_framework import serializers
from decimal import Decimal
from diamondbook.clients.models import Client
from diamondbook.pricing.models import MarketRate
from .models import Diamond
from .valuation import (
    CATEGORY_CHOICES, ValuationError,
    calculate_value, determine_category, value_for_client, weight_per_diamond,
)


class DiamondSerializer(serializers.ModelSerializer):
    """
    Diamond lot. ``category`` and ``total_value`` are always derived from the
    client's rates on create and update; values sent by the caller are ignored.
    """
    client_name = serializers.CharField(source='client.name', read_only=True)
    weight_per_diamond = serializers.SerializerMethodField()
    applied_rate = serializers.SerializerMethodField()

    class Meta:
        model = Diamond
        fields = [
            'id', 'entry_date', 'client', 'client_name', 'kapan_id', 'number_of_diamonds',
            'weight_in_karats', 'market_rate', 'category', 'raw_damage_weight', 'total_value',
            'weight_per_diamond', 'applied_rate', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['category', 'total_value', 'created_by', 'created_at', 'updated_at']

    def get_weight_per_diamond(self, obj):
        return float(round(obj.weight_per_diamond, 4))

    def get_applied_rate(self, obj):
        return float(obj.applied_rate)

    def validate_kapan_id(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Kapan ID cannot be blank.')
        return value

    def validate(self, attrs):
        def current(field):
            if field in attrs:
                return attrs[field]
            return getattr(self.instance, field, None)

        client = current('client')
        weight = current('weight_in_karats')
        count = current('number_of_diamonds')
        damage = current('raw_damage_weight')

        if damage is not None and weight is not None and damage > weight:
            raise serializers.ValidationError({'raw_damage_weight': 'Raw damage weight cannot exceed the lot weight.'})

        try:
            attrs['category'], attrs['total_value'] = value_for_client(client, weight, count, damage)
        except ValuationError as e:
            raise serializers.ValidationError({'non_field_errors': [str(e)]})

        if self.instance is None and 'market_rate' not in attrs:
            latest = MarketRate.latest()
            attrs['market_rate'] = latest.rate_for_category(attrs['category']) if latest else Decimal('0.00')
        return attrs


class DiamondEstimateSerializer(serializers.Serializer):
    """Inputs for a live valuation preview of a lot that has not been saved"""
    client = serializers.PrimaryKeyRelatedField(queryset=Client.objects.all(), required=False, allow_null=True)
    weight_in_karats = serializers.DecimalField(max_digits=10, decimal_places=3, min_value=Decimal('0'))
    number_of_diamonds = serializers.IntegerField(min_value=1)
    raw_damage_weight = serializers.DecimalField(max_digits=10, decimal_places=3, min_value=Decimal('0'), required=False, allow_null=True)
    four_p_plus_rate = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)
    four_p_minus_rate = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)

    def validate(self, attrs):
        damage = attrs.get('raw_damage_weight')
        if damage is not None and damage > attrs['weight_in_karats']:
            raise serializers.ValidationError({'raw_damage_weight': 'Raw damage weight cannot exceed the lot weight.'})

        client = attrs.get('client')
        if client is not None:
            attrs.setdefault('four_p_plus_rate', client.four_p_plus_rate)
            attrs.setdefault('four_p_minus_rate', client.four_p_minus_rate)
        missing = [f for f in ('four_p_plus_rate', 'four_p_minus_rate') if f not in attrs]
        if missing:
            raise serializers.ValidationError({f: 'Provide a client or explicit rates.' for f in missing})
        return attrs

    def estimate(self):
        data = self.validated_data
        category = determine_category(data['weight_in_karats'], data['number_of_diamonds'])
        value = calculate_value(
            category,
            data['weight_in_karats'],
            data['number_of_diamonds'],
            data['four_p_plus_rate'],
            data['four_p_minus_rate'],
            data.get('raw_damage_weight'),
        )
        return {
            'category': category,
            'total_value': value,
            'weight_per_diamond': round(weight_per_diamond(data['weight_in_karats'], data['number_of_diamonds']), 4),
        }


class CategoryRequestSerializer(serializers.Serializer):
    weight_in_karats = serializers.DecimalField(max_digits=10, decimal_places=3, min_value=Decimal('0'))
    number_of_diamonds = serializers.IntegerField(min_value=1)


class ValueRequestSerializer(DiamondEstimateSerializer):
    """Explicit category valuation: the category is given rather than derived"""
    category = serializers.ChoiceField(choices=CATEGORY_CHOICES)
