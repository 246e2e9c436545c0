from rest_framework import serializers
from .models import Client


class ClientSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True)

    class Meta:
        model = Client
        fields = [
            'id', 'name', 'contact_person', 'phone', 'email', 'company', 'location',
            'four_p_plus_rate', 'four_p_minus_rate', 'payment_terms', 'notes',
            'created_by', 'created_by_username', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name cannot be blank.')
        return value
