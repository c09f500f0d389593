# location/serializers.py
from rest_framework import serializers
from .models import CustomerAddress


class CustomerAddressSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomerAddress
        fields = ['id', 'customer', 'label', 'street_address', 'landmark',
                  'city', 'region', 'postal_code', 'country',
                  'recipient_name', 'recipient_phone', 'additional_notes',
                  'is_default', 'is_active', 'created_at']
        read_only_fields = ['customer', 'is_active', 'created_at']
