# location/admin.py
from django.contrib import admin
from .models import CustomerAddress


@admin.register(CustomerAddress)
class CustomerAddressAdmin(admin.ModelAdmin):
    list_display = ['label', 'customer_email', 'city', 'region', 'is_default', 'is_active', 'created_at']
    list_filter = ['is_default', 'is_active', 'city', 'region']
    search_fields = ['label', 'street_address', 'city', 'customer__email', 'recipient_name']
    list_select_related = ['customer']
    readonly_fields = ['created_at', 'updated_at']

    def customer_email(self, obj):
        return obj.customer.email
    customer_email.short_description = 'Customer'
