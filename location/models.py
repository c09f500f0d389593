# location/models.py
from django.db import models
import uuid


class CustomerAddress(models.Model):
    """Customer delivery addresses"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='addresses')

    # Address details
    label = models.CharField(max_length=100, help_text="e.g., Home, Office, Shop")
    street_address = models.TextField()
    landmark = models.CharField(max_length=255, blank=True, help_text="Nearby landmark")
    city = models.CharField(max_length=255, blank=True)
    region = models.CharField(max_length=255, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)

    # Contact info
    recipient_name = models.CharField(max_length=255, blank=True)
    recipient_phone = models.CharField(max_length=20, blank=True)
    additional_notes = models.TextField(blank=True)

    # Status
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'customer_addresses'
        ordering = ['-is_default', 'label']
        indexes = [
            models.Index(fields=['customer', 'is_default'], name='addresses_customer_default_idx'),
        ]

    def __str__(self):
        return f"{self.customer.email} - {self.label}"

    def clean(self):
        # Ensure only one default address per customer
        if self.is_default:
            CustomerAddress.objects.filter(
                customer=self.customer,
                is_default=True
            ).exclude(id=self.id).update(is_default=False)

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)
