# order/models.py
from decimal import Decimal
from django.db import models
from django.core.validators import MinValueValidator
from django.utils import timezone
import uuid


class Order(models.Model):
    PAYMENT_PENDING = 'pending'
    PAYMENT_COMPLETED = 'completed'
    PAYMENT_FAILED = 'failed'

    PAYMENT_STATUS = [
        (PAYMENT_PENDING, 'Pending'),
        (PAYMENT_COMPLETED, 'Completed'),
        (PAYMENT_FAILED, 'Failed'),
    ]

    DELIVERY_PENDING = 'pending'
    DELIVERY_ON_MY_WAY = 'on_my_way'
    DELIVERY_DELIVERED = 'delivered'

    DELIVERY_STATUS = [
        (DELIVERY_PENDING, 'Pending'),
        (DELIVERY_ON_MY_WAY, 'On My Way'),
        (DELIVERY_DELIVERED, 'Delivered'),
    ]

    # Statuses a driver may set on an order assigned to them
    DRIVER_DELIVERY_STATUSES = (DELIVERY_ON_MY_WAY, DELIVERY_DELIVERED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=20, unique=True)
    customer = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='orders')

    # Delivery Information
    delivery_address = models.ForeignKey(
        'location.CustomerAddress',
        on_delete=models.SET_NULL,
        null=True,
        related_name='orders'
    )
    scheduled_delivery_date = models.DateField()
    customer_note = models.TextField(blank=True)

    # Driver Information
    assigned_driver = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='deliveries'
    )
    driver_assigned_at = models.DateTimeField(null=True, blank=True)
    driver_notes = models.TextField(blank=True)

    # Order Details (fixed at checkout, never recomputed)
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    delivery_charges = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(0)]
    )
    total = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])

    # Payment Information
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS, default=PAYMENT_PENDING)
    stripe_payment_intent_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Gateway reference; written once and used for payment reconciliation"
    )

    # Delivery Tracking
    delivery_status = models.CharField(max_length=20, choices=DELIVERY_STATUS, default=DELIVERY_PENDING)
    delivered_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['assigned_driver', 'delivery_status'], name='orders_driver_status_idx'),
            models.Index(fields=['scheduled_delivery_date'], name='orders_sched_date_idx'),
        ]

    def __str__(self):
        return f"Order {self.order_number} - {self.customer.email}"

    @property
    def is_delivered(self):
        return self.delivery_status == self.DELIVERY_DELIVERED

    @property
    def items_count(self):
        return self.items.count()

    def set_delivery_status(self, new_status, now=None):
        """
        Move to ``new_status`` keeping ``delivered_at`` in step: stamped (again)
        on every transition into delivered, cleared when leaving it.
        """
        self.delivery_status = new_status
        if new_status == self.DELIVERY_DELIVERED:
            self.delivered_at = now or timezone.now()
        else:
            self.delivered_at = None


class OrderItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('products.Product', on_delete=models.PROTECT, related_name='order_items')
    product_name = models.CharField(max_length=255, help_text="Product name at purchase time")
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    price_at_purchase = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    line_total = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_items'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.quantity} x {self.product_name}"


class OrderStatusUpdate(models.Model):
    """Audit trail of payment, delivery and driver changes on an order"""
    FIELD_PAYMENT = 'payment_status'
    FIELD_DELIVERY = 'delivery_status'
    FIELD_DRIVER = 'assigned_driver'

    FIELD_CHOICES = [
        (FIELD_PAYMENT, 'Payment status'),
        (FIELD_DELIVERY, 'Delivery status'),
        (FIELD_DRIVER, 'Assigned driver'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='status_updates')
    field = models.CharField(max_length=20, choices=FIELD_CHOICES)
    old_value = models.CharField(max_length=255, blank=True)
    new_value = models.CharField(max_length=255, blank=True)
    updated_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        help_text="Empty when the change came from the payment gateway"
    )
    note = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_status_updates'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.order.order_number} {self.field}: {self.old_value} → {self.new_value}"


class Cart(models.Model):
    """Shopping cart - exactly one per customer, emptied but never deleted"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.OneToOneField('accounts.User', on_delete=models.CASCADE, related_name='cart')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'carts'

    def __str__(self):
        return f"Cart - {self.customer.email}"

    @property
    def items_count(self):
        return self.items.count()

    @property
    def subtotal(self):
        """Cart value at live catalog prices (informational; checkout snapshots its own)"""
        return sum(
            (item.product.price * item.quantity for item in self.items.select_related('product')
             if item.product.price is not None),
            Decimal('0.00')
        )


class CartItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('products.Product', on_delete=models.CASCADE, related_name='cart_items')
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'cart_items'
        unique_together = ['cart', 'product']
        ordering = ['created_at']

    def __str__(self):
        return f"{self.quantity} x {self.product.name}"
