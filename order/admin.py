from django.contrib import admin
from django.utils.html import format_html
from .models import Order, OrderItem, Cart, CartItem, OrderStatusUpdate


PAYMENT_COLORS = {
    Order.PAYMENT_PENDING: '#FFA500',      # Orange
    Order.PAYMENT_COMPLETED: '#228B22',    # Forest Green
    Order.PAYMENT_FAILED: '#DC143C',       # Crimson
}

DELIVERY_COLORS = {
    Order.DELIVERY_PENDING: '#FFA500',
    Order.DELIVERY_ON_MY_WAY: '#1E90FF',
    Order.DELIVERY_DELIVERED: '#228B22',
}


def _badge(color, text):
    return format_html(
        '<span style="color: white; background-color: {}; padding: 3px 8px; border-radius: 3px;">{}</span>',
        color,
        text
    )


class OrderItemInline(admin.TabularInline):
    """Inline display of order items within order admin"""
    model = OrderItem
    extra = 0
    fields = ('product', 'product_name', 'quantity', 'price_at_purchase', 'line_total')
    readonly_fields = fields
    can_delete = False


class OrderStatusUpdateInline(admin.TabularInline):
    model = OrderStatusUpdate
    extra = 0
    fields = ('field', 'old_value', 'new_value', 'updated_by', 'note', 'created_at')
    readonly_fields = fields
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Order management in Django admin"""
    list_display = (
        'order_number', 'customer_email', 'payment_status_colored',
        'delivery_status_colored', 'assigned_driver', 'total', 'scheduled_delivery_date', 'created_at_short'
    )
    list_filter = ('payment_status', 'delivery_status', 'scheduled_delivery_date', 'created_at')
    search_fields = ('order_number', 'customer__email', 'stripe_payment_intent_id')

    # Money and the gateway reference are fixed at checkout
    readonly_fields = (
        'id', 'order_number', 'customer', 'subtotal', 'delivery_charges', 'total',
        'stripe_payment_intent_id', 'driver_assigned_at', 'delivered_at', 'created_at', 'updated_at'
    )

    inlines = [OrderItemInline, OrderStatusUpdateInline]

    fieldsets = (
        ('Order Information', {
            'fields': ('id', 'order_number', 'customer', 'created_at', 'updated_at')
        }),
        ('Delivery Information', {
            'fields': (
                'delivery_address', 'scheduled_delivery_date', 'customer_note',
                'delivery_status', 'delivered_at'
            )
        }),
        ('Driver', {
            'fields': ('assigned_driver', 'driver_assigned_at', 'driver_notes')
        }),
        ('Payment Information', {
            'fields': ('payment_status', 'stripe_payment_intent_id')
        }),
        ('Financial Breakdown', {
            'fields': ('subtotal', 'delivery_charges', 'total')
        }),
    )

    def customer_email(self, obj):
        return obj.customer.email if obj.customer else "N/A"
    customer_email.short_description = 'Customer'

    def payment_status_colored(self, obj):
        return _badge(PAYMENT_COLORS.get(obj.payment_status, '#000000'), obj.get_payment_status_display())
    payment_status_colored.short_description = 'Payment'

    def delivery_status_colored(self, obj):
        return _badge(DELIVERY_COLORS.get(obj.delivery_status, '#000000'), obj.get_delivery_status_display())
    delivery_status_colored.short_description = 'Delivery'

    def created_at_short(self, obj):
        return obj.created_at.strftime('%d %b %Y %H:%M')
    created_at_short.short_description = 'Created'

    def save_model(self, request, obj, form, change):
        if 'delivery_status' in form.changed_data:
            obj.set_delivery_status(obj.delivery_status)
        super().save_model(request, obj, form, change)

    def has_add_permission(self, request):
        """Orders are created through checkout only"""
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ('id', 'customer', 'items_count', 'created_at_short')
    search_fields = ('customer__email',)
    readonly_fields = ('id', 'customer', 'created_at', 'updated_at')

    def items_count(self, obj):
        return obj.items.count()
    items_count.short_description = 'Items'

    def created_at_short(self, obj):
        return obj.created_at.strftime('%d %b %Y %H:%M')
    created_at_short.short_description = 'Created'

    def has_add_permission(self, request):
        return False


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ('cart', 'product', 'quantity')
    search_fields = ('cart__customer__email', 'product__name')
    readonly_fields = ('cart', 'product')

    def has_add_permission(self, request):
        return False


@admin.register(OrderStatusUpdate)
class OrderStatusUpdateAdmin(admin.ModelAdmin):
    """Order status change history"""
    list_display = ('order_number', 'field', 'old_value', 'new_value', 'updated_by', 'created_at_short')
    list_filter = ('field', 'created_at')
    search_fields = ('order__order_number',)
    readonly_fields = ('order', 'field', 'old_value', 'new_value', 'updated_by', 'note', 'created_at')

    def order_number(self, obj):
        return obj.order.order_number
    order_number.short_description = 'Order'

    def created_at_short(self, obj):
        return obj.created_at.strftime('%d %b %Y %H:%M')
    created_at_short.short_description = 'Changed At'

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
