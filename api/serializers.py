"""
Serializers for the ShopHub REST API
"""

from django.contrib.auth import authenticate
from rest_framework import serializers

from ShopHub.exceptions import AuthenticationError
from accounts.models import User
from location.serializers import CustomerAddressSerializer
from order.cart_utils import MAX_LINE_QUANTITY
from order.models import Order, OrderItem
from products.models import Category, Product


# ============================================
# AUTH SERIALIZERS
# ============================================

class UserSerializer(serializers.ModelSerializer):
    avatar_url = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = (
            'id', 'email', 'name', 'phone_number', 'role', 'status',
            'is_available', 'is_verified', 'avatar_url', 'date_joined'
        )
        read_only_fields = ('id', 'email', 'role', 'status', 'is_available', 'is_verified', 'date_joined')

    def get_avatar_url(self, obj):
        return getattr(obj.avatar, 'url', None) if obj.avatar else None


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6)
    password_confirm = serializers.CharField(write_only=True, min_length=6)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    phone_number = serializers.CharField(max_length=20, required=False, allow_blank=True)

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs.pop('password_confirm'):
            raise serializers.ValidationError({'password_confirm': "Passwords do not match."})
        return attrs

    def create(self, validated_data):
        return User.objects.create_user(role=User.ROLE_USER, **validated_data)


class LoginSerializer(serializers.Serializer):
    """Email and password login"""
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        user = authenticate(
            request=self.context.get('request'),
            email=attrs['email'],
            password=attrs['password'],
        )
        if not user:
            raise AuthenticationError('Invalid email or password')
        if user.status != 'active':
            raise AuthenticationError('Account is not active')

        attrs['user'] = user
        return attrs


# ============================================
# CATALOG SERIALIZERS
# ============================================

class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ('id', 'name', 'slug', 'description')


class ProductSerializer(serializers.ModelSerializer):
    category = CategorySerializer(read_only=True)
    image_url = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ('id', 'name', 'description', 'category', 'price', 'image_url', 'stock', 'is_active')

    def get_image_url(self, obj):
        return obj.get_image_url()


# ============================================
# CART SERIALIZERS
# ============================================

class CartItemCreateSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_LINE_QUANTITY, default=1)


class CartItemRemoveSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()


# ============================================
# ORDER SERIALIZERS
# ============================================

class OrderItemSerializer(serializers.ModelSerializer):
    product_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = OrderItem
        fields = ('id', 'product_id', 'product_name', 'quantity', 'price_at_purchase', 'line_total')


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ('id', 'name', 'email', 'phone_number')


class DriverSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ('id', 'name', 'email', 'phone_number', 'is_available')


class OrderSerializer(serializers.ModelSerializer):
    """Complete order details"""
    customer = UserSummarySerializer(read_only=True)
    delivery_address = CustomerAddressSerializer(read_only=True)
    assigned_driver = DriverSummarySerializer(read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = (
            'id', 'order_number', 'customer', 'delivery_address', 'scheduled_delivery_date',
            'customer_note', 'items', 'subtotal', 'delivery_charges', 'total',
            'payment_status', 'stripe_payment_intent_id', 'delivery_status', 'delivered_at',
            'assigned_driver', 'driver_assigned_at', 'driver_notes', 'created_at', 'updated_at'
        )
        read_only_fields = fields


# ============================================
# DRIVER SERIALIZERS
# ============================================

class DriverSerializer(serializers.ModelSerializer):
    """Driver with the number of deliveries still in progress"""
    active_deliveries = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ('id', 'name', 'email', 'phone_number', 'status', 'is_available', 'active_deliveries')

    def get_active_deliveries(self, obj):
        return obj.deliveries.exclude(delivery_status=Order.DELIVERY_DELIVERED).count()
