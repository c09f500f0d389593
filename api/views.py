"""
API views for the ShopHub mobile and admin apps
Endpoints for:
- Customer authentication (register, login, profile, token refresh)
- Product catalog browsing
- Cart management
- Delivery addresses
- Order checkout, payment status and staff order management
- Driver directory and driver delivery updates
"""

from rest_framework import viewsets, status, generics
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView
from django.db.models import Q
import logging

from ShopHub.exceptions import NotFoundError, ValidationError
from ShopHub.responses import api_response, api_error
from accounts import drivers as driver_directory
from location.models import CustomerAddress
from location.serializers import CustomerAddressSerializer
from order.cart_utils import CartService
from order import sales
from order import services as order_services
from order.services import OrderLifecycleService
from payments.gateway import get_gateway
from products.models import Product

from .permissions import IsAdminRole, IsDriverRole
from .serializers import (
    # Auth
    UserSerializer, RegisterSerializer, LoginSerializer,
    # Products
    ProductSerializer,
    # Cart
    CartItemCreateSerializer, CartItemRemoveSerializer,
    # Orders
    OrderSerializer,
    # Driver
    DriverSerializer,
)

logger = logging.getLogger(__name__)


def _tokens_for(user):
    refresh = RefreshToken.for_user(user)
    return {
        'access': str(refresh.access_token),
        'refresh': str(refresh),
    }


def _parse_bool_param(value, name):
    if value is None or value == '':
        return None
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    raise ValidationError(f'{name} must be true or false')


class OrderServiceMixin:
    """Builds the order service around the payment gateway configured at startup"""

    @property
    def order_service(self):
        return OrderLifecycleService(get_gateway())


# ============================================
# AUTHENTICATION VIEWS
# ============================================

class RegisterView(generics.GenericAPIView):
    """Customer registration endpoint"""
    permission_classes = [AllowAny]
    authentication_classes = []
    serializer_class = RegisterSerializer

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f'[Auth] Registered user {user.pk}')

        return api_response(
            'Registration successful',
            {'user': UserSerializer(user).data, **_tokens_for(user)},
            status=status.HTTP_201_CREATED,
        )


class LoginView(generics.GenericAPIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    serializer_class = LoginSerializer

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = serializer.validated_data['user']
        return api_response('Login successful', {'user': UserSerializer(user).data, **_tokens_for(user)})


class ProfileView(generics.GenericAPIView):
    """Get/update the signed-in user's profile"""
    permission_classes = [IsAuthenticated]
    serializer_class = UserSerializer

    def get(self, request, *args, **kwargs):
        return api_response('Profile fetched successfully', self.get_serializer(request.user).data)

    def patch(self, request, *args, **kwargs):
        serializer = self.get_serializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response('Profile updated successfully', serializer.data)


class TokenRefreshEnvelopeView(TokenRefreshView):
    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        return api_response('Token refreshed', response.data)


# ============================================
# CATALOG
# ============================================

class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    """Read-only product catalog"""
    permission_classes = [AllowAny]
    serializer_class = ProductSerializer
    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def get_queryset(self):
        queryset = Product.objects.filter(is_active=True).select_related('category')
        category = self.request.query_params.get('category')
        search = self.request.query_params.get('search')
        if category:
            queryset = queryset.filter(category__slug=category)
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(description__icontains=search))
        return queryset

    def list(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_queryset(), many=True)
        return api_response('Products fetched successfully', serializer.data)

    def retrieve(self, request, pk=None, *args, **kwargs):
        product = self.get_queryset().filter(pk=pk).first()
        if product is None:
            raise NotFoundError('Product not found')
        return api_response('Product fetched successfully', self.get_serializer(product).data)


# ============================================
# CART
# ============================================

class CartViewSet(viewsets.ViewSet):
    """Shopping cart management"""
    permission_classes = [IsAuthenticated]

    def get_cart(self, request):
        cart = CartService.get_cart(request.user)
        return api_response('Cart fetched successfully', CartService.get_cart_summary(cart))

    def add_item(self, request):
        serializer = CartItemCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        product = Product.objects.filter(pk=serializer.validated_data['product_id']).first()
        if product is None:
            raise NotFoundError('Product not found')

        CartService.add_to_cart(request.user, product, serializer.validated_data['quantity'])
        cart = CartService.get_cart(request.user)
        return api_response('Item added to cart', CartService.get_cart_summary(cart))

    def remove_item(self, request):
        serializer = CartItemRemoveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        CartService.remove_from_cart(request.user, serializer.validated_data['product_id'])
        cart = CartService.get_cart(request.user)
        return api_response('Item removed from cart', CartService.get_cart_summary(cart))

    def clear_cart(self, request):
        removed = CartService.clear_cart(request.user)
        return api_response('Cart cleared', {'removed_items': removed})


# ============================================
# ADDRESSES
# ============================================

class CustomerAddressViewSet(viewsets.ModelViewSet):
    """Customer delivery addresses"""
    permission_classes = [IsAuthenticated]
    serializer_class = CustomerAddressSerializer
    lookup_value_regex = '[0-9a-fA-F-]{36}'
    http_method_names = ['get', 'post', 'put', 'patch', 'delete']

    def get_queryset(self):
        return CustomerAddress.objects.filter(customer=self.request.user, is_active=True)

    def get_object(self):
        address = self.get_queryset().filter(pk=self.kwargs.get('pk')).first()
        if address is None:
            raise NotFoundError('Address not found')
        return address

    def perform_create(self, serializer):
        serializer.save(customer=self.request.user)

    def perform_destroy(self, instance):
        # Past orders keep pointing at the address
        instance.is_active = False
        instance.is_default = False
        instance.save(update_fields=['is_active', 'is_default', 'updated_at'])

    def list(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_queryset(), many=True)
        return api_response('Addresses fetched successfully', serializer.data)

    def retrieve(self, request, *args, **kwargs):
        return api_response('Address fetched successfully', self.get_serializer(self.get_object()).data)

    def create(self, request, *args, **kwargs):
        response = super().create(request, *args, **kwargs)
        return api_response('Address created successfully', response.data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        response = super().update(request, *args, **kwargs)
        return api_response('Address updated successfully', response.data)

    def destroy(self, request, *args, **kwargs):
        self.perform_destroy(self.get_object())
        return api_response('Address deleted successfully')


# ============================================
# ORDERS (CUSTOMER)
# ============================================

class OrderPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'limit'
    max_page_size = 100
    page_query_param = 'page'

    def get_paginated_response(self, data):
        page = self.page
        return api_response('Orders fetched successfully', {
            'orders': data,
            'pagination': {
                'current_page': page.number,
                'total_pages': page.paginator.num_pages,
                'total_orders': page.paginator.count,
                'has_next_page': page.has_next(),
                'has_prev_page': page.has_previous(),
            },
        })


class OrderViewSet(OrderServiceMixin, viewsets.ViewSet):
    """Customer order endpoints"""
    permission_classes = [IsAuthenticated]

    def list(self, request):
        orders = self.order_service.orders_for_customer(request.user)
        return api_response('Orders fetched successfully', OrderSerializer(orders, many=True).data)

    @staticmethod
    def _payment_payload(result):
        order = result.order
        intent = result.payment_intent
        return {
            'order_id': str(order.pk),
            'order_number': order.order_number,
            'stripe_payment_intent_id': intent.reference,
            'client_secret': intent.client_secret,
            'payment_amount': str(order.total),
            'payment_currency': (intent.currency or '').upper(),
            'payment_status': order.payment_status,
        }

    @action(detail=False, methods=['post'])
    def create_order(self, request):
        """Create an order from the cart and start payment"""
        data = request.data
        result = self.order_service.checkout(
            request.user,
            address_id=data.get('address_id'),
            scheduled_delivery_date=data.get('scheduled_delivery_date'),
            delivery_charges=data.get('delivery_charges', 0),
            customer_note=data.get('customer_note', ''),
        )
        order = result.order

        payload = self._payment_payload(result)
        payload.update({
            'delivery_address': str(order.delivery_address_id),
            'scheduled_delivery_date': order.scheduled_delivery_date,
            'items': order.items_count,
            'subtotal': str(order.subtotal),
            'delivery_charges': str(order.delivery_charges),
            'total': str(order.total),
        })
        return api_response(
            'Order created. Complete payment to confirm.',
            payload,
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=['post'])
    def retry_payment(self, request):
        result = self.order_service.retry_payment(request.user, request.data.get('order_id'))
        return api_response('Payment is ready to be completed', self._payment_payload(result))

    @action(detail=False, methods=['post'])
    def check_payment_status(self, request):
        """Reconcile the order's payment with the provider and report the result"""
        result = self.order_service.check_payment_status(request.user, request.data.get('order_id'))
        order = result.order
        summary = {
            'order_id': str(order.pk),
            'order_number': order.order_number,
            'payment_status': order.payment_status,
            'delivery_status': order.delivery_status,
        }
        if result.provider_status:
            summary['provider_status'] = result.provider_status

        outcome = result.outcome
        if outcome == order_services.OUTCOME_COMPLETED:
            return api_response('Payment successful! Order confirmed.', {
                **summary,
                'order': OrderSerializer(order).data,
            })
        if outcome == order_services.OUTCOME_PROCESSING:
            return api_response('Payment is still being processed', summary, status=status.HTTP_202_ACCEPTED)
        if outcome == order_services.OUTCOME_PENDING:
            return api_response('Order payment status retrieved', summary)
        if outcome == order_services.OUTCOME_REQUIRES_PAYMENT_METHOD:
            return api_error('Payment method failed. Please try again.', summary)
        if outcome == order_services.OUTCOME_CANCELED:
            return api_error('Payment was canceled', summary)
        if outcome == order_services.OUTCOME_FAILED:
            return api_error('Payment failed. Please try again.', summary)
        return api_error(f'Payment status: {result.provider_status}', summary)


# ============================================
# ORDERS (ADMIN)
# ============================================

class AdminOrderViewSet(OrderServiceMixin, viewsets.ViewSet):
    """Staff order management"""
    permission_classes = [IsAdminRole]

    def update_status(self, request):
        order = self.order_service.update_delivery_status(
            request.user, request.data.get('order_id'), request.data.get('status')
        )
        return api_response('Order status updated successfully', OrderSerializer(order).data)

    def update_payment_status(self, request):
        order = self.order_service.update_payment_status(
            request.user, request.data.get('order_id'), request.data.get('status')
        )
        return api_response('Payment status updated successfully', OrderSerializer(order).data)

    def assign_driver(self, request):
        order = self.order_service.assign_driver(
            request.user, request.data.get('order_id'), request.data.get('driver_id')
        )
        return api_response('Driver assigned successfully', OrderSerializer(order).data)

    def unassign_driver(self, request):
        order = self.order_service.unassign_driver(request.user, request.data.get('order_id'))
        return api_response('Driver unassigned successfully', OrderSerializer(order).data)

    def unassigned(self, request):
        orders = self.order_service.unassigned_orders(date=request.query_params.get('date'))
        return api_response('Unassigned orders fetched successfully', OrderSerializer(orders, many=True).data)

    def all_orders(self, request):
        params = request.query_params
        orders = self.order_service.orders_for_admin(
            status=params.get('status'),
            driver_id=params.get('driver_id'),
            date=params.get('date'),
        )
        paginator = OrderPagination()
        page = paginator.paginate_queryset(orders, request, view=self)
        return paginator.get_paginated_response(OrderSerializer(page, many=True).data)

    def drivers(self, request):
        available = _parse_bool_param(request.query_params.get('available'), 'available')
        drivers = driver_directory.list_drivers(available=available)
        return api_response('Drivers fetched successfully', DriverSerializer(drivers, many=True).data)

    def driver_stats(self, request, driver_id=None):
        driver = driver_directory.get_driver(driver_id)
        return api_response('Driver stats fetched successfully', {
            'driver': DriverSerializer(driver).data,
            'stats': driver_directory.driver_stats(driver),
        })

    @staticmethod
    def _sales_anchor(request):
        date = request.query_params.get('date')
        return order_services.parse_filter_date(date) if date else None

    def sales_summary(self, request):
        return api_response('Order sales fetched successfully', sales.sales_summary(self._sales_anchor(request)))

    def weekly_sales(self, request):
        return api_response('Weekly sales fetched', sales.weekly_sales(self._sales_anchor(request)))

    def monthly_sales(self, request):
        return api_response('Monthly sales fetched', sales.monthly_sales(self._sales_anchor(request)))


# ============================================
# DRIVER SELF-SERVICE
# ============================================

class DriverViewSet(OrderServiceMixin, viewsets.ViewSet):
    """Driver delivery endpoints"""
    permission_classes = [IsDriverRole]

    def my_deliveries(self, request):
        params = request.query_params
        date = params.get('date')
        if date:
            date = order_services.parse_filter_date(date)
        deliveries = driver_directory.assigned_deliveries(
            request.user, delivery_status=params.get('status'), date=date
        )
        return api_response('Deliveries fetched successfully', OrderSerializer(deliveries, many=True).data)

    def stats(self, request):
        return api_response('Driver stats fetched successfully', driver_directory.driver_stats(request.user))

    def update_delivery_status(self, request):
        data = request.data
        order = self.order_service.driver_update_status(
            request.user, data.get('order_id'), data.get('status'), notes=data.get('notes')
        )
        return api_response('Delivery status updated successfully', OrderSerializer(order).data)

    def update_availability(self, request):
        driver = driver_directory.set_availability(request.user, request.data.get('is_available'))
        return api_response('Availability updated successfully', UserSerializer(driver).data)
