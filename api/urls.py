"""
API URL routing for the ShopHub mobile and admin apps
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from payments.views import StripeWebhookView
from .views import (
    # Auth
    RegisterView, LoginView, ProfileView, TokenRefreshEnvelopeView,
    # Products
    ProductViewSet,
    # Cart & Addresses
    CartViewSet, CustomerAddressViewSet,
    # Orders
    OrderViewSet, AdminOrderViewSet,
    # Driver
    DriverViewSet,
)

router = DefaultRouter()
router.register(r'products', ProductViewSet, basename='product')
router.register(r'addresses', CustomerAddressViewSet, basename='customer-address')

app_name = 'api'

urlpatterns = [
    # Authentication Endpoints
    path('auth/register/', RegisterView.as_view(), name='register'),
    path('auth/login/', LoginView.as_view(), name='login'),
    path('auth/profile/', ProfileView.as_view(), name='profile'),
    path('auth/token/refresh/', TokenRefreshEnvelopeView.as_view(), name='token-refresh'),

    # Cart
    path('cart/', CartViewSet.as_view({'get': 'get_cart'}), name='cart-get'),
    path('cart/add/', CartViewSet.as_view({'post': 'add_item'}), name='cart-add-item'),
    path('cart/remove/', CartViewSet.as_view({'delete': 'remove_item'}), name='cart-remove-item'),
    path('cart/clear/', CartViewSet.as_view({'delete': 'clear_cart'}), name='cart-clear'),

    # Customer orders
    path('order/', OrderViewSet.as_view({'get': 'list'}), name='order-list'),
    path('order/create/', OrderViewSet.as_view({'post': 'create_order'}), name='order-create'),
    path('order/retry-payment/', OrderViewSet.as_view({'post': 'retry_payment'}), name='order-retry-payment'),
    path('order/check-payment-status/', OrderViewSet.as_view({'post': 'check_payment_status'}),
         name='order-check-payment-status'),

    # Staff order management
    path('order/update-status/', AdminOrderViewSet.as_view({'put': 'update_status'}), name='order-update-status'),
    path('order/update-payment-status/', AdminOrderViewSet.as_view({'put': 'update_payment_status'}),
         name='order-update-payment-status'),
    path('order/assign-driver/', AdminOrderViewSet.as_view({'post': 'assign_driver'}), name='order-assign-driver'),
    path('order/unassign-driver/', AdminOrderViewSet.as_view({'put': 'unassign_driver'}),
         name='order-unassign-driver'),
    path('order/unassigned/', AdminOrderViewSet.as_view({'get': 'unassigned'}), name='order-unassigned'),
    path('order/all/', AdminOrderViewSet.as_view({'get': 'all_orders'}), name='order-all'),
    path('order/sales/', AdminOrderViewSet.as_view({'get': 'sales_summary'}), name='order-sales'),
    path('order/sales/weekly/', AdminOrderViewSet.as_view({'get': 'weekly_sales'}), name='order-sales-weekly'),
    path('order/sales/monthly/', AdminOrderViewSet.as_view({'get': 'monthly_sales'}), name='order-sales-monthly'),
    path('order/drivers/', AdminOrderViewSet.as_view({'get': 'drivers'}), name='driver-list'),
    path('order/driver-stats/<uuid:driver_id>/', AdminOrderViewSet.as_view({'get': 'driver_stats'}),
         name='driver-stats-admin'),

    # Driver self-service
    path('order/my-deliveries/', DriverViewSet.as_view({'get': 'my_deliveries'}), name='driver-deliveries'),
    path('order/driver-stats/', DriverViewSet.as_view({'get': 'stats'}), name='driver-stats'),
    path('order/update-delivery-status/', DriverViewSet.as_view({'put': 'update_delivery_status'}),
         name='order-update-delivery-status'),
    path('order/update-availability/', DriverViewSet.as_view({'put': 'update_availability'}),
         name='driver-update-availability'),

    # Payments
    path('gateway/webhook/', StripeWebhookView.as_view(), name='gateway-webhook'),

    # Router includes
    path('', include(router.urls)),
]
