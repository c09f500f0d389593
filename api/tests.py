"""
API Tests for the ShopHub mobile and admin apps

Test coverage:
- Authentication (register, login, profile, token refresh)
- Response envelope for success and failure
- Product catalog browsing
- Cart and address management
- Order checkout and payment status
- Staff order management and driver directory
- Driver delivery handling
"""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

from django.apps import apps
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import User
from location.models import CustomerAddress
from order.cart_utils import CartService
from order.models import Order
from payments.testing import FakeGateway
from products.models import Category, Product


class APITestCase(TestCase):
    """Shared users, catalog and a fake payment gateway"""

    def setUp(self):
        self.client = APIClient()

        self.gateway = FakeGateway()
        patcher = patch.object(apps.get_app_config('payments'), 'gateway', self.gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.customer = User.objects.create_user(
            email='john@example.com', password='testpass123', name='John Doe'
        )
        self.admin = User.objects.create_user(
            email='admin@example.com', password='testpass123', role=User.ROLE_ADMIN
        )
        self.driver = User.objects.create_user(
            email='driver@example.com', password='testpass123', role=User.ROLE_DRIVER, name='Dan'
        )
        self.address = CustomerAddress.objects.create(
            customer=self.customer, label='Home', street_address='1 Main St', is_default=True
        )
        self.category = Category.objects.create(name='Drinks')
        self.coffee = Product.objects.create(
            name='Coffee', description='Dark roast', category=self.category,
            price=Decimal('10.00'), stock=20
        )
        self.tea = Product.objects.create(name='Tea', price=Decimal('5.50'), stock=20)
        self.tomorrow = timezone.localdate() + timedelta(days=1)

    def assertEnvelope(self, response, status_code, success=True):
        self.assertEqual(response.status_code, status_code)
        self.assertEqual(response.data['statusCode'], status_code)
        self.assertEqual(response.data['success'], success)
        self.assertIn('message', response.data)
        self.assertIn('data' if success else 'error', response.data)

    def make_order(self, number, **fields):
        values = {
            'order_number': number,
            'customer': self.customer,
            'delivery_address': self.address,
            'scheduled_delivery_date': self.tomorrow,
            'subtotal': Decimal('20.00'),
            'total': Decimal('20.00'),
        }
        values.update(fields)
        return Order.objects.create(**values)


class AuthAPITestCase(APITestCase):

    def test_register(self):
        data = {
            'email': 'New@Example.com',
            'password': 'testpass123',
            'password_confirm': 'testpass123',
            'name': 'New Customer',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')

        self.assertEnvelope(response, status.HTTP_201_CREATED)
        self.assertIn('access', response.data['data'])
        self.assertIn('refresh', response.data['data'])
        user = User.objects.get(email='new@example.com')
        self.assertEqual(user.role, User.ROLE_USER)

    def test_register_validation(self):
        data = {'email': 'john@example.com', 'password': 'testpass123', 'password_confirm': 'other123'}
        response = self.client.post('/api/v1/auth/register/', data, format='json')

        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)
        self.assertIn('email', response.data['error'])

    def test_login_and_refresh(self):
        response = self.client.post(
            '/api/v1/auth/login/', {'email': 'john@example.com', 'password': 'testpass123'}, format='json'
        )
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['user']['email'], 'john@example.com')

        refresh = response.data['data']['refresh']
        response = self.client.post('/api/v1/auth/token/refresh/', {'refresh': refresh}, format='json')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertIn('access', response.data['data'])

    def test_login_rejects_bad_credentials(self):
        response = self.client.post(
            '/api/v1/auth/login/', {'email': 'john@example.com', 'password': 'nope'}, format='json'
        )
        self.assertEnvelope(response, status.HTTP_401_UNAUTHORIZED, success=False)
        self.assertEqual(response.data['message'], 'Invalid email or password')

    def test_login_rejects_suspended_account(self):
        User.objects.filter(pk=self.customer.pk).update(status='suspended')
        response = self.client.post(
            '/api/v1/auth/login/', {'email': 'john@example.com', 'password': 'testpass123'}, format='json'
        )
        self.assertEnvelope(response, status.HTTP_401_UNAUTHORIZED, success=False)

    def test_profile(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.get('/api/v1/auth/profile/')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['name'], 'John Doe')

        response = self.client.patch('/api/v1/auth/profile/', {'name': 'Johnny', 'role': 'admin'}, format='json')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.name, 'Johnny')
        self.assertEqual(self.customer.role, User.ROLE_USER)

    def test_unauthenticated_request_is_enveloped(self):
        response = self.client.get('/api/v1/auth/profile/')
        self.assertEnvelope(response, status.HTTP_401_UNAUTHORIZED, success=False)


class ProductAPITestCase(APITestCase):

    def test_list_hides_inactive_products(self):
        Product.objects.create(name='Retired', price=Decimal('1.00'), is_active=False)

        response = self.client.get('/api/v1/products/')

        self.assertEnvelope(response, status.HTTP_200_OK)
        names = [product['name'] for product in response.data['data']]
        self.assertEqual(names, ['Coffee', 'Tea'])

    def test_filters(self):
        response = self.client.get('/api/v1/products/', {'category': 'drinks'})
        self.assertEqual([p['name'] for p in response.data['data']], ['Coffee'])

        response = self.client.get('/api/v1/products/', {'search': 'roast'})
        self.assertEqual([p['name'] for p in response.data['data']], ['Coffee'])

    def test_detail(self):
        response = self.client.get(f'/api/v1/products/{self.coffee.pk}/')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['price'], '10.00')

        response = self.client.get('/api/v1/products/e3f3b2a4-0000-4000-8000-000000000000/')
        self.assertEnvelope(response, status.HTTP_404_NOT_FOUND, success=False)
        self.assertEqual(response.data['message'], 'Product not found')


class CartAPITestCase(APITestCase):

    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.customer)

    def test_add_merges_quantities(self):
        self.client.post('/api/v1/cart/add/', {'product_id': str(self.coffee.pk), 'quantity': 1}, format='json')
        response = self.client.post(
            '/api/v1/cart/add/', {'product_id': str(self.coffee.pk), 'quantity': 2}, format='json'
        )

        self.assertEnvelope(response, status.HTTP_200_OK)
        items = response.data['data']['items']
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]['quantity'], 3)
        self.assertEqual(response.data['data']['subtotal'], '30.00')

    def test_add_validation(self):
        response = self.client.post(
            '/api/v1/cart/add/', {'product_id': str(self.coffee.pk), 'quantity': 0}, format='json'
        )
        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)

        response = self.client.post(
            '/api/v1/cart/add/', {'product_id': 'e3f3b2a4-0000-4000-8000-000000000000'}, format='json'
        )
        self.assertEnvelope(response, status.HTTP_404_NOT_FOUND, success=False)

    def test_add_rejects_oversized_quantity(self):
        response = self.client.post(
            '/api/v1/cart/add/', {'product_id': str(self.coffee.pk), 'quantity': 10 ** 20}, format='json'
        )
        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)
        self.assertFalse(CartService.get_cart(self.customer).items.exists())

    def test_remove_and_clear(self):
        CartService.add_to_cart(self.customer, self.coffee, 1)
        CartService.add_to_cart(self.customer, self.tea, 1)

        response = self.client.delete('/api/v1/cart/remove/', {'product_id': str(self.tea.pk)}, format='json')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['items_count'], 1)

        response = self.client.delete('/api/v1/cart/remove/', {'product_id': str(self.tea.pk)}, format='json')
        self.assertEnvelope(response, status.HTTP_404_NOT_FOUND, success=False)

        response = self.client.delete('/api/v1/cart/clear/')
        self.assertEqual(response.data['data']['removed_items'], 1)
        response = self.client.get('/api/v1/cart/')
        self.assertEqual(response.data['data']['items'], [])


class AddressAPITestCase(APITestCase):

    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.customer)

    def test_create_makes_single_default(self):
        response = self.client.post('/api/v1/addresses/', {
            'label': 'Office', 'street_address': '9 Work Rd', 'is_default': True,
        }, format='json')

        self.assertEnvelope(response, status.HTTP_201_CREATED)
        self.address.refresh_from_db()
        self.assertFalse(self.address.is_default)
        self.assertEqual(CustomerAddress.objects.filter(customer=self.customer, is_default=True).count(), 1)

    def test_delete_is_soft(self):
        order = self.make_order('#500001')
        response = self.client.delete(f'/api/v1/addresses/{self.address.pk}/')

        self.assertEnvelope(response, status.HTTP_200_OK)
        self.address.refresh_from_db()
        self.assertFalse(self.address.is_active)
        order.refresh_from_db()
        self.assertEqual(order.delivery_address, self.address)

        response = self.client.get('/api/v1/addresses/')
        self.assertEqual(response.data['data'], [])

    def test_other_customers_address_is_hidden(self):
        stranger = User.objects.create_user(email='stranger@example.com', password='testpass123')
        self.client.force_authenticate(user=stranger)
        response = self.client.get(f'/api/v1/addresses/{self.address.pk}/')
        self.assertEnvelope(response, status.HTTP_404_NOT_FOUND, success=False)


class CustomerOrderAPITestCase(APITestCase):

    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.customer)
        CartService.add_to_cart(self.customer, self.coffee, 2)
        CartService.add_to_cart(self.customer, self.tea, 1)

    def _create(self, **overrides):
        data = {
            'address_id': str(self.address.pk),
            'scheduled_delivery_date': self.tomorrow.isoformat(),
            'delivery_charges': '3.00',
        }
        data.update(overrides)
        return self.client.post('/api/v1/order/create/', data, format='json')

    def test_create_order(self):
        response = self._create()

        self.assertEnvelope(response, status.HTTP_201_CREATED)
        data = response.data['data']
        self.assertEqual(data['total'], '28.50')
        self.assertEqual(data['payment_amount'], '28.50')
        self.assertEqual(data['payment_currency'], 'USD')
        self.assertEqual(data['payment_status'], 'pending')
        self.assertTrue(data['client_secret'])
        self.assertEqual(self.gateway.create_calls[0]['amount'], 2850)

    def test_create_order_validation(self):
        response = self._create(scheduled_delivery_date='2001-01-01')
        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)
        self.assertFalse(Order.objects.exists())

    def test_create_order_rejects_oversized_delivery_charges(self):
        for charges in ('1e30', '123456789012.00'):
            with self.subTest(charges=charges):
                response = self._create(delivery_charges=charges)
                self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)
        self.assertFalse(Order.objects.exists())
        self.assertEqual(self.gateway.create_calls, [])

    def test_gateway_failure(self):
        self.gateway.fail_next_create = True
        response = self._create()

        self.assertEnvelope(response, status.HTTP_502_BAD_GATEWAY, success=False)
        self.assertEqual(response.data['error']['order_id'], str(Order.objects.get().pk))

    def test_check_payment_status_outcomes(self):
        order_id = self._create().data['data']['order_id']
        reference = Order.objects.get(pk=order_id).stripe_payment_intent_id
        url = '/api/v1/order/check-payment-status/'

        response = self.client.post(url, {'order_id': order_id}, format='json')
        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)
        self.assertEqual(response.data['error']['payment_status'], 'pending')

        self.gateway.set_status(reference, 'processing')
        response = self.client.post(url, {'order_id': order_id}, format='json')
        self.assertEnvelope(response, status.HTTP_202_ACCEPTED)

        self.gateway.set_status(reference, 'succeeded')
        response = self.client.post(url, {'order_id': order_id}, format='json')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['payment_status'], 'completed')
        self.assertEqual(response.data['data']['order']['total'], '28.50')

        response = self.client.get('/api/v1/cart/')
        self.assertEqual(response.data['data']['items'], [])

    def test_check_payment_status_of_other_customers_order(self):
        order_id = self._create().data['data']['order_id']
        stranger = User.objects.create_user(email='stranger@example.com', password='testpass123')
        self.client.force_authenticate(user=stranger)

        response = self.client.post('/api/v1/order/check-payment-status/', {'order_id': order_id}, format='json')
        self.assertEnvelope(response, status.HTTP_403_FORBIDDEN, success=False)

    def test_retry_payment(self):
        order_id = self._create().data['data']['order_id']
        response = self.client.post('/api/v1/order/retry-payment/', {'order_id': order_id}, format='json')

        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(len(self.gateway.create_calls), 1)

    def test_list_own_orders(self):
        self._create()
        other = User.objects.create_user(email='other@example.com', password='testpass123')
        self.make_order('#500002', customer=other)

        response = self.client.get('/api/v1/order/')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(len(response.data['data'][0]['items']), 2)


class AdminOrderAPITestCase(APITestCase):

    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.admin)
        self.order = self.make_order('#600001')

    def test_customer_cannot_use_admin_endpoints(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get('/api/v1/order/all/')
        self.assertEnvelope(response, status.HTTP_403_FORBIDDEN, success=False)

    def test_assign_and_unassign(self):
        response = self.client.post('/api/v1/order/assign-driver/', {
            'order_id': str(self.order.pk), 'driver_id': str(self.driver.pk),
        }, format='json')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['assigned_driver']['id'], str(self.driver.pk))

        response = self.client.put('/api/v1/order/unassign-driver/', {'order_id': str(self.order.pk)}, format='json')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertIsNone(response.data['data']['assigned_driver'])

    def test_assign_errors(self):
        response = self.client.post('/api/v1/order/assign-driver/', {
            'order_id': str(self.order.pk), 'driver_id': 'e3f3b2a4-0000-4000-8000-000000000000',
        }, format='json')
        self.assertEnvelope(response, status.HTTP_404_NOT_FOUND, success=False)

        response = self.client.post('/api/v1/order/assign-driver/', {'order_id': str(self.order.pk)}, format='json')
        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)

    def test_update_statuses(self):
        response = self.client.put('/api/v1/order/update-status/', {
            'order_id': str(self.order.pk), 'status': 'delivered',
        }, format='json')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['data']['delivered_at'])

        response = self.client.put('/api/v1/order/update-payment-status/', {
            'order_id': str(self.order.pk), 'status': 'failed',
        }, format='json')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['payment_status'], 'failed')

        response = self.client.put('/api/v1/order/update-status/', {
            'order_id': str(self.order.pk), 'status': 'Delivered',
        }, format='json')
        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)

    def test_all_orders_pagination(self):
        for index in range(3):
            self.make_order(f'#60001{index}')

        response = self.client.get('/api/v1/order/all/', {'page': 2, 'limit': 2})

        self.assertEnvelope(response, status.HTTP_200_OK)
        pagination = response.data['data']['pagination']
        self.assertEqual(pagination['current_page'], 2)
        self.assertEqual(pagination['total_pages'], 2)
        self.assertEqual(pagination['total_orders'], 4)
        self.assertFalse(pagination['has_next_page'])
        self.assertTrue(pagination['has_prev_page'])
        self.assertEqual(len(response.data['data']['orders']), 2)

    def test_unassigned(self):
        self.make_order('#600002', assigned_driver=self.driver)
        response = self.client.get('/api/v1/order/unassigned/')
        self.assertEqual([o['order_number'] for o in response.data['data']], ['#600001'])

    def test_drivers_and_stats(self):
        User.objects.create_user(
            email='off@example.com', password='testpass123', role=User.ROLE_DRIVER, is_available=False
        )
        response = self.client.get('/api/v1/order/drivers/', {'available': 'true'})
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual([d['email'] for d in response.data['data']], ['driver@example.com'])

        response = self.client.get('/api/v1/order/drivers/', {'available': 'maybe'})
        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)

        response = self.client.get(f'/api/v1/order/driver-stats/{self.driver.pk}/')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['stats']['total_deliveries'], 0)

    def _paid_on(self, number, day, total):
        order = self.make_order(
            number, subtotal=Decimal(total), total=Decimal(total), payment_status=Order.PAYMENT_COMPLETED
        )
        Order.objects.filter(pk=order.pk).update(
            created_at=timezone.make_aware(datetime(2030, 5, day, 12, 0))
        )

    def test_sales_endpoints(self):
        self._paid_on('#600010', 15, '30.00')
        self._paid_on('#600011', 14, '20.00')

        response = self.client.get('/api/v1/order/sales/', {'date': '2030-05-15'})
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Order sales fetched successfully')
        self.assertEqual(response.data['data']['total_sales'], '50.00')
        self.assertEqual(response.data['data']['today_sales'], '30.00')
        self.assertEqual(response.data['data']['today_percentage'], 50.0)

        response = self.client.get('/api/v1/order/sales/weekly/', {'date': '2030-05-15'})
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']), 7)
        self.assertEqual(response.data['data'][2], {'day': 'Wed', 'date': '2030-05-15', 'total': '30.00'})

        response = self.client.get('/api/v1/order/sales/monthly/', {'date': '2030-05-15'})
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']), 31)
        self.assertEqual(response.data['data'][13]['total'], '20.00')

    def test_sales_endpoints_validate_date_and_role(self):
        response = self.client.get('/api/v1/order/sales/', {'date': 'last week'})
        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)

        self.client.force_authenticate(user=self.customer)
        for url in ('/api/v1/order/sales/', '/api/v1/order/sales/weekly/', '/api/v1/order/sales/monthly/'):
            with self.subTest(url=url):
                self.assertEnvelope(self.client.get(url), status.HTTP_403_FORBIDDEN, success=False)


class DriverAPITestCase(APITestCase):

    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.driver)
        self.order = self.make_order('#700001', assigned_driver=self.driver)

    def test_customer_cannot_use_driver_endpoints(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get('/api/v1/order/my-deliveries/')
        self.assertEnvelope(response, status.HTTP_403_FORBIDDEN, success=False)

    def test_my_deliveries(self):
        self.make_order('#700002')
        response = self.client.get('/api/v1/order/my-deliveries/')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual([o['order_number'] for o in response.data['data']], ['#700001'])

        response = self.client.get('/api/v1/order/my-deliveries/', {'date': 'tomorrow'})
        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)

    def test_update_delivery_status(self):
        response = self.client.put('/api/v1/order/update-delivery-status/', {
            'order_id': str(self.order.pk), 'status': 'delivered', 'notes': 'At the door',
        }, format='json')

        self.assertEnvelope(response, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['delivery_status'], 'delivered')
        self.assertEqual(response.data['data']['driver_notes'], 'At the door')

        response = self.client.get('/api/v1/order/driver-stats/')
        self.assertEqual(response.data['data']['completed_deliveries'], 1)

    def test_cannot_update_someone_elses_delivery(self):
        other = self.make_order('#700003')
        response = self.client.put('/api/v1/order/update-delivery-status/', {
            'order_id': str(other.pk), 'status': 'delivered',
        }, format='json')

        self.assertEnvelope(response, status.HTTP_403_FORBIDDEN, success=False)
        other.refresh_from_db()
        self.assertEqual(other.delivery_status, Order.DELIVERY_PENDING)

    def test_update_availability(self):
        response = self.client.put('/api/v1/order/update-availability/', {'is_available': False}, format='json')
        self.assertEnvelope(response, status.HTTP_200_OK)
        self.driver.refresh_from_db()
        self.assertFalse(self.driver.is_available)

        response = self.client.put('/api/v1/order/update-availability/', {'is_available': 'no'}, format='json')
        self.assertEnvelope(response, status.HTTP_400_BAD_REQUEST, success=False)
