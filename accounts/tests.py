from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import authenticate
from django.test import TestCase
from django.utils import timezone

from ShopHub.exceptions import NotFoundError, ValidationError
from location.models import CustomerAddress
from order.models import Order
from . import drivers
from .models import User


class UserModelTestCase(TestCase):

    def test_create_user_normalizes_email(self):
        user = User.objects.create_user(email='Jane@Example.COM', password='testpass123')
        self.assertEqual(user.email, 'jane@example.com')
        self.assertEqual(user.role, User.ROLE_USER)
        self.assertTrue(user.check_password('testpass123'))

    def test_create_superuser(self):
        admin = User.objects.create_superuser(email='root@example.com', password='testpass123')
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_admin_role)
        self.assertEqual(admin.role, User.ROLE_SUPERADMIN)

    def test_email_login_is_case_insensitive(self):
        User.objects.create_user(email='jane@example.com', password='testpass123')
        self.assertIsNotNone(authenticate(email='JANE@example.com', password='testpass123'))
        self.assertIsNone(authenticate(email='jane@example.com', password='wrong'))
        self.assertIsNone(authenticate(email='nobody@example.com', password='testpass123'))


class DriverDirectoryTestCase(TestCase):

    def setUp(self):
        self.customer = User.objects.create_user(email='customer@example.com', password='testpass123')
        self.address = CustomerAddress.objects.create(
            customer=self.customer, label='Home', street_address='1 Main St'
        )
        self.driver = User.objects.create_user(
            email='driver@example.com', password='testpass123', role=User.ROLE_DRIVER, name='Ann'
        )
        self.busy_driver = User.objects.create_user(
            email='busy@example.com', password='testpass123', role=User.ROLE_DRIVER,
            name='Bob', is_available=False
        )
        self.today = timezone.localdate()
        self._number = 100000

    def _order(self, **fields):
        self._number += 1
        values = {
            'order_number': f'#{self._number}',
            'customer': self.customer,
            'delivery_address': self.address,
            'scheduled_delivery_date': self.today,
            'subtotal': Decimal('10.00'),
            'total': Decimal('10.00'),
            'assigned_driver': self.driver,
        }
        values.update(fields)
        return Order.objects.create(**values)

    def test_list_drivers(self):
        self.assertEqual(list(drivers.list_drivers()), [self.driver, self.busy_driver])
        self.assertEqual(list(drivers.list_drivers(available=True)), [self.driver])
        self.assertEqual(list(drivers.list_drivers(available=False)), [self.busy_driver])

    def test_get_driver(self):
        self.assertEqual(drivers.get_driver(self.driver.pk), self.driver)
        with self.assertRaises(ValidationError):
            drivers.get_driver(self.customer.pk)
        with self.assertRaises(NotFoundError):
            drivers.get_driver('e3f3b2a4-0000-4000-8000-000000000000')
        with self.assertRaises(NotFoundError):
            drivers.get_driver('driver-7')

    def test_set_availability(self):
        drivers.set_availability(self.driver, False)
        self.driver.refresh_from_db()
        self.assertFalse(self.driver.is_available)

        with self.assertRaises(ValidationError):
            drivers.set_availability(self.driver, 'yes')

    def test_assigned_deliveries_are_derived_from_orders(self):
        first = self._order(scheduled_delivery_date=self.today + timedelta(days=2))
        second = self._order()
        self._order(assigned_driver=self.busy_driver)

        self.assertEqual(list(drivers.assigned_deliveries(self.driver)), [second, first])
        self.assertEqual(set(self.driver.assigned_deliveries), {first, second})
        self.assertEqual(
            list(drivers.assigned_deliveries(self.driver, date=self.today)), [second]
        )

        Order.objects.filter(pk=second.pk).update(assigned_driver=None)
        self.assertEqual(list(self.driver.assigned_deliveries), [first])

    def test_order_history(self):
        order = self._order(assigned_driver=None)
        self.assertEqual(list(self.customer.order_history), [order])

    def test_driver_stats(self):
        self._order(delivery_status=Order.DELIVERY_DELIVERED)
        self._order(delivery_status=Order.DELIVERY_ON_MY_WAY)
        self._order(scheduled_delivery_date=self.today + timedelta(days=1))

        stats = drivers.driver_stats(self.driver)

        self.assertEqual(stats['total_deliveries'], 3)
        self.assertEqual(stats['completed_deliveries'], 1)
        self.assertEqual(stats['pending_deliveries'], 1)
        self.assertEqual(stats['on_my_way_deliveries'], 1)
        self.assertEqual(stats['today_deliveries'], 2)
        self.assertEqual(stats['today_completed_deliveries'], 1)
        self.assertEqual(stats['completion_rate'], 33.33)

    def test_driver_stats_without_deliveries(self):
        stats = drivers.driver_stats(self.busy_driver)
        self.assertEqual(stats['total_deliveries'], 0)
        self.assertEqual(stats['completion_rate'], 0.0)
