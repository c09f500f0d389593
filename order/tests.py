"""
Order lifecycle tests

Test coverage:
- Money helpers and order numbers
- Cart merge / removal / snapshot
- Checkout validation and order creation
- Payment reconciliation (polling and retry)
- Staff status overrides and driver assignment
- Driver delivery updates
- retry_pending_payments command
- Sales analytics
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.apps import apps
from django.core import mail
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from ShopHub.exceptions import (
    AuthorizationError,
    ExternalServiceError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from accounts.models import User
from location.models import CustomerAddress
from payments.testing import FakeGateway
from products.models import Product
from . import sales
from .cart_utils import MAX_LINE_QUANTITY, CartLine, CartService
from .helpers import (
    MAX_ORDER_AMOUNT,
    calculate_order_totals,
    from_minor_units,
    generate_order_number,
    parse_date_value,
    to_decimal,
    to_minor_units,
)
from .models import Order, OrderItem, OrderStatusUpdate
from .services import (
    OrderLifecycleService,
    OUTCOME_PENDING,
    OUTCOME_PROCESSING,
    OUTCOME_REQUIRES_PAYMENT_METHOD,
)


class OrderFixturesMixin:
    """Customer with an address and two catalog products"""

    def setUp(self):
        self.customer = User.objects.create_user(email='customer@example.com', password='testpass123')
        self.other_customer = User.objects.create_user(email='other@example.com', password='testpass123')
        self.admin = User.objects.create_user(
            email='admin@example.com', password='testpass123', role=User.ROLE_ADMIN
        )
        self.driver = User.objects.create_user(
            email='driver@example.com', password='testpass123', role=User.ROLE_DRIVER, name='Dan Driver'
        )
        self.address = CustomerAddress.objects.create(
            customer=self.customer, label='Home', street_address='1 Main St', city='Springfield'
        )
        self.coffee = Product.objects.create(name='Coffee', price=Decimal('10.00'), stock=50)
        self.tea = Product.objects.create(name='Tea', price=Decimal('5.50'), stock=50)

        self.gateway = FakeGateway()
        self.service = OrderLifecycleService(gateway=self.gateway)
        self.tomorrow = timezone.localdate() + timedelta(days=1)

    def fill_cart(self):
        CartService.add_to_cart(self.customer, self.coffee, 2)
        CartService.add_to_cart(self.customer, self.tea, 1)

    def checkout(self, **overrides):
        params = {
            'address_id': self.address.pk,
            'scheduled_delivery_date': self.tomorrow.isoformat(),
            'delivery_charges': '3.00',
        }
        params.update(overrides)
        return self.service.checkout(self.customer, **params)

    def make_order(self, **fields):
        values = {
            'order_number': generate_order_number(),
            'customer': self.customer,
            'delivery_address': self.address,
            'scheduled_delivery_date': self.tomorrow,
            'subtotal': Decimal('20.00'),
            'total': Decimal('20.00'),
        }
        values.update(fields)
        return Order.objects.create(**values)


class MoneyHelpersTestCase(TestCase):

    def test_order_totals(self):
        lines = [
            CartLine(product=None, quantity=2, unit_price=Decimal('10.00')),
            CartLine(product=None, quantity=1, unit_price=Decimal('5.50')),
        ]
        totals = calculate_order_totals(lines, Decimal('3.00'))

        self.assertEqual(totals['subtotal'], Decimal('25.50'))
        self.assertEqual(totals['delivery_charges'], Decimal('3.00'))
        self.assertEqual(totals['total'], Decimal('28.50'))
        self.assertEqual(to_minor_units(totals['total']), 2850)

    def test_minor_units_round_half_up(self):
        self.assertEqual(to_minor_units(Decimal('0.005')), 1)
        self.assertEqual(to_minor_units(Decimal('19.994')), 1999)
        self.assertEqual(to_minor_units(28.499999), 2850)

    def test_minor_units_back_to_decimal(self):
        self.assertEqual(from_minor_units(2850), Decimal('28.50'))
        self.assertEqual(from_minor_units(to_minor_units(Decimal('28.50'))), Decimal('28.50'))

    def test_order_number_format(self):
        number = generate_order_number()
        self.assertRegex(number, r'^#\d{6}$')

    def test_parse_date_value(self):
        self.assertEqual(parse_date_value('2030-05-17').isoformat(), '2030-05-17')
        self.assertEqual(parse_date_value('2030-05-17T08:30:00').isoformat(), '2030-05-17')
        with self.assertRaises(ValueError):
            parse_date_value('next tuesday')

    def test_to_decimal_rejects_unrepresentable_amounts(self):
        self.assertEqual(to_decimal('3'), Decimal('3.00'))
        self.assertEqual(to_decimal('123456789012.00'), Decimal('123456789012.00'))
        for value in ('1e30', 'NaN', 'Infinity', 'free', [1]):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    to_decimal(value, 'delivery charges')


class CartServiceTestCase(OrderFixturesMixin, TestCase):

    def test_adding_same_product_merges_lines(self):
        CartService.add_to_cart(self.customer, self.coffee, 1)
        CartService.add_to_cart(self.customer, self.coffee, 2)

        cart = CartService.get_cart(self.customer)
        self.assertEqual(cart.items.count(), 1)
        self.assertEqual(cart.items.get().quantity, 3)

    def test_quantity_must_be_positive(self):
        for quantity in (0, -1, 'two', True):
            with self.assertRaises(ValidationError):
                CartService.add_to_cart(self.customer, self.coffee, quantity)

    def test_quantity_is_capped(self):
        for quantity in (MAX_LINE_QUANTITY + 1, 10 ** 20):
            with self.assertRaises(ValidationError):
                CartService.add_to_cart(self.customer, self.coffee, quantity)
        self.assertFalse(CartService.get_cart(self.customer).items.exists())

    def test_merged_quantity_is_capped(self):
        CartService.add_to_cart(self.customer, self.coffee, MAX_LINE_QUANTITY - 1)
        with self.assertRaises(ValidationError):
            CartService.add_to_cart(self.customer, self.coffee, 2)

        item = CartService.get_cart(self.customer).items.get()
        self.assertEqual(item.quantity, MAX_LINE_QUANTITY - 1)
        CartService.add_to_cart(self.customer, self.coffee, 1)
        item.refresh_from_db()
        self.assertEqual(item.quantity, MAX_LINE_QUANTITY)

    def test_inactive_product_cannot_be_added(self):
        self.coffee.is_active = False
        self.coffee.save()
        with self.assertRaises(ValidationError):
            CartService.add_to_cart(self.customer, self.coffee, 1)

    def test_remove_and_clear(self):
        self.fill_cart()
        CartService.remove_from_cart(self.customer, self.tea.pk)
        with self.assertRaises(NotFoundError):
            CartService.remove_from_cart(self.customer, self.tea.pk)

        self.assertEqual(CartService.clear_cart(self.customer), 1)
        self.assertEqual(CartService.clear_cart(self.customer), 0)

    def test_summary(self):
        self.fill_cart()
        summary = CartService.get_cart_summary(CartService.get_cart(self.customer))
        self.assertEqual(summary['items_count'], 2)
        self.assertEqual(summary['subtotal'], '25.50')


class CheckoutTestCase(OrderFixturesMixin, TestCase):

    def test_checkout_freezes_prices_and_requests_payment(self):
        self.fill_cart()
        result = self.checkout()
        order = result.order

        self.assertEqual(order.subtotal, Decimal('25.50'))
        self.assertEqual(order.delivery_charges, Decimal('3.00'))
        self.assertEqual(order.total, Decimal('28.50'))
        self.assertEqual(order.payment_status, Order.PAYMENT_PENDING)
        self.assertEqual(order.delivery_status, Order.DELIVERY_PENDING)
        self.assertEqual(order.items.count(), 2)

        call = self.gateway.create_calls[0]
        self.assertEqual(call['amount'], 2850)
        self.assertEqual(call['currency'], 'usd')
        self.assertEqual(call['metadata']['order_id'], str(order.pk))
        self.assertEqual(call['idempotency_key'], f'order-{order.pk}')
        self.assertEqual(order.stripe_payment_intent_id, result.payment_intent.reference)
        self.assertEqual(result.client_secret, f'{order.stripe_payment_intent_id}_secret_fake')

        # Cart stays until the payment succeeds
        self.assertEqual(CartService.get_cart(self.customer).items.count(), 2)

    def test_price_change_after_checkout_does_not_touch_order(self):
        self.fill_cart()
        order = self.checkout().order

        self.coffee.price = Decimal('99.00')
        self.coffee.save()

        item = order.items.get(product=self.coffee)
        self.assertEqual(item.price_at_purchase, Decimal('10.00'))
        self.assertEqual(item.line_total, Decimal('20.00'))
        order.refresh_from_db()
        self.assertEqual(order.total, Decimal('28.50'))

    def test_checkout_validation_writes_nothing(self):
        self.fill_cart()
        foreign_address = CustomerAddress.objects.create(
            customer=self.other_customer, label='Work', street_address='2 Side St'
        )
        cases = [
            ({'address_id': None}, ValidationError),
            ({'scheduled_delivery_date': None}, ValidationError),
            ({'scheduled_delivery_date': 'soon'}, ValidationError),
            ({'scheduled_delivery_date': (timezone.localdate() - timedelta(days=1)).isoformat()}, ValidationError),
            ({'delivery_charges': '-1'}, ValidationError),
            ({'delivery_charges': 'free'}, ValidationError),
            ({'address_id': foreign_address.pk}, NotFoundError),
            ({'address_id': 'not-a-uuid'}, NotFoundError),
        ]
        for overrides, error in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(error):
                    self.checkout(**overrides)

        self.assertFalse(Order.objects.exists())
        self.assertEqual(self.gateway.create_calls, [])

    def test_oversized_delivery_charges_are_rejected(self):
        self.fill_cart()
        for charges in ('1e30', '123456789012.00', MAX_ORDER_AMOUNT + Decimal('0.01')):
            with self.subTest(charges=charges):
                with self.assertRaises(ValidationError):
                    self.checkout(delivery_charges=charges)

        self.assertFalse(Order.objects.exists())
        self.assertEqual(self.gateway.create_calls, [])

    def test_order_total_above_column_capacity_is_rejected(self):
        luxury = Product.objects.create(name='Yacht', price=Decimal('99999999.00'))
        CartService.add_to_cart(self.customer, luxury, 1)

        with self.assertRaises(ValidationError):
            self.checkout(delivery_charges='3.00')
        self.assertFalse(Order.objects.exists())

    def test_today_is_a_valid_delivery_date(self):
        self.fill_cart()
        order = self.checkout(scheduled_delivery_date=timezone.localdate().isoformat()).order
        self.assertEqual(order.scheduled_delivery_date, timezone.localdate())

    def test_empty_cart_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.checkout()
        self.assertFalse(Order.objects.exists())

    def test_deactivated_product_is_rejected(self):
        self.fill_cart()
        Product.objects.filter(pk=self.tea.pk).update(is_active=False)
        with self.assertRaises(ValidationError):
            self.checkout()
        self.assertFalse(Order.objects.exists())

    def test_unpriced_product_is_rejected(self):
        self.fill_cart()
        Product.objects.filter(pk=self.tea.pk).update(price=None)
        with self.assertRaises(ValidationError):
            self.checkout()

    def test_zero_total_is_rejected(self):
        freebie = Product.objects.create(name='Sticker', price=Decimal('0.00'))
        CartService.add_to_cart(self.customer, freebie, 1)
        with self.assertRaises(ValidationError):
            self.checkout(delivery_charges='0')
        self.assertFalse(Order.objects.exists())

    def test_gateway_failure_keeps_pending_order_for_retry(self):
        self.fill_cart()
        self.gateway.fail_next_create = True

        with self.assertRaises(ExternalServiceError) as ctx:
            self.checkout()

        order = Order.objects.get()
        self.assertEqual(ctx.exception.error['order_id'], str(order.pk))
        self.assertEqual(order.payment_status, Order.PAYMENT_PENDING)
        self.assertIsNone(order.stripe_payment_intent_id)

        result = self.service.retry_payment(self.customer, order.pk)
        order.refresh_from_db()
        self.assertEqual(order.stripe_payment_intent_id, result.payment_intent.reference)

    def test_order_number_collision_is_retried(self):
        self.make_order(order_number='#111111')
        self.fill_cart()

        with patch('order.services.generate_order_number', side_effect=['#111111', '#111111', '#222222']):
            order = self.checkout().order

        self.assertEqual(order.order_number, '#222222')
        self.assertEqual(OrderItem.objects.filter(order=order).count(), 2)

    @override_settings(ORDER_NUMBER_MAX_ATTEMPTS=3)
    def test_order_number_exhaustion_is_internal_error(self):
        self.make_order(order_number='#111111')
        self.fill_cart()

        with patch('order.services.generate_order_number', return_value='#111111'):
            with self.assertRaises(InternalError):
                self.checkout()

        self.assertEqual(Order.objects.count(), 1)
        self.assertFalse(OrderItem.objects.exists())


class PaymentReconciliationTestCase(OrderFixturesMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.fill_cart()
        self.order = self.checkout().order
        self.reference = self.order.stripe_payment_intent_id

    def test_processing_leaves_order_pending(self):
        self.gateway.set_status(self.reference, 'processing')

        result = self.service.check_payment_status(self.customer, self.order.pk)

        self.assertEqual(result.outcome, OUTCOME_PROCESSING)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PENDING)
        self.assertEqual(CartService.get_cart(self.customer).items.count(), 2)

    def test_requires_payment_method_leaves_order_pending(self):
        result = self.service.check_payment_status(self.customer, self.order.pk)

        self.assertEqual(result.outcome, OUTCOME_REQUIRES_PAYMENT_METHOD)
        self.assertFalse(result.is_paid)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PENDING)

    def test_succeeded_completes_order_once(self):
        self.gateway.set_status(self.reference, 'succeeded')

        first = self.service.check_payment_status(self.customer, self.order.pk)
        second = self.service.check_payment_status(self.customer, self.order.pk)

        self.assertTrue(first.is_paid)
        self.assertTrue(second.is_paid)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_COMPLETED)
        self.assertEqual(CartService.get_cart(self.customer).items.count(), 0)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['customer@example.com'])
        self.assertEqual(
            self.order.status_updates.filter(field=OrderStatusUpdate.FIELD_PAYMENT).count(), 1
        )
        # A completed order is answered from the database
        self.assertEqual(self.gateway.retrieve_calls, [self.reference])

    def test_canceled_fails_order(self):
        self.gateway.set_status(self.reference, 'canceled')
        self.service.check_payment_status(self.customer, self.order.pk)

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_FAILED)
        self.assertEqual(CartService.get_cart(self.customer).items.count(), 2)

    def test_order_without_reference_reports_pending(self):
        order = self.make_order()
        result = self.service.check_payment_status(self.customer, order.pk)
        self.assertEqual(result.outcome, OUTCOME_PENDING)
        self.assertEqual(self.gateway.retrieve_calls, [])

    def test_only_owner_can_check_status(self):
        with self.assertRaises(AuthorizationError):
            self.service.check_payment_status(self.other_customer, self.order.pk)

    def test_missing_and_unknown_orders(self):
        with self.assertRaises(ValidationError):
            self.service.check_payment_status(self.customer, None)
        with self.assertRaises(NotFoundError):
            self.service.check_payment_status(self.customer, 'e3f3b2a4-0000-4000-8000-000000000000')

    def test_retry_returns_existing_intent(self):
        result = self.service.retry_payment(self.customer, self.order.pk)

        self.assertEqual(result.payment_intent.reference, self.reference)
        self.assertEqual(len(self.gateway.create_calls), 1)

    def test_retry_on_settled_intent_reconciles_instead(self):
        self.gateway.set_status(self.reference, 'succeeded')

        with self.assertRaises(ValidationError):
            self.service.retry_payment(self.customer, self.order.pk)

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_COMPLETED)

    def test_retry_rejected_once_paid(self):
        Order.objects.filter(pk=self.order.pk).update(payment_status=Order.PAYMENT_COMPLETED)
        with self.assertRaises(ValidationError):
            self.service.retry_payment(self.customer, self.order.pk)

    def test_reference_is_written_once(self):
        with self.assertRaises(InternalError):
            self.service._start_payment(self.make_order(stripe_payment_intent_id='pi_existing'))
        self.assertEqual(
            Order.objects.get(stripe_payment_intent_id='pi_existing').stripe_payment_intent_id,
            'pi_existing'
        )


class StaffOrderActionsTestCase(OrderFixturesMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.order = self.make_order()

    def test_assign_and_unassign_driver(self):
        order = self.service.assign_driver(self.admin, self.order.pk, self.driver.pk)

        self.assertEqual(order.assigned_driver, self.driver)
        self.assertIsNotNone(order.driver_assigned_at)
        self.assertIn(self.order, self.driver.assigned_deliveries)
        self.assertEqual(mail.outbox[-1].to, ['driver@example.com'])

        self.service.driver_update_status(self.driver, self.order.pk, Order.DELIVERY_ON_MY_WAY)
        order = self.service.unassign_driver(self.admin, self.order.pk)

        self.assertIsNone(order.assigned_driver)
        self.assertIsNone(order.driver_assigned_at)
        self.assertEqual(order.delivery_status, Order.DELIVERY_PENDING)
        self.assertNotIn(self.order, self.driver.assigned_deliveries)

    def test_cannot_assign_to_delivered_order(self):
        Order.objects.filter(pk=self.order.pk).update(delivery_status=Order.DELIVERY_DELIVERED)

        with self.assertRaises(ValidationError):
            self.service.assign_driver(self.admin, self.order.pk, self.driver.pk)

        self.order.refresh_from_db()
        self.assertIsNone(self.order.assigned_driver)
        self.assertFalse(self.driver.assigned_deliveries.exists())

    def test_assign_checks_driver(self):
        self.driver.is_available = False
        self.driver.save()
        with self.assertRaises(ValidationError):
            self.service.assign_driver(self.admin, self.order.pk, self.driver.pk)

        with self.assertRaises(ValidationError):
            self.service.assign_driver(self.admin, self.order.pk, self.customer.pk)

        with self.assertRaises(NotFoundError):
            self.service.assign_driver(self.admin, self.order.pk, 'e3f3b2a4-0000-4000-8000-000000000000')

        self.order.refresh_from_db()
        self.assertIsNone(self.order.assigned_driver)

    def test_unassign_requires_assigned_driver(self):
        with self.assertRaises(ValidationError):
            self.service.unassign_driver(self.admin, self.order.pk)

    def test_delivery_status_override_keeps_delivered_at_in_step(self):
        order = self.service.update_delivery_status(self.admin, self.order.pk, Order.DELIVERY_DELIVERED)
        self.assertIsNotNone(order.delivered_at)

        order = self.service.update_delivery_status(self.admin, self.order.pk, Order.DELIVERY_PENDING)
        self.assertIsNone(order.delivered_at)
        self.assertEqual(
            order.status_updates.filter(field=OrderStatusUpdate.FIELD_DELIVERY).count(), 2
        )

    def test_invalid_statuses_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.update_delivery_status(self.admin, self.order.pk, 'lost')
        with self.assertRaises(ValidationError):
            self.service.update_payment_status(self.admin, self.order.pk, 'refunded')

    def test_payment_status_override(self):
        order = self.service.update_payment_status(self.admin, self.order.pk, Order.PAYMENT_COMPLETED)
        self.assertEqual(order.payment_status, Order.PAYMENT_COMPLETED)
        update = order.status_updates.get()
        self.assertEqual(update.updated_by, self.admin)
        self.assertEqual(update.old_value, Order.PAYMENT_PENDING)

    def test_listings(self):
        delivered = self.make_order(delivery_status=Order.DELIVERY_DELIVERED)
        assigned = self.make_order(assigned_driver=self.driver)
        later = self.make_order(scheduled_delivery_date=self.tomorrow + timedelta(days=3))

        unassigned = list(self.service.unassigned_orders())
        self.assertIn(self.order, unassigned)
        self.assertIn(later, unassigned)
        self.assertNotIn(delivered, unassigned)
        self.assertNotIn(assigned, unassigned)

        self.assertEqual(list(self.service.unassigned_orders(date=self.tomorrow.isoformat())), [self.order])
        self.assertEqual(list(self.service.orders_for_admin(driver_id=str(self.driver.pk))), [assigned])
        self.assertEqual(
            list(self.service.orders_for_admin(status=Order.DELIVERY_DELIVERED)), [delivered]
        )

        with self.assertRaises(ValidationError):
            list(self.service.orders_for_admin(driver_id='driver-7'))
        with self.assertRaises(ValidationError):
            list(self.service.orders_for_admin(date='31/12/2030'))


class DriverDeliveryUpdateTestCase(OrderFixturesMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.order = self.make_order(assigned_driver=self.driver, driver_notes='Ring twice')
        self.other_driver = User.objects.create_user(
            email='driver2@example.com', password='testpass123', role=User.ROLE_DRIVER
        )

    def test_driver_moves_delivery_forward(self):
        order = self.service.driver_update_status(self.driver, self.order.pk, Order.DELIVERY_ON_MY_WAY)
        self.assertEqual(order.delivery_status, Order.DELIVERY_ON_MY_WAY)
        self.assertIsNone(order.delivered_at)
        self.assertEqual(order.driver_notes, 'Ring twice')

        order = self.service.driver_update_status(
            self.driver, self.order.pk, Order.DELIVERY_DELIVERED, notes='Left with neighbour'
        )
        self.assertEqual(order.delivery_status, Order.DELIVERY_DELIVERED)
        self.assertIsNotNone(order.delivered_at)
        self.assertEqual(order.driver_notes, 'Left with neighbour')

    def test_other_driver_is_rejected(self):
        with self.assertRaises(AuthorizationError):
            self.service.driver_update_status(self.other_driver, self.order.pk, Order.DELIVERY_DELIVERED)

        self.order.refresh_from_db()
        self.assertEqual(self.order.delivery_status, Order.DELIVERY_PENDING)
        self.assertIsNone(self.order.delivered_at)

    def test_driver_cannot_reset_to_pending(self):
        with self.assertRaises(ValidationError):
            self.service.driver_update_status(self.driver, self.order.pk, Order.DELIVERY_PENDING)

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            self.service.driver_update_status(
                self.driver, 'e3f3b2a4-0000-4000-8000-000000000000', Order.DELIVERY_DELIVERED
            )


class RetryPendingPaymentsCommandTestCase(OrderFixturesMixin, TestCase):

    def test_links_orphaned_orders(self):
        orphan = self.make_order()
        linked = self.make_order(stripe_payment_intent_id='pi_already')
        out = StringIO()

        with patch.object(apps.get_app_config('payments'), 'gateway', self.gateway):
            call_command('retry_pending_payments', stdout=out)

        orphan.refresh_from_db()
        self.assertTrue(orphan.stripe_payment_intent_id.startswith('pi_fake_'))
        self.assertEqual(self.gateway.create_calls[0]['amount'], 2000)
        linked.refresh_from_db()
        self.assertEqual(linked.stripe_payment_intent_id, 'pi_already')
        self.assertIn('Recovered 1 order(s), 0 failed', out.getvalue())

    def test_dry_run_contacts_nobody(self):
        self.make_order()
        out = StringIO()

        with patch.object(apps.get_app_config('payments'), 'gateway', self.gateway):
            call_command('retry_pending_payments', '--dry-run', stdout=out)

        self.assertEqual(self.gateway.create_calls, [])
        self.assertIn('Dry run: 1 order(s) would be retried', out.getvalue())


class SalesAnalyticsTestCase(OrderFixturesMixin, TestCase):
    """Anchored on Wednesday 2030-05-15; its week runs 13th to 19th."""

    def setUp(self):
        super().setUp()
        self.today = date(2030, 5, 15)
        self.sale(date(2030, 5, 15), '30.00')
        self.sale(date(2030, 5, 14), '20.00')
        self.sale(date(2030, 5, 8), '40.00')
        self.sale(date(2030, 4, 30), '10.00')
        self.sale(date(2030, 5, 15), '99.00', payment_status=Order.PAYMENT_PENDING)
        self.sale(date(2030, 5, 13), '77.00', payment_status=Order.PAYMENT_FAILED)

    def sale(self, day, total, payment_status=Order.PAYMENT_COMPLETED):
        order = self.make_order(
            subtotal=Decimal(total), total=Decimal(total), payment_status=payment_status
        )
        created_at = timezone.make_aware(datetime(day.year, day.month, day.day, 12, 0))
        Order.objects.filter(pk=order.pk).update(created_at=created_at)
        return order

    def test_summary_counts_completed_payments_only(self):
        summary = sales.sales_summary(self.today)

        self.assertEqual(summary['date'], '2030-05-15')
        self.assertEqual(summary['total_sales'], '100.00')
        self.assertEqual(summary['today_sales'], '30.00')
        self.assertEqual(summary['yesterday_sales'], '20.00')
        self.assertEqual(summary['this_week_sales'], '50.00')
        self.assertEqual(summary['last_week_sales'], '40.00')
        self.assertEqual(summary['today_percentage'], 50.0)
        self.assertEqual(summary['week_percentage'], 25.0)

    def test_percentages_against_previous_period(self):
        summary = sales.sales_summary(date(2030, 5, 9))

        self.assertEqual(summary['today_sales'], '0.00')
        self.assertEqual(summary['yesterday_sales'], '40.00')
        self.assertEqual(summary['today_percentage'], -100.0)
        self.assertEqual(summary['this_week_sales'], '40.00')
        self.assertEqual(summary['last_week_sales'], '10.00')
        self.assertEqual(summary['week_percentage'], 300.0)

        summary = sales.sales_summary(date(2030, 1, 1))
        self.assertEqual(summary['today_percentage'], 0.0)
        self.assertEqual(summary['week_percentage'], 0.0)

    def test_weekly_sales_runs_monday_to_sunday(self):
        week = sales.weekly_sales(self.today)

        self.assertEqual([entry['day'] for entry in week], ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun'])
        self.assertEqual(week[0]['date'], '2030-05-13')
        self.assertEqual(week[-1]['date'], '2030-05-19')
        self.assertEqual(
            [entry['total'] for entry in week],
            ['0.00', '20.00', '30.00', '0.00', '0.00', '0.00', '0.00']
        )

    def test_monthly_sales_covers_every_day_of_month(self):
        month = sales.monthly_sales(self.today)

        self.assertEqual(len(month), 31)
        self.assertEqual(month[0], {'day': 1, 'date': '2030-05-01', 'total': '0.00'})
        totals = {entry['day']: entry['total'] for entry in month if entry['total'] != '0.00'}
        self.assertEqual(totals, {8: '40.00', 14: '20.00', 15: '30.00'})

        self.assertEqual(len(sales.monthly_sales(date(2030, 2, 10))), 28)
