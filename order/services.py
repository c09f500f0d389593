"""
Order Lifecycle Engine
======================

Turns a cart into an order with prices frozen at purchase time, then drives
the order through payment and delivery:

* checkout: snapshot cart, persist the order as ``pending``, request a
  payment intent and hand the client token back to the caller
* reconciliation: polling and webhooks both end up in ``_reconcile``; every
  write is a conditional ``UPDATE ... WHERE payment_status='pending'`` so a
  late or duplicated notification can never move a settled order
* staff actions: permissive delivery/payment status overrides and driver
  assignment
* driver self-service: the assignee moves the delivery forward

The payment gateway is injected; views pass ``payments.gateway.get_gateway()``.
"""

import logging
import uuid
from dataclasses import dataclass, field

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from ShopHub.exceptions import (
    AuthorizationError,
    ExternalServiceError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from accounts.drivers import get_driver
from location.models import CustomerAddress
from payments import gateway as payment_gateway
from .cart_utils import CartService
from .email_service import OrderEmailService
from .helpers import (
    MAX_ORDER_AMOUNT,
    calculate_order_totals,
    generate_order_number,
    parse_date_value,
    to_decimal,
    to_minor_units,
)
from .models import Order, OrderItem, OrderStatusUpdate

logger = logging.getLogger(__name__)


# Reconciliation outcomes reported to callers
OUTCOME_COMPLETED = 'completed'
OUTCOME_PROCESSING = 'processing'
OUTCOME_REQUIRES_PAYMENT_METHOD = 'requires_payment_method'
OUTCOME_CANCELED = 'canceled'
OUTCOME_FAILED = 'failed'
OUTCOME_PENDING = 'pending'
OUTCOME_UNKNOWN = 'unknown'


def parse_filter_date(value):
    """Date query parameter to ``date``; ValidationError when malformed."""
    try:
        return parse_date_value(value)
    except ValueError as e:
        raise ValidationError(str(e))


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    payment_intent: payment_gateway.PaymentIntent = field(repr=False)

    @property
    def client_secret(self):
        return self.payment_intent.client_secret


@dataclass(frozen=True)
class ReconciliationResult:
    order: Order
    outcome: str
    provider_status: str = None

    @property
    def is_paid(self):
        return self.outcome == OUTCOME_COMPLETED


class OrderLifecycleService:

    def __init__(self, gateway=None, email_service=OrderEmailService):
        self.gateway = gateway if gateway is not None else payment_gateway.get_gateway()
        self.email_service = email_service

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    def get_order(order_id, for_update=False):
        if not order_id:
            raise ValidationError('Order ID is required')
        queryset = Order.objects.select_for_update() if for_update else Order.objects
        try:
            return queryset.get(pk=order_id)
        except (Order.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError('Order not found')

    @staticmethod
    def _ensure_owner(user, order):
        if order.customer_id != user.pk:
            logger.warning(f'[Orders] User {user.pk} tried to access order {order.pk} of another customer')
            raise AuthorizationError('Unauthorized access')

    @staticmethod
    def _record(order, field_name, old_value, new_value, actor=None, note=''):
        OrderStatusUpdate.objects.create(
            order=order,
            field=field_name,
            old_value=old_value or '',
            new_value=new_value or '',
            updated_by=actor,
            note=note,
        )

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def checkout(self, user, address_id, scheduled_delivery_date, delivery_charges=0, customer_note=''):
        """
        Create an order from the user's cart and start payment.

        Everything is validated before the first write. The order and its items
        are committed together; the payment intent is requested afterwards, so
        a provider failure leaves a ``pending`` order without a reference that
        ``retry_payment`` (or ``retry_pending_payments``) can pick up.
        """
        if not address_id:
            raise ValidationError('Address ID is required')
        if not scheduled_delivery_date:
            raise ValidationError('Scheduled delivery date is required')

        try:
            delivery_date = parse_date_value(scheduled_delivery_date, 'scheduled delivery date')
        except ValueError as e:
            raise ValidationError(str(e))
        if delivery_date < timezone.localdate():
            raise ValidationError('Scheduled delivery date must be today or in the future')

        try:
            charges = to_decimal(delivery_charges, 'delivery charges')
        except ValueError as e:
            raise ValidationError(str(e))
        if charges < 0:
            raise ValidationError('Delivery charges cannot be negative')
        if charges > MAX_ORDER_AMOUNT:
            raise ValidationError(f'Delivery charges cannot exceed {MAX_ORDER_AMOUNT}')

        try:
            address = CustomerAddress.objects.get(pk=address_id, customer=user, is_active=True)
        except (CustomerAddress.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError('Address not found')

        cart = CartService.get_cart(user)
        lines = CartService.snapshot_cart(cart)
        totals = calculate_order_totals(lines, charges)
        if totals['total'] <= 0:
            raise ValidationError('Order total must be greater than zero')
        if totals['total'] > MAX_ORDER_AMOUNT:
            raise ValidationError(f'Order total cannot exceed {MAX_ORDER_AMOUNT}')

        order = self._create_order(user, address, delivery_date, customer_note or '', lines, totals)
        logger.info(
            f'[Checkout] Order {order.order_number} ({order.pk}) created for user {user.pk}: '
            f'{len(lines)} line(s), total {order.total}'
        )

        try:
            intent = self._start_payment(order)
        except ExternalServiceError:
            logger.error(
                f'[Checkout] Payment intent failed for order {order.order_number}; '
                f'order kept as pending without a gateway reference'
            )
            raise ExternalServiceError(
                'Order created but payment could not be started. Please retry payment.',
                error={'order_id': str(order.pk), 'order_number': order.order_number},
            )

        return CheckoutResult(order=order, payment_intent=intent)

    def _create_order(self, user, address, delivery_date, customer_note, lines, totals):
        max_attempts = getattr(settings, 'ORDER_NUMBER_MAX_ATTEMPTS', 5)

        for attempt in range(1, max_attempts + 1):
            order_number = generate_order_number()
            try:
                with transaction.atomic():
                    order = Order.objects.create(
                        order_number=order_number,
                        customer=user,
                        delivery_address=address,
                        scheduled_delivery_date=delivery_date,
                        customer_note=customer_note,
                        subtotal=totals['subtotal'],
                        delivery_charges=totals['delivery_charges'],
                        total=totals['total'],
                        payment_status=Order.PAYMENT_PENDING,
                        delivery_status=Order.DELIVERY_PENDING,
                    )
                    OrderItem.objects.bulk_create([
                        OrderItem(
                            order=order,
                            product=line.product,
                            product_name=line.product.name,
                            quantity=line.quantity,
                            price_at_purchase=line.unit_price,
                            line_total=line.line_total,
                        )
                        for line in lines
                    ])
                return order
            except IntegrityError:
                if not Order.objects.filter(order_number=order_number).exists():
                    raise
                logger.warning(
                    f'[Checkout] Order number {order_number} already taken '
                    f'(attempt {attempt}/{max_attempts})'
                )

        raise InternalError(
            'Could not allocate a unique order number',
            error={'attempts': max_attempts},
        )

    def _start_payment(self, order):
        """Request an intent for ``order.total`` and store its reference once."""
        customer = order.customer
        intent = self.gateway.create_payment_intent(
            amount=to_minor_units(order.total),
            currency=getattr(settings, 'STRIPE_CURRENCY', 'usd'),
            metadata={
                'order_id': str(order.pk),
                'order_number': order.order_number,
                'user_id': str(customer.pk),
                'total_amount': str(order.total),
            },
            receipt_email=customer.email,
            description=f'Order {order.order_number} for {customer.email} - {order.items_count} item(s)',
            idempotency_key=f'order-{order.pk}',
        )

        stored = Order.objects.filter(
            pk=order.pk, stripe_payment_intent_id__isnull=True
        ).update(stripe_payment_intent_id=intent.reference, updated_at=timezone.now())
        order.refresh_from_db()
        if not stored and order.stripe_payment_intent_id != intent.reference:
            logger.error(
                f'[Checkout] Order {order.order_number} already references '
                f'{order.stripe_payment_intent_id}; not overwriting with {intent.reference}'
            )
            raise InternalError('Order already has a payment reference')

        logger.info(f'[Checkout] Order {order.order_number} linked to PaymentIntent {intent.reference}')
        return intent

    def retry_payment(self, user, order_id):
        """
        Give the owner of a pending order a usable payment token again.

        Creates the intent when checkout never got one, otherwise re-fetches
        the existing intent. An intent that already settled is reconciled
        instead and reported as an error.
        """
        order = self.get_order(order_id)
        self._ensure_owner(user, order)
        if order.payment_status != Order.PAYMENT_PENDING:
            raise ValidationError(f'Order payment is already {order.payment_status}')

        if not order.stripe_payment_intent_id:
            intent = self._start_payment(order)
            return CheckoutResult(order=order, payment_intent=intent)

        intent = self.gateway.retrieve_payment_intent(order.stripe_payment_intent_id)
        if intent.status in (payment_gateway.STATUS_SUCCEEDED, payment_gateway.STATUS_CANCELED):
            result = self._apply_provider_status(order, intent.status, source='retry')
            raise ValidationError(f'Order payment is already {result.order.payment_status}')
        return CheckoutResult(order=order, payment_intent=intent)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def check_payment_status(self, user, order_id):
        order = self.get_order(order_id)
        self._ensure_owner(user, order)
        return self._reconcile(order, source='poll')

    def handle_webhook_event(self, event):
        """
        Apply a verified gateway event. Never raises for events that do not
        concern a known order; returns None in that case.
        """
        if not event.is_payment_intent_event or not event.reference:
            logger.info(f'[Webhook] Ignoring event {event.id} of type {event.type}')
            return None

        order = Order.objects.filter(stripe_payment_intent_id=event.reference).first()
        if order is None:
            logger.warning(
                f'[Webhook] No order for PaymentIntent {event.reference} ({event.type}); ignoring'
            )
            return None

        logger.info(f'[Webhook] {event.type} for order {order.order_number}')
        return self._reconcile(order, provider_status=event.status, source='webhook')

    def _reconcile(self, order, provider_status=None, source='poll'):
        if order.payment_status == Order.PAYMENT_COMPLETED:
            # Repeated confirmation: make sure the cart is empty, nothing else
            CartService.clear_cart(order.customer)
            return ReconciliationResult(order=order, outcome=OUTCOME_COMPLETED)

        if order.payment_status == Order.PAYMENT_FAILED:
            return ReconciliationResult(order=order, outcome=OUTCOME_FAILED)

        if not order.stripe_payment_intent_id:
            return ReconciliationResult(order=order, outcome=OUTCOME_PENDING)

        if provider_status is None:
            provider_status = self.gateway.retrieve_payment_intent(order.stripe_payment_intent_id).status

        return self._apply_provider_status(order, provider_status, source)

    def _apply_provider_status(self, order, provider_status, source):
        if provider_status == payment_gateway.STATUS_SUCCEEDED:
            updated = Order.objects.filter(
                pk=order.pk, payment_status=Order.PAYMENT_PENDING
            ).update(payment_status=Order.PAYMENT_COMPLETED, updated_at=timezone.now())
            order.refresh_from_db()

            if order.payment_status != Order.PAYMENT_COMPLETED:
                # Settled differently by someone else in the meantime
                return ReconciliationResult(order=order, outcome=order.payment_status,
                                            provider_status=provider_status)

            CartService.clear_cart(order.customer)
            if updated:
                self._record(order, OrderStatusUpdate.FIELD_PAYMENT, Order.PAYMENT_PENDING,
                             Order.PAYMENT_COMPLETED, note=f'Provider reported succeeded ({source})')
                logger.info(f'[Reconcile] Order {order.order_number} payment completed via {source}')
                self.email_service.send_payment_confirmation(order)
            return ReconciliationResult(order=order, outcome=OUTCOME_COMPLETED,
                                        provider_status=provider_status)

        if provider_status == payment_gateway.STATUS_CANCELED:
            updated = Order.objects.filter(
                pk=order.pk, payment_status=Order.PAYMENT_PENDING
            ).update(payment_status=Order.PAYMENT_FAILED, updated_at=timezone.now())
            order.refresh_from_db()
            if updated:
                self._record(order, OrderStatusUpdate.FIELD_PAYMENT, Order.PAYMENT_PENDING,
                             Order.PAYMENT_FAILED, note=f'Provider reported canceled ({source})')
                logger.info(f'[Reconcile] Order {order.order_number} payment canceled via {source}')
                return ReconciliationResult(order=order, outcome=OUTCOME_CANCELED,
                                            provider_status=provider_status)
            return ReconciliationResult(order=order, outcome=order.payment_status,
                                        provider_status=provider_status)

        if provider_status == payment_gateway.STATUS_PROCESSING:
            outcome = OUTCOME_PROCESSING
        elif provider_status == payment_gateway.STATUS_REQUIRES_PAYMENT_METHOD:
            outcome = OUTCOME_REQUIRES_PAYMENT_METHOD
        else:
            outcome = OUTCOME_UNKNOWN

        logger.info(
            f'[Reconcile] Order {order.order_number} left pending; provider status {provider_status} ({source})'
        )
        return ReconciliationResult(order=order, outcome=outcome, provider_status=provider_status)

    # ------------------------------------------------------------------
    # Staff actions
    # ------------------------------------------------------------------

    def update_delivery_status(self, actor, order_id, status):
        """Set any delivery status; no transition rules apply."""
        if not order_id or not status:
            raise ValidationError('Order ID and status are required')
        valid = [choice for choice, _ in Order.DELIVERY_STATUS]
        if status not in valid:
            raise ValidationError(f"Status must be one of: {', '.join(valid)}")

        with transaction.atomic():
            order = self.get_order(order_id, for_update=True)
            previous = order.delivery_status
            order.set_delivery_status(status)
            order.save(update_fields=['delivery_status', 'delivered_at', 'updated_at'])
            self._record(order, OrderStatusUpdate.FIELD_DELIVERY, previous, status, actor=actor)

        logger.info(f'[Orders] Order {order.order_number} delivery status {previous} -> {status} by {actor.pk}')
        return order

    def update_payment_status(self, actor, order_id, status):
        """Set any payment status; no transition rules apply."""
        if not order_id or not status:
            raise ValidationError('Order ID and payment status are required')
        valid = [choice for choice, _ in Order.PAYMENT_STATUS]
        if status not in valid:
            raise ValidationError(f"Payment status must be one of: {', '.join(valid)}")

        with transaction.atomic():
            order = self.get_order(order_id, for_update=True)
            previous = order.payment_status
            order.payment_status = status
            order.save(update_fields=['payment_status', 'updated_at'])
            self._record(order, OrderStatusUpdate.FIELD_PAYMENT, previous, status, actor=actor,
                         note='Manual override')

        logger.info(f'[Orders] Order {order.order_number} payment status {previous} -> {status} by {actor.pk}')
        return order

    def assign_driver(self, actor, order_id, driver_id):
        if not order_id or not driver_id:
            raise ValidationError('Order ID and Driver ID are required')

        with transaction.atomic():
            driver = get_driver(driver_id, for_update=True)
            if not driver.is_available:
                raise ValidationError('Driver is currently not available')

            order = self.get_order(order_id, for_update=True)
            if order.is_delivered:
                raise ValidationError('Cannot assign driver to delivered order')

            previous = order.assigned_driver_id
            order.assigned_driver = driver
            order.driver_assigned_at = timezone.now()
            order.save(update_fields=['assigned_driver', 'driver_assigned_at', 'updated_at'])
            self._record(order, OrderStatusUpdate.FIELD_DRIVER,
                         str(previous) if previous else '', str(driver.pk), actor=actor)

        logger.info(f'[Orders] Driver {driver.pk} assigned to order {order.order_number} by {actor.pk}')
        self.email_service.send_driver_assignment(order, driver)
        return order

    def unassign_driver(self, actor, order_id):
        """Remove the driver and reset delivery progress to pending."""
        with transaction.atomic():
            order = self.get_order(order_id, for_update=True)
            if not order.assigned_driver_id:
                raise ValidationError('No driver is assigned to this order')
            if order.is_delivered:
                raise ValidationError('Cannot unassign driver from delivered order')

            previous_driver = order.assigned_driver_id
            previous_status = order.delivery_status
            order.assigned_driver = None
            order.driver_assigned_at = None
            order.set_delivery_status(Order.DELIVERY_PENDING)
            order.save(update_fields=[
                'assigned_driver', 'driver_assigned_at', 'delivery_status', 'delivered_at', 'updated_at'
            ])
            self._record(order, OrderStatusUpdate.FIELD_DRIVER, str(previous_driver), '', actor=actor)
            if previous_status != Order.DELIVERY_PENDING:
                self._record(order, OrderStatusUpdate.FIELD_DELIVERY, previous_status,
                             Order.DELIVERY_PENDING, actor=actor, note='Driver unassigned')

        logger.info(f'[Orders] Driver {previous_driver} unassigned from order {order.order_number} by {actor.pk}')
        return order

    # ------------------------------------------------------------------
    # Driver self-service
    # ------------------------------------------------------------------

    def driver_update_status(self, driver, order_id, status, notes=None):
        if not order_id or not status:
            raise ValidationError('Order ID and status are required')

        with transaction.atomic():
            order = self.get_order(order_id, for_update=True)
            if order.assigned_driver_id != driver.pk:
                raise AuthorizationError('You are not assigned to this delivery')
            if status not in Order.DRIVER_DELIVERY_STATUSES:
                raise ValidationError(
                    f"Status must be one of: {', '.join(Order.DRIVER_DELIVERY_STATUSES)}"
                )

            previous = order.delivery_status
            order.set_delivery_status(status)
            update_fields = ['delivery_status', 'delivered_at', 'updated_at']
            if notes is not None:
                order.driver_notes = notes
                update_fields.append('driver_notes')
            order.save(update_fields=update_fields)
            self._record(order, OrderStatusUpdate.FIELD_DELIVERY, previous, status,
                         actor=driver, note=notes or '')

        logger.info(f'[Orders] Driver {driver.pk} moved order {order.order_number} {previous} -> {status}')
        return order

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    @staticmethod
    def _with_relations(queryset):
        return queryset.select_related(
            'customer', 'delivery_address', 'assigned_driver'
        ).prefetch_related('items__product')

    def orders_for_customer(self, user):
        return self._with_relations(Order.objects.filter(customer=user)).order_by('-created_at')

    def unassigned_orders(self, date=None):
        orders = Order.objects.filter(assigned_driver__isnull=True).exclude(
            delivery_status=Order.DELIVERY_DELIVERED
        )
        if date:
            orders = orders.filter(scheduled_delivery_date=parse_filter_date(date))
        return self._with_relations(orders).order_by('scheduled_delivery_date', 'created_at')

    def orders_for_admin(self, status=None, driver_id=None, date=None):
        orders = Order.objects.all()
        if status:
            orders = orders.filter(delivery_status=status)
        if driver_id:
            try:
                driver_id = uuid.UUID(str(driver_id))
            except ValueError:
                raise ValidationError('Invalid driver ID')
            orders = orders.filter(assigned_driver_id=driver_id)
        if date:
            orders = orders.filter(scheduled_delivery_date=parse_filter_date(date))
        return self._with_relations(orders).order_by('-scheduled_delivery_date', '-created_at')
