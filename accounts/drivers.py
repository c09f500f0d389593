"""
Driver Directory
================

Queries over users with the driver role, availability toggling and
per-driver delivery statistics.

A driver's assigned deliveries are not stored on the user record: they are
always derived from ``Order.assigned_driver``, so the driver side and the
order side of an assignment cannot disagree.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from ShopHub.exceptions import NotFoundError, ValidationError
from order.models import Order
from .models import User

logger = logging.getLogger(__name__)


def list_drivers(available=None):
    """All driver-role users, optionally filtered by availability."""
    drivers = User.objects.drivers().order_by('name', 'email')
    if available is not None:
        drivers = drivers.filter(is_available=available)
    return drivers


def get_driver(driver_id, for_update=False):
    """
    Resolve a driver by id.

    Raises NotFoundError when no user has that id and ValidationError when the
    user exists but is not a driver.
    """
    queryset = User.objects.select_for_update() if for_update else User.objects
    try:
        user = queryset.get(pk=driver_id)
    except (User.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError('Driver not found')

    if not user.is_driver:
        raise ValidationError('Selected user is not a driver')
    return user


def set_availability(driver, is_available):
    if not isinstance(is_available, bool):
        raise ValidationError('is_available must be a boolean value')

    driver.is_available = is_available
    driver.save(update_fields=['is_available'])
    logger.info(f'[Drivers] Driver {driver.pk} availability set to {is_available}')
    return driver


def assigned_deliveries(driver, delivery_status=None, date=None):
    """Orders assigned to ``driver``, earliest scheduled delivery first."""
    deliveries = Order.objects.filter(assigned_driver=driver)
    if delivery_status:
        deliveries = deliveries.filter(delivery_status=delivery_status)
    if date:
        deliveries = deliveries.filter(scheduled_delivery_date=date)
    return deliveries.select_related('customer', 'delivery_address').prefetch_related(
        'items__product'
    ).order_by('scheduled_delivery_date', 'created_at')


def driver_stats(driver, today=None):
    """
    Delivery counters for a driver.

    ``today`` defaults to the current local date; "today" counters are based on
    the scheduled delivery date.
    """
    today = today or timezone.localdate()
    deliveries = Order.objects.filter(assigned_driver=driver)

    total = deliveries.count()
    completed = deliveries.filter(delivery_status=Order.DELIVERY_DELIVERED).count()
    pending = deliveries.filter(delivery_status=Order.DELIVERY_PENDING).count()
    on_my_way = deliveries.filter(delivery_status=Order.DELIVERY_ON_MY_WAY).count()

    todays = deliveries.filter(scheduled_delivery_date=today)
    today_total = todays.count()
    today_completed = todays.filter(delivery_status=Order.DELIVERY_DELIVERED).count()

    completion_rate = Decimal('0.00')
    if total:
        completion_rate = (Decimal(completed) * 100 / Decimal(total)).quantize(
            Decimal('0.01'), rounding=ROUND_HALF_UP
        )

    return {
        'total_deliveries': total,
        'completed_deliveries': completed,
        'pending_deliveries': pending,
        'on_my_way_deliveries': on_my_way,
        'today_deliveries': today_total,
        'today_completed_deliveries': today_completed,
        'completion_rate': float(completion_rate),
    }
