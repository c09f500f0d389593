"""
Order calculation helpers: totals, currency unit conversion and order numbers.
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
import logging
import random

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
MINOR_UNITS_PER_MAJOR = 100
# Largest amount an Order money column (max_digits=10, decimal_places=2) can hold
MAX_ORDER_AMOUNT = Decimal('99999999.99')


def to_decimal(value, field='amount'):
    """Coerce ``value`` to a two-place Decimal. Raises ValueError on garbage."""
    if value is None or value == '':
        return Decimal('0.00')
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValueError
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f'Invalid {field}: {value!r}')


def to_minor_units(amount):
    """
    Convert a decimal currency amount to the provider's smallest unit.

    Rounds half-up to the nearest cent rather than truncating, so that
    floating-point noise like 28.499999 never under-bills by one cent.
    """
    amount = Decimal(str(amount))
    return int((amount * MINOR_UNITS_PER_MAJOR).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def from_minor_units(minor_units):
    return (Decimal(int(minor_units)) / MINOR_UNITS_PER_MAJOR).quantize(CENT)


def calculate_order_totals(lines, delivery_charges=Decimal('0.00')):
    """
    Calculate order totals from snapshotted cart lines.

    Args:
        lines: iterable of objects exposing ``unit_price`` and ``quantity``
        delivery_charges: Decimal delivery charge

    Returns:
        dict: {'subtotal', 'delivery_charges', 'total'} where
        total == subtotal + delivery_charges
    """
    subtotal = sum(
        (line.unit_price * line.quantity for line in lines),
        Decimal('0.00')
    ).quantize(CENT, rounding=ROUND_HALF_UP)
    delivery_charges = to_decimal(delivery_charges, 'delivery charges')

    totals = {
        'subtotal': subtotal,
        'delivery_charges': delivery_charges,
        'total': subtotal + delivery_charges,
    }
    logger.info(
        f"[OrderHelpers] Calculated - Subtotal: {totals['subtotal']}, "
        f"Delivery: {totals['delivery_charges']}, Total: {totals['total']}"
    )
    return totals


def generate_order_number():
    """Human-readable order number: '#' followed by six random digits."""
    return f"#{random.randint(100000, 999999)}"


def parse_date_value(value, field='date'):
    """
    Accept a ``date``, a ``datetime`` or an ISO 8601 string and return a date.

    Aware datetimes are converted to the project time zone first so that the
    comparison with "today" happens at day granularity in local time.
    """
    if isinstance(value, datetime):
        return timezone.localtime(value).date() if timezone.is_aware(value) else value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    try:
        parsed = parse_date(text)
        if parsed is not None:
            return parsed
        moment = parse_datetime(text)
    except ValueError:
        moment = None
    if moment is None:
        raise ValueError(f'Invalid {field}: {value!r}')
    return timezone.localtime(moment).date() if timezone.is_aware(moment) else moment.date()
