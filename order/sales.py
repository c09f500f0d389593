"""
Sales analytics for the admin dashboard.

Revenue is the ``total`` of orders whose payment completed, bucketed by the
local date of ``created_at`` (project ``TIME_ZONE``). Weeks start on Monday.
"""
import calendar
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.db.models import Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from .helpers import CENT
from .models import Order

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def paid_orders():
    return Order.objects.filter(payment_status=Order.PAYMENT_COMPLETED)


def _sum(queryset):
    total = queryset.aggregate(total=Sum('total'))['total'] or ZERO
    return total.quantize(CENT)


def _range_total(start, end):
    return _sum(paid_orders().filter(created_at__date__gte=start, created_at__date__lte=end))


def _percentage_change(current, previous):
    if previous <= 0:
        return 0.0
    change = (current - previous) / previous * 100
    return float(change.quantize(CENT, rounding=ROUND_HALF_UP))


def _week_start(day):
    return day - timedelta(days=day.weekday())


def daily_totals(start, end):
    """{date: Decimal} for every day in [start, end] that had paid orders"""
    rows = (
        paid_orders()
        .filter(created_at__date__gte=start, created_at__date__lte=end)
        .annotate(day=TruncDate('created_at'))
        .values('day')
        .annotate(total=Sum('total'))
        .order_by('day')
    )
    return {row['day']: row['total'].quantize(CENT) for row in rows}


def _series(start, days, label):
    totals = daily_totals(start, start + timedelta(days=days - 1))
    series = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        series.append({
            'day': label(day),
            'date': day.strftime('%Y-%m-%d'),
            'total': str(totals.get(day, ZERO)),
        })
    return series


def sales_summary(today=None):
    """Lifetime revenue plus day-over-day and week-over-week movement."""
    today = today or timezone.localdate()
    yesterday = today - timedelta(days=1)
    week_start = _week_start(today)
    last_week_start = week_start - timedelta(days=7)

    today_sales = _range_total(today, today)
    yesterday_sales = _range_total(yesterday, yesterday)
    this_week_sales = _range_total(week_start, today)
    last_week_sales = _range_total(last_week_start, week_start - timedelta(days=1))

    summary = {
        'date': today.strftime('%Y-%m-%d'),
        'total_sales': str(_sum(paid_orders())),
        'today_sales': str(today_sales),
        'yesterday_sales': str(yesterday_sales),
        'this_week_sales': str(this_week_sales),
        'last_week_sales': str(last_week_sales),
        'today_percentage': _percentage_change(today_sales, yesterday_sales),
        'week_percentage': _percentage_change(this_week_sales, last_week_sales),
    }
    logger.info(
        f"[Sales] Summary for {summary['date']}: total {summary['total_sales']}, "
        f"today {summary['today_sales']} ({summary['today_percentage']}%)"
    )
    return summary


def weekly_sales(today=None):
    """Daily revenue Monday to Sunday of the week containing ``today``."""
    today = today or timezone.localdate()
    return _series(_week_start(today), 7, lambda day: day.strftime('%a'))


def monthly_sales(today=None):
    """Daily revenue for every day of the month containing ``today``."""
    today = today or timezone.localdate()
    days_in_month = calendar.monthrange(today.year, today.month)[1]
    return _series(today.replace(day=1), days_in_month, lambda day: day.day)
