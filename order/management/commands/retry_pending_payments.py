import logging

from django.core.management.base import BaseCommand

from ShopHub.exceptions import ShopHubError
from order.models import Order
from order.services import OrderLifecycleService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Request payment intents for pending orders that never received a gateway reference'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the affected orders without contacting the payment provider',
        )

    def handle(self, *args, **options):
        orders = Order.objects.filter(
            payment_status=Order.PAYMENT_PENDING,
            stripe_payment_intent_id__isnull=True,
        ).select_related('customer').order_by('created_at')

        if not orders.exists():
            self.stdout.write('No pending orders without a payment reference')
            return

        if options['dry_run']:
            for order in orders:
                self.stdout.write(f'Order {order.order_number}: {order.total} ({order.customer.email})')
            self.stdout.write(self.style.WARNING(f'Dry run: {orders.count()} order(s) would be retried'))
            return

        service = OrderLifecycleService()
        recovered = 0
        failed = 0

        for order in orders:
            try:
                result = service.retry_payment(order.customer, order.pk)
            except ShopHubError as e:
                failed += 1
                logger.error(f'[RetryPayments] Order {order.order_number} not recovered: {e.detail}')
                self.stdout.write(self.style.ERROR(f'Order {order.order_number}: {e.detail}'))
                continue

            recovered += 1
            self.stdout.write(
                self.style.SUCCESS(
                    f'Order {order.order_number}: linked to {result.payment_intent.reference}'
                )
            )

        self.stdout.write(
            self.style.SUCCESS(f'Recovered {recovered} order(s), {failed} failed')
        )
