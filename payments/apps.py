import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class PaymentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'payments'
    verbose_name = 'Payments'

    gateway = None

    def ready(self):
        from .gateway import StripeGateway

        self.gateway = StripeGateway.from_settings()
        logger.info(
            f'[Gateway] Stripe adapter ready (currency={self.gateway.currency}, '
            f'timeout={self.gateway.timeout}s, retries={self.gateway.max_network_retries})'
        )
