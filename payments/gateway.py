"""
Payment Gateway Adapter
=======================

Everything that talks to the payment provider lives behind
:class:`PaymentGateway`. Amounts cross this boundary in the provider's
smallest currency unit (an ``int``); converting to and from decimal money is
the caller's job (see ``order.helpers``).

The concrete :class:`StripeGateway` is built once when the ``payments`` app
loads (``PaymentsConfig.ready``) and handed to the order services through
:func:`get_gateway`. Missing secrets stop the process at startup instead of
failing on the first checkout.
"""

import logging
from dataclasses import dataclass, field

import stripe
from django.apps import apps
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from ShopHub.exceptions import ExternalServiceError, SignatureVerificationError

logger = logging.getLogger(__name__)


# Provider statuses the order engine reacts to
STATUS_SUCCEEDED = 'succeeded'
STATUS_PROCESSING = 'processing'
STATUS_REQUIRES_PAYMENT_METHOD = 'requires_payment_method'
STATUS_CANCELED = 'canceled'

# Webhook event types and the provider status each one reports
EVENT_STATUSES = {
    'payment_intent.succeeded': STATUS_SUCCEEDED,
    'payment_intent.processing': STATUS_PROCESSING,
    'payment_intent.payment_failed': STATUS_REQUIRES_PAYMENT_METHOD,
    'payment_intent.canceled': STATUS_CANCELED,
}


@dataclass(frozen=True)
class PaymentIntent:
    reference: str
    status: str
    client_secret: str = field(default=None, repr=False)
    amount: int = None
    currency: str = None


@dataclass(frozen=True)
class GatewayEvent:
    id: str
    type: str
    reference: str = None
    status: str = None

    @property
    def is_payment_intent_event(self):
        return self.type in EVENT_STATUSES


class PaymentGateway:
    """Interface the order lifecycle depends on"""

    def create_payment_intent(self, amount, currency, metadata, receipt_email=None,
                              description='', idempotency_key=None):
        raise NotImplementedError

    def retrieve_payment_intent(self, reference):
        raise NotImplementedError

    def construct_event(self, payload, signature):
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    """Stripe implementation of :class:`PaymentGateway`"""

    def __init__(self, secret_key, webhook_secret, currency='usd', timeout=10, max_network_retries=2,
                 client=None):
        if not secret_key:
            raise ImproperlyConfigured('STRIPE_SECRET_KEY must be set')
        if not webhook_secret:
            raise ImproperlyConfigured('STRIPE_WEBHOOK_SECRET must be set')
        if not currency:
            raise ImproperlyConfigured('STRIPE_CURRENCY must not be empty')

        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency.lower()
        self.timeout = timeout
        self.max_network_retries = max_network_retries
        # Per-adapter client; the SDK's module-level defaults are left alone
        self.client = client or stripe.StripeClient(
            secret_key,
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=max_network_retries,
        )

    @classmethod
    def from_settings(cls):
        return cls(
            secret_key=getattr(settings, 'STRIPE_SECRET_KEY', ''),
            webhook_secret=getattr(settings, 'STRIPE_WEBHOOK_SECRET', ''),
            currency=getattr(settings, 'STRIPE_CURRENCY', 'usd'),
            timeout=getattr(settings, 'STRIPE_TIMEOUT_SECONDS', 10),
            max_network_retries=getattr(settings, 'STRIPE_MAX_NETWORK_RETRIES', 2),
        )

    @staticmethod
    def _to_intent(intent):
        return PaymentIntent(
            reference=intent['id'],
            status=intent['status'],
            client_secret=intent['client_secret'],
            amount=intent['amount'],
            currency=intent['currency'],
        )

    def create_payment_intent(self, amount, currency=None, metadata=None, receipt_email=None,
                              description='', idempotency_key=None):
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValueError(f'amount must be a positive integer in minor units, got {amount!r}')

        params = {
            'amount': amount,
            'currency': (currency or self.currency).lower(),
            'metadata': metadata or {},
            'automatic_payment_methods': {'enabled': True},
        }
        if receipt_email:
            params['receipt_email'] = receipt_email
        if description:
            params['description'] = description

        try:
            intent = self.client.payment_intents.create(
                params=params,
                options={'idempotency_key': idempotency_key} if idempotency_key else {},
            )
        except stripe.StripeError as e:
            logger.error(f'[Gateway] PaymentIntent creation failed for {amount} {params["currency"]}: {e}')
            raise ExternalServiceError('Payment provider request failed')

        logger.info(f'[Gateway] Created PaymentIntent {intent["id"]} for {amount} {params["currency"]}')
        return self._to_intent(intent)

    def retrieve_payment_intent(self, reference):
        if not reference:
            raise ValueError('reference is required')
        try:
            intent = self.client.payment_intents.retrieve(reference)
        except stripe.StripeError as e:
            logger.error(f'[Gateway] PaymentIntent {reference} retrieval failed: {e}')
            raise ExternalServiceError('Payment provider request failed')
        return self._to_intent(intent)

    def construct_event(self, payload, signature):
        """
        Verify ``signature`` over the raw ``payload`` and parse the event.

        Raises SignatureVerificationError when the signature header is missing
        or wrong, or the body is not a valid event.
        """
        if not signature:
            raise SignatureVerificationError('Missing webhook signature')
        try:
            event = self.client.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f'[Gateway] Webhook signature invalid: {e}')
            raise SignatureVerificationError('Invalid webhook signature')
        except ValueError as e:
            logger.warning(f'[Gateway] Webhook payload invalid: {e}')
            raise SignatureVerificationError('Invalid webhook payload')

        reference = None
        status = None
        if event['type'] in EVENT_STATUSES:
            reference = event['data']['object']['id']
            status = EVENT_STATUSES[event['type']]

        return GatewayEvent(id=event['id'], type=event['type'], reference=reference, status=status)


def get_gateway():
    """The adapter built by ``PaymentsConfig.ready``."""
    return apps.get_app_config('payments').gateway
