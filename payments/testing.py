"""
In-memory payment gateway for tests and local development without Stripe.

Mirrors the behaviour the order engine relies on: one intent per
idempotency key, provider failures surfaced as ExternalServiceError.
"""
import dataclasses
import hashlib
import hmac
import json
import time

from ShopHub.exceptions import ExternalServiceError
from .gateway import PaymentGateway, PaymentIntent, STATUS_REQUIRES_PAYMENT_METHOD


class FakeGateway(PaymentGateway):

    def __init__(self, currency='usd'):
        self.currency = currency
        self.intents = {}
        self.by_idempotency_key = {}
        self.create_calls = []
        self.retrieve_calls = []
        self.fail_next_create = False

    def create_payment_intent(self, amount, currency=None, metadata=None, receipt_email=None,
                              description='', idempotency_key=None):
        self.create_calls.append({
            'amount': amount,
            'currency': currency,
            'metadata': metadata or {},
            'receipt_email': receipt_email,
            'description': description,
            'idempotency_key': idempotency_key,
        })
        if self.fail_next_create:
            self.fail_next_create = False
            raise ExternalServiceError('Payment provider request failed')

        if idempotency_key and idempotency_key in self.by_idempotency_key:
            return self.intents[self.by_idempotency_key[idempotency_key]]

        reference = f'pi_fake_{len(self.intents) + 1:04d}'
        intent = PaymentIntent(
            reference=reference,
            status=STATUS_REQUIRES_PAYMENT_METHOD,
            client_secret=f'{reference}_secret_fake',
            amount=amount,
            currency=(currency or self.currency).lower(),
        )
        self.intents[reference] = intent
        if idempotency_key:
            self.by_idempotency_key[idempotency_key] = reference
        return intent

    def retrieve_payment_intent(self, reference):
        self.retrieve_calls.append(reference)
        if reference not in self.intents:
            raise ExternalServiceError('Payment provider request failed')
        return self.intents[reference]

    def construct_event(self, payload, signature):
        raise NotImplementedError('FakeGateway does not verify webhooks')

    def set_status(self, reference, status):
        """Simulate the provider moving an intent to ``status``."""
        self.intents[reference] = dataclasses.replace(self.intents[reference], status=status)


def sign_webhook_payload(payload, secret, timestamp=None):
    """
    Build a ``Stripe-Signature`` header for ``payload`` the way Stripe does:
    ``t=<ts>,v1=<hex HMAC-SHA256 of "<ts>.<payload>">``.
    """
    if isinstance(payload, dict):
        payload = json.dumps(payload)
    if isinstance(payload, bytes):
        payload = payload.decode('utf-8')
    timestamp = int(timestamp if timestamp is not None else time.time())
    signed = f'{timestamp}.{payload}'.encode('utf-8')
    digest = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={digest}'
