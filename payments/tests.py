"""
Payment gateway adapter and webhook endpoint tests
"""
import json
from decimal import Decimal
from unittest.mock import MagicMock

import stripe
from django.core import mail
from django.core.exceptions import ImproperlyConfigured
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from ShopHub.exceptions import ExternalServiceError, SignatureVerificationError
from accounts.models import User
from location.models import CustomerAddress
from order.models import Cart, CartItem, Order, OrderStatusUpdate
from products.models import Product
from .gateway import StripeGateway, get_gateway, STATUS_SUCCEEDED
from .testing import sign_webhook_payload

WEBHOOK_SECRET = 'whsec_shophub_test'
WEBHOOK_URL = '/api/v1/gateway/webhook/'


def _event(event_type, reference, event_id='evt_test_1'):
    return {
        'id': event_id,
        'object': 'event',
        'type': event_type,
        'data': {
            'object': {
                'id': reference,
                'object': 'payment_intent',
                'status': event_type.split('.')[-1],
            }
        },
    }


class StripeGatewayConfigTestCase(TestCase):

    def test_missing_secret_key_fails_at_construction(self):
        with self.assertRaises(ImproperlyConfigured):
            StripeGateway(secret_key='', webhook_secret=WEBHOOK_SECRET)

    def test_missing_webhook_secret_fails_at_construction(self):
        with self.assertRaises(ImproperlyConfigured):
            StripeGateway(secret_key='sk_test_x', webhook_secret='')

    @override_settings(STRIPE_SECRET_KEY='')
    def test_from_settings_validates(self):
        with self.assertRaises(ImproperlyConfigured):
            StripeGateway.from_settings()

    def test_app_builds_gateway_at_startup(self):
        gateway = get_gateway()
        self.assertIsInstance(gateway, StripeGateway)
        self.assertEqual(gateway.currency, 'usd')


class StripeGatewayTestCase(TestCase):

    def setUp(self):
        self.gateway = StripeGateway(secret_key='sk_test_x', webhook_secret=WEBHOOK_SECRET)
        self.client = MagicMock()
        self.client_gateway = StripeGateway(
            secret_key='sk_test_x', webhook_secret=WEBHOOK_SECRET, client=self.client
        )

    def test_adapter_owns_its_client(self):
        self.assertIsInstance(self.gateway.client, stripe.StripeClient)
        other = StripeGateway(secret_key='sk_test_y', webhook_secret=WEBHOOK_SECRET)
        self.assertIsNot(other.client, self.gateway.client)

    def test_create_payment_intent(self):
        create = self.client.payment_intents.create
        create.return_value = {
            'id': 'pi_123', 'status': 'requires_payment_method',
            'client_secret': 'pi_123_secret', 'amount': 2850, 'currency': 'usd',
        }

        intent = self.client_gateway.create_payment_intent(
            amount=2850, currency='USD', metadata={'order_id': 'abc'}, idempotency_key='order-abc'
        )

        self.assertEqual(intent.reference, 'pi_123')
        self.assertEqual(intent.client_secret, 'pi_123_secret')
        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs['params']['amount'], 2850)
        self.assertEqual(kwargs['params']['currency'], 'usd')
        self.assertEqual(kwargs['params']['metadata'], {'order_id': 'abc'})
        self.assertEqual(kwargs['options'], {'idempotency_key': 'order-abc'})

    def test_create_payment_intent_rejects_non_positive_amounts(self):
        for amount in (0, -5, 28.5, True):
            with self.assertRaises(ValueError):
                self.gateway.create_payment_intent(amount=amount)

    def test_provider_error_becomes_external_service_error(self):
        self.client.payment_intents.create.side_effect = stripe.APIConnectionError('network down')
        with self.assertRaises(ExternalServiceError):
            self.client_gateway.create_payment_intent(amount=100)

    def test_retrieve_payment_intent(self):
        retrieve = self.client.payment_intents.retrieve
        retrieve.return_value = {
            'id': 'pi_123', 'status': 'processing',
            'client_secret': 'pi_123_secret', 'amount': 2850, 'currency': 'usd',
        }
        intent = self.client_gateway.retrieve_payment_intent('pi_123')

        self.assertEqual(intent.status, 'processing')
        retrieve.assert_called_once_with('pi_123')

    def test_construct_event_with_valid_signature(self):
        payload = json.dumps(_event('payment_intent.succeeded', 'pi_123'))
        event = self.gateway.construct_event(payload.encode(), sign_webhook_payload(payload, WEBHOOK_SECRET))

        self.assertEqual(event.type, 'payment_intent.succeeded')
        self.assertEqual(event.reference, 'pi_123')
        self.assertEqual(event.status, STATUS_SUCCEEDED)
        self.assertTrue(event.is_payment_intent_event)

    def test_payment_failed_event_maps_to_requires_payment_method(self):
        payload = json.dumps(_event('payment_intent.payment_failed', 'pi_123'))
        event = self.gateway.construct_event(payload.encode(), sign_webhook_payload(payload, WEBHOOK_SECRET))
        self.assertEqual(event.status, 'requires_payment_method')

    def test_construct_event_rejects_wrong_secret(self):
        payload = json.dumps(_event('payment_intent.succeeded', 'pi_123'))
        with self.assertRaises(SignatureVerificationError):
            self.gateway.construct_event(payload.encode(), sign_webhook_payload(payload, 'whsec_other'))

    def test_construct_event_rejects_missing_signature(self):
        with self.assertRaises(SignatureVerificationError):
            self.gateway.construct_event(b'{}', '')

    def test_unrelated_event_has_no_reference(self):
        payload = json.dumps({
            'id': 'evt_2', 'object': 'event', 'type': 'charge.refunded',
            'data': {'object': {'id': 'ch_1', 'object': 'charge'}},
        })
        event = self.gateway.construct_event(payload.encode(), sign_webhook_payload(payload, WEBHOOK_SECRET))
        self.assertFalse(event.is_payment_intent_event)
        self.assertIsNone(event.reference)


class StripeWebhookViewTestCase(TestCase):
    """POST /api/v1/gateway/webhook/"""

    def setUp(self):
        self.client = APIClient()
        self.customer = User.objects.create_user(email='customer@example.com', password='testpass123')
        self.address = CustomerAddress.objects.create(
            customer=self.customer, label='Home', street_address='1 Main St'
        )
        self.product = Product.objects.create(name='Coffee', price=Decimal('10.00'), stock=10)
        cart = Cart.objects.create(customer=self.customer)
        CartItem.objects.create(cart=cart, product=self.product, quantity=2)

        self.order = Order.objects.create(
            order_number='#100001',
            customer=self.customer,
            delivery_address=self.address,
            scheduled_delivery_date=timezone.localdate(),
            subtotal=Decimal('20.00'),
            total=Decimal('20.00'),
            stripe_payment_intent_id='pi_webhook_1',
        )

    def _post(self, event, secret=WEBHOOK_SECRET):
        payload = json.dumps(event)
        return self.client.post(
            WEBHOOK_URL,
            data=payload,
            content_type='application/json',
            HTTP_STRIPE_SIGNATURE=sign_webhook_payload(payload, secret),
        )

    def test_succeeded_event_completes_order(self):
        response = self._post(_event('payment_intent.succeeded', 'pi_webhook_1'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data'], {'received': True})

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_COMPLETED)
        self.assertFalse(CartItem.objects.filter(cart__customer=self.customer).exists())
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('#100001', mail.outbox[0].subject)

    def test_duplicate_succeeded_event_is_applied_once(self):
        self._post(_event('payment_intent.succeeded', 'pi_webhook_1', event_id='evt_a'))
        response = self._post(_event('payment_intent.succeeded', 'pi_webhook_1', event_id='evt_a'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(
            OrderStatusUpdate.objects.filter(order=self.order, field=OrderStatusUpdate.FIELD_PAYMENT).count(),
            1
        )

    def test_canceled_event_fails_pending_order(self):
        self._post(_event('payment_intent.canceled', 'pi_webhook_1'))

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_FAILED)
        self.assertTrue(CartItem.objects.filter(cart__customer=self.customer).exists())

    def test_late_canceled_event_does_not_undo_completed_payment(self):
        self._post(_event('payment_intent.succeeded', 'pi_webhook_1', event_id='evt_1'))
        self._post(_event('payment_intent.canceled', 'pi_webhook_1', event_id='evt_2'))

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_COMPLETED)

    def test_payment_failed_event_leaves_order_pending(self):
        response = self._post(_event('payment_intent.payment_failed', 'pi_webhook_1'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PENDING)

    def test_unknown_reference_is_acknowledged(self):
        response = self._post(_event('payment_intent.succeeded', 'pi_nobody'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(Order.objects.count(), 1)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PENDING)

    def test_invalid_signature_is_rejected(self):
        response = self._post(_event('payment_intent.succeeded', 'pi_webhook_1'), secret='whsec_wrong')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PENDING)

    def test_missing_signature_is_rejected(self):
        response = self.client.post(
            WEBHOOK_URL, data=json.dumps(_event('payment_intent.succeeded', 'pi_webhook_1')),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_webhook_ignores_bearer_authentication(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')
        response = self._post(_event('payment_intent.succeeded', 'pi_webhook_1'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
