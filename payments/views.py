import logging

from rest_framework.permissions import AllowAny
from rest_framework.views import APIView

from ShopHub.responses import api_response
from order.services import OrderLifecycleService
from .gateway import get_gateway

logger = logging.getLogger(__name__)


class StripeWebhookView(APIView):
    """
    POST /api/v1/gateway/webhook/

    Unauthenticated; trust comes from the ``Stripe-Signature`` header, which
    is checked against the raw request body before anything is applied.
    Events for unknown orders are acknowledged so the provider stops retrying.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request, *args, **kwargs):
        gateway = get_gateway()
        # request.data must not be touched before this: the signature covers the raw bytes
        payload = request.body
        signature = request.META.get('HTTP_STRIPE_SIGNATURE', '')

        event = gateway.construct_event(payload, signature)
        logger.info(f'[Webhook] Received {event.type} ({event.id})')

        OrderLifecycleService(gateway).handle_webhook_event(event)
        return api_response('Webhook received', {'received': True})
