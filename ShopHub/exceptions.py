"""
Error taxonomy shared by every app, and the DRF exception handler that
renders all failures in the standard response envelope.
"""
import logging

from django.conf import settings
from rest_framework import status
from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ShopHubError(drf_exceptions.APIException):
    """Base class for domain errors. ``error`` carries optional structured detail."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Internal Server Error'
    default_code = 'error'

    def __init__(self, detail=None, code=None, error=None):
        super().__init__(detail=detail, code=code)
        self.error = error


class ValidationError(ShopHubError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid request'
    default_code = 'invalid'


class AuthenticationError(ShopHubError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Unauthorized access'
    default_code = 'not_authenticated'


class AuthorizationError(ShopHubError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Access denied'
    default_code = 'permission_denied'


class NotFoundError(ShopHubError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found'
    default_code = 'not_found'


class ExternalServiceError(ShopHubError):
    """The payment provider (or another collaborator) failed or was unreachable."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Payment provider unavailable'
    default_code = 'external_service_error'


class SignatureVerificationError(ExternalServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Webhook signature verification failed'
    default_code = 'invalid_signature'


class InternalError(ShopHubError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Internal Server Error'
    default_code = 'internal_error'


def build_envelope(status_code, message, success, payload=None, payload_key='data'):
    return {
        'statusCode': status_code,
        'message': message,
        'success': success,
        payload_key: payload,
    }


def _message_from_detail(detail):
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list) and detail and isinstance(detail[0], str):
        return detail[0]
    return 'Validation failed'


def envelope_exception_handler(exc, context):
    """Render every API failure as ``{statusCode, message, success, error}``."""
    response = exception_handler(exc, context)
    view = context.get('view')
    view_name = view.__class__.__name__ if view is not None else 'unknown'

    if response is None:
        logger.exception(f'[API] Unhandled error in {view_name}: {exc}')
        error = str(exc) if settings.DEBUG else None
        return Response(
            build_envelope(500, 'Internal Server Error', False, error, payload_key='error'),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, InternalError):
        logger.error(f'[API] Internal error in {view_name}: {exc.detail}')
        error = exc.error if settings.DEBUG else None
        response.data = build_envelope(
            response.status_code, 'Internal Server Error', False, error, payload_key='error'
        )
        return response

    if isinstance(exc, ShopHubError):
        message = str(exc.detail)
        error = exc.error
    elif isinstance(exc, drf_exceptions.ValidationError):
        message = _message_from_detail(exc.detail)
        error = response.data
    else:
        message = _message_from_detail(getattr(exc, 'detail', str(exc)))
        error = None

    if response.status_code >= 500:
        logger.error(f'[API] {view_name} failed with {response.status_code}: {message}')

    response.data = build_envelope(response.status_code, message, False, error, payload_key='error')
    return response
