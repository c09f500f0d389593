from rest_framework import status as http_status
from rest_framework.response import Response

from .exceptions import build_envelope


def api_response(message, data=None, status=http_status.HTTP_200_OK):
    """Successful response in the ``{statusCode, message, success, data}`` envelope."""
    return Response(build_envelope(status, message, True, data), status=status)


def api_error(message, error=None, status=http_status.HTTP_400_BAD_REQUEST):
    """Failure response for outcomes that are reported rather than raised."""
    return Response(build_envelope(status, message, False, error, payload_key='error'), status=status)
