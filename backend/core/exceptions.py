import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    Wrap DRF's default handler.

    Handled API errors are logged at warning level. Anything DRF does not know
    how to render becomes a logged 500 with a generic body.
    """
    response = exception_handler(exc, context)
    request = context.get('request')
    endpoint = f"{request.method} {request.path}" if request is not None else 'unknown endpoint'

    if response is not None:
        logger.warning(f"API error on {endpoint}: {response.status_code} {exc}")
        return response

    logger.exception(f"Unhandled error on {endpoint}: {exc}")
    return Response({'error': 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
