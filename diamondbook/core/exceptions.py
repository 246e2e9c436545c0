"""
API exception handling.

Business-rule errors raised below the view layer are turned into the same
``{'error': ...}`` JSON bodies the views return by hand.
"""
import logging

from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from diamondbook.diamonds.valuation import ValuationError

logger = logging.getLogger(__name__)


def protected_error_response(exc):
    """409 response listing what still references the object being deleted"""
    blocking = sorted({obj._meta.verbose_name_plural for obj in exc.protected_objects})
    return Response(
        {
            'error': 'This record is still referenced and cannot be deleted.',
            'referenced_by': blocking,
        },
        status=status.HTTP_409_CONFLICT,
    )


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, ValuationError):
        logger.info(f"Valuation rejected: {exc}")
        return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, ProtectedError):
        return protected_error_response(exc)

    return None
