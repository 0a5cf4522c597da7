"""
Domain Errors & Custom Exception Handler for DRF

Service functions report expected outcomes through result objects
(WaveResult, PostResult); views turn failed results into the exceptions
here. create_comment raises InvalidComment directly. The handler gives
every API error the same {"error": ...} shape.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django.db import IntegrityError
import logging

logger = logging.getLogger(__name__)


class ForumError(Exception):
    """Base class for errors the API maps to a status code and {"error": message}."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid request.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class PostNotFound(ForumError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Post not found'


class Unauthorized(ForumError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Unauthorized'


class InvalidComment(ForumError):
    default_message = 'Invalid comment.'


class StoreFailure(ForumError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Internal server error'


def custom_exception_handler(exc, context):
    """
    Custom exception handler that:
    1. Logs unexpected exceptions
    2. Converts domain and Django exceptions to DRF responses
    3. Provides consistent error format
    """
    response = exception_handler(exc, context)

    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': str(exc),
                'details': response.data
            }
        return response

    if isinstance(exc, ForumError):
        return Response({'error': exc.message}, status=exc.status_code)

    if isinstance(exc, IntegrityError):
        logger.warning("IntegrityError: %s", exc)
        return Response(
            {'error': 'Data integrity error. This may be a duplicate entry.'},
            status=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, ValueError):
        return Response(
            {'error': str(exc)},
            status=status.HTTP_400_BAD_REQUEST
        )

    logger.exception("Unhandled exception: %s", exc)

    return Response(
        {'error': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
