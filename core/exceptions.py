"""
Error taxonomy and the API exception handler.

Service methods raise the typed errors below; api_exception_handler maps
every exception to the response envelope:

    {"success": false, "message": "...", "error": {"code": "...", "details": {...}}}
"""

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

logger = logging.getLogger(__name__)


class ServiceError(exceptions.APIException):
    """Base class for errors raised by the service layer."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Internal server error'
    default_code = 'INTERNAL_ERROR'

    def __init__(self, detail=None, errors=None):
        super().__init__(detail=detail, code=self.default_code)
        self.errors = errors


class ValidationFailed(ServiceError):
    """Malformed or out-of-range input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Validation failed'
    default_code = 'VALIDATION_ERROR'


class NotFound(ServiceError):
    """Referenced entity is absent, or access is disguised as absence."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found'
    default_code = 'NOT_FOUND'

    def __init__(self, entity=None, detail=None):
        if detail is None and entity:
            detail = f'{entity} not found'
        super().__init__(detail=detail)


class ChatNotFound(NotFound):
    def __init__(self, detail=None):
        super().__init__(entity='Chat', detail=detail)


class Unauthorized(ServiceError):
    """Authenticated, but not permitted to perform the action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not authorized to perform this action'
    default_code = 'UNAUTHORIZED'


class Conflict(ServiceError):
    """Valid request that clashes with the current state."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Request conflicts with the current state'
    default_code = 'CONFLICT'


def django_validation_errors(exc):
    """
    Flatten a Django ValidationError into a field -> messages dict.

    Args:
        exc: django.core.exceptions.ValidationError

    Returns:
        dict: Field names mapped to lists of messages
    """
    if hasattr(exc, 'error_dict'):
        return {field: [str(message) for message in messages] for field, messages in exc.message_dict.items()}
    return {'non_field_errors': [str(message) for message in exc.messages]}


def _error_code(exc):
    if isinstance(exc, ServiceError):
        return exc.default_code
    if isinstance(exc, exceptions.ValidationError):
        return 'VALIDATION_ERROR'
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return 'AUTHENTICATION_ERROR'
    if isinstance(exc, (exceptions.PermissionDenied, DjangoPermissionDenied)):
        return 'UNAUTHORIZED'
    if isinstance(exc, (exceptions.NotFound, Http404)):
        return 'NOT_FOUND'
    if isinstance(exc, exceptions.MethodNotAllowed):
        return 'METHOD_NOT_ALLOWED'
    if isinstance(exc, exceptions.Throttled):
        return 'RATE_LIMITED'
    return 'ERROR'


def api_exception_handler(exc, context):
    """
    Render any exception raised by a view as an error envelope.

    Unexpected exceptions are logged with their traceback and surfaced as a
    generic 500 without internal detail.
    """
    if isinstance(exc, DjangoValidationError):
        exc = ValidationFailed(errors=django_validation_errors(exc))

    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        view_name = view.__class__.__name__ if view is not None else 'unknown view'
        logger.error(f"Unhandled error in {view_name}: {exc}", exc_info=exc)
        set_rollback()
        return Response(
            {
                'success': False,
                'message': 'Internal server error',
                'error': {'code': 'INTERNAL_ERROR'},
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    error = {'code': _error_code(exc)}

    if isinstance(exc, exceptions.ValidationError):
        message = 'Validation failed'
        error['details'] = response.data
    elif isinstance(response.data, dict) and 'detail' in response.data:
        message = str(response.data['detail'])
    else:
        message = str(exc)

    if isinstance(exc, ServiceError) and exc.errors:
        error['details'] = exc.errors

    response.data = {
        'success': False,
        'message': message,
        'error': error,
    }
    return response
