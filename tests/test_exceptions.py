"""
Error envelope tests for api_exception_handler and the typed service errors.
"""

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from django.urls import reverse
from rest_framework import exceptions, status

from core.exceptions import (
    ChatNotFound,
    Conflict,
    NotFound,
    Unauthorized,
    ValidationFailed,
    api_exception_handler,
    django_validation_errors,
)


@pytest.mark.parametrize('exc, status_code, code, message', [
    (ValidationFailed('Bad input'), 400, 'VALIDATION_ERROR', 'Bad input'),
    (NotFound('Resource'), 404, 'NOT_FOUND', 'Resource not found'),
    (ChatNotFound(), 404, 'NOT_FOUND', 'Chat not found'),
    (Unauthorized('Not yours'), 403, 'UNAUTHORIZED', 'Not yours'),
    (Conflict('Already approved'), 409, 'CONFLICT', 'Already approved'),
    (exceptions.NotAuthenticated(), 401, 'AUTHENTICATION_ERROR', 'Authentication credentials were not provided.'),
    (exceptions.PermissionDenied(), 403, 'UNAUTHORIZED', 'You do not have permission to perform this action.'),
])
def test_typed_errors_map_to_envelope(exc, status_code, code, message):
    response = api_exception_handler(exc, {})

    assert response.status_code == status_code
    assert response.data == {'success': False, 'message': message, 'error': {'code': code}}


def test_service_error_details():
    exc = ValidationFailed('Invalid location', errors={'latitude': ['Out of range.']})

    response = api_exception_handler(exc, {})

    assert response.data['error'] == {'code': 'VALIDATION_ERROR', 'details': {'latitude': ['Out of range.']}}


def test_serializer_validation_error():
    response = api_exception_handler(exceptions.ValidationError({'email': ['This field is required.']}), {})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.data['message'] == 'Validation failed'
    assert response.data['error']['details'] == {'email': ['This field is required.']}


def test_django_validation_error_is_translated():
    response = api_exception_handler(DjangoValidationError({'title': ['Too short.']}), {})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.data['error'] == {'code': 'VALIDATION_ERROR', 'details': {'title': ['Too short.']}}


def test_unexpected_error_is_generic_500():
    response = api_exception_handler(KeyError('secret_column'), {})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.data == {
        'success': False,
        'message': 'Internal server error',
        'error': {'code': 'INTERNAL_ERROR'},
    }


def test_django_validation_errors_without_fields():
    assert django_validation_errors(DjangoValidationError('Nope')) == {'non_field_errors': ['Nope']}


@pytest.mark.django_db
def test_method_not_allowed(auth_client, borrower):
    response = auth_client(borrower).delete(reverse('chat_unread_count'))

    assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
    assert response.data['error']['code'] == 'METHOD_NOT_ALLOWED'


@pytest.mark.django_db
def test_health_is_public(api_client):
    response = api_client.get(reverse('health'))

    assert response.status_code == status.HTTP_200_OK
    assert response.data == {'success': True, 'data': {'status': 'ok'}}
