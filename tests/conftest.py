"""
Shared fixtures for the BorrowBase API and service tests.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.apps import apps
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core.models import Resource
from core.realtime import EventBuffer, RealtimeHub
from core.services import ServiceContainer

User = get_user_model()


@pytest.fixture(autouse=True)
def clear_cache(db):
    """Clear Django cache before each test to reset throttle limits."""
    from django.core.cache import cache
    cache.clear()


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def make_user(db):
    """Factory creating users with unique emails."""
    counter = {'value': 0}

    def make(**kwargs):
        counter['value'] += 1
        n = counter['value']
        defaults = {
            'username': f'neighbour{n}',
            'email': f'neighbour{n}@test.com',
            'password': 'TestPass123!',
            'first_name': 'Neighbour',
            'last_name': str(n),
        }
        defaults.update(kwargs)
        return User.objects.create_user(**defaults)

    return make


@pytest.fixture
def owner(make_user):
    return make_user(username='owner', email='owner@test.com', first_name='Olivia', last_name='Owner')


@pytest.fixture
def borrower(make_user):
    return make_user(username='borrower', email='borrower@test.com', first_name='Ben', last_name='Borrower')


@pytest.fixture
def stranger(make_user):
    return make_user(username='stranger', email='stranger@test.com', first_name='Sam', last_name='Stranger')


@pytest.fixture
def make_resource(db):
    def make(owner, **kwargs):
        defaults = {
            'title': 'Cordless Drill',
            'description': 'An 18V cordless drill with two batteries.',
            'category': 'Tools',
            'condition': 'good',
            'estimated_value': Decimal('120.00'),
            'max_borrow_days': 7,
        }
        defaults.update(kwargs)
        return Resource.objects.create(owner=owner, **defaults)

    return make


@pytest.fixture
def resource(owner, make_resource):
    return make_resource(owner)


@pytest.fixture
def auth_client():
    """Return an APIClient authenticated as the given user."""
    def authenticate(user):
        client = APIClient()
        token = RefreshToken.for_user(user).access_token
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return client

    return authenticate


@pytest.fixture
def services(db):
    """A container with its own hub, isolated from the application's."""
    container = ServiceContainer(hub=RealtimeHub())
    yield container
    container.close()


@pytest.fixture
def app_services():
    """The container the API views use."""
    return apps.get_app_config('core').services


@pytest.fixture
def events():
    return EventBuffer()


@pytest.fixture
def day():
    """day(n) is n days from today."""
    today = timezone.localdate()
    return lambda n: today + timedelta(days=n)
