"""
Authentication and account tests.

Covers registration, login (with indistinguishable failures), refresh token
rotation, logout blacklisting, profile edits, location and password
changes, and account closure.
"""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken
from rest_framework_simplejwt.tokens import RefreshToken

from core.exceptions import Conflict, ValidationFailed
from core.models import BorrowRequest, Resource

User = get_user_model()


REGISTRATION = {
    'first_name': 'Rita',
    'last_name': 'Register',
    'email': 'Rita@Example.com',
    'password': 'StrongPass123!',
    'confirm_password': 'StrongPass123!',
    'neighborhood': 'Riverside',
}


# ============================================================================
# 1. REGISTRATION
# ============================================================================

@pytest.mark.django_db
class TestRegistration:

    def test_register_returns_tokens(self, api_client):
        response = api_client.post(reverse('user_register'), REGISTRATION)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['success'] is True
        assert response.data['data']['access']
        assert response.data['data']['refresh']
        user = User.objects.get()
        assert user.email == 'rita@example.com'
        assert user.username == 'rita'
        assert user.check_password('StrongPass123!')

    def test_duplicate_email_case_insensitive(self, api_client, make_user):
        make_user(email='rita@example.com')

        response = api_client.post(reverse('user_register'), REGISTRATION)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'email' in response.data['error']['details']

    def test_password_mismatch(self, api_client):
        response = api_client.post(reverse('user_register'), {**REGISTRATION, 'confirm_password': 'Other123!'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'confirm_password' in response.data['error']['details']

    def test_privilege_fields_ignored(self, api_client):
        api_client.post(reverse('user_register'), {**REGISTRATION, 'is_staff': True, 'is_superuser': True})

        user = User.objects.get()
        assert user.is_staff is False
        assert user.is_superuser is False


# ============================================================================
# 2. LOGIN, REFRESH, LOGOUT
# ============================================================================

@pytest.mark.django_db
class TestLogin:

    def test_login_success(self, api_client, borrower):
        response = api_client.post(reverse('user_login'), {'email': 'BORROWER@test.com', 'password': 'TestPass123!'})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['message'] == 'Login successful'
        assert response.data['data']['user']['id'] == borrower.id

    @pytest.mark.parametrize('email, password', [
        ('borrower@test.com', 'WrongPass123!'),
        ('nobody@test.com', 'TestPass123!'),
    ])
    def test_failures_are_indistinguishable(self, api_client, borrower, email, password):
        response = api_client.post(reverse('user_login'), {'email': email, 'password': password})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data == {
            'success': False,
            'message': 'Invalid credentials',
            'error': {'code': 'AUTHENTICATION_ERROR'},
        }

    def test_inactive_account_cannot_login(self, api_client, borrower):
        borrower.is_active = False
        borrower.save()

        response = api_client.post(reverse('user_login'), {'email': 'borrower@test.com', 'password': 'TestPass123!'})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['message'] == 'Invalid credentials'


    def test_token_endpoint_is_the_email_login(self, api_client, borrower):
        response = api_client.post(reverse('token_obtain_pair'), {'email': 'borrower@test.com', 'password': 'TestPass123!'})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['user']['id'] == borrower.id
        assert response.data['data']['refresh']

    def test_token_endpoint_rejects_closed_account(self, api_client, services, borrower):
        services.users.close_account(borrower.id)

        response = api_client.post(reverse('token_obtain_pair'), {'email': 'borrower@test.com', 'password': 'TestPass123!'})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['message'] == 'Invalid credentials'


@pytest.mark.django_db
class TestTokens:

    def test_refresh_rotates_and_blacklists(self, api_client, borrower):
        refresh = str(RefreshToken.for_user(borrower))

        response = api_client.post(reverse('user_refresh'), {'refresh': refresh})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['access']
        assert response.data['data']['refresh'] != refresh

        reused = api_client.post(reverse('user_refresh'), {'refresh': refresh})
        assert reused.status_code == status.HTTP_401_UNAUTHORIZED

    def test_refresh_with_garbage(self, api_client, db):
        response = api_client.post(reverse('user_refresh'), {'refresh': 'not-a-token'})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout_blacklists_token(self, auth_client, borrower):
        refresh = RefreshToken.for_user(borrower)

        response = auth_client(borrower).post(reverse('user_logout'), {'refresh': str(refresh)})

        assert response.status_code == status.HTTP_200_OK
        assert BlacklistedToken.objects.filter(token__jti=refresh['jti']).exists()

    def test_logout_with_someone_elses_token(self, auth_client, borrower, stranger):
        refresh = RefreshToken.for_user(stranger)

        response = auth_client(borrower).post(reverse('user_logout'), {'refresh': str(refresh)})

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not BlacklistedToken.objects.exists()

    def test_logout_requires_authentication(self, api_client, borrower):
        response = api_client.post(reverse('user_logout'), {'refresh': str(RefreshToken.for_user(borrower))})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# ============================================================================
# 3. PROFILE
# ============================================================================

@pytest.mark.django_db
class TestProfile:

    def test_get_profile(self, auth_client, borrower):
        response = auth_client(borrower).get(reverse('user_profile'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['email'] == 'borrower@test.com'

    def test_patch_profile(self, auth_client, borrower):
        response = auth_client(borrower).patch(reverse('user_profile'), {'bio': 'Keen gardener'})

        borrower.refresh_from_db()
        assert response.status_code == status.HTTP_200_OK
        assert borrower.bio == 'Keen gardener'

    def test_complete_profile_sections(self, auth_client, owner, resource):
        response = auth_client(owner).get(reverse('user_profile_complete'))

        assert response.status_code == status.HTTP_200_OK
        assert set(response.data['data']) == {
            'user', 'statistics', 'resources', 'borrowHistory', 'lendHistory', 'reviewsReceived', 'reviewsGiven',
        }
        assert response.data['data']['statistics']['totalResources'] == 1

    def test_public_profile_hides_email(self, api_client, borrower):
        response = api_client.get(reverse('user_detail', args=[borrower.id]))

        assert response.status_code == status.HTTP_200_OK
        assert 'email' not in response.data['data']


class TestAccountService:

    def test_update_location(self, services, borrower):
        user = services.users.update_location(borrower.id, '51.5074', '-0.1278', neighborhood=' Soho ')

        assert user.latitude == Decimal('51.507400')
        assert user.neighborhood == 'Soho'
        assert user.is_location_verified is True

    def test_update_location_out_of_range(self, services, borrower):
        with pytest.raises(ValidationFailed) as excinfo:
            services.users.update_location(borrower.id, 95, 200)

        assert set(excinfo.value.errors) == {'latitude', 'longitude'}

    def test_change_password(self, services, borrower):
        services.users.change_password(borrower.id, 'TestPass123!', 'EvenStronger456!')

        borrower.refresh_from_db()
        assert borrower.check_password('EvenStronger456!')

    def test_change_password_wrong_current(self, services, borrower):
        with pytest.raises(ValidationFailed):
            services.users.change_password(borrower.id, 'nope', 'EvenStronger456!')

    def test_close_account_anonymizes_and_releases(self, services, owner, borrower, resource, day):
        pending = services.borrow_requests.create_request(borrower.id, resource.id, day(2), day(3))
        RefreshToken.for_user(owner)

        services.users.close_account(owner.id)

        owner.refresh_from_db()
        pending.refresh_from_db()
        assert owner.is_closed
        assert owner.is_active is False
        assert owner.email != 'owner@test.com'
        assert Resource.objects.get(pk=resource.pk).status == 'inactive'
        assert pending.status == 'rejected'
        assert BlacklistedToken.objects.filter(token__user=owner).count() == 1

    def test_close_account_with_item_out_conflicts(self, services, owner, borrower, resource, day):
        borrow_request = services.borrow_requests.create_request(borrower.id, resource.id, day(1), day(2))
        services.borrow_requests.approve(borrow_request.id, owner.id)
        services.borrow_requests.pickup(borrow_request.id, owner.id)

        with pytest.raises(Conflict):
            services.users.close_account(borrower.id)

        assert BorrowRequest.objects.get(pk=borrow_request.pk).status == 'active'
