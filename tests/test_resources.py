"""
Resource listing tests.

Covers listing creation and validation, ownership-guarded edits, soft
deletion, availability toggles, search and location filters, view counting
and photo management.
"""

import io
from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from PIL import Image
from rest_framework import status

from core.exceptions import Conflict, NotFound, Unauthorized, ValidationFailed
from core.models import BorrowRequest, Resource


def png_upload(name='photo.png'):
    buffer = io.BytesIO()
    Image.new('RGB', (4, 4), color=(200, 120, 40)).save(buffer, format='PNG')
    return SimpleUploadedFile(name, buffer.getvalue(), content_type='image/png')


@pytest.fixture
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    return tmp_path


RESOURCE_DATA = {
    'title': 'Camping Tent',
    'description': 'Four-person tent, used twice, comes with pegs.',
    'category': 'Garden & Outdoor',
    'condition': 'excellent',
    'estimated_value': '150.00',
    'max_borrow_days': 5,
}


# ============================================================================
# 1. CREATE, UPDATE, DELETE
# ============================================================================

class TestResourceWrites:

    def test_create_counts_toward_items_shared(self, services, owner):
        resource = services.resources.create_resource(owner.id, dict(RESOURCE_DATA))

        owner.refresh_from_db()
        assert resource.status == 'active'
        assert resource.is_available is True
        assert owner.items_shared == 1

    def test_short_description_rejected(self, services, owner):
        with pytest.raises(ValidationFailed) as excinfo:
            services.resources.create_resource(owner.id, {**RESOURCE_DATA, 'description': 'Tent'})

        assert 'description' in excinfo.value.errors

    def test_invalid_available_days_rejected(self, services, owner):
        with pytest.raises(ValidationFailed):
            services.resources.create_resource(owner.id, {**RESOURCE_DATA, 'available_days': ['funday']})

    def test_update_by_owner(self, services, owner, resource):
        updated = services.resources.update_resource(resource.id, owner.id, {'title': 'Hammer Drill'})

        assert updated.title == 'Hammer Drill'

    def test_update_by_stranger_unauthorized(self, services, stranger, resource):
        with pytest.raises(Unauthorized):
            services.resources.update_resource(resource.id, stranger.id, {'title': 'Mine now'})

    def test_delete_is_soft_and_rejects_pending_requests(self, services, owner, borrower, resource, day):
        borrow_request = services.borrow_requests.create_request(borrower.id, resource.id, day(2), day(3))

        services.resources.delete_resource(resource.id, owner.id)

        resource.refresh_from_db()
        borrow_request.refresh_from_db()
        assert resource.status == 'inactive'
        assert resource.is_available is False
        assert borrow_request.status == 'rejected'
        assert Resource.objects.filter(pk=resource.pk).exists()

    def test_delete_while_lent_out_rejected(self, services, owner, borrower, resource, day):
        borrow_request = services.borrow_requests.create_request(borrower.id, resource.id, day(2), day(3))
        services.borrow_requests.approve(borrow_request.id, owner.id)

        with pytest.raises(ValidationFailed):
            services.resources.delete_resource(resource.id, owner.id)

    def test_inactive_resource_hidden_from_others(self, services, owner, stranger, resource):
        services.resources.delete_resource(resource.id, owner.id)

        with pytest.raises(NotFound):
            services.resources.get_resource(resource.id, viewer_id=stranger.id)
        assert services.resources.get_resource(resource.id, viewer_id=owner.id).id == resource.id


class TestAvailability:

    def test_owner_can_pause_and_resume(self, services, owner, resource):
        services.resources.set_availability(resource.id, owner.id, False)
        resumed = services.resources.set_availability(resource.id, owner.id, True)

        assert resumed.is_available is True

    def test_cannot_resume_while_held(self, services, owner, borrower, resource, day):
        borrow_request = services.borrow_requests.create_request(borrower.id, resource.id, day(2), day(3))
        services.borrow_requests.approve(borrow_request.id, owner.id)

        with pytest.raises(Conflict):
            services.resources.set_availability(resource.id, owner.id, True)

    def test_non_boolean_rejected(self, services, owner, resource):
        with pytest.raises(ValidationFailed):
            services.resources.set_availability(resource.id, owner.id, 'yes')


# ============================================================================
# 2. DISCOVERY
# ============================================================================

class TestDiscovery:

    def test_list_excludes_inactive(self, services, owner, make_resource):
        kept = make_resource(owner, title='Ladder')
        gone = make_resource(owner, title='Old Saw')
        services.resources.delete_resource(gone.id, owner.id)

        assert [r.id for r in services.resources.list_resources()] == [kept.id]

    def test_filters(self, services, owner, make_resource):
        make_resource(owner, title='Ladder', estimated_value=Decimal('80.00'))
        expensive = make_resource(owner, title='Projector', category='Electronics', estimated_value=Decimal('600.00'))

        results = services.resources.list_resources({'category': 'Electronics', 'min_value': Decimal('100')})

        assert [r.id for r in results] == [expensive.id]

    def test_invalid_sort_rejected(self, services, db):
        with pytest.raises(ValidationFailed):
            services.resources.list_resources({'sort_by': 'owner__password'})

    def test_search_matches_title_and_description(self, services, owner, make_resource):
        drill = make_resource(owner)
        make_resource(owner, title='Kayak', description='Sit-on-top kayak with paddle.', category='Sports & Recreation')

        assert [r.id for r in services.resources.search_resources('batteries')] == [drill.id]

    def test_search_needs_two_characters(self, services, db):
        with pytest.raises(ValidationFailed):
            services.resources.search_resources('a')

    def test_nearby_orders_by_distance(self, services, owner, stranger, make_resource):
        owner.latitude, owner.longitude = Decimal('40.712800'), Decimal('-74.006000')
        owner.save()
        stranger.latitude, stranger.longitude = Decimal('40.730000'), Decimal('-74.000000')
        stranger.save()
        near = make_resource(owner)
        farther = make_resource(stranger, title='Ladder')

        results = list(services.resources.nearby_resources(40.7128, -74.0060, 5))

        assert [r.id for r in results] == [near.id, farther.id]
        assert results[0].distance == 0.0
        assert 1.0 < results[1].distance < 3.0

    def test_nearby_requires_coordinates(self, services, db):
        with pytest.raises(ValidationFailed):
            services.resources.nearby_resources(None, None)

    def test_categories_count_available_listings(self, services, owner, make_resource):
        make_resource(owner)
        make_resource(owner, title='Ladder')
        make_resource(owner, title='Kettle', category='Kitchen & Appliances')

        assert services.resources.categories() == [
            {'category': 'Tools', 'count': 2},
            {'category': 'Kitchen & Appliances', 'count': 1},
        ]

    def test_view_counted_for_visitors_only(self, services, owner, stranger, resource):
        services.resources.get_resource(resource.id, viewer_id=owner.id)
        viewed = services.resources.get_resource(resource.id, viewer_id=stranger.id)

        assert viewed.views_count == 1


# ============================================================================
# 3. PHOTOS
# ============================================================================

class TestPhotos:

    def test_upload_appends_in_order(self, services, owner, resource, media_root):
        photos = services.resources.upload_photos(
            resource.id, owner.id, [png_upload('a.png'), png_upload('b.png')], ['Front', 'Side']
        )

        assert [p.display_order for p in photos] == [1, 2]
        assert [p.alt_text for p in photos] == ['Front', 'Side']

    def test_upload_limit(self, services, owner, resource, media_root, settings):
        settings.BORROWBASE = {**settings.BORROWBASE, 'MAX_RESOURCE_PHOTOS': 1}

        with pytest.raises(ValidationFailed):
            services.resources.upload_photos(resource.id, owner.id, [png_upload('a.png'), png_upload('b.png')])

    def test_wrong_extension_rejected(self, services, owner, resource, media_root):
        upload = SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain')

        with pytest.raises(ValidationFailed):
            services.resources.upload_photos(resource.id, owner.id, [upload])

    def test_set_primary_and_delete_close_gaps(self, services, owner, resource, media_root):
        first, second, third = services.resources.upload_photos(
            resource.id, owner.id, [png_upload('a.png'), png_upload('b.png'), png_upload('c.png')]
        )

        ordered = services.resources.set_primary_photo(third.id, owner.id)
        assert [p.id for p in ordered] == [third.id, first.id, second.id]

        services.resources.delete_photo(first.id, owner.id)
        remaining = services.resources.list_photos(resource.id)
        assert [(p.id, p.display_order) for p in remaining] == [(third.id, 1), (second.id, 2)]

    def test_reorder_rejects_foreign_ids(self, services, owner, resource, make_resource, media_root):
        other = make_resource(owner, title='Ladder')
        (foreign,) = services.resources.upload_photos(other.id, owner.id, [png_upload()])

        with pytest.raises(ValidationFailed):
            services.resources.reorder_photos(resource.id, owner.id, [{'id': foreign.id, 'order': 1}])

    def test_stranger_cannot_upload(self, services, stranger, resource, media_root):
        with pytest.raises(Unauthorized):
            services.resources.upload_photos(resource.id, stranger.id, [png_upload()])


# ============================================================================
# 4. API
# ============================================================================

@pytest.mark.django_db
class TestResourceAPI:

    def test_anonymous_can_browse(self, api_client, resource):
        response = api_client.get(reverse('resource_list'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['success'] is True
        assert [item['id'] for item in response.data['data']] == [resource.id]
        assert response.data['pagination'] == {'page': 1, 'limit': 20, 'total': 1, 'pages': 1}

    @pytest.mark.parametrize('page', ['0', '-1', 'abc'])
    def test_invalid_page_is_validation_error(self, api_client, resource, page):
        response = api_client.get(reverse('resource_list'), {'page': page})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error']['code'] == 'VALIDATION_ERROR'
        assert 'page' in response.data['error']['details']

    def test_boolean_filter(self, api_client, owner, make_resource):
        make_resource(owner)
        paused = make_resource(owner, title='Ladder', is_available=False)

        response = api_client.get(reverse('resource_list'), {'is_available': 'false'})

        assert [item['id'] for item in response.data['data']] == [paused.id]

    def test_anonymous_cannot_create(self, api_client):
        response = api_client.post(reverse('resource_list'), RESOURCE_DATA)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_create(self, auth_client, owner):
        response = auth_client(owner).post(reverse('resource_list'), RESOURCE_DATA)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['data']['owner']['id'] == owner.id
        assert response.data['data']['title'] == 'Camping Tent'

    def test_invalid_category_returns_details(self, auth_client, owner):
        response = auth_client(owner).post(reverse('resource_list'), {**RESOURCE_DATA, 'category': 'Spaceships'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'category' in response.data['error']['details']

    def test_stranger_update_forbidden(self, auth_client, stranger, resource):
        response = auth_client(stranger).patch(reverse('resource_detail', args=[resource.id]), {'title': 'Mine'})

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_missing_resource_returns_not_found_envelope(self, api_client, db):
        response = api_client.get(reverse('resource_detail', args=[99999]))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data == {
            'success': False,
            'message': 'Resource not found',
            'error': {'code': 'NOT_FOUND'},
        }

    def test_owner_lists_requests_for_resource(self, services, auth_client, owner, borrower, resource, day):
        services.borrow_requests.create_request(borrower.id, resource.id, day(2), day(3))

        response = auth_client(owner).get(reverse('resource_borrow_requests', args=[resource.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['pagination']['total'] == 1
        assert BorrowRequest.objects.count() == 1

    def test_upload_photos_over_http(self, auth_client, owner, resource, media_root):
        response = auth_client(owner).post(
            reverse('resource_photos', args=[resource.id]),
            {'photos': [png_upload('a.png')], 'alt_texts': ['Front']},
            format='multipart',
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['data'][0]['alt_text'] == 'Front'
