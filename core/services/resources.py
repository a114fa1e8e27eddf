"""
Resource listings: creation, discovery (filters, search, location radius),
ownership-guarded edits, soft deletion and photos.
"""

import logging
import math
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Case, Count, F, FloatField, Q, Value, When

from core.exceptions import Conflict, NotFound, Unauthorized, ValidationFailed, django_validation_errors
from core.models import BorrowRequest, Resource, ResourcePhoto, User

from .base import BaseService, setting

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

SORT_FIELDS = ['created_at', 'title', 'estimated_value', 'views_count', 'average_rating']

EDITABLE_FIELDS = [
    'title',
    'description',
    'category',
    'estimated_value',
    'condition',
    'condition_notes',
    'max_borrow_days',
    'deposit_required',
    'pickup_required',
    'pickup_instructions',
    'usage_instructions',
    'location_notes',
    'available_days',
    'available_time_start',
    'available_time_end',
]

# Statuses during which the item is promised to or held by a borrower
HOLDING_STATUSES = ['approved', 'active', 'overdue']


def haversine_km(lat1, lng1, lat2, lng2):
    """Great-circle distance in kilometres between two coordinates."""
    lat1, lng1, lat2, lng2 = (math.radians(float(value)) for value in (lat1, lng1, lat2, lng2))
    a = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


class ResourceService(BaseService):
    """Listing operations; all writes are restricted to the resource owner."""

    def _save(self, resource, **kwargs):
        try:
            resource.save(using=self.using, **kwargs)
        except DjangoValidationError as e:
            raise ValidationFailed('Invalid resource data', errors=django_validation_errors(e))

    def _owned(self, resource_id, user_id, action='modify'):
        resource = self.get_or_not_found(Resource, 'Resource', pk=resource_id)
        if resource.owner_id != user_id:
            logger.warning(f"User {user_id} attempted to {action} resource {resource_id} owned by {resource.owner_id}")
            raise Unauthorized(f'You can only {action} your own resources')
        return resource

    def _has_holding_request(self, resource_id):
        return self.objects(BorrowRequest).filter(resource_id=resource_id, status__in=HOLDING_STATUSES).exists()

    # Create / update / delete

    def create_resource(self, owner_id, data):
        """
        Create a listing and count it toward the owner's items_shared.

        Raises:
            NotFound: Owner does not exist
            ValidationFailed: Field validation failed
        """
        if not self.objects(User).filter(pk=owner_id, is_active=True).exists():
            raise NotFound('User')

        fields = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
        with self.atomic():
            resource = Resource(owner_id=owner_id, **fields)
            self._save(resource)
            self.objects(User).filter(pk=owner_id).update(items_shared=F('items_shared') + 1)

        logger.info(f"Resource {resource.id} created by user {owner_id}")
        return resource

    def update_resource(self, resource_id, user_id, data):
        resource = self._owned(resource_id, user_id, 'update')

        for key, value in data.items():
            if key in EDITABLE_FIELDS:
                setattr(resource, key, value)

        if 'status' in data:
            if data['status'] not in dict(Resource.STATUS_CHOICES):
                raise ValidationFailed(f"Invalid status: {data['status']}")
            resource.status = data['status']

        if 'is_available' in data:
            self._check_availability_change(resource, data['is_available'])
            resource.is_available = data['is_available']

        self._save(resource)
        logger.info(f"Resource {resource.id} updated by user {user_id}")
        return resource

    def _check_availability_change(self, resource, is_available):
        if is_available and self._has_holding_request(resource.id):
            raise Conflict('Resource cannot be made available while it is lent out or promised to a borrower')
        if is_available and resource.status == 'inactive':
            raise ValidationFailed('Deleted resources cannot be made available')

    def set_availability(self, resource_id, user_id, is_available):
        if not isinstance(is_available, bool):
            raise ValidationFailed('is_available must be a boolean value')

        resource = self._owned(resource_id, user_id, 'update')
        self._check_availability_change(resource, is_available)
        resource.is_available = is_available
        self._save(resource, update_fields=['is_available', 'updated_at'])
        return resource

    def delete_resource(self, resource_id, user_id):
        """
        Soft delete: the resource becomes inactive and unavailable.

        Raises:
            ValidationFailed: The resource is currently borrowed or promised
        """
        with self.atomic():
            resource = self._owned(resource_id, user_id, 'delete')
            if resource.status == 'inactive':
                return resource
            if resource.status == 'borrowed' or self._has_holding_request(resource.id):
                raise ValidationFailed('Cannot delete a resource that is currently borrowed')

            resource.status = 'inactive'
            resource.is_available = False
            self._save(resource, update_fields=['status', 'is_available', 'updated_at'])
            self.objects(BorrowRequest).filter(resource_id=resource.id, status='pending').update(
                status='rejected', response_message='The listing was removed.'
            )
            self.objects(User).filter(pk=user_id, items_shared__gt=0).update(items_shared=F('items_shared') - 1)

        logger.info(f"Resource {resource.id} deleted (inactive) by user {user_id}")
        return resource

    # Read

    def get_resource(self, resource_id, viewer_id=None, count_view=True):
        """
        Fetch a listing. Inactive listings are only visible to their owner.
        A view by anyone other than the owner increments views_count.
        """
        try:
            resource = (
                self.objects(Resource)
                .select_related('owner')
                .prefetch_related('photos')
                .get(pk=resource_id)
            )
        except Resource.DoesNotExist:
            raise NotFound('Resource')

        if resource.status == 'inactive' and resource.owner_id != viewer_id:
            raise NotFound('Resource')

        if count_view and resource.owner_id != viewer_id:
            self.record_view(resource.id)
            resource.refresh_from_db(fields=['views_count'])

        return resource

    def record_view(self, resource_id):
        updated = self.objects(Resource).filter(pk=resource_id).update(views_count=F('views_count') + 1)
        if not updated:
            raise NotFound('Resource')

    def list_resources(self, filters=None):
        """
        Public listings matching the filters.

        Supported filters: category, search, condition, min_value, max_value,
        max_borrow_days, deposit_required, pickup_required, is_available,
        latitude/longitude/radius, sort_by, sort_order.

        Returns:
            QuerySet or list: a list ordered by distance when a location is given
        """
        filters = filters or {}
        queryset = (
            self.objects(Resource)
            .filter(status__in=['active', 'borrowed'])
            .select_related('owner')
            .prefetch_related('photos')
        )

        if filters.get('is_available') is not None:
            queryset = queryset.filter(is_available=filters['is_available'])
        if filters.get('category'):
            queryset = queryset.filter(category=filters['category'])
        if filters.get('search'):
            queryset = queryset.filter(
                Q(title__icontains=filters['search']) | Q(description__icontains=filters['search'])
            )
        if filters.get('condition'):
            queryset = queryset.filter(condition=filters['condition'])
        if filters.get('min_value') is not None:
            queryset = queryset.filter(estimated_value__gte=filters['min_value'])
        if filters.get('max_value') is not None:
            queryset = queryset.filter(estimated_value__lte=filters['max_value'])
        if filters.get('max_borrow_days') is not None:
            queryset = queryset.filter(max_borrow_days__lte=filters['max_borrow_days'])
        if filters.get('deposit_required') is True:
            queryset = queryset.filter(deposit_required__gt=0)
        elif filters.get('deposit_required') is False:
            queryset = queryset.filter(Q(deposit_required__isnull=True) | Q(deposit_required=0))
        if filters.get('pickup_required') is not None:
            queryset = queryset.filter(pickup_required=filters['pickup_required'])
        if filters.get('exclude_owner_id'):
            queryset = queryset.exclude(owner_id=filters['exclude_owner_id'])

        sort_by = filters.get('sort_by') or 'created_at'
        if sort_by not in SORT_FIELDS:
            raise ValidationFailed(f'sort_by must be one of: {", ".join(SORT_FIELDS)}')
        sort_order = (filters.get('sort_order') or 'desc').lower()
        if sort_order not in ('asc', 'desc'):
            raise ValidationFailed('sort_order must be asc or desc')
        ordering = sort_by if sort_order == 'asc' else f'-{sort_by}'
        queryset = queryset.order_by(ordering, '-id')

        if filters.get('latitude') is not None and filters.get('longitude') is not None:
            return self._within_radius(
                queryset,
                filters['latitude'],
                filters['longitude'],
                filters.get('radius') or setting('DEFAULT_SEARCH_RADIUS_KM'),
            )

        return queryset

    def _within_radius(self, queryset, latitude, longitude, radius_km):
        """
        Keep resources whose owner lies within radius_km, nearest first.

        A bounding box narrows the rows in SQL; exact Haversine distances are
        computed in Python and attached as ``distance``.
        """
        latitude = float(latitude)
        longitude = float(longitude)
        radius_km = float(radius_km)
        if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
            raise ValidationFailed('Valid latitude and longitude are required')
        if radius_km <= 0:
            raise ValidationFailed('Radius must be positive')

        lat_delta = radius_km / 111.0
        lng_delta = radius_km / max(111.0 * math.cos(math.radians(latitude)), 0.01)
        candidates = queryset.filter(
            owner__latitude__isnull=False,
            owner__longitude__isnull=False,
            owner__latitude__gte=Decimal(str(latitude - lat_delta)),
            owner__latitude__lte=Decimal(str(latitude + lat_delta)),
        )
        if lng_delta < 180:
            candidates = candidates.filter(
                owner__longitude__gte=Decimal(str(longitude - lng_delta)),
                owner__longitude__lte=Decimal(str(longitude + lng_delta)),
            )

        distances = {}
        for resource_id, owner_lat, owner_lng in candidates.values_list('id', 'owner__latitude', 'owner__longitude'):
            distance = haversine_km(latitude, longitude, owner_lat, owner_lng)
            if distance <= radius_km:
                distances[resource_id] = round(distance, 2)

        if not distances:
            return queryset.none()

        return (
            queryset.filter(pk__in=distances)
            .annotate(
                distance=Case(
                    *[When(pk=pk, then=Value(distance)) for pk, distance in distances.items()],
                    output_field=FloatField(),
                )
            )
            .order_by('distance', '-created_at')
        )

    def search_resources(self, query, filters=None):
        query = (query or '').strip()
        if len(query) < 2:
            raise ValidationFailed('Search query must be at least 2 characters long')
        filters = dict(filters or {})
        filters['search'] = query
        return self.list_resources(filters)

    def nearby_resources(self, latitude, longitude, radius=None, filters=None):
        if latitude is None or longitude is None:
            raise ValidationFailed('Valid latitude and longitude are required')
        filters = dict(filters or {})
        filters.update(latitude=latitude, longitude=longitude, radius=radius)
        return self.list_resources(filters)

    def categories(self):
        """Categories of active, available listings with their counts, largest first."""
        rows = (
            self.objects(Resource)
            .filter(status='active', is_available=True)
            .order_by()
            .values('category')
            .annotate(count=Count('id'))
            .order_by('-count', 'category')
        )
        return [{'category': row['category'], 'count': row['count']} for row in rows]

    def user_resources(self, user_id):
        if not self.objects(User).filter(pk=user_id).exists():
            raise NotFound('User')
        return (
            self.objects(Resource)
            .filter(owner_id=user_id, status__in=['active', 'borrowed'])
            .select_related('owner')
            .prefetch_related('photos')
            .order_by('-created_at')
        )

    def my_resources(self, user_id, status=None):
        queryset = self.objects(Resource).filter(owner_id=user_id).exclude(status='inactive')
        if status:
            queryset = queryset.filter(status=status)
        return queryset.select_related('owner').prefetch_related('photos').order_by('-created_at')

    # Photos

    def upload_photos(self, resource_id, user_id, files, alt_texts=None):
        """
        Attach uploaded images to a resource, appended after existing photos.

        Raises:
            ValidationFailed: No files, too many photos, or an invalid image
        """
        resource = self._owned(resource_id, user_id, 'upload photos to')
        files = list(files or [])
        if not files:
            raise ValidationFailed('At least one photo is required')

        max_photos = setting('MAX_RESOURCE_PHOTOS')
        with self.atomic():
            current = self.objects(ResourcePhoto).filter(resource=resource).count()
            if current + len(files) > max_photos:
                raise ValidationFailed(f'Maximum {max_photos} photos allowed per resource')

            photos = []
            for index, upload in enumerate(files):
                alt_text = ''
                if alt_texts and index < len(alt_texts):
                    alt_text = alt_texts[index] or ''
                photo = ResourcePhoto(
                    resource=resource,
                    image=upload,
                    alt_text=alt_text,
                    file_size=getattr(upload, 'size', 0) or 0,
                    mime_type=getattr(upload, 'content_type', '') or '',
                    display_order=current + index + 1,
                )
                try:
                    photo.full_clean()
                except DjangoValidationError as e:
                    raise ValidationFailed('Invalid photo', errors=django_validation_errors(e))
                photo.save(using=self.using)
                photos.append(photo)

        logger.info(f"{len(photos)} photos uploaded to resource {resource.id}")
        return photos

    def list_photos(self, resource_id):
        self.get_or_not_found(Resource, 'Resource', pk=resource_id)
        return self.objects(ResourcePhoto).filter(resource_id=resource_id).order_by('display_order', 'id')

    def _owned_photo(self, photo_id, user_id):
        try:
            photo = self.objects(ResourcePhoto).select_related('resource').get(pk=photo_id)
        except ResourcePhoto.DoesNotExist:
            raise NotFound('Photo')
        if photo.resource.owner_id != user_id:
            raise Unauthorized('You can only modify photos of your own resources')
        return photo

    def delete_photo(self, photo_id, user_id):
        photo = self._owned_photo(photo_id, user_id)
        resource_id = photo.resource_id
        with self.atomic():
            photo.image.delete(save=False)
            photo.delete(using=self.using)
            # Close the gap left in the ordering
            for position, remaining in enumerate(
                self.objects(ResourcePhoto).filter(resource_id=resource_id).order_by('display_order', 'id'),
                start=1,
            ):
                if remaining.display_order != position:
                    self.objects(ResourcePhoto).filter(pk=remaining.pk).update(display_order=position)

    def set_primary_photo(self, photo_id, user_id):
        """Move a photo to position 1 and shift the others down."""
        photo = self._owned_photo(photo_id, user_id)
        with self.atomic():
            others = (
                self.objects(ResourcePhoto)
                .filter(resource_id=photo.resource_id)
                .exclude(pk=photo.pk)
                .order_by('display_order', 'id')
            )
            self.objects(ResourcePhoto).filter(pk=photo.pk).update(display_order=1)
            for position, other in enumerate(others, start=2):
                self.objects(ResourcePhoto).filter(pk=other.pk).update(display_order=position)
        return self.list_photos(photo.resource_id)

    def reorder_photos(self, resource_id, user_id, photo_order):
        """
        Apply explicit positions.

        Args:
            photo_order: list of {"id": photo_id, "order": position}

        Raises:
            ValidationFailed: Malformed entries or ids of another resource
        """
        self._owned(resource_id, user_id, 'reorder photos of')
        try:
            order = {int(item['id']): int(item['order']) for item in photo_order}
        except (KeyError, TypeError, ValueError):
            raise ValidationFailed('Each entry needs an integer id and order')
        if not order:
            raise ValidationFailed('Photo order is required')
        if any(position < 1 for position in order.values()):
            raise ValidationFailed('Photo order must start at 1')

        existing = set(self.objects(ResourcePhoto).filter(resource_id=resource_id).values_list('pk', flat=True))
        invalid = sorted(set(order) - existing)
        if invalid:
            raise ValidationFailed(f'Invalid photo IDs: {", ".join(str(pk) for pk in invalid)}')

        with self.atomic():
            for photo_id, position in order.items():
                self.objects(ResourcePhoto).filter(pk=photo_id).update(display_order=position)
        return self.list_photos(resource_id)
