"""
Account operations that go beyond plain profile edits: location updates,
password changes, the aggregated profile page, rating recomputation and
account closure.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Avg, Count, F
from django.utils import timezone
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken

from core.exceptions import Conflict, ValidationFailed
from core.models import BorrowRequest, Resource, Review, User

from .base import BaseService

logger = logging.getLogger(__name__)


def quantize_rating(value):
    if value is None:
        return Decimal('0.00')
    return Decimal(str(value)).quantize(Decimal('0.01'))


def recalculate_user_rating(user_id, using='default'):
    """
    Recompute a user's average rating and count from visible reviews received.

    Full recomputation keeps the aggregate correct after edits, hides and
    deletions. The user row is locked while it is updated.
    """
    user = User.objects.db_manager(using).select_for_update().get(pk=user_id)
    stats = (
        Review.objects.db_manager(using)
        .filter(reviewee_id=user_id)
        .exclude(moderation_status='hidden')
        .aggregate(avg=Avg('rating'), total=Count('id'))
    )
    user.average_rating = quantize_rating(stats['avg'])
    user.total_ratings = stats['total'] or 0
    User.objects.db_manager(using).filter(pk=user.pk).update(
        average_rating=user.average_rating,
        total_ratings=user.total_ratings,
    )
    return user


def recalculate_resource_rating(resource_id, using='default'):
    """Recompute a resource's rating from visible reviews anchored to it."""
    resource = Resource.objects.db_manager(using).select_for_update().get(pk=resource_id)
    stats = (
        Review.objects.db_manager(using)
        .filter(resource_id=resource_id)
        .exclude(moderation_status='hidden')
        .aggregate(avg=Avg('rating'), total=Count('id'))
    )
    resource.average_rating = quantize_rating(stats['avg'])
    resource.total_ratings = stats['total'] or 0
    Resource.objects.db_manager(using).filter(pk=resource.pk).update(
        average_rating=resource.average_rating,
        total_ratings=resource.total_ratings,
    )
    return resource


class UserService(BaseService):
    def get_user(self, user_id):
        return self.get_or_not_found(User, 'User', pk=user_id)

    def update_location(self, user_id, latitude, longitude, neighborhood=None, postal_code=None, address=None):
        """
        Store the user's coordinates and mark the location as verified.

        Raises:
            ValidationFailed: Coordinates missing or out of range
        """
        try:
            latitude = Decimal(str(latitude)).quantize(Decimal('0.000001'))
            longitude = Decimal(str(longitude)).quantize(Decimal('0.000001'))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationFailed('Valid latitude and longitude are required')

        errors = {}
        if not Decimal('-90') <= latitude <= Decimal('90'):
            errors['latitude'] = ['Latitude must be between -90 and 90.']
        if not Decimal('-180') <= longitude <= Decimal('180'):
            errors['longitude'] = ['Longitude must be between -180 and 180.']
        if errors:
            raise ValidationFailed('Invalid location', errors=errors)

        user = self.get_user(user_id)
        user.latitude = latitude
        user.longitude = longitude
        user.is_location_verified = True
        update_fields = ['latitude', 'longitude', 'is_location_verified', 'updated_at']
        for field, value in (('neighborhood', neighborhood), ('postal_code', postal_code), ('address', address)):
            if value is not None:
                setattr(user, field, value.strip())
                update_fields.append(field)
        user.save(using=self.using, update_fields=update_fields)

        logger.info(f"Location updated for user {user_id}")
        return user

    def change_password(self, user_id, current_password, new_password):
        """
        Raises:
            ValidationFailed: Current password wrong, or new password too weak
        """
        user = self.get_user(user_id)
        if not user.check_password(current_password or ''):
            logger.warning(f"Password change with incorrect current password. User ID: {user_id}")
            raise ValidationFailed('Current password is incorrect')

        if current_password == new_password:
            raise ValidationFailed('New password must be different from the current password')

        try:
            validate_password(new_password, user=user)
        except DjangoValidationError as e:
            raise ValidationFailed('New password is too weak', errors={'new_password': list(e.messages)})

        user.set_password(new_password)
        user.save(using=self.using, update_fields=['password', 'updated_at'])
        logger.info(f"Password changed for user {user_id}")
        return user

    def increment_successful_borrows(self, user_id):
        self.objects(User).filter(pk=user_id).update(successful_borrows=F('successful_borrows') + 1)

    def complete_profile(self, user_id):
        """
        Everything shown on a profile page in one structure.

        Borrow history leaves out rejected and cancelled requests.
        """
        user = self.get_user(user_id)
        resources = (
            self.objects(Resource)
            .filter(owner_id=user_id)
            .exclude(status='inactive')
            .prefetch_related('photos')
            .order_by('-created_at')
        )
        borrow_history = (
            self.objects(BorrowRequest)
            .filter(requester_id=user_id)
            .exclude(status__in=['rejected', 'cancelled'])
            .select_related('resource', 'resource__owner')
            .order_by('-created_at')
        )
        lend_history = (
            self.objects(BorrowRequest)
            .filter(resource__owner_id=user_id)
            .select_related('resource', 'requester')
            .order_by('-created_at')
        )
        received = (
            self.objects(Review)
            .filter(reviewee_id=user_id)
            .exclude(moderation_status='hidden')
            .select_related('reviewer')
        )
        given = self.objects(Review).filter(reviewer_id=user_id).select_related('reviewee')

        statistics = {
            'borrowCount': borrow_history.count(),
            'lendCount': resources.count(),
            'totalResources': resources.count(),
            'successfulBorrows': user.successful_borrows,
            'completedBorrows': borrow_history.filter(status='completed').count(),
            'completedLends': lend_history.filter(status='completed').count(),
            'averageRating': user.average_rating,
            'totalRatings': user.total_ratings,
        }
        return {
            'user': user,
            'statistics': statistics,
            'resources': list(resources),
            'borrow_history': list(borrow_history),
            'lend_history': list(lend_history),
            'reviews_received': list(received),
            'reviews_given': list(given),
        }

    def close_account(self, user_id):
        """
        Close an account by anonymizing it in place.

        Reviews, messages and borrow history keep pointing at the row; only
        personal data is scrubbed. Listings go inactive, open requests are
        cancelled or rejected, and every refresh token is blacklisted.

        Raises:
            Conflict: The user currently has an item borrowed or lent out
        """
        with self.atomic():
            user = self.objects(User).select_for_update().get(pk=user_id)

            in_progress = self.objects(BorrowRequest).filter(
                status__in=['active', 'overdue']
            ).filter(
                requester_id=user_id
            ).exists() or self.objects(BorrowRequest).filter(
                status__in=['active', 'overdue'], resource__owner_id=user_id
            ).exists()
            if in_progress:
                raise Conflict('Return or collect all borrowed items before closing the account')

            now = timezone.now()

            for request in self.objects(BorrowRequest).select_related('resource').filter(
                requester_id=user_id, status__in=['pending', 'approved']
            ):
                if request.status == 'approved':
                    self.objects(Resource).filter(pk=request.resource_id).update(is_available=True)
                request.status = 'cancelled'
                request.save(using=self.using, update_fields=['status', 'updated_at'])

            self.objects(BorrowRequest).filter(
                resource__owner_id=user_id, status__in=['pending', 'approved']
            ).update(
                status='rejected',
                responded_at=now,
                response_message='The owner closed their account.',
                updated_at=now,
            )

            self.objects(Resource).filter(owner_id=user_id).update(
                status='inactive', is_available=False, updated_at=now
            )

            if user.profile_image:
                user.profile_image.delete(save=False)

            user.email = f'closed-user-{user.pk}@closed.invalid'
            user.username = f'closed_{user.pk}'
            user.first_name = ''
            user.last_name = ''
            user.phone_number = ''
            user.address = ''
            user.neighborhood = ''
            user.postal_code = ''
            user.bio = ''
            user.latitude = None
            user.longitude = None
            user.profile_image = None
            user.is_location_verified = False
            user.is_active = False
            user.items_shared = 0
            user.closed_at = now
            user.set_unusable_password()
            user.save(using=self.using)

            for token in OutstandingToken.objects.db_manager(self.using).filter(user_id=user_id):
                BlacklistedToken.objects.db_manager(self.using).get_or_create(token=token)

        logger.info(f"Account {user_id} closed and anonymized")
        return user
