"""
Reviews between the two parties of a lending, with moderation, responses
and helpfulness votes.

Rating aggregates on User and Resource are recomputed by the Review
post_save/post_delete signal handlers in core.signals.
"""

import logging
from datetime import timedelta

from django.db import IntegrityError
from django.db.models import Avg, Count, F, Q
from django.utils import timezone

from core.exceptions import Conflict, NotFound, Unauthorized, ValidationFailed
from core.models import BorrowRequest, Review, ReviewVote, User

from .base import BaseService, setting
from .notifications import NotificationService
from .users import quantize_rating

logger = logging.getLogger(__name__)

RATING_FIELDS = ['rating'] + Review.CATEGORY_RATING_FIELDS
REVIEW_TYPES = [choice for choice, _ in Review.REVIEW_TYPE_CHOICES]
MODERATION_ACTIONS = ['hide', 'show', 'verify']
COMMENT_MAX_LENGTH = 1000
RESPONSE_MAX_LENGTH = 1000


def check_rating(field, value, required=False):
    """
    Raises:
        ValidationFailed: value is not an integer in [1, 5]
    """
    if value is None:
        if required:
            raise ValidationFailed('Rating is required', errors={field: ['This field is required.']})
        return None
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationFailed(
            f'{field} must be an integer between 1 and 5',
            errors={field: ['Must be an integer between 1 and 5.']},
        )
    return value


def expected_review_type(borrow_request, reviewer_id):
    if reviewer_id == borrow_request.requester_id:
        return 'borrower_to_owner'
    return 'owner_to_borrower'


class ReviewService(BaseService):
    def __init__(self, using='default', hub=None, notifications=None):
        super().__init__(using=using, hub=hub)
        self.notifications = notifications or NotificationService(using=using, hub=self.hub)

    def _notify(self, func, review):
        try:
            with self.atomic():
                func(review)
        except Exception as e:
            logger.warning(f"Failed to send notification for review {review.id}: {e}")

    def _get(self, review_id, lock=False):
        queryset = self.objects(Review)
        if lock:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=review_id)
        except Review.DoesNotExist:
            raise NotFound('Review')

    # Create and edit

    def create_review(self, reviewer_id, reviewee_id, rating, review_type, borrow_request_id=None,
                      comment='', is_anonymous=False, **category_ratings):
        """
        Leave a review for another user.

        A review anchored to a borrow request must come from one party of a
        returned or completed request, target the other party, and declare
        the direction matching the reviewer's role.

        Raises:
            ValidationFailed: Self-review, rating out of range, wrong reviewee or direction
            NotFound: Reviewee or borrow request absent
            Conflict: Request not finished yet, or the review already exists
            Unauthorized: Reviewer is not a party of the borrow request
        """
        unknown = set(category_ratings) - set(Review.CATEGORY_RATING_FIELDS)
        if unknown:
            raise ValidationFailed(f'Unknown rating fields: {", ".join(sorted(unknown))}')

        if reviewer_id == reviewee_id:
            raise ValidationFailed('You cannot review yourself')

        check_rating('rating', rating, required=True)
        for field in Review.CATEGORY_RATING_FIELDS:
            check_rating(field, category_ratings.get(field))

        if review_type not in REVIEW_TYPES:
            raise ValidationFailed(f'Review type must be one of: {", ".join(REVIEW_TYPES)}')
        comment = (comment or '').strip()
        if len(comment) > COMMENT_MAX_LENGTH:
            raise ValidationFailed(f'Comment cannot exceed {COMMENT_MAX_LENGTH} characters')

        if not self.objects(User).filter(pk=reviewee_id).exists():
            raise NotFound('User')

        borrow_request = None
        if borrow_request_id is not None:
            try:
                borrow_request = (
                    self.objects(BorrowRequest)
                    .select_related('resource')
                    .get(pk=borrow_request_id)
                )
            except BorrowRequest.DoesNotExist:
                raise NotFound('Borrow request')

            if borrow_request.status not in BorrowRequest.REVIEWABLE_STATUSES:
                raise Conflict('You can only review a borrow request after the item is returned')
            if not borrow_request.is_participant(reviewer_id):
                logger.warning(f"User {reviewer_id} attempted to review borrow request {borrow_request_id}")
                raise Unauthorized('Only the parties of a borrow request can review it')
            if not borrow_request.is_participant(reviewee_id):
                raise ValidationFailed('The reviewee must be the other party of the borrow request')
            if review_type != expected_review_type(borrow_request, reviewer_id):
                raise ValidationFailed('Review type does not match your role in this borrow request')

        duplicate = self.objects(Review).filter(
            reviewer_id=reviewer_id,
            reviewee_id=reviewee_id,
            borrow_request_id=borrow_request_id,
        )
        if duplicate.exists():
            raise Conflict('You have already reviewed this user for this transaction')

        review = Review(
            reviewer_id=reviewer_id,
            reviewee_id=reviewee_id,
            borrow_request=borrow_request,
            resource_id=borrow_request.resource_id if borrow_request else None,
            rating=rating,
            comment=comment,
            review_type=review_type,
            is_anonymous=bool(is_anonymous),
            is_verified=borrow_request is not None,
            **{field: category_ratings.get(field) for field in Review.CATEGORY_RATING_FIELDS}
        )
        try:
            with self.atomic():
                review.save(using=self.using)
        except IntegrityError:
            raise Conflict('You have already reviewed this user for this transaction')

        logger.info(f"Review {review.id} created by user {reviewer_id} for user {reviewee_id}")
        self._notify(self.notifications.notify_review_received, review)
        return review

    def update_review(self, review_id, user_id, data):
        """
        Edit a review within the edit window after creation.

        Raises:
            Unauthorized: Caller is not the reviewer
            Conflict: Edit window has passed
            ValidationFailed: Nothing editable supplied, or an invalid rating
        """
        with self.atomic():
            review = self._get(review_id, lock=True)
            if review.reviewer_id != user_id:
                logger.warning(f"User {user_id} attempted to edit review {review_id}")
                raise Unauthorized('You can only edit your own reviews')

            window = timedelta(hours=setting('REVIEW_EDIT_WINDOW_HOURS'))
            if timezone.now() > review.created_at + window:
                raise Conflict('Reviews can only be edited within 24 hours of posting')

            update_fields = []
            for field in RATING_FIELDS:
                if field in data:
                    setattr(review, field, check_rating(field, data[field], required=field == 'rating'))
                    update_fields.append(field)
            if 'comment' in data:
                comment = (data['comment'] or '').strip()
                if len(comment) > COMMENT_MAX_LENGTH:
                    raise ValidationFailed(f'Comment cannot exceed {COMMENT_MAX_LENGTH} characters')
                review.comment = comment
                update_fields.append('comment')
            if 'is_anonymous' in data:
                review.is_anonymous = bool(data['is_anonymous'])
                update_fields.append('is_anonymous')

            if not update_fields:
                raise ValidationFailed('No valid updates provided')

            review.save(using=self.using, update_fields=update_fields + ['updated_at'])

        logger.info(f"Review {review_id} updated")
        return review

    def add_response(self, review_id, user_id, response):
        """
        Raises:
            Unauthorized: Caller is not the reviewee
            ValidationFailed: Empty or oversized response
            Conflict: The review already has a response
        """
        response = (response or '').strip()
        with self.atomic():
            review = self._get(review_id, lock=True)
            if review.reviewee_id != user_id:
                raise Unauthorized('Only the reviewed user can respond to this review')
            if not response:
                raise ValidationFailed('Response cannot be empty')
            if len(response) > RESPONSE_MAX_LENGTH:
                raise ValidationFailed(f'Response cannot exceed {RESPONSE_MAX_LENGTH} characters')
            if review.response:
                raise Conflict('You have already responded to this review')

            review.response = response
            review.response_at = timezone.now()
            review.save(using=self.using, update_fields=['response', 'response_at', 'updated_at'])

        self._notify(self.notifications.notify_review_response, review)
        return review

    # Community moderation

    def flag(self, review_id, user_id, reason):
        reason = (reason or '').strip()
        with self.atomic():
            review = self._get(review_id, lock=True)
            if user_id in (review.reviewer_id, review.reviewee_id):
                raise Unauthorized('You cannot flag a review you are part of')
            if not reason:
                raise ValidationFailed('A reason is required to flag a review')

            if review.moderation_status == 'visible':
                review.moderation_status = 'flagged'
            review.flag_reason = reason[:500]
            review.flagged_by_id = user_id
            review.flagged_at = timezone.now()
            review.save(using=self.using, update_fields=[
                'moderation_status', 'flag_reason', 'flagged_by', 'flagged_at', 'updated_at',
            ])

        logger.info(f"Review {review_id} flagged by user {user_id}")
        return review

    def vote(self, review_id, user_id, is_helpful):
        """
        Record one helpfulness vote per user.

        Raises:
            Unauthorized: Voter is a party of the review
            Conflict: Voter already voted on this review
        """
        if not isinstance(is_helpful, bool):
            raise ValidationFailed('is_helpful must be true or false')

        review = self._get(review_id)
        if review.is_hidden:
            raise NotFound('Review')
        if user_id in (review.reviewer_id, review.reviewee_id):
            raise Unauthorized('You cannot vote on a review you are part of')

        if self.objects(ReviewVote).filter(review_id=review.id, voter_id=user_id).exists():
            raise Conflict('You have already voted on this review')

        try:
            with self.atomic():
                self.objects(ReviewVote).create(review_id=review.id, voter_id=user_id, is_helpful=is_helpful)
                counters = {'total_votes': F('total_votes') + 1}
                if is_helpful:
                    counters['helpful_votes'] = F('helpful_votes') + 1
                self.objects(Review).filter(pk=review.id).update(**counters)
        except IntegrityError:
            raise Conflict('You have already voted on this review')

        review.refresh_from_db(using=self.using, fields=['helpful_votes', 'total_votes'])
        return review

    def moderate(self, review_id, moderator, action):
        """
        Administrative hide, show or verify.

        Raises:
            Unauthorized: Moderator is not staff
            ValidationFailed: Unknown action
        """
        if not moderator.is_staff:
            logger.warning(f"Non-staff user {moderator.id} attempted to moderate review {review_id}")
            raise Unauthorized('Only administrators can moderate reviews')
        if action not in MODERATION_ACTIONS:
            raise ValidationFailed(f'Action must be one of: {", ".join(MODERATION_ACTIONS)}')

        with self.atomic():
            review = self._get(review_id, lock=True)
            update_fields = ['moderated_at', 'moderated_by', 'updated_at']
            if action == 'hide':
                review.moderation_status = 'hidden'
                update_fields.append('moderation_status')
            elif action == 'show':
                review.moderation_status = 'visible'
                update_fields.append('moderation_status')
            else:
                review.is_verified = True
                update_fields.append('is_verified')
            review.moderated_at = timezone.now()
            review.moderated_by = moderator
            review.save(using=self.using, update_fields=update_fields)

        logger.info(f"Review {review_id} moderated ({action}) by {moderator.id}")
        return review

    # Reads

    def get_review(self, review_id, viewer=None):
        """Hidden reviews are only visible to their parties and staff."""
        review = self._get(review_id)
        if review.is_hidden:
            allowed = viewer is not None and (
                viewer.is_staff or viewer.id in (review.reviewer_id, review.reviewee_id)
            )
            if not allowed:
                raise NotFound('Review')
        return review

    def reviews_for_user(self, user_id, rating=None):
        queryset = (
            self.objects(Review)
            .filter(reviewee_id=user_id)
            .exclude(moderation_status='hidden')
            .select_related('reviewer', 'reviewee', 'resource')
        )
        if rating:
            queryset = queryset.filter(rating=rating)
        return queryset.order_by('-created_at')

    def reviews_by_user(self, user_id, include_hidden=False):
        queryset = self.objects(Review).filter(reviewer_id=user_id).select_related('reviewer', 'reviewee', 'resource')
        if not include_hidden:
            queryset = queryset.exclude(moderation_status='hidden')
        return queryset.order_by('-created_at')

    def rating_summary(self, user_id):
        """Average, count, 1-5 breakdown and category averages of visible reviews received."""
        visible = self.objects(Review).filter(reviewee_id=user_id).exclude(moderation_status='hidden')
        aggregates = visible.aggregate(
            average=Avg('rating'),
            total=Count('id'),
            **{field: Avg(field) for field in Review.CATEGORY_RATING_FIELDS}
        )
        breakdown = {str(star): 0 for star in range(1, 6)}
        for row in visible.order_by().values('rating').annotate(count=Count('id')):
            breakdown[str(row['rating'])] = row['count']

        return {
            'averageRating': quantize_rating(aggregates['average']),
            'totalReviews': aggregates['total'],
            'ratingBreakdown': breakdown,
            'categoryAverages': {
                field: quantize_rating(aggregates[field]) if aggregates[field] is not None else None
                for field in Review.CATEGORY_RATING_FIELDS
            },
        }

    def pending_reviews(self, user_id):
        """
        Returned or completed requests involving the user that the user has
        not reviewed yet.

        Returns:
            list: dicts with borrow_request, reviewee and review_type
        """
        requests = (
            self.objects(BorrowRequest)
            .filter(status__in=BorrowRequest.REVIEWABLE_STATUSES)
            .filter(Q(requester_id=user_id) | Q(resource__owner_id=user_id))
            .exclude(reviews__reviewer_id=user_id)
            .select_related('resource', 'resource__owner', 'requester')
            .order_by('-updated_at')
        )
        pending = []
        for borrow_request in requests:
            is_requester = borrow_request.requester_id == user_id
            pending.append({
                'borrow_request': borrow_request,
                'reviewee': borrow_request.resource.owner if is_requester else borrow_request.requester,
                'review_type': expected_review_type(borrow_request, user_id),
            })
        return pending

    def statistics(self, user_id):
        summary = self.rating_summary(user_id)
        received = self.objects(Review).filter(reviewee_id=user_id).exclude(moderation_status='hidden')
        total_received = received.count()
        responded = received.exclude(response='').count()
        return {
            **summary,
            'reviewsGiven': self.objects(Review).filter(reviewer_id=user_id).count(),
            'pendingReviews': len(self.pending_reviews(user_id)),
            'responseRate': round(responded * 100 / total_received, 1) if total_received else 0,
        }
