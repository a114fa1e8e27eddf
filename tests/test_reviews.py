"""
Review system tests.

Covers review creation rules for borrow-request reviews, rating range
checks, rating aggregates under edits and moderation, responses, flags,
helpfulness votes and the review API.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from core.exceptions import Conflict, NotFound, Unauthorized, ValidationFailed
from core.models import Notification, Review


@pytest.fixture
def returned_request(services, owner, borrower, resource, day):
    borrow_request = services.borrow_requests.create_request(borrower.id, resource.id, day(1), day(3))
    services.borrow_requests.approve(borrow_request.id, owner.id)
    services.borrow_requests.pickup(borrow_request.id, owner.id)
    return services.borrow_requests.return_item(borrow_request.id, owner.id)


@pytest.fixture
def moderator(make_user):
    return make_user(username='moderator', email='moderator@test.com', is_staff=True)


def review_owner(services, borrower, owner, borrow_request, rating=5, **kwargs):
    return services.reviews.create_review(
        borrower.id, owner.id, rating, 'borrower_to_owner', borrow_request_id=borrow_request.id, **kwargs
    )


# ============================================================================
# 1. CREATION
# ============================================================================

class TestCreateReview:

    def test_borrower_reviews_owner(self, services, borrower, owner, resource, returned_request):
        review = review_owner(services, borrower, owner, returned_request, comment='Great drill', care_rating=4)

        assert review.is_verified is True
        assert review.resource_id == resource.id
        assert review.care_rating == 4

    def test_reviewee_is_notified(self, services, borrower, owner, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        notification = Notification.objects.get(user=owner, type='review_received')
        assert notification.related_review_id == review.id

    def test_owner_reviews_borrower(self, services, borrower, owner, returned_request):
        review = services.reviews.create_review(
            owner.id, borrower.id, 4, 'owner_to_borrower', borrow_request_id=returned_request.id
        )

        assert review.review_type == 'owner_to_borrower'

    def test_duplicate_review_conflicts(self, services, borrower, owner, returned_request):
        review_owner(services, borrower, owner, returned_request)

        with pytest.raises(Conflict):
            review_owner(services, borrower, owner, returned_request)

    @pytest.mark.parametrize('field', [
        'communication_rating', 'reliability_rating', 'item_condition_rating', 'care_rating',
    ])
    @pytest.mark.parametrize('value', [0, 6])
    def test_category_rating_out_of_range(self, services, borrower, owner, returned_request, field, value):
        with pytest.raises(ValidationFailed):
            review_owner(services, borrower, owner, returned_request, **{field: value})

    @pytest.mark.parametrize('value', [0, 6, None, '5', 4.5, True])
    def test_overall_rating_invalid(self, services, borrower, owner, returned_request, value):
        with pytest.raises(ValidationFailed):
            review_owner(services, borrower, owner, returned_request, rating=value)

    def test_review_before_return_conflicts(self, services, borrower, owner, resource, day):
        borrow_request = services.borrow_requests.create_request(borrower.id, resource.id, day(1), day(2))

        with pytest.raises(Conflict):
            review_owner(services, borrower, owner, borrow_request)

    def test_non_party_cannot_review_request(self, services, stranger, owner, returned_request):
        with pytest.raises(Unauthorized):
            services.reviews.create_review(
                stranger.id, owner.id, 5, 'borrower_to_owner', borrow_request_id=returned_request.id
            )

    def test_wrong_review_type_rejected(self, services, borrower, owner, returned_request):
        with pytest.raises(ValidationFailed):
            services.reviews.create_review(
                borrower.id, owner.id, 5, 'owner_to_borrower', borrow_request_id=returned_request.id
            )

    def test_self_review_rejected(self, services, borrower):
        with pytest.raises(ValidationFailed):
            services.reviews.create_review(borrower.id, borrower.id, 5, 'borrower_to_owner')

    def test_unknown_borrow_request(self, services, borrower, owner):
        with pytest.raises(NotFound):
            services.reviews.create_review(borrower.id, owner.id, 5, 'borrower_to_owner', borrow_request_id=99999)

    def test_pending_reviews_lists_unreviewed_requests(self, services, borrower, owner, returned_request):
        pending = services.reviews.pending_reviews(borrower.id)

        assert [p['borrow_request'].id for p in pending] == [returned_request.id]
        assert pending[0]['reviewee'].id == owner.id
        assert pending[0]['review_type'] == 'borrower_to_owner'

        review_owner(services, borrower, owner, returned_request)

        assert services.reviews.pending_reviews(borrower.id) == []


# ============================================================================
# 2. RATING AGGREGATES
# ============================================================================

class TestRatingAggregates:

    def test_average_follows_edits_and_moderation(
        self, services, borrower, owner, stranger, moderator, returned_request
    ):
        review_owner(services, borrower, owner, returned_request, rating=5)
        low = services.reviews.create_review(stranger.id, owner.id, 3, 'borrower_to_owner')

        owner.refresh_from_db()
        assert owner.average_rating == Decimal('4.00')
        assert owner.total_ratings == 2

        services.reviews.moderate(low.id, moderator, 'hide')
        owner.refresh_from_db()
        assert owner.average_rating == Decimal('5.00')
        assert owner.total_ratings == 1

        services.reviews.moderate(low.id, moderator, 'show')
        services.reviews.update_review(low.id, stranger.id, {'rating': 1})
        owner.refresh_from_db()
        assert owner.average_rating == Decimal('3.00')
        assert owner.total_ratings == 2

    def test_resource_rating_follows_anchored_reviews(self, services, borrower, owner, resource, returned_request):
        review_owner(services, borrower, owner, returned_request, rating=4)

        resource.refresh_from_db()
        assert resource.average_rating == Decimal('4.00')
        assert resource.total_ratings == 1

    def test_rating_summary_breakdown(self, services, borrower, owner, stranger, returned_request):
        review_owner(services, borrower, owner, returned_request, rating=5, communication_rating=4)
        services.reviews.create_review(stranger.id, owner.id, 3, 'borrower_to_owner')

        summary = services.reviews.rating_summary(owner.id)

        assert summary['averageRating'] == Decimal('4.00')
        assert summary['totalReviews'] == 2
        assert summary['ratingBreakdown'] == {'1': 0, '2': 0, '3': 1, '4': 0, '5': 1}
        assert summary['categoryAverages']['communication_rating'] == Decimal('4.00')
        assert summary['categoryAverages']['care_rating'] is None


# ============================================================================
# 3. EDITS, RESPONSES, FLAGS AND VOTES
# ============================================================================

class TestReviewInteractions:

    def test_only_reviewer_can_edit(self, services, borrower, owner, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        with pytest.raises(Unauthorized):
            services.reviews.update_review(review.id, owner.id, {'rating': 1})

    def test_edit_window_closes(self, services, borrower, owner, returned_request):
        review = review_owner(services, borrower, owner, returned_request)
        Review.objects.filter(pk=review.pk).update(created_at=timezone.now() - timedelta(hours=25))

        with pytest.raises(Conflict):
            services.reviews.update_review(review.id, borrower.id, {'comment': 'Changed my mind'})

    def test_edit_needs_something_to_change(self, services, borrower, owner, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        with pytest.raises(ValidationFailed):
            services.reviews.update_review(review.id, borrower.id, {'unknown': 1})

    def test_reviewee_responds_once(self, services, borrower, owner, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        services.reviews.add_response(review.id, owner.id, 'Thanks for taking care of it!')

        with pytest.raises(Conflict):
            services.reviews.add_response(review.id, owner.id, 'Again')
        assert Notification.objects.filter(user=borrower, type='review_response').count() == 1

    def test_reviewer_cannot_respond(self, services, borrower, owner, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        with pytest.raises(Unauthorized):
            services.reviews.add_response(review.id, borrower.id, 'Self response')

    def test_flag_by_third_party(self, services, borrower, owner, stranger, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        flagged = services.reviews.flag(review.id, stranger.id, 'Spam')

        assert flagged.moderation_status == 'flagged'
        assert flagged.flagged_by_id == stranger.id

    def test_parties_cannot_flag(self, services, borrower, owner, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        with pytest.raises(Unauthorized):
            services.reviews.flag(review.id, owner.id, 'Unfair')

    def test_vote_counts_and_duplicate_vote(self, services, borrower, owner, stranger, moderator, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        services.reviews.vote(review.id, stranger.id, True)
        voted = services.reviews.vote(review.id, moderator.id, False)

        assert voted.helpful_votes == 1
        assert voted.total_votes == 2
        with pytest.raises(Conflict):
            services.reviews.vote(review.id, stranger.id, False)

    def test_party_cannot_vote(self, services, borrower, owner, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        with pytest.raises(Unauthorized):
            services.reviews.vote(review.id, owner.id, True)

    def test_moderation_requires_staff(self, services, borrower, owner, stranger, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        with pytest.raises(Unauthorized):
            services.reviews.moderate(review.id, stranger, 'hide')

    def test_hidden_review_only_visible_to_parties(self, services, borrower, owner, stranger, moderator,
                                                   returned_request):
        review = review_owner(services, borrower, owner, returned_request)
        services.reviews.moderate(review.id, moderator, 'hide')

        assert services.reviews.get_review(review.id, viewer=owner).id == review.id
        with pytest.raises(NotFound):
            services.reviews.get_review(review.id, viewer=stranger)
        assert list(services.reviews.reviews_for_user(owner.id)) == []


# ============================================================================
# 4. API
# ============================================================================

@pytest.mark.django_db
class TestReviewAPI:

    def test_create_review(self, auth_client, borrower, owner, returned_request):
        response = auth_client(borrower).post(reverse('review_create'), {
            'reviewee_id': owner.id,
            'borrow_request_id': returned_request.id,
            'rating': 5,
            'review_type': 'borrower_to_owner',
            'comment': 'Smooth hand-over',
        })

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['data']['rating'] == 5

    def test_out_of_range_rating_returns_400(self, auth_client, borrower, owner, returned_request):
        response = auth_client(borrower).post(reverse('review_create'), {
            'reviewee_id': owner.id,
            'borrow_request_id': returned_request.id,
            'rating': 7,
            'review_type': 'borrower_to_owner',
        })

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error']['code'] == 'VALIDATION_ERROR'

    def test_user_reviews_are_public_with_summary(self, services, api_client, borrower, owner, returned_request):
        review_owner(services, borrower, owner, returned_request, rating=4)

        response = api_client.get(reverse('user_reviews', args=[owner.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['pagination']['total'] == 1
        assert response.data['summary']['totalReviews'] == 1

    def test_vote_twice_returns_409(self, services, auth_client, borrower, owner, stranger, returned_request):
        review = review_owner(services, borrower, owner, returned_request)
        client = auth_client(stranger)

        first = client.post(reverse('review_vote', args=[review.id]), {'is_helpful': True})
        second = client.post(reverse('review_vote', args=[review.id]), {'is_helpful': True})

        assert first.status_code == status.HTTP_200_OK
        assert first.data['data'] == {'helpfulVotes': 1, 'totalVotes': 1}
        assert second.status_code == status.HTTP_409_CONFLICT

    def test_moderate_requires_staff(self, services, auth_client, borrower, owner, stranger, returned_request):
        review = review_owner(services, borrower, owner, returned_request)

        response = auth_client(stranger).put(reverse('review_moderate', args=[review.id]), {'action': 'hide'})

        assert response.status_code == status.HTTP_403_FORBIDDEN
