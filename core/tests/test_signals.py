"""
Tests for the signals that keep user and resource ratings in step with reviews.
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db.models.signals import post_save
from django.test import TestCase

from core.models import Resource, Review

User = get_user_model()


class ReviewSignalTests(TestCase):

    def setUp(self):
        self.owner = User.objects.create_user(
            username='owner1',
            email='owner1@test.com',
            password='testpass123',
        )
        self.borrower = User.objects.create_user(
            username='borrower1',
            email='borrower1@test.com',
            password='testpass123',
        )
        self.other_borrower = User.objects.create_user(
            username='borrower2',
            email='borrower2@test.com',
            password='testpass123',
        )
        self.resource = Resource.objects.create(
            owner=self.owner,
            title='Pressure Washer',
            description='Electric pressure washer with patio attachment.',
            category='Garden & Outdoor',
            condition='good',
            estimated_value=Decimal('180.00'),
        )

    def review(self, reviewer, rating, **kwargs):
        return Review.objects.create(
            reviewer=reviewer,
            reviewee=self.owner,
            resource=self.resource,
            rating=rating,
            review_type='borrower_to_owner',
            **kwargs
        )

    def assertRatings(self, average, total):
        self.owner.refresh_from_db()
        self.resource.refresh_from_db()
        self.assertEqual(self.owner.average_rating, Decimal(average))
        self.assertEqual(self.owner.total_ratings, total)
        self.assertEqual(self.resource.average_rating, Decimal(average))
        self.assertEqual(self.resource.total_ratings, total)

    def test_creating_review_updates_ratings(self):
        self.review(self.borrower, 5)
        self.review(self.other_borrower, 2)

        self.assertRatings('3.50', 2)

    def test_updating_review_updates_ratings(self):
        review = self.review(self.borrower, 5)

        review.rating = 3
        review.save()

        self.assertRatings('3.00', 1)

    def test_deleting_review_updates_ratings(self):
        self.review(self.borrower, 5)
        review = self.review(self.other_borrower, 1)

        review.delete()

        self.assertRatings('5.00', 1)

    def test_deleting_last_review_resets_ratings(self):
        self.review(self.borrower, 4).delete()

        self.assertRatings('0.00', 0)

    def test_hidden_reviews_are_excluded(self):
        self.review(self.borrower, 5)
        review = self.review(self.other_borrower, 1)

        review.moderation_status = 'hidden'
        review.save()

        self.assertRatings('5.00', 1)

    def test_review_without_resource_updates_user_only(self):
        Review.objects.create(
            reviewer=self.owner,
            reviewee=self.borrower,
            rating=4,
            review_type='owner_to_borrower',
        )

        self.borrower.refresh_from_db()
        self.resource.refresh_from_db()
        self.assertEqual(self.borrower.average_rating, Decimal('4.00'))
        self.assertEqual(self.resource.total_ratings, 0)

    def test_raw_saves_are_skipped(self):
        review = self.review(self.borrower, 5)
        User.objects.filter(pk=self.owner.pk).update(average_rating=Decimal('1.00'))

        post_save.send(sender=Review, instance=review, created=False, raw=True, using='default')

        self.owner.refresh_from_db()
        self.assertEqual(self.owner.average_rating, Decimal('1.00'))
