"""
Tests for the maintenance management commands.
"""

from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import CommandError, call_command
from django.utils import timezone

from core.models import BorrowRequest, Notification, Review, User


def run(command, *args):
    out = StringIO()
    call_command(command, *args, stdout=out)
    return out.getvalue()


class TestMarkOverdue:

    def test_marks_active_requests_past_due(self, services, owner, borrower, resource, day):
        borrow_request = services.borrow_requests.create_request(borrower.id, resource.id, day(1), day(2))
        services.borrow_requests.approve(borrow_request.id, owner.id)
        services.borrow_requests.pickup(borrow_request.id, owner.id)

        output = run('mark_overdue', '--date', day(4).isoformat())

        assert 'Marked 1 borrow requests overdue.' in output
        assert BorrowRequest.objects.get(pk=borrow_request.pk).status == 'overdue'

    def test_nothing_due(self, db):
        assert 'Marked 0 borrow requests overdue.' in run('mark_overdue')

    def test_invalid_date(self, db):
        with pytest.raises(CommandError):
            run('mark_overdue', '--date', 'yesterday')


class TestNotificationCommands:

    def test_cleanup_expired(self, services, borrower):
        services.notifications.create_notification(
            borrower.id, 'system_announcement', 'Old', 'Gone soon',
            expires_at=timezone.now() - timedelta(hours=1),
        )

        output = run('cleanup_expired_notifications')

        assert 'Deleted 1 expired notifications.' in output
        assert Notification.objects.count() == 0

    def test_send_scheduled(self, services, borrower):
        for minutes in (10, 5):
            services.notifications.create_notification(
                borrower.id, 'system_announcement', 'Reminder', 'Return the ladder',
                scheduled_for=timezone.now() - timedelta(minutes=minutes),
            )

        output = run('send_scheduled_notifications', '--limit', '1')

        assert 'Sent 1 scheduled notifications.' in output
        assert Notification.objects.filter(is_sent=True).count() == 1


class TestRecalculateRatings:

    @pytest.fixture
    def drifted(self, owner, borrower, resource):
        Review.objects.create(
            reviewer=borrower, reviewee=owner, resource=resource, rating=4, review_type='borrower_to_owner'
        )
        User.objects.filter(pk=owner.pk).update(average_rating=Decimal('1.00'), total_ratings=9)
        return owner

    def test_recalculates_from_visible_reviews(self, drifted, resource):
        output = run('recalculate_ratings')

        drifted.refresh_from_db()
        resource.refresh_from_db()
        assert 'Recalculation completed successfully.' in output
        assert drifted.average_rating == Decimal('4.00')
        assert drifted.total_ratings == 1
        assert resource.average_rating == Decimal('4.00')

    def test_dry_run_saves_nothing(self, drifted):
        output = run('recalculate_ratings', '--dry-run', '--users-only')

        drifted.refresh_from_db()
        assert '[DRY-RUN]' in output
        assert drifted.average_rating == Decimal('1.00')
        assert drifted.total_ratings == 9
