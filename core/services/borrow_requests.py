"""
Borrow-request lifecycle.

    pending -> approved -> active -> returned -> completed
    pending -> rejected
    pending | approved -> cancelled
    active -> overdue -> returned

Every guard-check-then-write runs inside a transaction that locks the
resource row (and the request row for transitions), so two concurrent
requests for overlapping dates cannot both pass the overlap check.
Notifications are sent after the transition commits and never fail it.
"""

import logging
from datetime import date

from django.db.models import Count, F, Q
from django.utils import timezone
from django.utils.dateparse import parse_date

from core.exceptions import Conflict, NotFound, Unauthorized, ValidationFailed
from core.models import BorrowRequest, Resource, User

from .base import BaseService
from .notifications import NotificationService

logger = logging.getLogger(__name__)

HOLDING_STATUSES = ['approved', 'active', 'overdue']


def coerce_date(value, field):
    if isinstance(value, date):
        return value
    parsed = parse_date(value) if isinstance(value, str) else None
    if parsed is None:
        raise ValidationFailed(f'{field} must be a valid date (YYYY-MM-DD)')
    return parsed


class BorrowRequestService(BaseService):
    def __init__(self, using='default', hub=None, notifications=None):
        super().__init__(using=using, hub=hub)
        self.notifications = notifications or NotificationService(using=using, hub=self.hub)

    # Helpers

    def _notify(self, borrow_request, event, recipient_id, **kwargs):
        """Send a lifecycle notification; failures are logged and swallowed."""
        try:
            with self.atomic():
                self.notifications.notify_borrow_request(borrow_request, event, recipient_id, **kwargs)
        except Exception as e:
            logger.warning(
                f"Failed to send {event} notification for borrow request {borrow_request.id}: {e}"
            )

    def _lock(self, request_id):
        """
        Lock a request and its resource for the rest of the transaction.

        Raises:
            NotFound: Request does not exist
        """
        try:
            borrow_request = self.objects(BorrowRequest).select_for_update().get(pk=request_id)
        except BorrowRequest.DoesNotExist:
            raise NotFound('Borrow request')
        resource = self.objects(Resource).select_for_update().select_related('owner').get(pk=borrow_request.resource_id)
        borrow_request.resource = resource
        return borrow_request, resource

    def _require_owner(self, borrow_request, user_id, action):
        if borrow_request.resource.owner_id != user_id:
            logger.warning(
                f"User {user_id} attempted to {action} borrow request {borrow_request.id} "
                f"without owning resource {borrow_request.resource_id}"
            )
            raise Unauthorized(f'Only the resource owner can {action} this request')

    def _require_requester(self, borrow_request, user_id, action):
        if borrow_request.requester_id != user_id:
            logger.warning(f"User {user_id} attempted to {action} borrow request {borrow_request.id}")
            raise Unauthorized(f'Only the requester can {action} this request')

    def _require_transition(self, borrow_request, new_status):
        is_valid, error = borrow_request.can_transition_to(new_status)
        if not is_valid:
            raise Conflict(error)

    def _refresh_availability(self, resource, exclude_request_id=None):
        """
        The resource is available unless another request still holds it.
        """
        holding = self.objects(BorrowRequest).filter(resource_id=resource.id, status__in=HOLDING_STATUSES)
        if exclude_request_id:
            holding = holding.exclude(pk=exclude_request_id)
        resource.is_available = resource.status in ('active', 'borrowed') and not holding.exists()
        if resource.status == 'borrowed' and not holding.filter(status__in=['active', 'overdue']).exists():
            resource.status = 'active'
        resource.save(using=self.using, update_fields=['is_available', 'status', 'updated_at'])

    def find_overlapping(self, resource_id, start_date, end_date, exclude_request_id=None):
        """
        Requests holding the resource's calendar whose inclusive range
        overlaps [start_date, end_date].
        """
        queryset = self.objects(BorrowRequest).filter(
            resource_id=resource_id,
            status__in=BorrowRequest.BLOCKING_STATUSES,
            start_date__lte=end_date,
            end_date__gte=start_date,
        )
        if exclude_request_id:
            queryset = queryset.exclude(pk=exclude_request_id)
        return queryset

    # Create

    def create_request(self, requester_id, resource_id, start_date, end_date, message='',
                       pickup_location='', emergency_contact='', today=None):
        """
        Request to borrow a resource for an inclusive date range.

        Raises:
            ValidationFailed: Bad dates, self-borrow, or range longer than allowed
            NotFound: Resource or requester absent
            Conflict: Resource not lendable, or the range overlaps a held range
        """
        today = today or timezone.localdate()
        start_date = coerce_date(start_date, 'start_date')
        end_date = coerce_date(end_date, 'end_date')

        if start_date < today:
            raise ValidationFailed('Start date cannot be in the past')
        if end_date <= start_date:
            raise ValidationFailed('End date must be after start date')

        if not self.objects(User).filter(pk=requester_id, is_active=True).exists():
            raise NotFound('User')

        with self.atomic():
            try:
                resource = self.objects(Resource).select_for_update().select_related('owner').get(pk=resource_id)
            except Resource.DoesNotExist:
                raise NotFound('Resource')
            if resource.status == 'inactive':
                raise NotFound('Resource')

            if resource.owner_id == requester_id:
                raise ValidationFailed('You cannot borrow your own resource')

            if resource.status == 'maintenance' or not resource.is_available:
                raise Conflict('Resource is not available for borrowing')

            if (end_date - start_date).days > resource.max_borrow_days:
                raise ValidationFailed(f'This resource can be borrowed for at most {resource.max_borrow_days} days')

            overlapping = self.find_overlapping(resource.id, start_date, end_date).select_for_update()
            conflict = overlapping.first()
            if conflict is not None:
                logger.warning(
                    f"Borrow request conflict on resource {resource.id}: "
                    f"{start_date}..{end_date} overlaps request {conflict.id} "
                    f"({conflict.start_date}..{conflict.end_date}, {conflict.status})"
                )
                raise Conflict('Resource is already requested or booked for the selected dates')

            borrow_request = BorrowRequest(
                resource=resource,
                requester_id=requester_id,
                start_date=start_date,
                end_date=end_date,
                due_date=end_date,
                message=(message or '').strip(),
                deposit_amount=resource.deposit_required,
                pickup_location=pickup_location or '',
                emergency_contact=emergency_contact or '',
            )
            borrow_request.save(using=self.using)

        logger.info(
            f"Borrow request {borrow_request.id} created for resource {resource.id} "
            f"by user {requester_id} ({start_date}..{end_date})"
        )
        self._notify(borrow_request, 'created', resource.owner_id)
        return borrow_request

    # Owner decisions

    def approve(self, request_id, owner_id, response_message=''):
        with self.atomic():
            borrow_request, resource = self._lock(request_id)
            self._require_owner(borrow_request, owner_id, 'approve')
            self._require_transition(borrow_request, 'approved')

            borrow_request.status = 'approved'
            borrow_request.responded_at = timezone.now()
            borrow_request.response_message = (response_message or '').strip()
            borrow_request.save(using=self.using, update_fields=['status', 'responded_at', 'response_message', 'updated_at'])

            resource.is_available = False
            resource.save(using=self.using, update_fields=['is_available', 'updated_at'])

        logger.info(f"Borrow request {request_id} approved by owner {owner_id}")
        self._notify(borrow_request, 'approved', borrow_request.requester_id)
        return borrow_request

    def reject(self, request_id, owner_id, response_message=''):
        with self.atomic():
            borrow_request, _ = self._lock(request_id)
            self._require_owner(borrow_request, owner_id, 'reject')
            self._require_transition(borrow_request, 'rejected')

            borrow_request.status = 'rejected'
            borrow_request.responded_at = timezone.now()
            borrow_request.response_message = (response_message or '').strip()
            borrow_request.save(using=self.using, update_fields=['status', 'responded_at', 'response_message', 'updated_at'])

        logger.info(f"Borrow request {request_id} rejected by owner {owner_id}")
        self._notify(borrow_request, 'rejected', borrow_request.requester_id)
        return borrow_request

    def update_status(self, request_id, owner_id, status, response_message=''):
        """Owner response to a pending request: 'approved' or 'rejected'."""
        if status == 'approved':
            return self.approve(request_id, owner_id, response_message)
        if status == 'rejected':
            return self.reject(request_id, owner_id, response_message)
        raise ValidationFailed("Status must be either 'approved' or 'rejected'")

    # Requester actions

    def cancel(self, request_id, requester_id, reason=''):
        with self.atomic():
            borrow_request, resource = self._lock(request_id)
            self._require_requester(borrow_request, requester_id, 'cancel')
            self._require_transition(borrow_request, 'cancelled')

            was_approved = borrow_request.status == 'approved'
            borrow_request.status = 'cancelled'
            if reason:
                borrow_request.response_message = reason.strip()
            borrow_request.save(using=self.using, update_fields=['status', 'response_message', 'updated_at'])

            if was_approved:
                self._refresh_availability(resource, exclude_request_id=borrow_request.id)

        logger.info(f"Borrow request {request_id} cancelled by requester {requester_id}")
        self._notify(borrow_request, 'cancelled', resource.owner_id)
        return borrow_request

    # Hand-over

    def pickup(self, request_id, owner_id, pickup_notes='', pickup_location=''):
        with self.atomic():
            borrow_request, resource = self._lock(request_id)
            self._require_owner(borrow_request, owner_id, 'mark pickup for')
            self._require_transition(borrow_request, 'active')

            borrow_request.status = 'active'
            borrow_request.picked_up_at = timezone.now()
            update_fields = ['status', 'picked_up_at', 'updated_at']
            if pickup_notes:
                borrow_request.pickup_notes = pickup_notes.strip()
                update_fields.append('pickup_notes')
            if pickup_location:
                borrow_request.pickup_location = pickup_location.strip()
                update_fields.append('pickup_location')
            borrow_request.save(using=self.using, update_fields=update_fields)

            resource.status = 'borrowed'
            resource.is_available = False
            resource.save(using=self.using, update_fields=['status', 'is_available', 'updated_at'])

        logger.info(f"Borrow request {request_id} picked up")
        self._notify(borrow_request, 'pickup_ready', borrow_request.requester_id)
        return borrow_request

    def return_item(self, request_id, owner_id, return_notes='', has_issues=False,
                    issue_description='', return_location=''):
        """
        Record the item's return (from active or overdue).

        The resource becomes available again unless another request holds it,
        and the lending counts toward the requester's successful borrows and
        the resource's borrow count.
        """
        if has_issues and not (issue_description or '').strip():
            raise ValidationFailed('Describe the issue when reporting one')

        with self.atomic():
            borrow_request, resource = self._lock(request_id)
            self._require_owner(borrow_request, owner_id, 'mark return for')
            self._require_transition(borrow_request, 'returned')

            now = timezone.now()
            borrow_request.status = 'returned'
            borrow_request.returned_at = now
            borrow_request.return_notes = (return_notes or '').strip()
            update_fields = ['status', 'returned_at', 'return_notes', 'updated_at']
            if return_location:
                borrow_request.return_location = return_location.strip()
                update_fields.append('return_location')
            if has_issues:
                borrow_request.has_issues = True
                borrow_request.issue_description = issue_description.strip()
                borrow_request.issue_reported_at = now
                update_fields += ['has_issues', 'issue_description', 'issue_reported_at']
            borrow_request.save(using=self.using, update_fields=update_fields)

            self._refresh_availability(resource, exclude_request_id=borrow_request.id)
            self.objects(Resource).filter(pk=resource.id).update(
                borrow_count=F('borrow_count') + 1,
                last_borrowed=now,
            )
            self.objects(User).filter(pk=borrow_request.requester_id).update(
                successful_borrows=F('successful_borrows') + 1
            )

        logger.info(f"Borrow request {request_id} returned (issues: {has_issues})")
        self._notify(borrow_request, 'returned', borrow_request.requester_id)
        return borrow_request

    def complete(self, request_id, owner_id):
        """
        Close a returned request once the deposit is settled.

        Raises:
            Conflict: Not returned yet, or a paid deposit is still outstanding
        """
        with self.atomic():
            borrow_request, _ = self._lock(request_id)
            self._require_owner(borrow_request, owner_id, 'complete')
            self._require_transition(borrow_request, 'completed')
            if borrow_request.deposit_paid and not borrow_request.deposit_returned:
                raise Conflict('Return the deposit before completing the request')

            borrow_request.status = 'completed'
            borrow_request.completed_at = timezone.now()
            borrow_request.save(using=self.using, update_fields=['status', 'completed_at', 'updated_at'])

        logger.info(f"Borrow request {request_id} completed")
        return borrow_request

    # Overdue sweep

    def mark_overdue(self, today=None):
        """
        Move active requests past their due date to overdue and notify the
        borrowers.

        Returns:
            list: Requests that became overdue in this sweep
        """
        today = today or timezone.localdate()
        overdue = []
        with self.atomic():
            candidates = (
                self.objects(BorrowRequest)
                .select_for_update()
                .filter(status='active', due_date__lt=today)
                .order_by('due_date', 'id')
            )
            for borrow_request in candidates:
                borrow_request.status = 'overdue'
                borrow_request.save(using=self.using, update_fields=['status', 'updated_at'])
                overdue.append(borrow_request)

        for borrow_request in overdue:
            days_overdue = (today - borrow_request.due_date).days
            self._notify(borrow_request, 'overdue', borrow_request.requester_id, days_overdue=days_overdue)

        if overdue:
            logger.info(f"Marked {len(overdue)} borrow requests overdue")
        return overdue

    def overdue_for_user(self, user_id, today=None):
        self.mark_overdue(today=today)
        return (
            self.objects(BorrowRequest)
            .filter(status='overdue')
            .filter(Q(requester_id=user_id) | Q(resource__owner_id=user_id))
            .select_related('resource', 'resource__owner', 'requester')
            .order_by('due_date')
        )

    # Details

    def update_details(self, request_id, user_id, data):
        """
        Role-limited edits outside the status machine.

        Owner: pickup_notes, return_notes, issue_resolved, deposit_returned.
        Requester: deposit_paid.
        Either party: issue_description (reports an issue).

        Raises:
            ValidationFailed: Nothing in data applies to the caller's role
        """
        with self.atomic():
            borrow_request, _ = self._lock(request_id)
            is_owner = borrow_request.resource.owner_id == user_id
            is_requester = borrow_request.requester_id == user_id
            if not is_owner and not is_requester:
                raise Unauthorized('Not authorized to update this request')

            update_fields = []
            if is_owner:
                for field in ('pickup_notes', 'return_notes'):
                    if data.get(field) is not None:
                        setattr(borrow_request, field, str(data[field]).strip())
                        update_fields.append(field)
                if data.get('issue_resolved') is True and borrow_request.has_issues:
                    borrow_request.issue_resolved = True
                    update_fields.append('issue_resolved')
                if data.get('deposit_returned') is True:
                    borrow_request.deposit_returned = True
                    update_fields.append('deposit_returned')
            if is_requester and data.get('deposit_paid') is True:
                borrow_request.deposit_paid = True
                update_fields.append('deposit_paid')
            if data.get('issue_description'):
                borrow_request.has_issues = True
                borrow_request.issue_resolved = False
                borrow_request.issue_description = str(data['issue_description']).strip()
                borrow_request.issue_reported_at = timezone.now()
                update_fields += ['has_issues', 'issue_resolved', 'issue_description', 'issue_reported_at']

            if not update_fields:
                raise ValidationFailed('No valid updates provided')

            borrow_request.save(using=self.using, update_fields=list(dict.fromkeys(update_fields + ['updated_at'])))
        return borrow_request

    # Reads

    def get_request(self, request_id, user_id):
        """
        Raises:
            NotFound: Request absent
            Unauthorized: Caller is neither requester nor owner
        """
        try:
            borrow_request = (
                self.objects(BorrowRequest)
                .select_related('resource', 'resource__owner', 'requester')
                .get(pk=request_id)
            )
        except BorrowRequest.DoesNotExist:
            raise NotFound('Borrow request')
        if not borrow_request.is_participant(user_id):
            raise Unauthorized('Not authorized to view this request')
        return borrow_request

    def _listing(self):
        return self.objects(BorrowRequest).select_related('resource', 'resource__owner', 'requester')

    def my_requests(self, user_id, status=None):
        queryset = self._listing().filter(requester_id=user_id)
        return queryset.filter(status=status) if status else queryset

    def incoming_requests(self, owner_id, status=None):
        queryset = self._listing().filter(resource__owner_id=owner_id)
        return queryset.filter(status=status) if status else queryset

    def resource_requests(self, resource_id, owner_id, status=None):
        resource = self.get_or_not_found(Resource, 'Resource', pk=resource_id)
        if resource.owner_id != owner_id:
            raise Unauthorized('Only the resource owner can view its requests')
        queryset = self._listing().filter(resource_id=resource_id)
        return queryset.filter(status=status) if status else queryset

    def stats(self, user_id):
        counts = {
            row['status']: row['count']
            for row in self.objects(BorrowRequest)
            .filter(requester_id=user_id)
            .order_by()
            .values('status')
            .annotate(count=Count('id'))
        }
        finished = counts.get('returned', 0) + counts.get('completed', 0)
        return {
            'totalRequests': sum(counts.values()),
            'pendingRequests': counts.get('pending', 0),
            'approvedRequests': counts.get('approved', 0),
            'activeRequests': counts.get('active', 0),
            'overdueRequests': counts.get('overdue', 0),
            'completedRequests': finished,
            'resourcesBorrowed': finished,
            'resourcesLent': self.objects(BorrowRequest)
            .filter(resource__owner_id=user_id, status__in=BorrowRequest.REVIEWABLE_STATUSES)
            .count(),
        }
