"""
Notification store: per-user inbox entries with read state, scheduling,
expiry and delivery tracking, plus the realtime events that accompany them.
"""

import logging
from datetime import timedelta

from django.db.models import Count, Q
from django.utils import timezone

from core.exceptions import NotFound, Unauthorized, ValidationFailed
from core.metadata import build_metadata, bump_message_count, parse_metadata
from core.models import Notification, User
from core.realtime import (
    NEW_NOTIFICATION,
    NOTIFICATION_READ,
    SYSTEM_ANNOUNCEMENT,
    UNREAD_COUNT_UPDATED,
)

from .base import BaseService, setting

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = [choice for choice, _ in Notification.TYPE_CHOICES]
PRIORITIES = [choice for choice, _ in Notification.PRIORITY_CHOICES]

TITLE_MAX_LENGTH = 255
MESSAGE_MAX_LENGTH = 1000
CHAT_PREVIEW_LENGTH = 100

RELATED_FIELDS = [
    'related_user',
    'related_resource',
    'related_borrow_request',
    'related_chat',
    'related_review',
]

# event -> (type, priority, title)
BORROW_REQUEST_TEMPLATES = {
    'created': ('borrow_request_created', 'normal', 'New Borrow Request'),
    'approved': ('borrow_request_approved', 'high', 'Request Approved'),
    'rejected': ('borrow_request_rejected', 'normal', 'Request Rejected'),
    'cancelled': ('borrow_request_cancelled', 'normal', 'Request Cancelled'),
    'pickup_ready': ('borrow_request_pickup_ready', 'normal', 'Item Picked Up'),
    'overdue': ('borrow_request_overdue', 'urgent', 'Item Overdue'),
    'returned': ('borrow_request_returned', 'normal', 'Item Returned'),
}


def truncate(text, length):
    text = text or ''
    return f'{text[:length]}...' if len(text) > length else text


def notification_payload(notification):
    from core.serializers import NotificationSerializer
    return NotificationSerializer(notification).data


class NotificationService(BaseService):
    """
    CRUD over notifications scoped to their owner.

    Every single-item mutation checks ownership first; bulk mutations over an
    explicit id list check every id before touching any row.
    """

    # Validation

    def _validate_content(self, type, title, message, priority):
        errors = {}
        if type not in NOTIFICATION_TYPES:
            errors['type'] = [f'Type must be one of: {", ".join(NOTIFICATION_TYPES)}.']
        if priority not in PRIORITIES:
            errors['priority'] = [f'Priority must be one of: {", ".join(PRIORITIES)}.']
        if not title or not title.strip():
            errors['title'] = ['Title is required.']
        elif len(title) > TITLE_MAX_LENGTH:
            errors['title'] = [f'Title cannot exceed {TITLE_MAX_LENGTH} characters.']
        if not message or not message.strip():
            errors['message'] = ['Message is required.']
        elif len(message) > MESSAGE_MAX_LENGTH:
            errors['message'] = [f'Message cannot exceed {MESSAGE_MAX_LENGTH} characters.']
        if errors:
            raise ValidationFailed('Invalid notification data', errors=errors)

    def _build(self, user_id, type, title, message, priority='normal', metadata=None,
               action_url='', action_text='', scheduled_for=None, expires_at=None, **related):
        unknown = set(related) - {f'{field}_id' for field in RELATED_FIELDS} - set(RELATED_FIELDS)
        if unknown:
            raise ValidationFailed(f'Unknown notification fields: {", ".join(sorted(unknown))}')

        return Notification(
            user_id=user_id,
            type=type,
            title=title.strip(),
            message=message.strip(),
            priority=priority,
            metadata=parse_metadata(metadata),
            action_url=action_url or '',
            action_text=action_text or '',
            scheduled_for=scheduled_for,
            expires_at=expires_at,
            **related
        )

    def _is_deliverable(self, notification, now=None):
        now = now or timezone.now()
        return notification.scheduled_for is None or notification.scheduled_for <= now

    # Realtime

    def publish_unread_count(self, user_id):
        count = self.unread_count(user_id)
        self.hub.emit_to_user(user_id, UNREAD_COUNT_UPDATED, {'unreadCount': count})
        return count

    def publish_new(self, notification):
        def publish():
            self.hub.emit_to_user(notification.user_id, NEW_NOTIFICATION, notification_payload(notification))
            self.publish_unread_count(notification.user_id)
        self.after_commit(publish)

    # Create

    def create_notification(self, user_id, type, title, message, priority='normal', **fields):
        """
        Create one notification and publish it to the user's room.

        Notifications scheduled for the future are stored but not published
        until the scheduled dispatch sends them.

        Raises:
            ValidationFailed: Invalid type, priority, title or message
            NotFound: Target user does not exist
        """
        self._validate_content(type, title, message, priority)
        if not self.objects(User).filter(pk=user_id).exists():
            raise NotFound('User')

        notification = self._build(user_id, type, title, message, priority, **fields)
        notification.save(using=self.using)

        if self._is_deliverable(notification):
            self.publish_new(notification)

        logger.info(f"Notification {notification.id} ({type}) created for user {user_id}")
        return notification

    def create_bulk(self, user_ids, type, title, message, priority='normal', **fields):
        """
        Fan one notification template out to many users.

        Raises:
            ValidationFailed: Empty target list, unknown users, or invalid content
        """
        self._validate_content(type, title, message, priority)

        user_ids = list(dict.fromkeys(int(user_id) for user_id in user_ids or []))
        if not user_ids:
            raise ValidationFailed('At least one user id is required')

        existing = set(self.objects(User).filter(pk__in=user_ids).values_list('pk', flat=True))
        missing = [user_id for user_id in user_ids if user_id not in existing]
        if missing:
            raise ValidationFailed(f'Users not found: {", ".join(str(user_id) for user_id in missing)}')

        with self.atomic():
            notifications = [
                self._build(user_id, type, title, message, priority, **fields)
                for user_id in user_ids
            ]
            created = self.objects(Notification).bulk_create(notifications)
            # bulk_create does not return primary keys on every backend
            if any(notification.pk is None for notification in created):
                created = list(
                    self.objects(Notification)
                    .filter(user_id__in=user_ids, type=type, title=title.strip())
                    .order_by('-id')[:len(user_ids)]
                )

        now = timezone.now()
        for notification in created:
            if self._is_deliverable(notification, now):
                self.publish_new(notification)

        logger.info(f"Bulk notification ({type}) created for {len(created)} users")
        return created

    def announce(self, title, message, priority='normal', expires_in_days=None):
        """
        Send a system announcement to every active user.

        Announcements expire after ANNOUNCEMENT_EXPIRY_DAYS by default.
        """
        if expires_in_days is None:
            expires_in_days = setting('ANNOUNCEMENT_EXPIRY_DAYS')
        user_ids = list(
            self.objects(User).filter(is_active=True, closed_at__isnull=True).values_list('pk', flat=True)
        )
        if not user_ids:
            return []

        created = self.create_bulk(
            user_ids,
            'system_announcement',
            title,
            message,
            priority,
            metadata=build_metadata('announcement', audience='all'),
            expires_at=timezone.now() + timedelta(days=expires_in_days),
        )
        self.after_commit(
            lambda: self.hub.broadcast(SYSTEM_ANNOUNCEMENT, {'title': title, 'message': message, 'priority': priority})
        )
        return created

    # Read

    def list_for_user(self, user_id, is_read=None, type=None, priority=None, include_expired=False):
        """
        Notifications delivered to a user, newest first.

        Expired notifications are excluded unless include_expired is set;
        notifications scheduled for the future are never listed.
        """
        now = timezone.now()
        queryset = self.objects(Notification).filter(user_id=user_id).filter(
            Q(scheduled_for__isnull=True) | Q(scheduled_for__lte=now)
        )
        if not include_expired:
            queryset = queryset.filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))
        if is_read is not None:
            queryset = queryset.filter(is_read=is_read)
        if type:
            queryset = queryset.filter(type=type)
        if priority:
            queryset = queryset.filter(priority=priority)
        return queryset.order_by('-created_at', '-id')

    def get_for_user(self, notification_id, user_id):
        """
        Raises:
            NotFound: Notification does not exist
            Unauthorized: Notification belongs to another user
        """
        notification = self.get_or_not_found(Notification, 'Notification', pk=notification_id)
        if notification.user_id != user_id:
            logger.warning(f"User {user_id} attempted to access notification {notification_id}")
            raise Unauthorized('You can only access your own notifications')
        return notification

    def unread_count(self, user_id):
        return self.list_for_user(user_id, is_read=False).count()

    def stats(self, user_id):
        queryset = self.list_for_user(user_id, include_expired=True)
        by_type = {
            row['type']: row['count']
            for row in queryset.order_by().values('type').annotate(count=Count('id'))
        }
        by_priority = {
            row['priority']: row['count']
            for row in queryset.order_by().values('priority').annotate(count=Count('id'))
        }
        return {
            'total': queryset.count(),
            'unread': self.unread_count(user_id),
            'byType': by_type,
            'byPriority': by_priority,
        }

    # Read state

    def mark_as_read(self, notification_id, user_id):
        """
        Mark a notification read. Marking an already-read notification
        returns it unchanged.
        """
        notification = self.get_for_user(notification_id, user_id)
        if notification.is_read:
            return notification

        notification.is_read = True
        notification.read_at = timezone.now()
        notification.save(using=self.using, update_fields=['is_read', 'read_at', 'updated_at'])

        def publish():
            self.hub.emit_to_user(user_id, NOTIFICATION_READ, {'notificationId': notification.id})
            self.publish_unread_count(user_id)
        self.after_commit(publish)
        return notification

    def _owned_ids(self, notification_ids, user_id):
        """
        Verify every id belongs to user_id before any mutation.

        Raises:
            ValidationFailed: Empty or malformed id list
            Unauthorized: Any id is missing or owned by someone else
        """
        try:
            ids = list(dict.fromkeys(int(notification_id) for notification_id in notification_ids or []))
        except (TypeError, ValueError):
            raise ValidationFailed('Notification ids must be integers')
        if not ids:
            raise ValidationFailed('At least one notification id is required')

        owned = self.objects(Notification).filter(pk__in=ids, user_id=user_id).count()
        if owned != len(ids):
            logger.warning(f"User {user_id} attempted a bulk operation on notifications they do not own")
            raise Unauthorized('One or more notifications do not belong to you')
        return ids

    def mark_many_as_read(self, notification_ids, user_id):
        with self.atomic():
            ids = self._owned_ids(notification_ids, user_id)
            updated = self.objects(Notification).filter(pk__in=ids, is_read=False).update(
                is_read=True, read_at=timezone.now(), updated_at=timezone.now()
            )
        self.after_commit(lambda: self.publish_unread_count(user_id))
        return updated

    def mark_all_as_read(self, user_id, type=None):
        queryset = self.objects(Notification).filter(user_id=user_id, is_read=False)
        if type:
            if type not in NOTIFICATION_TYPES:
                raise ValidationFailed(f'Unknown notification type: {type}')
            queryset = queryset.filter(type=type)
        updated = queryset.update(is_read=True, read_at=timezone.now(), updated_at=timezone.now())
        self.after_commit(lambda: self.publish_unread_count(user_id))
        return updated

    # Delete

    def delete(self, notification_id, user_id):
        notification = self.get_for_user(notification_id, user_id)
        notification.delete(using=self.using)
        self.after_commit(lambda: self.publish_unread_count(user_id))

    def delete_many(self, notification_ids, user_id):
        with self.atomic():
            ids = self._owned_ids(notification_ids, user_id)
            deleted, _ = self.objects(Notification).filter(pk__in=ids).delete()
        self.after_commit(lambda: self.publish_unread_count(user_id))
        return deleted

    def cleanup_expired(self, now=None):
        """
        Delete notifications whose expiry has passed.

        Returns:
            list: Ids of the deleted notifications
        """
        now = now or timezone.now()
        queryset = self.objects(Notification).filter(expires_at__isnull=False, expires_at__lt=now)
        ids = list(queryset.values_list('pk', flat=True))
        if ids:
            self.objects(Notification).filter(pk__in=ids).delete()
        logger.info(f"Cleaned up {len(ids)} expired notifications")
        return ids

    # Scheduling and delivery

    def scheduled_ready(self, now=None, limit=None):
        now = now or timezone.now()
        queryset = self.objects(Notification).filter(
            scheduled_for__isnull=False,
            scheduled_for__lte=now,
            is_sent=False,
        ).order_by('scheduled_for', 'id')
        return queryset[:limit] if limit else queryset

    def mark_as_sent(self, notification_id, push=False, email=False, sms=False):
        """Record delivery on the given channels."""
        notification = self.get_or_not_found(Notification, 'Notification', pk=notification_id)
        now = timezone.now()
        update_fields = ['is_sent', 'sent_at', 'updated_at']

        notification.is_sent = True
        notification.sent_at = now
        for channel, enabled in (('push', push), ('email', email), ('sms', sms)):
            if enabled:
                setattr(notification, f'{channel}_sent', True)
                setattr(notification, f'{channel}_sent_at', now)
                update_fields += [f'{channel}_sent', f'{channel}_sent_at']

        notification.save(using=self.using, update_fields=update_fields)
        return notification

    def process_scheduled(self, now=None, limit=None):
        """
        Dispatch scheduled notifications whose time has come.

        Returns:
            int: Number of notifications sent
        """
        sent = 0
        for notification in list(self.scheduled_ready(now=now, limit=limit)):
            with self.atomic():
                notification = self.mark_as_sent(notification.id, push=True)
                self.publish_new(notification)
            sent += 1
        if sent:
            logger.info(f"Dispatched {sent} scheduled notifications")
        return sent

    # Templates

    def notify_borrow_request(self, borrow_request, event, recipient_id, days_overdue=None):
        """Create the notification for a borrow-request lifecycle event."""
        type, priority, title = BORROW_REQUEST_TEMPLATES[event]
        resource = borrow_request.resource
        requester = borrow_request.requester
        owner = resource.owner

        if event == 'created':
            message = (
                f'{requester.full_name} requested to borrow {resource.title} '
                f'from {borrow_request.start_date.isoformat()} to {borrow_request.end_date.isoformat()}.'
            )
        elif event == 'approved':
            message = f'{owner.full_name} approved your request for {resource.title}.'
        elif event == 'rejected':
            suffix = f': "{borrow_request.response_message}"' if borrow_request.response_message else '.'
            message = f'{owner.full_name} rejected your request for {resource.title}{suffix}'
        elif event == 'cancelled':
            message = f'{requester.full_name} cancelled the request for {resource.title}.'
        elif event == 'pickup_ready':
            message = f'You picked up {resource.title}. Please return it by {borrow_request.due_date.isoformat()}.'
        elif event == 'overdue':
            message = (
                f'Your borrowed item {resource.title} is overdue by {days_overdue} day(s). '
                'Please return it as soon as possible.'
            )
        else:
            message = f'{owner.full_name} marked {resource.title} as returned.'

        if event == 'overdue':
            metadata = build_metadata(
                'overdue',
                borrowRequestId=borrow_request.id,
                resourceId=resource.id,
                daysOverdue=days_overdue or 0,
            )
        else:
            metadata = build_metadata(
                'borrow_request',
                borrowRequestId=borrow_request.id,
                resourceId=resource.id,
                status=borrow_request.status,
            )

        actor_id = owner.id if recipient_id == requester.id else requester.id
        return self.create_notification(
            recipient_id,
            type,
            title,
            message,
            priority,
            metadata=metadata,
            action_url=f'/borrow-requests/{borrow_request.id}',
            action_text='View Request',
            related_borrow_request_id=borrow_request.id,
            related_resource_id=resource.id,
            related_user_id=actor_id,
        )

    def notify_review_received(self, review):
        return self.create_notification(
            review.reviewee_id,
            'review_received',
            'New Review',
            f'You received a {review.rating}-star review.',
            'normal',
            metadata=build_metadata('review', reviewId=review.id, rating=review.rating),
            action_url=f'/reviews/{review.id}',
            action_text='View Review',
            related_review_id=review.id,
            related_user_id=None if review.is_anonymous else review.reviewer_id,
        )

    def notify_review_response(self, review):
        return self.create_notification(
            review.reviewer_id,
            'review_response',
            'Review Response',
            'Someone responded to your review.',
            'normal',
            metadata=build_metadata('review', reviewId=review.id, rating=review.rating),
            action_url=f'/reviews/{review.id}',
            action_text='View Review',
            related_review_id=review.id,
            related_user_id=review.reviewee_id,
        )

    def notify_chat_message(self, chat, message, recipient_id):
        """
        Create or refresh the chat notification for a recipient.

        An unread chat notification for the same chat created within the
        dedup window is updated in place: new preview, bumped timestamp and
        an incremented messageCount.
        """
        preview = truncate(message.content, CHAT_PREVIEW_LENGTH)
        now = timezone.now()
        window_start = now - timedelta(minutes=setting('CHAT_NOTIFICATION_DEDUP_MINUTES'))

        with self.atomic():
            existing = (
                self.objects(Notification)
                .select_for_update()
                .filter(
                    user_id=recipient_id,
                    type='chat_message',
                    related_chat_id=chat.id,
                    is_read=False,
                    created_at__gte=window_start,
                )
                .order_by('-created_at', '-id')
                .first()
            )

            if existing is None:
                return self.create_notification(
                    recipient_id,
                    'chat_message',
                    'New Message',
                    preview or 'You have a new message.',
                    'low',
                    metadata=build_metadata(
                        'chat_digest',
                        chatId=chat.id,
                        senderId=message.sender_id,
                        messageId=message.id,
                        messageCount=1,
                    ),
                    action_url=f'/chats/{chat.id}',
                    action_text='Reply',
                    related_chat_id=chat.id,
                    related_user_id=message.sender_id,
                )

            existing.message = preview or existing.message
            existing.metadata = bump_message_count(existing.metadata, message.id)
            existing.created_at = now
            existing.save(using=self.using, update_fields=['message', 'metadata', 'created_at', 'updated_at'])
            self.publish_new(existing)
            return existing
