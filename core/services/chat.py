"""
Two-party chats and their message logs.

A participant check guards every operation; a user outside the pair gets
ChatNotFound so the chat's existence is not disclosed. Unread counters and
the last-message preview are recomputed from the message table after every
change rather than adjusted incrementally.
"""

import logging

from django.db import IntegrityError
from django.db.models import Q, Sum
from django.utils import timezone

from core.exceptions import ChatNotFound, NotFound, ValidationFailed
from core.models import Chat, Message, Resource, User
from core.realtime import MESSAGE_READ_RECEIPT, NEW_MESSAGE, USER_TYPING

from .base import BaseService, setting
from .notifications import NotificationService, truncate

logger = logging.getLogger(__name__)

LAST_MESSAGE_LENGTH = 500
REPLY_PREVIEW_LENGTH = 100
MESSAGE_TYPES = [choice for choice, _ in Message.MESSAGE_TYPE_CHOICES]


def message_payload(message):
    from core.serializers import MessageSerializer
    return MessageSerializer(message).data


class ChatService(BaseService):
    def __init__(self, using='default', hub=None, notifications=None):
        super().__init__(using=using, hub=hub)
        self.notifications = notifications or NotificationService(using=using, hub=self.hub)

    def _participant_chat(self, chat_id, user_id, lock=False):
        """
        Raises:
            ChatNotFound: Chat absent or user_id not one of its participants
        """
        queryset = self.objects(Chat)
        if lock:
            queryset = queryset.select_for_update()
        try:
            chat = queryset.get(pk=chat_id)
        except Chat.DoesNotExist:
            raise ChatNotFound()
        if not chat.is_participant(user_id):
            logger.warning(f"User {user_id} attempted to access chat {chat_id}")
            raise ChatNotFound()
        return chat

    def _visible_messages(self, chat_id):
        return self.objects(Message).filter(chat_id=chat_id).exclude(status='deleted')

    def refresh_counters(self, chat):
        """Recompute both unread counters and the last-message preview."""
        unread = self._visible_messages(chat.id).filter(is_read=False)
        chat.user1_unread_count = unread.exclude(sender_id=chat.user1_id).count()
        chat.user2_unread_count = unread.exclude(sender_id=chat.user2_id).count()

        last = self._visible_messages(chat.id).order_by('-created_at', '-id').first()
        if last is None:
            chat.last_message = ''
            chat.last_message_at = None
            chat.last_message_sender_id = None
        else:
            chat.last_message = last.content[:LAST_MESSAGE_LENGTH]
            chat.last_message_at = last.created_at
            chat.last_message_sender_id = last.sender_id

        chat.save(using=self.using, update_fields=[
            'user1_unread_count', 'user2_unread_count',
            'last_message', 'last_message_at', 'last_message_sender', 'updated_at',
        ])
        return chat

    # Chats

    def create_or_get_chat(self, user_id, other_user_id, resource_id=None, subject=''):
        """
        Return the single chat between two users, creating it if needed.

        Returns:
            tuple: (chat, created)

        Raises:
            ValidationFailed: Both ids are the same user
            NotFound: Either user, or the referenced resource, does not exist
        """
        if user_id == other_user_id:
            raise ValidationFailed('You cannot start a chat with yourself')

        found = self.objects(User).filter(pk__in=[user_id, other_user_id], is_active=True).count()
        if found != 2:
            raise NotFound('User')
        if resource_id is not None and not self.objects(Resource).filter(pk=resource_id).exists():
            raise NotFound('Resource')

        user1_id, user2_id = sorted([user_id, other_user_id])
        try:
            with self.atomic():
                chat, created = self.objects(Chat).get_or_create(
                    user1_id=user1_id,
                    user2_id=user2_id,
                    defaults={'resource_id': resource_id, 'subject': (subject or '').strip()},
                )
        except IntegrityError:
            # Lost a race with the other participant opening the same chat
            chat, created = self.objects(Chat).get(user1_id=user1_id, user2_id=user2_id), False

        if not created and chat.is_archived_for(user_id):
            setattr(chat, f'{chat.side(user_id)}_archived', False)
            chat.save(using=self.using, update_fields=[f'{chat.side(user_id)}_archived', 'updated_at'])

        if created:
            logger.info(f"Chat {chat.id} created between users {user1_id} and {user2_id}")
        return chat, created

    def list_chats(self, user_id, include_archived=False):
        if include_archived:
            condition = Q(user1_id=user_id) | Q(user2_id=user_id)
        else:
            condition = Q(user1_id=user_id, user1_archived=False) | Q(user2_id=user_id, user2_archived=False)
        return (
            self.objects(Chat)
            .filter(condition)
            .select_related('user1', 'user2', 'resource', 'last_message_sender')
            .order_by('-last_message_at', '-created_at')
        )

    def get_chat(self, chat_id, user_id):
        return self._participant_chat(chat_id, user_id)

    def unread_total(self, user_id):
        first = self.objects(Chat).filter(user1_id=user_id).aggregate(total=Sum('user1_unread_count'))['total']
        second = self.objects(Chat).filter(user2_id=user_id).aggregate(total=Sum('user2_unread_count'))['total']
        return (first or 0) + (second or 0)

    def toggle_archive(self, chat_id, user_id):
        """Flip the archived flag on the caller's side only."""
        with self.atomic():
            chat = self._participant_chat(chat_id, user_id, lock=True)
            field = f'{chat.side(user_id)}_archived'
            setattr(chat, field, not getattr(chat, field))
            chat.save(using=self.using, update_fields=[field, 'updated_at'])
        return chat

    def toggle_mute(self, chat_id, user_id):
        with self.atomic():
            chat = self._participant_chat(chat_id, user_id, lock=True)
            field = f'{chat.side(user_id)}_muted'
            setattr(chat, field, not getattr(chat, field))
            chat.save(using=self.using, update_fields=[field, 'updated_at'])
        return chat

    # Messages

    def get_messages(self, chat_id, user_id, page=1, limit=50):
        """
        One page of a chat's messages in chronological order.

        Pages are counted from the newest message backwards. Reading marks
        every unread message from the other participant as read.

        Returns:
            tuple: (messages, total)
        """
        if page < 1 or limit < 1:
            raise ValidationFailed('page and limit must be positive integers')
        limit = min(limit, 100)

        with self.atomic():
            chat = self._participant_chat(chat_id, user_id, lock=True)
            queryset = self._visible_messages(chat.id).select_related('sender', 'reply_to')
            total = queryset.count()
            offset = (page - 1) * limit
            messages = list(queryset.order_by('-created_at', '-id')[offset:offset + limit])
            messages.reverse()

            now = timezone.now()
            read_ids = list(
                self.objects(Message)
                .filter(chat_id=chat.id, is_read=False)
                .exclude(sender_id=user_id)
                .values_list('pk', flat=True)
            )
            if read_ids:
                self.objects(Message).filter(pk__in=read_ids).update(is_read=True, read_at=now)
                for message in messages:
                    if message.pk in read_ids:
                        message.is_read = True
                        message.read_at = now
            self.refresh_counters(chat)

        if read_ids:
            self.after_commit(lambda: self.hub.emit_to_chat(chat.id, MESSAGE_READ_RECEIPT, {
                'chatId': chat.id,
                'messageIds': read_ids,
                'readBy': user_id,
                'readAt': now.isoformat(),
            }))
        return messages, total

    def mark_chat_read(self, chat_id, user_id):
        """
        Mark the other participant's messages read.

        Returns:
            int: Number of messages marked
        """
        with self.atomic():
            chat = self._participant_chat(chat_id, user_id, lock=True)
            now = timezone.now()
            read_ids = list(
                self.objects(Message)
                .filter(chat_id=chat.id, is_read=False)
                .exclude(sender_id=user_id)
                .values_list('pk', flat=True)
            )
            if read_ids:
                self.objects(Message).filter(pk__in=read_ids).update(is_read=True, read_at=now)
            self.refresh_counters(chat)

        if read_ids:
            self.after_commit(lambda: self.hub.emit_to_chat(chat.id, MESSAGE_READ_RECEIPT, {
                'chatId': chat.id,
                'messageIds': read_ids,
                'readBy': user_id,
                'readAt': now.isoformat(),
            }))
        return len(read_ids)

    def send_message(self, chat_id, sender_id, content, message_type='text', reply_to_id=None,
                     file_url='', file_name='', file_size=None):
        """
        Append a message to a chat and fan it out.

        The recipient's chat notification is created after the message has
        been stored; a failure there is logged and does not affect the send.

        Raises:
            ValidationFailed: Empty or oversized content, unknown type, bad reply target
            ChatNotFound: Sender is not a participant
        """
        content = (content or '').strip()
        max_length = setting('MESSAGE_MAX_LENGTH')
        if not content:
            raise ValidationFailed('Message content is required')
        if len(content) > max_length:
            raise ValidationFailed(f'Message content cannot exceed {max_length} characters')
        if message_type not in MESSAGE_TYPES:
            raise ValidationFailed(f'Message type must be one of: {", ".join(MESSAGE_TYPES)}')

        with self.atomic():
            chat = self._participant_chat(chat_id, sender_id, lock=True)

            reply_to = None
            if reply_to_id is not None:
                reply_to = self._visible_messages(chat.id).filter(pk=reply_to_id).first()
                if reply_to is None:
                    raise ValidationFailed('Reply target must be a message in this chat')

            message = Message(
                chat=chat,
                sender_id=sender_id,
                content=content,
                message_type=message_type,
                reply_to=reply_to,
                reply_preview=truncate(reply_to.content, REPLY_PREVIEW_LENGTH - 3) if reply_to else '',
                file_url=file_url or '',
                file_name=file_name or '',
                file_size=file_size,
            )
            message.save(using=self.using)

            recipient_id = chat.other_user_id(sender_id)
            recipient_side = chat.side(recipient_id)
            if chat.is_archived_for(recipient_id):
                setattr(chat, f'{recipient_side}_archived', False)
                chat.save(using=self.using, update_fields=[f'{recipient_side}_archived'])
            self.refresh_counters(chat)

            self.after_commit(lambda: self.hub.emit_to_chat(chat.id, NEW_MESSAGE, message_payload(message)))

        logger.info(f"Message {message.id} sent in chat {chat.id} by user {sender_id}")

        if not chat.is_muted_for(recipient_id):
            try:
                with self.atomic():
                    self.notifications.notify_chat_message(chat, message, recipient_id)
            except Exception as e:
                logger.warning(f"Failed to create chat notification for message {message.id}: {e}")

        return message

    def delete_message(self, message_id, user_id):
        """
        Soft-delete a message. Only its sender may delete it.

        Raises:
            NotFound: Message absent, already deleted, or not sent by user_id
        """
        with self.atomic():
            message = (
                self.objects(Message)
                .select_for_update()
                .filter(pk=message_id)
                .exclude(status='deleted')
                .first()
            )
            if message is None or message.sender_id != user_id:
                if message is not None:
                    logger.warning(f"User {user_id} attempted to delete message {message_id}")
                raise NotFound('Message')

            chat = self.objects(Chat).select_for_update().get(pk=message.chat_id)
            message.status = 'deleted'
            message.deleted_at = timezone.now()
            message.save(using=self.using, update_fields=['status', 'deleted_at'])
            self.refresh_counters(chat)

        logger.info(f"Message {message_id} deleted by user {user_id}")
        return message

    def typing(self, chat_id, user_id, is_typing=True):
        chat = self._participant_chat(chat_id, user_id)
        return self.hub.emit_to_chat(chat.id, USER_TYPING, {
            'chatId': chat.id,
            'userId': user_id,
            'isTyping': bool(is_typing),
        })
