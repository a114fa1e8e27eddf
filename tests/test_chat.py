"""
Chat and message tests.

Covers chat creation between two users, participant checks, message
ordering and pagination, unread counters, archive and mute flags, soft
deletion and the realtime events emitted along the way.
"""

import pytest
from django.urls import reverse
from rest_framework import status

from core.exceptions import ChatNotFound, NotFound, ValidationFailed
from core.models import Chat, Message, Notification
from core.realtime import MESSAGE_READ_RECEIPT, NEW_MESSAGE, USER_TYPING, chat_room


@pytest.fixture
def chat(services, owner, borrower):
    chat, _ = services.chat.create_or_get_chat(borrower.id, owner.id)
    return chat


# ============================================================================
# 1. CHATS
# ============================================================================

class TestChats:

    def test_one_chat_per_pair(self, services, owner, borrower, chat):
        again, created = services.chat.create_or_get_chat(owner.id, borrower.id)

        assert created is False
        assert again.id == chat.id
        assert Chat.objects.count() == 1

    def test_participants_are_stored_in_order(self, chat, owner, borrower):
        assert chat.user1_id == min(owner.id, borrower.id)
        assert chat.user2_id == max(owner.id, borrower.id)

    def test_cannot_chat_with_yourself(self, services, owner):
        with pytest.raises(ValidationFailed):
            services.chat.create_or_get_chat(owner.id, owner.id)

    def test_unknown_other_user(self, services, owner):
        with pytest.raises(NotFound):
            services.chat.create_or_get_chat(owner.id, 99999)

    def test_non_participant_gets_not_found(self, services, chat, stranger):
        with pytest.raises(ChatNotFound):
            services.chat.get_chat(chat.id, stranger.id)
        with pytest.raises(ChatNotFound):
            services.chat.send_message(chat.id, stranger.id, 'Hello?')

    def test_archive_is_per_side(self, services, chat, owner, borrower):
        services.chat.toggle_archive(chat.id, owner.id)

        assert list(services.chat.list_chats(owner.id)) == []
        assert [c.id for c in services.chat.list_chats(borrower.id)] == [chat.id]
        assert [c.id for c in services.chat.list_chats(owner.id, include_archived=True)] == [chat.id]

    def test_new_message_unarchives_for_recipient(self, services, chat, owner, borrower):
        services.chat.toggle_archive(chat.id, owner.id)

        services.chat.send_message(chat.id, borrower.id, 'Still there?')

        assert [c.id for c in services.chat.list_chats(owner.id)] == [chat.id]


# ============================================================================
# 2. MESSAGES
# ============================================================================

class TestMessages:

    def test_messages_are_chronological(self, services, chat, owner, borrower):
        for n, sender in enumerate([borrower, owner, borrower]):
            services.chat.send_message(chat.id, sender.id, f'message {n}')

        messages, total = services.chat.get_messages(chat.id, owner.id)

        assert total == 3
        assert [m.content for m in messages] == ['message 0', 'message 1', 'message 2']

    def test_pages_count_back_from_newest(self, services, chat, borrower, owner):
        for n in range(5):
            services.chat.send_message(chat.id, borrower.id, f'message {n}')

        newest, _ = services.chat.get_messages(chat.id, owner.id, page=1, limit=2)
        older, _ = services.chat.get_messages(chat.id, owner.id, page=2, limit=2)

        assert [m.content for m in newest] == ['message 3', 'message 4']
        assert [m.content for m in older] == ['message 1', 'message 2']

    def test_blank_and_oversized_content_rejected(self, services, chat, borrower):
        with pytest.raises(ValidationFailed):
            services.chat.send_message(chat.id, borrower.id, '   ')
        with pytest.raises(ValidationFailed):
            services.chat.send_message(chat.id, borrower.id, 'x' * 2001)

    def test_unknown_message_type_rejected(self, services, chat, borrower):
        with pytest.raises(ValidationFailed):
            services.chat.send_message(chat.id, borrower.id, 'Hi', message_type='video')

    def test_reply_keeps_preview(self, services, chat, owner, borrower):
        original = services.chat.send_message(chat.id, borrower.id, 'Can I pick it up at six?')

        reply = services.chat.send_message(chat.id, owner.id, 'Yes', reply_to_id=original.id)

        assert reply.reply_to_id == original.id
        assert reply.reply_preview == 'Can I pick it up at six?'

    def test_reply_to_message_from_other_chat_rejected(self, services, chat, owner, borrower, stranger):
        other_chat, _ = services.chat.create_or_get_chat(stranger.id, owner.id)
        elsewhere = services.chat.send_message(other_chat.id, stranger.id, 'Hello')

        with pytest.raises(ValidationFailed):
            services.chat.send_message(chat.id, borrower.id, 'Hi', reply_to_id=elsewhere.id)

    def test_last_message_preview(self, services, chat, borrower):
        services.chat.send_message(chat.id, borrower.id, 'First')
        services.chat.send_message(chat.id, borrower.id, 'Second')

        chat.refresh_from_db()
        assert chat.last_message == 'Second'
        assert chat.last_message_sender_id == borrower.id


# ============================================================================
# 3. UNREAD COUNTS
# ============================================================================

class TestUnread:

    def test_unread_count_for_recipient_only(self, services, chat, owner, borrower):
        services.chat.send_message(chat.id, borrower.id, 'One')
        services.chat.send_message(chat.id, borrower.id, 'Two')

        chat.refresh_from_db()
        assert chat.unread_count_for(owner.id) == 2
        assert chat.unread_count_for(borrower.id) == 0
        assert services.chat.unread_total(owner.id) == 2

    def test_mark_chat_read(self, services, chat, owner, borrower):
        services.chat.send_message(chat.id, borrower.id, 'One')
        services.chat.send_message(chat.id, owner.id, 'Reply')

        marked = services.chat.mark_chat_read(chat.id, owner.id)

        chat.refresh_from_db()
        assert marked == 1
        assert chat.unread_count_for(owner.id) == 0
        assert chat.unread_count_for(borrower.id) == 1

    def test_reading_messages_marks_them_read(self, services, chat, owner, borrower):
        services.chat.send_message(chat.id, borrower.id, 'One')

        messages, _ = services.chat.get_messages(chat.id, owner.id)

        assert messages[0].is_read is True
        assert services.chat.unread_total(owner.id) == 0

    def test_read_receipt_published(self, services, chat, owner, borrower, events,
                                    django_capture_on_commit_callbacks):
        message = services.chat.send_message(chat.id, borrower.id, 'One')
        services.hub.subscribe(chat_room(chat.id), events)

        with django_capture_on_commit_callbacks(execute=True):
            services.chat.mark_chat_read(chat.id, owner.id)

        receipt = events.of_type(MESSAGE_READ_RECEIPT)[0]['payload']
        assert receipt['messageIds'] == [message.id]
        assert receipt['readBy'] == owner.id


# ============================================================================
# 4. MUTE, DELETE AND TYPING
# ============================================================================

class TestMuteDeleteTyping:

    def test_muted_chat_creates_no_notification(self, services, chat, owner, borrower):
        services.chat.toggle_mute(chat.id, owner.id)

        services.chat.send_message(chat.id, borrower.id, 'Quiet please')

        assert Notification.objects.filter(user=owner).count() == 0
        chat.refresh_from_db()
        assert chat.unread_count_for(owner.id) == 1

    def test_only_sender_can_delete(self, services, chat, owner, borrower):
        message = services.chat.send_message(chat.id, borrower.id, 'Oops')

        with pytest.raises(NotFound):
            services.chat.delete_message(message.id, owner.id)

    def test_deleted_message_is_hidden_and_counters_recomputed(self, services, chat, owner, borrower):
        services.chat.send_message(chat.id, borrower.id, 'Keep')
        message = services.chat.send_message(chat.id, borrower.id, 'Oops')

        services.chat.delete_message(message.id, borrower.id)

        chat.refresh_from_db()
        messages, total = services.chat.get_messages(chat.id, borrower.id)
        assert Message.objects.get(pk=message.id).status == 'deleted'
        assert total == 1
        assert chat.last_message == 'Keep'
        assert chat.unread_count_for(owner.id) == 1

    def test_deleting_twice_is_not_found(self, services, chat, borrower):
        message = services.chat.send_message(chat.id, borrower.id, 'Oops')
        services.chat.delete_message(message.id, borrower.id)

        with pytest.raises(NotFound):
            services.chat.delete_message(message.id, borrower.id)

    def test_typing_event(self, services, chat, borrower, events):
        services.hub.subscribe(chat_room(chat.id), events)

        delivered = services.chat.typing(chat.id, borrower.id, is_typing=True)

        assert delivered == 1
        assert events.of_type(USER_TYPING)[0]['payload'] == {
            'chatId': chat.id,
            'userId': borrower.id,
            'isTyping': True,
        }

    def test_new_message_event(self, services, chat, borrower, events, django_capture_on_commit_callbacks):
        services.hub.subscribe(chat_room(chat.id), events)

        with django_capture_on_commit_callbacks(execute=True):
            message = services.chat.send_message(chat.id, borrower.id, 'Hello')

        payload = events.of_type(NEW_MESSAGE)[0]['payload']
        assert payload['id'] == message.id
        assert payload['content'] == 'Hello'


# ============================================================================
# 5. API
# ============================================================================

@pytest.mark.django_db
class TestChatAPI:

    def test_create_then_get_existing(self, auth_client, owner, borrower):
        client = auth_client(borrower)

        created = client.post(reverse('chat_list'), {'participant_id': owner.id})
        existing = client.post(reverse('chat_list'), {'participant_id': owner.id})

        assert created.status_code == status.HTTP_201_CREATED
        assert existing.status_code == status.HTTP_200_OK
        assert created.data['data']['id'] == existing.data['data']['id']

    def test_send_and_list_messages(self, auth_client, chat, owner, borrower):
        response = auth_client(borrower).post(reverse('chat_messages', args=[chat.id]), {'content': 'Hi there'})
        assert response.status_code == status.HTTP_201_CREATED

        listing = auth_client(owner).get(reverse('chat_messages', args=[chat.id]))

        assert listing.status_code == status.HTTP_200_OK
        assert [m['content'] for m in listing.data['data']] == ['Hi there']
        assert listing.data['pagination']['total'] == 1

    def test_stranger_gets_404(self, auth_client, chat, stranger):
        response = auth_client(stranger).get(reverse('chat_messages', args=[chat.id]))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['error']['code'] == 'NOT_FOUND'
        assert response.data['message'] == 'Chat not found'

    def test_unread_count_endpoint(self, services, auth_client, chat, owner, borrower):
        services.chat.send_message(chat.id, borrower.id, 'One')

        response = auth_client(owner).get(reverse('chat_unread_count'))

        assert response.data['data'] == {'unreadCount': 1}
