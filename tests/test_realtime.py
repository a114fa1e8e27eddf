"""
Realtime hub tests.

The hub is plain in-process fan-out, so these tests need no database.
"""

import pytest
from django.dispatch import receiver

from core.realtime import (
    EventBuffer,
    RealtimeHub,
    chat_room,
    realtime_event,
    user_room,
)


@pytest.fixture
def hub():
    hub = RealtimeHub()
    yield hub
    hub.close()


def test_room_names():
    assert user_room(7) == 'user_7'
    assert chat_room(3) == 'chat_3'


def test_publish_reaches_room_subscribers_only(hub):
    mine, other = EventBuffer(), EventBuffer()
    hub.subscribe(user_room(1), mine)
    hub.subscribe(user_room(2), other)

    delivered = hub.emit_to_user(1, 'new_notification', {'id': 10})

    assert delivered == 1
    assert list(mine.events) == [{'room': 'user_1', 'event': 'new_notification', 'payload': {'id': 10}}]
    assert list(other.events) == []


def test_subscribing_twice_delivers_once(hub):
    buffer = EventBuffer()
    hub.subscribe(chat_room(1), buffer)
    hub.subscribe(chat_room(1), buffer)

    assert hub.emit_to_chat(1, 'user_typing') == 1
    assert buffer.events[0]['payload'] == {}


def test_failing_subscriber_does_not_stop_delivery(hub):
    def broken(room, event, payload):
        raise RuntimeError('socket closed')

    buffer = EventBuffer()
    hub.subscribe(user_room(1), broken)
    hub.subscribe(user_room(1), buffer)

    delivered = hub.emit_to_user(1, 'new_message', {'id': 1})

    assert delivered == 1
    assert len(buffer.events) == 1


def test_unsubscribe_and_disconnect(hub):
    buffer = EventBuffer()
    hub.subscribe(user_room(1), buffer)
    hub.subscribe(chat_room(5), buffer)

    hub.unsubscribe(user_room(1), buffer)
    assert hub.rooms() == ['chat_5']

    hub.disconnect(buffer)
    assert hub.rooms() == []


def test_broadcast_targets_user_rooms(hub):
    user_buffer, chat_buffer = EventBuffer(), EventBuffer()
    hub.subscribe(user_room(1), user_buffer)
    hub.subscribe(user_room(2), user_buffer)
    hub.subscribe(chat_room(1), chat_buffer)

    assert hub.broadcast('system_announcement', {'title': 'Hi'}) == 2
    assert list(chat_buffer.events) == []


def test_closed_hub_drops_events(hub):
    buffer = EventBuffer()
    hub.subscribe(user_room(1), buffer)

    hub.close()

    assert hub.emit_to_user(1, 'new_notification') == 0
    assert list(buffer.events) == []


def test_signal_receivers_see_every_event(hub):
    seen = []

    @receiver(realtime_event)
    def record(sender, room, event, payload, **kwargs):
        seen.append((room, event))

    try:
        hub.emit_to_chat(9, 'new_message', {'id': 1})
    finally:
        realtime_event.disconnect(record)

    assert seen == [('chat_9', 'new_message')]


def test_event_buffer_is_bounded():
    buffer = EventBuffer(maxlen=2)
    for n in range(3):
        buffer('user_1', 'new_notification', {'n': n})

    assert [entry['payload']['n'] for entry in buffer.events] == [1, 2]
    assert len(buffer.of_type('new_notification')) == 2

    buffer.clear()
    assert len(buffer.events) == 0
