"""
In-process publish/subscribe hub for real-time events.

Clients are identified by rooms: ``user_<id>`` for everything addressed to a
user and ``chat_<id>`` for everything happening in a conversation. The
transport that carries events to browsers subscribes callables to rooms;
publishing never blocks on delivery and a failing subscriber is logged and
skipped, so a disconnected client simply misses the event.
"""

import logging
import threading
from collections import defaultdict, deque

from django.dispatch import Signal

logger = logging.getLogger(__name__)

NEW_MESSAGE = 'new_message'
NEW_NOTIFICATION = 'new_notification'
UNREAD_COUNT_UPDATED = 'unread_count_updated'
NOTIFICATION_READ = 'notification_read'
USER_TYPING = 'user_typing'
MESSAGE_READ_RECEIPT = 'message_read_receipt'
SYSTEM_ANNOUNCEMENT = 'system_announcement'

# Sent for every published event; receivers get room, event and payload
realtime_event = Signal()


def user_room(user_id):
    return f'user_{user_id}'


def chat_room(chat_id):
    return f'chat_{chat_id}'


class EventBuffer:
    """
    Subscriber that keeps the most recent events in memory.

    Useful for long-polling transports and for inspecting what was published.
    """

    def __init__(self, maxlen=100):
        self.events = deque(maxlen=maxlen)

    def __call__(self, room, event, payload):
        self.events.append({'room': room, 'event': event, 'payload': payload})

    def of_type(self, event):
        return [entry for entry in self.events if entry['event'] == event]

    def clear(self):
        self.events.clear()


class RealtimeHub:
    """
    Room-keyed fan-out of events to subscriber callables.

    A subscriber is any callable accepting (room, event, payload).
    """

    def __init__(self):
        self._rooms = defaultdict(list)
        self._lock = threading.Lock()
        self._closed = False

    def subscribe(self, room, subscriber):
        with self._lock:
            if subscriber not in self._rooms[room]:
                self._rooms[room].append(subscriber)
        logger.debug(f"Subscriber joined room {room}")

    def unsubscribe(self, room, subscriber):
        with self._lock:
            subscribers = self._rooms.get(room)
            if subscribers and subscriber in subscribers:
                subscribers.remove(subscriber)
                if not subscribers:
                    del self._rooms[room]

    def disconnect(self, subscriber):
        """Remove a subscriber from every room it joined."""
        with self._lock:
            for room in list(self._rooms):
                if subscriber in self._rooms[room]:
                    self._rooms[room].remove(subscriber)
                if not self._rooms[room]:
                    del self._rooms[room]

    def rooms(self):
        with self._lock:
            return sorted(self._rooms)

    def publish(self, room, event, payload=None):
        """
        Deliver an event to every subscriber of a room.

        Delivery is best-effort and at-most-once: errors raised by a
        subscriber or signal receiver are logged and never propagated.

        Returns:
            int: Number of subscribers the event was delivered to
        """
        if self._closed:
            return 0

        payload = payload or {}
        with self._lock:
            subscribers = list(self._rooms.get(room, []))

        delivered = 0
        for subscriber in subscribers:
            try:
                subscriber(room, event, payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Failed to deliver {event} to a subscriber of {room}: {e}")

        for receiver, result in realtime_event.send_robust(
            sender=self.__class__, room=room, event=event, payload=payload
        ):
            if isinstance(result, Exception):
                logger.warning(f"Realtime receiver {receiver} failed for {event} in {room}: {result}")

        return delivered

    def emit_to_user(self, user_id, event, payload=None):
        return self.publish(user_room(user_id), event, payload)

    def emit_to_chat(self, chat_id, event, payload=None):
        return self.publish(chat_room(chat_id), event, payload)

    def broadcast(self, event, payload=None):
        """Publish an event to every user room with at least one subscriber."""
        delivered = 0
        for room in self.rooms():
            if room.startswith('user_'):
                delivered += self.publish(room, event, payload)
        return delivered

    def close(self):
        with self._lock:
            self._rooms.clear()
            self._closed = True
        logger.info("Realtime hub closed")
