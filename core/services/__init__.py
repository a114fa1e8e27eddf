"""
Service layer.

A ServiceContainer wires every service to one database alias and one
realtime hub. The application builds a single container in
CoreConfig.ready(); tests construct their own.
"""

import logging

from core.realtime import RealtimeHub

from .borrow_requests import BorrowRequestService
from .chat import ChatService
from .notifications import NotificationService
from .resources import ResourceService
from .reviews import ReviewService
from .users import UserService

logger = logging.getLogger(__name__)

__all__ = [
    'BorrowRequestService',
    'ChatService',
    'NotificationService',
    'ResourceService',
    'ReviewService',
    'ServiceContainer',
    'UserService',
]


class ServiceContainer:
    def __init__(self, using='default', hub=None):
        self.using = using
        self.hub = hub if hub is not None else RealtimeHub()

        self.notifications = NotificationService(using=using, hub=self.hub)
        self.users = UserService(using=using, hub=self.hub)
        self.resources = ResourceService(using=using, hub=self.hub)
        self.borrow_requests = BorrowRequestService(using=using, hub=self.hub, notifications=self.notifications)
        self.chat = ChatService(using=using, hub=self.hub, notifications=self.notifications)
        self.reviews = ReviewService(using=using, hub=self.hub, notifications=self.notifications)
        logger.debug(f"Service container initialised on database '{using}'")

    def close(self):
        self.hub.close()
