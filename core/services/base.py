"""
Shared plumbing for the service layer.

Every service is constructed with the database alias it reads and writes
through and the realtime hub it publishes to. Nothing here is a module-level
singleton: the process entry point builds a ServiceContainer and tests build
their own.
"""

import logging

from django.conf import settings
from django.db import transaction

from core.exceptions import NotFound
from core.realtime import RealtimeHub

logger = logging.getLogger(__name__)


def setting(name):
    return settings.BORROWBASE[name]


class BaseService:
    def __init__(self, using='default', hub=None):
        self.using = using
        self.hub = hub if hub is not None else RealtimeHub()

    def objects(self, model):
        """Manager for model bound to this service's database."""
        return model._default_manager.db_manager(self.using)

    def atomic(self):
        return transaction.atomic(using=self.using)

    def get_or_not_found(self, model, entity, **lookup):
        """
        Fetch a single row or raise NotFound naming the entity.

        Raises:
            NotFound: If no row matches lookup
        """
        try:
            return self.objects(model).get(**lookup)
        except model.DoesNotExist:
            raise NotFound(entity)

    def after_commit(self, func):
        """
        Run func once the current transaction commits.

        Used for realtime publishes; failures are logged and never reach the
        caller.
        """
        transaction.on_commit(func, using=self.using, robust=True)
