from django.apps import AppConfig
from django.conf import settings


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
    verbose_name = 'BorrowBase'

    def ready(self):
        from . import signals  # noqa: F401
        from .services import ServiceContainer

        self.services = ServiceContainer(using=settings.BORROWBASE['DATABASE_ALIAS'])
