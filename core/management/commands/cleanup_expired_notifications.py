# Expired Notification Cleanup Management Command
from django.apps import apps
from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = 'Deletes notifications whose expiry time has passed.'

    def handle(self, *args, **options):
        services = apps.get_app_config('core').services
        deleted = services.notifications.cleanup_expired()
        self.stdout.write(self.style.SUCCESS(f'Deleted {len(deleted)} expired notifications.'))
