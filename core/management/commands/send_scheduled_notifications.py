# Scheduled Notification Dispatch Management Command
from django.apps import apps
from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = 'Sends scheduled notifications whose time has come.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--limit',
            type=int,
            default=100,
            help='Maximum number of notifications to send in one run.',
        )

    def handle(self, *args, **options):
        services = apps.get_app_config('core').services
        sent = services.notifications.process_scheduled(limit=options['limit'])
        self.stdout.write(self.style.SUCCESS(f'Sent {sent} scheduled notifications.'))
