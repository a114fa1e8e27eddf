# Overdue Sweep Management Command
from datetime import date

from django.apps import apps
from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = 'Marks active borrow requests past their due date as overdue and notifies the borrowers.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            help='Treat this ISO date (YYYY-MM-DD) as today.',
        )

    def handle(self, *args, **options):
        today = None
        if options['date']:
            try:
                today = date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f"Invalid date: {options['date']}")

        services = apps.get_app_config('core').services
        overdue = services.borrow_requests.mark_overdue(today=today)

        for borrow_request in overdue:
            self.stdout.write(f'  Request {borrow_request.id} due {borrow_request.due_date} is overdue')
        self.stdout.write(self.style.SUCCESS(f'Marked {len(overdue)} borrow requests overdue.'))
