# Recalculate Ratings Management Command
from django.core.management.base import BaseCommand
from django.db.models import Avg, Count

from core.models import Resource, Review, User
from core.services.users import quantize_rating


class Command(BaseCommand):
    help = 'Recalculates ratings for resources and users from their visible reviews.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Run the command without saving changes to the database.',
        )
        parser.add_argument(
            '--resources-only',
            action='store_true',
            help='Recalculate only resource ratings.',
        )
        parser.add_argument(
            '--users-only',
            action='store_true',
            help='Recalculate only user ratings.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if not options['users_only']:
            self.recalculate(Resource, 'resource_id', dry_run, batch_size)

        if not options['resources_only']:
            self.recalculate(User, 'reviewee_id', dry_run, batch_size)

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Recalculation completed successfully.'))

    def recalculate(self, model, review_field, dry_run, batch_size):
        label = model._meta.verbose_name_plural
        self.stdout.write(f'Recalculating {label} ratings...')

        stats = {
            row[review_field]: row
            for row in (
                Review.objects.exclude(moderation_status='hidden')
                .filter(**{f'{review_field}__isnull': False})
                .values(review_field)
                .annotate(avg=Avg('rating'), total=Count('id'))
                .order_by()
            )
        }

        updates = []
        count = 0
        for obj in model.objects.all().iterator(chunk_size=batch_size):
            row = stats.get(obj.pk)
            new_avg = quantize_rating(row['avg'] if row else None)
            new_total = row['total'] if row else 0

            if obj.average_rating != new_avg or obj.total_ratings != new_total:
                if dry_run:
                    self.stdout.write(
                        f'  [DRY-RUN] {model.__name__} {obj.pk}: Rating {obj.average_rating} -> {new_avg}, '
                        f'Count {obj.total_ratings} -> {new_total}'
                    )
                obj.average_rating = new_avg
                obj.total_ratings = new_total
                updates.append(obj)

            if len(updates) >= batch_size:
                if not dry_run:
                    model.objects.bulk_update(updates, ['average_rating', 'total_ratings'])
                updates = []

            count += 1
            if count % 100 == 0:
                self.stdout.write(f'Processed {count} {label}...')

        if updates and not dry_run:
            model.objects.bulk_update(updates, ['average_rating', 'total_ratings'])

        self.stdout.write(f'Processed {count} {label} total.')
