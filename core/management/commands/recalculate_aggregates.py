# Recalculate Aggregates Management Command
from django.core.management.base import BaseCommand, CommandError

from core.aggregates import AggregateMaintainer
from core.exceptions import BookingError
from core.models import Equipment


class Command(BaseCommand):
    help = 'Recomputes equipment availability, rating average and review count from reservations and reviews.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report differences without saving changes to the database.',
        )
        parser.add_argument(
            '--equipment',
            type=int,
            action='append',
            dest='equipment_ids',
            help='Only process this equipment id (repeatable).',
        )
        parser.add_argument(
            '--include-inactive',
            action='store_true',
            help='Also process soft-deleted equipment.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Chunk size used when iterating over equipment.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if batch_size < 1:
            raise CommandError('--batch-size must be at least 1.')

        queryset = Equipment.objects.all().order_by('pk')
        if not options['include_inactive']:
            queryset = queryset.filter(is_active=True)
        if options['equipment_ids']:
            queryset = queryset.filter(pk__in=options['equipment_ids'])

        maintainer = AggregateMaintainer()
        count = 0
        corrected = 0

        self.stdout.write('Recalculating equipment aggregates...')

        for equipment_id in queryset.values_list('pk', flat=True).iterator(chunk_size=batch_size):
            try:
                changes = maintainer.reconcile(equipment_id, commit=not dry_run)
            except BookingError as e:
                raise CommandError(f'Equipment {equipment_id}: {e.detail}')

            if changes:
                corrected += 1
                prefix = '[DRY-RUN] ' if dry_run else ''
                for field, (stored, expected) in changes.items():
                    self.stdout.write(f'  {prefix}Equipment {equipment_id}: {field} {stored} -> {expected}')

            count += 1
            if count % 100 == 0:
                self.stdout.write(f'Processed {count} equipment...')

        self.stdout.write(f'Processed {count} equipment total, {corrected} out of date.')

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Recalculation completed successfully.'))
