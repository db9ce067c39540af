"""
Management command to assign short reference codes to historical records.

Safe to run repeatedly: rows that already have a code are never touched.
"""

from django.core.management.base import BaseCommand, CommandError

from wallets.codes import BACKFILL_TARGETS, backfill_short_codes
from wallets.errors import WalletError


class Command(BaseCommand):
    help = 'Assign missing short reference codes to parties, orders and transfer requests'

    def add_arguments(self, parser):
        parser.add_argument(
            'collections',
            nargs='*',
            help=f'Collections to backfill: {", ".join(sorted(BACKFILL_TARGETS))}',
        )
        parser.add_argument(
            '--all',
            action='store_true',
            help='Backfill every collection',
        )

    def handle(self, *args, **options):
        collections = sorted(BACKFILL_TARGETS) if options['all'] else options['collections']
        if not collections:
            raise CommandError('Name at least one collection or pass --all')

        total = 0
        for collection in collections:
            try:
                updated = backfill_short_codes(collection)
            except WalletError as exc:
                raise CommandError(f'{collection}: {exc}') from exc
            total += updated
            self.stdout.write(f'  {collection:<20} {updated} updated')

        self.stdout.write(self.style.SUCCESS(f'Backfill complete: {total} records updated'))
