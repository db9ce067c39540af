"""
Management command to open payout requests for parties over the threshold.
"""

from decimal import Decimal, InvalidOperation

from django.core.management.base import BaseCommand, CommandError

from wallets.errors import WalletError
from wallets.transfers import raise_threshold_payouts


class Command(BaseCommand):
    help = 'Create a pending transfer request for every party whose balance reaches the payout threshold'

    def add_arguments(self, parser):
        parser.add_argument(
            '--threshold',
            help='Override WALLET_PAYOUT_THRESHOLD',
        )

    def handle(self, *args, **options):
        threshold = None
        if options['threshold'] is not None:
            try:
                threshold = Decimal(options['threshold'])
            except InvalidOperation:
                raise CommandError(f"Invalid threshold: {options['threshold']}")

        try:
            result = raise_threshold_payouts(threshold=threshold)
        except WalletError as exc:
            raise CommandError(str(exc)) from exc

        for request in result['created']:
            self.stdout.write(
                f"  #{request.transfer_number} {request.party.display_name}: {request.transfer_amount}"
            )
        for party, reason in result['skipped']:
            self.stdout.write(self.style.WARNING(f"  skipped {party.display_name}: {reason}"))

        self.stdout.write(self.style.SUCCESS(
            f"{len(result['created'])} created, {len(result['skipped'])} skipped"
        ))
