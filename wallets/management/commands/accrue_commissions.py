"""
Management command to accrue commission for completed orders that have none.

Orders completed through `Order.save` accrue on their own; this catches
orders completed by bulk updates or imports. Safe to run repeatedly.
"""

from django.core.management.base import BaseCommand, CommandError

from wallets.commissions import accrue_missing_commissions
from wallets.errors import WalletError


class Command(BaseCommand):
    help = 'Accrue commission for completed orders without a commission entry'

    def handle(self, *args, **options):
        try:
            created = accrue_missing_commissions()
        except WalletError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(self.style.SUCCESS(f'Accrued commission for {created} orders'))
