"""
Management command to populate dummy data for testing.

Creates an admin and service-provider parties with completed fuel orders,
which accrue their commissions on save. Also adds one historical transfer
request without a number.
"""

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.models import User
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from wallets.models import (
    CommissionEntry,
    CommissionRate,
    FuelCategory,
    Order,
    OrderStatus,
    Party,
    TransferReceipt,
    TransferRequest,
    TransferRequestEvent,
    TransferStatus,
)


class Command(BaseCommand):
    help = 'Populate the database with dummy parties, orders and commissions for testing'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before creating new data',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            TransferReceipt.objects.all().delete()
            TransferRequestEvent.objects.all().delete()
            TransferRequest.objects.all().delete()
            CommissionEntry.objects.all().delete()
            Order.objects.all().delete()
            Party.objects.all().delete()
            self.stdout.write(self.style.SUCCESS('Cleared existing data'))

        self.stdout.write('Creating dummy data...')

        admin, created = User.objects.get_or_create(
            username='admin',
            defaults={'email': 'admin@example.com', 'is_staff': True, 'is_superuser': True},
        )
        if created:
            admin.set_password('password123')
            admin.save()
            self.stdout.write('  Created admin user: admin / password123')

        CommissionRate.objects.update_or_create(
            category=FuelCategory.PETROL, defaults={'rate_per_litre': Decimal('0.0800')}
        )
        CommissionRate.objects.update_or_create(
            category=FuelCategory.DIESEL, defaults={'rate_per_litre': Decimal('0.0500')}
        )

        parties_data = [
            {'name': 'Gulf Fuel Services', 'email': 'ops@gulffuel.example', 'wallet': 'SA-4532-8976-1234'},
            {'name': 'United Energy Group', 'email': 'finance@ueg.example', 'wallet': 'SA-7821-3456-9087'},
            {'name': 'Arabian Oil Co', 'email': 'accounts@aoc.example', 'wallet': 'SA-5566-7788-9900'},
        ]
        orders_data = [
            ('Petrol 91', Decimal('120.000'), Decimal('262.80')),
            ('Petrol 95', Decimal('80.000'), Decimal('186.40')),
            ('Diesel', Decimal('300.000'), Decimal('345.00')),
        ]

        now = timezone.now()
        for index, party_data in enumerate(parties_data):
            party, created = Party.objects.get_or_create(
                email=party_data['email'],
                defaults={
                    'display_name': party_data['name'],
                    'wallet_number': party_data['wallet'],
                },
            )
            self.stdout.write(f"  {'Created' if created else 'Exists '} party: {party.display_name}")

            for days_ago, (fuel_type, litres, price) in enumerate(orders_data, start=index):
                Order.objects.create(
                    party=party,
                    status=OrderStatus.COMPLETED,
                    fuel_type=fuel_type,
                    litres=litres,
                    total_price=price,
                    completed_at=now - timedelta(days=days_ago * 12),
                )

        # A legacy request from before transfer numbers existed.
        legacy_party = Party.objects.get(email=parties_data[0]['email'])
        if not TransferRequest.objects.filter(party=legacy_party).exists():
            TransferRequest.objects.create(
                party=legacy_party,
                transfer_number=None,
                transfer_amount=Decimal('100.00'),
                status=TransferStatus.REJECTED,
                rejection_reason='Imported from legacy system',
                created_at=now - timedelta(days=90),
            )
            self.stdout.write('  Created legacy transfer request without a number')

        self.stdout.write('')
        self.stdout.write(self.style.SUCCESS('=' * 50))
        self.stdout.write(self.style.SUCCESS('Dummy data created successfully!'))
        self.stdout.write(self.style.SUCCESS('=' * 50))
        self.stdout.write('')
        self.stdout.write('Run `manage.py backfill_short_codes --all` to assign missing codes.')
