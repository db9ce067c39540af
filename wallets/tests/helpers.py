"""
Shared fixtures for the Wallets tests.
"""

from decimal import Decimal

from django.contrib.auth.models import User
from django.utils import timezone

from wallets.models import CommissionEntry, Order, OrderStatus, Party


def make_admin(username='admin'):
    return User.objects.create_user(
        username=username,
        password='testpass123',
        is_staff=True,
    )


def make_party(name='Gulf Fuel', email=None, **extra):
    return Party.objects.create(
        display_name=name,
        email=email or f"{name.lower().replace(' ', '.')}@example.com",
        **extra
    )


def add_order(party, total_price, status=OrderStatus.COMPLETED, completed_at=None, **extra):
    if status == OrderStatus.COMPLETED and completed_at is None:
        completed_at = timezone.now()
    return Order.objects.create(
        party=party,
        status=status,
        total_price=None if total_price is None else Decimal(str(total_price)),
        completed_at=completed_at,
        **extra
    )


def add_commission(party, amount, accrued_at=None, order=None):
    return CommissionEntry.objects.create(
        party=party,
        order=order,
        amount=None if amount is None else Decimal(str(amount)),
        accrued_at=accrued_at or timezone.now(),
    )
