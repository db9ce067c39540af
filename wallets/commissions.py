"""
Commission accrual for completed fuel orders.

Commission is charged per litre, at the rate configured for the order's fuel
category. Diesel is recognised by name; every other fuel counts as petrol.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db import IntegrityError, transaction

from .errors import translate_store_errors
from .models import CommissionEntry, CommissionRate, FuelCategory, Order, OrderStatus

logger = logging.getLogger(__name__)

DIESEL_MARKERS = ('diesel', 'ديزل', 'ديزيل')


def fuel_category(fuel_type) -> str:
    normalized = (fuel_type or '').strip().lower()
    if any(marker in normalized for marker in DIESEL_MARKERS):
        return FuelCategory.DIESEL
    return FuelCategory.PETROL


def commission_for_order(order) -> Decimal:
    """Commission owed on `order`; zero when no rate is configured."""
    rate = (
        CommissionRate.objects
        .filter(category=fuel_category(order.fuel_type))
        .values_list('rate_per_litre', flat=True)
        .first()
    )
    if rate is None:
        return Decimal('0.00')
    return (order.litres * rate).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


@translate_store_errors
def accrue_order_commission(order):
    """
    Record the commission for a completed order, once.

    Returns the existing entry when the order was already accrued, and None
    for orders that are not completed.
    """
    if order.status != OrderStatus.COMPLETED:
        return None

    existing = CommissionEntry.objects.filter(order=order).first()
    if existing is not None:
        return existing

    try:
        with transaction.atomic():
            entry = CommissionEntry.objects.create(
                party_id=order.party_id,
                order=order,
                amount=commission_for_order(order),
                accrued_at=order.completed_at or order.created_at,
                note=f'Commission for order {order.reference_code or order.pk}',
            )
    except IntegrityError:
        # Another writer accrued the same order first.
        return CommissionEntry.objects.get(order=order)

    logger.info('Accrued commission %s for order %s', entry.amount, order.pk)
    return entry


@translate_store_errors
def accrue_missing_commissions() -> int:
    """
    Accrue commission for completed orders that have none.

    Covers orders completed by bulk updates or imports, which bypass
    `Order.save`. Returns the number of entries created.
    """
    orders = list(Order.objects.filter(status=OrderStatus.COMPLETED, commission__isnull=True))
    for order in orders:
        accrue_order_commission(order)
    logger.info('Accrued commission for %d completed orders', len(orders))
    return len(orders)
