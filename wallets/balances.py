"""
Balance calculator.

A party's balance is always derived from ledger facts:

    completed order revenue - commission - settled transfers

and never read from a stored field. Only requests in `transferred` count
against the balance, so creating or approving a request changes nothing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from django.utils import timezone

from .errors import translate_store_errors
from .ledger import (
    parse_party_key,
    read_commissions_for_party,
    read_orders_for_party,
    read_transfer_requests_for_party,
)
from .models import Party, TransferStatus

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
CENTS = Decimal('0.01')


@dataclass(frozen=True)
class BalanceChange:
    """Current balance compared with the balance at the prior period boundary."""

    current: Decimal
    prior_period: Decimal
    percent_change: Optional[Decimal]
    is_increase: bool
    has_prior_data: bool


def _amount(value, source, record_id) -> Decimal:
    """
    Coerce a stored amount to Decimal.

    Missing, non-numeric and negative amounts contribute nothing.
    """
    if value is None:
        logger.warning('Skipping %s %s: missing amount', source, record_id)
        return ZERO
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning('Skipping %s %s: malformed amount %r', source, record_id, value)
        return ZERO
    if not amount.is_finite() or amount < 0:
        logger.warning('Skipping %s %s: invalid amount %s', source, record_id, amount)
        return ZERO
    return amount


def _sum(rows, field, source) -> Decimal:
    return sum(
        (_amount(row[field], source, row['id']) for row in rows),
        ZERO,
    )


def derive_balance(party_key, as_of=None) -> Decimal:
    """
    Un-clamped derivation, used where the caller must see a shortfall.

    Facts at or after `as_of` are excluded.
    """
    revenue = _sum(read_orders_for_party(party_key, until=as_of), 'total_price', 'order')
    commission = _sum(read_commissions_for_party(party_key, until=as_of), 'amount', 'commission')
    transferred = sum(
        (
            _amount(request.transfer_amount, 'transfer', request.pk)
            for request in read_transfer_requests_for_party(
                party_key, status=TransferStatus.TRANSFERRED, until=as_of
            )
        ),
        ZERO,
    )
    return (revenue - commission - transferred).quantize(CENTS, rounding=ROUND_HALF_UP)


@translate_store_errors
def compute_balance(party_key, as_of=None) -> Decimal:
    """
    Funds currently owed to a party.

    Returns 0.00 for an unknown party. Raises ValidationError only for a
    malformed key.
    """
    key = parse_party_key(party_key)
    balance = derive_balance(key, as_of=as_of)
    if balance < 0:
        logger.warning('Derived balance for party %s is negative (%s); reporting 0.00', key, balance)
        return ZERO
    return balance


def previous_period_start(now=None) -> datetime:
    """First instant of the calendar month before the one containing `now` (UTC)."""
    now = (now or timezone.now()).astimezone(dt_timezone.utc)
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    return datetime(year, month, 1, tzinfo=dt_timezone.utc)


@translate_store_errors
def compute_balance_change(party_key, now=None) -> BalanceChange:
    """
    Compare the balance now with the balance at the start of the previous
    calendar month.

    When the prior balance is zero there is no meaningful percentage, so
    `percent_change` is None and `has_prior_data` is False.
    """
    key = parse_party_key(party_key)
    current = compute_balance(key, as_of=now)
    prior = compute_balance(key, as_of=previous_period_start(now))

    if prior == 0:
        return BalanceChange(
            current=current,
            prior_period=prior,
            percent_change=None,
            is_increase=current > 0,
            has_prior_data=False,
        )

    percent = ((current - prior) / prior * 100).quantize(CENTS, rounding=ROUND_HALF_UP)
    return BalanceChange(
        current=current,
        prior_period=prior,
        percent_change=percent,
        is_increase=current > prior,
        has_prior_data=True,
    )


@translate_store_errors
def balance_summary(party_keys=None):
    """List of `(party, balance)` pairs, for the main wallet table."""
    parties = Party.objects.all()
    if party_keys is not None:
        parties = parties.filter(id__in=[parse_party_key(key) for key in party_keys])
    return [(party, compute_balance(party.pk)) for party in parties]
