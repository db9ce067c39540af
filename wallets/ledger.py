"""
Read-only access to the ledger facts a balance is derived from.

Nothing here interprets amounts; rows come back as stored, malformed ones
included. `wallets.balances` decides what counts.
"""

import uuid

from django.db.models import F
from django.db.models.functions import Coalesce

from .errors import ValidationError, translate_store_errors
from .models import CommissionEntry, Order, OrderStatus, TransferRequest


def parse_party_key(party_key) -> uuid.UUID:
    """Return `party_key` as a UUID or raise ValidationError."""
    if isinstance(party_key, uuid.UUID):
        return party_key
    try:
        return uuid.UUID(str(party_key))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f'Malformed party key: {party_key!r}')


def parse_request_id(request_id) -> uuid.UUID:
    """Return `request_id` as a UUID or raise ValidationError."""
    if isinstance(request_id, uuid.UUID):
        return request_id
    try:
        return uuid.UUID(str(request_id))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f'Malformed transfer request id: {request_id!r}')


def _window(queryset, field, since, until):
    if since is not None:
        queryset = queryset.filter(**{f'{field}__gte': since})
    if until is not None:
        queryset = queryset.filter(**{f'{field}__lt': until})
    return queryset


@translate_store_errors
def read_orders_for_party(party_key, since=None, until=None):
    """
    Completed orders of a party as dicts with `id`, `total_price` and
    `occurred_at` (completion time, falling back to creation time).
    """
    queryset = (
        Order.objects
        .filter(party_id=parse_party_key(party_key), status=OrderStatus.COMPLETED)
        .annotate(occurred_at=Coalesce(F('completed_at'), F('created_at')))
    )
    queryset = _window(queryset, 'occurred_at', since, until)
    return list(queryset.values('id', 'total_price', 'occurred_at'))


@translate_store_errors
def read_commissions_for_party(party_key, since=None, until=None):
    """Commission entries of a party as dicts with `id`, `amount`, `occurred_at`."""
    queryset = (
        CommissionEntry.objects
        .filter(party_id=parse_party_key(party_key))
        .annotate(occurred_at=F('accrued_at'))
    )
    queryset = _window(queryset, 'occurred_at', since, until)
    return list(queryset.values('id', 'amount', 'occurred_at'))


@translate_store_errors
def read_transfer_requests_for_party(party_key, status=None, until=None):
    """
    Transfer requests of a party, newest first.

    `until` only makes sense together with `status='transferred'`: it keeps
    requests settled strictly before that instant.
    """
    queryset = TransferRequest.objects.filter(party_id=parse_party_key(party_key))
    if status is not None:
        queryset = queryset.filter(status=status)
    if until is not None:
        queryset = queryset.filter(transferred_at__lt=until)
    return list(queryset)
