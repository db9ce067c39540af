"""
Transfer request state machine.

    pending --approve--> approved --settle--> transferred
    pending --reject---> rejected

`rejected` and `transferred` are terminal. Every transition is a
compare-and-set on `status` (a conditional UPDATE), so two admins racing on
the same request cannot both win, and a retried call fails loudly instead of
settling twice. Settlement is the only step that changes the party's
derived balance.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .balances import compute_balance, derive_balance
from .codes import generate_short_code
from .errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    translate_store_errors,
)
from .ledger import parse_party_key, parse_request_id
from .models import Party, TransferRequest, TransferRequestEvent, TransferStatus
from .tasks import generate_settlement_advice

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')


def parse_amount(amount) -> Decimal:
    """Validate a transfer amount: positive, finite, at most two decimals."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f'Invalid amount: {amount!r}')
    if not value.is_finite():
        raise ValidationError(f'Invalid amount: {amount!r}')
    if value <= 0:
        raise ValidationError('Amount must be positive')
    if value != value.quantize(CENTS):
        raise ValidationError('Amount must have at most two decimal places')
    return value


def _require_actor(actor):
    if actor is None:
        raise ValidationError('An acting admin is required')


def _record_event(request_id, from_status, to_status, actor, note=''):
    TransferRequestEvent.objects.create(
        request_id=request_id,
        from_status=from_status,
        to_status=to_status,
        actor=actor,
        note=note or '',
    )


@translate_store_errors
def get_transfer_request(request_id) -> TransferRequest:
    request = (
        TransferRequest.objects
        .select_related('party')
        .filter(pk=parse_request_id(request_id))
        .first()
    )
    if request is None:
        raise NotFoundError(f'Transfer request {request_id} not found')
    return request


@translate_store_errors
def list_transfer_requests(status=None, party_key=None):
    queryset = TransferRequest.objects.select_related('party')
    if status is not None:
        if status not in TransferStatus.values:
            raise ValidationError(f'Unknown status: {status!r}')
        queryset = queryset.filter(status=status)
    if party_key is not None:
        queryset = queryset.filter(party_id=parse_party_key(party_key))
    return list(queryset)


def _has_pending(party_id) -> bool:
    return TransferRequest.objects.filter(
        party_id=party_id, status=TransferStatus.PENDING
    ).exists()


@translate_store_errors
def create_transfer_request(party_key, amount, actor=None, notes='') -> TransferRequest:
    """
    Open a pending transfer request for a party.

    Raises:
        ValidationError: bad amount or amount above balance
        NotFoundError: unknown party
        ConflictError: the party already has a pending request
    """
    key = parse_party_key(party_key)
    amount = parse_amount(amount)

    for _ in range(settings.WALLET_SHORT_CODE_MAX_ATTEMPTS):
        try:
            with transaction.atomic():
                # Serialises creates for one party where the backend supports it.
                party = Party.objects.select_for_update().filter(pk=key).first()
                if party is None:
                    raise NotFoundError(f'Party {key} not found')

                if _has_pending(key):
                    raise ConflictError(
                        f'Party {key} already has a pending transfer request',
                        current_status=TransferStatus.PENDING,
                    )

                balance = compute_balance(key)
                if amount > balance:
                    raise ValidationError(
                        f'Amount {amount} exceeds available balance {balance}'
                    )

                request = TransferRequest.objects.create(
                    party=party,
                    transfer_number=generate_short_code(TransferRequest, 'transfer_number'),
                    transfer_amount=amount,
                    status=TransferStatus.PENDING,
                    created_by=actor,
                    notes=notes or '',
                )
                _record_event(request.pk, '', TransferStatus.PENDING, actor, notes)
        except IntegrityError:
            # The partial unique index caught a concurrent create, or the
            # transfer number collided.
            if _has_pending(key):
                raise ConflictError(
                    f'Party {key} already has a pending transfer request',
                    current_status=TransferStatus.PENDING,
                )
            logger.info('Transfer number collision for party %s; retrying', key)
            continue

        logger.info(
            'Created transfer request %s (#%s) for party %s: %s',
            request.pk, request.transfer_number, key, amount,
        )
        return request

    raise ConflictError(f'Could not allocate a transfer number for party {key}')


def _compare_and_set(request_id, from_status, to_status, actor, note='', **fields):
    """
    Move a request from `from_status` to `to_status` in one conditional UPDATE.

    Must run inside a transaction so the audit event commits with it.
    """
    updated = (
        TransferRequest.objects
        .filter(pk=request_id, status=from_status)
        .update(status=to_status, version=F('version') + 1, **fields)
    )
    if updated != 1:
        current = (
            TransferRequest.objects
            .filter(pk=request_id)
            .values_list('status', flat=True)
            .first()
        )
        if current is None:
            raise NotFoundError(f'Transfer request {request_id} not found')
        raise ConflictError(
            f'Transfer request {request_id} is {current}, expected {from_status}',
            current_status=current,
        )
    _record_event(request_id, from_status, to_status, actor, note)
    logger.info('Transfer request %s: %s -> %s', request_id, from_status, to_status)


@translate_store_errors
def approve_transfer_request(request_id, actor) -> TransferRequest:
    """
    Record administrative sign-off. The balance is not touched.

    Raises ConflictError unless the request is pending.
    """
    request_id = parse_request_id(request_id)
    _require_actor(actor)
    with transaction.atomic():
        _compare_and_set(
            request_id,
            TransferStatus.PENDING,
            TransferStatus.APPROVED,
            actor,
            approved_by=actor,
            approved_at=timezone.now(),
        )
    return get_transfer_request(request_id)


@translate_store_errors
def reject_transfer_request(request_id, actor, reason=None) -> TransferRequest:
    """Reject a pending request. Terminal; the balance is not touched."""
    request_id = parse_request_id(request_id)
    _require_actor(actor)
    reason = (reason or '').strip()
    with transaction.atomic():
        _compare_and_set(
            request_id,
            TransferStatus.PENDING,
            TransferStatus.REJECTED,
            actor,
            note=reason,
            rejected_by=actor,
            rejected_at=timezone.now(),
            rejection_reason=reason,
        )
    return get_transfer_request(request_id)


def _enqueue_settlement_advice(request_id):
    """
    Queue the advice PDF for a settlement that has already committed.

    A broker outage must not turn a completed settlement into an error; the
    failure is logged instead of raised.
    """
    try:
        generate_settlement_advice.delay(str(request_id))
    except Exception:
        logger.exception('Could not queue settlement advice for transfer request %s', request_id)


@translate_store_errors
def settle_transfer_request(request_id, actor) -> TransferRequest:
    """
    Mark an approved request as transferred: funds have left the ledger.

    The party row is locked and the balance re-derived first, so a
    settlement can never take the balance below zero.
    """
    request_id = parse_request_id(request_id)
    _require_actor(actor)

    with transaction.atomic():
        request = get_transfer_request(request_id)
        # Status is read under the party lock; a concurrent settle may have won.
        Party.objects.select_for_update().filter(pk=request.party_id).first()
        request.refresh_from_db(fields=['status'])
        if request.status != TransferStatus.APPROVED:
            raise ConflictError(
                f'Transfer request {request_id} is {request.status}, expected approved',
                current_status=request.status,
            )

        available = derive_balance(request.party_id)
        if request.transfer_amount > available:
            raise ConflictError(
                f'Balance {available} no longer covers transfer of {request.transfer_amount}',
                current_status=request.status,
            )

        _compare_and_set(
            request_id,
            TransferStatus.APPROVED,
            TransferStatus.TRANSFERRED,
            actor,
            transferred_by=actor,
            transferred_at=timezone.now(),
        )
        transaction.on_commit(lambda: _enqueue_settlement_advice(request_id))

    return get_transfer_request(request_id)


def approve_and_settle(request_id, actor) -> TransferRequest:
    """
    Approve then settle, for callers that expose both as one action.

    The steps commit separately: if settlement fails the approval stands.
    """
    approve_transfer_request(request_id, actor)
    return settle_transfer_request(request_id, actor)


@translate_store_errors
def raise_threshold_payouts(threshold=None, actor=None):
    """
    Open a full-balance request for every party at or above the threshold.

    Returns `{'created': [requests], 'skipped': [(party, reason)]}`.
    """
    threshold = Decimal(str(threshold if threshold is not None else settings.WALLET_PAYOUT_THRESHOLD))
    created, skipped = [], []

    for party in Party.objects.all():
        balance = compute_balance(party.pk)
        if balance <= 0 or balance < threshold:
            continue
        try:
            created.append(
                create_transfer_request(
                    party.pk, balance, actor=actor, notes='Automatic payout at threshold'
                )
            )
        except (ConflictError, ValidationError) as exc:
            skipped.append((party, str(exc)))

    logger.info('Threshold payouts: %d created, %d skipped', len(created), len(skipped))
    return {'created': created, 'skipped': skipped}
