"""
Short numeric reference codes and their backfill.

Historical records were created before reference codes existed. The backfill
walks a collection, gives every uncoded row a fresh code and never touches a
row that already has one, so it can be interrupted and re-run at any time.
"""

import logging
import secrets

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q

from .errors import ConflictError, ValidationError, translate_store_errors
from .models import Order, Party, TransferRequest

logger = logging.getLogger(__name__)

# collection name -> (model, code field)
BACKFILL_TARGETS = {
    'parties': (Party, 'reference_code'),
    'orders': (Order, 'reference_code'),
    'transfer_requests': (TransferRequest, 'transfer_number'),
}


def _random_code(length: int) -> str:
    first = str(secrets.randbelow(9) + 1)
    rest = ''.join(str(secrets.randbelow(10)) for _ in range(length - 1))
    return first + rest


def generate_short_code(model, field, length=None) -> str:
    """
    Return a fixed-length numeric code not yet used in `model.field`.

    The check is advisory; the unique constraint on the field decides, and
    writers regenerate on IntegrityError.
    """
    length = length or settings.WALLET_SHORT_CODE_LENGTH
    for _ in range(settings.WALLET_SHORT_CODE_MAX_ATTEMPTS):
        code = _random_code(length)
        if not model.objects.filter(**{field: code}).exists():
            return code
    raise ConflictError(
        f'Could not find a free {length}-digit code for {model.__name__}.{field}'
    )


def _missing_code(field) -> Q:
    return Q(**{f'{field}__isnull': True}) | Q(**{field: ''})


def _assign_code(model, field, pk) -> bool:
    """
    Give one row a code if it still has none.

    Returns False when another writer coded the row first.
    """
    for _ in range(settings.WALLET_SHORT_CODE_MAX_ATTEMPTS):
        code = generate_short_code(model, field)
        try:
            with transaction.atomic():
                updated = (
                    model.objects
                    .filter(_missing_code(field), pk=pk)
                    .update(**{field: code})
                )
        except IntegrityError:
            logger.info('Code %s collided on %s %s; regenerating', code, model.__name__, pk)
            continue
        return updated == 1
    raise ConflictError(f'Could not assign a unique code to {model.__name__} {pk}')


@translate_store_errors
def backfill_short_codes(collection) -> int:
    """
    Assign codes to every row of `collection` that lacks one.

    Returns the number of rows updated by this run. Each row is committed on
    its own, so a run cut short leaves its finished rows coded and the next
    run picks up the rest.
    """
    try:
        model, field = BACKFILL_TARGETS[collection]
    except KeyError:
        raise ValidationError(
            f'Unknown collection {collection!r}; expected one of {sorted(BACKFILL_TARGETS)}'
        )

    pending = (
        model.objects
        .filter(_missing_code(field))
        .order_by('pk')
        .values_list('pk', flat=True)
    )
    batch_size = settings.WALLET_BACKFILL_BATCH_SIZE
    updated = 0
    last_pk = None
    while True:
        # Keyset pagination; rows are written between batches.
        batch = pending if last_pk is None else pending.filter(pk__gt=last_pk)
        pks = list(batch[:batch_size])
        if not pks:
            break
        for pk in pks:
            if _assign_code(model, field, pk):
                updated += 1
        last_pk = pks[-1]

    logger.info('Backfilled %d %s.%s codes', updated, model.__name__, field)
    return updated
