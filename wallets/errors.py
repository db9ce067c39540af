"""
Typed errors raised by the wallet engine.

Every public operation raises one of these; callers decide whether to retry.
The engine never retries internally.
"""

import functools
import logging

from django.db import InterfaceError, OperationalError

logger = logging.getLogger(__name__)


class WalletError(Exception):
    """Base exception for wallet operations."""


class ValidationError(WalletError):
    """Caller input violates a precondition. Not retryable."""


class NotFoundError(ValidationError):
    """The referenced party or transfer request does not exist."""


class ConflictError(WalletError):
    """
    An atomic transition failed because state changed concurrently, or the
    target is not in the expected prior state.

    Callers should re-read the current state before deciding to retry.
    """

    def __init__(self, message, current_status=None):
        super().__init__(message)
        self.current_status = current_status


class TransientStoreError(WalletError):
    """The database was unreachable or timed out. Retryable with backoff."""


class AttachmentError(WalletError):
    """
    Receipt upload failed.

    `retryable` is True for storage failures and False for payloads that
    will never be accepted (too large, wrong type).
    """

    def __init__(self, message, retryable=False):
        super().__init__(message)
        self.retryable = retryable


def translate_store_errors(func):
    """Re-raise database driver failures as `TransientStoreError`."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            logger.error('Store failure in %s: %s', func.__name__, exc)
            raise TransientStoreError(str(exc)) from exc

    return wrapper
