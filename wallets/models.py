"""
Data models for the Wallets app.

This module contains:
- Party: a company, service provider or individual whose funds are tracked
- Order, CommissionEntry: ledger facts the balance is derived from
- CommissionRate: per-litre commission settings per fuel category
- TransferRequest: a payout moving through pending -> approved -> transferred
- TransferRequestEvent: append-only audit trail of status transitions
- TransferReceipt: append-only proof-of-transfer artifacts

Balances are never stored; see `wallets.balances`.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.db.models import Q
from django.utils import timezone


class PartyKind(models.TextChoices):
    COMPANY = 'company', 'Company'
    SERVICE_PROVIDER = 'service_provider', 'Service provider'
    INDIVIDUAL = 'individual', 'Individual'


class PartyManager(models.Manager):

    def lookup_key(self, email):
        """Resolve a contact email to the party key, or None."""
        return (
            self.filter(email__iexact=email.strip())
            .values_list('id', flat=True)
            .first()
        )


class Party(models.Model):
    """
    A party whose wallet is tracked.

    `id` is the stable party key. `email` is contact data only and may change.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(
        unique=True,
        help_text='Contact email (mutable, not an identifier)'
    )
    display_name = models.CharField(max_length=200)
    phone = models.CharField(max_length=32, blank=True, default='')
    kind = models.CharField(
        max_length=20,
        choices=PartyKind.choices,
        default=PartyKind.SERVICE_PROVIDER
    )
    wallet_number = models.CharField(
        max_length=32,
        blank=True,
        default='',
        help_text='Display-only wallet number'
    )
    reference_code = models.CharField(
        max_length=16,
        unique=True,
        null=True,
        blank=True,
        help_text='Short numeric reference code'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = PartyManager()

    class Meta:
        """Party model metadata."""

        verbose_name = 'Party'
        verbose_name_plural = 'Parties'
        ordering = ['display_name']

    def __str__(self) -> str:
        """Return string representation of the party."""
        return f"{self.display_name} <{self.email}>"


class OrderStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class Order(models.Model):
    """
    A fuel order fulfilled by a party.

    Only completed orders contribute revenue. `total_price` is nullable
    because historical rows were imported without it.
    """

    party = models.ForeignKey(
        Party,
        on_delete=models.PROTECT,
        related_name='orders'
    )
    reference_code = models.CharField(
        max_length=16,
        unique=True,
        null=True,
        blank=True
    )
    status = models.CharField(
        max_length=16,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING
    )
    total_price = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        null=True,
        blank=True,
        help_text='Amount paid for the order'
    )
    fuel_type = models.CharField(max_length=64, blank=True, default='')
    litres = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0.000')
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        """Order model metadata."""

        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['party', 'status'], name='order_party_status_idx'),
        ]

    def __str__(self) -> str:
        return f"Order {self.reference_code or self.pk} ({self.status})"

    def save(self, *args, **kwargs):
        """Save the order; a completed order accrues its commission in the same transaction."""
        # Import here to avoid circular imports
        from .commissions import accrue_order_commission

        with transaction.atomic():
            super().save(*args, **kwargs)
            if self.status == OrderStatus.COMPLETED:
                accrue_order_commission(self)


class CommissionEntry(models.Model):
    """
    Commission owed to the platform by a party.

    At most one entry exists per order; entries without an order are manual
    adjustments.
    """

    party = models.ForeignKey(
        Party,
        on_delete=models.PROTECT,
        related_name='commissions'
    )
    order = models.OneToOneField(
        Order,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='commission'
    )
    amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        null=True,
        blank=True
    )
    note = models.CharField(max_length=255, blank=True, default='')
    accrued_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name_plural = 'Commission entries'
        ordering = ['-accrued_at']
        indexes = [
            models.Index(fields=['party', 'accrued_at'], name='commission_party_time_idx'),
        ]

    def __str__(self) -> str:
        return f"Commission {self.amount} for {self.party_id}"


class FuelCategory(models.TextChoices):
    PETROL = 'petrol', 'Petrol'
    DIESEL = 'diesel', 'Diesel'


class CommissionRate(models.Model):
    """Per-litre commission charged for a fuel category."""

    category = models.CharField(
        max_length=16,
        choices=FuelCategory.choices,
        unique=True
    )
    rate_per_litre = models.DecimalField(
        max_digits=10,
        decimal_places=4,
        validators=[MinValueValidator(Decimal('0'))]
    )
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.category}: {self.rate_per_litre}/L"


class TransferStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'
    TRANSFERRED = 'transferred', 'Transferred'


TERMINAL_STATUSES = (TransferStatus.REJECTED, TransferStatus.TRANSFERRED)


class TransferRequest(models.Model):
    """
    A request to pay out part of a party's balance.

    Only `transferred` requests reduce the derived balance. Rows are never
    deleted and `transfer_amount` never changes after creation.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    party = models.ForeignKey(
        Party,
        on_delete=models.PROTECT,
        related_name='transfer_requests'
    )
    transfer_number = models.CharField(
        max_length=16,
        unique=True,
        null=True,
        blank=True,
        help_text='Human-readable reference, unique'
    )
    transfer_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        help_text='Amount to pay out (fixed at creation)'
    )
    status = models.CharField(
        max_length=16,
        choices=TransferStatus.choices,
        default=TransferStatus.PENDING
    )
    version = models.PositiveIntegerField(
        default=1,
        help_text='Incremented on every status transition'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+'
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+'
    )
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+'
    )
    transferred_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+'
    )
    rejection_reason = models.TextField(blank=True, default='')
    receipt_url = models.CharField(max_length=500, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(default=timezone.now)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    transferred_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        """TransferRequest model metadata."""

        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['party'],
                condition=Q(status='pending'),
                name='one_pending_transfer_per_party',
            ),
        ]
        indexes = [
            models.Index(fields=['party', 'status'], name='transfer_party_status_idx'),
            models.Index(fields=['status', 'created_at'], name='transfer_status_time_idx'),
        ]

    def __str__(self) -> str:
        return (
            f"TransferRequest #{self.transfer_number or self.pk}: "
            f"{self.transfer_amount} ({self.status})"
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class TransferRequestEvent(models.Model):
    """One row per status transition of a transfer request."""

    request = models.ForeignKey(
        TransferRequest,
        on_delete=models.PROTECT,
        related_name='events'
    )
    from_status = models.CharField(max_length=16, blank=True, default='')
    to_status = models.CharField(max_length=16, choices=TransferStatus.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+'
    )
    note = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self) -> str:
        return f"{self.request_id}: {self.from_status or '-'} -> {self.to_status}"


class ReceiptKind(models.TextChoices):
    PROOF = 'proof', 'Proof of transfer'
    ADVICE = 'advice', 'Settlement advice'


class TransferReceipt(models.Model):
    """A stored artifact documenting a transfer request."""

    request = models.ForeignKey(
        TransferRequest,
        on_delete=models.PROTECT,
        related_name='receipts'
    )
    kind = models.CharField(
        max_length=16,
        choices=ReceiptKind.choices,
        default=ReceiptKind.PROOF
    )
    storage_name = models.CharField(max_length=255)
    url = models.CharField(max_length=500)
    content_type = models.CharField(max_length=64)
    size = models.PositiveIntegerField()
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+'
    )
    uploaded_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-uploaded_at']

    def __str__(self) -> str:
        return f"{self.kind} receipt for {self.request_id}"
