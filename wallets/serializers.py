"""
DRF Serializers for the Wallets app.
"""

from decimal import Decimal
from rest_framework import serializers

from .codes import BACKFILL_TARGETS
from .models import TransferReceipt, TransferRequest, TransferStatus


class TransferCreateSerializer(serializers.Serializer):
    """
    Serializer for opening a transfer request.

    Validates:
    - party_id: must be a UUID
    - amount: must be a positive decimal with max 2 decimal places
    """

    party_id = serializers.UUIDField(
        help_text='Key of the party whose balance is drawn down'
    )
    amount = serializers.DecimalField(
        max_digits=19,
        decimal_places=2,
        min_value=Decimal('0.01'),
        help_text='Amount to transfer (must be > 0)'
    )
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RejectSerializer(serializers.Serializer):
    """Serializer for rejecting a transfer request."""

    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ReceiptUploadSerializer(serializers.Serializer):
    """Serializer for a receipt upload (multipart)."""

    file = serializers.FileField()


class BackfillSerializer(serializers.Serializer):
    """Serializer for triggering a short-code backfill."""

    collection = serializers.ChoiceField(choices=sorted(BACKFILL_TARGETS))


class TransferListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TransferStatus.choices, required=False)
    party_id = serializers.UUIDField(required=False)


class TransferReceiptSerializer(serializers.ModelSerializer):

    class Meta:
        model = TransferReceipt
        fields = ('id', 'kind', 'url', 'content_type', 'size', 'uploaded_at')


class TransferRequestSerializer(serializers.ModelSerializer):
    """Read representation of a transfer request."""

    party_id = serializers.UUIDField(read_only=True)
    party_name = serializers.CharField(source='party.display_name', read_only=True)
    approved_by = serializers.StringRelatedField()
    rejected_by = serializers.StringRelatedField()
    transferred_by = serializers.StringRelatedField()

    class Meta:
        model = TransferRequest
        fields = (
            'id',
            'party_id',
            'party_name',
            'transfer_number',
            'transfer_amount',
            'status',
            'version',
            'created_at',
            'approved_by',
            'approved_at',
            'rejected_by',
            'rejected_at',
            'rejection_reason',
            'transferred_by',
            'transferred_at',
            'receipt_url',
            'notes',
        )
        read_only_fields = fields


class BalanceSerializer(serializers.Serializer):
    """Serializer for a party balance response."""

    party_id = serializers.UUIDField()
    balance = serializers.DecimalField(max_digits=19, decimal_places=2)


class BalanceChangeSerializer(serializers.Serializer):
    """Serializer for a balance change response."""

    party_id = serializers.UUIDField()
    current = serializers.DecimalField(max_digits=19, decimal_places=2)
    prior_period = serializers.DecimalField(max_digits=19, decimal_places=2)
    percent_change = serializers.DecimalField(max_digits=None, decimal_places=2, allow_null=True)
    is_increase = serializers.BooleanField()
    has_prior_data = serializers.BooleanField()
