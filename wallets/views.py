"""
API Views for the Wallets app.

Views are thin: they validate the request shape, call one engine operation
and map its typed errors onto HTTP status codes. All endpoints require an
admin session (see REST_FRAMEWORK in settings).
"""

from django.conf import settings

from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response

from .balances import balance_summary, compute_balance, compute_balance_change
from .codes import backfill_short_codes
from .errors import (
    AttachmentError,
    ConflictError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
    WalletError,
)
from .receipts import attach_receipt
from .serializers import (
    BackfillSerializer,
    BalanceChangeSerializer,
    BalanceSerializer,
    ReceiptUploadSerializer,
    RejectSerializer,
    TransferCreateSerializer,
    TransferReceiptSerializer,
    TransferListQuerySerializer,
    TransferRequestSerializer,
)
from .transfers import (
    approve_and_settle,
    approve_transfer_request,
    create_transfer_request,
    get_transfer_request,
    list_transfer_requests,
    reject_transfer_request,
    settle_transfer_request,
)


def error_response(exc: WalletError) -> Response:
    """Map an engine error onto an HTTP response."""
    body = {'error': str(exc)}
    if isinstance(exc, NotFoundError):
        return Response(body, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, ValidationError):
        return Response(body, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, ConflictError):
        body['current_status'] = exc.current_status
        return Response(body, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, TransientStoreError):
        body['retryable'] = True
        return Response(body, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    if isinstance(exc, AttachmentError):
        body['retryable'] = exc.retryable
        code = status.HTTP_502_BAD_GATEWAY if exc.retryable else status.HTTP_400_BAD_REQUEST
        return Response(body, status=code)
    return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class PartyBalanceView(APIView):
    """
    GET /api/wallets/parties/<party_id>/balance/

    Current balance of a party, derived from its ledger facts.
    """

    def get(self, request, party_id):
        try:
            balance = compute_balance(party_id)
        except WalletError as exc:
            return error_response(exc)
        return Response(BalanceSerializer({'party_id': party_id, 'balance': balance}).data)


class PartyBalanceChangeView(APIView):
    """
    GET /api/wallets/parties/<party_id>/balance-change/

    Current balance against the balance at the start of the previous month.
    """

    def get(self, request, party_id):
        try:
            change = compute_balance_change(party_id)
        except WalletError as exc:
            return error_response(exc)
        data = {
            'party_id': party_id,
            'current': change.current,
            'prior_period': change.prior_period,
            'percent_change': change.percent_change,
            'is_increase': change.is_increase,
            'has_prior_data': change.has_prior_data,
        }
        return Response(BalanceChangeSerializer(data).data)


class BalanceSummaryView(APIView):
    """
    GET /api/wallets/balances/

    Every party with its current balance (the main wallet table).
    """

    def get(self, request):
        try:
            rows = balance_summary()
        except WalletError as exc:
            return error_response(exc)
        return Response({
            'parties': [
                {
                    'party_id': str(party.pk),
                    'display_name': party.display_name,
                    'wallet_number': party.wallet_number,
                    'balance': str(balance),
                }
                for party, balance in rows
            ],
            'count': len(rows),
        })


class TransferRequestListView(APIView):
    """
    GET  /api/wallets/requests/  list requests, optionally by status / party
    POST /api/wallets/requests/  open a pending request

    POST returns:
        - 201: request created
        - 400: invalid amount, or amount exceeds balance
        - 404: unknown party
        - 409: the party already has a pending request
    """

    def get(self, request):
        query = TransferListQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response({'error': query.errors}, status=status.HTTP_400_BAD_REQUEST)
        try:
            requests = list_transfer_requests(
                status=query.validated_data.get('status'),
                party_key=query.validated_data.get('party_id'),
            )
        except WalletError as exc:
            return error_response(exc)
        return Response({
            'requests': TransferRequestSerializer(requests, many=True).data,
            'count': len(requests),
        })

    def post(self, request):
        serializer = TransferCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'error': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )
        data = serializer.validated_data
        try:
            transfer = create_transfer_request(
                data['party_id'],
                data['amount'],
                actor=request.user,
                notes=data['notes'],
            )
        except WalletError as exc:
            return error_response(exc)
        return Response(
            TransferRequestSerializer(transfer).data,
            status=status.HTTP_201_CREATED
        )


class TransferRequestDetailView(APIView):
    """
    GET /api/wallets/requests/<request_id>/
    """

    def get(self, request, request_id):
        try:
            transfer = get_transfer_request(request_id)
        except WalletError as exc:
            return error_response(exc)
        data = TransferRequestSerializer(transfer).data
        data['events'] = [
            {
                'from_status': event.from_status,
                'to_status': event.to_status,
                'actor': str(event.actor) if event.actor else None,
                'note': event.note,
                'created_at': event.created_at.isoformat(),
            }
            for event in transfer.events.select_related('actor')
        ]
        data['receipts'] = TransferReceiptSerializer(transfer.receipts.all(), many=True).data
        return Response(data)


class TransitionView(APIView):
    """Base view for a single state-machine transition."""

    def transition(self, request, request_id):
        raise NotImplementedError

    def post(self, request, request_id):
        try:
            transfer = self.transition(request, request_id)
        except WalletError as exc:
            return error_response(exc)
        return Response(TransferRequestSerializer(transfer).data)


class ApproveView(TransitionView):
    """POST /api/wallets/requests/<request_id>/approve/"""

    def transition(self, request, request_id):
        return approve_transfer_request(request_id, request.user)


class RejectView(TransitionView):
    """POST /api/wallets/requests/<request_id>/reject/"""

    def post(self, request, request_id):
        serializer = RejectSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        self.reason = serializer.validated_data['reason']
        return super().post(request, request_id)

    def transition(self, request, request_id):
        return reject_transfer_request(request_id, request.user, reason=self.reason)


class SettleView(TransitionView):
    """POST /api/wallets/requests/<request_id>/settle/"""

    def transition(self, request, request_id):
        return settle_transfer_request(request_id, request.user)


class ApproveAndSettleView(TransitionView):
    """POST /api/wallets/requests/<request_id>/approve-and-settle/"""

    def transition(self, request, request_id):
        return approve_and_settle(request_id, request.user)


class ReceiptUploadView(APIView):
    """
    POST /api/wallets/requests/<request_id>/receipts/

    Multipart upload of an image or PDF (5 MB max) documenting the request.
    """

    def post(self, request, request_id):
        serializer = ReceiptUploadSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        upload = serializer.validated_data['file']
        # Oversized uploads are refused before they are read into memory.
        if upload.size > settings.WALLET_RECEIPT_MAX_BYTES:
            return error_response(AttachmentError(
                f'Receipt is {upload.size} bytes; the limit is {settings.WALLET_RECEIPT_MAX_BYTES}'
            ))
        try:
            url = attach_receipt(
                request_id,
                upload.read(),
                actor=request.user,
                filename=upload.name,
            )
        except WalletError as exc:
            return error_response(exc)
        return Response({'receipt_url': url}, status=status.HTTP_201_CREATED)


class BackfillView(APIView):
    """
    POST /api/wallets/backfill/

    Assign short codes to every record of a collection that lacks one.
    """

    def post(self, request):
        serializer = BackfillSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        collection = serializer.validated_data['collection']
        try:
            updated = backfill_short_codes(collection)
        except WalletError as exc:
            return error_response(exc)
        return Response({'collection': collection, 'updated': updated})
