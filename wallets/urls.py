"""
URL configuration for the Wallets app.
"""

from django.urls import path
from .views import (
    ApproveAndSettleView,
    ApproveView,
    BackfillView,
    BalanceSummaryView,
    PartyBalanceChangeView,
    PartyBalanceView,
    ReceiptUploadView,
    RejectView,
    SettleView,
    TransferRequestDetailView,
    TransferRequestListView,
)

app_name = 'wallets'

urlpatterns = [
    path('balances/', BalanceSummaryView.as_view(), name='balances'),
    path('parties/<uuid:party_id>/balance/', PartyBalanceView.as_view(), name='party-balance'),
    path('parties/<uuid:party_id>/balance-change/', PartyBalanceChangeView.as_view(), name='party-balance-change'),
    path('requests/', TransferRequestListView.as_view(), name='requests'),
    path('requests/<uuid:request_id>/', TransferRequestDetailView.as_view(), name='request-detail'),
    path('requests/<uuid:request_id>/approve/', ApproveView.as_view(), name='request-approve'),
    path('requests/<uuid:request_id>/reject/', RejectView.as_view(), name='request-reject'),
    path('requests/<uuid:request_id>/settle/', SettleView.as_view(), name='request-settle'),
    path('requests/<uuid:request_id>/approve-and-settle/', ApproveAndSettleView.as_view(), name='request-approve-and-settle'),
    path('requests/<uuid:request_id>/receipts/', ReceiptUploadView.as_view(), name='request-receipts'),
    path('backfill/', BackfillView.as_view(), name='backfill'),
]
