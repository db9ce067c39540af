"""
Admin configuration for the Wallets app.
"""

from django.contrib import admin

from .commissions import accrue_order_commission
from .models import (
    CommissionEntry,
    CommissionRate,
    Order,
    OrderStatus,
    Party,
    TransferReceipt,
    TransferRequest,
    TransferRequestEvent,
)

LEDGER_ORDER_FIELDS = ('party', 'status', 'total_price', 'fuel_type', 'litres', 'completed_at')


@admin.register(Party)
class PartyAdmin(admin.ModelAdmin):
    """Admin configuration for Party model."""
    
    list_display = ('display_name', 'email', 'kind', 'wallet_number', 'reference_code', 'created_at')
    list_filter = ('kind',)
    search_fields = ('display_name', 'email', 'reference_code', 'wallet_number')
    readonly_fields = ('id', 'reference_code', 'created_at')


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Admin configuration for Order model.

    A completed order is a ledger fact: its amounts and status are locked.
    Completing an order here accrues its commission through `Order.save`.
    """
    
    list_display = ('reference_code', 'party', 'status', 'total_price', 'fuel_type', 'litres', 'completed_at')
    list_filter = ('status', 'fuel_type')
    search_fields = ('reference_code', 'party__display_name', 'party__email')
    ordering = ('-created_at',)
    readonly_fields = ('reference_code', 'created_at')
    actions = ['accrue_commission']

    def get_readonly_fields(self, request, obj=None):
        if obj is not None and obj.status == OrderStatus.COMPLETED:
            return self.readonly_fields + LEDGER_ORDER_FIELDS
        return self.readonly_fields

    def has_delete_permission(self, request, obj=None):
        """Completed orders feed balances and cannot be deleted."""
        if obj is not None and obj.status == OrderStatus.COMPLETED:
            return False
        return super().has_delete_permission(request, obj)

    @admin.action(description='Accrue commission for selected completed orders')
    def accrue_commission(self, request, queryset):
        accrued = 0
        for order in queryset.filter(status=OrderStatus.COMPLETED):
            if accrue_order_commission(order) is not None:
                accrued += 1
        self.message_user(request, f'Commission accrued for {accrued} orders')


@admin.register(CommissionEntry)
class CommissionEntryAdmin(admin.ModelAdmin):
    """Commission entries are ledger facts and read-only."""

    list_display = ('party', 'order', 'amount', 'accrued_at', 'note')
    search_fields = ('party__display_name', 'party__email')
    readonly_fields = ('party', 'order', 'amount', 'accrued_at', 'note')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CommissionRate)
class CommissionRateAdmin(admin.ModelAdmin):
    list_display = ('category', 'rate_per_litre', 'updated_at')


class TransferRequestEventInline(admin.TabularInline):
    model = TransferRequestEvent
    extra = 0
    can_delete = False
    readonly_fields = ('from_status', 'to_status', 'actor', 'note', 'created_at')

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(TransferRequest)
class TransferRequestAdmin(admin.ModelAdmin):
    """
    Admin configuration for TransferRequest model.

    Requests are read-only here; status only changes through the API so
    every transition goes through the compare-and-set path.
    """
    
    list_display = ('transfer_number', 'party', 'transfer_amount', 'status', 'created_at', 'transferred_at')
    list_filter = ('status', 'created_at')
    search_fields = ('transfer_number', 'party__display_name', 'party__email')
    ordering = ('-created_at',)
    inlines = [TransferRequestEventInline]
    
    def has_add_permission(self, request):
        """Transfer requests should only be created through the API."""
        return False
    
    def has_change_permission(self, request, obj=None):
        """Transitions go through the state machine only."""
        return False
    
    def has_delete_permission(self, request, obj=None):
        """Transfer requests are an audit record and cannot be deleted."""
        return False


@admin.register(TransferReceipt)
class TransferReceiptAdmin(admin.ModelAdmin):
    list_display = ('request', 'kind', 'content_type', 'size', 'uploaded_by', 'uploaded_at')
    list_filter = ('kind',)
    readonly_fields = ('request', 'kind', 'storage_name', 'url', 'content_type', 'size', 'uploaded_by', 'uploaded_at')
    
    def has_add_permission(self, request):
        return False
    
    def has_delete_permission(self, request, obj=None):
        return False
