"""
Purchasing — Django Admin Configuration

Orders and receipts are read-mostly here: status changes belong to the
API workflow, so the status column is a badge and not an editable field.

@file purchasing/admin.py
"""

from django.contrib import admin

from core.admin import StatusBadgeMixin

from .models import GoodsReceipt, GoodsReceiptItem, PurchaseOrder, PurchaseOrderItem, Supplier


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    fields = (
        'medicine', 'quantity', 'unit', 'unit_price', 'discount_percent',
        'tax_percent', 'total_price', 'received_quantity',
    )
    readonly_fields = ('total_price', 'received_quantity')
    autocomplete_fields = ('medicine',)


class GoodsReceiptItemInline(admin.TabularInline):
    model = GoodsReceiptItem
    extra = 0
    can_delete = False
    fields = ('medicine', 'batch_number', 'expiry_date', 'quantity', 'unit_price', 'total_price', 'batch')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'contact_person', 'phone', 'city', 'payment_terms', 'is_active')
    list_filter = ('is_active', 'city')
    search_fields = ('code', 'name', 'contact_person', 'phone', 'npwp')
    readonly_fields = ('id', 'created_at', 'updated_at')


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(StatusBadgeMixin, admin.ModelAdmin):
    list_display = ('po_number', 'supplier', 'order_date', 'status_badge', 'total_amount', 'created_by')
    list_filter = ('status', 'supplier', 'order_date')
    search_fields = ('po_number', 'supplier__name')
    list_select_related = ('supplier', 'created_by')
    date_hierarchy = 'order_date'
    readonly_fields = (
        'id', 'po_number', 'status', 'subtotal', 'tax_amount', 'discount_amount',
        'total_amount', 'approved_by', 'approved_at', 'rejected_by', 'rejected_at',
        'created_at', 'updated_at', 'created_by',
    )
    inlines = [PurchaseOrderItemInline]
    status_colors = {
        'draft': '#6b7280',
        'pending_approval': '#eab308',
        'approved': '#3b82f6',
        'rejected': '#ef4444',
        'ordered': '#8b5cf6',
        'partial_received': '#f97316',
        'completed': '#22c55e',
        'cancelled': '#9ca3af',
    }

    def has_delete_permission(self, request, obj=None):
        return obj is None or obj.status == PurchaseOrder.Status.DRAFT


@admin.register(GoodsReceipt)
class GoodsReceiptAdmin(StatusBadgeMixin, admin.ModelAdmin):
    list_display = (
        'receipt_number', 'supplier', 'purchase_order', 'receipt_date',
        'status_badge', 'total_amount', 'received_by',
    )
    list_filter = ('status', 'supplier', 'receipt_date')
    search_fields = ('receipt_number', 'supplier_invoice_number', 'supplier__name')
    list_select_related = ('supplier', 'purchase_order', 'received_by')
    date_hierarchy = 'receipt_date'
    readonly_fields = ('id', 'receipt_number', 'status', 'total_amount', 'received_by', 'created_at', 'updated_at')
    inlines = [GoodsReceiptItemInline]
    status_colors = {
        'draft': '#6b7280',
        'completed': '#22c55e',
        'cancelled': '#9ca3af',
    }

    def has_delete_permission(self, request, obj=None):
        return obj is None or obj.status == GoodsReceipt.Status.DRAFT
