"""
Pharmacy — Django Admin Configuration

Medicine catalogue with a batch inline coloured by expiry, and a
read-only stock ledger (movements are insert only).

@file pharmacy/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from core.admin import StatusBadgeMixin, render_badge

from .models import Medicine, MedicineBatch, MedicineCategory, StockMovement

BATCH_STATUS_COLORS = {
    'available': '#22c55e',
    'low': '#eab308',
    'expired': '#ef4444',
    'empty': '#6b7280',
}

STOCK_STATUS_COLORS = {
    'out_of_stock': '#ef4444',
    'low': '#eab308',
    'normal': '#22c55e',
    'overstock': '#3b82f6',
}


def _render_expiry_badge(batch):
    days = batch.days_until_expiry
    if days <= 0:
        return render_badge(_('Expired'), '#ef4444')
    if batch.is_expiring_soon:
        return render_badge(f'{days}d', '#f97316')
    return render_badge(batch.expiry_date.isoformat(), '#22c55e')


class MedicineBatchInline(admin.TabularInline):
    model = MedicineBatch
    fk_name = 'medicine'
    extra = 0
    can_delete = False
    readonly_fields = ('batch_number', 'expiry_date', 'expiry_badge', 'initial_qty', 'current_qty', 'status')
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False

    @admin.display(description=_('Expiry'))
    def expiry_badge(self, obj):
        if not obj.pk:
            return '—'
        return _render_expiry_badge(obj)


@admin.register(MedicineCategory)
class MedicineCategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'description', 'created_at')
    search_fields = ('name',)


@admin.register(Medicine)
class MedicineAdmin(admin.ModelAdmin):
    list_display = (
        'code', 'name', 'generic_name', 'category', 'unit',
        'selling_price', 'current_stock', 'stock_badge', 'is_active',
    )
    list_filter = ('category', 'is_active', 'requires_prescription')
    search_fields = ('code', 'name', 'generic_name', 'manufacturer')
    readonly_fields = ('id', 'price_before_ppn', 'created_at', 'updated_at', 'created_by', 'updated_by')
    list_select_related = ('category',)
    list_per_page = 30
    inlines = [MedicineBatchInline]

    fieldsets = (
        (None, {
            'fields': ('id', 'code', 'name', 'generic_name', 'category', 'unit', 'unit_conversion'),
        }),
        (_('Pricing'), {
            'fields': (
                'purchase_price', 'margin_percentage', 'ppn_percentage',
                'is_ppn_included', 'price_before_ppn', 'selling_price',
            ),
        }),
        (_('Stock levels'), {
            'fields': ('min_stock', 'max_stock'),
        }),
        (_('Details'), {
            'fields': ('manufacturer', 'description', 'requires_prescription', 'is_active'),
        }),
        (_('Audit'), {
            'fields': ('created_at', 'updated_at', 'created_by', 'updated_by'),
            'classes': ('collapse',),
        }),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).with_stock()

    @admin.display(description=_('Stock'), ordering='stock_total')
    def current_stock(self, obj):
        return obj.current_stock

    @admin.display(description=_('Stock status'))
    def stock_badge(self, obj):
        value = obj.stock_status
        return render_badge(Medicine.StockStatus(value).label, STOCK_STATUS_COLORS.get(value))


@admin.register(MedicineBatch)
class MedicineBatchAdmin(StatusBadgeMixin, admin.ModelAdmin):
    list_display = (
        'batch_number', 'medicine', 'expiry_date', 'expiry_badge',
        'initial_qty', 'current_qty', 'status_badge',
    )
    list_filter = ('status', 'expiry_date')
    search_fields = ('batch_number', 'medicine__name', 'medicine__code')
    list_select_related = ('medicine',)
    date_hierarchy = 'expiry_date'
    readonly_fields = ('id', 'initial_qty', 'current_qty', 'status', 'created_at', 'updated_at')
    status_colors = BATCH_STATUS_COLORS

    @admin.display(description=_('Expiry'))
    def expiry_badge(self, obj):
        return _render_expiry_badge(obj)

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        'movement_number', 'movement_date', 'medicine', 'batch', 'movement_type',
        'reason', 'quantity', 'stock_before', 'stock_after', 'created_by',
    )
    list_filter = ('movement_type', 'reason', 'movement_date')
    search_fields = ('movement_number', 'medicine__name', 'medicine__code', 'batch__batch_number')
    readonly_fields = (
        'id', 'movement_number', 'medicine', 'batch', 'movement_type', 'reason',
        'quantity', 'unit', 'stock_before', 'stock_after', 'reference_type',
        'reference_id', 'notes', 'movement_date', 'created_by', 'created_at',
    )
    list_select_related = ('medicine', 'batch', 'created_by')
    show_full_result_count = False
    list_per_page = 50
    date_hierarchy = 'movement_date'
    ordering = ('-movement_date',)

    fieldsets = (
        (_('Movement'), {
            'fields': (
                'id', 'movement_number', 'movement_date', 'medicine', 'batch',
                'movement_type', 'reason', 'quantity', 'unit',
            ),
        }),
        (_('Stock'), {
            'fields': ('stock_before', 'stock_after'),
        }),
        (_('Reference'), {
            'fields': ('reference_type', 'reference_id', 'notes'),
        }),
        (_('Audit'), {
            'fields': ('created_by', 'created_at'),
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
