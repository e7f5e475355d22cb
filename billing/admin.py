"""
Billing — Django Admin Configuration

@file billing/admin.py
"""

from django.contrib import admin

from core.admin import GREY, render_badge

from .models import Invoice, InvoiceItem


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    fields = ('item_type', 'item_name', 'quantity', 'unit_price', 'total_price')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = (
        'invoice_number', 'patient', 'total_amount', 'payment_badge',
        'payment_method', 'payment_date', 'cashier',
    )
    list_filter = ('payment_status', 'payment_method', 'created_at')
    search_fields = ('invoice_number', 'patient__name', 'patient__medical_record_number')
    list_select_related = ('patient', 'cashier')
    date_hierarchy = 'created_at'
    readonly_fields = (
        'id', 'invoice_number', 'medical_record', 'patient', 'subtotal',
        'discount_amount', 'total_amount', 'paid_amount', 'change_amount',
        'payment_status', 'payment_date', 'cashier', 'created_at', 'updated_at',
    )
    inlines = [InvoiceItemInline]

    payment_colors = {
        Invoice.PaymentStatus.UNPAID: '#ef4444',
        Invoice.PaymentStatus.PARTIAL: '#eab308',
        Invoice.PaymentStatus.PAID: '#22c55e',
    }

    def has_delete_permission(self, request, obj=None):
        return obj is None or not obj.is_paid

    @admin.display(description='Payment', ordering='payment_status')
    def payment_badge(self, obj):
        return render_badge(obj.get_payment_status_display(), self.payment_colors.get(obj.payment_status, GREY))
