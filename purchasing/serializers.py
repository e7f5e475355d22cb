"""
Purchasing — Serializers

@file purchasing/serializers.py
"""

from django.utils import timezone
from rest_framework import serializers

from pharmacy.models import Medicine

from .models import GoodsReceipt, GoodsReceiptItem, PurchaseOrder, PurchaseOrderItem, Supplier


class SupplierSerializer(serializers.ModelSerializer):
    code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    payment_terms = serializers.IntegerField(min_value=0, max_value=365, required=False)
    purchase_orders_count = serializers.SerializerMethodField()

    class Meta:
        model = Supplier
        fields = [
            'id', 'code', 'name', 'contact_person', 'phone', 'email', 'address',
            'city', 'npwp', 'payment_terms', 'is_active', 'notes',
            'purchase_orders_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_purchase_orders_count(self, obj):
        return obj.purchase_orders.count()

    def validate_code(self, value):
        value = (value or '').strip().upper()
        if not value:
            return ''
        qs = Supplier.objects.filter(code=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('A supplier with this code already exists.')
        return value


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------

class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    medicine_code = serializers.CharField(source='medicine.code', read_only=True)
    medicine_name = serializers.CharField(source='medicine.name', read_only=True)
    remaining_quantity = serializers.IntegerField(read_only=True)
    is_fully_received = serializers.BooleanField(read_only=True)

    class Meta:
        model = PurchaseOrderItem
        fields = [
            'id', 'medicine', 'medicine_code', 'medicine_name', 'quantity', 'unit',
            'unit_price', 'discount_percent', 'discount_amount', 'tax_percent',
            'tax_amount', 'total_price', 'received_quantity', 'remaining_quantity',
            'is_fully_received', 'notes',
        ]
        read_only_fields = fields


class PurchaseOrderReadSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)
    approved_by_name = serializers.CharField(source='approved_by.name', read_only=True, default=None)
    rejected_by_name = serializers.CharField(source='rejected_by.name', read_only=True, default=None)
    items = PurchaseOrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'po_number', 'supplier', 'supplier_name', 'order_date',
            'expected_delivery_date', 'status', 'status_display', 'subtotal',
            'tax_amount', 'discount_amount', 'total_amount',
            'created_by', 'created_by_name',
            'approved_by', 'approved_by_name', 'approved_at', 'approval_notes',
            'rejected_by', 'rejected_by_name', 'rejected_at', 'rejection_reason',
            'notes', 'items', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class PurchaseOrderItemInputSerializer(serializers.Serializer):
    medicine = serializers.PrimaryKeyRelatedField(queryset=Medicine.objects.all())
    quantity = serializers.IntegerField(min_value=1)
    unit = serializers.CharField(max_length=50)
    unit_price = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0)
    discount_percent = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False, default=0,
    )
    tax_percent = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False, default=0,
    )
    notes = serializers.CharField(required=False, allow_blank=True)


class PurchaseOrderWriteSerializer(serializers.Serializer):
    supplier = serializers.PrimaryKeyRelatedField(queryset=Supplier.objects.all())
    order_date = serializers.DateField()
    expected_delivery_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = PurchaseOrderItemInputSerializer(many=True, allow_empty=False)

    def validate(self, attrs):
        order_date = attrs.get('order_date', getattr(self.instance, 'order_date', None))
        expected = attrs.get('expected_delivery_date', getattr(self.instance, 'expected_delivery_date', None))
        if order_date and expected and expected < order_date:
            raise serializers.ValidationError({
                'expected_delivery_date': ['Expected delivery date cannot be before the order date.'],
            })
        return attrs


class ApproveSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField()


# ---------------------------------------------------------------------------
# Goods receipts
# ---------------------------------------------------------------------------

class GoodsReceiptItemSerializer(serializers.ModelSerializer):
    medicine_code = serializers.CharField(source='medicine.code', read_only=True)
    medicine_name = serializers.CharField(source='medicine.name', read_only=True)
    days_until_expiry = serializers.IntegerField(read_only=True)
    is_expiring_soon = serializers.BooleanField(read_only=True)

    class Meta:
        model = GoodsReceiptItem
        fields = [
            'id', 'purchase_order_item', 'medicine', 'medicine_code', 'medicine_name',
            'batch', 'quantity', 'unit', 'unit_price', 'total_price', 'batch_number',
            'expiry_date', 'days_until_expiry', 'is_expiring_soon', 'notes',
        ]
        read_only_fields = fields


class GoodsReceiptReadSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    po_number = serializers.CharField(source='purchase_order.po_number', read_only=True, default=None)
    received_by_name = serializers.CharField(source='received_by.name', read_only=True, default=None)
    items = GoodsReceiptItemSerializer(many=True, read_only=True)

    class Meta:
        model = GoodsReceipt
        fields = [
            'id', 'receipt_number', 'purchase_order', 'po_number', 'supplier',
            'supplier_name', 'receipt_date', 'supplier_invoice_number',
            'supplier_invoice_date', 'status', 'status_display', 'total_amount',
            'received_by', 'received_by_name', 'notes', 'items',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class GoodsReceiptItemInputSerializer(serializers.Serializer):
    purchase_order_item = serializers.PrimaryKeyRelatedField(
        queryset=PurchaseOrderItem.objects.all(), required=False, allow_null=True,
    )
    medicine = serializers.PrimaryKeyRelatedField(queryset=Medicine.objects.all())
    quantity = serializers.IntegerField(min_value=1)
    unit = serializers.CharField(max_length=50)
    unit_price = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0)
    batch_number = serializers.CharField(max_length=50)
    expiry_date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_expiry_date(self, value):
        if value <= timezone.localdate():
            raise serializers.ValidationError('Expiry date must be in the future.')
        return value


class GoodsReceiptWriteSerializer(serializers.Serializer):
    purchase_order = serializers.PrimaryKeyRelatedField(
        queryset=PurchaseOrder.objects.all(), required=False, allow_null=True,
    )
    supplier = serializers.PrimaryKeyRelatedField(queryset=Supplier.objects.all())
    receipt_date = serializers.DateField()
    supplier_invoice_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    supplier_invoice_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = GoodsReceiptItemInputSerializer(many=True, allow_empty=False)


class ReceiptPrefillSerializer(serializers.Serializer):
    """Shape of ``GoodsReceiptService.prefill_from_order``."""

    purchase_order = PurchaseOrderReadSerializer()
    items = serializers.ListField(child=serializers.DictField())
