"""
Pharmacy — Serializers

@file pharmacy/serializers.py
"""

from django.utils import timezone
from rest_framework import serializers

from .models import Medicine, MedicineBatch, MedicineCategory, StockMovement


class MedicineCategorySerializer(serializers.ModelSerializer):
    medicines_count = serializers.SerializerMethodField()

    class Meta:
        model = MedicineCategory
        fields = ['id', 'name', 'description', 'medicines_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_medicines_count(self, obj):
        return obj.medicines.filter(is_active=True).count()


class MedicineBatchSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    is_expired = serializers.BooleanField(read_only=True)
    is_expiring_soon = serializers.BooleanField(read_only=True)
    days_until_expiry = serializers.IntegerField(read_only=True)

    class Meta:
        model = MedicineBatch
        fields = [
            'id', 'medicine', 'batch_number', 'expiry_date', 'initial_qty',
            'current_qty', 'purchase_price', 'status', 'status_display',
            'is_expired', 'is_expiring_soon', 'days_until_expiry', 'created_at',
        ]
        read_only_fields = fields


class ExpiringBatchSerializer(MedicineBatchSerializer):
    medicine_code = serializers.CharField(source='medicine.code', read_only=True)
    medicine_name = serializers.CharField(source='medicine.name', read_only=True)

    class Meta(MedicineBatchSerializer.Meta):
        fields = MedicineBatchSerializer.Meta.fields + ['medicine_code', 'medicine_name']
        read_only_fields = fields


class MedicineReadSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    current_stock = serializers.IntegerField(read_only=True)
    stock_status = serializers.CharField(read_only=True)

    class Meta:
        model = Medicine
        fields = [
            'id', 'code', 'name', 'generic_name', 'category', 'category_name',
            'unit', 'unit_conversion', 'purchase_price', 'margin_percentage',
            'ppn_percentage', 'is_ppn_included', 'price_before_ppn', 'selling_price',
            'min_stock', 'max_stock', 'current_stock', 'stock_status',
            'manufacturer', 'description', 'requires_prescription', 'is_active',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class MedicineDetailSerializer(MedicineReadSerializer):
    batches = serializers.SerializerMethodField()

    class Meta(MedicineReadSerializer.Meta):
        fields = MedicineReadSerializer.Meta.fields + ['batches']
        read_only_fields = fields

    def get_batches(self, obj):
        qs = obj.batches.filter(current_qty__gt=0).order_by('expiry_date')
        return MedicineBatchSerializer(qs, many=True).data


class MedicineWriteSerializer(serializers.ModelSerializer):
    code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    margin_percentage = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False,
    )
    ppn_percentage = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False,
    )

    class Meta:
        model = Medicine
        fields = [
            'code', 'name', 'generic_name', 'category', 'unit', 'unit_conversion',
            'purchase_price', 'margin_percentage', 'ppn_percentage', 'is_ppn_included',
            'selling_price', 'min_stock', 'max_stock', 'manufacturer', 'description',
            'requires_prescription', 'is_active',
        ]

    def validate_code(self, value):
        value = (value or '').strip().upper()
        if not value:
            return ''
        qs = Medicine.objects.filter(code=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('A medicine with this code already exists.')
        return value

    def validate(self, attrs):
        min_stock = attrs.get('min_stock', getattr(self.instance, 'min_stock', 10))
        max_stock = attrs.get('max_stock', getattr(self.instance, 'max_stock', 100))
        if max_stock < min_stock:
            raise serializers.ValidationError({'max_stock': ['Maximum stock must not be below minimum stock.']})
        return attrs


class CalculatePriceSerializer(serializers.Serializer):
    purchase_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    margin_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100)
    ppn_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100)


class StockMovementSerializer(serializers.ModelSerializer):
    medicine_code = serializers.CharField(source='medicine.code', read_only=True)
    medicine_name = serializers.CharField(source='medicine.name', read_only=True)
    batch_number = serializers.CharField(source='batch.batch_number', read_only=True, default=None)
    movement_type_display = serializers.CharField(source='get_movement_type_display', read_only=True)
    reason_display = serializers.CharField(source='get_reason_display', read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'movement_number', 'medicine', 'medicine_code', 'medicine_name',
            'batch', 'batch_number', 'movement_type', 'movement_type_display',
            'reason', 'reason_display', 'quantity', 'unit', 'stock_before',
            'stock_after', 'reference_type', 'reference_id', 'notes',
            'movement_date', 'created_by', 'created_by_name', 'created_at',
        ]
        read_only_fields = fields


class StockAdjustmentSerializer(serializers.Serializer):
    ADJUSTMENT_REASONS = [
        StockMovement.Reason.ADJUSTMENT_PLUS,
        StockMovement.Reason.ADJUSTMENT_MINUS,
        StockMovement.Reason.EXPIRED,
        StockMovement.Reason.DAMAGE,
        StockMovement.Reason.RETURN_SUPPLIER,
        StockMovement.Reason.RETURN_PATIENT,
        StockMovement.Reason.INITIAL_STOCK,
        StockMovement.Reason.OTHER,
    ]

    medicine = serializers.PrimaryKeyRelatedField(queryset=Medicine.objects.all())
    batch = serializers.PrimaryKeyRelatedField(
        queryset=MedicineBatch.objects.all(), required=False, allow_null=True,
    )
    adjustment_type = serializers.ChoiceField(choices=['plus', 'minus'])
    quantity = serializers.IntegerField(min_value=1)
    reason = serializers.ChoiceField(choices=ADJUSTMENT_REASONS)
    batch_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        batch = attrs.get('batch')
        if batch is not None and batch.medicine_id != attrs['medicine'].pk:
            raise serializers.ValidationError({'batch': ['Batch does not belong to this medicine.']})
        expiry_date = attrs.get('expiry_date')
        if batch is None and expiry_date is not None and expiry_date <= timezone.localdate():
            raise serializers.ValidationError({'expiry_date': ['Expiry date must be in the future.']})
        return attrs
