"""
Billing — Serializers

@file billing/serializers.py
"""

from rest_framework import serializers

from records.models import MedicalRecord

from .models import Invoice, InvoiceItem


class InvoiceItemSerializer(serializers.ModelSerializer):
    quantity = serializers.IntegerField(min_value=1, default=1)
    unit_price = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0)

    class Meta:
        model = InvoiceItem
        fields = ['id', 'item_type', 'item_name', 'quantity', 'unit_price', 'total_price', 'notes']
        read_only_fields = ['id', 'total_price']


class InvoiceReadSerializer(serializers.ModelSerializer):
    payment_status_display = serializers.CharField(source='get_payment_status_display', read_only=True)
    payment_method_display = serializers.CharField(source='get_payment_method_display', read_only=True)
    record_number = serializers.CharField(source='medical_record.record_number', read_only=True)
    department_name = serializers.CharField(source='medical_record.department.name', read_only=True)
    doctor_name = serializers.CharField(source='medical_record.doctor.name', read_only=True, default=None)
    patient_name = serializers.CharField(source='patient.name', read_only=True)
    patient_mrn = serializers.CharField(source='patient.medical_record_number', read_only=True)
    cashier_name = serializers.CharField(source='cashier.name', read_only=True, default=None)
    items = InvoiceItemSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'medical_record', 'record_number',
            'department_name', 'doctor_name', 'patient', 'patient_name', 'patient_mrn',
            'subtotal', 'discount_percent', 'discount_amount', 'tax_amount',
            'total_amount', 'paid_amount', 'change_amount',
            'payment_method', 'payment_method_display',
            'payment_status', 'payment_status_display', 'payment_date',
            'cashier', 'cashier_name', 'notes', 'items', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class _InvoiceAmountsMixin(serializers.Serializer):
    discount_percent = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False,
    )
    discount_amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0, required=False)
    tax_amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class InvoiceCreateSerializer(_InvoiceAmountsMixin):
    medical_record = serializers.PrimaryKeyRelatedField(queryset=MedicalRecord.objects.all())
    items = InvoiceItemSerializer(many=True, required=False)
    include_prescriptions = serializers.BooleanField(default=False)


class InvoiceUpdateSerializer(_InvoiceAmountsMixin):
    items = InvoiceItemSerializer(many=True, required=False)


class InvoicePaySerializer(serializers.Serializer):
    paid_amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0)
    payment_method = serializers.ChoiceField(choices=Invoice.PaymentMethod.choices)
    notes = serializers.CharField(required=False, allow_blank=True)
