"""
Records — Serializers

@file records/serializers.py
"""

from django.core.validators import FileExtensionValidator
from rest_framework import serializers

from clinic.models import Service
from queues.models import Queue

from .models import (
    ICD10_CHAPTERS,
    IcdCode,
    MedicalRecord,
    MedicalRecordDiagnosis,
    MedicalRecordServiceLine,
    Prescription,
    PrescriptionItem,
)
from .services import RECORD_FIELDS


class MedicalRecordDiagnosisSerializer(serializers.ModelSerializer):
    icd = serializers.PrimaryKeyRelatedField(
        queryset=IcdCode.objects.filter(is_active=True, type=IcdCode.Type.ICD10),
        required=False, allow_null=True,
    )

    class Meta:
        model = MedicalRecordDiagnosis
        fields = ['id', 'icd', 'icd_code', 'icd_name', 'diagnosis_type', 'notes']
        read_only_fields = ['id']

    def validate(self, attrs):
        if not attrs.get('icd') and not attrs.get('icd_code') and not attrs.get('icd_name'):
            raise serializers.ValidationError('Pick a catalogue code or enter an ICD code or name.')
        return attrs


class MedicalRecordServiceLineSerializer(serializers.ModelSerializer):
    service = serializers.PrimaryKeyRelatedField(
        queryset=Service.objects.all(), required=False, allow_null=True,
    )
    quantity = serializers.IntegerField(min_value=1, default=1)
    unit_price = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0)

    class Meta:
        model = MedicalRecordServiceLine
        fields = ['id', 'service', 'service_name', 'quantity', 'unit_price', 'total_price', 'notes']
        read_only_fields = ['id', 'total_price']


# ---------------------------------------------------------------------------
# Prescriptions
# ---------------------------------------------------------------------------

class PrescriptionItemSerializer(serializers.ModelSerializer):
    quantity = serializers.IntegerField(min_value=1, default=1)
    full_instructions = serializers.CharField(read_only=True)

    class Meta:
        model = PrescriptionItem
        fields = [
            'id', 'medicine_name', 'dosage', 'frequency', 'duration', 'quantity',
            'instructions', 'notes', 'full_instructions',
        ]
        read_only_fields = ['id']


class PrescriptionReadSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    record_number = serializers.CharField(source='medical_record.record_number', read_only=True)
    patient = serializers.UUIDField(source='medical_record.patient_id', read_only=True)
    patient_name = serializers.CharField(source='medical_record.patient.name', read_only=True)
    patient_mrn = serializers.CharField(source='medical_record.patient.medical_record_number', read_only=True)
    doctor_name = serializers.CharField(source='medical_record.doctor.name', read_only=True, default=None)
    items = PrescriptionItemSerializer(many=True, read_only=True)

    class Meta:
        model = Prescription
        fields = [
            'id', 'prescription_number', 'medical_record', 'record_number',
            'patient', 'patient_name', 'patient_mrn', 'doctor_name',
            'status', 'status_display', 'notes', 'items', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class PrescriptionWriteSerializer(serializers.Serializer):
    medical_record = serializers.PrimaryKeyRelatedField(queryset=MedicalRecord.objects.all())
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = PrescriptionItemSerializer(many=True, allow_empty=False)


class PrescriptionUpdateSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True)
    items = PrescriptionItemSerializer(many=True, required=False, allow_empty=False)


class RecordPrescriptionSerializer(serializers.Serializer):
    """Prescription body posted against a record: the record comes from the URL."""

    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = PrescriptionItemSerializer(many=True, allow_empty=False)


class PrescriptionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Prescription.Status.choices)


# ---------------------------------------------------------------------------
# Medical records
# ---------------------------------------------------------------------------

class MedicalRecordListSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    patient_name = serializers.CharField(source='patient.name', read_only=True)
    patient_mrn = serializers.CharField(source='patient.medical_record_number', read_only=True)
    department_name = serializers.CharField(source='department.name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.name', read_only=True, default=None)
    diagnoses = MedicalRecordDiagnosisSerializer(many=True, read_only=True)

    class Meta:
        model = MedicalRecord
        fields = [
            'id', 'record_number', 'visit_date', 'patient', 'patient_name',
            'patient_mrn', 'department', 'department_name', 'doctor', 'doctor_name',
            'chief_complaint', 'diagnosis', 'diagnoses', 'status', 'status_display',
            'completed_at', 'created_at',
        ]
        read_only_fields = fields


class MedicalRecordDetailSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    queue_code = serializers.CharField(source='queue.queue_code', read_only=True, default=None)
    patient_name = serializers.CharField(source='patient.name', read_only=True)
    patient_mrn = serializers.CharField(source='patient.medical_record_number', read_only=True)
    patient_allergies = serializers.CharField(source='patient.allergies', read_only=True)
    department_name = serializers.CharField(source='department.name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.name', read_only=True, default=None)
    blood_pressure = serializers.CharField(read_only=True)
    bmi = serializers.DecimalField(max_digits=6, decimal_places=2, read_only=True)
    diagnoses = MedicalRecordDiagnosisSerializer(many=True, read_only=True)
    service_lines = MedicalRecordServiceLineSerializer(many=True, read_only=True)
    prescriptions = PrescriptionReadSerializer(many=True, read_only=True)
    invoice = serializers.SerializerMethodField()

    class Meta:
        model = MedicalRecord
        fields = [
            'id', 'record_number', 'queue', 'queue_code', 'visit_date',
            'patient', 'patient_name', 'patient_mrn', 'patient_allergies',
            'department', 'department_name', 'doctor', 'doctor_name',
            *RECORD_FIELDS,
            'blood_pressure', 'bmi', 'diagnoses', 'service_lines', 'prescriptions',
            'invoice', 'status', 'status_display', 'completed_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_invoice(self, obj):
        invoice = getattr(obj, 'invoice', None)
        if invoice is None:
            return None
        return {
            'id': str(invoice.pk),
            'invoice_number': invoice.invoice_number,
            'total_amount': invoice.total_amount,
            'payment_status': invoice.payment_status,
        }


class StartExaminationSerializer(serializers.Serializer):
    queue = serializers.PrimaryKeyRelatedField(queryset=Queue.objects.all())


class MedicalRecordUpdateSerializer(serializers.ModelSerializer):
    diagnoses = MedicalRecordDiagnosisSerializer(many=True, required=False)
    service_lines = MedicalRecordServiceLineSerializer(many=True, required=False)

    class Meta:
        model = MedicalRecord
        fields = [*RECORD_FIELDS, 'diagnoses', 'service_lines']

    def validate(self, attrs):
        systolic = attrs.get('blood_pressure_systolic', getattr(self.instance, 'blood_pressure_systolic', None))
        diastolic = attrs.get('blood_pressure_diastolic', getattr(self.instance, 'blood_pressure_diastolic', None))
        if systolic and diastolic and diastolic >= systolic:
            raise serializers.ValidationError(
                {'blood_pressure_diastolic': ['Diastolic pressure must be lower than systolic.']},
            )
        return attrs


class CompleteRecordSerializer(serializers.Serializer):
    create_invoice = serializers.BooleanField(default=True)


class PendingExaminationSerializer(serializers.Serializer):
    waiting = serializers.SerializerMethodField()
    in_progress = MedicalRecordListSerializer(many=True, read_only=True)

    def get_waiting(self, obj):
        from queues.serializers import QueueReadSerializer

        return QueueReadSerializer(obj['waiting'], many=True).data


# ---------------------------------------------------------------------------
# ICD catalogue
# ---------------------------------------------------------------------------

ICD_IMPORT_MAX_BYTES = 10 * 1024 * 1024


class IcdCodeSerializer(serializers.ModelSerializer):
    type_display = serializers.CharField(source='get_type_display', read_only=True)
    display_name = serializers.CharField(read_only=True)
    full_display = serializers.CharField(read_only=True)

    class Meta:
        model = IcdCode
        fields = [
            'id', 'code', 'type', 'type_display', 'name_id', 'name_en', 'display_name', 'full_display',
            'chapter', 'chapter_name', 'block', 'block_name', 'parent_code', 'dtd_code',
            'is_bpjs_claimable', 'is_active', 'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_code(self, value):
        return value.strip().upper()

    def validate_parent_code(self, value):
        return (value or '').strip().upper() or None

    def validate(self, attrs):
        chapter = attrs.get('chapter')
        if chapter and not attrs.get('chapter_name') and chapter in ICD10_CHAPTERS:
            attrs['chapter_name'] = ICD10_CHAPTERS[chapter]
        return attrs


class IcdCodeDetailSerializer(IcdCodeSerializer):
    children_count = serializers.SerializerMethodField()

    class Meta(IcdCodeSerializer.Meta):
        fields = IcdCodeSerializer.Meta.fields + ['children_count']

    def get_children_count(self, obj) -> int:
        return obj.children.count()


class IcdImportSerializer(serializers.Serializer):
    file = serializers.FileField(validators=[FileExtensionValidator(['csv', 'txt', 'json'])])
    type = serializers.ChoiceField(choices=IcdCode.Type.choices)

    def validate_file(self, value):
        if value.size > ICD_IMPORT_MAX_BYTES:
            raise serializers.ValidationError('Import file must not exceed 10 MB.')
        return value
