"""
Records — Django Admin Configuration

@file records/admin.py
"""

from django.contrib import admin

from core.admin import StatusBadgeMixin

from .models import (
    IcdCode,
    MedicalRecord,
    MedicalRecordDiagnosis,
    MedicalRecordServiceLine,
    Prescription,
    PrescriptionItem,
)


class MedicalRecordDiagnosisInline(admin.TabularInline):
    model = MedicalRecordDiagnosis
    extra = 0
    fields = ('icd', 'icd_code', 'icd_name', 'diagnosis_type', 'notes')
    autocomplete_fields = ('icd',)


class MedicalRecordServiceLineInline(admin.TabularInline):
    model = MedicalRecordServiceLine
    extra = 0
    fields = ('service', 'service_name', 'quantity', 'unit_price', 'total_price')
    readonly_fields = ('total_price',)


class PrescriptionItemInline(admin.TabularInline):
    model = PrescriptionItem
    extra = 0
    fields = ('medicine_name', 'dosage', 'frequency', 'duration', 'quantity', 'instructions')


@admin.register(MedicalRecord)
class MedicalRecordAdmin(StatusBadgeMixin, admin.ModelAdmin):
    list_display = ('record_number', 'visit_date', 'patient', 'department', 'doctor', 'status_badge')
    list_filter = ('status', 'department', 'visit_date')
    search_fields = ('record_number', 'patient__name', 'patient__medical_record_number')
    list_select_related = ('patient', 'department', 'doctor')
    date_hierarchy = 'visit_date'
    readonly_fields = ('id', 'record_number', 'queue', 'status', 'completed_at', 'created_at', 'updated_at')
    inlines = [MedicalRecordDiagnosisInline, MedicalRecordServiceLineInline]
    status_colors = {
        MedicalRecord.Status.IN_PROGRESS: '#3b82f6',
        MedicalRecord.Status.COMPLETED: '#22c55e',
        MedicalRecord.Status.CANCELLED: '#ef4444',
    }


@admin.register(Prescription)
class PrescriptionAdmin(StatusBadgeMixin, admin.ModelAdmin):
    list_display = ('prescription_number', 'medical_record', 'status_badge', 'created_at')
    list_filter = ('status',)
    search_fields = ('prescription_number', 'medical_record__record_number', 'medical_record__patient__name')
    list_select_related = ('medical_record',)
    readonly_fields = ('id', 'prescription_number', 'status', 'created_at', 'updated_at')
    inlines = [PrescriptionItemInline]
    status_colors = {
        Prescription.Status.PENDING: '#eab308',
        Prescription.Status.PROCESSED: '#3b82f6',
        Prescription.Status.COMPLETED: '#22c55e',
        Prescription.Status.CANCELLED: '#ef4444',
    }


@admin.register(IcdCode)
class IcdCodeAdmin(admin.ModelAdmin):
    list_display = ('code', 'type', 'name_id', 'chapter', 'parent_code', 'is_bpjs_claimable', 'is_active')
    list_filter = ('type', 'chapter', 'is_bpjs_claimable', 'is_active')
    search_fields = ('code', 'name_id', 'name_en')
    readonly_fields = ('id', 'created_at', 'updated_at')
