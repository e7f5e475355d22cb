"""
Patients — Django Admin Configuration

@file patients/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from core.admin import render_badge

from .models import Patient

PATIENT_TYPE_COLORS = {
    'umum': '#3b82f6',
    'bpjs': '#22c55e',
    'asuransi': '#8b5cf6',
}


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = (
        'medical_record_number', 'name', 'gender', 'birth_date',
        'type_badge', 'phone', 'is_active', 'created_at',
    )
    list_filter = ('patient_type', 'gender', 'blood_type', 'is_active')
    search_fields = ('medical_record_number', 'name', 'nik', 'bpjs_number', 'phone')
    readonly_fields = ('id', 'medical_record_number', 'created_at', 'updated_at', 'created_by', 'updated_by')
    date_hierarchy = 'created_at'
    list_per_page = 50

    fieldsets = (
        (None, {
            'fields': ('id', 'medical_record_number', 'name', 'nik', 'birth_place', 'birth_date', 'gender'),
        }),
        (_('Clinical'), {
            'fields': ('blood_type', 'allergies', 'medical_notes'),
        }),
        (_('Coverage'), {
            'fields': ('patient_type', 'bpjs_number', 'insurance_name', 'insurance_number'),
        }),
        (_('Contact'), {
            'fields': (
                'phone', 'email', 'address', 'rt', 'rw', 'village', 'district',
                'city', 'province', 'postal_code',
            ),
        }),
        (_('Emergency contact'), {
            'fields': ('emergency_contact_name', 'emergency_contact_relation', 'emergency_contact_phone'),
            'classes': ('collapse',),
        }),
        (_('Audit'), {
            'fields': ('is_active', 'created_at', 'updated_at', 'created_by', 'updated_by'),
            'classes': ('collapse',),
        }),
    )

    @admin.display(description=_('Type'), ordering='patient_type')
    def type_badge(self, obj):
        return render_badge(obj.get_patient_type_display(), PATIENT_TYPE_COLORS.get(obj.patient_type, '#6b7280'))
