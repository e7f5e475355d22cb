"""
Patients — Serializers

@file patients/serializers.py
"""

from django.utils import timezone
from rest_framework import serializers

from .models import Patient


class PatientReadSerializer(serializers.ModelSerializer):
    age = serializers.IntegerField(read_only=True)
    full_address = serializers.CharField(read_only=True)
    gender_display = serializers.CharField(source='get_gender_display', read_only=True)
    patient_type_display = serializers.CharField(source='get_patient_type_display', read_only=True)

    class Meta:
        model = Patient
        fields = [
            'id', 'medical_record_number', 'nik', 'bpjs_number', 'name',
            'birth_place', 'birth_date', 'age', 'gender', 'gender_display',
            'blood_type', 'religion', 'marital_status', 'occupation', 'education',
            'phone', 'email', 'address', 'rt', 'rw', 'village', 'district',
            'city', 'province', 'postal_code', 'full_address',
            'emergency_contact_name', 'emergency_contact_relation',
            'emergency_contact_phone', 'allergies', 'medical_notes',
            'patient_type', 'patient_type_display', 'insurance_name',
            'insurance_number', 'photo', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class PatientSummarySerializer(serializers.ModelSerializer):
    age = serializers.IntegerField(read_only=True)

    class Meta:
        model = Patient
        fields = [
            'id', 'medical_record_number', 'name', 'birth_date', 'age',
            'gender', 'patient_type', 'bpjs_number', 'phone', 'allergies',
        ]
        read_only_fields = fields


class PatientWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Patient
        fields = [
            'nik', 'bpjs_number', 'name', 'birth_place', 'birth_date', 'gender',
            'blood_type', 'religion', 'marital_status', 'occupation', 'education',
            'phone', 'email', 'address', 'rt', 'rw', 'village', 'district',
            'city', 'province', 'postal_code', 'emergency_contact_name',
            'emergency_contact_relation', 'emergency_contact_phone',
            'allergies', 'medical_notes', 'patient_type', 'insurance_name',
            'insurance_number', 'photo', 'is_active',
        ]

    def validate_nik(self, value):
        if not value:
            return None
        if not value.isdigit() or len(value) != 16:
            raise serializers.ValidationError('NIK must be exactly 16 digits.')
        return value

    def validate_birth_date(self, value):
        if value > timezone.localdate():
            raise serializers.ValidationError('Birth date cannot be in the future.')
        return value

    def validate(self, attrs):
        patient_type = attrs.get('patient_type', getattr(self.instance, 'patient_type', None))
        bpjs_number = attrs.get('bpjs_number', getattr(self.instance, 'bpjs_number', ''))
        if patient_type == Patient.PatientTypeChoices.BPJS and not bpjs_number:
            raise serializers.ValidationError({'bpjs_number': ['BPJS number is required for BPJS patients.']})
        insurance_name = attrs.get('insurance_name', getattr(self.instance, 'insurance_name', ''))
        if patient_type == Patient.PatientTypeChoices.ASURANSI and not insurance_name:
            raise serializers.ValidationError({'insurance_name': ['Insurance name is required for insured patients.']})
        return attrs
