"""
Queues — Serializers

@file queues/serializers.py
"""

from rest_framework import serializers

from clinic.models import Department, Service
from patients.models import Patient
from users.models import User

from .models import Queue, QueueSetting


class QueueReadSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    department_name = serializers.CharField(source='department.name', read_only=True)
    department_color = serializers.CharField(source='department.color', read_only=True)
    patient_name = serializers.CharField(source='patient.name', read_only=True, default=None)
    patient_mrn = serializers.CharField(
        source='patient.medical_record_number', read_only=True, default=None,
    )
    doctor_name = serializers.CharField(source='doctor.name', read_only=True, default=None)
    service_name = serializers.CharField(source='service.name', read_only=True, default=None)
    served_by_name = serializers.CharField(source='served_by.name', read_only=True, default=None)
    wait_time = serializers.IntegerField(read_only=True)
    service_time = serializers.IntegerField(read_only=True)

    class Meta:
        model = Queue
        fields = [
            'id', 'queue_number', 'queue_code', 'queue_date',
            'department', 'department_name', 'department_color',
            'patient', 'patient_name', 'patient_mrn',
            'doctor', 'doctor_name', 'service', 'service_name',
            'status', 'status_display', 'counter_number',
            'called_at', 'started_at', 'completed_at',
            'served_by', 'served_by_name', 'notes',
            'wait_time', 'service_time', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class QueueTakeSerializer(serializers.Serializer):
    department = serializers.PrimaryKeyRelatedField(queryset=Department.objects.filter(is_active=True))
    doctor = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True, is_deleted=False),
        required=False, allow_null=True,
    )
    patient = serializers.PrimaryKeyRelatedField(
        queryset=Patient.objects.filter(is_active=True),
        required=False, allow_null=True,
    )
    service = serializers.PrimaryKeyRelatedField(
        queryset=Service.objects.filter(is_active=True),
        required=False, allow_null=True,
    )


class QueueCallSerializer(serializers.Serializer):
    counter_number = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class QueueNotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class AssignPatientSerializer(serializers.Serializer):
    patient = serializers.PrimaryKeyRelatedField(queryset=Patient.objects.filter(is_active=True))


class QueueResetSerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    department = serializers.PrimaryKeyRelatedField(
        queryset=Department.objects.all(), required=False, allow_null=True,
    )


class QueueSettingSerializer(serializers.ModelSerializer):
    department_name = serializers.CharField(source='department.name', read_only=True)
    # Uniqueness across departments is checked by QueueSettingService.upsert.
    prefix = serializers.CharField(max_length=5)
    today_count = serializers.IntegerField(read_only=True)
    remaining_quota = serializers.IntegerField(read_only=True)

    class Meta:
        model = QueueSetting
        fields = [
            'id', 'department', 'department_name', 'prefix', 'daily_quota',
            'start_number', 'is_active', 'today_count', 'remaining_quota',
            'updated_at',
        ]
        read_only_fields = ['id', 'department', 'updated_at']

    def validate_prefix(self, value):
        value = value.strip().upper()
        if not value:
            raise serializers.ValidationError('Prefix is required.')
        return value

    def validate_daily_quota(self, value):
        if not 1 <= value <= 500:
            raise serializers.ValidationError('Daily quota must be between 1 and 500.')
        return value

    def validate_start_number(self, value):
        if value < 1:
            raise serializers.ValidationError('Start number must be at least 1.')
        return value
