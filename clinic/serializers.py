"""
Clinic — Serializers

@file clinic/serializers.py
"""

from django.core.validators import FileExtensionValidator
from rest_framework import serializers

from users.models import User

from .models import FAVICON_EXTENSIONS, LOGO_EXTENSIONS, ClinicSetting, Department, DoctorSchedule, Service

LOGO_MAX_BYTES = 2 * 1024 * 1024
FAVICON_MAX_BYTES = 512 * 1024


class DepartmentSerializer(serializers.ModelSerializer):
    default_service_name = serializers.CharField(
        source='default_service.name', read_only=True, default=None,
    )
    staff_count = serializers.SerializerMethodField()

    class Meta:
        model = Department
        fields = [
            'id', 'code', 'name', 'description', 'icon', 'color',
            'quota_per_day', 'default_service', 'default_service_name',
            'is_active', 'staff_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_staff_count(self, obj):
        return obj.staff.filter(is_deleted=False).count()

    def validate_code(self, value):
        return value.strip().upper()


class ServiceReadSerializer(serializers.ModelSerializer):
    category_display = serializers.CharField(source='get_category_display', read_only=True)
    department_name = serializers.CharField(source='department.name', read_only=True, default=None)
    total_price = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Service
        fields = [
            'id', 'code', 'name', 'description', 'category', 'category_display',
            'department', 'department_name', 'base_price', 'doctor_fee',
            'hospital_fee', 'total_price', 'duration', 'requires_appointment',
            'icon', 'color', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ServiceWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = [
            'code', 'name', 'description', 'category', 'department',
            'base_price', 'doctor_fee', 'hospital_fee', 'duration',
            'requires_appointment', 'icon', 'color', 'is_active',
        ]

    def validate_code(self, value):
        return value.strip().upper()


class DoctorScheduleSerializer(serializers.ModelSerializer):
    doctor = serializers.PrimaryKeyRelatedField(queryset=User.objects.doctors())
    department = serializers.PrimaryKeyRelatedField(queryset=Department.objects.filter(is_active=True))
    doctor_name = serializers.CharField(source='doctor.name', read_only=True)
    department_name = serializers.CharField(source='department.name', read_only=True)
    day_label = serializers.CharField(source='get_day_of_week_display', read_only=True)
    start_time = serializers.TimeField(format='%H:%M')
    end_time = serializers.TimeField(format='%H:%M')
    time_range = serializers.CharField(read_only=True)
    quota = serializers.IntegerField(min_value=1, max_value=100, default=20)
    is_currently_available = serializers.SerializerMethodField()

    class Meta:
        model = DoctorSchedule
        fields = [
            'id', 'doctor', 'doctor_name', 'department', 'department_name',
            'day_of_week', 'day_label', 'start_time', 'end_time', 'time_range',
            'quota', 'is_active', 'notes', 'is_currently_available', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_is_currently_available(self, obj) -> bool:
        return obj.is_available_at()

    def validate(self, attrs):
        start = attrs.get('start_time', getattr(self.instance, 'start_time', None))
        end = attrs.get('end_time', getattr(self.instance, 'end_time', None))
        if start and end and end <= start:
            raise serializers.ValidationError({'end_time': 'End time must be after start time.'})
        return attrs


class ClinicSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = ClinicSetting
        fields = [
            'id', 'name', 'tagline', 'description', 'logo', 'favicon',
            'address', 'city', 'province', 'postal_code', 'phone', 'whatsapp',
            'email', 'website', 'license_number', 'npwp', 'owner_name',
            'operational_hours', 'timezone', 'currency', 'default_queue_quota',
            'updated_at',
        ]
        read_only_fields = ['id', 'logo', 'favicon', 'updated_at']


class LogoUploadSerializer(serializers.Serializer):
    logo = serializers.FileField(validators=[FileExtensionValidator(LOGO_EXTENSIONS)])

    def validate_logo(self, value):
        if value.size > LOGO_MAX_BYTES:
            raise serializers.ValidationError('Logo must not exceed 2 MB.')
        return value


class FaviconUploadSerializer(serializers.Serializer):
    favicon = serializers.FileField(validators=[FileExtensionValidator(FAVICON_EXTENSIONS)])

    def validate_favicon(self, value):
        if value.size > FAVICON_MAX_BYTES:
            raise serializers.ValidationError('Favicon must not exceed 512 KB.')
        return value
