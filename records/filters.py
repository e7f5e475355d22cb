"""
Records — Filters

@file records/filters.py
"""

from django.db.models import Q
from django_filters import rest_framework as filters

from .models import IcdCode, MedicalRecord, Prescription


class MedicalRecordFilter(filters.FilterSet):
    date = filters.DateFilter(field_name='visit_date')
    start_date = filters.DateFilter(field_name='visit_date', lookup_expr='gte')
    end_date = filters.DateFilter(field_name='visit_date', lookup_expr='lte')
    search = filters.CharFilter(method='filter_search')

    class Meta:
        model = MedicalRecord
        fields = ['status', 'department', 'doctor', 'patient', 'date', 'start_date', 'end_date']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(record_number__icontains=value)
            | Q(patient__name__icontains=value)
            | Q(patient__medical_record_number__icontains=value)
        )


class PrescriptionFilter(filters.FilterSet):
    date = filters.DateFilter(field_name='created_at', lookup_expr='date')
    search = filters.CharFilter(method='filter_search')
    patient = filters.UUIDFilter(field_name='medical_record__patient')

    class Meta:
        model = Prescription
        fields = ['status', 'medical_record', 'patient', 'date']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(prescription_number__icontains=value)
            | Q(medical_record__patient__name__icontains=value)
        )


class IcdCodeFilter(filters.FilterSet):
    search = filters.CharFilter(method='filter_search')
    status = filters.ChoiceFilter(
        method='filter_status', choices=[('active', 'Active'), ('inactive', 'Inactive')],
    )
    parent_code = filters.CharFilter(method='filter_parent_code')

    class Meta:
        model = IcdCode
        fields = ['type', 'chapter', 'is_bpjs_claimable', 'status', 'parent_code']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(code__icontains=value) | Q(name_id__icontains=value) | Q(name_en__icontains=value)
        )

    def filter_status(self, queryset, name, value):
        return queryset.filter(is_active=value == 'active')

    def filter_parent_code(self, queryset, name, value):
        # 'root' lists top-level codes
        if value == 'root':
            return queryset.filter(parent_code__isnull=True)
        return queryset.filter(parent_code=value.upper())
