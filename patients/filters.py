"""
Patients — Filters

@file patients/filters.py
"""

from django_filters import rest_framework as filters

from .models import Patient


class PatientFilter(filters.FilterSet):
    status = filters.ChoiceFilter(
        choices=[('active', 'active'), ('inactive', 'inactive')],
        method='filter_status',
    )
    registered_from = filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    registered_to = filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = Patient
        fields = ['gender', 'patient_type', 'blood_type', 'is_active', 'status']

    def filter_status(self, queryset, name, value):
        return queryset.filter(is_active=(value == 'active'))
