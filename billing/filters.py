"""
Billing — Filters

@file billing/filters.py
"""

from django.db.models import Q
from django_filters import rest_framework as filters

from .models import Invoice


class InvoiceFilter(filters.FilterSet):
    date = filters.DateFilter(field_name='created_at', lookup_expr='date')
    start_date = filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    end_date = filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    search = filters.CharFilter(method='filter_search')

    class Meta:
        model = Invoice
        fields = ['payment_status', 'payment_method', 'patient', 'date', 'start_date', 'end_date']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(invoice_number__icontains=value)
            | Q(patient__name__icontains=value)
            | Q(patient__medical_record_number__icontains=value)
        )
