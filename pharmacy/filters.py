"""
Pharmacy — Filters

@file pharmacy/filters.py
"""

from django.db.models import Q
from django_filters import rest_framework as filters

from .models import Medicine, StockMovement


class MedicineFilter(filters.FilterSet):
    status = filters.ChoiceFilter(
        choices=[('active', 'active'), ('inactive', 'inactive')],
        method='filter_status',
    )
    stock_status = filters.ChoiceFilter(
        choices=[('low', 'low'), ('out_of_stock', 'out_of_stock')],
        method='filter_stock_status',
    )

    class Meta:
        model = Medicine
        fields = ['category', 'is_active', 'requires_prescription', 'status', 'stock_status']

    def filter_status(self, queryset, name, value):
        return queryset.filter(is_active=(value == 'active'))

    def filter_stock_status(self, queryset, name, value):
        if value == 'low':
            return queryset.low_stock()
        return queryset.out_of_stock()


class StockMovementFilter(filters.FilterSet):
    start_date = filters.DateFilter(field_name='movement_date', lookup_expr='date__gte')
    end_date = filters.DateFilter(field_name='movement_date', lookup_expr='date__lte')
    search = filters.CharFilter(method='filter_search')

    class Meta:
        model = StockMovement
        fields = ['medicine', 'batch', 'movement_type', 'reason', 'start_date', 'end_date']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(movement_number__icontains=value)
            | Q(medicine__name__icontains=value)
            | Q(medicine__code__icontains=value)
        )
