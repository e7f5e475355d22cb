"""
Purchasing — Filters

@file purchasing/filters.py
"""

from django.db.models import Q
from django_filters import rest_framework as filters

from .models import GoodsReceipt, PurchaseOrder, Supplier


class SupplierFilter(filters.FilterSet):
    status = filters.ChoiceFilter(
        choices=[('active', 'active'), ('inactive', 'inactive')],
        method='filter_status',
    )

    class Meta:
        model = Supplier
        fields = ['is_active', 'city', 'status']

    def filter_status(self, queryset, name, value):
        return queryset.filter(is_active=(value == 'active'))


class PurchaseOrderFilter(filters.FilterSet):
    start_date = filters.DateFilter(field_name='order_date', lookup_expr='gte')
    end_date = filters.DateFilter(field_name='order_date', lookup_expr='lte')
    search = filters.CharFilter(field_name='po_number', lookup_expr='icontains')

    class Meta:
        model = PurchaseOrder
        fields = ['status', 'supplier', 'start_date', 'end_date']


class GoodsReceiptFilter(filters.FilterSet):
    start_date = filters.DateFilter(field_name='receipt_date', lookup_expr='gte')
    end_date = filters.DateFilter(field_name='receipt_date', lookup_expr='lte')
    search = filters.CharFilter(method='filter_search')

    class Meta:
        model = GoodsReceipt
        fields = ['status', 'supplier', 'purchase_order', 'start_date', 'end_date']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(receipt_number__icontains=value) | Q(supplier_invoice_number__icontains=value)
        )
