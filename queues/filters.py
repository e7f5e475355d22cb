"""
Queues — Filters

@file queues/filters.py
"""

from django_filters import rest_framework as filters

from .models import Queue


class QueueFilter(filters.FilterSet):
    date = filters.DateFilter(field_name='queue_date')
    date_from = filters.DateFilter(field_name='queue_date', lookup_expr='gte')
    date_to = filters.DateFilter(field_name='queue_date', lookup_expr='lte')

    class Meta:
        model = Queue
        fields = ['department', 'doctor', 'patient', 'status', 'date', 'date_from', 'date_to']
