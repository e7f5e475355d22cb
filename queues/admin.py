"""
Queues — Django Admin Configuration

@file queues/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from core.admin import StatusBadgeMixin

from .models import Queue, QueueSetting


@admin.register(QueueSetting)
class QueueSettingAdmin(admin.ModelAdmin):
    list_display = ('department', 'prefix', 'daily_quota', 'start_number', 'today_count', 'is_active')
    list_filter = ('is_active',)
    list_select_related = ('department',)
    readonly_fields = ('created_at', 'updated_at')


@admin.register(Queue)
class QueueAdmin(StatusBadgeMixin, admin.ModelAdmin):
    list_display = (
        'queue_code', 'queue_date', 'department', 'patient',
        'status_badge', 'counter_number', 'called_at', 'completed_at',
    )
    list_filter = ('status', 'department', 'queue_date')
    search_fields = ('queue_code', 'patient__name', 'patient__medical_record_number')
    list_select_related = ('department', 'patient')
    date_hierarchy = 'queue_date'
    readonly_fields = (
        'id', 'queue_number', 'queue_code', 'queue_date', 'status',
        'called_at', 'started_at', 'completed_at', 'served_by',
        'created_at', 'updated_at', 'created_by', 'updated_by',
    )
    list_per_page = 50

    fieldsets = (
        (None, {
            'fields': ('id', 'queue_code', 'queue_number', 'queue_date', 'status'),
        }),
        (_('Visit'), {
            'fields': ('department', 'service', 'doctor', 'patient', 'counter_number', 'notes'),
        }),
        (_('Timeline'), {
            'fields': ('called_at', 'started_at', 'completed_at', 'served_by'),
        }),
        (_('Audit'), {
            'fields': ('created_at', 'updated_at', 'created_by', 'updated_by'),
            'classes': ('collapse',),
        }),
    )

    status_colors = {
        'waiting': '#3b82f6',
        'called': '#eab308',
        'in_service': '#8b5cf6',
        'completed': '#22c55e',
        'skipped': '#f97316',
        'cancelled': '#ef4444',
    }

    def has_delete_permission(self, request, obj=None):
        return False
