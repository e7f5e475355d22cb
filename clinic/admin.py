"""
Clinic — Django Admin Configuration

@file clinic/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from core.admin import render_badge

from .models import ClinicSetting, Department, DoctorSchedule, Service


class ActiveBadgeMixin:

    @admin.display(description=_('Active'), ordering='is_active')
    def active_badge(self, obj):
        if obj.is_active:
            return render_badge(_('Active'), '#22c55e')
        return render_badge(_('Inactive'), '#ef4444')


@admin.register(Department)
class DepartmentAdmin(ActiveBadgeMixin, admin.ModelAdmin):
    list_display = ('code', 'name', 'quota_per_day', 'default_service', 'active_badge')
    list_filter = ('is_active', 'color')
    search_fields = ('code', 'name')
    raw_id_fields = ('default_service',)
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')


@admin.register(Service)
class ServiceAdmin(ActiveBadgeMixin, admin.ModelAdmin):
    list_display = ('code', 'name', 'category', 'department', 'base_price', 'total_price', 'active_badge')
    list_filter = ('category', 'is_active', 'department')
    search_fields = ('code', 'name')
    list_select_related = ('department',)
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')


@admin.register(DoctorSchedule)
class DoctorScheduleAdmin(ActiveBadgeMixin, admin.ModelAdmin):
    list_display = ('doctor', 'department', 'day_of_week', 'time_range', 'quota', 'active_badge')
    list_filter = ('day_of_week', 'department', 'is_active')
    search_fields = ('doctor__name', 'department__name')
    list_select_related = ('doctor', 'department')
    raw_id_fields = ('doctor',)
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')


@admin.register(ClinicSetting)
class ClinicSettingAdmin(admin.ModelAdmin):
    list_display = ('name', 'city', 'phone', 'email', 'updated_at')
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')

    def has_add_permission(self, request):
        return not ClinicSetting.objects.exists()
