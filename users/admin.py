"""
Users — Django Admin Configuration

Admin for staff accounts, roles, permissions and role assignments.
Soft-deleted users are hidden unless filtered for explicitly.

@file users/admin.py
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from core.admin import render_badge

from .models import Permission, Role, User, UserRole

ROLE_COLORS = {
    'red': '#ef4444',
    'purple': '#8b5cf6',
    'blue': '#3b82f6',
    'green': '#22c55e',
    'yellow': '#eab308',
    'teal': '#14b8a6',
    'gray': '#6b7280',
}


class UserRoleInline(admin.TabularInline):
    model = UserRole
    fk_name = 'user'
    extra = 0
    readonly_fields = ('created_at',)
    raw_id_fields = ('role',)
    fields = ('role', 'is_active', 'created_at')


@admin.register(User)
class UserAdmin(BaseUserAdmin):

    list_display = ('email', 'name', 'phone', 'active_badge', 'is_staff', 'date_joined')
    list_filter = ('is_active', 'is_staff', 'is_superuser', 'is_deleted', 'departments')
    search_fields = ('email', 'name', 'phone')
    readonly_fields = (
        'id', 'created_at', 'updated_at', 'created_by', 'updated_by',
        'date_joined', 'last_login',
    )
    filter_horizontal = ('departments', 'groups', 'user_permissions')
    date_hierarchy = 'created_at'
    list_per_page = 30
    ordering = ('name',)
    inlines = [UserRoleInline]

    fieldsets = (
        (None, {
            'fields': ('id', 'email', 'password'),
        }),
        (_('Profile'), {
            'fields': ('name', 'phone', 'avatar', 'departments'),
        }),
        (_('Permissions'), {
            'fields': ('is_active', 'is_staff', 'is_superuser'),
        }),
        (_('Audit'), {
            'fields': ('date_joined', 'last_login', 'created_at', 'updated_at', 'created_by', 'updated_by'),
            'classes': ('collapse',),
        }),
        (_('Soft Delete'), {
            'fields': ('is_deleted', 'deleted_at', 'deleted_by'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'name', 'password1', 'password2'),
        }),
    )

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if not request.GET.get('is_deleted__exact'):
            qs = qs.filter(is_deleted=False)
        return qs

    @admin.display(description=_('Active'), ordering='is_active')
    def active_badge(self, obj):
        if obj.is_active:
            return render_badge(_('Active'), '#22c55e')
        return render_badge(_('Inactive'), '#ef4444')


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ('name', 'color_badge', 'is_system', 'is_active', 'created_at')
    list_filter = ('is_system', 'is_active')
    search_fields = ('name', 'display_name', 'description')
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')
    filter_horizontal = ('permissions',)
    list_per_page = 50

    fieldsets = (
        (None, {
            'fields': ('id', 'name', 'display_name', 'description', 'color', 'is_system', 'is_active'),
        }),
        (_('Permissions'), {
            'fields': ('permissions',),
        }),
        (_('Audit'), {
            'fields': ('created_at', 'updated_at', 'created_by', 'updated_by'),
            'classes': ('collapse',),
        }),
    )

    @admin.display(description=_('Display name'))
    def color_badge(self, obj):
        return render_badge(obj.display_name, ROLE_COLORS.get(obj.color, ROLE_COLORS['gray']))

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.is_system:
            return False
        return super().has_delete_permission(request, obj)


@admin.register(Permission)
class PermissionAdmin(admin.ModelAdmin):
    list_display = ('name', 'display_name', 'module', 'action', 'sort_order')
    list_filter = ('module', 'action')
    search_fields = ('name', 'display_name')
    ordering = ('module', 'sort_order')
    list_per_page = 100


@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ('user', 'role', 'is_active', 'created_at')
    list_filter = ('is_active', 'role')
    search_fields = ('user__email', 'user__name', 'role__name')
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')
    raw_id_fields = ('user', 'role')
    list_select_related = ('user', 'role')
    list_per_page = 50
