"""
Users — Models

Clinic staff accounts with email login and permission-string RBAC:
User → UserRole → Role → Permission (``module.action``). Superusers and
holders of the ``super_admin`` role bypass every permission check.

@file users/models.py
"""

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel, SoftDeleteMixin
from users.managers import UserManager

SUPER_ADMIN_ROLE = 'super_admin'


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

class User(AbstractBaseUser, PermissionsMixin, BaseModel, SoftDeleteMixin):
    """Clinic staff member (doctor, nurse, cashier, pharmacist, admin...)."""

    email = models.EmailField(_('email'), unique=True)
    name = models.CharField(_('name'), max_length=150)
    phone = models.CharField(_('phone'), max_length=20, blank=True)
    avatar = models.CharField(_('avatar path'), max_length=255, blank=True)

    departments = models.ManyToManyField(
        'clinic.Department',
        blank=True,
        related_name='staff',
        verbose_name=_('departments'),
    )

    is_staff = models.BooleanField(_('staff status'), default=False)
    is_active = models.BooleanField(_('active'), default=True)
    date_joined = models.DateTimeField(_('date joined'), default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['name']
        indexes = [
            models.Index(fields=['is_active', 'is_deleted']),
        ]

    def __str__(self):
        return self.name or self.email

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name.split(' ')[0] if self.name else self.email

    @property
    def role_names(self) -> list[str]:
        return list(
            self.user_roles.filter(is_active=True, role__is_active=True)
            .values_list('role__name', flat=True)
        )

    @property
    def is_super_admin(self) -> bool:
        return self.is_superuser or self.has_role(SUPER_ADMIN_ROLE)

    def has_role(self, role_name: str) -> bool:
        return self.user_roles.filter(
            role__name=role_name, role__is_active=True, is_active=True,
        ).exists()

    def get_all_permissions_names(self) -> set[str]:
        return set(
            Permission.objects.filter(
                roles__user_roles__user=self,
                roles__user_roles__is_active=True,
                roles__is_active=True,
            ).values_list('name', flat=True)
        )

    def has_permission(self, permission_name: str) -> bool:
        if not self.is_active:
            return False
        if self.is_super_admin:
            return True
        return Permission.objects.filter(
            name=permission_name,
            roles__user_roles__user=self,
            roles__user_roles__is_active=True,
            roles__is_active=True,
        ).exists()

    def has_any_permission(self, permission_names) -> bool:
        if self.is_super_admin:
            return True
        return bool(self.get_all_permissions_names() & set(permission_names))


# ---------------------------------------------------------------------------
# Permission / Role / UserRole
# ---------------------------------------------------------------------------

class Permission(BaseModel):
    """A ``module.action`` capability, e.g. ``billing.edit``."""

    class ActionChoices(models.TextChoices):
        VIEW = 'view', _('View')
        CREATE = 'create', _('Create')
        EDIT = 'edit', _('Edit')
        DELETE = 'delete', _('Delete')
        MANAGE = 'manage', _('Manage')

    name = models.CharField(_('name'), max_length=100, unique=True)
    display_name = models.CharField(_('display name'), max_length=150)
    description = models.TextField(_('description'), blank=True)
    module = models.CharField(_('module'), max_length=50, db_index=True)
    action = models.CharField(_('action'), max_length=20, choices=ActionChoices.choices)
    sort_order = models.PositiveIntegerField(_('sort order'), default=0)

    class Meta:
        verbose_name = _('permission')
        verbose_name_plural = _('permissions')
        ordering = ['module', 'sort_order', 'name']

    def __str__(self):
        return self.name


class Role(BaseModel):
    """Named bundle of permissions. System roles cannot be deleted."""

    name = models.CharField(_('name'), max_length=60, unique=True)
    display_name = models.CharField(_('display name'), max_length=100)
    description = models.TextField(_('description'), blank=True)
    color = models.CharField(_('color'), max_length=20, default='gray')
    is_system = models.BooleanField(
        _('system role'), default=False,
        help_text=_('System roles cannot be deleted.'),
    )
    is_active = models.BooleanField(_('active'), default=True)
    permissions = models.ManyToManyField(
        Permission,
        blank=True,
        related_name='roles',
        verbose_name=_('permissions'),
    )

    class Meta:
        verbose_name = _('role')
        verbose_name_plural = _('roles')
        ordering = ['name']

    def __str__(self):
        return self.display_name or self.name

    def has_permission(self, permission_name: str) -> bool:
        return self.permissions.filter(name=permission_name).exists()

    def permissions_by_module(self) -> dict[str, list[str]]:
        grouped: dict[str, list[str]] = {}
        for module, name in self.permissions.values_list('module', 'name'):
            grouped.setdefault(module, []).append(name)
        return grouped


class UserRole(BaseModel):
    """Assignment of a role to a user."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='user_roles',
        verbose_name=_('user'),
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='user_roles',
        verbose_name=_('role'),
    )
    is_active = models.BooleanField(_('active'), default=True)

    class Meta:
        verbose_name = _('user role')
        verbose_name_plural = _('user roles')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'role'], name='unique_user_role'),
        ]
        indexes = [
            models.Index(fields=['user', 'is_active']),
        ]

    def __str__(self):
        return f'{self.user} ← {self.role.name}'
