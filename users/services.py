"""
Users — Service Layer

All user-related business logic. No HTTP context — services receive
plain Python arguments and raise typed exceptions.

@file users/services.py
"""

import logging

from django.db import transaction

from core.constants import (
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_STATUS_CHANGE,
    AUDIT_ACTION_UPDATE,
)
from core.exceptions import (
    BusinessRuleViolation,
    DuplicateResourceError,
    ResourceNotFoundError,
)
from core.services import AuditService

from .models import Role, User, UserRole

logger = logging.getLogger('mediklinik')


# ---------------------------------------------------------------------------
# User service
# ---------------------------------------------------------------------------

class UserService:
    """CRUD and lifecycle management for staff accounts."""

    @staticmethod
    @transaction.atomic
    def create_user(
        *,
        email: str,
        password: str,
        actor=None,
        roles=None,
        departments=None,
        **extra_fields,
    ) -> User:
        if User.objects.filter(email__iexact=email).exists():
            raise DuplicateResourceError(detail=f'Email {email} already registered.')

        user = User.objects.create_user(email=email, password=password, **extra_fields)
        user.created_by = actor
        user.save(update_fields=['created_by'])

        if departments is not None:
            user.departments.set(departments)
        for role in roles or []:
            RoleService.assign_role(user=user, role_name=role.name, actor=actor)

        logger.info('User %s created by %s', user.email, getattr(actor, 'pk', None))
        return user

    @staticmethod
    @transaction.atomic
    def update_user(*, user_id, actor=None, roles=None, departments=None, **fields) -> User:
        try:
            user = User.objects.select_for_update().get(pk=user_id, is_deleted=False)
        except User.DoesNotExist:
            raise ResourceNotFoundError()

        old_snapshot = AuditService.snapshot(user)
        password = fields.pop('password', None)

        for field, value in fields.items():
            if hasattr(user, field) and field not in ('id', 'pk'):
                setattr(user, field, value)
        if password:
            user.set_password(password)

        user.updated_by = actor
        user.save()

        if departments is not None:
            user.departments.set(departments)
        if roles is not None:
            RoleService.sync_user_roles(user=user, roles=roles, actor=actor)

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='User',
            object_id=str(user.pk),
            old_values=old_snapshot,
            new_values=AuditService.snapshot(user),
        )
        return user

    @staticmethod
    @transaction.atomic
    def toggle_status(*, user_id, actor=None) -> User:
        try:
            user = User.objects.select_for_update().get(pk=user_id, is_deleted=False)
        except User.DoesNotExist:
            raise ResourceNotFoundError()

        if actor is not None and user.pk == actor.pk:
            raise BusinessRuleViolation(detail='You cannot deactivate your own account.')

        old_status = user.is_active
        user.is_active = not user.is_active
        user.updated_by = actor
        user.save(update_fields=['is_active', 'updated_by', 'updated_at'])

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_STATUS_CHANGE,
            model_name='User',
            object_id=str(user.pk),
            old_values={'is_active': old_status},
            new_values={'is_active': user.is_active},
        )
        return user

    @staticmethod
    @transaction.atomic
    def delete_user(*, user: User, actor=None) -> None:
        if actor is not None and user.pk == actor.pk:
            raise BusinessRuleViolation(detail='You cannot delete your own account.')
        user.soft_delete(actor=actor)

    @staticmethod
    @transaction.atomic
    def change_password(*, user: User, password: str) -> None:
        user.set_password(password)
        user.save(update_fields=['password', 'updated_at'])
        logger.info('Password changed for user %s', user.pk)


# ---------------------------------------------------------------------------
# Auth service
# ---------------------------------------------------------------------------

class AuthService:

    @staticmethod
    def log_auth_event(*, action: str, user=None, ip_address=None, user_agent='', **extra):
        AuditService.log(
            actor=user,
            action=action,
            model_name='User',
            object_id=str(user.pk) if user else '',
            new_values=extra or None,
            ip_address=ip_address,
            user_agent=user_agent,
        )


# ---------------------------------------------------------------------------
# Role service
# ---------------------------------------------------------------------------

class RoleService:
    """RBAC management: assign, revoke, sync roles and permissions."""

    @staticmethod
    @transaction.atomic
    def assign_role(*, user: User, role_name: str, actor=None) -> UserRole:
        try:
            role = Role.objects.get(name=role_name, is_active=True)
        except Role.DoesNotExist:
            raise ResourceNotFoundError(detail=f'Role "{role_name}" does not exist.')

        user_role, created = UserRole.objects.get_or_create(
            user=user, role=role,
            defaults={'created_by': actor, 'is_active': True},
        )
        if not created and not user_role.is_active:
            user_role.is_active = True
            user_role.updated_by = actor
            user_role.save(update_fields=['is_active', 'updated_by', 'updated_at'])

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE if created else AUDIT_ACTION_UPDATE,
            model_name='UserRole',
            object_id=str(user_role.pk),
            new_values={'user': str(user.pk), 'role': role_name},
        )
        return user_role

    @staticmethod
    @transaction.atomic
    def revoke_role(*, user: User, role_name: str, actor=None) -> None:
        updated = UserRole.objects.filter(
            user=user, role__name=role_name, is_active=True,
        ).update(is_active=False)
        if updated == 0:
            raise ResourceNotFoundError(detail='Active role assignment not found.')

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='UserRole',
            object_id=str(user.pk),
            old_values={'role': role_name, 'is_active': True},
            new_values={'role': role_name, 'is_active': False},
        )

    @classmethod
    @transaction.atomic
    def sync_user_roles(cls, *, user: User, roles, actor=None) -> None:
        wanted = {role.name for role in roles}
        current = set(user.role_names)
        for name in current - wanted:
            cls.revoke_role(user=user, role_name=name, actor=actor)
        for name in wanted - current:
            cls.assign_role(user=user, role_name=name, actor=actor)

    @staticmethod
    @transaction.atomic
    def create_role(*, actor=None, permissions=None, **fields) -> Role:
        role = Role.objects.create(created_by=actor, **fields)
        if permissions is not None:
            role.permissions.set(permissions)
        return role

    @staticmethod
    @transaction.atomic
    def update_role(*, role: Role, actor=None, permissions=None, **fields) -> Role:
        if role.is_system and 'name' in fields and fields['name'] != role.name:
            raise BusinessRuleViolation(detail='System roles cannot be renamed.')
        for field, value in fields.items():
            setattr(role, field, value)
        role.updated_by = actor
        role.save()
        if permissions is not None:
            role.permissions.set(permissions)
        return role

    @staticmethod
    @transaction.atomic
    def sync_permissions(*, role: Role, permissions, actor=None) -> Role:
        old = sorted(role.permissions.values_list('name', flat=True))
        role.permissions.set(permissions)
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='Role',
            object_id=str(role.pk),
            old_values={'permissions': old},
            new_values={'permissions': sorted(p.name for p in permissions)},
        )
        logger.info('Role %s permissions synced (%d)', role.name, len(permissions))
        return role

    @staticmethod
    @transaction.atomic
    def delete_role(*, role: Role, actor=None) -> None:
        if role.is_system:
            raise BusinessRuleViolation(detail='System roles cannot be deleted.')
        if role.user_roles.filter(is_active=True).exists():
            raise BusinessRuleViolation(detail='Role is still assigned to users.')
        logger.info('Role %s deleted by %s', role.name, getattr(actor, 'pk', None))
        role.delete()
