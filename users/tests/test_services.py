"""
Users — Service Layer Tests

Tests for UserService and RoleService business logic.

@file users/tests/test_services.py
"""

import uuid

import pytest
from django.core.management import call_command

from core.exceptions import BusinessRuleViolation, DuplicateResourceError, ResourceNotFoundError
from core.models import AuditLog
from tests.factories import PermissionFactory, RoleFactory, UserFactory, UserRoleFactory
from users.models import Permission, Role
from users.services import RoleService, UserService


@pytest.mark.django_db
class TestUserService:
    def test_create_user(self):
        user = UserService.create_user(email='kasir@klinik.test', password='Test2026!!', name='Kasir')
        assert user.pk is not None
        assert user.check_password('Test2026!!')

    def test_create_user_with_roles(self):
        role = RoleFactory(name='kasir')
        user = UserService.create_user(
            email='kasir2@klinik.test', password='Test2026!!', name='Kasir', roles=[role],
        )
        assert user.has_role('kasir')

    def test_create_user_duplicate_email(self):
        UserFactory(email='dup@klinik.test')
        with pytest.raises(DuplicateResourceError):
            UserService.create_user(email='DUP@klinik.test', password='Test2026!!', name='Dup')

    def test_update_user(self):
        user = UserFactory()
        updated = UserService.update_user(user_id=user.pk, name='Updated')
        assert updated.name == 'Updated'
        assert AuditLog.objects.filter(model_name='User', object_id=str(user.pk), action='UPDATE').exists()

    def test_update_user_password(self):
        user = UserFactory()
        UserService.update_user(user_id=user.pk, password='Changed2026!!')
        user.refresh_from_db()
        assert user.check_password('Changed2026!!')

    def test_update_nonexistent_user(self):
        with pytest.raises(ResourceNotFoundError):
            UserService.update_user(user_id=uuid.uuid4(), name='Nope')

    def test_toggle_status(self):
        admin = UserFactory()
        user = UserFactory()
        result = UserService.toggle_status(user_id=user.pk, actor=admin)
        assert result.is_active is False
        assert AuditLog.objects.filter(
            model_name='User', object_id=str(user.pk), action='STATUS_CHANGE',
        ).exists()

    def test_cannot_deactivate_self(self):
        user = UserFactory()
        with pytest.raises(BusinessRuleViolation):
            UserService.toggle_status(user_id=user.pk, actor=user)

    def test_delete_user_soft_deletes(self):
        admin = UserFactory()
        user = UserFactory()
        UserService.delete_user(user=user, actor=admin)
        user.refresh_from_db()
        assert user.is_deleted is True
        assert user.is_active is False


@pytest.mark.django_db
class TestRoleService:
    def test_assign_role(self):
        user = UserFactory()
        RoleFactory(name='perawat')
        user_role = RoleService.assign_role(user=user, role_name='perawat')
        assert user_role.is_active is True
        assert user.has_role('perawat') is True

    def test_reassign_reactivates(self):
        user = UserFactory()
        role = RoleFactory(name='perawat')
        UserRoleFactory(user=user, role=role, is_active=False)
        RoleService.assign_role(user=user, role_name='perawat')
        assert user.has_role('perawat') is True

    def test_revoke_role(self):
        user = UserFactory()
        RoleFactory(name='perawat')
        RoleService.assign_role(user=user, role_name='perawat')
        RoleService.revoke_role(user=user, role_name='perawat')
        assert user.has_role('perawat') is False

    def test_assign_nonexistent_role(self):
        with pytest.raises(ResourceNotFoundError):
            RoleService.assign_role(user=UserFactory(), role_name='NONEXISTENT')

    def test_revoke_nonexistent_assignment(self):
        RoleFactory(name='unassigned')
        with pytest.raises(ResourceNotFoundError):
            RoleService.revoke_role(user=UserFactory(), role_name='unassigned')

    def test_sync_user_roles(self):
        user = UserFactory()
        keep, drop, add = RoleFactory(), RoleFactory(), RoleFactory()
        UserRoleFactory(user=user, role=keep)
        UserRoleFactory(user=user, role=drop)
        RoleService.sync_user_roles(user=user, roles=[keep, add])
        assert set(user.role_names) == {keep.name, add.name}

    def test_system_role_cannot_be_deleted(self):
        role = RoleFactory(is_system=True)
        with pytest.raises(BusinessRuleViolation):
            RoleService.delete_role(role=role)

    def test_assigned_role_cannot_be_deleted(self):
        role = RoleFactory()
        UserRoleFactory(role=role)
        with pytest.raises(BusinessRuleViolation):
            RoleService.delete_role(role=role)

    def test_system_role_cannot_be_renamed(self):
        role = RoleFactory(is_system=True)
        with pytest.raises(BusinessRuleViolation):
            RoleService.update_role(role=role, name='renamed')

    def test_sync_permissions(self):
        role = RoleFactory()
        perms = [PermissionFactory(module='queues', action='view'), PermissionFactory(module='queues', action='edit')]
        RoleService.sync_permissions(role=role, permissions=perms)
        assert set(role.permissions.values_list('name', flat=True)) == {'queues.view', 'queues.edit'}


@pytest.mark.django_db
class TestSeedRoles:
    def test_seed_is_idempotent(self):
        call_command('seed_roles')
        call_command('seed_roles')
        assert Permission.objects.count() == 16 * 5
        assert Role.objects.filter(is_system=True).count() == 7

    def test_doctor_role_permissions(self):
        call_command('seed_roles')
        doctor = Role.objects.get(name='dokter')
        names = set(doctor.permissions.values_list('name', flat=True))
        assert 'medical_records.create' in names
        assert 'billing.view' not in names
