"""
Users — Model Tests

Tests for User, Role, UserRole and permission resolution.

@file users/tests/test_models.py
"""

import pytest

from tests.factories import (
    DepartmentFactory,
    PermissionFactory,
    RoleFactory,
    SuperuserFactory,
    UserFactory,
    UserRoleFactory,
)
from users.models import User


@pytest.mark.django_db
class TestUserModel:
    def test_create_user_lowercases_email(self):
        user = User.objects.create_user(email='Dokter@Klinik.Test', password='Test2026!!', name='Dr. Budi')
        assert user.email == 'dokter@klinik.test'
        assert user.check_password('Test2026!!')
        assert user.is_staff is False

    def test_create_user_requires_email(self):
        with pytest.raises(ValueError):
            User.objects.create_user(email='', password='Test2026!!')

    def test_superuser_creation(self):
        user = User.objects.create_superuser(email='root@klinik.test', password='Super2026!!', name='Root')
        assert user.is_staff is True
        assert user.is_superuser is True
        assert user.is_super_admin is True

    def test_short_name(self):
        user = UserFactory(name='Siti Rahma')
        assert user.get_short_name() == 'Siti'
        assert user.get_full_name() == 'Siti Rahma'

    def test_departments(self):
        user = UserFactory()
        department = DepartmentFactory()
        user.departments.add(department)
        assert list(user.departments.all()) == [department]

    def test_doctors_manager(self):
        doctor = UserFactory()
        UserRoleFactory(user=doctor, role=RoleFactory(name='dokter'))
        nurse = UserFactory()
        UserRoleFactory(user=nurse, role=RoleFactory(name='perawat'))
        assert list(User.objects.doctors()) == [doctor]


@pytest.mark.django_db
class TestRoleAndRBAC:
    def test_has_role(self):
        user = UserFactory()
        UserRoleFactory(user=user, role=RoleFactory(name='kasir'))
        assert user.has_role('kasir') is True

    def test_has_role_inactive_assignment(self):
        user = UserFactory()
        UserRoleFactory(user=user, role=RoleFactory(name='kasir'), is_active=False)
        assert user.has_role('kasir') is False

    def test_role_names_property(self):
        user = UserFactory()
        UserRoleFactory(user=user, role=RoleFactory(name='dokter'))
        UserRoleFactory(user=user, role=RoleFactory(name='apoteker'))
        assert set(user.role_names) == {'dokter', 'apoteker'}

    def test_permissions_resolve_through_roles(self):
        user = UserFactory()
        role = RoleFactory()
        role.permissions.add(PermissionFactory(module='billing', action='view'))
        UserRoleFactory(user=user, role=role)
        assert user.has_permission('billing.view') is True
        assert user.has_permission('billing.edit') is False
        assert user.get_all_permissions_names() == {'billing.view'}
        assert user.has_any_permission(['billing.edit', 'billing.view']) is True

    def test_inactive_role_grants_nothing(self):
        user = UserFactory()
        role = RoleFactory(is_active=False)
        role.permissions.add(PermissionFactory(module='billing', action='view'))
        UserRoleFactory(user=user, role=role)
        assert user.has_permission('billing.view') is False

    def test_super_admin_role_bypasses_checks(self):
        user = UserFactory()
        UserRoleFactory(user=user, role=RoleFactory(name='super_admin'))
        assert user.has_permission('anything.manage') is True

    def test_superuser_bypasses_checks(self):
        assert SuperuserFactory().has_permission('purchasing.manage') is True

    def test_inactive_user_has_no_permission(self):
        user = SuperuserFactory(is_active=False)
        assert user.has_permission('patients.view') is False
