"""
MediKlinik — Root conftest for pytest

Shared fixtures available to all test modules.

@file conftest.py
"""

import pytest
from rest_framework.test import APIClient

from tests.factories import PermissionFactory, RoleFactory, SuperuserFactory, UserFactory, UserRoleFactory


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Active user with no roles; default password TestPass2026!"""
    return UserFactory()


@pytest.fixture
def admin_user(db):
    """Superuser with default password TestPass2026!"""
    return SuperuserFactory()


@pytest.fixture
def authenticated_client(api_client, user):
    """API client authenticated as a regular user."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def admin_client(api_client, admin_user):
    """API client authenticated as a superuser."""
    api_client.force_authenticate(user=admin_user)
    return api_client


@pytest.fixture
def grant(db):
    """``grant(user, 'module.action', ...)`` gives ``user`` a fresh role holding those permissions."""

    def _grant(user, *names):
        role = RoleFactory()
        for name in names:
            module, action = name.split('.')
            role.permissions.add(PermissionFactory(module=module, action=action))
        UserRoleFactory(user=user, role=role)
        return role

    return _grant
