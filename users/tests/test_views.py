"""
Users — API Integration Tests

End-to-end tests for auth endpoints, user CRUD and permission checks.

@file users/tests/test_views.py
"""

import pytest
from django.urls import reverse
from rest_framework import status

from tests.factories import PermissionFactory, RoleFactory, UserFactory


@pytest.mark.django_db
class TestLoginEndpoint:
    def test_login_success(self, api_client):
        UserFactory(email='dokter@klinik.test', password='Login2026!!')
        response = api_client.post(
            reverse('api-v1:auth:login'),
            {'email': 'dokter@klinik.test', 'password': 'Login2026!!'},
            format='json',
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data['success'] is True
        assert 'access' in data['data']
        assert 'refresh' in data['data']
        assert data['data']['user']['email'] == 'dokter@klinik.test'

    def test_login_wrong_password(self, api_client):
        UserFactory(email='dokter@klinik.test', password='Login2026!!')
        response = api_client.post(
            reverse('api-v1:auth:login'),
            {'email': 'dokter@klinik.test', 'password': 'wrong'},
            format='json',
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        body = response.json()
        assert body['success'] is False
        assert body['code'] == 'AUTHENTICATION_FAILED'

    def test_login_inactive_user(self, api_client):
        UserFactory(email='off@klinik.test', password='Login2026!!', is_active=False)
        response = api_client.post(
            reverse('api-v1:auth:login'),
            {'email': 'off@klinik.test', 'password': 'Login2026!!'},
            format='json',
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_missing_fields_is_validation_error(self, api_client):
        response = api_client.post(reverse('api-v1:auth:login'), {}, format='json')
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()['code'] == 'VALIDATION_ERROR'


@pytest.mark.django_db
class TestMeEndpoint:
    def test_me_authenticated(self, authenticated_client, user):
        response = authenticated_client.get(reverse('api-v1:auth:me'))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()['data']['email'] == user.email
        assert response.json()['data']['permissions'] == []

    def test_me_unauthenticated(self, api_client):
        response = api_client.get(reverse('api-v1:auth:me'))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_change_password(self, authenticated_client, user):
        response = authenticated_client.put(
            reverse('api-v1:auth:password'),
            {
                'current_password': 'TestPass2026!',
                'password': 'Brand2026New!',
                'password_confirmation': 'Brand2026New!',
            },
            format='json',
        )
        assert response.status_code == status.HTTP_200_OK
        user.refresh_from_db()
        assert user.check_password('Brand2026New!')


@pytest.mark.django_db
class TestUserCRUD:
    def test_list_users_paginated(self, admin_client):
        UserFactory.create_batch(5)
        response = admin_client.get(reverse('api-v1:users:user-list'))
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body['meta']['total'] == 6
        assert body['meta']['current_page'] == 1

    def test_create_user(self, admin_client):
        RoleFactory(name='perawat')
        response = admin_client.post(
            reverse('api-v1:users:user-list'),
            {
                'email': 'nurse@klinik.test',
                'name': 'Nurse Ani',
                'password': 'NewUser2026!!',
                'roles': ['perawat'],
            },
            format='json',
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()['data']['roles'][0]['role__name'] == 'perawat'

    def test_retrieve_user(self, admin_client):
        user = UserFactory()
        response = admin_client.get(reverse('api-v1:users:user-detail', kwargs={'pk': user.pk}))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()['data']['email'] == user.email

    def test_unauthenticated_access_denied(self, api_client):
        response = api_client.get(reverse('api-v1:users:user-list'))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_missing_permission_is_forbidden(self, authenticated_client):
        response = authenticated_client.get(reverse('api-v1:users:user-list'))
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()['success'] is False

    def test_granted_permission_allows_list(self, authenticated_client, user, grant):
        grant(user, 'users.view')
        response = authenticated_client.get(reverse('api-v1:users:user-list'))
        assert response.status_code == status.HTTP_200_OK

    def test_view_permission_does_not_allow_create(self, authenticated_client, user, grant):
        grant(user, 'users.view')
        response = authenticated_client.post(
            reverse('api-v1:users:user-list'),
            {'email': 'x@klinik.test', 'name': 'X', 'password': 'NewUser2026!!'},
            format='json',
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestRoleEndpoints:
    def test_system_role_delete_rejected(self, admin_client):
        role = RoleFactory(is_system=True)
        response = admin_client.delete(reverse('api-v1:users:role-detail', kwargs={'pk': role.pk}))
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_grouped_permissions(self, admin_client):
        PermissionFactory(module='queues', action='view')
        PermissionFactory(module='billing', action='view')
        response = admin_client.get(reverse('api-v1:users:permission-grouped'))
        assert response.status_code == status.HTTP_200_OK
        assert set(response.json()['data']) == {'queues', 'billing'}
