"""
Clinic — API Integration Tests

@file clinic/tests/test_views.py
"""

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from rest_framework import status

from clinic.models import ClinicSetting
from core.models import AuditLog
from tests.factories import DepartmentFactory, ServiceFactory


@pytest.mark.django_db
class TestDepartmentEndpoints:
    def test_create_uppercases_code(self, admin_client):
        response = admin_client.post(
            reverse('api-v1:clinic:department-list'),
            {'code': 'umum', 'name': 'Poli Umum', 'quota_per_day': 40},
            format='json',
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()['data']['code'] == 'UMUM'

    def test_active_list_needs_no_module_permission(self, authenticated_client):
        DepartmentFactory()
        DepartmentFactory(is_active=False)
        response = authenticated_client.get(reverse('api-v1:clinic:department-active'))
        assert response.status_code == status.HTTP_200_OK
        assert len(response.json()['data']) == 1

    def test_toggle_status(self, admin_client):
        department = DepartmentFactory()
        response = admin_client.post(
            reverse('api-v1:clinic:department-toggle-status', kwargs={'pk': department.pk}),
        )
        assert response.status_code == status.HTTP_200_OK
        department.refresh_from_db()
        assert department.is_active is False


@pytest.mark.django_db
class TestServiceEndpoints:
    def test_retrieve_includes_total_price(self, admin_client):
        service = ServiceFactory()
        response = admin_client.get(reverse('api-v1:clinic:service-detail', kwargs={'pk': service.pk}))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()['data']['total_price'] == 80000

    def test_categories(self, admin_client):
        response = admin_client.get(reverse('api-v1:clinic:service-categories'))
        assert response.status_code == status.HTTP_200_OK
        assert any(item['value'] == 'konsultasi' for item in response.json()['data'])


@pytest.mark.django_db
class TestClinicProfile:
    def test_settings_update(self, admin_client):
        response = admin_client.put(
            reverse('api-v1:clinic:clinic-settings'),
            {'name': 'Klinik Pratama', 'city': 'Bandung'},
            format='json',
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()['data']['name'] == 'Klinik Pratama'

    def test_public_info_needs_no_auth(self, api_client):
        response = api_client.get(reverse('api-v1:clinic:clinic-info'))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()['data']['name'] == 'MediKlinik'


@pytest.fixture
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path
    return tmp_path


def png(name='logo.png', size=64):
    return SimpleUploadedFile(name, b'\x89PNG\r\n\x1a\n' + b'0' * size, content_type='image/png')


@pytest.mark.django_db
class TestClinicAssets:
    def test_logo_upload(self, admin_client, media_root):
        response = admin_client.post(
            reverse('api-v1:clinic:clinic-settings-logo'), {'logo': png('first.png')}, format='multipart',
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()['data']
        assert data['logo'] == 'clinic/first.png'
        assert data['url'].endswith('/media/clinic/first.png')
        assert (media_root / 'clinic' / 'first.png').exists()
        assert AuditLog.objects.filter(model_name='ClinicSetting', new_values__logo='clinic/first.png').exists()

    def test_logo_replacement_removes_previous_file(self, admin_client, media_root):
        url = reverse('api-v1:clinic:clinic-settings-logo')
        admin_client.post(url, {'logo': png('first.png')}, format='multipart')
        admin_client.post(url, {'logo': png('second.png')}, format='multipart')

        assert ClinicSetting.load().logo.name == 'clinic/second.png'
        assert not (media_root / 'clinic' / 'first.png').exists()
        assert (media_root / 'clinic' / 'second.png').exists()

    def test_logo_extension_rejected(self, admin_client, media_root):
        upload = SimpleUploadedFile('logo.exe', b'MZ', content_type='application/octet-stream')
        response = admin_client.post(
            reverse('api-v1:clinic:clinic-settings-logo'), {'logo': upload}, format='multipart',
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert not ClinicSetting.load().logo

    def test_favicon_size_limit(self, admin_client, media_root):
        response = admin_client.post(
            reverse('api-v1:clinic:clinic-settings-favicon'),
            {'favicon': png('favicon.png', size=600 * 1024)},
            format='multipart',
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert not ClinicSetting.load().favicon

    def test_settings_update_ignores_logo_path(self, admin_client, media_root):
        response = admin_client.put(
            reverse('api-v1:clinic:clinic-settings'), {'logo': 'elsewhere/x.png'}, format='json',
        )
        assert response.status_code == status.HTTP_200_OK
        assert not ClinicSetting.load().logo

    def test_public_info_exposes_favicon_url(self, admin_client, api_client, media_root):
        upload = SimpleUploadedFile('favicon.ico', b'\x00\x00\x01\x00', content_type='image/x-icon')
        admin_client.post(reverse('api-v1:clinic:clinic-settings-favicon'), {'favicon': upload}, format='multipart')

        data = api_client.get(reverse('api-v1:clinic:clinic-info')).json()['data']
        assert data['favicon_url'] == '/media/clinic/favicon.ico'
        assert data['logo_url'] is None
