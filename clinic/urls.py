"""
Clinic — URL Configuration

@file clinic/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .serializers import FaviconUploadSerializer, LogoUploadSerializer
from .views import (
    ClinicAssetUploadView,
    ClinicInfoView,
    ClinicSettingView,
    DepartmentViewSet,
    DoctorScheduleViewSet,
    KioskDoctorScheduleView,
    ServiceViewSet,
)

app_name = 'clinic'

router = DefaultRouter()
router.register('departments', DepartmentViewSet, basename='department')
router.register('services', ServiceViewSet, basename='service')
router.register('doctor-schedules', DoctorScheduleViewSet, basename='doctor-schedule')

urlpatterns = [
    path('clinic-settings/', ClinicSettingView.as_view(), name='clinic-settings'),
    path(
        'clinic-settings/logo/',
        ClinicAssetUploadView.as_view(field='logo', serializer_class=LogoUploadSerializer),
        name='clinic-settings-logo',
    ),
    path(
        'clinic-settings/favicon/',
        ClinicAssetUploadView.as_view(field='favicon', serializer_class=FaviconUploadSerializer),
        name='clinic-settings-favicon',
    ),
    path('clinic-info/', ClinicInfoView.as_view(), name='clinic-info'),
    path(
        'kiosk/departments/<uuid:pk>/schedules/',
        KioskDoctorScheduleView.as_view(),
        name='kiosk-doctor-schedules',
    ),
    path('', include(router.urls)),
]
