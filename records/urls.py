"""
Records — URL Configuration

@file records/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import IcdCodeViewSet, MedicalRecordViewSet, PrescriptionViewSet

app_name = 'records'

router = DefaultRouter()
router.register('medical-records', MedicalRecordViewSet, basename='medical-record')
router.register('prescriptions', PrescriptionViewSet, basename='prescription')
router.register('icd-codes', IcdCodeViewSet, basename='icd-code')

urlpatterns = [
    path('', include(router.urls)),
]
