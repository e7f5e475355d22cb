"""
Patients — URL Configuration

@file patients/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import PatientViewSet

app_name = 'patients'

router = DefaultRouter()
router.register('patients', PatientViewSet, basename='patient')

urlpatterns = [
    path('', include(router.urls)),
]
