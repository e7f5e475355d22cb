"""
Pharmacy — URL Configuration

@file pharmacy/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import MedicineCategoryViewSet, MedicineViewSet, StockMovementViewSet

app_name = 'pharmacy'

router = DefaultRouter()
router.register('medicine-categories', MedicineCategoryViewSet, basename='medicine-category')
router.register('medicines', MedicineViewSet, basename='medicine')
router.register('stock-movements', StockMovementViewSet, basename='stock-movement')

urlpatterns = [
    path('', include(router.urls)),
]
