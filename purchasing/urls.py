"""
Purchasing — URL Configuration

@file purchasing/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import GoodsReceiptViewSet, PurchaseOrderViewSet, SupplierViewSet

app_name = 'purchasing'

router = DefaultRouter()
router.register('suppliers', SupplierViewSet, basename='supplier')
router.register('purchase-orders', PurchaseOrderViewSet, basename='purchase-order')
router.register('goods-receipts', GoodsReceiptViewSet, basename='goods-receipt')

urlpatterns = [
    path('', include(router.urls)),
]
