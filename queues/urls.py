"""
Queues — URL Configuration

@file queues/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import KioskQueueDisplayView, KioskTakeQueueView, QueueSettingViewSet, QueueViewSet

app_name = 'queues'

router = DefaultRouter()
router.register('queues', QueueViewSet, basename='queue')
router.register('queue-settings', QueueSettingViewSet, basename='queue-setting')

urlpatterns = [
    path('kiosk/take-queue/', KioskTakeQueueView.as_view(), name='kiosk-take-queue'),
    path('kiosk/queue-display/', KioskQueueDisplayView.as_view(), name='kiosk-queue-display'),
    path('', include(router.urls)),
]
