"""
MediKlinik — Root URL Configuration

All API endpoints are namespaced under /api/v1/.
The DRF browsable API is available for route inspection in development.

@file config/urls.py
"""

from django.contrib import admin
from django.urls import include, path
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.reverse import reverse

admin.site.site_header = 'MediKlinik Administration'
admin.site.site_title = 'MediKlinik'
admin.site.index_title = 'Clinic Management'


@api_view(['GET'])
@permission_classes([AllowAny])
def api_root(request, format=None):
    """MediKlinik API v1 — endpoint directory."""

    def url(name):
        return reverse(f'api-v1:{name}', request=request, format=format)

    return Response({
        'auth': {
            'login': url('auth:login'),
            'refresh': url('auth:token-refresh'),
            'logout': url('auth:logout'),
            'me': url('auth:me'),
        },
        'users': url('users:user-list'),
        'roles': url('users:role-list'),
        'clinic': {
            'departments': url('clinic:department-list'),
            'services': url('clinic:service-list'),
            'doctor_schedules': url('clinic:doctor-schedule-list'),
            'settings': url('clinic:clinic-settings'),
            'logo': url('clinic:clinic-settings-logo'),
            'favicon': url('clinic:clinic-settings-favicon'),
            'info': url('clinic:clinic-info'),
        },
        'patients': url('patients:patient-list'),
        'queues': {
            'list': url('queues:queue-list'),
            'settings': url('queues:queue-setting-list'),
            'kiosk_take': url('queues:kiosk-take-queue'),
            'kiosk_display': url('queues:kiosk-queue-display'),
        },
        'pharmacy': {
            'medicines': url('pharmacy:medicine-list'),
            'categories': url('pharmacy:medicine-category-list'),
            'stock_movements': url('pharmacy:stock-movement-list'),
        },
        'purchasing': {
            'suppliers': url('purchasing:supplier-list'),
            'purchase_orders': url('purchasing:purchase-order-list'),
            'goods_receipts': url('purchasing:goods-receipt-list'),
        },
        'records': {
            'medical_records': url('records:medical-record-list'),
            'prescriptions': url('records:prescription-list'),
            'icd_codes': url('records:icd-code-list'),
        },
        'billing': url('billing:invoice-list'),
    })


api_v1_patterns = [
    path('', api_root, name='api-root'),
    path('auth/', include('users.urls', namespace='auth')),
    path('', include('users.urls_users', namespace='users')),
    path('', include('clinic.urls', namespace='clinic')),
    path('', include('patients.urls', namespace='patients')),
    path('', include('queues.urls', namespace='queues')),
    path('', include('pharmacy.urls', namespace='pharmacy')),
    path('', include('purchasing.urls', namespace='purchasing')),
    path('', include('records.urls', namespace='records')),
    path('', include('billing.urls', namespace='billing')),
]

urlpatterns = [
    path('admin/', admin.site.urls),

    # DRF session auth (powers the "Log in" button on the browsable API)
    path('api/auth/', include('rest_framework.urls', namespace='rest_framework')),

    # Versioned API
    path('api/v1/', include((api_v1_patterns, 'api-v1'))),
]
