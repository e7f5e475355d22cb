"""
Queues — Views

Staff-facing queue ledger endpoints, per-department queue settings, and
the public kiosk endpoints (take a ticket, display board).

@file queues/views.py
"""

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from clinic.models import Department
from users.permissions import HasModulePermission, IsActiveUser

from .filters import QueueFilter
from .models import Queue, QueueSetting
from .serializers import (
    AssignPatientSerializer,
    QueueCallSerializer,
    QueueNotesSerializer,
    QueueReadSerializer,
    QueueResetSerializer,
    QueueSettingSerializer,
    QueueTakeSerializer,
)
from .services import QueueService, QueueSettingService

DATE_PARAMS = ('date', 'date_from', 'date_to')


def _department_param(request):
    department_id = request.query_params.get('department')
    if not department_id:
        return None
    return get_object_or_404(Department, pk=department_id)


def _take(request):
    serializer = QueueTakeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    queue = QueueService.take(actor=request.user, **serializer.validated_data)
    return Response(
        {
            'success': True,
            'message': f'Queue number {queue.queue_code} issued.',
            'data': QueueReadSerializer(queue).data,
        },
        status=status.HTTP_201_CREATED,
    )


class QueueViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Queue tickets are never edited or deleted directly: every change goes
    through a transition action (call, start, complete, skip, cancel).
    """

    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'queues'
    action_permissions = {
        'take': 'queues.create',
        'reset': 'queues.manage',
    }
    serializer_class = QueueReadSerializer
    filterset_class = QueueFilter
    search_fields = ['queue_code', 'patient__name', 'patient__medical_record_number']
    ordering_fields = ['queue_number', 'created_at', 'called_at']
    ordering = ['queue_number']

    def get_queryset(self):
        qs = Queue.objects.select_related('department', 'patient', 'doctor', 'service', 'served_by')
        if self.action == 'list' and not any(p in self.request.query_params for p in DATE_PARAMS):
            qs = qs.filter(queue_date=timezone.localdate())
        return qs

    def create(self, request, *args, **kwargs):
        return _take(request)

    @action(detail=False, methods=['post'])
    def take(self, request):
        return _take(request)

    def _respond(self, queue, message):
        return Response({'success': True, 'message': message, 'data': QueueReadSerializer(queue).data})

    @action(detail=True, methods=['post', 'patch'])
    def call(self, request, pk=None):
        serializer = QueueCallSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        queue = QueueService.call(
            queue_id=self.get_object().pk, actor=request.user,
            counter_number=serializer.validated_data.get('counter_number'),
        )
        return self._respond(queue, f'Queue {queue.queue_code} called.')

    @action(detail=True, methods=['post', 'patch'])
    def start(self, request, pk=None):
        queue = QueueService.start(queue_id=self.get_object().pk, actor=request.user)
        return self._respond(queue, f'Queue {queue.queue_code} in service.')

    @action(detail=True, methods=['post', 'patch'])
    def complete(self, request, pk=None):
        serializer = QueueNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        queue = QueueService.complete(
            queue_id=self.get_object().pk, actor=request.user,
            notes=serializer.validated_data.get('notes'),
        )
        return self._respond(queue, f'Queue {queue.queue_code} completed.')

    @action(detail=True, methods=['post', 'patch'])
    def skip(self, request, pk=None):
        serializer = QueueNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        queue = QueueService.skip(
            queue_id=self.get_object().pk, actor=request.user,
            notes=serializer.validated_data.get('notes'),
        )
        return self._respond(queue, f'Queue {queue.queue_code} skipped.')

    @action(detail=True, methods=['post', 'patch'])
    def cancel(self, request, pk=None):
        serializer = QueueNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        queue = QueueService.cancel(
            queue_id=self.get_object().pk, actor=request.user,
            notes=serializer.validated_data.get('notes'),
        )
        return self._respond(queue, f'Queue {queue.queue_code} cancelled.')

    @action(detail=True, methods=['post', 'patch'], url_path='assign-patient')
    def assign_patient(self, request, pk=None):
        serializer = AssignPatientSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        queue = QueueService.assign_patient(
            queue_id=self.get_object().pk, actor=request.user,
            patient=serializer.validated_data['patient'],
        )
        return self._respond(queue, 'Patient assigned to queue.')

    @action(detail=False, methods=['get'])
    def today(self, request):
        qs = self.get_queryset().filter(queue_date=timezone.localdate())
        department = _department_param(request)
        if department is not None:
            qs = qs.filter(department=department)
        data = {
            value: QueueReadSerializer(qs.filter(status=value).order_by('queue_number'), many=True).data
            for value, _label in Queue.Status.choices
        }
        return Response({'success': True, 'data': data})

    @action(detail=False, methods=['get'])
    def stats(self, request):
        day = request.query_params.get('date') or timezone.localdate()
        return Response({
            'success': True,
            'data': QueueService.stats(day=day, department=_department_param(request)),
        })

    @action(detail=False, methods=['get'])
    def display(self, request):
        return Response({
            'success': True,
            'data': QueueService.display(department=_department_param(request)),
        })

    @action(detail=False, methods=['get'], url_path=r'current/(?P<department_id>[^/.]+)')
    def current(self, request, department_id=None):
        department = get_object_or_404(Department, pk=department_id)
        data = QueueService.current_for(department)
        return Response({
            'success': True,
            'data': {
                'current': QueueReadSerializer(data['current']).data if data['current'] else None,
                'next': QueueReadSerializer(data['next']).data if data['next'] else None,
                'remaining_quota': data['remaining_quota'],
            },
        })

    @action(detail=False, methods=['post'])
    def reset(self, request):
        serializer = QueueResetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        count = QueueService.reset(
            day=serializer.validated_data.get('date') or timezone.localdate(),
            department=serializer.validated_data.get('department'),
            actor=request.user,
        )
        return Response({
            'success': True,
            'message': f'{count} queue(s) cancelled.',
            'data': {'cancelled': count},
        })


class QueueSettingViewSet(viewsets.GenericViewSet):
    """
    GET /queue-settings/ lists every department, with unsaved defaults for
    active departments that have no setting yet. PUT /queue-settings/{department}/
    creates or updates the department's setting.
    """

    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'queues'
    action_permissions = {'update': 'queues.manage'}
    serializer_class = QueueSettingSerializer
    pagination_class = None

    def get_queryset(self):
        return QueueSetting.objects.select_related('department')

    def list(self, request):
        settings_ = list(self.get_queryset())
        data = QueueSettingSerializer(settings_, many=True).data
        configured = {s.department_id for s in settings_}
        for department in Department.objects.filter(is_active=True).exclude(pk__in=configured):
            data.append({
                'id': None,
                'department': department.pk,
                'department_name': department.name,
                'prefix': department.name[:1].upper(),
                'daily_quota': department.quota_per_day,
                'start_number': 1,
                'is_active': False,
                'today_count': 0,
                'remaining_quota': 0,
                'updated_at': None,
            })
        return Response({'success': True, 'data': data})

    def update(self, request, pk=None):
        department = get_object_or_404(Department, pk=pk)
        serializer = QueueSettingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        setting = QueueSettingService.upsert(
            department=department, actor=request.user, **serializer.validated_data,
        )
        return Response({
            'success': True,
            'message': 'Queue settings saved.',
            'data': QueueSettingSerializer(setting).data,
        })


# ---------------------------------------------------------------------------
# Public kiosk
# ---------------------------------------------------------------------------

class KioskTakeQueueView(APIView):
    """POST /api/v1/kiosk/take-queue — self-service ticket, no login."""
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = 'anon'

    def post(self, request):
        return _take(request)


class KioskQueueDisplayView(APIView):
    """GET /api/v1/kiosk/queue-display — TV board feed."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({
            'success': True,
            'data': QueueService.display(department=_department_param(request)),
        })
