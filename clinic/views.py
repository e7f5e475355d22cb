"""
Clinic — Views

Departments, the service catalogue, doctor schedules (with the public
kiosk view of today's doctors) and the clinic profile.

@file clinic/views.py
"""

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BusinessRuleViolation
from core.services import toggle_active
from users.models import User
from users.permissions import HasModulePermission, IsActiveUser

from .models import ClinicSetting, Department, DoctorSchedule, Service
from .serializers import (
    ClinicSettingSerializer,
    DepartmentSerializer,
    DoctorScheduleSerializer,
    FaviconUploadSerializer,
    LogoUploadSerializer,
    ServiceReadSerializer,
    ServiceWriteSerializer,
)
from .services import CatalogService, ClinicSettingService, DepartmentService, DoctorScheduleService


class DepartmentViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'departments'
    action_permissions = {'active': None}
    serializer_class = DepartmentSerializer
    filterset_fields = ['is_active', 'color']
    search_fields = ['code', 'name', 'description']
    ordering_fields = ['name', 'code', 'created_at']
    ordering = ['name']

    def get_queryset(self):
        return Department.objects.select_related('default_service')

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def perform_update(self, serializer):
        serializer.save(updated_by=self.request.user)

    def create(self, request, *args, **kwargs):
        response = super().create(request, *args, **kwargs)
        return Response(
            {'success': True, 'message': 'Department created.', 'data': response.data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        response = super().update(request, *args, **kwargs)
        return Response({'success': True, 'message': 'Department updated.', 'data': response.data})

    def destroy(self, request, *args, **kwargs):
        DepartmentService.delete(department=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Department deleted.', 'data': None})

    @action(detail=False, methods=['get'])
    def active(self, request):
        qs = self.get_queryset().filter(is_active=True).order_by('name')
        return Response({'success': True, 'data': self.get_serializer(qs, many=True).data})

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response({'success': True, 'data': DepartmentService.stats()})

    @action(detail=True, methods=['post'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        department = toggle_active(self.get_object(), actor=request.user)
        return Response({
            'success': True,
            'message': 'Department activated.' if department.is_active else 'Department deactivated.',
            'data': self.get_serializer(department).data,
        })


class ServiceViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'services'
    action_permissions = {'active': None, 'categories': None}
    filterset_fields = ['category', 'department', 'is_active', 'requires_appointment']
    search_fields = ['code', 'name', 'description']
    ordering_fields = ['name', 'code', 'category', 'base_price', 'created_at']
    ordering = ['category', 'name']

    def get_queryset(self):
        return Service.objects.select_related('department')

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve', 'active'):
            return ServiceReadSerializer
        return ServiceWriteSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        service = serializer.save(created_by=request.user)
        return Response(
            {'success': True, 'message': 'Service created.', 'data': ServiceReadSerializer(service).data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        service = serializer.save(updated_by=request.user)
        return Response({
            'success': True,
            'message': 'Service updated.',
            'data': ServiceReadSerializer(service).data,
        })

    def destroy(self, request, *args, **kwargs):
        CatalogService.delete(service=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Service deleted.', 'data': None})

    @action(detail=False, methods=['get'])
    def active(self, request):
        qs = self.filter_queryset(self.get_queryset()).filter(is_active=True)
        return Response({'success': True, 'data': ServiceReadSerializer(qs, many=True).data})

    @action(detail=False, methods=['get'])
    def categories(self, request):
        data = [
            {'value': value, 'label': str(label)}
            for value, label in Service.CategoryChoices.choices
        ]
        return Response({'success': True, 'data': data})

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response({'success': True, 'data': CatalogService.stats()})

    @action(detail=True, methods=['post'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        service = toggle_active(self.get_object(), actor=request.user)
        return Response({
            'success': True,
            'message': 'Service activated.' if service.is_active else 'Service deactivated.',
            'data': ServiceReadSerializer(service).data,
        })



class DoctorScheduleViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'doctor_schedules'
    action_permissions = {'day_options': None}
    serializer_class = DoctorScheduleSerializer
    filterset_fields = ['doctor', 'department', 'day_of_week', 'is_active']
    ordering_fields = ['day_of_week', 'start_time', 'created_at']
    ordering = ['day_of_week', 'start_time']

    def get_queryset(self):
        return DoctorSchedule.objects.select_related('doctor', 'department')

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        schedule = DoctorScheduleService.create(actor=request.user, **serializer.validated_data)
        return Response(
            {'success': True, 'message': 'Schedule created.', 'data': self.get_serializer(schedule).data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        schedule = self.get_object()
        serializer = self.get_serializer(schedule, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        schedule = DoctorScheduleService.update(
            schedule=schedule, actor=request.user, **serializer.validated_data,
        )
        return Response({
            'success': True,
            'message': 'Schedule updated.',
            'data': self.get_serializer(schedule).data,
        })

    def destroy(self, request, *args, **kwargs):
        DoctorScheduleService.delete(schedule=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Schedule deleted.', 'data': None})

    @action(detail=False, methods=['get'], url_path='day-options')
    def day_options(self, request):
        data = [{'value': value, 'label': str(label)} for value, label in DoctorSchedule.Day.choices]
        return Response({'success': True, 'data': data})

    @action(detail=False, methods=['get'], url_path='available-doctors')
    def available_doctors(self, request):
        """Doctors practising on ``day`` (0 = Sunday, default today)."""
        day = request.query_params.get('day', '')
        if not day:
            day_of_week = DoctorSchedule.weekday(timezone.localdate())
        elif day.isdigit() and int(day) in DoctorSchedule.Day.values:
            day_of_week = int(day)
        else:
            raise BusinessRuleViolation(detail='day must be between 0 (Sunday) and 6 (Saturday).')
        department_id = request.query_params.get('department')
        groups = DoctorScheduleService.available_doctors(
            day_of_week=day_of_week,
            department=get_object_or_404(Department, pk=department_id) if department_id else None,
        )
        return Response({
            'success': True,
            'data': {
                'day_of_week': day_of_week,
                'day_label': str(DoctorSchedule.Day(day_of_week).label),
                'doctors': [
                    {
                        'doctor': {'id': str(group['doctor'].pk), 'name': group['doctor'].name},
                        'schedules': self.get_serializer(group['schedules'], many=True).data,
                    }
                    for group in groups
                ],
            },
        })

    @action(detail=False, methods=['get'], url_path=r'doctor/(?P<doctor_id>[^/.]+)')
    def doctor_week(self, request, doctor_id=None):
        doctor = get_object_or_404(User.objects.doctors(), pk=doctor_id)
        days = DoctorScheduleService.doctor_week(doctor=doctor)
        return Response({
            'success': True,
            'data': {
                'doctor': {'id': str(doctor.pk), 'name': doctor.name},
                'schedules': [
                    {**day, 'schedules': self.get_serializer(day['schedules'], many=True).data}
                    for day in days
                ],
            },
        })

    @action(detail=True, methods=['post', 'patch'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        schedule = toggle_active(self.get_object(), actor=request.user)
        return Response({
            'success': True,
            'message': 'Schedule activated.' if schedule.is_active else 'Schedule deactivated.',
            'data': self.get_serializer(schedule).data,
        })


class ClinicSettingView(APIView):
    """GET/PUT /api/v1/clinic-settings/ — Clinic profile singleton."""
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'clinic_settings'

    def get(self, request):
        return Response({
            'success': True,
            'data': ClinicSettingSerializer(ClinicSetting.load()).data,
        })

    def put(self, request):
        serializer = ClinicSettingSerializer(ClinicSetting.load(), data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        setting = ClinicSettingService.update(actor=request.user, **serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Clinic settings updated.',
            'data': ClinicSettingSerializer(setting).data,
        })


class ClinicAssetUploadView(APIView):
    """POST /api/v1/clinic-settings/logo/ and /favicon/ — Replace a clinic image."""
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'clinic_settings'
    parser_classes = [MultiPartParser, FormParser]
    field = None
    serializer_class = None

    def post(self, request):
        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        setting = ClinicSettingService.upload_asset(
            field=self.field, upload=serializer.validated_data[self.field], actor=request.user,
        )
        stored = getattr(setting, self.field)
        return Response({
            'success': True,
            'message': f'Clinic {self.field} uploaded.',
            'data': {self.field: stored.name, 'url': request.build_absolute_uri(stored.url)},
        })


class ClinicInfoView(APIView):
    """GET /api/v1/clinic-info/ — Public clinic profile for kiosks and printed headers."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        setting = ClinicSetting.load()
        return Response({
            'success': True,
            'data': {
                'name': setting.name,
                'tagline': setting.tagline,
                'address': setting.address,
                'city': setting.city,
                'phone': setting.phone,
                'email': setting.email,
                'website': setting.website,
                'operational_hours': setting.operational_hours,
                'logo_url': setting.logo.url if setting.logo else None,
                'favicon_url': setting.favicon.url if setting.favicon else None,
            },
        })


class KioskDoctorScheduleView(APIView):
    """GET /api/v1/kiosk/departments/<pk>/schedules — today's doctors with quota left."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, pk):
        department = get_object_or_404(Department, pk=pk, is_active=True)
        rows = DoctorScheduleService.kiosk_today(department=department)
        return Response({
            'success': True,
            'data': [
                {
                    'id': str(row['schedule'].pk),
                    'doctor': {'id': str(row['schedule'].doctor_id), 'name': row['schedule'].doctor.name},
                    'time_range': row['schedule'].time_range,
                    'quota': row['schedule'].quota,
                    'remaining_quota': row['remaining_quota'],
                    'is_currently_available': row['schedule'].is_available_at(),
                }
                for row in rows
            ],
        })
