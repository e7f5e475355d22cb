"""
Patients — Views

@file patients/views.py
"""

from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.services import toggle_active
from users.permissions import HasModulePermission, IsActiveUser

from .filters import PatientFilter
from .models import Patient
from .serializers import PatientReadSerializer, PatientSummarySerializer, PatientWriteSerializer
from .services import PatientService


class PatientViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'patients'
    action_permissions = {'medical_history': 'medical_records.view'}
    filterset_class = PatientFilter
    search_fields = ['name', 'medical_record_number', 'nik', 'bpjs_number', 'phone']
    ordering_fields = ['created_at', 'name', 'medical_record_number', 'birth_date']
    ordering = ['-created_at']

    def get_queryset(self):
        return Patient.objects.all()

    def get_serializer_class(self):
        if self.action in ('create', 'update', 'partial_update'):
            return PatientWriteSerializer
        if self.action == 'search':
            return PatientSummarySerializer
        return PatientReadSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        patient = PatientService.register(actor=request.user, **serializer.validated_data)
        return Response(
            {'success': True, 'message': 'Patient registered.', 'data': PatientReadSerializer(patient).data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        patient = self.get_object()
        serializer = self.get_serializer(patient, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        patient = PatientService.update(patient=patient, actor=request.user, **serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Patient updated.',
            'data': PatientReadSerializer(patient).data,
        })

    def destroy(self, request, *args, **kwargs):
        PatientService.delete(patient=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Patient deleted.', 'data': None})

    @action(detail=False, methods=['get'])
    def search(self, request):
        """Quick lookup for registration desks: ``?q=`` (min 2 chars)."""
        term = request.query_params.get('q', '').strip()
        if len(term) < 2:
            return Response({'success': True, 'data': []})
        qs = Patient.objects.filter(
            Q(name__icontains=term)
            | Q(medical_record_number__icontains=term)
            | Q(nik__icontains=term)
            | Q(bpjs_number__icontains=term)
            | Q(phone__icontains=term),
            is_active=True,
        ).order_by('name')[:10]
        return Response({'success': True, 'data': PatientSummarySerializer(qs, many=True).data})

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response({'success': True, 'data': PatientService.stats()})

    @action(detail=False, methods=['get'], url_path='generate-mrn')
    def generate_mrn(self, request):
        return Response({
            'success': True,
            'data': {'medical_record_number': PatientService.next_medical_record_number()},
        })

    @action(detail=True, methods=['post'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        patient = toggle_active(self.get_object(), actor=request.user)
        return Response({
            'success': True,
            'message': 'Patient activated.' if patient.is_active else 'Patient deactivated.',
            'data': PatientReadSerializer(patient).data,
        })

    @action(detail=True, methods=['get'])
    def visits(self, request, pk=None):
        from queues.serializers import QueueReadSerializer

        patient = self.get_object()
        qs = (
            patient.queues
            .select_related('department', 'doctor', 'service')
            .order_by('-queue_date', '-created_at')
        )
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(QueueReadSerializer(page, many=True).data)

    @action(detail=True, methods=['get'], url_path='medical-history')
    def medical_history(self, request, pk=None):
        from records.serializers import MedicalRecordListSerializer

        patient = self.get_object()
        qs = (
            patient.medical_records
            .select_related('department', 'doctor')
            .prefetch_related('diagnoses')
            .order_by('-visit_date', '-created_at')
        )
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(MedicalRecordListSerializer(page, many=True).data)
