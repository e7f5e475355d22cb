"""
Records — Views

Examination room endpoints: start a record from a queue ticket, fill it
in, complete it (which closes the ticket and bills the visit), and write
prescriptions. Pharmacy staff work the prescription list. The ICD catalogue
backs diagnosis entry.

@file records/views.py
"""

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from clinic.models import Department
from core.services import toggle_active
from patients.models import Patient
from users.models import User
from users.permissions import HasModulePermission, IsActiveUser

from .filters import IcdCodeFilter, MedicalRecordFilter, PrescriptionFilter
from .models import ICD10_CHAPTERS, IcdCode, MedicalRecord, Prescription
from .serializers import (
    CompleteRecordSerializer,
    IcdCodeDetailSerializer,
    IcdCodeSerializer,
    IcdImportSerializer,
    MedicalRecordDetailSerializer,
    MedicalRecordListSerializer,
    MedicalRecordUpdateSerializer,
    PendingExaminationSerializer,
    PrescriptionReadSerializer,
    PrescriptionStatusSerializer,
    PrescriptionUpdateSerializer,
    PrescriptionWriteSerializer,
    RecordPrescriptionSerializer,
    StartExaminationSerializer,
)
from .services import IcdCodeService, MedicalRecordService, PrescriptionService


def _department_param(request):
    department_id = request.query_params.get('department')
    if not department_id:
        return None
    return get_object_or_404(Department, pk=department_id)


class MedicalRecordViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'medical_records'
    action_permissions = {
        'complete': 'medical_records.edit',
        'prescription': 'prescriptions.create',
        'patient_history': 'medical_records.view',
    }
    filterset_class = MedicalRecordFilter
    ordering_fields = ['visit_date', 'record_number', 'created_at', 'completed_at']
    ordering = ['-created_at']

    def get_queryset(self):
        qs = MedicalRecord.objects.select_related('patient', 'department', 'doctor', 'queue')
        if self.action == 'list':
            return qs.prefetch_related('diagnoses')
        return qs.prefetch_related(
            'diagnoses', 'service_lines', 'prescriptions__items', 'prescriptions__medical_record__patient',
        )

    def get_serializer_class(self):
        if self.action == 'create':
            return StartExaminationSerializer
        if self.action in ('update', 'partial_update'):
            return MedicalRecordUpdateSerializer
        if self.action in ('list', 'completed', 'patient_history'):
            return MedicalRecordListSerializer
        return MedicalRecordDetailSerializer

    def _respond(self, record, message, status_code=status.HTTP_200_OK):
        record = self.get_queryset().get(pk=record.pk)
        return Response(
            {'success': True, 'message': message, 'data': MedicalRecordDetailSerializer(record).data},
            status=status_code,
        )

    def create(self, request, *args, **kwargs):
        """Start an examination for a queue ticket."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = MedicalRecordService.start_examination(
            queue=serializer.validated_data['queue'], actor=request.user,
        )
        return self._respond(record, 'Examination started.', status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        record = self.get_object()
        serializer = self.get_serializer(record, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        record = MedicalRecordService.update_record(
            record=record,
            diagnoses=data.pop('diagnoses', None),
            service_lines=data.pop('service_lines', None),
            actor=request.user,
            **data,
        )
        return self._respond(record, 'Medical record updated.')

    def destroy(self, request, *args, **kwargs):
        MedicalRecordService.cancel_record(record=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Medical record cancelled.', 'data': None})

    @action(detail=False, methods=['get'])
    def stats(self, request):
        doctor_id = request.query_params.get('doctor')
        return Response({
            'success': True,
            'data': MedicalRecordService.stats(
                day=request.query_params.get('date') or timezone.localdate(),
                department=_department_param(request),
                doctor=get_object_or_404(User, pk=doctor_id) if doctor_id else None,
            ),
        })

    @action(detail=False, methods=['get'])
    def pending(self, request):
        data = MedicalRecordService.pending(department=_department_param(request))
        return Response({'success': True, 'data': PendingExaminationSerializer(data).data})

    @action(detail=False, methods=['get'])
    def completed(self, request):
        qs = MedicalRecordService.completed(
            day=request.query_params.get('date') or timezone.localdate(),
            department=_department_param(request),
            unpaid_only=request.query_params.get('unpaid_only') in ('1', 'true', 'True'),
        )
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(MedicalRecordListSerializer(page, many=True).data)

    @action(detail=False, methods=['get'], url_path=r'patient-history/(?P<patient_id>[^/.]+)')
    def patient_history(self, request, patient_id=None):
        patient = get_object_or_404(Patient, pk=patient_id)
        qs = (
            patient.medical_records
            .select_related('department', 'doctor')
            .prefetch_related('diagnoses')
            .order_by('-visit_date', '-created_at')
        )
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(MedicalRecordListSerializer(page, many=True).data)

    @action(detail=True, methods=['post', 'patch'])
    def complete(self, request, pk=None):
        serializer = CompleteRecordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = MedicalRecordService.complete_record(
            record=self.get_object(),
            create_invoice=serializer.validated_data['create_invoice'],
            actor=request.user,
        )
        return self._respond(record, 'Examination completed.')

    @action(detail=True, methods=['post'])
    def prescription(self, request, pk=None):
        serializer = RecordPrescriptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        prescription = PrescriptionService.create(
            medical_record=self.get_object(), actor=request.user, **serializer.validated_data,
        )
        prescription = (
            Prescription.objects
            .select_related('medical_record__patient', 'medical_record__doctor')
            .prefetch_related('items')
            .get(pk=prescription.pk)
        )
        return Response(
            {'success': True, 'message': 'Prescription created.', 'data': PrescriptionReadSerializer(prescription).data},
            status=status.HTTP_201_CREATED,
        )


class PrescriptionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'prescriptions'
    action_permissions = {'update_status': 'prescriptions.edit'}
    filterset_class = PrescriptionFilter
    ordering_fields = ['created_at', 'prescription_number']
    ordering = ['-created_at']

    def get_queryset(self):
        return (
            Prescription.objects
            .select_related('medical_record__patient', 'medical_record__doctor')
            .prefetch_related('items')
        )

    def get_serializer_class(self):
        if self.action == 'create':
            return PrescriptionWriteSerializer
        if self.action in ('update', 'partial_update'):
            return PrescriptionUpdateSerializer
        if self.action == 'update_status':
            return PrescriptionStatusSerializer
        return PrescriptionReadSerializer

    def _respond(self, prescription, message, status_code=status.HTTP_200_OK):
        prescription = self.get_queryset().get(pk=prescription.pk)
        return Response(
            {'success': True, 'message': message, 'data': PrescriptionReadSerializer(prescription).data},
            status=status_code,
        )

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        prescription = PrescriptionService.create(actor=request.user, **serializer.validated_data)
        return self._respond(prescription, 'Prescription created.', status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        prescription = self.get_object()
        serializer = self.get_serializer(data=request.data, partial=kwargs.pop('partial', False))
        serializer.is_valid(raise_exception=True)
        prescription = PrescriptionService.update(
            prescription=prescription, actor=request.user, **serializer.validated_data,
        )
        return self._respond(prescription, 'Prescription updated.')

    def destroy(self, request, *args, **kwargs):
        PrescriptionService.cancel(prescription=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Prescription cancelled.', 'data': None})

    @action(detail=True, methods=['patch', 'post'], url_path='status')
    def update_status(self, request, pk=None):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        prescription = PrescriptionService.change_status(
            prescription=self.get_object(),
            status=serializer.validated_data['status'],
            actor=request.user,
        )
        return self._respond(prescription, f'Prescription {prescription.get_status_display().lower()}.')


class IcdCodeViewSet(viewsets.ModelViewSet):
    """ICD-10 / ICD-9-CM catalogue with typeahead search and CSV/JSON import."""
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'icd_codes'
    action_permissions = {'import_file': 'icd_codes.create', 'types': None, 'chapters': None}
    filterset_class = IcdCodeFilter
    ordering_fields = ['code', 'name_id', 'chapter', 'created_at']
    ordering = ['code']

    def get_queryset(self):
        return IcdCode.objects.all()

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return IcdCodeDetailSerializer
        if self.action == 'import_file':
            return IcdImportSerializer
        return IcdCodeSerializer

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def perform_update(self, serializer):
        serializer.save(updated_by=self.request.user)

    def create(self, request, *args, **kwargs):
        response = super().create(request, *args, **kwargs)
        return Response(
            {'success': True, 'message': 'ICD code created.', 'data': response.data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        response = super().update(request, *args, **kwargs)
        return Response({'success': True, 'message': 'ICD code updated.', 'data': response.data})

    def destroy(self, request, *args, **kwargs):
        IcdCodeService.delete(icd=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'ICD code deleted.', 'data': None})

    @action(detail=False, methods=['get'])
    def search(self, request):
        """Active codes matching ``q`` for diagnosis entry."""
        term = request.query_params.get('q', '').strip()
        if not term:
            return Response({'success': True, 'data': []})
        codes = IcdCodeService.search(term=term, icd_type=request.query_params.get('type'))
        return Response({
            'success': True,
            'data': [
                {'id': str(icd.pk), 'code': icd.code, 'name': icd.display_name,
                 'type': icd.type, 'display': icd.full_display}
                for icd in codes
            ],
        })

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response({'success': True, 'data': IcdCodeService.stats()})

    @action(detail=False, methods=['get'])
    def types(self, request):
        data = [{'value': value, 'label': str(label)} for value, label in IcdCode.Type.choices]
        return Response({'success': True, 'data': data})

    @action(detail=False, methods=['get'])
    def chapters(self, request):
        data = [{'value': key, 'label': label} for key, label in ICD10_CHAPTERS.items()]
        return Response({'success': True, 'data': data})

    @action(detail=True, methods=['post'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        icd = toggle_active(self.get_object(), actor=request.user)
        return Response({
            'success': True,
            'message': 'ICD code activated.' if icd.is_active else 'ICD code deactivated.',
            'data': IcdCodeSerializer(icd).data,
        })

    @action(
        detail=False, methods=['post'], url_path='import', url_name='import',
        parser_classes=[MultiPartParser, FormParser],
    )
    def import_file(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rows, first_line = IcdCodeService.read_rows(serializer.validated_data['file'])
        result = IcdCodeService.import_rows(
            rows=rows, icd_type=serializer.validated_data['type'], first_line=first_line, actor=request.user,
        )
        return Response({
            'success': True,
            'message': f'Import finished: {result["imported"]} imported, {result["skipped"]} skipped (already present).',
            'data': result,
        })
