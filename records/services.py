"""
Records — Service Layer

Examination lifecycle (start from a queue ticket, fill in, complete) and
prescriptions. Completing a record closes the in-service queue ticket and,
unless told otherwise, bills the visit. Diagnoses are coded against the
ICD catalogue maintained here too.

@file records/services.py
"""

import csv
import io
import json
import logging

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from core.constants import (
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_DELETE,
    AUDIT_ACTION_UPDATE,
    PREFIX_MEDICAL_RECORD,
    PREFIX_PRESCRIPTION,
)
from core.exceptions import BusinessRuleViolation, ResourceNotFoundError
from core.numbering import daily_number
from core.services import AuditService
from core.transitions import assert_transition
from queues.models import Queue
from queues.services import QueueService

from .models import (
    IcdCode,
    MedicalRecord,
    MedicalRecordDiagnosis,
    MedicalRecordServiceLine,
    Prescription,
    PrescriptionItem,
)

logger = logging.getLogger('mediklinik')

DEFAULT_SERVICE_NOTE = 'Automatic consultation service'

RECORD_FIELDS = (
    'chief_complaint', 'present_illness', 'past_medical_history', 'family_history',
    'allergy_notes', 'blood_pressure_systolic', 'blood_pressure_diastolic',
    'heart_rate', 'respiratory_rate', 'temperature', 'weight', 'height',
    'oxygen_saturation', 'physical_examination', 'diagnosis', 'diagnosis_notes',
    'treatment', 'treatment_notes', 'recommendations', 'follow_up_date',
    'soap_subjective', 'soap_objective', 'soap_assessment', 'soap_plan',
)


def _actor(actor):
    return actor if getattr(actor, 'is_authenticated', False) else None


class MedicalRecordService:

    @staticmethod
    def _lock(record) -> MedicalRecord:
        try:
            return MedicalRecord.objects.select_for_update().get(pk=record.pk)
        except MedicalRecord.DoesNotExist:
            raise ResourceNotFoundError(detail='Medical record not found.')

    @staticmethod
    @transaction.atomic
    def start_examination(*, queue, actor=None) -> MedicalRecord:
        """Open the record for a queue ticket and pre-bill the department's default service."""
        try:
            queue = Queue.objects.select_for_update().select_related(
                'department__default_service',
            ).get(pk=queue.pk)
        except Queue.DoesNotExist:
            raise ResourceNotFoundError(detail='Queue not found.')
        if queue.patient_id is None:
            raise BusinessRuleViolation(detail='No patient is registered on this queue ticket.')
        if queue.status == Queue.Status.CANCELLED:
            raise BusinessRuleViolation(detail='Cannot examine a cancelled queue ticket.')
        if MedicalRecord.objects.filter(queue=queue).exists():
            raise BusinessRuleViolation(detail='A medical record already exists for this queue ticket.')

        record = MedicalRecord.objects.create(
            record_number=daily_number(MedicalRecord, 'record_number', PREFIX_MEDICAL_RECORD),
            queue=queue,
            patient_id=queue.patient_id,
            department=queue.department,
            doctor=_actor(actor),
            visit_date=timezone.localdate(),
            status=MedicalRecord.Status.IN_PROGRESS,
            created_by=_actor(actor),
        )
        service = queue.department.default_service
        if service is not None:
            MedicalRecordServiceLine.objects.create(
                medical_record=record,
                service=service,
                service_name=service.name,
                quantity=1,
                unit_price=service.total_price,
                notes=DEFAULT_SERVICE_NOTE,
            )

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='MedicalRecord',
            object_id=str(record.pk),
            new_values={
                'record_number': record.record_number,
                'queue_id': str(queue.pk),
                'patient_id': str(queue.patient_id),
            },
        )
        logger.info('MedicalRecord %s started for queue %s', record.record_number, queue.queue_code)
        return record

    @classmethod
    @transaction.atomic
    def update_record(
        cls,
        *,
        record,
        diagnoses: list[dict] | None = None,
        service_lines: list[dict] | None = None,
        actor=None,
        **fields,
    ) -> MedicalRecord:
        """Fill in an open record; ``diagnoses`` / ``service_lines`` replace the existing rows when given."""
        record = cls._lock(record)
        if record.status != MedicalRecord.Status.IN_PROGRESS:
            raise BusinessRuleViolation(
                detail=f'A {record.get_status_display().lower()} medical record cannot be edited.',
            )
        old = AuditService.snapshot(record, fields=list(RECORD_FIELDS))
        for field, value in fields.items():
            if field in RECORD_FIELDS:
                setattr(record, field, value)
        record.updated_by = _actor(actor)
        record.save()

        if diagnoses is not None:
            record.diagnoses.all().delete()
            for row in diagnoses:
                icd = row.get('icd')
                MedicalRecordDiagnosis.objects.create(
                    medical_record=record,
                    icd=icd,
                    icd_code=row.get('icd_code') or (icd.code if icd else ''),
                    icd_name=row.get('icd_name') or (icd.display_name if icd else ''),
                    diagnosis_type=row.get('diagnosis_type') or MedicalRecordDiagnosis.DiagnosisType.PRIMARY,
                    notes=row.get('notes') or '',
                )
        if service_lines is not None:
            record.service_lines.all().delete()
            for row in service_lines:
                MedicalRecordServiceLine.objects.create(
                    medical_record=record,
                    service=row.get('service'),
                    service_name=row['service_name'],
                    quantity=row.get('quantity') or 1,
                    unit_price=row.get('unit_price') or 0,
                    notes=row.get('notes') or '',
                )

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='MedicalRecord',
            object_id=str(record.pk),
            old_values=old,
            new_values=AuditService.snapshot(record, fields=list(RECORD_FIELDS)),
        )
        return record

    @classmethod
    @transaction.atomic
    def complete_record(cls, *, record, create_invoice: bool = True, actor=None) -> MedicalRecord:
        record = cls._lock(record)
        assert_transition(MedicalRecord.TRANSITIONS, record, MedicalRecord.Status.COMPLETED, label='medical record')
        old_status = record.status
        record.status = MedicalRecord.Status.COMPLETED
        record.completed_at = timezone.now()
        record.updated_by = _actor(actor)
        record.save(update_fields=['status', 'completed_at', 'updated_by', 'updated_at'])
        AuditService.log_status_change(actor=actor, instance=record, old_status=old_status)

        if record.queue_id and record.queue.status == Queue.Status.IN_SERVICE:
            QueueService.complete(queue_id=record.queue_id, actor=actor)

        if create_invoice:
            from billing.models import Invoice
            from billing.services import InvoiceService

            if not Invoice.objects.filter(medical_record=record).exists():
                InvoiceService.create_invoice(medical_record=record, include_prescriptions=True, actor=actor)

        logger.info('MedicalRecord %s completed', record.record_number)
        return record

    @classmethod
    @transaction.atomic
    def cancel_record(cls, *, record, actor=None) -> MedicalRecord:
        record = cls._lock(record)
        assert_transition(MedicalRecord.TRANSITIONS, record, MedicalRecord.Status.CANCELLED, label='medical record')
        old_status = record.status
        record.status = MedicalRecord.Status.CANCELLED
        record.updated_by = _actor(actor)
        record.save(update_fields=['status', 'updated_by', 'updated_at'])
        AuditService.log_status_change(actor=actor, instance=record, old_status=old_status)
        logger.info('MedicalRecord %s cancelled', record.record_number)
        return record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def pending(*, department=None) -> dict:
        """In-service tickets with no record yet, and today's open records."""
        today = timezone.localdate()
        waiting = (
            Queue.objects
            .filter(queue_date=today, status=Queue.Status.IN_SERVICE, medical_record__isnull=True)
            .select_related('patient', 'department')
            .order_by('started_at')
        )
        in_progress = (
            MedicalRecord.objects
            .filter(visit_date=today, status=MedicalRecord.Status.IN_PROGRESS)
            .select_related('patient', 'department', 'doctor', 'queue')
            .order_by('created_at')
        )
        if department is not None:
            waiting = waiting.filter(department=department)
            in_progress = in_progress.filter(department=department)
        return {'waiting': waiting, 'in_progress': in_progress}

    @staticmethod
    def completed(*, day, department=None, unpaid_only: bool = False):
        qs = (
            MedicalRecord.objects
            .filter(visit_date=day, status=MedicalRecord.Status.COMPLETED)
            .select_related('patient', 'department', 'doctor', 'queue')
            .order_by('-completed_at')
        )
        if department is not None:
            qs = qs.filter(department=department)
        if unpaid_only:
            qs = qs.filter(Q(invoice__isnull=True) | ~Q(invoice__payment_status='paid'))
        return qs

    @staticmethod
    def stats(*, day, department=None, doctor=None) -> dict:
        qs = MedicalRecord.objects.filter(visit_date=day)
        if department is not None:
            qs = qs.filter(department=department)
        if doctor is not None:
            qs = qs.filter(doctor=doctor)

        counts = qs.aggregate(
            total=Count('id'),
            **{
                value: Count('id', filter=Q(status=value))
                for value, _label in MedicalRecord.Status.choices
            },
        )
        durations = [
            (done - created).total_seconds() / 60
            for created, done in qs.filter(
                status=MedicalRecord.Status.COMPLETED, completed_at__isnull=False,
            ).values_list('created_at', 'completed_at')
        ]
        counts['avg_exam_time'] = round(sum(durations) / len(durations)) if durations else 0

        waiting = Queue.objects.filter(queue_date=day, status=Queue.Status.IN_SERVICE)
        if department is not None:
            waiting = waiting.filter(department=department)
        counts['waiting'] = waiting.count()
        return counts


class PrescriptionService:

    @staticmethod
    def _lock(prescription) -> Prescription:
        try:
            return Prescription.objects.select_for_update().get(pk=prescription.pk)
        except Prescription.DoesNotExist:
            raise ResourceNotFoundError(detail='Prescription not found.')

    @staticmethod
    def _write_items(prescription: Prescription, items: list[dict]) -> None:
        for row in items:
            PrescriptionItem.objects.create(
                prescription=prescription,
                medicine_name=row['medicine_name'],
                dosage=row.get('dosage') or '',
                frequency=row.get('frequency') or '',
                duration=row.get('duration') or '',
                quantity=row.get('quantity') or 1,
                instructions=row.get('instructions') or '',
                notes=row.get('notes') or '',
            )

    @classmethod
    @transaction.atomic
    def create(cls, *, medical_record, items: list[dict], notes: str = '', actor=None) -> Prescription:
        if not items:
            raise BusinessRuleViolation(detail='A prescription needs at least one item.')
        if medical_record.status == MedicalRecord.Status.CANCELLED:
            raise BusinessRuleViolation(detail='Cannot prescribe on a cancelled medical record.')
        prescription = Prescription.objects.create(
            prescription_number=daily_number(Prescription, 'prescription_number', PREFIX_PRESCRIPTION),
            medical_record=medical_record,
            status=Prescription.Status.PENDING,
            notes=notes or '',
            created_by=_actor(actor),
        )
        cls._write_items(prescription, items)
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='Prescription',
            object_id=str(prescription.pk),
            new_values={
                'prescription_number': prescription.prescription_number,
                'medical_record_id': str(medical_record.pk),
                'items': len(items),
            },
        )
        logger.info('Prescription %s written for %s', prescription.prescription_number, medical_record.record_number)
        return prescription

    @classmethod
    @transaction.atomic
    def update(cls, *, prescription, items: list[dict] | None = None, notes: str | None = None, actor=None) -> Prescription:
        prescription = cls._lock(prescription)
        if not Prescription.TRANSITIONS[prescription.status]:
            raise BusinessRuleViolation(
                detail=f'A {prescription.get_status_display().lower()} prescription cannot be edited.',
            )
        if notes is not None:
            prescription.notes = notes
        prescription.updated_by = _actor(actor)
        prescription.save()
        if items is not None:
            if not items:
                raise BusinessRuleViolation(detail='A prescription needs at least one item.')
            prescription.items.all().delete()
            cls._write_items(prescription, items)
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='Prescription',
            object_id=str(prescription.pk),
            new_values={'notes': prescription.notes, 'items': prescription.items.count()},
        )
        return prescription

    @classmethod
    @transaction.atomic
    def change_status(cls, *, prescription, status: str, actor=None) -> Prescription:
        prescription = cls._lock(prescription)
        assert_transition(Prescription.TRANSITIONS, prescription, status, label='prescription')
        old_status = prescription.status
        prescription.status = status
        prescription.updated_by = _actor(actor)
        prescription.save(update_fields=['status', 'updated_by', 'updated_at'])
        AuditService.log_status_change(actor=actor, instance=prescription, old_status=old_status)
        logger.info('Prescription %s: %s -> %s', prescription.prescription_number, old_status, status)
        return prescription

    @classmethod
    def cancel(cls, *, prescription, actor=None) -> Prescription:
        return cls.change_status(prescription=prescription, status=Prescription.Status.CANCELLED, actor=actor)


IMPORT_FIELDS = ('name_en', 'chapter', 'chapter_name', 'block', 'block_name', 'dtd_code')
IMPORT_ERROR_LIMIT = 10


class IcdCodeService:
    """ICD-10 / ICD-9-CM catalogue: lookup, deletion guard and bulk import."""

    @staticmethod
    def search(*, term: str, icd_type: str | None = None, limit: int = 20):
        qs = IcdCode.objects.filter(is_active=True).filter(
            Q(code__icontains=term) | Q(name_id__icontains=term) | Q(name_en__icontains=term)
        )
        if icd_type:
            qs = qs.filter(type=icd_type)
        return qs.order_by('code')[:limit]

    @staticmethod
    def stats() -> dict:
        return IcdCode.objects.aggregate(
            total=Count('id'),
            active=Count('id', filter=Q(is_active=True)),
            inactive=Count('id', filter=Q(is_active=False)),
            icd10_count=Count('id', filter=Q(type=IcdCode.Type.ICD10)),
            icd9cm_count=Count('id', filter=Q(type=IcdCode.Type.ICD9CM)),
            bpjs_claimable=Count('id', filter=Q(is_bpjs_claimable=True)),
        )

    @staticmethod
    @transaction.atomic
    def delete(*, icd: IcdCode, actor=None) -> None:
        if icd.children.exists():
            raise BusinessRuleViolation(
                detail=f'{icd.code} has sub-codes and cannot be deleted. Deactivate it instead.',
            )
        if icd.diagnoses.exists():
            raise BusinessRuleViolation(
                detail=f'{icd.code} is used on medical records and cannot be deleted. Deactivate it instead.',
            )
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_DELETE,
            model_name='IcdCode',
            object_id=str(icd.pk),
            old_values=AuditService.snapshot(icd),
        )
        icd.delete()
        logger.info('IcdCode %s (%s) deleted', icd.code, icd.type)

    @staticmethod
    def read_rows(upload) -> tuple[list[dict], int]:
        """
        Decode an uploaded CSV (header row first) or JSON array of objects.

        Returns the rows and the file line number of the first one, used to
        point import errors at the offending line.
        """
        try:
            text = upload.read().decode('utf-8-sig')
        except UnicodeDecodeError:
            raise BusinessRuleViolation(detail='Import file must be UTF-8 encoded.')

        if upload.name.lower().endswith('.json'):
            try:
                data = json.loads(text)
            except json.JSONDecodeError as exc:
                raise BusinessRuleViolation(detail=f'Invalid JSON: {exc.msg} (line {exc.lineno}).')
            if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
                raise BusinessRuleViolation(detail='JSON import must be an array of objects.')
            return data, 1
        return list(csv.DictReader(io.StringIO(text))), 2

    @staticmethod
    def _row_values(row: dict) -> dict:
        values = {
            'code': str(row.get('code') or '').strip().upper(),
            'name_id': str(row.get('name_id') or row.get('name') or '').strip(),
            'parent_code': str(row.get('parent_code') or '').strip().upper() or None,
        }
        for field in IMPORT_FIELDS:
            values[field] = str(row.get(field) or '').strip()
        return values

    @classmethod
    @transaction.atomic
    def import_rows(cls, *, rows: list[dict], icd_type: str, first_line: int = 2, actor=None) -> dict:
        """
        Create catalogue entries of ``icd_type`` from parsed rows.

        Codes already present for the type are skipped; invalid rows are
        reported by line and do not stop the rest of the import.
        """
        existing = set(IcdCode.objects.filter(type=icd_type).values_list('code', flat=True))
        imported = skipped = 0
        errors = []

        for line, row in enumerate(rows, start=first_line):
            values = cls._row_values(row)
            if not values['code']:
                errors.append(f'Row {line}: code is required.')
                continue
            if values['code'] in existing:
                skipped += 1
                continue
            if not values['name_id']:
                errors.append(f'Row {line}: name is required.')
                continue
            too_long = [
                field for field, value in values.items()
                if value and len(value) > IcdCode._meta.get_field(field).max_length
            ]
            if too_long:
                errors.append(f'Row {line}: {", ".join(too_long)} too long.')
                continue

            IcdCode.objects.create(type=icd_type, created_by=_actor(actor), **values)
            existing.add(values['code'])
            imported += 1

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='IcdCode',
            object_id=icd_type,
            new_values={'imported': imported, 'skipped': skipped, 'errors': len(errors)},
        )
        logger.info('ICD import (%s): %s imported, %s skipped, %s errors', icd_type, imported, skipped, len(errors))
        return {
            'imported': imported,
            'skipped': skipped,
            'error_count': len(errors),
            'errors': errors[:IMPORT_ERROR_LIMIT],
        }
