"""
Patients — Service Layer

Registration (MRN issuance), updates and the guarded delete.

@file patients/services.py
"""

import logging

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_DELETE, AUDIT_ACTION_UPDATE, PREFIX_PATIENT
from core.exceptions import BusinessRuleViolation
from core.numbering import monthly_number
from core.services import AuditService

from .models import Patient

logger = logging.getLogger('mediklinik')


class PatientService:

    @staticmethod
    def next_medical_record_number() -> str:
        return monthly_number(Patient, 'medical_record_number', PREFIX_PATIENT)

    @classmethod
    @transaction.atomic
    def register(cls, *, actor=None, **fields) -> Patient:
        patient = Patient(**fields)
        patient.medical_record_number = cls.next_medical_record_number()
        patient.created_by = actor
        patient.save()

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='Patient',
            object_id=str(patient.pk),
            new_values=AuditService.snapshot(patient),
        )
        logger.info('Patient %s registered', patient.medical_record_number)
        return patient

    @staticmethod
    @transaction.atomic
    def update(*, patient: Patient, actor=None, **fields) -> Patient:
        old_snapshot = AuditService.snapshot(patient)
        for field, value in fields.items():
            setattr(patient, field, value)
        patient.updated_by = actor
        patient.save()

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='Patient',
            object_id=str(patient.pk),
            old_values=old_snapshot,
            new_values=AuditService.snapshot(patient),
        )
        return patient

    @staticmethod
    @transaction.atomic
    def delete(*, patient: Patient, actor=None) -> None:
        if patient.queues.exists():
            raise BusinessRuleViolation(
                detail='Patient has visit history and cannot be deleted.',
            )
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_DELETE,
            model_name='Patient',
            object_id=str(patient.pk),
            old_values=AuditService.snapshot(patient),
        )
        patient.delete()

    @staticmethod
    def stats() -> dict:
        today = timezone.localdate()
        agg = Patient.objects.aggregate(
            total=Count('id'),
            active=Count('id', filter=Q(is_active=True)),
            inactive=Count('id', filter=Q(is_active=False)),
            this_month=Count(
                'id', filter=Q(created_at__year=today.year, created_at__month=today.month),
            ),
        )
        agg['by_type'] = {
            value: Patient.objects.filter(patient_type=value).count()
            for value, _label in Patient.PatientTypeChoices.choices
        }
        return agg
