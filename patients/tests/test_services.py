"""
Patients — Service Layer Tests

@file patients/tests/test_services.py
"""

from datetime import date

import pytest
from django.utils import timezone

from core.exceptions import BusinessRuleViolation
from core.models import AuditLog
from patients.models import Patient
from patients.services import PatientService
from tests.factories import PatientFactory, QueueFactory


@pytest.mark.django_db
class TestPatientService:
    def test_register_assigns_monthly_mrn(self):
        patient = PatientService.register(name='Budi Santoso', birth_date=date(1990, 5, 1), gender='male')
        today = timezone.localdate()
        assert patient.medical_record_number == f'RM-{today:%Y%m}-0001'
        assert AuditLog.objects.filter(model_name='Patient', object_id=str(patient.pk), action='CREATE').exists()

    def test_mrn_sequence_increments(self):
        first = PatientService.register(name='A', birth_date=date(1990, 1, 1), gender='male')
        second = PatientService.register(name='B', birth_date=date(1990, 1, 1), gender='female')
        assert int(second.medical_record_number[-4:]) == int(first.medical_record_number[-4:]) + 1

    def test_update_logs_old_and_new(self):
        patient = PatientFactory(phone='0811')
        PatientService.update(patient=patient, phone='0822')
        log = AuditLog.objects.get(model_name='Patient', object_id=str(patient.pk), action='UPDATE')
        assert log.old_values['phone'] == '0811'
        assert log.new_values['phone'] == '0822'

    def test_delete_blocked_with_visits(self):
        queue = QueueFactory()
        with pytest.raises(BusinessRuleViolation):
            PatientService.delete(patient=queue.patient)

    def test_delete_without_visits(self):
        patient = PatientFactory()
        PatientService.delete(patient=patient)
        assert not Patient.objects.filter(pk=patient.pk).exists()

    def test_stats(self):
        PatientFactory(patient_type=Patient.PatientTypeChoices.BPJS, bpjs_number='0001234567890')
        PatientFactory(is_active=False)
        stats = PatientService.stats()
        assert stats['total'] == 2
        assert stats['inactive'] == 1
        assert stats['by_type']['bpjs'] == 1


@pytest.mark.django_db
class TestPatientModel:
    def test_age(self):
        today = timezone.localdate()
        patient = PatientFactory(birth_date=today.replace(year=today.year - 40))
        assert patient.age == 40
