"""
Records — Service Layer Tests

Examination lifecycle, the automatic consultation line, completion side
effects (queue and invoice) and the prescription status table.

@file records/tests/test_services.py
"""

from decimal import Decimal

import pytest
from django.utils import timezone

from billing.models import Invoice, InvoiceItem
from core.exceptions import BusinessRuleViolation, InvalidStateTransition
from queues.models import Queue
from records.models import MedicalRecord, Prescription
from records.services import DEFAULT_SERVICE_NOTE, MedicalRecordService, PrescriptionService
from tests.factories import (
    DepartmentFactory,
    MedicalRecordFactory,
    MedicineFactory,
    PrescriptionFactory,
    PrescriptionItemFactory,
    QueueFactory,
    ServiceFactory,
    UserFactory,
)


@pytest.fixture
def queue_in_service(db):
    """In-service ticket of a department whose default service costs 80 000."""
    department = DepartmentFactory()
    department.default_service = ServiceFactory(department=department, name='General consultation')
    department.save()
    return QueueFactory(department=department, status=Queue.Status.IN_SERVICE)


@pytest.mark.django_db
class TestStartExamination:
    def test_creates_record_with_default_service(self, queue_in_service):
        doctor = UserFactory()
        record = MedicalRecordService.start_examination(queue=queue_in_service, actor=doctor)

        assert record.record_number == f'MR-{timezone.localdate():%Y%m%d}-0001'
        assert record.status == MedicalRecord.Status.IN_PROGRESS
        assert record.doctor == doctor
        assert record.patient_id == queue_in_service.patient_id

        line = record.service_lines.get()
        assert line.service_name == 'General consultation'
        assert line.unit_price == Decimal('80000.00')
        assert line.notes == DEFAULT_SERVICE_NOTE

    def test_duplicate_rejected(self, queue_in_service):
        MedicalRecordService.start_examination(queue=queue_in_service)
        with pytest.raises(BusinessRuleViolation):
            MedicalRecordService.start_examination(queue=queue_in_service)

    def test_requires_patient(self):
        queue = QueueFactory(patient=None, status=Queue.Status.IN_SERVICE)
        with pytest.raises(BusinessRuleViolation):
            MedicalRecordService.start_examination(queue=queue)

    def test_cancelled_queue_rejected(self):
        queue = QueueFactory(status=Queue.Status.CANCELLED)
        with pytest.raises(BusinessRuleViolation):
            MedicalRecordService.start_examination(queue=queue)

    def test_without_default_service(self):
        queue = QueueFactory(status=Queue.Status.IN_SERVICE)
        record = MedicalRecordService.start_examination(queue=queue)
        assert not record.service_lines.exists()


@pytest.mark.django_db
class TestUpdateRecord:
    def test_fills_fields_and_replaces_children(self):
        record = MedicalRecordFactory()
        record = MedicalRecordService.update_record(
            record=record,
            chief_complaint='Fever for three days',
            weight=Decimal('70'),
            height=Decimal('175'),
            diagnoses=[{'icd_code': 'A01.0', 'icd_name': 'Typhoid fever'}],
            service_lines=[{'service_name': 'Blood test', 'quantity': 2, 'unit_price': Decimal('45000')}],
        )
        assert record.chief_complaint == 'Fever for three days'
        assert record.bmi == Decimal('22.86')
        assert list(record.diagnoses.values_list('icd_code', flat=True)) == ['A01.0']
        assert record.service_lines.get().total_price == Decimal('90000')

        record = MedicalRecordService.update_record(record=record, diagnoses=[])
        assert not record.diagnoses.exists()
        assert record.service_lines.count() == 1

    def test_completed_record_is_read_only(self):
        record = MedicalRecordFactory(status=MedicalRecord.Status.COMPLETED)
        with pytest.raises(BusinessRuleViolation):
            MedicalRecordService.update_record(record=record, chief_complaint='late edit')


@pytest.mark.django_db
class TestCompleteRecord:
    def test_completes_queue_and_creates_invoice(self, queue_in_service):
        MedicineFactory(name='Paracetamol 500mg', selling_price=Decimal('1332.00'))
        record = MedicalRecordService.start_examination(queue=queue_in_service)
        PrescriptionService.create(
            medical_record=record,
            items=[{'medicine_name': 'Paracetamol 500mg', 'dosage': '1 tablet', 'quantity': 10}],
        )

        record = MedicalRecordService.complete_record(record=record)
        assert record.status == MedicalRecord.Status.COMPLETED
        assert record.completed_at is not None

        queue_in_service.refresh_from_db()
        assert queue_in_service.status == Queue.Status.COMPLETED

        invoice = Invoice.objects.get(medical_record=record)
        assert invoice.payment_status == Invoice.PaymentStatus.UNPAID
        assert invoice.items.filter(item_type=InvoiceItem.ItemType.SERVICE).count() == 1
        assert invoice.items.get(item_type=InvoiceItem.ItemType.MEDICINE).total_price == Decimal('13320.00')
        assert invoice.total_amount == Decimal('93320.00')

    def test_without_invoice(self, queue_in_service):
        record = MedicalRecordService.start_examination(queue=queue_in_service)
        MedicalRecordService.complete_record(record=record, create_invoice=False)
        assert not Invoice.objects.filter(medical_record=record).exists()

    def test_cannot_complete_twice(self):
        record = MedicalRecordFactory(status=MedicalRecord.Status.COMPLETED)
        with pytest.raises(InvalidStateTransition):
            MedicalRecordService.complete_record(record=record)

    def test_cancel(self):
        record = MedicalRecordFactory()
        record = MedicalRecordService.cancel_record(record=record)
        assert record.status == MedicalRecord.Status.CANCELLED
        with pytest.raises(InvalidStateTransition):
            MedicalRecordService.complete_record(record=record)


@pytest.mark.django_db
class TestReads:
    def test_pending_lists_waiting_and_open(self, queue_in_service):
        open_record = MedicalRecordFactory()
        pending = MedicalRecordService.pending()
        assert list(pending['waiting']) == [queue_in_service]
        assert list(pending['in_progress']) == [open_record]

    def test_stats(self):
        department = DepartmentFactory()
        MedicalRecordFactory(queue__department=department)
        MedicalRecordFactory(queue__department=department, status=MedicalRecord.Status.COMPLETED,
                             completed_at=timezone.now())
        stats = MedicalRecordService.stats(day=timezone.localdate(), department=department)
        assert stats['total'] == 2
        assert stats['in_progress'] == 1
        assert stats['completed'] == 1

    def test_completed_unpaid_only(self):
        paid = MedicalRecordFactory(status=MedicalRecord.Status.COMPLETED, completed_at=timezone.now())
        Invoice.objects.create(
            invoice_number='INV-X-0001', medical_record=paid, patient=paid.patient,
            payment_status=Invoice.PaymentStatus.PAID,
        )
        unbilled = MedicalRecordFactory(status=MedicalRecord.Status.COMPLETED, completed_at=timezone.now())
        records = MedicalRecordService.completed(day=timezone.localdate(), unpaid_only=True)
        assert list(records) == [unbilled]


@pytest.mark.django_db
class TestPrescriptionService:
    def test_create_numbers_and_items(self):
        record = MedicalRecordFactory()
        prescription = PrescriptionService.create(
            medical_record=record,
            items=[
                {'medicine_name': 'Amoxicillin 500mg', 'quantity': 15},
                {'medicine_name': 'Vitamin C', 'quantity': 10},
            ],
        )
        assert prescription.prescription_number == f'RX-{timezone.localdate():%Y%m%d}-0001'
        assert prescription.status == Prescription.Status.PENDING
        assert prescription.items.count() == 2

    def test_empty_items_rejected(self):
        with pytest.raises(BusinessRuleViolation):
            PrescriptionService.create(medical_record=MedicalRecordFactory(), items=[])

    def test_cancelled_record_rejected(self):
        record = MedicalRecordFactory(status=MedicalRecord.Status.CANCELLED)
        with pytest.raises(BusinessRuleViolation):
            PrescriptionService.create(medical_record=record, items=[{'medicine_name': 'X'}])

    @pytest.mark.parametrize('start, target, allowed', [
        ('pending', 'processed', True),
        ('pending', 'completed', True),
        ('processed', 'completed', True),
        ('processed', 'pending', False),
        ('completed', 'cancelled', False),
        ('cancelled', 'pending', False),
    ])
    def test_status_table(self, start, target, allowed):
        prescription = PrescriptionFactory(status=start)
        if allowed:
            assert PrescriptionService.change_status(prescription=prescription, status=target).status == target
        else:
            with pytest.raises(InvalidStateTransition):
                PrescriptionService.change_status(prescription=prescription, status=target)

    def test_update_replaces_items(self):
        item = PrescriptionItemFactory()
        prescription = PrescriptionService.update(
            prescription=item.prescription,
            items=[{'medicine_name': 'Cetirizine', 'quantity': 5}],
            notes='After meals',
        )
        assert list(prescription.items.values_list('medicine_name', flat=True)) == ['Cetirizine']
        assert prescription.notes == 'After meals'

    def test_terminal_prescription_is_read_only(self):
        prescription = PrescriptionFactory(status=Prescription.Status.COMPLETED)
        with pytest.raises(BusinessRuleViolation):
            PrescriptionService.update(prescription=prescription, notes='x')

    def test_cancelled_prescription_not_billed(self, queue_in_service):
        record = MedicalRecordService.start_examination(queue=queue_in_service)
        prescription = PrescriptionService.create(
            medical_record=record, items=[{'medicine_name': 'Ibuprofen', 'quantity': 3}],
        )
        PrescriptionService.cancel(prescription=prescription)
        MedicalRecordService.complete_record(record=record)
        invoice = Invoice.objects.get(medical_record=record)
        assert not invoice.items.filter(item_type=InvoiceItem.ItemType.MEDICINE).exists()
