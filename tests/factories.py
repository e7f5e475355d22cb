"""
MediKlinik — Test Factories

Factory Boy factories for generating test data. Used across all test
modules.

@file tests/factories.py
"""

import uuid
from datetime import time, timedelta
from decimal import Decimal

import factory
from django.utils import timezone

from billing.models import Invoice, InvoiceItem
from clinic.models import Department, DoctorSchedule, Service
from core.models import AuditLog
from patients.models import Patient
from pharmacy.models import Medicine, MedicineBatch, MedicineCategory
from purchasing.models import PurchaseOrder, PurchaseOrderItem, Supplier
from queues.models import Queue, QueueSetting
from records.models import IcdCode, MedicalRecord, Prescription, PrescriptionItem
from users.models import Permission, Role, User, UserRole


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f'user-{n}@mediklinik.test')
    name = factory.Faker('name')
    phone = factory.Sequence(lambda n: f'0812{n:08d}')
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        password = extracted or 'TestPass2026!'
        self.set_password(password)
        if create:
            self.save(update_fields=['password'])


class SuperuserFactory(UserFactory):
    is_staff = True
    is_superuser = True


class PermissionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Permission
        django_get_or_create = ('name',)

    module = 'patients'
    action = Permission.ActionChoices.VIEW
    name = factory.LazyAttribute(lambda o: f'{o.module}.{o.action}')
    display_name = factory.LazyAttribute(lambda o: f'{o.action.title()} {o.module}')


class RoleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Role

    name = factory.Sequence(lambda n: f'role_{n}')
    display_name = factory.LazyAttribute(lambda o: o.name.replace('_', ' ').title())
    description = factory.Faker('sentence')
    is_system = False


class UserRoleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = UserRole

    user = factory.SubFactory(UserFactory)
    role = factory.SubFactory(RoleFactory)
    is_active = True


class DoctorFactory(UserFactory):
    """User holding the ``dokter`` role."""

    @factory.post_generation
    def doctor_role(self, create, extracted, **kwargs):
        if create:
            role, _created = Role.objects.get_or_create(name='dokter', defaults={'display_name': 'Dokter'})
            UserRoleFactory(user=self, role=role)


# ---------------------------------------------------------------------------
# Clinic
# ---------------------------------------------------------------------------

class DepartmentFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Department

    code = factory.Sequence(lambda n: f'DEP{n:03d}')
    name = factory.Sequence(lambda n: f'Poli {n}')
    quota_per_day = 50


class ServiceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Service

    code = factory.Sequence(lambda n: f'SRV{n:03d}')
    name = factory.Sequence(lambda n: f'Consultation {n}')
    category = Service.CategoryChoices.KONSULTASI
    department = factory.SubFactory(DepartmentFactory)
    base_price = Decimal('50000.00')
    doctor_fee = Decimal('25000.00')
    hospital_fee = Decimal('5000.00')


class DoctorScheduleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = DoctorSchedule

    doctor = factory.SubFactory(DoctorFactory)
    department = factory.SubFactory(DepartmentFactory)
    day_of_week = DoctorSchedule.Day.MONDAY
    start_time = time(8, 0)
    end_time = time(12, 0)
    quota = 20


class QueueSettingFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = QueueSetting

    department = factory.SubFactory(DepartmentFactory)
    prefix = factory.Sequence(lambda n: f'P{n}')
    daily_quota = 50
    start_number = 1


# ---------------------------------------------------------------------------
# Patients & queues
# ---------------------------------------------------------------------------

class PatientFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Patient

    medical_record_number = factory.Sequence(lambda n: f'RM-202601-{n:04d}')
    name = factory.Faker('name')
    birth_date = factory.LazyFunction(lambda: timezone.localdate() - timedelta(days=365 * 30))
    gender = Patient.GenderChoices.FEMALE
    patient_type = Patient.PatientTypeChoices.UMUM


class QueueFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Queue

    department = factory.SubFactory(DepartmentFactory)
    patient = factory.SubFactory(PatientFactory)
    queue_number = factory.Sequence(lambda n: n + 1)
    queue_code = factory.LazyAttribute(lambda o: Queue.build_code('A', o.queue_number))
    queue_date = factory.LazyFunction(timezone.localdate)
    status = Queue.Status.WAITING


# ---------------------------------------------------------------------------
# Pharmacy
# ---------------------------------------------------------------------------

class MedicineCategoryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = MedicineCategory

    name = factory.Sequence(lambda n: f'Category {n}')


class MedicineFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Medicine

    code = factory.Sequence(lambda n: f'OBT{n:05d}')
    name = factory.Sequence(lambda n: f'Paracetamol {n}')
    category = factory.SubFactory(MedicineCategoryFactory)
    unit = 'tablet'
    purchase_price = Decimal('1000.00')
    margin_percentage = Decimal('20.00')
    ppn_percentage = Decimal('11.00')
    price_before_ppn = Decimal('1200.00')
    selling_price = Decimal('1332.00')
    min_stock = 10
    max_stock = 1000


class MedicineBatchFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = MedicineBatch

    medicine = factory.SubFactory(MedicineFactory)
    batch_number = factory.Sequence(lambda n: f'BATCH-{n:05d}')
    expiry_date = factory.LazyFunction(lambda: timezone.localdate() + timedelta(days=365))
    initial_qty = 100
    current_qty = factory.LazyAttribute(lambda o: o.initial_qty)
    purchase_price = Decimal('1000.00')
    status = MedicineBatch.Status.AVAILABLE


# ---------------------------------------------------------------------------
# Purchasing
# ---------------------------------------------------------------------------

class SupplierFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Supplier

    code = factory.Sequence(lambda n: f'SUP{n:03d}')
    name = factory.Faker('company')
    phone = factory.Sequence(lambda n: f'021{n:07d}')
    city = 'Jakarta'


class PurchaseOrderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PurchaseOrder

    po_number = factory.Sequence(lambda n: f'PO-202601-{n:04d}')
    supplier = factory.SubFactory(SupplierFactory)
    order_date = factory.LazyFunction(timezone.localdate)
    status = PurchaseOrder.Status.DRAFT


class PurchaseOrderItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PurchaseOrderItem

    purchase_order = factory.SubFactory(PurchaseOrderFactory)
    medicine = factory.SubFactory(MedicineFactory)
    quantity = 100
    unit = 'tablet'
    unit_price = Decimal('1000.00')


# ---------------------------------------------------------------------------
# Records & billing
# ---------------------------------------------------------------------------

class MedicalRecordFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = MedicalRecord

    record_number = factory.Sequence(lambda n: f'MR-20260101-{n:04d}')
    queue = factory.SubFactory(QueueFactory, status=Queue.Status.IN_SERVICE)
    patient = factory.SelfAttribute('queue.patient')
    department = factory.SelfAttribute('queue.department')
    doctor = factory.SubFactory(UserFactory)
    visit_date = factory.LazyFunction(timezone.localdate)
    status = MedicalRecord.Status.IN_PROGRESS


class IcdCodeFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = IcdCode

    code = factory.Sequence(lambda n: f'A{n:02d}')
    type = IcdCode.Type.ICD10
    name_id = factory.Faker('sentence', nb_words=3)
    chapter = 'I'


class PrescriptionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Prescription

    prescription_number = factory.Sequence(lambda n: f'RX-20260101-{n:04d}')
    medical_record = factory.SubFactory(MedicalRecordFactory)
    status = Prescription.Status.PENDING


class PrescriptionItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PrescriptionItem

    prescription = factory.SubFactory(PrescriptionFactory)
    medicine_name = 'Paracetamol 500mg'
    dosage = '1 tablet'
    frequency = '3x daily'
    duration = '3 days'
    quantity = 9


class InvoiceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Invoice

    invoice_number = factory.Sequence(lambda n: f'INV-20260101-{n:04d}')
    medical_record = factory.SubFactory(MedicalRecordFactory)
    patient = factory.SelfAttribute('medical_record.patient')
    payment_status = Invoice.PaymentStatus.UNPAID


class InvoiceItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = InvoiceItem

    invoice = factory.SubFactory(InvoiceFactory)
    item_type = InvoiceItem.ItemType.SERVICE
    item_name = 'Consultation'
    quantity = 1
    unit_price = Decimal('80000.00')


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class AuditLogFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AuditLog

    actor = factory.SubFactory(UserFactory)
    action = AuditLog.ActionChoices.CREATE
    model_name = 'Patient'
    object_id = factory.LazyFunction(lambda: str(uuid.uuid4()))
