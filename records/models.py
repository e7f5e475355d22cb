"""
Records — Models

One medical record per queue ticket (anamnesis, vital signs, diagnoses,
billed services), the prescriptions written during the visit and the ICD
catalogue diagnoses are coded against.

@file records/models.py
"""

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


class MedicalRecord(BaseModel):

    class Status(models.TextChoices):
        IN_PROGRESS = 'in_progress', _('In progress')
        COMPLETED = 'completed', _('Completed')
        CANCELLED = 'cancelled', _('Cancelled')

    TRANSITIONS = {
        Status.IN_PROGRESS: {Status.COMPLETED, Status.CANCELLED},
        Status.COMPLETED: set(),
        Status.CANCELLED: set(),
    }

    record_number = models.CharField(_('record number'), max_length=30, unique=True)
    queue = models.OneToOneField(
        'queues.Queue',
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='medical_record',
        verbose_name=_('queue'),
    )
    patient = models.ForeignKey(
        'patients.Patient',
        on_delete=models.PROTECT,
        related_name='medical_records',
        verbose_name=_('patient'),
    )
    department = models.ForeignKey(
        'clinic.Department',
        on_delete=models.PROTECT,
        related_name='medical_records',
        verbose_name=_('department'),
    )
    doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='medical_records',
        verbose_name=_('doctor'),
    )
    visit_date = models.DateField(_('visit date'), default=timezone.localdate, db_index=True)

    # Anamnesis
    chief_complaint = models.TextField(_('chief complaint'), blank=True)
    present_illness = models.TextField(_('present illness'), blank=True)
    past_medical_history = models.TextField(_('past medical history'), blank=True)
    family_history = models.TextField(_('family history'), blank=True)
    allergy_notes = models.TextField(_('allergy notes'), blank=True)

    # Vital signs
    blood_pressure_systolic = models.PositiveSmallIntegerField(
        _('systolic'), null=True, blank=True, validators=[MaxValueValidator(300)],
    )
    blood_pressure_diastolic = models.PositiveSmallIntegerField(
        _('diastolic'), null=True, blank=True, validators=[MaxValueValidator(200)],
    )
    heart_rate = models.PositiveSmallIntegerField(
        _('heart rate'), null=True, blank=True, validators=[MaxValueValidator(300)],
    )
    respiratory_rate = models.PositiveSmallIntegerField(
        _('respiratory rate'), null=True, blank=True, validators=[MaxValueValidator(100)],
    )
    temperature = models.DecimalField(
        _('temperature (°C)'), max_digits=4, decimal_places=1, null=True, blank=True,
        validators=[MinValueValidator(30), MaxValueValidator(45)],
    )
    weight = models.DecimalField(
        _('weight (kg)'), max_digits=5, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(500)],
    )
    height = models.DecimalField(
        _('height (cm)'), max_digits=5, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(300)],
    )
    oxygen_saturation = models.PositiveSmallIntegerField(
        _('SpO2 (%)'), null=True, blank=True, validators=[MaxValueValidator(100)],
    )
    physical_examination = models.TextField(_('physical examination'), blank=True)

    # Assessment and plan
    diagnosis = models.TextField(_('diagnosis'), blank=True)
    diagnosis_notes = models.TextField(_('diagnosis notes'), blank=True)
    treatment = models.TextField(_('treatment'), blank=True)
    treatment_notes = models.TextField(_('treatment notes'), blank=True)
    recommendations = models.TextField(_('recommendations'), blank=True)
    follow_up_date = models.DateField(_('follow-up date'), null=True, blank=True)

    # SOAP progress notes
    soap_subjective = models.TextField(_('subjective'), blank=True)
    soap_objective = models.TextField(_('objective'), blank=True)
    soap_assessment = models.TextField(_('assessment'), blank=True)
    soap_plan = models.TextField(_('plan'), blank=True)

    status = models.CharField(
        _('status'), max_length=20,
        choices=Status.choices, default=Status.IN_PROGRESS, db_index=True,
    )
    completed_at = models.DateTimeField(_('completed at'), null=True, blank=True)

    class Meta:
        verbose_name = _('medical record')
        verbose_name_plural = _('medical records')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['visit_date', 'department']),
            models.Index(fields=['patient', 'visit_date']),
        ]

    def __str__(self):
        return self.record_number

    @property
    def blood_pressure(self) -> str | None:
        if self.blood_pressure_systolic and self.blood_pressure_diastolic:
            return f'{self.blood_pressure_systolic}/{self.blood_pressure_diastolic}'
        return None

    @property
    def bmi(self) -> Decimal | None:
        if not self.weight or not self.height:
            return None
        meters = Decimal(self.height) / 100
        return (Decimal(self.weight) / (meters * meters)).quantize(
            Decimal('0.01'), rounding=ROUND_HALF_UP,
        )


ICD10_CHAPTERS = {
    'I': 'Certain infectious and parasitic diseases (A00-B99)',
    'II': 'Neoplasms (C00-D48)',
    'III': 'Diseases of the blood and blood-forming organs (D50-D89)',
    'IV': 'Endocrine, nutritional and metabolic diseases (E00-E90)',
    'V': 'Mental and behavioural disorders (F00-F99)',
    'VI': 'Diseases of the nervous system (G00-G99)',
    'VII': 'Diseases of the eye and adnexa (H00-H59)',
    'VIII': 'Diseases of the ear and mastoid process (H60-H95)',
    'IX': 'Diseases of the circulatory system (I00-I99)',
    'X': 'Diseases of the respiratory system (J00-J99)',
    'XI': 'Diseases of the digestive system (K00-K93)',
    'XII': 'Diseases of the skin and subcutaneous tissue (L00-L99)',
    'XIII': 'Diseases of the musculoskeletal system (M00-M99)',
    'XIV': 'Diseases of the genitourinary system (N00-N99)',
    'XV': 'Pregnancy, childbirth and the puerperium (O00-O99)',
    'XVI': 'Certain conditions originating in the perinatal period (P00-P96)',
    'XVII': 'Congenital malformations, deformations (Q00-Q99)',
    'XVIII': 'Symptoms, signs and abnormal clinical findings (R00-R99)',
    'XIX': 'Injury, poisoning and certain other consequences (S00-T98)',
    'XX': 'External causes of morbidity and mortality (V01-Y98)',
    'XXI': 'Factors influencing health status (Z00-Z99)',
    'XXII': 'Codes for special purposes (U00-U99)',
}


class IcdCode(BaseModel):
    """
    Diagnosis (ICD-10) and procedure (ICD-9-CM) catalogue entry.

    Codes form a tree through ``parent_code``. A code is unique within its
    type only.
    """

    class Type(models.TextChoices):
        ICD10 = 'icd10', _('ICD-10 (Diagnosis)')
        ICD9CM = 'icd9cm', _('ICD-9-CM (Procedure)')

    code = models.CharField(_('code'), max_length=20, db_index=True)
    type = models.CharField(_('type'), max_length=10, choices=Type.choices, default=Type.ICD10)
    name_id = models.CharField(_('name (Indonesian)'), max_length=500)
    name_en = models.CharField(_('name (English)'), max_length=500, blank=True)
    chapter = models.CharField(_('chapter'), max_length=10, blank=True, db_index=True)
    chapter_name = models.CharField(_('chapter name'), max_length=255, blank=True)
    block = models.CharField(_('block'), max_length=20, blank=True)
    block_name = models.CharField(_('block name'), max_length=255, blank=True)
    parent_code = models.CharField(_('parent code'), max_length=20, null=True, blank=True, db_index=True)
    dtd_code = models.CharField(_('DTD code'), max_length=20, blank=True)
    is_bpjs_claimable = models.BooleanField(_('BPJS claimable'), default=True)
    is_active = models.BooleanField(_('active'), default=True, db_index=True)
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('ICD code')
        verbose_name_plural = _('ICD codes')
        ordering = ['code']
        constraints = [
            models.UniqueConstraint(fields=['code', 'type'], name='icd_code_unique_per_type'),
        ]

    def __str__(self):
        return self.full_display

    @property
    def display_name(self) -> str:
        return self.name_id or self.name_en or '-'

    @property
    def full_display(self) -> str:
        return f'{self.code} - {self.display_name}'

    @property
    def children(self):
        return IcdCode.objects.filter(type=self.type, parent_code=self.code)


class MedicalRecordDiagnosis(BaseModel):

    class DiagnosisType(models.TextChoices):
        PRIMARY = 'primary', _('Primary')
        SECONDARY = 'secondary', _('Secondary')

    medical_record = models.ForeignKey(
        MedicalRecord,
        on_delete=models.CASCADE,
        related_name='diagnoses',
        verbose_name=_('medical record'),
    )
    icd = models.ForeignKey(
        IcdCode,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='diagnoses',
        verbose_name=_('catalogue entry'),
    )
    icd_code = models.CharField(_('ICD code'), max_length=20, blank=True)
    icd_name = models.CharField(_('ICD name'), max_length=255, blank=True)
    diagnosis_type = models.CharField(
        _('type'), max_length=10,
        choices=DiagnosisType.choices, default=DiagnosisType.PRIMARY,
    )
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('diagnosis')
        verbose_name_plural = _('diagnoses')
        ordering = ['medical_record', 'created_at']

    def __str__(self):
        return f'{self.icd_code} {self.icd_name}'.strip()


class MedicalRecordServiceLine(BaseModel):
    """A billable service performed during the visit."""

    medical_record = models.ForeignKey(
        MedicalRecord,
        on_delete=models.CASCADE,
        related_name='service_lines',
        verbose_name=_('medical record'),
    )
    service = models.ForeignKey(
        'clinic.Service',
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='record_lines',
        verbose_name=_('service'),
    )
    service_name = models.CharField(_('service name'), max_length=200)
    quantity = models.PositiveIntegerField(_('quantity'), default=1)
    unit_price = models.DecimalField(_('unit price'), max_digits=15, decimal_places=2, default=0)
    total_price = models.DecimalField(_('total price'), max_digits=15, decimal_places=2, default=0)
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('record service line')
        verbose_name_plural = _('record service lines')
        ordering = ['medical_record', 'created_at']

    def __str__(self):
        return f'{self.service_name} × {self.quantity}'

    def save(self, *args, **kwargs):
        self.total_price = Decimal(self.quantity) * Decimal(self.unit_price)
        super().save(*args, **kwargs)


class Prescription(BaseModel):

    class Status(models.TextChoices):
        PENDING = 'pending', _('Pending')
        PROCESSED = 'processed', _('Processed')
        COMPLETED = 'completed', _('Completed')
        CANCELLED = 'cancelled', _('Cancelled')

    TRANSITIONS = {
        Status.PENDING: {Status.PROCESSED, Status.COMPLETED, Status.CANCELLED},
        Status.PROCESSED: {Status.COMPLETED, Status.CANCELLED},
        Status.COMPLETED: set(),
        Status.CANCELLED: set(),
    }

    prescription_number = models.CharField(_('prescription number'), max_length=30, unique=True)
    medical_record = models.ForeignKey(
        MedicalRecord,
        on_delete=models.PROTECT,
        related_name='prescriptions',
        verbose_name=_('medical record'),
    )
    status = models.CharField(
        _('status'), max_length=20,
        choices=Status.choices, default=Status.PENDING, db_index=True,
    )
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('prescription')
        verbose_name_plural = _('prescriptions')
        ordering = ['-created_at']

    def __str__(self):
        return self.prescription_number


class PrescriptionItem(BaseModel):
    prescription = models.ForeignKey(
        Prescription,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('prescription'),
    )
    medicine_name = models.CharField(_('medicine name'), max_length=200)
    dosage = models.CharField(_('dosage'), max_length=100, blank=True)
    frequency = models.CharField(_('frequency'), max_length=100, blank=True)
    duration = models.CharField(_('duration'), max_length=100, blank=True)
    quantity = models.PositiveIntegerField(_('quantity'), default=1)
    instructions = models.TextField(_('instructions'), blank=True)
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('prescription item')
        verbose_name_plural = _('prescription items')
        ordering = ['prescription', 'created_at']

    def __str__(self):
        return f'{self.medicine_name} × {self.quantity}'

    @property
    def full_instructions(self) -> str:
        parts = [self.dosage, self.frequency]
        if self.duration:
            parts.append(f'for {self.duration}')
        return ', '.join(p for p in parts if p)
