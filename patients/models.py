"""
Patients — Models

Registered patients. The medical record number (``RM-YYYYMM-NNNN``) is
issued on creation and never changes.

@file patients/models.py
"""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


class Patient(BaseModel):

    class GenderChoices(models.TextChoices):
        MALE = 'male', _('Male')
        FEMALE = 'female', _('Female')

    class BloodTypeChoices(models.TextChoices):
        A = 'A', 'A'
        B = 'B', 'B'
        AB = 'AB', 'AB'
        O = 'O', 'O'

    class ReligionChoices(models.TextChoices):
        ISLAM = 'islam', _('Islam')
        KRISTEN = 'kristen', _('Protestant')
        KATOLIK = 'katolik', _('Catholic')
        HINDU = 'hindu', _('Hindu')
        BUDDHA = 'buddha', _('Buddhist')
        KONGHUCU = 'konghucu', _('Confucian')
        LAINNYA = 'lainnya', _('Other')

    class MaritalStatusChoices(models.TextChoices):
        SINGLE = 'single', _('Single')
        MARRIED = 'married', _('Married')
        DIVORCED = 'divorced', _('Divorced')
        WIDOWED = 'widowed', _('Widowed')

    class PatientTypeChoices(models.TextChoices):
        UMUM = 'umum', _('General')
        BPJS = 'bpjs', _('BPJS')
        ASURANSI = 'asuransi', _('Insurance')

    medical_record_number = models.CharField(
        _('medical record number'), max_length=20, unique=True, editable=False,
    )
    nik = models.CharField(_('national ID (NIK)'), max_length=16, unique=True, null=True, blank=True)
    bpjs_number = models.CharField(_('BPJS number'), max_length=13, blank=True, db_index=True)
    name = models.CharField(_('name'), max_length=255, db_index=True)
    birth_place = models.CharField(_('birth place'), max_length=100, blank=True)
    birth_date = models.DateField(_('birth date'))
    gender = models.CharField(_('gender'), max_length=10, choices=GenderChoices.choices)
    blood_type = models.CharField(_('blood type'), max_length=2, choices=BloodTypeChoices.choices, blank=True)
    religion = models.CharField(_('religion'), max_length=20, choices=ReligionChoices.choices, blank=True)
    marital_status = models.CharField(
        _('marital status'), max_length=20, choices=MaritalStatusChoices.choices, blank=True,
    )
    occupation = models.CharField(_('occupation'), max_length=100, blank=True)
    education = models.CharField(_('education'), max_length=100, blank=True)

    phone = models.CharField(_('phone'), max_length=20, blank=True)
    email = models.EmailField(_('email'), blank=True)
    address = models.TextField(_('address'), blank=True)
    rt = models.CharField(_('RT'), max_length=5, blank=True)
    rw = models.CharField(_('RW'), max_length=5, blank=True)
    village = models.CharField(_('village'), max_length=100, blank=True)
    district = models.CharField(_('district'), max_length=100, blank=True)
    city = models.CharField(_('city'), max_length=100, blank=True)
    province = models.CharField(_('province'), max_length=100, blank=True)
    postal_code = models.CharField(_('postal code'), max_length=10, blank=True)

    emergency_contact_name = models.CharField(_('emergency contact name'), max_length=255, blank=True)
    emergency_contact_relation = models.CharField(_('emergency contact relation'), max_length=100, blank=True)
    emergency_contact_phone = models.CharField(_('emergency contact phone'), max_length=20, blank=True)

    allergies = models.TextField(_('allergies'), blank=True)
    medical_notes = models.TextField(_('medical notes'), blank=True)

    patient_type = models.CharField(
        _('patient type'), max_length=10,
        choices=PatientTypeChoices.choices, default=PatientTypeChoices.UMUM, db_index=True,
    )
    insurance_name = models.CharField(_('insurance name'), max_length=255, blank=True)
    insurance_number = models.CharField(_('insurance number'), max_length=100, blank=True)
    photo = models.CharField(_('photo path'), max_length=255, blank=True)
    is_active = models.BooleanField(_('active'), default=True, db_index=True)

    class Meta:
        verbose_name = _('patient')
        verbose_name_plural = _('patients')
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.medical_record_number} — {self.name}'

    @property
    def age(self) -> int | None:
        if not self.birth_date:
            return None
        today = timezone.localdate()
        years = today.year - self.birth_date.year
        if (today.month, today.day) < (self.birth_date.month, self.birth_date.day):
            years -= 1
        return years

    @property
    def full_address(self) -> str:
        parts = []
        if self.address:
            parts.append(self.address)
        if self.rt and self.rw:
            parts.append(f'RT {self.rt}/RW {self.rw}')
        if self.village:
            parts.append(f'Kel. {self.village}')
        if self.district:
            parts.append(f'Kec. {self.district}')
        for part in (self.city, self.province, self.postal_code):
            if part:
                parts.append(part)
        return ', '.join(parts)
