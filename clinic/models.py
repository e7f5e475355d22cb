"""
Clinic — Models

Departments (polyclinics), the billable service catalogue, weekly doctor
schedules and the singleton clinic profile printed on invoices.

@file clinic/models.py
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import FileExtensionValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel

LOGO_EXTENSIONS = ['jpeg', 'jpg', 'png', 'svg']
FAVICON_EXTENSIONS = ['ico', 'png']


class Department(BaseModel):
    """Polyclinic / unit that owns a queue and a set of staff."""

    class ColorChoices(models.TextChoices):
        BLUE = 'blue', _('Blue')
        GREEN = 'green', _('Green')
        RED = 'red', _('Red')
        YELLOW = 'yellow', _('Yellow')
        PURPLE = 'purple', _('Purple')
        PINK = 'pink', _('Pink')
        INDIGO = 'indigo', _('Indigo')
        TEAL = 'teal', _('Teal')
        ORANGE = 'orange', _('Orange')
        CYAN = 'cyan', _('Cyan')

    code = models.CharField(_('code'), max_length=20, unique=True)
    name = models.CharField(_('name'), max_length=100)
    description = models.TextField(_('description'), blank=True)
    icon = models.CharField(_('icon'), max_length=50, blank=True)
    color = models.CharField(
        _('color'), max_length=20,
        choices=ColorChoices.choices, default=ColorChoices.BLUE,
    )
    quota_per_day = models.PositiveIntegerField(_('quota per day'), default=50)
    default_service = models.ForeignKey(
        'clinic.Service',
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('default service'),
        help_text=_('Consultation line added when an examination starts.'),
    )
    is_active = models.BooleanField(_('active'), default=True, db_index=True)

    class Meta:
        verbose_name = _('department')
        verbose_name_plural = _('departments')
        ordering = ['name']

    def __str__(self):
        return f'{self.code} — {self.name}'


class Service(BaseModel):
    """Billable clinical service (consultation, procedure, lab test...)."""

    class CategoryChoices(models.TextChoices):
        KONSULTASI = 'konsultasi', _('Consultation')
        TINDAKAN = 'tindakan', _('Medical procedure')
        LABORATORIUM = 'laboratorium', _('Laboratory')
        RADIOLOGI = 'radiologi', _('Radiology')
        FARMASI = 'farmasi', _('Pharmacy')
        RAWAT_INAP = 'rawat_inap', _('Inpatient')
        LAINNYA = 'lainnya', _('Other')

    code = models.CharField(_('code'), max_length=20, unique=True)
    name = models.CharField(_('name'), max_length=100)
    description = models.TextField(_('description'), blank=True)
    category = models.CharField(
        _('category'), max_length=20,
        choices=CategoryChoices.choices, db_index=True,
    )
    department = models.ForeignKey(
        Department,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='services',
        verbose_name=_('department'),
    )
    base_price = models.DecimalField(
        _('base price'), max_digits=12, decimal_places=2,
        default=Decimal('0'), validators=[MinValueValidator(Decimal('0'))],
    )
    doctor_fee = models.DecimalField(
        _('doctor fee'), max_digits=12, decimal_places=2,
        default=Decimal('0'), validators=[MinValueValidator(Decimal('0'))],
    )
    hospital_fee = models.DecimalField(
        _('hospital fee'), max_digits=12, decimal_places=2,
        default=Decimal('0'), validators=[MinValueValidator(Decimal('0'))],
    )
    duration = models.PositiveIntegerField(_('duration (minutes)'), default=15)
    requires_appointment = models.BooleanField(_('requires appointment'), default=False)
    icon = models.CharField(_('icon'), max_length=50, blank=True)
    color = models.CharField(_('color'), max_length=20, blank=True)
    is_active = models.BooleanField(_('active'), default=True, db_index=True)

    class Meta:
        verbose_name = _('service')
        verbose_name_plural = _('services')
        ordering = ['category', 'name']

    def __str__(self):
        return f'{self.code} — {self.name}'

    @property
    def total_price(self) -> Decimal:
        return (self.base_price or 0) + (self.doctor_fee or 0) + (self.hospital_fee or 0)



class DoctorSchedule(BaseModel):
    """Weekly practice slot of a doctor in a department."""

    class Day(models.IntegerChoices):
        SUNDAY = 0, _('Sunday')
        MONDAY = 1, _('Monday')
        TUESDAY = 2, _('Tuesday')
        WEDNESDAY = 3, _('Wednesday')
        THURSDAY = 4, _('Thursday')
        FRIDAY = 5, _('Friday')
        SATURDAY = 6, _('Saturday')

    doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='schedules',
        verbose_name=_('doctor'),
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.CASCADE,
        related_name='doctor_schedules',
        verbose_name=_('department'),
    )
    day_of_week = models.PositiveSmallIntegerField(_('day of week'), choices=Day.choices, db_index=True)
    start_time = models.TimeField(_('start time'))
    end_time = models.TimeField(_('end time'))
    quota = models.PositiveIntegerField(_('quota'), default=20)
    is_active = models.BooleanField(_('active'), default=True, db_index=True)
    notes = models.CharField(_('notes'), max_length=500, blank=True)

    class Meta:
        verbose_name = _('doctor schedule')
        verbose_name_plural = _('doctor schedules')
        ordering = ['day_of_week', 'start_time']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F('start_time')),
                name='doctor_schedule_ends_after_start',
            ),
        ]

    def __str__(self):
        return f'{self.doctor} {self.get_day_of_week_display()} {self.time_range}'

    @staticmethod
    def weekday(day) -> int:
        """Day number of a date in this model's Sunday-first week."""
        return day.isoweekday() % 7

    @property
    def time_range(self) -> str:
        return f'{self.start_time:%H:%M} - {self.end_time:%H:%M}'

    def is_available_at(self, moment=None) -> bool:
        moment = timezone.localtime(moment)
        return (
            self.is_active
            and self.day_of_week == self.weekday(moment)
            and self.start_time <= moment.time() <= self.end_time
        )


class ClinicSetting(BaseModel):
    """Singleton clinic profile. Use ``ClinicSetting.load()``."""

    name = models.CharField(_('name'), max_length=100, default='MediKlinik')
    tagline = models.CharField(_('tagline'), max_length=200, blank=True)
    description = models.TextField(_('description'), blank=True)
    logo = models.FileField(
        _('logo'), upload_to='clinic/', blank=True,
        validators=[FileExtensionValidator(LOGO_EXTENSIONS)],
    )
    favicon = models.FileField(
        _('favicon'), upload_to='clinic/', blank=True,
        validators=[FileExtensionValidator(FAVICON_EXTENSIONS)],
    )

    address = models.TextField(_('address'), blank=True)
    city = models.CharField(_('city'), max_length=100, blank=True)
    province = models.CharField(_('province'), max_length=100, blank=True)
    postal_code = models.CharField(_('postal code'), max_length=10, blank=True)
    phone = models.CharField(_('phone'), max_length=20, blank=True)
    whatsapp = models.CharField(_('WhatsApp'), max_length=20, blank=True)
    email = models.EmailField(_('email'), blank=True)
    website = models.CharField(_('website'), max_length=200, blank=True)

    license_number = models.CharField(_('license number'), max_length=100, blank=True)
    npwp = models.CharField(_('tax number (NPWP)'), max_length=50, blank=True)
    owner_name = models.CharField(_('owner name'), max_length=100, blank=True)

    operational_hours = models.JSONField(_('operational hours'), null=True, blank=True)
    timezone = models.CharField(_('timezone'), max_length=50, default='Asia/Jakarta')
    currency = models.CharField(_('currency'), max_length=10, default='IDR')
    default_queue_quota = models.PositiveIntegerField(_('default queue quota'), default=50)

    class Meta:
        verbose_name = _('clinic setting')
        verbose_name_plural = _('clinic settings')

    def __str__(self):
        return self.name

    @classmethod
    def load(cls) -> 'ClinicSetting':
        setting = cls.objects.order_by('created_at').first()
        if setting is None:
            setting = cls.objects.create()
        return setting
