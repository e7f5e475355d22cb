"""
Queues — Models

Per-department, per-day numbered tickets and their settings. A ticket is
never physically deleted: cancelling is a status.

@file queues/models.py
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


class QueueSetting(BaseModel):
    """One row per department: code prefix, daily quota and start number."""

    department = models.OneToOneField(
        'clinic.Department',
        on_delete=models.CASCADE,
        related_name='queue_setting',
        verbose_name=_('department'),
    )
    prefix = models.CharField(_('prefix'), max_length=5, unique=True)
    daily_quota = models.PositiveIntegerField(_('daily quota'), default=50)
    start_number = models.PositiveIntegerField(_('start number'), default=1)
    is_active = models.BooleanField(_('active'), default=True)

    class Meta:
        verbose_name = _('queue setting')
        verbose_name_plural = _('queue settings')
        ordering = ['department__name']

    def __str__(self):
        return f'{self.department} ({self.prefix})'

    def count_for(self, day=None) -> int:
        """Tickets issued on ``day`` that still hold a quota slot."""
        day = day or timezone.localdate()
        return (
            Queue.objects
            .filter(department_id=self.department_id, queue_date=day)
            .exclude(status=Queue.Status.CANCELLED)
            .count()
        )

    @property
    def today_count(self) -> int:
        return self.count_for()

    @property
    def remaining_quota(self) -> int:
        return max(0, self.daily_quota - self.today_count)

    def is_quota_exceeded(self, day=None) -> bool:
        return self.count_for(day) >= self.daily_quota


class Queue(BaseModel):

    class Status(models.TextChoices):
        WAITING = 'waiting', _('Waiting')
        CALLED = 'called', _('Called')
        IN_SERVICE = 'in_service', _('In service')
        COMPLETED = 'completed', _('Completed')
        SKIPPED = 'skipped', _('Skipped')
        CANCELLED = 'cancelled', _('Cancelled')

    TRANSITIONS = {
        Status.WAITING: {Status.CALLED, Status.SKIPPED, Status.CANCELLED},
        Status.SKIPPED: {Status.CALLED, Status.CANCELLED},
        Status.CALLED: {Status.IN_SERVICE, Status.SKIPPED, Status.CANCELLED},
        Status.IN_SERVICE: {Status.COMPLETED, Status.CANCELLED},
        Status.COMPLETED: set(),
        Status.CANCELLED: set(),
    }

    ACTIVE_STATUSES = (Status.WAITING, Status.CALLED, Status.IN_SERVICE)

    queue_number = models.PositiveIntegerField(_('queue number'))
    queue_code = models.CharField(_('queue code'), max_length=20)
    queue_date = models.DateField(_('queue date'), db_index=True)

    patient = models.ForeignKey(
        'patients.Patient',
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='queues',
        verbose_name=_('patient'),
    )
    department = models.ForeignKey(
        'clinic.Department',
        on_delete=models.PROTECT,
        related_name='queues',
        verbose_name=_('department'),
    )
    doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='doctor_queues',
        verbose_name=_('doctor'),
    )
    service = models.ForeignKey(
        'clinic.Service',
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='queues',
        verbose_name=_('service'),
    )

    status = models.CharField(
        _('status'), max_length=20,
        choices=Status.choices, default=Status.WAITING, db_index=True,
    )
    called_at = models.DateTimeField(_('called at'), null=True, blank=True)
    started_at = models.DateTimeField(_('started at'), null=True, blank=True)
    completed_at = models.DateTimeField(_('completed at'), null=True, blank=True)
    counter_number = models.PositiveIntegerField(_('counter number'), null=True, blank=True)
    served_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='served_queues',
        verbose_name=_('served by'),
    )
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('queue')
        verbose_name_plural = _('queues')
        ordering = ['queue_date', 'queue_number']
        constraints = [
            models.UniqueConstraint(fields=['queue_date', 'queue_code'], name='unique_queue_code_per_day'),
            models.UniqueConstraint(
                fields=['department', 'queue_date', 'queue_number'],
                name='unique_queue_number_per_department_day',
            ),
        ]
        indexes = [
            models.Index(fields=['department', 'queue_date', 'status']),
        ]

    def __str__(self):
        return f'{self.queue_code} ({self.queue_date})'

    @staticmethod
    def build_code(prefix: str, number: int) -> str:
        return f'{prefix}-{number:03d}'

    @property
    def wait_time(self) -> int | None:
        """Minutes from ticket creation to call (or to now while waiting)."""
        if not self.created_at:
            return None
        end = self.called_at or timezone.now()
        return max(0, int((end - self.created_at).total_seconds() // 60))

    @property
    def service_time(self) -> int | None:
        if not self.started_at or not self.completed_at:
            return None
        return max(0, int((self.completed_at - self.started_at).total_seconds() // 60))
