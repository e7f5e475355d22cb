"""
Queues — Service Layer

Ticket issuance and the status lifecycle. Every transition goes through
``Queue.TRANSITIONS``; an illegal one raises InvalidStateTransition (422)
and leaves the row untouched.

@file queues/services.py
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Max, Q
from django.utils import timezone

from core.exceptions import BusinessRuleViolation, ResourceNotFoundError
from core.services import AuditService
from core.transitions import assert_transition

from .models import Queue, QueueSetting

logger = logging.getLogger('mediklinik')

SKIP_DEFAULT_NOTE = 'Patient absent'
RESET_NOTE = 'Reset by admin'


class QueueService:

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def take(*, department, doctor=None, patient=None, service=None, actor=None) -> Queue:
        """Issue the next ticket of today for ``department``."""
        try:
            setting = QueueSetting.objects.select_for_update().get(department=department)
        except QueueSetting.DoesNotExist:
            raise BusinessRuleViolation(
                detail='Queue settings have not been configured for this department.',
            )
        if not setting.is_active:
            raise BusinessRuleViolation(detail='The queue for this department is not active.')

        today = timezone.localdate()
        if setting.is_quota_exceeded(today):
            raise BusinessRuleViolation(detail="Today's queue quota for this department is full.")

        last = (
            Queue.objects
            .filter(department=department, queue_date=today)
            .aggregate(last=Max('queue_number'))['last']
        )
        number = last + 1 if last is not None else (setting.start_number or 1)

        queue = Queue.objects.create(
            queue_number=number,
            queue_code=Queue.build_code(setting.prefix, number),
            queue_date=today,
            department=department,
            doctor=doctor,
            patient=patient,
            service=service,
            status=Queue.Status.WAITING,
            created_by=actor if getattr(actor, 'is_authenticated', False) else None,
        )
        logger.info('Queue %s issued for department %s', queue.queue_code, department.pk)
        return queue

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @staticmethod
    def _transition(queue_id, target: str, *, actor=None, **changes) -> Queue:
        try:
            queue = Queue.objects.select_for_update().get(pk=queue_id)
        except Queue.DoesNotExist:
            raise ResourceNotFoundError(detail='Queue not found.')

        assert_transition(Queue.TRANSITIONS, queue, target, label='queue')

        old_status = queue.status
        queue.status = target
        for field, value in changes.items():
            setattr(queue, field, value)
        queue.updated_by = actor if getattr(actor, 'is_authenticated', False) else None
        queue.save()

        AuditService.log_status_change(actor=actor, instance=queue, old_status=old_status, **changes)
        logger.info('Queue %s: %s -> %s', queue.queue_code, old_status, target)
        return queue

    @classmethod
    @transaction.atomic
    def call(cls, *, queue_id, actor=None, counter_number=None) -> Queue:
        return cls._transition(
            queue_id, Queue.Status.CALLED,
            actor=actor,
            called_at=timezone.now(),
            counter_number=counter_number,
            served_by=actor if getattr(actor, 'is_authenticated', False) else None,
        )

    @classmethod
    @transaction.atomic
    def start(cls, *, queue_id, actor=None) -> Queue:
        return cls._transition(queue_id, Queue.Status.IN_SERVICE, actor=actor, started_at=timezone.now())

    @classmethod
    @transaction.atomic
    def complete(cls, *, queue_id, actor=None, notes: str | None = None) -> Queue:
        changes = {'completed_at': timezone.now()}
        if notes:
            changes['notes'] = notes
        return cls._transition(queue_id, Queue.Status.COMPLETED, actor=actor, **changes)

    @classmethod
    @transaction.atomic
    def skip(cls, *, queue_id, actor=None, notes: str | None = None) -> Queue:
        return cls._transition(
            queue_id, Queue.Status.SKIPPED, actor=actor, notes=notes or SKIP_DEFAULT_NOTE,
        )

    @classmethod
    @transaction.atomic
    def cancel(cls, *, queue_id, actor=None, notes: str | None = None) -> Queue:
        changes = {'notes': notes} if notes else {}
        return cls._transition(queue_id, Queue.Status.CANCELLED, actor=actor, **changes)

    @staticmethod
    @transaction.atomic
    def assign_patient(*, queue_id, patient, actor=None) -> Queue:
        try:
            queue = Queue.objects.select_for_update().get(pk=queue_id)
        except Queue.DoesNotExist:
            raise ResourceNotFoundError(detail='Queue not found.')
        if queue.status in (Queue.Status.COMPLETED, Queue.Status.CANCELLED):
            raise BusinessRuleViolation(detail='Cannot assign a patient to a closed queue.')

        queue.patient = patient
        queue.updated_by = actor if getattr(actor, 'is_authenticated', False) else None
        queue.save(update_fields=['patient', 'updated_by', 'updated_at'])
        logger.info('Queue %s assigned to patient %s', queue.queue_code, patient.pk)
        return queue

    @staticmethod
    @transaction.atomic
    def reset(*, day, department=None, actor=None) -> int:
        """Cancel every waiting/called ticket of ``day``; returns the count."""
        qs = Queue.objects.filter(
            queue_date=day, status__in=[Queue.Status.WAITING, Queue.Status.CALLED],
        )
        if department is not None:
            qs = qs.filter(department=department)

        count = qs.update(
            status=Queue.Status.CANCELLED,
            notes=RESET_NOTE,
            updated_at=timezone.now(),
        )
        logger.info(
            'Queue reset for %s (department=%s) by %s: %d cancelled',
            day, getattr(department, 'pk', None), getattr(actor, 'pk', None), count,
        )
        return count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def stats(*, day, department=None) -> dict:
        qs = Queue.objects.filter(queue_date=day)
        if department is not None:
            qs = qs.filter(department=department)

        counts = qs.aggregate(
            total=Count('id'),
            **{
                value: Count('id', filter=Q(status=value))
                for value, _label in Queue.Status.choices
            },
        )

        completed = qs.filter(status=Queue.Status.COMPLETED)
        waits = [
            (called - created).total_seconds() / 60
            for created, called in completed.filter(called_at__isnull=False)
            .values_list('created_at', 'called_at')
        ]
        services = [
            (done - started).total_seconds() / 60
            for started, done in completed.filter(started_at__isnull=False, completed_at__isnull=False)
            .values_list('started_at', 'completed_at')
        ]

        counts['avg_wait_time'] = round(sum(waits) / len(waits)) if waits else 0
        counts['avg_service_time'] = round(sum(services) / len(services)) if services else 0
        return counts

    @staticmethod
    def display(*, department=None) -> dict:
        """Board data: tickets being served and the next waiting ones."""
        qs = (
            Queue.objects
            .filter(queue_date=timezone.localdate())
            .select_related('department', 'patient')
        )
        if department is not None:
            qs = qs.filter(department=department)

        current = [
            {
                'queue_code': q.queue_code,
                'department': q.department.name,
                'department_color': q.department.color,
                'counter': q.counter_number,
                'status': q.status,
                'patient_name': q.patient.name if q.patient else None,
            }
            for q in qs.filter(
                status__in=[Queue.Status.CALLED, Queue.Status.IN_SERVICE],
            ).order_by('-called_at')
        ]
        waiting = [
            {
                'queue_code': q.queue_code,
                'department': q.department.name,
                'department_color': q.department.color,
            }
            for q in qs.filter(status=Queue.Status.WAITING).order_by('queue_number')[:settings.QUEUE_DISPLAY_LIMIT]
        ]
        return {
            'current': current,
            'waiting': waiting,
            'timestamp': timezone.now().isoformat(),
        }

    @staticmethod
    def current_for(department) -> dict:
        today = timezone.localdate()
        qs = Queue.objects.filter(department=department, queue_date=today)
        current = (
            qs.filter(status__in=[Queue.Status.CALLED, Queue.Status.IN_SERVICE])
            .select_related('patient', 'service', 'served_by')
            .order_by('-called_at')
            .first()
        )
        next_waiting = qs.filter(status=Queue.Status.WAITING).order_by('queue_number').first()
        setting = QueueSetting.objects.filter(department=department).first()
        return {
            'current': current,
            'next': next_waiting,
            'remaining_quota': setting.remaining_quota if setting else 0,
        }


class QueueSettingService:

    @staticmethod
    @transaction.atomic
    def upsert(*, department, actor=None, **fields) -> QueueSetting:
        if 'prefix' in fields:
            fields['prefix'] = fields['prefix'].strip().upper()
            taken = (
                QueueSetting.objects
                .filter(prefix=fields['prefix'])
                .exclude(department=department)
                .select_related('department')
                .first()
            )
            if taken is not None:
                raise BusinessRuleViolation(
                    detail=f'Prefix "{fields["prefix"]}" is already used by {taken.department.name}.',
                )
        setting, created = QueueSetting.objects.update_or_create(
            department=department,
            defaults=fields,
        )
        logger.info(
            'Queue setting for department %s %s',
            department.pk, 'created' if created else 'updated',
        )
        return setting
