"""
Clinic — Service Layer

Department / service catalogue maintenance, doctor schedules and the
clinic profile.

@file clinic/services.py
"""

import logging

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_DELETE, AUDIT_ACTION_UPDATE
from core.exceptions import BusinessRuleViolation
from core.services import AuditService

from .models import ClinicSetting, Department, DoctorSchedule, Service

logger = logging.getLogger('mediklinik')


def _actor(actor):
    return actor if getattr(actor, 'is_authenticated', False) else None


class DepartmentService:

    @staticmethod
    @transaction.atomic
    def delete(*, department: Department, actor=None) -> None:
        if department.queues.exists():
            raise BusinessRuleViolation(
                detail='Department has queue history and cannot be deleted. Deactivate it instead.',
            )
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_DELETE,
            model_name='Department',
            object_id=str(department.pk),
            old_values=AuditService.snapshot(department),
        )
        department.delete()
        logger.info('Department %s deleted', department.code)

    @staticmethod
    def stats() -> dict:
        return {
            'total': Department.objects.count(),
            'active': Department.objects.filter(is_active=True).count(),
            'inactive': Department.objects.filter(is_active=False).count(),
        }


class CatalogService:
    """Billable services (the ``Service`` model)."""

    @staticmethod
    @transaction.atomic
    def delete(*, service: Service, actor=None) -> None:
        if service.record_lines.exists():
            raise BusinessRuleViolation(
                detail='Service is used on medical records and cannot be deleted. Deactivate it instead.',
            )
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_DELETE,
            model_name='Service',
            object_id=str(service.pk),
            old_values=AuditService.snapshot(service),
        )
        service.delete()
        logger.info('Service %s deleted', service.code)

    @staticmethod
    def stats() -> dict:
        by_category = {
            value: Service.objects.filter(category=value).count()
            for value, _label in Service.CategoryChoices.choices
        }
        return {
            'total': Service.objects.count(),
            'active': Service.objects.filter(is_active=True).count(),
            'by_category': by_category,
        }


class DoctorScheduleService:
    """Weekly doctor schedules and the day views built from them."""

    @staticmethod
    def _check_overlap(*, doctor, day_of_week, start_time, end_time, exclude=None) -> None:
        clash = DoctorSchedule.objects.filter(
            doctor=doctor, day_of_week=day_of_week,
            start_time__lt=end_time, end_time__gt=start_time,
        )
        if exclude is not None:
            clash = clash.exclude(pk=exclude.pk)
        clash = clash.select_related('department').first()
        if clash:
            raise BusinessRuleViolation(
                detail=f'Schedule overlaps {clash.get_day_of_week_display()} {clash.time_range} '
                       f'at {clash.department.name}.',
            )

    @classmethod
    @transaction.atomic
    def create(cls, *, actor=None, **fields) -> DoctorSchedule:
        cls._check_overlap(
            doctor=fields['doctor'], day_of_week=fields['day_of_week'],
            start_time=fields['start_time'], end_time=fields['end_time'],
        )
        schedule = DoctorSchedule.objects.create(created_by=_actor(actor), **fields)
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='DoctorSchedule',
            object_id=str(schedule.pk),
            new_values=AuditService.snapshot(schedule),
        )
        logger.info('DoctorSchedule %s created for %s', schedule.time_range, schedule.doctor_id)
        return schedule

    @classmethod
    @transaction.atomic
    def update(cls, *, schedule: DoctorSchedule, actor=None, **fields) -> DoctorSchedule:
        old = AuditService.snapshot(schedule)
        for field, value in fields.items():
            setattr(schedule, field, value)
        if schedule.end_time <= schedule.start_time:
            raise BusinessRuleViolation(detail='End time must be after start time.')
        cls._check_overlap(
            doctor=schedule.doctor, day_of_week=schedule.day_of_week,
            start_time=schedule.start_time, end_time=schedule.end_time, exclude=schedule,
        )
        schedule.updated_by = _actor(actor)
        schedule.save()
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='DoctorSchedule',
            object_id=str(schedule.pk),
            old_values=old,
            new_values=AuditService.snapshot(schedule),
        )
        return schedule

    @staticmethod
    @transaction.atomic
    def delete(*, schedule: DoctorSchedule, actor=None) -> None:
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_DELETE,
            model_name='DoctorSchedule',
            object_id=str(schedule.pk),
            old_values=AuditService.snapshot(schedule),
        )
        schedule.delete()

    @staticmethod
    def available_doctors(*, day_of_week: int, department=None) -> list[dict]:
        """Active schedules of one weekday grouped by doctor."""
        qs = (
            DoctorSchedule.objects
            .filter(is_active=True, day_of_week=day_of_week)
            .select_related('doctor', 'department')
            .order_by('start_time')
        )
        if department is not None:
            qs = qs.filter(department=department)
        grouped: dict = {}
        for schedule in qs:
            grouped.setdefault(schedule.doctor, []).append(schedule)
        return [{'doctor': doctor, 'schedules': schedules} for doctor, schedules in grouped.items()]

    @staticmethod
    def doctor_week(*, doctor) -> list[dict]:
        """A doctor's active schedules grouped by weekday, Sunday first."""
        qs = doctor.schedules.filter(is_active=True).select_related('department')
        grouped: dict = {}
        for schedule in qs.order_by('day_of_week', 'start_time'):
            grouped.setdefault(schedule.day_of_week, []).append(schedule)
        return [
            {'day_of_week': day, 'day_label': str(DoctorSchedule.Day(day).label), 'schedules': schedules}
            for day, schedules in grouped.items()
        ]

    @staticmethod
    def kiosk_today(*, department: Department) -> list[dict]:
        """Today's schedules of a department that still have quota left."""
        from queues.models import Queue

        today = timezone.localdate()
        used = dict(
            Queue.objects
            .filter(department=department, queue_date=today, doctor__isnull=False)
            .exclude(status=Queue.Status.CANCELLED)
            .order_by()
            .values('doctor')
            .annotate(total=Count('id'))
            .values_list('doctor', 'total')
        )
        rows = []
        schedules = (
            department.doctor_schedules
            .filter(is_active=True, day_of_week=DoctorSchedule.weekday(today))
            .select_related('doctor')
            .order_by('start_time')
        )
        for schedule in schedules:
            remaining = max(0, schedule.quota - used.get(schedule.doctor_id, 0))
            if remaining > 0:
                rows.append({'schedule': schedule, 'remaining_quota': remaining})
        return rows


class ClinicSettingService:

    @staticmethod
    @transaction.atomic
    def update(*, actor=None, **fields) -> ClinicSetting:
        setting = ClinicSetting.load()
        old_snapshot = AuditService.snapshot(setting)
        for field, value in fields.items():
            setattr(setting, field, value)
        setting.updated_by = actor
        setting.save()

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='ClinicSetting',
            object_id=str(setting.pk),
            old_values=old_snapshot,
            new_values=AuditService.snapshot(setting),
        )
        return setting

    @staticmethod
    @transaction.atomic
    def upload_asset(*, field: str, upload, actor=None) -> ClinicSetting:
        """Store a new ``logo`` or ``favicon`` under ``clinic/``, removing the previous file."""
        if field not in ('logo', 'favicon'):
            raise BusinessRuleViolation(detail=f'Unknown clinic asset "{field}".')
        setting = ClinicSetting.load()
        current = getattr(setting, field)
        old_path = current.name or None
        if current:
            current.delete(save=False)
        current.save(upload.name, upload, save=False)
        setting.updated_by = _actor(actor)
        setting.save(update_fields=[field, 'updated_by', 'updated_at'])

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='ClinicSetting',
            object_id=str(setting.pk),
            old_values={field: old_path},
            new_values={field: current.name},
        )
        logger.info('Clinic %s replaced with %s', field, current.name)
        return setting
