"""
Core — Audit Service

Writes AuditLog rows for the service layer of every app.

@file core/services.py
"""

import logging
from decimal import Decimal
from typing import Any

from django.db.models.fields.files import FieldFile
from django.forms.models import model_to_dict

from core.constants import AUDIT_ACTION_STATUS_CHANGE
from core.models import AuditLog

logger = logging.getLogger('mediklinik')


class AuditService:
    """Centralised audit logging."""

    @staticmethod
    def log(
        *,
        actor,
        action: str,
        model_name: str,
        object_id: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str = '',
    ) -> AuditLog:
        if actor is not None and not getattr(actor, 'is_authenticated', False):
            actor = None
        return AuditLog.objects.create(
            actor=actor,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            old_values=old_values,
            new_values=new_values,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    @classmethod
    def log_status_change(cls, *, actor, instance, old_status: str, **extra) -> AuditLog:
        """Record ``old_status -> instance.status`` plus any extra new values."""
        new_values = {'status': instance.status}
        new_values.update({k: cls._clean(v) for k, v in extra.items()})
        return cls.log(
            actor=actor,
            action=AUDIT_ACTION_STATUS_CHANGE,
            model_name=type(instance).__name__,
            object_id=str(instance.pk),
            old_values={'status': old_status},
            new_values=new_values,
        )

    @staticmethod
    def _clean(value):
        if value is None or isinstance(value, (bool, int, str)):
            return value
        if isinstance(value, Decimal):
            return str(value)
        if hasattr(value, 'isoformat'):
            return value.isoformat()
        if hasattr(value, 'pk'):
            return str(value.pk)
        return str(value)

    @classmethod
    def snapshot(cls, instance, fields=None) -> dict[str, Any]:
        """
        Serialise a model instance to a JSON-safe dict. Decimals, dates and
        UUIDs become strings; M2M values become lists of PKs.
        """
        data = model_to_dict(instance, fields=fields)
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if hasattr(value, 'all'):
                cleaned[key] = [str(obj.pk) for obj in value.all()]
            elif isinstance(value, (list, tuple)):
                cleaned[key] = [str(v.pk) if hasattr(v, 'pk') else cls._clean(v) for v in value]
            elif isinstance(value, FieldFile):
                cleaned[key] = value.name or None
            else:
                cleaned[key] = cls._clean(value)
        return cleaned

    @staticmethod
    def get_client_ip(request) -> str | None:
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')


def toggle_active(instance, *, actor=None):
    """Flip ``is_active`` on any catalogue row and record the change."""
    old = instance.is_active
    instance.is_active = not old
    update_fields = ['is_active', 'updated_at']
    if hasattr(instance, 'updated_by'):
        instance.updated_by = actor if getattr(actor, 'is_authenticated', False) else None
        update_fields.append('updated_by')
    instance.save(update_fields=update_fields)

    AuditService.log(
        actor=actor,
        action=AUDIT_ACTION_STATUS_CHANGE,
        model_name=type(instance).__name__,
        object_id=str(instance.pk),
        old_values={'is_active': old},
        new_values={'is_active': instance.is_active},
    )
    logger.info('%s %s is_active=%s', type(instance).__name__, instance.pk, instance.is_active)
    return instance
