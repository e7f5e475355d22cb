"""
Core — Base Models & Audit Trail

Abstract building blocks shared by every clinic app and the AuditLog
table that records each write made through the service layer.

Clinical and financial documents (patients, records, invoices, orders)
are guarded by their services rather than soft-deleted: deletion is
refused once history exists. Soft delete is reserved for staff accounts,
whose rows stay referenced by audit entries and by every ``created_by``.

@file core/models.py
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.constants import (
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_DELETE,
    AUDIT_ACTION_LOGIN,
    AUDIT_ACTION_LOGIN_FAILED,
    AUDIT_ACTION_LOGOUT,
    AUDIT_ACTION_RESTORE,
    AUDIT_ACTION_SOFT_DELETE,
    AUDIT_ACTION_STATUS_CHANGE,
    AUDIT_ACTION_UPDATE,
)


class TimestampMixin(models.Model):
    created_at = models.DateTimeField(_('created at'), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        abstract = True


class AuditFieldsMixin(models.Model):
    """Staff member who created / last edited the row (null for kiosk writes)."""

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('created by'),
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('updated by'),
    )

    class Meta:
        abstract = True


class BaseModel(TimestampMixin, AuditFieldsMixin):
    """UUID primary key + timestamps + actor fields."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


class SoftDeleteMixin(models.Model):
    """
    Flag-only deletion. ``soft_delete`` also switches ``is_active`` off on
    models that have it, and both directions leave an AuditLog row.
    """

    is_deleted = models.BooleanField(_('deleted'), default=False, db_index=True)
    deleted_at = models.DateTimeField(_('deleted at'), null=True, blank=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('deleted by'),
    )

    class Meta:
        abstract = True

    def _log_flag_change(self, action, actor, old_deleted):
        from core.services import AuditService

        AuditService.log(
            actor=actor,
            action=action,
            model_name=self.__class__.__name__,
            object_id=str(self.pk),
            old_values={'is_deleted': old_deleted},
            new_values={'is_deleted': self.is_deleted},
        )

    def soft_delete(self, actor=None):
        fields = ['is_deleted', 'deleted_at', 'deleted_by', 'updated_at']
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.deleted_by = actor if getattr(actor, 'is_authenticated', False) else None
        if getattr(self, 'is_active', False):
            self.is_active = False
            fields.append('is_active')
        self.save(update_fields=fields)
        self._log_flag_change(AUDIT_ACTION_SOFT_DELETE, actor, old_deleted=False)

    def restore(self, actor=None):
        self.is_deleted = False
        self.deleted_at = None
        self.deleted_by = None
        self.save(update_fields=['is_deleted', 'deleted_at', 'deleted_by', 'updated_at'])
        self._log_flag_change(AUDIT_ACTION_RESTORE, actor, old_deleted=True)


# ---------------------------------------------------------------------------
# Audit Log
# ---------------------------------------------------------------------------

class AuditLog(models.Model):
    """
    Append-only audit trail: one row per create / update / status change /
    login event, with JSON snapshots of the values before and after.
    """

    class ActionChoices(models.TextChoices):
        CREATE = AUDIT_ACTION_CREATE, _('Create')
        UPDATE = AUDIT_ACTION_UPDATE, _('Update')
        DELETE = AUDIT_ACTION_DELETE, _('Delete')
        SOFT_DELETE = AUDIT_ACTION_SOFT_DELETE, _('Soft Delete')
        RESTORE = AUDIT_ACTION_RESTORE, _('Restore')
        STATUS_CHANGE = AUDIT_ACTION_STATUS_CHANGE, _('Status Change')
        LOGIN = AUDIT_ACTION_LOGIN, _('Login')
        LOGOUT = AUDIT_ACTION_LOGOUT, _('Logout')
        LOGIN_FAILED = AUDIT_ACTION_LOGIN_FAILED, _('Login Failed')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='audit_logs',
        verbose_name=_('actor'),
    )
    action = models.CharField(_('action'), max_length=20, choices=ActionChoices.choices, db_index=True)
    model_name = models.CharField(_('model'), max_length=100, db_index=True)
    object_id = models.CharField(_('object ID'), max_length=40, db_index=True)
    old_values = models.JSONField(_('old values'), null=True, blank=True)
    new_values = models.JSONField(_('new values'), null=True, blank=True)
    ip_address = models.GenericIPAddressField(_('IP address'), null=True, blank=True)
    user_agent = models.TextField(_('user agent'), blank=True, default='')
    timestamp = models.DateTimeField(_('timestamp'), auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _('audit log')
        verbose_name_plural = _('audit logs')
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['model_name', 'object_id']),
            models.Index(fields=['actor', 'timestamp']),
            models.Index(fields=['action', 'timestamp']),
        ]

    def __str__(self):
        return f'{self.action} {self.model_name}:{self.object_id} by {self.actor_id}'

    @property
    def changed_fields(self) -> list[str]:
        """Keys whose value differs between the before and after snapshots."""
        old = self.old_values or {}
        new = self.new_values or {}
        return sorted(key for key in old.keys() | new.keys() if old.get(key) != new.get(key))
