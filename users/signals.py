"""
Users — Signals

Audit logging for User model lifecycle events.

@file users/signals.py
"""

import logging

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_UPDATE
from core.services import AuditService
from users.models import User

logger = logging.getLogger('mediklinik')

_pre_save_state: dict = {}


def _user_snapshot(user) -> dict:
    return AuditService.snapshot(user, fields=[
        'email', 'name', 'phone', 'avatar', 'is_active', 'is_staff',
        'is_superuser', 'is_deleted',
    ])


@receiver(pre_save, sender=User)
def user_pre_save(sender, instance, **kwargs):
    if instance.pk and not instance._state.adding:
        old = User.objects.filter(pk=instance.pk).first()
        if old is not None:
            _pre_save_state[str(instance.pk)] = _user_snapshot(old)


@receiver(post_save, sender=User)
def user_post_save(sender, instance, created, **kwargs):
    action = AUDIT_ACTION_CREATE if created else AUDIT_ACTION_UPDATE
    old_values = _pre_save_state.pop(str(instance.pk), None)
    new_values = _user_snapshot(instance)

    if not created and old_values == new_values:
        return

    AuditService.log(
        actor=instance.updated_by or instance.created_by,
        action=action,
        model_name='User',
        object_id=str(instance.pk),
        old_values=old_values,
        new_values=new_values,
    )
    logger.debug('User %s %s', instance.pk, action.lower())
