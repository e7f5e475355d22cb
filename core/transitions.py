"""
Core — Status Transition Tables

Every status-bearing document (queue ticket, purchase order, goods
receipt, invoice, prescription, medical record) declares its lifecycle as
a dict ``{from_status: {allowed to_status, ...}}``. The helpers below are
the only place where those tables are checked.

@file core/transitions.py
"""

import logging

from core.exceptions import InvalidStateTransition

logger = logging.getLogger('mediklinik')


def can_transition(table: dict, current: str, target: str) -> bool:
    return target in table.get(current, set())


def assert_transition(table: dict, instance, target: str, *, label: str | None = None) -> None:
    """Raise InvalidStateTransition unless ``instance.status -> target`` is allowed."""
    current = instance.status
    if can_transition(table, current, target):
        return
    name = label or type(instance)._meta.verbose_name
    logger.info(
        'Rejected %s transition %s -> %s for %s', name, current, target, instance.pk,
    )
    raise InvalidStateTransition(
        detail=f'Cannot change {name} status from {current} to {target}.',
    )


def terminal_states(table: dict) -> set[str]:
    return {status for status, targets in table.items() if not targets}
