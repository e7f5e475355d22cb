"""
Core — Document Numbering

Human-readable document numbers with a zero-padded sequence that restarts
every day (``PO-20260118-0001``) or month (``RM-202601-0001``). The next
sequence is derived from the highest number already issued for the
period, so numbers stay gap-free as long as rows are never hard-deleted.

Callers run inside ``transaction.atomic``. On PostgreSQL the sequence for
a given stem is serialised with a transaction-scoped advisory lock;
uniqueness of the number column is the final guard everywhere else.

@file core/numbering.py
"""

import hashlib
import re

from django.db import connection
from django.db.models.functions import Length
from django.utils import timezone


def _advisory_lock_key(name: str) -> int:
    """Stable bigint key for PostgreSQL advisory lock (same name = same key)."""
    digest = hashlib.sha256(name.encode()).digest()[:8]
    return int.from_bytes(digest, 'big') % (2**63)


def advisory_lock(name: str) -> None:
    """Block until this transaction holds the lock ``name`` (PostgreSQL only)."""
    if connection.vendor != 'postgresql':
        return
    with connection.cursor() as cursor:
        cursor.execute('SELECT pg_advisory_xact_lock(%s)', [_advisory_lock_key(name)])


def _next_sequence(queryset, field: str, stem: str) -> int:
    # Longest suffix first: '-10000' must outrank '-9999'.
    last = (
        queryset
        .filter(**{f'{field}__startswith': stem})
        .annotate(_number_length=Length(field))
        .order_by('-_number_length', f'-{field}')
        .values_list(field, flat=True)
        .first()
    )
    if not last:
        return 1
    try:
        return int(last[len(stem):]) + 1
    except ValueError:
        return 1


def _issue(model, field: str, stem: str, width: int) -> str:
    advisory_lock(f'{model._meta.label}:{stem}')
    qs = model._base_manager.filter(**{f'{field}__regex': rf'^{re.escape(stem)}\d+$'})
    seq = _next_sequence(qs, field, stem)
    return f'{stem}{seq:0{width}d}'


def daily_number(model, field: str, prefix: str, *, day=None, width: int = 4) -> str:
    day = day or timezone.localdate()
    return _issue(model, field, f'{prefix}-{day:%Y%m%d}-', width)


def monthly_number(model, field: str, prefix: str, *, day=None, width: int = 4) -> str:
    day = day or timezone.localdate()
    return _issue(model, field, f'{prefix}-{day:%Y%m}-', width)


def sequential_code(model, field: str, prefix: str, *, width: int) -> str:
    """Running code without a date part (``MED-0001``, ``SUP-001``)."""
    stem = f'{prefix}-'
    advisory_lock(f'{model._meta.label}:{stem}')
    qs = model._base_manager.filter(**{f'{field}__regex': rf'^{re.escape(stem)}\d{{{width},}}$'})
    seq = _next_sequence(qs, field, stem)
    return f'{stem}{seq:0{width}d}'
