"""
Pharmacy — Service Layer

Stock ledger operations. Every change to a batch quantity goes through
``StockService`` and appends exactly one StockMovement per touched batch,
inside the caller's transaction. Outbound movements lock the medicine row
and validate availability before the first write.

@file pharmacy/services.py
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Count, F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.constants import (
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_DELETE,
    AUDIT_ACTION_UPDATE,
    PREFIX_MEDICINE,
    PREFIX_STOCK_MOVEMENT,
)
from core.exceptions import BusinessRuleViolation, InsufficientStockError, ResourceNotFoundError
from core.numbering import daily_number, sequential_code
from core.services import AuditService

from .models import Medicine, MedicineBatch, StockMovement, usable_batch_q

logger = logging.getLogger('mediklinik')

PRICING_FIELDS = ('purchase_price', 'margin_percentage', 'ppn_percentage')

ADJUSTMENT_PLUS_REASONS = {
    StockMovement.Reason.ADJUSTMENT_PLUS,
    StockMovement.Reason.RETURN_PATIENT,
    StockMovement.Reason.INITIAL_STOCK,
    StockMovement.Reason.OTHER,
}
ADJUSTMENT_MINUS_REASONS = {
    StockMovement.Reason.ADJUSTMENT_MINUS,
    StockMovement.Reason.EXPIRED,
    StockMovement.Reason.DAMAGE,
    StockMovement.Reason.RETURN_SUPPLIER,
    StockMovement.Reason.OTHER,
}


def _actor(actor):
    return actor if getattr(actor, 'is_authenticated', False) else None


class StockService:

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def current_stock(medicine: Medicine) -> int:
        return (
            MedicineBatch.objects
            .filter(usable_batch_q(), medicine=medicine)
            .aggregate(total=Coalesce(Sum('current_qty'), 0))['total']
        )

    @staticmethod
    def available_batches(medicine: Medicine):
        """Usable batches in FEFO order (earliest expiry first)."""
        return (
            MedicineBatch.objects
            .filter(usable_batch_q(), medicine=medicine, current_qty__gt=0)
            .order_by('expiry_date', 'created_at')
        )

    # ------------------------------------------------------------------
    # Ledger writes
    # ------------------------------------------------------------------

    @staticmethod
    def _lock_medicine(medicine: Medicine) -> Medicine:
        try:
            return Medicine.objects.select_for_update().get(pk=medicine.pk)
        except Medicine.DoesNotExist:
            raise ResourceNotFoundError(detail='Medicine not found.')

    @classmethod
    def _ledger_stock(cls, medicine: Medicine, batch: MedicineBatch | None = None) -> int:
        """
        Aggregate stock for a movement snapshot. A touched batch that sits
        outside the usable set (e.g. an expired write-off) is counted too, so
        ``stock_after`` never drops below zero and lands on ``current_stock``.
        """
        stock = cls.current_stock(medicine)
        if batch is not None and not MedicineBatch.objects.filter(usable_batch_q(), pk=batch.pk).exists():
            stock += batch.current_qty
        return stock

    @staticmethod
    def _record(
        *,
        medicine: Medicine,
        batch: MedicineBatch | None,
        movement_type: str,
        reason: str,
        quantity: int,
        stock_before: int,
        reference_type: str = '',
        reference_id=None,
        notes: str = '',
        actor=None,
    ) -> StockMovement:
        delta = quantity if movement_type == StockMovement.MovementType.IN else -quantity
        movement = StockMovement.objects.create(
            movement_number=daily_number(StockMovement, 'movement_number', PREFIX_STOCK_MOVEMENT),
            medicine=medicine,
            batch=batch,
            movement_type=movement_type,
            reason=reason,
            quantity=quantity,
            unit=medicine.unit,
            stock_before=stock_before,
            stock_after=stock_before + delta,
            reference_type=reference_type or '',
            reference_id=reference_id,
            notes=notes or '',
            created_by=_actor(actor),
        )
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='StockMovement',
            object_id=str(movement.pk),
            new_values={
                'movement_number': movement.movement_number,
                'medicine_id': str(medicine.pk),
                'batch_id': str(batch.pk) if batch else None,
                'movement_type': movement_type,
                'reason': reason,
                'quantity': quantity,
                'stock_before': movement.stock_before,
                'stock_after': movement.stock_after,
            },
        )
        logger.info(
            'StockMovement %s %s qty=%s medicine=%s batch=%s (%s -> %s)',
            movement.movement_number, movement_type, quantity, medicine.code,
            getattr(batch, 'batch_number', None), movement.stock_before, movement.stock_after,
        )
        return movement

    @classmethod
    @transaction.atomic
    def create_batch(
        cls,
        *,
        medicine: Medicine,
        batch_number: str,
        expiry_date,
        quantity: int,
        purchase_price=None,
        reason: str = StockMovement.Reason.PURCHASE,
        reference_type: str = '',
        reference_id=None,
        notes: str = '',
        actor=None,
    ) -> tuple[MedicineBatch, StockMovement]:
        """Register a new batch and book its quantity as an inbound movement."""
        if quantity <= 0:
            raise BusinessRuleViolation(detail='Quantity must be positive.')
        medicine = cls._lock_medicine(medicine)
        batch = MedicineBatch.objects.create(
            medicine=medicine,
            batch_number=batch_number,
            expiry_date=expiry_date,
            initial_qty=quantity,
            current_qty=0,
            purchase_price=purchase_price,
            status=MedicineBatch.Status.EMPTY,
            created_by=_actor(actor),
        )
        movement = cls.stock_in(
            medicine=medicine, batch=batch, quantity=quantity, reason=reason,
            reference_type=reference_type, reference_id=reference_id,
            notes=notes, actor=actor,
        )
        batch.refresh_from_db()
        return batch, movement

    @classmethod
    @transaction.atomic
    def stock_in(
        cls,
        *,
        medicine: Medicine,
        batch: MedicineBatch,
        quantity: int,
        reason: str,
        reference_type: str = '',
        reference_id=None,
        notes: str = '',
        actor=None,
    ) -> StockMovement:
        if quantity <= 0:
            raise BusinessRuleViolation(detail='Quantity must be positive.')
        if batch.medicine_id != medicine.pk:
            raise BusinessRuleViolation(detail='Batch does not belong to this medicine.')

        medicine = cls._lock_medicine(medicine)
        batch = MedicineBatch.objects.select_for_update().get(pk=batch.pk)
        if batch.is_expired:
            raise BusinessRuleViolation(
                detail=f'Batch {batch.batch_number} has expired; stock cannot be added to it.',
            )
        stock_before = cls._ledger_stock(medicine, batch)

        batch.current_qty += quantity
        batch.medicine = medicine
        batch.refresh_status()

        return cls._record(
            medicine=medicine, batch=batch,
            movement_type=StockMovement.MovementType.IN,
            reason=reason, quantity=quantity, stock_before=stock_before,
            reference_type=reference_type, reference_id=reference_id,
            notes=notes, actor=actor,
        )

    @classmethod
    @transaction.atomic
    def stock_out(
        cls,
        *,
        medicine: Medicine,
        quantity: int,
        reason: str,
        batch: MedicineBatch | None = None,
        reference_type: str = '',
        reference_id=None,
        notes: str = '',
        actor=None,
    ) -> list[StockMovement]:
        """
        Deduct ``quantity`` from ``batch`` or, when no batch is given, from
        usable batches in FEFO order. Nothing is written unless the whole
        quantity is available.
        """
        if quantity <= 0:
            raise BusinessRuleViolation(detail='Quantity must be positive.')

        medicine = cls._lock_medicine(medicine)

        if batch is not None:
            if batch.medicine_id != medicine.pk:
                raise BusinessRuleViolation(detail='Batch does not belong to this medicine.')
            batch = MedicineBatch.objects.select_for_update().get(pk=batch.pk)
            if batch.current_qty < quantity:
                raise InsufficientStockError(
                    detail=f'Quantity exceeds batch stock: available={batch.current_qty}, requested={quantity}.',
                )
            plan = [(batch, quantity)]
        else:
            available = cls.current_stock(medicine)
            if available < quantity:
                raise InsufficientStockError(
                    detail=f'Quantity exceeds available stock: available={available}, requested={quantity}.',
                )
            plan = []
            remaining = quantity
            for candidate in cls.available_batches(medicine).select_for_update():
                take = min(candidate.current_qty, remaining)
                plan.append((candidate, take))
                remaining -= take
                if remaining == 0:
                    break

        movements = []
        for target, take in plan:
            stock_before = cls._ledger_stock(medicine, target)
            target.current_qty -= take
            target.medicine = medicine
            target.refresh_status()
            movements.append(cls._record(
                medicine=medicine, batch=target,
                movement_type=StockMovement.MovementType.OUT,
                reason=reason, quantity=take, stock_before=stock_before,
                reference_type=reference_type, reference_id=reference_id,
                notes=notes, actor=actor,
            ))
        return movements

    @classmethod
    @transaction.atomic
    def adjust(
        cls,
        *,
        medicine: Medicine,
        adjustment_type: str,
        quantity: int,
        reason: str,
        batch: MedicineBatch | None = None,
        batch_number: str = '',
        expiry_date=None,
        notes: str = '',
        actor=None,
    ) -> list[StockMovement]:
        """Manual stock correction (``adjustment_type`` is ``plus`` or ``minus``)."""
        if reason == StockMovement.Reason.ADJUSTMENT_PLUS and adjustment_type == 'minus':
            reason = StockMovement.Reason.ADJUSTMENT_MINUS
        elif reason == StockMovement.Reason.ADJUSTMENT_MINUS and adjustment_type == 'plus':
            reason = StockMovement.Reason.ADJUSTMENT_PLUS

        allowed = ADJUSTMENT_PLUS_REASONS if adjustment_type == 'plus' else ADJUSTMENT_MINUS_REASONS
        if reason not in allowed:
            raise BusinessRuleViolation(
                detail=f'Reason "{reason}" is not valid for a {adjustment_type} adjustment.',
            )

        if adjustment_type == 'minus':
            return cls.stock_out(
                medicine=medicine, quantity=quantity, reason=reason, batch=batch,
                reference_type='adjustment', notes=notes, actor=actor,
            )

        if batch is not None:
            return [cls.stock_in(
                medicine=medicine, batch=batch, quantity=quantity, reason=reason,
                reference_type='adjustment', notes=notes, actor=actor,
            )]
        if not batch_number or not expiry_date:
            raise BusinessRuleViolation(
                detail='A plus adjustment needs an existing batch or a new batch number and expiry date.',
            )
        if expiry_date <= timezone.localdate():
            raise BusinessRuleViolation(detail='Expiry date must be in the future.')
        _batch, movement = cls.create_batch(
            medicine=medicine, batch_number=batch_number, expiry_date=expiry_date,
            quantity=quantity, purchase_price=medicine.purchase_price, reason=reason,
            reference_type='adjustment', notes=notes, actor=actor,
        )
        return [movement]

    @staticmethod
    def refresh_expired_batches() -> int:
        """Flag batches past their expiry date as expired. Returns the count."""
        count = (
            MedicineBatch.objects
            .filter(expiry_date__lte=timezone.localdate())
            .exclude(status=MedicineBatch.Status.EXPIRED)
            .update(status=MedicineBatch.Status.EXPIRED, updated_at=timezone.now())
        )
        if count:
            logger.info('Marked %d medicine batches as expired.', count)
        return count

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    @staticmethod
    def movement_stats(*, start_date, end_date) -> dict:
        qs = StockMovement.objects.filter(
            movement_date__date__gte=start_date, movement_date__date__lte=end_date,
        )
        totals = qs.aggregate(
            total_in=Coalesce(Sum('quantity', filter=Q(movement_type=StockMovement.MovementType.IN)), 0),
            total_out=Coalesce(Sum('quantity', filter=Q(movement_type=StockMovement.MovementType.OUT)), 0),
        )
        totals['movements_today'] = StockMovement.objects.filter(
            movement_date__date=timezone.localdate(),
        ).count()
        totals['by_reason'] = list(
            qs.values('reason')
            .annotate(total_quantity=Sum('quantity'), count=Count('id'))
            .order_by('reason')
        )
        return totals

    @staticmethod
    def summary(*, start_date, end_date) -> list[dict]:
        """Per-medicine opening/in/out/closing for the period."""
        rows = []
        for medicine in Medicine.objects.with_stock().select_related('category').order_by('name'):
            movements = medicine.stock_movements.filter(
                movement_date__date__gte=start_date, movement_date__date__lte=end_date,
            )
            first = movements.order_by('movement_date', 'created_at').first()
            totals = movements.aggregate(
                total_in=Coalesce(Sum('quantity', filter=Q(movement_type=StockMovement.MovementType.IN)), 0),
                total_out=Coalesce(Sum('quantity', filter=Q(movement_type=StockMovement.MovementType.OUT)), 0),
            )
            rows.append({
                'medicine': medicine,
                'opening_stock': first.stock_before if first else medicine.current_stock,
                'total_in': totals['total_in'],
                'total_out': totals['total_out'],
                'closing_stock': medicine.current_stock,
            })
        return rows


class MedicineService:

    @staticmethod
    def next_code() -> str:
        return sequential_code(Medicine, 'code', PREFIX_MEDICINE, width=4)

    @classmethod
    @transaction.atomic
    def create(cls, *, actor=None, **fields) -> Medicine:
        explicit_price = fields.get('selling_price')
        medicine = Medicine(**fields)
        if not medicine.code:
            medicine.code = cls.next_code()
        if not explicit_price:
            medicine.apply_pricing()
        medicine.created_by = _actor(actor)
        medicine.save()

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='Medicine',
            object_id=str(medicine.pk),
            new_values=AuditService.snapshot(medicine),
        )
        logger.info('Medicine %s created', medicine.code)
        return medicine

    @staticmethod
    @transaction.atomic
    def update(*, medicine: Medicine, actor=None, **fields) -> Medicine:
        old_snapshot = AuditService.snapshot(medicine)
        pricing_changed = any(
            field in fields and fields[field] != getattr(medicine, field)
            for field in PRICING_FIELDS
        )
        for field, value in fields.items():
            setattr(medicine, field, value)
        if pricing_changed and not fields.get('selling_price'):
            medicine.apply_pricing()
        medicine.updated_by = _actor(actor)
        medicine.save()

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='Medicine',
            object_id=str(medicine.pk),
            old_values=old_snapshot,
            new_values=AuditService.snapshot(medicine),
        )
        return medicine

    @staticmethod
    @transaction.atomic
    def delete(*, medicine: Medicine, actor=None) -> None:
        if medicine.batches.filter(current_qty__gt=0).exists():
            raise BusinessRuleViolation(detail='Medicine still has stock and cannot be deleted.')
        if medicine.stock_movements.exists():
            raise BusinessRuleViolation(
                detail='Medicine has stock history and cannot be deleted. Deactivate it instead.',
            )
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_DELETE,
            model_name='Medicine',
            object_id=str(medicine.pk),
            old_values=AuditService.snapshot(medicine),
        )
        medicine.delete()
        logger.info('Medicine %s deleted', medicine.code)

    @staticmethod
    def expiring_batches(days: int | None = None):
        today = timezone.localdate()
        cutoff = today + timedelta(days=days if days is not None else settings.EXPIRING_SOON_DAYS)
        return (
            MedicineBatch.objects
            .filter(expiry_date__gt=today, expiry_date__lte=cutoff, current_qty__gt=0)
            .select_related('medicine', 'medicine__category')
            .order_by('expiry_date')
        )

    @classmethod
    def stats(cls) -> dict:
        active = Medicine.objects.active().with_stock()
        return {
            'total': Medicine.objects.count(),
            'active': Medicine.objects.filter(is_active=True).count(),
            'inactive': Medicine.objects.filter(is_active=False).count(),
            'low_stock': active.filter(stock_total__gt=0, stock_total__lte=F('min_stock')).count(),
            'out_of_stock': active.filter(stock_total__lte=0).count(),
            'expiring_soon': cls.expiring_batches().values('medicine').distinct().count(),
        }
