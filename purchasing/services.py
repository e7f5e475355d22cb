"""
Purchasing — Service Layer

Supplier catalogue, the purchase-order approval workflow and goods
receipts. Completing a receipt is the only way purchased stock enters the
ledger: one transaction creates every batch, books the inbound movements,
bumps the ordered lines' received quantities and advances the order.

@file purchasing/services.py
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from core.constants import (
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_DELETE,
    AUDIT_ACTION_UPDATE,
    PREFIX_GOODS_RECEIPT,
    PREFIX_PURCHASE_ORDER,
    PREFIX_SUPPLIER,
)
from core.exceptions import BusinessRuleViolation, ResourceNotFoundError
from core.numbering import daily_number, sequential_code
from core.services import AuditService
from core.transitions import assert_transition
from pharmacy.models import StockMovement
from pharmacy.services import StockService

from .models import GoodsReceipt, GoodsReceiptItem, PurchaseOrder, PurchaseOrderItem, Supplier

logger = logging.getLogger('mediklinik')

ORDER_FIELDS = ('supplier', 'order_date', 'expected_delivery_date', 'notes')
RECEIPT_FIELDS = (
    'supplier', 'receipt_date', 'supplier_invoice_number', 'supplier_invoice_date', 'notes',
)


def _actor(actor):
    return actor if getattr(actor, 'is_authenticated', False) else None


class SupplierService:

    @staticmethod
    def next_code() -> str:
        return sequential_code(Supplier, 'code', PREFIX_SUPPLIER, width=3)

    @classmethod
    @transaction.atomic
    def create(cls, *, actor=None, **fields) -> Supplier:
        if not fields.get('code'):
            fields['code'] = cls.next_code()
        supplier = Supplier.objects.create(created_by=_actor(actor), **fields)
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='Supplier',
            object_id=str(supplier.pk),
            new_values=AuditService.snapshot(supplier),
        )
        logger.info('Supplier %s created', supplier.code)
        return supplier

    @staticmethod
    @transaction.atomic
    def update(*, supplier: Supplier, actor=None, **fields) -> Supplier:
        old = AuditService.snapshot(supplier)
        for field, value in fields.items():
            setattr(supplier, field, value)
        supplier.updated_by = _actor(actor)
        supplier.save()
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='Supplier',
            object_id=str(supplier.pk),
            old_values=old,
            new_values=AuditService.snapshot(supplier),
        )
        return supplier

    @staticmethod
    @transaction.atomic
    def delete(*, supplier: Supplier, actor=None) -> None:
        if supplier.purchase_orders.exists() or supplier.goods_receipts.exists():
            raise BusinessRuleViolation(
                detail='Supplier has purchasing history and cannot be deleted.',
            )
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_DELETE,
            model_name='Supplier',
            object_id=str(supplier.pk),
            old_values=AuditService.snapshot(supplier),
        )
        logger.info('Supplier %s deleted', supplier.code)
        supplier.delete()

    @staticmethod
    def stats() -> dict:
        return Supplier.objects.aggregate(
            total=Count('id'),
            active=Count('id', filter=Q(is_active=True)),
            inactive=Count('id', filter=Q(is_active=False)),
        )


class PurchaseOrderService:

    @staticmethod
    def _lock(purchase_order) -> PurchaseOrder:
        try:
            return PurchaseOrder.objects.select_for_update().get(pk=purchase_order.pk)
        except PurchaseOrder.DoesNotExist:
            raise ResourceNotFoundError(detail='Purchase order not found.')

    @staticmethod
    def _require_draft(order: PurchaseOrder, verb: str) -> None:
        if order.status != PurchaseOrder.Status.DRAFT:
            raise BusinessRuleViolation(detail=f'Only draft purchase orders can be {verb}.')

    @staticmethod
    def _write_items(order: PurchaseOrder, items: list[dict], actor=None) -> None:
        for row in items:
            PurchaseOrderItem.objects.create(
                purchase_order=order,
                medicine=row['medicine'],
                quantity=row['quantity'],
                unit=row['unit'],
                unit_price=row['unit_price'],
                discount_percent=row.get('discount_percent') or 0,
                tax_percent=row.get('tax_percent') or 0,
                notes=row.get('notes') or '',
                created_by=_actor(actor),
            )
        order.calculate_totals()

    @classmethod
    @transaction.atomic
    def create_order(cls, *, supplier, items: list[dict], actor=None, **fields) -> PurchaseOrder:
        if not items:
            raise BusinessRuleViolation(detail='A purchase order needs at least one item.')
        order_date = fields.pop('order_date', None) or timezone.localdate()
        order = PurchaseOrder.objects.create(
            po_number=daily_number(PurchaseOrder, 'po_number', PREFIX_PURCHASE_ORDER),
            supplier=supplier,
            order_date=order_date,
            status=PurchaseOrder.Status.DRAFT,
            created_by=_actor(actor),
            **{k: v for k, v in fields.items() if k in ORDER_FIELDS},
        )
        cls._write_items(order, items, actor)
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='PurchaseOrder',
            object_id=str(order.pk),
            new_values={
                'po_number': order.po_number,
                'supplier_id': str(supplier.pk),
                'total_amount': str(order.total_amount),
                'items': len(items),
            },
        )
        logger.info('PurchaseOrder %s created (total=%s)', order.po_number, order.total_amount)
        return order

    @classmethod
    @transaction.atomic
    def update_order(cls, *, purchase_order, items: list[dict] | None = None, actor=None, **fields) -> PurchaseOrder:
        """Edit a draft order; ``items`` replaces every line when given."""
        order = cls._lock(purchase_order)
        cls._require_draft(order, 'edited')
        old = AuditService.snapshot(order)
        for field, value in fields.items():
            if field in ORDER_FIELDS:
                setattr(order, field, value)
        order.updated_by = _actor(actor)
        order.save()
        if items is not None:
            if not items:
                raise BusinessRuleViolation(detail='A purchase order needs at least one item.')
            order.items.all().delete()
            cls._write_items(order, items, actor)
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='PurchaseOrder',
            object_id=str(order.pk),
            old_values=old,
            new_values=AuditService.snapshot(order),
        )
        return order

    @classmethod
    @transaction.atomic
    def delete(cls, *, purchase_order, actor=None) -> None:
        order = cls._lock(purchase_order)
        cls._require_draft(order, 'deleted')
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_DELETE,
            model_name='PurchaseOrder',
            object_id=str(order.pk),
            old_values={'po_number': order.po_number, 'total_amount': str(order.total_amount)},
        )
        logger.info('PurchaseOrder %s deleted', order.po_number)
        order.delete()

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    @classmethod
    def _transition(cls, purchase_order, target: str, *, actor=None, **changes) -> PurchaseOrder:
        order = cls._lock(purchase_order)
        assert_transition(PurchaseOrder.TRANSITIONS, order, target, label='purchase order')
        old_status = order.status
        order.status = target
        for field, value in changes.items():
            setattr(order, field, value)
        order.updated_by = _actor(actor)
        order.save()
        AuditService.log_status_change(actor=actor, instance=order, old_status=old_status, **changes)
        logger.info('PurchaseOrder %s: %s -> %s', order.po_number, old_status, target)
        return order

    @classmethod
    @transaction.atomic
    def submit(cls, *, purchase_order, actor=None) -> PurchaseOrder:
        if not purchase_order.items.exists():
            raise BusinessRuleViolation(detail='A purchase order needs at least one item.')
        return cls._transition(purchase_order, PurchaseOrder.Status.PENDING_APPROVAL, actor=actor)

    @classmethod
    @transaction.atomic
    def approve(cls, *, purchase_order, notes: str = '', actor=None) -> PurchaseOrder:
        return cls._transition(
            purchase_order, PurchaseOrder.Status.APPROVED,
            actor=actor,
            approved_by=_actor(actor),
            approved_at=timezone.now(),
            approval_notes=notes or '',
        )

    @classmethod
    @transaction.atomic
    def reject(cls, *, purchase_order, reason: str, actor=None) -> PurchaseOrder:
        return cls._transition(
            purchase_order, PurchaseOrder.Status.REJECTED,
            actor=actor,
            rejected_by=_actor(actor),
            rejected_at=timezone.now(),
            rejection_reason=reason,
        )

    @classmethod
    @transaction.atomic
    def mark_ordered(cls, *, purchase_order, actor=None) -> PurchaseOrder:
        return cls._transition(purchase_order, PurchaseOrder.Status.ORDERED, actor=actor)

    @classmethod
    @transaction.atomic
    def cancel(cls, *, purchase_order, actor=None) -> PurchaseOrder:
        return cls._transition(purchase_order, PurchaseOrder.Status.CANCELLED, actor=actor)

    @classmethod
    @transaction.atomic
    def refresh_received_status(cls, *, purchase_order, actor=None) -> PurchaseOrder:
        """Move an ordered PO to partial_received / completed from its line totals."""
        ordered, received = purchase_order.received_progress()
        if received <= 0:
            return purchase_order
        target = (
            PurchaseOrder.Status.COMPLETED if received >= ordered
            else PurchaseOrder.Status.PARTIAL_RECEIVED
        )
        return cls._transition(purchase_order, target, actor=actor)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def pending_approval():
        return (
            PurchaseOrder.objects
            .filter(status=PurchaseOrder.Status.PENDING_APPROVAL)
            .select_related('supplier', 'created_by')
            .prefetch_related('items__medicine')
            .order_by('created_at')
        )

    @staticmethod
    def needs_receiving():
        return (
            PurchaseOrder.objects
            .filter(status__in=PurchaseOrder.RECEIVABLE_STATUSES)
            .select_related('supplier')
            .prefetch_related('items__medicine')
            .order_by('order_date', 'created_at')
        )

    @staticmethod
    def stats() -> dict:
        today = timezone.localdate()
        data = {'total': PurchaseOrder.objects.count()}
        counts = {
            row['status']: row['n']
            for row in PurchaseOrder.objects.order_by().values('status').annotate(n=Count('id'))
        }
        for value in PurchaseOrder.Status.values:
            data[value] = counts.get(value, 0)
        data['total_value_pending'] = (
            PurchaseOrder.objects
            .filter(status__in=PurchaseOrder.PENDING_VALUE_STATUSES)
            .aggregate(v=Sum('total_amount'))['v'] or Decimal('0')
        )
        data['total_value_this_month'] = (
            PurchaseOrder.objects
            .filter(created_at__year=today.year, created_at__month=today.month)
            .aggregate(v=Sum('total_amount'))['v'] or Decimal('0')
        )
        return data


class GoodsReceiptService:

    @staticmethod
    def _lock(receipt) -> GoodsReceipt:
        try:
            return GoodsReceipt.objects.select_for_update().get(pk=receipt.pk)
        except GoodsReceipt.DoesNotExist:
            raise ResourceNotFoundError(detail='Goods receipt not found.')

    @staticmethod
    def _require_draft(receipt: GoodsReceipt, verb: str) -> None:
        if receipt.status != GoodsReceipt.Status.DRAFT:
            raise BusinessRuleViolation(detail=f'Only draft goods receipts can be {verb}.')

    @staticmethod
    def _validate_lines(*, purchase_order, supplier, items: list[dict]) -> None:
        """PO lines must belong to the order and stay within what is still outstanding."""
        if not items:
            raise BusinessRuleViolation(detail='A goods receipt needs at least one item.')
        if purchase_order is not None:
            if purchase_order.status not in PurchaseOrder.RECEIVABLE_STATUSES:
                raise BusinessRuleViolation(
                    detail='Goods can only be received against an ordered purchase order.',
                )
            if purchase_order.supplier_id != supplier.pk:
                raise BusinessRuleViolation(detail='Supplier does not match the purchase order.')

        requested: dict = {}
        for row in items:
            po_item = row.get('purchase_order_item')
            if po_item is None:
                continue
            if purchase_order is None or po_item.purchase_order_id != purchase_order.pk:
                raise BusinessRuleViolation(
                    detail='Purchase order item does not belong to this purchase order.',
                )
            if po_item.medicine_id != row['medicine'].pk:
                raise BusinessRuleViolation(
                    detail='Medicine does not match the purchase order item.',
                )
            requested[po_item.pk] = requested.get(po_item.pk, 0) + row['quantity']
            if requested[po_item.pk] > po_item.remaining_quantity:
                raise BusinessRuleViolation(
                    detail=(
                        f'Received quantity for {po_item.medicine} exceeds the '
                        f'remaining {po_item.remaining_quantity}.'
                    ),
                )

    @staticmethod
    def _write_items(receipt: GoodsReceipt, items: list[dict], actor=None) -> None:
        for row in items:
            GoodsReceiptItem.objects.create(
                goods_receipt=receipt,
                purchase_order_item=row.get('purchase_order_item'),
                medicine=row['medicine'],
                quantity=row['quantity'],
                unit=row['unit'],
                unit_price=row['unit_price'],
                batch_number=row['batch_number'],
                expiry_date=row['expiry_date'],
                notes=row.get('notes') or '',
                created_by=_actor(actor),
            )
        receipt.calculate_total()

    @classmethod
    @transaction.atomic
    def create_receipt(
        cls,
        *,
        supplier,
        items: list[dict],
        purchase_order=None,
        actor=None,
        **fields,
    ) -> GoodsReceipt:
        cls._validate_lines(purchase_order=purchase_order, supplier=supplier, items=items)
        receipt_date = fields.pop('receipt_date', None) or timezone.localdate()
        receipt = GoodsReceipt.objects.create(
            receipt_number=daily_number(GoodsReceipt, 'receipt_number', PREFIX_GOODS_RECEIPT),
            purchase_order=purchase_order,
            supplier=supplier,
            receipt_date=receipt_date,
            status=GoodsReceipt.Status.DRAFT,
            received_by=_actor(actor),
            created_by=_actor(actor),
            **{k: v for k, v in fields.items() if k in RECEIPT_FIELDS},
        )
        cls._write_items(receipt, items, actor)
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='GoodsReceipt',
            object_id=str(receipt.pk),
            new_values={
                'receipt_number': receipt.receipt_number,
                'purchase_order_id': str(purchase_order.pk) if purchase_order else None,
                'total_amount': str(receipt.total_amount),
                'items': len(items),
            },
        )
        logger.info('GoodsReceipt %s created (total=%s)', receipt.receipt_number, receipt.total_amount)
        return receipt

    @classmethod
    @transaction.atomic
    def update_receipt(cls, *, receipt, items: list[dict] | None = None, actor=None, **fields) -> GoodsReceipt:
        """Edit a draft receipt; ``items`` replaces every line when given."""
        receipt = cls._lock(receipt)
        cls._require_draft(receipt, 'edited')
        old = AuditService.snapshot(receipt)
        for field, value in fields.items():
            if field in RECEIPT_FIELDS:
                setattr(receipt, field, value)
        receipt.updated_by = _actor(actor)
        receipt.save()
        if items is not None:
            cls._validate_lines(
                purchase_order=receipt.purchase_order, supplier=receipt.supplier, items=items,
            )
            receipt.items.all().delete()
            cls._write_items(receipt, items, actor)
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='GoodsReceipt',
            object_id=str(receipt.pk),
            old_values=old,
            new_values=AuditService.snapshot(receipt),
        )
        return receipt

    @classmethod
    @transaction.atomic
    def delete(cls, *, receipt, actor=None) -> None:
        receipt = cls._lock(receipt)
        cls._require_draft(receipt, 'deleted')
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_DELETE,
            model_name='GoodsReceipt',
            object_id=str(receipt.pk),
            old_values={'receipt_number': receipt.receipt_number},
        )
        logger.info('GoodsReceipt %s deleted', receipt.receipt_number)
        receipt.delete()

    @classmethod
    @transaction.atomic
    def cancel(cls, *, receipt, actor=None) -> GoodsReceipt:
        receipt = cls._lock(receipt)
        assert_transition(GoodsReceipt.TRANSITIONS, receipt, GoodsReceipt.Status.CANCELLED, label='goods receipt')
        old_status = receipt.status
        receipt.status = GoodsReceipt.Status.CANCELLED
        receipt.updated_by = _actor(actor)
        receipt.save(update_fields=['status', 'updated_by', 'updated_at'])
        AuditService.log_status_change(actor=actor, instance=receipt, old_status=old_status)
        logger.info('GoodsReceipt %s cancelled', receipt.receipt_number)
        return receipt

    @staticmethod
    def prefill_from_order(purchase_order: PurchaseOrder) -> dict:
        """Outstanding lines of an ordered PO, ready to become receipt items."""
        if purchase_order.status not in PurchaseOrder.RECEIVABLE_STATUSES:
            raise BusinessRuleViolation(
                detail='Goods can only be received against an ordered purchase order.',
            )
        items = [
            {
                'purchase_order_item': item.pk,
                'medicine': item.medicine_id,
                'medicine_code': item.medicine.code,
                'medicine_name': item.medicine.name,
                'quantity': item.remaining_quantity,
                'unit': item.unit,
                'unit_price': item.unit_price,
                'batch_number': '',
                'expiry_date': None,
            }
            for item in purchase_order.items.select_related('medicine')
            if item.remaining_quantity > 0
        ]
        return {'purchase_order': purchase_order, 'items': items}

    @classmethod
    @transaction.atomic
    def complete(cls, *, receipt, actor=None) -> GoodsReceipt:
        """
        Post a draft receipt to stock. Any failure part way (a line over the
        outstanding quantity, a bad expiry, a DB error) rolls back every batch,
        movement and received-quantity bump made so far.
        """
        receipt = cls._lock(receipt)
        assert_transition(GoodsReceipt.TRANSITIONS, receipt, GoodsReceipt.Status.COMPLETED, label='goods receipt')
        items = list(receipt.items.select_related('medicine', 'purchase_order_item'))
        if not items:
            raise BusinessRuleViolation(detail='A goods receipt needs at least one item.')
        if receipt.purchase_order_id:
            order = receipt.purchase_order
            if order.status not in PurchaseOrder.RECEIVABLE_STATUSES:
                raise BusinessRuleViolation(
                    detail='Goods can only be received against an ordered purchase order.',
                )

        today = timezone.localdate()
        for item in items:
            if item.expiry_date <= today:
                raise BusinessRuleViolation(
                    detail=f'Batch {item.batch_number} is already expired.',
                )
            batch, _movement = StockService.create_batch(
                medicine=item.medicine,
                batch_number=item.batch_number,
                expiry_date=item.expiry_date,
                quantity=item.quantity,
                purchase_price=item.unit_price,
                reason=StockMovement.Reason.PURCHASE,
                reference_type='goods_receipt',
                reference_id=receipt.pk,
                notes=receipt.receipt_number,
                actor=actor,
            )
            item.batch = batch
            item.save(update_fields=['batch', 'updated_at'])

            if item.purchase_order_item_id:
                po_item = PurchaseOrderItem.objects.select_for_update().get(pk=item.purchase_order_item_id)
                if po_item.received_quantity + item.quantity > po_item.quantity:
                    raise BusinessRuleViolation(
                        detail=(
                            f'Received quantity for {item.medicine} exceeds the '
                            f'remaining {po_item.remaining_quantity}.'
                        ),
                    )
                po_item.received_quantity += item.quantity
                po_item.save(update_fields=['received_quantity', 'updated_at'])

        old_status = receipt.status
        receipt.status = GoodsReceipt.Status.COMPLETED
        receipt.updated_by = _actor(actor)
        receipt.save(update_fields=['status', 'updated_by', 'updated_at'])
        AuditService.log_status_change(actor=actor, instance=receipt, old_status=old_status)

        if receipt.purchase_order_id:
            PurchaseOrderService.refresh_received_status(
                purchase_order=receipt.purchase_order, actor=actor,
            )
        logger.info(
            'GoodsReceipt %s completed (%s lines, total=%s)',
            receipt.receipt_number, len(items), receipt.total_amount,
        )
        return receipt

    @staticmethod
    def stats() -> dict:
        today = timezone.localdate()
        completed = GoodsReceipt.objects.filter(status=GoodsReceipt.Status.COMPLETED)
        return {
            'total': GoodsReceipt.objects.count(),
            'draft': GoodsReceipt.objects.filter(status=GoodsReceipt.Status.DRAFT).count(),
            'completed': completed.count(),
            'total_value_this_month': completed.filter(
                receipt_date__year=today.year, receipt_date__month=today.month,
            ).aggregate(v=Sum('total_amount'))['v'] or Decimal('0'),
            'total_today': completed.filter(receipt_date=today).count(),
        }
