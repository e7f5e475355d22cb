"""
Purchasing — Service Layer Tests

Purchase-order workflow, goods receipt posting and its all-or-nothing
rollback.

@file purchasing/tests/test_services.py
"""

from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.utils import timezone

from core.exceptions import BusinessRuleViolation, InvalidStateTransition
from pharmacy.models import MedicineBatch, StockMovement
from purchasing.models import GoodsReceipt, GoodsReceiptItem, PurchaseOrder
from purchasing.services import GoodsReceiptService, PurchaseOrderService, SupplierService
from tests.factories import (
    MedicineFactory,
    PurchaseOrderFactory,
    PurchaseOrderItemFactory,
    SupplierFactory,
    UserFactory,
)


def _expiry(days=365):
    return timezone.localdate() + timedelta(days=days)


def _receipt_line(po_item, quantity, batch_number):
    return {
        'purchase_order_item': po_item,
        'medicine': po_item.medicine,
        'quantity': quantity,
        'unit': po_item.unit,
        'unit_price': po_item.unit_price,
        'batch_number': batch_number,
        'expiry_date': _expiry(),
    }


@pytest.fixture
def ordered_po(db):
    """Ordered PO with two lines of 100 units each."""
    order = PurchaseOrderFactory(status=PurchaseOrder.Status.ORDERED)
    PurchaseOrderItemFactory(purchase_order=order)
    PurchaseOrderItemFactory(purchase_order=order)
    return order


@pytest.mark.django_db
class TestSupplierService:
    def test_code_generation(self):
        SupplierFactory(code='SUP-004')
        SupplierFactory(code='SUP-CUSTOM')
        supplier = SupplierService.create(name='PT Sehat Farma')
        assert supplier.code == 'SUP-005'

    def test_delete_blocked_with_history(self):
        order = PurchaseOrderFactory()
        with pytest.raises(BusinessRuleViolation):
            SupplierService.delete(supplier=order.supplier)


@pytest.mark.django_db
class TestPurchaseOrderWorkflow:
    def test_create_computes_totals(self):
        medicine = MedicineFactory()
        order = PurchaseOrderService.create_order(
            supplier=SupplierFactory(),
            items=[{
                'medicine': medicine,
                'quantity': 10,
                'unit': 'box',
                'unit_price': Decimal('1000'),
                'discount_percent': Decimal('10'),
                'tax_percent': Decimal('11'),
            }],
        )
        assert order.po_number.startswith(f'PO-{timezone.localdate():%Y%m%d}-')
        assert order.status == PurchaseOrder.Status.DRAFT
        assert order.subtotal == Decimal('9990.00')
        assert order.discount_amount == Decimal('1000.00')
        assert order.tax_amount == Decimal('990.00')
        assert order.total_amount == Decimal('9980.00')

    def test_empty_items_rejected(self):
        with pytest.raises(BusinessRuleViolation):
            PurchaseOrderService.create_order(supplier=SupplierFactory(), items=[])

    def test_submit_approve_order(self):
        approver = UserFactory()
        order = PurchaseOrderItemFactory().purchase_order

        order = PurchaseOrderService.submit(purchase_order=order)
        assert order.status == PurchaseOrder.Status.PENDING_APPROVAL

        order = PurchaseOrderService.approve(purchase_order=order, notes='OK', actor=approver)
        assert order.status == PurchaseOrder.Status.APPROVED
        assert order.approved_by == approver
        assert order.approved_at is not None

        order = PurchaseOrderService.mark_ordered(purchase_order=order)
        assert order.status == PurchaseOrder.Status.ORDERED

    def test_reject_records_reason(self):
        order = PurchaseOrderFactory(status=PurchaseOrder.Status.PENDING_APPROVAL)
        order = PurchaseOrderService.reject(purchase_order=order, reason='Too expensive')
        assert order.status == PurchaseOrder.Status.REJECTED
        assert order.rejection_reason == 'Too expensive'

    def test_cannot_order_a_draft(self):
        order = PurchaseOrderItemFactory().purchase_order
        with pytest.raises(InvalidStateTransition):
            PurchaseOrderService.mark_ordered(purchase_order=order)

    def test_only_draft_is_editable(self):
        order = PurchaseOrderFactory(status=PurchaseOrder.Status.APPROVED)
        with pytest.raises(BusinessRuleViolation):
            PurchaseOrderService.update_order(purchase_order=order, notes='late change')
        with pytest.raises(BusinessRuleViolation):
            PurchaseOrderService.delete(purchase_order=order)

    def test_update_replaces_items(self):
        item = PurchaseOrderItemFactory()
        order = item.purchase_order
        order = PurchaseOrderService.update_order(
            purchase_order=order,
            items=[{
                'medicine': item.medicine, 'quantity': 3, 'unit': 'box', 'unit_price': Decimal('500'),
            }],
        )
        assert order.items.count() == 1
        assert order.total_amount == Decimal('1500.00')


@pytest.mark.django_db
class TestGoodsReceipt:
    def test_requires_receivable_order(self):
        order = PurchaseOrderFactory(status=PurchaseOrder.Status.APPROVED)
        po_item = PurchaseOrderItemFactory(purchase_order=order)
        with pytest.raises(BusinessRuleViolation):
            GoodsReceiptService.create_receipt(
                supplier=order.supplier, purchase_order=order,
                items=[_receipt_line(po_item, 10, 'B-1')],
            )

    def test_supplier_must_match(self, ordered_po):
        po_item = ordered_po.items.first()
        with pytest.raises(BusinessRuleViolation):
            GoodsReceiptService.create_receipt(
                supplier=SupplierFactory(), purchase_order=ordered_po,
                items=[_receipt_line(po_item, 10, 'B-1')],
            )

    def test_over_receipt_rejected(self, ordered_po):
        po_item = ordered_po.items.first()
        with pytest.raises(BusinessRuleViolation):
            GoodsReceiptService.create_receipt(
                supplier=ordered_po.supplier, purchase_order=ordered_po,
                items=[_receipt_line(po_item, 60, 'B-1'), _receipt_line(po_item, 41, 'B-2')],
            )

    def test_partial_then_complete(self, ordered_po):
        first, second = ordered_po.items.order_by('created_at')
        receipt = GoodsReceiptService.create_receipt(
            supplier=ordered_po.supplier, purchase_order=ordered_po,
            items=[_receipt_line(first, 100, 'B-1'), _receipt_line(second, 40, 'B-2')],
        )
        assert receipt.total_amount == Decimal('140000.00')

        receipt = GoodsReceiptService.complete(receipt=receipt)
        assert receipt.status == GoodsReceipt.Status.COMPLETED

        ordered_po.refresh_from_db()
        first.refresh_from_db()
        second.refresh_from_db()
        assert ordered_po.status == PurchaseOrder.Status.PARTIAL_RECEIVED
        assert (first.received_quantity, second.received_quantity) == (100, 40)

        batches = MedicineBatch.objects.filter(batch_number__in=['B-1', 'B-2'])
        assert sorted(b.current_qty for b in batches) == [40, 100]
        movements = StockMovement.objects.filter(reference_type='goods_receipt', reference_id=receipt.pk)
        assert movements.count() == 2
        assert set(movements.values_list('reason', flat=True)) == {StockMovement.Reason.PURCHASE}
        assert all(item.batch_id for item in receipt.items.all())

        rest = GoodsReceiptService.create_receipt(
            supplier=ordered_po.supplier, purchase_order=ordered_po,
            items=[_receipt_line(second, 60, 'B-3')],
        )
        GoodsReceiptService.complete(receipt=rest)
        ordered_po.refresh_from_db()
        assert ordered_po.status == PurchaseOrder.Status.COMPLETED

    def test_failure_rolls_back_everything(self, ordered_po):
        first, second = ordered_po.items.order_by('created_at')
        receipt = GoodsReceiptService.create_receipt(
            supplier=ordered_po.supplier, purchase_order=ordered_po,
            items=[_receipt_line(first, 10, 'B-1'), _receipt_line(second, 10, 'B-2')],
        )

        with mock.patch.object(
            GoodsReceiptItem, 'save', side_effect=[None, Exception('simulated failure')],
        ):
            with pytest.raises(Exception, match='simulated failure'):
                GoodsReceiptService.complete(receipt=receipt)

        receipt.refresh_from_db()
        assert receipt.status == GoodsReceipt.Status.DRAFT
        assert not MedicineBatch.objects.filter(batch_number__in=['B-1', 'B-2']).exists()
        assert not StockMovement.objects.exists()
        first.refresh_from_db()
        assert first.received_quantity == 0
        ordered_po.refresh_from_db()
        assert ordered_po.status == PurchaseOrder.Status.ORDERED

    def test_completed_receipt_is_final(self, ordered_po):
        po_item = ordered_po.items.first()
        receipt = GoodsReceiptService.create_receipt(
            supplier=ordered_po.supplier, purchase_order=ordered_po,
            items=[_receipt_line(po_item, 5, 'B-1')],
        )
        GoodsReceiptService.complete(receipt=receipt)
        with pytest.raises(InvalidStateTransition):
            GoodsReceiptService.complete(receipt=receipt)
        with pytest.raises(InvalidStateTransition):
            GoodsReceiptService.cancel(receipt=receipt)
        with pytest.raises(BusinessRuleViolation):
            GoodsReceiptService.delete(receipt=receipt)

    def test_receipt_without_order(self):
        medicine = MedicineFactory()
        receipt = GoodsReceiptService.create_receipt(
            supplier=SupplierFactory(),
            items=[{
                'medicine': medicine, 'quantity': 12, 'unit': 'tablet',
                'unit_price': Decimal('500'), 'batch_number': 'FREE-1', 'expiry_date': _expiry(),
            }],
        )
        GoodsReceiptService.complete(receipt=receipt)
        assert medicine.current_stock == 12

    def test_prefill_lists_outstanding_lines(self, ordered_po):
        first = ordered_po.items.order_by('created_at').first()
        first.received_quantity = 100
        first.save()
        prefill = GoodsReceiptService.prefill_from_order(ordered_po)
        assert len(prefill['items']) == 1
        assert prefill['items'][0]['quantity'] == 100
