"""
Pharmacy — Stock Ledger Tests

FEFO deduction, all-or-nothing availability checks, adjustments and the
movement ledger invariants.

@file pharmacy/tests/test_services.py
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from core.exceptions import BusinessRuleViolation, InsufficientStockError
from pharmacy.models import MedicineBatch, StockMovement
from pharmacy.services import MedicineService, StockService
from pharmacy.tasks import refresh_batch_statuses_task
from tests.factories import MedicineBatchFactory, MedicineFactory


@pytest.fixture
def stocked_medicine(db):
    """Medicine with an early batch of 5 and a late batch of 10."""
    medicine = MedicineFactory(min_stock=2)
    today = timezone.localdate()
    early = MedicineBatchFactory(medicine=medicine, initial_qty=5, expiry_date=today + timedelta(days=30))
    late = MedicineBatchFactory(medicine=medicine, initial_qty=10, expiry_date=today + timedelta(days=365))
    return medicine, early, late


@pytest.mark.django_db
class TestStockOut:
    def test_fefo_across_batches(self, stocked_medicine):
        medicine, early, late = stocked_medicine
        movements = StockService.stock_out(
            medicine=medicine, quantity=8, reason=StockMovement.Reason.SALES,
        )

        early.refresh_from_db()
        late.refresh_from_db()
        assert early.current_qty == 0
        assert early.status == MedicineBatch.Status.EMPTY
        assert late.current_qty == 7

        assert [(m.batch_id, m.quantity) for m in movements] == [(early.pk, 5), (late.pk, 3)]
        assert (movements[0].stock_before, movements[0].stock_after) == (15, 10)
        assert (movements[1].stock_before, movements[1].stock_after) == (10, 7)
        assert medicine.current_stock == 7

    def test_insufficient_stock_writes_nothing(self, stocked_medicine):
        medicine, early, late = stocked_medicine
        with pytest.raises(InsufficientStockError):
            StockService.stock_out(medicine=medicine, quantity=16, reason=StockMovement.Reason.SALES)

        early.refresh_from_db()
        late.refresh_from_db()
        assert (early.current_qty, late.current_qty) == (5, 10)
        assert not StockMovement.objects.exists()

    def test_targeted_batch(self, stocked_medicine):
        medicine, early, late = stocked_medicine
        StockService.stock_out(medicine=medicine, batch=late, quantity=4, reason=StockMovement.Reason.DAMAGE)
        late.refresh_from_db()
        early.refresh_from_db()
        assert late.current_qty == 6
        assert early.current_qty == 5

    def test_targeted_batch_over_quantity(self, stocked_medicine):
        medicine, early, _late = stocked_medicine
        with pytest.raises(InsufficientStockError):
            StockService.stock_out(medicine=medicine, batch=early, quantity=6, reason=StockMovement.Reason.SALES)

    def test_expired_batches_are_skipped(self):
        medicine = MedicineFactory()
        MedicineBatchFactory(medicine=medicine, initial_qty=50, expiry_date=timezone.localdate())
        with pytest.raises(InsufficientStockError):
            StockService.stock_out(medicine=medicine, quantity=1, reason=StockMovement.Reason.SALES)

    def test_non_positive_quantity(self, stocked_medicine):
        medicine, _early, _late = stocked_medicine
        with pytest.raises(BusinessRuleViolation):
            StockService.stock_out(medicine=medicine, quantity=0, reason=StockMovement.Reason.SALES)


@pytest.mark.django_db
class TestStockIn:
    def test_create_batch_books_inbound_movement(self):
        medicine = MedicineFactory()
        batch, movement = StockService.create_batch(
            medicine=medicine,
            batch_number='LOT-1',
            expiry_date=timezone.localdate() + timedelta(days=200),
            quantity=40,
        )
        assert batch.current_qty == 40
        assert batch.status == MedicineBatch.Status.AVAILABLE
        assert movement.movement_type == StockMovement.MovementType.IN
        assert (movement.stock_before, movement.stock_after) == (0, 40)
        assert movement.movement_number.startswith('SM-')

    def test_movement_is_insert_only(self):
        medicine = MedicineFactory()
        _batch, movement = StockService.create_batch(
            medicine=medicine, batch_number='LOT-2',
            expiry_date=timezone.localdate() + timedelta(days=200), quantity=1,
        )
        with pytest.raises(NotImplementedError):
            movement.save()
        with pytest.raises(NotImplementedError):
            movement.delete()


@pytest.mark.django_db
class TestAdjust:
    def test_minus_reason_is_normalised(self, stocked_medicine):
        medicine, _early, _late = stocked_medicine
        movements = StockService.adjust(
            medicine=medicine, adjustment_type='minus', quantity=2,
            reason=StockMovement.Reason.ADJUSTMENT_PLUS,
        )
        assert movements[0].reason == StockMovement.Reason.ADJUSTMENT_MINUS
        assert movements[0].reference_type == 'adjustment'
        assert medicine.current_stock == 13

    def test_plus_creates_new_batch(self):
        medicine = MedicineFactory()
        StockService.adjust(
            medicine=medicine, adjustment_type='plus', quantity=9,
            reason=StockMovement.Reason.INITIAL_STOCK,
            batch_number='INIT-1', expiry_date=timezone.localdate() + timedelta(days=90),
        )
        assert medicine.batches.get().batch_number == 'INIT-1'
        assert medicine.current_stock == 9

    def test_plus_without_batch_details(self):
        with pytest.raises(BusinessRuleViolation):
            StockService.adjust(
                medicine=MedicineFactory(), adjustment_type='plus', quantity=1,
                reason=StockMovement.Reason.ADJUSTMENT_PLUS,
            )

    def test_expired_write_off_keeps_ledger_non_negative(self, stocked_medicine):
        medicine, _early, _late = stocked_medicine
        expired = MedicineBatchFactory(
            medicine=medicine, initial_qty=10,
            expiry_date=timezone.localdate() - timedelta(days=1),
        )
        movements = StockService.adjust(
            medicine=medicine, adjustment_type='minus', quantity=10,
            reason=StockMovement.Reason.EXPIRED, batch=expired,
        )
        movement = movements[0]
        assert (movement.stock_before, movement.stock_after) == (25, 15)
        assert movement.stock_after == medicine.current_stock
        expired.refresh_from_db()
        assert expired.current_qty == 0
        assert expired.status == MedicineBatch.Status.EXPIRED

    def test_expired_write_off_without_usable_stock(self):
        medicine = MedicineFactory()
        expired = MedicineBatchFactory(
            medicine=medicine, initial_qty=10,
            expiry_date=timezone.localdate() - timedelta(days=1),
        )
        movement = StockService.adjust(
            medicine=medicine, adjustment_type='minus', quantity=10,
            reason=StockMovement.Reason.EXPIRED, batch=expired,
        )[0]
        assert (movement.stock_before, movement.stock_after) == (10, 0)
        assert medicine.current_stock == 0

    def test_plus_into_expired_batch_rejected(self):
        medicine = MedicineFactory()
        expired = MedicineBatchFactory(
            medicine=medicine, initial_qty=4,
            expiry_date=timezone.localdate() - timedelta(days=1),
        )
        with pytest.raises(BusinessRuleViolation):
            StockService.adjust(
                medicine=medicine, adjustment_type='plus', quantity=5,
                reason=StockMovement.Reason.ADJUSTMENT_PLUS, batch=expired,
            )
        expired.refresh_from_db()
        assert expired.current_qty == 4
        assert not StockMovement.objects.exists()

    def test_reason_direction_mismatch(self, stocked_medicine):
        medicine, _early, _late = stocked_medicine
        with pytest.raises(BusinessRuleViolation):
            StockService.adjust(
                medicine=medicine, adjustment_type='minus', quantity=1,
                reason=StockMovement.Reason.RETURN_PATIENT,
            )


@pytest.mark.django_db
class TestMedicineService:
    def test_create_generates_code_and_price(self):
        medicine = MedicineService.create(
            name='Amoxicillin 500', unit='capsule',
            purchase_price=Decimal('2000'), margin_percentage=Decimal('25'), ppn_percentage=Decimal('11'),
        )
        assert medicine.code == 'MED-0001'
        assert medicine.selling_price == Decimal('2775.00')

    def test_delete_blocked_by_history(self, stocked_medicine):
        medicine, _early, _late = stocked_medicine
        StockService.stock_out(medicine=medicine, quantity=15, reason=StockMovement.Reason.SALES)
        with pytest.raises(BusinessRuleViolation):
            MedicineService.delete(medicine=medicine)

    def test_delete_blocked_by_stock(self, stocked_medicine):
        medicine, _early, _late = stocked_medicine
        with pytest.raises(BusinessRuleViolation):
            MedicineService.delete(medicine=medicine)

    def test_expiring_batches(self):
        soon = MedicineBatchFactory(expiry_date=timezone.localdate() + timedelta(days=20))
        MedicineBatchFactory(expiry_date=timezone.localdate() + timedelta(days=400))
        assert list(MedicineService.expiring_batches(30)) == [soon]


@pytest.mark.django_db
def test_refresh_batch_statuses_task():
    stale = MedicineBatchFactory(expiry_date=timezone.localdate() - timedelta(days=1))
    result = refresh_batch_statuses_task.delay().get()
    assert result == {'expired_count': 1}
    stale.refresh_from_db()
    assert stale.status == MedicineBatch.Status.EXPIRED


def test_refresh_batch_statuses_is_scheduled(settings):
    entries = [
        entry for entry in settings.CELERY_BEAT_SCHEDULE.values()
        if entry['task'] == refresh_batch_statuses_task.name
    ]
    assert len(entries) == 1
