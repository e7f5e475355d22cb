"""
Pharmacy — Model Tests

@file pharmacy/tests/test_models.py
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from pharmacy.models import Medicine, MedicineBatch
from tests.factories import MedicineBatchFactory, MedicineFactory


class TestSellingPrice:
    def test_margin_then_ppn(self):
        result = Medicine.calculate_selling_price(Decimal('10000'), Decimal('20'), Decimal('11'))
        assert result['price_before_ppn'] == Decimal('12000.00')
        assert result['selling_price'] == Decimal('13320.00')
        assert result['margin_amount'] == Decimal('2000.00')
        assert result['ppn_amount'] == Decimal('1320.00')

    def test_rounds_half_up(self):
        result = Medicine.calculate_selling_price(Decimal('333'), Decimal('10'), Decimal('0'))
        assert result['selling_price'] == Decimal('366.30')


@pytest.mark.django_db
class TestStockOnHand:
    def test_sums_usable_batches_only(self):
        medicine = MedicineFactory()
        MedicineBatchFactory(medicine=medicine, initial_qty=30)
        MedicineBatchFactory(medicine=medicine, initial_qty=20)
        MedicineBatchFactory(
            medicine=medicine, initial_qty=50,
            expiry_date=timezone.localdate() - timedelta(days=1),
        )
        MedicineBatchFactory(medicine=medicine, initial_qty=40, status=MedicineBatch.Status.EXPIRED)
        assert medicine.current_stock == 50

    def test_stock_status(self):
        medicine = MedicineFactory(min_stock=10, max_stock=100)
        assert medicine.stock_status == Medicine.StockStatus.OUT_OF_STOCK
        batch = MedicineBatchFactory(medicine=medicine, initial_qty=5)
        assert medicine.stock_status == Medicine.StockStatus.LOW
        batch.current_qty = 50
        batch.save()
        assert medicine.stock_status == Medicine.StockStatus.NORMAL

    def test_annotation_matches_property(self):
        medicine = MedicineFactory()
        MedicineBatchFactory(medicine=medicine, initial_qty=12)
        annotated = Medicine.objects.with_stock().get(pk=medicine.pk)
        assert annotated.stock_total == 12
        assert annotated.current_stock == 12


@pytest.mark.django_db
class TestBatchStatus:
    def test_compute_status(self):
        batch = MedicineBatchFactory(medicine=MedicineFactory(min_stock=10), initial_qty=4)
        assert batch.compute_status() == MedicineBatch.Status.LOW
        batch.current_qty = 0
        assert batch.compute_status() == MedicineBatch.Status.EMPTY
        batch.expiry_date = timezone.localdate()
        assert batch.compute_status() == MedicineBatch.Status.EXPIRED

    def test_expiring_soon(self):
        batch = MedicineBatchFactory(expiry_date=timezone.localdate() + timedelta(days=10))
        assert batch.is_expiring_soon is True
        assert batch.days_until_expiry == 10
