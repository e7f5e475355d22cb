"""
Billing — Service Layer Tests

@file billing/tests/test_services.py
"""

from decimal import Decimal

import pytest
from django.utils import timezone

from billing.models import Invoice, InvoiceItem
from billing.services import InvoiceService
from core.exceptions import BusinessRuleViolation
from records.models import MedicalRecord
from tests.factories import (
    InvoiceFactory,
    InvoiceItemFactory,
    MedicalRecordFactory,
    MedicineFactory,
    PrescriptionItemFactory,
    UserFactory,
)


@pytest.fixture
def billed_record(db):
    """Completed record with one 80 000 consultation line."""
    record = MedicalRecordFactory(status=MedicalRecord.Status.COMPLETED)
    record.service_lines.create(service_name='Consultation', quantity=1, unit_price=Decimal('80000'))
    return record


@pytest.fixture
def unpaid_invoice(db):
    item = InvoiceItemFactory(unit_price=Decimal('100000'))
    item.invoice.recalculate_totals()
    return item.invoice


@pytest.mark.django_db
class TestTotals:
    def test_discount_percent_overrides_amount(self):
        item = InvoiceItemFactory(unit_price=Decimal('200000'))
        invoice = item.invoice
        invoice.discount_percent = Decimal('10')
        invoice.discount_amount = Decimal('5000')
        invoice.tax_amount = Decimal('1500')
        invoice.recalculate_totals()
        assert invoice.subtotal == Decimal('200000.00')
        assert invoice.discount_amount == Decimal('20000.00')
        assert invoice.total_amount == Decimal('181500.00')

    def test_flat_discount(self):
        item = InvoiceItemFactory(unit_price=Decimal('50000'), quantity=2)
        invoice = item.invoice
        invoice.discount_amount = Decimal('7500')
        invoice.recalculate_totals()
        assert invoice.total_amount == Decimal('92500.00')

    def test_item_total(self):
        item = InvoiceItemFactory(quantity=3, unit_price=Decimal('12500.50'))
        assert item.total_price == Decimal('37501.50')


@pytest.mark.django_db
class TestCreateInvoice:
    def test_copies_service_lines_and_extras(self, billed_record):
        invoice = InvoiceService.create_invoice(
            medical_record=billed_record,
            items=[{'item_type': 'other', 'item_name': 'Admin fee', 'unit_price': Decimal('5000')}],
        )
        assert invoice.invoice_number == f'INV-{timezone.localdate():%Y%m%d}-0001'
        assert invoice.patient_id == billed_record.patient_id
        assert invoice.items.count() == 2
        assert invoice.subtotal == Decimal('85000.00')
        assert invoice.total_amount == Decimal('85000.00')
        assert invoice.payment_status == Invoice.PaymentStatus.UNPAID

    def test_prescription_lines_priced_from_catalogue(self, billed_record):
        MedicineFactory(name='Cetirizine 10mg', selling_price=Decimal('2500'))
        PrescriptionItemFactory(
            prescription__medical_record=billed_record, medicine_name='Cetirizine 10mg', quantity=4,
        )
        PrescriptionItemFactory(
            prescription__medical_record=billed_record, medicine_name='Herbal syrup', quantity=1,
        )
        invoice = InvoiceService.create_invoice(medical_record=billed_record, include_prescriptions=True)
        medicines = {
            i.item_name: i.total_price
            for i in invoice.items.filter(item_type=InvoiceItem.ItemType.MEDICINE)
        }
        assert medicines == {'Cetirizine 10mg': Decimal('10000.00'), 'Herbal syrup': Decimal('0.00')}
        assert invoice.total_amount == Decimal('90000.00')

    def test_one_invoice_per_record(self, billed_record):
        InvoiceService.create_invoice(medical_record=billed_record)
        with pytest.raises(BusinessRuleViolation):
            InvoiceService.create_invoice(medical_record=billed_record)

    def test_cancelled_record_rejected(self):
        record = MedicalRecordFactory(status=MedicalRecord.Status.CANCELLED)
        with pytest.raises(BusinessRuleViolation):
            InvoiceService.create_invoice(medical_record=record)


@pytest.mark.django_db
class TestPay:
    def test_pay_computes_change(self, unpaid_invoice):
        cashier = UserFactory()
        invoice = InvoiceService.pay(
            invoice=unpaid_invoice, paid_amount=Decimal('150000'), payment_method='cash', actor=cashier,
        )
        assert invoice.payment_status == Invoice.PaymentStatus.PAID
        assert invoice.change_amount == Decimal('50000')
        assert invoice.cashier == cashier
        assert invoice.payment_date is not None

    def test_underpayment_rejected(self, unpaid_invoice):
        with pytest.raises(BusinessRuleViolation):
            InvoiceService.pay(invoice=unpaid_invoice, paid_amount=Decimal('99999.99'), payment_method='cash')
        unpaid_invoice.refresh_from_db()
        assert unpaid_invoice.payment_status == Invoice.PaymentStatus.UNPAID

    def test_paid_invoice_is_frozen(self, unpaid_invoice):
        InvoiceService.pay(invoice=unpaid_invoice, paid_amount=Decimal('100000'), payment_method='transfer')
        with pytest.raises(BusinessRuleViolation):
            InvoiceService.pay(invoice=unpaid_invoice, paid_amount=Decimal('100000'), payment_method='cash')
        with pytest.raises(BusinessRuleViolation):
            InvoiceService.update_invoice(invoice=unpaid_invoice, notes='late edit')
        with pytest.raises(BusinessRuleViolation):
            InvoiceService.delete(invoice=unpaid_invoice)


@pytest.mark.django_db
class TestUpdateAndDelete:
    def test_update_replaces_items(self, unpaid_invoice):
        invoice = InvoiceService.update_invoice(
            invoice=unpaid_invoice,
            items=[{'item_name': 'Dressing', 'quantity': 2, 'unit_price': Decimal('15000')}],
            tax_amount=Decimal('1000'),
        )
        assert invoice.items.count() == 1
        assert invoice.total_amount == Decimal('31000.00')

    def test_delete_unpaid(self, unpaid_invoice):
        InvoiceService.delete(invoice=unpaid_invoice)
        assert not Invoice.objects.filter(pk=unpaid_invoice.pk).exists()


@pytest.mark.django_db
class TestReads:
    def test_stats(self, unpaid_invoice):
        paid = InvoiceItemFactory(unit_price=Decimal('40000')).invoice
        paid.recalculate_totals()
        InvoiceService.pay(invoice=paid, paid_amount=Decimal('40000'), payment_method='cash')

        today = timezone.localdate()
        stats = InvoiceService.stats(start_date=today, end_date=today)
        assert stats['total'] == 2
        assert stats['paid'] == 1
        assert stats['unpaid'] == 1
        assert stats['total_revenue'] == Decimal('40000.00')
        assert stats['total_unpaid'] == Decimal('100000.00')
        assert stats['payment_by_method'] == [
            {'payment_method': 'cash', 'count': 1, 'total': Decimal('40000.00')},
        ]

    def test_unpaid_queue(self, unpaid_invoice):
        InvoiceFactory(payment_status=Invoice.PaymentStatus.PAID)
        assert list(InvoiceService.unpaid()) == [unpaid_invoice]
