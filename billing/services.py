"""
Billing — Service Layer

Invoice lifecycle. Every mutating write replaces or adds line items and
then calls ``Invoice.recalculate_totals``; a paid invoice refuses every
further change with a 422.

@file billing/services.py
"""

import logging
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Count, Sum
from django.utils import timezone

from core.constants import (
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_DELETE,
    AUDIT_ACTION_UPDATE,
    PREFIX_INVOICE,
)
from core.exceptions import BusinessRuleViolation, ResourceNotFoundError
from core.numbering import daily_number
from core.services import AuditService
from core.transitions import assert_transition
from pharmacy.models import Medicine
from records.models import MedicalRecord, Prescription

from .models import Invoice, InvoiceItem

logger = logging.getLogger('mediklinik')


def _actor(actor):
    return actor if getattr(actor, 'is_authenticated', False) else None


class InvoiceService:

    @staticmethod
    def _lock(invoice) -> Invoice:
        try:
            return Invoice.objects.select_for_update().get(pk=invoice.pk)
        except Invoice.DoesNotExist:
            raise ResourceNotFoundError(detail='Invoice not found.')

    @staticmethod
    def _require_unpaid(invoice: Invoice, verb: str) -> None:
        if invoice.is_paid:
            raise BusinessRuleViolation(detail=f'A paid invoice cannot be {verb}.')

    @staticmethod
    def _add_items(invoice: Invoice, items: list[dict]) -> None:
        for row in items:
            InvoiceItem.objects.create(
                invoice=invoice,
                item_type=row.get('item_type') or InvoiceItem.ItemType.SERVICE,
                item_name=row['item_name'],
                quantity=row.get('quantity') or 1,
                unit_price=row.get('unit_price') or 0,
                notes=row.get('notes') or '',
            )

    @staticmethod
    def _service_lines(medical_record: MedicalRecord) -> list[dict]:
        return [
            {
                'item_type': InvoiceItem.ItemType.SERVICE,
                'item_name': line.service_name,
                'quantity': line.quantity,
                'unit_price': line.unit_price,
            }
            for line in medical_record.service_lines.all()
        ]

    @staticmethod
    def _prescription_lines(medical_record: MedicalRecord) -> list[dict]:
        """Prescribed medicines priced at the catalogue selling price (0 when not in the catalogue)."""
        rows = []
        prescriptions = (
            medical_record.prescriptions
            .exclude(status=Prescription.Status.CANCELLED)
            .prefetch_related('items')
        )
        for prescription in prescriptions:
            for item in prescription.items.all():
                medicine = Medicine.objects.filter(name=item.medicine_name).first()
                rows.append({
                    'item_type': InvoiceItem.ItemType.MEDICINE,
                    'item_name': item.medicine_name,
                    'quantity': item.quantity,
                    'unit_price': medicine.selling_price if medicine else Decimal('0'),
                    'notes': ' - '.join(p for p in (item.dosage, item.frequency) if p),
                })
        return rows

    @classmethod
    @transaction.atomic
    def create_invoice(
        cls,
        *,
        medical_record: MedicalRecord,
        items: list[dict] | None = None,
        discount_percent=0,
        discount_amount=0,
        tax_amount=0,
        notes: str = '',
        include_prescriptions: bool = False,
        actor=None,
    ) -> Invoice:
        """
        Bill a medical record: the given extra ``items`` plus every service
        line of the record (and, when asked, the prescribed medicines).
        """
        if Invoice.objects.filter(medical_record=medical_record).exists():
            raise BusinessRuleViolation(detail='This medical record already has an invoice.')
        if medical_record.status == MedicalRecord.Status.CANCELLED:
            raise BusinessRuleViolation(detail='A cancelled medical record cannot be billed.')

        try:
            with transaction.atomic():
                invoice = Invoice.objects.create(
                    invoice_number=daily_number(Invoice, 'invoice_number', PREFIX_INVOICE),
                    medical_record=medical_record,
                    patient_id=medical_record.patient_id,
                    discount_percent=discount_percent or 0,
                    discount_amount=discount_amount or 0,
                    tax_amount=tax_amount or 0,
                    notes=notes or '',
                    payment_status=Invoice.PaymentStatus.UNPAID,
                    created_by=_actor(actor),
                )
        except IntegrityError:
            raise BusinessRuleViolation(detail='This medical record already has an invoice.')

        lines = list(items or []) + cls._service_lines(medical_record)
        if include_prescriptions:
            lines += cls._prescription_lines(medical_record)
        cls._add_items(invoice, lines)
        invoice.recalculate_totals()

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='Invoice',
            object_id=str(invoice.pk),
            new_values={
                'invoice_number': invoice.invoice_number,
                'medical_record_id': str(medical_record.pk),
                'total_amount': str(invoice.total_amount),
            },
        )
        logger.info('Invoice %s created (total=%s)', invoice.invoice_number, invoice.total_amount)
        return invoice

    @classmethod
    @transaction.atomic
    def update_invoice(
        cls,
        *,
        invoice,
        items: list[dict] | None = None,
        actor=None,
        **fields,
    ) -> Invoice:
        """Edit an unpaid invoice; ``items`` replaces every line when given."""
        invoice = cls._lock(invoice)
        cls._require_unpaid(invoice, 'edited')
        old = AuditService.snapshot(invoice)
        for field in ('discount_percent', 'discount_amount', 'tax_amount', 'notes'):
            if field in fields and fields[field] is not None:
                setattr(invoice, field, fields[field])
        invoice.updated_by = _actor(actor)
        invoice.save()
        if items is not None:
            invoice.items.all().delete()
            cls._add_items(invoice, items)
        invoice.recalculate_totals()
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='Invoice',
            object_id=str(invoice.pk),
            old_values=old,
            new_values=AuditService.snapshot(invoice),
        )
        return invoice

    @classmethod
    @transaction.atomic
    def pay(cls, *, invoice, paid_amount: Decimal, payment_method: str, notes: str | None = None, actor=None) -> Invoice:
        invoice = cls._lock(invoice)
        if invoice.is_paid:
            raise BusinessRuleViolation(detail='Invoice is already paid.')
        assert_transition(Invoice.TRANSITIONS, invoice, Invoice.PaymentStatus.PAID, label='invoice')

        paid_amount = Decimal(paid_amount)
        if paid_amount < invoice.total_amount:
            raise BusinessRuleViolation(detail='Paid amount is less than the invoice total.')

        old_status = invoice.payment_status
        invoice.paid_amount = paid_amount
        invoice.change_amount = paid_amount - invoice.total_amount
        invoice.payment_method = payment_method
        invoice.payment_status = Invoice.PaymentStatus.PAID
        invoice.payment_date = timezone.now()
        invoice.cashier = _actor(actor)
        if notes:
            invoice.notes = notes
        invoice.updated_by = _actor(actor)
        invoice.save()

        AuditService.log_status_change(
            actor=actor,
            instance=invoice,
            old_status=old_status,
            paid_amount=invoice.paid_amount,
            change_amount=invoice.change_amount,
            payment_method=payment_method,
        )
        logger.info(
            'Invoice %s paid: %s via %s (change=%s)',
            invoice.invoice_number, invoice.paid_amount, payment_method, invoice.change_amount,
        )
        return invoice

    @classmethod
    @transaction.atomic
    def delete(cls, *, invoice, actor=None) -> None:
        invoice = cls._lock(invoice)
        cls._require_unpaid(invoice, 'deleted')
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_DELETE,
            model_name='Invoice',
            object_id=str(invoice.pk),
            old_values={'invoice_number': invoice.invoice_number, 'total_amount': str(invoice.total_amount)},
        )
        logger.info('Invoice %s deleted', invoice.invoice_number)
        invoice.delete()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def unpaid(*, day=None):
        qs = (
            Invoice.objects
            .filter(payment_status=Invoice.PaymentStatus.UNPAID)
            .select_related('patient', 'medical_record__department')
            .prefetch_related('items')
            .order_by('created_at')
        )
        if day:
            qs = qs.filter(created_at__date=day)
        return qs

    @staticmethod
    def stats(*, start_date, end_date) -> dict:
        qs = Invoice.objects.filter(created_at__date__gte=start_date, created_at__date__lte=end_date)
        paid = qs.filter(payment_status=Invoice.PaymentStatus.PAID)
        unpaid = qs.filter(payment_status=Invoice.PaymentStatus.UNPAID)
        by_method = [
            {'payment_method': row['payment_method'], 'count': row['count'], 'total': row['total']}
            for row in paid.order_by('payment_method')
            .values('payment_method')
            .annotate(count=Count('id'), total=Sum('total_amount'))
        ]
        return {
            'total': qs.count(),
            'unpaid': unpaid.count(),
            'paid': paid.count(),
            'total_revenue': paid.aggregate(v=Sum('total_amount'))['v'] or Decimal('0'),
            'total_unpaid': unpaid.aggregate(v=Sum('total_amount'))['v'] or Decimal('0'),
            'payment_by_method': by_method,
        }
