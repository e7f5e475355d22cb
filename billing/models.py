"""
Billing — Models

One invoice per medical record. Totals are never edited directly: they
are recomputed from the line items on every write, and a paid invoice is
frozen.

@file billing/models.py
"""

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel

TWO_PLACES = Decimal('0.01')
HUNDRED = Decimal('100')


def _money(value) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class Invoice(BaseModel):

    class PaymentStatus(models.TextChoices):
        UNPAID = 'unpaid', _('Unpaid')
        PARTIAL = 'partial', _('Partially paid')
        PAID = 'paid', _('Paid')

    class PaymentMethod(models.TextChoices):
        CASH = 'cash', _('Cash')
        CARD = 'card', _('Card')
        TRANSFER = 'transfer', _('Transfer')
        BPJS = 'bpjs', _('BPJS')
        INSURANCE = 'insurance', _('Insurance')

    TRANSITIONS = {
        PaymentStatus.UNPAID: {PaymentStatus.PAID},
        PaymentStatus.PARTIAL: {PaymentStatus.PAID},
        PaymentStatus.PAID: set(),
    }

    invoice_number = models.CharField(_('invoice number'), max_length=30, unique=True)
    medical_record = models.OneToOneField(
        'records.MedicalRecord',
        on_delete=models.PROTECT,
        related_name='invoice',
        verbose_name=_('medical record'),
    )
    patient = models.ForeignKey(
        'patients.Patient',
        on_delete=models.PROTECT,
        related_name='invoices',
        verbose_name=_('patient'),
    )
    subtotal = models.DecimalField(_('subtotal'), max_digits=15, decimal_places=2, default=0)
    discount_percent = models.DecimalField(_('discount %'), max_digits=5, decimal_places=2, default=0)
    discount_amount = models.DecimalField(_('discount amount'), max_digits=15, decimal_places=2, default=0)
    tax_amount = models.DecimalField(_('tax amount'), max_digits=15, decimal_places=2, default=0)
    total_amount = models.DecimalField(_('total amount'), max_digits=15, decimal_places=2, default=0)
    paid_amount = models.DecimalField(_('paid amount'), max_digits=15, decimal_places=2, default=0)
    change_amount = models.DecimalField(_('change'), max_digits=15, decimal_places=2, default=0)
    payment_method = models.CharField(
        _('payment method'), max_length=20,
        choices=PaymentMethod.choices, blank=True,
    )
    payment_status = models.CharField(
        _('payment status'), max_length=10,
        choices=PaymentStatus.choices, default=PaymentStatus.UNPAID, db_index=True,
    )
    payment_date = models.DateTimeField(_('payment date'), null=True, blank=True)
    cashier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='cashier_invoices',
        verbose_name=_('cashier'),
    )
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('invoice')
        verbose_name_plural = _('invoices')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['payment_status', 'created_at']),
        ]

    def __str__(self):
        return self.invoice_number

    @property
    def status(self) -> str:
        return self.payment_status

    @property
    def is_paid(self) -> bool:
        return self.payment_status == self.PaymentStatus.PAID

    def recalculate_totals(self, save=True):
        """
        subtotal = Σ item totals; a discount percentage overrides the flat
        discount amount; total = subtotal − discount + tax.
        """
        self.subtotal = _money(sum((item.total_price for item in self.items.all()), Decimal('0')))
        if Decimal(self.discount_percent or 0) > 0:
            self.discount_amount = _money(self.subtotal * Decimal(self.discount_percent) / HUNDRED)
        self.total_amount = _money(
            self.subtotal - Decimal(self.discount_amount or 0) + Decimal(self.tax_amount or 0)
        )
        if save:
            self.save(update_fields=[
                'subtotal', 'discount_amount', 'total_amount', 'updated_at',
            ])


class InvoiceItem(BaseModel):

    class ItemType(models.TextChoices):
        SERVICE = 'service', _('Service')
        MEDICINE = 'medicine', _('Medicine')
        OTHER = 'other', _('Other')

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('invoice'),
    )
    item_type = models.CharField(
        _('type'), max_length=10,
        choices=ItemType.choices, default=ItemType.SERVICE,
    )
    item_name = models.CharField(_('item name'), max_length=200)
    quantity = models.PositiveIntegerField(_('quantity'), default=1)
    unit_price = models.DecimalField(_('unit price'), max_digits=15, decimal_places=2, default=0)
    total_price = models.DecimalField(_('total price'), max_digits=15, decimal_places=2, default=0)
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('invoice item')
        verbose_name_plural = _('invoice items')
        ordering = ['invoice', 'created_at']

    def __str__(self):
        return f'{self.item_name} × {self.quantity}'

    def save(self, *args, **kwargs):
        self.total_price = _money(Decimal(self.quantity) * Decimal(self.unit_price))
        super().save(*args, **kwargs)
