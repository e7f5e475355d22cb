"""
Pharmacy — Models

Medicine catalogue, per-batch stock and the append-only stock ledger.
Stock on hand is never stored on the medicine: it is the sum of usable
batch quantities, recomputed on every read.

@file pharmacy/models.py
"""

import uuid
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel

TWO_PLACES = Decimal('0.01')
HUNDRED = Decimal('100')


def _money(value) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def usable_batch_q(prefix: str = '') -> Q:
    """Batches that count toward stock: not expired/empty and expiring after today."""
    return (
        ~Q(**{f'{prefix}status__in': ['expired', 'empty']})
        & Q(**{f'{prefix}expiry_date__gt': timezone.localdate()})
    )


class MedicineCategory(BaseModel):
    name = models.CharField(_('name'), max_length=100, unique=True)
    description = models.TextField(_('description'), blank=True)

    class Meta:
        verbose_name = _('medicine category')
        verbose_name_plural = _('medicine categories')
        ordering = ['name']

    def __str__(self):
        return self.name


class MedicineQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def with_stock(self):
        """Annotate ``stock_total`` so ``current_stock`` skips the per-row query."""
        return self.annotate(
            stock_total=Coalesce(
                Sum('batches__current_qty', filter=usable_batch_q('batches__')),
                0,
            ),
        )

    def low_stock(self):
        return self.with_stock().filter(stock_total__lte=models.F('min_stock'))

    def out_of_stock(self):
        return self.with_stock().filter(stock_total__lte=0)


class Medicine(BaseModel):

    class StockStatus(models.TextChoices):
        OUT_OF_STOCK = 'out_of_stock', _('Out of stock')
        LOW = 'low', _('Low stock')
        NORMAL = 'normal', _('Normal')
        OVERSTOCK = 'overstock', _('Overstock')

    UNITS = [
        'Tablet', 'Kapsul', 'Kaplet', 'Botol', 'Ampul', 'Vial', 'Tube',
        'Sachet', 'Strip', 'Box', 'Piece', 'ml', 'gram',
    ]

    code = models.CharField(_('code'), max_length=20, unique=True)
    name = models.CharField(_('name'), max_length=255, db_index=True)
    generic_name = models.CharField(_('generic name'), max_length=255, blank=True, db_index=True)
    category = models.ForeignKey(
        MedicineCategory,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='medicines',
        verbose_name=_('category'),
    )
    unit = models.CharField(_('unit'), max_length=50)
    unit_conversion = models.PositiveIntegerField(_('unit conversion'), default=1)

    purchase_price = models.DecimalField(_('purchase price'), max_digits=12, decimal_places=2, default=0)
    margin_percentage = models.DecimalField(_('margin %'), max_digits=5, decimal_places=2, default=0)
    ppn_percentage = models.DecimalField(
        _('PPN %'), max_digits=5, decimal_places=2,
        default=Decimal(settings.PPN_DEFAULT_PERCENTAGE),
    )
    is_ppn_included = models.BooleanField(_('PPN included'), default=False)
    price_before_ppn = models.DecimalField(_('price before PPN'), max_digits=12, decimal_places=2, default=0)
    selling_price = models.DecimalField(_('selling price'), max_digits=12, decimal_places=2, default=0)

    min_stock = models.PositiveIntegerField(_('minimum stock'), default=10)
    max_stock = models.PositiveIntegerField(_('maximum stock'), default=100)

    manufacturer = models.CharField(_('manufacturer'), max_length=100, blank=True)
    description = models.TextField(_('description'), blank=True)
    requires_prescription = models.BooleanField(_('requires prescription'), default=False)
    is_active = models.BooleanField(_('active'), default=True, db_index=True)

    objects = MedicineQuerySet.as_manager()

    class Meta:
        verbose_name = _('medicine')
        verbose_name_plural = _('medicines')
        ordering = ['name']

    def __str__(self):
        return f'{self.code} — {self.name}'

    @staticmethod
    def calculate_selling_price(purchase_price, margin_percentage, ppn_percentage) -> dict:
        """selling = purchase × (1 + margin%) × (1 + PPN%), rounded to 2 dp."""
        purchase = Decimal(purchase_price)
        margin = Decimal(margin_percentage or 0)
        ppn = Decimal(ppn_percentage if ppn_percentage is not None else settings.PPN_DEFAULT_PERCENTAGE)

        price_before_ppn = purchase * (1 + margin / HUNDRED)
        selling_price = price_before_ppn * (1 + ppn / HUNDRED)
        return {
            'price_before_ppn': _money(price_before_ppn),
            'selling_price': _money(selling_price),
            'margin_amount': _money(purchase * margin / HUNDRED),
            'ppn_amount': _money(price_before_ppn * ppn / HUNDRED),
        }

    def apply_pricing(self) -> None:
        if self.purchase_price and Decimal(self.purchase_price) > 0:
            calculated = self.calculate_selling_price(
                self.purchase_price, self.margin_percentage, self.ppn_percentage,
            )
            self.price_before_ppn = calculated['price_before_ppn']
            self.selling_price = calculated['selling_price']

    @property
    def current_stock(self) -> int:
        annotated = getattr(self, 'stock_total', None)
        if annotated is not None:
            return annotated
        return (
            self.batches
            .filter(usable_batch_q())
            .aggregate(total=Coalesce(Sum('current_qty'), 0))['total']
        )

    @property
    def stock_status(self) -> str:
        stock = self.current_stock
        if stock <= 0:
            return self.StockStatus.OUT_OF_STOCK
        if stock <= self.min_stock:
            return self.StockStatus.LOW
        if stock >= self.max_stock:
            return self.StockStatus.OVERSTOCK
        return self.StockStatus.NORMAL


class MedicineBatch(BaseModel):

    class Status(models.TextChoices):
        AVAILABLE = 'available', _('Available')
        LOW = 'low', _('Low')
        EXPIRED = 'expired', _('Expired')
        EMPTY = 'empty', _('Empty')

    medicine = models.ForeignKey(
        Medicine,
        on_delete=models.CASCADE,
        related_name='batches',
        verbose_name=_('medicine'),
    )
    batch_number = models.CharField(_('batch number'), max_length=50, db_index=True)
    expiry_date = models.DateField(_('expiry date'), db_index=True)
    initial_qty = models.PositiveIntegerField(_('initial quantity'))
    current_qty = models.PositiveIntegerField(_('current quantity'))
    purchase_price = models.DecimalField(
        _('purchase price'), max_digits=12, decimal_places=2, null=True, blank=True,
    )
    status = models.CharField(
        _('status'), max_length=12,
        choices=Status.choices, default=Status.AVAILABLE, db_index=True,
    )

    class Meta:
        verbose_name = _('medicine batch')
        verbose_name_plural = _('medicine batches')
        ordering = ['expiry_date', 'created_at']
        indexes = [
            models.Index(fields=['medicine', 'expiry_date']),
        ]

    def __str__(self):
        return f'{self.batch_number} ({self.medicine.code}, exp {self.expiry_date})'

    @property
    def is_expired(self) -> bool:
        return self.expiry_date <= timezone.localdate()

    @property
    def days_until_expiry(self) -> int:
        return (self.expiry_date - timezone.localdate()).days

    @property
    def is_expiring_soon(self) -> bool:
        if self.is_expired:
            return False
        return self.expiry_date <= timezone.localdate() + timedelta(days=settings.EXPIRING_SOON_DAYS)

    def compute_status(self) -> str:
        if self.is_expired:
            return self.Status.EXPIRED
        if self.current_qty <= 0:
            return self.Status.EMPTY
        if self.current_qty <= self.medicine.min_stock / 2:
            return self.Status.LOW
        return self.Status.AVAILABLE

    def refresh_status(self, save: bool = True) -> str:
        self.status = self.compute_status()
        if save:
            self.save(update_fields=['current_qty', 'status', 'updated_at'])
        return self.status


class StockMovement(models.Model):
    """
    One immutable line of the stock card (insert only).

    ``stock_before``/``stock_after`` are snapshots of the medicine's
    aggregate stock around this movement:
    ``stock_after = stock_before ± quantity``.
    """

    class MovementType(models.TextChoices):
        IN = 'in', _('In')
        OUT = 'out', _('Out')

    class Reason(models.TextChoices):
        PURCHASE = 'purchase', _('Purchase')
        SALES = 'sales', _('Sales / dispensing')
        ADJUSTMENT_PLUS = 'adjustment_plus', _('Adjustment (+)')
        ADJUSTMENT_MINUS = 'adjustment_minus', _('Adjustment (-)')
        RETURN_SUPPLIER = 'return_supplier', _('Return to supplier')
        RETURN_PATIENT = 'return_patient', _('Return from patient')
        EXPIRED = 'expired', _('Expired')
        DAMAGE = 'damage', _('Damaged')
        TRANSFER_IN = 'transfer_in', _('Transfer in')
        TRANSFER_OUT = 'transfer_out', _('Transfer out')
        INITIAL_STOCK = 'initial_stock', _('Initial stock')
        OTHER = 'other', _('Other')

    REASON_DIRECTIONS = {
        Reason.PURCHASE: 'in',
        Reason.SALES: 'out',
        Reason.ADJUSTMENT_PLUS: 'in',
        Reason.ADJUSTMENT_MINUS: 'out',
        Reason.RETURN_SUPPLIER: 'out',
        Reason.RETURN_PATIENT: 'in',
        Reason.EXPIRED: 'out',
        Reason.DAMAGE: 'out',
        Reason.TRANSFER_IN: 'in',
        Reason.TRANSFER_OUT: 'out',
        Reason.INITIAL_STOCK: 'in',
        Reason.OTHER: 'both',
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    movement_number = models.CharField(_('movement number'), max_length=30, unique=True)
    medicine = models.ForeignKey(
        Medicine,
        on_delete=models.PROTECT,
        related_name='stock_movements',
        verbose_name=_('medicine'),
    )
    batch = models.ForeignKey(
        MedicineBatch,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='stock_movements',
        verbose_name=_('batch'),
    )
    movement_type = models.CharField(
        _('movement type'), max_length=3, choices=MovementType.choices, db_index=True,
    )
    reason = models.CharField(_('reason'), max_length=20, choices=Reason.choices, db_index=True)
    quantity = models.PositiveIntegerField(_('quantity'))
    unit = models.CharField(_('unit'), max_length=50, blank=True)
    stock_before = models.IntegerField(_('stock before'))
    stock_after = models.IntegerField(_('stock after'))
    reference_type = models.CharField(_('reference type'), max_length=50, blank=True)
    reference_id = models.UUIDField(_('reference ID'), null=True, blank=True)
    notes = models.TextField(_('notes'), blank=True)
    movement_date = models.DateTimeField(_('movement date'), default=timezone.now, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('created by'),
    )
    created_at = models.DateTimeField(_('created at'), auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _('stock movement')
        verbose_name_plural = _('stock movements')
        ordering = ['-movement_date', '-created_at']
        indexes = [
            models.Index(fields=['medicine', 'movement_date']),
            models.Index(fields=['reference_type', 'reference_id']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock_after__gte=0),
                name='stock_movement_after_non_negative',
            ),
        ]

    def __str__(self):
        return f'{self.movement_number} {self.movement_type} {self.quantity}'

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise NotImplementedError('StockMovement is insert-only; updates are not allowed.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise NotImplementedError('StockMovement records cannot be deleted.')
