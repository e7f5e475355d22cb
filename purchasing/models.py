"""
Purchasing — Models

Suppliers, purchase orders with an approval workflow, and goods receipts
that turn delivered lines into medicine batches.

State machine (purchase order): DRAFT → PENDING_APPROVAL → APPROVED →
ORDERED → PARTIAL_RECEIVED → COMPLETED, or PENDING_APPROVAL → REJECTED, or
DRAFT/PENDING_APPROVAL/APPROVED → CANCELLED.

@file purchasing/models.py
"""

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel

TWO_PLACES = Decimal('0.01')
HUNDRED = Decimal('100')


def _money(value) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class Supplier(BaseModel):
    code = models.CharField(_('code'), max_length=20, unique=True)
    name = models.CharField(_('name'), max_length=200)
    contact_person = models.CharField(_('contact person'), max_length=100, blank=True)
    phone = models.CharField(_('phone'), max_length=20, blank=True)
    email = models.EmailField(_('email'), blank=True)
    address = models.TextField(_('address'), blank=True)
    city = models.CharField(_('city'), max_length=100, blank=True)
    npwp = models.CharField(_('tax number (NPWP)'), max_length=30, blank=True)
    payment_terms = models.PositiveIntegerField(
        _('payment terms (days)'), default=30,
    )
    is_active = models.BooleanField(_('active'), default=True)
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('supplier')
        verbose_name_plural = _('suppliers')
        ordering = ['name']

    def __str__(self):
        return f'{self.code} — {self.name}'


class PurchaseOrder(BaseModel):

    class Status(models.TextChoices):
        DRAFT = 'draft', _('Draft')
        PENDING_APPROVAL = 'pending_approval', _('Pending approval')
        APPROVED = 'approved', _('Approved')
        REJECTED = 'rejected', _('Rejected')
        ORDERED = 'ordered', _('Ordered')
        PARTIAL_RECEIVED = 'partial_received', _('Partially received')
        COMPLETED = 'completed', _('Completed')
        CANCELLED = 'cancelled', _('Cancelled')

    TRANSITIONS = {
        Status.DRAFT: {Status.PENDING_APPROVAL, Status.CANCELLED},
        Status.PENDING_APPROVAL: {Status.APPROVED, Status.REJECTED, Status.CANCELLED},
        Status.APPROVED: {Status.ORDERED, Status.CANCELLED},
        Status.ORDERED: {Status.PARTIAL_RECEIVED, Status.COMPLETED},
        Status.PARTIAL_RECEIVED: {Status.PARTIAL_RECEIVED, Status.COMPLETED},
        Status.REJECTED: set(),
        Status.COMPLETED: set(),
        Status.CANCELLED: set(),
    }

    PENDING_VALUE_STATUSES = (Status.PENDING_APPROVAL, Status.APPROVED, Status.ORDERED)
    RECEIVABLE_STATUSES = (Status.ORDERED, Status.PARTIAL_RECEIVED)

    po_number = models.CharField(_('PO number'), max_length=30, unique=True)
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.PROTECT,
        related_name='purchase_orders',
        verbose_name=_('supplier'),
    )
    order_date = models.DateField(_('order date'), default=timezone.localdate)
    expected_delivery_date = models.DateField(_('expected delivery date'), null=True, blank=True)
    status = models.CharField(
        _('status'), max_length=20,
        choices=Status.choices, default=Status.DRAFT, db_index=True,
    )
    subtotal = models.DecimalField(_('subtotal'), max_digits=15, decimal_places=2, default=0)
    tax_amount = models.DecimalField(_('tax amount'), max_digits=15, decimal_places=2, default=0)
    discount_amount = models.DecimalField(_('discount amount'), max_digits=15, decimal_places=2, default=0)
    total_amount = models.DecimalField(_('total amount'), max_digits=15, decimal_places=2, default=0)

    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='approved_purchase_orders',
        verbose_name=_('approved by'),
    )
    approved_at = models.DateTimeField(_('approved at'), null=True, blank=True)
    approval_notes = models.TextField(_('approval notes'), blank=True)
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='rejected_purchase_orders',
        verbose_name=_('rejected by'),
    )
    rejected_at = models.DateTimeField(_('rejected at'), null=True, blank=True)
    rejection_reason = models.TextField(_('rejection reason'), blank=True)
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('purchase order')
        verbose_name_plural = _('purchase orders')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['supplier', 'status']),
            models.Index(fields=['order_date']),
        ]

    def __str__(self):
        return self.po_number

    def calculate_totals(self, save=True):
        """
        subtotal = Σ line totals (already net of discount and including tax),
        total = subtotal + Σ tax − Σ discount.
        """
        items = list(self.items.all())
        self.subtotal = _money(sum((item.total_price for item in items), Decimal('0')))
        self.tax_amount = _money(sum((item.tax_amount for item in items), Decimal('0')))
        self.discount_amount = _money(sum((item.discount_amount for item in items), Decimal('0')))
        self.total_amount = _money(self.subtotal + self.tax_amount - self.discount_amount)
        if save:
            self.save(update_fields=[
                'subtotal', 'tax_amount', 'discount_amount', 'total_amount', 'updated_at',
            ])

    def received_progress(self) -> tuple[int, int]:
        totals = self.items.aggregate(
            ordered=models.Sum('quantity'), received=models.Sum('received_quantity'),
        )
        return totals['ordered'] or 0, totals['received'] or 0


class PurchaseOrderItem(BaseModel):
    purchase_order = models.ForeignKey(
        PurchaseOrder,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('purchase order'),
    )
    medicine = models.ForeignKey(
        'pharmacy.Medicine',
        on_delete=models.PROTECT,
        related_name='purchase_order_items',
        verbose_name=_('medicine'),
    )
    quantity = models.PositiveIntegerField(_('quantity'))
    unit = models.CharField(_('unit'), max_length=50)
    unit_price = models.DecimalField(_('unit price'), max_digits=15, decimal_places=2)
    discount_percent = models.DecimalField(_('discount %'), max_digits=5, decimal_places=2, default=0)
    discount_amount = models.DecimalField(_('discount amount'), max_digits=15, decimal_places=2, default=0)
    tax_percent = models.DecimalField(_('tax %'), max_digits=5, decimal_places=2, default=0)
    tax_amount = models.DecimalField(_('tax amount'), max_digits=15, decimal_places=2, default=0)
    total_price = models.DecimalField(_('total price'), max_digits=15, decimal_places=2, default=0)
    received_quantity = models.PositiveIntegerField(_('received quantity'), default=0)
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('purchase order item')
        verbose_name_plural = _('purchase order items')
        ordering = ['purchase_order', 'created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(received_quantity__lte=models.F('quantity')),
                name='po_item_received_lte_ordered',
            ),
        ]

    def __str__(self):
        return f'{self.purchase_order_id} — {self.medicine_id} × {self.quantity}'

    def calculate_total(self):
        gross = Decimal(self.quantity) * Decimal(self.unit_price)
        discount = Decimal('0')
        if Decimal(self.discount_percent) > 0:
            discount = _money(gross * Decimal(self.discount_percent) / HUNDRED)
        tax = Decimal('0')
        if Decimal(self.tax_percent) > 0:
            tax = _money((gross - discount) * Decimal(self.tax_percent) / HUNDRED)
        self.discount_amount = discount
        self.tax_amount = tax
        self.total_price = _money(gross - discount + tax)

    def save(self, *args, **kwargs):
        self.calculate_total()
        super().save(*args, **kwargs)

    @property
    def remaining_quantity(self) -> int:
        return max(0, self.quantity - self.received_quantity)

    @property
    def is_fully_received(self) -> bool:
        return self.received_quantity >= self.quantity


class GoodsReceipt(BaseModel):

    class Status(models.TextChoices):
        DRAFT = 'draft', _('Draft')
        COMPLETED = 'completed', _('Completed')
        CANCELLED = 'cancelled', _('Cancelled')

    TRANSITIONS = {
        Status.DRAFT: {Status.COMPLETED, Status.CANCELLED},
        Status.COMPLETED: set(),
        Status.CANCELLED: set(),
    }

    receipt_number = models.CharField(_('receipt number'), max_length=30, unique=True)
    purchase_order = models.ForeignKey(
        PurchaseOrder,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='goods_receipts',
        verbose_name=_('purchase order'),
    )
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.PROTECT,
        related_name='goods_receipts',
        verbose_name=_('supplier'),
    )
    receipt_date = models.DateField(_('receipt date'), default=timezone.localdate)
    supplier_invoice_number = models.CharField(_('supplier invoice number'), max_length=100, blank=True)
    supplier_invoice_date = models.DateField(_('supplier invoice date'), null=True, blank=True)
    status = models.CharField(
        _('status'), max_length=20,
        choices=Status.choices, default=Status.DRAFT, db_index=True,
    )
    total_amount = models.DecimalField(_('total amount'), max_digits=15, decimal_places=2, default=0)
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='goods_receipts',
        verbose_name=_('received by'),
    )
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('goods receipt')
        verbose_name_plural = _('goods receipts')
        ordering = ['-created_at']

    def __str__(self):
        return self.receipt_number

    def calculate_total(self, save=True):
        self.total_amount = _money(sum((item.total_price for item in self.items.all()), Decimal('0')))
        if save:
            self.save(update_fields=['total_amount', 'updated_at'])


class GoodsReceiptItem(BaseModel):
    goods_receipt = models.ForeignKey(
        GoodsReceipt,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('goods receipt'),
    )
    purchase_order_item = models.ForeignKey(
        PurchaseOrderItem,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='receipt_items',
        verbose_name=_('purchase order item'),
    )
    medicine = models.ForeignKey(
        'pharmacy.Medicine',
        on_delete=models.PROTECT,
        related_name='receipt_items',
        verbose_name=_('medicine'),
    )
    batch = models.ForeignKey(
        'pharmacy.MedicineBatch',
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='receipt_items',
        verbose_name=_('batch'),
    )
    quantity = models.PositiveIntegerField(_('quantity'))
    unit = models.CharField(_('unit'), max_length=50)
    unit_price = models.DecimalField(_('unit price'), max_digits=15, decimal_places=2)
    total_price = models.DecimalField(_('total price'), max_digits=15, decimal_places=2, default=0)
    batch_number = models.CharField(_('batch number'), max_length=50)
    expiry_date = models.DateField(_('expiry date'))
    notes = models.TextField(_('notes'), blank=True)

    class Meta:
        verbose_name = _('goods receipt item')
        verbose_name_plural = _('goods receipt items')
        ordering = ['goods_receipt', 'created_at']

    def __str__(self):
        return f'{self.goods_receipt_id} — {self.batch_number} × {self.quantity}'

    def save(self, *args, **kwargs):
        self.total_price = _money(Decimal(self.quantity) * Decimal(self.unit_price))
        super().save(*args, **kwargs)

    @property
    def days_until_expiry(self) -> int | None:
        if not self.expiry_date:
            return None
        return (self.expiry_date - timezone.localdate()).days

    @property
    def is_expiring_soon(self) -> bool:
        days = self.days_until_expiry
        return days is not None and days <= settings.EXPIRING_SOON_DAYS
