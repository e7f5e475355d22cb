"""
Purchasing — Views

Suppliers, purchase orders (draft → approval → ordered) and goods
receipts. Every write goes through the service layer; a request that
breaks the workflow comes back as a 422 envelope.

@file purchasing/views.py
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.exceptions import ResourceNotFoundError
from core.services import toggle_active
from users.permissions import HasModulePermission, IsActiveUser

from .filters import GoodsReceiptFilter, PurchaseOrderFilter, SupplierFilter
from .models import GoodsReceipt, PurchaseOrder, Supplier
from .serializers import (
    ApproveSerializer,
    GoodsReceiptReadSerializer,
    GoodsReceiptWriteSerializer,
    PurchaseOrderReadSerializer,
    PurchaseOrderWriteSerializer,
    ReceiptPrefillSerializer,
    RejectSerializer,
    SupplierSerializer,
)
from .services import GoodsReceiptService, PurchaseOrderService, SupplierService


class SupplierViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'purchasing'
    action_permissions = {'active': None}
    serializer_class = SupplierSerializer
    filterset_class = SupplierFilter
    search_fields = ['code', 'name', 'contact_person', 'phone', 'city']
    ordering_fields = ['name', 'code', 'created_at']
    ordering = ['name']

    def get_queryset(self):
        return Supplier.objects.all()

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        supplier = SupplierService.create(actor=request.user, **serializer.validated_data)
        return Response(
            {'success': True, 'message': 'Supplier created.', 'data': SupplierSerializer(supplier).data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        supplier = self.get_object()
        serializer = self.get_serializer(supplier, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        if not fields.get('code'):
            fields.pop('code', None)
        supplier = SupplierService.update(supplier=supplier, actor=request.user, **fields)
        return Response({'success': True, 'message': 'Supplier updated.', 'data': SupplierSerializer(supplier).data})

    def destroy(self, request, *args, **kwargs):
        SupplierService.delete(supplier=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Supplier deleted.', 'data': None})

    @action(detail=False, methods=['get'])
    def active(self, request):
        qs = self.get_queryset().filter(is_active=True).order_by('name')
        return Response({'success': True, 'data': self.get_serializer(qs, many=True).data})

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response({'success': True, 'data': SupplierService.stats()})

    @action(detail=True, methods=['post', 'patch'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        supplier = toggle_active(self.get_object(), actor=request.user)
        return Response({
            'success': True,
            'message': 'Supplier activated.' if supplier.is_active else 'Supplier deactivated.',
            'data': self.get_serializer(supplier).data,
        })


class PurchaseOrderViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'purchasing'
    action_permissions = {
        'approve': 'purchasing.manage',
        'reject': 'purchasing.manage',
    }
    filterset_class = PurchaseOrderFilter
    ordering_fields = ['order_date', 'po_number', 'total_amount', 'created_at']
    ordering = ['-created_at']

    def get_queryset(self):
        return (
            PurchaseOrder.objects
            .select_related('supplier', 'created_by', 'approved_by', 'rejected_by')
            .prefetch_related('items__medicine')
        )

    def get_serializer_class(self):
        if self.action in ('create', 'update', 'partial_update'):
            return PurchaseOrderWriteSerializer
        return PurchaseOrderReadSerializer

    def _respond(self, order, message, status_code=status.HTTP_200_OK):
        order = self.get_queryset().get(pk=order.pk)
        return Response(
            {'success': True, 'message': message, 'data': PurchaseOrderReadSerializer(order).data},
            status=status_code,
        )

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        order = PurchaseOrderService.create_order(
            supplier=data.pop('supplier'),
            items=data.pop('items'),
            actor=request.user,
            **data,
        )
        return self._respond(order, 'Purchase order created.', status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        order = self.get_object()
        serializer = self.get_serializer(order, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        order = PurchaseOrderService.update_order(
            purchase_order=order,
            items=data.pop('items', None),
            actor=request.user,
            **data,
        )
        return self._respond(order, 'Purchase order updated.')

    def destroy(self, request, *args, **kwargs):
        PurchaseOrderService.delete(purchase_order=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Purchase order deleted.', 'data': None})

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response({'success': True, 'data': PurchaseOrderService.stats()})

    @action(detail=False, methods=['get'], url_path='pending-approval')
    def pending_approval(self, request):
        qs = PurchaseOrderService.pending_approval()
        return Response({'success': True, 'data': PurchaseOrderReadSerializer(qs, many=True).data})

    @action(detail=False, methods=['get'], url_path='needs-receiving')
    def needs_receiving(self, request):
        qs = PurchaseOrderService.needs_receiving()
        return Response({'success': True, 'data': PurchaseOrderReadSerializer(qs, many=True).data})

    @action(detail=True, methods=['post', 'patch'])
    def submit(self, request, pk=None):
        order = PurchaseOrderService.submit(purchase_order=self.get_object(), actor=request.user)
        return self._respond(order, 'Purchase order submitted for approval.')

    @action(detail=True, methods=['post', 'patch'])
    def approve(self, request, pk=None):
        serializer = ApproveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = PurchaseOrderService.approve(
            purchase_order=self.get_object(),
            notes=serializer.validated_data['notes'],
            actor=request.user,
        )
        return self._respond(order, 'Purchase order approved.')

    @action(detail=True, methods=['post', 'patch'])
    def reject(self, request, pk=None):
        serializer = RejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = PurchaseOrderService.reject(
            purchase_order=self.get_object(),
            reason=serializer.validated_data['reason'],
            actor=request.user,
        )
        return self._respond(order, 'Purchase order rejected.')

    @action(detail=True, methods=['post', 'patch'], url_path='mark-ordered')
    def mark_ordered(self, request, pk=None):
        order = PurchaseOrderService.mark_ordered(purchase_order=self.get_object(), actor=request.user)
        return self._respond(order, 'Purchase order marked as ordered.')

    @action(detail=True, methods=['post', 'patch'])
    def cancel(self, request, pk=None):
        order = PurchaseOrderService.cancel(purchase_order=self.get_object(), actor=request.user)
        return self._respond(order, 'Purchase order cancelled.')


class GoodsReceiptViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'purchasing'
    action_permissions = {'from_po': 'purchasing.create'}
    filterset_class = GoodsReceiptFilter
    ordering_fields = ['receipt_date', 'receipt_number', 'total_amount', 'created_at']
    ordering = ['-created_at']

    def get_queryset(self):
        return (
            GoodsReceipt.objects
            .select_related('supplier', 'purchase_order', 'received_by')
            .prefetch_related('items__medicine')
        )

    def get_serializer_class(self):
        if self.action in ('create', 'update', 'partial_update'):
            return GoodsReceiptWriteSerializer
        return GoodsReceiptReadSerializer

    def _respond(self, receipt, message, status_code=status.HTTP_200_OK):
        receipt = self.get_queryset().get(pk=receipt.pk)
        return Response(
            {'success': True, 'message': message, 'data': GoodsReceiptReadSerializer(receipt).data},
            status=status_code,
        )

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        receipt = GoodsReceiptService.create_receipt(
            supplier=data.pop('supplier'),
            items=data.pop('items'),
            purchase_order=data.pop('purchase_order', None),
            actor=request.user,
            **data,
        )
        return self._respond(receipt, 'Goods receipt created.', status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        receipt = self.get_object()
        serializer = self.get_serializer(receipt, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        data.pop('purchase_order', None)
        receipt = GoodsReceiptService.update_receipt(
            receipt=receipt,
            items=data.pop('items', None),
            actor=request.user,
            **data,
        )
        return self._respond(receipt, 'Goods receipt updated.')

    def destroy(self, request, *args, **kwargs):
        GoodsReceiptService.delete(receipt=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Goods receipt deleted.', 'data': None})

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response({'success': True, 'data': GoodsReceiptService.stats()})

    @action(detail=False, methods=['get'], url_path=r'from-po/(?P<purchase_order_id>[^/.]+)')
    def from_po(self, request, purchase_order_id=None):
        order = (
            PurchaseOrder.objects
            .select_related('supplier')
            .prefetch_related('items__medicine')
            .filter(pk=purchase_order_id)
            .first()
        )
        if order is None:
            raise ResourceNotFoundError(detail='Purchase order not found.')
        prefill = GoodsReceiptService.prefill_from_order(order)
        return Response({'success': True, 'data': ReceiptPrefillSerializer(prefill).data})

    @action(detail=True, methods=['post', 'patch'])
    def complete(self, request, pk=None):
        receipt = GoodsReceiptService.complete(receipt=self.get_object(), actor=request.user)
        return self._respond(receipt, 'Goods receipt completed. Stock has been updated.')

    @action(detail=True, methods=['post', 'patch'])
    def cancel(self, request, pk=None):
        receipt = GoodsReceiptService.cancel(receipt=self.get_object(), actor=request.user)
        return self._respond(receipt, 'Goods receipt cancelled.')
