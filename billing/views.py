"""
Billing — Views

Cashier endpoints. Invoices are created from a medical record, adjusted
while unpaid, paid once, and printed with the clinic header.

@file billing/views.py
"""

from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from clinic.models import ClinicSetting
from clinic.serializers import ClinicSettingSerializer
from users.permissions import HasModulePermission, IsActiveUser

from .filters import InvoiceFilter
from .models import Invoice
from .serializers import (
    InvoiceCreateSerializer,
    InvoicePaySerializer,
    InvoiceReadSerializer,
    InvoiceUpdateSerializer,
)
from .services import InvoiceService


class InvoiceViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'billing'
    action_permissions = {
        'pay': 'billing.edit',
        'print_invoice': 'billing.view',
    }
    filterset_class = InvoiceFilter
    ordering_fields = ['created_at', 'invoice_number', 'total_amount', 'payment_date']
    ordering = ['-created_at']

    def get_queryset(self):
        return (
            Invoice.objects
            .select_related('patient', 'cashier', 'medical_record__department', 'medical_record__doctor')
            .prefetch_related('items')
        )

    def get_serializer_class(self):
        if self.action == 'create':
            return InvoiceCreateSerializer
        if self.action in ('update', 'partial_update'):
            return InvoiceUpdateSerializer
        if self.action == 'pay':
            return InvoicePaySerializer
        return InvoiceReadSerializer

    def _respond(self, invoice, message, status_code=status.HTTP_200_OK):
        invoice = self.get_queryset().get(pk=invoice.pk)
        return Response(
            {'success': True, 'message': message, 'data': InvoiceReadSerializer(invoice).data},
            status=status_code,
        )

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = InvoiceService.create_invoice(actor=request.user, **serializer.validated_data)
        return self._respond(invoice, 'Invoice created.', status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        invoice = self.get_object()
        serializer = self.get_serializer(data=request.data, partial=kwargs.pop('partial', False))
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        invoice = InvoiceService.update_invoice(
            invoice=invoice, items=data.pop('items', None), actor=request.user, **data,
        )
        return self._respond(invoice, 'Invoice updated.')

    def destroy(self, request, *args, **kwargs):
        InvoiceService.delete(invoice=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Invoice deleted.', 'data': None})

    @action(detail=False, methods=['get'])
    def unpaid(self, request):
        qs = InvoiceService.unpaid(day=request.query_params.get('date'))
        return Response({'success': True, 'data': InvoiceReadSerializer(qs, many=True).data})

    @action(detail=False, methods=['get'])
    def stats(self, request):
        today = timezone.localdate().isoformat()
        start = request.query_params.get('start_date') or request.query_params.get('date') or today
        end = request.query_params.get('end_date') or request.query_params.get('date') or today
        return Response({
            'success': True,
            'data': InvoiceService.stats(start_date=start, end_date=end),
        })

    @action(detail=True, methods=['post', 'patch'])
    def pay(self, request, pk=None):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = InvoiceService.pay(invoice=self.get_object(), actor=request.user, **serializer.validated_data)
        return self._respond(invoice, f'Payment received. Change: {invoice.change_amount}.')

    @action(detail=True, methods=['get'], url_path='print')
    def print_invoice(self, request, pk=None):
        return Response({
            'success': True,
            'data': {
                'invoice': InvoiceReadSerializer(self.get_object()).data,
                'clinic': ClinicSettingSerializer(ClinicSetting.load()).data,
            },
        })
