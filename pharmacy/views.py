"""
Pharmacy — Views

Medicine catalogue, categories, batches and the stock movement ledger.

@file pharmacy/views.py
"""

from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from core.exceptions import BusinessRuleViolation
from core.services import toggle_active
from users.permissions import HasModulePermission, IsActiveUser

from .filters import MedicineFilter, StockMovementFilter
from .models import Medicine, MedicineCategory, StockMovement
from .serializers import (
    CalculatePriceSerializer,
    ExpiringBatchSerializer,
    MedicineBatchSerializer,
    MedicineCategorySerializer,
    MedicineDetailSerializer,
    MedicineReadSerializer,
    MedicineWriteSerializer,
    StockAdjustmentSerializer,
    StockMovementSerializer,
)
from .services import MedicineService, StockService


def _period(request):
    """``start_date``/``end_date`` query params, defaulting to the current month."""
    today = timezone.localdate()
    start = request.query_params.get('start_date') or today.replace(day=1).isoformat()
    end = request.query_params.get('end_date') or today.isoformat()
    return start, end


class MedicineCategoryViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'pharmacy'
    serializer_class = MedicineCategorySerializer
    search_fields = ['name']
    ordering = ['name']

    def get_queryset(self):
        return MedicineCategory.objects.all()

    def create(self, request, *args, **kwargs):
        response = super().create(request, *args, **kwargs)
        return Response(
            {'success': True, 'message': 'Medicine category created.', 'data': response.data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        response = super().update(request, *args, **kwargs)
        return Response({'success': True, 'message': 'Medicine category updated.', 'data': response.data})

    def destroy(self, request, *args, **kwargs):
        category = self.get_object()
        if category.medicines.exists():
            raise BusinessRuleViolation(detail='Category still has medicines and cannot be deleted.')
        category.delete()
        return Response({'success': True, 'message': 'Medicine category deleted.', 'data': None})


class MedicineViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'pharmacy'
    action_permissions = {
        'active': None,
        'units': None,
        'calculate_price': 'pharmacy.view',
        'stats': 'pharmacy.view',
    }
    filterset_class = MedicineFilter
    search_fields = ['code', 'name', 'generic_name']
    ordering_fields = ['name', 'code', 'selling_price', 'created_at']
    ordering = ['name']

    def get_queryset(self):
        return Medicine.objects.with_stock().select_related('category')

    def get_serializer_class(self):
        if self.action in ('create', 'update', 'partial_update'):
            return MedicineWriteSerializer
        if self.action == 'retrieve':
            return MedicineDetailSerializer
        return MedicineReadSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        medicine = MedicineService.create(actor=request.user, **serializer.validated_data)
        return Response(
            {
                'success': True,
                'message': 'Medicine created.',
                'data': MedicineReadSerializer(medicine).data,
            },
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        medicine = self.get_object()
        serializer = self.get_serializer(medicine, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        if not fields.get('code'):
            fields.pop('code', None)
        medicine = MedicineService.update(medicine=medicine, actor=request.user, **fields)
        return Response({
            'success': True,
            'message': 'Medicine updated.',
            'data': MedicineReadSerializer(medicine).data,
        })

    def destroy(self, request, *args, **kwargs):
        MedicineService.delete(medicine=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Medicine deleted.', 'data': None})

    @action(detail=False, methods=['get'])
    def active(self, request):
        qs = self.filter_queryset(self.get_queryset()).filter(is_active=True)[:50]
        return Response({'success': True, 'data': MedicineReadSerializer(qs, many=True).data})

    @action(detail=False, methods=['get'], url_path='low-stock')
    def low_stock(self, request):
        qs = Medicine.objects.active().low_stock().select_related('category').order_by('name')
        return Response({'success': True, 'data': MedicineReadSerializer(qs, many=True).data})

    @action(detail=False, methods=['get'])
    def expiring(self, request):
        days = request.query_params.get('days')
        months = request.query_params.get('months')
        try:
            if days is not None:
                days = int(days)
            elif months is not None:
                days = int(months) * 30
        except ValueError:
            raise ValidationError({'days': ['A whole number is required.']})
        qs = MedicineService.expiring_batches(days)
        return Response({'success': True, 'data': ExpiringBatchSerializer(qs, many=True).data})

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response({'success': True, 'data': MedicineService.stats()})

    @action(detail=False, methods=['get'])
    def units(self, request):
        return Response({'success': True, 'data': Medicine.UNITS})

    @action(detail=False, methods=['post'], url_path='calculate-price')
    def calculate_price(self, request):
        serializer = CalculatePriceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = Medicine.calculate_selling_price(**serializer.validated_data)
        return Response({'success': True, 'data': result})

    @action(detail=True, methods=['post', 'patch'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        medicine = toggle_active(self.get_object(), actor=request.user)
        return Response({
            'success': True,
            'message': 'Medicine activated.' if medicine.is_active else 'Medicine deactivated.',
            'data': MedicineReadSerializer(medicine).data,
        })

    @action(detail=True, methods=['get'])
    def batches(self, request, pk=None):
        medicine = self.get_object()
        qs = medicine.batches.order_by('expiry_date', 'created_at')
        return Response({'success': True, 'data': MedicineBatchSerializer(qs, many=True).data})

    @action(detail=True, methods=['get'], url_path='stock-card')
    def stock_card(self, request, pk=None):
        medicine = self.get_object()
        qs = medicine.stock_movements.select_related('batch', 'created_by')
        start = request.query_params.get('start_date')
        end = request.query_params.get('end_date')
        if start:
            qs = qs.filter(movement_date__date__gte=start)
        if end:
            qs = qs.filter(movement_date__date__lte=end)
        qs = qs.order_by('movement_date', 'created_at')
        return Response({
            'success': True,
            'data': {
                'medicine': MedicineReadSerializer(medicine).data,
                'current_stock': medicine.current_stock,
                'movements': StockMovementSerializer(qs, many=True).data,
            },
        })


class StockMovementViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """The ledger is read-only over HTTP; ``adjustment`` is the only write."""

    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'inventory'
    action_permissions = {'adjustment': 'inventory.create'}
    serializer_class = StockMovementSerializer
    filterset_class = StockMovementFilter
    ordering_fields = ['movement_date', 'quantity']
    ordering = ['-movement_date', '-created_at']

    def get_queryset(self):
        return StockMovement.objects.select_related('medicine', 'batch', 'created_by')

    @action(detail=False, methods=['get'])
    def stats(self, request):
        start, end = _period(request)
        return Response({'success': True, 'data': StockService.movement_stats(start_date=start, end_date=end)})

    @action(detail=False, methods=['get'])
    def reasons(self, request):
        data = [
            {'value': value, 'label': str(label), 'type': StockMovement.REASON_DIRECTIONS[value]}
            for value, label in StockMovement.Reason.choices
        ]
        return Response({'success': True, 'data': data})

    @action(detail=False, methods=['get'])
    def summary(self, request):
        start, end = _period(request)
        rows = StockService.summary(start_date=start, end_date=end)
        data = [
            {**row, 'medicine': MedicineReadSerializer(row['medicine']).data}
            for row in rows
        ]
        return Response({
            'success': True,
            'data': {'period': {'start_date': start, 'end_date': end}, 'summary': data},
        })

    @action(detail=False, methods=['post'])
    def adjustment(self, request):
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        movements = StockService.adjust(
            medicine=data['medicine'],
            adjustment_type=data['adjustment_type'],
            quantity=data['quantity'],
            reason=data['reason'],
            batch=data.get('batch'),
            batch_number=data.get('batch_number', ''),
            expiry_date=data.get('expiry_date'),
            notes=data.get('notes', ''),
            actor=request.user,
        )
        return Response(
            {
                'success': True,
                'message': 'Stock adjusted.',
                'data': StockMovementSerializer(movements, many=True).data,
            },
            status=status.HTTP_201_CREATED,
        )
