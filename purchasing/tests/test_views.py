"""
Purchasing — API Integration Tests

@file purchasing/tests/test_views.py
"""

from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from purchasing.models import GoodsReceipt, PurchaseOrder
from tests.factories import (
    MedicineFactory,
    PurchaseOrderFactory,
    PurchaseOrderItemFactory,
    SupplierFactory,
)


@pytest.mark.django_db
class TestSupplierEndpoints:
    def test_create_generates_code(self, admin_client):
        response = admin_client.post(
            reverse('api-v1:purchasing:supplier-list'),
            {'name': 'PT Kimia Farma', 'city': 'Bandung'},
            format='json',
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()['data']['code'] == 'SUP-001'

    def test_delete_with_history_is_422(self, admin_client):
        order = PurchaseOrderFactory()
        response = admin_client.delete(
            reverse('api-v1:purchasing:supplier-detail', kwargs={'pk': order.supplier.pk}),
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.django_db
class TestPurchaseOrderEndpoints:
    def test_create(self, admin_client):
        medicine = MedicineFactory()
        response = admin_client.post(
            reverse('api-v1:purchasing:purchase-order-list'),
            {
                'supplier': str(SupplierFactory().pk),
                'order_date': timezone.localdate().isoformat(),
                'items': [
                    {'medicine': str(medicine.pk), 'quantity': 5, 'unit': 'box', 'unit_price': '2000.00'},
                ],
            },
            format='json',
        )
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()['data']
        assert data['status'] == 'draft'
        assert data['total_amount'] == 10000

    def test_delivery_before_order_date(self, admin_client):
        today = timezone.localdate()
        response = admin_client.post(
            reverse('api-v1:purchasing:purchase-order-list'),
            {
                'supplier': str(SupplierFactory().pk),
                'order_date': today.isoformat(),
                'expected_delivery_date': (today - timedelta(days=1)).isoformat(),
                'items': [
                    {'medicine': str(MedicineFactory().pk), 'quantity': 1, 'unit': 'box', 'unit_price': '1'},
                ],
            },
            format='json',
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert 'expected_delivery_date' in response.json()['errors']

    def test_workflow_actions(self, admin_client):
        order = PurchaseOrderItemFactory().purchase_order
        for name, expected in (
            ('purchase-order-submit', 'pending_approval'),
            ('purchase-order-approve', 'approved'),
            ('purchase-order-mark-ordered', 'ordered'),
        ):
            response = admin_client.post(reverse(f'api-v1:purchasing:{name}', kwargs={'pk': order.pk}))
            assert response.status_code == status.HTTP_200_OK, name
            assert response.json()['data']['status'] == expected

    def test_reject_requires_reason(self, admin_client):
        order = PurchaseOrderFactory(status=PurchaseOrder.Status.PENDING_APPROVAL)
        response = admin_client.post(
            reverse('api-v1:purchasing:purchase-order-reject', kwargs={'pk': order.pk}), {}, format='json',
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_illegal_transition_is_422(self, admin_client):
        order = PurchaseOrderFactory(status=PurchaseOrder.Status.CANCELLED)
        response = admin_client.post(
            reverse('api-v1:purchasing:purchase-order-approve', kwargs={'pk': order.pk}),
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.django_db
class TestGoodsReceiptEndpoints:
    def test_from_po_and_complete(self, admin_client):
        order = PurchaseOrderFactory(status=PurchaseOrder.Status.ORDERED)
        po_item = PurchaseOrderItemFactory(purchase_order=order, quantity=20)

        prefill = admin_client.get(
            reverse('api-v1:purchasing:goods-receipt-from-po', kwargs={'purchase_order_id': order.pk}),
        )
        assert prefill.status_code == status.HTTP_200_OK
        assert prefill.json()['data']['items'][0]['quantity'] == 20

        created = admin_client.post(
            reverse('api-v1:purchasing:goods-receipt-list'),
            {
                'purchase_order': str(order.pk),
                'supplier': str(order.supplier.pk),
                'receipt_date': timezone.localdate().isoformat(),
                'items': [{
                    'purchase_order_item': str(po_item.pk),
                    'medicine': str(po_item.medicine.pk),
                    'quantity': 20,
                    'unit': 'tablet',
                    'unit_price': '1000.00',
                    'batch_number': 'LOT-77',
                    'expiry_date': (timezone.localdate() + timedelta(days=300)).isoformat(),
                }],
            },
            format='json',
        )
        assert created.status_code == status.HTTP_201_CREATED
        receipt_id = created.json()['data']['id']

        completed = admin_client.post(
            reverse('api-v1:purchasing:goods-receipt-complete', kwargs={'pk': receipt_id}),
        )
        assert completed.status_code == status.HTTP_200_OK
        assert completed.json()['data']['status'] == GoodsReceipt.Status.COMPLETED
        order.refresh_from_db()
        assert order.status == PurchaseOrder.Status.COMPLETED
        assert po_item.medicine.current_stock == 20

    def test_expired_line_rejected(self, admin_client):
        medicine = MedicineFactory()
        response = admin_client.post(
            reverse('api-v1:purchasing:goods-receipt-list'),
            {
                'supplier': str(SupplierFactory().pk),
                'receipt_date': timezone.localdate().isoformat(),
                'items': [{
                    'medicine': str(medicine.pk),
                    'quantity': 1,
                    'unit': 'tablet',
                    'unit_price': '1.00',
                    'batch_number': 'OLD',
                    'expiry_date': timezone.localdate().isoformat(),
                }],
            },
            format='json',
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
