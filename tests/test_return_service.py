from unittest.mock import MagicMock

import pytest
import requests

from clinicerp.errors import ValidationError
from clinicerp.extensions import db
from clinicerp.models import EMPTY_BOX_MEMO, Batch, Return, SupplierReturnNotification
from clinicerp.services import supplier_notification_service
from clinicerp.services.outbound_service import OutboundService
from clinicerp.services.return_service import ReturnService
from clinicerp.services.supplier_notification_service import generate_return_number

from .conftest import API_KEY, TENANT_ID


@pytest.fixture
def supplier_post(monkeypatch):
    response = MagicMock(ok=True, status_code=201, text='')
    post = MagicMock(return_value=response)
    monkeypatch.setattr(supplier_notification_service.requests, 'post', post)
    return post


@pytest.fixture
def issued(app, make_product, supplier_id):
    """A returnable product with one outbound of 5 units."""
    product = make_product(
        name='Filler',
        brand='DermaFill',
        initialStock=10,
        supplierId=supplier_id,
        returnPolicy={'isReturnable': True, 'refundAmount': 500},
    )
    batch = product['batches'][0]
    with app.app_context():
        outbound = OutboundService.create_outbound(TENANT_ID, {
            'productId': product['id'],
            'batchId': batch['id'],
            'outboundQty': 5,
            'managerName': '정간호',
        })
    return {'product_id': product['id'], 'batch_id': batch['id'], 'outbound_id': outbound['id']}


def _line(issued, qty):
    return {
        'productId': issued['product_id'],
        'batchId': issued['batch_id'],
        'outboundId': issued['outbound_id'],
        'returnQty': qty,
    }


def test_available_products_lists_unreturned_outbounds(app, issued):
    with app.app_context():
        available = ReturnService.get_available_products(TENANT_ID)
        assert len(available) == 1
        entry = available[0]
        assert entry['productName'] == 'Filler'
        assert entry['unreturnedQty'] == 5
        assert entry['refundAmount'] == 500
        assert entry['emptyBoxes'] is None
        assert entry['batches'][0]['availableQty'] == 5

        assert ReturnService.get_available_products(TENANT_ID, search='derma')
        assert ReturnService.get_available_products(TENANT_ID, search='btx-001')
        assert ReturnService.get_available_products(TENANT_ID, search='nothing') == []


def test_non_returnable_products_are_hidden(app, make_product):
    product = make_product(name='Gauze', initialStock=3, returnPolicy={'isReturnable': False})
    with app.app_context():
        OutboundService.create_outbound(TENANT_ID, {
            'productId': product['id'],
            'batchId': product['batches'][0]['id'],
            'outboundQty': 1,
            'managerName': 'kim',
        })
        assert ReturnService.get_available_products(TENANT_ID) == []


def test_process_return_records_refund_and_notifies_supplier(app, issued, supplier_id, supplier_post):
    with app.app_context():
        result = ReturnService.process_return(TENANT_ID, '정간호', '유통기한 임박', [_line(issued, 2)])

        assert result['success'] is True
        assert result['errors'] is None
        record = result['returns'][0]
        assert record['returnQty'] == 2
        assert record['totalRefund'] == 1000
        assert record['supplierId'] == supplier_id

        notifications = SupplierReturnNotification.query.all()
        assert len(notifications) == 1
        assert notifications[0].clinic_name == '테스트 의원'
        assert notifications[0].status == 'PENDING'

        supplier_post.assert_called_once()
        args, kwargs = supplier_post.call_args
        assert args[0] == 'http://supplier.test/supplier/returns'
        assert kwargs['headers'] == {'x-api-key': API_KEY}
        payload = kwargs['json']
        assert payload['supplierTenantId'] == 'supplier-tenant'
        assert payload['clinicTenantId'] == TENANT_ID
        assert payload['items'][0]['quantity'] == 2

        stored = db.session.get(Return, record['id'])
        assert stored.return_no == payload['returnNo']

        # returns leave the clinic; batch stock is not restored
        assert db.session.get(Batch, issued['batch_id']).qty == 5
        available = ReturnService.get_available_products(TENANT_ID)
        assert available[0]['unreturnedQty'] == 3


def test_supplier_failure_does_not_undo_return(app, issued, monkeypatch):
    monkeypatch.setattr(
        supplier_notification_service.requests, 'post',
        MagicMock(side_effect=requests.ConnectionError('down')),
    )
    with app.app_context():
        result = ReturnService.process_return(TENANT_ID, 'kim', None, [_line(issued, 1)])
        stored = db.session.get(Return, result['returns'][0]['id'])
        assert stored is not None
        assert stored.return_no is None


def test_over_return_rejected_but_valid_lines_kept(app, issued, supplier_post):
    with app.app_context():
        result = ReturnService.process_return(TENANT_ID, 'kim', None, [
            _line(issued, 4),
            _line(issued, 2),
        ])
        assert len(result['returns']) == 1
        assert 'exceeds available quantity (1)' in result['errors'][0]

        with pytest.raises(ValidationError) as exc:
            ReturnService.process_return(TENANT_ID, 'kim', None, [_line(issued, 2)])
        assert exc.value.message.startswith('Failed to process returns:')
        assert Return.query.count() == 1


def test_process_return_requires_items(app):
    with app.app_context():
        with pytest.raises(ValidationError):
            ReturnService.process_return(TENANT_ID, 'kim', None, [])


def test_empty_boxes_are_counted_and_tagged(app, make_product, supplier_id, supplier_post):
    product = make_product(
        name='Toxin 100U',
        initialStock=4,
        usageCapacity=100,
        capacityPerProduct=4,
        supplierId=supplier_id,
        returnPolicy={'isReturnable': True, 'refundAmount': 300},
    )
    batch_id = product['batches'][0]['id']
    with app.app_context():
        batch = db.session.get(Batch, batch_id)
        batch.used_count = 9
        db.session.commit()
        outbound = OutboundService.create_outbound(TENANT_ID, {
            'productId': product['id'], 'batchId': batch_id, 'outboundQty': 3, 'managerName': 'kim',
        })

        entry = ReturnService.get_available_products(TENANT_ID)[0]
        assert entry['emptyBoxes'] == 2

        result = ReturnService.process_return(TENANT_ID, 'kim', 'ignored', [{
            'productId': product['id'], 'batchId': batch_id, 'outboundId': outbound['id'], 'returnQty': 2,
        }])
        assert result['returns'][0]['memo'] == EMPTY_BOX_MEMO
        assert ReturnService.get_available_products(TENANT_ID)[0]['emptyBoxes'] == 0


def test_return_history_paginates(app, issued, supplier_post):
    with app.app_context():
        for _ in range(3):
            ReturnService.process_return(TENANT_ID, 'kim', None, [_line(issued, 1)])
        page = ReturnService.get_return_history(TENANT_ID, page=2, limit=2)
        assert page['total'] == 3
        assert page['totalPages'] == 2
        assert len(page['items']) == 1
        assert ReturnService.get_return_history(TENANT_ID, product_id=issued['product_id'] + 100)['total'] == 0


def test_accept_webhook_marks_notifications(app, issued, supplier_post):
    with app.app_context():
        result = ReturnService.process_return(TENANT_ID, 'kim', None, [_line(issued, 1)])
        return_no = db.session.get(Return, result['returns'][0]['id']).return_no

        assert ReturnService.handle_return_accept(return_no, 'ACCEPTED')['success'] is True
        notification = SupplierReturnNotification.query.one()
        assert notification.status == 'ACCEPTED'
        assert notification.accepted_at is not None

        assert ReturnService.handle_return_accept('R00000000000000')['success'] is False


def test_generated_return_numbers_are_unique(app, monkeypatch):
    with app.app_context():
        number = generate_return_number()
        assert number.startswith('R') and len(number) == 15

        monkeypatch.setattr(supplier_notification_service.random, 'randint', lambda a, b: 123456)
        taken = number[:9] + '123456'
        db.session.add(Return(tenant_id=TENANT_ID, product_id=1, batch_id=1, return_qty=1, return_no=taken))
        db.session.commit()
        fallback = generate_return_number()
        assert fallback != taken
        assert fallback.startswith(number[:9])
