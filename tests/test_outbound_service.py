from datetime import timedelta

import pytest
from sqlalchemy import event

from clinicerp.errors import ConflictError, NotFoundError, ValidationError
from clinicerp.extensions import db
from clinicerp.models import Batch, OrderReturn, Outbound, Product, Return
from clinicerp.services.order_return_service import RETURN_TYPE_DEFECTIVE
from clinicerp.services.outbound_service import OutboundService
from clinicerp.services.product_service import ProductService
from clinicerp.utils.timezone_utils import TimezoneUtils

from .conftest import OTHER_TENANT_ID, TENANT_ID


@pytest.fixture
def stocked(app, make_product, expiring_on):
    """Product with two batches: an early expiring one and a later one."""
    product = make_product(name='Toxin', brand='NeuroTox', barcode='TX1', salePrice=2000)
    with app.app_context():
        late = ProductService.create_batch(TENANT_ID, product['id'], {'qty': 10, 'expiryDate': expiring_on(200)})
        early = ProductService.create_batch(TENANT_ID, product['id'], {'qty': 5, 'expiryDate': expiring_on(20)})
    return {'product_id': product['id'], 'early': early, 'late': late}


@pytest.fixture
def enforce_foreign_keys(app):
    """SQLite only checks foreign keys when asked to, per connection."""
    with app.app_context():
        @event.listens_for(db.engine, 'connect')
        def _enable(dbapi_connection, _record):
            dbapi_connection.execute('PRAGMA foreign_keys=ON')

        db.engine.dispose()


def _outbound(stocked, qty, batch='early', **extra):
    payload = {
        'productId': stocked['product_id'],
        'batchId': stocked[batch]['id'],
        'outboundQty': qty,
        'managerName': '박간호',
    }
    payload.update(extra)
    return payload


def test_products_for_outbound_suggest_fefo_batches(app, stocked):
    with app.app_context():
        products = OutboundService.get_products_for_outbound(TENANT_ID)
        batches = products[0]['batches']
        assert [b['id'] for b in batches] == [stocked['early']['id'], stocked['late']['id']]

        by_batch = OutboundService.get_products_for_outbound(TENANT_ID, search=stocked['late']['batchNo'].lower())
        assert [b['id'] for b in by_batch[0]['batches']] == [stocked['late']['id']]

        assert OutboundService.get_products_for_outbound(TENANT_ID, search='neuro')[0]['name'] == 'Toxin'
        assert OutboundService.get_products_for_outbound(TENANT_ID, search='unrelated') == []


def test_create_outbound_decrements_batch_and_stock(app, stocked):
    with app.app_context():
        result = OutboundService.create_outbound(TENANT_ID, _outbound(stocked, 3, patientName='홍길동'))
        assert result['outboundQty'] == 3
        assert result['outboundType'] == '제품'
        assert result['patientName'] == '홍길동'

        assert db.session.get(Batch, stocked['early']['id']).qty == 2
        assert db.session.get(Product, stocked['product_id']).current_stock == 12


@pytest.mark.parametrize('qty, message', [
    (0, '출고 수량은 0보다 커야 합니다'),
    (6, '재고가 부족합니다'),
])
def test_create_outbound_rejects_bad_quantities(app, stocked, qty, message):
    with app.app_context():
        with pytest.raises(ValidationError) as exc:
            OutboundService.create_outbound(TENANT_ID, _outbound(stocked, qty))
        assert message in exc.value.message


def test_expired_batch_cannot_be_issued(app, stocked):
    with app.app_context():
        batch = db.session.get(Batch, stocked['early']['id'])
        batch.expiry_date = TimezoneUtils.clinic_today() - timedelta(days=1)
        db.session.commit()
        with pytest.raises(ValidationError) as exc:
            OutboundService.create_outbound(TENANT_ID, _outbound(stocked, 1))
        assert '유효기간' in exc.value.message


def test_outbound_requires_manager_and_tenant_batch(app, stocked):
    with app.app_context():
        with pytest.raises(ValidationError):
            OutboundService.create_outbound(TENANT_ID, _outbound(stocked, 1, managerName=''))
        with pytest.raises(NotFoundError):
            OutboundService.create_outbound(OTHER_TENANT_ID, _outbound(stocked, 1))


def test_bulk_outbound_is_all_or_nothing(app, stocked):
    with app.app_context():
        with pytest.raises(ValidationError) as exc:
            OutboundService.create_bulk_outbound(TENANT_ID, [
                _outbound(stocked, 3),
                _outbound(stocked, 3),
            ])
        assert exc.value.errors['items'][0]['index'] == 1
        assert Outbound.query.count() == 0
        assert db.session.get(Batch, stocked['early']['id']).qty == 5


def test_bulk_outbound_applies_defaults(app, stocked):
    lines = [
        {'productId': stocked['product_id'], 'batchId': stocked['early']['id'], 'outboundQty': 2},
        {'productId': stocked['product_id'], 'batchId': stocked['late']['id'], 'outboundQty': 4},
    ]
    with app.app_context():
        result = OutboundService.create_bulk_outbound(TENANT_ID, lines, {'managerName': '최실장', 'chartNumber': 'C-1'})
        assert result['count'] == 2
        assert {o['managerName'] for o in result['outbounds']} == {'최실장'}
        assert db.session.get(Product, stocked['product_id']).current_stock == 9


def test_defective_outbound_raises_order_return(app, stocked, supplier_id):
    with app.app_context():
        ProductService.update_product(TENANT_ID, stocked['product_id'], {'supplierId': supplier_id})
        outbound = OutboundService.create_outbound(TENANT_ID, _outbound(stocked, 1, isDefective=True))

        record = OrderReturn.query.filter_by(outbound_id=outbound['id']).one()
        assert record.return_type == RETURN_TYPE_DEFECTIVE
        assert record.return_quantity == 1
        assert record.unit_price == 2000
        assert record.supplier_id == supplier_id


def test_history_filters(app, stocked):
    with app.app_context():
        OutboundService.create_outbound(TENANT_ID, _outbound(stocked, 1))
        OutboundService.create_outbound(TENANT_ID, _outbound(stocked, 2, batch='late', managerName='이원장'))

        everything = OutboundService.get_outbound_history(TENANT_ID)
        assert everything['total'] == 2

        by_manager = OutboundService.get_outbound_history(TENANT_ID, {'managerName': '이원장'})
        assert [o['outboundQty'] for o in by_manager['items']] == [2]

        today = TimezoneUtils.utc_now().date().isoformat()
        assert OutboundService.get_outbound_history(TENANT_ID, {'startDate': today, 'endDate': today})['total'] == 2
        assert OutboundService.get_outbound_history(TENANT_ID, {'search': 'toxin', 'limit': 1})['totalPages'] == 2

        with pytest.raises(ValidationError):
            OutboundService.get_outbound_history(TENANT_ID, {'startDate': 'yesterday'})


def test_cancel_by_timestamp_restores_stock(app, stocked):
    with app.app_context():
        created = OutboundService.create_outbound(TENANT_ID, _outbound(stocked, 4))
        result = OutboundService.cancel_outbound_by_timestamp(TENANT_ID, created['outboundDate'], '박간호')
        assert result['canceledCount'] == 1
        assert Outbound.query.count() == 0
        assert db.session.get(Batch, stocked['early']['id']).qty == 5

        with pytest.raises(NotFoundError):
            OutboundService.cancel_outbound_by_timestamp(TENANT_ID, created['outboundDate'], '박간호')
        with pytest.raises(ValidationError):
            OutboundService.cancel_outbound_by_timestamp(TENANT_ID, 'not-a-time', '박간호')


def test_cancel_refused_when_returned(app, stocked):
    with app.app_context():
        created = OutboundService.create_outbound(TENANT_ID, _outbound(stocked, 2))
        db.session.add(Return(
            tenant_id=TENANT_ID,
            product_id=stocked['product_id'],
            batch_id=stocked['early']['id'],
            outbound_id=created['id'],
            return_qty=1,
        ))
        db.session.commit()
        with pytest.raises(ConflictError):
            OutboundService.cancel_outbound_by_timestamp(TENANT_ID, created['outboundDate'], '박간호')


def test_cancel_defective_outbound_withdraws_pending_return(app, stocked, enforce_foreign_keys):
    with app.app_context():
        created = OutboundService.create_outbound(TENANT_ID, _outbound(stocked, 2, isDefective=True))
        assert OrderReturn.query.filter_by(outbound_id=created['id']).count() == 1

        result = OutboundService.cancel_outbound_by_timestamp(TENANT_ID, created['outboundDate'], '박간호')
        assert result['canceledCount'] == 1
        assert OrderReturn.query.count() == 0
        assert Outbound.query.count() == 0
        assert db.session.get(Batch, stocked['early']['id']).qty == 5


def test_cancel_refused_when_defect_return_processed(app, stocked):
    with app.app_context():
        created = OutboundService.create_outbound(TENANT_ID, _outbound(stocked, 1, isDefective=True))
        record = OrderReturn.query.filter_by(outbound_id=created['id']).one()
        record.status = 'completed'
        db.session.commit()

        with pytest.raises(ConflictError):
            OutboundService.cancel_outbound_by_timestamp(TENANT_ID, created['outboundDate'], '박간호')
        assert db.session.get(Outbound, created['id']) is not None
