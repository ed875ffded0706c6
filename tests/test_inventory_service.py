from datetime import timedelta

from clinicerp.extensions import db
from clinicerp.models import Batch, Outbound
from clinicerp.services.inventory_service import InventoryService
from clinicerp.services.order_service import OrderService
from clinicerp.services.outbound_service import OutboundService
from clinicerp.services.product_service import ProductService
from clinicerp.utils.timezone_utils import TimezoneUtils

from .conftest import TENANT_ID


def test_summary_compares_with_previous_period(app, make_product):
    product = make_product(name='Gauze', initialStock=10)
    now = TimezoneUtils.utc_now()
    with app.app_context():
        old = ProductService.create_batch(TENANT_ID, product['id'], {'qty': 4})
        db.session.get(Batch, old['id']).created_at = now - timedelta(days=10)
        db.session.add(Outbound(
            tenant_id=TENANT_ID, product_id=product['id'], batch_id=old['id'],
            outbound_qty=1, manager_name='kim', outbound_date=now - timedelta(days=10),
        ))
        db.session.commit()
        OutboundService.create_outbound(TENANT_ID, {
            'productId': product['id'], 'batchId': product['batches'][0]['id'],
            'outboundQty': 3, 'managerName': 'kim',
        })

        summary = InventoryService.get_summary(TENANT_ID, now - timedelta(days=7), now + timedelta(minutes=1))
        assert summary['inbound'] == {'total': 10, 'previous': 4, 'change': 6}
        assert summary['outbound'] == {'total': 3, 'previous': 1, 'change': 2}

        unbounded = InventoryService.get_summary(TENANT_ID)
        assert unbounded['inbound']['total'] == 14
        assert unbounded['inbound']['previous'] == 0


def test_risky_inventory_uses_alert_days(app, make_product, expiring_on):
    soon = make_product(name='Soon', initialStock=5, expiryDate=expiring_on(3))
    make_product(name='Later', initialStock=5, expiryDate=expiring_on(90))
    custom = make_product(name='Custom', initialStock=5, alertDays=120, expiryDate=expiring_on(100))
    with app.app_context():
        risky = InventoryService.get_risky_inventory(TENANT_ID)
    assert [r['productId'] for r in risky] == [soon['id'], custom['id']]
    assert risky[0]['daysUntilExpiry'] == 3
    assert risky[0]['unit'] == '개'


def test_depletion_list_estimates_weeks(app, make_product, supplier_id):
    low = make_product(name='Low', initialStock=4, minStock=5)
    make_product(name='Plenty', initialStock=50, minStock=5)
    with app.app_context():
        OrderService.create_order(TENANT_ID, supplier_id, [{'productId': low['id'], 'quantity': 20}])
        OutboundService.create_outbound(TENANT_ID, {
            'productId': low['id'], 'batchId': low['batches'][0]['id'],
            'outboundQty': 2, 'managerName': 'kim',
        })
        items = InventoryService.get_depletion_list(TENANT_ID)

    assert len(items) == 1
    assert items[0]['productId'] == low['id']
    assert items[0]['currentStock'] == 2
    assert items[0]['lastOrderQty'] == 20
    assert items[0]['weeklyOutbound'] == 2
    assert items[0]['estimatedWeeks'] == 1.0


def test_top_value_products(app, make_product):
    make_product(name='Cheap', initialStock=10, salePrice=100)
    make_product(name='Dear', initialStock=2, salePrice=5000)
    make_product(name='Cost only', initialStock=3, purchasePrice=1000)
    make_product(name='Free', initialStock=3)
    with app.app_context():
        ranked = InventoryService.get_top_value_products(TENANT_ID, limit=2)
    assert [p['productName'] for p in ranked] == ['Dear', 'Cost only']
    assert ranked[0]['totalValue'] == 10000


def test_inventory_grouped_by_location(app, make_product):
    make_product(name='A', initialStock=1, storage='냉장고')
    make_product(name='B', initialStock=2)
    make_product(name='C', initialStock=3, storage='냉장고')
    with app.app_context():
        groups = {g['location']: g for g in InventoryService.get_inventory_by_location(TENANT_ID)}
        assert groups['냉장고']['productCount'] == 2
        assert groups['기타']['items'][0]['productName'] == 'B'

        only_fridge = InventoryService.get_inventory_by_location(TENANT_ID, '냉장고')
        assert [g['location'] for g in only_fridge] == ['냉장고']
