"""Dashboard figures computed from batches, outbounds and order items."""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from ..errors import require_tenant
from ..extensions import db
from ..models import Batch, Order, OrderItem, Outbound, Product
from ..utils.timezone_utils import TimezoneUtils

logger = logging.getLogger(__name__)

DEFAULT_UNIT = '개'
DEFAULT_LOCATION = '기타'
DEFAULT_ALERT_DAYS = 30


def _inbound_total(tenant_id: str, start: Optional[datetime], end: Optional[datetime]) -> int:
    query = db.session.query(func.coalesce(func.sum(func.coalesce(Batch.inbound_qty, Batch.qty)), 0)).filter(
        Batch.tenant_id == tenant_id,
    )
    if start:
        query = query.filter(Batch.created_at >= start)
    if end:
        query = query.filter(Batch.created_at <= end)
    return int(query.scalar() or 0)


def _outbound_total(tenant_id: str, start: Optional[datetime], end: Optional[datetime]) -> int:
    query = db.session.query(func.coalesce(func.sum(Outbound.outbound_qty), 0)).filter(
        Outbound.tenant_id == tenant_id,
    )
    if start:
        query = query.filter(Outbound.outbound_date >= start)
    if end:
        query = query.filter(Outbound.outbound_date <= end)
    return int(query.scalar() or 0)


class InventoryService:

    @staticmethod
    def get_summary(tenant_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
        """Inbound and outbound totals, compared with the period of equal length just before ``start``."""
        require_tenant(tenant_id)

        previous_start = previous_end = None
        if start and end:
            period_days = math.ceil((end - start).total_seconds() / 86400)
            previous_end = start - timedelta(days=1)
            previous_start = previous_end - timedelta(days=period_days)

        inbound = _inbound_total(tenant_id, start, end)
        outbound = _outbound_total(tenant_id, start, end)
        previous_inbound = previous_outbound = 0
        if previous_start and previous_end:
            previous_inbound = _inbound_total(tenant_id, previous_start, previous_end)
            previous_outbound = _outbound_total(tenant_id, previous_start, previous_end)

        return {
            'inbound': {
                'total': inbound,
                'previous': previous_inbound,
                'change': inbound - previous_inbound,
            },
            'outbound': {
                'total': outbound,
                'previous': previous_outbound,
                'change': outbound - previous_outbound,
            },
            'lastUpdated': TimezoneUtils.to_iso(TimezoneUtils.utc_now()),
        }

    @staticmethod
    def get_risky_inventory(tenant_id: str) -> List[Dict[str, Any]]:
        require_tenant(tenant_id)
        today = TimezoneUtils.clinic_today()

        batches = (
            Batch.for_tenant(tenant_id)
            .join(Product, Batch.product_id == Product.id)
            .filter(Product.is_active.is_(True), Batch.qty > 0, Batch.expiry_date.isnot(None))
            .order_by(Batch.expiry_date.asc())
            .all()
        )

        risky = []
        for batch in batches:
            product = batch.product
            days_left = (batch.expiry_date - today).days
            alert_days = product.alert_days or batch.alert_days or DEFAULT_ALERT_DAYS
            if days_left < 0 or days_left > alert_days:
                continue
            total_stock = product.current_stock or 0
            usage_rate = round((total_stock - batch.qty) / total_stock * 100) if total_stock > 0 else 0
            risky.append({
                'productId': product.id,
                'productName': product.name,
                'batchNo': batch.batch_no,
                'remainingQty': batch.qty,
                'unit': product.unit or DEFAULT_UNIT,
                'daysUntilExpiry': days_left,
                'usageRate': usage_rate,
            })

        risky.sort(key=lambda item: item['daysUntilExpiry'])
        return risky

    @staticmethod
    def get_depletion_list(tenant_id: str) -> List[Dict[str, Any]]:
        """Products at or below their minimum stock, soonest stockout first."""
        require_tenant(tenant_id)
        week_ago = TimezoneUtils.utc_now() - timedelta(days=7)

        products = (
            Product.for_tenant(tenant_id)
            .filter(Product.is_active.is_(True), Product.min_stock > 0)
            .filter(Product.current_stock <= Product.min_stock)
            .all()
        )

        items = []
        for product in products:
            last_item = (
                OrderItem.query.join(Order, OrderItem.order_id == Order.id)
                .filter(OrderItem.tenant_id == tenant_id, OrderItem.product_id == product.id)
                .order_by(Order.order_date.desc(), OrderItem.id.desc())
                .first()
            )
            weekly_outbound = int(
                db.session.query(func.coalesce(func.sum(Outbound.outbound_qty), 0))
                .filter(
                    Outbound.tenant_id == tenant_id,
                    Outbound.product_id == product.id,
                    Outbound.outbound_date >= week_ago,
                )
                .scalar() or 0
            )
            weeks_left = round(product.current_stock / weekly_outbound, 1) if weekly_outbound > 0 else None
            items.append({
                'productId': product.id,
                'productName': product.name,
                'currentStock': product.current_stock,
                'unit': product.unit or DEFAULT_UNIT,
                'minStock': product.min_stock,
                'lastOrderQty': last_item.quantity if last_item else 0,
                'weeklyOutbound': weekly_outbound,
                'estimatedWeeks': weeks_left,
            })

        items.sort(key=lambda item: item['estimatedWeeks'] if item['estimatedWeeks'] is not None else 999)
        return items

    @staticmethod
    def get_top_value_products(tenant_id: str, limit: int = 8) -> List[Dict[str, Any]]:
        require_tenant(tenant_id)
        limit = max(1, limit or 8)

        products = (
            Product.for_tenant(tenant_id)
            .filter(Product.is_active.is_(True), Product.current_stock > 0)
            .all()
        )
        ranked = []
        for product in products:
            unit_value = product.sale_price or product.purchase_price or 0
            total_value = product.current_stock * unit_value
            if total_value <= 0:
                continue
            ranked.append({
                'productId': product.id,
                'productName': product.name,
                'category': product.category,
                'imageUrl': product.image_url,
                'quantity': product.current_stock,
                'unit': product.unit or DEFAULT_UNIT,
                'totalValue': total_value,
                'unitValue': unit_value,
            })

        ranked.sort(key=lambda item: item['totalValue'], reverse=True)
        return ranked[:limit]

    @staticmethod
    def get_inventory_by_location(tenant_id: str, location: Optional[str] = None) -> List[Dict[str, Any]]:
        require_tenant(tenant_id)
        query = Batch.for_tenant(tenant_id).filter(Batch.qty > 0)
        if location:
            query = query.filter(Batch.storage == location)

        grouped: Dict[str, List[Dict[str, Any]]] = OrderedDict()
        for batch in query.order_by(Batch.storage.asc(), Batch.id.asc()).all():
            product = batch.product
            grouped.setdefault(batch.storage or DEFAULT_LOCATION, []).append({
                'productId': batch.product_id,
                'productName': product.name if product else 'Unknown',
                'batchNo': batch.batch_no,
                'quantity': batch.qty,
                'unit': (product.unit if product else None) or DEFAULT_UNIT,
            })

        return [
            {'location': name, 'productCount': len(items), 'items': items}
            for name, items in grouped.items()
        ]
