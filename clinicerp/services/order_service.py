from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError, require_tenant
from ..extensions import db
from ..models import Order, OrderItem, Product, Supplier
from ..utils.payload import field, int_field, str_field
from ..utils.timezone_utils import TimezoneUtils
from .product_service import ProductService

logger = logging.getLogger(__name__)

RECEIVABLE_BLOCKED_STATUSES = ('cancelled', 'rejected')
SUPPLIER_STATUSES = ('confirmed', 'rejected', 'shipped')
# supplier updates cannot reopen these
SUPPLIER_LOCKED_STATUSES = ('cancelled', 'completed', 'rejected')


class OrderService:
    """Purchase orders from clinics to suppliers and their inbound receipt."""

    @staticmethod
    def generate_order_no() -> str:
        date_str = TimezoneUtils.clinic_today().strftime('%Y%m%d')
        prefix = f'ORDER-{date_str}-'
        # order_no is globally unique, so the sequence counts every clinic
        count = Order.query.filter(Order.order_no.like(f'{prefix}%')).count()
        return f'{prefix}{count + 1:04d}'

    @staticmethod
    def create_order(
        tenant_id: str,
        supplier_id: Optional[int],
        items: List[Dict[str, Any]],
        memo: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        require_tenant(tenant_id)
        if not items:
            raise ValidationError('Order must have at least one item')

        if supplier_id is not None and db.session.get(Supplier, supplier_id) is None:
            raise NotFoundError('Supplier')

        order = Order(
            tenant_id=tenant_id,
            order_no=OrderService.generate_order_no(),
            supplier_id=supplier_id,
            status='pending',
            memo=memo,
            created_by=created_by,
        )
        for raw in items:
            product_id = int_field(raw, 'product_id', required=True)
            quantity = int_field(raw, 'quantity', required=True)
            if quantity <= 0:
                raise ValidationError(f'Invalid quantity for item: {product_id}')
            product = Product.get_for_tenant(tenant_id, product_id)
            if product is None:
                raise NotFoundError('Product', f'Product not found: {product_id}')
            unit_price = int_field(raw, 'unit_price', product.purchase_price or 0)
            order.items.append(OrderItem(
                tenant_id=tenant_id,
                product_id=product.id,
                quantity=quantity,
                unit_price=unit_price,
                total_price=quantity * unit_price,
                memo=str_field(raw, 'memo'),
            ))
        order.recalculate_total()

        try:
            db.session.add(order)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info('Created order %s for tenant %s', order.order_no, tenant_id)
        return order.to_dict()

    @staticmethod
    def list_orders(
        tenant_id: str,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        require_tenant(tenant_id)
        page = max(1, page or 1)
        limit = max(1, min(limit or 20, 100))

        query = Order.for_tenant(tenant_id)
        if status:
            query = query.filter(Order.status == status)
        if search and search.strip():
            term = f'%{search.strip()}%'
            query = (
                query.outerjoin(Supplier, Order.supplier_id == Supplier.id)
                .filter(or_(Order.order_no.ilike(term), Supplier.company_name.ilike(term)))
            )

        total = query.count()
        orders = (
            query.order_by(Order.order_date.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            'orders': [o.to_dict() for o in orders],
            'total': total,
            'page': page,
            'limit': limit,
            'totalPages': (total + limit - 1) // limit,
        }

    @staticmethod
    def _get_order(tenant_id: str, order_id) -> Order:
        require_tenant(tenant_id)
        order = Order.get_for_tenant(tenant_id, order_id)
        if order is None:
            raise NotFoundError('Order')
        return order

    @staticmethod
    def get_order(tenant_id: str, order_id) -> Dict[str, Any]:
        return OrderService._get_order(tenant_id, order_id).to_dict()

    @staticmethod
    def receive_inbound(
        tenant_id: str,
        order_id,
        items: List[Dict[str, Any]],
        inbound_manager: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Receive delivered stock for an order, creating one batch per received line."""
        order = OrderService._get_order(tenant_id, order_id)
        if order.status in RECEIVABLE_BLOCKED_STATUSES:
            raise ValidationError(f'Order {order.order_no} is {order.status} and cannot be received')
        if not items:
            raise ValidationError('At least one item is required')

        items_by_id = {item.id: item for item in order.items}
        touched_products = {}
        return_lines = []
        received_any = False

        try:
            for raw in items:
                item_id = int_field(raw, 'item_id', required=True)
                order_item = items_by_id.get(item_id)
                if order_item is None:
                    raise NotFoundError('Order item', f'Order item not found: {item_id}')

                inbound_qty = int_field(raw, 'inbound_qty', 0)
                return_qty = int_field(raw, 'return_qty', 0)
                if inbound_qty < 0 or return_qty < 0:
                    raise ValidationError('Quantities cannot be negative')
                if inbound_qty > order_item.remaining_quantity:
                    raise ValidationError(
                        f'Inbound quantity ({inbound_qty}) exceeds remaining quantity '
                        f'({order_item.remaining_quantity}) for item {item_id}'
                    )

                product = order_item.product
                if inbound_qty > 0:
                    ProductService._add_batch(
                        product,
                        {
                            'qty': inbound_qty,
                            'expiry_date': field(raw, 'expiry_date'),
                            'manufacture_date': field(raw, 'manufacture_date'),
                            'storage': field(raw, 'storage'),
                            'batch_no': field(raw, 'batch_no'),
                            'purchase_price': order_item.unit_price,
                            'inbound_manager': inbound_manager,
                        },
                        order_id=order.id,
                    )
                    order_item.received_quantity = (order_item.received_quantity or 0) + inbound_qty
                    received_any = True
                    touched_products[product.id] = product

                if return_qty > 0:
                    return_lines.append({
                        'product_id': product.id,
                        'product_name': product.name,
                        'brand': product.brand,
                        'batch_no': field(raw, 'batch_no'),
                        'return_quantity': return_qty,
                        'total_quantity': order_item.quantity,
                        'unit_price': order_item.unit_price,
                        'memo': str_field(raw, 'return_memo'),
                    })

            for product in touched_products.values():
                product.recalculate_stock()

            if received_any:
                if order.is_fully_received:
                    order.status = 'completed'
                    order.completed_at = TimezoneUtils.utc_now()
                else:
                    order.status = 'partially_received'
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        ProductService.invalidate_cache(tenant_id)
        logger.info('Received inbound for order %s (status=%s)', order.order_no, order.status)

        if return_lines:
            from .order_return_service import OrderReturnService

            try:
                OrderReturnService.create_from_inbound(tenant_id, order.id, order.order_no, return_lines)
            except Exception:
                db.session.rollback()
                logger.exception('Failed to create inbound returns for order %s', order.order_no)

        return order.to_dict()

    @staticmethod
    def cancel_order(tenant_id: str, order_id) -> Dict[str, Any]:
        order = OrderService._get_order(tenant_id, order_id)
        if order.status != 'pending':
            raise ValidationError(f'Only pending orders can be cancelled (current status: {order.status})')
        order.status = 'cancelled'
        db.session.commit()
        return order.to_dict()

    @staticmethod
    def update_from_supplier(payload: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a supplier confirmation, rejection or shipment to an order."""
        order_no = str_field(payload, 'order_no')
        status = str_field(payload, 'status')
        if not order_no or not status:
            raise ValidationError('order_no and status are required')
        if status not in SUPPLIER_STATUSES:
            raise ValidationError(f'Unsupported supplier status: {status}')

        order = Order.query.filter_by(order_no=order_no).first()
        if order is None:
            logger.warning('Supplier update for unknown order %s', order_no)
            return {'success': False, 'message': f'Order not found: {order_no}'}

        if order.status in SUPPLIER_LOCKED_STATUSES:
            raise ConflictError(f'Order {order_no} is {order.status} and cannot be updated by the supplier')
        received = order.status == 'partially_received'
        if received and status == 'rejected':
            raise ConflictError(f'Order {order_no} is already partially received and cannot be rejected')

        items_by_id = {item.id: item for item in order.items}
        updates = []
        for raw in field(payload, 'items') or []:
            item = items_by_id.get(int_field(raw, 'item_id'))
            if item is None:
                continue
            confirmed = int_field(raw, 'confirmed_quantity')
            if confirmed is not None and confirmed < (item.received_quantity or 0):
                raise ValidationError(
                    f'confirmed_quantity ({confirmed}) is below the quantity already received '
                    f'({item.received_quantity or 0}) for item {item.id}'
                )
            updates.append((item, confirmed, int_field(raw, 'unit_price')))

        for item, confirmed, unit_price in updates:
            if confirmed is not None:
                item.confirmed_quantity = confirmed
                item.quantity = confirmed
            if unit_price is not None:
                item.unit_price = unit_price
            item.total_price = item.quantity * item.unit_price
        order.recalculate_total()

        now = TimezoneUtils.utc_now()
        # receiving progress is kept; the supplier milestone is still recorded
        if not received:
            order.status = status
        elif order.is_fully_received:
            order.status = 'completed'
            order.completed_at = now
        if status == 'confirmed':
            order.confirmed_at = now
        elif status == 'shipped':
            order.shipped_at = now
        memo = str_field(payload, 'memo')
        if memo:
            order.supplier_memo = memo

        db.session.commit()
        logger.info('Order %s updated by supplier to %s', order_no, status)
        return {'success': True, 'orderId': order.id, 'status': order.status}
