from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError, ValidationError, require_tenant
from ..extensions import db
from ..models import Order, OrderReturn, Product, Supplier
from ..utils.payload import int_field, str_field

logger = logging.getLogger(__name__)

UNKNOWN_SUPPLIER = '알 수 없음'
RETURN_TYPE_ORDER = '주문|반품'
RETURN_TYPE_DEFECTIVE = '불량|반품'


class OrderReturnService:
    """Returns raised against an order at inbound, or from a defective outbound."""

    @staticmethod
    def get_returns(tenant_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        require_tenant(tenant_id)
        query = OrderReturn.for_tenant(tenant_id)
        if status:
            query = query.filter(OrderReturn.status == status)
        returns = query.order_by(OrderReturn.created_at.desc(), OrderReturn.id.desc()).all()

        results = []
        for record in returns:
            data = record.to_dict()
            supplier = record.supplier
            managers = supplier.active_managers if supplier else []
            data['supplierName'] = OrderReturnService.supplier_name(supplier)
            data['managerName'] = managers[0].name if managers else None
            results.append(data)
        return results

    @staticmethod
    def create_from_inbound(tenant_id: str, order_id, order_no: Optional[str], items) -> Dict[str, Any]:
        require_tenant(tenant_id)
        if not items:
            return {'message': 'No returns to create'}
        if not order_id or not order_no:
            raise ValidationError('orderId and orderNo are required')

        order = Order.get_for_tenant(tenant_id, order_id)
        supplier_id = order.supplier_id if order else None
        returns = OrderReturnService._create_returns(
            tenant_id,
            items,
            return_type=RETURN_TYPE_ORDER,
            supplier_id=supplier_id,
            order_id=order_id,
            order_no=order_no,
        )
        return {'created': len(returns), 'returns': [r.to_dict() for r in returns]}

    @staticmethod
    def create_from_outbound(tenant_id: str, outbound_id, items) -> Dict[str, Any]:
        require_tenant(tenant_id)
        if not items:
            return {'message': 'No returns to create'}
        if not outbound_id:
            raise ValidationError('outboundId is required')

        returns = OrderReturnService._create_returns(
            tenant_id,
            items,
            return_type=RETURN_TYPE_DEFECTIVE,
            supplier_id=None,
            outbound_id=outbound_id,
        )
        return {'created': len(returns), 'returns': [r.to_dict() for r in returns]}

    @staticmethod
    def _create_returns(tenant_id, items, *, return_type, supplier_id, **links) -> List[OrderReturn]:
        returns = []
        try:
            for raw in items:
                product_id = int_field(raw, 'product_id')
                item_supplier_id = supplier_id
                if item_supplier_id is None and product_id is not None:
                    item_supplier_id = OrderReturnService._product_supplier_id(tenant_id, product_id)
                record = OrderReturn(
                    tenant_id=tenant_id,
                    batch_no=str_field(raw, 'batch_no'),
                    product_id=product_id,
                    product_name=str_field(raw, 'product_name'),
                    brand=str_field(raw, 'brand'),
                    return_quantity=int_field(raw, 'return_quantity', 0),
                    total_quantity=int_field(raw, 'total_quantity', 0),
                    unit_price=int_field(raw, 'unit_price', 0),
                    memo=str_field(raw, 'memo'),
                    return_type=return_type,
                    status='pending',
                    supplier_id=item_supplier_id,
                    images=[],
                    **links,
                )
                db.session.add(record)
                returns.append(record)
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            logger.error('Error creating returns: %s', exc)
            raise ValidationError(f'Failed to create returns: {exc}')
        return returns

    @staticmethod
    def _product_supplier_id(tenant_id: str, product_id) -> Optional[int]:
        product = Product.get_for_tenant(tenant_id, product_id)
        link = product.primary_supplier_link if product else None
        return link.supplier_id if link else None

    @staticmethod
    def process_return(
        tenant_id: str,
        return_id,
        return_manager: Optional[str] = None,
        memo: Optional[str] = None,
        images: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        require_tenant(tenant_id)
        record = OrderReturn.get_for_tenant(tenant_id, return_id)
        if record is None:
            raise NotFoundError('Return')

        record.status = 'completed'
        record.return_manager = return_manager or None
        record.memo = memo or None
        record.images = list(images or [])
        db.session.commit()
        return record.to_dict()

    @staticmethod
    def supplier_name(supplier: Optional[Supplier]) -> str:
        return (supplier.company_name if supplier else None) or UNKNOWN_SUPPLIER
