"""Returns of issued stock back to the supplier.

A return is always tied to an earlier outbound. The returnable quantity of an
outbound is its quantity minus everything already returned against it.
Products tracked per dose (``capacity_per_product``) additionally report
empty boxes: ``floor(used_count / capacity_per_product)`` of the newest batch
minus the boxes already returned, which are recognised by their memo.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_

from ..errors import NotFoundError, ServiceError, ValidationError, require_tenant
from ..extensions import db
from ..models import EMPTY_BOX_MEMO, Batch, Outbound, Product, Return, ReturnPolicy, SupplierReturnNotification
from ..utils.payload import int_field
from ..utils.timezone_utils import TimezoneUtils
from .supplier_notification_service import SupplierNotificationService

logger = logging.getLogger(__name__)


def _empty_boxes(product: Product, used_count: int, returned_boxes: int) -> Optional[int]:
    if not (product.usage_capacity and product.usage_capacity > 0
            and product.capacity_per_product and product.capacity_per_product > 0):
        return None
    return max(0, (used_count or 0) // product.capacity_per_product - returned_boxes)


class ReturnService:

    @staticmethod
    def returned_qty_for_outbound(tenant_id: str, outbound_id) -> int:
        total = db.session.query(func.coalesce(func.sum(Return.return_qty), 0)).filter(
            Return.tenant_id == tenant_id,
            Return.outbound_id == outbound_id,
        ).scalar()
        return int(total or 0)

    @staticmethod
    def returned_empty_boxes(tenant_id: str, product_id) -> int:
        total = db.session.query(func.coalesce(func.sum(Return.return_qty), 0)).filter(
            Return.tenant_id == tenant_id,
            Return.product_id == product_id,
            Return.memo.contains(EMPTY_BOX_MEMO),
        ).scalar()
        return int(total or 0)

    @staticmethod
    def get_available_products(tenant_id: str, search: Optional[str] = None) -> List[Dict[str, Any]]:
        require_tenant(tenant_id)

        returned_by_product = defaultdict(int)
        returned_by_outbound = defaultdict(int)
        empty_boxes_by_product = defaultdict(int)
        for ret in Return.for_tenant(tenant_id).all():
            returned_by_product[ret.product_id] += ret.return_qty or 0
            if ret.is_empty_box:
                empty_boxes_by_product[ret.product_id] += ret.return_qty or 0
            if ret.outbound_id:
                returned_by_outbound[ret.outbound_id] += ret.return_qty or 0

        outbounds_by_product = defaultdict(list)
        for outbound in Outbound.for_tenant(tenant_id).order_by(Outbound.outbound_date.desc()).all():
            outbounds_by_product[outbound.product_id].append(outbound)

        products = (
            Product.for_tenant(tenant_id)
            .outerjoin(ReturnPolicy, ReturnPolicy.product_id == Product.id)
            .filter(or_(ReturnPolicy.id.is_(None), ReturnPolicy.is_returnable.is_(True)))
            .order_by(Product.name)
            .all()
        )

        term = (search or '').strip().lower()
        available = []
        for product in products:
            outbounds = outbounds_by_product.get(product.id, [])
            total_outbound = sum(o.outbound_qty or 0 for o in outbounds)
            unreturned_qty = total_outbound - returned_by_product.get(product.id, 0)

            latest_batch = product.batches[0] if product.batches else None
            empty_boxes = _empty_boxes(
                product,
                latest_batch.used_count if latest_batch else 0,
                empty_boxes_by_product.get(product.id, 0),
            )

            if unreturned_qty <= 0 and not empty_boxes:
                continue

            batch_details = []
            for outbound in outbounds:
                returned = returned_by_outbound.get(outbound.id, 0)
                batch_details.append({
                    'batchId': outbound.batch_id,
                    'batchNo': outbound.batch_no,
                    'outboundId': outbound.id,
                    'outboundQty': outbound.outbound_qty,
                    'returnedQty': returned,
                    'availableQty': max(0, outbound.outbound_qty - returned),
                    'outboundDate': TimezoneUtils.to_iso(outbound.outbound_date),
                    'managerName': outbound.manager_name,
                })

            if term:
                name_match = term in (product.name or '').lower()
                brand_match = term in (product.brand or '').lower()
                batch_match = any(term in (b['batchNo'] or '').lower() for b in batch_details)
                if not (name_match or brand_match or batch_match):
                    continue

            link = product.primary_supplier_link
            policy = product.return_policy
            available.append({
                'productId': product.id,
                'productName': product.name,
                'brand': product.brand,
                'unit': product.unit,
                'supplierId': link.supplier_id if link else None,
                'supplierName': link.supplier.company_name if link and link.supplier else None,
                'storageLocation': latest_batch.storage if latest_batch else None,
                'unreturnedQty': unreturned_qty,
                'emptyBoxes': empty_boxes,
                'refundAmount': policy.refund_amount if policy else 0,
                'batches': [b for b in batch_details if b['availableQty'] > 0],
            })
        return available

    @staticmethod
    def process_return(
        tenant_id: str,
        manager_name: Optional[str],
        memo: Optional[str],
        items: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Record returns in one transaction, then notify suppliers.

        Invalid lines are reported in ``errors`` and skipped; the call fails only
        when no line could be recorded.
        """
        require_tenant(tenant_id)
        if not items:
            raise ValidationError('Return items are required')

        created: List[Return] = []
        errors: List[str] = []
        try:
            for raw in items:
                try:
                    created.append(ReturnService._record_item(tenant_id, manager_name, memo, raw))
                except ServiceError as exc:
                    errors.append(exc.message)

            if not created:
                raise ValidationError(f"Failed to process returns: {', '.join(errors)}",
                                      errors={'items': errors})
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info('Recorded %d returns for tenant %s (%d rejected)', len(created), tenant_id, len(errors))

        for record in created:
            try:
                SupplierNotificationService.create_notifications_for_return(record, tenant_id)
            except Exception:
                db.session.rollback()
                logger.exception('Failed to create supplier notifications for return %s', record.id)

            if record.supplier_id:
                try:
                    SupplierNotificationService.send_return_to_supplier(record, tenant_id)
                except Exception:
                    db.session.rollback()
                    logger.exception('Failed to send return %s to supplier backend', record.id)

        return {
            'success': True,
            'returns': [r.to_dict() for r in created],
            'errors': errors or None,
        }

    @staticmethod
    def _record_item(tenant_id: str, manager_name, memo, raw: Dict[str, Any]) -> Return:
        product_id = int_field(raw, 'product_id', required=True)
        batch_id = int_field(raw, 'batch_id', required=True)
        outbound_id = int_field(raw, 'outbound_id', required=True)
        return_qty = int_field(raw, 'return_qty', required=True)
        if return_qty < 1:
            raise ValidationError(f'Return quantity must be at least 1 for product: {product_id}')

        product = Product.get_for_tenant(tenant_id, product_id)
        if product is None:
            raise NotFoundError('Product', f'Product not found: {product_id}')

        policy = product.return_policy
        if policy is None or not policy.is_returnable:
            raise ValidationError(f'Product is not returnable: {product.name or product_id}')

        outbound = Outbound.query.filter_by(id=outbound_id, tenant_id=tenant_id, product_id=product.id).first()
        if outbound is None:
            raise NotFoundError('Outbound', f'Outbound not found: {outbound_id}')

        batch = Batch.query.filter_by(id=batch_id, tenant_id=tenant_id, product_id=product.id).first()
        if batch is None:
            raise NotFoundError('Batch', f'Batch not found: {batch_id}')

        # earlier lines of this request are flushed, so they count here too
        available_qty = outbound.outbound_qty - ReturnService.returned_qty_for_outbound(tenant_id, outbound.id)
        if return_qty > available_qty:
            raise ValidationError(
                f'Return quantity ({return_qty}) exceeds available quantity ({available_qty}) '
                f'for product: {product.name}'
            )

        line_memo = memo or ''
        empty_boxes = _empty_boxes(product, batch.used_count, ReturnService.returned_empty_boxes(tenant_id, product.id))
        if empty_boxes and return_qty <= empty_boxes:
            line_memo = EMPTY_BOX_MEMO

        link = product.primary_supplier_link
        refund_amount = policy.refund_amount or 0
        record = Return(
            tenant_id=tenant_id,
            product_id=product.id,
            batch_id=batch.id,
            outbound_id=outbound.id,
            batch_no=batch.batch_no,
            supplier_id=link.supplier_id if link else None,
            return_qty=return_qty,
            refund_amount=refund_amount,
            total_refund=return_qty * refund_amount,
            manager_name=manager_name,
            memo=line_memo,
            return_date=TimezoneUtils.utc_now(),
        )
        db.session.add(record)
        db.session.flush()
        return record

    @staticmethod
    def get_return_history(
        tenant_id: str,
        product_id=None,
        start_date=None,
        end_date=None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        require_tenant(tenant_id)
        page = max(1, page or 1)
        limit = max(1, min(limit or 10, 100))

        query = Return.for_tenant(tenant_id)
        if product_id:
            query = query.filter(Return.product_id == product_id)
        if start_date:
            query = query.filter(Return.return_date >= start_date)
        if end_date:
            query = query.filter(Return.return_date <= end_date)

        total = query.count()
        records = (
            query.order_by(Return.return_date.desc(), Return.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            'items': [r.to_dict() for r in records],
            'total': total,
            'page': page,
            'limit': limit,
            'totalPages': (total + limit - 1) // limit,
        }

    @staticmethod
    def handle_return_accept(return_no: Optional[str], status: Optional[str] = None) -> Dict[str, Any]:
        logger.info('Received return accept webhook: return_no=%s, status=%s', return_no, status)
        if not return_no:
            raise ValidationError('return_no is required')

        record = Return.query.filter_by(return_no=return_no).first()
        if record is None:
            logger.warning('Return not found for return_no: %s', return_no)
            return {'success': False, 'message': f'Return not found for return_no: {return_no}'}

        now = TimezoneUtils.utc_now()
        updated = SupplierReturnNotification.query.filter_by(return_id=record.id, status='PENDING').update(
            {'status': 'ACCEPTED', 'accepted_at': now, 'updated_at': now},
            synchronize_session=False,
        )
        db.session.commit()
        logger.info('Return %s accepted; %d notifications updated', return_no, updated)
        return {'success': True, 'message': 'Return accept webhook processed'}
