from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, or_

from ..errors import ConflictError, NotFoundError, ValidationError, require_tenant
from ..extensions import db
from ..models import Batch, OrderReturn, Outbound, Product, Return
from ..utils.payload import bool_field, int_field, str_field
from ..utils.timezone_utils import TimezoneUtils
from .product_service import ProductService, fefo_key

logger = logging.getLogger(__name__)

CANCEL_WINDOW = timedelta(seconds=2)
DEFAULT_OUTBOUND_TYPE = '제품'


class OutboundService:
    """Stock issued out of batches, with FEFO batch suggestions."""

    @staticmethod
    def get_products_for_outbound(tenant_id: str, search: Optional[str] = None) -> List[Dict[str, Any]]:
        products = ProductService.list_products(tenant_id)
        results = []
        term = (search or '').strip().lower()
        for product in products:
            batches = OutboundService._fefo_batches(product['batches'])
            if term:
                matching = [b for b in batches if term in (b['batchNo'] or '').lower()]
                text_match = any(
                    term in (product.get(key) or '').lower() for key in ('name', 'brand', 'barcode')
                )
                if matching:
                    batches = matching
                elif not text_match:
                    continue
            results.append({**product, 'batches': batches})
        return results

    @staticmethod
    def _fefo_batches(batches: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        # cached payloads hold serialized batches
        in_stock = [b for b in batches if (b.get('qty') or 0) > 0]
        return sorted(in_stock, key=lambda b: fefo_key(
            TimezoneUtils.parse_date(b.get('expiryDate')), b.get('qty'), b.get('batchNo'),
        ))

    @staticmethod
    def validate_outbound(batch: Batch, outbound_qty: int) -> None:
        if outbound_qty is None or outbound_qty <= 0:
            raise ValidationError('출고 수량은 0보다 커야 합니다')
        if batch.qty < outbound_qty:
            raise ValidationError(f'재고가 부족합니다. 현재 재고: {batch.qty}, 요청 수량: {outbound_qty}')
        if batch.is_expired:
            raise ValidationError('유효기간이 만료된 제품입니다')

    @staticmethod
    def _load_batch(tenant_id: str, product_id, batch_id) -> Batch:
        batch = Batch.query.filter_by(id=batch_id, product_id=product_id, tenant_id=tenant_id).first()
        if batch is None:
            raise NotFoundError('Batch')
        return batch

    @staticmethod
    def _build_outbound(tenant_id: str, batch: Batch, data: Dict[str, Any], qty: int, when: datetime) -> Outbound:
        manager_name = str_field(data, 'manager_name', required=True)
        return Outbound(
            tenant_id=tenant_id,
            product_id=batch.product_id,
            batch_id=batch.id,
            batch_no=batch.batch_no,
            outbound_qty=qty,
            outbound_type=str_field(data, 'outbound_type', DEFAULT_OUTBOUND_TYPE),
            outbound_date=when,
            manager_name=manager_name,
            patient_name=str_field(data, 'patient_name'),
            chart_number=str_field(data, 'chart_number'),
            memo=str_field(data, 'memo'),
            is_damaged=bool_field(data, 'is_damaged'),
            is_defective=bool_field(data, 'is_defective'),
        )

    @staticmethod
    def create_outbound(tenant_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        require_tenant(tenant_id)
        product_id = int_field(data, 'product_id', required=True)
        batch_id = int_field(data, 'batch_id', required=True)
        qty = int_field(data, 'outbound_qty', required=True)

        batch = OutboundService._load_batch(tenant_id, product_id, batch_id)
        OutboundService.validate_outbound(batch, qty)

        try:
            outbound = OutboundService._build_outbound(tenant_id, batch, data, qty, TimezoneUtils.utc_now())
            db.session.add(outbound)
            batch.qty -= qty
            db.session.flush()
            batch.product.recalculate_stock()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        ProductService.invalidate_cache(tenant_id)
        if outbound.is_defective:
            OutboundService._create_defective_returns(tenant_id, [outbound])
        return outbound.to_dict()

    @staticmethod
    def create_bulk_outbound(tenant_id: str, items: List[Dict[str, Any]], defaults: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Validate every line first, then apply all of them in one transaction."""
        require_tenant(tenant_id)
        if not items:
            raise ValidationError('At least one item is required')
        defaults = defaults or {}

        planned = []
        requested_by_batch: Dict[int, int] = {}
        errors = []
        for index, raw in enumerate(items):
            line = {**defaults, **raw}
            try:
                product_id = int_field(line, 'product_id', required=True)
                batch_id = int_field(line, 'batch_id', required=True)
                qty = int_field(line, 'outbound_qty', required=True)
                str_field(line, 'manager_name', required=True)
                batch = OutboundService._load_batch(tenant_id, product_id, batch_id)
                OutboundService.validate_outbound(batch, qty)
                requested = requested_by_batch.get(batch.id, 0) + qty
                if requested > batch.qty:
                    raise ValidationError(f'재고가 부족합니다. 현재 재고: {batch.qty}, 요청 수량: {requested}')
                requested_by_batch[batch.id] = requested
                planned.append((batch, line, qty))
            except (ValidationError, NotFoundError) as exc:
                errors.append({'index': index, 'message': exc.message})

        if errors:
            raise ValidationError('Outbound validation failed', errors={'items': errors})

        when = TimezoneUtils.utc_now()
        outbounds = []
        try:
            for batch, line, qty in planned:
                outbound = OutboundService._build_outbound(tenant_id, batch, line, qty, when)
                db.session.add(outbound)
                batch.qty -= qty
                outbounds.append(outbound)
            db.session.flush()
            for product in {batch.product for batch, _, _ in planned}:
                product.recalculate_stock()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        ProductService.invalidate_cache(tenant_id)
        defective = [o for o in outbounds if o.is_defective]
        if defective:
            OutboundService._create_defective_returns(tenant_id, defective)

        return {
            'success': True,
            'count': len(outbounds),
            'outbounds': [o.to_dict() for o in outbounds],
        }

    @staticmethod
    def _create_defective_returns(tenant_id: str, outbounds: List[Outbound]) -> None:
        from .order_return_service import OrderReturnService

        for outbound in outbounds:
            product = outbound.product
            try:
                OrderReturnService.create_from_outbound(tenant_id, outbound.id, [{
                    'batch_no': outbound.batch_no,
                    'product_id': outbound.product_id,
                    'product_name': product.name if product else '알 수 없음',
                    'brand': product.brand if product else None,
                    'return_quantity': outbound.outbound_qty,
                    'total_quantity': outbound.outbound_qty,
                    'unit_price': (product.sale_price if product else 0) or 0,
                }])
            except Exception:
                db.session.rollback()
                logger.exception('Failed to create return for defective outbound %s', outbound.id)

    @staticmethod
    def get_outbound_history(tenant_id: str, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        require_tenant(tenant_id)
        filters = filters or {}
        page = max(1, int_field(filters, 'page', 1))
        limit = max(1, min(int_field(filters, 'limit', 20), 100))

        query = Outbound.for_tenant(tenant_id).join(Product, Outbound.product_id == Product.id)

        start = _parse_bound(filters, 'start_date')
        end = _parse_bound(filters, 'end_date', end_of_day=True)
        if start:
            query = query.filter(Outbound.outbound_date >= start)
        if end:
            query = query.filter(Outbound.outbound_date <= end)

        product_id = int_field(filters, 'product_id')
        if product_id:
            query = query.filter(Outbound.product_id == product_id)
        manager_name = str_field(filters, 'manager_name')
        if manager_name:
            query = query.filter(Outbound.manager_name.ilike(f'%{manager_name}%'))
        outbound_type = str_field(filters, 'outbound_type')
        if outbound_type:
            query = query.filter(Outbound.outbound_type == outbound_type)
        search = str_field(filters, 'search')
        if search:
            term = f'%{search}%'
            query = query.filter(or_(
                Product.name.ilike(term),
                Product.brand.ilike(term),
                Outbound.manager_name.ilike(term),
                Outbound.patient_name.ilike(term),
                Outbound.batch_no.ilike(term),
            ))

        total = query.count()
        items = (
            query.order_by(Outbound.outbound_date.desc(), Outbound.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            'items': [o.to_dict() for o in items],
            'total': total,
            'page': page,
            'limit': limit,
            'totalPages': (total + limit - 1) // limit,
        }

    @staticmethod
    def get_outbound(tenant_id: str, outbound_id) -> Dict[str, Any]:
        require_tenant(tenant_id)
        outbound = Outbound.get_for_tenant(tenant_id, outbound_id)
        if outbound is None:
            raise NotFoundError('Outbound')
        data = outbound.to_dict()
        if outbound.batch is not None:
            data['batch'] = outbound.batch.to_dict()
        return data

    @staticmethod
    def cancel_outbound_by_timestamp(tenant_id: str, timestamp: str, manager_name: str) -> Dict[str, Any]:
        """Undo every outbound a manager recorded at ``timestamp`` (two seconds either side)."""
        require_tenant(tenant_id)
        if not manager_name:
            raise ValidationError('managerName is required')
        try:
            target = TimezoneUtils.parse_datetime(timestamp)
        except (TypeError, ValueError):
            raise ValidationError('Invalid timestamp format')
        if target is None:
            raise ValidationError('Invalid timestamp format')

        window = and_(
            Outbound.outbound_date >= target - CANCEL_WINDOW,
            Outbound.outbound_date <= target + CANCEL_WINDOW,
        )
        outbounds = Outbound.for_tenant(tenant_id).filter(Outbound.manager_name == manager_name, window).all()
        if not outbounds:
            raise NotFoundError('Outbound', '출고 내역을 찾을 수 없습니다.')

        outbound_ids = [o.id for o in outbounds]
        if Return.query.filter(Return.outbound_id.in_(outbound_ids)).first():
            raise ConflictError('Returned outbounds cannot be cancelled')
        defect_returns = OrderReturn.query.filter(OrderReturn.outbound_id.in_(outbound_ids)).all()
        if any(r.status != 'pending' for r in defect_returns):
            raise ConflictError('Outbounds with processed defect returns cannot be cancelled')

        try:
            # pending defect returns are withdrawn together with their outbound
            for record in defect_returns:
                db.session.delete(record)
            db.session.flush()
            products = {}
            for outbound in outbounds:
                outbound.batch.qty += outbound.outbound_qty
                products[outbound.product_id] = outbound.product
                db.session.delete(outbound)
            db.session.flush()
            for product in products.values():
                product.recalculate_stock()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        ProductService.invalidate_cache(tenant_id)
        logger.info('Cancelled %d outbound records for %s', len(outbound_ids), manager_name)
        return {
            'success': True,
            'canceledCount': len(outbound_ids),
            'message': f'{len(outbound_ids)}개의 출고 건이 취소되었고 재고가 복원되었습니다.',
        }


def _parse_bound(filters, name, end_of_day: bool = False):
    raw = str_field(filters, name)
    if not raw:
        return None
    try:
        if len(raw) == 10:
            day = TimezoneUtils.parse_date(raw)
            return datetime.combine(day, time.max if end_of_day else time.min)
        return TimezoneUtils.parse_datetime(raw)
    except ValueError:
        raise ValidationError(f'{name} must be an ISO date', errors={name: ['invalid']})
