"""Product catalogue, batches and the per-tenant product list cache."""

from __future__ import annotations

import logging
import re
import threading
from datetime import date
from typing import Any, Dict, List, Optional

from flask import current_app

from ..errors import ConflictError, NotFoundError, ValidationError, require_tenant
from ..extensions import db
from ..models import Batch, OrderItem, Outbound, Product, ReturnPolicy, Supplier, SupplierProduct
from ..utils.cache_manager import CacheManager
from ..utils.payload import bool_field, field, has_field, int_field, str_field
from ..utils.timezone_utils import TimezoneUtils

logger = logging.getLogger(__name__)

PRODUCTS_CACHE_EXTENSION = 'products_cache'
BATCH_NO_PREFIX = 'BTX'

_PRODUCT_FIELDS = {
    'name': str,
    'brand': str,
    'barcode': str,
    'category': str,
    'unit': str,
    'status': str,
    'storage': str,
    'image_url': str,
    'min_stock': int,
    'purchase_price': int,
    'sale_price': int,
    'alert_days': int,
    'usage_capacity': int,
    'capacity_per_product': int,
}

_refresh_lock = threading.Lock()
_refreshing: set = set()
# bumped on every invalidation; a load started under an older generation is not cached
_generations: Dict[str, int] = {}


def init_products_cache(app) -> CacheManager:
    """Attach the product list cache to ``app``; one per application."""
    existing = app.extensions.get(PRODUCTS_CACHE_EXTENSION)
    if existing is not None:
        return existing
    products_cache = CacheManager(
        max_size=app.config.get('PRODUCTS_CACHE_MAX_SIZE', 100),
        ttl=app.config.get('PRODUCTS_CACHE_TTL_SECONDS', 5.0),
        cleanup_interval=app.config.get('CACHE_SWEEP_INTERVAL_SECONDS', 60.0),
        name='ProductsService',
        start_sweeper=not app.config.get('TESTING', False),
    )
    app.extensions[PRODUCTS_CACHE_EXTENSION] = products_cache
    return products_cache


def products_cache() -> CacheManager:
    return init_products_cache(current_app._get_current_object())


def fefo_key(expiry_date, qty, batch_no):
    """Earliest expiry first, undated batches last, then smaller qty, then batch number."""
    return (expiry_date is None, expiry_date or date.min, qty or 0, batch_no or '')


def sort_batches_fefo(batches):
    return sorted(batches, key=lambda b: fefo_key(b.expiry_date, b.qty, b.batch_no))


def serialize_product(product: Product, include_batches: bool = True) -> Dict[str, Any]:
    link = product.primary_supplier_link
    supplier = link.supplier if link else None
    policy = product.return_policy
    data = {
        'id': product.id,
        'name': product.name,
        'brand': product.brand,
        'barcode': product.barcode,
        'category': product.category,
        'unit': product.unit,
        'status': product.status,
        'isActive': product.is_active,
        'currentStock': product.current_stock,
        'minStock': product.min_stock,
        'purchasePrice': product.purchase_price,
        'salePrice': product.sale_price,
        'storage': product.storage,
        'alertDays': product.alert_days,
        'imageUrl': product.image_url,
        'usageCapacity': product.usage_capacity,
        'capacityPerProduct': product.capacity_per_product,
        'isLowStock': product.is_low_stock,
        'returnPolicy': policy.to_dict() if policy else None,
        'returnPolicyMemo': policy.note if policy else None,
        'supplierId': supplier.id if supplier else None,
        'supplierName': supplier.company_name if supplier else None,
        'createdAt': TimezoneUtils.to_iso(product.created_at),
        'updatedAt': TimezoneUtils.to_iso(product.updated_at),
    }
    if include_batches:
        data['batches'] = [batch.to_dict() for batch in product.batches]
    return data


class ProductService:
    """Clinic product catalogue with batch (lot) tracking."""

    @staticmethod
    def cache_key(tenant_id: str) -> str:
        return f'products:{tenant_id}'

    @staticmethod
    def invalidate_cache(tenant_id: str) -> int:
        with _refresh_lock:
            _generations[tenant_id] = _generations.get(tenant_id, 0) + 1
        pattern = rf'^products:{re.escape(tenant_id)}(:|$)'
        return products_cache().delete_pattern(pattern)

    @staticmethod
    def list_products(tenant_id: str) -> List[Dict[str, Any]]:
        """Products with batches for a clinic, served stale-while-revalidate."""
        require_tenant(tenant_id)
        key = ProductService.cache_key(tenant_id)
        cached = products_cache().get_with_stale_check(key)
        if cached is not None:
            data, is_stale = cached
            if is_stale:
                ProductService._schedule_refresh(tenant_id)
            return data

        generation = ProductService._generation(tenant_id)
        data = ProductService._load_products(tenant_id)
        ProductService._store_if_current(products_cache(), tenant_id, generation, data)
        return data

    @staticmethod
    def _generation(tenant_id: str) -> int:
        with _refresh_lock:
            return _generations.get(tenant_id, 0)

    @staticmethod
    def _store_if_current(cache: CacheManager, tenant_id: str, generation: int, data) -> bool:
        with _refresh_lock:
            if _generations.get(tenant_id, 0) != generation:
                logger.debug('Discarding product list for tenant %s loaded before an invalidation', tenant_id)
                return False
            cache.set(ProductService.cache_key(tenant_id), data)
            return True

    @staticmethod
    def _load_products(tenant_id: str) -> List[Dict[str, Any]]:
        products = (
            Product.for_tenant(tenant_id)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .all()
        )
        return [serialize_product(p) for p in products]

    @staticmethod
    def _schedule_refresh(tenant_id: str) -> None:
        with _refresh_lock:
            if tenant_id in _refreshing:
                return
            _refreshing.add(tenant_id)

        app = current_app._get_current_object()
        thread = threading.Thread(
            target=ProductService._refresh_in_background,
            args=(app, tenant_id),
            name=f'products-refresh-{tenant_id}',
            daemon=True,
        )
        thread.start()

    @staticmethod
    def _refresh_in_background(app, tenant_id: str) -> None:
        try:
            with app.app_context():
                generation = ProductService._generation(tenant_id)
                data = ProductService._load_products(tenant_id)
                ProductService._store_if_current(init_products_cache(app), tenant_id, generation, data)
                db.session.remove()
        except Exception:
            logger.exception('Background refresh of products for tenant %s failed', tenant_id)
        finally:
            with _refresh_lock:
                _refreshing.discard(tenant_id)

    @staticmethod
    def get_product_or_404(tenant_id: str, product_id) -> Product:
        require_tenant(tenant_id)
        product = Product.get_for_tenant(tenant_id, product_id)
        if product is None:
            raise NotFoundError('Product')
        return product

    @staticmethod
    def get_product(tenant_id: str, product_id) -> Dict[str, Any]:
        product = ProductService.get_product_or_404(tenant_id, product_id)
        data = serialize_product(product, include_batches=False)
        data['batches'] = [b.to_dict() for b in sort_batches_fefo(product.batches)]
        return data

    @staticmethod
    def find_by_barcode(tenant_id: str, barcode: str) -> Optional[Dict[str, Any]]:
        require_tenant(tenant_id)
        if not barcode or not barcode.strip():
            raise ValidationError('Barcode is required')
        product = Product.for_tenant(tenant_id).filter_by(barcode=barcode.strip()).first()
        if product is None:
            return None
        return serialize_product(product)

    @staticmethod
    def create_product(tenant_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a product with its optional initial batch, return policy and supplier link."""
        require_tenant(tenant_id)
        name = str_field(data, 'name', required=True)
        barcode = str_field(data, 'barcode')
        if barcode and Product.for_tenant(tenant_id).filter_by(barcode=barcode).first():
            raise ConflictError(f'Product with barcode {barcode} already exists')

        supplier_id = int_field(data, 'supplier_id')
        supplier = None
        if supplier_id is not None:
            supplier = db.session.get(Supplier, supplier_id)
            if supplier is None:
                raise NotFoundError('Supplier')

        try:
            product = Product(tenant_id=tenant_id, name=name)
            ProductService._apply_fields(product, data)
            product.barcode = barcode
            db.session.add(product)
            db.session.flush()

            ProductService._apply_return_policy(product, field(data, 'return_policy'))

            if supplier is not None:
                db.session.add(SupplierProduct(
                    tenant_id=tenant_id,
                    product_id=product.id,
                    supplier_id=supplier.id,
                    purchase_price=product.purchase_price,
                ))

            initial_stock = int_field(data, 'initial_stock', int_field(data, 'current_stock', 0))
            if initial_stock and initial_stock < 0:
                raise ValidationError('Initial stock cannot be negative')
            if initial_stock:
                batch_data = dict(field(data, 'batch') or {})
                batch_data.setdefault('qty', initial_stock)
                for key in ('expiry_date', 'storage', 'manufacture_date'):
                    if not has_field(batch_data, key) and has_field(data, key):
                        batch_data[key] = field(data, key)
                ProductService._add_batch(product, batch_data)

            product.recalculate_stock()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        ProductService.invalidate_cache(tenant_id)
        logger.info('Created product %s (%s) for tenant %s', product.id, product.name, tenant_id)
        return ProductService.get_product(tenant_id, product.id)

    @staticmethod
    def update_product(tenant_id: str, product_id, data: Dict[str, Any]) -> Dict[str, Any]:
        product = ProductService.get_product_or_404(tenant_id, product_id)

        barcode = str_field(data, 'barcode')
        if barcode and barcode != product.barcode:
            clash = (
                Product.for_tenant(tenant_id)
                .filter(Product.barcode == barcode, Product.id != product.id)
                .first()
            )
            if clash:
                raise ConflictError(f'Product with barcode {barcode} already exists')

        try:
            ProductService._apply_fields(product, data)
            if has_field(data, 'is_active'):
                product.is_active = bool_field(data, 'is_active', True)
            if has_field(data, 'return_policy'):
                ProductService._apply_return_policy(product, field(data, 'return_policy'))

            supplier_id = int_field(data, 'supplier_id')
            if supplier_id is not None:
                link = product.primary_supplier_link
                if link is None or link.supplier_id != supplier_id:
                    if db.session.get(Supplier, supplier_id) is None:
                        raise NotFoundError('Supplier')
                    db.session.add(SupplierProduct(
                        tenant_id=tenant_id,
                        product_id=product.id,
                        supplier_id=supplier_id,
                        purchase_price=product.purchase_price,
                    ))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        ProductService.invalidate_cache(tenant_id)
        return ProductService.get_product(tenant_id, product.id)

    @staticmethod
    def delete_product(tenant_id: str, product_id) -> Dict[str, Any]:
        product = ProductService.get_product_or_404(tenant_id, product_id)
        has_outbounds = Outbound.for_tenant(tenant_id).filter_by(product_id=product.id).first()
        if has_outbounds:
            raise ConflictError('Product has outbound history and cannot be deleted')
        if OrderItem.for_tenant(tenant_id).filter_by(product_id=product.id).first():
            raise ConflictError('Product has order history and cannot be deleted')

        # batches, return policy and supplier links cascade with the product
        db.session.delete(product)
        db.session.commit()
        ProductService.invalidate_cache(tenant_id)
        logger.info('Deleted product %s for tenant %s', product_id, tenant_id)
        return {'success': True}

    @staticmethod
    def get_product_batches(tenant_id: str, product_id) -> List[Dict[str, Any]]:
        product = ProductService.get_product_or_404(tenant_id, product_id)
        return [batch.to_dict() for batch in sort_batches_fefo(product.batches)]

    @staticmethod
    def create_batch(tenant_id: str, product_id, data: Dict[str, Any]) -> Dict[str, Any]:
        product = ProductService.get_product_or_404(tenant_id, product_id)
        try:
            batch = ProductService._add_batch(product, data)
            product.recalculate_stock()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        ProductService.invalidate_cache(tenant_id)
        return batch.to_dict()

    @staticmethod
    def next_batch_no(product: Product) -> str:
        count = Batch.query.filter_by(product_id=product.id, tenant_id=product.tenant_id).count()
        return f'{BATCH_NO_PREFIX}-{count + 1:03d}'

    @staticmethod
    def get_storages(tenant_id: str) -> List[str]:
        require_tenant(tenant_id)
        key = f'{ProductService.cache_key(tenant_id)}:storages'
        cached = products_cache().get(key)
        if cached is not None:
            return cached

        product_storages = db.session.query(Product.storage).filter(
            Product.tenant_id == tenant_id, Product.storage.isnot(None)
        ).distinct()
        batch_storages = db.session.query(Batch.storage).filter(
            Batch.tenant_id == tenant_id, Batch.storage.isnot(None)
        ).distinct()
        storages = {row[0].strip() for row in product_storages if row[0] and row[0].strip()}
        storages.update(row[0].strip() for row in batch_storages if row[0] and row[0].strip())

        result = sorted(storages)
        products_cache().set(key, result)
        return result

    @staticmethod
    def _apply_fields(product: Product, data: Dict[str, Any]) -> None:
        for name, kind in _PRODUCT_FIELDS.items():
            if not has_field(data, name):
                continue
            if kind is int:
                value = int_field(data, name)
                if value is not None and value < 0:
                    raise ValidationError(f'{name} cannot be negative', errors={name: ['negative']})
            else:
                value = str_field(data, name)
            if name == 'name' and not value:
                raise ValidationError('name is required', errors={'name': ['required']})
            setattr(product, name, value)

    @staticmethod
    def _apply_return_policy(product: Product, policy_data) -> None:
        if not policy_data:
            return
        policy = product.return_policy
        if policy is None:
            policy = ReturnPolicy(tenant_id=product.tenant_id, product_id=product.id)
            product.return_policy = policy
        policy.is_returnable = bool_field(policy_data, 'is_returnable', policy.is_returnable or False)
        refund_amount = int_field(policy_data, 'refund_amount', policy.refund_amount or 0)
        if refund_amount < 0:
            raise ValidationError('refund_amount cannot be negative')
        policy.refund_amount = refund_amount
        if has_field(policy_data, 'return_storage'):
            policy.return_storage = str_field(policy_data, 'return_storage')
        if has_field(policy_data, 'note'):
            policy.note = str_field(policy_data, 'note')

    @staticmethod
    def _add_batch(product: Product, data: Dict[str, Any], **extra) -> Batch:
        qty = int_field(data, 'qty', int_field(data, 'inbound_qty'), required=False)
        if qty is None or qty <= 0:
            raise ValidationError('Batch quantity must be greater than 0', errors={'qty': ['invalid']})

        batch = Batch(
            tenant_id=product.tenant_id,
            product_id=product.id,
            batch_no=str_field(data, 'batch_no') or ProductService.next_batch_no(product),
            qty=qty,
            inbound_qty=qty,
            unit=str_field(data, 'unit', product.unit),
            storage=str_field(data, 'storage', product.storage),
            purchase_price=int_field(data, 'purchase_price', product.purchase_price),
            sale_price=int_field(data, 'sale_price', product.sale_price),
            manufacture_date=_parse_date_field(data, 'manufacture_date'),
            expiry_date=_parse_date_field(data, 'expiry_date'),
            expiry_months=int_field(data, 'expiry_months'),
            expiry_unit=str_field(data, 'expiry_unit'),
            alert_days=int_field(data, 'alert_days', product.alert_days),
            used_count=int_field(data, 'used_count', 0),
            inbound_manager=str_field(data, 'inbound_manager'),
            **extra,
        )
        product.batches.append(batch)
        db.session.flush()
        return batch


def _parse_date_field(data, name):
    try:
        return TimezoneUtils.parse_date(field(data, name))
    except ValueError:
        raise ValidationError(f'{name} must be an ISO date', errors={name: ['invalid']})
