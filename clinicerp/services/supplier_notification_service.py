"""Tell suppliers about clinic returns: notification rows and the supplier backend API."""

import logging
import random
import time

import requests
from flask import current_app

from ..models import Batch, Clinic, OrderReturn, Return, Supplier, SupplierReturnNotification, db
from ..utils.timezone_utils import TimezoneUtils
from .order_return_service import RETURN_TYPE_DEFECTIVE

logger = logging.getLogger(__name__)

RETURN_NO_ATTEMPTS = 10


def generate_return_number() -> str:
    """``R`` + ``YYYYMMDD`` + six random digits, unique across both return tables."""
    date_str = TimezoneUtils.clinic_today().strftime('%Y%m%d')
    for _ in range(RETURN_NO_ATTEMPTS):
        candidate = f'R{date_str}{random.randint(100000, 999999)}'
        taken = (
            Return.query.filter_by(return_no=candidate).first()
            or OrderReturn.query.filter_by(return_no=candidate).first()
        )
        if not taken:
            return candidate

    logger.warning('Return number space exhausted for %s; using timestamp suffix', date_str)
    return f'R{date_str}{str(int(time.time() * 1000))[-6:]}'


class SupplierNotificationService:

    @staticmethod
    def clinic_name(tenant_id: str, default: str) -> str:
        clinic = Clinic.for_tenant(tenant_id).first()
        return clinic.name if clinic and clinic.name else default

    @staticmethod
    def create_notifications_for_return(return_record: Return, tenant_id: str) -> int:
        """One PENDING notification per active manager of the return's supplier."""
        if not return_record.supplier_id:
            return 0
        supplier = db.session.get(Supplier, return_record.supplier_id)
        if supplier is None:
            logger.warning('Supplier %s not found for return %s', return_record.supplier_id, return_record.id)
            return 0

        managers = supplier.active_managers
        if not managers:
            return 0

        product = return_record.product
        clinic_name = SupplierNotificationService.clinic_name(tenant_id, f'Clinic-{tenant_id}')
        for manager in managers:
            db.session.add(SupplierReturnNotification(
                tenant_id=tenant_id,
                supplier_manager_id=manager.id,
                return_id=return_record.id,
                clinic_name=clinic_name,
                product_id=product.id if product else None,
                product_name=product.name if product else None,
                product_brand=product.brand if product else None,
                product_code=product.barcode if product else None,
                return_qty=return_record.return_qty,
                refund_amount_per_item=return_record.refund_amount,
                total_refund=return_record.total_refund,
                return_manager_name=return_record.manager_name,
                return_date=return_record.return_date,
                batch_no=return_record.batch_no,
                status='PENDING',
                is_read=False,
            ))
        db.session.commit()
        return len(managers)

    @staticmethod
    def build_return_payload(return_record: Return, supplier: Supplier, tenant_id: str, return_no: str) -> dict:
        product = return_record.product
        batch = db.session.get(Batch, return_record.batch_id) if return_record.batch_id else None
        inbound_date = (batch.created_at if batch and batch.created_at else TimezoneUtils.utc_now()).date()
        return {
            'returnNo': return_no,
            'supplierTenantId': supplier.tenant_id,
            'clinicTenantId': tenant_id,
            'clinicName': SupplierNotificationService.clinic_name(tenant_id, '알 수 없음'),
            'clinicManagerName': return_record.manager_name or '',
            'items': [{
                'productName': (product.name if product else '') or '',
                'brand': (product.brand if product else '') or '',
                'quantity': return_record.return_qty,
                'returnType': RETURN_TYPE_DEFECTIVE,
                'memo': return_record.memo or '',
                'images': [],
                'inboundDate': inbound_date.isoformat(),
                'totalPrice': return_record.total_refund or 0,
                'orderNo': None,
                'batchNo': return_record.batch_no,
            }],
            'createdAt': TimezoneUtils.to_iso(return_record.return_date or TimezoneUtils.utc_now()),
        }

    @staticmethod
    def send_return_to_supplier(return_record: Return, tenant_id: str) -> bool:
        """POST the return to the supplier backend; saves the return number on success."""
        if not return_record.supplier_id:
            logger.warning('Return %s has no supplier; skipping supplier notification', return_record.id)
            return False

        supplier = db.session.get(Supplier, return_record.supplier_id)
        if supplier is None or not supplier.tenant_id:
            logger.warning('Supplier %s not found or missing tenant_id', return_record.supplier_id)
            return False

        api_key = current_app.config.get('SUPPLIER_BACKEND_API_KEY')
        if not api_key:
            logger.warning('SUPPLIER_BACKEND_API_KEY not configured, skipping supplier notification')
            return False

        return_no = generate_return_number()
        payload = SupplierNotificationService.build_return_payload(return_record, supplier, tenant_id, return_no)
        base_url = (current_app.config.get('SUPPLIER_BACKEND_URL') or '').rstrip('/')

        try:
            response = requests.post(
                f'{base_url}/supplier/returns',
                json=payload,
                headers={'x-api-key': api_key},
                timeout=current_app.config.get('SUPPLIER_BACKEND_TIMEOUT_SECONDS', 10),
            )
        except requests.RequestException as exc:
            logger.error('Error sending return %s to supplier backend: %s', return_record.id, exc)
            return False

        if not response.ok:
            logger.error('Supplier backend rejected return %s: %s %s',
                         return_record.id, response.status_code, response.text[:500])
            return False

        return_record.return_no = return_no
        db.session.commit()
        logger.info('Return %s sent to supplier backend', return_no)
        return True
