from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Supplier, SupplierManager
from ..utils.payload import str_field
from ..utils.string_normalizer import fuzzy_match_clinic_name, normalize_business_number

logger = logging.getLogger(__name__)

BUSINESS_NUMBER_RE = re.compile(r'^\d{3}-?\d{2}-?\d{5}$')
PHONE_NUMBER_RE = re.compile(r'^01[016789]-?\d{3,4}-?\d{4}$')


class SupplierService:
    """Supplier directory shared by every clinic."""

    @staticmethod
    def search_suppliers(query: Optional[str] = None, business_number: Optional[str] = None) -> List[Dict[str, Any]]:
        query = (query or '').strip()
        number = normalize_business_number(business_number)
        if not query and not number:
            raise ValidationError('회사명 또는 사업자 등록번호 중 하나는 필수입니다')

        matches = []
        for supplier in Supplier.query.filter_by(status='ACTIVE').order_by(Supplier.company_name).all():
            if number and normalize_business_number(supplier.business_number) == number:
                matches.append(supplier)
            elif query and (
                query.lower() in (supplier.company_name or '').lower()
                or fuzzy_match_clinic_name(query, supplier.company_name)
            ):
                matches.append(supplier)
        return [s.to_dict() for s in matches]

    @staticmethod
    def create_supplier(data: Dict[str, Any]) -> Dict[str, Any]:
        company_name = str_field(data, 'company_name', required=True)
        business_number = str_field(data, 'business_number', required=True)
        if not BUSINESS_NUMBER_RE.match(business_number):
            raise ValidationError(
                '사업자 등록번호 형식이 올바르지 않습니다 (예: 123-45-67890)',
                errors={'businessNumber': ['invalid']},
            )

        normalized = normalize_business_number(business_number)
        for existing in Supplier.query.filter(Supplier.business_number.isnot(None)).all():
            if normalize_business_number(existing.business_number) == normalized:
                raise ConflictError(f'Supplier with business number {business_number} already exists')

        manager_name = str_field(data, 'manager_name')
        phone_number = str_field(data, 'phone_number')
        if phone_number and not PHONE_NUMBER_RE.match(phone_number):
            raise ValidationError(
                '휴대폰 번호 형식이 올바르지 않습니다 (예: 01012345678)',
                errors={'phoneNumber': ['invalid']},
            )

        supplier = Supplier(
            company_name=company_name,
            business_number=business_number,
            company_phone=str_field(data, 'company_phone'),
            company_email=str_field(data, 'company_email'),
            company_address=str_field(data, 'company_address'),
            product_categories=str_field(data, 'product_categories'),
            tenant_id=str_field(data, 'tenant_id'),
        )
        if manager_name:
            supplier.managers.append(SupplierManager(
                name=manager_name,
                phone_number=phone_number,
                email=str_field(data, 'manager_email'),
                position=str_field(data, 'position'),
            ))

        try:
            db.session.add(supplier)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info('Created supplier %s (%s)', supplier.id, company_name)
        return supplier.to_dict()

    @staticmethod
    def list_suppliers(status: Optional[str] = 'ACTIVE') -> List[Dict[str, Any]]:
        query = Supplier.query
        if status:
            query = query.filter(Supplier.status == status)
        return [s.to_dict() for s in query.order_by(Supplier.company_name).all()]
