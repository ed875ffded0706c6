from __future__ import annotations

import logging
from typing import Any, Dict

from ..errors import NotFoundError, require_tenant
from ..models import Clinic
from ..utils.address_normalizer import compare_addresses, extract_emdong_name, extract_sido_code
from ..utils.date_normalizer import compare_dates, format_date_for_display
from ..utils.payload import str_field
from ..utils.string_normalizer import compare_clinic_types, fuzzy_match_clinic_name

logger = logging.getLogger(__name__)

VALID_CONFIDENCE = 0.7


class ClinicService:

    @staticmethod
    def get_clinic(tenant_id: str) -> Dict[str, Any]:
        require_tenant(tenant_id)
        clinic = Clinic.for_tenant(tenant_id).first()
        if clinic is None:
            raise NotFoundError('Clinic')
        return clinic.to_dict()

    @staticmethod
    def verify_certificate(tenant_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Check a business certificate's fields against the registered clinic.

        Confidence is the share of the four checks (name, address, type, open date)
        that match; a field missing on either side counts as a mismatch.
        """
        require_tenant(tenant_id)
        name = str_field(data, 'clinic_name', required=True)
        address = str_field(data, 'address')
        clinic_type = str_field(data, 'clinic_type')
        open_date = str_field(data, 'open_date')

        clinic = Clinic.for_tenant(tenant_id).first()
        if clinic is None:
            raise NotFoundError('Clinic')
        registered_open = clinic.open_date.isoformat() if clinic.open_date else None

        matches = {
            'nameMatch': fuzzy_match_clinic_name(name, clinic.name),
            'addressMatch': bool(address and clinic.location and compare_addresses(address, clinic.location)),
            'typeMatch': bool(clinic_type and clinic.category and compare_clinic_types(clinic_type, clinic.category)),
            'dateMatch': bool(open_date and registered_open and compare_dates(open_date, registered_open)),
        }

        warnings = []
        if not matches['nameMatch']:
            warnings.append(f'Clinic name mismatch: certificate="{name}", registered="{clinic.name}"')
        if address and clinic.location and not matches['addressMatch']:
            warnings.append(f'Address mismatch: certificate="{address}", registered="{clinic.location}"')
        if clinic_type and clinic.category and not matches['typeMatch']:
            warnings.append(f'Clinic type mismatch: certificate="{clinic_type}", registered="{clinic.category}"')
        if open_date and registered_open and not matches['dateMatch']:
            warnings.append(
                f'Open date mismatch: certificate="{format_date_for_display(open_date)}", '
                f'registered="{registered_open}"'
            )

        confidence = sum(matches.values()) / len(matches)
        if warnings:
            logger.info('Certificate check for tenant %s: %s', tenant_id, '; '.join(warnings))
        return {
            'isValid': confidence >= VALID_CONFIDENCE,
            'confidence': confidence,
            'matches': matches,
            'sidoCode': extract_sido_code(address),
            'emdong': extract_emdong_name(address),
            'warnings': warnings,
        }
