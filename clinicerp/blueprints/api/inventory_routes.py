from datetime import datetime, time

from flask import Blueprint, request

from ...authz import current_tenant_id, tenant_required
from ...errors import ValidationError
from ...services.inventory_service import InventoryService
from ...utils.api_responses import APIResponse
from ...utils.payload import str_field
from ...utils.timezone_utils import TimezoneUtils

inventory_api_bp = Blueprint('inventory_api', __name__, url_prefix='/inventory')


def _period_bound(name: str, end_of_day: bool = False):
    raw = str_field(request.args, name)
    if not raw:
        return None
    try:
        if len(raw) == 10:
            return datetime.combine(TimezoneUtils.parse_date(raw), time.max if end_of_day else time.min)
        return TimezoneUtils.parse_datetime(raw)
    except ValueError:
        raise ValidationError(f'{name} must be an ISO date', errors={name: ['invalid']})


@inventory_api_bp.route('/summary', methods=['GET'])
@tenant_required
def summary():
    result = InventoryService.get_summary(
        current_tenant_id(),
        _period_bound('start_date'),
        _period_bound('end_date', end_of_day=True),
    )
    return APIResponse.success(result)


@inventory_api_bp.route('/risky', methods=['GET'])
@tenant_required
def risky():
    return APIResponse.success(InventoryService.get_risky_inventory(current_tenant_id()))


@inventory_api_bp.route('/depletion', methods=['GET'])
@tenant_required
def depletion():
    return APIResponse.success(InventoryService.get_depletion_list(current_tenant_id()))


@inventory_api_bp.route('/top-value', methods=['GET'])
@tenant_required
def top_value():
    limit = request.args.get('limit', 8, type=int)
    return APIResponse.success(InventoryService.get_top_value_products(current_tenant_id(), limit))


@inventory_api_bp.route('/by-location', methods=['GET'])
@tenant_required
def by_location():
    return APIResponse.success(
        InventoryService.get_inventory_by_location(current_tenant_id(), request.args.get('location'))
    )
