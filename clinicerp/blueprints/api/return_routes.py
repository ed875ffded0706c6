import logging
from datetime import datetime, time

from flask import Blueprint, request

from ...authz import api_key_required, current_tenant_id, tenant_required
from ...errors import ValidationError
from ...extensions import limiter
from ...services.return_service import ReturnService
from ...utils.api_responses import APIResponse
from ...utils.payload import field, str_field
from ...utils.timezone_utils import TimezoneUtils

logger = logging.getLogger(__name__)

return_api_bp = Blueprint('return_api', __name__, url_prefix='/returns')


def _date_arg(name: str, end_of_day: bool = False):
    raw = str_field(request.args, name)
    if not raw:
        return None
    try:
        day = TimezoneUtils.parse_date(raw)
    except ValueError:
        raise ValidationError(f'{name} must be an ISO date', errors={name: ['invalid']})
    return datetime.combine(day, time.max if end_of_day else time.min)


@return_api_bp.route('/available-products', methods=['GET'])
@tenant_required
def available_products():
    products = ReturnService.get_available_products(current_tenant_id(), request.args.get('search'))
    return APIResponse.success(products)


@return_api_bp.route('', methods=['POST'])
@tenant_required
def process_return():
    data = APIResponse.handle_request_content()
    result = ReturnService.process_return(
        current_tenant_id(),
        manager_name=str_field(data, 'manager_name'),
        memo=str_field(data, 'memo'),
        items=field(data, 'items') or [],
    )
    return APIResponse.created(result, message='Returns recorded')


@return_api_bp.route('/history', methods=['GET'])
@tenant_required
def return_history():
    result = ReturnService.get_return_history(
        current_tenant_id(),
        product_id=request.args.get('productId', request.args.get('product_id'), type=int),
        start_date=_date_arg('start_date'),
        end_date=_date_arg('end_date', end_of_day=True),
        page=request.args.get('page', 1, type=int),
        limit=request.args.get('limit', 10, type=int),
    )
    return APIResponse.success(result)


@return_api_bp.route('/webhook/accept', methods=['POST'])
@limiter.limit("600/minute")
@api_key_required
def return_accept_webhook():
    """Webhook: the supplier accepted a clinic return."""
    data = APIResponse.handle_request_content()
    result = ReturnService.handle_return_accept(str_field(data, 'return_no'), str_field(data, 'status'))
    return APIResponse.success(result, message=result['message'])
