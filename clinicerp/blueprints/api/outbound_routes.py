import logging

from flask import Blueprint, request

from ...authz import current_tenant_id, tenant_required
from ...errors import ValidationError
from ...services.outbound_service import OutboundService
from ...utils.api_responses import APIResponse
from ...utils.payload import field, str_field

logger = logging.getLogger(__name__)

outbound_api_bp = Blueprint('outbound_api', __name__, url_prefix='/outbound')


@outbound_api_bp.route('', methods=['POST'])
@tenant_required
def create_outbound():
    data = APIResponse.handle_request_content()
    outbound = OutboundService.create_outbound(current_tenant_id(), data)
    return APIResponse.created(outbound, message='Outbound recorded')


@outbound_api_bp.route('/bulk', methods=['POST'])
@tenant_required
def create_bulk_outbound():
    data = APIResponse.handle_request_content()
    items = field(data, 'items')
    if not isinstance(items, list):
        raise ValidationError('items must be a list')
    # top-level fields apply to every line unless the line overrides them
    defaults = {key: value for key, value in data.items() if key != 'items'}
    result = OutboundService.create_bulk_outbound(current_tenant_id(), items, defaults)
    return APIResponse.created(result, message=f"{result['count']} outbound records created")


@outbound_api_bp.route('/products', methods=['GET'])
@tenant_required
def products_for_outbound():
    products = OutboundService.get_products_for_outbound(current_tenant_id(), request.args.get('search'))
    return APIResponse.success(products)


@outbound_api_bp.route('/history', methods=['GET'])
@tenant_required
def outbound_history():
    return APIResponse.success(OutboundService.get_outbound_history(current_tenant_id(), request.args.to_dict()))


@outbound_api_bp.route('/<int:outbound_id>', methods=['GET'])
@tenant_required
def get_outbound(outbound_id):
    return APIResponse.success(OutboundService.get_outbound(current_tenant_id(), outbound_id))


@outbound_api_bp.route('/cancel', methods=['POST', 'DELETE'])
@tenant_required
def cancel_outbound():
    data = APIResponse.handle_request_content() or request.args.to_dict()
    result = OutboundService.cancel_outbound_by_timestamp(
        current_tenant_id(),
        str_field(data, 'timestamp'),
        str_field(data, 'manager_name'),
    )
    return APIResponse.success(result, message=result['message'])
