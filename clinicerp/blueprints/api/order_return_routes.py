import logging

from flask import Blueprint, request

from ...authz import current_tenant_id, tenant_required
from ...services.order_return_service import OrderReturnService
from ...utils.api_responses import APIResponse
from ...utils.payload import field, int_field, str_field

logger = logging.getLogger(__name__)

order_return_api_bp = Blueprint('order_return_api', __name__, url_prefix='/order-returns')


@order_return_api_bp.route('', methods=['GET'])
@tenant_required
def list_order_returns():
    return APIResponse.success(OrderReturnService.get_returns(current_tenant_id(), request.args.get('status')))


@order_return_api_bp.route('/create-from-inbound', methods=['POST'])
@tenant_required
def create_from_inbound():
    data = APIResponse.handle_request_content()
    result = OrderReturnService.create_from_inbound(
        current_tenant_id(),
        int_field(data, 'order_id'),
        str_field(data, 'order_no'),
        field(data, 'items') or [],
    )
    return APIResponse.success(result)


@order_return_api_bp.route('/<int:return_id>/process', methods=['PUT', 'POST'])
@tenant_required
def process_order_return(return_id):
    data = APIResponse.handle_request_content()
    result = OrderReturnService.process_return(
        current_tenant_id(),
        return_id,
        return_manager=str_field(data, 'return_manager'),
        memo=str_field(data, 'memo'),
        images=field(data, 'images') or [],
    )
    return APIResponse.success(result, message='Return processed')
