import logging

from flask import Blueprint, request
from flask_login import current_user

from ...authz import api_key_required, current_tenant_id, tenant_required
from ...extensions import limiter
from ...services.order_service import OrderService
from ...utils.api_responses import APIResponse
from ...utils.payload import field, int_field, str_field

logger = logging.getLogger(__name__)

order_api_bp = Blueprint('order_api', __name__, url_prefix='/orders')


@order_api_bp.route('', methods=['GET'])
@tenant_required
def list_orders():
    result = OrderService.list_orders(
        current_tenant_id(),
        status=request.args.get('status'),
        search=request.args.get('search'),
        page=request.args.get('page', 1, type=int),
        limit=request.args.get('limit', 20, type=int),
    )
    return APIResponse.success(result)


@order_api_bp.route('', methods=['POST'])
@tenant_required
def create_order():
    data = APIResponse.handle_request_content()
    order = OrderService.create_order(
        current_tenant_id(),
        supplier_id=int_field(data, 'supplier_id'),
        items=field(data, 'items') or [],
        memo=str_field(data, 'memo'),
        created_by=str_field(data, 'created_by') or current_user.member_id,
    )
    return APIResponse.created(order, message='Order created')


@order_api_bp.route('/<int:order_id>', methods=['GET'])
@tenant_required
def get_order(order_id):
    return APIResponse.success(OrderService.get_order(current_tenant_id(), order_id))


@order_api_bp.route('/<int:order_id>/inbound', methods=['POST'])
@tenant_required
def receive_inbound(order_id):
    data = APIResponse.handle_request_content()
    order = OrderService.receive_inbound(
        current_tenant_id(),
        order_id,
        items=field(data, 'items') or [],
        inbound_manager=str_field(data, 'inbound_manager'),
    )
    return APIResponse.success(order, message='Inbound recorded')


@order_api_bp.route('/<int:order_id>/cancel', methods=['POST'])
@tenant_required
def cancel_order(order_id):
    return APIResponse.success(OrderService.cancel_order(current_tenant_id(), order_id),
                               message='Order cancelled')


@order_api_bp.route('/supplier-confirmed', methods=['POST'])
@limiter.limit("600/minute")
@api_key_required
def supplier_confirmed():
    """Webhook: the supplier backend confirmed, rejected or shipped an order."""
    data = APIResponse.handle_request_content()
    return APIResponse.success(OrderService.update_from_supplier(data))
