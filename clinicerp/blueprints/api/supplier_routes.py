from flask import Blueprint, request

from ...authz import tenant_required
from ...services.supplier_service import SupplierService
from ...utils.api_responses import APIResponse
from ...utils.payload import str_field

supplier_api_bp = Blueprint('supplier_api', __name__, url_prefix='/suppliers')


@supplier_api_bp.route('', methods=['GET'])
@tenant_required
def list_suppliers():
    return APIResponse.success(SupplierService.list_suppliers(request.args.get('status', 'ACTIVE')))


@supplier_api_bp.route('', methods=['POST'])
@tenant_required
def create_supplier():
    data = APIResponse.handle_request_content()
    return APIResponse.created(SupplierService.create_supplier(data), message='Supplier created')


@supplier_api_bp.route('/search', methods=['GET'])
@tenant_required
def search_suppliers():
    results = SupplierService.search_suppliers(
        query=str_field(request.args, 'company_name') or request.args.get('q'),
        business_number=str_field(request.args, 'business_number'),
    )
    return APIResponse.success(results)
