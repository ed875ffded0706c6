import logging

from flask import Blueprint

from ...authz import current_tenant_id, tenant_required
from ...services.product_service import ProductService
from ...utils.api_responses import APIResponse

logger = logging.getLogger(__name__)

product_api_bp = Blueprint('product_api', __name__, url_prefix='/products')


@product_api_bp.route('', methods=['GET'])
@tenant_required
def list_products():
    return APIResponse.success(ProductService.list_products(current_tenant_id()))


@product_api_bp.route('', methods=['POST'])
@tenant_required
def create_product():
    data = APIResponse.handle_request_content()
    product = ProductService.create_product(current_tenant_id(), data)
    return APIResponse.created(product, message='Product created')


@product_api_bp.route('/storages', methods=['GET'])
@tenant_required
def list_storages():
    return APIResponse.success(ProductService.get_storages(current_tenant_id()))


@product_api_bp.route('/barcode/<path:barcode>', methods=['GET'])
@tenant_required
def find_by_barcode(barcode):
    product = ProductService.find_by_barcode(current_tenant_id(), barcode)
    if product is None:
        return APIResponse.not_found('Product')
    return APIResponse.success(product)


@product_api_bp.route('/<int:product_id>', methods=['GET'])
@tenant_required
def get_product(product_id):
    return APIResponse.success(ProductService.get_product(current_tenant_id(), product_id))


@product_api_bp.route('/<int:product_id>', methods=['PUT', 'PATCH'])
@tenant_required
def update_product(product_id):
    data = APIResponse.handle_request_content()
    product = ProductService.update_product(current_tenant_id(), product_id, data)
    return APIResponse.success(product, message='Product updated')


@product_api_bp.route('/<int:product_id>', methods=['DELETE'])
@tenant_required
def delete_product(product_id):
    return APIResponse.success(ProductService.delete_product(current_tenant_id(), product_id),
                               message='Product deleted')


@product_api_bp.route('/<int:product_id>/batches', methods=['GET'])
@tenant_required
def list_batches(product_id):
    return APIResponse.success(ProductService.get_product_batches(current_tenant_id(), product_id))


@product_api_bp.route('/<int:product_id>/batches', methods=['POST'])
@tenant_required
def create_batch(product_id):
    data = APIResponse.handle_request_content()
    batch = ProductService.create_batch(current_tenant_id(), product_id, data)
    return APIResponse.created(batch, message='Batch created')
