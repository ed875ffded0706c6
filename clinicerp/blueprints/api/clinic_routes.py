from flask import Blueprint

from ...authz import current_tenant_id, tenant_required
from ...services.clinic_service import ClinicService
from ...utils.api_responses import APIResponse

clinic_api_bp = Blueprint('clinic_api', __name__, url_prefix='/clinic')


@clinic_api_bp.route('', methods=['GET'])
@tenant_required
def get_clinic():
    return APIResponse.success(ClinicService.get_clinic(current_tenant_id()))


@clinic_api_bp.route('/verify', methods=['POST'])
@tenant_required
def verify_certificate():
    data = APIResponse.handle_request_content()
    return APIResponse.success(ClinicService.verify_certificate(current_tenant_id(), data))
