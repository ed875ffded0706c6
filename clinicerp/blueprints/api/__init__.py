from flask import Blueprint

api_bp = Blueprint('api', __name__, url_prefix='/api')

# Import all route modules to register them
from . import routes  # noqa: E402,F401

# Register sub-blueprints
from .calendar_routes import calendar_api_bp  # noqa: E402
from .clinic_routes import clinic_api_bp  # noqa: E402
from .inventory_routes import inventory_api_bp  # noqa: E402
from .order_return_routes import order_return_api_bp  # noqa: E402
from .order_routes import order_api_bp  # noqa: E402
from .outbound_routes import outbound_api_bp  # noqa: E402
from .product_routes import product_api_bp  # noqa: E402
from .return_routes import return_api_bp  # noqa: E402
from .supplier_routes import supplier_api_bp  # noqa: E402

api_bp.register_blueprint(product_api_bp)
api_bp.register_blueprint(order_api_bp)
api_bp.register_blueprint(outbound_api_bp)
api_bp.register_blueprint(return_api_bp)
api_bp.register_blueprint(order_return_api_bp)
api_bp.register_blueprint(inventory_api_bp)
api_bp.register_blueprint(supplier_api_bp)
api_bp.register_blueprint(calendar_api_bp)
api_bp.register_blueprint(clinic_api_bp)
