import logging

logger = logging.getLogger(__name__)


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    from clinicerp.blueprints.api import api_bp

    app.register_blueprint(api_bp)
    logger.info("Registered blueprints: %s", ", ".join(sorted(app.blueprints)))
