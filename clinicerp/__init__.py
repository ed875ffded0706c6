import logging
import os
from typing import Any

from flask import Flask
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import StaticPool
from werkzeug.exceptions import HTTPException

from .authz import configure_login_manager
from .blueprints_registry import register_blueprints
from .config import ENV_DIAGNOSTICS
from .errors import ServiceError
from .extensions import cache, db, limiter, migrate
from .logging_config import configure_logging
from .utils.api_responses import APIResponse

logger = logging.getLogger(__name__)

_SQLITE_UNSUPPORTED_POOL_OPTIONS = ("pool_size", "max_overflow", "pool_timeout")


def create_app(config: dict[str, Any] | None = None) -> Flask:
    """Build the clinic API. ``config`` overrides settings, e.g. in tests."""
    app = Flask(__name__)
    _load_config(app, config)

    db.init_app(app)
    migrate.init_app(app, db)
    _init_cache(app)
    _init_rate_limiter(app)
    configure_login_manager(app)

    from . import models  # noqa: F401  # registers tables with the metadata
    from .management import register_commands
    from .services.product_service import init_products_cache

    init_products_cache(app)
    register_blueprints(app)
    register_commands(app)
    configure_logging(app)
    _register_error_handlers(app)

    if _env_flag("SQLALCHEMY_CREATE_ALL"):
        with app.app_context():
            logger.info("Creating tables via db.create_all() (SQLALCHEMY_CREATE_ALL)")
            db.create_all()

    return app


def _load_config(app: Flask, overrides: dict[str, Any] | None) -> None:
    app.config.from_object("clinicerp.config.Config")
    if overrides:
        app.config.update(overrides)
        if overrides.get("DATABASE_URL"):
            app.config["SQLALCHEMY_DATABASE_URI"] = overrides["DATABASE_URL"]
    app.config["ENV_DIAGNOSTICS"] = ENV_DIAGNOSTICS
    for warning in ENV_DIAGNOSTICS["warnings"]:
        logger.warning("Environment configuration warning: %s", warning)

    uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not uri:
        raise RuntimeError(f"DATABASE_URL is required when FLASK_ENV={ENV_DIAGNOSTICS['active']}")

    if uri.startswith("sqlite"):
        options = {
            key: value
            for key, value in app.config.get("SQLALCHEMY_ENGINE_OPTIONS", {}).items()
            if key not in _SQLITE_UNSUPPORTED_POOL_OPTIONS
        }
        if uri == "sqlite:///:memory:":
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = options


def _init_cache(app: Flask) -> None:
    redis_url = app.config.get("REDIS_URL")
    settings = {"CACHE_DEFAULT_TIMEOUT": app.config["CACHE_DEFAULT_TIMEOUT"]}
    if redis_url:
        settings.update(CACHE_TYPE="RedisCache", CACHE_REDIS_URL=redis_url)
    else:
        settings["CACHE_TYPE"] = "SimpleCache"
    cache.init_app(app, config=settings)
    logger.info("Response cache backend: %s", settings["CACHE_TYPE"])


def _init_rate_limiter(app: Flask) -> None:
    limiter.init_app(app)
    storage_uri = app.config.get("RATELIMIT_STORAGE_URI") or "memory://"
    if app.config.get("FLASK_ENV") == "production" and storage_uri.startswith("memory://"):
        logger.warning("Rate limits are kept in process memory; each worker counts separately.")


def _register_error_handlers(app: Flask) -> None:
    """Every error leaves the API in the ``{success, message, errors}`` envelope."""

    @app.teardown_request
    def _rollback_on_error(exc):
        if exc is not None:
            db.session.rollback()

    @app.errorhandler(ServiceError)
    def _service_error(err: ServiceError):
        if err.status_code >= 500:
            logger.error("Service error: %s", err.message)
        return APIResponse.error(err.message, errors=err.errors, status_code=err.status_code)

    @app.errorhandler(DBAPIError)
    def _database_error(err):
        db.session.rollback()
        logger.error("Database unavailable: %s", err)
        return APIResponse.error("Service temporarily unavailable. Please try again shortly.", status_code=503)

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        return APIResponse.error(err.description or err.name, status_code=err.code or 500)


def _env_flag(key: str) -> bool:
    return (os.environ.get(key) or "").strip().lower() in {"1", "true", "yes", "on"}
