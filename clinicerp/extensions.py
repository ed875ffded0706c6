from __future__ import annotations

from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager, current_user
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate(compare_type=True, render_as_batch=True)
cache = Cache()
login_manager = LoginManager()


def _rate_limit_key():
    """Clinic members share one bucket per tenant; anonymous callers are keyed by address."""
    tenant_id = getattr(current_user, "tenant_id", None) if current_user.is_authenticated else None
    return f"tenant:{tenant_id}" if tenant_id else get_remote_address()


# default limits come from RATELIMIT_DEFAULT
limiter = Limiter(key_func=_rate_limit_key)

__all__ = ["db", "migrate", "cache", "limiter", "login_manager"]
