"""Bearer-token authentication for clinic members and API-key checks for webhooks.

Clinic members authenticate with an HS256 JWT signed with ``MEMBER_JWT_SECRET``.
The tenant is read from the ``tenant_id``/``tenantId`` claim and falls back to
the ``X-Tenant-Id`` header. Supplier webhooks authenticate with ``x-api-key``.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Iterable

import jwt
from flask import current_app, g, request
from flask_login import UserMixin, current_user, login_required

from .errors import AuthError, ForbiddenError
from .extensions import login_manager

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


class MemberPrincipal(UserMixin):
    """Authenticated clinic member, built from token claims only."""

    def __init__(
        self,
        id: str,
        tenant_id: str,
        member_id: str | None = None,
        email: str | None = None,
        roles: Iterable[str] = (),
        clinic_name: str | None = None,
        must_change_password: bool = False,
    ):
        self.id = id
        self.tenant_id = tenant_id
        self.member_id = member_id
        self.email = email
        self.roles = list(roles or [])
        self.clinic_name = clinic_name
        self.must_change_password = bool(must_change_password)

    def get_id(self):
        return str(self.id)

    def __repr__(self):
        return f"<MemberPrincipal {self.id} tenant={self.tenant_id}>"


def issue_member_token(
    tenant_id: str,
    member_id: str,
    secret: str,
    *,
    ttl_hours: int = 12,
    **claims: Any,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": member_id,
        "member_id": member_id,
        "tenant_id": tenant_id,
        "iat": now,
        "exp": now + timedelta(hours=ttl_hours),
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def principal_from_request(req) -> MemberPrincipal | None:
    """Resolve the member for ``req``; records the failure reason on ``g``."""
    auth = req.headers.get("Authorization") or ""
    if not auth.startswith("Bearer "):
        g.auth_error = "Missing bearer token"
        return None
    token = auth.split(" ", 1)[1].strip()

    secret = current_app.config.get("MEMBER_JWT_SECRET")
    if not secret:
        logger.error("MEMBER_JWT_SECRET is not configured")
        g.auth_error = "JWT secret not configured"
        return None

    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.info("Rejected member token: %s", exc)
        g.auth_error = "Invalid or expired token"
        return None

    tenant_id = payload.get("tenant_id") or payload.get("tenantId") or req.headers.get("X-Tenant-Id")
    if not tenant_id:
        g.auth_error = "Tenant not assigned"
        g.auth_forbidden = True
        return None

    return MemberPrincipal(
        id=payload.get("sub") or payload.get("member_id") or "member",
        tenant_id=tenant_id,
        member_id=payload.get("member_id"),
        email=payload.get("email"),
        roles=payload.get("roles") or [],
        clinic_name=payload.get("clinic_name"),
        must_change_password=payload.get("must_change_password", False),
    )


def configure_login_manager(app) -> None:
    login_manager.init_app(app)
    login_manager.request_loader(principal_from_request)

    @login_manager.unauthorized_handler
    def _unauthorized():
        message = g.get("auth_error") or "Unauthorized"
        if g.get("auth_forbidden"):
            raise ForbiddenError(message)
        raise AuthError(message)


def tenant_required(func):
    """Require an authenticated member and expose its tenant on ``g.tenant_id``."""

    @wraps(func)
    @login_required
    def wrapper(*args, **kwargs):
        g.tenant_id = current_user.tenant_id
        return func(*args, **kwargs)

    return wrapper


def current_tenant_id() -> str:
    return g.tenant_id


def api_key_required(func):
    """Guard supplier-backend callbacks with the shared ``x-api-key``."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        valid_key = current_app.config.get("SUPPLIER_BACKEND_API_KEY")
        if not valid_key:
            logger.error("API Key not configured on server")
            raise AuthError("API Key not configured on server")
        supplied = request.headers.get("x-api-key") or ""
        if not hmac.compare_digest(supplied, valid_key):
            raise AuthError("Invalid or missing API key")
        return func(*args, **kwargs)

    return wrapper
