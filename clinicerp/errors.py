from __future__ import annotations

from typing import Any, Mapping


class ServiceError(RuntimeError):
    """Base error raised by the service layer and rendered as a JSON envelope."""

    status_code = 400

    def __init__(self, message: str, errors: Mapping[str, Any] | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.errors = dict(errors or {})
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    status_code = 400


class AuthError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404

    def __init__(self, resource: str = "Resource", message: str | None = None, **kwargs):
        super().__init__(message or f"{resource} not found", **kwargs)
        self.resource = resource


class ConflictError(ServiceError):
    status_code = 409


def require_tenant(tenant_id: str | None) -> str:
    if not tenant_id:
        raise ValidationError("Tenant ID is required")
    return tenant_id
