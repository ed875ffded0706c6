from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class TimestampMixin:
    """Adds created_at and updated_at timestamps to models"""
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, onupdate=TimezoneUtils.utc_now, nullable=False)


class TenantScopedMixin:
    tenant_id = db.Column(db.String(64), nullable=False, index=True)

    @classmethod
    def for_tenant(cls, tenant_id):
        return cls.query.filter_by(tenant_id=tenant_id)

    @classmethod
    def get_for_tenant(cls, tenant_id, record_id):
        """Fetch one row by id, or None when it belongs to another clinic."""
        return cls.query.filter_by(tenant_id=tenant_id, id=record_id).first()
