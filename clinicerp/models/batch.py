from datetime import date

from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import TenantScopedMixin, TimestampMixin

DEFAULT_ALERT_DAYS = 30


class Batch(TenantScopedMixin, TimestampMixin, db.Model):
    """A received lot of one product."""
    __tablename__ = 'batch'
    __table_args__ = (
        db.CheckConstraint('qty >= 0', name='ck_batch_qty_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False, index=True)
    batch_no = db.Column(db.String(64), nullable=False)
    qty = db.Column(db.Integer, nullable=False, default=0)
    inbound_qty = db.Column(db.Integer)
    unit = db.Column(db.String(32))
    storage = db.Column(db.String(128))
    purchase_price = db.Column(db.Integer)
    sale_price = db.Column(db.Integer)
    manufacture_date = db.Column(db.Date)
    expiry_date = db.Column(db.Date)
    expiry_months = db.Column(db.Integer)
    expiry_unit = db.Column(db.String(16))
    alert_days = db.Column(db.Integer)
    used_count = db.Column(db.Integer, nullable=False, default=0)
    inbound_manager = db.Column(db.String(128))
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'))

    @property
    def is_expired(self):
        if not self.expiry_date:
            return False
        return self.expiry_date < TimezoneUtils.clinic_today()

    def days_until_expiry(self, today: date | None = None):
        if not self.expiry_date:
            return None
        today = today or TimezoneUtils.clinic_today()
        return (self.expiry_date - today).days

    def to_dict(self):
        return {
            'id': self.id,
            'batchNo': self.batch_no,
            'qty': self.qty,
            'inboundQty': self.inbound_qty,
            'unit': self.unit,
            'storage': self.storage,
            'purchasePrice': self.purchase_price,
            'salePrice': self.sale_price,
            'manufactureDate': TimezoneUtils.to_iso(self.manufacture_date),
            'expiryDate': TimezoneUtils.to_iso(self.expiry_date),
            'expiryMonths': self.expiry_months,
            'expiryUnit': self.expiry_unit,
            'alertDays': self.alert_days,
            'usedCount': self.used_count,
            'isExpired': self.is_expired,
            'createdAt': TimezoneUtils.to_iso(self.created_at),
        }

    def __repr__(self):
        return f'<Batch {self.batch_no} qty={self.qty}>'
