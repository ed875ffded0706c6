from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import TenantScopedMixin, TimestampMixin


class Outbound(TenantScopedMixin, TimestampMixin, db.Model):
    """Stock issued out of a batch (patient use, internal use, damage)."""
    __tablename__ = 'outbound'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('batch.id'), nullable=False, index=True)
    batch_no = db.Column(db.String(64))
    outbound_qty = db.Column(db.Integer, nullable=False)
    outbound_type = db.Column(db.String(32), nullable=False, default='제품')
    outbound_date = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False, index=True)
    manager_name = db.Column(db.String(128), nullable=False)
    patient_name = db.Column(db.String(128))
    chart_number = db.Column(db.String(64))
    memo = db.Column(db.Text)
    is_damaged = db.Column(db.Boolean, nullable=False, default=False)
    is_defective = db.Column(db.Boolean, nullable=False, default=False)

    product = db.relationship('Product')
    batch = db.relationship('Batch')

    def to_dict(self):
        return {
            'id': self.id,
            'productId': self.product_id,
            'productName': self.product.name if self.product else None,
            'brand': self.product.brand if self.product else None,
            'batchId': self.batch_id,
            'batchNo': self.batch_no,
            'outboundQty': self.outbound_qty,
            'outboundType': self.outbound_type,
            'outboundDate': TimezoneUtils.to_iso(self.outbound_date),
            'managerName': self.manager_name,
            'patientName': self.patient_name,
            'chartNumber': self.chart_number,
            'memo': self.memo,
            'isDamaged': self.is_damaged,
            'isDefective': self.is_defective,
            'createdAt': TimezoneUtils.to_iso(self.created_at),
        }
