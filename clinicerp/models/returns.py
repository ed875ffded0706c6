from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import TenantScopedMixin, TimestampMixin

EMPTY_BOX_MEMO = '자동 반납: 빈 박스'


class Return(TenantScopedMixin, TimestampMixin, db.Model):
    """Goods sent back to the supplier from earlier outbounds."""
    __tablename__ = 'return_record'

    id = db.Column(db.Integer, primary_key=True)
    return_no = db.Column(db.String(32), index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('batch.id'), nullable=False)
    outbound_id = db.Column(db.Integer, db.ForeignKey('outbound.id'), index=True)
    batch_no = db.Column(db.String(64))
    supplier_id = db.Column(db.Integer, db.ForeignKey('supplier.id'))
    return_qty = db.Column(db.Integer, nullable=False)
    refund_amount = db.Column(db.Integer, nullable=False, default=0)
    total_refund = db.Column(db.Integer, nullable=False, default=0)
    manager_name = db.Column(db.String(128))
    memo = db.Column(db.Text)
    return_date = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    product = db.relationship('Product')
    batch = db.relationship('Batch')
    outbound = db.relationship('Outbound')

    @property
    def is_empty_box(self):
        return bool(self.memo and EMPTY_BOX_MEMO in self.memo)

    def to_dict(self):
        return {
            'id': self.id,
            'returnNo': self.return_no,
            'productId': self.product_id,
            'productName': self.product.name if self.product else None,
            'brand': self.product.brand if self.product else None,
            'batchId': self.batch_id,
            'batchNo': self.batch_no,
            'outboundId': self.outbound_id,
            'supplierId': self.supplier_id,
            'returnQty': self.return_qty,
            'refundAmount': self.refund_amount,
            'totalRefund': self.total_refund,
            'managerName': self.manager_name,
            'memo': self.memo,
            'returnDate': TimezoneUtils.to_iso(self.return_date),
        }


class OrderReturn(TenantScopedMixin, TimestampMixin, db.Model):
    """Return or exchange raised at inbound or from a defective outbound."""
    __tablename__ = 'order_return'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'))
    order_no = db.Column(db.String(32))
    outbound_id = db.Column(db.Integer, db.ForeignKey('outbound.id', ondelete='CASCADE'), index=True)
    return_no = db.Column(db.String(32), index=True)
    batch_no = db.Column(db.String(64))
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'))
    product_name = db.Column(db.String(255))
    brand = db.Column(db.String(255))
    return_quantity = db.Column(db.Integer, nullable=False, default=0)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_price = db.Column(db.Integer, nullable=False, default=0)
    return_type = db.Column(db.String(32), nullable=False)
    memo = db.Column(db.Text)
    images = db.Column(db.JSON, default=list)
    return_manager = db.Column(db.String(128))
    status = db.Column(db.String(32), nullable=False, default='pending', index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey('supplier.id'))

    supplier = db.relationship('Supplier')

    def to_dict(self):
        return {
            'id': self.id,
            'orderId': self.order_id,
            'orderNo': self.order_no,
            'outboundId': self.outbound_id,
            'returnNo': self.return_no,
            'batchNo': self.batch_no,
            'productId': self.product_id,
            'productName': self.product_name,
            'brand': self.brand,
            'returnQuantity': self.return_quantity,
            'totalQuantity': self.total_quantity,
            'unitPrice': self.unit_price,
            'returnType': self.return_type,
            'memo': self.memo,
            'images': self.images or [],
            'returnManager': self.return_manager,
            'status': self.status,
            'supplierId': self.supplier_id,
            'createdAt': TimezoneUtils.to_iso(self.created_at),
        }


class SupplierReturnNotification(TenantScopedMixin, TimestampMixin, db.Model):
    """Per supplier-manager notice of a clinic return; tenant_id is the clinic."""
    __tablename__ = 'supplier_return_notification'

    id = db.Column(db.Integer, primary_key=True)
    supplier_manager_id = db.Column(db.Integer, db.ForeignKey('supplier_manager.id'), nullable=False)
    return_id = db.Column(db.Integer, db.ForeignKey('return_record.id'), nullable=False, index=True)
    clinic_name = db.Column(db.String(255))
    product_id = db.Column(db.Integer)
    product_name = db.Column(db.String(255))
    product_brand = db.Column(db.String(255))
    product_code = db.Column(db.String(128))
    return_qty = db.Column(db.Integer, nullable=False)
    refund_amount_per_item = db.Column(db.Integer, nullable=False, default=0)
    total_refund = db.Column(db.Integer, nullable=False, default=0)
    return_manager_name = db.Column(db.String(128))
    return_date = db.Column(db.DateTime)
    batch_no = db.Column(db.String(64))
    status = db.Column(db.String(32), nullable=False, default='PENDING')
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    accepted_at = db.Column(db.DateTime)
