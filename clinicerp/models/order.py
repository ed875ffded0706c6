from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import TenantScopedMixin, TimestampMixin

ORDER_STATUSES = (
    'pending',
    'confirmed',
    'rejected',
    'shipped',
    'partially_received',
    'completed',
    'cancelled',
)


class Order(TenantScopedMixin, TimestampMixin, db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    order_no = db.Column(db.String(32), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey('supplier.id'), index=True)
    status = db.Column(db.String(32), nullable=False, default='pending', index=True)
    total_amount = db.Column(db.Integer, nullable=False, default=0)
    memo = db.Column(db.Text)
    supplier_memo = db.Column(db.Text)
    created_by = db.Column(db.String(128))
    order_date = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)
    confirmed_at = db.Column(db.DateTime)
    shipped_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)

    supplier = db.relationship('Supplier')
    items = db.relationship('OrderItem', backref='order', lazy='selectin',
                            order_by='OrderItem.id', cascade='all, delete-orphan')

    def recalculate_total(self):
        self.total_amount = sum(item.total_price or 0 for item in self.items)
        return self.total_amount

    @property
    def is_fully_received(self):
        return all((item.received_quantity or 0) >= item.quantity for item in self.items)

    def to_dict(self):
        return {
            'id': self.id,
            'orderNo': self.order_no,
            'supplierId': self.supplier_id,
            'supplierName': self.supplier.company_name if self.supplier else None,
            'status': self.status,
            'totalAmount': self.total_amount,
            'memo': self.memo,
            'supplierMemo': self.supplier_memo,
            'createdBy': self.created_by,
            'orderDate': TimezoneUtils.to_iso(self.order_date),
            'confirmedAt': TimezoneUtils.to_iso(self.confirmed_at),
            'shippedAt': TimezoneUtils.to_iso(self.shipped_at),
            'completedAt': TimezoneUtils.to_iso(self.completed_at),
            'items': [item.to_dict() for item in self.items],
        }


class OrderItem(TenantScopedMixin, db.Model):
    __tablename__ = 'order_item'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False, default=0)
    total_price = db.Column(db.Integer, nullable=False, default=0)
    received_quantity = db.Column(db.Integer, nullable=False, default=0)
    confirmed_quantity = db.Column(db.Integer)
    memo = db.Column(db.Text)

    product = db.relationship('Product')

    @property
    def remaining_quantity(self):
        return max(0, self.quantity - (self.received_quantity or 0))

    def to_dict(self):
        return {
            'id': self.id,
            'productId': self.product_id,
            'productName': self.product.name if self.product else None,
            'brand': self.product.brand if self.product else None,
            'quantity': self.quantity,
            'unitPrice': self.unit_price,
            'totalPrice': self.total_price,
            'receivedQuantity': self.received_quantity,
            'confirmedQuantity': self.confirmed_quantity,
            'remainingQuantity': self.remaining_quantity,
            'memo': self.memo,
        }
