from ..extensions import db
from .mixins import TenantScopedMixin, TimestampMixin


class Product(TenantScopedMixin, TimestampMixin, db.Model):
    __tablename__ = 'product'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(255))
    barcode = db.Column(db.String(128), index=True)
    category = db.Column(db.String(128))
    unit = db.Column(db.String(32))
    status = db.Column(db.String(32), default='활성')
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    purchase_price = db.Column(db.Integer)
    sale_price = db.Column(db.Integer)
    storage = db.Column(db.String(128))
    alert_days = db.Column(db.Integer)
    image_url = db.Column(db.String(512))

    # Consumables used per-dose: capacity_per_product doses fill one box
    usage_capacity = db.Column(db.Integer)
    capacity_per_product = db.Column(db.Integer)

    batches = db.relationship('Batch', backref='product', lazy='selectin',
                              order_by='Batch.id.desc()', cascade='all, delete-orphan')
    return_policy = db.relationship('ReturnPolicy', backref='product', uselist=False,
                                    lazy='selectin', cascade='all, delete-orphan')
    supplier_links = db.relationship('SupplierProduct', backref='product', lazy='selectin',
                                     order_by='SupplierProduct.id.desc()',
                                     cascade='all, delete-orphan')

    @property
    def is_low_stock(self):
        return (self.current_stock or 0) < (self.min_stock or 0)

    @property
    def primary_supplier_link(self):
        return self.supplier_links[0] if self.supplier_links else None

    def recalculate_stock(self):
        """Sync current_stock with the sum of batch quantities."""
        from .batch import Batch
        total = db.session.query(db.func.coalesce(db.func.sum(Batch.qty), 0)).filter(
            Batch.product_id == self.id,
            Batch.tenant_id == self.tenant_id,
        ).scalar()
        self.current_stock = int(total or 0)
        return self.current_stock

    def __repr__(self):
        return f'<Product {self.name}>'


class ReturnPolicy(TenantScopedMixin, TimestampMixin, db.Model):
    __tablename__ = 'return_policy'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False, unique=True)
    is_returnable = db.Column(db.Boolean, nullable=False, default=False)
    refund_amount = db.Column(db.Integer, nullable=False, default=0)
    return_storage = db.Column(db.String(128))
    note = db.Column(db.Text)

    def to_dict(self):
        return {
            'isReturnable': self.is_returnable,
            'refundAmount': self.refund_amount,
            'returnStorage': self.return_storage,
            'note': self.note,
        }
