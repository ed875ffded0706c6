from ..extensions import db
from .mixins import TenantScopedMixin, TimestampMixin


class Supplier(TimestampMixin, db.Model):
    """A supplier company. ``tenant_id`` is the supplier's own tenant, when it has one."""
    __tablename__ = 'supplier'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.String(64), index=True)
    company_name = db.Column(db.String(255), nullable=False)
    business_number = db.Column(db.String(32), index=True)
    company_phone = db.Column(db.String(32))
    company_email = db.Column(db.String(255))
    company_address = db.Column(db.String(512))
    product_categories = db.Column(db.String(512))
    status = db.Column(db.String(32), nullable=False, default='ACTIVE')

    managers = db.relationship('SupplierManager', backref='supplier', lazy='selectin',
                               order_by='SupplierManager.id', cascade='all, delete-orphan')

    @property
    def active_managers(self):
        return [m for m in self.managers if m.status == 'ACTIVE']

    def to_dict(self):
        return {
            'id': self.id,
            'tenantId': self.tenant_id,
            'companyName': self.company_name,
            'businessNumber': self.business_number,
            'companyPhone': self.company_phone,
            'companyEmail': self.company_email,
            'companyAddress': self.company_address,
            'productCategories': self.product_categories,
            'status': self.status,
            'managers': [m.to_dict() for m in self.managers],
        }


class SupplierManager(TimestampMixin, db.Model):
    __tablename__ = 'supplier_manager'

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey('supplier.id'), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    phone_number = db.Column(db.String(32))
    email = db.Column(db.String(255))
    position = db.Column(db.String(64))
    status = db.Column(db.String(32), nullable=False, default='ACTIVE')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'phoneNumber': self.phone_number,
            'email': self.email,
            'position': self.position,
            'status': self.status,
        }


class SupplierProduct(TenantScopedMixin, TimestampMixin, db.Model):
    """Links a clinic product to the supplier it is bought from."""
    __tablename__ = 'supplier_product'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey('supplier.id'), nullable=False, index=True)
    purchase_price = db.Column(db.Integer)

    supplier = db.relationship('Supplier')
