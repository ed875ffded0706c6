from ..extensions import db
from .mixins import TenantScopedMixin, TimestampMixin


class Clinic(TenantScopedMixin, TimestampMixin, db.Model):
    __tablename__ = 'clinic'
    __table_args__ = (db.UniqueConstraint('tenant_id', name='uq_clinic_tenant'),)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    english_name = db.Column(db.String(255))
    category = db.Column(db.String(128))
    location = db.Column(db.String(512))
    medical_subjects = db.Column(db.String(512))
    business_number = db.Column(db.String(32))
    doctor_name = db.Column(db.String(128))
    phone = db.Column(db.String(32))
    open_date = db.Column(db.Date)

    def __repr__(self):
        return f'<Clinic {self.name} tenant={self.tenant_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'tenantId': self.tenant_id,
            'name': self.name,
            'englishName': self.english_name,
            'category': self.category,
            'location': self.location,
            'medicalSubjects': self.medical_subjects,
            'businessNumber': self.business_number,
            'doctorName': self.doctor_name,
            'phone': self.phone,
            'openDate': self.open_date.isoformat() if self.open_date else None,
        }
