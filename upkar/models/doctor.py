from .database import db, BaseModel
from datetime import datetime

APPROVAL_PENDING = 'pending'
APPROVAL_APPROVED = 'approved'
APPROVAL_REJECTED = 'rejected'

class Doctor(BaseModel):
    __tablename__ = 'doctors'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)

    # Identity
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=False)

    # Business Information
    gst_number = db.Column(db.String(20), unique=True, nullable=False)
    address = db.Column(db.Text, nullable=False)
    clinic_name = db.Column(db.String(200), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(100), nullable=True)
    pincode = db.Column(db.String(10), nullable=True)
    license_number = db.Column(db.String(100), nullable=True)
    specialization = db.Column(db.String(100), nullable=True)

    # Approval
    is_approved = db.Column(db.Boolean, default=False, nullable=False, index=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    rejected_at = db.Column(db.DateTime, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    # Relationships
    orders = db.relationship('Order', backref='doctor', lazy='dynamic')
    credit_transactions = db.relationship('CreditTransaction', backref='doctor', lazy='dynamic')
    payments = db.relationship('Payment', backref='doctor', lazy='dynamic')

    EDITABLE_FIELDS = (
        'phone', 'address', 'clinic_name', 'city', 'state', 'pincode',
        'license_number', 'specialization'
    )

    @property
    def approval_status(self):
        if self.is_approved:
            return APPROVAL_APPROVED
        if self.rejected_at is not None:
            return APPROVAL_REJECTED
        return APPROVAL_PENDING

    def approve(self):
        self.is_approved = True
        self.approved_at = datetime.utcnow()
        self.rejected_at = None
        self.rejection_reason = None

    def reject(self, reason=None):
        self.is_approved = False
        self.approved_at = None
        self.rejected_at = datetime.utcnow()
        self.rejection_reason = reason or None

    def to_dict(self):
        """Convert to dictionary"""
        data = super().to_dict()
        data['approval_status'] = self.approval_status
        return data

    def __repr__(self):
        return f'<Doctor {self.name}>'
