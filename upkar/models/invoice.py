from .database import db, BaseModel
from datetime import datetime

class Invoice(BaseModel):
    __tablename__ = 'invoices'

    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, unique=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False, index=True)
    invoice_number = db.Column(db.String(50), unique=True, nullable=False)
    invoice_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # File Information
    pdf_path = db.Column(db.String(500), nullable=True)
    pdf_url = db.Column(db.String(500), nullable=True)

    # Relationships
    order = db.relationship('Order', backref=db.backref('invoice', uselist=False))
    doctor = db.relationship('Doctor')

    @staticmethod
    def number_for(order):
        """Deterministic invoice number: INV-<order date>-<zero padded order id>"""
        placed = order.created_at or datetime.utcnow()
        return f"INV-{placed.strftime('%Y%m%d')}-{order.id:06d}"

    def to_dict(self):
        """Convert to dictionary"""
        data = super().to_dict()
        if self.order:
            data['order_status'] = self.order.status.value
            data['total_amount'] = float(self.order.total_amount)
        if self.doctor:
            data['doctor_name'] = self.doctor.name
            data['doctor_email'] = self.doctor.email
        return data

    def __repr__(self):
        return f'<Invoice {self.invoice_number}>'
