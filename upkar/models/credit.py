from .database import db, BaseModel
from datetime import datetime
from decimal import Decimal
from sqlalchemy import func
import enum

class TransactionType(enum.Enum):
    DEBIT = 'debit'    # order placed, amount owed goes up
    CREDIT = 'credit'  # payment, cancellation or approved return

class CreditTransaction(BaseModel):
    """Append-only ledger row; balances are always recomputed from these"""
    __tablename__ = 'credit_transactions'

    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    type = db.Column(db.Enum(TransactionType), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), default='completed', nullable=False)
    reference_id = db.Column(db.String(100), nullable=True, index=True)

    @classmethod
    def record(cls, doctor_id, amount, type, description=None, reference_id=None):
        """Add a ledger row to the session"""
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError('Ledger amounts must be positive')
        entry = cls(
            doctor_id=doctor_id,
            amount=amount,
            type=type,
            description=description,
            reference_id=reference_id
        )
        db.session.add(entry)
        return entry

    @classmethod
    def totals_for(cls, doctor_id):
        """Return (total_debit, total_credit) for a doctor"""
        rows = db.session.query(cls.type, func.coalesce(func.sum(cls.amount), 0)).filter(
            cls.doctor_id == doctor_id
        ).group_by(cls.type).all()
        totals = {TransactionType.DEBIT: Decimal('0.00'), TransactionType.CREDIT: Decimal('0.00')}
        for tx_type, total in rows:
            totals[tx_type] = Decimal(str(total))
        return totals[TransactionType.DEBIT], totals[TransactionType.CREDIT]

    @classmethod
    def balance_for(cls, doctor_id):
        """Outstanding balance: debits minus credits"""
        debit, credit = cls.totals_for(doctor_id)
        return debit - credit

    def __repr__(self):
        return f'<CreditTransaction {self.type.value} {self.amount} doctor:{self.doctor_id}>'

class Payment(BaseModel):
    __tablename__ = 'payments'

    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    payment_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    def __repr__(self):
        return f'<Payment {self.amount} doctor:{self.doctor_id}>'

def build_credit_summary(doctor):
    """Credit summary for one doctor, computed from the ledger"""
    from .order import Order, OrderStatus

    total_debit, total_paid = CreditTransaction.totals_for(doctor.id)
    pending_amount = db.session.query(func.coalesce(func.sum(Order.total_amount), 0)).filter(
        Order.doctor_id == doctor.id,
        Order.status.in_([OrderStatus.PENDING, OrderStatus.PROCESSING])
    ).scalar()
    last_payment = Payment.query.filter_by(doctor_id=doctor.id).order_by(
        Payment.payment_date.desc(), Payment.id.desc()
    ).first()

    return {
        'doctor_id': doctor.id,
        'doctor_name': doctor.name,
        'doctor_phone': doctor.phone,
        'doctor_email': doctor.email,
        'total_debit': float(total_debit),
        'total_paid': float(total_paid),
        'current_balance': float(total_debit - total_paid),
        'pending_orders_amount': float(pending_amount or 0),
        'last_payment': {
            'amount': float(last_payment.amount),
            'date': last_payment.payment_date.isoformat(),
            'notes': last_payment.notes
        } if last_payment else None
    }
