from .database import db, BaseModel
from datetime import datetime

class AuditLog(BaseModel):
    __tablename__ = 'audit_logs'

    # User and Action Information
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    action = db.Column(db.String(100), nullable=False)  # e.g. doctor_approved, product_created

    # Target Information
    table_name = db.Column(db.String(50), nullable=True)
    record_id = db.Column(db.Integer, nullable=True)

    # Details
    old_values = db.Column(db.JSON, nullable=True)
    new_values = db.Column(db.JSON, nullable=True)

    # Request Information
    ip_address = db.Column(db.String(45), nullable=True)  # IPv4 or IPv6
    user_agent = db.Column(db.Text, nullable=True)

    user = db.relationship('User')

    def to_dict(self):
        """Convert to dictionary"""
        data = super().to_dict()
        data['user_email'] = self.user.email if self.user else None
        return data

    def __repr__(self):
        return f'<AuditLog {self.action} on {self.table_name}:{self.record_id}>'

class Notification(BaseModel):
    __tablename__ = 'notifications'

    # Recipient Information
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # Notification Content
    type = db.Column(db.String(50), nullable=False)  # order, approval, payment, return, system
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, nullable=True)

    # Status
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime, nullable=True)

    def mark_as_read(self):
        """Mark notification as read"""
        self.is_read = True
        self.read_at = datetime.utcnow()

    @classmethod
    def create_notification(cls, user_id, title, message, type='system', data=None):
        """Create a new notification"""
        notification = cls(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data
        )
        db.session.add(notification)
        return notification

    def __repr__(self):
        return f'<Notification {self.title} for User:{self.user_id}>'
