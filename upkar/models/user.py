from .database import db, BaseModel
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime, timedelta
import enum
import secrets

class UserRole(enum.Enum):
    DOCTOR = 'doctor'
    ADMIN = 'admin'

class User(BaseModel):
    __tablename__ = 'users'

    # Basic Information
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(200), nullable=True)

    # Role and Status
    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.DOCTOR)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)

    # Password Reset
    password_reset_token = db.Column(db.String(255), nullable=True, index=True)
    password_reset_sent_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    doctor = db.relationship('Doctor', backref='user', uselist=False, cascade='all, delete-orphan')
    notifications = db.relationship('Notification', backref='user', lazy=True, cascade='all, delete-orphan')

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    @property
    def is_doctor(self):
        return self.role == UserRole.DOCTOR

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check password against hash"""
        return check_password_hash(self.password_hash, password)

    def get_display_name(self):
        if self.doctor:
            return self.doctor.name
        return self.full_name or self.email

    def generate_password_reset_token(self):
        """Generate password reset token"""
        self.password_reset_token = secrets.token_urlsafe(32)
        self.password_reset_sent_at = datetime.utcnow()
        return self.password_reset_token

    def is_reset_token_expired(self, max_age=timedelta(hours=24)):
        if not self.password_reset_sent_at:
            return True
        return datetime.utcnow() - self.password_reset_sent_at > max_age

    def to_dict(self, include_sensitive=False):
        """Convert to dictionary, optionally excluding sensitive data"""
        data = super().to_dict()
        if not include_sensitive:
            data.pop('password_hash', None)
            data.pop('password_reset_token', None)
            data.pop('password_reset_sent_at', None)
        data['display_name'] = self.get_display_name()
        return data

    def __repr__(self):
        return f'<User {self.email}>'
