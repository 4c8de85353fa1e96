from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, date
from decimal import Decimal
import enum

db = SQLAlchemy()

# Base model with common fields
class BaseModel(db.Model):
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        """Convert model instance to dictionary"""
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if isinstance(value, (datetime, date)):
                result[column.name] = value.isoformat()
            elif isinstance(value, Decimal):
                result[column.name] = float(value)
            elif isinstance(value, enum.Enum):
                result[column.name] = value.value
            else:
                result[column.name] = value
        return result

    def update_from_dict(self, data, allowed=None):
        """Update model instance from dictionary"""
        for key, value in data.items():
            if allowed is not None and key not in allowed:
                continue
            if hasattr(self, key):
                setattr(self, key, value)
        self.updated_at = datetime.utcnow()

    def save(self):
        """Save the model instance"""
        db.session.add(self)
        db.session.commit()
        return self

    def delete(self):
        """Delete the model instance"""
        db.session.delete(self)
        db.session.commit()

    @classmethod
    def get_by_id(cls, id):
        """Get instance by ID"""
        try:
            return db.session.get(cls, int(id))
        except (TypeError, ValueError):
            return None

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.id}>'
