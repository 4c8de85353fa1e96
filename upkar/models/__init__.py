from .database import db, BaseModel
from .user import User, UserRole
from .doctor import Doctor, APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_REJECTED
from .product import Product
from .credit import CreditTransaction, Payment, TransactionType, build_credit_summary
from .order import (
    Cart, CartItem, Order, OrderItem, OrderStatusHistory, OrderCommunication,
    OrderNotification, OrderStatus, PaymentStatus, OrderValidationError,
    STATUS_TRANSITIONS, to_money
)
from .returns import Return, ReturnItem, ReturnStatus, returned_quantities
from .invoice import Invoice
from .admin import AuditLog, Notification

__all__ = [
    # Database
    'db',
    'BaseModel',

    # User models
    'User',
    'UserRole',

    # Doctor models
    'Doctor',
    'APPROVAL_PENDING',
    'APPROVAL_APPROVED',
    'APPROVAL_REJECTED',

    # Product models
    'Product',

    # Ledger models
    'CreditTransaction',
    'Payment',
    'TransactionType',
    'build_credit_summary',

    # Order models
    'Cart',
    'CartItem',
    'Order',
    'OrderItem',
    'OrderStatusHistory',
    'OrderCommunication',
    'OrderNotification',
    'OrderStatus',
    'PaymentStatus',
    'OrderValidationError',
    'STATUS_TRANSITIONS',
    'to_money',

    # Return models
    'Return',
    'ReturnItem',
    'ReturnStatus',
    'returned_quantities',

    # Invoice models
    'Invoice',

    # Admin models
    'AuditLog',
    'Notification'
]
