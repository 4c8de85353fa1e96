from .database import db, BaseModel
from .credit import CreditTransaction, TransactionType
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
import enum

class OrderStatus(enum.Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'
    RETURN_INITIATED = 'return_initiated'
    RETURNED = 'returned'

class PaymentStatus(enum.Enum):
    UNPAID = 'unpaid'
    PAID = 'paid'

STATUS_TRANSITIONS = {
    OrderStatus.PENDING: [OrderStatus.PROCESSING, OrderStatus.CANCELLED],
    OrderStatus.PROCESSING: [OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED],
    OrderStatus.SHIPPED: [OrderStatus.DELIVERED],
    OrderStatus.DELIVERED: [OrderStatus.RETURN_INITIATED],
    OrderStatus.RETURN_INITIATED: [OrderStatus.RETURNED, OrderStatus.DELIVERED],
    OrderStatus.CANCELLED: [],
    OrderStatus.RETURNED: []
}

CENTS = Decimal('0.01')

def to_money(value):
    """Round a numeric value to two decimal places"""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)

class OrderValidationError(ValueError):
    """Raised for order problems that should be reported back to the caller"""

class Cart(BaseModel):
    __tablename__ = 'carts'

    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False, unique=True)

    # Relationships
    items = db.relationship('CartItem', backref='cart', lazy=True, cascade='all, delete-orphan',
                            order_by='CartItem.id')

    @classmethod
    def get_or_create(cls, doctor_id):
        cart = cls.query.filter_by(doctor_id=doctor_id).first()
        if not cart:
            cart = cls(doctor_id=doctor_id)
            db.session.add(cart)
            db.session.flush()
        return cart

    def get_total_items(self):
        """Get total number of items in cart"""
        return sum(item.quantity for item in self.items)

    def get_total_amount(self):
        """Get total amount for all items in cart"""
        return sum((item.get_total_price() for item in self.items), Decimal('0.00'))

    def find_item(self, product_id):
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def clear(self):
        """Remove all items from cart"""
        for item in list(self.items):
            db.session.delete(item)
        self.items = []

    def to_dict(self):
        return {
            'id': self.id,
            'items': [item.to_dict() for item in self.items],
            'total_items': self.get_total_items(),
            'total_amount': float(self.get_total_amount()),
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<Cart {self.doctor_id}>'

class CartItem(BaseModel):
    __tablename__ = 'cart_items'

    cart_id = db.Column(db.Integer, db.ForeignKey('carts.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    # One line per product in a cart
    __table_args__ = (db.UniqueConstraint('cart_id', 'product_id', name='unique_cart_item'),)

    def get_total_price(self):
        """Get total price for this cart item"""
        return to_money(Decimal(self.product.price) * self.quantity)

    def to_dict(self):
        data = super().to_dict()
        data['total_price'] = float(self.get_total_price())
        data['product'] = self.product.to_dict() if self.product else None
        return data

    def __repr__(self):
        return f'<CartItem {self.cart_id}:{self.product_id}>'

class Order(BaseModel):
    __tablename__ = 'orders'

    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False, index=True)
    status = db.Column(db.Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)

    # Financial Information
    subtotal = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    tax_amount = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    shipping_cost = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    discount_amount = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)

    # Payment and Addresses
    payment_method = db.Column(db.String(50), default='credit', nullable=False)
    payment_status = db.Column(db.Enum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)
    shipping_address = db.Column(db.Text, nullable=True)
    billing_address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Shipping
    tracking_number = db.Column(db.String(100), nullable=True)
    shipping_carrier = db.Column(db.String(100), nullable=True)
    estimated_delivery_date = db.Column(db.Date, nullable=True)
    actual_delivery_date = db.Column(db.DateTime, nullable=True)

    # Invoice
    invoice_number = db.Column(db.String(50), unique=True, nullable=True)
    invoice_generated = db.Column(db.Boolean, default=False, nullable=False)
    invoice_url = db.Column(db.String(500), nullable=True)

    whatsapp_notification_sent = db.Column(db.Boolean, default=False, nullable=False)

    # Relationships
    items = db.relationship('OrderItem', backref='order', lazy=True, cascade='all, delete-orphan',
                            order_by='OrderItem.id')
    status_history = db.relationship('OrderStatusHistory', backref='order', lazy=True,
                                     cascade='all, delete-orphan',
                                     order_by='OrderStatusHistory.id.desc()')
    communications = db.relationship('OrderCommunication', backref='order', lazy=True,
                                     cascade='all, delete-orphan',
                                     order_by='OrderCommunication.id')
    returns = db.relationship('Return', backref='order', lazy=True, order_by='Return.id')

    @classmethod
    def create_from_lines(cls, doctor, lines, gst_rate, changed_by=None, **fields):
        """
        Build a pending order from (product, quantity) pairs.

        Checks stock, decrements it, snapshots prices, appends the first
        status-history row and debits the doctor's ledger. Everything is
        added to the session without committing; the caller owns the
        transaction.
        """
        if not lines:
            raise OrderValidationError('Cart is empty')

        order = cls(doctor_id=doctor.id, status=OrderStatus.PENDING, **fields)
        subtotal = Decimal('0.00')
        for product, quantity in lines:
            if product is None or not product.is_active:
                raise OrderValidationError('A product in your order is no longer available')
            if quantity <= 0:
                raise OrderValidationError(f'Invalid quantity for {product.name}')
            if not product.can_order_quantity(quantity):
                raise OrderValidationError(
                    f'Insufficient stock for {product.name}. Available: {product.stock}'
                )
            product.update_stock(-quantity)
            line_total = to_money(Decimal(product.price) * quantity)
            order.items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                price_per_unit=to_money(product.price),
                total_price=line_total
            ))
            subtotal += line_total

        order.subtotal = subtotal
        order.tax_amount = to_money(subtotal * Decimal(str(gst_rate)))
        order.total_amount = order.subtotal + order.tax_amount
        db.session.add(order)
        db.session.flush()

        order.add_history(OrderStatus.PENDING, "Order placed", changed_by)
        if order.total_amount > 0:
            CreditTransaction.record(
                doctor_id=doctor.id,
                amount=order.total_amount,
                type=TransactionType.DEBIT,
                description=f'Order #{order.id}',
                reference_id=f'order-{order.id}'
            )
        return order

    def get_total_items(self):
        """Get total number of items in order"""
        return sum(item.quantity for item in self.items)

    def get_product_summary(self):
        return ', '.join(f'{item.product_name} ({item.quantity})' for item in self.items)

    def can_cancel(self):
        """Doctors may only cancel orders nobody has started on"""
        return self.status == OrderStatus.PENDING

    def can_update_status(self, new_status):
        """Check if order status can be updated to new status"""
        return new_status in STATUS_TRANSITIONS.get(self.status, [])

    def add_history(self, status, notes=None, changed_by=None):
        entry = OrderStatusHistory(
            order_id=self.id,
            status=status.value,
            notes=notes or f'Status changed to {status.value}',
            created_by=changed_by
        )
        db.session.add(entry)
        return entry

    def set_status(self, new_status, notes=None, changed_by=None):
        """
        Move the order to new_status and append a history row.

        Raises OrderValidationError for transitions outside STATUS_TRANSITIONS.
        Cancelling puts stock back and credits the ledger for the order total.
        """
        if not self.can_update_status(new_status):
            raise OrderValidationError(
                f'Cannot change order status from {self.status.value} to {new_status.value}'
            )

        old_status = self.status
        self.status = new_status
        self.updated_at = datetime.utcnow()

        if new_status == OrderStatus.DELIVERED:
            self.actual_delivery_date = datetime.utcnow()
        elif new_status == OrderStatus.CANCELLED:
            self.restock_items()
            if self.total_amount > 0:
                CreditTransaction.record(
                    doctor_id=self.doctor_id,
                    amount=self.total_amount,
                    type=TransactionType.CREDIT,
                    description=f'Order #{self.id} cancelled',
                    reference_id=f'order-{self.id}-cancel'
                )

        self.add_history(new_status, notes, changed_by)
        return old_status

    def restock_items(self):
        for item in self.items:
            if item.product:
                item.product.update_stock(item.quantity)

    def to_dict(self, include_items=False):
        """Convert to dictionary"""
        data = super().to_dict()
        data['total_items'] = self.get_total_items()
        if self.doctor:
            data['doctor'] = {
                'id': self.doctor.id,
                'name': self.doctor.name,
                'phone': self.doctor.phone,
                'email': self.doctor.email
            }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f'<Order {self.id} {self.status.value}>'

class OrderItem(BaseModel):
    __tablename__ = 'order_items'

    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)

    # Product Information (snapshot at time of order)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_per_unit = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    def __repr__(self):
        return f'<OrderItem {self.product_name} x{self.quantity}>'

class OrderStatusHistory(BaseModel):
    __tablename__ = 'order_status_history'

    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    status = db.Column(db.String(30), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    def __repr__(self):
        return f'<OrderStatusHistory {self.order_id} {self.status}>'

class OrderCommunication(BaseModel):
    __tablename__ = 'order_communications'

    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    sender_type = db.Column(db.String(10), nullable=False)  # admin, doctor
    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime, nullable=True)

    def mark_as_read(self):
        self.read = True
        self.read_at = datetime.utcnow()

    def __repr__(self):
        return f'<OrderCommunication {self.order_id} from {self.sender_id}>'

class OrderNotification(BaseModel):
    __tablename__ = 'order_notifications'

    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=True, index=True)
    notification_type = db.Column(db.String(30), nullable=False)  # email, whatsapp, invoice_email, admin_new_order
    recipient = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), default='sent', nullable=False)  # sent, failed
    content = db.Column(db.Text, nullable=True)
    sent_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=True)

    def __repr__(self):
        return f'<OrderNotification {self.notification_type} {self.status}>'
