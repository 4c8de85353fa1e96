from .database import db, BaseModel
from .credit import CreditTransaction, TransactionType
from .order import OrderStatus, OrderValidationError, to_money
from datetime import datetime
from decimal import Decimal
from sqlalchemy import func
import enum

class ReturnStatus(enum.Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

class Return(BaseModel):
    __tablename__ = 'returns'

    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False, index=True)
    reason = db.Column(db.Text, nullable=False)
    status = db.Column(db.Enum(ReturnStatus), default=ReturnStatus.PENDING, nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    processed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    items = db.relationship('ReturnItem', backref='return_request', lazy=True, cascade='all, delete-orphan',
                            order_by='ReturnItem.id')
    doctor = db.relationship('Doctor')

    @classmethod
    def initiate(cls, order, reason, requested_items, requested_by=None):
        """
        Create a pending return for a delivered order.

        requested_items is a list of dicts with order_item_id and quantity.
        Amounts come from the order's price snapshots, never from the caller.
        """
        if order.status != OrderStatus.DELIVERED:
            raise OrderValidationError('Only delivered orders can be returned')
        if not requested_items:
            raise OrderValidationError('Select at least one item to return')

        order_items = {item.id: item for item in order.items}
        already_returned = returned_quantities(order.id)

        return_request = cls(order_id=order.id, doctor_id=order.doctor_id, reason=reason,
                             status=ReturnStatus.PENDING, amount=Decimal('0.00'))
        total = Decimal('0.00')
        requested_so_far = {}
        for requested in requested_items:
            if not isinstance(requested, dict):
                raise OrderValidationError('Each return item needs order_item_id and quantity')
            try:
                order_item_id = int(requested.get('order_item_id'))
                quantity = int(requested.get('quantity'))
            except (TypeError, ValueError):
                raise OrderValidationError('Each return item needs order_item_id and quantity')

            order_item = order_items.get(order_item_id)
            if order_item is None:
                raise OrderValidationError(f'Item {order_item_id} is not part of this order')
            if quantity <= 0:
                raise OrderValidationError('Return quantity must be greater than 0')
            returnable = (order_item.quantity - already_returned.get(order_item_id, 0)
                          - requested_so_far.get(order_item_id, 0))
            if quantity > returnable:
                raise OrderValidationError(
                    f'Cannot return {quantity} of {order_item.product_name}. Returnable: {returnable}'
                )
            requested_so_far[order_item_id] = requested_so_far.get(order_item_id, 0) + quantity

            line_total = to_money(Decimal(order_item.price_per_unit) * quantity)
            return_request.items.append(ReturnItem(
                order_item_id=order_item.id,
                product_id=order_item.product_id,
                quantity=quantity,
                price_per_unit=order_item.price_per_unit,
                total_price=line_total,
                reason=requested.get('reason') or reason,
                condition=requested.get('condition')
            ))
            total += line_total

        return_request.amount = total
        db.session.add(return_request)
        order.set_status(OrderStatus.RETURN_INITIATED, 'Return initiated by doctor', requested_by)
        return return_request

    def process(self, new_status, processed_by, notes=None):
        """Approve or reject a pending return"""
        if self.status != ReturnStatus.PENDING:
            raise OrderValidationError(f'Return is already {self.status.value}')
        if new_status not in (ReturnStatus.APPROVED, ReturnStatus.REJECTED):
            raise OrderValidationError('Return status must be approved or rejected')

        self.status = new_status
        self.processed_by = processed_by
        self.processed_at = datetime.utcnow()
        self.notes = notes or f'Return {new_status.value}'

        order = self.order
        if new_status == ReturnStatus.APPROVED:
            for item in self.items:
                if item.product:
                    item.product.update_stock(item.quantity)
            CreditTransaction.record(
                doctor_id=self.doctor_id,
                amount=self.amount,
                type=TransactionType.CREDIT,
                description=f'Return #{self.id} for order #{self.order_id}',
                reference_id=f'return-{self.id}'
            )
            order.set_status(OrderStatus.RETURNED, self.notes, processed_by)
        else:
            order.set_status(OrderStatus.DELIVERED, self.notes, processed_by)

    def to_dict(self, include_items=True):
        data = super().to_dict()
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        if self.doctor:
            data['doctor_name'] = self.doctor.name
        return data

    def __repr__(self):
        return f'<Return {self.id} order:{self.order_id} {self.status.value}>'

class ReturnItem(BaseModel):
    __tablename__ = 'return_items'

    return_id = db.Column(db.Integer, db.ForeignKey('returns.id'), nullable=False, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey('order_items.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_per_unit = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    reason = db.Column(db.Text, nullable=True)
    condition = db.Column(db.String(50), nullable=True)

    product = db.relationship('Product')
    order_item = db.relationship('OrderItem')

    def to_dict(self):
        data = super().to_dict()
        data['product_name'] = self.order_item.product_name if self.order_item else None
        return data

def returned_quantities(order_id):
    """Quantities per order item already covered by pending or approved returns"""
    rows = db.session.query(ReturnItem.order_item_id, func.sum(ReturnItem.quantity)).join(
        Return, ReturnItem.return_id == Return.id
    ).filter(
        Return.order_id == order_id,
        Return.status.in_([ReturnStatus.PENDING, ReturnStatus.APPROVED])
    ).group_by(ReturnItem.order_item_id).all()
    return {order_item_id: int(total) for order_item_id, total in rows}
