from flask import Blueprint, request, jsonify, current_app, send_file
from flask_jwt_extended import jwt_required

from upkar.models import (
    db, User, UserRole, Cart, Product, Order, OrderStatus, OrderCommunication,
    OrderValidationError, Return
)
from upkar.utils.auth import (
    require_approved_doctor, get_current_user, can_access_order,
    log_audit_action, validate_pagination_params, pagination_dict
)
from upkar.utils.validation import sanitize_string, validate_payment_method
from upkar.utils.invoices import generate_invoice, invoice_file_exists
from upkar.utils.notifications import notify_new_order, notify_new_message

orders_bp = Blueprint('orders', __name__)

def _approval_error(user):
    """403 response for doctors who may not order yet, otherwise None"""
    if user.is_doctor and (not user.doctor or not user.doctor.is_approved):
        return jsonify({
            'error': 'Your account is awaiting admin approval',
            'approval_status': user.doctor.approval_status if user.doctor else None
        }), 403
    return None

def _load_order(order_id, user):
    """Return (order, error_response) for the current user"""
    order = Order.get_by_id(order_id)
    if not order:
        return None, (jsonify({'error': 'Order not found'}), 404)
    if not can_access_order(user, order):
        return None, (jsonify({'error': 'Access denied'}), 403)
    return order, None

def _order_fields(data, doctor):
    payment_method = data.get('payment_method') or 'credit'
    if not validate_payment_method(payment_method):
        raise OrderValidationError('Invalid payment method')

    fields = {
        'shipping_address': sanitize_string(data.get('shipping_address')) or doctor.address,
        'billing_address': sanitize_string(data.get('billing_address')) or doctor.address,
        'payment_method': payment_method,
        'notes': sanitize_string(data.get('notes'), 1000) or None
    }
    return {key: value for key, value in fields.items() if value is not None}

def _lock_products(product_ids):
    """Load the products being ordered, locking their rows where the database supports it"""
    products = Product.query.filter(Product.id.in_(product_ids)).with_for_update().all()
    return {product.id: product for product in products}

@orders_bp.route('', methods=['POST'])
@require_approved_doctor
def create_order():
    """
    Place an order from the doctor's cart.

    Order, items, stock, status history, ledger debit and cart clearing
    are committed together or not at all.
    """
    try:
        user = get_current_user()
        doctor = user.doctor
        data = request.get_json(silent=True) or {}

        cart = Cart.query.filter_by(doctor_id=doctor.id).first()
        if not cart or not cart.items:
            return jsonify({'error': 'Cart is empty'}), 400

        try:
            fields = _order_fields(data, doctor)
            products = _lock_products([item.product_id for item in cart.items])
            lines = [(products.get(item.product_id), item.quantity) for item in cart.items]
            order = Order.create_from_lines(doctor, lines, current_app.config['GST_RATE'],
                                            changed_by=user.id, **fields)
            cart.clear()
            db.session.commit()
        except OrderValidationError as e:
            db.session.rollback()
            return jsonify({'error': str(e)}), 400

        current_app.logger.info(f"Order {order.id} placed by doctor {doctor.id} for {order.total_amount}")
        notify_new_order(order)
        log_audit_action(user.id, 'order_created', 'orders', order.id, None,
                         {'total_amount': float(order.total_amount), 'items': order.get_total_items()})

        return jsonify({
            'message': 'Order placed successfully',
            'order': order.to_dict(include_items=True)
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Create order error: {str(e)}")
        return jsonify({'error': 'Failed to place order'}), 500

@orders_bp.route('', methods=['GET'])
@jwt_required()
def get_orders():
    """A doctor's own orders, or every order for an admin"""
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404
        error = _approval_error(user)
        if error:
            return error

        page, per_page = validate_pagination_params(
            request.args.get('page', 1), request.args.get('per_page', 10)
        )
        status = request.args.get('status')

        query = Order.query if user.is_admin else Order.query.filter_by(doctor_id=user.doctor.id)

        if status:
            try:
                query = query.filter_by(status=OrderStatus(status))
            except ValueError:
                return jsonify({'error': 'Invalid order status'}), 400

        pagination = query.order_by(Order.created_at.desc(), Order.id.desc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

        return jsonify({
            'orders': [order.to_dict(include_items=True) for order in pagination.items],
            'pagination': pagination_dict(pagination)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get orders error: {str(e)}")
        return jsonify({'error': 'Failed to get orders'}), 500

@orders_bp.route('/<int:order_id>', methods=['GET'])
@jwt_required()
def get_order(order_id):
    """Order with its items, status history, messages and returns"""
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404
        order, error = _load_order(order_id, user)
        if error:
            return error

        return jsonify({
            'order': order.to_dict(include_items=True),
            'status_history': [entry.to_dict() for entry in order.status_history],
            'communications': [message.to_dict() for message in order.communications],
            'returns': [return_request.to_dict() for return_request in order.returns]
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get order error: {str(e)}")
        return jsonify({'error': 'Failed to get order'}), 500

@orders_bp.route('/<int:order_id>/cancel', methods=['POST'])
@jwt_required()
def cancel_order(order_id):
    """Cancel a pending order, restocking it and crediting the ledger"""
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404
        order, error = _load_order(order_id, user)
        if error:
            return error

        if not order.can_cancel():
            return jsonify({'error': 'Order cannot be cancelled at this stage'}), 400

        data = request.get_json(silent=True) or {}
        reason = sanitize_string(data.get('reason'), 500) or f'Cancelled by {user.role.value}'
        old_status = order.set_status(OrderStatus.CANCELLED, reason, user.id)
        db.session.commit()

        log_audit_action(user.id, 'order_cancelled', 'orders', order.id,
                         {'status': old_status.value}, {'status': order.status.value})

        return jsonify({
            'message': 'Order cancelled successfully',
            'order': order.to_dict(include_items=True)
        }), 200

    except OrderValidationError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Cancel order error: {str(e)}")
        return jsonify({'error': 'Failed to cancel order'}), 500

@orders_bp.route('/<int:order_id>/reorder', methods=['POST'])
@require_approved_doctor
def reorder(order_id):
    """Place a new order with the same items at today's prices"""
    try:
        user = get_current_user()
        doctor = user.doctor
        original, error = _load_order(order_id, user)
        if error:
            return error

        source = original.invoice_number or f'#{original.id}'
        try:
            products = _lock_products([item.product_id for item in original.items])
            lines = [(products.get(item.product_id), item.quantity) for item in original.items]
            order = Order.create_from_lines(
                doctor, lines, current_app.config['GST_RATE'], changed_by=user.id,
                shipping_address=original.shipping_address or doctor.address,
                billing_address=original.billing_address or doctor.address,
                payment_method=original.payment_method or 'credit',
                notes=f'Reordered from {source}'
            )
            db.session.commit()
        except OrderValidationError as e:
            db.session.rollback()
            return jsonify({'error': str(e)}), 400

        notify_new_order(order)
        log_audit_action(user.id, 'order_reordered', 'orders', order.id, None, {'source_order_id': original.id})

        return jsonify({
            'message': 'Order placed successfully',
            'order': order.to_dict(include_items=True)
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Reorder error: {str(e)}")
        return jsonify({'error': 'Failed to reorder'}), 500

@orders_bp.route('/<int:order_id>/communications', methods=['GET'])
@jwt_required()
def get_communications(order_id):
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404
        order, error = _load_order(order_id, user)
        if error:
            return error

        return jsonify({
            'communications': [message.to_dict() for message in order.communications]
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get communications error: {str(e)}")
        return jsonify({'error': 'Failed to get messages'}), 500

@orders_bp.route('/<int:order_id>/communications', methods=['POST'])
@jwt_required()
def add_communication(order_id):
    """Post a message on an order thread"""
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404
        order, error = _load_order(order_id, user)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        message = sanitize_string(data.get('message'), 5000)
        if not message:
            return jsonify({'error': 'Message is required'}), 400

        if user.is_admin:
            sender_type = 'admin'
            recipient_id = order.doctor.user_id
        else:
            sender_type = 'doctor'
            admin = User.query.filter_by(role=UserRole.ADMIN, is_active=True).order_by(User.id).first()
            recipient_id = admin.id if admin else None

        communication = OrderCommunication(
            order_id=order.id,
            sender_id=user.id,
            recipient_id=recipient_id,
            sender_type=sender_type,
            message=message
        )
        db.session.add(communication)
        db.session.commit()

        notify_new_message(order, communication)

        return jsonify({
            'message': 'Message sent',
            'communication': communication.to_dict()
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Add communication error: {str(e)}")
        return jsonify({'error': 'Failed to send message'}), 500

@orders_bp.route('/<int:order_id>/communications/read', methods=['PUT'])
@jwt_required()
def mark_communications_read(order_id):
    """Mark every message the caller did not send as read"""
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404
        order, error = _load_order(order_id, user)
        if error:
            return error

        updated = 0
        for message in order.communications:
            if message.sender_id != user.id and not message.read:
                message.mark_as_read()
                updated += 1
        db.session.commit()

        return jsonify({'message': 'Messages marked as read', 'updated': updated}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Mark communications read error: {str(e)}")
        return jsonify({'error': 'Failed to update messages'}), 500

@orders_bp.route('/<int:order_id>/returns', methods=['POST'])
@require_approved_doctor
def initiate_return(order_id):
    """Request a return of some or all items of a delivered order"""
    try:
        user = get_current_user()
        order, error = _load_order(order_id, user)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        reason = sanitize_string(data.get('reason'), 2000)
        if not reason:
            return jsonify({'error': 'Reason is required'}), 400

        items = data.get('items')
        if not isinstance(items, list):
            return jsonify({'error': 'Items must be a list'}), 400

        try:
            return_request = Return.initiate(order, reason, items, requested_by=user.id)
            db.session.commit()
        except OrderValidationError as e:
            db.session.rollback()
            return jsonify({'error': str(e)}), 400

        log_audit_action(user.id, 'return_initiated', 'returns', return_request.id, None,
                         {'order_id': order.id, 'amount': float(return_request.amount)})

        return jsonify({
            'message': 'Return request submitted',
            'return': return_request.to_dict()
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Initiate return error: {str(e)}")
        return jsonify({'error': 'Failed to submit return'}), 500

@orders_bp.route('/<int:order_id>/invoice', methods=['GET'])
@jwt_required()
def download_invoice(order_id):
    """Download the invoice PDF"""
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404
        order, error = _load_order(order_id, user)
        if error:
            return error

        invoice = order.invoice
        if not invoice or not order.invoice_generated:
            return jsonify({'error': 'Invoice not generated yet'}), 404

        if not invoice_file_exists(invoice):
            current_app.logger.warning(f"Invoice file missing for order {order.id}, regenerating")
            invoice, _ = generate_invoice(order, regenerate=True)
            db.session.commit()

        return send_file(
            invoice.pdf_path,
            mimetype='application/pdf',
            as_attachment=True,
            download_name=f'{invoice.invoice_number}.pdf'
        )

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Download invoice error: {str(e)}")
        return jsonify({'error': 'Failed to download invoice'}), 500
