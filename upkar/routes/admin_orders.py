from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import or_
from datetime import datetime

from upkar.models import db, Doctor, Order, OrderStatus, OrderValidationError, Return, ReturnStatus
from upkar.utils.auth import (
    get_current_user, log_audit_action, require_admin, validate_pagination_params, pagination_dict
)
from upkar.utils.validation import sanitize_string
from upkar.utils.invoices import generate_invoice, invoice_file_exists
from upkar.utils.notifications import notify_order_status, notify_invoice, notify_return_processed

admin_orders_bp = Blueprint('admin_orders', __name__)

def _order_row(order):
    data = order.to_dict()
    data['product_summary'] = order.get_product_summary()
    return data

@admin_orders_bp.route('/orders', methods=['GET'])
@require_admin
def get_orders():
    """Orders with doctor contact details and a one-line product summary"""
    try:
        page, per_page = validate_pagination_params(
            request.args.get('page', 1), request.args.get('per_page', 20)
        )
        status = request.args.get('status')
        doctor_id = request.args.get('doctor_id', type=int)
        search = request.args.get('search', '').strip()

        query = Order.query.join(Doctor, Order.doctor_id == Doctor.id)
        if status:
            try:
                query = query.filter(Order.status == OrderStatus(status))
            except ValueError:
                return jsonify({'error': 'Invalid order status'}), 400
        if doctor_id:
            query = query.filter(Order.doctor_id == doctor_id)
        if search:
            term = f'%{search}%'
            filters = [
                Doctor.name.ilike(term),
                Doctor.phone.ilike(term),
                Doctor.email.ilike(term),
                Order.invoice_number.ilike(term),
                Order.tracking_number.ilike(term)
            ]
            if search.lstrip('#').isdigit():
                filters.append(Order.id == int(search.lstrip('#')))
            query = query.filter(or_(*filters))

        pagination = query.order_by(Order.created_at.desc(), Order.id.desc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

        return jsonify({
            'orders': [_order_row(order) for order in pagination.items],
            'pagination': pagination_dict(pagination)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get admin orders error: {str(e)}")
        return jsonify({'error': 'Failed to get orders'}), 500

@admin_orders_bp.route('/orders/<int:order_id>/status', methods=['PUT'])
@require_admin
def update_order_status(order_id):
    """Move an order along its lifecycle"""
    try:
        admin = get_current_user()
        order = Order.get_by_id(order_id)
        if not order:
            return jsonify({'error': 'Order not found'}), 404

        data = request.get_json(silent=True)
        if not data or not data.get('status'):
            return jsonify({'error': 'Status is required'}), 400

        try:
            new_status = OrderStatus(data['status'])
        except ValueError:
            return jsonify({'error': 'Invalid order status'}), 400

        notes = sanitize_string(data.get('notes'), 1000) or None
        try:
            old_status = order.set_status(new_status, notes, admin.id)
            db.session.commit()
        except OrderValidationError as e:
            db.session.rollback()
            return jsonify({'error': str(e)}), 400

        current_app.logger.info(f"Order {order.id} moved from {old_status.value} to {new_status.value}")
        notify_order_status(order, notes)
        log_audit_action(admin.id, 'order_status_updated', 'orders', order.id,
                         {'status': old_status.value}, {'status': new_status.value, 'notes': notes})

        return jsonify({
            'message': 'Order status updated successfully',
            'order': order.to_dict(include_items=True)
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update order status error: {str(e)}")
        return jsonify({'error': 'Failed to update order status'}), 500

@admin_orders_bp.route('/orders/<int:order_id>/shipping', methods=['PUT'])
@require_admin
def update_shipping(order_id):
    """Store tracking details. A processing order is marked shipped."""
    try:
        admin = get_current_user()
        order = Order.get_by_id(order_id)
        if not order:
            return jsonify({'error': 'Order not found'}), 404

        if order.status in (OrderStatus.CANCELLED, OrderStatus.RETURNED):
            return jsonify({'error': f'Cannot ship a {order.status.value} order'}), 400

        data = request.get_json(silent=True) or {}
        tracking_number = sanitize_string(data.get('tracking_number'), 100)
        shipping_carrier = sanitize_string(data.get('shipping_carrier'), 100)
        if not tracking_number or not shipping_carrier:
            return jsonify({'error': 'Tracking number and shipping carrier are required'}), 400

        estimated = data.get('estimated_delivery_date')
        if estimated:
            try:
                order.estimated_delivery_date = datetime.strptime(estimated[:10], '%Y-%m-%d').date()
            except (TypeError, ValueError):
                return jsonify({'error': 'estimated_delivery_date must be YYYY-MM-DD'}), 400

        order.tracking_number = tracking_number
        order.shipping_carrier = shipping_carrier

        notes = f'Shipped via {shipping_carrier}, tracking {tracking_number}'
        if order.status == OrderStatus.PROCESSING:
            order.set_status(OrderStatus.SHIPPED, notes, admin.id)
        db.session.commit()

        notify_order_status(order, notes)
        log_audit_action(admin.id, 'order_shipping_updated', 'orders', order.id, None, {
            'tracking_number': tracking_number,
            'shipping_carrier': shipping_carrier,
            'status': order.status.value
        })

        return jsonify({
            'message': 'Shipping information updated',
            'order': order.to_dict(include_items=True)
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update shipping error: {str(e)}")
        return jsonify({'error': 'Failed to update shipping information'}), 500

@admin_orders_bp.route('/orders/<int:order_id>/invoice', methods=['POST'])
@require_admin
def create_invoice(order_id):
    try:
        admin = get_current_user()
        order = Order.get_by_id(order_id)
        if not order:
            return jsonify({'error': 'Order not found'}), 404

        regenerate = request.args.get('regenerate', 'false').lower() == 'true'
        try:
            invoice, created = generate_invoice(order, regenerate=regenerate)
            db.session.commit()
        except OrderValidationError as e:
            db.session.rollback()
            return jsonify({'error': str(e)}), 400

        if created:
            log_audit_action(admin.id, 'invoice_generated', 'invoices', invoice.id, None,
                             {'invoice_number': invoice.invoice_number, 'order_id': order.id})

        return jsonify({
            'message': 'Invoice generated successfully' if created else 'Invoice already exists',
            'created': created,
            'invoice': invoice.to_dict(),
            'order': order.to_dict()
        }), 201 if created else 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Generate invoice error: {str(e)}")
        return jsonify({'error': 'Failed to generate invoice'}), 500

@admin_orders_bp.route('/orders/<int:order_id>/invoice/email', methods=['POST'])
@require_admin
def email_invoice(order_id):
    """Email the invoice PDF to the doctor, generating it first if needed"""
    try:
        order = Order.get_by_id(order_id)
        if not order:
            return jsonify({'error': 'Order not found'}), 404

        try:
            invoice, _ = generate_invoice(order)
            if not invoice_file_exists(invoice):
                current_app.logger.warning(f"Invoice file missing for order {order.id}, regenerating")
                invoice, _ = generate_invoice(order, regenerate=True)
            db.session.commit()
        except OrderValidationError as e:
            db.session.rollback()
            return jsonify({'error': str(e)}), 400

        result = notify_invoice(order, invoice)
        if not result.get('success'):
            return jsonify({
                'error': result.get('error') or 'Failed to send invoice email',
                'invoice': invoice.to_dict()
            }), 502

        return jsonify({'message': 'Invoice emailed successfully', 'invoice': invoice.to_dict()}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Email invoice error: {str(e)}")
        return jsonify({'error': 'Failed to email invoice'}), 500

@admin_orders_bp.route('/returns', methods=['GET'])
@require_admin
def get_returns():
    try:
        page, per_page = validate_pagination_params(
            request.args.get('page', 1), request.args.get('per_page', 20)
        )
        status = request.args.get('status')

        query = Return.query
        if status:
            try:
                query = query.filter(Return.status == ReturnStatus(status))
            except ValueError:
                return jsonify({'error': 'Invalid return status'}), 400

        pagination = query.order_by(Return.created_at.desc(), Return.id.desc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

        return jsonify({
            'returns': [return_request.to_dict() for return_request in pagination.items],
            'pagination': pagination_dict(pagination)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get returns error: {str(e)}")
        return jsonify({'error': 'Failed to get returns'}), 500

@admin_orders_bp.route('/returns/<int:return_id>', methods=['GET'])
@require_admin
def get_return(return_id):
    try:
        return_request = Return.get_by_id(return_id)
        if not return_request:
            return jsonify({'error': 'Return not found'}), 404

        data = return_request.to_dict()
        data['order'] = return_request.order.to_dict(include_items=True)
        return jsonify({'return': data}), 200

    except Exception as e:
        current_app.logger.error(f"Get return error: {str(e)}")
        return jsonify({'error': 'Failed to get return'}), 500

@admin_orders_bp.route('/returns/<int:return_id>', methods=['PUT'])
@require_admin
def process_return(return_id):
    """Approve or reject a pending return"""
    try:
        admin = get_current_user()
        return_request = Return.get_by_id(return_id)
        if not return_request:
            return jsonify({'error': 'Return not found'}), 404

        data = request.get_json(silent=True) or {}
        try:
            new_status = ReturnStatus(data.get('status'))
        except ValueError:
            return jsonify({'error': 'Status must be approved or rejected'}), 400

        notes = sanitize_string(data.get('notes'), 1000) or None
        try:
            return_request.process(new_status, admin.id, notes)
            db.session.commit()
        except OrderValidationError as e:
            db.session.rollback()
            return jsonify({'error': str(e)}), 400

        notify_return_processed(return_request)
        notify_order_status(return_request.order, return_request.notes)
        log_audit_action(admin.id, f'return_{new_status.value}', 'returns', return_request.id,
                         {'status': ReturnStatus.PENDING.value}, {'status': new_status.value})

        return jsonify({
            'message': f'Return {new_status.value}',
            'return': return_request.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Process return error: {str(e)}")
        return jsonify({'error': 'Failed to process return'}), 500
