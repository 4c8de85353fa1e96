from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import func, or_
from datetime import datetime, timedelta
from decimal import Decimal

from upkar.models import (
    db, Doctor, Product, Order, OrderItem, OrderStatus, Invoice, AuditLog, Return, ReturnStatus,
    CreditTransaction, TransactionType, APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_REJECTED
)
from upkar.utils.auth import (
    get_current_user, log_audit_action, require_admin, validate_pagination_params, pagination_dict
)
from upkar.utils.validation import (
    validate_required_fields, validate_price, validate_quantity, sanitize_string
)
from upkar.utils.notifications import notify_doctor_approval
from upkar.routes.products import search_filter

admin_bp = Blueprint('admin', __name__)

PRODUCT_FIELDS = ('name', 'description', 'category', 'image_url', 'price', 'stock', 'is_active')

@admin_bp.route('/dashboard', methods=['GET'])
@require_admin
def get_dashboard():
    """Get admin dashboard statistics"""
    try:
        now = datetime.utcnow()
        week_ago = now - timedelta(days=7)
        month_ago = now - timedelta(days=30)
        threshold = current_app.config['LOW_STOCK_THRESHOLD']

        # Doctor statistics
        total_doctors = Doctor.query.count()
        approved_doctors = Doctor.query.filter_by(is_approved=True).count()
        rejected_doctors = Doctor.query.filter(
            Doctor.is_approved.is_(False), Doctor.rejected_at.isnot(None)
        ).count()

        # Product statistics
        total_products = Product.query.count()
        active_products = Product.query.filter_by(is_active=True).count()
        low_stock = Product.query.filter(Product.is_active.is_(True), Product.stock <= threshold).count()

        # Order statistics
        status_counts = dict(
            db.session.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
        )
        orders_by_status = {status.value: status_counts.get(status, 0) for status in OrderStatus}
        orders_week = Order.query.filter(Order.created_at >= week_ago).count()
        orders_month = Order.query.filter(Order.created_at >= month_ago).count()

        revenue = db.session.query(func.coalesce(func.sum(Order.total_amount), 0)).filter(
            Order.status == OrderStatus.DELIVERED
        ).scalar()

        # Outstanding credit across every doctor
        ledger = dict(
            db.session.query(CreditTransaction.type, func.coalesce(func.sum(CreditTransaction.amount), 0))
            .group_by(CreditTransaction.type).all()
        )
        outstanding = float(ledger.get(TransactionType.DEBIT, 0) or 0) - float(ledger.get(TransactionType.CREDIT, 0) or 0)

        pending_returns = Return.query.filter_by(status=ReturnStatus.PENDING).count()

        recent_activities = AuditLog.query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(10).all()

        return jsonify({
            'statistics': {
                'doctors': {
                    'total': total_doctors,
                    'pending': total_doctors - approved_doctors - rejected_doctors,
                    'approved': approved_doctors,
                    'rejected': rejected_doctors
                },
                'products': {
                    'total': total_products,
                    'active': active_products,
                    'low_stock': low_stock
                },
                'orders': {
                    'total': sum(orders_by_status.values()),
                    'by_status': orders_by_status,
                    'this_week': orders_week,
                    'this_month': orders_month
                },
                'revenue': {
                    'total': float(revenue or 0)
                },
                'credit': {
                    'outstanding': round(outstanding, 2)
                },
                'returns': {
                    'pending': pending_returns
                }
            },
            'recent_activities': [
                {
                    'id': activity.id,
                    'action': activity.action,
                    'user_id': activity.user_id,
                    'table_name': activity.table_name,
                    'record_id': activity.record_id,
                    'created_at': activity.created_at.isoformat()
                }
                for activity in recent_activities
            ]
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get dashboard error: {str(e)}")
        return jsonify({'error': 'Failed to get dashboard data'}), 500

@admin_bp.route('/doctors', methods=['GET'])
@require_admin
def get_doctors():
    """List doctors filtered by approval status"""
    try:
        page, per_page = validate_pagination_params(
            request.args.get('page', 1), request.args.get('per_page', 20)
        )
        status = request.args.get('status', 'all')
        search = request.args.get('search', '').strip()

        query = Doctor.query
        if status == APPROVAL_PENDING:
            query = query.filter(Doctor.is_approved.is_(False), Doctor.rejected_at.is_(None))
        elif status == APPROVAL_APPROVED:
            query = query.filter(Doctor.is_approved.is_(True))
        elif status == APPROVAL_REJECTED:
            query = query.filter(Doctor.is_approved.is_(False), Doctor.rejected_at.isnot(None))
        elif status != 'all':
            return jsonify({'error': 'Invalid status filter'}), 400

        if search:
            term = f'%{search}%'
            query = query.filter(or_(
                Doctor.name.ilike(term),
                Doctor.email.ilike(term),
                Doctor.phone.ilike(term),
                Doctor.gst_number.ilike(term),
                Doctor.clinic_name.ilike(term)
            ))

        pagination = query.order_by(Doctor.created_at.desc(), Doctor.id.desc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

        return jsonify({
            'doctors': [doctor.to_dict() for doctor in pagination.items],
            'pagination': pagination_dict(pagination)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get doctors error: {str(e)}")
        return jsonify({'error': 'Failed to get doctors'}), 500

@admin_bp.route('/doctors/<int:doctor_id>', methods=['GET'])
@require_admin
def get_doctor(doctor_id):
    try:
        doctor = Doctor.get_by_id(doctor_id)
        if not doctor:
            return jsonify({'error': 'Doctor not found'}), 404

        data = doctor.to_dict()
        data['order_count'] = doctor.orders.count()
        data['balance'] = float(CreditTransaction.balance_for(doctor.id))
        return jsonify({'doctor': data}), 200

    except Exception as e:
        current_app.logger.error(f"Get doctor error: {str(e)}")
        return jsonify({'error': 'Failed to get doctor'}), 500

@admin_bp.route('/doctors/<int:doctor_id>/approve', methods=['PUT'])
@require_admin
def approve_doctor(doctor_id):
    """Approve a doctor so they can start ordering"""
    try:
        admin = get_current_user()
        doctor = Doctor.get_by_id(doctor_id)
        if not doctor:
            return jsonify({'error': 'Doctor not found'}), 404

        if doctor.is_approved:
            return jsonify({'message': 'Doctor is already approved', 'doctor': doctor.to_dict()}), 200

        old_status = doctor.approval_status
        doctor.approve()
        db.session.commit()

        notify_doctor_approval(doctor, approved=True)
        log_audit_action(admin.id, 'doctor_approved', 'doctors', doctor.id,
                         {'approval_status': old_status}, {'approval_status': doctor.approval_status})

        return jsonify({'message': 'Doctor approved successfully', 'doctor': doctor.to_dict()}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Approve doctor error: {str(e)}")
        return jsonify({'error': 'Failed to approve doctor'}), 500

@admin_bp.route('/doctors/<int:doctor_id>/reject', methods=['PUT'])
@require_admin
def reject_doctor(doctor_id):
    try:
        admin = get_current_user()
        doctor = Doctor.get_by_id(doctor_id)
        if not doctor:
            return jsonify({'error': 'Doctor not found'}), 404

        data = request.get_json(silent=True) or {}
        reason = sanitize_string(data.get('reason'), 1000) or None

        old_status = doctor.approval_status
        doctor.reject(reason)
        db.session.commit()

        notify_doctor_approval(doctor, approved=False, reason=reason)
        log_audit_action(admin.id, 'doctor_rejected', 'doctors', doctor.id,
                         {'approval_status': old_status},
                         {'approval_status': doctor.approval_status, 'reason': reason})

        return jsonify({'message': 'Doctor rejected', 'doctor': doctor.to_dict()}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Reject doctor error: {str(e)}")
        return jsonify({'error': 'Failed to reject doctor'}), 500

def _clean_product_data(data, partial=False):
    """Validate product fields. Returns (values, error message)."""
    if not partial:
        validation = validate_required_fields(data, ['name', 'price'])
        if not validation['valid']:
            return None, validation['message']

    values = {}
    for field in PRODUCT_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == 'price':
            price_validation = validate_price(value)
            if not price_validation['valid']:
                return None, price_validation['message']
            value = Decimal(str(value))
        elif field == 'stock':
            stock_validation = validate_quantity(value)
            if not stock_validation['valid']:
                return None, stock_validation['message'].replace('Quantity', 'Stock')
            value = int(value)
        elif field == 'is_active':
            if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
                value = value.strip().lower() == 'true'
            elif not isinstance(value, bool):
                return None, 'is_active must be true or false'
        elif field == 'name':
            value = sanitize_string(value, 255)
            if not value:
                return None, 'Name cannot be empty'
        elif isinstance(value, str):
            value = sanitize_string(value) or None
        values[field] = value
    return values, None

@admin_bp.route('/products', methods=['GET'])
@require_admin
def get_products():
    """All products including inactive ones"""
    try:
        page, per_page = validate_pagination_params(
            request.args.get('page', 1), request.args.get('per_page', 20)
        )
        search = request.args.get('search', '').strip()
        low_stock = request.args.get('low_stock', '').lower() == 'true'
        status = request.args.get('status')

        query = Product.query
        if search:
            query = search_filter(query, search)
        if low_stock:
            query = query.filter(Product.stock <= current_app.config['LOW_STOCK_THRESHOLD'])
        if status == 'active':
            query = query.filter(Product.is_active.is_(True))
        elif status == 'inactive':
            query = query.filter(Product.is_active.is_(False))

        pagination = query.order_by(Product.name.asc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

        return jsonify({
            'products': [product.to_dict() for product in pagination.items],
            'pagination': pagination_dict(pagination)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get admin products error: {str(e)}")
        return jsonify({'error': 'Failed to get products'}), 500

@admin_bp.route('/products', methods=['POST'])
@require_admin
def create_product():
    """Create a new product"""
    try:
        admin = get_current_user()
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'No data provided'}), 400

        values, error = _clean_product_data(data)
        if error:
            return jsonify({'error': error}), 400

        product = Product(**values)
        db.session.add(product)
        db.session.commit()

        log_audit_action(admin.id, 'product_created', 'products', product.id, None, product.to_dict())

        return jsonify({'message': 'Product created successfully', 'product': product.to_dict()}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Create product error: {str(e)}")
        return jsonify({'error': 'Failed to create product'}), 500

@admin_bp.route('/products/<int:product_id>', methods=['PUT'])
@require_admin
def update_product(product_id):
    try:
        admin = get_current_user()
        product = Product.get_by_id(product_id)
        if not product:
            return jsonify({'error': 'Product not found'}), 404

        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'No data provided'}), 400

        values, error = _clean_product_data(data, partial=True)
        if error:
            return jsonify({'error': error}), 400

        old_values = product.to_dict()
        product.update_from_dict(values, allowed=PRODUCT_FIELDS)
        db.session.commit()

        log_audit_action(admin.id, 'product_updated', 'products', product.id,
                         {k: old_values.get(k) for k in values}, product.to_dict())

        return jsonify({'message': 'Product updated successfully', 'product': product.to_dict()}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update product error: {str(e)}")
        return jsonify({'error': 'Failed to update product'}), 500

@admin_bp.route('/products/<int:product_id>', methods=['DELETE'])
@require_admin
def delete_product(product_id):
    """Delete a product, or deactivate it when orders still reference it"""
    try:
        admin = get_current_user()
        product = Product.get_by_id(product_id)
        if not product:
            return jsonify({'error': 'Product not found'}), 404

        referenced = OrderItem.query.filter_by(product_id=product.id).first() is not None
        old_values = product.to_dict()

        if referenced:
            product.is_active = False
            db.session.commit()
            message = 'Product has existing orders and was deactivated'
            action = 'product_deactivated'
        else:
            db.session.delete(product)
            db.session.commit()
            message = 'Product deleted successfully'
            action = 'product_deleted'

        log_audit_action(admin.id, action, 'products', product_id, old_values, None)

        return jsonify({'message': message, 'deactivated': referenced}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Delete product error: {str(e)}")
        return jsonify({'error': 'Failed to delete product'}), 500

@admin_bp.route('/products/<int:product_id>/stock', methods=['PUT'])
@require_admin
def update_stock(product_id):
    """Set stock to an absolute value, or adjust it by a delta"""
    try:
        admin = get_current_user()
        product = Product.get_by_id(product_id)
        if not product:
            return jsonify({'error': 'Product not found'}), 404

        data = request.get_json(silent=True) or {}
        old_stock = product.stock

        if 'stock' in data:
            stock_validation = validate_quantity(data['stock'])
            if not stock_validation['valid']:
                return jsonify({'error': stock_validation['message'].replace('Quantity', 'Stock')}), 400
            product.stock = int(data['stock'])
        elif 'delta' in data:
            try:
                delta = int(data['delta'])
            except (TypeError, ValueError):
                return jsonify({'error': 'Invalid stock adjustment'}), 400
            if old_stock + delta < 0:
                return jsonify({'error': f'Stock cannot go below zero. Current stock: {old_stock}'}), 400
            product.update_stock(delta)
        else:
            return jsonify({'error': 'Provide stock or delta'}), 400

        db.session.commit()

        log_audit_action(admin.id, 'stock_updated', 'products', product.id,
                         {'stock': old_stock}, {'stock': product.stock})

        return jsonify({'message': 'Stock updated successfully', 'product': product.to_dict()}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update stock error: {str(e)}")
        return jsonify({'error': 'Failed to update stock'}), 500

@admin_bp.route('/invoices', methods=['GET'])
@require_admin
def get_invoices():
    try:
        page, per_page = validate_pagination_params(
            request.args.get('page', 1), request.args.get('per_page', 20)
        )
        query = Invoice.query
        doctor_id = request.args.get('doctor_id', type=int)
        if doctor_id:
            query = query.filter_by(doctor_id=doctor_id)

        pagination = query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

        return jsonify({
            'invoices': [invoice.to_dict() for invoice in pagination.items],
            'pagination': pagination_dict(pagination)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get invoices error: {str(e)}")
        return jsonify({'error': 'Failed to get invoices'}), 500
