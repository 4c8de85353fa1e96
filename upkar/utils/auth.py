from functools import wraps
from flask import request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
import ipaddress

from upkar.models import db, User, UserRole, AuditLog

def _load_user(identity):
    try:
        return db.session.get(User, int(identity))
    except (TypeError, ValueError):
        return None

def require_role(*allowed_roles):
    """
    Decorator to require specific roles
    Usage: @require_role(UserRole.ADMIN)
    """
    def decorator(f):
        @wraps(f)
        @jwt_required()
        def decorated_function(*args, **kwargs):
            user = _load_user(get_jwt_identity())

            if not user:
                return jsonify({'error': 'User not found'}), 404

            if not user.is_active:
                return jsonify({'error': 'Account is deactivated'}), 403

            if user.role not in allowed_roles:
                return jsonify({'error': 'Insufficient permissions'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator

def require_admin(f):
    """Decorator to require admin user"""
    return require_role(UserRole.ADMIN)(f)

def require_doctor(f):
    """Decorator to require doctor user"""
    return require_role(UserRole.DOCTOR)(f)

def require_approved_doctor(f):
    """Decorator to require a doctor whose registration has been approved"""
    @wraps(f)
    @jwt_required()
    def decorated_function(*args, **kwargs):
        user = _load_user(get_jwt_identity())

        if not user:
            return jsonify({'error': 'User not found'}), 404

        if not user.is_active:
            return jsonify({'error': 'Account is deactivated'}), 403

        if user.role != UserRole.DOCTOR or not user.doctor:
            return jsonify({'error': 'Doctor account required'}), 403

        if not user.doctor.is_approved:
            return jsonify({
                'error': 'Your account is awaiting admin approval',
                'approval_status': user.doctor.approval_status
            }), 403

        return f(*args, **kwargs)
    return decorated_function

def get_current_user():
    """Get current authenticated user"""
    current_user_id = get_jwt_identity()
    if current_user_id:
        return _load_user(current_user_id)
    return None

def get_current_doctor():
    """Doctor profile of the current user, or None for admins"""
    user = get_current_user()
    return user.doctor if user else None

def get_client_ip():
    """Get client IP address from request"""
    # Check for forwarded IP first (for proxy/load balancer scenarios)
    if request.headers.get('X-Forwarded-For'):
        # X-Forwarded-For can contain multiple IPs, take the first one
        ip = request.headers.get('X-Forwarded-For').split(',')[0].strip()
    elif request.headers.get('X-Real-IP'):
        ip = request.headers.get('X-Real-IP')
    else:
        ip = request.remote_addr

    try:
        ipaddress.ip_address(ip)
        return ip
    except ValueError:
        return request.remote_addr

def get_user_agent():
    """Get user agent from request"""
    return request.headers.get('User-Agent', '')

def log_audit_action(user_id, action, table_name=None, record_id=None, old_values=None, new_values=None):
    """
    Log audit action to database

    Args:
        user_id: ID of user performing action
        action: Type of action (e.g., 'user_login', 'doctor_approved')
        table_name: Name of affected table
        record_id: ID of affected record
        old_values: Previous values (for updates)
        new_values: New values (for creates/updates)
    """
    try:
        audit_log = AuditLog(
            user_id=user_id,
            action=action,
            table_name=table_name,
            record_id=record_id,
            old_values=old_values,
            new_values=new_values,
            ip_address=get_client_ip(),
            user_agent=get_user_agent()
        )

        db.session.add(audit_log)
        db.session.commit()

    except Exception as e:
        current_app.logger.error(f"Failed to log audit action: {str(e)}")
        db.session.rollback()

def can_access_order(user, order):
    """Admins see every order, doctors only their own"""
    if not user or not order:
        return False

    if user.role == UserRole.ADMIN:
        return True

    return user.doctor is not None and order.doctor_id == user.doctor.id

def validate_pagination_params(page=1, per_page=20, max_per_page=100):
    """
    Validate and sanitize pagination parameters

    Returns:
        tuple: (page, per_page)
    """
    try:
        page = max(1, int(page))
    except (ValueError, TypeError):
        page = 1

    try:
        per_page = max(1, min(int(per_page), max_per_page))
    except (ValueError, TypeError):
        per_page = 20

    return page, per_page

def pagination_dict(pagination):
    return {
        'page': pagination.page,
        'per_page': pagination.per_page,
        'total': pagination.total,
        'pages': pagination.pages,
        'has_next': pagination.has_next,
        'has_prev': pagination.has_prev
    }
