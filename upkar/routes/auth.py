from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import create_access_token, create_refresh_token, jwt_required, get_jwt_identity
from datetime import datetime

from upkar.models import db, User, UserRole, Doctor
from upkar.utils.validation import (
    validate_email, validate_password, validate_phone, validate_gst_number,
    validate_required_fields, sanitize_string
)
from upkar.utils.auth import log_audit_action, get_current_user
from upkar.utils.email import send_password_reset_email
from upkar.utils.notifications import notify_new_registration

auth_bp = Blueprint('auth', __name__)

def _issue_tokens(user):
    identity = str(user.id)
    claims = {'role': user.role.value}
    return {
        'access_token': create_access_token(identity=identity, additional_claims=claims),
        'refresh_token': create_refresh_token(identity=identity)
    }

@auth_bp.route('/register', methods=['POST'])
def register():
    """Register a doctor. The account stays pending until an admin approves it."""
    try:
        data = request.get_json(silent=True)

        if not data:
            return jsonify({'error': 'No data provided'}), 400

        validation = validate_required_fields(data, ['email', 'password', 'name', 'phone', 'gst_number', 'address'])
        if not validation['valid']:
            return jsonify({'error': validation['message']}), 400

        email = sanitize_string(data['email'], 255).lower()
        if not validate_email(email):
            return jsonify({'error': 'Invalid email format'}), 400

        password_validation = validate_password(data['password'])
        if not password_validation['valid']:
            return jsonify({'error': password_validation['message']}), 400

        if not validate_phone(data['phone']):
            return jsonify({'error': 'Invalid phone number format'}), 400

        gst_number = sanitize_string(data['gst_number'], 20).upper()
        if not validate_gst_number(gst_number):
            return jsonify({'error': 'Invalid GST number format'}), 400

        if User.query.filter_by(email=email).first():
            return jsonify({'error': 'Email already registered'}), 409

        if Doctor.query.filter_by(gst_number=gst_number).first():
            return jsonify({'error': 'GST number already registered'}), 409

        name = sanitize_string(data['name'], 200)
        user = User(email=email, full_name=name, role=UserRole.DOCTOR)
        user.set_password(data['password'])
        db.session.add(user)
        db.session.flush()

        doctor = Doctor(
            user_id=user.id,
            name=name,
            email=email,
            phone=data['phone'].strip(),
            gst_number=gst_number,
            address=sanitize_string(data['address']),
            is_approved=False
        )
        for field in Doctor.EDITABLE_FIELDS:
            if field not in ('phone', 'address') and data.get(field):
                setattr(doctor, field, sanitize_string(data[field], 200))
        db.session.add(doctor)
        db.session.commit()

        notify_new_registration(doctor)
        log_audit_action(user.id, 'doctor_registered', 'doctors', doctor.id, None,
                         {'email': email, 'gst_number': gst_number})

        return jsonify({
            'message': 'Registration successful. Your account is pending admin approval.',
            'user': user.to_dict(),
            'doctor': doctor.to_dict(),
            'approval_status': doctor.approval_status
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Registration error: {str(e)}")
        return jsonify({'error': 'Registration failed'}), 500

@auth_bp.route('/login', methods=['POST'])
def login():
    """Authenticate and return JWT tokens"""
    try:
        data = request.get_json(silent=True)

        if not data or not data.get('email') or not data.get('password'):
            return jsonify({'error': 'Email and password are required'}), 400

        user = User.query.filter_by(email=sanitize_string(data['email'], 255).lower()).first()
        if not user or not isinstance(data['password'], str) or not user.check_password(data['password']):
            return jsonify({'error': 'Invalid email or password'}), 401

        if not user.is_active:
            return jsonify({'error': 'Account is deactivated'}), 403

        user.last_login = datetime.utcnow()
        db.session.commit()

        log_audit_action(user.id, 'user_login', 'users', user.id)

        response = {
            'message': 'Login successful',
            'user': user.to_dict(),
            **_issue_tokens(user)
        }
        if user.doctor:
            response['doctor'] = user.doctor.to_dict()
            response['approval_status'] = user.doctor.approval_status

        return jsonify(response), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Login error: {str(e)}")
        return jsonify({'error': 'Login failed'}), 500

@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """Issue a new access token"""
    try:
        user = get_current_user()
        if not user or not user.is_active:
            return jsonify({'error': 'User not found or inactive'}), 401

        access_token = create_access_token(identity=get_jwt_identity(),
                                           additional_claims={'role': user.role.value})
        return jsonify({'access_token': access_token}), 200

    except Exception as e:
        current_app.logger.error(f"Token refresh error: {str(e)}")
        return jsonify({'error': 'Failed to refresh token'}), 500

@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404

        response = {'user': user.to_dict()}
        if user.doctor:
            response['doctor'] = user.doctor.to_dict()
            response['approval_status'] = user.doctor.approval_status
        return jsonify(response), 200

    except Exception as e:
        current_app.logger.error(f"Get current user error: {str(e)}")
        return jsonify({'error': 'Failed to get user'}), 500

@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    try:
        user = get_current_user()
        if user:
            log_audit_action(user.id, 'user_logout', 'users', user.id)
        return jsonify({'message': 'Logged out successfully'}), 200

    except Exception as e:
        current_app.logger.error(f"Logout error: {str(e)}")
        return jsonify({'error': 'Logout failed'}), 500

@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    """Start a password reset. The response does not reveal whether the email exists."""
    try:
        data = request.get_json(silent=True) or {}
        email = sanitize_string(data.get('email'), 255).lower()
        if not email:
            return jsonify({'error': 'Email is required'}), 400

        user = User.query.filter_by(email=email).first()
        if user and user.is_active:
            token = user.generate_password_reset_token()
            db.session.commit()

            result = send_password_reset_email(user.email, user.get_display_name(), token)
            if not result['success']:
                current_app.logger.warning(f"Password reset email not sent: {result.get('error')}")

        return jsonify({'message': 'If that email is registered, a reset link has been sent'}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Forgot password error: {str(e)}")
        return jsonify({'error': 'Failed to process request'}), 500

@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    try:
        data = request.get_json(silent=True) or {}
        validation = validate_required_fields(data, ['token', 'password'])
        if not validation['valid']:
            return jsonify({'error': validation['message']}), 400

        user = User.query.filter_by(password_reset_token=data['token']).first()
        if not user or user.is_reset_token_expired():
            return jsonify({'error': 'Invalid or expired reset token'}), 400

        password_validation = validate_password(data['password'])
        if not password_validation['valid']:
            return jsonify({'error': password_validation['message']}), 400

        user.set_password(data['password'])
        user.password_reset_token = None
        user.password_reset_sent_at = None
        db.session.commit()

        log_audit_action(user.id, 'password_reset', 'users', user.id)
        return jsonify({'message': 'Password has been reset successfully'}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Reset password error: {str(e)}")
        return jsonify({'error': 'Failed to reset password'}), 500
