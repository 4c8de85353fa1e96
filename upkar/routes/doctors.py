from flask import Blueprint, request, jsonify, current_app

from upkar.models import db, Doctor
from upkar.utils.auth import require_doctor, get_current_doctor, log_audit_action
from upkar.utils.validation import validate_phone, sanitize_string

doctors_bp = Blueprint('doctors', __name__)

@doctors_bp.route('/profile', methods=['GET'])
@require_doctor
def get_profile():
    """Get the current doctor's profile"""
    try:
        doctor = get_current_doctor()
        if not doctor:
            return jsonify({'error': 'Doctor profile not found'}), 404

        return jsonify({'doctor': doctor.to_dict()}), 200

    except Exception as e:
        current_app.logger.error(f"Get doctor profile error: {str(e)}")
        return jsonify({'error': 'Failed to get profile'}), 500

@doctors_bp.route('/profile', methods=['PUT'])
@require_doctor
def update_profile():
    """Update contact and clinic details. Name and GST number are fixed after registration."""
    try:
        doctor = get_current_doctor()
        if not doctor:
            return jsonify({'error': 'Doctor profile not found'}), 404

        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'No data provided'}), 400

        if 'phone' in data and not validate_phone(data['phone']):
            return jsonify({'error': 'Invalid phone number format'}), 400

        if 'address' in data and not sanitize_string(data['address']):
            return jsonify({'error': 'Address cannot be empty'}), 400

        old_values = {field: getattr(doctor, field) for field in Doctor.EDITABLE_FIELDS}
        updates = {
            field: sanitize_string(value) if isinstance(value, str) else value
            for field, value in data.items() if field in Doctor.EDITABLE_FIELDS
        }
        doctor.update_from_dict(updates, allowed=Doctor.EDITABLE_FIELDS)
        db.session.commit()

        log_audit_action(doctor.user_id, 'doctor_profile_updated', 'doctors', doctor.id,
                         {k: old_values[k] for k in updates}, updates)

        return jsonify({
            'message': 'Profile updated successfully',
            'doctor': doctor.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update doctor profile error: {str(e)}")
        return jsonify({'error': 'Failed to update profile'}), 500
