from flask import Blueprint, request, jsonify, current_app
from decimal import Decimal

from upkar.models import (
    db, Doctor, CreditTransaction, Payment, TransactionType, build_credit_summary, to_money
)
from upkar.utils.auth import (
    require_admin, require_approved_doctor, get_current_user, get_current_doctor,
    log_audit_action, validate_pagination_params, pagination_dict
)
from upkar.utils.validation import validate_amount, sanitize_string
from upkar.utils.notifications import notify_payment

credits_bp = Blueprint('credits', __name__)

def _transactions_page(doctor_id):
    page, per_page = validate_pagination_params(
        request.args.get('page', 1), request.args.get('per_page', 50)
    )
    pagination = CreditTransaction.query.filter_by(doctor_id=doctor_id).order_by(
        CreditTransaction.created_at.desc(), CreditTransaction.id.desc()
    ).paginate(page=page, per_page=per_page, error_out=False)
    return {
        'transactions': [entry.to_dict() for entry in pagination.items],
        'pagination': pagination_dict(pagination)
    }

@credits_bp.route('/summary', methods=['GET'])
@require_approved_doctor
def get_summary():
    """Credit position of the current doctor"""
    try:
        return jsonify({'summary': build_credit_summary(get_current_doctor())}), 200

    except Exception as e:
        current_app.logger.error(f"Get credit summary error: {str(e)}")
        return jsonify({'error': 'Failed to get credit summary'}), 500

@credits_bp.route('/transactions', methods=['GET'])
@require_approved_doctor
def get_transactions():
    try:
        return jsonify(_transactions_page(get_current_doctor().id)), 200

    except Exception as e:
        current_app.logger.error(f"Get credit transactions error: {str(e)}")
        return jsonify({'error': 'Failed to get transactions'}), 500

@credits_bp.route('/doctors', methods=['GET'])
@require_admin
def get_all_summaries():
    """Credit summary of every approved doctor"""
    try:
        doctors = Doctor.query.filter_by(is_approved=True).order_by(Doctor.name.asc()).all()
        summaries = [build_credit_summary(doctor) for doctor in doctors]
        return jsonify({
            'summaries': summaries,
            'total_outstanding': round(sum(s['current_balance'] for s in summaries), 2)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get credit summaries error: {str(e)}")
        return jsonify({'error': 'Failed to get credit summaries'}), 500

@credits_bp.route('/doctors/<int:doctor_id>', methods=['GET'])
@require_admin
def get_doctor_credit(doctor_id):
    try:
        doctor = Doctor.get_by_id(doctor_id)
        if not doctor:
            return jsonify({'error': 'Doctor not found'}), 404

        response = {'summary': build_credit_summary(doctor)}
        response.update(_transactions_page(doctor.id))
        response['payments'] = [
            payment.to_dict()
            for payment in doctor.payments.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()
        ]
        return jsonify(response), 200

    except Exception as e:
        current_app.logger.error(f"Get doctor credit error: {str(e)}")
        return jsonify({'error': 'Failed to get doctor credit'}), 500

@credits_bp.route('/doctors/<int:doctor_id>/payments', methods=['POST'])
@require_admin
def record_payment(doctor_id):
    """Record a payment and credit the ledger in one transaction"""
    try:
        admin = get_current_user()
        doctor = Doctor.get_by_id(doctor_id)
        if not doctor:
            return jsonify({'error': 'Doctor not found'}), 404

        data = request.get_json(silent=True) or {}
        if data.get('amount') is None:
            return jsonify({'error': 'Amount is required'}), 400
        amount_validation = validate_amount(data['amount'])
        if not amount_validation['valid']:
            return jsonify({'error': amount_validation['message']}), 400

        amount = to_money(Decimal(str(data['amount'])))
        notes = sanitize_string(data.get('notes'), 1000) or None

        payment = Payment(doctor_id=doctor.id, amount=amount, notes=notes, recorded_by=admin.id)
        db.session.add(payment)
        db.session.flush()
        CreditTransaction.record(
            doctor_id=doctor.id,
            amount=amount,
            type=TransactionType.CREDIT,
            description=f'Payment received{": " + notes if notes else ""}',
            reference_id=f'payment-{payment.id}'
        )
        db.session.commit()

        current_app.logger.info(f"Recorded payment {payment.id} of {amount} for doctor {doctor.id}")
        notify_payment(doctor, payment)
        log_audit_action(admin.id, 'payment_recorded', 'payments', payment.id, None,
                         {'doctor_id': doctor.id, 'amount': float(amount)})

        return jsonify({
            'message': 'Payment recorded successfully',
            'payment': payment.to_dict(),
            'summary': build_credit_summary(doctor)
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Record payment error: {str(e)}")
        return jsonify({'error': 'Failed to record payment'}), 500
