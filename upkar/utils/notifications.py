"""
Best-effort side effects: in-app notifications, email and WhatsApp.

Nothing here raises. Every attempt to reach a doctor or the admin inbox
about an order is recorded as an OrderNotification row.
"""
import logging

from upkar.models import (
    db, User, UserRole, Notification, OrderNotification, OrderStatus, build_credit_summary
)
from upkar.utils import email as mailer
from upkar.utils.whatsapp import WhatsAppService, render_order_status, render_approval
from upkar.utils.invoices import generate_invoice

logger = logging.getLogger(__name__)

AUTO_INVOICE_STATUSES = (OrderStatus.PROCESSING, OrderStatus.DELIVERED)

def _commit_quietly(context):
    try:
        db.session.commit()
        return True
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to save {context}: {str(e)}")
        return False

def record_order_notification(order_id, notification_type, recipient, result, content=None):
    """Store the outcome of one delivery attempt"""
    try:
        db.session.add(OrderNotification(
            order_id=order_id,
            notification_type=notification_type,
            recipient=recipient or 'unknown',
            status='sent' if result.get('success') else 'failed',
            content=content if result.get('success') else (result.get('error') or content)
        ))
        _commit_quietly('order notification')
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to record {notification_type} notification: {str(e)}")

def create_in_app(user_ids, title, message, type='system', data=None):
    try:
        for user_id in user_ids:
            Notification.create_notification(user_id, title, message, type=type, data=data)
        return _commit_quietly('in-app notification')
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to create in-app notification: {str(e)}")
        return False

def admin_user_ids():
    return [user.id for user in User.query.filter_by(role=UserRole.ADMIN, is_active=True).all()]

def notify_new_order(order):
    """Tell the admins a doctor placed an order"""
    try:
        doctor = order.doctor
        order_data = order.to_dict(include_items=True)
        create_in_app(
            admin_user_ids(),
            'New order received',
            f'Dr. {doctor.name} placed order #{order.id} ({order.get_product_summary()})',
            type='order',
            data={'order_id': order.id}
        )
        result = mailer.send_admin_new_order_email(order_data, doctor.name)
        record_order_notification(order.id, 'admin_new_order', mailer.get_setting('ADMIN_EMAIL'), result,
                                  content=f'New order #{order.id}')
    except Exception as e:
        db.session.rollback()
        logger.error(f"New order notification failed for order {order.id}: {str(e)}")

def notify_order_status(order, notes=None):
    """Tell the doctor about a status change, and invoice the order if it is due"""
    try:
        if order.status in AUTO_INVOICE_STATUSES and not order.invoice_generated:
            try:
                generate_invoice(order)
                _commit_quietly('invoice')
            except Exception as e:
                db.session.rollback()
                logger.error(f"Automatic invoice failed for order {order.id}: {str(e)}")

        doctor = order.doctor
        status = order.status.value
        label = status.replace('_', ' ')

        if doctor.user_id:
            create_in_app(
                [doctor.user_id],
                f'Order #{order.id} {label}',
                notes or f'Your order #{order.id} is now {label}.',
                type='order',
                data={'order_id': order.id, 'status': status}
            )

        email_result = mailer.send_order_status_email(doctor.email, doctor.name, order.to_dict())
        record_order_notification(order.id, 'email', doctor.email, email_result,
                                  content=f'Status update: {status}')

        message = render_order_status(doctor.name, order.id, status, order.tracking_number, notes)
        whatsapp_result = WhatsAppService().send_message(doctor.phone, message)
        record_order_notification(order.id, 'whatsapp', doctor.phone, whatsapp_result, content=message)
        if whatsapp_result.get('success'):
            order.whatsapp_notification_sent = True
            _commit_quietly('whatsapp flag')
    except Exception as e:
        db.session.rollback()
        logger.error(f"Status notification failed for order {order.id}: {str(e)}")

def notify_invoice(order, invoice):
    """Email the invoice PDF to the doctor. Returns the send result."""
    doctor = order.doctor
    try:
        result = mailer.send_invoice_email(doctor.email, doctor.name, order.to_dict(), invoice.pdf_path)
    except Exception as e:
        logger.error(f"Invoice email failed for order {order.id}: {str(e)}")
        result = {'success': False, 'error': 'Failed to send invoice email'}
    record_order_notification(order.id, 'invoice_email', doctor.email, result,
                              content=f'Invoice {invoice.invoice_number}')
    return result

def notify_doctor_approval(doctor, approved=True, reason=None):
    try:
        if approved:
            title, message = 'Account approved', 'Your account has been approved. You can now place orders.'
        else:
            title = 'Account not approved'
            message = f'Your registration was not approved. {reason}' if reason else 'Your registration was not approved.'
        create_in_app([doctor.user_id], title, message, type='approval',
                      data={'approval_status': doctor.approval_status})
        mailer.send_doctor_approval_email(doctor.email, doctor.name, approved, reason)
        WhatsAppService().send_message(doctor.phone, render_approval(doctor.name, approved, reason))
    except Exception as e:
        db.session.rollback()
        logger.error(f"Approval notification failed for doctor {doctor.id}: {str(e)}")

def notify_new_registration(doctor):
    try:
        create_in_app(admin_user_ids(), 'New doctor registration',
                      f'Dr. {doctor.name} is waiting for approval.', type='approval',
                      data={'doctor_id': doctor.id})
        mailer.send_admin_new_registration_email(doctor.to_dict())
    except Exception as e:
        db.session.rollback()
        logger.error(f"Registration notification failed for doctor {doctor.id}: {str(e)}")

def notify_payment(doctor, payment):
    try:
        summary = build_credit_summary(doctor)
        create_in_app([doctor.user_id], 'Payment recorded',
                      f'We recorded your payment of Rs. {float(payment.amount):,.2f}.',
                      type='payment', data={'payment_id': payment.id})
        mailer.send_payment_receipt_email(doctor.email, doctor.name, payment.amount,
                                          summary['current_balance'], payment.notes)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Payment notification failed for doctor {doctor.id}: {str(e)}")

def notify_return_processed(return_request):
    try:
        doctor = return_request.doctor
        status = return_request.status.value
        create_in_app([doctor.user_id], f'Return {status}',
                      f'Your return for order #{return_request.order_id} was {status}.',
                      type='return', data={'return_id': return_request.id, 'order_id': return_request.order_id})
    except Exception as e:
        db.session.rollback()
        logger.error(f"Return notification failed for return {return_request.id}: {str(e)}")

def notify_new_message(order, communication):
    try:
        if communication.recipient_id:
            create_in_app([communication.recipient_id], f'New message on order #{order.id}',
                          communication.message[:200], type='message',
                          data={'order_id': order.id, 'communication_id': communication.id})
    except Exception as e:
        db.session.rollback()
        logger.error(f"Message notification failed for order {order.id}: {str(e)}")

def send_credit_summary(doctor):
    """Email a doctor their credit position. Returns the send result."""
    try:
        return mailer.send_credit_summary_email(doctor.email, build_credit_summary(doctor))
    except Exception as e:
        logger.error(f"Credit summary failed for doctor {doctor.id}: {str(e)}")
        return {'success': False, 'error': str(e)}
