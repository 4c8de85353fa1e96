import os
import logging
import base64
from flask import current_app
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content, Attachment, FileContent, FileName, FileType, Disposition

logger = logging.getLogger(__name__)

def get_setting(key, default=None):
    """Read a setting from the app config, falling back to the environment"""
    try:
        if key in current_app.config:
            value = current_app.config[key]
            return value if value is not None else default
    except RuntimeError:
        pass
    return os.getenv(key, default)

def _layout(heading, body_html):
    company = get_setting('COMPANY_NAME', 'Upkar Pharma')
    return f"""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <div style="background: linear-gradient(135deg, #0f766e 0%, #115e59 100%); color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0;">
                    <h1 style="margin: 0; font-size: 28px;">{company}</h1>
                    <p style="margin: 10px 0 0 0; opacity: 0.9;">B2B Pharmaceutical Supplies</p>
                </div>
                <div style="background: white; padding: 30px; border-radius: 0 0 10px 10px; box-shadow: 0 4px 6px rgba(0,0,0,0.1);">
                    <h2 style="color: #0f766e;">{heading}</h2>
                    {body_html}
                </div>
            </div>
            """

def _money(value):
    return f"Rs. {float(value or 0):,.2f}"

def send_email(to_email, subject, html_content, text_content=None, attachments=None):
    """
    Send email using SendGrid API

    Args:
        to_email (str): Recipient email address
        subject (str): Email subject
        html_content (str): HTML content of the email
        text_content (str, optional): Plain text content
        attachments (list, optional): List of file paths to attach

    Returns:
        dict: Result with success status and message
    """
    try:
        sendgrid_api_key = get_setting('SENDGRID_API_KEY')
        from_email = get_setting('FROM_EMAIL', 'noreply@upkarpharma.com')
        from_name = get_setting('FROM_NAME', 'Upkar Pharma')

        if not to_email:
            return {'success': False, 'error': 'Recipient email address is missing'}

        if not sendgrid_api_key:
            logger.error("SendGrid API key not configured")
            return {
                'success': False,
                'error': 'Email service not configured. Please contact administrator.'
            }

        sg = SendGridAPIClient(api_key=sendgrid_api_key)

        content_list = []
        if text_content:
            content_list.append(Content("text/plain", text_content))
        content_list.append(Content("text/html", html_content))

        mail = Mail(
            from_email=Email(from_email, from_name),
            to_emails=To(to_email),
            subject=subject
        )
        mail.content = content_list

        for file_path in attachments or []:
            if not os.path.isfile(file_path):
                logger.error(f"Attachment not found: {file_path}")
                return {'success': False, 'error': 'Attachment file is missing'}
            with open(file_path, 'rb') as f:
                encoded_file = base64.b64encode(f.read()).decode()
            file_type = 'application/pdf' if file_path.lower().endswith('.pdf') else 'application/octet-stream'
            mail.attachment = Attachment(
                FileContent(encoded_file),
                FileName(os.path.basename(file_path)),
                FileType(file_type),
                Disposition('attachment')
            )

        response = sg.send(mail)

        if response.status_code in [200, 201, 202]:
            logger.info(f"Email sent successfully to {to_email} via SendGrid")
            return {
                'success': True,
                'message': 'Email sent successfully',
                'sendgrid_message_id': response.headers.get('X-Message-Id')
            }
        else:
            logger.error(f"SendGrid API error: {response.status_code} - {response.body}")
            return {
                'success': False,
                'error': f'Email service error: {response.status_code}'
            }

    except Exception as e:
        logger.error(f"Unexpected error sending email via SendGrid: {str(e)}")
        return {
            'success': False,
            'error': 'Failed to send email. Please try again later.'
        }

def send_doctor_approval_email(doctor_email, doctor_name, approved=True, reason=None):
    """
    Tell a doctor whether their registration was approved or rejected

    Returns:
        dict: Result with success status and message
    """
    try:
        login_url = f"{get_setting('FRONTEND_URL', 'http://localhost:3000')}/login"
        if approved:
            subject = "Your account has been approved"
            text_content = f"""
Hello Dr. {doctor_name},

Your Upkar Pharma account has been approved. You can now log in and place orders:

{login_url}

Best regards,
The Upkar Pharma Team
            """
            body = f"""
                    <p>Hello Dr. {doctor_name},</p>
                    <p>Your account has been approved. You can now browse the catalog and place orders.</p>
                    <div style="text-align: center; margin: 30px 0;">
                        <a href="{login_url}" style="background: #0f766e; color: white; padding: 15px 30px; text-decoration: none; border-radius: 8px; font-weight: bold; display: inline-block;">Log In</a>
                    </div>
            """
            html_content = _layout('Account Approved', body)
        else:
            subject = "Your account registration was not approved"
            reason_text = reason or 'No reason was given.'
            text_content = f"""
Hello Dr. {doctor_name},

We were unable to approve your Upkar Pharma account.
Reason: {reason_text}

Please contact us if you believe this is a mistake.

Best regards,
The Upkar Pharma Team
            """
            body = f"""
                    <p>Hello Dr. {doctor_name},</p>
                    <p>We were unable to approve your account.</p>
                    <p style="background: #fff3cd; padding: 15px; border-radius: 8px; color: #856404;"><strong>Reason:</strong> {reason_text}</p>
                    <p>Please contact us if you believe this is a mistake.</p>
            """
            html_content = _layout('Registration Update', body)

        return send_email(doctor_email, subject, html_content, text_content)

    except Exception as e:
        logger.error(f"Error sending approval email: {str(e)}")
        return {'success': False, 'error': 'Failed to send approval email'}

def send_order_status_email(doctor_email, doctor_name, order_data):
    """
    Send an order status update

    Args:
        order_data (dict): id, status, total_amount and optionally tracking_number,
            shipping_carrier, invoice_number, notes
    """
    try:
        order_id = order_data.get('id')
        status = (order_data.get('status') or '').replace('_', ' ').title()
        subject = f"Order #{order_id} is now {status}"

        details = [f"Status: {status}", f"Total: {_money(order_data.get('total_amount'))}"]
        if order_data.get('tracking_number'):
            details.append(f"Tracking: {order_data.get('shipping_carrier') or ''} {order_data['tracking_number']}".strip())
        if order_data.get('invoice_number'):
            details.append(f"Invoice: {order_data['invoice_number']}")
        if order_data.get('notes'):
            details.append(f"Notes: {order_data['notes']}")

        text_content = f"Hello Dr. {doctor_name},\n\nYour order #{order_id} has been updated.\n\n" + \
            "\n".join(details) + "\n\nBest regards,\nThe Upkar Pharma Team\n"
        rows = ''.join(f'<p style="margin: 4px 0;">{line}</p>' for line in details)
        body = f"""
                    <p>Hello Dr. {doctor_name},</p>
                    <p>Your order <strong>#{order_id}</strong> has been updated.</p>
                    <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">{rows}</div>
        """
        return send_email(doctor_email, subject, _layout('Order Update', body), text_content)

    except Exception as e:
        logger.error(f"Error sending order status email: {str(e)}")
        return {'success': False, 'error': 'Failed to send order status email'}

def send_invoice_email(doctor_email, doctor_name, order_data, pdf_path):
    """Send the invoice PDF for an order as an attachment"""
    try:
        invoice_number = order_data.get('invoice_number')
        subject = f"Invoice {invoice_number} for order #{order_data.get('id')}"
        text_content = f"""
Hello Dr. {doctor_name},

Please find attached invoice {invoice_number} for your order #{order_data.get('id')}.
Amount: {_money(order_data.get('total_amount'))}

Best regards,
The Upkar Pharma Team
        """
        body = f"""
                    <p>Hello Dr. {doctor_name},</p>
                    <p>Please find attached invoice <strong>{invoice_number}</strong> for your order #{order_data.get('id')}.</p>
                    <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
                        <p style="margin: 0;"><strong>Amount: {_money(order_data.get('total_amount'))}</strong></p>
                    </div>
        """
        return send_email(doctor_email, subject, _layout('Your Invoice', body), text_content,
                          attachments=[pdf_path] if pdf_path else None)

    except Exception as e:
        logger.error(f"Error sending invoice email: {str(e)}")
        return {'success': False, 'error': 'Failed to send invoice email'}

def send_payment_receipt_email(doctor_email, doctor_name, amount, balance, notes=None):
    """Confirm a recorded payment and show the remaining balance"""
    try:
        subject = f"Payment received: {_money(amount)}"
        text_content = f"""
Hello Dr. {doctor_name},

We have recorded your payment of {_money(amount)}.
Outstanding balance: {_money(balance)}
{('Notes: ' + notes) if notes else ''}

Best regards,
The Upkar Pharma Team
        """
        body = f"""
                    <p>Hello Dr. {doctor_name},</p>
                    <p>We have recorded your payment of <strong>{_money(amount)}</strong>.</p>
                    <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
                        <p style="margin: 0;">Outstanding balance: <strong>{_money(balance)}</strong></p>
                    </div>
        """
        return send_email(doctor_email, subject, _layout('Payment Received', body), text_content)

    except Exception as e:
        logger.error(f"Error sending payment receipt email: {str(e)}")
        return {'success': False, 'error': 'Failed to send payment receipt email'}

def send_admin_new_order_email(order_data, doctor_name):
    """Alert the admin inbox about a newly placed order"""
    try:
        admin_email = get_setting('ADMIN_EMAIL')
        if not admin_email:
            return {'success': False, 'error': 'Admin email not configured'}

        order_id = order_data.get('id')
        subject = f"New order #{order_id} from Dr. {doctor_name}"
        lines = [f"{item.get('product_name')} x {item.get('quantity')}" for item in order_data.get('items', [])]
        text_content = f"New order #{order_id} from Dr. {doctor_name}\n\n" + "\n".join(lines) + \
            f"\n\nTotal: {_money(order_data.get('total_amount'))}\n"
        rows = ''.join(f'<li>{line}</li>' for line in lines)
        body = f"""
                    <p>Dr. {doctor_name} placed order <strong>#{order_id}</strong>.</p>
                    <ul>{rows}</ul>
                    <p><strong>Total: {_money(order_data.get('total_amount'))}</strong></p>
        """
        return send_email(admin_email, subject, _layout('New Order', body), text_content)

    except Exception as e:
        logger.error(f"Error sending admin order email: {str(e)}")
        return {'success': False, 'error': 'Failed to send admin order email'}

def send_admin_new_registration_email(doctor_data):
    """Alert the admin inbox that a doctor is waiting for approval"""
    try:
        admin_email = get_setting('ADMIN_EMAIL')
        if not admin_email:
            return {'success': False, 'error': 'Admin email not configured'}

        subject = f"New doctor registration: {doctor_data.get('name')}"
        text_content = f"""
A new doctor has registered and is waiting for approval.

Name: {doctor_data.get('name')}
Email: {doctor_data.get('email')}
Phone: {doctor_data.get('phone')}
GST: {doctor_data.get('gst_number')}
        """
        body = f"""
                    <p>A new doctor has registered and is waiting for approval.</p>
                    <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
                        <p style="margin: 4px 0;">Name: {doctor_data.get('name')}</p>
                        <p style="margin: 4px 0;">Email: {doctor_data.get('email')}</p>
                        <p style="margin: 4px 0;">Phone: {doctor_data.get('phone')}</p>
                        <p style="margin: 4px 0;">GST: {doctor_data.get('gst_number')}</p>
                    </div>
        """
        return send_email(admin_email, subject, _layout('New Registration', body), text_content)

    except Exception as e:
        logger.error(f"Error sending registration alert: {str(e)}")
        return {'success': False, 'error': 'Failed to send registration alert'}

def send_credit_summary_email(doctor_email, summary):
    """Weekly statement of a doctor's credit position"""
    try:
        subject = "Your weekly credit summary"
        last_payment = summary.get('last_payment')
        last_payment_text = (
            f"{_money(last_payment['amount'])} on {last_payment['date'][:10]}" if last_payment else 'None'
        )
        text_content = f"""
Hello Dr. {summary.get('doctor_name')},

Total billed: {_money(summary.get('total_debit'))}
Total paid: {_money(summary.get('total_paid'))}
Outstanding balance: {_money(summary.get('current_balance'))}
Orders in progress: {_money(summary.get('pending_orders_amount'))}
Last payment: {last_payment_text}

Best regards,
The Upkar Pharma Team
        """
        body = f"""
                    <p>Hello Dr. {summary.get('doctor_name')},</p>
                    <table style="width: 100%; border-collapse: collapse;">
                        <tr><td>Total billed</td><td style="text-align: right;">{_money(summary.get('total_debit'))}</td></tr>
                        <tr><td>Total paid</td><td style="text-align: right;">{_money(summary.get('total_paid'))}</td></tr>
                        <tr><td><strong>Outstanding balance</strong></td><td style="text-align: right;"><strong>{_money(summary.get('current_balance'))}</strong></td></tr>
                        <tr><td>Orders in progress</td><td style="text-align: right;">{_money(summary.get('pending_orders_amount'))}</td></tr>
                        <tr><td>Last payment</td><td style="text-align: right;">{last_payment_text}</td></tr>
                    </table>
        """
        return send_email(doctor_email, subject, _layout('Credit Summary', body), text_content)

    except Exception as e:
        logger.error(f"Error sending credit summary email: {str(e)}")
        return {'success': False, 'error': 'Failed to send credit summary email'}

def send_password_reset_email(user_email, user_name, reset_token):
    """
    Send password reset email via SendGrid

    Args:
        user_email (str): User's email address
        user_name (str): User's display name
        reset_token (str): Password reset token

    Returns:
        dict: Result with success status and message
    """
    try:
        base_url = get_setting('FRONTEND_URL', 'http://localhost:3000')
        reset_url = f"{base_url}/reset-password?token={reset_token}"

        subject = "Password Reset - Upkar Pharma"
        text_content = f"""
Hello {user_name},

You requested a password reset. To reset your password, please visit:

{reset_url}

This link expires in 24 hours.

If you didn't request this, please ignore this email.

Best regards,
The Upkar Pharma Team
        """
        body = f"""
                    <p>Hello {user_name},</p>
                    <p>You requested a password reset. Click the button below to reset your password:</p>
                    <div style="text-align: center; margin: 30px 0;">
                        <a href="{reset_url}" style="background: #0f766e; color: white; padding: 15px 30px; text-decoration: none; border-radius: 8px; font-weight: bold; display: inline-block;">Reset Password</a>
                    </div>
                    <p style="background: #fff3cd; padding: 15px; border-radius: 8px; color: #856404;"><strong>Important:</strong> This link expires in 24 hours.</p>
                    <p>If you didn't request this, please ignore this email.</p>
        """
        return send_email(user_email, subject, _layout('Password Reset Request', body), text_content)

    except Exception as e:
        logger.error(f"Error sending password reset email: {str(e)}")
        return {
            'success': False,
            'error': 'Failed to send password reset email'
        }
