"""WhatsApp notifications through Twilio"""
import re
import logging
from flask import current_app
from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException

logger = logging.getLogger(__name__)

SIMULATED_SID = 'simulated_message_sid'

def format_whatsapp_number(phone, default_country_code='91'):
    """Normalise a phone number to whatsapp:+<country><number>"""
    if not phone:
        return None
    if phone.startswith('whatsapp:'):
        return phone
    digits = re.sub(r'\D', '', phone)
    if phone.strip().startswith('+'):
        return f'whatsapp:+{digits}'
    digits = digits.lstrip('0')
    if len(digits) == 10:
        digits = default_country_code + digits
    return f'whatsapp:+{digits}'

class WhatsAppService:
    def __init__(self, account_sid=None, auth_token=None, whatsapp_from=None):
        config = current_app.config
        self.account_sid = account_sid or config.get('TWILIO_ACCOUNT_SID')
        self.auth_token = auth_token or config.get('TWILIO_AUTH_TOKEN')
        self.whatsapp_from = whatsapp_from or config.get('TWILIO_WHATSAPP_FROM')

        if self.account_sid and self.auth_token:
            self.client = Client(self.account_sid, self.auth_token)
        else:
            self.client = None

    def is_configured(self):
        return self.client is not None and bool(self.whatsapp_from)

    def send_message(self, to_phone, message):
        """
        Send a WhatsApp message

        Returns:
            dict: success flag plus either the message sid or an error
        """
        to_number = format_whatsapp_number(to_phone)
        if not to_number:
            return {'success': False, 'error': 'Recipient phone number is missing'}

        if not self.is_configured():
            logger.info(f"[SIMULATED WhatsApp] To: {to_number}, Message: {message}")
            return {'success': True, 'sid': SIMULATED_SID, 'simulated': True}

        try:
            from_number = self.whatsapp_from
            if not from_number.startswith('whatsapp:'):
                from_number = f'whatsapp:{from_number}'

            message_obj = self.client.messages.create(
                from_=from_number,
                body=message,
                to=to_number
            )
            logger.info(f"WhatsApp message sent to {to_number}: {message_obj.sid}")
            return {'success': True, 'sid': message_obj.sid}

        except TwilioRestException as e:
            logger.error(f"Twilio error sending WhatsApp to {to_number}: {str(e)}")
            return {'success': False, 'error': f'Twilio error: {e.msg}'}
        except Exception as e:
            logger.error(f"Unexpected error sending WhatsApp to {to_number}: {str(e)}")
            return {'success': False, 'error': 'Failed to send WhatsApp message'}

# Message templates

def render_order_status(doctor_name, order_id, status, tracking_number=None, notes=None):
    label = status.replace('_', ' ').title()
    lines = [
        f"Hello Dr. {doctor_name},",
        "",
        f"Your order #{order_id} is now {label}.",
    ]
    if tracking_number:
        lines.append(f"Tracking number: {tracking_number}")
    if notes:
        lines.append(f"Notes: {notes}")
    lines += ["", "Thank you for ordering with Upkar Pharma."]
    return "\n".join(lines)

def render_approval(doctor_name, approved=True, reason=None):
    if approved:
        return (f"Hello Dr. {doctor_name},\n\nYour Upkar Pharma account has been approved. "
                "You can now log in and place orders.")
    message = f"Hello Dr. {doctor_name},\n\nYour Upkar Pharma registration was not approved."
    if reason:
        message += f"\nReason: {reason}"
    return message
