import re
from decimal import Decimal, InvalidOperation
from typing import Dict, Any

# Regular expressions for validation
EMAIL_REGEX = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PHONE_REGEX = re.compile(r'^(\+91|91|0)?[6-9]\d{9}$')  # Indian mobile numbers
GST_REGEX = re.compile(r'^\d{2}[A-Z]{5}\d{4}[A-Z][1-9A-Z]Z[0-9A-Z]$')

def validate_email(email: str) -> bool:
    """Validate email format"""
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_REGEX.match(email.strip()))

def validate_phone(phone: str) -> bool:
    """Validate Indian mobile number format"""
    if not phone or not isinstance(phone, str):
        return False
    # Remove spaces and dashes
    clean_phone = re.sub(r'[\s-]', '', phone.strip())
    return bool(PHONE_REGEX.match(clean_phone))

def validate_gst_number(gst_number: str) -> bool:
    """Validate a 15 character GSTIN"""
    if not gst_number or not isinstance(gst_number, str):
        return False
    return bool(GST_REGEX.match(gst_number.strip().upper()))

def validate_password(password: str) -> Dict[str, Any]:
    """
    Validate password strength
    Returns dict with 'valid' boolean and 'message' string
    """
    if not password or not isinstance(password, str):
        return {'valid': False, 'message': 'Password is required'}

    if len(password) < 8:
        return {'valid': False, 'message': 'Password must be at least 8 characters long'}

    if len(password) > 128:
        return {'valid': False, 'message': 'Password must be less than 128 characters'}

    if not re.search(r'[a-z]', password):
        return {'valid': False, 'message': 'Password must contain at least one lowercase letter'}

    if not re.search(r'[A-Z]', password):
        return {'valid': False, 'message': 'Password must contain at least one uppercase letter'}

    if not re.search(r'\d', password):
        return {'valid': False, 'message': 'Password must contain at least one number'}

    weak_passwords = [
        'password', '12345678', 'qwerty123', 'admin123', 'user1234',
        'password123', '123456789', 'qwertyuiop', 'abc123456'
    ]

    if password.lower() in weak_passwords:
        return {'valid': False, 'message': 'Password is too common, please choose a stronger password'}

    return {'valid': True, 'message': 'Password is valid'}

def validate_required_fields(data: Dict[str, Any], required_fields: list) -> Dict[str, Any]:
    """
    Validate that all required fields are present and not empty
    Returns dict with 'valid' boolean and 'message' string
    """
    if not isinstance(data, dict):
        return {'valid': False, 'message': 'Invalid data format'}

    missing_fields = []
    empty_fields = []

    for field in required_fields:
        if field not in data:
            missing_fields.append(field)
        elif data[field] is None or (isinstance(data[field], str) and not data[field].strip()):
            empty_fields.append(field)

    if missing_fields:
        return {'valid': False, 'message': f'Missing required fields: {", ".join(missing_fields)}'}

    if empty_fields:
        return {'valid': False, 'message': f'Empty required fields: {", ".join(empty_fields)}'}

    return {'valid': True, 'message': 'All required fields are valid'}

def validate_price(price: Any) -> Dict[str, Any]:
    """
    Validate price value
    Returns dict with 'valid' boolean and 'message' string
    """
    try:
        price_value = Decimal(str(price))

        if not price_value.is_finite():
            return {'valid': False, 'message': 'Invalid price format'}

        if price_value < 0:
            return {'valid': False, 'message': 'Price cannot be negative'}

        if price_value > 10000000:
            return {'valid': False, 'message': 'Price is too high'}

        if price_value.as_tuple().exponent < -2:
            return {'valid': False, 'message': 'Price can have maximum 2 decimal places'}

        return {'valid': True, 'message': 'Price is valid'}

    except (InvalidOperation, ValueError, TypeError):
        return {'valid': False, 'message': 'Invalid price format'}

def validate_amount(amount: Any) -> Dict[str, Any]:
    """Validate a strictly positive money amount"""
    result = validate_price(amount)
    if not result['valid']:
        return result
    if Decimal(str(amount)) <= 0:
        return {'valid': False, 'message': 'Amount must be greater than 0'}
    return {'valid': True, 'message': 'Amount is valid'}

def validate_quantity(quantity: Any, allow_zero: bool = True) -> Dict[str, Any]:
    """
    Validate quantity value
    Returns dict with 'valid' boolean and 'message' string
    """
    if isinstance(quantity, bool):
        return {'valid': False, 'message': 'Invalid quantity format'}
    try:
        if isinstance(quantity, float) and not quantity.is_integer():
            return {'valid': False, 'message': 'Quantity must be a whole number'}
        qty = int(quantity)

        if qty < 0:
            return {'valid': False, 'message': 'Quantity cannot be negative'}

        if qty == 0 and not allow_zero:
            return {'valid': False, 'message': 'Quantity must be greater than 0'}

        if qty > 100000:
            return {'valid': False, 'message': 'Quantity is too high'}

        return {'valid': True, 'message': 'Quantity is valid'}

    except (ValueError, TypeError):
        return {'valid': False, 'message': 'Invalid quantity format'}

def sanitize_string(value: str, max_length: int = None) -> str:
    """
    Sanitize string input by removing dangerous characters and trimming
    """
    if not isinstance(value, str):
        return str(value) if value is not None else ''

    # Remove null bytes and control characters
    sanitized = re.sub(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]', '', value)
    sanitized = sanitized.strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized

def validate_payment_method(method: str) -> bool:
    """Validate payment method"""
    valid_methods = ['credit', 'bank_transfer', 'upi', 'cheque']
    return method in valid_methods
