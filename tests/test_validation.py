import pytest

from upkar.utils.validation import (
    validate_email, validate_phone, validate_gst_number, validate_password,
    validate_price, validate_amount, validate_quantity, sanitize_string
)
from upkar.utils.whatsapp import format_whatsapp_number

def test_email():
    assert validate_email('doctor@clinic.in')
    assert not validate_email('doctor@')
    assert not validate_email('')

@pytest.mark.parametrize('phone,valid', [
    ('9876543210', True),
    ('+91 98765 43210', True),
    ('098765-43210', True),
    ('1234567890', False),
    ('98765', False),
])
def test_phone(phone, valid):
    assert validate_phone(phone) is valid

def test_gst_number():
    assert validate_gst_number('27ABCDE1234F1Z5')
    assert validate_gst_number('27abcde1234f1z5')
    assert not validate_gst_number('27ABCDE1234F1X5')
    assert not validate_gst_number('ABCDE1234F')

def test_password_rules():
    assert validate_password('Doctor@123')['valid']
    assert validate_password('doctor123')['message'] == 'Password must contain at least one uppercase letter'
    assert validate_password('Short1')['message'] == 'Password must be at least 8 characters long'

def test_price_and_amount():
    assert validate_price('25.50')['valid']
    assert validate_price(0)['valid']
    assert not validate_price('1.005')['valid']
    assert not validate_price('abc')['valid']
    assert not validate_amount(0)['valid']
    assert validate_amount('0.01')['valid']

def test_quantity():
    assert validate_quantity(3)['valid']
    assert validate_quantity(0)['valid']
    assert not validate_quantity(0, allow_zero=False)['valid']
    assert not validate_quantity(2.5)['valid']
    assert not validate_quantity(True)['valid']
    assert not validate_quantity(-1)['valid']

def test_sanitize_string():
    assert sanitize_string('  hello\x00 world  ') == 'hello world'
    assert sanitize_string('abcdef', 3) == 'abc'
    assert sanitize_string(None) == ''

def test_whatsapp_number_format():
    assert format_whatsapp_number('98765 43210') == 'whatsapp:+919876543210'
    assert format_whatsapp_number('+44 7700 900123') == 'whatsapp:+447700900123'
    assert format_whatsapp_number('whatsapp:+919876543210') == 'whatsapp:+919876543210'
    assert format_whatsapp_number('') is None
