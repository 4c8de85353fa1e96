"""
Shared fixtures: an app on in-memory SQLite with unconfigured SendGrid and
Twilio, plus factories for users, doctors and products.
"""
import itertools
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from upkar.main import create_app
from upkar.models import db, User, UserRole, Doctor, Product, Cart, CartItem, Order

PASSWORD = 'Doctor@123'

@pytest.fixture
def app(tmp_path, monkeypatch):
    for key in ('SENDGRID_API_KEY', 'TWILIO_ACCOUNT_SID', 'TWILIO_AUTH_TOKEN', 'CORS_ORIGINS'):
        monkeypatch.delenv(key, raising=False)

    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'JWT_SECRET_KEY': 'test-jwt-secret-key-with-enough-length',
        'SECRET_KEY': 'test-secret-key',
        'INVOICE_FOLDER': str(tmp_path / 'invoices'),
        'GST_RATE': 0.18,
        'LOW_STOCK_THRESHOLD': 10,
        'SENDGRID_API_KEY': None,
        'TWILIO_ACCOUNT_SID': None,
        'TWILIO_AUTH_TOKEN': None,
        'ADMIN_EMAIL': 'alerts@upkarpharma.com',
    })

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    return app.test_client()

class Factory:
    """Creates committed test records"""
    _seq = itertools.count(1)

    @classmethod
    def user(cls, role=UserRole.DOCTOR, email=None, password=PASSWORD, **kwargs):
        n = next(cls._seq)
        user = User(email=email or f'user{n}@example.com', role=role, full_name=f'User {n}', **kwargs)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    @classmethod
    def admin(cls, **kwargs):
        return cls.user(role=UserRole.ADMIN, **kwargs)

    @classmethod
    def doctor(cls, approved=True, email=None, **kwargs):
        user = cls.user(email=email)
        n = user.id
        doctor = Doctor(
            user_id=user.id,
            name=kwargs.pop('name', f'Asha Rao {n}'),
            email=user.email,
            phone=kwargs.pop('phone', '9876543210'),
            gst_number=kwargs.pop('gst_number', f'27ABCDE{n:04d}F1Z5'),
            address=kwargs.pop('address', '12 MG Road, Pune'),
            **kwargs
        )
        if approved:
            doctor.approve()
        db.session.add(doctor)
        db.session.commit()
        return doctor

    @classmethod
    def product(cls, name=None, price='100.00', stock=50, category='General', is_active=True):
        n = next(cls._seq)
        product = Product(
            name=name or f'Product {n}',
            description='Test product',
            price=Decimal(price),
            stock=stock,
            category=category,
            is_active=is_active
        )
        db.session.add(product)
        db.session.commit()
        return product

    @classmethod
    def cart(cls, doctor, lines):
        cart = Cart.get_or_create(doctor.id)
        for product, quantity in lines:
            cart.items.append(CartItem(product_id=product.id, quantity=quantity))
        db.session.commit()
        return cart

    @classmethod
    def order(cls, doctor, lines, gst_rate=0.18):
        order = Order.create_from_lines(doctor, lines, gst_rate, changed_by=doctor.user_id)
        db.session.commit()
        return order

@pytest.fixture
def factory(app):
    return Factory

def auth_headers(user):
    token = create_access_token(identity=str(user.id))
    return {'Authorization': f'Bearer {token}'}

@pytest.fixture
def admin(factory):
    return factory.admin(email='admin@upkarpharma.com')

@pytest.fixture
def doctor(factory):
    return factory.doctor(email='doctor@example.com')

@pytest.fixture
def pending_doctor(factory):
    return factory.doctor(approved=False, email='pending@example.com')

@pytest.fixture
def products(factory):
    return [
        factory.product(name='Paracetamol 500mg', price='25.50', stock=100, category='Pain Relief'),
        factory.product(name='Cetirizine 10mg', price='35.75', stock=5, category='Allergy Relief'),
    ]

@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)

@pytest.fixture
def doctor_headers(doctor):
    return auth_headers(doctor.user)

@pytest.fixture
def pending_headers(pending_doctor):
    return auth_headers(pending_doctor.user)
