"""Maintenance commands registered on the Flask CLI"""
import click
from decimal import Decimal
from flask import current_app

from upkar.models import db, User, UserRole, Doctor, Product
from upkar.utils.validation import validate_email, validate_password
from upkar.utils.notifications import send_credit_summary

SAMPLE_PRODUCTS = [
    {
        'name': 'Paracetamol 500mg',
        'description': 'Pain reliever and fever reducer. Used for mild to moderate pain and fever.',
        'price': '25.50',
        'category': 'Pain Relief',
        'stock': 100,
    },
    {
        'name': 'Amoxicillin 250mg',
        'description': 'Antibiotic used to treat a number of bacterial infections.',
        'price': '75.00',
        'category': 'Antibiotics',
        'stock': 50,
    },
    {
        'name': 'Cetirizine 10mg',
        'description': 'Antihistamine used to relieve allergy symptoms such as watery eyes, runny nose, itching, and sneezing.',
        'price': '35.75',
        'category': 'Allergy Relief',
        'stock': 75,
    },
    {
        'name': 'Omeprazole 20mg',
        'description': 'Proton pump inhibitor used to treat certain stomach and esophagus problems.',
        'price': '85.25',
        'category': 'Digestive Health',
        'stock': 60,
    },
    {
        'name': 'Metformin 500mg',
        'description': 'Oral diabetes medicine that helps control blood sugar levels.',
        'price': '45.50',
        'category': 'Diabetes Care',
        'stock': 40,
    },
]

@click.command('init-db')
def init_db_command():
    """Create all database tables."""
    db.create_all()
    click.echo(f"Database tables created at {db.engine.url}")

@click.command('seed-products')
def seed_products_command():
    """Add the sample catalog, skipping products that already exist."""
    added = 0
    for item in SAMPLE_PRODUCTS:
        if Product.query.filter_by(name=item['name']).first():
            click.echo(f"Skipping {item['name']} (already exists)")
            continue
        db.session.add(Product(
            name=item['name'],
            description=item['description'],
            price=Decimal(item['price']),
            category=item['category'],
            stock=item['stock'],
            is_active=True
        ))
        added += 1
    db.session.commit()
    click.echo(f"Added {added} sample products")

@click.command('create-admin')
@click.option('--email', prompt=True, help='Admin email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@click.option('--name', default='Administrator', show_default=True, help='Display name')
def create_admin_command(email, password, name):
    """Create an admin account."""
    email = email.strip().lower()
    if not validate_email(email):
        raise click.ClickException('Invalid email format')

    password_validation = validate_password(password)
    if not password_validation['valid']:
        raise click.ClickException(password_validation['message'])

    if User.query.filter_by(email=email).first():
        raise click.ClickException(f'A user with email {email} already exists')

    user = User(email=email, full_name=name, role=UserRole.ADMIN, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    click.echo(f"Admin {email} created")

@click.command('production-init')
def production_init_command():
    """Print the production checklist."""
    frontend_url = current_app.config.get('FRONTEND_URL')
    checks = [
        ('SECRET_KEY set', not current_app.config['SECRET_KEY'].startswith('dev-')),
        ('JWT_SECRET_KEY set', not current_app.config['JWT_SECRET_KEY'].startswith('dev-')),
        ('Database is not SQLite', not current_app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite')),
        ('SendGrid configured', bool(current_app.config.get('SENDGRID_API_KEY'))),
        ('Twilio configured', bool(current_app.config.get('TWILIO_ACCOUNT_SID'))),
        ('Admin email set', bool(current_app.config.get('ADMIN_EMAIL'))),
        ('Admin account exists', User.query.filter_by(role=UserRole.ADMIN).first() is not None),
    ]

    click.echo('Upkar Pharma production initialization')
    click.echo('=' * 38)
    for label, ok in checks:
        click.echo(f"[{'x' if ok else ' '}] {label}")
    click.echo('')
    click.echo('Next steps:')
    click.echo('1. flask init-db')
    click.echo('2. flask create-admin --email <email>')
    click.echo('3. flask seed-products (optional)')
    click.echo('')
    click.echo(f"Doctor registration: {frontend_url}/register")
    click.echo(f"Admin login: {frontend_url}/login")

@click.command('send-credit-summaries')
def send_credit_summaries_command():
    """Email every approved doctor their credit summary."""
    doctors = Doctor.query.filter_by(is_approved=True).all()
    sent = 0
    for doctor in doctors:
        result = send_credit_summary(doctor)
        if result.get('success'):
            sent += 1
        else:
            click.echo(f"Failed for {doctor.email}: {result.get('error')}")
    click.echo(f"Sent {sent} of {len(doctors)} credit summaries")

def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_products_command)
    app.cli.add_command(create_admin_command)
    app.cli.add_command(production_init_command)
    app.cli.add_command(send_credit_summaries_command)
