import os
import logging
from datetime import timedelta

from flask import Flask, send_from_directory, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from upkar.models.database import db
from upkar.routes.auth import auth_bp
from upkar.routes.doctors import doctors_bp
from upkar.routes.products import products_bp
from upkar.routes.cart import cart_bp
from upkar.routes.orders import orders_bp
from upkar.routes.credits import credits_bp
from upkar.routes.notifications import notifications_bp
from upkar.routes.admin import admin_bp
from upkar.routes.admin_orders import admin_orders_bp
from upkar.cli import register_commands

migrate = Migrate()
jwt = JWTManager()

def _database_uri():
    database_url = os.getenv('DATABASE_URL', 'sqlite:///upkar_dev.db')
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)
    if database_url.startswith('sqlite:///'):
        # For SQLite, use absolute path
        db_path = database_url.replace('sqlite:///', '')
        if not os.path.isabs(db_path):
            db_path = os.path.join(os.path.dirname(__file__), 'database', db_path)
            os.makedirs(os.path.dirname(db_path), exist_ok=True)
        return f'sqlite:///{db_path}'
    return database_url

def create_app(test_config=None):
    app = Flask(__name__, static_folder=os.path.join(os.path.dirname(__file__), 'static'))

    # Configuration
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-key-upkar-2025')
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-jwt-secret-key-upkar-2025')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(minutes=int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', 60)))
    app.config['JWT_REFRESH_TOKEN_EXPIRES'] = timedelta(days=int(os.getenv('JWT_REFRESH_TOKEN_EXPIRES', 7)))

    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Email Configuration
    app.config['SENDGRID_API_KEY'] = os.getenv('SENDGRID_API_KEY')
    app.config['FROM_EMAIL'] = os.getenv('FROM_EMAIL', 'noreply@upkarpharma.com')
    app.config['FROM_NAME'] = os.getenv('FROM_NAME', 'Upkar Pharma')
    app.config['ADMIN_EMAIL'] = os.getenv('ADMIN_EMAIL')
    app.config['FRONTEND_URL'] = os.getenv('FRONTEND_URL', 'http://localhost:3000')

    # WhatsApp Configuration
    app.config['TWILIO_ACCOUNT_SID'] = os.getenv('TWILIO_ACCOUNT_SID')
    app.config['TWILIO_AUTH_TOKEN'] = os.getenv('TWILIO_AUTH_TOKEN')
    app.config['TWILIO_WHATSAPP_FROM'] = os.getenv('TWILIO_WHATSAPP_FROM')

    # Business Configuration
    app.config['INVOICE_FOLDER'] = os.getenv('INVOICE_FOLDER', os.path.join(app.instance_path, 'invoices'))
    app.config['GST_RATE'] = float(os.getenv('GST_RATE', 0.18))
    app.config['LOW_STOCK_THRESHOLD'] = int(os.getenv('LOW_STOCK_THRESHOLD', 10))
    app.config['COMPANY_NAME'] = os.getenv('COMPANY_NAME', 'Upkar Pharma')
    app.config['COMPANY_ADDRESS'] = os.getenv('COMPANY_ADDRESS', 'Upkar Pharma Distributors, India')
    app.config['COMPANY_GST'] = os.getenv('COMPANY_GST', '')

    if test_config:
        app.config.update(test_config)

    if 'SQLALCHEMY_DATABASE_URI' not in app.config:
        app.config['SQLALCHEMY_DATABASE_URI'] = _database_uri()

    # Logging
    log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
    app.logger.setLevel(getattr(logging, log_level, logging.INFO))
    logging.getLogger('upkar').setLevel(getattr(logging, log_level, logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # CORS Configuration
    cors_origins = os.getenv('CORS_ORIGINS', '*')
    if cors_origins == '*':
        CORS(app, origins='*', supports_credentials=True)
    else:
        CORS(app, origins=cors_origins.split(','), supports_credentials=True)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(doctors_bp, url_prefix='/api/doctors')
    app.register_blueprint(products_bp, url_prefix='/api/products')
    app.register_blueprint(cart_bp, url_prefix='/api/cart')
    app.register_blueprint(orders_bp, url_prefix='/api/orders')
    app.register_blueprint(credits_bp, url_prefix='/api/credits')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(admin_orders_bp, url_prefix='/api/admin')

    register_commands(app)

    # JWT Error Handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({'message': 'Token has expired', 'error': 'token_expired'}), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return jsonify({'message': 'Invalid token', 'error': 'invalid_token'}), 401

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return jsonify({'message': 'Authorization token is required', 'error': 'authorization_required'}), 401

    # Health check endpoint
    @app.route('/api/health')
    def health_check():
        return jsonify({'status': 'healthy', 'service': 'Upkar Pharma API'})

    # Frontend serving routes
    @app.route('/', defaults={'path': ''})
    @app.route('/<path:path>')
    def serve(path):
        static_folder_path = app.static_folder
        if path.startswith('api/'):
            return jsonify({'error': 'Not found'}), 404

        if path != "" and os.path.exists(os.path.join(static_folder_path, path)):
            return send_from_directory(static_folder_path, path)

        index_path = os.path.join(static_folder_path, 'index.html')
        if os.path.exists(index_path):
            return send_from_directory(static_folder_path, 'index.html')
        return jsonify({'message': 'Upkar Pharma API is running', 'version': '1.0.0'})

    # Create database tables
    with app.app_context():
        db.create_all()

    return app

if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 5000)),
            debug=os.getenv('FLASK_DEBUG', 'False').lower() == 'true')
