"""MediCourier Flask Application Factory"""
import logging

import click
from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager

from config.database import db, migrate
from config.config import Config
from app.utils.errors import MediCourierError


jwt = JWTManager()

logger = logging.getLogger(__name__)


def configure_logging(app):
    """Send the application's loggers to stderr at LOG_LEVEL"""
    level = logging.getLevelName(str(app.config.get('LOG_LEVEL', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO

    package_logger = logging.getLogger('app')
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s [%(name)s] %(message)s'))
        package_logger.addHandler(handler)
    app.logger.setLevel(level)


def register_error_handlers(app):
    from app.utils.helpers import error_response

    @app.errorhandler(MediCourierError)
    def handle_domain_error(error):
        db.session.rollback()
        if error.status_code >= 500:
            logger.error("%s: %s", type(error).__name__, error.message)
        else:
            logger.info("%s: %s", type(error).__name__, error.message)
        return error_response(
            error.message,
            error.errors,
            error.status_code,
            entity_type=error.entity_type,
            entity_id=error.entity_id
        )

    @app.errorhandler(404)
    def handle_not_found(error):
        return error_response('Resource not found', status_code=404)

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response('Method not allowed', status_code=405)


def register_commands(app):
    @app.cli.command('seed')
    def seed_command():
        """Create tables and load the demo dataset into empty collections."""
        from seeds import seed_if_empty
        db.create_all()
        loaded = seed_if_empty()
        if loaded:
            click.echo(f"Seeded: {', '.join(loaded)}")
        else:
            click.echo('Nothing to seed, all collections have data')


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # CORS with security settings
    CORS(app, resources={
        r"/api/*": {
            "origins": app.config.get('CORS_ORIGINS', ['http://localhost:3000']),
            "methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "supports_credentials": True
        }
    })

    # Security headers
    from app.utils.security import add_security_headers
    app.after_request(add_security_headers)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({'error': 'Token has expired'}), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return jsonify({'error': 'Invalid token'}), 401

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return jsonify({'error': 'Authorization token required'}), 401

    register_error_handlers(app)
    register_commands(app)

    # Import models for migrations
    with app.app_context():
        from app import models  # noqa: F401

    # Register blueprints
    from app.routes.auth import auth_bp
    from app.routes.customer import customer_bp
    from app.routes.quotation import quotation_bp
    from app.routes.invoice import invoice_bp
    from app.routes.shipment import shipment_bp
    from app.routes.dashboard import dashboard_bp
    from app.routes.activity import activity_bp
    from app.routes.notification import notification_bp
    from app.routes.user import user_bp
    from app.routes.report import report_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(customer_bp, url_prefix='/api/customers')
    app.register_blueprint(quotation_bp, url_prefix='/api/quotations')
    app.register_blueprint(invoice_bp, url_prefix='/api/invoices')
    app.register_blueprint(shipment_bp, url_prefix='/api/shipments')
    app.register_blueprint(dashboard_bp, url_prefix='/api/dashboard')
    app.register_blueprint(activity_bp, url_prefix='/api/activities')
    app.register_blueprint(notification_bp, url_prefix='/api/notifications')
    app.register_blueprint(user_bp, url_prefix='/api/users')
    app.register_blueprint(report_bp, url_prefix='/api/reports')

    # Health check endpoint
    @app.route('/api/health')
    def health_check():
        return jsonify({'status': 'healthy', 'app': app.config.get('COMPANY_NAME', 'MediCourier')})

    if app.config.get('SEED_ON_EMPTY'):
        with app.app_context():
            from seeds import seed_if_empty
            db.create_all()
            seed_if_empty()

    return app
