import logging
import os

from flask import Flask, jsonify
from app.extensions import db, login_manager
from config import Config


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app)

    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///'):
        os.makedirs(app.instance_path, exist_ok=True)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    # User loader for Flask-Login
    from app.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify(success=False, error='unauthorized', message='Login required'), 401

    # Register blueprints
    from app.routes.auth import auth_bp
    from app.routes.settlements import settlements_bp
    from app.routes.withdrawals import withdrawals_bp
    from app.routes.vendors import vendors_bp
    from app.routes.wallet import wallet_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(settlements_bp)
    app.register_blueprint(withdrawals_bp)
    app.register_blueprint(vendors_bp)
    app.register_blueprint(wallet_bp)

    register_error_handlers(app)

    from app.commands import register_commands
    register_commands(app)

    with app.app_context():
        db.create_all()
        app.logger.info("Database tables ready")

    return app


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    logging.getLogger('app').setLevel(level)
    app.logger.setLevel(level)


def register_error_handlers(app):
    from app.services.exceptions import LedgerError

    @app.errorhandler(LedgerError)
    def ledger_error(e):
        if e.status_code >= 500:
            app.logger.error("Ledger failure: %s", e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify(success=False, error='not_found', message='Resource not found'), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify(success=False, error='method_not_allowed', message='Method not allowed'), 405
