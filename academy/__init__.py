from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_restx import Api
import logging
import os
from dotenv import load_dotenv

load_dotenv()

db = SQLAlchemy()
migrate = Migrate()
limiter = Limiter(key_func=get_remote_address, default_limits=[])

logger = logging.getLogger(__name__)


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def create_app(config_name='development'):
    app = Flask(__name__)

    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    # Config
    if config_name == 'testing':
        app.config['TESTING'] = True
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite://'
        app.config['RATELIMIT_ENABLED'] = False
    else:
        app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv(
            'DATABASE_URL',
            'sqlite:///academy.db'
        )

    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', 86400))
    app.config['SOURCE_LANGUAGE'] = os.getenv('SOURCE_LANGUAGE', 'en').strip().lower()
    app.config['SUPPORTED_LANGUAGES'] = os.getenv('SUPPORTED_LANGUAGES', 'ar,fa')
    app.config['SUPPRESS_TRANSLATION_ERRORS'] = _env_flag('SUPPRESS_TRANSLATION_ERRORS', True)
    app.config['ADMIN_EMAILS'] = [
        e.strip().lower() for e in os.getenv('ADMIN_EMAILS', '').split(',') if e.strip()
    ]
    app.config['MAX_CONTENT_LENGTH'] = 20 * 1024 * 1024

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    CORS(app)

    # API docs
    Api(app, version='1.0', title='Academy API', doc='/docs')

    # Create tables with error handling
    with app.app_context():
        from academy import models  # noqa: F401
        try:
            db.create_all()
        except Exception as e:
            logger.warning(f"Could not create database tables: {e}")

    # Register routes
    from academy.routes import register_routes
    register_routes(app)

    _register_error_handlers(app)

    # Health check
    @app.route('/health', methods=['GET'])
    def health():
        return {'status': 'ok'}, 200

    return app


def _register_error_handlers(app):
    """Return JSON bodies for framework-level errors."""

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def too_large(error):
        return jsonify({'error': 'Upload too large'}), 413

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify({'error': 'Too many requests, slow down'}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        logger.error(f"Unhandled server error: {error}")
        return jsonify({'error': 'Internal server error'}), 500
