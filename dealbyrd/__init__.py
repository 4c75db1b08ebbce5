"""
DealByrd flash-deal platform
Flask application factory
"""
import os
import re
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging
from .utils.errors import exception_response, bad_request, not_found, internal_error
from .utils.exceptions import DealByrdError

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Configure CORS - allow the merchant dashboard
    cors_origins = [
        'http://localhost:5173',
        'http://127.0.0.1:5173',
        app.config['APP_BASE_URL'],
    ]
    if config_name != 'production':
        cors_origins.append(re.compile(r'https://.*\.trycloudflare\.com'))
    CORS(app, origins=cors_origins, supports_credentials=True,
         allow_headers=['Content-Type', 'Authorization', 'X-Merchant-ID'])

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Lifecycle sweeps (activate / expire / extend), production only
    from .utils.scheduler import init_scheduler
    init_scheduler(app)

    # Register error handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'dealbyrd'}

    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    from .api.offers import offers_bp
    from .api.folders import folders_bp
    from .api.bank import bank_bp
    from .api.sms import sms_bp
    from .api.notifications import notifications_bp
    from .api.scheduled_tasks import scheduled_tasks_bp

    # Offers and campaign folders
    app.register_blueprint(offers_bp, url_prefix='/api/offers')
    app.register_blueprint(folders_bp, url_prefix='/api/campaign-folders')

    # Merchant bank and ledgers
    app.register_blueprint(bank_bp, url_prefix='/api/bank')

    # SMS budget, usage and campaigns (/api/sms-budget, /api/sms/...)
    app.register_blueprint(sms_bp, url_prefix='/api')

    # Notification center
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')

    # Lifecycle sweeps (manual triggers and status)
    app.register_blueprint(scheduled_tasks_bp, url_prefix='/api/scheduled')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""

    @app.errorhandler(DealByrdError)
    def dealbyrd_error(error):
        return exception_response(error)

    @app.errorhandler(400)
    def handle_bad_request(error):
        return bad_request(str(error))

    @app.errorhandler(404)
    def handle_not_found(error):
        return not_found(str(error))

    @app.errorhandler(500)
    def handle_internal_error(error):
        logger.error(f'Unhandled error: {error}')
        return internal_error('Internal server error')
