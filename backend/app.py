"""
Flask Application Factory - UK house price trends

Record store + precomputed views live in SQL (Flask-SQLAlchemy). The
postcode page is served as a JSON view model; rendering is left to the
client.
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate

from config import Config
from models.database import db

# Initialize Flask-Migrate (will be initialized in create_app)
migrate = Migrate()

logger = logging.getLogger('app')


def create_app(config_class=Config, **overrides):
    """
    Build the application.

    Args:
        config_class: Config or a subclass (TestingConfig in tests)
        **overrides: Individual config values applied last, e.g.
            SQLALCHEMY_DATABASE_URI for a temporary database
    """
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.config.update(overrides)

    logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'))

    CORS(app,
         resources={r"/postcode/*": {"origins": "*"}, r"/api/*": {"origins": "*"}},
         methods=["GET", "OPTIONS"],
         allow_headers=["Content-Type", "X-Request-ID"],
         expose_headers=["X-Request-ID"],
         supports_credentials=False,
         send_wildcard=True)

    # Request ID + sampled request logging
    from api.middleware import setup_request_logging_middleware
    setup_request_logging_middleware(app)

    # JSON error envelope for HTTP errors, query failures and crashes
    from api.middleware import setup_error_handlers
    setup_error_handlers(app)

    # Initialize SQLAlchemy
    db.init_app(app)

    # Initialize Flask-Migrate for database migrations
    migrate.init_app(app, db)

    with app.app_context():
        # Import all models before create_all to ensure tables are created
        from models.transaction import Transaction  # noqa: F401
        from models.index_entry import IndexEntry  # noqa: F401

        env = (os.environ.get("ENV") or os.environ.get("FLASK_ENV") or os.environ.get("APP_ENV") or "").lower()
        is_prod = env in {"prod", "production"}
        allow_create = app.config.get("TESTING") or not is_prod
        if allow_create:
            db.create_all()
            logger.info("✓ Database initialized")
        else:
            logger.info("✓ Database ready (schema creation disabled in production)")

    # The postcode service owns the national trend cache
    from services.postcode_service import PostcodeService
    app.extensions['postcode_service'] = PostcodeService.from_app(app)

    # Register routes
    from routes.postcode import postcode_bp
    app.register_blueprint(postcode_bp)

    from routes.health import health_bp
    app.register_blueprint(health_bp, url_prefix='/api')

    return app


if __name__ == '__main__':
    app = create_app()
    port = int(os.environ.get('PORT', 3000))
    host = os.environ.get('HOST', 'localhost')
    logger.info(f"App started on port {port}")
    app.run(host=host, port=port, debug=app.config.get('DEBUG', False))
