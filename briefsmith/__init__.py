"""
Briefsmith
Flask application factory.

    from briefsmith import create_app
    app = create_app()           # APP_ENV, else "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from briefsmith.config import config
from briefsmith.middleware.logging_config import configure_logging
from briefsmith.middleware.rate_limiter import init_rate_limits
from briefsmith.middleware.timing import init_request_timing
from briefsmith.models import db
from briefsmith.utils.errors import E, api_error

logger = logging.getLogger(__name__)

migrate = Migrate()
# Limits are attached per blueprint in init_rate_limits
limiter = Limiter(key_func=get_remote_address, default_limits=[])


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    if "sqlite" not in type(dbapi_conn).__module__:
        return
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def _init_extensions(app):
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    origins = [o.strip() for o in (app.config.get("CORS_ORIGINS") or "").split(",") if o.strip()]
    if origins and origins != ["*"]:
        CORS(app, origins=origins)
    else:
        CORS(app)


def _register_blueprints(app):
    from briefsmith.blueprints.health_bp import health_bp
    from briefsmith.blueprints.orders_bp import orders_bp
    from briefsmith.blueprints.requirements_bp import requirements_bp

    for bp in (health_bp, orders_bp, requirements_bp):
        app.register_blueprint(bp)


def _register_fallback_handlers(app):
    """JSON bodies for errors raised outside any blueprint (unknown routes etc.)."""

    @app.errorhandler(404)
    def _not_found(error):
        return api_error(E.NOT_FOUND, "Route not found")

    @app.errorhandler(405)
    def _method_not_allowed(error):
        return api_error(E.BAD_REQUEST, "Method not allowed", status=405)

    @app.errorhandler(429)
    def _rate_limited(error):
        return api_error(E.RATE_LIMITED, f"Rate limit exceeded: {error.description}")


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: "development", "testing" or "production".
                     Defaults to the APP_ENV env var, or "development".
    """
    config_name = config_name or os.getenv("APP_ENV", "development")
    config_cls = config[config_name]

    app = Flask(__name__, instance_relative_config=True)
    # ProductionConfig checks its required settings when instantiated
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    configure_logging(app)
    _init_extensions(app)
    init_request_timing(app)

    from briefsmith.models import project as _project_models  # noqa: F401

    # Production schema is owned by Flask-Migrate
    if config_name != "production":
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            db.create_all()

    _register_blueprints(app)
    init_rate_limits(app, limiter)
    _register_fallback_handlers(app)

    logger.info("Briefsmith app created (env=%s)", config_name)
    return app
