"""
Briefed
Flask Application Factory.

Usage:
    from briefed import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from briefed.config import config
from briefed.models import db
from briefed.middleware.logging_config import configure_logging
from briefed.middleware.timing import init_request_timing
from briefed.middleware.security_headers import init_security_headers
from briefed.middleware.rate_limiter import init_rate_limits
from briefed.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(
            app,
            origins=[o.strip() for o in cors_origins.split(",") if o.strip()],
            supports_credentials=True,
        )
    else:
        CORS(app)

    # ── Security headers (no-store, no-referrer, CSP) ────────────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    @app.before_request
    def _guard_request():
        from flask import request as _req, abort
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and _req.content_length and _req.content_length > max_len:
            abort(413, description="Request body too large")
        if _req.method in ("POST", "PUT", "PATCH") and _req.path.startswith("/api/"):
            ct = _req.content_type or ""
            if _req.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from briefed.models import owner as _owner_models            # noqa: F401
    from briefed.models import project as _project_models        # noqa: F401
    from briefed.models import response as _response_models      # noqa: F401
    from briefed.models import revision as _revision_models      # noqa: F401
    from briefed.models import notification as _notification_models  # noqa: F401
    from briefed.models import deliverable as _deliverable_models    # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if app.config.get("AUTO_CREATE_TABLES", True):
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from briefed.blueprints.project_bp import project_bp
    from briefed.blueprints.respondent_bp import respondent_bp
    from briefed.blueprints.revision_bp import revision_bp
    from briefed.blueprints.message_bp import message_bp
    from briefed.blueprints.share_bp import share_bp
    from briefed.blueprints.deliverable_bp import deliverable_bp
    from briefed.blueprints.notification_bp import notification_bp
    from briefed.blueprints.health_bp import health_bp

    app.register_blueprint(project_bp)
    app.register_blueprint(respondent_bp)
    app.register_blueprint(revision_bp)
    app.register_blueprint(message_bp)
    app.register_blueprint(share_bp)
    app.register_blueprint(deliverable_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(health_bp)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
