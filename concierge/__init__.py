"""
Relocation Concierge
Flask Application Factory.

Usage:
    from concierge import create_app
    app = create_app()           # defaults to APP_ENV, else "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from concierge.config import config
from concierge.middleware.jwt_auth import init_jwt_middleware
from concierge.middleware.logging_config import configure_logging
from concierge.middleware.rate_limiter import init_rate_limits, rate_limit_key
from concierge.middleware.security_headers import init_security_headers
from concierge.middleware.timing import init_request_timing
from concierge.models import db
from concierge.utils.errors import E

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL") or "memory://",
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
    config_cls = config[config_name]
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Middleware ───────────────────────────────────────────────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Request guards (body size + Content-Type) ────────────────────────
    @app.before_request
    def _guard_request():
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            # Attachment upload is the only multipart endpoint
            if request.path.startswith("/api/v1/client/checklist/files"):
                if "multipart/form-data" not in ct:
                    abort(415, description="Content-Type must be multipart/form-data")
                return None
            if request.content_length and "json" not in ct:
                abort(415, description="Content-Type must be application/json")
        return None

    # ── Import all models so Alembic can detect them ─────────────────────
    from concierge.models import checklist as _checklist_models  # noqa: F401
    from concierge.models import client as _client_models        # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from concierge.blueprints.checklist_bp import checklist_bp, checklist_files_bp
    from concierge.blueprints.health_bp import health_bp

    app.register_blueprint(checklist_bp)
    app.register_blueprint(checklist_files_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-checklist-templates")
    def seed_checklist_templates_cmd():
        """Seed the default relocation checklist catalog."""
        from concierge.services.template_seed import seed_default_templates
        count = seed_default_templates()
        db.session.commit()
        logger.info("Seeded %s new checklist templates.", count)

    # ── Health check (detailed version at /health/live) ──────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Relocation Concierge"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(413)
    def payload_too_large(e):
        return {"error": "Request body too large", "code": E.PAYLOAD_TOO_LARGE}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description, "code": E.UNSUPPORTED_MEDIA}, 415

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
