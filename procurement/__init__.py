"""
Procurement Approvals
Flask Application Factory.

Usage:
    from procurement import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from procurement.config import basedir, config
from procurement.core.exceptions import (
    ConflictError,
    ImmutableRecordError,
    NotFoundError,
    ValidationError,
)
from procurement.middleware.logging_config import configure_logging
from procurement.middleware.tenant_context import init_tenant_context
from procurement.middleware.timing import init_request_timing
from procurement.models import db
from procurement.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()


def _register_error_handlers(app):
    @app.errorhandler(NotFoundError)
    def _handle_not_found(error):
        # Resource ids and tenant stay in the log, never in the response.
        logger.info("Not found: %s", error, extra={"tenant_id": error.tenant_id})
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @app.errorhandler(ValidationError)
    def _handle_validation(error):
        return api_error(E.VALIDATION_RULE, str(error), details=error.details)

    @app.errorhandler(ConflictError)
    def _handle_conflict(error):
        return api_error(E.CONFLICT_DUPLICATE, str(error))

    @app.errorhandler(ImmutableRecordError)
    def _handle_immutable(error):
        logger.error("Immutable record write blocked: %s", error)
        return api_error(E.INTERNAL, "Internal server error")

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


def create_app(config_name=None, overrides=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        overrides:   Optional mapping applied on top of the config class,
                     before any extension reads it.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)
    if overrides:
        app.config.update(overrides)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    from procurement.services.cache_service import init_cache
    init_cache(app)

    # ── Middleware chain ─────────────────────────────────────────────────
    init_request_timing(app)
    init_tenant_context(app)

    # ── Models (registered on db.metadata) ───────────────────────────────
    from procurement.models import auth as _auth_models                  # noqa: F401
    from procurement.models import organization as _organization_models  # noqa: F401
    from procurement.models import requisition as _requisition_models    # noqa: F401
    from procurement.models import approval as _approval_models          # noqa: F401

    if not app.config.get("TESTING"):
        os.makedirs(os.path.join(basedir, "instance"), exist_ok=True)
        with app.app_context():
            db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from procurement.blueprints.approval_bp import approval_bp
    app.register_blueprint(approval_bp)

    _register_error_handlers(app)

    @app.route("/api/v1/health")
    def health():
        from procurement.services.cache_service import health_check
        return jsonify({"status": "ok", "app": "Procurement Approvals", "cache": health_check()})

    return app
