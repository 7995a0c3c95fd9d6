"""Application factory and entry point for the Flask application."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from sqlalchemy import event

from commands import register_commands
from config import enable_sqlite_fks, load_config
from errors import PortalError
from extensions import db, limiter
from routes import register_blueprints
from services.auth import load_current_user
from services.clients import init_portal_clients
from services.tenant import register_tenant_guards

load_dotenv()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app():
    """Create and configure the Flask application."""
    app_cfg, email_cfg, automation_cfg, whop_cfg, outbox_cfg, db_uri = load_config()

    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = db_uri
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.secret_key = app_cfg.secret_key
    app.config["APP_CONFIG"] = app_cfg
    app.config["EMAIL_CONFIG"] = email_cfg
    app.config["AUTOMATION_CONFIG"] = automation_cfg
    app.config["WHOP_CONFIG"] = whop_cfg
    app.config["OUTBOX_CONFIG"] = outbox_cfg
    app.config["RATELIMIT_ENABLED"] = os.environ.get(
        "RATELIMIT_ENABLED", "true"
    ).lower() in ("true", "1", "yes")
    app.json.sort_keys = False

    # Initialize extensions
    limiter.init_app(app)
    db.init_app(app)

    # SQLite foreign key enforcement
    if "sqlite" in db_uri:
        with app.app_context():
            event.listen(db.engine, "connect", enable_sqlite_fks)

    with app.app_context():
        db.create_all()

    # Register tenant write-protection guard
    register_tenant_guards(app)

    # Outbound clients (mailer, automation hub, identity) live on the app
    init_portal_clients(app, app_cfg, email_cfg, automation_cfg, outbox_cfg)

    register_blueprints(app)
    register_commands(app)

    # ------------------------------------------------------------------
    # Request hooks
    # ------------------------------------------------------------------

    app.before_request(load_current_user)

    # ------------------------------------------------------------------
    # Security headers
    # ------------------------------------------------------------------

    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )
        if app_cfg.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # ------------------------------------------------------------------
    # Error handlers
    # ------------------------------------------------------------------

    @app.errorhandler(PortalError)
    def portal_error(error):
        if error.status_code >= 500:
            logger.error("%s on %s %s: %s", type(error).__name__, request.method, request.path, error)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(429)
    def ratelimit_handler(_error):
        logger.warning("Rate limit exceeded for %s on %s", request.remote_addr, request.path)
        return jsonify({"error": "Too many requests"}), 429

    @app.errorhandler(500)
    def server_error(error):
        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.url)
        return jsonify({"error": "Internal server error"}), 500

    return app


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "false").lower() in (
        "true",
        "1",
        "yes",
    )
    host = os.environ.get("FLASK_HOST", "127.0.0.1")
    port = int(os.environ.get("FLASK_PORT", 5000))
    logger.info("Starting application on %s:%s (debug=%s)", host, port, debug_mode)
    app.run(host=host, port=port, debug=debug_mode)
