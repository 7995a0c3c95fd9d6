"""Configuration loading: YAML file + environment-variable overrides."""

from __future__ import annotations

import logging
import os
import secrets

import yaml

from config_models import AppConfig, AutomationConfig, EmailConfig, OutboxConfig, WhopConfig

logger = logging.getLogger(__name__)


def _env_flag(name: str, fallback) -> bool:
    return os.environ.get(name, str(fallback)).lower() in ("true", "1", "yes")


def load_config():
    """Load configuration from *config.yaml* with env-var overrides.

    Environment variables take precedence over config.yaml values.
    Returns (AppConfig, EmailConfig, AutomationConfig, WhopConfig,
    OutboxConfig, database_uri).
    """
    config_path = os.environ.get("CONFIG_PATH", "config.yaml")
    raw: dict = {}
    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}

    app_cfg = raw.get("app", {})
    email_cfg = raw.get("email", {})
    automation_cfg = raw.get("automation", {})
    whop_cfg = raw.get("whop", {})
    outbox_cfg = raw.get("outbox", {})
    db_cfg = raw.get("database", {})

    secret_key = os.environ.get("APP_SECRET_KEY", app_cfg.get("secret_key", ""))
    if not secret_key or secret_key == "change-me":
        secret_key = secrets.token_hex(32)
        logger.warning(
            "Using auto-generated secret key. Set APP_SECRET_KEY env var "
            "or app.secret_key in config.yaml; issued tokens will not survive a restart."
        )

    return (
        AppConfig(
            name=app_cfg.get("name", "Booking Admin Portal"),
            secret_key=secret_key,
            environment=os.environ.get("APP_ENV", app_cfg.get("environment", "development")),
            token_max_age=int(
                os.environ.get("TOKEN_MAX_AGE", app_cfg.get("token_max_age", 8 * 3600))
            ),
        ),
        EmailConfig(
            enabled=_env_flag("EMAIL_ENABLED", email_cfg.get("enabled", False)),
            smtp_host=os.environ.get("SMTP_HOST", email_cfg.get("smtp_host", "")),
            smtp_port=int(os.environ.get("SMTP_PORT", email_cfg.get("smtp_port", 587))),
            smtp_user=os.environ.get("SMTP_USER", email_cfg.get("smtp_user", "")),
            smtp_password=os.environ.get("SMTP_PASSWORD", email_cfg.get("smtp_password", "")),
            sender=os.environ.get("EMAIL_SENDER", email_cfg.get("sender", "")),
            internal_email=os.environ.get(
                "NOTIFICATIONS_INTERNAL_EMAIL", email_cfg.get("internal_email", "")
            ),
        ),
        AutomationConfig(
            endpoint_url=os.environ.get(
                "AUTOMATION_WEBHOOK_URL", automation_cfg.get("endpoint_url", "")
            ),
            timeout_seconds=float(
                os.environ.get(
                    "AUTOMATION_TIMEOUT_SECONDS", automation_cfg.get("timeout_seconds", 10)
                )
            ),
        ),
        WhopConfig(
            webhook_secret=os.environ.get(
                "WHOP_WEBHOOK_SECRET", whop_cfg.get("webhook_secret", "")
            ),
            allow_unsigned=_env_flag(
                "WHOP_WEBHOOK_ALLOW_UNSIGNED", whop_cfg.get("allow_unsigned", False)
            ),
            tolerance_seconds=int(
                os.environ.get(
                    "WHOP_WEBHOOK_TOLERANCE_SECONDS", whop_cfg.get("tolerance_seconds", 300)
                )
            ),
        ),
        OutboxConfig(
            max_attempts=int(
                os.environ.get("OUTBOX_MAX_ATTEMPTS", outbox_cfg.get("max_attempts", 5))
            ),
            backoff_base_seconds=int(
                os.environ.get(
                    "OUTBOX_BACKOFF_BASE_SECONDS", outbox_cfg.get("backoff_base_seconds", 30)
                )
            ),
        ),
        os.environ.get("DATABASE_URI", db_cfg.get("uri", "sqlite:///booking_portal.db")),
    )


def enable_sqlite_fks(dbapi_conn, _connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
