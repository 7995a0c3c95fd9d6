"""Utility / helper functions used across the application."""

from __future__ import annotations

import datetime
import logging
import uuid
from datetime import timezone
from typing import Optional

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Datetime helpers
# ---------------------------------------------------------------------------

def utc_now() -> datetime.datetime:
    """Return current UTC datetime.  Used as SQLAlchemy column default."""
    return datetime.datetime.now(timezone.utc)


def as_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: Optional[datetime.datetime]) -> Optional[str]:
    """Render a datetime as an ISO-8601 UTC string with a ``Z`` suffix."""
    value = as_utc(value)
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------

def new_id() -> str:
    """Return a random string id.  Used as SQLAlchemy primary-key default."""
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Safe type conversions
# ---------------------------------------------------------------------------

def safe_int(value, default: int = 0) -> int:
    """Safely convert *value* to ``int``, returning *default* on failure."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        logger.warning("Could not convert %r to int, using default %s", value, default)
        return default


def parse_limit(raw, default: int = 50, maximum: int = 200) -> int:
    """Parse a ``?limit=`` query value, clamped to ``1..maximum``."""
    limit = safe_int(raw, default=default)
    if limit < 1:
        return default
    return min(limit, maximum)


def parse_bool(raw: Optional[str]) -> Optional[bool]:
    """Parse a ``true``/``false`` query value; anything else is ``None``."""
    if raw is None:
        return None
    lowered = raw.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    return None
