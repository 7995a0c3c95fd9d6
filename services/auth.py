"""Authentication and authorization services."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Optional

from flask import g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from extensions import db
from errors import AuthError, ForbiddenError
from models import User

logger = logging.getLogger(__name__)

TOKEN_SALT = "portal-identity"


class IdentityProvider:
    """Issues and verifies signed, expiring bearer tokens for portal users."""

    def __init__(self, secret_key: str, max_age: int = 8 * 3600):
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)

    def issue_token(self, uid: str) -> str:
        return self._serializer.dumps({"uid": uid})

    def verify_token(self, token: str) -> Optional[str]:
        """Return the uid carried by *token*, or None if invalid or expired."""
        try:
            data = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired:
            logger.info("Rejected expired bearer token")
            return None
        except BadSignature:
            logger.warning("Rejected bearer token with bad signature")
            return None
        uid = data.get("uid") if isinstance(data, dict) else None
        return uid if isinstance(uid, str) else None


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def load_current_user() -> None:
    """``before_request`` hook: resolve the bearer token into ``g.current_user``."""
    from services.clients import get_portal_clients

    g.current_user = None
    token = _bearer_token()
    if not token:
        return
    uid = get_portal_clients().identity.verify_token(token)
    if uid:
        g.current_user = db.session.get(User, uid)


def get_current_user() -> Optional[User]:
    """Return the authenticated user from ``flask.g``."""
    return getattr(g, "current_user", None)


def admin_required(f):
    """Decorator that requires an authenticated user with the ``admin`` role."""

    @wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if not user:
            raise AuthError()
        if not user.is_admin:
            logger.warning("User %s (role=%s) denied admin endpoint %s", user.uid, user.role, request.path)
            raise ForbiddenError()
        return f(*args, **kwargs)

    return decorated
