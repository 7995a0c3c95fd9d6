"""Standard Webhooks signature verification for inbound Whop deliveries.

Signed message: ``{webhook-id}.{webhook-timestamp}.{raw body}``, HMAC-SHA256,
base64, sent as ``webhook-signature: v1,<sig>`` (space-separated list allowed).
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import time
from typing import Mapping, Optional

from config_models import WhopConfig

logger = logging.getLogger(__name__)

MAX_WEBHOOK_AGE_SECONDS = 300


class WebhookSignatureError(Exception):
    """Raised when an inbound webhook cannot be authenticated."""


def signing_key(secret: str) -> bytes:
    """Key bytes for a ``whsec_<base64>`` secret; plain secrets are used as UTF-8."""
    if secret.startswith("whsec_"):
        try:
            return base64.b64decode(secret[len("whsec_"):], validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Webhook secret has whsec_ prefix but is not valid base64")
    return secret.encode("utf-8")


def sign_standard_webhook(secret: str, msg_id: str, timestamp: str, body: bytes) -> str:
    """Return the ``v1,<base64>`` signature for one delivery."""
    message = b".".join([msg_id.encode("utf-8"), str(timestamp).encode("utf-8"), body])
    digest = hmac.new(signing_key(secret), message, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode("utf-8")


def verify_standard_webhook(
    secret: str,
    headers: Mapping[str, str],
    body: bytes,
    tolerance: int = MAX_WEBHOOK_AGE_SECONDS,
    now: Optional[float] = None,
) -> str:
    """Verify a delivery and return its ``webhook-id``.

    Raises :class:`WebhookSignatureError` on any missing header, a timestamp
    outside *tolerance*, or a signature mismatch.
    """
    msg_id = headers.get("webhook-id", "")
    timestamp = headers.get("webhook-timestamp", "")
    signature_header = headers.get("webhook-signature", "")

    if not msg_id or not timestamp or not signature_header:
        raise WebhookSignatureError("Missing webhook signature headers")

    try:
        sent_at = int(timestamp)
    except ValueError:
        raise WebhookSignatureError(f"Invalid webhook timestamp: {timestamp!r}")
    current = int(now if now is not None else time.time())
    if abs(current - sent_at) > tolerance:
        raise WebhookSignatureError(f"Webhook timestamp outside tolerance: {current - sent_at}s")

    expected = sign_standard_webhook(secret, msg_id, timestamp, body)
    for candidate in signature_header.split():
        if candidate.startswith("v1,") and hmac.compare_digest(candidate, expected):
            return msg_id

    raise WebhookSignatureError(f"Webhook signature mismatch for {msg_id}")


def verify_whop_request(config: WhopConfig, headers: Mapping[str, str], body: bytes) -> Optional[str]:
    """Authenticate an inbound Whop request; returns its delivery id when present.

    Without a configured secret the request is rejected unless
    ``allow_unsigned`` is set (local development only).
    """
    if not config.webhook_secret:
        if config.allow_unsigned:
            logger.warning("WHOP_WEBHOOK_SECRET not configured - accepting unsigned webhook")
            return headers.get("webhook-id") or None
        raise WebhookSignatureError("WHOP_WEBHOOK_SECRET not configured")
    return verify_standard_webhook(
        config.webhook_secret, headers, body, tolerance=config.tolerance_seconds
    )
