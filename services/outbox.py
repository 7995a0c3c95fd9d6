"""Transactional outbox for booking side effects.

Callers ``enqueue`` messages in the same session as the state change they
belong to, commit once, then call ``dispatch_now`` for an immediate
best-effort attempt.  Anything that fails stays pending and is retried by
``drain`` (``flask drain-outbox``) with exponential backoff.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import OutboxMessage
from services.events import AdminEventRecord, PortalEventRecord
from services.notifications import deliver_booking_notification
from utils import new_id, utc_now

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 3600


class OutboxDeliveryError(Exception):
    """Raised by a handler when its side effect did not fully complete."""


def _handle_notification(payload: dict, clients) -> None:
    deliver_booking_notification(payload, clients.mailer)


def _handle_admin_event(payload: dict, clients) -> None:
    result = clients.emitter.emit(AdminEventRecord.from_dict(payload))
    if not result.complete:
        raise OutboxDeliveryError(
            f"admin event {payload.get('id')}: stored={result.stored} delivered={result.delivered}"
        )


def _handle_portal_event(payload: dict, clients) -> None:
    result = clients.emitter.emit_portal(PortalEventRecord.from_dict(payload))
    if not result.complete:
        raise OutboxDeliveryError(
            f"portal event {payload.get('id')}: stored={result.stored} delivered={result.delivered}"
        )


HANDLERS = {
    "notification.booking_status_changed": _handle_notification,
    "notification.booking_created": _handle_notification,
    "event.admin": _handle_admin_event,
    "event.portal": _handle_portal_event,
}


def _clients():
    from services.clients import get_portal_clients

    return get_portal_clients()


def enqueue(kind: str, payload: dict, max_attempts: Optional[int] = None) -> OutboxMessage:
    """Add a pending message to the current session.  Does NOT commit."""
    if kind not in HANDLERS:
        raise ValueError(f"Unknown outbox message kind: {kind!r}")
    if max_attempts is None:
        max_attempts = _clients().outbox.max_attempts
    message = OutboxMessage(
        id=new_id(),
        kind=kind,
        payload=dict(payload),
        status="pending",
        attempts=0,
        max_attempts=max_attempts,
        next_attempt_at=utc_now(),
    )
    db.session.add(message)
    return message


def enqueue_admin_event(event: AdminEventRecord) -> OutboxMessage:
    return enqueue("event.admin", event.to_dict())


def enqueue_portal_event(event: PortalEventRecord) -> OutboxMessage:
    return enqueue("event.portal", event.to_dict())


def backoff_delay(attempts: int, base_seconds: int) -> timedelta:
    """Delay before retry number *attempts* + 1: ``base * 2**(attempts-1)``, capped."""
    seconds = base_seconds * (2 ** max(attempts - 1, 0))
    return timedelta(seconds=min(seconds, MAX_BACKOFF_SECONDS))


def dispatch(message: OutboxMessage, clients=None) -> bool:
    """Run one message's handler and record the outcome.  Returns True when sent."""
    clients = clients or _clients()
    message_id = message.id
    handler = HANDLERS.get(message.kind)

    message.attempts += 1
    db.session.commit()

    if handler is None:
        message.status = "failed"
        message.last_error = f"No handler for kind {message.kind!r}"
        db.session.commit()
        logger.error("Outbox message %s has unknown kind %s", message_id, message.kind)
        return False

    try:
        handler(dict(message.payload), clients)
    except Exception as e:
        db.session.rollback()
        message = db.session.get(OutboxMessage, message_id)
        message.last_error = str(e)[:2000]
        if message.attempts >= message.max_attempts:
            message.status = "failed"
            logger.error(
                "Outbox message %s (%s) failed permanently after %s attempts: %s",
                message_id, message.kind, message.attempts, e,
            )
        else:
            message.next_attempt_at = utc_now() + backoff_delay(
                message.attempts, clients.outbox.backoff_base_seconds
            )
            logger.warning(
                "Outbox message %s (%s) attempt %s failed, retry at %s: %s",
                message_id, message.kind, message.attempts, message.next_attempt_at, e,
            )
        db.session.commit()
        return False

    message = db.session.get(OutboxMessage, message_id)
    message.status = "sent"
    message.sent_at = utc_now()
    message.last_error = None
    db.session.commit()
    return True


def dispatch_now(message_ids: Iterable[str]) -> None:
    """Best-effort immediate dispatch after the primary commit.  Never raises."""
    for message_id in message_ids:
        try:
            message = db.session.get(OutboxMessage, message_id)
            if message is not None and message.status == "pending":
                dispatch(message)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Inline dispatch of outbox message %s failed: %s", message_id, e)


def drain(limit: int = 50, clients=None) -> dict:
    """Dispatch up to *limit* due messages, oldest first.  Returns outcome counts."""
    now = utc_now()
    due = (
        OutboxMessage.query.filter(
            OutboxMessage.status == "pending",
            OutboxMessage.next_attempt_at <= now,
        )
        .order_by(OutboxMessage.created_at)
        .limit(limit)
        .all()
    )
    counts = {"sent": 0, "retrying": 0, "failed": 0}
    for message in due:
        if dispatch(message, clients):
            counts["sent"] += 1
        elif message.status == "failed":
            counts["failed"] += 1
        else:
            counts["retrying"] += 1
    logger.info("Outbox drain: %s", counts)
    return counts
