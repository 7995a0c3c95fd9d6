"""Booking lifecycle: status changes and manual booking entry."""

from __future__ import annotations

import datetime
import logging
from typing import Optional

from sqlalchemy.orm.exc import StaleDataError

from extensions import db
from errors import ConflictError, NotFoundError, ValidationFailed
from models import Booking, BookingStatusEvent, Service, User
from services.booking_status import validate_transition
from services.notifications import log_notification
from services.outbox import dispatch_now, enqueue
from services.tenant import get_tenant_or_404, tenant_get_or_404
from utils import isoformat, new_id, utc_now

logger = logging.getLogger(__name__)

INITIAL_STATUSES = ("draft", "pending")


def append_status_history(
    booking: Booking,
    status: str,
    actor_id: Optional[str] = None,
    note: Optional[str] = None,
) -> BookingStatusEvent:
    """Append one entry to the booking's status history.  Does NOT commit."""
    seq = max((entry.seq for entry in booking.status_history), default=0) + 1
    entry = BookingStatusEvent(
        seq=seq,
        status=status,
        changed_at=utc_now(),
        changed_by_user_id=actor_id,
        note=note,
    )
    booking.status_history.append(entry)
    return entry


def apply_transition(
    booking: Booking,
    new_status: str,
    actor_id: Optional[str] = None,
    note: Optional[str] = None,
) -> str:
    """Move *booking* to *new_status* through the transition guard.

    Appends a history entry and returns the previous status.  Does NOT commit.
    """
    validate_transition(booking.status, new_status)
    old_status = booking.status
    append_status_history(booking, new_status, actor_id=actor_id, note=note)
    booking.status = new_status
    booking.updated_at = utc_now()
    return old_status


def commit_booking_change(booking: Booking) -> None:
    """Commit a booking write; a concurrent write to the same row becomes a 409."""
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        logger.warning("Concurrent modification of booking %s rejected", booking.id)
        raise ConflictError()


def _status_change_payload(booking: Booking, old_status: str, new_status: str, note: Optional[str]) -> dict:
    return {
        "tenantId": booking.tenant_id,
        "bookingId": booking.id,
        "userId": booking.user_id,
        "channel": "email",
        "eventType": "booking_status_changed",
        "oldStatus": old_status,
        "newStatus": new_status,
        "note": note,
        "createdAt": isoformat(utc_now()),
    }


def enqueue_notification(kind: str, payload: dict):
    """Log the notification and queue its delivery in the current session.

    The outbox message carries ``notificationId`` so every delivery attempt
    updates the same record.  Does NOT commit.
    """
    notification = log_notification(
        tenant_id=payload["tenantId"],
        booking_id=payload["bookingId"],
        user_id=payload["userId"],
        event_type=payload["eventType"],
        payload=payload,
    )
    return enqueue(kind, {**payload, "notificationId": notification.id})


def update_booking_status(
    tenant_id: str,
    booking_id: str,
    new_status: str,
    note: Optional[str] = None,
    actor: Optional[User] = None,
    expected_version: Optional[int] = None,
) -> Booking:
    """Admin action: change a booking's status and notify its user.

    Raises NotFoundError (missing or other tenant), ConflictError (stale
    version) or IllegalTransitionError.  The notification goes through the
    outbox; its failure never fails the update.
    """
    booking = tenant_get_or_404(Booking, tenant_id, booking_id, label="Booking")
    if expected_version is not None and booking.version != expected_version:
        raise ConflictError()

    old_status = apply_transition(
        booking, new_status, actor_id=actor.uid if actor else None, note=note
    )
    message = enqueue_notification(
        "notification.booking_status_changed",
        _status_change_payload(booking, old_status, new_status, note),
    )
    message_id = message.id
    commit_booking_change(booking)
    logger.info(
        "Booking %s status %s -> %s by %s", booking.id, old_status, new_status,
        actor.uid if actor else "system",
    )

    dispatch_now([message_id])
    return booking


def create_booking(
    tenant_id: str,
    user_id: str,
    service_id: str,
    actor: Optional[User] = None,
    status: str = "pending",
    scheduled_at: Optional[datetime.datetime] = None,
    start_time: Optional[datetime.datetime] = None,
    end_time: Optional[datetime.datetime] = None,
    notes: str = "",
    internal_notes: Optional[str] = None,
    price_cents: Optional[int] = None,
) -> Booking:
    """Manual booking entry by an admin on behalf of a tenant's client."""
    get_tenant_or_404(tenant_id)
    user = tenant_get_or_404(User, tenant_id, user_id, label="User")
    service = db.session.get(Service, service_id)
    if service is None or service.tenant_id not in (None, tenant_id):
        raise NotFoundError("Service not found")
    if status not in INITIAL_STATUSES:
        raise ValidationFailed(
            [{"loc": ["status"], "msg": f"must be one of {', '.join(INITIAL_STATUSES)}"}]
        )

    if price_cents is None:
        price_cents = service.price_cents if service.price_cents is not None else service.base_price

    booking = Booking(
        id=new_id(),
        tenant_id=tenant_id,
        user_id=user.uid,
        service_id=service.id,
        status=status,
        scheduled_at=scheduled_at,
        start_time=start_time,
        end_time=end_time,
        notes=notes or "",
        internal_notes=internal_notes,
        price_cents=price_cents,
        payment_status="unpaid",
    )
    append_status_history(
        booking, status, actor_id=actor.uid if actor else None, note="Booking created"
    )
    db.session.add(booking)
    message = enqueue_notification(
        "notification.booking_created",
        {
            "tenantId": tenant_id,
            "bookingId": booking.id,
            "userId": user.uid,
            "channel": "email",
            "eventType": "booking_created",
            "serviceName": service.name,
            "clientEmail": user.email,
            "clientName": user.display_name,
            "createdAt": isoformat(utc_now()),
        },
    )
    message_id = message.id
    db.session.commit()
    logger.info("Created booking %s (%s) for user %s", booking.id, status, user.uid)

    dispatch_now([message_id])
    return booking


def list_bookings(
    tenant_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 50,
) -> list[Booking]:
    """Newest-first bookings, optionally for one tenant and/or one status."""
    query = Booking.query
    if tenant_id is not None:
        query = query.filter_by(tenant_id=tenant_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Booking.created_at.desc()).limit(limit).all()
