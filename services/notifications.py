"""Booking notification records and email delivery."""

from __future__ import annotations

import logging
from typing import Optional

from extensions import db
from mailer import Mailer, MailerError
from models import Booking, Notification, Service, User
from utils import new_id

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT_TYPES = {"booking_created", "booking_status_changed"}


def log_notification(
    tenant_id: str,
    booking_id: str,
    user_id: str,
    event_type: str,
    payload: dict,
    channel: str = "email",
) -> Notification:
    """Add a notification record with ``delivery_status='pending'``.  Does NOT commit."""
    if event_type not in NOTIFICATION_EVENT_TYPES:
        raise ValueError(f"Unknown notification event type: {event_type!r}")
    notification = Notification(
        id=new_id(),
        tenant_id=tenant_id,
        booking_id=booking_id,
        user_id=user_id,
        channel=channel,
        event_type=event_type,
        payload=dict(payload),
        delivery_status="pending",
    )
    db.session.add(notification)
    logger.info("Logged notification %s (%s) for booking %s", notification.id, event_type, booking_id)
    return notification


def _mark(notification: Notification, status: str, error: Optional[str] = None) -> None:
    notification.delivery_status = status
    notification.error = error
    db.session.commit()


def compose_email(payload: dict) -> tuple[str, str]:
    """Return (subject, body) for a booking notification payload."""
    booking = db.session.get(Booking, payload["bookingId"])
    service = db.session.get(Service, booking.service_id) if booking else None
    service_name = service.name if service else "your booking"

    if payload["eventType"] == "booking_created":
        subject = f"Booking request received: {service_name}"
        body = (
            f"Hi {payload.get('clientName') or 'there'},\n\n"
            f"We received your booking request for {service_name}. "
            "We'll let you know as soon as it has been reviewed.\n"
        )
        return subject, body

    new_status = payload.get("newStatus", "")
    label = new_status.replace("_", " ")
    subject = f"Your booking for {service_name} is now {label}"
    body = f"Hi,\n\nThe status of your booking for {service_name} changed to: {label}.\n"
    if payload.get("note"):
        body += f"\nNote from our team: {payload['note']}\n"
    return subject, body


def deliver_booking_notification(payload: dict, mailer: Mailer) -> Optional[Notification]:
    """Try to email the booking's user for the notification in *payload*.

    The record named by ``notificationId`` is updated in place, so retries
    never add rows and an already ``sent`` notification is not sent again.
    Raises :class:`MailerError` when the SMTP send fails so the caller can
    retry; the notification is marked ``failed`` first.
    """
    notification_id = payload.get("notificationId")
    notification = db.session.get(Notification, notification_id) if notification_id else None
    if notification is None:
        logger.warning("Notification %s for booking %s not found; nothing to send",
                       notification_id, payload.get("bookingId"))
        return None
    if notification.delivery_status == "sent":
        logger.info("Notification %s already sent", notification.id)
        return notification

    if not mailer.enabled:
        logger.info("Email disabled; notification %s left pending", notification.id)
        return notification
    if not mailer.internal_email:
        logger.warning("NOTIFICATIONS_INTERNAL_EMAIL not set - email not sent for %s", notification.id)
        return notification

    user = db.session.get(User, payload["userId"])
    if user is None or not user.email:
        logger.warning("Notification %s: user %s has no email address", notification.id, payload["userId"])
        _mark(notification, "failed", "User has no email address")
        return notification

    subject, body = compose_email(payload)
    try:
        mailer.send(user.email, subject, body)
    except MailerError as e:
        _mark(notification, "failed", str(e))
        raise
    _mark(notification, "sent")
    return notification
