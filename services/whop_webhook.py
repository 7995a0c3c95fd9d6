"""Whop payment webhook reconciliation.

A successful payment approves the booking it belongs to.  The booking is
found by ``metadata.bookingId`` or, failing that, by the Whop product id and
the buyer's email.  Anything that cannot be matched is acknowledged and
logged so Whop does not keep retrying it.
"""

from __future__ import annotations

import json
import logging
from typing import NoReturn, Optional

from pydantic import ValidationError
from sqlalchemy import func

from extensions import db
from models import Booking, Service, User, WebhookDelivery
from schemas import WhopEventData, WhopWebhookPayload
from services.bookings import apply_transition, commit_booking_change
from services.events import booking_status_updated_event, build_portal_event
from services.modules import module_ids_for_category
from services.outbox import dispatch_now, enqueue_admin_event, enqueue_portal_event
from utils import utc_now

logger = logging.getLogger(__name__)

PROVIDER = "whop"
WEBHOOK_SOURCE = "whop-webhook"

PAYMENT_SUCCESS_EVENTS = {
    "checkout.completed",
    "subscription.started",
    "subscription.payment_succeeded",
    "payment.succeeded",
}

# Statuses a payment can still be matched against in the fallback lookup.
AWAITING_PAYMENT_STATUSES = ("pending", "draft")


class WebhookPayloadError(Exception):
    """Raised when the request body is not a valid Whop event."""


def is_duplicate_delivery(delivery_id: Optional[str]) -> bool:
    """True when *delivery_id* was already processed (invalid attempts don't count)."""
    if not delivery_id:
        return False
    return (
        WebhookDelivery.query.filter(
            WebhookDelivery.provider == PROVIDER,
            WebhookDelivery.delivery_id == delivery_id,
            WebhookDelivery.outcome != "invalid",
        ).first()
        is not None
    )


def _record_delivery(delivery_id, event_type, outcome, booking_id=None) -> WebhookDelivery:
    delivery = WebhookDelivery(
        provider=PROVIDER,
        delivery_id=delivery_id,
        event_type=event_type,
        outcome=outcome,
        booking_id=booking_id,
    )
    db.session.add(delivery)
    return delivery


def resolve_booking(data: WhopEventData) -> Optional[Booking]:
    """Locate the booking a payment belongs to; first match wins."""
    if data.booking_id:
        booking = db.session.get(Booking, data.booking_id)
        if booking is not None:
            logger.info("Whop payment matched booking %s via metadata", booking.id)
            return booking
        logger.warning("Whop metadata bookingId %s not found, trying product/email", data.booking_id)

    if not data.product_id or not data.user_email:
        return None

    service = Service.query.filter_by(whop_product_id=data.product_id).first()
    if service is None:
        logger.warning("No service found for Whop product_id %s", data.product_id)
        return None

    user = User.query.filter(func.lower(User.email) == data.user_email.lower()).first()
    if user is None:
        logger.warning("No user found for Whop buyer email %s", data.user_email)
        return None

    booking = (
        Booking.query.filter(
            Booking.user_id == user.uid,
            Booking.service_id == service.id,
            Booking.status.in_(AWAITING_PAYMENT_STATUSES),
        )
        .order_by(Booking.created_at.desc())
        .first()
    )
    if booking is None:
        logger.warning("No pending booking for user %s and service %s", user.uid, service.id)
    else:
        logger.info("Whop payment matched booking %s via product/email", booking.id)
    return booking


def _record_payment(booking: Booking, data: WhopEventData) -> None:
    booking.payment_status = "paid"
    booking.payment_provider = PROVIDER
    booking.payment_reference = data.id
    booking.payment_amount_cents = data.price_cents
    booking.payment_currency = data.currency or "USD"
    booking.updated_at = utc_now()


def apply_payment_success(booking: Booking, data: WhopEventData) -> tuple[str, list[str]]:
    """Record the payment and approve the booking through the transition guard.

    Returns ``(outcome, outbox_message_ids)``.  Does NOT commit.
    """
    _record_payment(booking, data)
    old_status = booking.status
    note = "Payment received via Whop"

    if old_status == "approved":
        logger.info("Booking %s already approved; payment fields refreshed", booking.id)
        return "already_approved", []
    if old_status == "draft":
        apply_transition(booking, "pending", note=note)
        apply_transition(booking, "approved", note=note)
    elif old_status == "pending":
        apply_transition(booking, "approved", note=note)
    else:
        logger.warning(
            "Payment for booking %s in status %s recorded without status change",
            booking.id, old_status,
        )
        return "payment_recorded", []

    service = db.session.get(Service, booking.service_id)
    module_ids = module_ids_for_category(service.category if service else None)
    admin_message = enqueue_admin_event(
        booking_status_updated_event(
            booking, old_status, booking.status, source=WEBHOOK_SOURCE, module_ids=module_ids
        )
    )
    portal_message = enqueue_portal_event(
        build_portal_event(
            "payment.completed",
            source="system",
            tenant_id=booking.tenant_id,
            user_id=booking.user_id,
            module_ids=module_ids,
            payload={
                "bookingId": booking.id,
                "serviceId": booking.service_id,
                "paymentProvider": PROVIDER,
                "paymentReference": data.id,
                "amountCents": data.price_cents,
                "currency": data.currency or "USD",
            },
        )
    )
    return "approved", [admin_message.id, portal_message.id]


def _reject(delivery_id: Optional[str], event_type: Optional[str], reason) -> NoReturn:
    _record_delivery(delivery_id, event_type, "invalid")
    db.session.commit()
    logger.warning("Rejected malformed Whop payload (delivery %s): %s", delivery_id, reason)
    raise WebhookPayloadError(str(reason))


def _event_type(envelope) -> Optional[str]:
    """The ``event`` field if the body carries a usable one."""
    if not isinstance(envelope, dict):
        return None
    event = envelope.get("event")
    return event if isinstance(event, str) else None


def handle_whop_delivery(raw_body: bytes, delivery_id: Optional[str] = None) -> dict:
    """Process one authenticated Whop delivery and return the response body.

    Only the event type is read before filtering, so any event outside
    :data:`PAYMENT_SUCCESS_EVENTS` is acknowledged whatever its ``data``
    holds.  Raises :class:`WebhookPayloadError` when the body is not JSON or
    a payment event does not match :class:`WhopWebhookPayload` (after
    logging it as an ``invalid`` delivery).
    """
    if is_duplicate_delivery(delivery_id):
        logger.info("Whop delivery %s already processed; acknowledging replay", delivery_id)
        return {"ok": True, "duplicate": True}

    try:
        envelope = json.loads(raw_body)
    except ValueError as e:
        _reject(delivery_id, None, e)

    event_type = _event_type(envelope)
    if event_type not in PAYMENT_SUCCESS_EVENTS:
        logger.info("Ignoring Whop event type %s", event_type)
        _record_delivery(delivery_id, event_type[:80] if event_type else None, "ignored")
        db.session.commit()
        return {"ok": True}

    try:
        payload = WhopWebhookPayload.model_validate(envelope)
    except ValidationError as e:
        _reject(delivery_id, event_type, e)

    data = payload.data
    logger.info(
        "Whop event %s received: product=%s email=%s metadata=%s",
        payload.event, data.product_id, data.user_email, data.metadata,
    )

    booking = resolve_booking(data)
    if booking is None:
        logger.warning("Could not locate booking for Whop %s event", payload.event)
        _record_delivery(delivery_id, payload.event, "unmatched")
        db.session.commit()
        return {"ok": True}

    outcome, message_ids = apply_payment_success(booking, data)
    _record_delivery(delivery_id, payload.event, outcome, booking_id=booking.id)
    commit_booking_change(booking)
    logger.info("Whop %s applied to booking %s: %s (status=%s)", payload.event, booking.id, outcome, booking.status)

    dispatch_now(message_ids)
    return {"ok": True}
