"""Dashboard counters and reporting snapshots."""

from __future__ import annotations

import datetime
import logging
from typing import Optional

from extensions import db
from models import Booking, Tenant, User
from services.events import reporting_snapshot_event
from services.outbox import dispatch_now, enqueue_admin_event
from utils import utc_now

logger = logging.getLogger(__name__)


def dashboard_stats(now: Optional[datetime.datetime] = None) -> dict:
    """Headline counters for the admin dashboard."""
    now = now or utc_now()
    week_ago = now - datetime.timedelta(days=7)
    return {
        "activeTenants": Tenant.query.filter_by(status="active").count(),
        "upcomingSessionsCount": Booking.query.filter(
            Booking.status == "approved",
            Booking.scheduled_at.isnot(None),
            Booking.scheduled_at > now,
        ).count(),
        "pendingApprovalsCount": Booking.query.filter_by(status="pending").count(),
        "newClientsThisWeek": User.query.filter(
            User.role == "client",
            User.created_at >= week_ago,
        ).count(),
    }


def tenant_booking_counts(tenant_id: str) -> dict:
    """Bookings per status for one tenant."""
    rows = (
        db.session.query(Booking.status, db.func.count(Booking.id))
        .filter(Booking.tenant_id == tenant_id)
        .group_by(Booking.status)
        .all()
    )
    return {status: count for status, count in rows}


def generate_snapshots(period: str) -> int:
    """Emit one ``reporting.snapshot_generated`` event per active tenant.

    Returns the number of snapshots queued.
    """
    message_ids = []
    for tenant in Tenant.query.filter_by(status="active").order_by(Tenant.name).all():
        message = enqueue_admin_event(
            reporting_snapshot_event(tenant.id, period, tenant_booking_counts(tenant.id))
        )
        message_ids.append(message.id)
    db.session.commit()
    logger.info("Queued %s reporting snapshots for period %s", len(message_ids), period)

    dispatch_now(message_ids)
    return len(message_ids)
