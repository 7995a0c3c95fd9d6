"""SQLAlchemy models and lifecycle constants."""

from __future__ import annotations

from extensions import db
from utils import new_id, utc_now

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

VALID_ROLES = {"admin", "client", "internal"}
VALID_TENANT_STATUSES = {"active", "suspended"}
VALID_TENANT_PLANS = {"free", "standard", "pro"}
VALID_SERVICE_CATEGORIES = {"artist", "consulting", "podcast", "other"}
VALID_SCHEDULING_PROVIDERS = {"calcom", "calendly", "other", "none"}
VALID_BILLING_PROVIDERS = {"whop", "stripe", "manual", "none"}
VALID_PAYMENT_STATUSES = {"unpaid", "pending", "paid", "refunded"}
VALID_DELIVERY_STATUSES = {"pending", "sent", "failed"}
VALID_OUTBOX_STATUSES = {"pending", "sent", "failed"}

# Lifecycle order, used for display and validation.  The legal edges live
# in services.booking_status.
BOOKING_STATUSES = (
    "draft",
    "pending",
    "approved",
    "in_progress",
    "completed",
    "cancelled",
    "declined",
)


# ---------------------------------------------------------------------------
# Tenant
# ---------------------------------------------------------------------------

class Tenant(db.Model):
    """A tenant represents an isolated organization with its own users and bookings."""
    id = db.Column(db.String(64), primary_key=True, default=new_id)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(60), unique=True, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="active")
    plan = db.Column(db.String(20), nullable=False, default="free")
    owner_user_id = db.Column(db.String(64))
    primary_color = db.Column(db.String(20))
    logo_url = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

class User(db.Model):
    uid = db.Column(db.String(64), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(db.String(20), nullable=False, default="client")
    tenant_id = db.Column(db.String(64), db.ForeignKey("tenant.id"), index=True)
    display_name = db.Column(db.String(120), nullable=False, default="")
    email_verified = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    tenant = db.relationship("Tenant")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# ---------------------------------------------------------------------------
# Service catalog
# ---------------------------------------------------------------------------

class Service(db.Model):
    id = db.Column(db.String(64), primary_key=True, default=new_id)
    # NULL tenant_id = global catalog entry
    tenant_id = db.Column(db.String(64), db.ForeignKey("tenant.id"), index=True)
    name = db.Column(db.String(120), nullable=False)
    category = db.Column(db.String(30), nullable=False, default="other")
    description = db.Column(db.Text, default="")
    base_price = db.Column(db.Integer, nullable=False, default=0)  # cents
    active = db.Column(db.Boolean, default=True)
    duration = db.Column(db.Integer)  # minutes
    requires_approval = db.Column(db.Boolean, default=False)
    scheduling_provider = db.Column(db.String(20), default="none")
    scheduling_url = db.Column(db.String(255))
    billing_provider = db.Column(db.String(20), default="none")
    price_cents = db.Column(db.Integer)
    currency = db.Column(db.String(10))
    whop_product_id = db.Column(db.String(120), index=True)
    whop_url = db.Column(db.String(255))
    whop_sync_enabled = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    tenant = db.relationship("Tenant")


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

class Booking(db.Model):
    id = db.Column(db.String(64), primary_key=True, default=new_id)
    tenant_id = db.Column(db.String(64), db.ForeignKey("tenant.id"), nullable=False, index=True)
    user_id = db.Column(db.String(64), db.ForeignKey("user.uid"), nullable=False, index=True)
    service_id = db.Column(db.String(64), db.ForeignKey("service.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    scheduled_at = db.Column(db.DateTime)
    start_time = db.Column(db.DateTime)
    end_time = db.Column(db.DateTime)
    notes = db.Column(db.Text, default="")
    internal_notes = db.Column(db.Text)
    price_cents = db.Column(db.Integer)
    payment_status = db.Column(db.String(20), default="unpaid")
    payment_provider = db.Column(db.String(20))
    payment_reference = db.Column(db.String(120))
    payment_amount_cents = db.Column(db.Integer)
    payment_currency = db.Column(db.String(10))
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    user = db.relationship("User")
    service = db.relationship("Service")
    status_history = db.relationship(
        "BookingStatusEvent",
        backref="booking",
        cascade="all, delete-orphan",
        order_by="BookingStatusEvent.seq",
    )

    # UPDATE ... WHERE version = :expected; a concurrent writer gets StaleDataError.
    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.Index("ix_booking_tenant_status", "tenant_id", "status"),
        db.Index("ix_booking_user_service", "user_id", "service_id", "created_at"),
    )


class BookingStatusEvent(db.Model):
    """One entry in a booking's append-only status history."""
    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.String(64), db.ForeignKey("booking.id"), nullable=False)
    seq = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False)
    changed_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    changed_by_user_id = db.Column(db.String(64))
    note = db.Column(db.Text)

    __table_args__ = (
        db.UniqueConstraint("booking_id", "seq", name="uq_booking_status_event_seq"),
    )


# ---------------------------------------------------------------------------
# Automation events (write-once)
# ---------------------------------------------------------------------------

class AdminEvent(db.Model):
    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(80), nullable=False)
    source = db.Column(db.String(40), nullable=False, default="admin-portal")
    tenant_id = db.Column(db.String(64), index=True)
    admin_id = db.Column(db.String(64))
    module_ids = db.Column(db.JSON)
    occurred_at = db.Column(db.DateTime, nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=utc_now)


class PortalEvent(db.Model):
    """Admin/system events mirrored into the client-facing event stream."""
    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(80), nullable=False)
    source = db.Column(db.String(40), nullable=False, default="system")
    tenant_id = db.Column(db.String(64), index=True)
    user_id = db.Column(db.String(64))
    module_ids = db.Column(db.JSON)
    occurred_at = db.Column(db.DateTime, nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=utc_now)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class Notification(db.Model):
    id = db.Column(db.String(64), primary_key=True, default=new_id)
    tenant_id = db.Column(db.String(64), index=True)
    booking_id = db.Column(db.String(64), index=True)
    user_id = db.Column(db.String(64))
    channel = db.Column(db.String(20), nullable=False, default="email")
    event_type = db.Column(db.String(40), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    delivery_status = db.Column(db.String(20), nullable=False, default="pending")
    error = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)


# ---------------------------------------------------------------------------
# Outbox & inbound webhook log
# ---------------------------------------------------------------------------

class OutboxMessage(db.Model):
    """A side effect recorded with the state change that caused it."""
    id = db.Column(db.String(64), primary_key=True, default=new_id)
    kind = db.Column(db.String(60), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(db.String(20), nullable=False, default="pending")
    attempts = db.Column(db.Integer, nullable=False, default=0)
    max_attempts = db.Column(db.Integer, nullable=False, default=5)
    next_attempt_at = db.Column(db.DateTime, default=utc_now)
    last_error = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)
    sent_at = db.Column(db.DateTime)

    __table_args__ = (
        db.Index("ix_outbox_due", "status", "next_attempt_at"),
    )


class WebhookDelivery(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(30), nullable=False)
    delivery_id = db.Column(db.String(120))
    event_type = db.Column(db.String(80))
    outcome = db.Column(db.String(30), nullable=False)
    booking_id = db.Column(db.String(64))
    received_at = db.Column(db.DateTime, default=utc_now)

    __table_args__ = (
        db.Index("ix_webhook_delivery_lookup", "provider", "delivery_id"),
    )
