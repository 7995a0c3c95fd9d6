"""Normalized automation events.

Admin events land in ``admin_event``; events that affect client-visible
state are mirrored into ``portal_event`` so the automation hub can consume
them next to client-initiated ones.  Either record may also be POSTed to
the configured automation endpoint.  The two sinks are independent and
unordered; consumers deduplicate by event id.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from automation_client import AutomationClient, AutomationError
from extensions import db
from models import AdminEvent, PortalEvent
from utils import isoformat, new_id, utc_now

logger = logging.getLogger(__name__)

ADMIN_EVENT_NAMES = {
    "booking.status_updated",
    "tenant.config_updated",
    "reporting.snapshot_generated",
}
PORTAL_EVENT_NAMES = {"payment.completed", "booking.approved", "booking.completed"}
PORTAL_EVENT_SOURCES = {"system", "admin-portal"}


def _parse_timestamp(value: str) -> datetime.datetime:
    return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))


def _module_tuple(module_ids: Optional[Iterable[str]]) -> Optional[tuple[str, ...]]:
    return tuple(module_ids) if module_ids else None


@dataclass(frozen=True)
class AdminEventRecord:
    id: str
    name: str
    occurred_at: str
    payload: dict = field(default_factory=dict)
    source: str = "admin-portal"
    tenant_id: Optional[str] = None
    admin_id: Optional[str] = None
    module_ids: Optional[tuple[str, ...]] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "source": self.source,
            "tenantId": self.tenant_id,
            "adminId": self.admin_id,
            "moduleIds": list(self.module_ids) if self.module_ids else None,
            "occurredAt": self.occurred_at,
            "payload": dict(self.payload),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AdminEventRecord":
        return cls(
            id=data["id"],
            name=data["name"],
            source=data.get("source", "admin-portal"),
            tenant_id=data.get("tenantId"),
            admin_id=data.get("adminId"),
            module_ids=_module_tuple(data.get("moduleIds")),
            occurred_at=data["occurredAt"],
            payload=dict(data.get("payload") or {}),
        )

    def to_model(self) -> AdminEvent:
        return AdminEvent(
            id=self.id,
            name=self.name,
            source=self.source,
            tenant_id=self.tenant_id,
            admin_id=self.admin_id,
            module_ids=list(self.module_ids) if self.module_ids else None,
            occurred_at=_parse_timestamp(self.occurred_at),
            payload=dict(self.payload),
        )


@dataclass(frozen=True)
class PortalEventRecord:
    id: str
    name: str
    occurred_at: str
    payload: dict = field(default_factory=dict)
    source: str = "system"
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None
    module_ids: Optional[tuple[str, ...]] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "source": self.source,
            "tenantId": self.tenant_id,
            "userId": self.user_id,
            "moduleIds": list(self.module_ids) if self.module_ids else None,
            "occurredAt": self.occurred_at,
            "payload": dict(self.payload),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PortalEventRecord":
        return cls(
            id=data["id"],
            name=data["name"],
            source=data.get("source", "system"),
            tenant_id=data.get("tenantId"),
            user_id=data.get("userId"),
            module_ids=_module_tuple(data.get("moduleIds")),
            occurred_at=data["occurredAt"],
            payload=dict(data.get("payload") or {}),
        )

    def to_model(self) -> PortalEvent:
        return PortalEvent(
            id=self.id,
            name=self.name,
            source=self.source,
            tenant_id=self.tenant_id,
            user_id=self.user_id,
            module_ids=list(self.module_ids) if self.module_ids else None,
            occurred_at=_parse_timestamp(self.occurred_at),
            payload=dict(self.payload),
        )


def build_event(
    name: str,
    tenant_id: Optional[str] = None,
    admin_id: Optional[str] = None,
    module_ids: Optional[Iterable[str]] = None,
    payload: Optional[dict] = None,
) -> AdminEventRecord:
    """Build a normalized admin event with a fresh id and occurrence timestamp."""
    if name not in ADMIN_EVENT_NAMES:
        raise ValueError(f"Unknown admin event name: {name!r}")
    return AdminEventRecord(
        id=new_id(),
        name=name,
        tenant_id=tenant_id,
        admin_id=admin_id,
        module_ids=_module_tuple(module_ids),
        occurred_at=isoformat(utc_now()),
        payload=dict(payload or {}),
    )


def build_portal_event(
    name: str,
    source: str = "system",
    tenant_id: Optional[str] = None,
    user_id: Optional[str] = None,
    module_ids: Optional[Iterable[str]] = None,
    payload: Optional[dict] = None,
) -> PortalEventRecord:
    if name not in PORTAL_EVENT_NAMES:
        raise ValueError(f"Unknown portal event name: {name!r}")
    if source not in PORTAL_EVENT_SOURCES:
        raise ValueError(f"Unknown portal event source: {source!r}")
    return PortalEventRecord(
        id=new_id(),
        name=name,
        source=source,
        tenant_id=tenant_id,
        user_id=user_id,
        module_ids=_module_tuple(module_ids),
        occurred_at=isoformat(utc_now()),
        payload=dict(payload or {}),
    )


def booking_status_updated_event(
    booking,
    old_status: str,
    new_status: str,
    admin_id: Optional[str] = None,
    source: Optional[str] = None,
    module_ids: Optional[Iterable[str]] = None,
) -> AdminEventRecord:
    payload = {
        "bookingId": booking.id,
        "serviceId": booking.service_id,
        "oldStatus": old_status,
        "newStatus": new_status,
    }
    if source:
        payload["source"] = source
    return build_event(
        "booking.status_updated",
        tenant_id=booking.tenant_id,
        admin_id=admin_id,
        module_ids=module_ids,
        payload=payload,
    )


def tenant_config_updated_event(
    tenant_id: Optional[str],
    admin_id: str,
    changed_fields: Iterable[str],
    service_id: Optional[str] = None,
    whop_linked: Optional[bool] = None,
    billing_provider: Optional[str] = None,
    module_ids: Optional[Iterable[str]] = None,
) -> AdminEventRecord:
    return build_event(
        "tenant.config_updated",
        tenant_id=tenant_id,
        admin_id=admin_id,
        module_ids=module_ids,
        payload={
            "serviceId": service_id,
            "changedFields": sorted(changed_fields),
            "whopLinked": whop_linked,
            "billingProvider": billing_provider,
        },
    )


def reporting_snapshot_event(
    tenant_id: Optional[str],
    period: str,
    metrics: dict,
    module_ids: Optional[Iterable[str]] = None,
) -> AdminEventRecord:
    return build_event(
        "reporting.snapshot_generated",
        tenant_id=tenant_id,
        module_ids=module_ids,
        payload={
            "period": period,
            "generatedAt": isoformat(utc_now()),
            "metrics": dict(metrics),
        },
    )


@dataclass
class EmitResult:
    stored: bool
    # None when no automation endpoint is configured.
    delivered: Optional[bool]

    @property
    def complete(self) -> bool:
        return self.stored and self.delivered is not False


class EventEmitter:
    """Writes events to their store and forwards them to the automation hub.

    ``emit`` commits the session and never raises.
    """

    def __init__(self, automation: AutomationClient):
        self.automation = automation

    def emit(self, event: AdminEventRecord) -> EmitResult:
        stored = self._store(AdminEvent, event)
        delivered = self._deliver(event.to_dict())
        if stored:
            logger.info("Emitted admin event %s (%s) tenant=%s", event.name, event.id, event.tenant_id)
        return EmitResult(stored=stored, delivered=delivered)

    def emit_portal(self, event: PortalEventRecord) -> EmitResult:
        stored = self._store(PortalEvent, event)
        delivered = self._deliver(event.to_dict())
        if stored:
            logger.info(
                "Emitted portal event %s (%s) tenant=%s user=%s",
                event.name, event.id, event.tenant_id, event.user_id,
            )
        return EmitResult(stored=stored, delivered=delivered)

    def _store(self, model, event) -> bool:
        try:
            # Redelivery of an already-stored event is a no-op.
            if db.session.get(model, event.id) is None:
                db.session.add(event.to_model())
            db.session.commit()
            return True
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to store %s event %s: %s", event.name, event.id, e)
            return False

    def _deliver(self, payload: dict) -> Optional[bool]:
        if not self.automation.enabled:
            return None
        try:
            return self.automation.post_event(payload)
        except AutomationError as e:
            logger.warning("Automation delivery failed for event %s: %s", payload.get("id"), e)
            return False
