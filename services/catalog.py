"""Service catalog queries and edits."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_

from extensions import db
from errors import NotFoundError
from models import Service, User
from schemas import ServiceUpdateRequest
from services.events import tenant_config_updated_event
from services.modules import module_ids_for_category
from services.outbox import dispatch_now, enqueue_admin_event
from utils import utc_now

logger = logging.getLogger(__name__)


def list_services(tenant_id: Optional[str] = None, active: Optional[bool] = None) -> list[Service]:
    """Catalog entries by name.  A tenant filter also includes global services."""
    query = Service.query
    if tenant_id:
        query = query.filter(or_(Service.tenant_id == tenant_id, Service.tenant_id.is_(None)))
    if active is not None:
        query = query.filter(Service.active == active)
    return query.order_by(Service.name).all()


def update_service(service_id: str, changes: ServiceUpdateRequest, actor: User) -> Service:
    """Apply a partial edit and announce it as ``tenant.config_updated``.

    Fields whose value does not change are not reported.  No event is
    written when nothing changed.
    """
    service = db.session.get(Service, service_id)
    if service is None:
        raise NotFoundError("Service not found")

    changed = []
    for field, value in changes.model_dump(exclude_unset=True).items():
        if getattr(service, field) != value:
            setattr(service, field, value)
            changed.append(field)

    if not changed:
        return service

    service.updated_at = utc_now()
    message = enqueue_admin_event(
        tenant_config_updated_event(
            tenant_id=service.tenant_id,
            admin_id=actor.uid,
            changed_fields=changed,
            service_id=service.id,
            whop_linked=bool(service.whop_product_id),
            billing_provider=service.billing_provider,
            module_ids=module_ids_for_category(service.category),
        )
    )
    message_id = message.id
    db.session.commit()
    logger.info("Service %s updated by %s: %s", service.id, actor.uid, ", ".join(sorted(changed)))

    dispatch_now([message_id])
    return service
