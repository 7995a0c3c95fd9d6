"""Tenant context and data isolation services."""

from __future__ import annotations

from typing import Optional

from flask import g
from sqlalchemy import event

from extensions import db
from errors import NotFoundError
from models import Tenant


def scope_to_tenant(tenant_id: str) -> None:
    """Mark the current request as operating on *tenant_id*.

    Writes flushed afterwards must belong to that tenant.
    """
    g._tenant_id = tenant_id


def get_scoped_tenant_id() -> Optional[str]:
    return getattr(g, "_tenant_id", None)


def get_tenant_or_404(tenant_id: str) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    return tenant


def tenant_get_or_404(model, tenant_id: str, obj_id: str, label: str = "Record"):
    """Fetch a single object by PK, verifying it belongs to *tenant_id*.

    A record owned by another tenant is reported exactly like a missing one.
    """
    obj = db.session.get(model, obj_id)
    if obj is None or getattr(obj, "tenant_id", None) != tenant_id:
        raise NotFoundError(f"{label} not found")
    return obj


class TenantSecurityError(Exception):
    """Raised when a cross-tenant write is attempted."""


def _enforce_tenant_on_flush(session, flush_context):
    """Verify that all new/dirty tenant-scoped objects match the scoped tenant.

    The primary isolation is ``tenant_get_or_404()``; this listener catches
    writes that bypass it.
    """
    try:
        tid = getattr(g, "_tenant_id", None)
    except RuntimeError:
        # Outside request context (CLI, outbox worker, tests without app ctx)
        return

    if tid is None:
        return

    for obj in list(session.new) + list(session.dirty):
        obj_tid = getattr(obj, "tenant_id", None)
        if obj_tid is not None and obj_tid != tid:
            raise TenantSecurityError(
                f"Cross-tenant write blocked: {type(obj).__name__} "
                f"has tenant_id={obj_tid}, active tenant is {tid}"
            )


def register_tenant_guards(app):
    """Register the after_flush event listener.  Call once during app init."""
    event.listen(db.session, "after_flush", _enforce_tenant_on_flush)
