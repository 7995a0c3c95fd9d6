"""Outbound client container, built once by the app factory."""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from automation_client import AutomationClient
from config_models import OutboxConfig
from mailer import Mailer
from services.auth import IdentityProvider
from services.events import EventEmitter

EXTENSION_KEY = "portal"


@dataclass
class PortalClients:
    mailer: Mailer
    automation: AutomationClient
    identity: IdentityProvider
    emitter: EventEmitter
    outbox: OutboxConfig


def init_portal_clients(app, app_cfg, email_cfg, automation_cfg, outbox_cfg) -> PortalClients:
    """Construct every outbound client and attach them to *app*."""
    automation = AutomationClient(automation_cfg)
    clients = PortalClients(
        mailer=Mailer(email_cfg),
        automation=automation,
        identity=IdentityProvider(app_cfg.secret_key, max_age=app_cfg.token_max_age),
        emitter=EventEmitter(automation),
        outbox=outbox_cfg,
    )
    app.extensions[EXTENSION_KEY] = clients
    return clients


def get_portal_clients() -> PortalClients:
    """Return the clients owned by the running application."""
    return current_app.extensions[EXTENSION_KEY]
