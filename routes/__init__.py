"""Blueprint registration."""

from routes.admin import admin_bp
from routes.dashboard import dashboard_bp
from routes.tenants import tenants_bp
from routes.webhooks import webhooks_bp

ALL_BLUEPRINTS = [
    dashboard_bp,
    tenants_bp,
    admin_bp,
    webhooks_bp,
]


def register_blueprints(app):
    """Register all application blueprints on *app*."""
    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)
