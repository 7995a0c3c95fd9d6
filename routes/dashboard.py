"""Dashboard counters and health check."""

from flask import Blueprint, current_app, jsonify

from services.auth import admin_required
from services.reporting import dashboard_stats
from utils import isoformat, utc_now

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api")


@dashboard_bp.route("/admin/dashboard", methods=["GET"])
@admin_required
def dashboard():
    return jsonify(dashboard_stats())


@dashboard_bp.route("/health", methods=["GET"])
def health():
    return jsonify(
        {
            "status": "ok",
            "timestamp": isoformat(utc_now()),
            "env": current_app.config["APP_CONFIG"].environment,
        }
    )
