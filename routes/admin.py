"""Cross-tenant admin API: bookings overview and the service catalog."""

from flask import Blueprint, jsonify, request

from schemas import ServiceUpdateRequest, parse_body, status_filter
from services.auth import admin_required, get_current_user
from services.bookings import list_bookings
from services.catalog import list_services, update_service
from services.serializers import booking_summary, service_to_dict
from utils import parse_bool, parse_limit

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.route("/bookings", methods=["GET"])
@admin_required
def all_bookings():
    bookings = list_bookings(
        status=status_filter(request.args.get("status")),
        limit=parse_limit(request.args.get("limit")),
    )
    return jsonify([booking_summary(b) for b in bookings])


@admin_bp.route("/services", methods=["GET"])
@admin_required
def services():
    items = list_services(
        tenant_id=request.args.get("tenantId") or None,
        active=parse_bool(request.args.get("active")),
    )
    return jsonify([service_to_dict(s) for s in items])


@admin_bp.route("/services/<service_id>", methods=["PATCH"])
@admin_required
def edit_service(service_id):
    changes = parse_body(ServiceUpdateRequest, request.get_json(silent=True))
    service = update_service(service_id, changes, get_current_user())
    return jsonify(service_to_dict(service))
