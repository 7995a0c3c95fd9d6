"""Tenant-scoped admin API: tenants and their bookings."""

from flask import Blueprint, jsonify, request

from models import Booking, Tenant
from schemas import BookingCreateRequest, StatusUpdateRequest, parse_body, status_filter
from services.auth import admin_required, get_current_user
from services.bookings import create_booking, list_bookings, update_booking_status
from services.serializers import (
    booking_detail,
    booking_summary,
    status_update_result,
    tenant_to_dict,
)
from services.tenant import get_tenant_or_404, scope_to_tenant, tenant_get_or_404
from utils import parse_limit

tenants_bp = Blueprint("tenants", __name__, url_prefix="/api/admin/tenants")


@tenants_bp.route("", methods=["GET"])
@admin_required
def list_tenants():
    tenants = Tenant.query.order_by(Tenant.created_at.desc()).all()
    return jsonify([tenant_to_dict(t) for t in tenants])


@tenants_bp.route("/<tenant_id>", methods=["GET"])
@admin_required
def tenant_detail(tenant_id):
    return jsonify(tenant_to_dict(get_tenant_or_404(tenant_id)))


@tenants_bp.route("/<tenant_id>/bookings", methods=["GET"])
@admin_required
def tenant_bookings(tenant_id):
    get_tenant_or_404(tenant_id)
    bookings = list_bookings(
        tenant_id=tenant_id,
        status=status_filter(request.args.get("status")),
        limit=parse_limit(request.args.get("limit")),
    )
    return jsonify([booking_summary(b) for b in bookings])


@tenants_bp.route("/<tenant_id>/bookings", methods=["POST"])
@admin_required
def create_tenant_booking(tenant_id):
    body = parse_body(BookingCreateRequest, request.get_json(silent=True))
    scope_to_tenant(tenant_id)
    booking = create_booking(
        tenant_id,
        body.user_id,
        body.service_id,
        actor=get_current_user(),
        status=body.status,
        scheduled_at=body.scheduled_at,
        start_time=body.start_time,
        end_time=body.end_time,
        notes=body.notes,
        internal_notes=body.internal_notes,
        price_cents=body.price_cents,
    )
    return jsonify(booking_detail(booking)), 201


@tenants_bp.route("/<tenant_id>/bookings/<booking_id>", methods=["GET"])
@admin_required
def tenant_booking_detail(tenant_id, booking_id):
    booking = tenant_get_or_404(Booking, tenant_id, booking_id, label="Booking")
    return jsonify(booking_detail(booking))


@tenants_bp.route("/<tenant_id>/bookings/<booking_id>/status", methods=["PATCH"])
@admin_required
def update_status(tenant_id, booking_id):
    body = parse_body(StatusUpdateRequest, request.get_json(silent=True))
    scope_to_tenant(tenant_id)
    booking = update_booking_status(
        tenant_id,
        booking_id,
        body.status,
        note=body.note,
        actor=get_current_user(),
        expected_version=body.expected_version,
    )
    return jsonify(status_update_result(booking))
