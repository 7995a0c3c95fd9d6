"""JSON shapes returned by the admin API."""

from __future__ import annotations

from models import Booking, BookingStatusEvent, Service, Tenant
from utils import isoformat


def tenant_to_dict(tenant: Tenant) -> dict:
    return {
        "id": tenant.id,
        "name": tenant.name,
        "slug": tenant.slug,
        "status": tenant.status,
        "plan": tenant.plan,
        "ownerUserId": tenant.owner_user_id,
        "primaryColor": tenant.primary_color,
        "logoUrl": tenant.logo_url,
        "createdAt": isoformat(tenant.created_at),
        "updatedAt": isoformat(tenant.updated_at),
    }


def history_entry_to_dict(entry: BookingStatusEvent) -> dict:
    return {
        "status": entry.status,
        "changedAt": isoformat(entry.changed_at),
        "changedByUserId": entry.changed_by_user_id,
        "note": entry.note,
    }


def booking_summary(booking: Booking) -> dict:
    """Compact row for booking lists."""
    return {
        "id": booking.id,
        "tenantId": booking.tenant_id,
        "userId": booking.user_id,
        "serviceId": booking.service_id,
        "serviceName": booking.service.name if booking.service else None,
        "clientName": booking.user.display_name if booking.user else None,
        "status": booking.status,
        "scheduledAt": isoformat(booking.scheduled_at),
        "priceCents": booking.price_cents,
        "paymentStatus": booking.payment_status,
        "version": booking.version,
        "createdAt": isoformat(booking.created_at),
    }


def booking_detail(booking: Booking) -> dict:
    data = booking_summary(booking)
    data.update(
        {
            "clientEmail": booking.user.email if booking.user else None,
            "startTime": isoformat(booking.start_time),
            "endTime": isoformat(booking.end_time),
            "notes": booking.notes,
            "internalNotes": booking.internal_notes,
            "paymentProvider": booking.payment_provider,
            "paymentReference": booking.payment_reference,
            "paymentAmountCents": booking.payment_amount_cents,
            "paymentCurrency": booking.payment_currency,
            "updatedAt": isoformat(booking.updated_at),
            "statusHistory": [history_entry_to_dict(e) for e in booking.status_history],
        }
    )
    return data


def status_update_result(booking: Booking) -> dict:
    return {
        "id": booking.id,
        "status": booking.status,
        "version": booking.version,
        "statusHistory": [history_entry_to_dict(e) for e in booking.status_history],
    }


def service_to_dict(service: Service) -> dict:
    return {
        "id": service.id,
        "tenantId": service.tenant_id,
        "name": service.name,
        "category": service.category,
        "description": service.description,
        "basePrice": service.base_price,
        "active": service.active,
        "duration": service.duration,
        "requiresApproval": service.requires_approval,
        "schedulingProvider": service.scheduling_provider,
        "schedulingUrl": service.scheduling_url,
        "billingProvider": service.billing_provider,
        "priceCents": service.price_cents,
        "currency": service.currency,
        "whop": {
            "productId": service.whop_product_id,
            "url": service.whop_url,
            "syncEnabled": service.whop_sync_enabled,
        },
        "updatedAt": isoformat(service.updated_at),
    }
