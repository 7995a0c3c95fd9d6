"""Pydantic models for request bodies and inbound webhook payloads."""

from __future__ import annotations

import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from errors import ValidationFailed
from models import BOOKING_STATUSES, VALID_BILLING_PROVIDERS


def validation_failed(exc: ValidationError) -> ValidationFailed:
    """Convert a pydantic error into the API's 422 error."""
    details = [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
        for err in exc.errors()
    ]
    return ValidationFailed(details)


def parse_body(model: type[BaseModel], data: Any) -> BaseModel:
    """Validate a decoded JSON body, raising :class:`ValidationFailed`."""
    if not isinstance(data, dict):
        raise ValidationFailed([{"loc": [], "msg": "JSON object body required"}])
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise validation_failed(e)


# ---------------------------------------------------------------------------
# Whop webhook
# ---------------------------------------------------------------------------

class WhopUser(BaseModel):
    """Buyer as reported by Whop."""

    email: Optional[str] = None
    id: Optional[str] = None


class WhopEventData(BaseModel):
    """The subset of ``data`` used for reconciliation; other keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    product_id: Optional[str] = None
    user: Optional[WhopUser] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    price_cents: Optional[int] = None
    currency: Optional[str] = None
    status: Optional[str] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def default_metadata(cls, v):
        return {} if v is None else v

    @property
    def booking_id(self) -> Optional[str]:
        value = self.metadata.get("bookingId")
        return value if isinstance(value, str) and value else None

    @property
    def user_email(self) -> Optional[str]:
        return self.user.email if self.user and self.user.email else None


class WhopWebhookPayload(BaseModel):
    event: str
    data: WhopEventData = Field(default_factory=WhopEventData)

    @field_validator("data", mode="before")
    @classmethod
    def default_data(cls, v):
        return {} if v is None else v


# ---------------------------------------------------------------------------
# Admin API
# ---------------------------------------------------------------------------

class StatusUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    status: str
    note: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, alias="expectedVersion")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("status is required")
        return v


class BookingCreateRequest(BaseModel):
    """Manual booking entry."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    user_id: str
    service_id: str
    status: str = "pending"
    scheduled_at: Optional[datetime.datetime] = None
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None
    notes: str = ""
    internal_notes: Optional[str] = None
    price_cents: Optional[int] = Field(default=None, ge=0)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in ("draft", "pending"):
            raise ValueError("status must be 'draft' or 'pending'")
        return v


class ServiceUpdateRequest(BaseModel):
    """Partial update of a catalog entry; only supplied fields change."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    base_price: Optional[int] = Field(default=None, ge=0)
    price_cents: Optional[int] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, max_length=10)
    active: Optional[bool] = None
    requires_approval: Optional[bool] = None
    billing_provider: Optional[str] = None
    whop_product_id: Optional[str] = None
    whop_url: Optional[str] = None
    whop_sync_enabled: Optional[bool] = None

    @field_validator("billing_provider")
    @classmethod
    def validate_billing_provider(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_BILLING_PROVIDERS:
            raise ValueError(f"billing_provider must be one of {', '.join(sorted(VALID_BILLING_PROVIDERS))}")
        return v


def status_filter(raw: Optional[str]) -> Optional[str]:
    """Validate a ``?status=`` query value; blank means no filter."""
    if not raw:
        return None
    if raw not in BOOKING_STATUSES:
        raise ValidationFailed([{"loc": ["status"], "msg": f"unknown status {raw!r}"}])
    return raw
