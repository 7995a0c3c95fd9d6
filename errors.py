"""Application exception taxonomy.

Each error maps to one HTTP status; the app factory registers a JSON
handler for :class:`PortalError` that renders ``to_dict()``.
"""

from __future__ import annotations

from typing import Iterable, Optional


class PortalError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"error": self.message}


class AuthError(PortalError):
    status_code = 401
    message = "Authentication required"


class ForbiddenError(PortalError):
    status_code = 403
    message = "Admin access required"


class NotFoundError(PortalError):
    status_code = 404
    message = "Not found"


class ConflictError(PortalError):
    status_code = 409
    message = "Booking was modified concurrently; reload and retry"


class ValidationFailed(PortalError):
    status_code = 422
    message = "Invalid request body"

    def __init__(self, errors: list, message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.errors}


class InvalidStatusError(PortalError):
    """Raised when a stored status is not part of the booking lifecycle."""

    status_code = 500


class IllegalTransitionError(PortalError):
    """Raised when a requested status change is not in the transition table."""

    status_code = 400

    def __init__(self, current_status: str, requested_status: str, allowed: Iterable[str]):
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = sorted(allowed)
        super().__init__(
            f"Cannot change status from '{current_status}' to '{requested_status}'. "
            f"Allowed: {', '.join(self.allowed) if self.allowed else 'none'}"
        )

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "currentStatus": self.current_status,
            "requestedStatus": self.requested_status,
            "allowed": self.allowed,
        }
