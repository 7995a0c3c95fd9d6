"""Booking status transition rules.

Every status has an entry, so the table is total over the lifecycle.
Business preconditions (payment received, slot available, ...) are the
caller's concern; this module only answers "is this edge legal?".
"""

from __future__ import annotations

from errors import IllegalTransitionError, InvalidStatusError

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"pending"}),
    "pending": frozenset({"approved", "cancelled", "declined"}),
    "approved": frozenset({"in_progress", "cancelled"}),
    "in_progress": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
    "declined": frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, successors in ALLOWED_TRANSITIONS.items() if not successors
)


def allowed_next_statuses(status: str) -> list[str]:
    """Return the legal successors of *status*, sorted."""
    try:
        return sorted(ALLOWED_TRANSITIONS[status])
    except KeyError:
        raise InvalidStatusError(f"Unknown booking status: {status!r}") from None


def is_transition_allowed(current: str, new: str) -> bool:
    """Raises :class:`InvalidStatusError` for an unknown *current* status."""
    return new in allowed_next_statuses(current)


def validate_transition(current: str, new: str) -> None:
    """Raise :class:`IllegalTransitionError` unless ``current -> new`` is legal."""
    allowed = allowed_next_statuses(current)
    if new not in allowed:
        raise IllegalTransitionError(current, new, allowed)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES
