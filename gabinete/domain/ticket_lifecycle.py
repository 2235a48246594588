# gabinete/domain/ticket_lifecycle.py
from __future__ import annotations

from ..errors import InvalidTransitionError, ValidationError

# -----------------------------------------------------------------------------
# Ticket lifecycle
# -----------------------------------------------------------------------------
#   new -> under_review -> in_progress -> resolved -> closed
#   cancelled is reachable from any non-terminal status.
#
# Staff may move a ticket backwards inside the working statuses (the board
# lets them drag a card to any column). closed and cancelled are terminal.
# resolved_at / closed_at are NOT stamped here.
# -----------------------------------------------------------------------------

NEW = "new"
UNDER_REVIEW = "under_review"
IN_PROGRESS = "in_progress"
RESOLVED = "resolved"
CLOSED = "closed"
CANCELLED = "cancelled"

STATUSES = (NEW, UNDER_REVIEW, IN_PROGRESS, RESOLVED, CLOSED, CANCELLED)

OPEN_STATUSES = (NEW, UNDER_REVIEW, IN_PROGRESS)
TERMINAL_STATUSES = frozenset({CLOSED, CANCELLED})

# Board columns, in their fixed iteration order.
KANBAN_COLUMNS = (NEW, UNDER_REVIEW, IN_PROGRESS, RESOLVED)

STATUS_LABELS = {
    NEW: "New",
    UNDER_REVIEW: "Under review",
    IN_PROGRESS: "In progress",
    RESOLVED: "Resolved",
    CLOSED: "Closed",
    CANCELLED: "Cancelled",
}

PRIORITIES = ("low", "medium", "high", "urgent")

TRANSITIONS: dict[str, frozenset[str]] = {
    NEW: frozenset({UNDER_REVIEW, IN_PROGRESS, RESOLVED, CLOSED, CANCELLED}),
    UNDER_REVIEW: frozenset({NEW, IN_PROGRESS, RESOLVED, CLOSED, CANCELLED}),
    IN_PROGRESS: frozenset({NEW, UNDER_REVIEW, RESOLVED, CLOSED, CANCELLED}),
    RESOLVED: frozenset({NEW, UNDER_REVIEW, IN_PROGRESS, CLOSED, CANCELLED}),
    CLOSED: frozenset(),
    CANCELLED: frozenset(),
}


def validate_status(status: str) -> str:
    s = (status or "").strip().lower()
    if s not in STATUSES:
        raise ValidationError(f"unknown ticket status {status!r}", "Unknown ticket status.")
    return s


def validate_priority(priority: str) -> str:
    p = (priority or "").strip().lower()
    if p not in PRIORITIES:
        raise ValidationError(f"unknown ticket priority {priority!r}", "Unknown ticket priority.")
    return p


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def allowed_targets(status: str) -> frozenset[str]:
    return TRANSITIONS.get(status, frozenset())


def check_transition(from_status: str, to_status: str) -> bool:
    """
    Returns True when a mutation must be issued, False for a same-status no-op.
    Raises InvalidTransitionError for moves outside TRANSITIONS.
    """
    src = validate_status(from_status)
    dst = validate_status(to_status)
    if src == dst:
        return False
    if dst not in TRANSITIONS[src]:
        raise InvalidTransitionError(src, dst)
    return True
