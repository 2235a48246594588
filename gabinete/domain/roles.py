# gabinete/domain/roles.py
"""
Role -> capability table.

Every permission check in routers and services goes through these functions
instead of comparing role strings inline.
"""
from __future__ import annotations

CITIZEN = "citizen"
AIDE = "aide"
POLITICIAN = "politician"
ADMIN = "admin"

ROLES = (CITIZEN, AIDE, POLITICIAN, ADMIN)
STAFF_ROLES = frozenset({AIDE, POLITICIAN, ADMIN})

CAPABILITIES: dict[str, frozenset[str]] = {
    CITIZEN: frozenset({"file_ticket", "comment_own_ticket"}),
    AIDE: frozenset(
        {
            "file_ticket",
            "comment_own_ticket",
            "change_status",
            "assign",
            "send_broadcast",
            "internal_comment",
            "drag_tickets",
            "manage_agenda",
            "manage_categories",
        }
    ),
    POLITICIAN: frozenset(
        {
            "file_ticket",
            "comment_own_ticket",
            "change_status",
            "assign",
            "send_broadcast",
            "internal_comment",
            "drag_tickets",
            "manage_agenda",
            "manage_categories",
            "manage_settings",
        }
    ),
    ADMIN: frozenset(
        {
            "file_ticket",
            "comment_own_ticket",
            "change_status",
            "assign",
            "send_broadcast",
            "internal_comment",
            "drag_tickets",
            "manage_agenda",
            "manage_categories",
            "manage_settings",
            "manage_users",
            "delete_ticket",
        }
    ),
}


def normalize_role(role: str | None) -> str:
    r = (role or "").strip().lower()
    return r if r in ROLES else CITIZEN


def has_capability(role: str | None, capability: str) -> bool:
    return capability in CAPABILITIES.get(normalize_role(role), frozenset())


def is_staff(role: str | None) -> bool:
    return normalize_role(role) in STAFF_ROLES


def can_change_status(role: str | None) -> bool:
    return has_capability(role, "change_status")


def can_assign(role: str | None) -> bool:
    return has_capability(role, "assign")


def can_send_broadcast(role: str | None) -> bool:
    return has_capability(role, "send_broadcast")


def can_author_internal_comment(role: str | None) -> bool:
    return has_capability(role, "internal_comment")


def can_drag_tickets(role: str | None) -> bool:
    return has_capability(role, "drag_tickets")


def can_manage_agenda(role: str | None) -> bool:
    return has_capability(role, "manage_agenda")


def can_manage_categories(role: str | None) -> bool:
    return has_capability(role, "manage_categories")


def can_manage_settings(role: str | None) -> bool:
    return has_capability(role, "manage_settings")


def can_manage_users(role: str | None) -> bool:
    return has_capability(role, "manage_users")


def can_delete_ticket(role: str | None) -> bool:
    return has_capability(role, "delete_ticket")
