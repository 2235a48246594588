# gabinete/services/notifications_service.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import Principal
from ..domain import roles
from ..errors import (
    FUNCTION_NOT_FOUND,
    AuthorizationError,
    RowStoreError,
    ValidationError,
    log_error,
)
from ..models import Notification, Profile
from .ownership import must_get_own_notification
from .rpc import call_rpc

log = logging.getLogger(__name__)

TICKET_CREATED = "ticket_created"
TICKET_UPDATED = "ticket_updated"
TICKET_COMMENTED = "ticket_commented"
EVENT_CREATED = "event_created"
MANUAL = "manual"

AUDIENCE_MINE = "mine"
AUDIENCE_TENANT = "tenant"
AUDIENCE_CITIZENS = "citizens"

READ_ALL = "all"
READ_UNREAD = "unread"
READ_READ = "read"


def _utcnow() -> datetime:
    return datetime.utcnow()


def notify(
    db: Session,
    *,
    tenant_id: str,
    recipient_id: str,
    title: str,
    message: Optional[str] = None,
    type: str = MANUAL,
    meta: Optional[dict[str, Any]] = None,
) -> Notification:
    """Add + flush only. Callers decide when to commit."""
    row = Notification(
        tenant_id=tenant_id,
        recipient_id=recipient_id,
        title=title,
        message=message,
        type=type,
        meta=meta or {},
        created_at=_utcnow(),
    )
    db.add(row)
    db.flush()
    return row


# -------------------------
# Reads
# -------------------------
def list_unread(db: Session, principal: Principal) -> list[Notification]:
    """Unread notifications addressed to the principal, newest first (bell)."""
    q = (
        select(Notification)
        .where(
            Notification.tenant_id == principal.tenant_id,
            Notification.recipient_id == principal.user_id,
            Notification.read_at.is_(None),
        )
        .order_by(Notification.created_at.desc(), Notification.id.asc())
    )
    return list(db.scalars(q).all())


def audiences_for(role: str) -> tuple[str, ...]:
    if roles.is_staff(role):
        return (AUDIENCE_TENANT, AUDIENCE_MINE)
    return (AUDIENCE_MINE, AUDIENCE_CITIZENS)


def list_notifications(
    db: Session,
    principal: Principal,
    *,
    audience: Optional[str] = None,
    read_filter: str = READ_ALL,
    sort: str = "desc",
) -> list[Notification]:
    allowed = audiences_for(principal.role)
    aud = audience or allowed[0]
    if aud not in allowed:
        raise AuthorizationError(f"audience {aud!r} not available for role {principal.role!r}")
    if read_filter not in (READ_ALL, READ_UNREAD, READ_READ):
        raise ValidationError(f"unknown read filter {read_filter!r}")
    if sort not in ("asc", "desc"):
        raise ValidationError(f"unknown sort order {sort!r}")

    q = select(Notification).where(Notification.tenant_id == principal.tenant_id)

    if aud == AUDIENCE_MINE:
        q = q.where(Notification.recipient_id == principal.user_id)
    elif aud == AUDIENCE_CITIZENS:
        q = q.join(Profile, Profile.id == Notification.recipient_id).where(Profile.role == roles.CITIZEN)

    if read_filter == READ_UNREAD:
        q = q.where(Notification.read_at.is_(None))
    elif read_filter == READ_READ:
        q = q.where(Notification.read_at.is_not(None))

    col = Notification.created_at
    q = q.order_by(col.asc() if sort == "asc" else col.desc(), Notification.id.asc())
    return list(db.scalars(q).all())


def unread_count(items: Sequence[Notification]) -> int:
    return sum(1 for n in items if n.read_at is None)


# -------------------------
# Read-state mutations (recipient only)
# -------------------------
def mark_read(db: Session, principal: Principal, notification_id: str) -> Notification:
    row = must_get_own_notification(db, principal=principal, notification_id=notification_id)
    if row.read_at is None:
        row.read_at = _utcnow()
        db.add(row)
        db.commit()
    return row


def toggle_read(db: Session, principal: Principal, notification_id: str) -> Notification:
    row = must_get_own_notification(db, principal=principal, notification_id=notification_id)
    row.read_at = None if row.read_at else _utcnow()
    db.add(row)
    db.commit()
    return row


def mark_all_read(db: Session, principal: Principal, ids: Optional[Sequence[str]] = None) -> list[str]:
    """
    One bulk UPDATE over the principal's unread notifications (optionally
    limited to `ids`). Returns the ids the database reports as updated; rows
    already read elsewhere are not among them.
    """
    stmt = (
        update(Notification)
        .where(
            Notification.tenant_id == principal.tenant_id,
            Notification.recipient_id == principal.user_id,
            Notification.read_at.is_(None),
        )
        .values(read_at=_utcnow())
        .returning(Notification.id)
    )
    if ids is not None:
        if not ids:
            return []
        stmt = stmt.where(Notification.id.in_(list(ids)))

    try:
        updated = [str(r) for r in db.scalars(stmt).all()]
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise log_error(e, "notifications.mark_all_read", user_id=principal.user_id) from e

    log.info("marked notifications read", extra={"user_id": principal.user_id, "context": f"count={len(updated)}"})
    return updated


# -------------------------
# Broadcast
# -------------------------
def fetch_tenant_citizens(db: Session, tenant_id: str) -> list[dict[str, Any]]:
    """Server-side lookup; plain select when the function is not deployed."""
    try:
        return list(call_rpc(db, "get_tenant_citizens", tenant_id=tenant_id))
    except RowStoreError as e:
        if e.code != FUNCTION_NOT_FOUND:
            raise
        log.warning("get_tenant_citizens unavailable; falling back to profile query", extra={"tenant_id": tenant_id})

    rows = db.scalars(
        select(Profile).where(
            Profile.tenant_id == tenant_id,
            Profile.role == roles.CITIZEN,
            Profile.active.is_(True),
        )
    ).all()
    return [{"id": r.id, "tenant_id": r.tenant_id, "full_name": r.full_name} for r in rows]


def broadcast(db: Session, principal: Principal, *, title: str, message: str) -> int:
    """Manual notification to every citizen of the tenant except the sender, in one insert."""
    if not roles.can_send_broadcast(principal.role):
        raise AuthorizationError("broadcast requires staff role")

    title = (title or "").strip()
    message = (message or "").strip()
    if not title or not message:
        raise ValidationError("broadcast title/message required", "Title and message are required.")

    citizens = [c for c in fetch_tenant_citizens(db, principal.tenant_id) if c["id"] != principal.user_id]
    if not citizens:
        return 0

    now = _utcnow()
    rows = [
        Notification(
            tenant_id=c["tenant_id"],
            recipient_id=c["id"],
            title=title,
            message=message,
            type=MANUAL,
            meta={"sender_id": principal.user_id},
            created_at=now,
        )
        for c in citizens
    ]
    try:
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise log_error(e, "notifications.broadcast", tenant_id=principal.tenant_id) from e

    log.info("broadcast sent", extra={"tenant_id": principal.tenant_id, "context": f"recipients={len(rows)}"})
    return len(rows)
