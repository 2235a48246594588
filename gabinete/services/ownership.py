# gabinete/services/ownership.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..auth import Principal
from ..errors import NotFoundError
from ..models import Category, Event, Notification, Profile, Ticket


def must_get_ticket(db: Session, *, principal: Principal, ticket_id: str) -> Ticket:
    """Tenant-scoped; citizens only reach tickets they reported."""
    q = (
        select(Ticket)
        .options(selectinload(Ticket.reporter), selectinload(Ticket.category), selectinload(Ticket.assignee))
        .where(Ticket.id == ticket_id, Ticket.tenant_id == principal.tenant_id)
    )
    if principal.is_citizen:
        q = q.where(Ticket.reporter_id == principal.user_id)

    row = db.scalar(q)
    if not row:
        raise NotFoundError("Ticket")
    return row


def must_get_category(db: Session, *, tenant_id: str, category_id: str) -> Category:
    row = db.scalar(select(Category).where(Category.id == category_id, Category.tenant_id == tenant_id))
    if not row:
        raise NotFoundError("Category")
    return row


def must_get_event(db: Session, *, tenant_id: str, event_id: str) -> Event:
    row = db.scalar(select(Event).where(Event.id == event_id, Event.tenant_id == tenant_id))
    if not row:
        raise NotFoundError("Event")
    return row


def must_get_profile(db: Session, *, tenant_id: str, profile_id: str) -> Profile:
    row = db.scalar(select(Profile).where(Profile.id == profile_id, Profile.tenant_id == tenant_id))
    if not row:
        raise NotFoundError("User")
    return row


def must_get_own_notification(db: Session, *, principal: Principal, notification_id: str) -> Notification:
    row = db.scalar(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.tenant_id == principal.tenant_id,
            Notification.recipient_id == principal.user_id,
        )
    )
    if not row:
        raise NotFoundError("Notification")
    return row
