# gabinete/services/comments_service.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..auth import Principal
from ..domain import roles
from ..errors import AuthorizationError, ValidationError, log_error
from ..models import TicketComment
from . import notifications_service as notifications
from .ownership import must_get_ticket

log = logging.getLogger(__name__)


def list_comments(db: Session, principal: Principal, ticket_id: str) -> list[TicketComment]:
    """Oldest first. Citizens see public comments plus their own."""
    # ownership check first: citizens never reach other people's tickets
    must_get_ticket(db, principal=principal, ticket_id=ticket_id)

    q = (
        select(TicketComment)
        .options(selectinload(TicketComment.author))
        .where(TicketComment.ticket_id == ticket_id)
    )
    if principal.is_citizen:
        q = q.where(or_(TicketComment.is_public.is_(True), TicketComment.author_id == principal.user_id))

    q = q.order_by(TicketComment.created_at.asc(), TicketComment.id.asc())
    return list(db.scalars(q).all())


def add_comment(
    db: Session,
    principal: Principal,
    ticket_id: str,
    *,
    message: str,
    is_public: bool = True,
    attachments: list[str] | None = None,
) -> TicketComment:
    ticket = must_get_ticket(db, principal=principal, ticket_id=ticket_id)

    text = (message or "").strip()
    if not text:
        raise ValidationError("empty comment", "Comment cannot be empty.")

    if not is_public and not roles.can_author_internal_comment(principal.role):
        raise AuthorizationError("internal comments are staff-only")
    if principal.is_citizen and ticket.reporter_id != principal.user_id:
        raise AuthorizationError("citizens may only comment on their own tickets")

    now = datetime.utcnow()
    row = TicketComment(
        ticket_id=ticket.id,
        author_id=principal.user_id,
        message=text,
        is_public=bool(is_public),
        attachments=list(attachments or []),
        created_at=now,
        updated_at=now,
    )
    db.add(row)

    if principal.is_staff and row.is_public and ticket.reporter_id != principal.user_id:
        notifications.notify(
            db,
            tenant_id=ticket.tenant_id,
            recipient_id=ticket.reporter_id,
            title=f"New reply on ticket #{ticket.ticket_number}",
            message=text[:200],
            type=notifications.TICKET_COMMENTED,
            meta={"ticket_id": ticket.id},
        )

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise log_error(e, "comments.add_comment", ticket_id=ticket_id) from e

    log.info("comment added", extra={"ticket_id": ticket_id, "user_id": principal.user_id})
    return db.scalar(
        select(TicketComment).options(selectinload(TicketComment.author)).where(TicketComment.id == row.id)
    )
