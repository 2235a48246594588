# gabinete/services/ticket_query.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Union

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..auth import Principal
from ..config import settings
from ..domain.clock import to_utc_naive
from ..domain.ticket_lifecycle import OPEN_STATUSES, RESOLVED, validate_status
from ..errors import ValidationError, log_error
from ..models import Ticket
from .ownership import must_get_ticket

ORDERABLE = {
    "created_at": Ticket.created_at,
    "updated_at": Ticket.updated_at,
    "ticket_number": Ticket.ticket_number,
}


@dataclass(frozen=True)
class TicketFilters:
    status: Union[str, Sequence[str], None] = None
    reporter_id: Optional[str] = None
    category_id: Optional[str] = None
    search: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


def _statuses(status: Union[str, Sequence[str], None]) -> list[str]:
    if status is None:
        return []
    if isinstance(status, str):
        return [validate_status(status)]
    return [validate_status(s) for s in status]


def _scoped(q: Select, principal: Principal) -> Select:
    """
    Tenant filter plus the citizen restriction.

    Both come from the principal, never from the caller's filters, so no call
    site can forget them.
    """
    q = q.where(Ticket.tenant_id == principal.tenant_id)
    if principal.is_citizen:
        q = q.where(Ticket.reporter_id == principal.user_id)
    return q


def build_ticket_query(
    principal: Principal,
    filters: Optional[TicketFilters] = None,
    *,
    order_by: str = "created_at",
    ascending: bool = False,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> Select:
    f = filters or TicketFilters()

    if order_by not in ORDERABLE:
        raise ValidationError(f"cannot order tickets by {order_by!r}", "Invalid sort field.")

    q = _scoped(
        select(Ticket).options(
            selectinload(Ticket.reporter),
            selectinload(Ticket.category),
            selectinload(Ticket.assignee),
        ),
        principal,
    )

    statuses = _statuses(f.status)
    if len(statuses) == 1:
        q = q.where(Ticket.status == statuses[0])
    elif statuses:
        q = q.where(Ticket.status.in_(statuses))

    if f.reporter_id:
        q = q.where(Ticket.reporter_id == f.reporter_id)

    if f.category_id:
        q = q.where(Ticket.category_id == f.category_id)

    term = (f.search or "").strip()
    if term:
        q = q.where(
            or_(
                Ticket.title.icontains(term, autoescape=True),
                Ticket.description.icontains(term, autoescape=True),
            )
        )

    start, end = to_utc_naive(f.start_date), to_utc_naive(f.end_date)
    if start and end and end < start:
        raise ValidationError("end_date before start_date", "The end date cannot be before the start date.")

    if start:
        q = q.where(Ticket.created_at >= start)

    if end:
        q = q.where(Ticket.created_at <= end)

    col = ORDERABLE[order_by]
    q = q.order_by(col.asc() if ascending else col.desc(), Ticket.id.asc())

    if limit is not None:
        q = q.limit(max(1, min(int(limit), settings.max_page_size)))

    if offset:
        if limit is None:
            q = q.limit(settings.default_page_size)
        q = q.offset(int(offset))

    return q


def list_tickets(
    db: Session,
    principal: Principal,
    filters: Optional[TicketFilters] = None,
    *,
    order_by: str = "created_at",
    ascending: bool = False,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> list[Ticket]:
    q = build_ticket_query(
        principal,
        filters,
        order_by=order_by,
        ascending=ascending,
        limit=limit,
        offset=offset,
    )
    try:
        return list(db.scalars(q).all())
    except SQLAlchemyError as e:
        raise log_error(e, "ticket_query.list_tickets", tenant_id=principal.tenant_id) from e


def count_tickets(db: Session, principal: Principal) -> dict[str, int]:
    base = _scoped(select(func.count(Ticket.id)), principal)
    try:
        total = db.scalar(base) or 0
        open_ = db.scalar(base.where(Ticket.status.in_(OPEN_STATUSES))) or 0
        resolved = db.scalar(base.where(Ticket.status == RESOLVED)) or 0
    except SQLAlchemyError as e:
        raise log_error(e, "ticket_query.count_tickets", tenant_id=principal.tenant_id) from e
    return {"total": int(total), "open": int(open_), "resolved": int(resolved)}


def get_ticket(db: Session, principal: Principal, ticket_id: str) -> Ticket:
    return must_get_ticket(db, principal=principal, ticket_id=ticket_id)
