# gabinete/viewstate/gateways.py
"""
What the view-state objects need from the backend, and the session-backed
implementations the HTTP layer uses. Tests substitute mocks.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from ..auth import Principal
from ..domain.ticket_lifecycle import KANBAN_COLUMNS
from ..schemas import NotificationOut, TicketOut
from ..services import notifications_service, tickets_service
from ..services.ticket_query import TicketFilters, list_tickets

TicketRow = dict[str, Any]
NotificationRow = dict[str, Any]


class TicketGateway(Protocol):
    def list_tickets(self) -> list[TicketRow]: ...

    def update_status(self, ticket_id: str, status: str) -> Optional[TicketRow]: ...

    def assign(self, ticket_id: str, assignee_id: Optional[str]) -> Optional[TicketRow]: ...


class NotificationGateway(Protocol):
    def fetch_unread(self) -> list[NotificationRow]: ...

    def fetch(self, *, audience: Optional[str], read_filter: str, sort: str) -> list[NotificationRow]: ...

    def mark_read(self, notification_id: str) -> Optional[NotificationRow]: ...

    def toggle_read(self, notification_id: str) -> Optional[NotificationRow]: ...

    def mark_all_read(self, ids: Sequence[str]) -> list[str]: ...


def ticket_row(t: Any) -> TicketRow:
    return TicketOut.model_validate(t).model_dump()


def notification_row(n: Any) -> NotificationRow:
    return NotificationOut.model_validate(n).model_dump()


class SessionTicketGateway:
    def __init__(self, db: Session, principal: Principal) -> None:
        self.db = db
        self.principal = principal

    def list_tickets(self) -> list[TicketRow]:
        rows = list_tickets(self.db, self.principal, TicketFilters(status=KANBAN_COLUMNS))
        return [ticket_row(t) for t in rows]

    def update_status(self, ticket_id: str, status: str) -> Optional[TicketRow]:
        row, _changed = tickets_service.change_status(self.db, self.principal, ticket_id, status)
        return ticket_row(row)

    def assign(self, ticket_id: str, assignee_id: Optional[str]) -> Optional[TicketRow]:
        row = tickets_service.assign_ticket(self.db, self.principal, ticket_id, assignee_id)
        return ticket_row(row)


class SessionNotificationGateway:
    def __init__(self, db: Session, principal: Principal) -> None:
        self.db = db
        self.principal = principal

    def fetch_unread(self) -> list[NotificationRow]:
        return [notification_row(n) for n in notifications_service.list_unread(self.db, self.principal)]

    def fetch(self, *, audience: Optional[str], read_filter: str, sort: str) -> list[NotificationRow]:
        rows = notifications_service.list_notifications(
            self.db, self.principal, audience=audience, read_filter=read_filter, sort=sort
        )
        return [notification_row(n) for n in rows]

    def mark_read(self, notification_id: str) -> Optional[NotificationRow]:
        return notification_row(notifications_service.mark_read(self.db, self.principal, notification_id))

    def toggle_read(self, notification_id: str) -> Optional[NotificationRow]:
        return notification_row(notifications_service.toggle_read(self.db, self.principal, notification_id))

    def mark_all_read(self, ids: Sequence[str]) -> list[str]:
        return notifications_service.mark_all_read(self.db, self.principal, ids)
