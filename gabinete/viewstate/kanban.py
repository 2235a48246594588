# gabinete/viewstate/kanban.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..domain import roles
from ..domain.ticket_lifecycle import KANBAN_COLUMNS, check_transition
from ..errors import AppError, log_error
from .gateways import TicketGateway, TicketRow
from .ticket_detail import TicketDetailView

log = logging.getLogger(__name__)

NOOP = "noop"
MOVED = "moved"
FAILED = "failed"
DISABLED = "disabled"

Columns = dict[str, list[TicketRow]]


@dataclass(frozen=True)
class DragResult:
    outcome: str
    ticket_id: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    error: Optional[AppError] = None


def empty_columns() -> Columns:
    return {c: [] for c in KANBAN_COLUMNS}


def group_by_status(tickets: list[TicketRow]) -> Columns:
    cols = empty_columns()
    for t in tickets:
        status = t.get("status")
        if status in cols:
            cols[status].append(dict(t))
    return cols


class KanbanBoard:
    """
    Four-column board over the tenant's open tickets.

    Columns are rebuilt wholesale from the gateway on load and after a
    failed move. A drop is resolved either to a column directly or to the
    column holding the ticket under the pointer.
    """

    def __init__(self, gateway: TicketGateway, role: str) -> None:
        self.gateway = gateway
        self.role = role
        self.columns: Columns = empty_columns()
        self.error: Optional[str] = None
        self._dragging: Optional[tuple[str, str]] = None  # (ticket_id, source status)
        self._target: Optional[str] = None

    @property
    def can_drag(self) -> bool:
        return roles.can_drag_tickets(self.role)

    @property
    def dragging(self) -> Optional[str]:
        return self._dragging[0] if self._dragging else None

    @property
    def target(self) -> Optional[str]:
        return self._target

    # -------------------------
    # Loading
    # -------------------------
    def load(self) -> Columns:
        self.columns = group_by_status(self.gateway.list_tickets())
        return self.columns

    def reload(self) -> None:
        try:
            self.load()
        except Exception as e:
            self.error = log_error(e, "kanban.reload").user_message

    def find_column(self, ticket_id: str) -> Optional[str]:
        """Column containing `ticket_id`; the last one in board order wins."""
        found = None
        for col in KANBAN_COLUMNS:
            if any(t["id"] == ticket_id for t in self.columns[col]):
                found = col
        return found

    def _take(self, ticket_id: str, column: str) -> Optional[TicketRow]:
        items = self.columns[column]
        for i, t in enumerate(items):
            if t["id"] == ticket_id:
                return items.pop(i)
        return None

    # -------------------------
    # Drag protocol
    # -------------------------
    def drag_start(self, ticket_id: str) -> bool:
        if not self.can_drag:
            return False
        source = self.find_column(ticket_id)
        if source is None:
            return False
        self._dragging = (ticket_id, source)
        self._target = None
        return True

    def drag_over(self, *, column: Optional[str] = None, ticket_id: Optional[str] = None) -> Optional[str]:
        if self._dragging is None:
            return None
        if column is not None:
            self._target = column if column in KANBAN_COLUMNS else None
        elif ticket_id is not None:
            self._target = self.find_column(ticket_id)
        else:
            self._target = None
        return self._target

    def drag_cancel(self) -> None:
        self._dragging = None
        self._target = None

    def drag_end(self) -> DragResult:
        dragging, target = self._dragging, self._target
        self.drag_cancel()

        if dragging is None:
            return DragResult(NOOP)
        ticket_id, source = dragging
        if target is None:
            return DragResult(NOOP, ticket_id, source)
        if target == source:
            log.info("drop on same column; nothing to do", extra={"ticket_id": ticket_id, "context": source})
            return DragResult(NOOP, ticket_id, source, target)

        try:
            check_transition(source, target)
        except AppError as e:
            self.error = e.user_message
            return DragResult(FAILED, ticket_id, source, target, e)

        item = self._take(ticket_id, source)
        if item is None:
            return DragResult(NOOP, ticket_id, source, target)
        item["status"] = target
        self.columns[target].append(item)

        try:
            server = self.gateway.update_status(ticket_id, target)
        except Exception as e:
            err = log_error(e, "kanban.drag_end", ticket_id=ticket_id)
            # rebuild from the backend; local columns may have drifted
            self.reload()
            self.error = err.user_message
            return DragResult(FAILED, ticket_id, source, target, err)

        if isinstance(server, Mapping) and server.get("status") == target:
            item.update(server)
        self.error = None
        return DragResult(MOVED, ticket_id, source, target)

    def move(
        self,
        ticket_id: str,
        *,
        column: Optional[str] = None,
        over_ticket_id: Optional[str] = None,
    ) -> DragResult:
        """drag_start + drag_over + drag_end in one call."""
        if not self.can_drag:
            return DragResult(DISABLED, ticket_id)
        if not self.drag_start(ticket_id):
            return DragResult(NOOP, ticket_id)
        self.drag_over(column=column, ticket_id=over_ticket_id)
        return self.drag_end()

    # -------------------------
    # Detail panel (available to every role)
    # -------------------------
    def open_detail(self, ticket_id: str) -> Optional[TicketDetailView]:
        col = self.find_column(ticket_id)
        if col is None:
            return None
        ticket = next(t for t in self.columns[col] if t["id"] == ticket_id)
        return TicketDetailView(self.gateway, ticket, self.role, on_saved=self.reload)

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        return {c: [dict(t) for t in self.columns[c]] for c in KANBAN_COLUMNS}
