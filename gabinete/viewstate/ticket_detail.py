# gabinete/viewstate/ticket_detail.py
from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from ..domain import roles
from ..domain.ticket_lifecycle import allowed_targets, check_transition
from ..errors import AppError, AuthorizationError
from .gateways import TicketGateway, TicketRow
from .optimistic import InFlightRegistry, OptimisticOutcome, optimistic_update


class TicketDetailView:
    """
    One ticket opened in the detail panel. Status and assignee edits are
    applied locally first and rolled back if the backend rejects them.
    """

    def __init__(
        self,
        gateway: TicketGateway,
        ticket: TicketRow,
        role: str,
        *,
        on_saved: Optional[Callable[[], Any]] = None,
        registry: Optional[InFlightRegistry] = None,
    ) -> None:
        self.gateway = gateway
        self.role = role
        self.state: dict[str, Any] = dict(ticket)
        self.on_saved = on_saved
        self.registry = registry or InFlightRegistry()
        self.error: Optional[str] = None

    @property
    def ticket_id(self) -> str:
        return str(self.state["id"])

    @property
    def can_edit(self) -> bool:
        return roles.can_change_status(self.role)

    @property
    def status_options(self) -> list[str]:
        """Statuses the current one may move to; empty for read-only viewers."""
        if not self.can_edit:
            return []
        return sorted(allowed_targets(self.state["status"]))

    def _denied(self, what: str) -> OptimisticOutcome:
        err = AuthorizationError(f"{what} requires staff role")
        self.error = err.user_message
        return OptimisticOutcome(ok=False, value=None, error=err)

    def _finish(self, outcome: OptimisticOutcome) -> OptimisticOutcome:
        self.error = outcome.error.user_message if outcome.error else None
        if outcome.ok and self.on_saved is not None:
            self.on_saved()
        return outcome

    def change_status(self, new_status: str) -> OptimisticOutcome:
        if not roles.can_change_status(self.role):
            return self._denied("status change")

        current = self.state["status"]
        try:
            if not check_transition(current, new_status):
                return OptimisticOutcome(ok=True, value=current)
        except AppError as e:
            self.error = e.user_message
            return OptimisticOutcome(ok=False, value=current, error=e)

        outcome = optimistic_update(
            self.state,
            "status",
            new_status,
            lambda: self.gateway.update_status(self.ticket_id, new_status),
            reconcile=lambda server, cur: server.get("status", cur) if isinstance(server, Mapping) else cur,
            registry=self.registry,
            inflight_key=(self.ticket_id, "status"),
            context="ticket_detail.change_status",
        )
        return self._finish(outcome)

    def assign(self, assignee_id: Optional[str]) -> OptimisticOutcome:
        if not roles.can_assign(self.role):
            return self._denied("assignment")

        if self.state.get("assignee_id") == (assignee_id or None):
            return OptimisticOutcome(ok=True, value=assignee_id or None)

        outcome = optimistic_update(
            self.state,
            "assignee_id",
            assignee_id or None,
            lambda: self.gateway.assign(self.ticket_id, assignee_id or None),
            reconcile=lambda server, cur: server.get("assignee_id", cur) if isinstance(server, Mapping) else cur,
            registry=self.registry,
            inflight_key=(self.ticket_id, "assignee_id"),
            context="ticket_detail.assign",
        )
        return self._finish(outcome)

    def assign_to_self(self, user_id: str) -> OptimisticOutcome:
        return self.assign(user_id)

    def unassign(self) -> OptimisticOutcome:
        return self.assign(None)
