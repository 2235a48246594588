# gabinete/viewstate/notification_inbox.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from ..errors import log_error
from ..services.notifications_service import READ_ALL
from .gateways import NotificationGateway, NotificationRow
from .optimistic import InFlightRegistry, OptimisticOutcome, optimistic_update

log = logging.getLogger(__name__)


def _is_unread(n: Mapping[str, Any]) -> bool:
    return n.get("read_at") is None


class NotificationInbox:
    """
    Bell dropdown: the recipient's unread notifications.

    The badge count is always derived from `items`; there is no separate
    counter to drift.
    """

    def __init__(self, gateway: NotificationGateway) -> None:
        self.gateway = gateway
        self.items: list[NotificationRow] = []
        self.pending: set[str] = set()
        self.error: Optional[str] = None

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.items if _is_unread(n))

    def refresh(self) -> list[NotificationRow]:
        try:
            self.items = [dict(n) for n in self.gateway.fetch_unread() if _is_unread(n)]
            self.error = None
        except Exception as e:
            self.error = log_error(e, "notification_inbox.refresh").user_message
        return self.items

    def mark_read(self, notification_id: str) -> bool:
        if notification_id in self.pending:
            return False

        self.pending.add(notification_id)
        try:
            self.gateway.mark_read(notification_id)
        except Exception as e:
            self.error = log_error(e, "notification_inbox.mark_read").user_message
            return False
        finally:
            self.pending.discard(notification_id)

        self.items = [n for n in self.items if n["id"] != notification_id]
        self.error = None
        return True

    def mark_all_read(self) -> list[str]:
        """
        Bulk mark. Only ids the backend reports as updated leave the local
        set; anything it did not touch stays unread here.
        """
        ids = [n["id"] for n in self.items if _is_unread(n)]
        if not ids:
            return []

        try:
            updated = list(self.gateway.mark_all_read(ids))
        except Exception as e:
            self.error = log_error(e, "notification_inbox.mark_all_read").user_message
            return []

        done = set(updated)
        self.items = [n for n in self.items if n["id"] not in done]
        self.error = None
        log.info("inbox marked read", extra={"context": f"requested={len(ids)} updated={len(done)}"})
        return updated


class NotificationFeed:
    """Full notifications page: audience, read-state filter and sort order."""

    def __init__(
        self,
        gateway: NotificationGateway,
        *,
        audience: Optional[str] = None,
        read_filter: str = READ_ALL,
        sort: str = "desc",
    ) -> None:
        self.gateway = gateway
        self.audience = audience
        self.read_filter = read_filter
        self.sort = sort
        self.by_id: dict[str, NotificationRow] = {}
        self.order: list[str] = []
        self.registry = InFlightRegistry()
        self.error: Optional[str] = None

    @property
    def items(self) -> list[NotificationRow]:
        return [self.by_id[i] for i in self.order if i in self.by_id]

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.items if _is_unread(n))

    def refresh(self) -> list[NotificationRow]:
        try:
            rows = self.gateway.fetch(audience=self.audience, read_filter=self.read_filter, sort=self.sort)
        except Exception as e:
            self.error = log_error(e, "notification_feed.refresh").user_message
            return self.items
        self.by_id = {r["id"]: dict(r) for r in rows}
        self.order = [r["id"] for r in rows]
        self.error = None
        return self.items

    def set_filters(
        self,
        *,
        audience: Optional[str] = None,
        read_filter: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> list[NotificationRow]:
        if audience is not None:
            self.audience = audience
        if read_filter is not None:
            self.read_filter = read_filter
        if sort is not None:
            self.sort = sort
        return self.refresh()

    def toggle_sort(self) -> list[NotificationRow]:
        return self.set_filters(sort="asc" if self.sort == "desc" else "desc")

    def toggle_read(self, notification_id: str) -> OptimisticOutcome:
        current = self.by_id[notification_id]
        flipped = dict(current)
        flipped["read_at"] = datetime.utcnow() if _is_unread(current) else None

        outcome = optimistic_update(
            self.by_id,
            notification_id,
            flipped,
            lambda: self.gateway.toggle_read(notification_id),
            reconcile=lambda server, cur: dict(server) if isinstance(server, Mapping) else cur,
            registry=self.registry,
            context="notification_feed.toggle_read",
        )
        self.error = outcome.error.user_message if outcome.error else None
        return outcome
