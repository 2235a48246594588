# gabinete/viewstate/preferences.py
"""
Shared UI preferences (e.g. sidebar collapsed) as a publish/subscribe store.

Subscribers hear about a key only when its value actually changes through
`set` or `toggle`; nothing polls the backend.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import ValidationError, log_error
from ..models import UserPreference

log = logging.getLogger(__name__)

SIDEBAR_COLLAPSED = "sidebar-collapsed"

Listener = Callable[[str, Any], None]


class KeyValueBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryBackend:
    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class SqlPreferenceBackend:
    """Rows in `user_preferences`, one per (user, key)."""

    def __init__(self, db: Session, user_id: str) -> None:
        self.db = db
        self.user_id = user_id

    def _row(self, key: str) -> Optional[UserPreference]:
        return self.db.scalar(
            select(UserPreference).where(UserPreference.user_id == self.user_id, UserPreference.key == key)
        )

    def get(self, key: str) -> Optional[str]:
        row = self._row(key)
        return row.value if row else None

    def set(self, key: str, value: str) -> None:
        row = self._row(key)
        if row is None:
            row = UserPreference(user_id=self.user_id, key=key, value=value)
        else:
            row.value = value
        row.updated_at = datetime.utcnow()
        self.db.add(row)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise log_error(e, "preferences.set", user_id=self.user_id) from e


def validate_key(key: str) -> str:
    k = (key or "").strip()
    if not k or len(k) > 80:
        raise ValidationError(f"invalid preference key {key!r}", "Invalid preference key.")
    return k


class PreferenceStore:
    def __init__(self, backend: KeyValueBackend) -> None:
        self.backend = backend
        self._listeners: dict[str, list[Listener]] = {}

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.backend.get(validate_key(key))
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            log.warning("unreadable preference value; using default", extra={"context": key})
            return default

    def set(self, key: str, value: Any) -> bool:
        """Persist and notify. Returns False (and notifies nobody) when unchanged."""
        key = validate_key(key)
        if self.backend.get(key) is not None and self.get(key) == value:
            return False

        self.backend.set(key, json.dumps(value))
        for listener in list(self._listeners.get(key, ())):
            listener(key, value)
        return True

    def toggle(self, key: str) -> bool:
        value = not bool(self.get(key, False))
        self.set(key, value)
        return value

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        key = validate_key(key)
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe
