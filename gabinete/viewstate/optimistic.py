# gabinete/viewstate/optimistic.py
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Hashable, MutableMapping, Optional

from ..errors import AppError, ConflictError, log_error

log = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class OptimisticOutcome:
    ok: bool
    value: Any = None
    error: Optional[AppError] = None


class InFlightRegistry:
    """At most one pending mutation per (entity, field)."""

    def __init__(self) -> None:
        self._pending: set[Hashable] = set()

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    def acquire(self, key: Hashable) -> bool:
        if key in self._pending:
            return False
        self._pending.add(key)
        return True

    def release(self, key: Hashable) -> None:
        self._pending.discard(key)

    def pending(self) -> frozenset:
        return frozenset(self._pending)


def optimistic_update(
    state: MutableMapping[Any, Any],
    key: Any,
    new_value: Any,
    mutate: Callable[[], Any],
    reconcile: Optional[Callable[[Any, Any], Any]] = None,
    *,
    registry: Optional[InFlightRegistry] = None,
    inflight_key: Optional[Hashable] = None,
    context: str = "optimistic_update",
) -> OptimisticOutcome:
    """
    Apply `new_value` to `state[key]` at once, then run `mutate()`.

    On success `reconcile(server_result, current_value)` may replace the
    optimistic value with the canonical one. On failure the captured value
    is restored exactly (the key is removed again if it was absent) and the
    translated error is returned, never raised.
    """
    guard = inflight_key if inflight_key is not None else key
    if registry is not None and not registry.acquire(guard):
        return OptimisticOutcome(
            ok=False,
            value=state.get(key),
            error=ConflictError(f"mutation already in flight for {guard!r}", "Please wait for the previous change."),
        )

    previous = copy.deepcopy(state[key]) if key in state else _MISSING
    state[key] = new_value

    try:
        result = mutate()
    except Exception as e:
        if previous is _MISSING:
            state.pop(key, None)
        else:
            state[key] = previous
        err = log_error(e, f"{context}[{key}]")
        return OptimisticOutcome(ok=False, value=None if previous is _MISSING else previous, error=err)
    finally:
        if registry is not None:
            registry.release(guard)

    if reconcile is not None:
        state[key] = reconcile(result, state[key])
    return OptimisticOutcome(ok=True, value=state[key])
