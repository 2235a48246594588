# gabinete/services/rpc.py
"""
Named server-side functions.

Callers address them by name, the way a hosted database exposes stored
procedures. Unknown names fail with FUNCTION_NOT_FOUND so call sites with a
plain-query fallback can detect it.
"""
from __future__ import annotations

from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ..domain import roles
from ..errors import FUNCTION_NOT_FOUND, RowStoreError
from ..models import Profile, TicketCounter

RpcFn = Callable[..., Any]

_REGISTRY: dict[str, RpcFn] = {}


def rpc_function(name: str) -> Callable[[RpcFn], RpcFn]:
    def deco(fn: RpcFn) -> RpcFn:
        _REGISTRY[name] = fn
        return fn

    return deco


def registered() -> list[str]:
    return sorted(_REGISTRY)


def call_rpc(db: Session, name: str, **args: Any) -> Any:
    fn = _REGISTRY.get(name)
    if fn is None:
        raise RowStoreError(FUNCTION_NOT_FOUND, f"Could not find the function public.{name}")
    return fn(db, **args)


def _ensure_counter(db: Session, tenant_id: str) -> None:
    """Create the tenant's counter row if missing; racing creators are no-ops."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(TicketCounter).values(tenant_id=tenant_id, last_number=0)
    elif dialect == "sqlite":
        stmt = sqlite_insert(TicketCounter).values(tenant_id=tenant_id, last_number=0)
    else:
        if db.get(TicketCounter, tenant_id) is None:
            db.add(TicketCounter(tenant_id=tenant_id, last_number=0))
            db.flush()
        return
    db.execute(stmt.on_conflict_do_nothing(index_elements=[TicketCounter.tenant_id]))


@rpc_function("generate_ticket_number")
def generate_ticket_number(db: Session, *, tenant_id: str) -> str:
    """
    Next ticket number for a tenant, zero-padded.

    The counter row is created idempotently and then locked (FOR UPDATE on
    Postgres) so two concurrent inserts never receive the same number, even
    for a tenant's first ticket. Flush-only; the caller commits.
    """
    _ensure_counter(db, tenant_id)
    counter = db.scalars(
        select(TicketCounter)
        .where(TicketCounter.tenant_id == tenant_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).one()

    counter.last_number = int(counter.last_number or 0) + 1
    db.flush()
    return f"{counter.last_number:06d}"


@rpc_function("get_tenant_citizens")
def get_tenant_citizens(db: Session, *, tenant_id: str) -> list[dict[str, Any]]:
    rows = db.scalars(
        select(Profile)
        .where(
            Profile.tenant_id == tenant_id,
            Profile.role == roles.CITIZEN,
            Profile.active.is_(True),
        )
        .order_by(Profile.full_name)
    ).all()
    return [{"id": r.id, "tenant_id": r.tenant_id, "full_name": r.full_name} for r in rows]
