# gabinete/routers/events.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..domain import roles
from ..domain.clock import to_utc_naive
from ..errors import AuthorizationError, NotFoundError, ValidationError, log_error
from ..models import Event, Tenant
from ..schemas import EventCreate, EventOut
from ..services.ownership import must_get_event
from ..services.storage_service import EVENTS, get_storage, read_uploads, upload_images

router = APIRouter(prefix="/events", tags=["events"])


def _require_agenda(p: Principal) -> None:
    if not roles.can_manage_agenda(p.role):
        raise AuthorizationError("managing the agenda requires staff role")


def _commit(db: Session, context: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise log_error(e, context) from e


def _in_range(q, start: Optional[datetime], end: Optional[datetime]):
    start, end = to_utc_naive(start), to_utc_naive(end)
    if start and end and end < start:
        raise ValidationError("end before start", "The end date cannot be before the start date.")
    if start:
        q = q.where(Event.ends_at >= start)
    if end:
        q = q.where(Event.starts_at <= end)
    return q


@router.get("/public/{tenant_slug}", response_model=list[EventOut])
def public_agenda(
    tenant_slug: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    """Published events only; no authentication."""
    tenant = db.scalar(select(Tenant).where(Tenant.slug == tenant_slug, Tenant.active.is_(True)))
    if tenant is None:
        raise NotFoundError("Office")

    q = select(Event).where(Event.tenant_id == tenant.id, Event.published.is_(True))
    q = _in_range(q, start, end).order_by(Event.starts_at.asc())
    return list(db.scalars(q).all())


@router.get("", response_model=list[EventOut])
def list_events(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    q = select(Event).where(Event.tenant_id == p.tenant_id)
    if not p.is_staff:
        q = q.where(Event.published.is_(True))
    q = _in_range(q, start, end).order_by(Event.starts_at.asc())
    return list(db.scalars(q).all())


@router.post("", response_model=EventOut, status_code=201)
def create_event(payload: EventCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    _require_agenda(p)
    now = datetime.utcnow()
    row = Event(tenant_id=p.tenant_id, **payload.model_dump(), created_at=now, updated_at=now)
    db.add(row)
    _commit(db, "events.create")
    return row


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = must_get_event(db, tenant_id=p.tenant_id, event_id=event_id)
    if not row.published and not p.is_staff:
        raise NotFoundError("Event")
    return row


@router.put("/{event_id}", response_model=EventOut)
def update_event(
    event_id: str,
    payload: EventCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    _require_agenda(p)
    row = must_get_event(db, tenant_id=p.tenant_id, event_id=event_id)
    for k, v in payload.model_dump().items():
        setattr(row, k, v)
    row.updated_at = datetime.utcnow()
    db.add(row)
    _commit(db, "events.update")
    return row


@router.delete("/{event_id}")
def delete_event(event_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    _require_agenda(p)
    row = must_get_event(db, tenant_id=p.tenant_id, event_id=event_id)
    db.delete(row)
    _commit(db, "events.delete")
    return {"ok": True}


@router.post("/{event_id}/banner", response_model=EventOut)
def upload_banner(
    event_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    _require_agenda(p)
    row = must_get_event(db, tenant_id=p.tenant_id, event_id=event_id)
    urls = upload_images(
        get_storage(),
        tenant_id=p.tenant_id,
        user_id=p.user_id,
        category=EVENTS,
        files=read_uploads([file]),
    )
    row.banner_url = urls[0]
    row.updated_at = datetime.utcnow()
    db.add(row)
    _commit(db, "events.upload_banner")
    return row
