# gabinete/routers/tickets.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_staff
from ..config import settings
from ..db import get_db
from ..schemas import (
    AssignChange,
    ProfileSummary,
    StatusChange,
    StatusChangeOut,
    TicketCountsOut,
    TicketCreate,
    TicketOut,
    TicketUpdate,
)
from ..services import tickets_service
from ..services.storage_service import get_storage, read_uploads
from ..services.ticket_query import TicketFilters, count_tickets, get_ticket, list_tickets

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.get("", response_model=list[TicketOut])
def list_tickets_route(
    status: Optional[List[str]] = Query(default=None),
    reporter_id: Optional[str] = None,
    category_id: Optional[str] = None,
    search: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    order_by: str = "created_at",
    ascending: bool = False,
    limit: int = Query(default=settings.tickets_per_page, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    filters = TicketFilters(
        status=status or None,
        reporter_id=reporter_id,
        category_id=category_id,
        search=search,
        start_date=start_date,
        end_date=end_date,
    )
    return list_tickets(db, p, filters, order_by=order_by, ascending=ascending, limit=limit, offset=offset)


@router.get("/counts", response_model=TicketCountsOut)
def ticket_counts(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return count_tickets(db, p)


@router.get("/staff", response_model=list[ProfileSummary])
def staff_members(db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    return tickets_service.list_staff_members(db, p)


@router.post("", response_model=TicketOut, status_code=201)
def create_ticket(payload: TicketCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return tickets_service.create_ticket(
        db,
        p,
        title=payload.title,
        description=payload.description,
        category_id=payload.category_id,
        priority=payload.priority,
        location=payload.location,
        reporter_id=payload.reporter_id,
    )


@router.get("/{ticket_id}", response_model=TicketOut)
def get_ticket_route(ticket_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return get_ticket(db, p, ticket_id)


@router.patch("/{ticket_id}", response_model=TicketOut)
def update_ticket(
    ticket_id: str,
    payload: TicketUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return tickets_service.update_ticket(db, p, ticket_id, payload.model_dump(exclude_unset=True))


@router.delete("/{ticket_id}")
def delete_ticket(ticket_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    tickets_service.delete_ticket(db, p, ticket_id, storage=get_storage())
    return {"ok": True}


@router.post("/{ticket_id}/status", response_model=StatusChangeOut)
def change_status(
    ticket_id: str,
    payload: StatusChange,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row, changed = tickets_service.change_status(db, p, ticket_id, payload.status)
    return {"changed": changed, "ticket": row}


@router.post("/{ticket_id}/assign", response_model=TicketOut)
def assign(
    ticket_id: str,
    payload: AssignChange,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return tickets_service.assign_ticket(db, p, ticket_id, payload.assignee_id)


@router.post("/{ticket_id}/assign/self", response_model=TicketOut)
def assign_self(ticket_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return tickets_service.assign_to_self(db, p, ticket_id)


@router.post("/{ticket_id}/unassign", response_model=TicketOut)
def unassign(ticket_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return tickets_service.unassign(db, p, ticket_id)


@router.post("/{ticket_id}/photos", response_model=TicketOut)
def upload_photos(
    ticket_id: str,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return tickets_service.attach_photos(db, p, ticket_id, read_uploads(files), get_storage())
