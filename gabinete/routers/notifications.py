# gabinete/routers/notifications.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import (
    BroadcastIn,
    BroadcastOut,
    MarkAllReadIn,
    MarkAllReadOut,
    NotificationListOut,
    NotificationOut,
)
from ..services import notifications_service as svc

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListOut)
def list_notifications(
    audience: Optional[str] = None,
    read: str = svc.READ_ALL,
    sort: str = "desc",
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    items = svc.list_notifications(db, p, audience=audience, read_filter=read, sort=sort)
    return {"items": items, "unread_count": svc.unread_count(items)}


@router.get("/unread", response_model=NotificationListOut)
def list_unread(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    items = svc.list_unread(db, p)
    return {"items": items, "unread_count": len(items)}


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.mark_read(db, p, notification_id)


@router.post("/{notification_id}/toggle", response_model=NotificationOut)
def toggle_read(notification_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return svc.toggle_read(db, p, notification_id)


@router.post("/read-all", response_model=MarkAllReadOut)
def mark_all_read(
    payload: Optional[MarkAllReadIn] = None,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    updated = svc.mark_all_read(db, p, payload.ids if payload else None)
    return {"updated_ids": updated, "unread_count": len(svc.list_unread(db, p))}


@router.post("/broadcast", response_model=BroadcastOut)
def broadcast(payload: BroadcastIn, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return {"recipients": svc.broadcast(db, p, title=payload.title, message=payload.message)}
