# gabinete/routers/comments.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import CommentCreate, CommentOut
from ..services import comments_service

router = APIRouter(prefix="/tickets/{ticket_id}/comments", tags=["comments"])


@router.get("", response_model=list[CommentOut])
def list_comments(ticket_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return comments_service.list_comments(db, p, ticket_id)


@router.post("", response_model=CommentOut, status_code=201)
def add_comment(
    ticket_id: str,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return comments_service.add_comment(db, p, ticket_id, message=payload.message, is_public=payload.is_public)
