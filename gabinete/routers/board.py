# gabinete/routers/board.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..errors import AuthorizationError
from ..schemas import BoardMove, BoardMoveOut, BoardOut
from ..viewstate.gateways import SessionTicketGateway
from ..viewstate.kanban import DISABLED, KanbanBoard

router = APIRouter(prefix="/board", tags=["board"])


def _board(db: Session, p: Principal) -> KanbanBoard:
    board = KanbanBoard(SessionTicketGateway(db, p), p.role)
    board.load()
    return board


@router.get("", response_model=BoardOut)
def get_board(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    board = _board(db, p)
    return {"columns": board.snapshot(), "can_drag": board.can_drag}


@router.post("/move", response_model=BoardMoveOut)
def move_card(payload: BoardMove, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    board = _board(db, p)
    result = board.move(payload.ticket_id, column=payload.over_column, over_ticket_id=payload.over_ticket_id)
    if result.outcome == DISABLED:
        raise AuthorizationError("board drag requires staff role")

    body = BoardMoveOut(
        outcome=result.outcome,
        ticket_id=payload.ticket_id,
        from_status=result.from_status,
        to_status=result.to_status,
        error=result.error.user_message if result.error else None,
        columns=board.snapshot(),
    )
    if result.error is not None:
        return JSONResponse(status_code=result.error.status_code, content=body.model_dump(mode="json"))
    return body
