# gabinete/routers/preferences.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import PreferenceIn, PreferenceOut
from ..viewstate.preferences import PreferenceStore, SqlPreferenceBackend

router = APIRouter(prefix="/preferences", tags=["preferences"])


def _store(db: Session, p: Principal) -> PreferenceStore:
    return PreferenceStore(SqlPreferenceBackend(db, p.user_id))


@router.get("/{key}", response_model=PreferenceOut)
def get_preference(key: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return {"key": key, "value": _store(db, p).get(key)}


@router.put("/{key}", response_model=PreferenceOut)
def put_preference(
    key: str,
    payload: PreferenceIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    store = _store(db, p)
    store.set(key, payload.value)
    return {"key": key, "value": store.get(key)}


@router.post("/{key}/toggle", response_model=PreferenceOut)
def toggle_preference(key: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return {"key": key, "value": _store(db, p).toggle(key)}
