# gabinete/routers/users.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_admin, require_staff
from ..config import settings
from ..db import get_db
from ..domain import roles
from ..errors import AuthorizationError, ValidationError, log_error
from ..models import Profile
from ..schemas import ProfileOut, ProfileStatusUpdate, ProfileUpdate, RoleUpdate, UserCountsOut
from ..services.ownership import must_get_profile

router = APIRouter(prefix="/users", tags=["users"])


def _commit(db: Session, context: str, user_id: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise log_error(e, context, user_id=user_id) from e


def _known_role(role: str) -> str:
    if role not in roles.ROLES:
        raise ValidationError(f"unknown role {role!r}", "Unknown role.")
    return role


@router.get("/me", response_model=ProfileOut)
def me(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return must_get_profile(db, tenant_id=p.tenant_id, profile_id=p.user_id)


@router.get("", response_model=list[ProfileOut])
def list_users(
    response: Response,
    role: Optional[str] = None,
    search: Optional[str] = None,
    include_inactive: bool = False,
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_staff),
):
    """Newest first. The unpaginated match count is sent as X-Total-Count."""
    q = select(Profile).where(Profile.tenant_id == p.tenant_id)
    if role:
        q = q.where(Profile.role == _known_role(role))
    term = (search or "").strip()
    if term:
        q = q.where(Profile.full_name.icontains(term, autoescape=True))
    if not include_inactive:
        q = q.where(Profile.active.is_(True))

    total = db.scalar(select(func.count()).select_from(q.subquery())) or 0
    response.headers["X-Total-Count"] = str(total)

    q = q.order_by(Profile.created_at.desc(), Profile.id.asc()).limit(limit).offset(offset)
    return list(db.scalars(q).all())


@router.get("/counts", response_model=UserCountsOut)
def counts_by_role(db: Session = Depends(get_db), p: Principal = Depends(require_staff)):
    rows = db.execute(
        select(Profile.role, func.count(Profile.id))
        .where(Profile.tenant_id == p.tenant_id, Profile.active.is_(True))
        .group_by(Profile.role)
    ).all()
    out = {role: int(n) for role, n in rows}
    out["total"] = sum(out.values())
    return out


@router.patch("/{user_id}", response_model=ProfileOut)
def update_user(
    user_id: str,
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    if user_id != p.user_id and not roles.can_manage_users(p.role):
        raise AuthorizationError("editing another profile requires admin role")

    row = must_get_profile(db, tenant_id=p.tenant_id, profile_id=user_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("full_name") is not None:
        row.full_name = data["full_name"].strip()
    if "phone" in data:
        row.phone = (data["phone"] or "").strip() or None
    if "avatar_url" in data:
        row.avatar_url = data["avatar_url"] or None

    row.updated_at = datetime.utcnow()
    db.add(row)
    _commit(db, "users.update", user_id)
    return row


@router.put("/{user_id}/role", response_model=ProfileOut)
def change_role(
    user_id: str,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    _known_role(payload.role)
    if user_id == p.user_id and payload.role != roles.ADMIN:
        raise ValidationError("admin demoting self", "You cannot remove your own admin role.")

    row = must_get_profile(db, tenant_id=p.tenant_id, profile_id=user_id)
    row.role = payload.role
    row.updated_at = datetime.utcnow()
    db.add(row)
    _commit(db, "users.change_role", user_id)
    return row


@router.put("/{user_id}/status", response_model=ProfileOut)
def set_status(
    user_id: str,
    payload: ProfileStatusUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    """Soft (de)activation; profiles are never hard-deleted."""
    if user_id == p.user_id and not payload.active:
        raise ValidationError("admin deactivating self", "You cannot deactivate your own account.")

    row = must_get_profile(db, tenant_id=p.tenant_id, profile_id=user_id)
    row.active = payload.active
    row.updated_at = datetime.utcnow()
    db.add(row)
    _commit(db, "users.set_status", user_id)
    return row
