# gabinete/routers/categories.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..domain import roles
from ..errors import AuthorizationError, ConflictError, log_error
from ..models import Category, Ticket
from ..schemas import CategoryCreate, CategoryOut
from ..services.ownership import must_get_category

router = APIRouter(prefix="/categories", tags=["categories"])


def _require_manager(p: Principal) -> None:
    if not roles.can_manage_categories(p.role):
        raise AuthorizationError("managing categories requires staff role")


def _commit(db: Session, context: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise log_error(e, context) from e


@router.get("", response_model=list[CategoryOut])
def list_categories(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    q = select(Category).where(Category.tenant_id == p.tenant_id)
    if not (include_inactive and p.is_staff):
        q = q.where(Category.active.is_(True))
    q = q.order_by(Category.display_order.asc(), Category.name.asc())
    return list(db.scalars(q).all())


@router.post("", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    _require_manager(p)
    row = Category(tenant_id=p.tenant_id, **payload.model_dump())
    row.name = row.name.strip()
    db.add(row)
    _commit(db, "categories.create")
    return row


@router.put("/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: str,
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    _require_manager(p)
    row = must_get_category(db, tenant_id=p.tenant_id, category_id=category_id)
    for k, v in payload.model_dump().items():
        setattr(row, k, v)
    row.name = row.name.strip()
    db.add(row)
    _commit(db, "categories.update")
    return row


@router.delete("/{category_id}")
def delete_category(category_id: str, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    _require_manager(p)
    row = must_get_category(db, tenant_id=p.tenant_id, category_id=category_id)

    in_use = db.scalar(select(func.count(Ticket.id)).where(Ticket.category_id == row.id)) or 0
    if in_use:
        raise ConflictError(
            f"category {category_id} referenced by {in_use} tickets",
            "This category is in use by tickets and cannot be deleted. Deactivate it instead.",
            code="CATEGORY_IN_USE",
        )

    db.delete(row)
    _commit(db, "categories.delete")
    return {"ok": True}
