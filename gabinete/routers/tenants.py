# gabinete/routers/tenants.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..domain import roles
from ..domain.theme import build_theme, normalize_hex
from ..errors import AuthorizationError, NotFoundError
from ..models import Tenant
from ..schemas import TenantOut, TenantUpdate, ThemeOut
from ..services.storage_service import LOGOS, get_storage, read_uploads, upload_images

router = APIRouter(prefix="/tenants", tags=["tenants"])


def _current(db: Session, p: Principal) -> Tenant:
    row = db.get(Tenant, p.tenant_id)
    if row is None:
        raise NotFoundError("Office")
    return row


def _by_slug(db: Session, slug: str) -> Tenant:
    row = db.scalar(select(Tenant).where(Tenant.slug == slug, Tenant.active.is_(True)))
    if row is None:
        raise NotFoundError("Office")
    return row


def _require_settings(p: Principal) -> None:
    if not roles.can_manage_settings(p.role):
        raise AuthorizationError("office settings require politician or admin role")


@router.get("/current", response_model=TenantOut)
def current_tenant(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return _current(db, p)


@router.patch("/current", response_model=TenantOut)
def update_current_tenant(payload: TenantUpdate, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    _require_settings(p)
    row = _current(db, p)

    data = payload.model_dump(exclude_unset=True)
    if data.get("name") is not None:
        row.name = data["name"].strip()
    if data.get("primary_color") is not None:
        row.primary_color = normalize_hex(data["primary_color"])
    if data.get("secondary_color") is not None:
        row.secondary_color = normalize_hex(data["secondary_color"])
    if "logo_url" in data:
        row.logo_url = data["logo_url"] or None
    if data.get("contact") is not None:
        row.contact = {k: v for k, v in data["contact"].items() if v}

    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    return row


@router.post("/current/logo", response_model=TenantOut)
def upload_logo(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    _require_settings(p)
    row = _current(db, p)
    urls = upload_images(get_storage(), tenant_id=p.tenant_id, user_id=p.user_id, category=LOGOS, files=read_uploads([file]))
    row.logo_url = urls[0]
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    return row


@router.get("/current/theme", response_model=ThemeOut)
def current_theme(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = _current(db, p)
    return build_theme(row.primary_color, row.secondary_color).as_dict()


@router.get("/public/{slug}", response_model=TenantOut)
def public_tenant(slug: str, db: Session = Depends(get_db)):
    return _by_slug(db, slug)


@router.get("/public/{slug}/theme", response_model=ThemeOut)
def public_theme(slug: str, db: Session = Depends(get_db)):
    row = _by_slug(db, slug)
    return build_theme(row.primary_color, row.secondary_color).as_dict()
