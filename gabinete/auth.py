# gabinete/auth.py
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, Header, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .domain import roles
from .errors import AuthenticationError, AuthorizationError
from .models import Profile, Tenant


@dataclass(frozen=True)
class Principal:
    tenant_id: str
    tenant_slug: str
    user_id: str
    email: str
    role: str  # citizen | aide | politician | admin

    @property
    def is_staff(self) -> bool:
        return roles.is_staff(self.role)

    @property
    def is_citizen(self) -> bool:
        return not self.is_staff


# -------------------------
# Token helpers (HS256)
# -------------------------
def _b64(x: bytes) -> str:
    return base64.urlsafe_b64encode(x).decode().rstrip("=")


def _ub64(s: str) -> bytes:
    return base64.urlsafe_b64decode((s + "=" * (-len(s) % 4)).encode())


def issue_token(user_id: str, *, expires_in: timedelta = timedelta(days=7)) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    payload = {"sub": str(user_id), "exp": int((datetime.utcnow() + expires_in).timestamp())}
    header_b = _b64(json.dumps(header, separators=(",", ":")).encode())
    payload_b = _b64(json.dumps(payload, separators=(",", ":")).encode())
    msg = f"{header_b}.{payload_b}".encode()
    sig = hmac.new(settings.jwt_secret.encode(), msg, hashlib.sha256).digest()
    return f"{header_b}.{payload_b}.{_b64(sig)}"


def verify_token(token: str) -> dict[str, Any]:
    try:
        header_b, payload_b, sig_b = token.split(".", 2)
        msg = f"{header_b}.{payload_b}".encode()
        expected = hmac.new(settings.jwt_secret.encode(), msg, hashlib.sha256).digest()
        if not hmac.compare_digest(_ub64(sig_b), expected):
            raise AuthenticationError("invalid token signature")

        payload = json.loads(_ub64(payload_b).decode())
    except AuthenticationError:
        raise
    except (ValueError, TypeError) as e:
        raise AuthenticationError("invalid token") from e

    exp = payload.get("exp")
    if exp is not None and int(exp) < int(datetime.utcnow().timestamp()):
        raise AuthenticationError("token expired")
    return dict(payload)


# -------------------------
# Tenant + profile helpers
# -------------------------
def _resolve_tenant(db: Session, tenant_slug: str) -> Tenant:
    tenant = db.scalar(select(Tenant).where(Tenant.slug == tenant_slug))
    if tenant is None or not tenant.active:
        raise AuthenticationError(f"unknown tenant {tenant_slug!r}")
    return tenant


def _principal_from_profile(db: Session, *, tenant: Tenant, profile: Profile) -> Principal:
    if not profile.active:
        raise AuthenticationError("profile deactivated")

    if profile.tenant_id is None:
        # Unaffiliated citizens are linked to the first office they reach.
        if roles.is_staff(profile.role):
            raise AuthorizationError("staff profile without tenant")
        profile.tenant_id = tenant.id
        profile.updated_at = datetime.utcnow()
        db.add(profile)
        db.commit()
    elif profile.tenant_id != tenant.id:
        raise AuthorizationError("not a member of this tenant")

    return Principal(
        tenant_id=str(tenant.id),
        tenant_slug=str(tenant.slug),
        user_id=str(profile.id),
        email=str(profile.email),
        role=roles.normalize_role(profile.role),
    )


def _dev_principal(db: Session, request: Request, tenant_slug: str) -> Principal:
    email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower()
    role_hint = roles.normalize_role(request.headers.get(settings.dev_header_user_role) or roles.CITIZEN)
    if not email:
        raise AuthenticationError(f"missing {settings.dev_header_user_email} for dev auth")

    tenant = db.scalar(select(Tenant).where(Tenant.slug == tenant_slug))
    if tenant is None and settings.dev_auto_provision:
        tenant = Tenant(slug=tenant_slug, name=tenant_slug)
        db.add(tenant)
        db.commit()

    profile = db.scalar(select(Profile).where(Profile.email == email))
    if profile is None and settings.dev_auto_provision and tenant is not None:
        profile = Profile(
            email=email,
            full_name=email.split("@")[0],
            role=role_hint,
            tenant_id=tenant.id,
        )
        db.add(profile)
        db.commit()

    if tenant is None or profile is None:
        raise AuthenticationError("dev auth could not provision tenant/profile")

    return _principal_from_profile(db, tenant=_resolve_tenant(db, tenant_slug), profile=profile)


def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    x_tenant_slug: Optional[str] = Header(default=None, alias="X-Tenant-Slug"),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes supported (in priority order):
      1) token in cookie OR Authorization: Bearer <token>
      2) dev header spoofing (ONLY if settings.auth_mode == "dev")
    """
    tenant_slug = str(x_tenant_slug or "").strip()
    if not tenant_slug:
        raise AuthenticationError("missing X-Tenant-Slug (active tenant context)")

    token = request.cookies.get(settings.jwt_cookie_name) if settings.jwt_cookie_name else None
    if not token and authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()

    if token:
        claims = verify_token(token)
        sub = str(claims.get("sub") or "")
        if not sub:
            raise AuthenticationError("token missing sub")

        profile = db.get(Profile, sub)
        if profile is None:
            raise AuthenticationError("unknown user")

        return _principal_from_profile(db, tenant=_resolve_tenant(db, tenant_slug), profile=profile)

    if settings.auth_mode == "dev":
        return _dev_principal(db, request, tenant_slug)

    raise AuthenticationError()


def require_staff(p: Principal = Depends(get_principal)) -> Principal:
    if not roles.is_staff(p.role):
        raise AuthorizationError("requires staff role")
    return p


def require_admin(p: Principal = Depends(get_principal)) -> Principal:
    if not roles.can_manage_users(p.role):
        raise AuthorizationError("requires admin role")
    return p
