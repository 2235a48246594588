# gabinete/services/tickets_service.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import Principal
from ..config import settings
from ..domain import roles
from ..domain.ticket_lifecycle import NEW, STATUS_LABELS, check_transition, validate_priority
from ..errors import AuthorizationError, ValidationError, log_error
from ..models import Category, Profile, Ticket
from . import notifications_service as notifications
from .ownership import must_get_category, must_get_ticket
from .rpc import call_rpc
from .storage_service import TICKETS, ObjectStorage, StorageError, UploadedFile, upload_images

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.utcnow()


def _commit(db: Session, context: str, **extra: Any) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise log_error(e, context, **extra) from e


def _active_category(db: Session, *, tenant_id: str, category_id: Optional[str]) -> Optional[Category]:
    if not category_id:
        return None
    cat = must_get_category(db, tenant_id=tenant_id, category_id=category_id)
    if not cat.active:
        raise ValidationError(f"category {category_id} inactive", "This category is no longer available.")
    return cat


def _location(loc: Any) -> Optional[dict[str, Any]]:
    if loc is None:
        return None
    data = loc.model_dump() if hasattr(loc, "model_dump") else dict(loc)
    cleaned = {k: v for k, v in data.items() if v not in (None, "")}
    return cleaned or None


# -------------------------
# Create / edit
# -------------------------
def create_ticket(
    db: Session,
    principal: Principal,
    *,
    title: str,
    description: str,
    category_id: Optional[str] = None,
    priority: str = "medium",
    location: Any = None,
    photos: Optional[list[str]] = None,
    reporter_id: Optional[str] = None,
) -> Ticket:
    """
    File a ticket. Citizens file for themselves; staff may file on behalf of a
    citizen of the same tenant.
    """
    effective_reporter = principal.user_id
    if reporter_id and reporter_id != principal.user_id:
        if not principal.is_staff:
            raise AuthorizationError("citizens cannot file tickets for others")
        reporter = db.scalar(
            select(Profile).where(Profile.id == reporter_id, Profile.tenant_id == principal.tenant_id)
        )
        if reporter is None or not reporter.active:
            raise ValidationError(f"reporter {reporter_id} not in tenant", "Reporter not found in this office.")
        effective_reporter = reporter.id

    _active_category(db, tenant_id=principal.tenant_id, category_id=category_id)
    if photos and len(photos) > settings.upload_max_files:
        raise ValidationError("too many photos", f"At most {settings.upload_max_files} photos per ticket.")

    try:
        number = call_rpc(db, "generate_ticket_number", tenant_id=principal.tenant_id)
    except Exception as e:
        db.rollback()
        raise log_error(e, "tickets.create_ticket.generate_number", tenant_id=principal.tenant_id) from e

    now = _utcnow()
    row = Ticket(
        tenant_id=principal.tenant_id,
        reporter_id=effective_reporter,
        ticket_number=number,
        title=title.strip(),
        description=description.strip(),
        category_id=category_id or None,
        status=NEW,
        priority=validate_priority(priority),
        location=_location(location),
        photos=list(photos or []),
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    _commit(db, "tickets.create_ticket", tenant_id=principal.tenant_id)

    log.info(
        "ticket created",
        extra={"tenant_id": principal.tenant_id, "user_id": principal.user_id, "ticket_id": row.id},
    )
    return must_get_ticket(db, principal=principal, ticket_id=row.id)


def update_ticket(db: Session, principal: Principal, ticket_id: str, changes: dict[str, Any]) -> Ticket:
    """
    Edit descriptive fields. Reporters may edit their own ticket while it is
    still new; staff may edit any ticket of the tenant. Priority is staff-only.
    """
    row = must_get_ticket(db, principal=principal, ticket_id=ticket_id)

    if not principal.is_staff:
        if row.reporter_id != principal.user_id or row.status != NEW:
            raise AuthorizationError("ticket no longer editable by reporter")
        if changes.get("priority") is not None:
            raise AuthorizationError("priority is staff-only")

    if "title" in changes and changes["title"] is not None:
        row.title = str(changes["title"]).strip()
    if "description" in changes and changes["description"] is not None:
        row.description = str(changes["description"]).strip()
    if "category_id" in changes:
        cid = changes["category_id"] or None
        _active_category(db, tenant_id=principal.tenant_id, category_id=cid)
        row.category_id = cid
    if changes.get("priority") is not None:
        row.priority = validate_priority(changes["priority"])
    if "location" in changes:
        row.location = _location(changes["location"])

    row.updated_at = _utcnow()
    db.add(row)
    _commit(db, "tickets.update_ticket", ticket_id=ticket_id)
    return must_get_ticket(db, principal=principal, ticket_id=ticket_id)


def delete_ticket(db: Session, principal: Principal, ticket_id: str, storage: Optional[ObjectStorage] = None) -> None:
    if not roles.can_delete_ticket(principal.role):
        raise AuthorizationError("delete requires admin role")

    row = must_get_ticket(db, principal=principal, ticket_id=ticket_id)
    photos = list(row.photos or [])

    db.delete(row)
    _commit(db, "tickets.delete_ticket", ticket_id=ticket_id)

    if storage is not None and photos and hasattr(storage, "path_from_public_url"):
        paths = [p for p in (storage.path_from_public_url(settings.storage_bucket, u) for u in photos) if p]
        try:
            storage.remove(settings.storage_bucket, paths)
        except StorageError as e:
            # the row is already gone; orphaned files are left for cleanup
            log_error(e, "tickets.delete_ticket.photos", ticket_id=ticket_id)


# -------------------------
# Status + assignment
# -------------------------
def change_status(db: Session, principal: Principal, ticket_id: str, new_status: str) -> tuple[Ticket, bool]:
    """
    Returns (ticket, changed). Same-status requests are a no-op: nothing is
    written and `changed` is False.
    """
    if not roles.can_change_status(principal.role):
        raise AuthorizationError("status changes require staff role")

    row = must_get_ticket(db, principal=principal, ticket_id=ticket_id)
    old_status = row.status
    if not check_transition(old_status, new_status):
        log.info(
            "status unchanged; skipping update",
            extra={"ticket_id": ticket_id, "context": f"status={old_status}"},
        )
        return row, False

    row.status = new_status
    row.updated_at = _utcnow()
    db.add(row)

    if row.reporter_id != principal.user_id:
        notifications.notify(
            db,
            tenant_id=row.tenant_id,
            recipient_id=row.reporter_id,
            title=f"Ticket #{row.ticket_number} updated",
            message=f"Status changed to {STATUS_LABELS[new_status]}.",
            type=notifications.TICKET_UPDATED,
            meta={"ticket_id": row.id, "from": old_status, "to": new_status},
        )

    _commit(db, "tickets.change_status", ticket_id=ticket_id)
    log.info(
        "ticket status changed",
        extra={
            "tenant_id": principal.tenant_id,
            "user_id": principal.user_id,
            "ticket_id": ticket_id,
            "context": f"{old_status}->{new_status}",
        },
    )
    return must_get_ticket(db, principal=principal, ticket_id=ticket_id), True


def assign_ticket(db: Session, principal: Principal, ticket_id: str, assignee_id: Optional[str]) -> Ticket:
    """Set or clear the assignee. The assignee must be active staff of the same tenant."""
    if not roles.can_assign(principal.role):
        raise AuthorizationError("assignment requires staff role")

    row = must_get_ticket(db, principal=principal, ticket_id=ticket_id)

    if assignee_id:
        staff = db.scalar(
            select(Profile).where(Profile.id == assignee_id, Profile.tenant_id == principal.tenant_id)
        )
        if staff is None or not staff.active or not roles.is_staff(staff.role):
            raise ValidationError(f"assignee {assignee_id} is not staff", "Tickets can only be assigned to staff.")

    if row.assignee_id == (assignee_id or None):
        return row

    row.assignee_id = assignee_id or None
    row.updated_at = _utcnow()
    db.add(row)
    _commit(db, "tickets.assign_ticket", ticket_id=ticket_id)
    return must_get_ticket(db, principal=principal, ticket_id=ticket_id)


def assign_to_self(db: Session, principal: Principal, ticket_id: str) -> Ticket:
    return assign_ticket(db, principal, ticket_id, principal.user_id)


def unassign(db: Session, principal: Principal, ticket_id: str) -> Ticket:
    return assign_ticket(db, principal, ticket_id, None)


def list_staff_members(db: Session, principal: Principal) -> list[Profile]:
    q = (
        select(Profile)
        .where(
            Profile.tenant_id == principal.tenant_id,
            Profile.role.in_(sorted(roles.STAFF_ROLES)),
            Profile.active.is_(True),
        )
        .order_by(Profile.full_name)
    )
    return list(db.scalars(q).all())


# -------------------------
# Photos
# -------------------------
def attach_photos(
    db: Session,
    principal: Principal,
    ticket_id: str,
    files: list[UploadedFile],
    storage: ObjectStorage,
) -> Ticket:
    row = must_get_ticket(db, principal=principal, ticket_id=ticket_id)
    if not files:
        return row

    existing = list(row.photos or [])
    if len(existing) + len(files) > settings.upload_max_files:
        raise ValidationError("too many photos", f"At most {settings.upload_max_files} photos per ticket.")

    urls = upload_images(
        storage,
        tenant_id=principal.tenant_id,
        user_id=principal.user_id,
        category=TICKETS,
        files=files,
    )

    row.photos = existing + urls
    row.updated_at = _utcnow()
    db.add(row)
    _commit(db, "tickets.attach_photos", ticket_id=ticket_id)
    return must_get_ticket(db, principal=principal, ticket_id=ticket_id)
