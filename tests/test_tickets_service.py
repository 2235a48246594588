# tests/test_tickets_service.py
from __future__ import annotations

from unittest import mock

import pytest
from sqlalchemy import select

from gabinete.errors import AuthorizationError, InvalidTransitionError, NotFoundError, ValidationError
from gabinete.models import Category, Notification, Ticket, TicketCounter
from gabinete.services import comments_service, rpc, tickets_service
from gabinete.services.storage_service import StorageError


def _office(mk):
    t = mk.tenant("office-a")
    citizen = mk.profile(t, "u1")
    aide = mk.profile(t, "s1", role="aide")
    admin = mk.profile(t, "adm", role="admin")
    return t, citizen, aide, admin


def _file(db, p, **kw):
    return tickets_service.create_ticket(
        db,
        p,
        title=kw.pop("title", "Street light out"),
        description=kw.pop("description", "The light on the corner has been out for a week."),
        **kw,
    )


def test_ticket_numbers_are_sequential_per_tenant(db, mk, as_principal):
    t, citizen, *_ = _office(mk)
    other = mk.tenant("office-b")
    other_citizen = mk.profile(other, "x1")

    first = _file(db, as_principal(citizen, t))
    second = _file(db, as_principal(citizen, t))
    elsewhere = _file(db, as_principal(other_citizen, other))

    assert (first.ticket_number, second.ticket_number) == ("000001", "000002")
    assert elsewhere.ticket_number == "000001"
    assert first.status == "new"
    assert first.reporter_id == "u1"


def test_staff_may_file_on_behalf_of_citizen_but_citizens_may_not(db, mk, as_principal):
    t, citizen, aide, _admin = _office(mk)
    neighbour = mk.profile(t, "u2")

    row = _file(db, as_principal(aide, t), reporter_id=citizen.id)
    assert row.reporter_id == citizen.id

    with pytest.raises(AuthorizationError):
        _file(db, as_principal(citizen, t), reporter_id=neighbour.id)


def test_inactive_category_rejected(db, mk, as_principal):
    t, citizen, *_ = _office(mk)
    cat = Category(tenant_id=t.id, name="Old", active=False)
    db.add(cat)
    db.commit()

    with pytest.raises(ValidationError):
        _file(db, as_principal(citizen, t), category_id=cat.id)


def test_status_change_notifies_reporter(db, mk, as_principal):
    t, citizen, aide, _admin = _office(mk)
    mk.ticket(t, citizen, "t1")

    row, changed = tickets_service.change_status(db, as_principal(aide, t), "t1", "in_progress")
    assert changed is True
    assert row.status == "in_progress"
    assert row.resolved_at is None

    notes = db.scalars(select(Notification).where(Notification.recipient_id == citizen.id)).all()
    assert len(notes) == 1
    assert notes[0].type == "ticket_updated"
    assert notes[0].meta == {"ticket_id": "t1", "from": "new", "to": "in_progress"}


def test_same_status_issues_no_write(db, mk, as_principal):
    t, citizen, aide, _admin = _office(mk)
    mk.ticket(t, citizen, "t1", status="under_review")

    with mock.patch.object(db, "commit") as commit:
        row, changed = tickets_service.change_status(db, as_principal(aide, t), "t1", "under_review")

    assert changed is False
    assert row.status == "under_review"
    commit.assert_not_called()
    assert db.scalars(select(Notification)).all() == []


def test_resolving_does_not_stamp_timestamps(db, mk, as_principal):
    t, citizen, aide, _admin = _office(mk)
    mk.ticket(t, citizen, "t1")

    row, _ = tickets_service.change_status(db, as_principal(aide, t), "t1", "closed")
    assert row.closed_at is None and row.resolved_at is None


def test_terminal_status_cannot_be_reopened(db, mk, as_principal):
    t, citizen, aide, _admin = _office(mk)
    mk.ticket(t, citizen, "t1", status="cancelled")

    with pytest.raises(InvalidTransitionError):
        tickets_service.change_status(db, as_principal(aide, t), "t1", "new")
    assert db.get(Ticket, "t1").status == "cancelled"


def test_citizen_cannot_change_status(db, mk, as_principal):
    t, citizen, *_ = _office(mk)
    mk.ticket(t, citizen, "t1")

    with pytest.raises(AuthorizationError):
        tickets_service.change_status(db, as_principal(citizen, t), "t1", "resolved")


def test_assignment_rules(db, mk, as_principal):
    t, citizen, aide, admin = _office(mk)
    other = mk.tenant("office-b")
    foreign_aide = mk.profile(other, "s9", role="aide")
    mk.ticket(t, citizen, "t1")
    p = as_principal(aide, t)

    with pytest.raises(ValidationError):
        tickets_service.assign_ticket(db, p, "t1", citizen.id)
    with pytest.raises(ValidationError):
        tickets_service.assign_ticket(db, p, "t1", foreign_aide.id)

    assert tickets_service.assign_ticket(db, p, "t1", admin.id).assignee_id == admin.id
    assert tickets_service.assign_to_self(db, p, "t1").assignee_id == aide.id
    assert tickets_service.unassign(db, p, "t1").assignee_id is None

    with pytest.raises(AuthorizationError):
        tickets_service.assign_to_self(db, as_principal(citizen, t), "t1")


def test_staff_listing_excludes_citizens(db, mk, as_principal):
    t, _citizen, aide, admin = _office(mk)
    ids = {p.id for p in tickets_service.list_staff_members(db, as_principal(aide, t))}
    assert ids == {aide.id, admin.id}


def test_reporter_edits_only_while_new(db, mk, as_principal):
    t, citizen, aide, _admin = _office(mk)
    mk.ticket(t, citizen, "t1")
    mk.ticket(t, citizen, "t2", status="in_progress")
    p = as_principal(citizen, t)

    row = tickets_service.update_ticket(db, p, "t1", {"title": "  New title here  "})
    assert row.title == "New title here"

    with pytest.raises(AuthorizationError):
        tickets_service.update_ticket(db, p, "t2", {"title": "Too late now"})
    with pytest.raises(AuthorizationError):
        tickets_service.update_ticket(db, p, "t1", {"priority": "urgent"})

    row = tickets_service.update_ticket(db, as_principal(aide, t), "t2", {"priority": "urgent"})
    assert row.priority == "urgent"


def test_delete_is_admin_only(db, mk, as_principal):
    t, citizen, aide, admin = _office(mk)
    mk.ticket(t, citizen, "t1")

    with pytest.raises(AuthorizationError):
        tickets_service.delete_ticket(db, as_principal(aide, t), "t1")

    tickets_service.delete_ticket(db, as_principal(admin, t), "t1")
    with pytest.raises(NotFoundError):
        tickets_service.delete_ticket(db, as_principal(admin, t), "t1")


def test_comment_visibility_and_notifications(db, mk, as_principal):
    t, citizen, aide, _admin = _office(mk)
    neighbour = mk.profile(t, "u2")
    mk.ticket(t, citizen, "t1")
    staff_p = as_principal(aide, t)
    citizen_p = as_principal(citizen, t)

    comments_service.add_comment(db, staff_p, "t1", message="We are on it.")
    comments_service.add_comment(db, staff_p, "t1", message="Crew scheduled Tuesday.", is_public=False)
    comments_service.add_comment(db, citizen_p, "t1", message="Thanks!")

    assert [c.message for c in comments_service.list_comments(db, citizen_p, "t1")] == ["We are on it.", "Thanks!"]
    assert len(comments_service.list_comments(db, staff_p, "t1")) == 3

    with pytest.raises(AuthorizationError):
        comments_service.add_comment(db, citizen_p, "t1", message="secret", is_public=False)
    with pytest.raises(NotFoundError):
        comments_service.add_comment(db, as_principal(neighbour, t), "t1", message="me too")

    notes = db.scalars(select(Notification).where(Notification.recipient_id == citizen.id)).all()
    assert [n.type for n in notes] == ["ticket_commented"]


def test_counter_row_created_once_and_reused(db, mk, as_principal):
    t, citizen, *_ = _office(mk)

    rpc._ensure_counter(db, t.id)
    rpc._ensure_counter(db, t.id)
    db.commit()
    assert len(db.scalars(select(TicketCounter)).all()) == 1

    # an existing counter keeps counting from its stored value
    db.get(TicketCounter, t.id).last_number = 7
    db.commit()
    assert _file(db, as_principal(citizen, t)).ticket_number == "000008"


def test_delete_survives_storage_cleanup_failure(db, mk, as_principal):
    t, citizen, _aide, admin = _office(mk)
    mk.ticket(t, citizen, "t1", photos=["/uploads/uploads/tn-office-a/tickets/u1-1-0.png"])
    storage = mock.Mock()
    storage.path_from_public_url.return_value = "tn-office-a/tickets/u1-1-0.png"
    storage.remove.side_effect = StorageError("disk gone")

    tickets_service.delete_ticket(db, as_principal(admin, t), "t1", storage=storage)

    storage.remove.assert_called_once()
    assert db.get(Ticket, "t1") is None
