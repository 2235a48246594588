# tests/test_notifications_service.py
from __future__ import annotations

import pytest
from sqlalchemy import select

from gabinete.errors import AuthorizationError, NotFoundError, RowStoreError, ValidationError
from gabinete.models import Notification
from gabinete.services import notifications_service as svc
from gabinete.services import rpc


def _office(mk):
    t = mk.tenant("office-a")
    aide = mk.profile(t, "s1", role="aide")
    citizens = [mk.profile(t, f"u{i}") for i in (1, 2, 3)]
    mk.profile(t, "u4", active=False)
    other = mk.tenant("office-b")
    mk.profile(other, "x1")
    return t, aide, citizens


def test_broadcast_reaches_every_active_citizen_once(db, mk, as_principal):
    t, aide, citizens = _office(mk)

    sent = svc.broadcast(db, as_principal(aide, t), title="Mutirão", message="Sábado na praça.")

    assert sent == 3
    rows = db.scalars(select(Notification)).all()
    assert sorted(r.recipient_id for r in rows) == ["u1", "u2", "u3"]
    assert {r.type for r in rows} == {"manual"}
    assert all(r.meta == {"sender_id": "s1"} for r in rows)


def test_broadcast_falls_back_when_lookup_function_missing(db, mk, as_principal, monkeypatch):
    t, aide, _ = _office(mk)
    monkeypatch.delitem(rpc._REGISTRY, "get_tenant_citizens")

    assert "get_tenant_citizens" not in rpc.registered()
    assert svc.broadcast(db, as_principal(aide, t), title="Aviso", message="Texto") == 3


def test_broadcast_excludes_the_sender(db, mk, as_principal, monkeypatch):
    t, _aide, citizens = _office(mk)
    monkeypatch.setitem(
        rpc._REGISTRY,
        "get_tenant_citizens",
        lambda _db, tenant_id: [{"id": c.id, "tenant_id": tenant_id, "full_name": c.full_name} for c in citizens]
        + [{"id": "adm", "tenant_id": tenant_id, "full_name": "ADM"}],
    )
    admin = mk.profile(t, "adm", role="admin")

    assert svc.broadcast(db, as_principal(admin, t), title="Aviso", message="Texto") == 3


def test_broadcast_requires_staff_and_content(db, mk, as_principal):
    t, aide, citizens = _office(mk)
    with pytest.raises(AuthorizationError):
        svc.broadcast(db, as_principal(citizens[0], t), title="x", message="y")
    with pytest.raises(ValidationError):
        svc.broadcast(db, as_principal(aide, t), title="  ", message="y")


def test_unknown_function_raises_function_not_found(db):
    with pytest.raises(RowStoreError) as exc:
        rpc.call_rpc(db, "does_not_exist")
    assert exc.value.code == "PGRST202"


def test_mark_all_read_returns_only_rows_it_changed(db, mk, as_principal):
    t, _aide, citizens = _office(mk)
    u1 = citizens[0]
    mk.notification(t, u1, "n1")
    mk.notification(t, u1, "n2")
    mk.notification(t, u1, "n3", read=True)
    mk.notification(t, citizens[1], "n4")

    updated = svc.mark_all_read(db, as_principal(u1, t), ["n1", "n2", "n3", "n4"])

    assert sorted(updated) == ["n1", "n2"]
    assert svc.list_unread(db, as_principal(u1, t)) == []
    assert len(svc.list_unread(db, as_principal(citizens[1], t))) == 1


def test_toggle_and_mark_read_are_recipient_only(db, mk, as_principal):
    t, aide, citizens = _office(mk)
    mk.notification(t, citizens[0], "n1")

    row = svc.toggle_read(db, as_principal(citizens[0], t), "n1")
    assert row.read_at is not None
    row = svc.toggle_read(db, as_principal(citizens[0], t), "n1")
    assert row.read_at is None

    with pytest.raises(NotFoundError):
        svc.mark_read(db, as_principal(aide, t), "n1")


def test_audiences_are_role_gated(db, mk, as_principal):
    t, aide, citizens = _office(mk)
    mk.notification(t, citizens[0], "n1")
    mk.notification(t, citizens[1], "n2", read=True)
    mk.notification(t, aide, "n3")

    staff_p = as_principal(aide, t)
    citizen_p = as_principal(citizens[0], t)

    assert {n.id for n in svc.list_notifications(db, staff_p, audience="tenant")} == {"n1", "n2", "n3"}
    assert {n.id for n in svc.list_notifications(db, staff_p, audience="mine")} == {"n3"}
    assert {n.id for n in svc.list_notifications(db, citizen_p)} == {"n1"}
    assert {n.id for n in svc.list_notifications(db, citizen_p, audience="citizens")} == {"n1", "n2"}
    assert {n.id for n in svc.list_notifications(db, citizen_p, audience="citizens", read_filter="read")} == {"n2"}

    with pytest.raises(AuthorizationError):
        svc.list_notifications(db, citizen_p, audience="tenant")

    ordered = svc.list_notifications(db, staff_p, audience="tenant", sort="asc")
    assert [n.id for n in ordered] == ["n1", "n2", "n3"]
