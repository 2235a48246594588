# tests/test_cross_tenant_access.py
from __future__ import annotations

from fastapi.testclient import TestClient

from gabinete.auth import issue_token
from gabinete.main import create_app
from gabinete.models import Profile


def _headers(tenant_slug: str, email: str, role: str = "citizen") -> dict[str, str]:
    return {
        "X-Tenant-Slug": tenant_slug,
        "X-User-Email": email,
        "X-User-Role": role,
    }


def _new_ticket(client: TestClient, headers: dict[str, str]) -> dict:
    r = client.post(
        "/api/tickets",
        json={
            "title": "Buraco na calçada",
            "description": "Buraco grande em frente ao número 120, risco para pedestres.",
            "priority": "high",
            "location": {"street": "Rua A, 120", "city": "Campinas", "state": "SP"},
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_other_tenant_cannot_read_ticket():
    client = TestClient(create_app())
    ticket = _new_ticket(client, _headers("office-a", "maria@a.local"))
    assert ticket["ticket_number"] == "000001"

    r = client.get(f"/api/tickets/{ticket['id']}", headers=_headers("office-b", "staff@b.local", "aide"))
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"

    # a profile of office A is not a member of office B
    r = client.get("/api/tickets", headers=_headers("office-b", "maria@a.local"))
    assert r.status_code == 403


def test_citizen_sees_only_own_tickets_over_http():
    client = TestClient(create_app())
    mine = _new_ticket(client, _headers("office-a", "maria@a.local"))
    _new_ticket(client, _headers("office-a", "joao@a.local"))

    r = client.get("/api/tickets", headers=_headers("office-a", "maria@a.local"))
    assert r.status_code == 200
    assert [t["id"] for t in r.json()] == [mine["id"]]

    r = client.get("/api/tickets", headers=_headers("office-a", "staff@a.local", "aide"))
    assert len(r.json()) == 2


def test_status_flow_over_http():
    client = TestClient(create_app())
    citizen = _headers("office-a", "maria@a.local")
    staff = _headers("office-a", "staff@a.local", "aide")
    ticket = _new_ticket(client, citizen)
    url = f"/api/tickets/{ticket['id']}/status"

    assert client.post(url, json={"status": "resolved"}, headers=citizen).status_code == 403

    r = client.post(url, json={"status": "in_progress"}, headers=staff)
    assert r.status_code == 200
    assert r.json()["changed"] is True
    assert r.json()["ticket"]["status"] == "in_progress"

    r = client.post(url, json={"status": "in_progress"}, headers=staff)
    assert r.json()["changed"] is False

    assert client.post(url, json={"status": "archived"}, headers=staff).status_code == 422

    r = client.get("/api/notifications/unread", headers=citizen)
    assert r.json()["unread_count"] == 1
    assert r.json()["items"][0]["type"] == "ticket_updated"


def test_board_move_over_http():
    client = TestClient(create_app())
    citizen = _headers("office-a", "maria@a.local")
    staff = _headers("office-a", "staff@a.local", "aide")
    t1 = _new_ticket(client, citizen)

    board = client.get("/api/board", headers=staff).json()
    assert board["can_drag"] is True
    assert [t["id"] for t in board["columns"]["new"]] == [t1["id"]]

    r = client.post("/api/board/move", json={"ticket_id": t1["id"], "over_column": "under_review"}, headers=staff)
    assert r.status_code == 200
    body = r.json()
    assert body["outcome"] == "moved"
    assert [t["id"] for t in body["columns"]["under_review"]] == [t1["id"]]
    assert client.get(f"/api/tickets/{t1['id']}", headers=staff).json()["status"] == "under_review"

    r = client.post("/api/board/move", json={"ticket_id": t1["id"], "over_column": "resolved"}, headers=citizen)
    assert r.status_code == 403
    assert client.get("/api/board", headers=citizen).json()["can_drag"] is False


def test_missing_tenant_header_is_401():
    client = TestClient(create_app())
    r = client.get("/api/tickets", headers={"X-User-Email": "maria@a.local"})
    assert r.status_code == 401
    assert r.json()["code"] == "AUTH_ERROR"


def test_request_id_echoed():
    client = TestClient(create_app())
    r = client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] == "req-123"


def test_bearer_token_resolves_profile(mk):
    t = mk.tenant("office-a")
    mk.profile(t, "s1", role="aide")
    client = TestClient(create_app())
    h = {"X-Tenant-Slug": "office-a", "Authorization": f"Bearer {issue_token('s1')}"}

    r = client.get("/api/users/me", headers=h)
    assert r.status_code == 200
    assert r.json()["id"] == "s1"

    r = client.get("/api/users/me", headers={"X-Tenant-Slug": "office-a", "Authorization": "Bearer abc.def.ghi"})
    assert r.status_code == 401


def test_unaffiliated_citizen_is_linked_on_first_access(db, mk):
    mk.tenant("office-a")
    mk.profile(None, "u9")
    client = TestClient(create_app())

    r = client.get("/api/tickets", headers={"X-Tenant-Slug": "office-a", "Authorization": f"Bearer {issue_token('u9')}"})
    assert r.status_code == 200
    db.expire_all()
    assert db.get(Profile, "u9").tenant_id == "tn-office-a"


def test_malformed_request_id_is_replaced():
    client = TestClient(create_app())
    r = client.get("/api/health", headers={"X-Request-ID": "bad id\twith spaces"})
    assert r.headers["X-Request-ID"] != "bad id\twith spaces"
    assert len(r.headers["X-Request-ID"]) == 32
