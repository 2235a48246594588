# tests/test_preferences.py
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from gabinete.errors import ValidationError
from gabinete.main import create_app
from gabinete.viewstate.preferences import (
    SIDEBAR_COLLAPSED,
    MemoryBackend,
    PreferenceStore,
    SqlPreferenceBackend,
)


def test_subscribers_hear_only_real_changes():
    store = PreferenceStore(MemoryBackend())
    sidebar = MagicMock()
    header = MagicMock()
    store.subscribe(SIDEBAR_COLLAPSED, sidebar)
    store.subscribe(SIDEBAR_COLLAPSED, header)

    assert store.get(SIDEBAR_COLLAPSED, False) is False
    assert store.toggle(SIDEBAR_COLLAPSED) is True
    sidebar.assert_called_once_with(SIDEBAR_COLLAPSED, True)
    header.assert_called_once_with(SIDEBAR_COLLAPSED, True)

    assert store.set(SIDEBAR_COLLAPSED, True) is False
    assert sidebar.call_count == 1


def test_unsubscribe_stops_delivery():
    store = PreferenceStore(MemoryBackend())
    listener = MagicMock()
    unsubscribe = store.subscribe(SIDEBAR_COLLAPSED, listener)

    unsubscribe()
    unsubscribe()
    store.toggle(SIDEBAR_COLLAPSED)

    listener.assert_not_called()


def test_value_survives_a_new_store_on_the_same_backend():
    backend = MemoryBackend()
    PreferenceStore(backend).set("theme", {"dense": True})
    assert PreferenceStore(backend).get("theme") == {"dense": True}


def test_unreadable_value_falls_back_to_default():
    store = PreferenceStore(MemoryBackend({SIDEBAR_COLLAPSED: "not json"}))
    assert store.get(SIDEBAR_COLLAPSED, False) is False


def test_blank_key_rejected():
    with pytest.raises(ValidationError):
        PreferenceStore(MemoryBackend()).get("  ")


def test_sql_backend_persists_per_user(db, mk):
    t = mk.tenant("office-a")
    mk.profile(t, "u1")
    mk.profile(t, "u2")

    PreferenceStore(SqlPreferenceBackend(db, "u1")).toggle(SIDEBAR_COLLAPSED)

    assert PreferenceStore(SqlPreferenceBackend(db, "u1")).get(SIDEBAR_COLLAPSED) is True
    assert PreferenceStore(SqlPreferenceBackend(db, "u2")).get(SIDEBAR_COLLAPSED) is None


def test_preferences_over_http():
    client = TestClient(create_app())
    h = {"X-Tenant-Slug": "office-a", "X-User-Email": "maria@a.local"}

    assert client.get(f"/api/preferences/{SIDEBAR_COLLAPSED}", headers=h).json()["value"] is None

    r = client.put(f"/api/preferences/{SIDEBAR_COLLAPSED}", json={"value": True}, headers=h)
    assert r.status_code == 200
    assert r.json() == {"key": SIDEBAR_COLLAPSED, "value": True}

    r = client.post(f"/api/preferences/{SIDEBAR_COLLAPSED}/toggle", headers=h)
    assert r.json()["value"] is False
