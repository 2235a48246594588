# tests/test_storage.py
from __future__ import annotations

import pytest

from gabinete.errors import ValidationError
from gabinete.services import tickets_service
from gabinete.services.storage_service import (
    TICKETS,
    LocalObjectStorage,
    StorageError,
    UploadedFile,
    storage_path,
    upload_images,
)

PNG = UploadedFile(filename="foto.png", content_type="image/png", data=b"\x89PNG\r\n\x1a\n" + b"0" * 32)


def test_paths_are_namespaced_by_tenant_and_category():
    assert storage_path("tn-1", "tickets", "a b/c.png") == "tn-1/tickets/c.png"
    assert storage_path("tn-1", "events", "../../etc/passwd") == "tn-1/events/passwd"


def test_upload_returns_public_urls_in_order(tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path), public_base_url="https://cdn.test/files")

    urls = upload_images(storage, tenant_id="tn-1", user_id="u1", category=TICKETS, files=[PNG, PNG])

    assert len(urls) == 2
    assert all(u.startswith("https://cdn.test/files/uploads/tn-1/tickets/u1-") for u in urls)
    assert urls[0].endswith("-0.png") and urls[1].endswith("-1.png")
    path = storage.path_from_public_url("uploads", urls[0])
    assert (tmp_path / "uploads" / path).read_bytes() == PNG.data


def test_rejects_wrong_type_and_oversize(tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path), public_base_url="/files")
    pdf = UploadedFile(filename="doc.pdf", content_type="application/pdf", data=b"%PDF")
    huge = UploadedFile(filename="big.png", content_type="image/png", data=b"0" * (5 * 1024 * 1024 + 1))

    for f in (pdf, huge):
        with pytest.raises(ValidationError):
            upload_images(storage, tenant_id="tn-1", user_id="u1", category=TICKETS, files=[f])
    assert not (tmp_path / "uploads").exists()


def test_path_cannot_escape_bucket(tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path), public_base_url="/files")
    with pytest.raises(StorageError):
        storage.upload("uploads", "../outside.png", b"x", "image/png")


def test_attach_photos_and_delete_cleans_up(db, mk, as_principal, tmp_path):
    t = mk.tenant("office-a")
    citizen = mk.profile(t, "u1")
    admin = mk.profile(t, "adm", role="admin")
    mk.ticket(t, citizen, "t1")
    storage = LocalObjectStorage(root=str(tmp_path), public_base_url="/files")

    row = tickets_service.attach_photos(db, as_principal(citizen, t), "t1", [PNG], storage)
    assert len(row.photos) == 1
    stored = tmp_path / "uploads" / storage.path_from_public_url("uploads", row.photos[0])
    assert stored.exists()

    with pytest.raises(ValidationError):
        tickets_service.attach_photos(db, as_principal(citizen, t), "t1", [PNG] * 5, storage)

    tickets_service.delete_ticket(db, as_principal(admin, t), "t1", storage=storage)
    assert not stored.exists()
