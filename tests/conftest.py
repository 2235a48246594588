# tests/conftest.py
from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta
from typing import Optional

_TMP = tempfile.mkdtemp(prefix="gabinete-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["STORAGE_ROOT"] = os.path.join(_TMP, "uploads")
os.environ["APP_ENV"] = "test"
os.environ["AUTH_MODE"] = "dev"

import pytest  # noqa: E402

from gabinete import models  # noqa: E402,F401
from gabinete.auth import Principal  # noqa: E402
from gabinete.db import Base, SessionLocal, engine  # noqa: E402
from gabinete.models import Notification, Profile, Tenant, Ticket  # noqa: E402

BASE_TIME = datetime(2026, 3, 1, 9, 0, 0)


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


class Factory:
    def __init__(self, db) -> None:
        self.db = db
        self._n = 0

    def tenant(self, slug: str, **kw) -> Tenant:
        row = Tenant(id=kw.pop("id", f"tn-{slug}"), slug=slug, name=kw.pop("name", slug.title()), **kw)
        self.db.add(row)
        self.db.commit()
        return row

    def profile(self, tenant: Optional[Tenant], id: str, role: str = "citizen", **kw) -> Profile:
        row = Profile(
            id=id,
            tenant_id=tenant.id if tenant else None,
            email=kw.pop("email", f"{id}@test.local"),
            full_name=kw.pop("full_name", id.upper()),
            role=role,
            **kw,
        )
        self.db.add(row)
        self.db.commit()
        return row

    def ticket(self, tenant: Tenant, reporter: Profile, id: str, status: str = "new", **kw) -> Ticket:
        self._n += 1
        when = kw.pop("created_at", BASE_TIME + timedelta(minutes=self._n))
        row = Ticket(
            id=id,
            tenant_id=tenant.id,
            reporter_id=reporter.id,
            ticket_number=kw.pop("ticket_number", f"{self._n:06d}"),
            title=kw.pop("title", f"Ticket {id}"),
            description=kw.pop("description", f"Description for ticket {id}, long enough."),
            status=status,
            priority=kw.pop("priority", "medium"),
            photos=kw.pop("photos", []),
            created_at=when,
            updated_at=when,
            **kw,
        )
        self.db.add(row)
        self.db.commit()
        return row

    def notification(self, tenant: Tenant, recipient: Profile, id: str, read: bool = False, **kw) -> Notification:
        self._n += 1
        row = Notification(
            id=id,
            tenant_id=tenant.id,
            recipient_id=recipient.id,
            title=kw.pop("title", f"Notification {id}"),
            message=kw.pop("message", "body"),
            type=kw.pop("type", "manual"),
            meta=kw.pop("meta", {}),
            read_at=BASE_TIME if read else None,
            created_at=kw.pop("created_at", BASE_TIME + timedelta(minutes=self._n)),
        )
        self.db.add(row)
        self.db.commit()
        return row


@pytest.fixture
def mk(db) -> Factory:
    return Factory(db)


def principal_for(profile: Profile, tenant: Tenant) -> Principal:
    return Principal(
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        user_id=profile.id,
        email=profile.email,
        role=profile.role,
    )


@pytest.fixture
def as_principal():
    return principal_for
