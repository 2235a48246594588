# tests/test_errors.py
from __future__ import annotations

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from gabinete.errors import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RowStoreError,
    ValidationError,
    is_error_type,
    log_error,
    translate_error,
)
from gabinete.models import Category, Ticket


@pytest.mark.parametrize(
    "code,message,expected,status",
    [
        ("PGRST301", "JWT expired", AuthenticationError, 401),
        ("42501", "new row violates row-level security policy", AuthorizationError, 403),
        ("PGRST116", "0 rows", NotFoundError, 404),
        ("23505", "duplicate key value", ConflictError, 409),
        ("23502", "null value in column", ValidationError, 400),
        ("23514", "violates check constraint", ValidationError, 400),
    ],
)
def test_row_store_codes_map_to_taxonomy(code, message, expected, status):
    err = translate_error(RowStoreError(code, message))
    assert isinstance(err, expected)
    assert err.status_code == status
    assert err.user_message != err.message


def test_foreign_key_violation_is_a_400():
    err = translate_error(RowStoreError("23503", "violates foreign key constraint"))
    assert err.code == "FOREIGN_KEY_VIOLATION"
    assert err.status_code == 400


def test_unknown_exception_becomes_generic_app_error():
    err = translate_error(RuntimeError("boom"))
    assert type(err) is AppError
    assert err.code == "UNKNOWN_ERROR"
    assert err.status_code == 500
    assert "boom" not in err.user_message


def test_app_errors_pass_through_unchanged():
    original = NotFoundError("Ticket")
    assert translate_error(original) is original
    assert is_error_type(original, NotFoundError)
    assert original.as_dict() == {"detail": "Ticket not found.", "code": "NOT_FOUND"}


def test_sqlite_unique_violation_translates_to_conflict(db, mk):
    t = mk.tenant("office-a")
    db.add(Category(tenant_id=t.id, name="Iluminação"))
    db.commit()

    db.add(Category(tenant_id=t.id, name="Iluminação"))
    with pytest.raises(IntegrityError) as exc:
        db.commit()
    db.rollback()

    err = log_error(exc.value, "test.unique")
    assert isinstance(err, ConflictError)
    assert err.status_code == 409


def test_check_constraint_keeps_unknown_status_out(db, mk):
    t = mk.tenant("office-a")
    u = mk.profile(t, "u1")
    mk.ticket(t, u, "t1")

    with pytest.raises(IntegrityError) as exc:
        db.execute(update(Ticket).where(Ticket.id == "t1").values(status="archived"))
        db.commit()
    db.rollback()

    assert isinstance(translate_error(exc.value), ValidationError)
