# gabinete/errors.py
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError

log = logging.getLogger("gabinete.errors")

GENERIC_USER_MESSAGE = "Something went wrong while processing your request. Please try again."
UNEXPECTED_USER_MESSAGE = "An unexpected error occurred. Please try again."


class AppError(Exception):
    """
    Base application error.

    `message` is internal (logs), `user_message` is what the caller shows.
    """

    default_code = "APP_ERROR"
    default_status = 500

    def __init__(
        self,
        message: str,
        user_message: str = GENERIC_USER_MESSAGE,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_message = user_message
        self.code = code or self.default_code
        self.status_code = status_code or self.default_status

    def as_dict(self) -> dict[str, Any]:
        return {"detail": self.user_message, "code": self.code}


class ValidationError(AppError):
    default_code = "VALIDATION_ERROR"
    default_status = 400

    def __init__(self, message: str, user_message: Optional[str] = None) -> None:
        super().__init__(message, user_message or "Invalid data. Check the values provided.")


class AuthenticationError(AppError):
    default_code = "AUTH_ERROR"
    default_status = 401

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message, "You need to be signed in to continue.")


class AuthorizationError(AppError):
    default_code = "AUTHZ_ERROR"
    default_status = 403

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(message, "You do not have permission to perform this action.")


class NotFoundError(AppError):
    default_code = "NOT_FOUND"
    default_status = 404

    def __init__(self, resource: str) -> None:
        super().__init__(f"{resource} not found", f"{resource} not found.")
        self.resource = resource


class ConflictError(AppError):
    default_code = "CONFLICT"
    default_status = 409

    def __init__(self, message: str, user_message: Optional[str] = None, code: Optional[str] = None) -> None:
        super().__init__(message, user_message or "This record already exists.", code)


class InvalidTransitionError(AppError):
    default_code = "INVALID_TRANSITION"
    default_status = 409

    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(
            f"illegal ticket transition {from_status} -> {to_status}",
            "This status change is not allowed.",
        )
        self.from_status = from_status
        self.to_status = to_status


class RowStoreError(Exception):
    """
    Failure reported by the row-store (database or server-side function).

    `code` follows the SQLSTATE / PostgREST conventions the translator knows.
    """

    def __init__(self, code: Optional[str], message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


FUNCTION_NOT_FOUND = "PGRST202"
NO_SESSION = "PGRST301"
NO_ROWS = "PGRST116"
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
NOT_NULL_VIOLATION = "23502"
CHECK_VIOLATION = "23514"
INSUFFICIENT_PRIVILEGE = "42501"


def _sqlstate(exc: BaseException) -> Optional[str]:
    """Best-effort SQLSTATE from a DBAPI error (psycopg exposes pgcode / sqlstate)."""
    orig = getattr(exc, "orig", None)
    for attr in ("pgcode", "sqlstate"):
        v = getattr(orig, attr, None)
        if v:
            return str(v)
    return None


def _integrity_code(exc: IntegrityError) -> Optional[str]:
    code = _sqlstate(exc)
    if code:
        return code

    # sqlite reports constraint kinds only in the message text
    msg = str(getattr(exc, "orig", exc)).lower()
    if "unique constraint" in msg:
        return UNIQUE_VIOLATION
    if "foreign key constraint" in msg:
        return FOREIGN_KEY_VIOLATION
    if "not null constraint" in msg:
        return NOT_NULL_VIOLATION
    if "check constraint" in msg:
        return CHECK_VIOLATION
    return None


def _from_code(code: Optional[str], message: str) -> AppError:
    if code == NO_SESSION:
        return AuthenticationError(message)

    lowered = message.lower()
    if code == INSUFFICIENT_PRIVILEGE or "row-level security" in lowered or "permission denied" in lowered:
        return AuthorizationError(message)

    if code == NO_ROWS:
        return NotFoundError("Record")

    if code == UNIQUE_VIOLATION:
        return ConflictError(message, "This record already exists.", code="UNIQUE_VIOLATION")

    if code == FOREIGN_KEY_VIOLATION:
        return AppError(message, "Related record not found.", "FOREIGN_KEY_VIOLATION", 400)

    if code == NOT_NULL_VIOLATION:
        return ValidationError(message, "Required fields were not filled in.")

    if code == CHECK_VIOLATION:
        return ValidationError(message, "Invalid data. Check the values provided.")

    return AppError(message, GENERIC_USER_MESSAGE, code or "APP_ERROR", 500)


def translate_error(exc: BaseException) -> AppError:
    """
    Map any exception to the AppError taxonomy.

    AppError instances pass through unchanged.
    """
    if isinstance(exc, AppError):
        return exc

    if isinstance(exc, RowStoreError):
        return _from_code(exc.code, exc.message)

    if isinstance(exc, IntegrityError):
        return _from_code(_integrity_code(exc), str(getattr(exc, "orig", exc)))

    if isinstance(exc, NoResultFound):
        return NotFoundError("Record")

    if isinstance(exc, SQLAlchemyError):
        return _from_code(_sqlstate(exc), str(getattr(exc, "orig", exc)))

    return AppError(str(exc) or exc.__class__.__name__, UNEXPECTED_USER_MESSAGE, "UNKNOWN_ERROR", 500)


def log_error(exc: BaseException, context: Optional[str] = None, **extra: Any) -> AppError:
    """Translate `exc` and log it with its origin context."""
    err = translate_error(exc)

    level = logging.ERROR if err.status_code >= 500 else logging.WARNING
    log.log(
        level,
        "%s: %s",
        context or "unknown",
        err.message,
        exc_info=exc if err.status_code >= 500 else None,
        extra={"context": context, "code": err.code, **extra},
    )
    return err


def is_error_type(exc: BaseException, error_type: type[AppError]) -> bool:
    return isinstance(exc, error_type)


async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())
