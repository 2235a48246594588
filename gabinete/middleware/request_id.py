# gabinete/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# ids from clients end up in log lines; keep them short and printable
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

_current: ContextVar[Optional[str]] = ContextVar("gabinete_request_id", default=None)


def get_request_id() -> Optional[str]:
    return _current.get()


def accept_or_mint(incoming: Optional[str]) -> str:
    rid = (incoming or "").strip()
    return rid if _SAFE_ID.match(rid) else uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id visible to log records and the client.

    A well-formed incoming X-Request-ID is reused (header lookup is
    case-insensitive); anything else is replaced by a fresh one.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = accept_or_mint(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = rid

        token = _current.set(rid)
        try:
            response = await call_next(request)
        finally:
            _current.reset(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
