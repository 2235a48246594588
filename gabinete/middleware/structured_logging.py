# gabinete/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

log = logging.getLogger("gabinete.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Emits one log line per request with:
      request_id, tenant_slug, method, path, status_code, latency_ms

    The JSON shape comes from logging_config.JsonFormatter; fields travel as
    record extras.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.time()

        # Headers are enough for the request line; the principal is resolved
        # later inside the handlers.
        tenant_slug = request.headers.get(settings.dev_header_tenant_slug)

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            latency_ms = int((time.time() - t0) * 1000)

            log.info(
                "http_request",
                extra={
                    "event": "http_request",
                    "method": request.method,
                    "path": request.url.path,
                    "query": str(request.url.query) if request.url.query else "",
                    "status_code": status_code,
                    "latency_ms": latency_ms,
                    "tenant_slug": tenant_slug,
                },
            )
