# gabinete/main.py
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .errors import AppError, app_error_handler
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.tenants import router as tenants_router
from .routers.users import router as users_router
from .routers.categories import router as categories_router

from .routers.tickets import router as tickets_router
from .routers.comments import router as comments_router
from .routers.board import router as board_router

from .routers.events import router as events_router
from .routers.notifications import router as notifications_router
from .routers.preferences import router as preferences_router
from .routers.cep import router as cep_router

API_PREFIX = "/api"


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Gabinete", version=settings.app_version)

    app.add_exception_handler(AppError, app_error_handler)

    # Starlette runs the last-added middleware first: request id is set before the request line is logged.
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Core
    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(tenants_router, prefix=API_PREFIX)
    app.include_router(users_router, prefix=API_PREFIX)
    app.include_router(categories_router, prefix=API_PREFIX)

    # Tickets
    app.include_router(tickets_router, prefix=API_PREFIX)
    app.include_router(comments_router, prefix=API_PREFIX)
    app.include_router(board_router, prefix=API_PREFIX)

    # Agenda, notifications, UI state
    app.include_router(events_router, prefix=API_PREFIX)
    app.include_router(notifications_router, prefix=API_PREFIX)
    app.include_router(preferences_router, prefix=API_PREFIX)
    app.include_router(cep_router, prefix=API_PREFIX)

    return app


app = create_app()
