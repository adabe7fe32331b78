from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from .core.config import settings
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestContextMiddleware
from .models import catalog, counter, movements, user  # noqa: F401  (register tables)
from .routers import (
    api_auth,
    api_checkouts,
    api_deliveries,
    api_inventory,
    api_reports,
    api_returns,
    api_users,
)

logger = logging.getLogger("stockledger.app")


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    run_migrations(engine)


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)

    app.add_middleware(RequestContextMiddleware)
    if settings.ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    register_exception_handlers(app)

    for module in (api_auth, api_inventory, api_deliveries, api_checkouts, api_returns, api_users):
        app.include_router(module.router)
    app.include_router(api_reports.router)
    app.include_router(api_reports.dashboard_router)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    Instrumentator().instrument(app).expose(app, include_in_schema=False)

    @app.on_event("startup")
    def _startup() -> None:
        init_db()
        logger.info("app.started", extra={"extra_data": {"database": engine.url.render_as_string(hide_password=True)}})

    return app


app = create_app()
