"""Application entry point for the FastAPI backend."""
from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .database import init_db
from .routers import (
    auth_router,
    channels_router,
    posts_router,
    profiles_router,
    realtime_router,
    videos_router,
)
from .services import ServiceContainer, Subscription
from .services.change_feed import ALL_TABLES
from .services.realtime import change_updates_manager

logger = logging.getLogger(__name__)

settings = get_settings()
APP_NAME = settings.app_name
API_VERSION = settings.api_version


def _cors_origins(raw: str | None) -> list[str]:
    """Comma-separated ``CORS_ORIGINS``; every origin is allowed when unset."""

    origins = [origin.strip() for origin in (raw or "").split(",") if origin.strip()]
    return origins or ["*"]


app = FastAPI(title=APP_NAME, version=API_VERSION)
# Populated on startup unless a container was installed beforehand.
app.state.services = None
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(os.getenv("CORS_ORIGINS")),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for _router in (auth_router, profiles_router, videos_router, posts_router, channels_router, realtime_router):
    app.include_router(_router)

_relay: Subscription | None = None


@app.on_event("startup")
async def _startup() -> None:
    """Create the schema and start the services before serving."""

    try:
        init_db()
    except Exception:
        logger.exception("Database initialisation failed")
        raise

    services: ServiceContainer | None = app.state.services
    if services is None:
        services = ServiceContainer(settings)
        app.state.services = services

    global _relay
    if _relay is None:
        _relay = services.change_feed.subscribe(ALL_TABLES, change_updates_manager.forward)
    await services.start()
    logger.info("%s %s ready", APP_NAME, API_VERSION)


@app.on_event("shutdown")
async def _shutdown() -> None:
    """Stop change relaying and tear the services down."""

    global _relay
    if _relay is not None:
        _relay.unsubscribe()
        _relay = None
    services: ServiceContainer | None = app.state.services
    if services is not None:
        await services.close()


@app.get("/api", tags=["system"])
def api_info() -> dict[str, str]:
    return {"service": APP_NAME, "version": API_VERSION}


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, object]:
    services: ServiceContainer | None = app.state.services
    return {"status": "ok", "services_started": bool(services is not None and services.started)}


__all__ = ["app"]
