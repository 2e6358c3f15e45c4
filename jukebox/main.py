"""
FastAPI application entrypoint for jukebox.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from jukebox.api.middleware import SessionMiddleware
from jukebox.api.routes import router as api_router
from jukebox.core.config import get_settings
from jukebox.core.logging import configure_logging
from jukebox.dependencies import AuthContext, resolve_auth_context
from jukebox.services import ReauthScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    context = resolve_auth_context(app)
    scheduler: Optional[ReauthScheduler] = None
    if context.settings.reauth.enabled:
        scheduler = ReauthScheduler(
            store=context.store,
            providers=context.providers,
            auth_service=context.auth_records,
            tick_seconds=context.settings.reauth.tick_seconds,
        )
        scheduler.start()
        logger.info(
            "Reauth scheduler started",
            extra={"tick_seconds": context.settings.reauth.tick_seconds},
        )
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


def create_app(context: Optional[AuthContext] = None) -> FastAPI:
    """
    Factory for the FastAPI application.

    ``context`` is built lazily from environment settings when omitted.
    """
    settings = context.settings if context is not None else get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Jukebox",
        version="0.1.0",
        description="OAuth sign-in and session lifecycle for jukebox.",
        lifespan=_lifespan,
    )
    app.state.auth_context = context
    app.add_middleware(SessionMiddleware, context=context)
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
