"""
FastAPI application entrypoint for the auto-vault service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_batch_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the batch scheduler alongside the API when enabled."""
    settings = get_settings()
    scheduler = None
    if settings.scheduler.enabled:
        scheduler = get_batch_scheduler()
        scheduler.start(settings.scheduler.interval_seconds)
        logger.info(
            "Batch scheduler started",
            extra={"interval_seconds": settings.scheduler.interval_seconds},
        )
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()
            logger.info("Batch scheduler stopped")


def create_app() -> FastAPI:
    """Factory for the FastAPI application.

    Settings are loaded eagerly so a missing Bungie credential stops the
    process before it serves anything.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Auto-Vault Service",
        version="0.1.0",
        description="Moves Destiny 2 postmaster items into the vault for authorized players.",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
