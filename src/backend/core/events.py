"""
Application lifecycle event handlers.

Startup creates missing tables; shutdown disposes of the engine and drops
cached pages.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from db.session import close_db, init_db
from services.cache_service import get_page_cache

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        logger.info("app_starting", app=settings.APP_NAME, env=settings.APP_ENV)

        await init_db()

        logger.info(
            "app_started",
            rate_limit_backend=settings.RATE_LIMIT_BACKEND,
            session_max_age_hours=settings.SESSION_MAX_AGE_HOURS,
        )

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("app_stopping", app=settings.APP_NAME)

        await close_db()
        get_page_cache().clear()

        logger.info("app_stopped")

    return stop_app
