"""
Async SQLAlchemy engine and session management.

The engine is created lazily from `settings.DATABASE_URL`. Callers always go
through `async_session()` so a reconfigured engine (tests, scripts) is picked
up without re-importing anything.
"""

from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from core.config import settings
from db.base import Base

logger = structlog.get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def configure_engine(url: Optional[str] = None) -> AsyncEngine:
    """Create (or replace) the engine and session factory."""
    global _engine, _session_factory

    url = url or settings.DATABASE_URL
    kwargs: dict = {"echo": settings.DATABASE_ECHO}
    if url.startswith("sqlite"):
        # In-memory SQLite only survives on a single shared connection
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True

    _engine = create_async_engine(url, **kwargs)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine


def get_engine() -> AsyncEngine:
    """Get the current engine, creating it on first use."""
    if _engine is None:
        return configure_engine()
    return _engine


def async_session() -> AsyncSession:
    """Open a new session from the current factory."""
    if _session_factory is None:
        configure_engine()
    assert _session_factory is not None
    return _session_factory()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    async with async_session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create tables that do not exist yet."""
    import models  # noqa: F401  (registers every table on Base.metadata)

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized", dialect=engine.dialect.name)


async def close_db() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
