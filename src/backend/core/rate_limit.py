"""
Per-client request rate limiting.

Fixed window: a client gets `max_requests` requests per `window_seconds`,
counted from its first request in the window. Two backends share the
`RateLimiter` interface:

- InMemoryRateLimiter: a dict in this process. Counts are NOT shared between
  workers or processes; use it for development, tests and single-process
  deployments.
- DatabaseRateLimiter: counters in the `rate_limits` table, shared by every
  process that talks to the same database.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.requests import Request

from core.config import Settings
from models.rate_limit import RateLimitRecord
from models.user import as_utc

logger = structlog.get_logger(__name__)


class RateLimiter(Protocol):
    async def allow(self, key: str) -> bool:
        """Count one request for `key`; False once the window is full."""
        ...


class InMemoryRateLimiter:
    """Single-process fixed-window counter."""

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: int = 900,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        # key -> (count, reset_time)
        self._windows: dict[str, tuple[int, float]] = {}
        self._next_sweep = 0.0

    def __len__(self) -> int:
        return len(self._windows)

    async def allow(self, key: str) -> bool:
        now = self._clock()
        if now > self._next_sweep:
            self._sweep(now)

        count, reset_time = self._windows.get(key, (0, 0.0))

        if now > reset_time:
            self._windows[key] = (1, now + self.window_seconds)
            return True

        if count >= self.max_requests:
            return False

        self._windows[key] = (count + 1, reset_time)
        return True

    def _sweep(self, now: float) -> None:
        """Forget clients whose window has closed; runs at most once per window."""
        expired = [key for key, (_, reset_time) in self._windows.items() if now > reset_time]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.window_seconds

    def reset(self) -> None:
        self._windows.clear()


class DatabaseRateLimiter:
    """Fixed-window counter stored in the `rate_limits` table."""

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: int = 900,
        session_factory: Optional[Callable] = None,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._session_factory = session_factory

    def _open(self):
        if self._session_factory is not None:
            return self._session_factory()
        from db.session import async_session

        return async_session()

    async def allow(self, key: str) -> bool:
        try:
            return await self._count(key)
        except SQLAlchemyError as e:
            # Fail open if the store is unavailable
            logger.error("rate_limit_check_failed", key=key, error=str(e))
            return True

    async def _count(self, key: str) -> bool:
        now = datetime.now(timezone.utc)

        async with self._open() as db:
            result = await db.execute(
                select(RateLimitRecord).where(RateLimitRecord.key == key).with_for_update()
            )
            record = result.scalar_one_or_none()

            if record is None:
                db.add(RateLimitRecord(
                    key=key,
                    count=1,
                    reset_time=now + timedelta(seconds=self.window_seconds),
                ))
                try:
                    await db.commit()
                except IntegrityError:
                    # Another process created the row first; count against it
                    await db.rollback()
                    return await self._count(key)
                return True

            if now > as_utc(record.reset_time):
                record.count = 1
                record.reset_time = now + timedelta(seconds=self.window_seconds)
                await db.commit()
                return True

            if record.count >= self.max_requests:
                await db.rollback()
                return False

            record.count += 1
            await db.commit()
            return True


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Create the limiter selected by RATE_LIMIT_BACKEND."""
    if settings.RATE_LIMIT_BACKEND == "database":
        return DatabaseRateLimiter(
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        )
    return InMemoryRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )


def get_client_ip(request: Request) -> str:
    """Direct peer address, else the first X-Forwarded-For hop, else "unknown"."""
    if request.client and request.client.host:
        return request.client.host

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
        if ip:
            return ip

    return "unknown"
