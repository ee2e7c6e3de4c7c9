"""
Page cache with path-based revalidation.

Cached reads are stored under the page path they back ("/polls/<id>",
"/polls", "/admin") plus a variant (e.g. the owner id for "/polls").
Mutations call `revalidate_path` to evict every variant of a path.

Process-local only: each worker keeps its own copy and entries expire on
their TTL, so a worker that missed an eviction serves stale data for at most
PAGE_CACHE_TTL_SECONDS.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog

from core.config import settings

logger = structlog.get_logger(__name__)


class PageCache:
    """In-memory TTL cache keyed by (path, variant)."""

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.PAGE_CACHE_TTL_SECONDS
        self._entries: dict[tuple[str, str], tuple[Any, datetime]] = {}

    async def get(self, path: str, variant: str = "") -> Optional[Any]:
        """Get a cached value, or None if missing or expired."""
        key = (path, variant)
        if key in self._entries:
            value, expires_at = self._entries[key]
            if datetime.now(timezone.utc) < expires_at:
                return value
            del self._entries[key]
        return None

    async def set(self, path: str, value: Any, variant: str = "") -> None:
        """Cache a value for this path."""
        if self.ttl_seconds <= 0:
            return
        self._entries[(path, variant)] = (
            value,
            datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds),
        )

    async def revalidate_path(self, path: str) -> int:
        """Evict every cached variant of a path. Returns the number evicted."""
        stale = [key for key in self._entries if key[0] == path]
        for key in stale:
            del self._entries[key]
        logger.debug("path_revalidated", path=path, evicted=len(stale))
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()


# Global instance
page_cache = PageCache()


def get_page_cache() -> PageCache:
    """Dependency for getting the page cache."""
    return page_cache
