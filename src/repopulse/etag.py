"""In-memory ETag cache plus the global rate-limit reset.

Both live behind one asyncio.Lock so the request runner can read the
validator and the reset time without racing a concurrent writer.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

log = structlog.get_logger()


@dataclass(frozen=True)
class CachedResponse:
    url: str
    etag: str
    body: bytes


class ETagStore:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._entries: dict[str, CachedResponse] = {}
        self._rate_limit_reset: datetime | None = None

    async def cached(self, url: str) -> CachedResponse | None:
        async with self._lock:
            return self._entries.get(url)

    async def save(self, url: str, etag: str | None, body: bytes) -> None:
        """Store a validator and its body. Responses without an ETag are not cached."""
        if not etag:
            return
        async with self._lock:
            self._entries[url] = CachedResponse(url=url, etag=etag, body=body)

    async def set_rate_limit_reset(self, when: datetime) -> None:
        async with self._lock:
            self._rate_limit_reset = when

    async def rate_limit_until(self, now: datetime | None = None) -> datetime | None:
        """Return the active reset time, clearing it once it has passed."""
        now = now or datetime.now(UTC)
        async with self._lock:
            if self._rate_limit_reset is not None and now >= self._rate_limit_reset:
                log.debug("rate_limit_expired", reset=self._rate_limit_reset.isoformat())
                self._rate_limit_reset = None
            return self._rate_limit_reset

    async def count(self) -> int:
        async with self._lock:
            return len(self._entries)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._rate_limit_reset = None
