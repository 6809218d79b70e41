from __future__ import annotations

import asyncio
from datetime import UTC, datetime


class CooldownTracker:
    """Per-URL "do not retry before" timestamps, set from server hints."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._until: dict[str, datetime] = {}

    async def set_cooldown(self, url: str, until: datetime) -> None:
        async with self._lock:
            self._until[url] = until

    async def cooldown(self, url: str, now: datetime | None = None) -> datetime | None:
        """Active cooldown for ``url``, or ``None``. Expired entries are dropped."""
        now = now or datetime.now(UTC)
        async with self._lock:
            until = self._until.get(url)
            if until is None:
                return None
            if now >= until:
                del self._until[url]
                return None
            return until

    async def count(self) -> int:
        async with self._lock:
            return len(self._until)

    async def clear(self) -> None:
        async with self._lock:
            self._until.clear()
