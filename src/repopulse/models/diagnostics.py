from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    import httpx


def _int_header(headers: httpx.Headers, name: str) -> int | None:
    try:
        return int(headers[name])
    except (KeyError, ValueError):
        return None


class RateLimitSnapshot(BaseModel):
    """Quota usage as reported by the ``X-RateLimit-*`` headers of one response."""

    resource: str = "core"
    limit: int | None = None
    remaining: int | None = None
    used: int | None = None
    reset: datetime | None = None
    fetched_at: datetime

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> RateLimitSnapshot | None:
        """Return ``None`` when the response carries no rate-limit headers at all."""
        limit = _int_header(headers, "X-RateLimit-Limit")
        remaining = _int_header(headers, "X-RateLimit-Remaining")
        used = _int_header(headers, "X-RateLimit-Used")
        reset_epoch = _int_header(headers, "X-RateLimit-Reset")
        if limit is None and remaining is None and used is None and reset_epoch is None:
            return None
        return cls(
            resource=headers.get("X-RateLimit-Resource", "core"),
            limit=limit,
            remaining=remaining,
            used=used,
            reset=datetime.fromtimestamp(reset_epoch, tz=UTC) if reset_epoch is not None else None,
            fetched_at=datetime.now(UTC),
        )


class RequestRunnerDiagnostics(BaseModel):
    rate_limit_reset: datetime | None = None
    last_rate_limit_error: str | None = None
    etag_entries: int = 0
    cooldown_entries: int = 0
    rest_rate_limit: RateLimitSnapshot | None = None


class DiagnosticsSummary(RequestRunnerDiagnostics):
    api_host: str
