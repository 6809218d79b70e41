"""Conditional GET runner for the GitHub REST API.

Every REST call goes through a single RequestRunner shared across
repositories. It receives an httpx.AsyncClient via constructor injection
(the lifespan owns the client lifecycle) together with the ETag store and
cooldown tracker it mutates.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import httpx
import structlog

from repopulse.cooldown import CooldownTracker
from repopulse.errors import (
    BadStatusError,
    RateLimitedError,
    StillComputingError,
    TransportError,
    format_reset,
)
from repopulse.etag import ETagStore
from repopulse.models.diagnostics import RateLimitSnapshot, RequestRunnerDiagnostics

if TYPE_CHECKING:
    from collections.abc import Collection

    from repopulse.config import GitHubSettings

log = structlog.get_logger()

STILL_COMPUTING_FALLBACK = timedelta(seconds=90)
RATE_LIMIT_FALLBACK = timedelta(seconds=60)
DEFAULT_ALLOWED_STATUSES: frozenset[int] = frozenset({200, 304})


def build_http_client(settings: GitHubSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        # GitHub answers renamed/transferred repositories with 301
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={
            "User-Agent": settings.user_agent,
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        },
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


def _int_header(response: httpx.Response, name: str) -> int | None:
    try:
        return int(response.headers[name])
    except (KeyError, ValueError):
        return None


def _rate_limit_date(response: httpx.Response) -> datetime | None:
    epoch = _int_header(response, "X-RateLimit-Reset")
    if epoch is None:
        return None
    return datetime.fromtimestamp(epoch, tz=UTC)


def _retry_after_date(response: httpx.Response, now: datetime) -> datetime | None:
    seconds = _int_header(response, "Retry-After")
    if seconds is None:
        return None
    return now + timedelta(seconds=seconds)


class RequestRunner:
    """Issues authenticated GETs and classifies every response.

    Outcomes: body returned (2xx, or cached body on 304), or one of
    RateLimitedError, StillComputingError, BadStatusError, TransportError.
    Shared state is only touched after a completed HTTP exchange.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        etag_store: ETagStore | None = None,
        cooldowns: CooldownTracker | None = None,
    ) -> None:
        self._client = client
        self._etags = etag_store or ETagStore()
        self._cooldowns = cooldowns or CooldownTracker()
        self._last_rate_limit_reset: datetime | None = None
        self._last_rate_limit_error: str | None = None
        self._latest_rest_rate_limit: RateLimitSnapshot | None = None

    async def get(
        self,
        url: str,
        token: str,
        allowed_statuses: Collection[int] = DEFAULT_ALLOWED_STATUSES,
    ) -> tuple[bytes, httpx.Response]:
        """GET ``url`` with ETag revalidation. Returns ``(body, response)``."""
        now = datetime.now(UTC)

        until = await self._etags.rate_limit_until(now)
        if until is not None:
            log.info("rate_limit_blocked", url=url, until=until.isoformat())
            raise RateLimitedError(until, f"GitHub rate limit hit; resets {format_reset(until)}.")

        cooldown = await self._cooldowns.cooldown(url, now)
        if cooldown is not None:
            log.info("cooldown_active", url=url, until=cooldown.isoformat())
            raise StillComputingError(cooldown, f"Cooling down until {format_reset(cooldown)}.")

        headers: dict[str, str] = {}
        if token:
            # GitHub requires "Bearer" for OAuth access tokens
            headers["Authorization"] = f"Bearer {token}"
        cached = await self._etags.cached(url)
        if cached is not None:
            headers["If-None-Match"] = cached.etag

        started = time.monotonic()
        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            log.warning("http_transport_error", url=url, error=str(exc))
            raise TransportError(f"Network error fetching {url}: {exc}") from exc

        self._log_response(url, response, started)
        status = response.status_code
        now = datetime.now(UTC)

        if status == 304 and cached is not None:
            log.debug("etag_not_modified", url=url)
            return cached.body, response

        if status == 202:
            retry_after = _retry_after_date(response, now) or now + STILL_COMPUTING_FALLBACK
            await self._cooldowns.set_cooldown(url, retry_after)
            log.info("still_computing", url=url, retry_after=retry_after.isoformat())
            raise StillComputingError(
                retry_after,
                "GitHub is generating repository stats; some numbers may be stale. "
                f"Retrying after {format_reset(retry_after)}.",
            )

        if status in (403, 429):
            remaining = _int_header(response, "X-RateLimit-Remaining")
            # Quota left means permissions or abuse detection, not an exhausted limit
            if remaining is not None and remaining > 0:
                log.info("forbidden_with_quota", url=url, status_code=status, remaining=remaining)
                raise BadStatusError(status)

            reset = _rate_limit_date(response) or now + RATE_LIMIT_FALLBACK
            self._last_rate_limit_reset = reset
            self._last_rate_limit_error = f"GitHub rate limit hit; resets {format_reset(reset)}."
            await self._etags.set_rate_limit_reset(reset)
            await self._cooldowns.set_cooldown(url, reset)
            log.warning("rate_limited", url=url, status_code=status, reset=reset.isoformat())
            raise RateLimitedError(reset, self._last_rate_limit_error)

        if status not in allowed_statuses:
            log.info("unexpected_status", url=url, status_code=status)
            raise BadStatusError(status)

        body = response.content
        etag = response.headers.get("ETag")
        if etag:
            await self._etags.save(url, etag, body)
            log.debug("etag_cached", url=url)
        await self._detect_rate_limit(response, now)
        return body, response

    async def rate_limit_reset(self, now: datetime | None = None) -> datetime | None:
        now = now or datetime.now(UTC)
        if self._last_rate_limit_reset is None or self._last_rate_limit_reset <= now:
            self._last_rate_limit_reset = None
            self._last_rate_limit_error = None
            return None
        return self._last_rate_limit_reset

    async def rate_limit_message(self, now: datetime | None = None) -> str | None:
        if await self.rate_limit_reset(now) is None:
            return None
        return self._last_rate_limit_error

    async def clear(self) -> None:
        await self._etags.clear()
        await self._cooldowns.clear()
        self._last_rate_limit_reset = None
        self._last_rate_limit_error = None

    async def diagnostics_snapshot(self) -> RequestRunnerDiagnostics:
        """Counters plus the rate-limit reset and message, both cleared once the reset passes."""
        return RequestRunnerDiagnostics(
            rate_limit_reset=await self.rate_limit_reset(),
            last_rate_limit_error=await self.rate_limit_message(),
            etag_entries=await self._etags.count(),
            cooldown_entries=await self._cooldowns.count(),
            rest_rate_limit=self._latest_rest_rate_limit,
        )

    def _log_response(self, url: str, response: httpx.Response, started: float) -> None:
        snapshot = RateLimitSnapshot.from_headers(response.headers)
        if snapshot is not None:
            self._latest_rest_rate_limit = snapshot
        log.info(
            "http_response",
            url=url,
            status_code=response.status_code,
            resource=snapshot.resource if snapshot else None,
            limit=snapshot.limit if snapshot else None,
            remaining=snapshot.remaining if snapshot else None,
            used=snapshot.used if snapshot else None,
            reset=snapshot.reset.isoformat() if snapshot and snapshot.reset else None,
            duration_ms=round((time.monotonic() - started) * 1000),
        )

    async def _detect_rate_limit(self, response: httpx.Response, now: datetime) -> None:
        remaining = _int_header(response, "X-RateLimit-Remaining")
        if remaining is None:
            return

        if remaining <= 0:
            reset = _rate_limit_date(response)
            if reset is not None:
                self._last_rate_limit_reset = reset
                self._last_rate_limit_error = f"GitHub rate limit hit; resets {format_reset(reset)}."
                await self._etags.set_rate_limit_reset(reset)
                log.warning("rate_limit_exhausted", reset=reset.isoformat())
        elif self._last_rate_limit_reset is not None and self._last_rate_limit_reset <= now:
            self._last_rate_limit_reset = None
            self._last_rate_limit_error = None
