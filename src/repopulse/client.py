"""Facade over the request runner, REST layer and detail coordinator.

GitHubClient owns the configurable API host, coalesces concurrent refreshes
of the same repository into one in-flight task, and exposes the cache-reset
and diagnostics operations used by the MCP tools.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import structlog

from repopulse.config import DEFAULT_API_HOST
from repopulse.coordinator import RepoDetailCoordinator
from repopulse.errors import InvalidHostError
from repopulse.models.diagnostics import DiagnosticsSummary
from repopulse.rest import GitHubRestAPI

if TYPE_CHECKING:
    from datetime import datetime

    from repopulse.models.snapshot import RepositorySnapshot
    from repopulse.policy import DetailCachePolicy
    from repopulse.protocols import DetailStoreProtocol, TokenProvider
    from repopulse.runner import RequestRunner

log = structlog.get_logger()


def static_token(token: str | None) -> TokenProvider:
    """Token provider for a fixed personal access token (or none at all)."""

    async def provide() -> str:
        return token or ""

    return provide


def normalise_api_host(host: str) -> str:
    """Validate an API base URL. Only ``https://`` URLs with a hostname are accepted."""
    candidate = host.strip().rstrip("/")
    parsed = urlparse(candidate)
    if parsed.scheme != "https" or not parsed.hostname:
        raise InvalidHostError(host)
    return candidate


class GitHubClient:
    def __init__(
        self,
        runner: RequestRunner,
        store: DetailStoreProtocol,
        policy: DetailCachePolicy,
        token_provider: TokenProvider,
        api_host: str = DEFAULT_API_HOST,
    ) -> None:
        self._runner = runner
        self._api_host = normalise_api_host(api_host)
        self._rest = GitHubRestAPI(lambda: self._api_host, token_provider, runner)
        self._coordinator = RepoDetailCoordinator(self._rest, policy, store)
        self._in_flight: dict[str, asyncio.Task[RepositorySnapshot]] = {}
        self._waiters: dict[asyncio.Task[RepositorySnapshot], int] = {}

    @property
    def api_host(self) -> str:
        return self._api_host

    def set_api_host(self, host: str) -> None:
        """Point subsequent requests at a GitHub Enterprise host.

        Raises InvalidHostError and keeps the previous host if ``host`` is
        not an https URL with a hostname.
        """
        self._api_host = normalise_api_host(host)
        log.info("api_host_changed", api_host=self._api_host)

    async def full_repository(self, owner: str, name: str) -> RepositorySnapshot:
        """Refresh one repository, sharing the result with concurrent callers.

        A cancelled caller leaves the shared refresh running for the others.
        When the last waiting caller is cancelled the refresh is cancelled too.
        """
        key = f"{owner.casefold()}/{name.casefold()}"
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._coordinator.full_repository(owner, name))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            log.debug("refresh_coalesced", key=key)

        self._waiters[task] = self._waiters.get(task, 0) + 1
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if self._waiters[task] == 1 and not task.done():
                log.info("refresh_cancelled", key=key)
                task.cancel()
            raise
        finally:
            self._waiters[task] -= 1
            if not self._waiters[task]:
                del self._waiters[task]

    async def rate_limit_reset(self) -> datetime | None:
        """When the exhausted REST quota resets, or None if requests may go out."""
        return await self._runner.rate_limit_reset()

    async def rate_limit_message(self) -> str | None:
        return await self._runner.rate_limit_message()

    async def clear_cache(self) -> None:
        await self._runner.clear()
        await self._coordinator.clear_cache()
        log.info("cache_cleared")

    async def diagnostics(self) -> DiagnosticsSummary:
        snapshot = await self._runner.diagnostics_snapshot()
        return DiagnosticsSummary(api_host=self._api_host, **snapshot.model_dump())

    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def _forget(self, key: str, task: asyncio.Task[RepositorySnapshot]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
