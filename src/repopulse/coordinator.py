"""One "refresh a repository" operation.

Fetches canonical metadata, asks the policy which detail slots are missing
or stale, fans those fetches out concurrently, and merges the outcomes over
the previous cache document. Individual field failures never abort the
refresh: they are folded into an ErrorAccumulator and the slot keeps its
last known value.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from repopulse.errors import ErrorAccumulator
from repopulse.models.cache import DetailField
from repopulse.models.snapshot import RepositorySnapshot

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from repopulse.models.cache import DetailCache
    from repopulse.policy import DetailCachePolicy
    from repopulse.protocols import DetailStoreProtocol
    from repopulse.rest import GitHubRestAPI


@dataclass
class _FieldOutcome:
    field: DetailField
    value: Any = None
    error: Exception | None = None


def _value(cache: DetailCache, field: DetailField, default: Any = None) -> Any:
    slot = cache.slot(field)
    return slot.value if slot is not None else default


class RepoDetailCoordinator:
    def __init__(
        self,
        rest: GitHubRestAPI,
        policy: DetailCachePolicy,
        store: DetailStoreProtocol,
    ) -> None:
        self._rest = rest
        self._policy = policy
        self._store = store
        self._fetchers: dict[DetailField, Callable[[str, str], Awaitable[Any]]] = {
            DetailField.OPEN_PULLS: rest.open_pull_request_count,
            DetailField.CI: rest.ci_status,
            DetailField.ACTIVITY: rest.recent_activity,
            DetailField.TRAFFIC: rest.traffic_stats,
            DetailField.HEATMAP: rest.commit_heatmap,
            DetailField.RELEASE: rest.latest_release,
        }

    async def full_repository(self, owner: str, name: str) -> RepositorySnapshot:
        """Refresh one repository and return the merged snapshot.

        Only a failure of the canonical ``/repos/{owner}/{name}`` call ends
        the refresh early, with a placeholder snapshot carrying the error.
        """
        log = structlog.get_logger().bind(owner=owner, name=name)
        accumulator = ErrorAccumulator()

        try:
            details = await self._rest.repo_details(owner, name)
        except Exception as exc:
            accumulator.absorb(exc)
            log.warning("repo_details_failed", error=accumulator.message)
            return RepositorySnapshot.placeholder(
                owner,
                name,
                error=accumulator.message,
                rate_limited_until=accumulator.rate_limit,
            )

        now = datetime.now(UTC)
        api_host = self._rest.api_host()
        owner, name = details.owner.login, details.name
        cache = await asyncio.to_thread(self._store.load, api_host, owner, name)
        to_fetch = self._policy.state(cache, now).needing_refresh()
        log.info("detail_refresh_started", fields=[field.value for field in to_fetch])

        outcomes = await asyncio.gather(
            *(self._capture(field, self._fetchers[field](owner, name)) for field in to_fetch)
        )

        changed = False
        for outcome in outcomes:
            if outcome.error is not None:
                accumulator.absorb(outcome.error)
                log.info("detail_field_failed", field=outcome.field.value, error=str(outcome.error))
                continue
            cache.store(outcome.field, outcome.value, now)
            changed = True

        cache_state = self._policy.state(cache, now)
        if changed:
            await asyncio.to_thread(self._store.save, cache, api_host, owner, name)

        open_pulls = _value(cache, DetailField.OPEN_PULLS, 0)
        log.info(
            "detail_refresh_complete",
            fetched=len(outcomes),
            failed=sum(1 for outcome in outcomes if outcome.error is not None),
            rate_limited_until=accumulator.rate_limit.isoformat() if accumulator.rate_limit else None,
        )
        return RepositorySnapshot.from_item(
            details,
            open_pulls=open_pulls,
            issues=max(details.open_issues_count - open_pulls, 0),
            ci=_value(cache, DetailField.CI),
            latest_release=_value(cache, DetailField.RELEASE),
            activity=_value(cache, DetailField.ACTIVITY),
            traffic=_value(cache, DetailField.TRAFFIC),
            heatmap=_value(cache, DetailField.HEATMAP, []),
            error=accumulator.message,
            rate_limited_until=accumulator.rate_limit,
            cache_state=cache_state,
        )

    async def clear_cache(self) -> None:
        await asyncio.to_thread(self._store.clear)

    @staticmethod
    async def _capture(field: DetailField, work: Awaitable[Any]) -> _FieldOutcome:
        try:
            return _FieldOutcome(field, value=await work)
        except Exception as exc:
            return _FieldOutcome(field, error=exc)
