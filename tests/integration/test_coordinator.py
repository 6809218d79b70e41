"""Integration tests for RepoDetailCoordinator.

Drive full refreshes through the real runner, REST layer and two-tier store,
with GitHub mocked by respx.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import httpx

from repopulse.coordinator import RepoDetailCoordinator
from repopulse.models.cache import DetailCache, DetailField, FieldFreshness
from repopulse.models.repository import ActivitySnapshot, CIStatus, CIStatusDetails, Release
from repopulse.policy import DetailCachePolicy
from repopulse.store import DetailDiskStore, DetailStore

if TYPE_CHECKING:
    from pathlib import Path

    import respx

    from repopulse.rest import GitHubRestAPI


API_HOST = "https://api.github.com"
DETAIL_ROUTES = ("pulls", "ci", "events", "views", "clones", "heatmap", "releases")


def _all_fresh(now: datetime) -> DetailCache:
    cache = DetailCache()
    cache.store(DetailField.OPEN_PULLS, 1, now)
    cache.store(DetailField.CI, CIStatusDetails(status=CIStatus.PASSING, run_count=1), now)
    cache.store(DetailField.ACTIVITY, ActivitySnapshot(), now)
    cache.store(DetailField.TRAFFIC, None, now)
    cache.store(DetailField.HEATMAP, [], now)
    cache.store(DetailField.RELEASE, None, now)
    return cache


class TestColdCache:
    async def test_first_refresh_fetches_everything(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
        cache_dir: Path,
    ) -> None:
        snapshot = await coordinator.full_repository("octo", "hello")

        assert snapshot.error is None
        assert snapshot.rate_limited_until is None
        assert snapshot.full_name == "octo/hello"
        assert snapshot.stars == 80
        # GitHub counts pull requests as issues: 5 - 2
        assert snapshot.open_pulls == 2
        assert snapshot.open_issues == 3
        assert snapshot.ci_status is CIStatus.PASSING
        assert snapshot.ci_run_count == 12
        assert snapshot.latest_release is not None
        assert snapshot.latest_release.tag == "v1.1"
        assert snapshot.traffic is not None
        assert snapshot.traffic.unique_visitors == 12
        assert len(snapshot.heatmap) == 7
        assert len(snapshot.activity_events) == 2
        assert snapshot.latest_activity is not None
        assert snapshot.latest_activity.actor == "bob"

        assert snapshot.cache_state is not None
        assert snapshot.cache_state.needing_refresh() == []
        assert all(route.call_count == 1 for route in github_api.values())
        assert (cache_dir / "api.github.com" / "octo" / "hello.json").exists()

    async def test_issue_count_never_negative(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
        repo_payload: dict,
    ) -> None:
        github_api["repo"].mock(return_value=httpx.Response(200, json={**repo_payload, "open_issues_count": 1}))

        snapshot = await coordinator.full_repository("octo", "hello")

        assert snapshot.open_pulls == 2
        assert snapshot.open_issues == 0


class TestWarmCache:
    async def test_fresh_fields_are_not_refetched(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
    ) -> None:
        first = await coordinator.full_repository("octo", "hello")
        second = await coordinator.full_repository("octo", "hello")

        assert github_api["repo"].call_count == 2
        assert all(github_api[name].call_count == 1 for name in DETAIL_ROUTES)
        assert second.open_issues == first.open_issues
        assert second.latest_release == first.latest_release
        assert second.heatmap == first.heatmap

    async def test_only_stale_fields_are_fetched(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
        detail_store: DetailStore,
    ) -> None:
        now = datetime.now(UTC)
        cache = _all_fresh(now)
        cache.store(DetailField.CI, CIStatusDetails(status=CIStatus.FAILING, run_count=1), now - timedelta(hours=1))
        detail_store.save(cache, API_HOST, "octo", "hello")

        snapshot = await coordinator.full_repository("octo", "hello")

        assert github_api["ci"].call_count == 1
        assert all(github_api[name].call_count == 0 for name in DETAIL_ROUTES if name != "ci")
        assert snapshot.ci_status is CIStatus.PASSING
        assert snapshot.open_pulls == 1
        assert snapshot.cache_state is not None
        assert snapshot.cache_state.ci is FieldFreshness.FRESH

    async def test_cache_survives_a_new_process(
        self,
        rest_api: GitHubRestAPI,
        github_api: dict[str, respx.Route],
        cache_dir: Path,
    ) -> None:
        first_run = RepoDetailCoordinator(rest_api, DetailCachePolicy(), DetailStore(DetailDiskStore(cache_dir)))
        await first_run.full_repository("octo", "hello")

        restarted = RepoDetailCoordinator(rest_api, DetailCachePolicy(), DetailStore(DetailDiskStore(cache_dir)))
        snapshot = await restarted.full_repository("octo", "hello")

        assert github_api["releases"].call_count == 1
        assert snapshot.latest_release is not None


class TestFailures:
    async def test_failed_fetch_keeps_previous_value(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
        detail_store: DetailStore,
    ) -> None:
        now = datetime.now(UTC)
        earlier = now - timedelta(hours=2)
        previous = Release(name="v1.0", tag="v1.0", url="https://github.com/octo/hello/releases/v1.0", published_at=earlier)
        cache = _all_fresh(now)
        cache.store(DetailField.RELEASE, previous, earlier)
        detail_store.save(cache, API_HOST, "octo", "hello")
        github_api["releases"].mock(return_value=httpx.Response(500))

        snapshot = await coordinator.full_repository("octo", "hello")

        assert snapshot.latest_release == previous
        assert snapshot.error == "GitHub returned 500."
        assert snapshot.cache_state is not None
        assert snapshot.cache_state.release is FieldFreshness.STALE
        stored = detail_store.load(API_HOST, "octo", "hello")
        assert stored.release is not None
        assert stored.release.fetched_at == earlier

    async def test_missing_releases_are_reported(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
    ) -> None:
        github_api["releases"].mock(return_value=httpx.Response(404))

        snapshot = await coordinator.full_repository("octo", "hello")

        assert snapshot.error == "No releases found."
        assert snapshot.latest_release is None
        assert snapshot.ci_status is CIStatus.PASSING
        assert snapshot.cache_state is not None
        assert snapshot.cache_state.release is FieldFreshness.MISSING

    async def test_still_computing_reports_retry_time(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
    ) -> None:
        github_api["heatmap"].mock(return_value=httpx.Response(202, headers={"Retry-After": "30"}))

        snapshot = await coordinator.full_repository("octo", "hello")

        assert snapshot.heatmap == []
        assert snapshot.error is not None
        assert snapshot.error.startswith("GitHub is generating repository stats")
        assert snapshot.rate_limited_until is not None
        assert snapshot.cache_state is not None
        assert snapshot.cache_state.heatmap is FieldFreshness.MISSING
        assert snapshot.cache_state.traffic is FieldFreshness.FRESH

    async def test_forbidden_traffic_is_cached_as_empty(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
    ) -> None:
        headers = {"X-RateLimit-Remaining": "4000"}
        github_api["views"].mock(return_value=httpx.Response(403, headers=headers))
        github_api["clones"].mock(return_value=httpx.Response(403, headers=headers))

        snapshot = await coordinator.full_repository("octo", "hello")

        assert snapshot.error is None
        assert snapshot.traffic is None
        assert snapshot.cache_state is not None
        assert snapshot.cache_state.traffic is FieldFreshness.FRESH

    async def test_metadata_failure_returns_placeholder(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
        cache_dir: Path,
    ) -> None:
        github_api["repo"].mock(return_value=httpx.Response(404))

        snapshot = await coordinator.full_repository("octo", "hello")

        assert snapshot.id == "octo/hello"
        assert snapshot.error == "GitHub returned 404."
        assert snapshot.cache_state is None
        assert all(github_api[name].call_count == 0 for name in DETAIL_ROUTES)
        assert not cache_dir.exists()

    async def test_rate_limit_on_metadata_sets_until(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
    ) -> None:
        reset = int((datetime.now(UTC) + timedelta(minutes=20)).timestamp())
        github_api["repo"].mock(
            return_value=httpx.Response(
                403,
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(reset)},
            )
        )

        snapshot = await coordinator.full_repository("octo", "hello")

        assert snapshot.rate_limited_until == datetime.fromtimestamp(reset, tz=UTC)
        assert snapshot.error is not None
        assert snapshot.error.startswith("GitHub rate limit hit")

    async def test_exhausted_quota_fails_remaining_fetches_fast(
        self,
        coordinator: RepoDetailCoordinator,
        github_api: dict[str, respx.Route],
        repo_payload: dict,
    ) -> None:
        reset = int((datetime.now(UTC) + timedelta(minutes=20)).timestamp())
        github_api["repo"].mock(
            return_value=httpx.Response(
                200,
                json=repo_payload,
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(reset)},
            )
        )

        snapshot = await coordinator.full_repository("octo", "hello")

        assert all(github_api[name].call_count == 0 for name in DETAIL_ROUTES)
        assert snapshot.stars == 80
        assert snapshot.rate_limited_until == datetime.fromtimestamp(reset, tz=UTC)
        assert snapshot.cache_state is not None
        assert snapshot.cache_state.needing_refresh() == list(DetailField)
