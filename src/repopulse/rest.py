"""GitHub REST endpoints used by the detail coordinator.

Each method builds one endpoint URL, runs it through the shared
RequestRunner, and decodes the payload into typed records. Errors from the
runner propagate unchanged, except where an endpoint treats a status as
"not available for this repository" (traffic and commit stats on 403).
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, quote, urlencode, urlparse

import structlog
from pydantic import TypeAdapter, ValidationError

from repopulse.errors import BadStatusError, DecodeError
from repopulse.models.github import (
    ActionsRunsResponse,
    CommitActivityWeek,
    PullRequestListItem,
    ReleaseResponse,
    RepoEvent,
    RepoItem,
    TrafficResponse,
)
from repopulse.models.repository import (
    ActivitySnapshot,
    CIStatus,
    CIStatusDetails,
    HeatmapCell,
    Release,
    TrafficStats,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from repopulse.protocols import TokenProvider
    from repopulse.runner import RequestRunner

log = structlog.get_logger()

ACTIVITY_LIMIT = 10

_RepoEvents = TypeAdapter(list[RepoEvent])
_PullRequests = TypeAdapter(list[PullRequestListItem])
_Releases = TypeAdapter(list[ReleaseResponse])
_CommitWeeks = TypeAdapter(list[CommitActivityWeek])

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _decode(adapter: Any, data: bytes, what: str) -> Any:
    try:
        if isinstance(adapter, TypeAdapter):
            return adapter.validate_json(data)
        return adapter.model_validate_json(data)
    except ValidationError as exc:
        raise DecodeError(f"Unexpected {what} payload from GitHub: {exc.error_count()} error(s)") from exc


def last_page(link_header: str) -> int | None:
    """Page number of the ``rel="last"`` link, if any.

    ``<https://api.github.com/repositories/1/pulls?per_page=1&page=4>; rel="last"`` → 4
    """
    for part in link_header.split(","):
        segments = part.split(";")
        if not any('rel="last"' in segment for segment in segments[1:]):
            continue
        target = segments[0].strip().strip("<> ")
        pages = parse_qs(urlparse(target).query).get("page")
        if not pages:
            continue
        try:
            return int(pages[0])
        except ValueError:
            continue
    return None


def map_ci_status(status: str | None, conclusion: str | None) -> CIStatus:
    match conclusion or status:
        case "success":
            return CIStatus.PASSING
        case "failure" | "cancelled" | "timed_out":
            return CIStatus.FAILING
        case "in_progress" | "queued" | "waiting":
            return CIStatus.PENDING
        case _:
            return CIStatus.UNKNOWN


def pick_latest_release(releases: list[ReleaseResponse]) -> Release | None:
    """Newest non-draft release, ordered by published_at falling back to created_at."""
    candidates = [r for r in releases if r.draft is not True]
    if not candidates:
        return None
    newest = max(candidates, key=lambda r: r.published_at or r.created_at or _EPOCH)
    return Release(
        name=newest.name or newest.tag_name,
        tag=newest.tag_name,
        url=newest.html_url,
        published_at=newest.published_at or newest.created_at or _EPOCH,
    )


def web_host(api_host: str) -> str:
    """``https://api.github.com`` → ``https://github.com``; GHE hosts map to themselves."""
    parsed = urlparse(api_host)
    host = parsed.hostname or "github.com"
    if host == "api.github.com":
        host = "github.com"
    return f"{parsed.scheme or 'https'}://{host}"


class GitHubRestAPI:
    def __init__(
        self,
        api_host: Callable[[], str],
        token_provider: TokenProvider,
        runner: RequestRunner,
    ) -> None:
        self._api_host = api_host
        self._token_provider = token_provider
        self._runner = runner

    def api_host(self) -> str:
        return self._api_host()

    def _url(self, owner: str, name: str, suffix: str = "", **params: Any) -> str:
        base = self._api_host().rstrip("/")
        url = f"{base}/repos/{quote(owner, safe='')}/{quote(name, safe='')}{suffix}"
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    async def repo_details(self, owner: str, name: str) -> RepoItem:
        token = await self._token_provider()
        data, _ = await self._runner.get(self._url(owner, name), token)
        return _decode(RepoItem, data, "repository")

    async def open_pull_request_count(self, owner: str, name: str) -> int:
        token = await self._token_provider()
        url = self._url(owner, name, "/pulls", state="open", per_page=1, page=1)
        data, response = await self._runner.get(url, token)
        pulls = _decode(_PullRequests, data, "pull request list")
        link = response.headers.get("Link")
        if link:
            last = last_page(link)
            if last is not None:
                return last
        return len(pulls)

    async def ci_status(self, owner: str, name: str) -> CIStatusDetails:
        token = await self._token_provider()
        url = self._url(owner, name, "/actions/runs", per_page=1, branch="main")
        data, _ = await self._runner.get(url, token)
        runs = _decode(ActionsRunsResponse, data, "workflow runs")
        if not runs.workflow_runs:
            return CIStatusDetails(status=CIStatus.UNKNOWN, run_count=runs.total_count)
        run = runs.workflow_runs[0]
        return CIStatusDetails(status=map_ci_status(run.status, run.conclusion), run_count=runs.total_count)

    async def recent_activity(self, owner: str, name: str, limit: int = ACTIVITY_LIMIT) -> ActivitySnapshot:
        token = await self._token_provider()
        url = self._url(owner, name, "/events", per_page=30)
        data, _ = await self._runner.get(url, token)
        events = _decode(_RepoEvents, data, "event list")[: max(limit, 0)]
        host = web_host(self._api_host())
        mapped = [(event, event.activity_event(owner, name, host)) for event in events]
        preferred = next((activity for event, activity in mapped if event.has_rich_payload), None)
        return ActivitySnapshot(
            events=[activity for _, activity in mapped],
            latest=preferred or (mapped[0][1] if mapped else None),
        )

    async def traffic_stats(self, owner: str, name: str) -> TrafficStats | None:
        """Unique visitors/cloners, or ``None`` when traffic is forbidden for this repo."""
        token = await self._token_provider()
        views_url = self._url(owner, name, "/traffic/views")
        clones_url = self._url(owner, name, "/traffic/clones")
        results = await asyncio.gather(
            self._runner.get(views_url, token),
            self._runner.get(clones_url, token),
            return_exceptions=True,
        )
        try:
            for result in results:
                if isinstance(result, BaseException):
                    raise result
        except BadStatusError as exc:
            if exc.status_code == 403:
                log.info("traffic_forbidden", owner=owner, name=name)
                return None
            raise
        (views_data, _), (clones_data, _) = results  # type: ignore[misc]
        views = _decode(TrafficResponse, views_data, "traffic views")
        clones = _decode(TrafficResponse, clones_data, "traffic clones")
        return TrafficStats(unique_visitors=views.uniques, unique_cloners=clones.uniques)

    async def commit_heatmap(self, owner: str, name: str) -> list[HeatmapCell]:
        """One cell per day of the last year; empty when stats are forbidden."""
        token = await self._token_provider()
        url = self._url(owner, name, "/stats/commit_activity")
        try:
            data, _ = await self._runner.get(url, token)
        except BadStatusError as exc:
            if exc.status_code == 403:
                log.info("commit_activity_forbidden", owner=owner, name=name)
                return []
            raise
        # GitHub answers "{}" for repositories with no commit history
        if data.strip() in (b"", b"{}"):
            return []
        weeks = _decode(_CommitWeeks, data, "commit activity")
        return [
            HeatmapCell(
                date=datetime.fromtimestamp(week.week, tz=UTC) + timedelta(days=offset),
                count=count,
            )
            for week in weeks
            for offset, count in enumerate(week.days[:7])
        ]

    async def latest_release(self, owner: str, name: str) -> Release | None:
        token = await self._token_provider()
        url = self._url(owner, name, "/releases", per_page=20)
        data, response = await self._runner.get(url, token, allowed_statuses={200, 304, 404})
        if response.status_code == 404:
            raise BadStatusError(404, "No releases found.")
        return pick_latest_release(_decode(_Releases, data, "release list"))
