"""The merged, caller-facing view of one repository."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel

from repopulse.models.cache import DetailCacheState
from repopulse.models.repository import (
    ActivityEvent,
    ActivitySnapshot,
    CIStatus,
    CIStatusDetails,
    HeatmapCell,
    Release,
    TrafficStats,
)

if TYPE_CHECKING:
    from repopulse.models.github import RepoItem


class RepositorySnapshot(BaseModel):
    """What a refresh hands back to the caller.

    Always fully populated: fields whose fetch failed carry the last cached
    value, and ``error`` / ``rate_limited_until`` summarise what went wrong.
    """

    id: str
    name: str
    owner: str
    is_fork: bool = False
    is_archived: bool = False
    stars: int = 0
    forks: int = 0
    pushed_at: datetime | None = None
    open_issues: int = 0
    open_pulls: int = 0
    ci_status: CIStatus = CIStatus.UNKNOWN
    ci_run_count: int | None = None
    latest_release: Release | None = None
    latest_activity: ActivityEvent | None = None
    activity_events: list[ActivityEvent] = []
    traffic: TrafficStats | None = None
    heatmap: list[HeatmapCell] = []
    error: str | None = None
    rate_limited_until: datetime | None = None
    cache_state: DetailCacheState | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def from_item(
        cls,
        item: RepoItem,
        *,
        open_pulls: int = 0,
        issues: int | None = None,
        ci: CIStatusDetails | None = None,
        latest_release: Release | None = None,
        activity: ActivitySnapshot | None = None,
        traffic: TrafficStats | None = None,
        heatmap: list[HeatmapCell] | None = None,
        error: str | None = None,
        rate_limited_until: datetime | None = None,
        cache_state: DetailCacheState | None = None,
    ) -> RepositorySnapshot:
        ci = ci or CIStatusDetails()
        activity = activity or ActivitySnapshot()
        return cls(
            id=str(item.id),
            name=item.name,
            owner=item.owner.login,
            is_fork=item.fork,
            is_archived=item.archived,
            stars=item.stargazers_count,
            forks=item.forks_count,
            pushed_at=item.pushed_at,
            open_issues=item.open_issues_count if issues is None else issues,
            open_pulls=open_pulls,
            ci_status=ci.status,
            ci_run_count=ci.run_count,
            latest_release=latest_release,
            latest_activity=activity.latest or (activity.events[0] if activity.events else None),
            activity_events=activity.events,
            traffic=traffic,
            heatmap=heatmap or [],
            error=error,
            rate_limited_until=rate_limited_until,
            cache_state=cache_state,
        )

    @classmethod
    def placeholder(
        cls,
        owner: str,
        name: str,
        *,
        error: str | None,
        rate_limited_until: datetime | None,
    ) -> RepositorySnapshot:
        return cls(
            id=f"{owner}/{name}",
            name=name,
            owner=owner,
            error=error,
            rate_limited_until=rate_limited_until,
        )
