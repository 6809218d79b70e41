"""Per-field freshness policy for the repository detail cache.

Pure and deterministic: given a DetailCache and "now", decide which slots
are missing, fresh, or stale. It decides *what* the coordinator fetches,
never *how*.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from repopulse.models.cache import DetailCacheState, DetailField, FieldFreshness

if TYPE_CHECKING:
    from datetime import datetime

    from repopulse.config import CacheSettings
    from repopulse.models.cache import DetailCache


def freshness(fetched_at: datetime | None, now: datetime, ttl: timedelta) -> FieldFreshness:
    if fetched_at is None:
        return FieldFreshness.MISSING
    if now - fetched_at > ttl:
        return FieldFreshness.STALE
    return FieldFreshness.FRESH


@dataclass(frozen=True)
class DetailCachePolicy:
    open_pulls_ttl: timedelta = timedelta(minutes=5)
    ci_ttl: timedelta = timedelta(minutes=5)
    activity_ttl: timedelta = timedelta(minutes=15)
    traffic_ttl: timedelta = timedelta(hours=1)
    heatmap_ttl: timedelta = timedelta(hours=6)
    release_ttl: timedelta = timedelta(hours=1)

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> DetailCachePolicy:
        return cls(
            open_pulls_ttl=timedelta(seconds=settings.open_pulls_ttl),
            ci_ttl=timedelta(seconds=settings.ci_ttl),
            activity_ttl=timedelta(seconds=settings.activity_ttl),
            traffic_ttl=timedelta(seconds=settings.traffic_ttl),
            heatmap_ttl=timedelta(seconds=settings.heatmap_ttl),
            release_ttl=timedelta(seconds=settings.release_ttl),
        )

    def ttl(self, field: DetailField) -> timedelta:
        return getattr(self, f"{field.value}_ttl")

    def state(self, cache: DetailCache, now: datetime) -> DetailCacheState:
        return DetailCacheState(
            **{
                field.value: freshness(cache.fetched_at(field), now, self.ttl(field))
                for field in DetailField
            }
        )
