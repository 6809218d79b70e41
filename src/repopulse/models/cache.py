from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel

from repopulse.models.repository import (
    ActivitySnapshot,
    CIStatusDetails,
    HeatmapCell,
    Release,
    TrafficStats,
)

T = TypeVar("T")


class DetailField(StrEnum):
    """The independently refreshed slots of a DetailCache.

    Values double as DetailCache / DetailCacheState attribute names.
    """

    OPEN_PULLS = "open_pulls"
    CI = "ci"
    ACTIVITY = "activity"
    TRAFFIC = "traffic"
    HEATMAP = "heatmap"
    RELEASE = "release"


class FieldFreshness(StrEnum):
    MISSING = "missing"
    FRESH = "fresh"
    STALE = "stale"

    @property
    def needs_refresh(self) -> bool:
        return self is not FieldFreshness.FRESH


class Slot(BaseModel, Generic[T]):
    """A cached value and the moment it was fetched. Always replaced whole."""

    value: T
    fetched_at: datetime


class DetailCache(BaseModel):
    """Per-repository cache document; one JSON file on disk.

    A ``None`` slot means the field was never fetched. A slot whose value is
    empty (``None`` traffic, ``[]`` heatmap) was fetched and came back empty.
    """

    open_pulls: Slot[int] | None = None
    ci: Slot[CIStatusDetails] | None = None
    activity: Slot[ActivitySnapshot] | None = None
    traffic: Slot[TrafficStats | None] | None = None
    heatmap: Slot[list[HeatmapCell]] | None = None
    release: Slot[Release | None] | None = None

    def slot(self, field: DetailField) -> Slot | None:
        return getattr(self, field.value)

    def fetched_at(self, field: DetailField) -> datetime | None:
        slot = self.slot(field)
        return slot.fetched_at if slot is not None else None

    def store(self, field: DetailField, value: object, fetched_at: datetime) -> None:
        """Replace a slot's value and timestamp together."""
        setattr(self, field.value, _SLOT_TYPES[field](value=value, fetched_at=fetched_at))


_SLOT_TYPES: dict[DetailField, type[Slot]] = {
    DetailField.OPEN_PULLS: Slot[int],
    DetailField.CI: Slot[CIStatusDetails],
    DetailField.ACTIVITY: Slot[ActivitySnapshot],
    DetailField.TRAFFIC: Slot[TrafficStats | None],
    DetailField.HEATMAP: Slot[list[HeatmapCell]],
    DetailField.RELEASE: Slot[Release | None],
}


class DetailCacheState(BaseModel):
    """Freshness of every slot at one instant."""

    open_pulls: FieldFreshness = FieldFreshness.MISSING
    ci: FieldFreshness = FieldFreshness.MISSING
    activity: FieldFreshness = FieldFreshness.MISSING
    traffic: FieldFreshness = FieldFreshness.MISSING
    heatmap: FieldFreshness = FieldFreshness.MISSING
    release: FieldFreshness = FieldFreshness.MISSING

    def of(self, field: DetailField) -> FieldFreshness:
        return getattr(self, field.value)

    def needing_refresh(self) -> list[DetailField]:
        return [field for field in DetailField if self.of(field).needs_refresh]
