from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class CIStatus(StrEnum):
    PASSING = "passing"
    FAILING = "failing"
    PENDING = "pending"
    UNKNOWN = "unknown"


class CIStatusDetails(BaseModel):
    status: CIStatus = CIStatus.UNKNOWN
    run_count: int | None = None


class Release(BaseModel):
    name: str
    tag: str
    url: str
    published_at: datetime


class TrafficStats(BaseModel):
    unique_visitors: int
    unique_cloners: int


class ActivityEvent(BaseModel):
    title: str
    actor: str
    date: datetime
    url: str


class ActivitySnapshot(BaseModel):
    events: list[ActivityEvent] = []
    latest: ActivityEvent | None = None


class HeatmapCell(BaseModel):
    date: datetime
    count: int
