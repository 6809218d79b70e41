from __future__ import annotations

from repopulse.models.cache import (
    DetailCache,
    DetailCacheState,
    DetailField,
    FieldFreshness,
    Slot,
)
from repopulse.models.diagnostics import (
    DiagnosticsSummary,
    RateLimitSnapshot,
    RequestRunnerDiagnostics,
)
from repopulse.models.repository import (
    ActivityEvent,
    ActivitySnapshot,
    CIStatus,
    CIStatusDetails,
    HeatmapCell,
    Release,
    TrafficStats,
)
from repopulse.models.snapshot import RepositorySnapshot
from repopulse.models.tools import FullRepositoryInput

__all__ = [
    # repository
    "CIStatus",
    "CIStatusDetails",
    "Release",
    "TrafficStats",
    "ActivityEvent",
    "ActivitySnapshot",
    "HeatmapCell",
    "RepositorySnapshot",
    # cache
    "DetailField",
    "FieldFreshness",
    "Slot",
    "DetailCache",
    "DetailCacheState",
    # diagnostics
    "RateLimitSnapshot",
    "RequestRunnerDiagnostics",
    "DiagnosticsSummary",
    # tools
    "FullRepositoryInput",
]
