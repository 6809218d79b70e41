"""repopulse: rate-limit-aware GitHub repository state sync, served over MCP."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

_DISTRIBUTION = "repopulse"
UNKNOWN_VERSION = "0.0.0+unknown"


def _resolve_version() -> str:
    try:
        return version(_DISTRIBUTION)
    except PackageNotFoundError:
        # Source checkout that was never installed
        return UNKNOWN_VERSION


__version__ = _resolve_version()
