"""Tool handler for full_repository.

Receives AppState, validates the repository coordinates, and returns the
merged snapshot as a structured dict. No MCP or FastMCP imports; server.py
handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from repopulse.errors import InvalidInputError
from repopulse.models.cache import DetailField
from repopulse.models.tools import FullRepositoryInput

if TYPE_CHECKING:
    from repopulse.state import AppState


async def handle(owner: str, name: str, state: AppState) -> dict:
    """Handle a full_repository tool call."""
    log = structlog.get_logger().bind(tool="full_repository", owner=owner, name=name)
    log.info("handler_called")

    try:
        validated = FullRepositoryInput(owner=owner, name=name)
    except ValidationError as exc:
        raise InvalidInputError(
            f"Invalid repository coordinates: {exc.errors()[0]['msg']}"
        ) from exc

    snapshot = await state.client.full_repository(validated.owner, validated.name)
    stale = snapshot.cache_state.needing_refresh() if snapshot.cache_state else list(DetailField)
    log.info(
        "refresh_returned",
        full_name=snapshot.full_name,
        error=snapshot.error,
        stale_fields=[field.value for field in stale],
    )
    return snapshot.model_dump(mode="json")
