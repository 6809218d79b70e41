"""Tool handler for clear_cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from repopulse.state import AppState


async def handle(state: AppState) -> dict:
    """Drop ETags, cooldowns, the rate-limit reset and every cached detail document."""
    log = structlog.get_logger().bind(tool="clear_cache")
    log.info("handler_called")
    await state.client.clear_cache()
    return {"cleared": True}
