"""Tool handler for diagnostics."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from repopulse.state import AppState


async def handle(state: AppState) -> dict:
    log = structlog.get_logger().bind(tool="diagnostics")
    log.info("handler_called")
    summary = await state.client.diagnostics()
    return summary.model_dump(mode="json")
