"""Streamable HTTP transport for the MCP server.

Over HTTP the tools act with the configured GitHub token, so requests are
only served to local origins and, when ``server.auth_key`` is set, to
callers presenting it as a bearer token.
"""

from __future__ import annotations

import re
import secrets
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.datastructures import Headers
from starlette.responses import Response

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP
    from starlette.types import ASGIApp, Receive, Scope, Send

    from repopulse.config import Settings

log = structlog.get_logger()

_LOCAL_ORIGIN = re.compile(r"^https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$")


class LocalAccessMiddleware:
    """Pure ASGI guard in front of the MCP app.

    Written as plain ASGI rather than BaseHTTPMiddleware so that streamed
    responses pass through unbuffered.
    """

    def __init__(self, app: ASGIApp, *, auth_key: str | None = None) -> None:
        self.app = app
        self.auth_key = auth_key

    def _rejection(self, headers: Headers) -> Response | None:
        if self.auth_key is not None:
            header = headers.get("authorization", "")
            if not header.startswith("Bearer "):
                return Response("Unauthorized", status_code=401)
            presented = header[len("Bearer ") :]
            if not secrets.compare_digest(presented.encode(), self.auth_key.encode()):
                return Response("Unauthorized", status_code=401)

        # Browsers send Origin; a foreign one means DNS rebinding or CSRF
        origin = headers.get("origin")
        if origin and not _LOCAL_ORIGIN.match(origin):
            return Response("Forbidden", status_code=403)
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            rejection = self._rejection(Headers(scope=scope))
            if rejection is not None:
                log.info("http_request_rejected", status_code=rejection.status_code, path=scope.get("path"))
                await rejection(scope, receive, send)
                return
        await self.app(scope, receive, send)


def run_http_server(mcp: FastMCP, settings: Settings) -> None:
    """Start the MCP server with Streamable HTTP transport."""
    auth_key = settings.server.auth_key.get_secret_value() if settings.server.auth_key else None
    if auth_key is None:
        log.warning("http_auth_disabled", host=settings.server.host, port=settings.server.port)

    app = LocalAccessMiddleware(mcp.streamable_http_app(), auth_key=auth_key)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # structlog handles logging
    )
