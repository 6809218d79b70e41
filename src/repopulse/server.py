"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Start the correct transport (stdio or HTTP)
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import repopulse.tools.clear_cache as t_clear_cache
import repopulse.tools.diagnostics as t_diagnostics
import repopulse.tools.full_repository as t_full_repository
from repopulse import __version__
from repopulse.client import GitHubClient, static_token
from repopulse.config import Settings
from repopulse.cooldown import CooldownTracker
from repopulse.errors import GitHubAPIError
from repopulse.etag import ETagStore
from repopulse.policy import DetailCachePolicy
from repopulse.runner import RequestRunner, build_http_client
from repopulse.state import AppState
from repopulse.store import DetailDiskStore, DetailStore
from repopulse.transport import run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import httpx

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout is reserved for the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def build_client(settings: Settings, http_client: httpx.AsyncClient) -> GitHubClient:
    """Wire the runner, store and policy behind one GitHubClient."""
    runner = RequestRunner(http_client, ETagStore(), CooldownTracker())
    store = DetailStore(DetailDiskStore(Path(settings.cache.dir).expanduser()))
    token = settings.github.token.get_secret_value() if settings.github.token else None
    return GitHubClient(
        runner,
        store,
        DetailCachePolicy.from_settings(settings.cache),
        static_token(token),
        api_host=settings.github.api_host,
    )


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        transport=settings.server.transport,
    )

    http_client = build_http_client(settings.github)
    state = AppState(
        settings=settings,
        http_client=http_client,
        client=build_client(settings, http_client),
    )

    log.info(
        "server_started",
        version=__version__,
        transport=settings.server.transport,
        api_host=state.client.api_host,
        authenticated=settings.github.token is not None,
        cache_dir=settings.cache.dir,
    )

    try:
        yield state
    finally:
        await http_client.aclose()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("repopulse", lifespan=lifespan)
# FastMCP doesn't expose a version kwarg; set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: GitHubAPIError) -> CallToolResult:
    """Convert a GitHubAPIError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


def _log_tool_error(tool: str, exc: GitHubAPIError) -> None:
    log.warning(
        "tool_error",
        tool=tool,
        code=exc.code,
        message=exc.message,
        recoverable=exc.recoverable,
    )


@mcp.tool()
async def full_repository(owner: str, name: str, ctx: Context) -> object:
    """Return the current state of one GitHub repository.

    Combines repository metadata with open pull requests, CI status, recent
    activity, traffic, the commit heatmap and the latest release. Fields that
    are still fresh are served from cache; fields that could not be refreshed
    keep their last known value and are summarised in ``error``.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_full_repository.handle(owner, name, state)
    except GitHubAPIError as exc:
        _log_tool_error("full_repository", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="full_repository", exc_info=True)
        raise


@mcp.tool()
async def clear_cache(ctx: Context) -> object:
    """Forget all cached ETags, cooldowns, rate-limit state and repository details."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_clear_cache.handle(state)
    except Exception:
        log.error("tool_unexpected_error", tool="clear_cache", exc_info=True)
        raise


@mcp.tool()
async def diagnostics(ctx: Context) -> object:
    """Report API host, rate-limit state and cache entry counts."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_diagnostics.handle(state)
    except Exception:
        log.error("tool_unexpected_error", tool="diagnostics", exc_info=True)
        raise


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()

    if settings.server.transport == "http":
        _setup_logging(settings)
        run_http_server(mcp, settings)
        return

    mcp.run()


if __name__ == "__main__":
    main()
