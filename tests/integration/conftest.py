"""Integration test fixtures.

Provides a respx router with every GitHub endpoint a refresh of
``octo/hello`` touches, plus a fully wired AppState. Shared payloads and the
runner/store fixtures come from tests/conftest.py.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from repopulse.config import Settings
from repopulse.coordinator import RepoDetailCoordinator
from repopulse.policy import DetailCachePolicy
from repopulse.state import AppState

if TYPE_CHECKING:
    from collections.abc import Generator

    from repopulse.client import GitHubClient
    from repopulse.rest import GitHubRestAPI
    from repopulse.store import DetailStore

HOST = "api.github.com"
REPO_PATH = "/repos/octo/hello"
HEATMAP_WEEK = datetime(2026, 9, 27, tzinfo=UTC)


@pytest.fixture()
def github_api(
    repo_payload: dict,
    events_payload: list[dict],
    releases_payload: list[dict],
) -> Generator[dict[str, respx.Route], None, None]:
    """Healthy responses for every endpoint; two open pull requests."""
    pulls_link = '<https://api.github.com/repositories/1296269/pulls?state=open&per_page=1&page=2>; rel="last"'
    with respx.mock(assert_all_called=False) as router:

        def route(suffix: str, response: httpx.Response) -> respx.Route:
            return router.get(host=HOST, path=f"{REPO_PATH}{suffix}").mock(return_value=response)

        yield {
            "repo": route("", httpx.Response(200, json=repo_payload, headers={"ETag": '"repo-v1"'})),
            "pulls": route("/pulls", httpx.Response(200, json=[{"id": 10}], headers={"Link": pulls_link})),
            "ci": route(
                "/actions/runs",
                httpx.Response(
                    200,
                    json={"total_count": 12, "workflow_runs": [{"status": "completed", "conclusion": "success"}]},
                ),
            ),
            "events": route("/events", httpx.Response(200, json=events_payload)),
            "views": route("/traffic/views", httpx.Response(200, json={"count": 40, "uniques": 12})),
            "clones": route("/traffic/clones", httpx.Response(200, json={"count": 9, "uniques": 3})),
            "heatmap": route(
                "/stats/commit_activity",
                httpx.Response(200, json=[{"total": 3, "week": int(HEATMAP_WEEK.timestamp()), "days": [0, 0, 1, 2, 0, 0, 0]}]),
            ),
            "releases": route("/releases", httpx.Response(200, json=releases_payload)),
        }


@pytest.fixture()
def coordinator(rest_api: GitHubRestAPI, detail_store: DetailStore) -> RepoDetailCoordinator:
    return RepoDetailCoordinator(rest_api, DetailCachePolicy(), detail_store)


@pytest.fixture()
def app_state(http_client: httpx.AsyncClient, github_client: GitHubClient) -> AppState:
    """Full AppState wired for tool handler tests."""
    return AppState(settings=Settings(), http_client=http_client, client=github_client)
