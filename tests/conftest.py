"""Shared test fixtures for the repopulse test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from repopulse.client import GitHubClient, static_token
from repopulse.policy import DetailCachePolicy
from repopulse.rest import GitHubRestAPI
from repopulse.runner import RequestRunner
from repopulse.store import DetailDiskStore, DetailStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

API_HOST = "https://api.github.com"
GITHUB_HOST = "api.github.com"


@pytest.fixture()
def repo_payload() -> dict:
    """``GET /repos/octo/hello`` body: 5 open issues, which GitHub counts with PRs."""
    return {
        "id": 1296269,
        "name": "hello",
        "full_name": "octo/hello",
        "owner": {"login": "octo"},
        "open_issues_count": 5,
        "fork": False,
        "archived": False,
        "stargazers_count": 80,
        "forks_count": 9,
        "pushed_at": "2026-10-01T12:00:00Z",
    }


@pytest.fixture()
def events_payload() -> list[dict]:
    return [
        {
            "type": "PushEvent",
            "actor": {"login": "alice"},
            "payload": {"head": "abc123"},
            "created_at": "2026-10-02T09:00:00Z",
        },
        {
            "type": "IssueCommentEvent",
            "actor": {"login": "bob"},
            "payload": {
                "action": "created",
                "issue": {"title": "Crash on start", "number": 7, "html_url": "https://github.com/octo/hello/issues/7"},
                "comment": {"body": "Same here", "html_url": "https://github.com/octo/hello/issues/7#c1"},
            },
            "created_at": "2026-10-01T09:00:00Z",
        },
    ]


@pytest.fixture()
def releases_payload() -> list[dict]:
    return [
        {
            "name": "v1.0",
            "tag_name": "v1.0",
            "html_url": "https://github.com/octo/hello/releases/v1.0",
            "published_at": "2026-01-01T00:00:00Z",
        },
        {
            "name": "v1.1",
            "tag_name": "v1.1",
            "html_url": "https://github.com/octo/hello/releases/v1.1",
            "published_at": "2026-03-01T00:00:00Z",
        },
        {
            "name": "v2.0-draft",
            "tag_name": "v2.0",
            "html_url": "https://github.com/octo/hello/releases/v2.0",
            "published_at": None,
            "created_at": "2026-09-01T00:00:00Z",
            "draft": True,
        },
    ]


@pytest.fixture()
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture()
def runner(http_client: httpx.AsyncClient) -> RequestRunner:
    return RequestRunner(http_client)


@pytest.fixture()
def rest_api(runner: RequestRunner) -> GitHubRestAPI:
    return GitHubRestAPI(lambda: API_HOST, static_token("test-token"), runner)


@pytest.fixture()
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "repo-details"


@pytest.fixture()
def detail_store(cache_dir: Path) -> DetailStore:
    return DetailStore(DetailDiskStore(cache_dir))


@pytest.fixture()
def github_client(runner: RequestRunner, detail_store: DetailStore) -> GitHubClient:
    return GitHubClient(runner, detail_store, DetailCachePolicy(), static_token("test-token"))
