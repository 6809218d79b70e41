"""Decoders for the GitHub REST payloads this package consumes.

Only the fields we read are declared; pydantic ignores the rest.
"""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field

from repopulse.models.repository import ActivityEvent

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")

# Event types whose readable name isn't just the split type name
_EVENT_TITLES = {
    "IssuesEvent": "Issue",
    "WatchEvent": "Starred",
    "CreateEvent": "Created",
    "DeleteEvent": "Deleted",
}


class Owner(BaseModel):
    login: str


class RepoItem(BaseModel):
    """``GET /repos/{owner}/{name}``"""

    id: int
    name: str
    owner: Owner
    open_issues_count: int = 0
    fork: bool = False
    archived: bool = False
    stargazers_count: int = 0
    forks_count: int = 0
    pushed_at: datetime | None = None


class PullRequestListItem(BaseModel):
    id: int


class WorkflowRun(BaseModel):
    status: str | None = None
    conclusion: str | None = None


class ActionsRunsResponse(BaseModel):
    total_count: int | None = None
    workflow_runs: list[WorkflowRun] = []


class TrafficResponse(BaseModel):
    uniques: int = 0


class CommitActivityWeek(BaseModel):
    week: int  # Epoch seconds of the week's Sunday
    days: list[int] = []


class ReleaseResponse(BaseModel):
    name: str | None = None
    tag_name: str
    html_url: str
    published_at: datetime | None = None
    created_at: datetime | None = None
    draft: bool | None = None


class EventActor(BaseModel):
    login: str


class EventComment(BaseModel):
    body: str | None = None
    html_url: str | None = None

    @property
    def body_preview(self) -> str:
        trimmed = (self.body or "").strip()
        return trimmed[:80] + ("…" if len(trimmed) > 80 else "")


class EventIssue(BaseModel):
    title: str | None = None
    number: int | None = None
    html_url: str | None = None


class EventPayload(BaseModel):
    action: str | None = None
    comment: EventComment | None = None
    issue: EventIssue | None = None
    pull_request: EventIssue | None = None
    head: str | None = None


class RepoEvent(BaseModel):
    """One entry of ``GET /repos/{owner}/{name}/events``."""

    type: str
    actor: EventActor
    payload: EventPayload = Field(default_factory=EventPayload)
    created_at: datetime

    @property
    def has_rich_payload(self) -> bool:
        p = self.payload
        return p.comment is not None or p.issue is not None or p.pull_request is not None

    @property
    def display_title(self) -> str:
        base = _EVENT_TITLES.get(self.type)
        if base is None:
            stem = self.type.removesuffix("Event")
            base = " ".join(_CAMEL_BOUNDARY.split(stem))
        if self.payload.action:
            return f"{base} {self.payload.action}"
        return base

    def activity_event(self, owner: str, name: str, web_host: str = "https://github.com") -> ActivityEvent:
        """Map to the cached ActivityEvent, picking the most specific link."""
        repo_url = f"{web_host}/{owner}/{name}"
        title = self.display_title
        target = self.payload.issue or self.payload.pull_request
        if target is not None and target.number is not None:
            title = f"{title} #{target.number}"
            if target.title:
                title = f"{title}: {target.title}"
        elif self.payload.comment is not None and self.payload.comment.body_preview:
            title = f"{title}: {self.payload.comment.body_preview}"

        url: str | None = None
        if self.payload.comment is not None:
            url = self.payload.comment.html_url
        if url is None and target is not None:
            url = target.html_url
        if url is None:
            if self.type == "WatchEvent":
                url = f"{repo_url}/stargazers"
            elif self.type == "PushEvent" and self.payload.head:
                url = f"{repo_url}/commit/{self.payload.head}"
            else:
                url = repo_url

        return ActivityEvent(title=title, actor=self.actor.login, date=self.created_at, url=url)
