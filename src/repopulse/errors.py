from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


class ErrorCode(StrEnum):
    RATE_LIMITED = "RATE_LIMITED"
    STILL_COMPUTING = "STILL_COMPUTING"
    BAD_STATUS = "BAD_STATUS"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    DECODE_ERROR = "DECODE_ERROR"
    INVALID_HOST = "INVALID_HOST"
    INVALID_INPUT = "INVALID_INPUT"


def format_reset(when: datetime) -> str:
    """Render a reset/retry timestamp for status lines: ``'14:05:09 UTC'``."""
    return when.strftime("%H:%M:%S UTC")


class GitHubAPIError(Exception):
    """Base for every expected failure talking to GitHub.

    Raised by the request runner and the REST layer. The coordinator folds
    these into an ErrorAccumulator instead of letting them escape a refresh;
    only the MCP layer serialises them directly (see ``to_dict``).
    """

    code: ErrorCode = ErrorCode.BAD_STATUS

    def __init__(self, message: str, *, recoverable: bool = True) -> None:
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable

    @property
    def display_message(self) -> str:
        return self.message

    @property
    def limit_until(self) -> datetime | None:
        """Timestamp the caller should wait for, if the server gave one."""
        return None

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.display_message,
                "recoverable": self.recoverable,
            }
        }


class RateLimitedError(GitHubAPIError):
    """Quota exhausted; nothing should hit the network before ``until``."""

    code = ErrorCode.RATE_LIMITED

    def __init__(self, until: datetime | None, message: str) -> None:
        super().__init__(message)
        self.until = until

    @property
    def limit_until(self) -> datetime | None:
        return self.until


class StillComputingError(GitHubAPIError):
    """GitHub answered 202 (or a cooldown is active); retry after ``retry_after``."""

    code = ErrorCode.STILL_COMPUTING

    def __init__(self, retry_after: datetime | None, message: str) -> None:
        super().__init__(message)
        self.retry_after = retry_after

    @property
    def limit_until(self) -> datetime | None:
        return self.retry_after


class BadStatusError(GitHubAPIError):
    code = ErrorCode.BAD_STATUS

    def __init__(self, status_code: int, message: str | None = None) -> None:
        super().__init__(message or f"GitHub returned {status_code}.", recoverable=status_code >= 500)
        self.status_code = status_code


class TransportError(GitHubAPIError):
    code = ErrorCode.TRANSPORT_ERROR


class DecodeError(GitHubAPIError):
    code = ErrorCode.DECODE_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message, recoverable=False)


class InvalidHostError(GitHubAPIError):
    code = ErrorCode.INVALID_HOST

    def __init__(self, host: str) -> None:
        super().__init__(
            f"GitHub Enterprise host must use HTTPS with a hostname: {host!r}",
            recoverable=False,
        )
        self.host = host


class InvalidInputError(GitHubAPIError):
    code = ErrorCode.INVALID_INPUT

    def __init__(self, message: str) -> None:
        super().__init__(message, recoverable=False)


class ErrorAccumulator:
    """Collapses per-field failures into one status line.

    Keeps every distinct message in arrival order (``message`` is the first)
    and the latest rate-limit or cooldown timestamp seen.
    """

    def __init__(self) -> None:
        self.messages: list[str] = []
        self.rate_limit: datetime | None = None

    @property
    def message(self) -> str | None:
        return self.messages[0] if self.messages else None

    def absorb(self, error: BaseException) -> None:
        if isinstance(error, GitHubAPIError):
            self._update_limit(error.limit_until)
            self._append_unique(error.display_message)
            return
        self._append_unique(str(error) or type(error).__name__)

    def _append_unique(self, message: str) -> None:
        if message not in self.messages:
            self.messages.append(message)

    def _update_limit(self, candidate: datetime | None) -> None:
        if candidate is None:
            return
        if self.rate_limit is None or candidate > self.rate_limit:
            self.rate_limit = candidate
