"""Protocol interfaces for swappable components.

The coordinator and client reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory stores and fixed tokens
- An OAuth device-flow login to plug in its own refreshing token source
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from repopulse.models.cache import DetailCache


class TokenProvider(Protocol):
    """Returns a valid bearer token, refreshing it if needed."""

    async def __call__(self) -> str: ...


class DetailStoreProtocol(Protocol):
    """Interface for the repository detail cache backend."""

    def load(self, api_host: str, owner: str, name: str) -> DetailCache: ...

    def save(self, cache: DetailCache, api_host: str, owner: str, name: str) -> None: ...

    def clear(self) -> None: ...
