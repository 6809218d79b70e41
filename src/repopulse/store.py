"""Two-tier (memory + JSON on disk) store for repository detail caches.

Disk failures are caught internally and degrade gracefully: read failures
are treated as a cache miss, corrupt files are deleted, and write failures
are logged and ignored (the memory tier stays authoritative for the rest of
the process lifetime). Filesystem errors never cross the store boundary;
the detail cache is a performance optimisation, not a source of truth.
"""

from __future__ import annotations

import os
import shutil
import threading
from contextlib import suppress
from pathlib import Path
from urllib.parse import urlparse

import structlog
from pydantic import ValidationError

from repopulse.models.cache import DetailCache

log = structlog.get_logger()

FALLBACK_HOST = "api.github.com"


def host_component(api_host: str) -> str:
    """``'https://ghe.example.com/api/v3'`` → ``'ghe.example.com'``."""
    return (urlparse(api_host).hostname or FALLBACK_HOST).lower()


def cache_key(api_host: str, owner: str, name: str) -> str:
    return f"{host_component(api_host)}::{owner.casefold()}/{name.casefold()}"


class DetailDiskStore:
    """One JSON document per repository under ``base_dir``."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def path_for(self, api_host: str, owner: str, name: str) -> Path:
        return self.base_dir / host_component(api_host) / owner.casefold() / f"{name.casefold()}.json"

    def load(self, api_host: str, owner: str, name: str) -> DetailCache | None:
        """Read a document. Returns ``None`` on miss, read failure, or corrupt file."""
        path = self.path_for(api_host, owner, name)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError:
            log.warning("detail_cache_read_error", path=str(path), exc_info=True)
            return None

        try:
            return DetailCache.model_validate_json(raw)
        except ValidationError:
            log.warning("detail_cache_corrupt", path=str(path))
            with suppress(OSError):
                path.unlink()
            return None

    def save(self, cache: DetailCache, api_host: str, owner: str, name: str) -> None:
        """Write a document atomically. Non-fatal on failure."""
        path = self.path_for(api_host, owner, name)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(cache.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError:
            log.warning("detail_cache_write_error", path=str(path), exc_info=True)
            with suppress(OSError):
                tmp_path.unlink()

    def clear(self) -> None:
        try:
            shutil.rmtree(self.base_dir)
        except FileNotFoundError:
            pass
        except OSError:
            log.warning("detail_cache_clear_error", path=str(self.base_dir), exc_info=True)


class DetailStore:
    """Memory map in front of a DetailDiskStore.

    Loads check memory first and promote disk hits into it; saves write both
    tiers. Documents are copied on the way in and out so callers can mutate
    what they load without touching the shared map. Safe to call from worker
    threads (the coordinator offloads disk I/O with ``asyncio.to_thread``).
    """

    def __init__(self, disk: DetailDiskStore) -> None:
        self._disk = disk
        self._memory: dict[str, DetailCache] = {}
        self._lock = threading.Lock()

    def load(self, api_host: str, owner: str, name: str) -> DetailCache:
        key = cache_key(api_host, owner, name)
        with self._lock:
            cached = self._memory.get(key)
        if cached is not None:
            return cached.model_copy(deep=True)

        from_disk = self._disk.load(api_host, owner, name)
        if from_disk is None:
            return DetailCache()

        with self._lock:
            # A concurrent save may have landed while we were reading disk
            cached = self._memory.setdefault(key, from_disk)
        log.debug("detail_cache_promoted", key=key)
        return cached.model_copy(deep=True)

    def save(self, cache: DetailCache, api_host: str, owner: str, name: str) -> None:
        key = cache_key(api_host, owner, name)
        with self._lock:
            self._memory[key] = cache.model_copy(deep=True)
        self._disk.save(cache, api_host, owner, name)

    def clear(self) -> None:
        with self._lock:
            self._memory.clear()
        self._disk.clear()
