"""Persistent cache store backed by one JSON file per entry.

Entries live at ``<directory>/<key[:2]>/<key>.json`` so no single directory
grows unboundedly. Writes go through a temp file and a rename, so readers
never observe a partially written entry. Blocking file I/O runs in a worker
thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
import shutil
import uuid

from llm_extract.cache.types import CacheEntry
from llm_extract.constants import CACHE_SHARD_PREFIX_LENGTH

logger = logging.getLogger(__name__)


class FileCache:
    """Sharded on-disk cache store."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        """Create a store rooted at `directory` (created lazily)."""
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """Return the file path that holds `key`."""
        return self.directory / key[:CACHE_SHARD_PREFIX_LENGTH] / f"{key}.json"

    async def get(self, key: str) -> CacheEntry | None:
        """Return the stored entry, or None if absent."""
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, entry: CacheEntry, ttl: float | None = None) -> None:  # noqa: ARG002
        """Persist `entry` under `key`, replacing any previous value."""
        await asyncio.to_thread(self._write, key, entry)

    async def delete(self, key: str) -> None:
        """Remove `key` if present."""
        await asyncio.to_thread(self.path_for(key).unlink, missing_ok=True)

    async def clear(self) -> None:
        """Remove the storage root and recreate it empty."""
        await asyncio.to_thread(self._reset)

    # --- Blocking helpers (run in a worker thread) ---

    def _read(self, key: str) -> CacheEntry | None:
        path = self.path_for(key)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except ValueError:
            logger.debug("Ignoring unreadable cache file %s", path, exc_info=True)
            return None
        if not isinstance(raw, dict):
            logger.debug("Ignoring malformed cache file %s", path)
            return None
        try:
            return CacheEntry.from_dict(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed cache file %s", path, exc_info=True)
            return None

    def _write(self, key: str, entry: CacheEntry) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp.write_text(json.dumps(entry.to_dict()), encoding="utf-8")
            tmp.replace(path)
        finally:
            tmp.unlink(missing_ok=True)

    def _reset(self) -> None:
        shutil.rmtree(self.directory, ignore_errors=True)
        self.directory.mkdir(parents=True, exist_ok=True)
