"""Process-wide default cache stores."""

from __future__ import annotations

import functools
from pathlib import Path

from llm_extract.cache.file import FileCache
from llm_extract.cache.memory import MemoryCache
from llm_extract.cache.types import CacheStore


@functools.cache
def default_cache_store(cache_dir: Path | None, max_size: int) -> CacheStore:
    """Shared store for requests that enable caching without naming a store.

    One instance exists per distinct configuration, so every extraction
    resolved with the same settings shares entries.
    """
    if cache_dir is not None:
        return FileCache(cache_dir)
    return MemoryCache(max_size=max_size)
