"""In-process least-recently-used cache store."""

from __future__ import annotations

from collections import OrderedDict

from llm_extract.cache.types import CacheEntry
from llm_extract.constants import DEFAULT_CACHE_MAX_SIZE


class MemoryCache:
    """Bounded LRU mapping of cache keys to entries.

    Reads refresh recency; writes evict from the least-recently-used end once
    `max_size` is exceeded. Operations never await, so concurrent extractions
    on one event loop cannot interleave inside a call.
    """

    def __init__(self, max_size: int = DEFAULT_CACHE_MAX_SIZE) -> None:
        """Create an empty store holding at most `max_size` entries."""
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    async def get(self, key: str) -> CacheEntry | None:
        """Return the entry for `key` and mark it most recently used."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return entry

    async def set(self, key: str, entry: CacheEntry, ttl: float | None = None) -> None:  # noqa: ARG002
        """Store `entry` as most recently used, evicting the oldest if full."""
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    async def delete(self, key: str) -> None:
        """Remove `key` if present."""
        self._entries.pop(key, None)

    async def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()
