"""Cache contract shared by the memory and file stores."""

from __future__ import annotations

from collections.abc import Callable, Mapping
import dataclasses
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from llm_extract.core.types import Usage

if TYPE_CHECKING:
    from llm_extract.core.types import ExtractionRequest


@dataclasses.dataclass(frozen=True, slots=True)
class CacheEntry:
    """A stored extraction result.

    `timestamp` is wall-clock seconds at write time; it never takes part in
    the key.
    """

    data: Any
    timestamp: float
    turns: int
    usage: Usage

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible mapping."""
        return {
            "data": self.data,
            "timestamp": self.timestamp,
            "turns": self.turns,
            "usage": self.usage.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> CacheEntry:
        """Rebuild an entry from `to_dict()` output."""
        return cls(
            data=raw.get("data"),
            timestamp=float(raw.get("timestamp", 0.0)),
            turns=int(raw.get("turns", 0)),
            usage=Usage.from_dict(raw.get("usage")),
        )


@runtime_checkable
class CacheStore(Protocol):
    """Async key/value store for extraction results.

    Implementations must tolerate concurrent calls from independent
    extractions. Expiry is decided by the caller from `CacheEntry.timestamp`;
    `ttl` is advisory for stores that can expire entries themselves.
    """

    async def get(self, key: str) -> CacheEntry | None: ...  # noqa: D102
    async def set(  # noqa: D102
        self, key: str, entry: CacheEntry, ttl: float | None = None
    ) -> None: ...
    async def delete(self, key: str) -> None: ...  # noqa: D102
    async def clear(self) -> None: ...  # noqa: D102


type CacheKeyFn = Callable[[str, "ExtractionRequest"], str]


@dataclasses.dataclass(frozen=True, slots=True)
class CacheOptions:
    """Per-request caching policy.

    Attributes:
        ttl: Maximum entry age in seconds. `None` uses the configured default;
            no default means entries never expire.
        key: Custom key function `(input_text, request) -> key`.
        store: Store to use; defaults to the process-wide memory cache.
        revalidate: Re-run validators on a hit. Required for caching when
            in-process validators are attached.
    """

    ttl: float | None = None
    key: CacheKeyFn | None = None
    store: CacheStore | None = None
    revalidate: bool = False

    def __post_init__(self) -> None:
        """Validate CacheOptions invariants."""
        if self.ttl is not None and self.ttl < 0:
            raise ValueError("CacheOptions.ttl must be >= 0 when provided")
