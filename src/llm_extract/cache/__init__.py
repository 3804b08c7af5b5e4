"""Result caching: store contract, memory and file stores, key derivation."""

from llm_extract.cache.defaults import default_cache_store
from llm_extract.cache.file import FileCache
from llm_extract.cache.key import compute_cache_key, input_text
from llm_extract.cache.memory import MemoryCache
from llm_extract.cache.types import CacheEntry, CacheKeyFn, CacheOptions, CacheStore

__all__ = [
    "CacheEntry",
    "CacheKeyFn",
    "CacheOptions",
    "CacheStore",
    "FileCache",
    "MemoryCache",
    "compute_cache_key",
    "default_cache_store",
    "input_text",
]
