"""Memory and file cache stores."""

import json

import pytest

from llm_extract.cache import CacheEntry, CacheStore, FileCache, MemoryCache
from llm_extract.core.types import Usage

pytestmark = pytest.mark.unit


def _entry(value):
    return CacheEntry(data={"value": value}, timestamp=1000.0, turns=1, usage=Usage(1, 1, 2, 0.0))


@pytest.mark.asyncio
async def test_memory_cache_evicts_least_recently_used():
    cache = MemoryCache(max_size=2)
    await cache.set("a", _entry(1))
    await cache.set("b", _entry(2))
    await cache.get("a")  # a is now most recently used
    await cache.set("c", _entry(3))

    assert await cache.get("b") is None
    assert (await cache.get("a")).data == {"value": 1}
    assert (await cache.get("c")).data == {"value": 3}
    assert len(cache) == 2


@pytest.mark.asyncio
async def test_memory_cache_delete_and_clear():
    cache = MemoryCache()
    await cache.set("a", _entry(1))
    await cache.set("b", _entry(2))
    await cache.delete("a")
    await cache.delete("missing")
    assert "a" not in cache
    await cache.clear()
    assert len(cache) == 0


def test_memory_cache_rejects_zero_capacity():
    with pytest.raises(ValueError):
        MemoryCache(max_size=0)


def test_stores_satisfy_the_protocol(tmp_path):
    assert isinstance(MemoryCache(), CacheStore)
    assert isinstance(FileCache(tmp_path), CacheStore)


@pytest.mark.asyncio
async def test_file_cache_shards_by_key_prefix(tmp_path):
    cache = FileCache(tmp_path / "cache")
    await cache.set("abcdef", _entry(True))

    path = tmp_path / "cache" / "ab" / "abcdef.json"
    assert path.exists()
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["data"] == {"value": True}
    assert stored["usage"]["total_tokens"] == 2

    loaded = await cache.get("abcdef")
    assert loaded == _entry(True)


@pytest.mark.asyncio
async def test_file_cache_delete_clear_and_missing(tmp_path):
    cache = FileCache(tmp_path / "cache")
    assert await cache.get("nothing") is None

    await cache.set("abcdef", _entry(1))
    await cache.delete("abcdef")
    assert await cache.get("abcdef") is None

    await cache.set("abcdef", _entry(1))
    await cache.clear()
    assert await cache.get("abcdef") is None
    assert (tmp_path / "cache").is_dir()
    assert list((tmp_path / "cache").iterdir()) == []


@pytest.mark.asyncio
async def test_file_cache_treats_unreadable_files_as_missing(tmp_path):
    cache = FileCache(tmp_path / "cache")
    await cache.set("abcdef", _entry(1))
    cache.path_for("abcdef").write_text("{truncated", encoding="utf-8")
    assert await cache.get("abcdef") is None

    cache.path_for("abcdef").write_text('{"timestamp": "soon"}', encoding="utf-8")
    assert await cache.get("abcdef") is None
