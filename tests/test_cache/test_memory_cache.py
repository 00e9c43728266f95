"""Tests for the in-memory lock backend."""

from __future__ import annotations

from unittest.mock import patch

from nodegaze.cache.memory import MemoryCache
from nodegaze.config.settings import CacheConfig, CacheEngine


def _cache() -> MemoryCache:
    return MemoryCache(CacheConfig(engine=CacheEngine.MEMORY))


class TestMemoryCache:
    """Test the expiring lock table."""

    async def test_set_nx(self) -> None:
        cache = _cache()
        assert await cache.set_nx("lock", "t1", ttl=10)
        assert not await cache.set_nx("lock", "t2", ttl=10)
        assert cache._locks["lock"][0] == "t1"

    async def test_set_nx_after_expiry(self) -> None:
        """Expired entries are dropped and can be taken again."""
        cache = _cache()
        with patch("nodegaze.cache.memory.time.time", return_value=0.0):
            assert await cache.set_nx("lock", "t1", ttl=10)
        with patch("nodegaze.cache.memory.time.time", return_value=11.0):
            assert await cache.set_nx("lock", "t2", ttl=10)
        assert cache._locks["lock"][0] == "t2"

    async def test_delete_if_equals(self) -> None:
        """Only the matching value is deleted."""
        cache = _cache()
        await cache.set_nx("lock", "t1", ttl=10)
        assert not await cache.delete_if_equals("lock", "t2")
        assert "lock" in cache._locks
        assert await cache.delete_if_equals("lock", "t1")
        assert "lock" not in cache._locks
        assert not await cache.delete_if_equals("lock", "t1")

    async def test_expired_lock_cannot_be_released(self) -> None:
        cache = _cache()
        with patch("nodegaze.cache.memory.time.time", return_value=0.0):
            await cache.set_nx("lock", "t1", ttl=10)
        with patch("nodegaze.cache.memory.time.time", return_value=11.0):
            assert not await cache.delete_if_equals("lock", "t1")

    async def test_close_clears(self) -> None:
        cache = _cache()
        await cache.set_nx("lock", "t1", ttl=10)
        await cache.close()
        assert await cache.set_nx("lock", "t2", ttl=10)
