"""Cache client with Redis and in-memory backends.

The cache holds the ``SET NX`` locks the task manager takes so only one
instance of a cluster runs a given cron job at a time.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from nodegaze.config.settings import CacheConfig


class CacheClient:
    """Lock client that delegates to Redis or an in-memory backend."""

    def __init__(self, config: CacheConfig) -> None:
        """Initialize cache client with configuration.

        Args:
            config: Cache configuration with engine type and connection params.
        """
        self._config = config
        self._backend: CacheBackend | None = None
        self._connected = False

    async def connect(self) -> None:
        """Connect to the cache backend.

        Raises:
            ValueError: If cache engine type is invalid.
        """
        from nodegaze.cache.memory import MemoryCache
        from nodegaze.cache.redis import RedisCache

        engine = str(self._config.engine).lower()

        if engine == "redis":
            self._backend = RedisCache(self._config)
        elif engine == "memory":
            self._backend = MemoryCache(self._config)
        else:
            msg = f"Unsupported cache engine: {engine}"
            raise ValueError(msg)

        await self._backend.connect()
        self._connected = True

    async def close(self) -> None:
        """Close the cache connection (idempotent)."""
        if self._backend is not None:
            await self._backend.close()
            self._backend = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Check if the cache is connected."""
        return self._connected and self._backend is not None

    async def acquire_lock(self, key: str, ttl: int) -> str | None:
        """Try to take the lock *key* for *ttl* seconds.

        Returns:
            An owner token to pass to :meth:`release_lock`, or None when
            another holder owns the lock.
        """
        backend = self._ensure_connected()
        token = uuid.uuid4().hex
        if await backend.set_nx(self._lock_key(key), token, ttl):
            return token
        return None

    async def release_lock(self, key: str, token: str) -> bool:
        """Release *key* if it is still held with *token*.

        Returns:
            True when the lock was released by this call.
        """
        backend = self._ensure_connected()
        return await backend.delete_if_equals(self._lock_key(key), token)

    def _lock_key(self, key: str) -> str:
        return f"{self._config.key_prefix}lock:{key}"

    def _ensure_connected(self) -> CacheBackend:
        """Return the backend, raising RuntimeError if not connected."""
        if not self._connected or self._backend is None:
            msg = "Cache not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._backend


class CacheBackend(Protocol):
    """Protocol for cache backend implementations."""

    async def connect(self) -> None: ...
    async def close(self) -> None: ...
    async def set_nx(self, key: str, value: str, ttl: int) -> bool: ...
    async def delete_if_equals(self, key: str, value: str) -> bool: ...
