"""In-memory lock backend for single-process deployments and tests."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nodegaze.config.settings import CacheConfig


class MemoryCache:
    """Expiring ``{key: token}`` table.

    All operations run on the event loop thread, so the check-and-set in
    :meth:`set_nx` needs no extra locking.
    """

    def __init__(self, config: CacheConfig) -> None:
        self._config = config
        # {key: (token, expiry_timestamp)}
        self._locks: dict[str, tuple[str, float]] = {}

    async def connect(self) -> None:  # noqa: ASYNC910
        """Connect (no-op for in-memory)."""

    async def close(self) -> None:  # noqa: ASYNC910
        """Drop every held lock."""
        self._locks.clear()

    def _holder(self, key: str) -> str | None:
        entry = self._locks.get(key)
        if entry is None:
            return None
        token, expiry = entry
        if time.time() > expiry:
            del self._locks[key]
            return None
        return token

    async def set_nx(self, key: str, value: str, ttl: int) -> bool:  # noqa: ASYNC910
        """Store *value* only if *key* is absent or expired. Returns True if stored."""
        if self._holder(key) is not None:
            return False
        self._locks[key] = (value, time.time() + ttl)
        return True

    async def delete_if_equals(self, key: str, value: str) -> bool:  # noqa: ASYNC910
        """Delete *key* only while it still holds *value*."""
        if self._holder(key) != value:
            return False
        del self._locks[key]
        return True
