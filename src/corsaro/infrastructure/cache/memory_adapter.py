"""In-process TTL cache, the default backend for a single addon instance."""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Optional

import structlog

log = structlog.get_logger(__name__)


class MemoryCacheAdapter:
    """Dictionary-backed cache with per-entry expiry.

    Expired entries are evicted lazily on access. When ``max_entries`` is
    exceeded the least recently written entries are dropped first.

    Args:
        ttl_seconds: Default TTL for ``set()`` without explicit value.
            ``0`` means no expiry.
        max_entries: Size bound.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        ttl_seconds: int = 3600,
        max_entries: int = 5_000,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._lock = asyncio.Lock()

    # --- Context Manager ---
    async def __aenter__(self) -> MemoryCacheAdapter:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str) -> tuple[Any, float | None] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return entry

    # --- CachePort implementation ---
    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._live(key)
        log.debug("cache_get", key=key, hit=entry is not None)
        return entry[0] if entry is not None else None

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        expire = ttl if ttl is not None else self.default_ttl
        expires_at = self._clock() + expire if expire > 0 else None
        async with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (value, expires_at)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log.debug("cache_evicted", key=evicted)
        log.debug("cache_set", key=key, ttl=expire)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            deleted = self._entries.pop(key, None) is not None
        log.debug("cache_delete", key=key, deleted=deleted)
        return deleted

    async def exists(self, key: str) -> bool:
        async with self._lock:
            return self._live(key) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
        log.warning("cache_cleared", backend="memory")
