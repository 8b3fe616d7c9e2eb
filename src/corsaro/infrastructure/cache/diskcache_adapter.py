"""SQLite-backed cache (diskcache) for resolved stream lists and metadata.

Lets a restarted addon keep answering repeat requests without searching
providers or touching Real-Debrid again.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional, TypeVar

import structlog
from diskcache import Cache as DiskCache

log = structlog.get_logger(__name__)

_T = TypeVar("_T")

# diskcache's own default is 1 GiB; stream lists and metadata are tiny.
_DEFAULT_SIZE_LIMIT = 256 * 1024 * 1024


class DiskcacheAdapter:
    """``CachePort`` over ``diskcache.Cache``.

    SQLite calls are blocking, so each one runs in a worker thread and a
    semaphore bounds how many run at once. Open with ``async with`` (or
    ``await __aenter__()``) before use; reads and writes on a closed
    adapter raise ``RuntimeError``, deletes and lookups report "absent".
    """

    def __init__(
        self,
        directory: str | Path = "./.cache/corsaro",
        ttl_seconds: int = 3600,
        max_concurrent: int = 10,
        *,
        size_limit: int = _DEFAULT_SIZE_LIMIT,
    ) -> None:
        self.directory = Path(directory)
        self.default_ttl = ttl_seconds
        self._size_limit = size_limit
        self._db: DiskCache | None = None
        self._slots = asyncio.Semaphore(max_concurrent)

    async def _run(self, fn: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
        async with self._slots:
            return await asyncio.to_thread(fn, *args, **kwargs)

    def _opened(self) -> DiskCache:
        if self._db is None:
            raise RuntimeError(
                "DiskcacheAdapter is closed; use 'async with cache:' first"
            )
        return self._db

    # --- lifecycle ---
    async def __aenter__(self) -> DiskcacheAdapter:
        if self._db is None:
            self._db = await asyncio.to_thread(
                DiskCache, str(self.directory), size_limit=self._size_limit
            )
            log.info("diskcache_opened", path=str(self.directory))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        db, self._db = self._db, None
        if db is not None:
            await asyncio.to_thread(db.close)
            log.info("diskcache_closed", path=str(self.directory))

    # --- CachePort ---
    async def get(self, key: str) -> Optional[Any]:
        value = await self._run(self._opened().get, key, default=None)
        log.debug("cache_get", key=key, hit=value is not None)
        return value

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        expire = self.default_ttl if ttl is None else ttl
        # diskcache treats expire=None as "never".
        await self._run(self._opened().set, key, value, expire=expire or None)
        log.debug("cache_set", key=key, ttl=expire)

    async def delete(self, key: str) -> bool:
        if self._db is None:
            return False
        deleted = bool(await self._run(self._db.delete, key))
        log.debug("cache_delete", key=key, deleted=deleted)
        return deleted

    async def exists(self, key: str) -> bool:
        if self._db is None:
            return False
        return bool(await self._run(self._db.__contains__, key))

    async def clear(self) -> None:
        if self._db is None:
            return
        removed = await self._run(self._db.clear)
        log.warning("cache_cleared", backend="diskcache", removed=removed)
