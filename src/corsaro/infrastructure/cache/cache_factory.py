"""Builds the cache backend named in ``cache.backend``."""

from __future__ import annotations

from pathlib import Path

import structlog

from corsaro.domain.ports.cache import CachePort
from corsaro.infrastructure.config.schema import CacheBackend

from .diskcache_adapter import DiskcacheAdapter
from .memory_adapter import MemoryCacheAdapter

log = structlog.get_logger(__name__)


def create_cache(
    backend: CacheBackend = "memory",
    *,
    directory: str | Path = "./.cache/corsaro",
    ttl_seconds: int = 3600,
    max_entries: int = 5_000,
    max_concurrent: int = 10,
) -> CachePort:
    """Return an unopened adapter; callers enter it before first use.

    ``max_entries`` only bounds the memory backend and ``directory`` /
    ``max_concurrent`` only apply to diskcache.

    Raises:
        ValueError: for a backend name other than memory or diskcache.
    """
    cache: CachePort
    if backend == "memory":
        cache = MemoryCacheAdapter(ttl_seconds=ttl_seconds, max_entries=max_entries)
        log.info("cache_backend_selected", backend=backend, max_entries=max_entries)
    elif backend == "diskcache":
        cache = DiskcacheAdapter(
            directory=directory,
            ttl_seconds=ttl_seconds,
            max_concurrent=max_concurrent,
        )
        log.info("cache_backend_selected", backend=backend, directory=str(directory))
    else:
        raise ValueError(f"Unknown cache backend {backend!r} (memory, diskcache)")
    return cache
