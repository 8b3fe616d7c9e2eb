"""Cache port used for stream responses, TMDB metadata and the Kitsu map."""

from __future__ import annotations

from typing import Any, Protocol


class CachePort(Protocol):
    """Async key/value store with a TTL per entry.

    Each entry class (streams, empty results, metadata) is written with
    its own TTL by the caller; ``ttl=0`` keeps an entry until evicted.
    Values are replaced whole, never patched.
    """

    async def get(self, key: str) -> Any:
        """Stored value, or None when missing or expired."""
        ...

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None: ...

    async def delete(self, key: str) -> bool:
        """True when an entry was removed."""
        ...

    async def exists(self, key: str) -> bool: ...

    async def clear(self) -> None: ...

    async def aclose(self) -> None: ...

    async def __aenter__(self) -> CachePort: ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...
