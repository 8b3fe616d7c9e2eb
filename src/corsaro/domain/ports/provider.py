"""Port for torrent index provider adapters."""

from __future__ import annotations

from typing import Literal, Protocol, runtime_checkable

from corsaro.domain.entities.candidates import RawCandidate

ProviderScope = Literal["local", "global"]


@runtime_checkable
class ProviderPort(Protocol):
    """A single torrent index.

    ``scope`` is ``"local"`` for Italian-language indexes and ``"global"``
    for international ones.
    """

    name: str
    scope: ProviderScope

    async def search(self, query: str, year: int | None = None) -> list[RawCandidate]:
        """Search the index. An empty list means nothing was found."""
        ...
