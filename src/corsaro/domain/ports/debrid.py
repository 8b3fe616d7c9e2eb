"""Port for the debrid cache service."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from corsaro.domain.entities.streams import DebridTorrent, UnrestrictedLink


@runtime_checkable
class DebridClientPort(Protocol):
    """Remote debrid API operations.

    Every method raises a ``DebridError`` subclass on failure.
    """

    async def add_magnet(self, magnet_uri: str) -> str:
        """Submit a magnet and return the job id."""
        ...

    async def get_info(self, torrent_id: str) -> DebridTorrent: ...

    async def select_files(self, torrent_id: str, file_ids: list[int] | None) -> None:
        """Select files by id. ``None`` selects every file."""
        ...

    async def unrestrict_link(self, link: str) -> UnrestrictedLink: ...

    async def delete_torrent(self, torrent_id: str) -> None: ...


class DebridClientFactory(Protocol):
    def __call__(self, api_key: str) -> DebridClientPort: ...
