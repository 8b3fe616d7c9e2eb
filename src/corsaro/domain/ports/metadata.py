"""Port for title metadata lookups."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from corsaro.domain.entities.media import RequestMetadata, StreamRequest


@runtime_checkable
class MetadataPort(Protocol):
    async def resolve(
        self, request: StreamRequest, api_key: str
    ) -> RequestMetadata | None:
        """Resolve a stream request into title metadata.

        Returns None when the id is unknown or the lookup failed.
        """
        ...
