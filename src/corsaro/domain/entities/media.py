"""Request-side domain entities: what the caller asked for.

Pure value objects, no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ContentType = Literal["movie", "series", "anime"]


@dataclass(frozen=True)
class StreamRequest:
    """A parsed stream route id.

    ``media_id`` is either an IMDb id (``tt1234567``), a TMDB reference
    (``tmdb:12345``) or a Kitsu reference (``kitsu:7442``).
    """

    media_id: str
    content_type: ContentType
    season: int | None = None
    episode: int | None = None

    @property
    def is_kitsu(self) -> bool:
        return self.media_id.startswith("kitsu:")

    @property
    def cache_id(self) -> str:
        """Canonical id used in cache keys and log lines."""
        parts = [self.media_id]
        if self.season is not None:
            parts.append(str(self.season))
        if self.episode is not None:
            parts.append(str(self.episode))
        return ":".join(parts)


@dataclass(frozen=True)
class RequestMetadata:
    """Resolved title information driving the search pipeline."""

    title: str
    original_title: str
    year: int | None
    is_series: bool
    is_anime: bool = False
    season: int | None = None
    episode: int | None = None

    @property
    def has_distinct_original(self) -> bool:
        return bool(self.original_title) and (
            self.original_title.casefold() != self.title.casefold()
        )
