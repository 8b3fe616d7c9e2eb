"""Output entities: playable streams and the per-request resolution result."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class ResolvedStream:
    """A confirmed, directly playable stream."""

    display_name: str  # "[RD ⚡] Knaben\n1080p"
    title: str  # filename, size and language on separate lines
    url: str
    size_bytes: int
    info_hash: str = ""
    behavior_hints: dict[str, Any] = field(default_factory=dict)

    def to_stremio(self) -> dict[str, Any]:
        """Render as a Stremio stream object."""
        return {
            "name": self.display_name,
            "title": self.title,
            "url": self.url,
            "behaviorHints": dict(self.behavior_hints),
        }


@dataclass(frozen=True)
class DebridFile:
    """One file inside a debrid torrent job."""

    id: int
    path: str
    size_bytes: int
    selected: bool = False

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class DebridTorrent:
    """Status snapshot of a debrid torrent job."""

    id: str
    status: str
    filename: str = ""
    files: tuple[DebridFile, ...] = ()
    links: tuple[str, ...] = ()

    @property
    def awaiting_selection(self) -> bool:
        return self.status == "waiting_files_selection"

    @property
    def is_downloaded(self) -> bool:
        return self.status == "downloaded"


@dataclass(frozen=True)
class UnrestrictedLink:
    url: str
    filename: str
    size_bytes: int


class ResolutionStatus(str, Enum):
    """Terminal state of one stream request."""

    OK = "ok"
    NO_CANDIDATES = "no_candidates"
    NO_CACHED = "no_cached"
    METADATA_MISSING = "metadata_missing"
    AUTH_FAILED = "auth_failed"


@dataclass(frozen=True)
class StreamResolution:
    """Result of one pipeline run."""

    status: ResolutionStatus
    streams: tuple[ResolvedStream, ...] = ()
    partial: bool = False

    @property
    def ok(self) -> bool:
        return self.status is ResolutionStatus.OK

    @property
    def ttl_class(self) -> str | None:
        """Cache TTL class for this result, None when it must not be cached.

        Partial results are kept only briefly so a later request can
        complete them.
        """
        if self.status is ResolutionStatus.OK:
            return "empty" if self.partial else "streams"
        if self.status in (ResolutionStatus.NO_CANDIDATES, ResolutionStatus.NO_CACHED):
            return "empty"
        return None
