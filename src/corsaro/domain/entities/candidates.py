"""Torrent candidate entities flowing through the search pipeline.

Pure value objects, no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum


class Quality(IntEnum):
    """Ranked quality tiers (higher value = better quality)."""

    UNKNOWN = 0
    SD = 10
    HD_720P = 20
    HD_1080P = 30
    UHD_4K = 40

    @property
    def label(self) -> str:
        return _QUALITY_LABELS[self]


_QUALITY_LABELS: dict[Quality, str] = {
    Quality.UNKNOWN: "Unknown",
    Quality.SD: "SD",
    Quality.HD_720P: "720p",
    Quality.HD_1080P: "1080p",
    Quality.UHD_4K: "4K",
}


class LanguageTag(str, Enum):
    """Audio/subtitle language markers detected in a release title."""

    ITA = "ITA"
    SUB_ITA = "SUB-ITA"
    MULTI = "MULTI"
    ENG_SUB = "ENG/SUB"

    @property
    def is_localized(self) -> bool:
        return self in (LanguageTag.ITA, LanguageTag.SUB_ITA)


class AudioChannels(str, Enum):
    SURROUND_5_1 = "5.1"
    STEREO_2_0 = "2.0"


@dataclass(frozen=True)
class MatchResult:
    """Attributes extracted from a release title."""

    quality: Quality = Quality.UNKNOWN
    language_tags: tuple[LanguageTag, ...] = (LanguageTag.ENG_SUB,)
    audio: AudioChannels | None = None

    @property
    def is_localized(self) -> bool:
        return any(tag.is_localized for tag in self.language_tags)

    @property
    def has_language_token(self) -> bool:
        return self.language_tags != (LanguageTag.ENG_SUB,)


@dataclass(frozen=True)
class RawCandidate:
    """A single search hit exactly as a provider adapter returned it."""

    display_title: str
    magnet_uri: str
    source_name: str
    size_hint_bytes: int | None = None
    seeders: int | None = None


@dataclass
class Candidate:
    """A deduplicated torrent, one per distinct info-hash.

    ``sources`` keeps the first-seen order of every provider that returned
    this hash. Mutated only by the normalizer while merging.
    """

    info_hash: str
    display_title: str
    magnet_uri: str
    size_hint_bytes: int = 0
    seeders: int = 0
    sources: list[str] = field(default_factory=list)

    def add_source(self, name: str) -> None:
        if name not in self.sources:
            self.sources.append(name)

    @property
    def source_label(self) -> str:
        return " + ".join(self.sources)
