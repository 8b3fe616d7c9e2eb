"""Turn a confirmed debrid file into a Stremio-ready ``ResolvedStream``."""

from __future__ import annotations

from dataclasses import replace

from corsaro.domain.entities.candidates import (
    Candidate,
    LanguageTag,
    MatchResult,
    Quality,
)
from corsaro.domain.entities.streams import ResolvedStream
from corsaro.infrastructure.common.parsers import format_bytes
from corsaro.infrastructure.pipeline.matcher import extract_info

_LANGUAGE_LABELS: dict[LanguageTag, str] = {
    LanguageTag.ITA: "ITA 🇮🇹",
    LanguageTag.SUB_ITA: "SUB-ITA 🇮🇹",
    LanguageTag.MULTI: "MULTI 🌐",
    LanguageTag.ENG_SUB: "ENG/SUB 🇬🇧",
}

BADGE = "[RD ⚡]"


def language_label(info: MatchResult) -> str:
    label = " / ".join(_LANGUAGE_LABELS[tag] for tag in info.language_tags)
    if info.audio is not None:
        label = f"{label} | {info.audio.value}"
    return label


def format_stream(
    candidate: Candidate,
    *,
    filename: str,
    size_bytes: int,
    url: str,
) -> ResolvedStream:
    """Build the stream record for *candidate*.

    Attributes are recomputed from the real file name; when that name
    carries no language token the release title decides the languages.
    """
    title_info = extract_info(candidate.display_title)
    file_info = extract_info(filename) if filename else title_info
    if not file_info.has_language_token:
        file_info = MatchResult(
            quality=file_info.quality,
            language_tags=title_info.language_tags,
            audio=file_info.audio or title_info.audio,
        )
    if file_info.quality is Quality.UNKNOWN:
        file_info = replace(file_info, quality=title_info.quality)

    shown_name = filename or candidate.display_title
    return ResolvedStream(
        display_name=f"{BADGE} {candidate.source_label}\n{file_info.quality.label}",
        title=(
            f"{shown_name}\n💾 {format_bytes(size_bytes)}\n"
            f"🔊 {language_label(file_info)}"
        ),
        url=url,
        size_bytes=size_bytes,
        info_hash=candidate.info_hash,
        behavior_hints={
            "notWebReady": False,
            "bingeGroup": f"corsaro|{file_info.quality.label}",
        },
    )
