"""Release title heuristics: episode applicability and attribute extraction.

Everything here is a pure function over the title string. Episode
applicability is an ordered list of guard clauses. Each rule returns
ACCEPT, REJECT or ``None`` (no opinion, try the next rule); the first
decisive rule wins.

Rule order:

1. ``anime_absolute``    anime only, standalone absolute episode number
2. ``season_range``      "stagioni 1-4", "seasons 1 to 3", "S01-S03"
3. ``season_presence``   reject titles that never mention the season (anime:
                         only those naming a different one)
4. ``episode_range``     explicit "E01-E10" / "episodi 1-10" range
5. ``season_pack``       completeness keyword and no episode token
6. ``specific_episode``  explicit episode token must equal the request
7. ``fallback``          season evidence without episode token = pack

An explicit episode token or range always beats a pack keyword: a
"Complete" release that also names episodes outside the request is
rejected.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from corsaro.domain.entities.candidates import (
    AudioChannels,
    LanguageTag,
    MatchResult,
    Quality,
)


class Verdict(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass(frozen=True)
class MatchDecision:
    verdict: Verdict
    rule: str

    @property
    def accepted(self) -> bool:
        return self.verdict is Verdict.ACCEPT


@dataclass(frozen=True)
class _Context:
    raw: str  # lowercase, punctuation intact, codecs dropped
    text: str  # normalized
    season: int
    episode: int
    is_anime: bool
    season_marker: bool
    other_season: bool
    anime_absolute: bool
    episodes: tuple[int, ...]


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

_SEPARATORS_RE = re.compile(r"[.\-_\[\]()]")
_CODEC_RE = re.compile(r"\b[xh][\s._]?26[45]\b")
_SPACES_RE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Lowercase, turn separators into spaces, drop codec tokens."""
    text = _SEPARATORS_RE.sub(" ", title.lower())
    text = _CODEC_RE.sub(" ", text)
    return _SPACES_RE.sub(" ", text).strip()


# ---------------------------------------------------------------------------
# Token patterns
# ---------------------------------------------------------------------------

_SEASON_WORD = r"(?:seasons?|stagion[ie])"
_RANGE_JOIN = r"(?:a|al|to|thru|e|and)"

_SEASON_RANGE_WORDS_RE = re.compile(
    rf"\b{_SEASON_WORD}\s?(\d{{1,2}})\s(?:{_RANGE_JOIN}\s)?(?:{_SEASON_WORD}\s?)?(\d{{1,2}})\b"
)
_SEASON_RANGE_COMPACT_RE = re.compile(
    rf"\bs(\d{{1,2}})\s?(?:{_RANGE_JOIN}\s?)?s(\d{{1,2}})\b"
)

_WHOLE_SERIES_RE = re.compile(r"\b(?:serie completa|complete series)\b")
_PACK_RE = re.compile(r"\b(?:pack|completa|complete|tutta)\b")

_EPISODE_RANGE_RES: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"(?:\b|(?<=\d))e\s?(\d{1,3})\s?(?:(?:a|al|to)\s?(?:e\s?)?|e\s?)(\d{1,3})\b"
    ),
    re.compile(r"\bepisodi\s(\d{1,3})\s(?:(?:a|al|to|e)\s)?(\d{1,3})\b"),
)

_EPISODE_TOKEN_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bs\d{1,2}\s?e\s?(\d{1,3})(?!\d)"),
    re.compile(r"\be\s?(\d{1,3})\b"),
    re.compile(r"\bep\s?(\d{1,3})\b"),
    re.compile(r"\bepisodio\s?(\d{1,3})\b"),
    re.compile(r"\bepisode\s?(\d{1,3})\b"),
    re.compile(r"\b\d{1,2}x(\d{1,3})\b"),
)

_NAMED_SEASON_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bs(\d{1,2})\s?e\s?\d"),
    re.compile(r"\b(\d{1,2})x\d{1,3}\b"),
    re.compile(r"\b(?:season|stagione)\s?(\d{1,2})\b"),
)


@lru_cache(maxsize=128)
def _season_markers(season: int) -> re.Pattern[str]:
    n = season
    return re.compile(
        "|".join(
            (
                rf"\bs0*{n}(?!\d)",
                rf"\bstagione\s0?{n}\b",
                rf"\b{n}\s?\^\s?stagione\b",
                rf"\bseason\s0?{n}\b",
                rf"\b0*{n}x\d{{1,3}}\b",
            )
        )
    )


@lru_cache(maxsize=512)
def _anime_absolute(episode: int) -> re.Pattern[str]:
    return re.compile(
        rf"(?:^|(?<!\d)[\s._\[#\-])0*{episode}(?:v\d)?(?=$|[\s_\])]|\.(?!\d))"
    )


def _explicit_episodes(text: str) -> tuple[int, ...]:
    found: list[int] = []
    for pattern in _EPISODE_TOKEN_RES:
        for match in pattern.finditer(text):
            value = int(match.group(1))
            if value not in found:
                found.append(value)
    return tuple(found)


def _names_other_season(text: str, season: int) -> bool:
    return any(
        int(match.group(1)) != season
        for pattern in _NAMED_SEASON_RES
        for match in pattern.finditer(text)
    )


def _build_context(title: str, season: int, episode: int, is_anime: bool) -> _Context:
    # Codec digits ("h.264") must not read as an absolute episode number.
    raw = _CODEC_RE.sub(" ", title.lower())
    text = normalize_title(title)
    return _Context(
        raw=raw,
        text=text,
        season=season,
        episode=episode,
        is_anime=is_anime,
        season_marker=bool(
            _season_markers(season).search(text) or _WHOLE_SERIES_RE.search(text)
        ),
        other_season=_names_other_season(text, season),
        anime_absolute=is_anime and bool(_anime_absolute(episode).search(raw)),
        episodes=_explicit_episodes(text),
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

_Rule = Callable[[_Context], "Verdict | None"]


def _rule_anime_absolute(ctx: _Context) -> Verdict | None:
    return Verdict.ACCEPT if ctx.anime_absolute else None


def _rule_season_range(ctx: _Context) -> Verdict | None:
    for pattern in (_SEASON_RANGE_WORDS_RE, _SEASON_RANGE_COMPACT_RE):
        for match in pattern.finditer(ctx.text):
            start, end = int(match.group(1)), int(match.group(2))
            if start < end and start <= ctx.season <= end:
                return Verdict.ACCEPT
    return None


def _rule_season_presence(ctx: _Context) -> Verdict | None:
    if ctx.season_marker:
        return None
    # Anime releases may omit the season, but must not name a different one.
    if ctx.is_anime and not ctx.other_season:
        return None
    return Verdict.REJECT


def _rule_episode_range(ctx: _Context) -> Verdict | None:
    for pattern in _EPISODE_RANGE_RES:
        match = pattern.search(ctx.text)
        if match is None:
            continue
        start, end = int(match.group(1)), int(match.group(2))
        if start >= end:
            continue
        return Verdict.ACCEPT if start <= ctx.episode <= end else Verdict.REJECT
    return None


def _rule_season_pack(ctx: _Context) -> Verdict | None:
    if ctx.season_marker and not ctx.episodes and _PACK_RE.search(ctx.text):
        return Verdict.ACCEPT
    return None


def _rule_specific_episode(ctx: _Context) -> Verdict | None:
    if not ctx.episodes:
        return None
    return Verdict.ACCEPT if ctx.episode in ctx.episodes else Verdict.REJECT


def _rule_fallback(ctx: _Context) -> Verdict | None:
    if ctx.season_marker or ctx.anime_absolute:
        return Verdict.ACCEPT
    return Verdict.REJECT


RULES: tuple[tuple[str, _Rule], ...] = (
    ("anime_absolute", _rule_anime_absolute),
    ("season_range", _rule_season_range),
    ("season_presence", _rule_season_presence),
    ("episode_range", _rule_episode_range),
    ("season_pack", _rule_season_pack),
    ("specific_episode", _rule_specific_episode),
    ("fallback", _rule_fallback),
)


def evaluate_episode_match(
    title: str,
    season: int,
    episode: int,
    is_anime: bool = False,
) -> MatchDecision:
    """Run the rule list and return the first decisive verdict."""
    if not title:
        return MatchDecision(Verdict.REJECT, "empty_title")
    ctx = _build_context(title, season, episode, is_anime)
    for name, rule in RULES:
        verdict = rule(ctx)
        if verdict is not None:
            return MatchDecision(verdict, name)
    return MatchDecision(Verdict.REJECT, "fallback")


def matches(title: str, season: int, episode: int, is_anime: bool = False) -> bool:
    """True when *title* plausibly contains season *season* episode *episode*."""
    return evaluate_episode_match(title, season, episode, is_anime).accepted


# ---------------------------------------------------------------------------
# Attribute extraction
# ---------------------------------------------------------------------------

_QUALITY_RES: tuple[tuple[Quality, re.Pattern[str]], ...] = (
    (Quality.UHD_4K, re.compile(r"\b(?:2160p|4k|uhd)\b")),
    (Quality.HD_1080P, re.compile(r"\b1080[pi]\b")),
    (Quality.HD_720P, re.compile(r"\b720p\b")),
    (Quality.SD, re.compile(r"\b(?:480p|576p|sd)\b")),
)

_SUB_ITA_RE = re.compile(r"\bsub\s?ita\b|\bsubita\b|\bvose\b")
_ITA_RE = re.compile(r"\b(?:ita|italian|italiano)\b")
_MULTI_RE = re.compile(r"\b(?:multi|dual)\b")

_AUDIO_SURROUND_RE = re.compile(r"\bac3\b|\bdts|\bddp?\+?5\.1|\b5\.1\b")
_AUDIO_STEREO_RE = re.compile(r"\baac|\b2\.0\b|\bstereo\b")

_4K_RE = _QUALITY_RES[0][1]
_CAM_RE = re.compile(r"\b(?:cam|camrip|hdcam|dvdscr|telesync|hdts)\b")


def extract_info(title: str) -> MatchResult:
    """Extract quality, language tags and audio layout from *title*."""
    text = normalize_title(title)

    quality = Quality.UNKNOWN
    for tier, pattern in _QUALITY_RES:
        if pattern.search(text):
            quality = tier
            break

    tags: list[LanguageTag] = []
    if _SUB_ITA_RE.search(text):
        tags.append(LanguageTag.SUB_ITA)
    elif _ITA_RE.search(text):
        tags.append(LanguageTag.ITA)
    if _MULTI_RE.search(text):
        tags.append(LanguageTag.MULTI)
    if not tags:
        tags.append(LanguageTag.ENG_SUB)

    audio_text = title.lower().replace("_", " ")
    audio: AudioChannels | None = None
    if _AUDIO_SURROUND_RE.search(audio_text):
        audio = AudioChannels.SURROUND_5_1
    elif _AUDIO_STEREO_RE.search(audio_text):
        audio = AudioChannels.STEREO_2_0

    return MatchResult(quality=quality, language_tags=tuple(tags), audio=audio)


def is_4k(title: str) -> bool:
    return bool(_4K_RE.search(normalize_title(title)))


def is_cam(title: str) -> bool:
    return bool(_CAM_RE.search(normalize_title(title)))
