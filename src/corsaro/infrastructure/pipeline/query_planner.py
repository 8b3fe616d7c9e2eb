"""Search query generation from resolved title metadata.

Produces an ordered, de-duplicated list of query strings. Every query is
sanitized the same way so that two variants that only differ in
punctuation collapse into one.
"""

from __future__ import annotations

import re

from unidecode import unidecode

from corsaro.domain.entities.media import RequestMetadata

_TRAILING_YEAR_RE = re.compile(r"\s*\(\d{4}\)\s*$")
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]+")

# Bare "{title} ITA" on very short titles matches almost anything.
_MIN_ITA_TITLE_LEN = 4


def sanitize_query(text: str) -> str:
    """Strip a trailing ``(yyyy)``, transliterate and collapse punctuation.

    >>> sanitize_query("Amélie: Il favoloso mondo (2001)")
    'Amelie Il favoloso mondo'
    """
    text = _TRAILING_YEAR_RE.sub("", text)
    text = unidecode(text)
    return _NON_ALNUM_RE.sub(" ", text).strip()


def _series_variants(title: str, meta: RequestMetadata, *, original: bool) -> list[str]:
    season = meta.season or 1
    if original:
        variants = [f"{title} S{season:02d}", f"{title} Season {season}"]
    else:
        variants = [f"{title} S{season:02d}", f"{title} Stagione {season}"]
        if len(sanitize_query(title)) >= _MIN_ITA_TITLE_LEN:
            variants.append(f"{title} ITA")
    if meta.is_anime and meta.episode is not None:
        variants.append(f"{title} {meta.episode}")
        if not original and meta.episode < 10:
            variants.append(f"{title} {meta.episode:02d}")
    return variants


def _movie_variants(title: str, meta: RequestMetadata, *, original: bool) -> list[str]:
    variants = [f"{title} {meta.year}" if meta.year else title]
    if not original and len(sanitize_query(title)) >= _MIN_ITA_TITLE_LEN:
        variants.append(f"{title} ITA")
    return variants


def plan_queries(meta: RequestMetadata, *, max_queries: int = 8) -> list[str]:
    """Build the query list for *meta*.

    Series get season-based variants (plus absolute episode variants for
    anime), movies get year-based variants. When the original title
    differs, equivalent variants are added for it after the localized
    ones.
    """
    build = _series_variants if meta.is_series else _movie_variants

    raw = build(meta.title, meta, original=False)
    if meta.has_distinct_original:
        raw += build(meta.original_title, meta, original=True)

    queries: list[str] = []
    for candidate in raw:
        query = sanitize_query(candidate)
        if query and query not in queries:
            queries.append(query)
    return queries[:max_queries]


def forced_ita_query(meta: RequestMetadata) -> str:
    """The single ITA-flagged query still sent to global providers
    when the caller restricts results to Italian releases."""
    return sanitize_query(f"{meta.title} ITA")
