"""Candidate ordering: localized releases first, then bigger files."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from corsaro.domain.entities.candidates import Candidate, MatchResult

from .matcher import extract_info

InfoFn = Callable[[str], MatchResult]


def rank_key(candidate: Candidate, info: MatchResult) -> tuple[int, int]:
    return (0 if info.is_localized else 1, -(candidate.size_hint_bytes or 0))


def rank_candidates(
    candidates: Sequence[Candidate],
    *,
    info_fn: InfoFn = extract_info,
) -> list[Candidate]:
    """Stable sort; candidates with equal keys keep their input order."""
    keyed = [(rank_key(c, info_fn(c.display_title)), c) for c in candidates]
    keyed.sort(key=lambda pair: pair[0])
    return [c for _, c in keyed]
