"""Shared test fixtures for the Corsaro test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from corsaro.domain.entities.candidates import Candidate, RawCandidate
from corsaro.domain.entities.media import RequestMetadata, StreamRequest

HASH_A = "A" * 40
HASH_B = "B" * 40


def magnet(info_hash: str, name: str = "release") -> str:
    return f"magnet:?xt=urn:btih:{info_hash}&dn={name}"


# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def movie_metadata() -> RequestMetadata:
    return RequestMetadata(
        title="La vita è bella",
        original_title="La vita è bella",
        year=1997,
        is_series=False,
    )


@pytest.fixture()
def series_metadata() -> RequestMetadata:
    return RequestMetadata(
        title="Il trono di spade",
        original_title="Game of Thrones",
        year=2011,
        is_series=True,
        season=1,
        episode=5,
    )


@pytest.fixture()
def series_request() -> StreamRequest:
    return StreamRequest(
        media_id="tt0944947", content_type="series", season=1, episode=5
    )


@pytest.fixture()
def raw_candidate() -> RawCandidate:
    return RawCandidate(
        display_title="Il.Trono.Di.Spade.S01E05.ITA.1080p.WEB-DL.x264",
        magnet_uri=magnet(HASH_A),
        source_name="Knaben",
        size_hint_bytes=2 * 1024**3,
        seeders=40,
    )


@pytest.fixture()
def candidate() -> Candidate:
    return Candidate(
        info_hash=HASH_A,
        display_title="Il.Trono.Di.Spade.S01E05.ITA.1080p.WEB-DL.x264",
        magnet_uri=magnet(HASH_A),
        size_hint_bytes=2 * 1024**3,
        seeders=40,
        sources=["Knaben"],
    )


# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """AsyncMock cache that always misses."""
    cache = AsyncMock()
    cache.get.return_value = None
    return cache
