"""Stremio stream id parsing."""

from __future__ import annotations

from typing import cast

from corsaro.domain.entities.media import ContentType, StreamRequest

_CONTENT_TYPES: frozenset[str] = frozenset({"movie", "series", "anime"})


def _ints(parts: list[str]) -> list[int] | None:
    try:
        return [int(p) for p in parts]
    except ValueError:
        return None


def parse_stream_id(content_type: str, raw_id: str) -> StreamRequest | None:
    """Parse a Stremio stream id into a ``StreamRequest``.

    Accepted forms:
        - ``tt1234567`` / ``tt1234567:1:5``
        - ``tmdb:1399`` / ``tmdb:1399:1:5``
        - ``kitsu:7442`` / ``kitsu:7442:12`` (absolute episode)

    Returns None for unknown content types, prefixes or malformed numbers.
    """
    if content_type not in _CONTENT_TYPES:
        return None
    ct = cast(ContentType, content_type)
    raw_id = raw_id.removesuffix(".json").strip()

    parts = raw_id.split(":")
    if parts[0].startswith("tt") and parts[0][2:].isdigit():
        media_id, rest = parts[0], parts[1:]
    elif parts[0] in ("tmdb", "kitsu") and len(parts) >= 2 and parts[1].isdigit():
        media_id, rest = f"{parts[0]}:{parts[1]}", parts[2:]
    else:
        return None

    numbers = _ints(rest)
    if numbers is None:
        return None

    if media_id.startswith("kitsu:"):
        episode = numbers[0] if numbers else None
        return StreamRequest(media_id=media_id, content_type=ct, episode=episode)

    if ct != "movie" and len(numbers) == 2:
        return StreamRequest(
            media_id=media_id,
            content_type=ct,
            season=numbers[0],
            episode=numbers[1],
        )
    if numbers and len(numbers) != 2:
        return None
    return StreamRequest(media_id=media_id, content_type=ct)
