"""Info-hash extraction, deduplication and tracker enrichment.

Turns the flat list of provider hits into exactly one ``Candidate`` per
distinct info-hash.
"""

from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Iterable, Sequence
from urllib.parse import quote, unquote

import structlog

from corsaro.domain.entities.candidates import Candidate, RawCandidate

log = structlog.get_logger(__name__)

_BTIH_RE = re.compile(
    r"xt=urn:btih:([0-9a-f]{40}|[a-z2-7]{32})(?![0-9a-z])", re.IGNORECASE
)
_TRACKER_PARAM_RE = re.compile(r"[?&]tr=([^&]*)", re.IGNORECASE)

DEFAULT_TRACKERS: tuple[str, ...] = (
    "udp://tracker.opentrackr.org:1337/announce",
    "udp://open.demonii.com:1337/announce",
    "udp://open.stealth.si:80/announce",
    "udp://tracker.torrent.eu.org:451/announce",
    "udp://exodus.desync.com:6969/announce",
    "udp://tracker.tiny-vps.com:6969/announce",
)


def extract_info_hash(magnet_uri: str) -> str | None:
    """Return the canonical uppercase hex info-hash, or None.

    Base32 hashes (32 chars) are decoded to their 40-char hex form.
    """
    if not magnet_uri:
        return None
    match = _BTIH_RE.search(magnet_uri)
    if match is None:
        return None
    raw = match.group(1)
    if len(raw) == 40:
        return raw.upper()
    try:
        return base64.b32decode(raw.upper()).hex().upper()
    except (binascii.Error, ValueError):
        return None


def _existing_trackers(magnet_uri: str) -> set[str]:
    return {unquote(value) for value in _TRACKER_PARAM_RE.findall(magnet_uri)}


def enrich_trackers(magnet_uri: str, trackers: Iterable[str]) -> str:
    """Append every tracker not already present in *magnet_uri*.

    Idempotent: running it again on its own output returns the same URI.
    """
    present = _existing_trackers(magnet_uri)
    extra: list[str] = []
    for tracker in trackers:
        if tracker in present:
            continue
        present.add(tracker)
        extra.append(f"tr={quote(tracker, safe='')}")
    if not extra:
        return magnet_uri
    return magnet_uri + "&" + "&".join(extra)


def normalize_candidates(
    raws: Iterable[RawCandidate],
    *,
    trackers: Sequence[str] = DEFAULT_TRACKERS,
) -> list[Candidate]:
    """Deduplicate raw hits by info-hash.

    First-seen title, size and magnet are kept; later duplicates only
    contribute their provider name and a possibly higher seeder count.
    Hits without a resolvable hash are dropped.
    """
    by_hash: dict[str, Candidate] = {}
    dropped = 0

    for raw in raws:
        info_hash = extract_info_hash(raw.magnet_uri)
        if info_hash is None:
            dropped += 1
            continue

        existing = by_hash.get(info_hash)
        if existing is not None:
            existing.add_source(raw.source_name)
            if raw.seeders and raw.seeders > existing.seeders:
                existing.seeders = raw.seeders
            continue

        by_hash[info_hash] = Candidate(
            info_hash=info_hash,
            display_title=raw.display_title,
            magnet_uri=enrich_trackers(raw.magnet_uri, trackers),
            size_hint_bytes=raw.size_hint_bytes or 0,
            seeders=raw.seeders or 0,
            sources=[raw.source_name],
        )

    if dropped:
        log.debug("candidates_without_hash_dropped", count=dropped)
    return list(by_hash.values())
