"""Kitsu -> IMDb id translation for anime requests.

The community mapping file is large, so it is downloaded once and kept in
the cache with the metadata TTL. Whether the IMDb title is a series is
checked against the public IMDb suggestion endpoint.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from corsaro.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

MAPPING_URL = (
    "https://raw.githubusercontent.com/TheBeastLT/stremio-kitsu-anime/"
    "master/static/data/imdb_mapping.json"
)
SUGGEST_URL = "https://v2.sg.media-imdb.com/suggestion/t/{imdb_id}.json"

_SERIES_KINDS: frozenset[str] = frozenset({"TV series", "TV mini-series"})
_MAPPING_KEY = "kitsu:mapping"


@dataclass(frozen=True)
class KitsuMapping:
    imdb_id: str
    is_series: bool
    season: int = 1
    from_episode: int = 1

    def episode_for(self, kitsu_episode: int) -> int:
        """Translate an absolute Kitsu episode into the mapped season."""
        return self.from_episode + kitsu_episode - 1


class KitsuMapper:
    """Resolves ``kitsu:<id>`` references to IMDb ids."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        cache: CachePort,
        ttl_seconds: int = 86_400,
        mapping_url: str = MAPPING_URL,
    ) -> None:
        self._http = http_client
        self._cache = cache
        self._ttl = ttl_seconds
        self._mapping_url = mapping_url
        self._lock = asyncio.Lock()

    async def _mapping(self) -> dict[str, Any] | None:
        cached = await self._cache.get(_MAPPING_KEY)
        if cached is not None:
            return cached

        async with self._lock:
            cached = await self._cache.get(_MAPPING_KEY)
            if cached is not None:
                return cached
            log.info("kitsu_mapping_download", url=self._mapping_url)
            try:
                resp = await self._http.get(self._mapping_url)
                resp.raise_for_status()
                data = resp.json()
            except httpx.HTTPError:
                log.warning("kitsu_mapping_unavailable", exc_info=True)
                return None
            except ValueError:
                log.warning("kitsu_mapping_invalid_json")
                return None
            if not isinstance(data, dict):
                log.warning("kitsu_mapping_unexpected_shape")
                return None
            await self._cache.set(_MAPPING_KEY, data, ttl=self._ttl)
            log.info("kitsu_mapping_loaded", entries=len(data))
            return data

    async def _is_imdb_series(self, imdb_id: str) -> bool | None:
        """Ask IMDb whether *imdb_id* is a series. None when unknown."""
        try:
            resp = await self._http.get(SUGGEST_URL.format(imdb_id=imdb_id))
            resp.raise_for_status()
            entries = resp.json().get("d") or []
        except (httpx.HTTPError, ValueError, AttributeError):
            log.warning("imdb_suggest_failed", imdb_id=imdb_id, exc_info=True)
            return None
        if not entries:
            return None
        return entries[0].get("q") in _SERIES_KINDS

    async def resolve(self, kitsu_id: str) -> KitsuMapping | None:
        mapping = await self._mapping()
        if not mapping:
            return None

        entry = mapping.get(str(kitsu_id))
        if not isinstance(entry, dict) or not entry.get("imdb_id"):
            log.info("kitsu_id_unmapped", kitsu_id=kitsu_id)
            return None

        imdb_id = str(entry["imdb_id"])
        from_season = entry.get("fromSeason")
        from_episode = entry.get("fromEpisode")

        is_series = await self._is_imdb_series(imdb_id)
        if is_series is None:
            is_series = bool(from_season)

        result = KitsuMapping(
            imdb_id=imdb_id,
            is_series=is_series,
            season=int(from_season or 1),
            from_episode=int(from_episode or 1),
        )
        log.debug(
            "kitsu_id_mapped",
            kitsu_id=kitsu_id,
            imdb_id=imdb_id,
            is_series=is_series,
            season=result.season,
        )
        return result
