"""TMDB metadata lookup: async httpx implementation with caching."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from corsaro.domain.entities.media import RequestMetadata, StreamRequest
from corsaro.domain.ports.cache import CachePort

from .kitsu import KitsuMapper

log = structlog.get_logger(__name__)

_BASE_URL = "https://api.themoviedb.org/3"
_LANGUAGE = "it-IT"
_ANIMATION_GENRE = 16

# Cache TTL (seconds)
_TTL_METADATA = 86_400  # 24 hours


def _year(details: dict[str, Any]) -> int | None:
    date_str = details.get("release_date") or details.get("first_air_date") or ""
    head = date_str[:4]
    return int(head) if len(head) == 4 and head.isdigit() else None


def _genre_ids(details: dict[str, Any]) -> set[int]:
    ids = {int(g) for g in details.get("genre_ids") or [] if str(g).isdigit()}
    for genre in details.get("genres") or []:
        if isinstance(genre, dict) and genre.get("id") is not None:
            ids.add(int(genre["id"]))
    return ids


def _is_japanese_animation(details: dict[str, Any]) -> bool:
    return (
        _ANIMATION_GENRE in _genre_ids(details)
        and details.get("original_language") == "ja"
    )


class TmdbMetadataClient:
    """Resolves stream requests into ``RequestMetadata`` via TMDB.

    Implements ``MetadataPort`` from domain.ports.metadata. Titles are
    fetched in Italian; the original title is kept for the search
    variants.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        cache: CachePort,
        kitsu: KitsuMapper | None = None,
        ttl_seconds: int = _TTL_METADATA,
    ) -> None:
        self._http = http_client
        self._cache = cache
        self._kitsu = kitsu
        self._ttl = ttl_seconds

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get(
        self, path: str, api_key: str, **extra: Any
    ) -> dict[str, Any] | None:
        """GET request with error handling. Returns parsed JSON or None."""
        url = f"{_BASE_URL}{path}"
        params = {"api_key": api_key, "language": _LANGUAGE, **extra}
        try:
            resp = await self._http.get(url, params=params)
            if resp.status_code == 401:
                log.error("tmdb_api_key_invalid", status=401)
                return None
            if resp.status_code == 404:
                log.debug("tmdb_resource_not_found", path=path)
                return None
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError:
            log.warning("tmdb_http_error", path=path, exc_info=True)
            return None
        except httpx.HTTPError:
            log.warning("tmdb_network_error", path=path, exc_info=True)
            return None
        except ValueError:
            log.warning("tmdb_invalid_json", path=path)
            return None

    async def _find_by_imdb_id(
        self, imdb_id: str, api_key: str, *, prefer_series: bool
    ) -> dict[str, Any] | None:
        data = await self._get(f"/find/{imdb_id}", api_key, external_source="imdb_id")
        if data is None:
            return None
        movies = data.get("movie_results") or []
        shows = data.get("tv_results") or []
        if prefer_series and shows:
            return shows[0]
        if movies:
            return movies[0]
        return shows[0] if shows else None

    async def _details(
        self, media_id: str, api_key: str, *, is_series: bool
    ) -> dict[str, Any] | None:
        if media_id.startswith("tt"):
            return await self._find_by_imdb_id(
                media_id, api_key, prefer_series=is_series
            )
        if media_id.startswith("tmdb:"):
            endpoint = "tv" if is_series else "movie"
            return await self._get(f"/{endpoint}/{media_id.split(':', 1)[1]}", api_key)
        return None

    # ------------------------------------------------------------------
    # Public API (MetadataPort)
    # ------------------------------------------------------------------

    async def resolve(
        self, request: StreamRequest, api_key: str
    ) -> RequestMetadata | None:
        cache_key = f"meta:{request.content_type}:{request.cache_id}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        lookup_id = request.media_id
        is_series = request.content_type != "movie"
        season, episode = request.season, request.episode
        from_kitsu = False

        if request.is_kitsu:
            if self._kitsu is None:
                log.warning("kitsu_not_configured", media_id=request.media_id)
                return None
            mapping = await self._kitsu.resolve(request.media_id.split(":", 1)[1])
            if mapping is None:
                return None
            from_kitsu = True
            lookup_id = mapping.imdb_id
            is_series = mapping.is_series
            if is_series:
                season = mapping.season
                episode = mapping.episode_for(request.episode or 1)
            else:
                season = episode = None

        details = await self._details(lookup_id, api_key, is_series=is_series)
        if not details:
            log.info("metadata_not_found", media_id=request.media_id)
            return None

        title = details.get("title") or details.get("name") or ""
        if not title:
            return None

        metadata = RequestMetadata(
            title=title,
            original_title=(
                details.get("original_title") or details.get("original_name") or title
            ),
            year=_year(details),
            is_series=is_series or season is not None,
            is_anime=(
                from_kitsu
                or request.content_type == "anime"
                or _is_japanese_animation(details)
            ),
            season=season,
            episode=episode,
        )
        await self._cache.set(cache_key, metadata, ttl=self._ttl)
        log.debug(
            "metadata_resolved",
            media_id=request.media_id,
            title=metadata.title,
            season=season,
            episode=episode,
            is_anime=metadata.is_anime,
        )
        return metadata
