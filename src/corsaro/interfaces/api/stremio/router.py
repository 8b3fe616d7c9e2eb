"""Stremio addon endpoints (manifest, catalog, stream).

Every route except the bare manifest carries the user's configuration
blob as its first path segment.
"""

from __future__ import annotations

import copy
import hashlib
from typing import Any, cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from corsaro.domain.entities.streams import ResolutionStatus, StreamResolution
from corsaro.infrastructure.config import decode_user_config
from corsaro.infrastructure.metadata import parse_stream_id
from corsaro.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["stremio"])

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
}

MANIFEST: dict[str, Any] = {
    "id": "org.community.corsaro-brain-v37",
    "version": "37.1.0",
    "name": "Corsaro + Global",
    "description": "🇮🇹 Torrent italiani e globali via Real-Debrid, con supporto Kitsu.",
    "resources": ["catalog", "stream"],
    "types": ["movie", "series", "anime"],
    "catalogs": [{"type": "movie", "id": "tmdb_trending", "name": "Popolari Italia"}],
    "idPrefixes": ["tmdb", "tt", "kitsu"],
    "behaviorHints": {"configurable": True, "configurationRequired": True},
}

LABEL_CONFIG_MISSING = "⚠️ Config mancante"
LABEL_METADATA_MISSING = "⚠️ Metadata mancante"
LABEL_NO_RESULTS = "🚫 Nessun risultato"
LABEL_NO_CACHED = "🚫 Nessun file in cache trovato"
LABEL_AUTH_FAILED = "⚠️ API Key Real-Debrid non valida"
LABEL_INTERNAL_ERROR = "Errore Interno"

_STATUS_LABELS: dict[ResolutionStatus, str] = {
    ResolutionStatus.NO_CANDIDATES: LABEL_NO_RESULTS,
    ResolutionStatus.NO_CACHED: LABEL_NO_CACHED,
    ResolutionStatus.METADATA_MISSING: LABEL_METADATA_MISSING,
    ResolutionStatus.AUTH_FAILED: LABEL_AUTH_FAILED,
}


def _label(title: str) -> dict[str, Any]:
    return {"streams": [{"title": title}]}


def build_manifest(user_blob: str | None = None) -> dict[str, Any]:
    """Addon manifest; configuration is only required without both keys."""
    manifest = copy.deepcopy(MANIFEST)
    if user_blob is not None and decode_user_config(user_blob).is_complete:
        manifest["behaviorHints"]["configurationRequired"] = False
    return manifest


def stream_cache_key(user_blob: str, content_type: str, stream_id: str) -> str:
    digest = hashlib.sha1(user_blob.encode("utf-8")).hexdigest()
    return f"stream:{digest}:{content_type}:{stream_id}"


def render_resolution(resolution: StreamResolution) -> dict[str, Any]:
    if resolution.status is ResolutionStatus.OK:
        return {"streams": [s.to_stremio() for s in resolution.streams]}
    return _label(_STATUS_LABELS[resolution.status])


@router.get("/manifest.json")
async def manifest() -> JSONResponse:
    return JSONResponse(content=build_manifest(), headers=CORS_HEADERS)


@router.get("/{user_config}/manifest.json")
async def configured_manifest(user_config: str) -> JSONResponse:
    return JSONResponse(content=build_manifest(user_config), headers=CORS_HEADERS)


@router.get("/{user_config}/catalog/{content_type}/{catalog_id}.json")
async def catalog(user_config: str, content_type: str, catalog_id: str) -> JSONResponse:
    """Catalogs are declared for discovery only and always empty."""
    return JSONResponse(content={"metas": []}, headers=CORS_HEADERS)


@router.get("/{user_config}/stream/{content_type}/{stream_id}.json")
async def stream(
    request: Request,
    user_config: str,
    content_type: str,
    stream_id: str,
) -> JSONResponse:
    """Resolve cached debrid streams for a movie or episode.

    1. Serve a cached response for the same configuration and id.
    2. Check the configuration carries both API keys.
    3. Run the stream resolution pipeline.
    4. Cache the response with the TTL of its terminal state.
    """
    state = cast(AppState, request.app.state)
    cache_key = stream_cache_key(user_config, content_type, stream_id)

    cached = await state.cache.get(cache_key)
    if cached is not None:
        log.info("stream_cache_hit", content_type=content_type, stream_id=stream_id)
        return JSONResponse(content=cached, headers=CORS_HEADERS)

    settings = decode_user_config(user_config).with_tmdb_fallback(
        state.config.tmdb_api_key
    )
    if not settings.is_complete:
        log.info("stream_config_missing", stream_id=stream_id)
        return JSONResponse(content=_label(LABEL_CONFIG_MISSING), headers=CORS_HEADERS)

    parsed = parse_stream_id(content_type, stream_id)
    if parsed is None:
        log.info("stream_id_unparseable", content_type=content_type, stream_id=stream_id)
        return JSONResponse(content={"streams": []}, headers=CORS_HEADERS)

    log.info(
        "stream_request",
        media_id=parsed.media_id,
        content_type=parsed.content_type,
        season=parsed.season,
        episode=parsed.episode,
    )

    try:
        resolution = await state.stream_uc.execute(parsed, settings)
    except Exception:
        log.exception("stream_resolution_failed", stream_id=stream_id)
        return JSONResponse(
            status_code=500,
            content=_label(LABEL_INTERNAL_ERROR),
            headers=CORS_HEADERS,
        )

    body = render_resolution(resolution)
    ttl_class = resolution.ttl_class
    if ttl_class is not None:
        await state.cache.set(
            cache_key, body, ttl=state.config.cache.ttl_for(ttl_class)
        )
    return JSONResponse(content=body, headers=CORS_HEADERS)
