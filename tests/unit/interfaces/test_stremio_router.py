"""Tests for the Stremio addon router."""

from __future__ import annotations

import base64
import json
from typing import Any
from unittest.mock import AsyncMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from corsaro.domain.entities.media import StreamRequest
from corsaro.domain.entities.streams import (
    ResolutionStatus,
    ResolvedStream,
    StreamResolution,
)
from corsaro.infrastructure.config import AppConfig
from corsaro.interfaces.api.stremio.router import (
    LABEL_AUTH_FAILED,
    LABEL_CONFIG_MISSING,
    LABEL_INTERNAL_ERROR,
    LABEL_METADATA_MISSING,
    LABEL_NO_CACHED,
    LABEL_NO_RESULTS,
    build_manifest,
    render_resolution,
    router,
    stream_cache_key,
)


def _blob(**data: Any) -> str:
    return base64.b64encode(json.dumps(data).encode()).decode()


_FULL = _blob(rd="rd-key", tmdb="tmdb-key")

_STREAM = ResolvedStream(
    display_name="[RD ⚡] Knaben\n1080p",
    title="Film.mkv",
    url="https://dl.example/Film.mkv",
    size_bytes=10,
    behavior_hints={"bingeGroup": "corsaro|1080p"},
)


def _make_app(
    *,
    resolution: StreamResolution | None = None,
    cached: Any = None,
    config: AppConfig | None = None,
) -> tuple[FastAPI, AsyncMock, AsyncMock]:
    """Create a minimal FastAPI app with the stremio router."""
    app = FastAPI()
    app.include_router(router)

    cache = AsyncMock()
    cache.get.return_value = cached
    uc = AsyncMock()
    uc.execute.return_value = resolution or StreamResolution(ResolutionStatus.OK)

    app.state.cache = cache
    app.state.config = config or AppConfig()
    app.state.stream_uc = uc
    return app, cache, uc


# ---------------------------------------------------------------------------
# Manifest and catalog
# ---------------------------------------------------------------------------


class TestManifest:
    def test_bare_manifest_requires_configuration(self) -> None:
        app, _, _ = _make_app()
        resp = TestClient(app).get("/manifest.json")
        assert resp.status_code == 200
        body = resp.json()
        assert body["behaviorHints"]["configurationRequired"] is True
        assert body["idPrefixes"] == ["tmdb", "tt", "kitsu"]
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_complete_config_clears_flag(self) -> None:
        app, _, _ = _make_app()
        body = TestClient(app).get(f"/{_FULL}/manifest.json").json()
        assert body["behaviorHints"]["configurationRequired"] is False

    def test_incomplete_config_keeps_flag(self) -> None:
        assert build_manifest(_blob(rd="x"))["behaviorHints"]["configurationRequired"]
        assert build_manifest("garbage")["behaviorHints"]["configurationRequired"]

    def test_base_manifest_not_mutated(self) -> None:
        build_manifest(_FULL)
        assert build_manifest()["behaviorHints"]["configurationRequired"] is True


class TestCatalog:
    def test_always_empty(self) -> None:
        app, _, _ = _make_app()
        resp = TestClient(app).get(f"/{_FULL}/catalog/movie/tmdb_trending.json")
        assert resp.status_code == 200
        assert resp.json() == {"metas": []}


# ---------------------------------------------------------------------------
# Stream endpoint
# ---------------------------------------------------------------------------


class TestStream:
    def test_ok_streams_rendered_and_cached(self) -> None:
        app, cache, uc = _make_app(
            resolution=StreamResolution(ResolutionStatus.OK, streams=(_STREAM,))
        )
        resp = TestClient(app).get(f"/{_FULL}/stream/series/tt0944947:1:5.json")

        assert resp.status_code == 200
        assert resp.json() == {
            "streams": [
                {
                    "name": "[RD ⚡] Knaben\n1080p",
                    "title": "Film.mkv",
                    "url": "https://dl.example/Film.mkv",
                    "behaviorHints": {"bingeGroup": "corsaro|1080p"},
                }
            ]
        }
        request, settings = uc.execute.await_args.args
        assert request == StreamRequest(
            media_id="tt0944947", content_type="series", season=1, episode=5
        )
        assert settings.rd == "rd-key"

        key = stream_cache_key(_FULL, "series", "tt0944947:1:5")
        cache.set.assert_awaited_once_with(key, resp.json(), ttl=1800)

    def test_partial_result_uses_short_ttl(self) -> None:
        app, cache, _ = _make_app(
            resolution=StreamResolution(
                ResolutionStatus.OK, streams=(_STREAM,), partial=True
            )
        )
        TestClient(app).get(f"/{_FULL}/stream/movie/tt0118799.json")
        assert cache.set.await_args.kwargs["ttl"] == 300

    def test_cache_hit_skips_pipeline(self) -> None:
        app, _, uc = _make_app(cached={"streams": [{"title": "cached"}]})
        resp = TestClient(app).get(f"/{_FULL}/stream/movie/tt0118799.json")
        assert resp.json() == {"streams": [{"title": "cached"}]}
        uc.execute.assert_not_awaited()

    def test_config_missing(self) -> None:
        app, cache, uc = _make_app()
        resp = TestClient(app).get(
            f"/{_blob(rd='only-rd')}/stream/movie/tt0118799.json"
        )
        assert resp.json() == {"streams": [{"title": LABEL_CONFIG_MISSING}]}
        uc.execute.assert_not_awaited()
        cache.set.assert_not_awaited()

    def test_server_tmdb_key_completes_config(self) -> None:
        app, _, uc = _make_app(config=AppConfig(tmdb_api_key="server-key"))
        TestClient(app).get(f"/{_blob(rd='only-rd')}/stream/movie/tt0118799.json")
        _, settings = uc.execute.await_args.args
        assert settings.tmdb == "server-key"

    def test_unparseable_id(self) -> None:
        app, _, uc = _make_app()
        resp = TestClient(app).get(f"/{_FULL}/stream/movie/nm0000123.json")
        assert resp.status_code == 200
        assert resp.json() == {"streams": []}
        uc.execute.assert_not_awaited()

    def test_auth_failure_not_cached(self) -> None:
        app, cache, _ = _make_app(
            resolution=StreamResolution(ResolutionStatus.AUTH_FAILED)
        )
        resp = TestClient(app).get(f"/{_FULL}/stream/movie/tt0118799.json")
        assert resp.json() == {"streams": [{"title": LABEL_AUTH_FAILED}]}
        cache.set.assert_not_awaited()

    def test_no_cached_uses_empty_ttl(self) -> None:
        app, cache, _ = _make_app(
            resolution=StreamResolution(ResolutionStatus.NO_CACHED)
        )
        resp = TestClient(app).get(f"/{_FULL}/stream/movie/tt0118799.json")
        assert resp.json() == {"streams": [{"title": LABEL_NO_CACHED}]}
        assert cache.set.await_args.kwargs["ttl"] == 300

    def test_pipeline_error_returns_500(self) -> None:
        app, cache, uc = _make_app()
        uc.execute.side_effect = RuntimeError("boom")
        resp = TestClient(app).get(f"/{_FULL}/stream/movie/tt0118799.json")
        assert resp.status_code == 500
        assert resp.json() == {"streams": [{"title": LABEL_INTERNAL_ERROR}]}
        assert resp.headers["access-control-allow-origin"] == "*"
        cache.set.assert_not_awaited()


class TestRenderResolution:
    def test_status_labels(self) -> None:
        cases = {
            ResolutionStatus.NO_CANDIDATES: LABEL_NO_RESULTS,
            ResolutionStatus.NO_CACHED: LABEL_NO_CACHED,
            ResolutionStatus.METADATA_MISSING: LABEL_METADATA_MISSING,
            ResolutionStatus.AUTH_FAILED: LABEL_AUTH_FAILED,
        }
        for status, label in cases.items():
            assert render_resolution(StreamResolution(status)) == {
                "streams": [{"title": label}]
            }

    def test_ok_without_streams_renders_empty_list(self) -> None:
        assert render_resolution(StreamResolution(ResolutionStatus.OK)) == {
            "streams": []
        }


class TestStreamCacheKey:
    def test_distinct_per_config(self) -> None:
        a = stream_cache_key("blob-a", "movie", "tt1")
        b = stream_cache_key("blob-b", "movie", "tt1")
        assert a != b
        assert a.startswith("stream:")
        assert a.endswith(":movie:tt1")
        assert "blob-a" not in a
