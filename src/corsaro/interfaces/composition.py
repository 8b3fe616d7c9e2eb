"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

import functools
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from corsaro.application.use_cases import StreamResolutionUseCase
from corsaro.infrastructure.cache import create_cache
from corsaro.infrastructure.common.rate_limiter import IntervalPacer
from corsaro.infrastructure.config.schema import AppConfig
from corsaro.infrastructure.debrid import CacheResolver, RealDebridClient
from corsaro.infrastructure.debrid.resolver import MIB
from corsaro.infrastructure.metadata import KitsuMapper, TmdbMetadataClient
from corsaro.infrastructure.metrics import MetricsCollector
from corsaro.infrastructure.pipeline import (
    FanOutDispatcher,
    forced_ita_query,
    matches,
    normalize_candidates,
    plan_queries,
    rank_candidates,
)
from corsaro.infrastructure.pipeline.matcher import is_4k, is_cam
from corsaro.infrastructure.pipeline.normalizer import DEFAULT_TRACKERS
from corsaro.infrastructure.providers import ProviderRegistry
from corsaro.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def build_resolver(
    config: AppConfig,
    http_client: httpx.AsyncClient,
    metrics: MetricsCollector | None = None,
) -> CacheResolver:
    debrid = config.debrid
    return CacheResolver(
        client_factory=functools.partial(
            _debrid_client,
            http_client=http_client,
            base_url=debrid.base_url,
            timeout=debrid.timeout_seconds,
        ),
        pacer_factory=functools.partial(IntervalPacer, debrid.min_interval_seconds),
        candidate_budget=debrid.candidate_budget,
        rate_limit_cooldown=debrid.rate_limit_cooldown_seconds,
        min_video_bytes=debrid.min_video_mb * MIB,
        series_min_bytes=debrid.series_min_mb * MIB,
        movie_min_bytes=debrid.movie_min_mb * MIB,
        cleanup_discarded=debrid.cleanup_discarded,
        metrics=metrics,
    )


def _debrid_client(
    api_key: str,
    *,
    http_client: httpx.AsyncClient,
    base_url: str,
    timeout: float,
) -> RealDebridClient:
    return RealDebridClient(
        api_key=api_key,
        http_client=http_client,
        base_url=base_url,
        timeout=timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Initialize and cleanup application resources.

    Order:
        1. Metrics collector
        2. Cache
        3. HTTP client (shared by providers, metadata and debrid)
        4. Provider registry
        5. Metadata lookup (TMDB + Kitsu)
        6. Cache resolver
        7. Stream resolution use case
    """
    state = cast(AppState, app.state)
    config = state.config

    # 0) Metrics collector (must exist before components that record)
    state.metrics = MetricsCollector()

    # 1) Cache
    cache = create_cache(
        backend=config.cache.backend,
        directory=config.cache.directory,
        ttl_seconds=config.cache.streams_ttl_seconds,
        max_entries=config.cache.max_entries,
        max_concurrent=config.cache.max_concurrent,
    )
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", backend=config.cache.backend)

    # 2) HTTP client
    state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=True,
    )
    log.info("http_client_initialized", timeout=config.http_timeout_seconds)

    # 3) Providers
    state.providers = ProviderRegistry.from_config(config.providers, state.http_client)

    # 4) Metadata
    metadata_ttl = config.cache.metadata_ttl_seconds
    state.metadata = TmdbMetadataClient(
        http_client=state.http_client,
        cache=state.cache,
        kitsu=KitsuMapper(
            http_client=state.http_client,
            cache=state.cache,
            ttl_seconds=metadata_ttl,
        ),
        ttl_seconds=metadata_ttl,
    )

    # 5) Debrid cache resolver
    state.resolver = build_resolver(config, state.http_client, state.metrics)

    # 6) Use case
    trackers = (*DEFAULT_TRACKERS, *config.pipeline.extra_trackers)
    state.stream_uc = StreamResolutionUseCase(
        metadata=state.metadata,
        providers=state.providers,
        dispatcher=FanOutDispatcher(
            provider_timeout=config.pipeline.provider_timeout_seconds,
            metrics=state.metrics,
        ),
        resolver=state.resolver,
        plan_fn=functools.partial(
            plan_queries, max_queries=config.pipeline.max_queries
        ),
        forced_query_fn=forced_ita_query,
        normalize_fn=functools.partial(normalize_candidates, trackers=trackers),
        match_fn=matches,
        rank_fn=rank_candidates,
        is_4k_fn=is_4k,
        is_cam_fn=is_cam,
        request_deadline_seconds=config.pipeline.request_deadline_seconds,
        metrics=state.metrics,
    )

    log.info("app_startup_complete", providers=state.providers.names())

    try:
        yield
    finally:
        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")
