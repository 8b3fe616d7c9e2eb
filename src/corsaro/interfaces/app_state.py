"""Typed ``app.state`` for the addon."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from corsaro.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from corsaro.application.use_cases import StreamResolutionUseCase
    from corsaro.domain.ports import CachePort, MetadataPort
    from corsaro.infrastructure.debrid import CacheResolver
    from corsaro.infrastructure.metrics import MetricsCollector
    from corsaro.infrastructure.providers import ProviderRegistry


class AppState(State):
    """Everything the routes read from ``request.app.state``.

    ``config`` is set by ``create_app``; the rest is filled in (and torn
    down) by ``composition.lifespan``.
    """

    config: AppConfig

    # shared plumbing
    http_client: httpx.AsyncClient
    cache: CachePort
    metrics: MetricsCollector

    # stream pipeline
    providers: ProviderRegistry
    metadata: MetadataPort
    resolver: CacheResolver
    stream_uc: StreamResolutionUseCase
