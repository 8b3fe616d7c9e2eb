"""Provider registry built from configuration."""

from __future__ import annotations

import httpx
import structlog

from corsaro.domain.ports.provider import ProviderPort
from corsaro.infrastructure.config.schema import ProvidersConfig

from .knaben import KnabenProvider
from .torznab import TorznabProvider
from .x1337 import X1337Provider

log = structlog.get_logger(__name__)


class DuplicateProviderError(ValueError):
    """Two providers were registered under the same name."""


class ProviderRegistry:
    """Ordered collection of providers, split by scope."""

    def __init__(self, providers: list[ProviderPort] | None = None) -> None:
        self._providers: dict[str, ProviderPort] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: ProviderPort) -> None:
        if provider.name in self._providers:
            raise DuplicateProviderError(provider.name)
        self._providers[provider.name] = provider

    def get(self, name: str) -> ProviderPort | None:
        return self._providers.get(name)

    def all(self) -> list[ProviderPort]:
        return list(self._providers.values())

    def local(self) -> list[ProviderPort]:
        return [p for p in self._providers.values() if p.scope == "local"]

    def global_(self) -> list[ProviderPort]:
        return [p for p in self._providers.values() if p.scope == "global"]

    def names(self) -> list[str]:
        return list(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    @classmethod
    def from_config(
        cls, config: ProvidersConfig, http_client: httpx.AsyncClient
    ) -> ProviderRegistry:
        registry = cls()
        timeout = config.timeout_seconds
        if config.knaben_enabled:
            registry.register(KnabenProvider(http_client=http_client, timeout=timeout))
        if config.x1337_enabled:
            registry.register(X1337Provider(http_client=http_client, timeout=timeout))
        for indexer in config.torznab:
            registry.register(
                TorznabProvider(
                    name=indexer.name,
                    url=indexer.url,
                    api_key=indexer.api_key,
                    scope=indexer.scope,
                    categories=indexer.categories,
                    http_client=http_client,
                    timeout=timeout,
                )
            )
        log.info(
            "providers_registered",
            local=[p.name for p in registry.local()],
            global_=[p.name for p in registry.global_()],
        )
        return registry
