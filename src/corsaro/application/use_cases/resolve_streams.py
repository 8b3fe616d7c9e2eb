"""Stream resolution use case.

Stream request -> metadata -> query variants -> provider fan-out
-> info-hash merge -> episode match -> user filters -> rank
-> debrid cache confirmation -> StreamResolution.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Protocol

import structlog

from corsaro.domain.entities.candidates import Candidate, RawCandidate
from corsaro.domain.entities.media import RequestMetadata, StreamRequest
from corsaro.domain.entities.streams import (
    ResolutionStatus,
    ResolvedStream,
    StreamResolution,
)
from corsaro.domain.ports.metadata import MetadataPort
from corsaro.domain.ports.provider import ProviderPort

log = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Protocols: what this use case needs from its dependencies.
# Infrastructure components satisfy these via structural subtyping.
# ---------------------------------------------------------------------------


class _Filters(Protocol):
    only_ita: bool
    no_4k: bool
    no_cam: bool


class _UserSettings(Protocol):
    """Decoded per-user configuration."""

    rd: str
    tmdb: str

    @property
    def filters(self) -> _Filters: ...


class _ProviderSource(Protocol):
    def all(self) -> list[ProviderPort]: ...


class _Dispatcher(Protocol):
    async def dispatch(
        self,
        queries: Sequence[str],
        providers: Sequence[ProviderPort],
        *,
        year: int | None = None,
        only_local: bool = False,
        forced_query: str | None = None,
        deadline: float | None = None,
    ) -> list[RawCandidate]: ...


class _ResolverReport(Protocol):
    streams: tuple[ResolvedStream, ...]
    auth_failed: bool
    timed_out: bool


class _Resolver(Protocol):
    async def resolve(
        self,
        candidates: Sequence[Candidate],
        *,
        metadata: RequestMetadata,
        api_key: str,
        deadline: float | None = None,
    ) -> _ResolverReport: ...


class _MetricsRecorder(Protocol):
    def record_request(self, status: str) -> None: ...


# Type aliases for injected pure functions.
_PlanFn = Callable[[RequestMetadata], list[str]]
_ForcedQueryFn = Callable[[RequestMetadata], str]
_NormalizeFn = Callable[[Sequence[RawCandidate]], list[Candidate]]
_MatchFn = Callable[[str, int, int, bool], bool]
_RankFn = Callable[[Sequence[Candidate]], list[Candidate]]
_TitlePredicate = Callable[[str], bool]


class StreamResolutionUseCase:
    """Turn one stream request into a list of confirmed, playable streams.

    Flow:
        1. Resolve the request id into metadata (TMDB, Kitsu).
        2. Plan query variants and search every provider concurrently.
        3. Merge candidates by info-hash.
        4. Keep only titles matching the requested episode (series).
        5. Apply the user's quality filters and rank.
        6. Confirm debrid cache status candidate by candidate.

    The whole run shares one deadline; whatever the resolver confirmed
    before it passes is returned as a partial result.
    """

    def __init__(
        self,
        *,
        metadata: MetadataPort,
        providers: _ProviderSource,
        dispatcher: _Dispatcher,
        resolver: _Resolver,
        plan_fn: _PlanFn,
        forced_query_fn: _ForcedQueryFn,
        normalize_fn: _NormalizeFn,
        match_fn: _MatchFn,
        rank_fn: _RankFn,
        is_4k_fn: _TitlePredicate,
        is_cam_fn: _TitlePredicate,
        request_deadline_seconds: float = 25.0,
        metrics: _MetricsRecorder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._metadata = metadata
        self._providers = providers
        self._dispatcher = dispatcher
        self._resolver = resolver
        self._plan_fn = plan_fn
        self._forced_query_fn = forced_query_fn
        self._normalize_fn = normalize_fn
        self._match_fn = match_fn
        self._rank_fn = rank_fn
        self._is_4k_fn = is_4k_fn
        self._is_cam_fn = is_cam_fn
        self._deadline_seconds = request_deadline_seconds
        self._metrics = metrics
        self._clock = clock

    def _finish(self, resolution: StreamResolution) -> StreamResolution:
        if self._metrics is not None:
            self._metrics.record_request(resolution.status.value)
        return resolution

    def _match_episode(
        self, candidates: list[Candidate], metadata: RequestMetadata
    ) -> list[Candidate]:
        if not metadata.is_series or metadata.season is None:
            return candidates
        if metadata.episode is None:
            return candidates
        kept = [
            c
            for c in candidates
            if self._match_fn(
                c.display_title, metadata.season, metadata.episode, metadata.is_anime
            )
        ]
        log.debug(
            "episode_filter_applied",
            season=metadata.season,
            episode=metadata.episode,
            before=len(candidates),
            after=len(kept),
        )
        return kept

    def _apply_user_filters(
        self, candidates: list[Candidate], filters: _Filters
    ) -> list[Candidate]:
        if filters.no_4k:
            candidates = [c for c in candidates if not self._is_4k_fn(c.display_title)]
        if filters.no_cam:
            candidates = [c for c in candidates if not self._is_cam_fn(c.display_title)]
        return candidates

    async def execute(
        self, request: StreamRequest, user_config: _UserSettings
    ) -> StreamResolution:
        """Resolve streams for *request* with the user's keys and filters."""
        deadline = self._clock() + self._deadline_seconds

        metadata = await self._metadata.resolve(request, user_config.tmdb)
        if metadata is None:
            log.warning("metadata_missing", media_id=request.media_id)
            return self._finish(StreamResolution(ResolutionStatus.METADATA_MISSING))

        filters = user_config.filters
        queries = self._plan_fn(metadata)
        log.info(
            "stream_search_start",
            media_id=request.media_id,
            title=metadata.title,
            season=metadata.season,
            episode=metadata.episode,
            queries=queries,
            only_ita=filters.only_ita,
        )

        raws = await self._dispatcher.dispatch(
            queries,
            self._providers.all(),
            year=None if metadata.is_series else metadata.year,
            only_local=filters.only_ita,
            forced_query=self._forced_query_fn(metadata),
            deadline=deadline,
        )

        candidates = self._normalize_fn(raws)
        candidates = self._match_episode(candidates, metadata)
        candidates = self._apply_user_filters(candidates, filters)
        ranked = self._rank_fn(candidates)

        if not ranked:
            log.info(
                "stream_no_candidates",
                media_id=request.media_id,
                raw_results=len(raws),
            )
            return self._finish(StreamResolution(ResolutionStatus.NO_CANDIDATES))

        report = await self._resolver.resolve(
            ranked,
            metadata=metadata,
            api_key=user_config.rd,
            deadline=deadline,
        )

        if report.streams:
            status = ResolutionStatus.OK
        elif report.auth_failed:
            status = ResolutionStatus.AUTH_FAILED
        else:
            status = ResolutionStatus.NO_CACHED

        log.info(
            "stream_resolution_complete",
            media_id=request.media_id,
            status=status.value,
            candidates=len(ranked),
            streams=len(report.streams),
            partial=report.timed_out,
        )
        return self._finish(
            StreamResolution(
                status=status,
                streams=report.streams,
                partial=report.timed_out,
            )
        )
