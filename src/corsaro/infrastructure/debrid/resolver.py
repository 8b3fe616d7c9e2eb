"""Sequential, paced cache confirmation against the debrid service.

Each candidate walks a small state machine::

    SUBMITTED -> AWAITING_SELECTION -> FILES_SELECTED -> READY | DISCARDED

A candidate that is not fully downloaded on the debrid side right after
file selection is discarded; the resolver never waits for a download.
Candidates are processed one at a time and every candidate is preceded by
``IntervalPacer.wait()``. All requests made with the same debrid token go
through one lane: its lock is held for the whole life of a candidate, so
two requests for one token never talk to the debrid API at the same time.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import structlog

from corsaro.domain.entities.candidates import Candidate
from corsaro.domain.entities.media import RequestMetadata
from corsaro.domain.entities.streams import DebridFile, DebridTorrent, ResolvedStream
from corsaro.domain.errors import (
    DebridAuthError,
    DebridError,
    DebridRateLimited,
)
from corsaro.domain.ports.debrid import DebridClientFactory, DebridClientPort
from corsaro.infrastructure.common.rate_limiter import IntervalPacer

from .stream_formatter import format_stream

log = structlog.get_logger(__name__)

MIB = 1024 * 1024

VIDEO_EXTENSIONS: tuple[str, ...] = (
    ".mkv",
    ".mp4",
    ".avi",
    ".mov",
    ".wmv",
    ".flv",
    ".m4v",
    ".ts",
)
JUNK_MARKERS: tuple[str, ...] = ("sample", "trailer", "extra", "bonus")


class CandidateState(str, Enum):
    SUBMITTED = "submitted"
    AWAITING_SELECTION = "awaiting_selection"
    FILES_SELECTED = "files_selected"
    READY = "ready"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class CandidateOutcome:
    info_hash: str
    state: CandidateState
    reason: str = ""
    stream: ResolvedStream | None = None


@dataclass(frozen=True)
class ResolverReport:
    streams: tuple[ResolvedStream, ...] = ()
    outcomes: tuple[CandidateOutcome, ...] = ()
    auth_failed: bool = False
    timed_out: bool = False


@dataclass
class _Job:
    candidate: Candidate
    state: CandidateState = CandidateState.SUBMITTED
    torrent_id: str | None = None

    def advance(self, state: CandidateState) -> None:
        self.state = state
        log.debug(
            "debrid_candidate_state",
            info_hash=self.candidate.info_hash,
            state=state.value,
        )


@dataclass
class _TokenLane:
    pacer: IntervalPacer
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class _MetricsRecorder(Protocol):
    def record_debrid_outcome(self, outcome: str) -> None: ...


def select_video_files(files: Sequence[DebridFile], min_bytes: int) -> list[int]:
    """Ids of plausible main video files inside a torrent.

    Empty when nothing qualifies; callers then select every file.
    """
    selected: list[int] = []
    for f in files:
        path = f.path.lower()
        if not path.endswith(VIDEO_EXTENSIONS):
            continue
        if any(junk in path for junk in JUNK_MARKERS):
            continue
        if f.size_bytes <= min_bytes:
            continue
        selected.append(f.id)
    return selected


def pick_main_file(torrent: DebridTorrent) -> tuple[DebridFile, str] | None:
    """Largest selected file and the hoster link that belongs to it.

    Links are listed in the order of the selected files; when the counts
    do not line up the first link is used.
    """
    if not torrent.links:
        return None
    selected = sorted(
        (f for f in torrent.files if f.selected), key=lambda f: f.id
    ) or sorted(torrent.files, key=lambda f: f.id)
    if not selected:
        return None

    main = max(selected, key=lambda f: f.size_bytes)
    index = selected.index(main)
    if len(torrent.links) == len(selected):
        return main, torrent.links[index]
    return main, torrent.links[0]


class CacheResolver:
    """Confirms cached torrents one by one and builds playable streams.

    Args:
        client_factory: Builds a debrid client for a user token.
        pacer_factory: Builds the pacer used for one debrid token. Calls
            made with the same token share a pacer across requests.
        candidate_budget: Maximum number of candidates tried per request.
        rate_limit_cooldown: Extra pause after a rate-limit response.
        min_video_bytes: Files at or below this size are never selected.
        series_min_bytes / movie_min_bytes: Minimum confirmed size of the
            played file.
        cleanup_discarded: Delete torrents that did not become streams.
        max_tokens: Number of token lanes kept; the least recently used
            idle lane is dropped beyond that.
    """

    def __init__(
        self,
        *,
        client_factory: DebridClientFactory,
        pacer_factory: Callable[[], IntervalPacer] = IntervalPacer,
        candidate_budget: int = 12,
        rate_limit_cooldown: float = 2.0,
        min_video_bytes: int = 50 * MIB,
        series_min_bytes: int = 50 * MIB,
        movie_min_bytes: int = 200 * MIB,
        cleanup_discarded: bool = False,
        metrics: _MetricsRecorder | None = None,
        clock: Callable[[], float] = time.monotonic,
        max_tokens: int = 256,
    ) -> None:
        self._client_factory = client_factory
        self._pacer_factory = pacer_factory
        self._lanes: OrderedDict[str, _TokenLane] = OrderedDict()
        self._max_tokens = max_tokens
        self._budget = candidate_budget
        self._rate_limit_cooldown = rate_limit_cooldown
        self._min_video_bytes = min_video_bytes
        self._series_min_bytes = series_min_bytes
        self._movie_min_bytes = movie_min_bytes
        self._cleanup_discarded = cleanup_discarded
        self._metrics = metrics
        self._clock = clock

    def _record(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_debrid_outcome(outcome)

    @property
    def tracked_tokens(self) -> int:
        return len(self._lanes)

    def _lane_for(self, api_key: str) -> _TokenLane:
        key = hashlib.sha256(api_key.encode()).hexdigest()
        lane = self._lanes.get(key)
        if lane is None:
            lane = self._lanes[key] = _TokenLane(pacer=self._pacer_factory())
        self._lanes.move_to_end(key)
        self._evict_idle_lanes()
        return lane

    def _evict_idle_lanes(self) -> None:
        # The newest lane (just handed out) is never a candidate.
        for key in list(self._lanes)[:-1]:
            if len(self._lanes) <= self._max_tokens:
                break
            if self._lanes[key].users == 0:
                del self._lanes[key]

    def pacer_for(self, api_key: str) -> IntervalPacer:
        return self._lane_for(api_key).pacer

    def min_size_for(self, metadata: RequestMetadata) -> int:
        return self._series_min_bytes if metadata.is_series else self._movie_min_bytes

    async def resolve(
        self,
        candidates: Sequence[Candidate],
        *,
        metadata: RequestMetadata,
        api_key: str,
        deadline: float | None = None,
    ) -> ResolverReport:
        """Resolve the head of *candidates* in order.

        Stops early on an invalid token or when *deadline* (a value of the
        injected clock) passes; streams produced so far are returned.
        """
        client = self._client_factory(api_key)
        lane = self._lane_for(api_key)
        streams: list[ResolvedStream] = []
        outcomes: list[CandidateOutcome] = []
        auth_failed = False
        timed_out = False

        lane.users += 1
        try:
            for candidate in candidates[: self._budget]:
                if deadline is not None and self._clock() >= deadline:
                    timed_out = True
                    break

                async with lane.lock:
                    await lane.pacer.wait()

                    timeout = None
                    if deadline is not None:
                        timeout = deadline - self._clock()
                        if timeout <= 0:
                            timed_out = True
                            break

                    job = _Job(candidate=candidate)
                    try:
                        outcome = await asyncio.wait_for(
                            self._resolve_one(client, job, metadata), timeout=timeout
                        )
                    except TimeoutError:
                        log.info(
                            "debrid_deadline_reached", info_hash=candidate.info_hash
                        )
                        timed_out = True
                        break
                    except DebridAuthError:
                        log.error("debrid_auth_failed", info_hash=candidate.info_hash)
                        self._record("auth_failed")
                        auth_failed = True
                        break
                    except DebridRateLimited:
                        log.warning(
                            "debrid_rate_limited",
                            info_hash=candidate.info_hash,
                            cooldown=self._rate_limit_cooldown,
                        )
                        lane.pacer.penalize(self._rate_limit_cooldown)
                        self._record("rate_limited")
                        outcome = self._discard(job, "rate_limited")
                    except DebridError as exc:
                        log.warning(
                            "debrid_candidate_failed",
                            info_hash=candidate.info_hash,
                            code=exc.code,
                            error=str(exc),
                        )
                        self._record("error")
                        outcome = self._discard(job, exc.code.lower())

                    outcomes.append(outcome)
                    if outcome.stream is not None:
                        streams.append(outcome.stream)
                    elif self._cleanup_discarded and job.torrent_id is not None:
                        await self._cleanup(client, job.torrent_id)
        finally:
            lane.users -= 1

        log.info(
            "debrid_batch_complete",
            tried=len(outcomes),
            ready=len(streams),
            auth_failed=auth_failed,
            timed_out=timed_out,
        )
        return ResolverReport(
            streams=tuple(streams),
            outcomes=tuple(outcomes),
            auth_failed=auth_failed,
            timed_out=timed_out,
        )

    def _discard(self, job: _Job, reason: str) -> CandidateOutcome:
        job.advance(CandidateState.DISCARDED)
        return CandidateOutcome(
            info_hash=job.candidate.info_hash,
            state=CandidateState.DISCARDED,
            reason=reason,
        )

    async def _resolve_one(
        self,
        client: DebridClientPort,
        job: _Job,
        metadata: RequestMetadata,
    ) -> CandidateOutcome:
        candidate = job.candidate
        job.torrent_id = await client.add_magnet(candidate.magnet_uri)
        torrent = await client.get_info(job.torrent_id)

        if torrent.awaiting_selection:
            job.advance(CandidateState.AWAITING_SELECTION)
            file_ids = select_video_files(torrent.files, self._min_video_bytes)
            await client.select_files(job.torrent_id, file_ids or None)
            torrent = await client.get_info(job.torrent_id)
        job.advance(CandidateState.FILES_SELECTED)

        if not torrent.is_downloaded:
            log.debug(
                "debrid_cache_miss",
                info_hash=candidate.info_hash,
                status=torrent.status,
            )
            self._record("cache_miss")
            return self._discard(job, "cache_miss")

        picked = pick_main_file(torrent)
        if picked is None:
            self._record("no_links")
            return self._discard(job, "no_links")
        main_file, link = picked

        min_size = self.min_size_for(metadata)
        if main_file.size_bytes < min_size:
            log.debug(
                "debrid_file_too_small",
                info_hash=candidate.info_hash,
                size=main_file.size_bytes,
                min_size=min_size,
            )
            self._record("too_small")
            return self._discard(job, "too_small")

        unrestricted = await client.unrestrict_link(link)
        size = unrestricted.size_bytes or main_file.size_bytes
        if size < min_size:
            self._record("too_small")
            return self._discard(job, "too_small")

        stream = format_stream(
            candidate,
            filename=unrestricted.filename or main_file.name,
            size_bytes=size,
            url=unrestricted.url,
        )
        job.advance(CandidateState.READY)
        self._record("ready")
        return CandidateOutcome(
            info_hash=candidate.info_hash,
            state=CandidateState.READY,
            stream=stream,
        )

    async def _cleanup(self, client: DebridClientPort, torrent_id: str) -> None:
        try:
            await client.delete_torrent(torrent_id)
        except DebridError as exc:
            log.debug("debrid_cleanup_failed", torrent_id=torrent_id, code=exc.code)
