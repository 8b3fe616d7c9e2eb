"""Tests for the sequential debrid cache resolver."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from corsaro.domain.entities.candidates import Candidate
from corsaro.domain.entities.media import RequestMetadata
from corsaro.domain.entities.streams import (
    DebridFile,
    DebridTorrent,
    UnrestrictedLink,
)
from corsaro.domain.errors import (
    DebridAuthError,
    DebridRateLimited,
    DebridServiceUnavailable,
)
from corsaro.infrastructure.common.rate_limiter import IntervalPacer
from corsaro.infrastructure.debrid.resolver import (
    MIB,
    CacheResolver,
    CandidateState,
    pick_main_file,
    select_video_files,
)
from corsaro.infrastructure.metrics import MetricsCollector

GIB = 1024 * MIB


@dataclass
class _Plan:
    """Scripted behaviour for one magnet."""

    status_after_select: str = "downloaded"
    size: int = 2 * GIB
    add_error: Exception | None = None
    unrestrict_size: int | None = None
    delay: float = 0.0


@dataclass
class _FakeDebrid:
    plans: dict[str, _Plan]
    calls: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    _selected: set[str] = field(default_factory=set)

    async def add_magnet(self, magnet_uri: str) -> str:
        self.calls.append(f"add:{magnet_uri}")
        plan = self.plans[magnet_uri]
        if plan.delay:
            await asyncio.sleep(plan.delay)
        if plan.add_error is not None:
            raise plan.add_error
        return magnet_uri

    async def get_info(self, torrent_id: str) -> DebridTorrent:
        self.calls.append(f"info:{torrent_id}")
        plan = self.plans[torrent_id]
        files = (
            DebridFile(id=1, path="/Sample/sample.mkv", size_bytes=30 * MIB),
            DebridFile(
                id=2,
                path="/Film.2021.1080p.ITA.mkv",
                size_bytes=plan.size,
                selected=torrent_id in self._selected,
            ),
        )
        if torrent_id not in self._selected:
            return DebridTorrent(
                id=torrent_id, status="waiting_files_selection", files=files
            )
        return DebridTorrent(
            id=torrent_id,
            status=plan.status_after_select,
            files=files,
            links=("https://real-debrid.com/d/" + torrent_id[-4:],),
        )

    async def select_files(self, torrent_id: str, file_ids: list[int] | None) -> None:
        self.calls.append(f"select:{torrent_id}:{file_ids}")
        self._selected.add(torrent_id)

    async def unrestrict_link(self, link: str) -> UnrestrictedLink:
        self.calls.append(f"unrestrict:{link}")
        plan = next(p for k, p in self.plans.items() if link.endswith(k[-4:]))
        return UnrestrictedLink(
            url=f"https://dl.example/{link[-4:]}.mkv",
            filename="Film.2021.1080p.ITA.mkv",
            size_bytes=(
                plan.size if plan.unrestrict_size is None else plan.unrestrict_size
            ),
        )

    async def delete_torrent(self, torrent_id: str) -> None:
        self.deleted.append(torrent_id)


def _cand(n: int) -> Candidate:
    info_hash = f"{n:040d}"
    return Candidate(
        info_hash=info_hash,
        display_title="Film.2021.1080p.ITA",
        magnet_uri=f"magnet:?xt=urn:btih:{info_hash}",
        size_hint_bytes=2 * GIB,
        sources=["Knaben"],
    )


def _resolver(
    fake: _FakeDebrid,
    *,
    clock=None,
    **kwargs,
) -> CacheResolver:
    extra = {"clock": clock} if clock is not None else {}
    return CacheResolver(
        client_factory=lambda api_key: fake,
        pacer_factory=lambda: IntervalPacer(0.0),
        **extra,
        **kwargs,
    )


@pytest.fixture()
def movie() -> RequestMetadata:
    return RequestMetadata(
        title="Film", original_title="Film", year=2021, is_series=False
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestSelectVideoFiles:
    def test_filters_junk_small_and_non_video(self) -> None:
        files = [
            DebridFile(id=1, path="/Film.mkv", size_bytes=900 * MIB),
            DebridFile(id=2, path="/Sample.mkv", size_bytes=900 * MIB),
            DebridFile(id=3, path="/Film.nfo", size_bytes=900 * MIB),
            DebridFile(id=4, path="/Extra.Trailer.mp4", size_bytes=900 * MIB),
            DebridFile(id=5, path="/Tiny.mp4", size_bytes=50 * MIB),
            DebridFile(id=6, path="/Ep2.MP4", size_bytes=300 * MIB),
        ]
        assert select_video_files(files, 50 * MIB) == [1, 6]

    def test_nothing_qualifies(self) -> None:
        files = [DebridFile(id=1, path="/readme.txt", size_bytes=1)]
        assert select_video_files(files, 50 * MIB) == []


class TestPickMainFile:
    def test_link_aligned_with_selected_files(self) -> None:
        torrent = DebridTorrent(
            id="t",
            status="downloaded",
            files=(
                DebridFile(id=1, path="/a.mkv", size_bytes=10, selected=True),
                DebridFile(id=2, path="/b.mkv", size_bytes=99, selected=True),
                DebridFile(id=3, path="/c.nfo", size_bytes=1, selected=False),
            ),
            links=("link-a", "link-b"),
        )
        main, link = pick_main_file(torrent)
        assert main.id == 2
        assert link == "link-b"

    def test_mismatched_counts_use_first_link(self) -> None:
        torrent = DebridTorrent(
            id="t",
            status="downloaded",
            files=(
                DebridFile(id=1, path="/a.mkv", size_bytes=10, selected=True),
                DebridFile(id=2, path="/b.mkv", size_bytes=99, selected=True),
            ),
            links=("only",),
        )
        assert pick_main_file(torrent)[1] == "only"

    def test_no_links(self) -> None:
        assert pick_main_file(DebridTorrent(id="t", status="downloaded")) is None


# ---------------------------------------------------------------------------
# resolve()
# ---------------------------------------------------------------------------


class TestResolve:
    @pytest.mark.asyncio()
    async def test_ready_candidate_becomes_stream(self, movie: RequestMetadata) -> None:
        c = _cand(1)
        fake = _FakeDebrid({c.magnet_uri: _Plan()})
        metrics = MetricsCollector()
        report = await _resolver(fake, metrics=metrics).resolve(
            [c], metadata=movie, api_key="k"
        )

        assert len(report.streams) == 1
        stream = report.streams[0]
        assert stream.url.startswith("https://dl.example/")
        assert stream.info_hash == c.info_hash
        assert report.outcomes[0].state is CandidateState.READY
        assert f"select:{c.magnet_uri}:[2]" in fake.calls
        assert metrics.snapshot()["debrid"] == {"ready": 1}

    @pytest.mark.asyncio()
    async def test_cache_miss_discarded(self, movie: RequestMetadata) -> None:
        c = _cand(1)
        fake = _FakeDebrid({c.magnet_uri: _Plan(status_after_select="downloading")})
        report = await _resolver(fake).resolve([c], metadata=movie, api_key="k")
        assert report.streams == ()
        assert report.outcomes[0].state is CandidateState.DISCARDED
        assert report.outcomes[0].reason == "cache_miss"

    @pytest.mark.asyncio()
    async def test_movie_file_too_small(self, movie: RequestMetadata) -> None:
        c = _cand(1)
        fake = _FakeDebrid({c.magnet_uri: _Plan(size=120 * MIB)})
        report = await _resolver(fake).resolve([c], metadata=movie, api_key="k")
        assert report.outcomes[0].reason == "too_small"
        assert not any(call.startswith("unrestrict") for call in fake.calls)

    @pytest.mark.asyncio()
    async def test_series_threshold_is_lower(self) -> None:
        c = _cand(1)
        fake = _FakeDebrid({c.magnet_uri: _Plan(size=120 * MIB)})
        series = RequestMetadata(
            title="Show", original_title="Show", year=2020, is_series=True
        )
        report = await _resolver(fake).resolve([c], metadata=series, api_key="k")
        assert len(report.streams) == 1

    @pytest.mark.asyncio()
    async def test_size_rechecked_after_unrestrict(self, movie: RequestMetadata) -> None:
        c = _cand(1)
        fake = _FakeDebrid({c.magnet_uri: _Plan(unrestrict_size=10 * MIB)})
        report = await _resolver(fake).resolve([c], metadata=movie, api_key="k")
        assert report.streams == ()
        assert report.outcomes[0].reason == "too_small"

    @pytest.mark.asyncio()
    async def test_auth_failure_stops_batch(self, movie: RequestMetadata) -> None:
        c1, c2 = _cand(1), _cand(2)
        fake = _FakeDebrid(
            {
                c1.magnet_uri: _Plan(add_error=DebridAuthError(status=401)),
                c2.magnet_uri: _Plan(),
            }
        )
        report = await _resolver(fake).resolve([c1, c2], metadata=movie, api_key="k")
        assert report.auth_failed is True
        assert report.streams == ()
        assert f"add:{c2.magnet_uri}" not in fake.calls

    @pytest.mark.asyncio()
    async def test_rate_limit_penalizes_and_continues(
        self, movie: RequestMetadata
    ) -> None:
        c1, c2 = _cand(1), _cand(2)
        fake = _FakeDebrid(
            {
                c1.magnet_uri: _Plan(add_error=DebridRateLimited(status=429)),
                c2.magnet_uri: _Plan(),
            }
        )
        sleeps: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        resolver = CacheResolver(
            client_factory=lambda api_key: fake,
            pacer_factory=lambda: IntervalPacer(0.0, sleep=fake_sleep),
            rate_limit_cooldown=2.0,
        )
        report = await resolver.resolve([c1, c2], metadata=movie, api_key="k")

        assert report.outcomes[0].reason == "rate_limited"
        assert len(report.streams) == 1
        assert sleeps == [pytest.approx(2.0)]

    @pytest.mark.asyncio()
    async def test_other_errors_skip_candidate(self, movie: RequestMetadata) -> None:
        c1, c2 = _cand(1), _cand(2)
        fake = _FakeDebrid(
            {
                c1.magnet_uri: _Plan(add_error=DebridServiceUnavailable(status=503)),
                c2.magnet_uri: _Plan(),
            }
        )
        report = await _resolver(fake).resolve([c1, c2], metadata=movie, api_key="k")
        assert report.outcomes[0].reason == "service_unavailable"
        assert len(report.streams) == 1

    @pytest.mark.asyncio()
    async def test_candidate_budget(self, movie: RequestMetadata) -> None:
        cands = [_cand(i) for i in range(5)]
        fake = _FakeDebrid({c.magnet_uri: _Plan() for c in cands})
        report = await _resolver(fake, candidate_budget=2).resolve(
            cands, metadata=movie, api_key="k"
        )
        assert len(report.outcomes) == 2

    @pytest.mark.asyncio()
    async def test_processed_in_order(self, movie: RequestMetadata) -> None:
        cands = [_cand(i) for i in range(3)]
        fake = _FakeDebrid({c.magnet_uri: _Plan() for c in cands})
        report = await _resolver(fake).resolve(cands, metadata=movie, api_key="k")
        assert [o.info_hash for o in report.outcomes] == [c.info_hash for c in cands]
        adds = [call for call in fake.calls if call.startswith("add:")]
        assert adds == [f"add:{c.magnet_uri}" for c in cands]

    @pytest.mark.asyncio()
    async def test_deadline_passed_before_start(self, movie: RequestMetadata) -> None:
        c = _cand(1)
        fake = _FakeDebrid({c.magnet_uri: _Plan()})
        report = await _resolver(fake, clock=lambda: 50.0).resolve(
            [c], metadata=movie, api_key="k", deadline=10.0
        )
        assert report.timed_out is True
        assert fake.calls == []

    @pytest.mark.asyncio()
    async def test_deadline_during_candidate_keeps_earlier_streams(
        self, movie: RequestMetadata
    ) -> None:
        c1, c2 = _cand(1), _cand(2)
        fake = _FakeDebrid({c1.magnet_uri: _Plan(), c2.magnet_uri: _Plan(delay=5.0)})
        loop = asyncio.get_running_loop()
        deadline = loop.time() + 0.2
        report = await _resolver(fake, clock=loop.time).resolve(
            [c1, c2], metadata=movie, api_key="k", deadline=deadline
        )
        assert report.timed_out is True
        assert len(report.streams) == 1

    @pytest.mark.asyncio()
    async def test_cleanup_discarded(self, movie: RequestMetadata) -> None:
        c = _cand(1)
        fake = _FakeDebrid({c.magnet_uri: _Plan(status_after_select="queued")})
        await _resolver(fake, cleanup_discarded=True).resolve(
            [c], metadata=movie, api_key="k"
        )
        assert fake.deleted == [c.magnet_uri]

    @pytest.mark.asyncio()
    async def test_no_cleanup_by_default(self, movie: RequestMetadata) -> None:
        c = _cand(1)
        fake = _FakeDebrid({c.magnet_uri: _Plan(status_after_select="queued")})
        await _resolver(fake).resolve([c], metadata=movie, api_key="k")
        assert fake.deleted == []


class TestPacerPerToken:
    def test_same_token_shares_pacer(self) -> None:
        resolver = CacheResolver(client_factory=lambda api_key: None)
        assert resolver.pacer_for("a") is resolver.pacer_for("a")
        assert resolver.pacer_for("a") is not resolver.pacer_for("b")

    def test_idle_tokens_are_evicted_beyond_limit(self) -> None:
        resolver = CacheResolver(client_factory=lambda api_key: None, max_tokens=2)
        first = resolver.pacer_for("a")
        resolver.pacer_for("b")
        resolver.pacer_for("c")
        assert resolver.tracked_tokens == 2
        assert resolver.pacer_for("a") is not first

    def test_recent_use_keeps_token(self) -> None:
        resolver = CacheResolver(client_factory=lambda api_key: None, max_tokens=2)
        first = resolver.pacer_for("a")
        resolver.pacer_for("b")
        resolver.pacer_for("a")
        resolver.pacer_for("c")
        assert resolver.pacer_for("a") is first

    @pytest.mark.asyncio()
    async def test_token_in_use_is_not_evicted(self, movie: RequestMetadata) -> None:
        c = _cand(1)
        fake = _FakeDebrid({c.magnet_uri: _Plan(delay=0.05)})
        resolver = _resolver(fake, max_tokens=1)
        pacer = resolver.pacer_for("a")

        running = asyncio.ensure_future(
            resolver.resolve([c], metadata=movie, api_key="a")
        )
        await asyncio.sleep(0.01)
        resolver.pacer_for("b")
        assert resolver.tracked_tokens == 2
        assert resolver.pacer_for("a") is pacer

        await running
        resolver.pacer_for("b")
        assert resolver.tracked_tokens == 1


class TestSameTokenRequests:
    @pytest.mark.asyncio()
    async def test_concurrent_requests_do_not_interleave(
        self, movie: RequestMetadata
    ) -> None:
        first, second = _cand(1), _cand(2)
        fake = _FakeDebrid(
            {
                first.magnet_uri: _Plan(delay=0.02),
                second.magnet_uri: _Plan(delay=0.02),
            }
        )
        resolver = _resolver(fake)

        reports = await asyncio.gather(
            resolver.resolve([first], metadata=movie, api_key="k"),
            resolver.resolve([second], metadata=movie, api_key="k"),
        )

        assert all(len(r.streams) == 1 for r in reports)
        owners = ["first" if "0001" in call else "second" for call in fake.calls]
        switches = sum(1 for a, b in zip(owners, owners[1:]) if a != b)
        assert switches == 1

    @pytest.mark.asyncio()
    async def test_different_tokens_run_side_by_side(
        self, movie: RequestMetadata
    ) -> None:
        first, second = _cand(1), _cand(2)
        fake = _FakeDebrid(
            {
                first.magnet_uri: _Plan(delay=0.02),
                second.magnet_uri: _Plan(delay=0.02),
            }
        )
        resolver = _resolver(fake)

        await asyncio.gather(
            resolver.resolve([first], metadata=movie, api_key="k1"),
            resolver.resolve([second], metadata=movie, api_key="k2"),
        )

        assert fake.calls[:2] == [
            f"add:{first.magnet_uri}",
            f"add:{second.magnet_uri}",
        ]
