"""Tests for the concurrent provider fan-out."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from corsaro.domain.entities.candidates import RawCandidate
from corsaro.domain.errors import ProviderFailure
from corsaro.infrastructure.metrics import MetricsCollector
from corsaro.infrastructure.pipeline.fanout import (
    Err,
    FanOutDispatcher,
    Ok,
    gather_outcomes,
)


@dataclass
class _FakeProvider:
    name: str
    scope: str = "global"
    results: list[RawCandidate] = field(default_factory=list)
    error: Exception | None = None
    delay: float = 0.0
    calls: list[tuple[str, int | None]] = field(default_factory=list)

    async def search(self, query: str, year: int | None = None) -> list[RawCandidate]:
        self.calls.append((query, year))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.results)


def _hit(name: str) -> RawCandidate:
    return RawCandidate(
        display_title=f"{name}.ITA", magnet_uri="magnet:?x", source_name=name
    )


# ---------------------------------------------------------------------------
# gather_outcomes
# ---------------------------------------------------------------------------


class TestGatherOutcomes:
    @pytest.mark.asyncio()
    async def test_empty(self) -> None:
        assert await gather_outcomes([]) == []

    @pytest.mark.asyncio()
    async def test_keeps_input_order_and_captures_errors(self) -> None:
        async def ok(value: int) -> int:
            await asyncio.sleep(0.01 * (3 - value))
            return value

        async def boom() -> int:
            raise ValueError("nope")

        outcomes = await gather_outcomes([ok(1), boom(), ok(2)])
        assert outcomes[0] == Ok(1)
        assert isinstance(outcomes[1], Err)
        assert isinstance(outcomes[1].error, ValueError)
        assert outcomes[2] == Ok(2)

    @pytest.mark.asyncio()
    async def test_timeout_cancels_pending(self) -> None:
        async def slow() -> int:
            await asyncio.sleep(5)
            return 1

        async def fast() -> int:
            return 2

        outcomes = await gather_outcomes([slow(), fast()], timeout=0.05)
        assert isinstance(outcomes[0], Err)
        assert isinstance(outcomes[0].error, TimeoutError)
        assert outcomes[1] == Ok(2)

    @pytest.mark.asyncio()
    async def test_cancelling_caller_cancels_searches(self) -> None:
        started = asyncio.Event()
        cancelled: list[bool] = []

        async def hanging() -> int:
            started.set()
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise
            return 1

        outer = asyncio.ensure_future(gather_outcomes([hanging()]))
        await started.wait()
        outer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await outer
        await asyncio.sleep(0.01)
        assert cancelled == [True]


# ---------------------------------------------------------------------------
# plan_tasks
# ---------------------------------------------------------------------------


class TestPlanTasks:
    def test_every_pair(self) -> None:
        local = _FakeProvider("corsaro", scope="local")
        glob = _FakeProvider("knaben")
        pairs = FanOutDispatcher().plan_tasks(["q1", "q2"], [local, glob])
        assert [(p.name, q) for p, q in pairs] == [
            ("corsaro", "q1"),
            ("knaben", "q1"),
            ("corsaro", "q2"),
            ("knaben", "q2"),
        ]

    def test_only_local_keeps_one_forced_query_for_globals(self) -> None:
        local = _FakeProvider("corsaro", scope="local")
        glob = _FakeProvider("knaben")
        pairs = FanOutDispatcher().plan_tasks(
            ["q1", "q2"], [local, glob], only_local=True, forced_query="Film ITA"
        )
        assert [(p.name, q) for p, q in pairs] == [
            ("corsaro", "q1"),
            ("corsaro", "q2"),
            ("knaben", "Film ITA"),
        ]

    def test_only_local_without_forced_query(self) -> None:
        glob = _FakeProvider("knaben")
        assert FanOutDispatcher().plan_tasks(["q"], [glob], only_local=True) == []


# ---------------------------------------------------------------------------
# dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    @pytest.mark.asyncio()
    async def test_flattens_successful_results(self) -> None:
        a = _FakeProvider("a", results=[_hit("a")])
        b = _FakeProvider("b", results=[_hit("b"), _hit("b")])
        results = await FanOutDispatcher().dispatch(["q"], [a, b], year=2020)
        assert [r.source_name for r in results] == ["a", "b", "b"]
        assert a.calls == [("q", 2020)]

    @pytest.mark.asyncio()
    async def test_failing_provider_is_absorbed(self) -> None:
        ok = _FakeProvider("ok", results=[_hit("ok")])
        bad = _FakeProvider("bad", error=RuntimeError("HTML changed"))
        metrics = MetricsCollector()
        results = await FanOutDispatcher(metrics=metrics).dispatch(["q"], [ok, bad])
        assert [r.source_name for r in results] == ["ok"]
        snap = metrics.snapshot()["providers"]
        assert snap["bad"]["failures"] == 1
        assert snap["ok"]["successes"] == 1
        assert snap["ok"]["total_results"] == 1

    @pytest.mark.asyncio()
    async def test_slow_provider_times_out(self) -> None:
        slow = _FakeProvider("slow", results=[_hit("slow")], delay=1.0)
        fast = _FakeProvider("fast", results=[_hit("fast")])
        dispatcher = FanOutDispatcher(provider_timeout=0.05)
        results = await dispatcher.dispatch(["q"], [slow, fast])
        assert [r.source_name for r in results] == ["fast"]

    @pytest.mark.asyncio()
    async def test_deadline_already_passed(self) -> None:
        slow = _FakeProvider("slow", results=[_hit("slow")], delay=0.5)
        dispatcher = FanOutDispatcher(clock=lambda: 100.0)
        assert await dispatcher.dispatch(["q"], [slow], deadline=100.0) == []

    @pytest.mark.asyncio()
    async def test_no_tasks(self) -> None:
        assert await FanOutDispatcher().dispatch([], [_FakeProvider("a")]) == []

    @pytest.mark.asyncio()
    async def test_failure_wraps_cause(self) -> None:
        bad = _FakeProvider("bad", error=RuntimeError("boom"))
        dispatcher = FanOutDispatcher()
        with pytest.raises(ProviderFailure) as exc_info:
            await dispatcher._search_one(bad, "q", None)
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.provider == "bad"
