"""Concurrent provider search with per-task outcomes.

Every (query, provider) pair runs as its own task. Failures become
``Err`` outcomes instead of exceptions so they stay visible for logging
and metrics; they are dropped only when the successful results are
flattened.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

import structlog

from corsaro.domain.entities.candidates import RawCandidate
from corsaro.domain.errors import ProviderFailure
from corsaro.domain.ports.provider import ProviderPort

log = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: BaseException


Outcome = Ok[T] | Err


class _MetricsRecorder(Protocol):
    def record_provider_search(
        self,
        name: str,
        duration_ns: int,
        result_count: int,
        *,
        success: bool,
    ) -> None: ...


async def gather_outcomes(
    aws: Sequence[Awaitable[T]],
    *,
    timeout: float | None = None,
) -> list[Outcome[T]]:
    """Run *aws* concurrently and wait until all of them settled.

    Exceptions are captured as ``Err``. Tasks still running when
    *timeout* elapses are cancelled and reported as ``Err(TimeoutError)``.
    The result list is in input order. Cancelling the caller cancels
    every task that has not finished yet.
    """
    if not aws:
        return []

    tasks = [asyncio.ensure_future(aw) for aw in aws]
    pending: set[asyncio.Future[T]] = set(tasks)
    try:
        _, pending = await asyncio.wait(tasks, timeout=timeout)
    finally:
        for task in pending:
            task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    outcomes: list[Outcome[T]] = []
    for task in tasks:
        if task in pending:
            outcomes.append(Err(TimeoutError("deadline exceeded")))
            continue
        exc = task.exception()
        outcomes.append(Err(exc) if exc is not None else Ok(task.result()))
    return outcomes


class FanOutDispatcher:
    """Issues one search per (query, provider) pair and flattens the hits.

    No throttling at this stage; the number of pairs is small.
    """

    def __init__(
        self,
        *,
        provider_timeout: float = 15.0,
        metrics: _MetricsRecorder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider_timeout = provider_timeout
        self._metrics = metrics
        self._clock = clock

    async def _search_one(
        self,
        provider: ProviderPort,
        query: str,
        year: int | None,
    ) -> list[RawCandidate]:
        t0 = time.perf_counter_ns()
        success = False
        results: list[RawCandidate] = []
        try:
            results = await asyncio.wait_for(
                provider.search(query, year), timeout=self._provider_timeout
            )
            success = True
            return results
        except Exception as exc:
            raise ProviderFailure(provider.name, query, exc) from exc
        finally:
            if self._metrics is not None:
                self._metrics.record_provider_search(
                    provider.name,
                    time.perf_counter_ns() - t0,
                    len(results),
                    success=success,
                )

    def plan_tasks(
        self,
        queries: Sequence[str],
        providers: Sequence[ProviderPort],
        *,
        only_local: bool = False,
        forced_query: str | None = None,
    ) -> list[tuple[ProviderPort, str]]:
        """List the (provider, query) pairs to search.

        With *only_local*, global providers are skipped except for a
        single *forced_query* each.
        """
        pairs: list[tuple[ProviderPort, str]] = []
        for query in queries:
            for provider in providers:
                if only_local and provider.scope == "global":
                    continue
                pairs.append((provider, query))
        if only_local and forced_query:
            for provider in providers:
                if provider.scope == "global":
                    pairs.append((provider, forced_query))
        return pairs

    async def dispatch(
        self,
        queries: Sequence[str],
        providers: Sequence[ProviderPort],
        *,
        year: int | None = None,
        only_local: bool = False,
        forced_query: str | None = None,
        deadline: float | None = None,
    ) -> list[RawCandidate]:
        """Search everything concurrently and return all successful hits.

        *deadline* is an absolute value of the injected clock; tasks still
        running at that point are cancelled.
        """
        pairs = self.plan_tasks(
            queries, providers, only_local=only_local, forced_query=forced_query
        )
        if not pairs:
            log.warning("fanout_no_tasks", queries=len(queries))
            return []

        timeout = None
        if deadline is not None:
            timeout = max(0.0, deadline - self._clock())

        outcomes = await gather_outcomes(
            [self._search_one(p, q, year) for p, q in pairs], timeout=timeout
        )

        flattened: list[RawCandidate] = []
        failures = 0
        for (provider, query), outcome in zip(pairs, outcomes):
            if isinstance(outcome, Ok):
                flattened.extend(outcome.value)
                continue
            failures += 1
            error = outcome.error
            cause = error.cause if isinstance(error, ProviderFailure) else error
            log.warning(
                "provider_search_failed",
                provider=provider.name,
                query=query,
                error_type=type(cause).__name__,
                error=str(cause),
            )

        log.info(
            "fanout_complete",
            tasks=len(pairs),
            failures=failures,
            results=len(flattened),
        )
        return flattened
