"""In-memory counters for provider searches and debrid outcomes.

Everything runs inside the single-threaded event loop, so plain integer
increments are enough. ``time.perf_counter_ns()`` is the timing source.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field


@dataclass
class ProviderStats:
    """Accumulated statistics for a single provider."""

    searches: int = 0
    successes: int = 0
    failures: int = 0
    total_results: int = 0
    total_duration_ns: int = 0

    def snapshot(self) -> dict[str, object]:
        avg_ms = (
            round(self.total_duration_ns / self.searches / 1_000_000, 1)
            if self.searches
            else 0.0
        )
        return {
            "searches": self.searches,
            "successes": self.successes,
            "failures": self.failures,
            "total_results": self.total_results,
            "avg_duration_ms": avg_ms,
        }


@dataclass
class MetricsCollector:
    """Central in-memory metrics collector.

    Structurally satisfies the recorder protocols of the fan-out
    dispatcher and the cache resolver.
    """

    _providers: dict[str, ProviderStats] = field(default_factory=dict)
    _debrid: Counter[str] = field(default_factory=Counter)
    _requests: Counter[str] = field(default_factory=Counter)
    _start_ns: int = field(default_factory=time.perf_counter_ns)

    def record_provider_search(
        self,
        name: str,
        duration_ns: int,
        result_count: int,
        *,
        success: bool,
    ) -> None:
        stats = self._providers.setdefault(name, ProviderStats())
        stats.searches += 1
        stats.total_duration_ns += duration_ns
        if success:
            stats.successes += 1
            stats.total_results += result_count
        else:
            stats.failures += 1

    def record_debrid_outcome(self, outcome: str) -> None:
        """Count one candidate outcome (ready, cache_miss, too_small, ...)."""
        self._debrid[outcome] += 1

    def record_request(self, status: str) -> None:
        """Count one finished stream request by terminal status."""
        self._requests[status] += 1

    def snapshot(self) -> dict[str, object]:
        """Return a JSON-serializable snapshot of all metrics."""
        uptime_s = round((time.perf_counter_ns() - self._start_ns) / 1_000_000_000, 1)
        return {
            "uptime_seconds": uptime_s,
            "providers": {
                name: stats.snapshot()
                for name, stats in sorted(self._providers.items())
            },
            "debrid": dict(sorted(self._debrid.items())),
            "requests": dict(sorted(self._requests.items())),
        }
