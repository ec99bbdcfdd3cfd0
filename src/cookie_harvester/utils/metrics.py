"""
Per-run crawl metrics.

Counters and visit latency collected in memory while a crawl runs and
snapshotted into the crawl result. Everything runs on the event loop
thread, so no locking is needed.
"""

import math
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

# Counter names
PAGES_VISITED = "pages_visited"
VISITS_FAILED = "visits_failed"
VISITS_OUT_OF_SCOPE = "visits_out_of_scope"
COOKIE_EVENTS = "cookie_events"
COOKIES_RECORDED = "cookies_recorded"
LINKS_QUEUED = "links_queued"
RETRIES = "retries"

# Timing names
VISIT_MS = "visit_ms"


@dataclass
class TimingStats:
    """Latency samples for one timed operation."""

    samples: list[float] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.samples)

    @property
    def total_ms(self) -> float:
        return sum(self.samples)

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.samples else 0.0

    @property
    def min_ms(self) -> float:
        return min(self.samples, default=0.0)

    @property
    def max_ms(self) -> float:
        return max(self.samples, default=0.0)

    def percentile(self, pct: float) -> float:
        """Nearest-rank percentile, 0.0 when nothing was recorded."""
        if not self.samples:
            return 0.0
        ordered = sorted(self.samples)
        rank = max(1, math.ceil(pct / 100 * len(ordered)))
        return ordered[rank - 1]

    def record(self, duration_ms: float) -> None:
        self.samples.append(duration_ms)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "count": self.count,
            "total_ms": round(self.total_ms, 2),
            "avg_ms": round(self.avg_ms, 2),
            "min_ms": round(self.min_ms, 2),
            "p50_ms": round(self.percentile(50), 2),
            "p95_ms": round(self.percentile(95), 2),
            "max_ms": round(self.max_ms, 2),
        }


class Metrics:
    """
    Counters and timings for a single crawl run.

    Example:
        >>> metrics = Metrics()
        >>> metrics.increment(PAGES_VISITED)
        >>> with metrics.timer(VISIT_MS):
        ...     await visitor.visit(url)
        >>> metrics.snapshot()["counters"]["pages_visited"]
        1
    """

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._timings: dict[str, TimingStats] = defaultdict(TimingStats)

    def increment(self, name: str, value: int = 1) -> int:
        """Add value to a counter and return the new total."""
        self._counters[name] += value
        return self._counters[name]

    def get_counter(self, name: str) -> int:
        return self._counters.get(name, 0)

    def observe(self, name: str, duration_ms: float) -> None:
        """Record a timing observation in milliseconds."""
        self._timings[name].record(duration_ms)

    def get_timing(self, name: str) -> TimingStats | None:
        """Copy of the samples recorded under name, or None."""
        if name not in self._timings:
            return None
        return TimingStats(samples=list(self._timings[name].samples))

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """
        Time a block, including any time spent suspended in awaits.

        The observation is recorded even if the block raises.
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, (time.perf_counter() - start) * 1000)

    def snapshot(self) -> dict:
        """Plain-dict copy of all counters and timing summaries."""
        return {
            "counters": dict(self._counters),
            "timings": {
                name: stats.to_dict()
                for name, stats in self._timings.items()
            },
        }

    def summary(self) -> str:
        """Multi-line human-readable summary."""
        snap = self.snapshot()
        lines = ["=== Crawl Metrics ==="]

        for name, value in sorted(snap["counters"].items()):
            lines.append(f"  {name}: {value:,}")

        for name, stats in sorted(snap["timings"].items()):
            lines.append(
                f"  {name}: {stats['count']} samples, "
                f"avg={stats['avg_ms']:.1f}ms, "
                f"p50={stats['p50_ms']:.1f}ms, "
                f"p95={stats['p95_ms']:.1f}ms, "
                f"max={stats['max_ms']:.1f}ms"
            )

        return "\n".join(lines)
