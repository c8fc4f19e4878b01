"""Operation statistics for captures and prints.

Keeps a rolling window of attempts per operation name ("capture", "print")
and computes success rates and duration percentiles on demand. Thread-safe,
since driver calls complete on executor threads.

Example:
    stats = BoothStats()
    stats.record("capture", duration_ms=2140.0, success=True)
    stats.record("print", duration_ms=0.0, success=False, error_type="PrintError")

    summary = stats.get_summary("capture")
    print(f"{summary.success_rate:.0%} of captures succeeded")
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

#: Attempts kept per operation for percentile calculations.
DEFAULT_STATS_WINDOW_SIZE: int = 500


@dataclass
class StatsSummary:
    """Summary statistics for one operation.

    Attributes:
        operation: Operation name ("capture", "print").
        total: Attempts recorded since start or reset.
        succeeded: Successful attempts.
        failed: Failed attempts.
        success_rate: ``succeeded / total``, 0.0 when nothing was recorded.
        min_duration_ms: Fastest successful attempt in the window.
        max_duration_ms: Slowest successful attempt in the window.
        avg_duration_ms: Mean successful duration in the window.
        p95_duration_ms: 95th percentile successful duration in the window.
        error_counts: Failures by error type.
        last_attempt_time: UTC time of the latest attempt.
        uptime_seconds: Seconds since the collector was created or reset.
    """

    operation: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    success_rate: float = 0.0
    min_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    avg_duration_ms: float = 0.0
    p95_duration_ms: float = 0.0
    error_counts: dict[str, int] = field(default_factory=dict)
    last_attempt_time: datetime | None = None
    uptime_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-safe dictionary for the web API."""
        return {
            "operation": self.operation,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "success_rate": self.success_rate,
            "min_duration_ms": self.min_duration_ms,
            "max_duration_ms": self.max_duration_ms,
            "avg_duration_ms": self.avg_duration_ms,
            "p95_duration_ms": self.p95_duration_ms,
            "error_counts": dict(self.error_counts),
            "last_attempt_time": (
                self.last_attempt_time.isoformat() if self.last_attempt_time else None
            ),
            "uptime_seconds": self.uptime_seconds,
        }


@dataclass
class AttemptRecord:
    """One recorded attempt."""

    timestamp: float  # monotonic
    duration_ms: float
    success: bool
    error_type: str | None = None


class OperationStatsCollector:
    """Rolling statistics for a single operation."""

    def __init__(
        self, operation: str, window_size: int = DEFAULT_STATS_WINDOW_SIZE
    ) -> None:
        """Create an empty collector.

        Args:
            operation: Operation name used in summaries.
            window_size: Maximum attempts retained for duration statistics.
                Totals are cumulative and unaffected by the window.
        """
        self.operation = operation
        self._records: deque[AttemptRecord] = deque(maxlen=window_size)
        self._error_counts: dict[str, int] = {}
        self._total = 0
        self._succeeded = 0
        self._start_time = time.monotonic()
        self._last_attempt_time: datetime | None = None
        self._lock = threading.Lock()

    def record(
        self, duration_ms: float, success: bool, error_type: str | None = None
    ) -> None:
        """Record one attempt.

        Args:
            duration_ms: Wall time of the attempt.
            success: Whether it produced a result.
            error_type: Failure category, usually the exception class name.
        """
        entry = AttemptRecord(
            timestamp=time.monotonic(),
            duration_ms=duration_ms,
            success=success,
            error_type=error_type,
        )
        with self._lock:
            self._records.append(entry)
            self._total += 1
            if success:
                self._succeeded += 1
            elif error_type:
                self._error_counts[error_type] = (
                    self._error_counts.get(error_type, 0) + 1
                )
            self._last_attempt_time = datetime.now(UTC)

    def get_summary(self) -> StatsSummary:
        """Compute a snapshot summary.

        Duration figures only consider successful attempts still inside the
        window.
        """
        with self._lock:
            durations = sorted(r.duration_ms for r in self._records if r.success)
            total = self._total
            succeeded = self._succeeded
            summary = StatsSummary(
                operation=self.operation,
                total=total,
                succeeded=succeeded,
                failed=total - succeeded,
                success_rate=succeeded / total if total else 0.0,
                error_counts=dict(self._error_counts),
                last_attempt_time=self._last_attempt_time,
                uptime_seconds=time.monotonic() - self._start_time,
            )

        if durations:
            summary.min_duration_ms = durations[0]
            summary.max_duration_ms = durations[-1]
            summary.avg_duration_ms = sum(durations) / len(durations)
            summary.p95_duration_ms = _percentile(durations, 95)
        return summary

    def reset(self) -> None:
        """Clear all records and counters."""
        with self._lock:
            self._records.clear()
            self._error_counts.clear()
            self._total = 0
            self._succeeded = 0
            self._start_time = time.monotonic()
            self._last_attempt_time = None


def _percentile(sorted_values: list[float], percentile: float) -> float:
    """Linear-interpolated percentile of an already sorted list.

    Example:
        >>> _percentile([10.0, 20.0, 30.0, 40.0], 50)
        25.0
    """
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return sorted_values[0]

    rank = (len(sorted_values) - 1) * percentile / 100
    lower = int(rank)
    upper = min(lower + 1, len(sorted_values) - 1)
    fraction = rank - lower
    return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * fraction


class BoothStats:
    """Statistics across all booth operations.

    Collectors are created lazily on the first ``record`` for a name.
    Inject one instance into the devices that record attempts.
    """

    def __init__(self, window_size: int = DEFAULT_STATS_WINDOW_SIZE) -> None:
        """Create an empty registry.

        Args:
            window_size: Window passed to every collector.
        """
        self._window_size = window_size
        self._collectors: dict[str, OperationStatsCollector] = {}
        self._lock = threading.Lock()

    def _get_collector(self, operation: str) -> OperationStatsCollector:
        with self._lock:
            collector = self._collectors.get(operation)
            if collector is None:
                collector = OperationStatsCollector(operation, self._window_size)
                self._collectors[operation] = collector
            return collector

    def record(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error_type: str | None = None,
    ) -> None:
        """Record one attempt of ``operation``."""
        self._get_collector(operation).record(duration_ms, success, error_type)

    def get_summary(self, operation: str) -> StatsSummary:
        """Summary for one operation; empty if never recorded."""
        with self._lock:
            collector = self._collectors.get(operation)
        if collector is None:
            return StatsSummary(operation=operation)
        return collector.get_summary()

    def operations(self) -> list[str]:
        """Names of all operations recorded so far."""
        with self._lock:
            return sorted(self._collectors)

    def to_dict(self) -> dict[str, Any]:
        """All summaries keyed by operation name."""
        return {name: self.get_summary(name).to_dict() for name in self.operations()}

    def reset(self) -> None:
        """Drop every collector."""
        with self._lock:
            self._collectors.clear()
