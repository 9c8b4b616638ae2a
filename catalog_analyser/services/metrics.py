"""Timing and outcome metrics for analyser operations and catalog queries."""

import time
import logging
import threading
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from collections import Counter, deque
from contextlib import contextmanager

logger = logging.getLogger("metrics")

# Catalog queries are recorded as "query:<logical name>".
QUERY_PREFIX = "query:"


@dataclass
class OperationMetrics:
    """One timed run of an analyser operation or catalog query."""
    operation: str
    success: bool
    duration_ms: float
    timestamp: float
    error_type: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


@dataclass
class MetricSummary:
    """Aggregated runs of one operation within the rolling window."""
    operation: str
    count: int
    success_count: int
    failure_count: int
    avg_duration_ms: float
    min_duration_ms: float
    max_duration_ms: float
    p50_duration_ms: float
    p95_duration_ms: float
    success_rate: float
    errors: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_runs(cls, operation: str, runs: List[OperationMetrics]) -> "MetricSummary":
        durations = sorted(run.duration_ms for run in runs)
        succeeded = sum(1 for run in runs if run.success)
        return cls(
            operation=operation,
            count=len(runs),
            success_count=succeeded,
            failure_count=len(runs) - succeeded,
            avg_duration_ms=sum(durations) / len(durations),
            min_duration_ms=durations[0],
            max_duration_ms=durations[-1],
            p50_duration_ms=percentile(durations, 50),
            p95_duration_ms=percentile(durations, 95),
            success_rate=succeeded / len(runs) * 100,
            errors=dict(Counter(run.error_type for run in runs if run.error_type)),
        )


def percentile(sorted_durations: List[float], pct: float) -> float:
    """Nearest-rank percentile of an ascending list."""
    if not sorted_durations:
        return 0
    idx = int(len(sorted_durations) * pct / 100)
    return sorted_durations[min(idx, len(sorted_durations) - 1)]


class MetricsCollector:
    """Collect and aggregate operation metrics over a rolling window.

    Operations are named ``full_analysis``, ``fast_snapshot``, ``refresh``,
    ``analyse_object`` and ``query:<logical name>`` for catalog queries.
    Summaries cover the window; ``get_stats()["totals"]`` counts every run
    since the last reset.
    """

    def __init__(
        self,
        window_seconds: int = 300,
        max_window_count: int = 1000,
        enabled: bool = True
    ):
        """Initialize the metrics collector.

        Args:
            window_seconds: Rolling window size in seconds.
            max_window_count: Maximum runs kept in the window.
            enabled: When False, recording is a no-op.
        """
        self.window_seconds = window_seconds
        self.max_window_count = max_window_count
        self.enabled = enabled

        # Re-entrant: get_all_summaries calls get_operation_summary under the lock.
        self._lock = threading.RLock()
        self._runs: deque[OperationMetrics] = deque(maxlen=max_window_count)
        self._totals: Dict[str, Counter] = {}
        self._started_at = time.time()

    def record(
        self,
        operation: str,
        success: bool,
        duration_ms: float,
        error_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Record one run.

        Args:
            operation: Operation name.
            success: Whether the run succeeded.
            duration_ms: Duration in milliseconds.
            error_type: Exception class name if the run failed.
            details: Context recorded with the run (dialect, object id, ...).
        """
        if not self.enabled:
            return

        with self._lock:
            now = time.time()
            self._expire(now)
            self._runs.append(OperationMetrics(
                operation=operation,
                success=success,
                duration_ms=duration_ms,
                timestamp=now,
                error_type=error_type,
                details=details
            ))
            totals = self._totals.setdefault(operation, Counter())
            totals["success" if success else "failure"] += 1

    def get_operation_summary(self, operation: str) -> Optional[MetricSummary]:
        """Summarise one operation.

        Returns:
            MetricSummary or None if the window holds no runs of it.
        """
        with self._lock:
            self._expire(time.time())
            runs = [run for run in self._runs if run.operation == operation]
            if not runs:
                return None
            return MetricSummary.from_runs(operation, runs)

    def get_all_summaries(self) -> Dict[str, MetricSummary]:
        with self._lock:
            return {
                op: summary
                for op in sorted({run.operation for run in self._runs})
                if (summary := self.get_operation_summary(op)) is not None
            }

    def slowest_queries(self, limit: int = 5) -> List[MetricSummary]:
        """Catalog queries in the window, slowest p95 first."""
        summaries = self.get_all_summaries().values()
        queries = [s for s in summaries if s.operation.startswith(QUERY_PREFIX)]
        return sorted(queries, key=lambda s: s.p95_duration_ms, reverse=True)[:limit]

    def get_stats(self) -> Dict[str, Any]:
        """Overall collector statistics."""
        with self._lock:
            return {
                "uptime_seconds": time.time() - self._started_at,
                "records_in_window": len(self._runs),
                "window_seconds": self.window_seconds,
                "operations_tracked": sorted(self._totals),
                "totals": {op: dict(counts) for op, counts in self._totals.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._runs.clear()
            self._totals.clear()
            self._started_at = time.time()

    def _expire(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._runs and self._runs[0].timestamp < cutoff:
            self._runs.popleft()


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the default metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


@contextmanager
def trace_operation(
    operation: str,
    metrics: Optional[MetricsCollector] = None,
    **context
):
    """Time the enclosed block and record its outcome.

    Usage:
        with trace_operation("full_analysis", metrics, dialect="postgres"):
            ...

    Args:
        operation: Operation name.
        metrics: Collector to record into (the default collector when None).
        **context: Details recorded with the run.
    """
    collector = metrics or get_metrics_collector()
    started = time.perf_counter()
    error_type = None

    try:
        yield
    except BaseException as e:
        error_type = type(e).__name__
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        collector.record(
            operation=operation,
            success=error_type is None,
            duration_ms=elapsed_ms,
            error_type=error_type,
            details=context or None
        )
        logger.debug("%s finished in %.1fms (error=%s)", operation, elapsed_ms, error_type)
