"""
In-process metrics for pipeline stages.

Every ``log_operation`` call both logs the stage and records it, so a long
batch can report per-stage latency, failure counts and real-time factor
(processing seconds per second of audio) without an external metrics stack.
"""

import math
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import psutil

from .logger import duration_level, get_logger


@dataclass
class OperationRecord:
    """One finished operation (a decode, a chunk transcription, a file)."""

    timestamp: datetime
    operation: str
    duration_ms: float
    success: bool = True
    error_type: str | None = None
    audio_seconds: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SystemMetrics:
    """Process and host resource usage at one point in time."""

    timestamp: datetime
    cpu_percent: float
    memory_percent: float
    process_rss_mb: float


def _nearest_rank(ordered: list[float], fraction: float) -> float:
    rank = max(1, math.ceil(fraction * len(ordered)))
    return ordered[rank - 1]


class MetricsCollector:
    """Thread-safe store of recent operation records.

    ``max_metrics`` bounds the full history; latency statistics use the last
    ``recent_window`` durations of each operation.
    """

    def __init__(self, max_metrics: int = 10000, recent_window: int = 100):
        self.records: deque[OperationRecord] = deque(maxlen=max_metrics)
        self._recent: dict[str, deque[float]] = defaultdict(
            lambda: deque(maxlen=recent_window)
        )
        self.lock = threading.Lock()

    def record_performance(
        self,
        operation: str,
        duration_ms: float,
        success: bool = True,
        error_type: str | None = None,
        **metadata: Any,
    ) -> OperationRecord:
        record = OperationRecord(
            timestamp=datetime.now(timezone.utc),
            operation=operation,
            duration_ms=duration_ms,
            success=success,
            error_type=error_type,
            audio_seconds=metadata.get("audio_duration_seconds"),
            metadata=metadata,
        )
        with self.lock:
            self.records.append(record)
            self._recent[operation].append(duration_ms)
        return record

    def snapshot_system(self) -> SystemMetrics:
        """Sample current CPU and memory usage."""
        memory = psutil.virtual_memory()
        rss = psutil.Process().memory_info().rss
        return SystemMetrics(
            timestamp=datetime.now(timezone.utc),
            cpu_percent=psutil.cpu_percent(interval=None),
            memory_percent=memory.percent,
            process_rss_mb=rss / 1024**2,
        )

    def get_operation_stats(self, operation: str) -> dict[str, Any]:
        """Latency summary for one operation.

        ``real_time_factor`` is present once successful records carried an
        audio duration.
        """
        with self.lock:
            durations = sorted(self._recent.get(operation, ()))
            matching = [r for r in self.records if r.operation == operation]

        if not durations:
            return {"operation": operation, "count": 0}

        stats: dict[str, Any] = {
            "operation": operation,
            "count": len(durations),
            "failures": sum(1 for r in matching if not r.success),
            "min_ms": durations[0],
            "max_ms": durations[-1],
            "mean_ms": sum(durations) / len(durations),
            "p50_ms": _nearest_rank(durations, 0.5),
            "p90_ms": _nearest_rank(durations, 0.9),
        }

        timed_audio = [r for r in matching if r.success and r.audio_seconds]
        if timed_audio:
            audio_total = sum(r.audio_seconds for r in timed_audio)
            processing_total = sum(r.duration_ms for r in timed_audio) / 1000
            stats["real_time_factor"] = processing_total / audio_total
        return stats

    def reset(self) -> None:
        with self.lock:
            self.records.clear()
            self._recent.clear()


class PerformanceLogger:
    """Logs pipeline operations and feeds them to a MetricsCollector."""

    def __init__(self, collector: MetricsCollector | None = None):
        self.collector = collector or MetricsCollector()
        self.logger = get_logger("voxstitch.performance")

    def log_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool = True,
        error_type: str | None = None,
        **metadata: Any,
    ) -> None:
        self.collector.record_performance(
            operation=operation,
            duration_ms=duration_ms,
            success=success,
            error_type=error_type,
            **metadata,
        )

        extra = {"operation": operation, "duration_ms": duration_ms, "success": success, **metadata}
        if error_type:
            extra["error_type"] = error_type

        if success:
            self.logger.log(
                duration_level(duration_ms),
                f"{operation} done in {duration_ms:.1f} ms",
                extra=extra,
            )
        else:
            self.logger.error(
                f"{operation} failed after {duration_ms:.1f} ms ({error_type})",
                extra=extra,
            )

    def get_stats(self, operation: str) -> dict[str, Any]:
        return self.collector.get_operation_stats(operation)


_collector: MetricsCollector | None = None
_performance_logger: PerformanceLogger | None = None


def get_metrics_collector() -> MetricsCollector:
    """Process-wide collector shared by every pipeline stage."""
    global _collector
    if _collector is None:
        _collector = MetricsCollector()
    return _collector


def get_performance_logger() -> PerformanceLogger:
    global _performance_logger
    if _performance_logger is None:
        _performance_logger = PerformanceLogger(get_metrics_collector())
    return _performance_logger
