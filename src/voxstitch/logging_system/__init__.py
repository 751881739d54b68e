"""
VoxStitch structured logging.

Stdlib loggers are intercepted and routed to Loguru sinks (console, text
file, JSON lines), with helpers for performance timing and error tracking.
"""

from .config import LoggingConfig, get_logging_config
from .logger import (
    generate_run_id,
    get_logger,
    log_error,
    log_performance,
    performance_context,
    setup_logging,
    timed,
)
from .metrics import (
    MetricsCollector,
    PerformanceLogger,
    get_metrics_collector,
    get_performance_logger,
)
from .serializers import flat_json_serializer

__all__ = [
    "LoggingConfig",
    "MetricsCollector",
    "PerformanceLogger",
    "flat_json_serializer",
    "generate_run_id",
    "get_logger",
    "get_logging_config",
    "get_metrics_collector",
    "get_performance_logger",
    "log_error",
    "log_performance",
    "performance_context",
    "setup_logging",
    "timed",
]
