"""
Logging entry points used across VoxStitch.

Modules ask for a stdlib logger with ``get_logger``; the first call installs
the Loguru sinks. Stage timings go through ``log_performance`` (or the
``performance_context`` / ``timed`` wrappers), which only emit once a
duration crosses the configured threshold.
"""

import functools
import logging
import time
import uuid
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any, TypeVar

from .config import LoggingConfig, configure_python_logging, get_logging_config

_active_config: LoggingConfig | None = None

F = TypeVar("F", bound=Callable[..., Any])

# Durations above these (ms) are raised to INFO / WARNING
SLOW_STAGE_MS = 1000.0
STALLED_STAGE_MS = 5000.0


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install sinks for ``config`` (or the merged config/env settings)."""
    global _active_config

    config = config or get_logging_config()
    configure_python_logging(config)
    _active_config = config

    logging.getLogger(__name__).debug(
        "Logging sinks installed",
        extra={
            "format_type": config.format_type,
            "level": config.get_level_name(),
            "text_file": str(config.text_log_file) if config.enable_text_file else None,
            "json_file": str(config.log_file) if config.enable_file else None,
        },
    )


def active_logging_config() -> LoggingConfig:
    if _active_config is None:
        setup_logging()
    return _active_config


def get_logger(name: str) -> logging.Logger:
    """Stdlib logger whose records end up in the VoxStitch sinks."""
    if _active_config is None:
        setup_logging()
    return logging.getLogger(name)


def duration_level(duration_ms: float) -> int:
    if duration_ms > STALLED_STAGE_MS:
        return logging.WARNING
    if duration_ms > SLOW_STAGE_MS:
        return logging.INFO
    return logging.DEBUG


def log_performance(
    operation: str,
    duration_ms: float,
    logger: logging.Logger | None = None,
    **extra_metrics: Any,
) -> None:
    """Log how long an operation took, if it is above the threshold."""
    if not active_logging_config().should_log_performance(duration_ms):
        return

    level = duration_level(duration_ms)
    note = " (slow)" if level >= logging.WARNING else ""
    (logger or get_logger("voxstitch.performance")).log(
        level,
        f"{operation} took {duration_ms:.1f} ms{note}",
        extra={"operation": operation, "duration_ms": duration_ms, **extra_metrics},
    )


def log_error(
    message: str,
    error: Exception | None = None,
    error_type: str = "GENERAL",
    error_code: str | None = None,
    remediation: str | None = None,
    logger: logging.Logger | None = None,
    **context: Any,
) -> None:
    """Log a failure with its code, remediation hint and context fields.

    The traceback is attached when ``include_stacktrace`` is on; otherwise
    only the error text is recorded.
    """
    extra: dict[str, Any] = {"error_type": error_type, **context}
    if error_code:
        extra["error_code"] = error_code
    if remediation:
        extra["remediation"] = remediation

    exc_info = None
    if error is not None:
        if active_logging_config().include_stacktrace:
            exc_info = error
        else:
            extra["error"] = str(error)

    (logger or get_logger("voxstitch.error")).error(message, exc_info=exc_info, extra=extra)


@contextmanager
def performance_context(
    operation: str,
    logger: logging.Logger | None = None,
    log_start: bool = False,
    **extra_metrics: Any,
):
    """Time the enclosed block and report it through ``log_performance``."""
    logger = logger or get_logger("voxstitch.performance")
    if log_start:
        logger.debug(f"{operation} started", extra={"operation": operation})

    start = time.perf_counter()
    try:
        yield
    finally:
        log_performance(
            operation,
            (time.perf_counter() - start) * 1000,
            logger=logger,
            **extra_metrics,
        )


def timed(
    operation: str | None = None,
    logger: logging.Logger | None = None,
    log_result: bool = False,
) -> Callable[[F], F]:
    """Decorator form of ``performance_context`` that also logs failures.

    With ``log_result`` the result's type and length (when it has one) are
    added to the timing record.
    """

    def decorator(func: F) -> F:
        op_name = operation or f"{func.__module__}.{func.__name__}"

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            op_logger = logger or get_logger(f"voxstitch.performance.{func.__module__}")
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log_error(
                    message=f"{op_name} failed",
                    error=e,
                    error_type="OPERATION_FAILED",
                    logger=op_logger,
                    operation=op_name,
                    duration_ms=(time.perf_counter() - start) * 1000,
                )
                raise

            extra: dict[str, Any] = {}
            if log_result and result is not None:
                extra["result_type"] = type(result).__name__
                if hasattr(result, "__len__"):
                    extra["result_size"] = len(result)
            log_performance(
                op_name,
                (time.perf_counter() - start) * 1000,
                logger=op_logger,
                **extra,
            )
            return result

        return wrapper

    return decorator


def generate_run_id() -> str:
    """Generate a unique ID used to correlate the log lines of one run."""
    return str(uuid.uuid4())
