"""
Logging configuration for VoxStitch structured logging.
"""

import logging
import os
import sys
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field

from ..config import VoxStitchConfig, get_config


class LoggingConfig(BaseModel):
    """Structured logging configuration."""

    level: str = Field(default="INFO", description="Root logging level")

    format_type: str = Field(
        default="structured",
        description="Logging format: 'structured', 'json', or 'simple'",
    )
    enable_console: bool = Field(default=True, description="Enable console output")
    enable_file: bool = Field(default=False, description="Enable JSON file output")
    enable_text_file: bool = Field(
        default=False, description="Enable text file output (human-readable)"
    )
    text_log_file: Path | None = Field(
        default=None, description="Text log file path (non-JSON)"
    )

    log_file: Path | None = Field(default=None, description="JSON log file path")
    max_file_size: int = Field(
        default=10 * 1024 * 1024, description="Maximum log file size in bytes"
    )
    backup_count: int = Field(default=5, description="Number of backup log files")
    # Loguru-native options
    rotation: str | None = Field(
        default=None, description="Rotation policy, e.g. '10 MB' or '00:00'"
    )
    retention: object | None = Field(
        default=None, description="Retention policy, e.g. '14 days' or number of files"
    )
    compression: str | None = Field(
        default=None, description="Compression for rotated files, e.g. 'gz'"
    )
    enqueue: bool = Field(
        default=True, description="Enable async logging queue for sinks"
    )

    enable_performance_logging: bool = Field(
        default=True, description="Enable performance metrics"
    )
    performance_threshold_ms: float = Field(
        default=100.0, description="Log performance if above threshold (ms)"
    )

    enable_error_tracking: bool = Field(
        default=True, description="Enable structured error tracking"
    )
    include_stacktrace: bool = Field(
        default=True, description="Include stack traces in error logs"
    )

    enable_metrics: bool = Field(default=True, description="Enable metrics collection")

    debug_mode: bool = Field(default=False, description="Enable debug mode logging")
    quiet_mode: bool = Field(default=False, description="Suppress non-error output")

    def get_log_level(self) -> int:
        """Get numeric log level."""
        if self.debug_mode:
            return logging.DEBUG
        if self.quiet_mode:
            return logging.ERROR
        return getattr(logging, (self.level or "INFO").upper(), logging.INFO)

    def get_level_name(self) -> str:
        """Get textual level name suitable for Loguru sinks."""
        if self.debug_mode:
            return "DEBUG"
        if self.quiet_mode:
            return "ERROR"
        return (self.level or "INFO").upper()

    def should_log_performance(self, duration_ms: float) -> bool:
        """Check if performance should be logged based on threshold."""
        return bool(self.enable_performance_logging) and float(duration_ms) >= float(
            self.performance_threshold_ms
        )

    @classmethod
    def from_environment(cls) -> "LoggingConfig":
        """Create logging config from VOXSTITCH_LOG_* environment variables.

        Values starting with "@logs/" are rewritten to the local "logs/" directory.
        """

        def _path(var: str) -> Path | None:
            value = os.environ.get(var)
            if not value:
                return None
            if value.startswith("@logs/"):
                value = os.path.join("logs", value[len("@logs/") :])
            return Path(value)

        def _flag(var: str, default: str) -> bool:
            return os.environ.get(var, default).lower() == "true"

        retention_env = os.environ.get("VOXSTITCH_LOG_RETENTION")
        return cls(
            level=os.environ.get("VOXSTITCH_LOG_LEVEL", "INFO").upper(),
            format_type=os.environ.get("VOXSTITCH_LOG_FORMAT", "structured"),
            enable_console=_flag("VOXSTITCH_LOG_CONSOLE", "true"),
            enable_file=_flag("VOXSTITCH_LOG_FILE_ENABLED", "false"),
            log_file=_path("VOXSTITCH_LOG_FILE"),
            enable_text_file=_flag("VOXSTITCH_LOG_TEXT_FILE_ENABLED", "false"),
            text_log_file=_path("VOXSTITCH_LOG_TEXT_FILE"),
            rotation=os.environ.get("VOXSTITCH_LOG_ROTATION") or None,
            retention=(
                int(retention_env)
                if retention_env and retention_env.isdigit()
                else retention_env
            ),
            compression=os.environ.get("VOXSTITCH_LOG_COMPRESSION") or None,
            enqueue=_flag("VOXSTITCH_LOG_ENQUEUE", "true"),
            enable_performance_logging=_flag("VOXSTITCH_LOG_PERFORMANCE", "true"),
            performance_threshold_ms=float(
                os.environ.get("VOXSTITCH_LOG_PERF_THRESHOLD", "100.0")
            ),
            enable_error_tracking=_flag("VOXSTITCH_LOG_ERRORS", "true"),
            include_stacktrace=_flag("VOXSTITCH_LOG_STACKTRACE", "true"),
            enable_metrics=_flag("VOXSTITCH_LOG_METRICS", "true"),
            debug_mode=_flag("VOXSTITCH_DEBUG", "false"),
            quiet_mode=_flag("VOXSTITCH_QUIET", "false"),
        )


_ENV_OVERRIDES = {
    "level": "VOXSTITCH_LOG_LEVEL",
    "format_type": "VOXSTITCH_LOG_FORMAT",
    "enable_console": "VOXSTITCH_LOG_CONSOLE",
    "enable_file": "VOXSTITCH_LOG_FILE_ENABLED",
    "log_file": "VOXSTITCH_LOG_FILE",
    "enable_text_file": "VOXSTITCH_LOG_TEXT_FILE_ENABLED",
    "text_log_file": "VOXSTITCH_LOG_TEXT_FILE",
    "rotation": "VOXSTITCH_LOG_ROTATION",
    "retention": "VOXSTITCH_LOG_RETENTION",
    "compression": "VOXSTITCH_LOG_COMPRESSION",
    "enqueue": "VOXSTITCH_LOG_ENQUEUE",
    "enable_performance_logging": "VOXSTITCH_LOG_PERFORMANCE",
    "performance_threshold_ms": "VOXSTITCH_LOG_PERF_THRESHOLD",
    "enable_error_tracking": "VOXSTITCH_LOG_ERRORS",
    "include_stacktrace": "VOXSTITCH_LOG_STACKTRACE",
    "enable_metrics": "VOXSTITCH_LOG_METRICS",
    "debug_mode": "VOXSTITCH_DEBUG",
    "quiet_mode": "VOXSTITCH_QUIET",
}


def get_logging_config(main_config: VoxStitchConfig | None = None) -> LoggingConfig:
    """Get logging configuration with clear precedence.

    Precedence (highest last):
    1) logging section of main_config, or of the global config when omitted
       (and nested env VOXSTITCH_LOGGING__*)
    2) flat env VOXSTITCH_LOG_* unless the nested variable is also set
    """
    base = LoggingConfig()
    if main_config is None:
        try:
            main_config = get_config()
        except (FileNotFoundError, ValueError) as e:
            logging.getLogger(__name__).debug("Main config unavailable for logging: %s", e)

    if main_config is not None and main_config.logging is not None:
        for key, value in main_config.logging.model_dump().items():
            if hasattr(base, key) and value is not None:
                setattr(base, key, value)

    env_direct = LoggingConfig.from_environment()
    for field, env_key in _ENV_OVERRIDES.items():
        if env_key in os.environ:
            nested_key = f"VOXSTITCH_LOGGING__{field.upper()}"
            if nested_key not in os.environ:
                setattr(base, field, getattr(env_direct, field))

    return base


class InterceptHandler(logging.Handler):
    """Route stdlib logging records to Loguru while preserving extras."""

    _exclude: ClassVar[set[str]] = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }

    def emit(self, record: logging.LogRecord) -> None:
        from loguru import logger as _logger

        try:
            level = _logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller depth for correct source
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        extras = {k: v for k, v in record.__dict__.items() if k not in self._exclude}
        if "name" not in extras:
            extras["name"] = record.name
        _logger.bind(**extras).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _add_sink_with_fallback(logger_obj, *args, enqueue: bool, **kwargs):
    """Add a Loguru sink with enqueue, falling back to non-enqueue if denied."""
    try:
        return logger_obj.add(*args, enqueue=enqueue, **kwargs)
    except (PermissionError, OSError):
        # Sandboxes may deny the multiprocessing primitives used by enqueue
        return logger_obj.add(*args, enqueue=False, **kwargs)


def configure_python_logging(config: LoggingConfig) -> None:
    """Configure logging via Loguru and intercept stdlib logging."""
    from loguru import logger as _logger

    from .serializers import flat_json_serializer

    root = logging.getLogger()
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.setLevel(logging.NOTSET)
    root.addHandler(InterceptHandler())

    _logger.remove()

    level_name = config.get_level_name()
    rotation = config.rotation or config.max_file_size
    retention = config.retention if config.retention is not None else config.backup_count

    if config.enable_console and not config.quiet_mode:
        if config.format_type == "simple":
            fmt = "{level: <8} | {message}"
        else:
            fmt = (
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan> | "
                "<level>{message}</level>"
            )
        _add_sink_with_fallback(
            _logger,
            sys.stderr,
            level=level_name,
            format=flat_json_serializer if config.format_type == "json" else fmt,
            colorize=config.format_type != "json",
            enqueue=config.enqueue,
            backtrace=False,
            diagnose=False,
        )

    if config.enable_text_file and config.text_log_file:
        config.text_log_file.parent.mkdir(parents=True, exist_ok=True)
        text_fmt = (
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{name} | "
            "{message} | "
            "{extra}"
        )
        _add_sink_with_fallback(
            _logger,
            str(config.text_log_file),
            level=level_name,
            format=text_fmt,
            colorize=False,
            rotation=rotation,
            retention=retention,
            compression=config.compression,
            enqueue=config.enqueue,
            backtrace=False,
            diagnose=False,
        )

    # JSON lines with a deterministic schema
    if config.enable_file and config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        _add_sink_with_fallback(
            _logger,
            str(config.log_file),
            level=level_name,
            format=flat_json_serializer,
            serialize=False,
            rotation=rotation,
            retention=retention,
            compression=config.compression,
            enqueue=config.enqueue,
            backtrace=False,
            diagnose=False,
        )

    _configure_third_party_loggers(config)


def _configure_third_party_loggers(config: LoggingConfig) -> None:
    """Configure logging levels for third-party libraries."""
    noisy_loggers = [
        "pydub.converter",
        "urllib3.connectionpool",
        "httpx",
        "httpcore",
        "filelock",
        "huggingface_hub",
        "torch",
        "transformers",
        "pydantic",
    ]

    for logger_name in noisy_loggers:
        logger = logging.getLogger(logger_name)
        if config.debug_mode:
            logger.setLevel(logging.DEBUG)
        else:
            logger.setLevel(logging.WARNING)

    if not config.debug_mode:
        logging.getLogger("transformers.tokenization_utils_base").setLevel(
            logging.ERROR
        )
