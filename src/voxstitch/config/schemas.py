"""
Pydantic schemas for configuration validation.

This module provides validation for the VoxStitch configuration: audio
target format, chunk windowing, transcript stitching heuristics, the
inference engine handle and output/logging settings.
"""

import math
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseModel):
    """Top-level logging settings, configurable via config.yaml.

    These fields mirror the logging_system LoggingConfig so values can merge in.
    """

    level: str = Field(default="INFO", description="Root logging level")
    format_type: str = Field(
        default="structured", description="structured | json | simple"
    )
    enable_console: bool = Field(default=True, description="Enable console output")
    enable_file: bool = Field(default=False, description="Enable JSON file output")
    enable_text_file: bool = Field(
        default=False, description="Enable text log file output"
    )

    log_file: Path | None = Field(
        default=Path("logs/voxstitch.jsonl"), description="JSON log file path"
    )
    text_log_file: Path | None = Field(
        default=Path("logs/voxstitch.log"), description="Text log file path"
    )
    max_file_size: int = Field(
        default=10 * 1024 * 1024, description="Max file size in bytes"
    )
    backup_count: int = Field(default=5, description="Number of rotated backups")

    rotation: str | None = Field(
        default=None, description="Rotation policy (e.g., '10 MB')"
    )
    retention: str | None = Field(
        default=None, description="Retention policy (e.g., '14 days')"
    )
    compression: str | None = Field(
        default=None, description="Compression (e.g., 'gz')"
    )
    enqueue: bool | None = Field(default=None, description="Async logging if supported")

    enable_performance_logging: bool = Field(default=True)
    performance_threshold_ms: float = Field(default=100.0)
    enable_error_tracking: bool = Field(default=True)
    include_stacktrace: bool = Field(default=True)
    enable_metrics: bool = Field(default=True)

    debug_mode: bool = Field(default=False)
    quiet_mode: bool = Field(default=False)

    @field_validator("log_file", "text_log_file")
    @classmethod
    def normalize_log_path(cls, v: Path | None) -> Path | None:
        """Normalize @logs/ alias to ./logs/ for convenience."""
        if v is None:
            return v
        s = str(v)
        if s.startswith("@logs/"):
            return Path("logs") / s[len("@logs/") :]
        return v


class AudioConfig(BaseModel):
    """Canonical PCM format expected by the model."""

    target_sample_rate: int = Field(
        default=16000,
        ge=1000,
        le=384000,
        description="Sample rate (Hz) the model consumes",
    )


class ChunkingConfig(BaseModel):
    """Configuration for overlap-aware segmentation."""

    window_seconds: float = Field(
        default=15.0,
        gt=0.0,
        le=3600.0,
        description="Maximum input duration of the model, in seconds",
    )
    overlap_fraction: float = Field(
        default=0.1,
        ge=0.0,
        lt=1.0,
        description="Fraction of each window shared with the next window",
    )


class StitchingConfig(BaseModel):
    """Heuristic constants for the overlap text merge.

    These were never tuned rigorously and may need adjusting per model or
    language.
    """

    min_match_words: int = Field(
        default=2,
        ge=1,
        le=64,
        description="Shortest suffix/prefix word match accepted as overlap",
    )
    words_per_second: float = Field(
        default=3.0,
        gt=0.0,
        le=20.0,
        description="Speech rate used to size the search window from overlap seconds",
    )
    search_window_words: int | None = Field(
        default=None,
        ge=1,
        le=1024,
        description="Explicit search window in words (derived from overlap if unset)",
    )

    @model_validator(mode="after")
    def validate_window(self) -> "StitchingConfig":
        if (
            self.search_window_words is not None
            and self.search_window_words < self.min_match_words
        ):
            raise ValueError(
                "search_window_words must be >= min_match_words "
                f"({self.search_window_words} < {self.min_match_words})"
            )
        return self

    def resolve_search_window(self, overlap_seconds: float) -> int:
        """Words to scan at each boundary for a given overlap duration.

        Chunks that share no audio cannot repeat each other, so zero overlap
        gives a zero window and fragments are simply concatenated.
        """
        if overlap_seconds <= 0:
            return 0
        if self.search_window_words is not None:
            return self.search_window_words
        derived = math.ceil(overlap_seconds * self.words_per_second * 2)
        return max(self.min_match_words, derived)


class InferenceConfig(BaseModel):
    """Configuration for the speech-recognition engine handle."""

    model_id: str = Field(
        default="mistralai/Voxtral-Mini-3B-2507",
        description="Hugging Face model identifier",
    )
    device: Literal["cpu", "cuda", "auto"] = Field(
        default="auto",
        description="Device for inference",
    )
    force_cpu: bool = Field(
        default=False,
        description="Run on CPU even when a GPU is available",
    )
    language: str = Field(default="en", description="Transcription language hint")
    max_new_tokens: int = Field(
        default=500,
        ge=1,
        le=8192,
        description="Generation budget per chunk",
    )
    max_workers: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Concurrent chunk transcriptions (results are released in order)",
    )

    def resolved_device(self) -> str:
        """Device string after applying force_cpu and auto-detection."""
        if self.force_cpu:
            return "cpu"
        if self.device == "auto":
            import torch

            return "cuda" if torch.cuda.is_available() else "cpu"
        return self.device


class OutputConfig(BaseModel):
    """Configuration for transcript outputs and file naming."""

    out_dir: Path = Field(
        default=Path("data/output"),
        description="Output directory root",
    )
    write_json: bool = Field(default=True, description="Also write transcript.json")
    wrap_width: int = Field(
        default=0, ge=0, description="Text wrapping width (0 = no wrapping)"
    )
    file_text: str = Field(default="transcript.txt")
    file_json: str = Field(default="transcript.json")


class VoxStitchConfig(BaseSettings):
    """Main VoxStitch configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="VOXSTITCH_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="forbid",  # Reject unknown fields
    )

    audio: AudioConfig = Field(default_factory=AudioConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    stitching: StitchingConfig = Field(default_factory=StitchingConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingSettings | None = Field(
        default=None, description="Logging configuration"
    )

    @model_validator(mode="after")
    def validate_config_consistency(self) -> "VoxStitchConfig":
        """Validate cross-field consistency."""
        window_samples = self.chunking.window_seconds * self.audio.target_sample_rate
        if window_samples < 1:
            raise ValueError(
                "chunking.window_seconds is shorter than one sample at "
                f"{self.audio.target_sample_rate} Hz"
            )
        return self

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "VoxStitchConfig":
        """Load configuration from YAML file with validation."""
        import yaml

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file {config_path}: {e}") from e

        if raw_config is None:
            raw_config = {}
        if not isinstance(raw_config, dict):
            raise ValueError(f"Configuration root must be a mapping: {config_path}")

        try:
            return cls(**raw_config)
        except Exception as e:
            raise ValueError(
                f"Configuration validation failed for {config_path}: {e}"
            ) from e

    def model_dump_yaml(self, **kwargs) -> str:
        """Export configuration as YAML string."""
        import yaml

        data = self.model_dump(mode="python", **kwargs)

        def convert_paths(obj):
            if isinstance(obj, dict):
                return {k: convert_paths(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_paths(item) for item in obj]
            elif isinstance(obj, Path):
                return str(obj)
            else:
                return obj

        data = convert_paths(data)
        return yaml.dump(data, default_flow_style=False, sort_keys=False)

    def save_to_yaml(self, config_path: Path, **kwargs) -> None:
        """Save configuration to YAML file."""
        yaml_content = self.model_dump_yaml(**kwargs)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(yaml_content)


def load_config(config_path: str | Path | None = None) -> VoxStitchConfig:
    """Load and validate configuration.

    Without an explicit path, VOXSTITCH_CONFIG and ./config.yaml are tried in
    that order; if neither exists the defaults (plus VOXSTITCH_* environment
    overrides) are returned.
    """
    if config_path is None:
        search_paths = [Path.cwd() / "config.yaml"]

        env_config = os.environ.get("VOXSTITCH_CONFIG")
        if env_config:
            search_paths.insert(0, Path(env_config))

        for path in search_paths:
            if path.exists():
                config_path = path
                break

        if config_path is None:
            return VoxStitchConfig()

    return VoxStitchConfig.load_from_yaml(Path(config_path))


_GLOBAL_CONFIG: VoxStitchConfig | None = None


def get_config() -> VoxStitchConfig:
    """Get the process-wide configuration instance, loading it once."""
    global _GLOBAL_CONFIG
    if _GLOBAL_CONFIG is None:
        _GLOBAL_CONFIG = load_config()
    return _GLOBAL_CONFIG


def reload_config(config_path: str | Path | None = None) -> VoxStitchConfig:
    """Reload the global configuration instance.

    If config_path is provided, it will be used as the VOXSTITCH_CONFIG location
    for this reload call (set in environment).
    """
    global _GLOBAL_CONFIG
    if config_path is not None:
        os.environ["VOXSTITCH_CONFIG"] = str(config_path)
    _GLOBAL_CONFIG = None
    return get_config()
