"""
Configuration module for VoxStitch.

This module provides validated configuration loading with Pydantic schemas
and environment variable support.
"""

from .schemas import (
    AudioConfig,
    ChunkingConfig,
    InferenceConfig,
    LoggingSettings,
    OutputConfig,
    StitchingConfig,
    VoxStitchConfig,
    get_config,
    load_config,
    reload_config,
)

__all__ = [
    "AudioConfig",
    "ChunkingConfig",
    "InferenceConfig",
    "LoggingSettings",
    "OutputConfig",
    "StitchingConfig",
    "VoxStitchConfig",
    "get_config",
    "load_config",
    "reload_config",
]
