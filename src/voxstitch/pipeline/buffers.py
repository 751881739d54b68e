"""
Immutable data carriers passed between pipeline stages.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np


def _frozen_array(samples) -> np.ndarray:
    arr = np.asarray(samples, dtype=np.float32)
    if arr.ndim != 1:
        raise ValueError(f"Expected a 1-D sample array, got shape {arr.shape}")
    if arr.flags.writeable:
        # Never flip the flag on the caller's array
        if isinstance(samples, np.ndarray) and np.shares_memory(arr, samples):
            arr = arr.copy()
        arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class SampleBuffer:
    """Interleaved float PCM tagged with its sample rate and channel count.

    Samples are roughly in [-1.0, 1.0]. The array is read-only once the
    buffer is built.
    """

    samples: np.ndarray
    sample_rate: int
    channel_count: int = 1

    def __post_init__(self) -> None:
        if int(self.sample_rate) <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if int(self.channel_count) <= 0:
            raise ValueError(f"channel_count must be positive, got {self.channel_count}")
        arr = _frozen_array(self.samples)
        if arr.size % int(self.channel_count) != 0:
            raise ValueError(
                f"Interleaved length {arr.size} is not a multiple of "
                f"channel_count {self.channel_count}"
            )
        object.__setattr__(self, "samples", arr)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))
        object.__setattr__(self, "channel_count", int(self.channel_count))

    def __len__(self) -> int:
        return int(self.samples.size)

    @property
    def frame_count(self) -> int:
        return len(self) // self.channel_count

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.sample_rate

    @property
    def is_mono(self) -> bool:
        return self.channel_count == 1


@dataclass(frozen=True)
class Chunk:
    """A window of a mono SampleBuffer.

    ``samples`` is a view into the parent buffer's array, covering the
    half-open range ``[start_offset, end_offset)``.
    """

    index: int
    samples: np.ndarray
    sample_rate: int
    start_offset: int
    end_offset: int
    overlap_with_next: int = 0

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset

    @property
    def start_seconds(self) -> float:
        return self.start_offset / self.sample_rate

    @property
    def duration_seconds(self) -> float:
        return self.length / self.sample_rate


@dataclass(frozen=True)
class TranscriptFragment:
    """Text produced by the inference engine for one chunk."""

    index: int
    text: str


@dataclass(frozen=True)
class Transcript:
    """Final stitched text for one input file."""

    text: str
    fragment_count: int
    merged_overlaps: int = 0
    fallback_joins: int = 0

    def __str__(self) -> str:
        return self.text
