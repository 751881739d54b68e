"""
Overlap-aware segmentation of mono audio into model-sized windows.

Windows start every ``step`` samples, where ``step`` is the window length
minus the overlap. The final window is cut at the true end of the signal
rather than padded. Chunks are numpy views of the parent buffer, so the
region shared by two neighbours is the very same memory.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .buffers import Chunk, SampleBuffer
from .exceptions import EmptyInputError


@dataclass(frozen=True)
class ChunkPlan:
    """Sample geometry of a chunk sequence, independent of the samples."""

    window_samples: int
    step_samples: int
    spans: tuple[tuple[int, int, int], ...]

    @property
    def overlap_samples(self) -> int:
        return self.window_samples - self.step_samples

    def __len__(self) -> int:
        return len(self.spans)


def _validate(window_seconds: float, overlap_fraction: float) -> None:
    if not window_seconds > 0:
        raise ValueError(f"window_seconds must be > 0, got {window_seconds}")
    if not 0 <= overlap_fraction < 1:
        raise ValueError(f"overlap_fraction must be in [0, 1), got {overlap_fraction}")


def window_geometry(
    sample_rate: int, window_seconds: float, overlap_fraction: float
) -> tuple[int, int]:
    """Return ``(window_samples, step_samples)``, both at least one sample."""
    _validate(window_seconds, overlap_fraction)
    window_samples = max(1, int(round(window_seconds * sample_rate)))
    step_samples = max(1, int(round(window_samples * (1 - overlap_fraction))))
    return window_samples, min(step_samples, window_samples)


def plan_chunks(
    length: int,
    sample_rate: int,
    window_seconds: float,
    overlap_fraction: float,
) -> ChunkPlan:
    """Compute ``(start, end, overlap_with_next)`` for every chunk of a signal."""
    if length <= 0:
        raise EmptyInputError("Cannot chunk an empty buffer")
    window_samples, step_samples = window_geometry(
        sample_rate, window_seconds, overlap_fraction
    )

    starts = [0]
    while starts[-1] + window_samples < length:
        starts.append(starts[-1] + step_samples)

    spans = []
    for i, start in enumerate(starts):
        end = min(start + window_samples, length)
        if i + 1 < len(starts):
            overlap = end - starts[i + 1]
        else:
            overlap = 0
        spans.append((start, end, overlap))

    return ChunkPlan(
        window_samples=window_samples,
        step_samples=step_samples,
        spans=tuple(spans),
    )


def iter_chunks(
    buffer: SampleBuffer,
    window_seconds: float,
    overlap_fraction: float,
) -> Iterator[Chunk]:
    """Lazily yield the chunks of a mono buffer in order.

    Calling it again restarts from the first chunk.
    """
    if not buffer.is_mono:
        raise ValueError(
            f"Chunking expects mono input, got {buffer.channel_count} channels"
        )
    plan = plan_chunks(len(buffer), buffer.sample_rate, window_seconds, overlap_fraction)
    for index, (start, end, overlap) in enumerate(plan.spans):
        yield Chunk(
            index=index,
            samples=buffer.samples[start:end],
            sample_rate=buffer.sample_rate,
            start_offset=start,
            end_offset=end,
            overlap_with_next=overlap,
        )


def split(
    buffer: SampleBuffer,
    window_seconds: float,
    overlap_fraction: float,
) -> list[Chunk]:
    """Split a mono buffer into overlapping windows.

    A buffer no longer than one window yields exactly one chunk covering it.
    """
    return list(iter_chunks(buffer, window_seconds, overlap_fraction))
