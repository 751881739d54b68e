"""
Channel downmixing.
"""
import numpy as np

from .buffers import SampleBuffer


def to_mono(buffer: SampleBuffer) -> SampleBuffer:
    """
    Downmix interleaved multi-channel PCM to mono.

    Each output sample is the arithmetic mean of the channel samples of its
    frame. Mono input is returned unchanged (same object). Silence is a valid
    result, never an error.
    """
    if buffer.is_mono:
        return buffer

    frames = buffer.samples.reshape(-1, buffer.channel_count)
    # Accumulate in float64 so the mean of many channels does not drift
    mono = frames.mean(axis=1, dtype=np.float64).astype(np.float32)
    return SampleBuffer(samples=mono, sample_rate=buffer.sample_rate, channel_count=1)
