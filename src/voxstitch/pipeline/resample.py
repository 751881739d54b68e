"""
Band-limited resampling to the model's sample rate.

Resampling is done in the frequency domain: the whole signal is transformed
with an FFT, the spectrum is truncated (downsampling) or zero-padded
(upsampling) to the new length and transformed back, scaled so amplitudes
are preserved. Linear interpolation aliases audibly and hurts recognition;
one-shot FFT resampling is affordable because files are processed whole.
"""
import numpy as np
from scipy import signal

from ..logging_system import get_logger, performance_context
from .buffers import SampleBuffer
from .exceptions import EmptyInputError

logger = get_logger("voxstitch.pipeline.resample")


def expected_length(input_length: int, source_rate: int, target_rate: int) -> int:
    """Output length rule: round(input_length * target_rate / source_rate)."""
    if input_length <= 0:
        return 0
    return max(1, int(round(input_length * target_rate / source_rate)))


def resample(buffer: SampleBuffer, target_rate: int) -> SampleBuffer:
    """
    Resample a mono buffer to ``target_rate``.

    Args:
        buffer: Mono SampleBuffer at any rate
        target_rate: Desired sample rate in Hz

    Returns:
        The input buffer itself when the rates already match, otherwise a new
        float32 buffer of length round(len * target_rate / source_rate)

    Raises:
        EmptyInputError: If the buffer holds no samples
        ValueError: If target_rate is not positive or the buffer is not mono
    """
    if target_rate <= 0:
        raise ValueError(f"target_rate must be positive, got {target_rate}")
    if len(buffer) == 0:
        raise EmptyInputError("Cannot resample an empty buffer")
    if not buffer.is_mono:
        raise ValueError(
            f"resample expects mono input, got {buffer.channel_count} channels"
        )

    if buffer.sample_rate == target_rate:
        return buffer

    num_samples = expected_length(len(buffer), buffer.sample_rate, target_rate)

    with performance_context(
        "fft_resample",
        logger=logger,
        source_rate=buffer.sample_rate,
        target_rate=target_rate,
        input_samples=len(buffer),
    ):
        resampled = signal.resample(buffer.samples.astype(np.float64), num_samples)

    logger.debug("Resampled audio", extra={
        "source_rate": buffer.sample_rate,
        "target_rate": target_rate,
        "input_samples": len(buffer),
        "output_samples": num_samples,
    })

    return SampleBuffer(
        samples=resampled.astype(np.float32),
        sample_rate=target_rate,
        channel_count=1,
    )
