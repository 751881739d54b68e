"""
FFT resampler tests: identity, length rule, duration and amplitude.
"""
import numpy as np
import pytest

from voxstitch.pipeline import EmptyInputError, ResampleError, SampleBuffer, expected_length, resample


def test_same_rate_returns_same_buffer():
    buffer = SampleBuffer(np.random.default_rng(0).uniform(-1, 1, 1000), 16000)
    assert resample(buffer, 16000) is buffer


@pytest.mark.parametrize(
    "length,source,target",
    [
        (44100, 44100, 16000),
        (48000, 48000, 16000),
        (8000, 8000, 16000),
        (12345, 22050, 16000),
        (7, 44100, 16000),
        (1, 48000, 16000),
    ],
)
def test_output_length_rule(length, source, target):
    buffer = SampleBuffer(np.zeros(length, dtype=np.float32), source)

    out = resample(buffer, target)

    assert len(out) == expected_length(length, source, target)
    assert len(out) == max(1, round(length * target / source))
    assert out.sample_rate == target
    assert out.samples.dtype == np.float32


def test_duration_preserved_within_one_sample():
    buffer = SampleBuffer(np.zeros(44100 * 3 + 17, dtype=np.float32), 44100)
    out = resample(buffer, 16000)
    assert abs(out.duration_seconds - buffer.duration_seconds) <= 1 / 16000


def test_sine_amplitude_preserved_on_downsample(sine):
    tone = sine(440.0, 44100, 1.0, amplitude=0.5)

    out = resample(SampleBuffer(tone, 44100), 16000)

    # Ignore edges where the periodic FFT assumption rings
    core = out.samples[800:-800]
    assert core.max() == pytest.approx(0.5, abs=0.02)
    assert core.min() == pytest.approx(-0.5, abs=0.02)


def test_sine_frequency_preserved_on_upsample(sine):
    tone = sine(1000.0, 8000, 1.0)

    out = resample(SampleBuffer(tone, 8000), 16000)

    spectrum = np.abs(np.fft.rfft(out.samples))
    peak_hz = np.argmax(spectrum) * 16000 / len(out)
    assert peak_hz == pytest.approx(1000.0, abs=2.0)


def test_empty_buffer_is_rejected():
    buffer = SampleBuffer(np.zeros(0, dtype=np.float32), 44100)
    with pytest.raises(EmptyInputError):
        resample(buffer, 16000)
    assert issubclass(EmptyInputError, ResampleError)


def test_multichannel_is_rejected():
    buffer = SampleBuffer(np.zeros(4, dtype=np.float32), 44100, 2)
    with pytest.raises(ValueError):
        resample(buffer, 16000)


def test_non_positive_target_rate_is_rejected():
    buffer = SampleBuffer(np.zeros(4, dtype=np.float32), 44100)
    with pytest.raises(ValueError):
        resample(buffer, 0)
