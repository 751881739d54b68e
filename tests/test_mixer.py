import numpy as np
import pytest

from voxstitch.pipeline import SampleBuffer, to_mono


def test_mono_input_is_returned_unchanged():
    buffer = SampleBuffer(np.array([0.1, 0.2, 0.3], dtype=np.float32), 16000, 1)
    assert to_mono(buffer) is buffer


def test_stereo_frames_are_averaged():
    buffer = SampleBuffer(np.array([1.0, 0.0, 0.5, -0.5, -1.0, -1.0], dtype=np.float32), 8000, 2)

    mono = to_mono(buffer)

    assert mono.channel_count == 1
    assert mono.sample_rate == 8000
    np.testing.assert_allclose(mono.samples, [0.5, 0.0, -1.0])


def test_output_length_is_frame_count():
    buffer = SampleBuffer(np.arange(12, dtype=np.float32) / 12, 44100, 3)
    mono = to_mono(buffer)
    assert len(mono) == buffer.frame_count == 4


def test_phase_cancellation_yields_silence():
    left = np.linspace(-1, 1, 50, dtype=np.float32)
    interleaved = np.empty(100, dtype=np.float32)
    interleaved[0::2] = left
    interleaved[1::2] = -left

    mono = to_mono(SampleBuffer(interleaved, 16000, 2))

    np.testing.assert_allclose(mono.samples, np.zeros(50), atol=1e-7)


def test_buffer_rejects_partial_frame():
    with pytest.raises(ValueError):
        SampleBuffer(np.zeros(5, dtype=np.float32), 16000, 2)
