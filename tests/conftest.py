import sys
from pathlib import Path

import numpy as np
import pytest


# Ensure src/ is on sys.path once for tests
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def _to_pcm_bytes(samples: np.ndarray, sample_width: int) -> bytes:
    """Quantize float samples in [-1, 1) to little-endian signed PCM."""
    scale = float(2 ** (8 * sample_width - 1))
    dtype = {1: np.int8, 2: np.dtype("<i2"), 4: np.dtype("<i4")}[sample_width]
    info = np.iinfo(dtype)
    ints = np.clip(np.round(np.asarray(samples, dtype=np.float64) * scale), info.min, info.max)
    return ints.astype(dtype).tobytes()


@pytest.fixture
def write_wav(tmp_path):
    """Factory writing interleaved float samples to a PCM WAV file via pydub.

    Usage: write_wav(samples, sample_rate, channels=1, sample_width=2, name="x.wav")
    """
    from pydub import AudioSegment

    def _write(samples, sample_rate, channels=1, sample_width=2, name="input.wav") -> Path:
        segment = AudioSegment(
            data=_to_pcm_bytes(samples, sample_width),
            sample_width=sample_width,
            frame_rate=sample_rate,
            channels=channels,
        )
        path = tmp_path / name
        segment.export(str(path), format="wav").close()
        return path

    return _write


@pytest.fixture
def sine():
    """Factory for a mono sine wave as float32."""

    def _sine(freq: float, sample_rate: int, seconds: float, amplitude: float = 0.5) -> np.ndarray:
        n = int(round(seconds * sample_rate))
        t = np.arange(n) / sample_rate
        return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)

    return _sine


class ScriptedEngine:
    """Inference engine double returning canned text per chunk position."""

    def __init__(self, texts=None, default="", fail_on=None, exc=None):
        self.texts = list(texts or [])
        self.default = default
        self.fail_on = fail_on
        self.exc = exc or RuntimeError("engine exploded")
        self.calls = []

    def transcribe(self, samples, sample_rate):
        position = len(self.calls)
        self.calls.append((len(samples), sample_rate))
        if self.fail_on is not None and position == self.fail_on:
            raise self.exc
        if position < len(self.texts):
            return self.texts[position]
        return self.default


@pytest.fixture
def scripted_engine():
    return ScriptedEngine
