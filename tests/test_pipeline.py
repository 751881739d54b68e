"""
End-to-end pipeline tests with a scripted engine.
"""
import numpy as np
import pytest

from voxstitch.config import VoxStitchConfig
from voxstitch.pipeline import (
    AudioIOError,
    EmptyInputError,
    InferenceError,
    TranscriptionPipeline,
    prepare_audio,
)


@pytest.fixture
def small_config():
    return VoxStitchConfig(
        audio={"target_sample_rate": 16000},
        chunking={"window_seconds": 1.0, "overlap_fraction": 0.25},
    )


def _stereo_tone(sine, seconds, rate=8000):
    mono = sine(220.0, rate, seconds, amplitude=0.3)
    return np.repeat(mono, 2)


def test_prepare_audio_downmixes_and_resamples(write_wav, sine):
    path = write_wav(_stereo_tone(sine, 0.5), 8000, channels=2)

    buffer = prepare_audio(path, 16000)

    assert buffer.channel_count == 1
    assert buffer.sample_rate == 16000
    assert len(buffer) == 8000


def test_run_stitches_chunk_transcripts(write_wav, sine, scripted_engine, small_config):
    path = write_wav(_stereo_tone(sine, 3.0), 8000, channels=2)
    engine = scripted_engine(texts=[
        "one two three four",
        "three four five six",
        "five six seven eight",
        "seven eight nine",
    ])

    result = TranscriptionPipeline(engine, config=small_config).run(path)

    assert result.chunk_count == 4
    assert result.text == "one two three four five six seven eight nine"
    assert result.transcript.merged_overlaps == 3
    assert result.audio_duration_seconds == pytest.approx(3.0)
    assert all(rate == 16000 for _, rate in engine.calls)
    assert [n for n, _ in engine.calls] == [16000, 16000, 16000, 12000]
    assert set(result.timing) >= {"decode", "preprocess", "inference", "total"}
    assert result.metadata["source"]["channels"] == 2
    assert result.metadata["stitching"]["search_window_words"] == 2


def test_zero_overlap_keeps_repeated_words(write_wav, scripted_engine, small_config):
    path = write_wav(np.zeros(32000, dtype=np.float32), 16000)
    engine = scripted_engine(texts=["she said no no", "no no way"])
    config = small_config.model_copy(
        update={"chunking": small_config.chunking.model_copy(update={"overlap_fraction": 0.0})}
    )

    result = TranscriptionPipeline(engine, config=config).run(path)

    assert result.chunk_count == 2
    assert result.text == "she said no no no no way"
    assert result.metadata["stitching"]["search_window_words"] == 0
    assert result.metadata["stitching"]["merged_overlaps"] == 0


def test_run_with_concurrent_workers_matches_sequential(write_wav, sine, small_config):
    class OffsetEngine:
        def transcribe(self, samples, sample_rate):
            return f"chunk {len(samples)}"

    path = write_wav(_stereo_tone(sine, 3.0), 8000, channels=2)
    concurrent_config = small_config.model_copy(
        update={"inference": small_config.inference.model_copy(update={"max_workers": 3})}
    )

    sequential = TranscriptionPipeline(OffsetEngine(), config=small_config).run(path)
    concurrent = TranscriptionPipeline(OffsetEngine(), config=concurrent_config).run(path)

    assert concurrent.text == sequential.text


def test_short_file_is_single_chunk(write_wav, scripted_engine, small_config):
    path = write_wav(np.zeros(4000, dtype=np.float32), 16000)
    engine = scripted_engine(texts=["just this"])

    result = TranscriptionPipeline(engine, config=small_config).run(path)

    assert result.chunk_count == 1
    assert result.text == "just this"


def test_empty_audio_fails_before_inference(write_wav, scripted_engine, small_config):
    path = write_wav(np.zeros(0, dtype=np.float32), 8000)
    engine = scripted_engine()

    with pytest.raises(EmptyInputError):
        TranscriptionPipeline(engine, config=small_config).run(path)
    assert engine.calls == []


def test_engine_failure_becomes_inference_error(write_wav, scripted_engine, small_config):
    path = write_wav(np.zeros(16000, dtype=np.float32), 16000)
    engine = scripted_engine(fail_on=0)

    with pytest.raises(InferenceError):
        TranscriptionPipeline(engine, config=small_config).run(path)


def test_batch_isolates_failures(write_wav, tmp_path, scripted_engine, small_config):
    good = write_wav(np.zeros(8000, dtype=np.float32), 16000, name="good.wav")
    also_good = write_wav(np.zeros(8000, dtype=np.float32), 16000, name="also_good.wav")
    missing = tmp_path / "missing.wav"
    engine = scripted_engine(default="words")

    batch = TranscriptionPipeline(engine, config=small_config).run_batch([good, missing, also_good])

    assert not batch.ok
    assert [r.path for r in batch.results] == [good, also_good]
    assert list(batch.failures) == [str(missing)]
    assert isinstance(batch.failures[str(missing)], AudioIOError)
    assert all(r.text == "words" for r in batch.results)
