"""
Decoder adapter tests against WAV files written with pydub.
"""
import shutil
import struct

import numpy as np
import pytest

from voxstitch.pipeline import (
    AudioIOError,
    CorruptStreamError,
    DecodeError,
    PydubDecoder,
    SampleBuffer,
    UnsupportedFormatError,
    decode,
    get_audio_info,
    validate_audio_input,
)
from voxstitch.pipeline.decode import wave_format_tag

KSDATAFORMAT_TAIL = b"\x00\x00\x00\x00\x10\x00\x80\x00\x00\xaa\x00\x38\x9b\x71"


def test_decode_mono_16bit_keeps_rate_and_values(write_wav):
    samples = np.array([0.0, 0.25, -0.25, 0.5, -0.5, 0.0], dtype=np.float32)
    path = write_wav(samples, 22050)

    buffer = decode(path)

    assert isinstance(buffer, SampleBuffer)
    assert buffer.sample_rate == 22050
    assert buffer.channel_count == 1
    assert len(buffer) == 6
    np.testing.assert_allclose(buffer.samples, samples, atol=1 / 32768)


def test_decode_stereo_is_interleaved(write_wav):
    # L, R, L, R
    samples = np.array([0.5, -0.5, 0.25, -0.25], dtype=np.float32)
    path = write_wav(samples, 8000, channels=2)

    buffer = decode(path)

    assert buffer.channel_count == 2
    assert buffer.frame_count == 2
    assert len(buffer) % buffer.channel_count == 0
    np.testing.assert_allclose(buffer.samples, samples, atol=1 / 32768)


def test_decode_8bit_scales_to_unit_range(write_wav):
    samples = np.array([0.0, 0.5, -0.5, -1.0], dtype=np.float32)
    path = write_wav(samples, 8000, sample_width=1)

    buffer = decode(path)

    np.testing.assert_allclose(buffer.samples, samples, atol=1 / 128)
    assert buffer.samples.min() >= -1.0
    assert buffer.samples.max() < 1.0


def test_decoded_samples_are_read_only(write_wav):
    buffer = decode(write_wav(np.zeros(10, dtype=np.float32), 16000))
    with pytest.raises(ValueError):
        buffer.samples[0] = 1.0


def test_missing_file_raises_io_error(tmp_path):
    with pytest.raises(AudioIOError):
        decode(tmp_path / "nope.wav")


def test_directory_raises_io_error(tmp_path):
    with pytest.raises(AudioIOError):
        decode(tmp_path)


def test_truncated_wav_is_corrupt(tmp_path):
    path = tmp_path / "broken.wav"
    path.write_bytes(b"RIFF\x24\x00\x00\x00WAVE")
    with pytest.raises(CorruptStreamError):
        decode(path)


def test_garbage_wav_body_is_corrupt(tmp_path):
    path = tmp_path / "garbage.wav"
    path.write_bytes(b"RIFF\x00\x01\x00\x00WAVE" + b"\x13\x37" * 64)
    with pytest.raises(CorruptStreamError):
        decode(path)


def test_unrecognized_container_is_unsupported(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("this is not audio at all\n" * 20)
    with pytest.raises(UnsupportedFormatError):
        decode(path)


def test_non_wav_without_ffmpeg_is_unsupported(tmp_path):
    path = tmp_path / "clip.mp3"
    path.write_bytes(b"ID3\x03\x00\x00\x00\x00\x00\x00" + b"\x00" * 32)
    with pytest.raises(UnsupportedFormatError):
        PydubDecoder(allow_ffmpeg=False).decode(path)


def test_decode_errors_share_base_class(tmp_path):
    assert issubclass(UnsupportedFormatError, DecodeError)
    assert issubclass(CorruptStreamError, DecodeError)
    assert issubclass(AudioIOError, DecodeError)


def test_custom_decoder_is_used(tmp_path):
    class FixedDecoder:
        def decode(self, path):
            return SampleBuffer(np.ones(8, dtype=np.float32), 4000, 2)

    info = get_audio_info(tmp_path / "whatever", decoder=FixedDecoder())
    assert info == {
        "duration_seconds": 4 / 4000,
        "sample_rate": 4000,
        "channels": 2,
        "frame_count": 4,
    }


def test_validate_audio_input_limits(write_wav):
    path = write_wav(np.zeros(16000, dtype=np.float32), 16000)

    assert validate_audio_input(path, max_duration_seconds=2.0)
    with pytest.raises(ValueError, match="too long"):
        validate_audio_input(path, max_duration_seconds=0.5)
    with pytest.raises(ValueError, match="too short"):
        validate_audio_input(path, min_duration_seconds=5.0)


def _float_wav_bytes(samples, sample_rate, extensible):
    """IEEE-float WAV bytes, optionally wrapped as WAVE_FORMAT_EXTENSIBLE."""
    payload = np.asarray(samples, dtype="<f4").tobytes()
    channels, bits = 1, 32
    block_align = channels * bits // 8
    common = struct.pack(
        "<HIIHH", channels, sample_rate, sample_rate * block_align, block_align, bits
    )
    if extensible:
        fmt = struct.pack("<H", 0xFFFE) + common + struct.pack("<HHI", 22, bits, 0x4)
        fmt += struct.pack("<H", 0x0003) + KSDATAFORMAT_TAIL
    else:
        fmt = struct.pack("<H", 0x0003) + common
    body = b"WAVE"
    body += b"fmt " + struct.pack("<I", len(fmt)) + fmt
    body += b"data" + struct.pack("<I", len(payload)) + payload
    return b"RIFF" + struct.pack("<I", len(body)) + body


FLOAT_SAMPLES = np.array([0.0, 0.5, -0.5, 0.25], dtype=np.float32)


def test_wave_format_tag_reads_subformat(write_wav):
    assert wave_format_tag(_float_wav_bytes(FLOAT_SAMPLES, 16000, extensible=True)) == 0x0003
    assert wave_format_tag(_float_wav_bytes(FLOAT_SAMPLES, 16000, extensible=False)) == 0x0003
    assert wave_format_tag(write_wav(FLOAT_SAMPLES, 16000).read_bytes()) == 0x0001
    assert wave_format_tag(b"RIFF\x24\x00\x00\x00WAVE") is None


@pytest.mark.parametrize("extensible", [True, False])
def test_float_wav_is_not_read_as_integers(tmp_path, extensible):
    path = tmp_path / "float.wav"
    path.write_bytes(_float_wav_bytes(FLOAT_SAMPLES, 16000, extensible))

    with pytest.raises(UnsupportedFormatError):
        PydubDecoder(allow_ffmpeg=False).decode(path)


@pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg not installed",
)
def test_extensible_float_wav_decodes_through_ffmpeg(tmp_path):
    path = tmp_path / "float.wav"
    path.write_bytes(_float_wav_bytes(FLOAT_SAMPLES, 16000, extensible=True))

    buffer = decode(path)

    assert buffer.sample_rate == 16000
    assert buffer.channel_count == 1
    np.testing.assert_allclose(buffer.samples, FLOAT_SAMPLES, atol=1e-4)
