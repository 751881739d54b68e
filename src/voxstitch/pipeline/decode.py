"""
Audio decoding for VoxStitch.

The decoder turns an audio file of any format the codec library knows into an
interleaved float SampleBuffer, keeping the sample rate and channel count the
codec reports. It does no resampling or mixing. Container and codec work is
delegated to pydub: integer PCM WAV is parsed natively, everything else
(float or compressed WAV included) goes through ffmpeg.
"""
import struct
import time
import uuid
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable

import numpy as np
from pydub import AudioSegment  # type: ignore
from pydub.exceptions import CouldntDecodeError  # type: ignore

from ..logging_system import get_logger, get_performance_logger, log_error
from .buffers import SampleBuffer
from .exceptions import (
    AudioIOError,
    CorruptStreamError,
    DecodeError,
    UnsupportedFormatError,
)

logger = get_logger("voxstitch.pipeline.decode")

PathLike = Union[str, Path]

# ffmpeg messages meaning "no demuxer/decoder matched", as opposed to a
# recognized stream that broke while decoding
_UNSUPPORTED_MARKERS = (
    "invalid data found when processing input",
    "unknown input format",
    "could not find codec parameters",
    "decoder not found",
    "unsupported codec",
    "does not contain any stream",
    "output file #0 does not contain any stream",
)

_SAMPLE_DTYPES = {1: np.int8, 2: np.dtype("<i2"), 4: np.dtype("<i4")}

WAVE_FORMAT_PCM = 0x0001
WAVE_FORMAT_EXTENSIBLE = 0xFFFE


@runtime_checkable
class AudioDecoder(Protocol):
    """Anything that can turn a file path into an interleaved SampleBuffer."""

    def decode(self, path: PathLike) -> SampleBuffer:
        ...


def _is_riff_wave(path: Path) -> bool:
    with open(path, "rb") as f:
        header = f.read(12)
    return len(header) == 12 and header[:4] == b"RIFF" and header[8:12] == b"WAVE"


def wave_format_tag(data: bytes) -> Optional[int]:
    """Format tag from the ``fmt `` chunk of a RIFF/WAVE payload.

    For WAVE_FORMAT_EXTENSIBLE the tag embedded in the sub-format GUID is
    returned instead, so an extensible IEEE-float file reports 0x0003 just
    like a plain one. Returns None when no usable ``fmt `` chunk is found.
    """
    pos = 12
    while pos + 8 <= len(data):
        chunk_id = data[pos:pos + 4]
        size = struct.unpack_from("<I", data, pos + 4)[0]
        if chunk_id == b"fmt ":
            body = data[pos + 8:pos + 8 + size]
            if len(body) < 16:
                return None
            tag = struct.unpack_from("<H", body, 0)[0]
            if tag == WAVE_FORMAT_EXTENSIBLE and len(body) >= 26:
                tag = struct.unpack_from("<H", body, 24)[0]
            return tag
        if chunk_id == b"data":
            return None
        # Chunks are word aligned
        pos += 8 + size + (size & 1)
    return None


def _classify_ffmpeg_failure(path: Path, error: CouldntDecodeError) -> DecodeError:
    message = str(error)
    lowered = message.lower()
    if any(marker in lowered for marker in _UNSUPPORTED_MARKERS):
        return UnsupportedFormatError(f"Unsupported audio format: {path}: {message.strip()}")
    return CorruptStreamError(f"Corrupt audio stream in {path}: {message.strip()}")


def segment_to_buffer(segment: AudioSegment) -> SampleBuffer:
    """Convert a pydub AudioSegment to a float32 interleaved SampleBuffer.

    Integer PCM is scaled by 2 ** (bits - 1), which maps full scale to [-1, 1).
    """
    channels = int(segment.channels)
    frame_rate = int(segment.frame_rate)
    sample_width = int(segment.sample_width)
    if channels <= 0:
        raise CorruptStreamError("Decoded stream reports zero channels")
    if frame_rate <= 0:
        raise CorruptStreamError("Decoded stream reports a non-positive sample rate")
    dtype = _SAMPLE_DTYPES.get(sample_width)
    if dtype is None:
        raise UnsupportedFormatError(f"Unsupported sample width: {sample_width} bytes")

    raw = segment.raw_data
    frame_width = sample_width * channels
    # A truncated final frame is dropped rather than misaligning channels
    usable = len(raw) - (len(raw) % frame_width)
    ints = np.frombuffer(raw[:usable], dtype=dtype)
    samples = ints.astype(np.float32) / float(2 ** (8 * sample_width - 1))
    return SampleBuffer(samples=samples, sample_rate=frame_rate, channel_count=channels)


class _NeedsCodec(Exception):
    """Internal signal: a WAV payload the native parser cannot read."""


class PydubDecoder:
    """Default decoder backend: pydub for integer PCM WAV, ffmpeg for the rest."""

    def __init__(self, allow_ffmpeg: bool = True):
        self.allow_ffmpeg = allow_ffmpeg

    def decode(self, path: PathLike) -> SampleBuffer:
        path = Path(path)
        if not path.exists():
            raise AudioIOError(f"Audio file not found: {path}")
        if not path.is_file():
            raise AudioIOError(f"Audio path is not a regular file: {path}")

        try:
            is_wave = _is_riff_wave(path)
        except OSError as e:
            raise AudioIOError(f"Cannot read audio file {path}: {e}") from e

        if is_wave:
            try:
                segment = self._load_wave(path)
            except _NeedsCodec:
                segment = self._load_with_ffmpeg(path, recognized=True)
        else:
            segment = self._load_with_ffmpeg(path, recognized=False)

        return segment_to_buffer(segment)

    def _load_wave(self, path: Path) -> AudioSegment:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise AudioIOError(f"Cannot read audio file {path}: {e}") from e
        tag = wave_format_tag(data)
        if tag is not None and tag != WAVE_FORMAT_PCM:
            # pydub reads any extensible payload as integers, so only integer
            # PCM may take the native path
            logger.debug("WAV payload needs a codec", extra={
                "path": str(path),
                "format_tag": f"0x{tag:04X}",
            })
            raise _NeedsCodec()
        try:
            return AudioSegment(data=data)
        except CouldntDecodeError as e:
            if "unknown audio format" in str(e).lower():
                raise _NeedsCodec() from e
            raise CorruptStreamError(f"Corrupt WAV stream in {path}: {e}") from e
        except (struct.error, ValueError) as e:
            raise CorruptStreamError(f"Corrupt WAV stream in {path}: {e}") from e

    def _load_with_ffmpeg(self, path: Path, recognized: bool) -> AudioSegment:
        if not self.allow_ffmpeg:
            raise UnsupportedFormatError(
                f"No native decoder for {path} and ffmpeg decoding is disabled"
            )
        try:
            if recognized:
                # Given a *.wav path pydub retries its integer-only WAV
                # reader first; a file object goes straight to ffmpeg
                with open(path, "rb") as f:
                    return AudioSegment.from_file(f)
            return AudioSegment.from_file(str(path))
        except CouldntDecodeError as e:
            if recognized:
                raise CorruptStreamError(f"Corrupt audio stream in {path}: {e}") from e
            raise _classify_ffmpeg_failure(path, e) from e
        except OSError as e:
            if path.exists():
                # The file is there, so the missing piece is the codec backend
                raise UnsupportedFormatError(
                    f"Cannot decode {path}: codec backend unavailable ({e})"
                ) from e
            raise AudioIOError(f"Cannot read audio file {path}: {e}") from e
        except (IndexError, KeyError, ValueError) as e:
            raise CorruptStreamError(f"Corrupt audio stream in {path}: {e}") from e


def decode(path: PathLike, decoder: Optional[AudioDecoder] = None) -> SampleBuffer:
    """
    Decode an audio file into an interleaved float SampleBuffer.

    Args:
        path: Path to an audio file in any format the codec library recognizes
        decoder: Backend to use (PydubDecoder when None)

    Returns:
        SampleBuffer with the codec-reported sample rate and channel count

    Raises:
        AudioIOError: If the file cannot be opened or read
        UnsupportedFormatError: If no demuxer/codec recognizes the file
        CorruptStreamError: If a recognized stream fails to decode

    For non-WAV input the unsupported/corrupt split is read from ffmpeg's
    error text. ffmpeg reports "Invalid data found when processing input"
    both for unknown containers and for badly truncated files in a known
    one, so a damaged MP3 (for example) surfaces as UnsupportedFormatError.
    WAV files are classified from their own headers and are not affected.
    """
    perf_logger = get_performance_logger()
    decode_id = str(uuid.uuid4())
    decoder = decoder or PydubDecoder()
    start_time = time.time()

    logger.debug("Decoding audio", extra={
        "decode_id": decode_id,
        "path": str(path),
        "decoder": type(decoder).__name__,
    })

    try:
        buffer = decoder.decode(path)
    except DecodeError as e:
        duration_ms = (time.time() - start_time) * 1000
        log_error(
            message=f"Audio decoding failed for {path}",
            error=e,
            error_type=type(e).__name__,
            error_code="DECODE_001",
            remediation="Check that the file exists, is a supported format and ffmpeg is installed",
            logger=logger,
            decode_id=decode_id,
            path=str(path),
        )
        perf_logger.log_operation(
            operation="audio_decode",
            duration_ms=duration_ms,
            success=False,
            error_type=type(e).__name__,
            decode_id=decode_id,
        )
        raise

    duration_ms = (time.time() - start_time) * 1000
    perf_logger.log_operation(
        operation="audio_decode",
        duration_ms=duration_ms,
        success=True,
        decode_id=decode_id,
        sample_rate=buffer.sample_rate,
        channels=buffer.channel_count,
        audio_duration_seconds=buffer.duration_seconds,
    )
    logger.info("Audio decoded", extra={
        "decode_id": decode_id,
        "path": str(path),
        "sample_rate": buffer.sample_rate,
        "channels": buffer.channel_count,
        "frames": buffer.frame_count,
        "duration_seconds": buffer.duration_seconds,
    })
    return buffer


def get_audio_info(path: PathLike, decoder: Optional[AudioDecoder] = None) -> dict:
    """
    Get audio information for a file.

    Returns:
        Dictionary with duration_seconds, sample_rate, channels and frame_count
    """
    buffer = decode(path, decoder=decoder)
    return {
        "duration_seconds": buffer.duration_seconds,
        "sample_rate": buffer.sample_rate,
        "channels": buffer.channel_count,
        "frame_count": buffer.frame_count,
    }


def validate_audio_input(
    path: PathLike,
    max_duration_seconds: Optional[float] = None,
    min_duration_seconds: float = 0.0,
    decoder: Optional[AudioDecoder] = None,
) -> bool:
    """
    Validate an audio file before processing.

    Raises:
        ValueError: If the audio is outside the duration limits
        DecodeError: If the file cannot be decoded
    """
    info = get_audio_info(path, decoder=decoder)
    duration = info["duration_seconds"]

    if duration <= 0:
        raise ValueError(f"Audio contains no samples: {path}")
    if duration < min_duration_seconds:
        raise ValueError(
            f"Audio too short: {duration:.2f}s < {min_duration_seconds:.2f}s minimum"
        )
    if max_duration_seconds and duration > max_duration_seconds:
        raise ValueError(
            f"Audio too long: {duration:.2f}s > {max_duration_seconds:.2f}s maximum"
        )
    return True
