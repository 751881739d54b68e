"""
Pipeline package exports for VoxStitch.

Audio preparation (decode, downmix, resample), chunking, inference dispatch
and transcript stitching.
"""
from .buffers import Chunk, SampleBuffer, Transcript, TranscriptFragment
from .chunker import ChunkPlan, iter_chunks, plan_chunks, split
from .decode import AudioDecoder, PydubDecoder, decode, get_audio_info, validate_audio_input
from .exceptions import (
    AudioIOError,
    CorruptStreamError,
    DecodeError,
    EmptyInputError,
    InferenceError,
    OutOfOrderError,
    ResampleError,
    StitchError,
    UnsupportedFormatError,
    VoxConfigError,
    VoxPipelineError,
)
from .inference import InferenceEngine, VoxtralEngine, transcribe_chunks
from .mixer import to_mono
from .pipeline import BatchResult, PipelineResult, TranscriptionPipeline, prepare_audio
from .resample import expected_length, resample
from .stitcher import TranscriptStitcher, normalize_word, stitch

__all__ = [
    # Data
    "SampleBuffer",
    "Chunk",
    "TranscriptFragment",
    "Transcript",

    # Audio preparation
    "AudioDecoder",
    "PydubDecoder",
    "decode",
    "get_audio_info",
    "validate_audio_input",
    "to_mono",
    "resample",
    "expected_length",

    # Chunking and stitching
    "ChunkPlan",
    "plan_chunks",
    "iter_chunks",
    "split",
    "TranscriptStitcher",
    "normalize_word",
    "stitch",

    # Inference and orchestration
    "InferenceEngine",
    "VoxtralEngine",
    "transcribe_chunks",
    "TranscriptionPipeline",
    "PipelineResult",
    "BatchResult",
    "prepare_audio",

    # Exceptions
    "VoxPipelineError",
    "DecodeError",
    "UnsupportedFormatError",
    "CorruptStreamError",
    "AudioIOError",
    "ResampleError",
    "EmptyInputError",
    "StitchError",
    "OutOfOrderError",
    "InferenceError",
    "VoxConfigError",
]
