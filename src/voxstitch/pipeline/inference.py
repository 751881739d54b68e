"""
Speech-recognition inference boundary.

The pipeline only needs "samples in, text out" per chunk. Any object with a
``transcribe(samples, sample_rate) -> str`` method can stand in for the
model; VoxtralEngine is the production implementation on top of Hugging
Face transformers. torch and transformers are imported lazily so the rest
of the package never pays for them.
"""
import threading
import time
from collections import deque
from collections.abc import Iterable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional, Protocol, runtime_checkable

import numpy as np

from ..config import InferenceConfig
from ..logging_system import get_logger, get_performance_logger, log_error
from .buffers import Chunk, TranscriptFragment
from .exceptions import InferenceError, VoxPipelineError

logger = get_logger("voxstitch.pipeline.inference")


@runtime_checkable
class InferenceEngine(Protocol):
    """Transcribes one mono chunk of audio to text."""

    def transcribe(self, samples: np.ndarray, sample_rate: int) -> str:
        ...


class VoxtralEngine:
    """Voxtral speech-recognition engine (transformers), loaded on first use."""

    def __init__(
        self,
        model_id: str = "mistralai/Voxtral-Mini-3B-2507",
        device: Optional[str] = None,
        force_cpu: bool = False,
        language: Optional[str] = "en",
        max_new_tokens: int = 500,
    ):
        """
        Create an engine handle. Nothing is loaded until the first call.

        Args:
            model_id: Hugging Face model identifier or local checkpoint path
            device: "cpu", "cuda" or "auto" (auto-detect if None)
            force_cpu: Run on CPU even when a GPU is available
            language: Language hint passed with the transcription request
            max_new_tokens: Generation budget per chunk
        """
        self.model_id = model_id
        self.requested_device = device or "auto"
        self.force_cpu = force_cpu
        # Device rules live on InferenceConfig; validated here so a bad
        # device name fails at construction
        self._device_config = InferenceConfig(
            device=self.requested_device, force_cpu=force_cpu
        )
        self.language = language
        self.max_new_tokens = max_new_tokens

        # Model components (loaded lazily)
        self.model: Optional[Any] = None
        self.processor: Optional[Any] = None
        self.device: Optional[str] = None
        self._dtype: Optional[Any] = None
        self._is_initialized = False
        self._init_lock = threading.Lock()
        # generate() is not re-entrant on a shared model
        self._generate_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: InferenceConfig) -> "VoxtralEngine":
        return cls(
            model_id=config.model_id,
            device=config.device,
            force_cpu=config.force_cpu,
            language=config.language,
            max_new_tokens=config.max_new_tokens,
        )

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    def _resolve_device(self) -> str:
        return self._device_config.resolved_device()

    def initialize(self) -> None:
        """Load processor and model weights (idempotent)."""
        with self._init_lock:
            if self._is_initialized:
                return

            try:
                import torch
                from transformers import AutoProcessor, VoxtralForConditionalGeneration
            except ImportError as e:
                raise InferenceError(
                    "Failed to import torch/transformers. "
                    f"Install the 'inference' extra to use VoxtralEngine. Error: {e}"
                ) from e

            device = self._resolve_device()
            dtype = torch.bfloat16 if device == "cuda" else torch.float32
            start_time = time.time()

            try:
                processor = AutoProcessor.from_pretrained(self.model_id)
                model = VoxtralForConditionalGeneration.from_pretrained(
                    self.model_id,
                    torch_dtype=dtype,
                    device_map=device,
                )
                model.eval()
            except Exception as e:
                raise InferenceError(f"Failed to load model {self.model_id}: {e}") from e

            self.processor = processor
            self.model = model
            self.device = device
            self._dtype = dtype
            self._is_initialized = True

            logger.info("Inference model loaded", extra={
                "model_id": self.model_id,
                "device": device,
                "dtype": str(dtype),
                "load_time_ms": (time.time() - start_time) * 1000,
            })

    def transcribe(self, samples: np.ndarray, sample_rate: int) -> str:
        """Transcribe one mono float chunk and return the decoded text."""
        self.initialize()

        import torch

        audio = np.ascontiguousarray(samples, dtype=np.float32)
        try:
            inputs = self.processor.apply_transcription_request(
                language=self.language,
                audio=audio,
                sampling_rate=sample_rate,
                model_id=self.model_id,
            )
            inputs = inputs.to(self.device, dtype=self._dtype)
            with self._generate_lock, torch.inference_mode():
                outputs = self.model.generate(**inputs, max_new_tokens=self.max_new_tokens)
            decoded = self.processor.batch_decode(
                outputs[:, inputs.input_ids.shape[1]:],
                skip_special_tokens=True,
            )
        except Exception as e:
            raise InferenceError(f"Transcription failed: {e}") from e

        return decoded[0].strip() if decoded else ""


def _run_engine(engine: InferenceEngine, chunk: Chunk) -> TranscriptFragment:
    try:
        text = engine.transcribe(chunk.samples, chunk.sample_rate)
    except VoxPipelineError:
        raise
    except Exception as e:
        raise InferenceError(f"Inference failed on chunk {chunk.index}: {e}") from e
    if text is None:
        text = ""
    return TranscriptFragment(index=chunk.index, text=str(text))


def transcribe_chunks(
    engine: InferenceEngine,
    chunks: Iterable[Chunk],
    max_workers: int = 1,
) -> Iterator[TranscriptFragment]:
    """
    Run the engine over chunks and yield fragments in chunk order.

    With max_workers > 1 up to that many chunks are in flight at once (plus a
    small read-ahead), but fragments are still released strictly in order.
    The first failure is raised once every earlier fragment has been yielded.
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")

    perf_logger = get_performance_logger()

    if max_workers == 1:
        for chunk in chunks:
            start_time = time.time()
            try:
                fragment = _run_engine(engine, chunk)
            except InferenceError as e:
                log_error(
                    message=f"Inference failed on chunk {chunk.index}",
                    error=e,
                    error_type=type(e).__name__,
                    error_code="INFER_001",
                    remediation="Check model availability and device memory",
                    logger=logger,
                    chunk_index=chunk.index,
                )
                raise
            perf_logger.log_operation(
                operation="chunk_inference",
                duration_ms=(time.time() - start_time) * 1000,
                success=True,
                chunk_index=chunk.index,
                chunk_seconds=chunk.duration_seconds,
            )
            yield fragment
        return

    pending: deque[Future] = deque()
    chunk_iter = iter(chunks)
    read_ahead = max_workers * 2

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="voxstitch-infer") as executor:
        try:
            for chunk in chunk_iter:
                pending.append(executor.submit(_run_engine, engine, chunk))
                if len(pending) >= read_ahead:
                    break

            while pending:
                future = pending.popleft()
                fragment = future.result()
                yield fragment
                next_chunk = next(chunk_iter, None)
                if next_chunk is not None:
                    pending.append(executor.submit(_run_engine, engine, next_chunk))
        except InferenceError as e:
            log_error(
                message="Concurrent inference failed",
                error=e,
                error_type=type(e).__name__,
                error_code="INFER_001",
                remediation="Check model availability and device memory",
                logger=logger,
                max_workers=max_workers,
            )
            raise
        finally:
            for future in pending:
                future.cancel()
