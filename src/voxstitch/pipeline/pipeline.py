"""
Per-file pipeline orchestrator for VoxStitch.

Coordinates decode -> downmix -> resample -> chunk -> inference -> stitch for
one file, and runs batches where one bad file never stops the others.
"""
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..config import VoxStitchConfig
from ..logging_system import (
    generate_run_id,
    get_logger,
    get_metrics_collector,
    get_performance_logger,
    log_error,
)
from .buffers import SampleBuffer, Transcript
from .chunker import iter_chunks, plan_chunks
from .decode import AudioDecoder, decode
from .exceptions import VoxPipelineError
from .inference import InferenceEngine, transcribe_chunks
from .mixer import to_mono
from .resample import resample
from .stitcher import TranscriptStitcher

logger = get_logger("voxstitch.pipeline")


@dataclass
class PipelineResult:
    """Complete result for one audio file."""
    path: Path
    transcript: Transcript
    chunk_count: int
    audio_duration_seconds: float
    timing: Dict[str, float]
    metadata: Dict[str, Any]

    @property
    def text(self) -> str:
        return self.transcript.text


@dataclass
class BatchResult:
    """Outcome of a batch: successes in input order plus per-file failures."""
    results: List[PipelineResult] = field(default_factory=list)
    failures: Dict[str, VoxPipelineError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def prepare_audio(
    path: Union[str, Path],
    target_rate: int,
    decoder: Optional[AudioDecoder] = None,
) -> SampleBuffer:
    """Decode a file and return it as mono float samples at target_rate."""
    buffer = decode(path, decoder=decoder)
    return resample(to_mono(buffer), target_rate)


class TranscriptionPipeline:
    """Runs the full transcription pipeline with a shared engine handle."""

    def __init__(
        self,
        engine: InferenceEngine,
        config: Optional[VoxStitchConfig] = None,
        decoder: Optional[AudioDecoder] = None,
    ):
        if config is None:
            from ..config import get_config
            config = get_config()
        self.engine = engine
        self.config = config
        self.decoder = decoder

    def run(self, path: Union[str, Path]) -> PipelineResult:
        """
        Transcribe one audio file.

        Raises:
            DecodeError: If the file cannot be decoded
            ResampleError: If the decoded audio is empty
            InferenceError: If the engine fails on any chunk
            StitchError: If fragments arrive out of order
        """
        path = Path(path)
        perf_logger = get_performance_logger()
        run_id = generate_run_id()
        cfg = self.config
        timing: Dict[str, float] = {}
        start_time = time.time()

        logger.info("Starting transcription", extra={
            "run_id": run_id,
            "path": str(path),
            "window_seconds": cfg.chunking.window_seconds,
            "overlap_fraction": cfg.chunking.overlap_fraction,
        })

        try:
            stage_start = time.time()
            decoded = decode(path, decoder=self.decoder)
            timing["decode"] = time.time() - stage_start

            stage_start = time.time()
            mono = resample(to_mono(decoded), cfg.audio.target_sample_rate)
            timing["preprocess"] = time.time() - stage_start

            plan = plan_chunks(
                len(mono),
                mono.sample_rate,
                cfg.chunking.window_seconds,
                cfg.chunking.overlap_fraction,
            )
            overlap_seconds = plan.overlap_samples / mono.sample_rate
            stitcher = TranscriptStitcher(
                search_window_words=cfg.stitching.resolve_search_window(overlap_seconds),
                min_match_words=cfg.stitching.min_match_words,
            )

            logger.debug("Chunk plan ready", extra={
                "run_id": run_id,
                "chunks": len(plan),
                "window_samples": plan.window_samples,
                "step_samples": plan.step_samples,
                "search_window_words": stitcher.search_window_words,
            })

            stage_start = time.time()
            chunks = iter_chunks(mono, cfg.chunking.window_seconds, cfg.chunking.overlap_fraction)
            for fragment in transcribe_chunks(
                self.engine, chunks, max_workers=cfg.inference.max_workers
            ):
                stitcher.feed(fragment)
            transcript = stitcher.result()
            timing["inference"] = time.time() - stage_start

        except VoxPipelineError as e:
            error_timing = time.time() - start_time
            log_error(
                message=f"Pipeline failed for {path} after {error_timing:.2f}s",
                error=e,
                error_type=type(e).__name__,
                error_code="PIPELINE_001",
                remediation="Check input validity, configuration, and model availability",
                logger=logger,
                run_id=run_id,
                path=str(path),
                stages_completed=list(timing.keys()),
            )
            perf_logger.log_operation(
                operation="transcribe_file",
                duration_ms=error_timing * 1000,
                success=False,
                error_type=type(e).__name__,
                run_id=run_id,
            )
            raise

        timing["total"] = time.time() - start_time
        audio_duration = mono.duration_seconds
        rtf = timing["total"] / audio_duration if audio_duration > 0 else 0
        system = get_metrics_collector().snapshot_system()

        metadata = {
            "run_id": run_id,
            "source": {
                "path": str(path),
                "sample_rate": decoded.sample_rate,
                "channels": decoded.channel_count,
                "duration_seconds": decoded.duration_seconds,
            },
            "sample_rate": mono.sample_rate,
            "chunking": {
                "window_seconds": cfg.chunking.window_seconds,
                "overlap_fraction": cfg.chunking.overlap_fraction,
                "window_samples": plan.window_samples,
                "step_samples": plan.step_samples,
            },
            "stitching": {
                "search_window_words": stitcher.search_window_words,
                "min_match_words": stitcher.min_match_words,
                "merged_overlaps": transcript.merged_overlaps,
                "fallback_joins": transcript.fallback_joins,
            },
            "performance": {
                "processing_time": timing["total"],
                "real_time_factor": rtf,
                "stages": dict(timing),
            },
        }

        logger.info("Transcription completed", extra={
            "run_id": run_id,
            "path": str(path),
            "chunks": len(plan),
            "audio_duration_seconds": audio_duration,
            "real_time_factor": rtf,
            "transcript_length": len(transcript.text),
            "process_rss_mb": round(system.process_rss_mb, 1),
            "stage_ms": {k: round(v * 1000, 2) for k, v in timing.items()},
        })
        perf_logger.log_operation(
            operation="transcribe_file",
            duration_ms=timing["total"] * 1000,
            success=True,
            run_id=run_id,
            audio_duration_seconds=audio_duration,
            real_time_factor=rtf,
        )

        return PipelineResult(
            path=path,
            transcript=transcript,
            chunk_count=len(plan),
            audio_duration_seconds=audio_duration,
            timing=timing,
            metadata=metadata,
        )

    def run_batch(self, paths: List[Union[str, Path]]) -> BatchResult:
        """Transcribe several files, recording per-file failures and moving on."""
        batch = BatchResult()
        for i, path in enumerate(paths):
            logger.info(f"Processing file {i + 1}/{len(paths)}", extra={"path": str(path)})
            try:
                batch.results.append(self.run(path))
            except VoxPipelineError as e:
                batch.failures[str(path)] = e
                logger.warning("Skipping failed file", extra={
                    "path": str(path),
                    "error_type": type(e).__name__,
                    "error": str(e),
                })

        logger.info("Batch completed", extra={
            "total": len(paths),
            "succeeded": len(batch.results),
            "failed": len(batch.failures),
        })
        return batch
