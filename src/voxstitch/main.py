from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from voxstitch.config import VoxStitchConfig, load_config
from voxstitch.logging_system import get_logger, get_logging_config, setup_logging
from voxstitch.output import write_transcript
from voxstitch.pipeline import (
    InferenceEngine,
    TranscriptionPipeline,
    VoxConfigError,
    VoxtralEngine,
)

logger = get_logger("voxstitch.main")


def _apply_overrides(config: VoxStitchConfig, args: argparse.Namespace) -> VoxStitchConfig:
    data = config.model_dump(mode="python")
    if args.cpu:
        data["inference"]["force_cpu"] = True
    if args.model_id:
        data["inference"]["model_id"] = args.model_id
    if args.workers is not None:
        data["inference"]["max_workers"] = args.workers
    if args.window_seconds is not None:
        data["chunking"]["window_seconds"] = args.window_seconds
    if args.overlap is not None:
        data["chunking"]["overlap_fraction"] = args.overlap
    if args.out_dir:
        data["output"]["out_dir"] = Path(args.out_dir)
    # Re-validate so CLI values obey the same bounds as config files
    try:
        return VoxStitchConfig.model_validate(data)
    except ValidationError as e:
        raise VoxConfigError(f"Invalid command-line override: {e}") from e


def build_engine(config: VoxStitchConfig) -> InferenceEngine:
    return VoxtralEngine.from_config(config.inference)


def _output_dir_for(audio_path: Path, out_root: Path, explicit: bool, single: bool) -> Path:
    if explicit and single:
        return out_root
    if explicit:
        return out_root / audio_path.stem
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return out_root / f"{audio_path.stem}-{timestamp}"


def run(args: argparse.Namespace) -> int:
    try:
        config = _apply_overrides(load_config(args.config), args)
    except (FileNotFoundError, ValueError, VoxConfigError) as e:
        print(f"[voxstitch] invalid configuration: {e}", file=sys.stderr)
        return 1

    # Logging was first configured at import from the default config lookup
    setup_logging(get_logging_config(config))

    engine = build_engine(config)
    pipeline = TranscriptionPipeline(engine, config=config)

    audio_paths = [Path(p) for p in args.audio]
    batch = pipeline.run_batch(audio_paths)

    single = len(audio_paths) == 1
    for result in batch.results:
        out_dir = _output_dir_for(
            result.path, Path(config.output.out_dir), bool(args.out_dir), single
        )
        written = write_transcript(
            result.transcript, out_dir, config.output, metadata=result.metadata
        )
        if not single:
            print(f"==> {result.path} <==")
        print(result.text)
        logger.info("Outputs written", extra={
            "path": str(result.path),
            "files": {k: str(v) for k, v in written.items()},
        })

    for path, error in batch.failures.items():
        print(f"[voxstitch] {path}: {type(error).__name__}: {error}", file=sys.stderr)

    return 0 if batch.ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voxstitch",
        description="VoxStitch: decode → resample → chunk → transcribe → stitch",
    )
    parser.add_argument("audio", nargs="+", help="Input audio file(s)")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml (or set VOXSTITCH_CONFIG)")
    parser.add_argument("--cpu", action="store_true", help="Force CPU inference even if a GPU is available")
    parser.add_argument("--model-id", type=str, default=None, help="Model identifier or local checkpoint path")
    parser.add_argument("--window-seconds", type=float, default=None, help="Chunk window length in seconds")
    parser.add_argument("--overlap", type=float, default=None, help="Overlap fraction between chunks, in [0, 1)")
    parser.add_argument("--out-dir", type=str, default=None, help="Output directory (auto-create if missing)")
    parser.add_argument("--workers", type=int, default=None, help="Concurrent chunk transcriptions")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    raise SystemExit(run(args))


if __name__ == "__main__":
    main()
