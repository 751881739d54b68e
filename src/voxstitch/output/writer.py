"""
Transcript writers for VoxStitch.

Writes the stitched transcript as plain text and, when configured, as a JSON
document carrying the transcript together with run metadata.
"""

import json
import textwrap
from pathlib import Path
from typing import Any, Dict, Optional

from ..config.schemas import OutputConfig
from ..logging_system import get_logger, timed
from ..pipeline.buffers import Transcript

logger = get_logger("voxstitch.output")


def wrap_text(text: str, width: int) -> str:
    """Wrap text to specified width, preserving paragraphs."""
    if width <= 0:
        return text

    wrapped_paragraphs = []
    for para in text.split("\n\n"):
        para = para.strip()
        if not para:
            wrapped_paragraphs.append("")
            continue
        wrapped_paragraphs.append(
            textwrap.fill(
                para,
                width=width,
                break_long_words=False,
                break_on_hyphens=False,
            )
        )
    return "\n\n".join(wrapped_paragraphs)


def format_transcript_text(transcript: Transcript, wrap_width: int = 0) -> str:
    """Render a transcript as text, newline-terminated."""
    text = wrap_text(transcript.text, wrap_width)
    return text + "\n" if text else ""


class OutputWriter:
    """Writes transcript files according to OutputConfig."""

    def __init__(self, config: OutputConfig):
        self.config = config

    def write(
        self,
        transcript: Transcript,
        output_dir: Path,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Path]:
        """
        Write the configured outputs to output_dir.

        Returns:
            Dictionary mapping output kinds ("text", "json") to file paths
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        written_files: Dict[str, Path] = {}

        text_path = output_dir / self.config.file_text
        with open(text_path, "w", encoding="utf-8") as f:
            f.write(format_transcript_text(transcript, self.config.wrap_width))
        written_files["text"] = text_path

        if self.config.write_json:
            json_path = output_dir / self.config.file_json
            with open(json_path, "w", encoding="utf-8") as f:
                json.dump(
                    self._build_json(transcript, metadata or {}),
                    f,
                    ensure_ascii=False,
                    indent=2,
                    default=str,
                )
            written_files["json"] = json_path

        logger.info("Transcript written", extra={
            "output_dir": str(output_dir),
            "files": sorted(written_files),
        })
        return written_files

    def _build_json(self, transcript: Transcript, metadata: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "transcript": transcript.text,
            "stitching": {
                "fragment_count": transcript.fragment_count,
                "merged_overlaps": transcript.merged_overlaps,
                "fallback_joins": transcript.fallback_joins,
            },
            "metadata": metadata,
        }


@timed("write_transcript", log_result=True)
def write_transcript(
    transcript: Transcript,
    output_dir: Path,
    config: OutputConfig,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Path]:
    """
    Convenience function to write outputs with the default writer.

    Args:
        transcript: Stitched transcript
        output_dir: Directory to write outputs to
        config: Output configuration
        metadata: Additional metadata stored in the JSON document

    Returns:
        Dictionary mapping output kinds to file paths
    """
    return OutputWriter(config).write(transcript, output_dir, metadata=metadata)
