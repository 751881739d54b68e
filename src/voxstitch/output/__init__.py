"""
VoxStitch Output System

Writers for stitched transcripts (plain text and JSON).
"""

from .writer import OutputWriter, format_transcript_text, wrap_text, write_transcript

__all__ = [
    "OutputWriter",
    "format_transcript_text",
    "wrap_text",
    "write_transcript",
]
