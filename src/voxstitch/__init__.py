"""VoxStitch: chunked long-form transcription with overlap-aware stitching."""

__version__ = "0.1.0"
