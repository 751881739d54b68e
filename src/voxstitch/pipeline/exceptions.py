"""
Custom exceptions for the VoxStitch pipeline.

Every stage raises a subclass of VoxPipelineError so that batch callers can
isolate one failed file without catching unrelated programming errors.
"""


class VoxPipelineError(RuntimeError):
    """Base exception for VoxStitch pipeline errors."""
    pass


class DecodeError(VoxPipelineError):
    """Exception raised when an input file cannot be turned into PCM."""
    pass


class UnsupportedFormatError(DecodeError):
    """The container or codec is not recognized by the codec library."""
    pass


class CorruptStreamError(DecodeError):
    """The container was recognized but its audio stream could not be decoded."""
    pass


class AudioIOError(DecodeError):
    """The input file could not be opened or read."""
    pass


class ResampleError(VoxPipelineError):
    """Exception raised for resampling errors."""
    pass


class EmptyInputError(ResampleError):
    """A zero-length buffer was handed to a stage that needs samples."""
    pass


class StitchError(VoxPipelineError):
    """Exception raised for transcript stitching errors."""
    pass


class OutOfOrderError(StitchError):
    """A fragment arrived out of chunk order.

    This is a caller contract violation, never retried.
    """

    def __init__(self, expected_index: int, received_index: int):
        self.expected_index = expected_index
        self.received_index = received_index
        super().__init__(
            f"Transcript fragment out of order: expected index {expected_index}, "
            f"received {received_index}"
        )


class InferenceError(VoxPipelineError):
    """Exception raised when the inference engine fails on a chunk."""
    pass


class VoxConfigError(VoxPipelineError):
    """Exception raised for configuration errors."""
    pass
