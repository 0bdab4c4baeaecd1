"""
Error types raised by the transcription core.
"""


class TranscriptionError(Exception):
    """Base class for all transcription errors."""


class InvalidSampleRate(TranscriptionError):
    """Audio was not recorded at the model's sample rate."""

    def __init__(self, sample_rate: int, expected: int):
        self.sample_rate = sample_rate
        self.expected = expected
        super().__init__(
            f"The audio clip should have frequency {expected / 1000:g}kHz. "
            f"It has frequency {sample_rate / 1000:g}kHz"
        )


class ClipTooLong(TranscriptionError):
    """Audio is longer than the model's context window."""

    def __init__(self, num_samples: int, sample_rate: int, max_seconds: int):
        self.num_samples = num_samples
        self.sample_rate = sample_rate
        self.max_seconds = max_seconds
        super().__init__(
            f"The audio clip is too long. It must be at most {max_seconds} seconds. "
            f"This clip is {num_samples / sample_rate:.1f} seconds."
        )


class ModelLoadFailure(TranscriptionError):
    """A model or vocabulary file could not be loaded."""


class ModelInferenceFailure(TranscriptionError):
    """A model call failed or returned an unexpected tensor."""


class MalformedByteSequence(TranscriptionError):
    """A vocabulary fragment holds a character outside the byte remap table."""


class SequenceCapacityExceeded(TranscriptionError):
    """A token was appended to a full output sequence."""
