"""Failures reported by the capture/classification side of the pipeline."""


class ClassificationError(Exception):
    """Base class for terminal classification stream failures."""

    kind = "classification_error"


class AudioStreamInterrupted(ClassificationError):
    """Raised when the audio stream is cut off while classifying."""

    kind = "stream_interrupted"


class NoMicrophoneAccess(ClassificationError):
    """Raised when no input device can be acquired for capture."""

    kind = "access_denied"
