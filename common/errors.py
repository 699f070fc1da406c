# common/errors.py
from __future__ import annotations


class MediaPipelineError(Exception):
    """Base class for every failure raised by the media pipeline."""


class DecodeError(MediaPipelineError):
    """The input could not be opened or parsed as video."""


class LoadError(DecodeError):
    """A video could not be loaded for thumbnail generation."""


class InvalidDurationError(MediaPipelineError):
    def __init__(self, duration: float):
        super().__init__(f"Invalid video duration: {duration}")
        self.duration = duration


class SamplingTimeoutError(MediaPipelineError, TimeoutError):
    def __init__(self, timeout_s: float):
        super().__init__(f"Timeout: no frame extracted within {timeout_s:g}s")
        self.timeout_s = timeout_s


class CanvasUnavailableError(MediaPipelineError):
    """No drawing surface could be obtained for the requested size."""


class FrameCaptureError(MediaPipelineError):
    """A single seek/draw/encode step failed; recoverable by the caller."""


class ListError(MediaPipelineError):
    def __init__(self, prefix: str, reason: object = None):
        msg = f"Listing failed for prefix={prefix!r}"
        if reason is not None:
            msg += f": {reason}"
        super().__init__(msg)
        self.prefix = prefix


class UploadError(MediaPipelineError):
    def __init__(self, key: str, reason: object = None):
        msg = f"Upload failed for key={key!r}"
        if reason is not None:
            msg += f": {reason}"
        super().__init__(msg)
        self.key = key


class InvalidVideoFileError(MediaPipelineError):
    """Unsupported container/extension or file larger than the upload limit."""
