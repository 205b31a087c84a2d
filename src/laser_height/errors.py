"""
Error Taxonomy Module

Every failure raised by the measurement pipeline derives from
LaserHeightError and names the pipeline stage it came from, so callers can
report where a frame failed without parsing messages.

Fatality:
- ConfigurationError: aborts before any row is processed
- RangeError: internal invariant violation, aborts the frame
- DecodeError: aborts the frame, other frames are unaffected
- AmbiguousRowError: only raised in strict mode, otherwise rows get a sentinel
- SinkError: reported to the caller, computed heights stay valid
- VideoSourceError: the video could not be opened
"""


class LaserHeightError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, stage: str = ""):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage:
            return f"[{self.stage}] {message}"
        return message


class ConfigurationError(LaserHeightError, ValueError):
    """Options are invalid or unsupported."""

    def __init__(self, message: str, stage: str = "validation"):
        super().__init__(message, stage)


class RangeError(LaserHeightError, ArithmeticError):
    """A color distance left the representable 16-bit range."""

    def __init__(self, message: str, stage: str = "color_distance"):
        super().__init__(message, stage)


class DecodeError(LaserHeightError, ValueError):
    """Frame bytes are not a decodable image."""

    def __init__(self, message: str, stage: str = "decode"):
        super().__init__(message, stage)


class AmbiguousRowError(LaserHeightError):
    """A row has neither one nor two troughs."""

    def __init__(self, message: str, row=None, trough_count: int = 0,
                 stage: str = "height_calculation"):
        super().__init__(message, stage)
        self.row = row
        self.trough_count = trough_count


class SinkError(LaserHeightError, OSError):
    """A debug artifact could not be persisted."""

    def __init__(self, message: str, stage: str = "debug_sink"):
        super().__init__(message, stage)


class VideoSourceError(LaserHeightError, OSError):
    """A video file could not be opened for reading."""

    def __init__(self, message: str, stage: str = "video"):
        super().__init__(message, stage)


class EndOfStream(Exception):
    """Raised by a video handle when no frames are left. Not an error."""
