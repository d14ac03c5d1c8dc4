"""Exception types raised by the render pipeline."""
from __future__ import annotations


class KenBurnsError(Exception):
    """Base class for every error raised by ken_burns_studio."""


class ImageReadError(KenBurnsError):
    """Source raster is missing, undecodable or has no dimensions."""

    def __init__(self, file_name: str, reason: str = "unreadable image"):
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Failed to read image file: {file_name} ({reason})")


class EncodeError(KenBurnsError):
    """An encode or merge step failed."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"{stage}: {message}")


class FFmpegError(EncodeError):
    """ffmpeg exited with a non-zero status."""

    def __init__(self, stage: str, returncode: int, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        tail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(stage, f"ffmpeg exited with {returncode}: {tail}")


class EncoderUnavailableError(EncodeError):
    """The requested codec is not supported by the local ffmpeg build."""

    def __init__(self, stage: str, codec: str, message: str = ""):
        self.codec = codec
        super().__init__(stage, f"encoder {codec} unavailable {message}".rstrip())


class CompositionError(KenBurnsError):
    """The compositor was asked to merge an empty clip list."""


class ExportError(KenBurnsError):
    """An export request failed; ``stage`` names the failing step."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"Export failed during {stage}: {message}")
