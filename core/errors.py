"""
Exception hierarchy for subtitle extraction.

Per-frame and per-pass failures are absorbed where they occur; the
remaining errors propagate to the caller of an extraction.
"""

from typing import List, Optional


class SubtitleExtractionError(Exception):
    """Base class for all extraction errors."""
    pass


class ToolNotFound(SubtitleExtractionError):
    """A required external tool (mkvextract, tesseract, ...) is missing."""

    def __init__(self, tool: str, path: Optional[str] = None):
        self.tool = tool
        self.path = path
        location = f" at '{path}'" if path and path != tool else ""
        super().__init__(f"{tool} not found{location}. Install it or set its path in the configuration.")


class MalformedContainer(SubtitleExtractionError):
    """A subtitle container could not be parsed structurally."""
    pass


class ProcessTimeout(SubtitleExtractionError):
    """A subprocess exceeded its computed time budget."""

    def __init__(self, command: List[str], timeout: float):
        self.command = command
        self.timeout = timeout
        name = command[0] if command else "process"
        super().__init__(f"{name} timed out after {timeout:.0f} seconds")


class ExtractionFailed(SubtitleExtractionError):
    """An extraction tool exited with an error or produced no output."""
    pass


class UnsupportedCodec(SubtitleExtractionError):
    """The selected track's codec cannot be converted to SRT."""

    def __init__(self, codec: str, guidance: str = ""):
        self.codec = codec
        self.guidance = guidance
        message = f"Unsupported subtitle codec: {codec}"
        if guidance:
            message = f"{message}. {guidance}"
        super().__init__(message)


class OcrFrameFailure(SubtitleExtractionError):
    """Recognition of a single bitmap frame failed."""

    def __init__(self, frame_index: int, reason: str):
        self.frame_index = frame_index
        super().__init__(f"OCR failed for frame {frame_index}: {reason}")


class CorrectionEngineFailure(SubtitleExtractionError):
    """Both multi-pass and single-pass correction failed."""
    pass


class OperationCancelled(SubtitleExtractionError):
    """The operation was cancelled by the caller."""

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message)
