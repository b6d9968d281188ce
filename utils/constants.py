"""
Shared constants and configurations for the subtitle extraction application.

This module contains all the constants used across different modules including:
- Supported file formats and extensions
- SUP/PGS segment codes and timing base
- Process timeouts for external tools
- Default configuration values
"""

from enum import Enum
from typing import Set, Dict

# ============================================================================
# FILE FORMAT CONSTANTS
# ============================================================================

class SubtitleFormat(Enum):
    """Supported subtitle formats."""
    SRT = "srt"
    ASS = "ass"
    SSA = "ssa"
    VTT = "vtt"

    @classmethod
    def from_extension(cls, ext: str) -> 'SubtitleFormat':
        """
        Get format from file extension.

        Args:
            ext: File extension (with or without dot)

        Returns:
            SubtitleFormat enum value

        Raises:
            ValueError: If extension is not supported
        """
        ext = ext.lower().lstrip('.')
        for format_type in cls:
            if format_type.value == ext:
                return format_type
        raise ValueError(f"Unsupported subtitle format: {ext}")

# Supported video container formats
VIDEO_EXTENSIONS: Set[str] = {'.mkv', '.mp4', '.m4v', '.mka', '.mks', '.webm'}

# Containers handled through ffprobe/ffmpeg rather than MKVToolNix
FFMPEG_CONTAINER_EXTENSIONS: Set[str] = {'.mp4', '.m4v'}

# Supported subtitle file extensions
SUBTITLE_EXTENSIONS: Set[str] = {'.srt', '.ass', '.ssa', '.vtt'}

# Raw bitmap subtitle container
SUP_EXTENSION: str = '.sup'

# UTF-8 BOM marker
UTF8_BOM: bytes = b"\xef\xbb\xbf"

# ============================================================================
# PGS / SUP CONSTANTS
# ============================================================================

# Segment magic "PG"
PGS_MAGIC: bytes = b"PG"

# PTS/DTS tick rate of the PGS format (90 kHz)
PGS_TICKS_PER_SECOND: int = 90000
PGS_TICKS_PER_MS: int = 90

PGS_SEGMENT_HEADER_SIZE: int = 13

# Segment type codes
PGS_PALETTE_SEGMENT: int = 0x14
PGS_OBJECT_SEGMENT: int = 0x15
PGS_COMPOSITION_SEGMENT: int = 0x16
PGS_WINDOW_SEGMENT: int = 0x17
PGS_END_SEGMENT: int = 0x80

# Display time for the last caption when no clearing composition follows
PGS_DEFAULT_LAST_DURATION_MS: int = 3000

# ============================================================================
# PROCESS AND TIMEOUT CONSTANTS
# ============================================================================

# mkvmerge -J / ffprobe probing (seconds)
DEFAULT_PROBE_TIMEOUT: int = 60

# Single Tesseract call (seconds)
OCR_FRAME_TIMEOUT: int = 30

# Page segmentation mode: single uniform block of text
TESSERACT_PAGE_SEGMENTATION_MODE: int = 6

# Grace period between terminate and kill of a process tree (seconds)
PROCESS_KILL_GRACE: float = 5.0

# Poll interval used while waiting on a subprocess (seconds)
PROCESS_POLL_INTERVAL: float = 0.1

# Extraction timeout scaling (minutes)
EXTRACTION_BASE_TIMEOUT_MINUTES: float = 5.0
EXTRACTION_MAX_TIMEOUT_MINUTES: float = 4 * 60
EXTRACTION_UNKNOWN_SIZE_TIMEOUT_MINUTES: float = 2 * 60

# ============================================================================
# PROGRESS MILESTONES (fraction of total work)
# ============================================================================

PROGRESS_MILESTONES: Dict[str, float] = {
    'text_extraction_start': 0.50,
    'text_extraction_complete': 0.80,
    'pgs_extraction_start': 0.30,
    'ocr_start': 0.50,
    'ocr_complete': 0.90,
    'complete': 1.0,
}

# ============================================================================
# DEFAULT CONFIGURATION VALUES
# ============================================================================

DEFAULT_OCR_LANGUAGE: str = "eng"

DEFAULT_FILE_NAME_PATTERN: str = "{basename}.{lang}{forced}.srt"

FORCED_SUFFIX: str = ".forced"
CLOSED_CAPTION_SUFFIX: str = ".cc"

# Prefix for settings read from the environment / .env file
ENV_PREFIX: str = "SRTX_"

# Default log format
DEFAULT_LOG_FORMAT: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_DATE_FORMAT: str = '%Y-%m-%d %H:%M:%S'

# Application metadata
APP_NAME: str = "SrtExtractor Suite"
APP_VERSION: str = "1.0.0"
APP_DESCRIPTION: str = """
Extract subtitle tracks from MKV and MP4 containers as clean SRT files:
- Direct extraction of text tracks (SRT, ASS, WebVTT)
- OCR of Blu-ray PGS image subtitles with Tesseract
- Multi-pass correction of common OCR errors
- Batch queue processing with resume support
"""
