"""
Output format normalization.

mkvextract writes a track in its native format regardless of the output
extension, so a file named ``movie.en.srt`` may actually contain ASS or
WebVTT markup. The normalizer inspects the content and transcodes such
files in place to plain SRT.
"""

import re
from enum import Enum
from pathlib import Path
from utils.file_operations import FileHandler
from utils.logging_config import get_logger
from core.encoding_detection import EncodingDetector
from core.subtitle_formats import ASSParser, SRTParser, VTTParser

logger = get_logger(__name__)

_ASS_SECTION_HEADER = re.compile(r'^\s*\[(Script Info|V4\+? Styles|Events)\]\s*$',
                                 re.IGNORECASE | re.MULTILINE)


class DetectedFormat(Enum):
    """Format inferred from file content."""
    SRT = "srt"
    ASS = "ass"
    WEBVTT = "webvtt"


class FormatNormalizer:
    """Detects markup dialects and converts them to SRT."""

    @staticmethod
    def detect(content: str) -> DetectedFormat:
        """
        Detect the subtitle dialect of a text.

        Example:
            >>> FormatNormalizer.detect("WEBVTT\\n\\n00:01.000 --> 00:02.000\\nHi")
            <DetectedFormat.WEBVTT: 'webvtt'>
        """
        stripped = content.lstrip('\ufeff \t\r\n')
        if stripped.startswith('WEBVTT'):
            return DetectedFormat.WEBVTT
        if _ASS_SECTION_HEADER.search(content):
            return DetectedFormat.ASS
        return DetectedFormat.SRT

    @staticmethod
    def to_srt(content: str) -> str:
        """
        Convert subtitle text of any supported dialect to SRT text.

        Plain SRT input is returned unchanged.
        """
        detected = FormatNormalizer.detect(content)
        if detected == DetectedFormat.SRT:
            return content
        parser = ASSParser if detected == DetectedFormat.ASS else VTTParser
        subtitle_file = parser.parse_content(content)
        return SRTParser.to_string(subtitle_file.events)

    @staticmethod
    def normalize_file(path: Path) -> DetectedFormat:
        """
        Transcode a file to SRT in place when it contains ASS or WebVTT.

        Args:
            path: Extracted subtitle file

        Returns:
            The format that was detected before normalization

        Raises:
            IOError: If the file cannot be read or written
        """
        content, _ = EncodingDetector.read_file_with_encoding(path)
        detected = FormatNormalizer.detect(content)
        if detected == DetectedFormat.SRT:
            logger.debug(f"{path.name} is already plain SRT")
            return detected

        logger.info(f"{path.name} contains {detected.value.upper()} markup, converting to SRT")
        FileHandler.atomic_write(path, FormatNormalizer.to_srt(content))
        return detected
