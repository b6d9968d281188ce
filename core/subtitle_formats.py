"""
Subtitle format handlers and data structures.

This module provides:
- Core data structures for subtitle events and files
- Format-specific parsers for SRT, ASS, VTT
- SRT writing (the output format of every extraction)
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from utils.constants import SubtitleFormat
from utils.logging_config import get_logger
from core.encoding_detection import EncodingDetector
from core.timing_utils import TimeConverter

logger = get_logger(__name__)

_BLOCK_SEPARATOR = re.compile(r'\n\s*\n')
_ASS_OVERRIDE_TAG = re.compile(r'\{[^}]*\}')
_HTML_TAG = re.compile(r'</?[a-zA-Z][^>]*>')


@dataclass
class SubtitleEvent:
    """Represents a single subtitle event/cue."""
    start: float  # Start time in seconds
    end: float    # End time in seconds
    text: str     # Display text
    style: Optional[str] = None  # Style name (for ASS/SSA)

    def duration(self) -> float:
        """Get the duration of this event in seconds."""
        return self.end - self.start

    def format_time_range(self, format_type: str = 'srt') -> str:
        """Format the time range as a cue timing line."""
        start_str = TimeConverter.seconds_to_time(self.start, format_type)
        end_str = TimeConverter.seconds_to_time(self.end, format_type)
        return f"{start_str} --> {end_str}"


@dataclass
class SubtitleFile:
    """Represents a complete subtitle file with metadata."""
    path: Optional[Path]
    format: SubtitleFormat
    events: List[SubtitleEvent] = field(default_factory=list)
    encoding: str = 'utf-8'


def _normalize_newlines(content: str) -> str:
    return content.replace('\r\n', '\n').replace('\r', '\n').lstrip('\ufeff')


class SubtitleParser:
    """Base class for subtitle format parsers."""

    format = SubtitleFormat.SRT

    @staticmethod
    def clean_subtitle_text(text: str, remove_formatting: bool = False) -> str:
        """
        Clean subtitle text by removing or normalizing formatting codes.

        Args:
            text: Raw subtitle text
            remove_formatting: If True, strip ASS override blocks and HTML tags

        Returns:
            Cleaned text
        """
        # Replace ASS newlines with actual newlines and hard spaces with spaces
        text = text.replace('\\N', '\n').replace('\\n', '\n').replace('\\h', ' ')

        if remove_formatting:
            text = _ASS_OVERRIDE_TAG.sub('', text)
            text = _HTML_TAG.sub('', text)
            text = '\n'.join(line.strip() for line in text.split('\n'))
            text = text.strip()

        return text

    @classmethod
    def parse(cls, file_path: Path) -> SubtitleFile:
        """
        Parse a subtitle file.

        Args:
            file_path: Path to the subtitle file

        Returns:
            SubtitleFile object

        Raises:
            IOError: If file cannot be read
        """
        content, encoding = EncodingDetector.read_file_with_encoding(file_path)
        subtitle_file = cls.parse_content(content)
        subtitle_file.path = file_path
        subtitle_file.encoding = encoding
        logger.info(f"Parsed {len(subtitle_file.events)} events from "
                    f"{cls.format.value.upper()} file: {file_path.name}")
        return subtitle_file

    @classmethod
    def parse_content(cls, content: str) -> SubtitleFile:
        raise NotImplementedError


class SRTParser(SubtitleParser):
    """Parser and writer for SRT subtitle format."""

    format = SubtitleFormat.SRT

    @classmethod
    def parse_content(cls, content: str) -> SubtitleFile:
        """
        Parse SRT text.

        Blocks without a valid timing line are skipped with a warning.
        """
        content = _normalize_newlines(content)
        blocks = _BLOCK_SEPARATOR.split(content.strip())
        events = []

        for block_idx, block in enumerate(blocks):
            lines = block.strip().split('\n')
            if not lines or not lines[0].strip():
                continue

            # Skip index number if present
            if lines[0].strip().isdigit():
                lines = lines[1:]
            if not lines:
                continue

            time_line = lines[0].strip()
            try:
                start_seconds, end_seconds = TimeConverter.parse_srt_timestamp(time_line)
            except ValueError as e:
                logger.warning(f"Invalid timestamp in block {block_idx}: {time_line} - {e}")
                continue

            events.append(SubtitleEvent(
                start=start_seconds,
                end=end_seconds,
                text='\n'.join(lines[1:]).strip()
            ))

        return SubtitleFile(path=None, format=SubtitleFormat.SRT, events=events)

    @staticmethod
    def to_string(events: List[SubtitleEvent]) -> str:
        """
        Render events as SRT text, ordered by start time and renumbered from 1.

        Events whose text is empty are dropped.
        """
        ordered = sorted((e for e in events if e.text.strip()), key=lambda e: (e.start, e.end))
        blocks = []
        for i, event in enumerate(ordered, start=1):
            blocks.append(f"{i}\n{event.format_time_range('srt')}\n{event.text.strip()}\n")
        return '\n'.join(blocks)


class VTTParser(SubtitleParser):
    """Parser for WebVTT subtitle format."""

    format = SubtitleFormat.VTT

    @classmethod
    def parse_content(cls, content: str) -> SubtitleFile:
        """
        Parse WebVTT text.

        The header, NOTE/STYLE/REGION blocks and cue settings are ignored;
        markup tags are stripped from cue text.
        """
        content = _normalize_newlines(content)
        blocks = _BLOCK_SEPARATOR.split(content.strip())
        events = []

        for block in blocks:
            lines = block.strip().split('\n')
            if not lines or lines[0].startswith(('WEBVTT', 'NOTE', 'STYLE', 'REGION')):
                continue

            # Find timing line (an optional cue identifier may precede it)
            time_line_idx = next((i for i, line in enumerate(lines) if '-->' in line), -1)
            if time_line_idx == -1:
                continue

            try:
                start_seconds, end_seconds = TimeConverter.parse_vtt_timestamp(lines[time_line_idx])
            except ValueError:
                logger.debug(f"Skipping VTT cue with bad timing: {lines[time_line_idx]}")
                continue

            text = '\n'.join(lines[time_line_idx + 1:])
            events.append(SubtitleEvent(
                start=start_seconds,
                end=end_seconds,
                text=cls.clean_subtitle_text(text, remove_formatting=True)
            ))

        return SubtitleFile(path=None, format=SubtitleFormat.VTT, events=events)


class ASSParser(SubtitleParser):
    """Parser for ASS/SSA subtitle format."""

    format = SubtitleFormat.ASS

    @classmethod
    def parse_content(cls, content: str) -> SubtitleFile:
        """
        Parse ASS/SSA text, reading Dialogue lines from the [Events] section.

        Override tags ({\\i1}, {\\pos(...)}) are removed and \\N becomes a newline.
        """
        content = _normalize_newlines(content)
        events = []
        format_fields: List[str] = []
        in_events = False

        for line in content.split('\n'):
            stripped = line.strip()

            if re.match(r'^\[.*\]$', stripped):
                in_events = stripped.lower() == '[events]'
                continue
            if not in_events:
                continue

            lowered = stripped.lower()
            if lowered.startswith('format:'):
                format_fields = [f.strip().lower() for f in stripped.split(':', 1)[1].split(',')]
            elif lowered.startswith('dialogue:'):
                event = cls._parse_dialogue_line(stripped, format_fields)
                if event:
                    events.append(event)

        return SubtitleFile(path=None, format=SubtitleFormat.ASS, events=events)

    @classmethod
    def _parse_dialogue_line(cls, line: str, format_fields: List[str]) -> Optional[SubtitleEvent]:
        """
        Parse a dialogue line from ASS format.

        Args:
            line: Dialogue line to parse
            format_fields: List of field names from format line

        Returns:
            SubtitleEvent or None if parsing fails
        """
        body = line.split(':', 1)[1]

        # Split by comma, but preserve commas in the text field
        field_count = len(format_fields) if format_fields else 10
        parts = body.split(',', field_count - 1)

        try:
            start_idx = format_fields.index('start') if format_fields else 1
            end_idx = format_fields.index('end') if format_fields else 2
            text_idx = format_fields.index('text') if format_fields else 9
            style_idx = format_fields.index('style') if 'style' in format_fields else 3
        except ValueError:
            # Fallback to default positions
            start_idx, end_idx, style_idx, text_idx = 1, 2, 3, 9

        if max(start_idx, end_idx, text_idx) >= len(parts):
            logger.debug(f"Dialogue line has too few fields: {line}")
            return None

        try:
            start_seconds = TimeConverter.time_to_seconds(parts[start_idx], 'ass')
            end_seconds = TimeConverter.time_to_seconds(parts[end_idx], 'ass')
        except ValueError:
            logger.debug(f"Failed to parse dialogue timing: {line}")
            return None

        return SubtitleEvent(
            start=start_seconds,
            end=end_seconds,
            text=cls.clean_subtitle_text(parts[text_idx], remove_formatting=True),
            style=parts[style_idx].strip() if style_idx < len(parts) else None
        )


class SubtitleFormatFactory:
    """Factory class for looking up subtitle parsers."""

    _parsers = {
        SubtitleFormat.SRT: SRTParser,
        SubtitleFormat.VTT: VTTParser,
        SubtitleFormat.ASS: ASSParser,
        SubtitleFormat.SSA: ASSParser,
    }

    @classmethod
    def get_parser(cls, format_type: SubtitleFormat):
        """
        Get a parser for the specified format.

        Raises:
            ValueError: If format is not supported
        """
        if format_type not in cls._parsers:
            raise ValueError(f"Unsupported subtitle format: {format_type}")
        return cls._parsers[format_type]

    @classmethod
    def parse_file(cls, file_path: Path) -> SubtitleFile:
        """
        Parse a subtitle file, choosing the parser from its extension.

        Raises:
            ValueError: If format is not supported
            IOError: If file cannot be read
        """
        try:
            format_type = SubtitleFormat.from_extension(file_path.suffix)
        except ValueError:
            raise ValueError(f"Unsupported file extension: {file_path.suffix}")

        return cls.get_parser(format_type).parse(file_path)
