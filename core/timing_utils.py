"""
Time conversion utilities for subtitle processing.

This module provides functions for:
- Converting between subtitle time formats (SRT, ASS, VTT)
- Converting PGS presentation timestamps (90 kHz ticks)
- Human-readable durations
"""

import re
from typing import Tuple
from utils.constants import PGS_TICKS_PER_SECOND, PGS_TICKS_PER_MS
from utils.logging_config import get_logger

logger = get_logger(__name__)

_SRT_TIMESTAMP_LINE = re.compile(
    r'(\d{1,2}:\d{2}:\d{2}[,\.]\d{1,3})\s*-->\s*(\d{1,2}:\d{2}:\d{2}[,\.]\d{1,3})'
)
_VTT_TIMESTAMP_LINE = re.compile(
    r'((?:\d{1,2}:)?\d{2}:\d{2}\.\d{3})\s*-->\s*((?:\d{1,2}:)?\d{2}:\d{2}\.\d{3})'
)


class TimeConverter:
    """Handles time format conversions for subtitles."""

    @staticmethod
    def time_to_seconds(time_str: str, format_type: str = 'srt') -> float:
        """
        Convert time string to seconds based on format type.

        Args:
            time_str: Time string to convert
            format_type: Format type ('srt', 'ass', or 'vtt')

        Returns:
            Time in seconds as float

        Raises:
            ValueError: If time string format is invalid

        Example:
            >>> TimeConverter.time_to_seconds("01:23:45,678", "srt")
            5025.678
        """
        try:
            time_str = time_str.strip()
            if format_type == 'srt':
                # Handle both comma and period as decimal separator
                h, m, s = time_str.replace(',', '.').split(':')
                whole, _, frac = s.partition('.')
                fraction = int(frac.ljust(3, '0')[:3]) / 1000.0 if frac else 0.0
                return int(h) * 3600 + int(m) * 60 + int(whole) + fraction

            elif format_type == 'ass':
                h, m, s = time_str.split(':')
                whole, _, frac = s.partition('.')
                fraction = int(frac.ljust(2, '0')[:2]) / 100.0 if frac else 0.0
                return int(h) * 3600 + int(m) * 60 + int(whole) + fraction

            elif format_type == 'vtt':
                # WebVTT uses HH:MM:SS.mmm or MM:SS.mmm
                parts = time_str.split(':')
                if len(parts) == 2:
                    h = '0'
                    m, s = parts
                else:
                    h, m, s = parts
                whole, _, frac = s.partition('.')
                fraction = int(frac.ljust(3, '0')[:3]) / 1000.0 if frac else 0.0
                return int(h) * 3600 + int(m) * 60 + int(whole) + fraction

        except (ValueError, AttributeError) as e:
            logger.debug(f"Failed to parse time string '{time_str}' as {format_type}: {e}")
            raise ValueError(f"Invalid time format: {time_str}")

        raise ValueError(f"Unknown time format type: {format_type}")

    @staticmethod
    def seconds_to_time(seconds: float, format_type: str = 'srt') -> str:
        """
        Convert seconds to time string based on format type.

        Args:
            seconds: Time in seconds
            format_type: Output format ('srt', 'ass', or 'vtt')

        Returns:
            Formatted time string

        Example:
            >>> TimeConverter.seconds_to_time(3825.678, "srt")
            '01:03:45,678'
        """
        if seconds < 0:
            seconds = 0

        total_ms = int(round(seconds * 1000))
        ms = total_ms % 1000
        total_s = total_ms // 1000
        s = total_s % 60
        m = (total_s // 60) % 60
        h = total_s // 3600

        if format_type == 'srt':
            return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"
        elif format_type == 'ass':
            cs = ms // 10  # Convert to centiseconds
            return f"{h}:{m:02d}:{s:02d}.{cs:02d}"
        else:
            return f"{h:02d}:{m:02d}:{s:02d}.{ms:03d}"

    @staticmethod
    def ticks_to_milliseconds(ticks: int) -> float:
        """
        Convert a 90 kHz PGS timestamp to milliseconds.

        Example:
            >>> TimeConverter.ticks_to_milliseconds(90000)
            1000.0
        """
        return ticks / PGS_TICKS_PER_MS

    @staticmethod
    def ticks_to_seconds(ticks: int) -> float:
        """Convert a 90 kHz PGS timestamp to seconds."""
        return ticks / PGS_TICKS_PER_SECOND

    @staticmethod
    def parse_srt_timestamp(timestamp_line: str) -> Tuple[float, float]:
        """
        Parse SRT timestamp line to get start and end times in seconds.

        Args:
            timestamp_line: SRT timestamp line (e.g., "00:01:23,456 --> 00:01:26,789")

        Returns:
            Tuple of (start_seconds, end_seconds)

        Raises:
            ValueError: If timestamp format is invalid
        """
        match = _SRT_TIMESTAMP_LINE.match(timestamp_line.strip())
        if not match:
            raise ValueError(f"Invalid SRT timestamp format: {timestamp_line}")

        start_str, end_str = match.groups()
        return (TimeConverter.time_to_seconds(start_str, 'srt'),
                TimeConverter.time_to_seconds(end_str, 'srt'))

    @staticmethod
    def parse_vtt_timestamp(timestamp_line: str) -> Tuple[float, float]:
        """
        Parse a WebVTT cue timing line, ignoring cue settings after the end time.

        Raises:
            ValueError: If timestamp format is invalid
        """
        match = _VTT_TIMESTAMP_LINE.search(timestamp_line)
        if not match:
            raise ValueError(f"Invalid VTT timestamp format: {timestamp_line}")

        start_str, end_str = match.groups()
        return (TimeConverter.time_to_seconds(start_str, 'vtt'),
                TimeConverter.time_to_seconds(end_str, 'vtt'))

    @staticmethod
    def format_duration(seconds: float) -> str:
        """
        Format duration in seconds to human-readable string.

        Example:
            >>> TimeConverter.format_duration(3825.5)
            '1h 3m 45.5s'
        """
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            return f"{minutes}m {seconds % 60:.1f}s"
        else:
            hours = int(seconds // 3600)
            remaining_seconds = seconds % 3600
            minutes = int(remaining_seconds // 60)
            return f"{hours}h {minutes}m {remaining_seconds % 60:.1f}s"
