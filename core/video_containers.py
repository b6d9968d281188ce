"""
Video container helpers and FFmpeg integration.

This module provides:
- Container type checks and the size-scaled extraction timeout
- FfmpegContainerAdapter, which probes MP4/M4V files with ffprobe and
  extracts their text subtitle tracks with ffmpeg
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from utils.config import AppSettings
from utils.constants import (
    DEFAULT_PROBE_TIMEOUT, EXTRACTION_BASE_TIMEOUT_MINUTES, EXTRACTION_MAX_TIMEOUT_MINUTES,
    EXTRACTION_UNKNOWN_SIZE_TIMEOUT_MINUTES, FFMPEG_CONTAINER_EXTENSIONS, VIDEO_EXTENSIONS
)
from utils.language_codes import UNDEFINED_LANGUAGE
from utils.logging_config import get_logger
from core.errors import ExtractionFailed, MalformedContainer, UnsupportedCodec
from core.process_runner import CancellationToken, ProcessRunner
from core.tracks import DEFAULT_CLASSIFIER, TrackDescriptor, TrackTypeClassifier, looks_like_closed_caption

logger = get_logger(__name__)

_GB = 1024 ** 3

# ffprobe codec names mapped to Matroska-style codec ids
FFMPEG_CODEC_MAP: Dict[str, str] = {
    'mov_text': 'S_TEXT/3GPP',
    'timed_text': 'S_TEXT/3GPP',
    '3gpp': 'S_TEXT/3GPP',
    'srt': 'S_TEXT/UTF8',
    'subrip': 'S_TEXT/UTF8',
    'ass': 'S_TEXT/ASS',
    'ssa': 'S_TEXT/SSA',
    'vtt': 'S_TEXT/VTT',
    'webvtt': 'S_TEXT/VTT',
}


def is_video_container(file_path: Path) -> bool:
    """
    Check if a file is a supported video container.

    Example:
        >>> is_video_container(Path("movie.mkv"))
        True
    """
    return file_path.suffix.lower() in VIDEO_EXTENSIONS


def uses_ffmpeg(file_path: Path) -> bool:
    """Check if a container is handled by ffprobe/ffmpeg instead of MKVToolNix."""
    return file_path.suffix.lower() in FFMPEG_CONTAINER_EXTENSIONS


def compute_extraction_timeout(size_bytes: Optional[int]) -> float:
    """
    Scale the extraction timeout with the source size.

    Five minutes base plus one minute per GB below 10 GB, two minutes per
    GB up to 50 GB and three minutes per GB beyond, capped at four hours.
    An unknown size gets two hours.

    Args:
        size_bytes: Source file size, or None if unknown

    Returns:
        Timeout in seconds

    Example:
        >>> compute_extraction_timeout(2 * 1024 ** 3)
        420.0
    """
    if size_bytes is None or size_bytes < 0:
        return EXTRACTION_UNKNOWN_SIZE_TIMEOUT_MINUTES * 60.0

    size_gb = size_bytes / _GB
    if size_gb < 10:
        per_gb = 1.0
    elif size_gb < 50:
        per_gb = 2.0
    else:
        per_gb = 3.0

    minutes = min(EXTRACTION_BASE_TIMEOUT_MINUTES + size_gb * per_gb, EXTRACTION_MAX_TIMEOUT_MINUTES)
    return minutes * 60.0


def file_size_or_none(path: Path) -> Optional[int]:
    try:
        return path.stat().st_size
    except OSError:
        return None


def _parse_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class FfmpegContainerAdapter:
    """Probes and extracts subtitle tracks of MP4 containers with FFmpeg."""

    def __init__(self, settings: Optional[AppSettings] = None,
                 runner: Optional[ProcessRunner] = None,
                 classifier: TrackTypeClassifier = DEFAULT_CLASSIFIER):
        self.settings = settings or AppSettings()
        self.runner = runner or ProcessRunner()
        self.classifier = classifier

    @staticmethod
    def is_subtitle_stream(stream: Dict[str, Any]) -> bool:
        """
        Decide whether an ffprobe stream carries subtitles.

        MP4 muxers sometimes store text tracks as data streams; those count
        when their handler name mentions subtitles or text, except
        ``bin_data`` streams which ffmpeg cannot convert.
        """
        codec_type = stream.get('codec_type')
        if codec_type == 'subtitle':
            return True
        if codec_type == 'data':
            codec_name = (stream.get('codec_name') or '').lower()
            handler = (stream.get('tags', {}).get('handler_name') or '').lower()
            return 'bin_data' not in codec_name and ('subtitle' in handler or 'text' in handler)
        return False

    def parse_probe_json(self, data: Dict[str, Any]) -> List[TrackDescriptor]:
        """
        Build track descriptors from ``ffprobe -show_streams`` JSON.

        Display ids count subtitle tracks from 0; the extraction id is the
        ffprobe stream index used by ``-map 0:<index>``.
        """
        tracks = []
        for stream in data.get('streams', []):
            if not self.is_subtitle_stream(stream):
                continue

            codec_name = stream.get('codec_name') or 'unknown'
            tags = stream.get('tags') or {}
            disposition = stream.get('disposition') or {}
            title = tags.get('title') or None
            forced = disposition.get('forced', 0) == 1
            closed_caption = looks_like_closed_caption(title)
            bitrate = _parse_int(stream.get('bit_rate'))
            frame_count = _parse_int(stream.get('nb_frames'))

            tracks.append(TrackDescriptor(
                track_id=len(tracks),
                codec=FFMPEG_CODEC_MAP.get(codec_name.lower(), codec_name),
                language=tags.get('language') or UNDEFINED_LANGUAGE,
                forced=forced,
                closed_caption=closed_caption,
                name=title,
                extraction_id=_parse_int(stream.get('index')),
                bitrate=bitrate,
                frame_count=frame_count,
                duration=_parse_float(stream.get('duration')),
                track_type=self.classifier.classify(forced, closed_caption, bitrate, frame_count),
            ))
        return tracks

    def probe(self, path: Path, cancel: Optional[CancellationToken] = None) -> List[TrackDescriptor]:
        """
        List the subtitle tracks of an MP4 file.

        Raises:
            ToolNotFound: If ffprobe cannot be started
            MalformedContainer: If ffprobe fails or returns invalid JSON
        """
        logger.info(f"Analyzing subtitle tracks in: {path.name}")
        cmd = [self.settings.ffprobe_path, "-v", "quiet", "-print_format", "json",
               "-show_streams", str(path)]
        result = self.runner.run(cmd, timeout=DEFAULT_PROBE_TIMEOUT, cancel=cancel)

        if not result.ok:
            raise MalformedContainer(f"ffprobe failed for {path.name} (exit {result.returncode}): "
                                     f"{result.stderr.strip()[:200]}")
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise MalformedContainer(f"Failed to parse ffprobe output for {path.name}: {e}")

        tracks = self.parse_probe_json(data)
        logger.info(f"Found {len(tracks)} subtitle tracks")
        return tracks

    def extract_text(self, path: Path, track: TrackDescriptor, output: Path,
                     cancel: Optional[CancellationToken] = None) -> Path:
        """
        Extract a text track, converting it to SRT.

        Raises:
            UnsupportedCodec: If the track is not a text track
            ExtractionFailed: If ffmpeg fails or writes no output
        """
        if not track.codec_family.is_text:
            raise UnsupportedCodec(track.codec, "Only text subtitle tracks can be extracted from MP4 files.")

        logger.info(f"Extracting subtitle track {track.track_id} ({track.language}) to {output.name}")
        output.parent.mkdir(parents=True, exist_ok=True)

        cmd = [self.settings.ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error",
               "-i", str(path), "-map", f"0:{track.extraction_id}", "-c:s", "srt", str(output)]
        result = self.runner.run(cmd, timeout=compute_extraction_timeout(file_size_or_none(path)),
                                 cancel=cancel)

        if not result.ok:
            raise ExtractionFailed(f"ffmpeg failed with exit code {result.returncode}: "
                                   f"{result.stderr.strip()[:200]}")
        if not output.exists():
            raise ExtractionFailed(f"Output file was not created: {output}")

        logger.info(f"✓ Extracted subtitle to {output.name}")
        return output

    def extract_image(self, path: Path, track: TrackDescriptor, output_sup: Path,
                      cancel: Optional[CancellationToken] = None) -> Path:
        raise UnsupportedCodec(track.codec, "Image subtitles in MP4 files are not supported; "
                                            "remux the file to MKV first.")
