"""
MKVToolNix integration.

``mkvmerge -J`` describes the tracks of a Matroska file as JSON and
``mkvextract tracks`` writes a single track in its native format (SRT,
ASS, WebVTT or a PGS ``.sup`` stream).
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional
from utils.config import AppSettings
from utils.constants import DEFAULT_PROBE_TIMEOUT
from utils.file_operations import FileHandler
from utils.language_codes import UNDEFINED_LANGUAGE
from utils.logging_config import get_logger
from core.errors import ExtractionFailed, MalformedContainer
from core.process_runner import CancellationToken, ProcessRunner
from core.tracks import DEFAULT_CLASSIFIER, TrackDescriptor, TrackTypeClassifier, looks_like_closed_caption
from core.video_containers import compute_extraction_timeout, file_size_or_none

logger = get_logger(__name__)

_TAG_DURATION = re.compile(r'^(\d+):(\d{2}):(\d{2}(?:\.\d+)?)$')


def parse_tag_duration(value: Optional[str]) -> Optional[float]:
    """
    Parse an mkvmerge ``tag_duration`` statistic into seconds.

    Example:
        >>> parse_tag_duration("01:02:03.500000000")
        3723.5
    """
    if not value:
        return None
    match = _TAG_DURATION.match(value.strip())
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class MkvToolNixAdapter:
    """Probes and extracts Matroska subtitle tracks with mkvmerge/mkvextract."""

    def __init__(self, settings: Optional[AppSettings] = None,
                 runner: Optional[ProcessRunner] = None,
                 classifier: TrackTypeClassifier = DEFAULT_CLASSIFIER):
        self.settings = settings or AppSettings()
        self.runner = runner or ProcessRunner()
        self.classifier = classifier

    @staticmethod
    def compute_timeout(size_bytes: Optional[int]) -> float:
        """Extraction timeout in seconds for a source of the given size."""
        return compute_extraction_timeout(size_bytes)

    def parse_probe_json(self, data: Dict[str, Any]) -> List[TrackDescriptor]:
        """
        Build track descriptors from ``mkvmerge -J`` output.

        Args:
            data: Decoded JSON document

        Returns:
            Subtitle tracks in container order
        """
        tracks = []
        for entry in data.get('tracks', []):
            if str(entry.get('type', '')).lower() != 'subtitles':
                continue

            props = entry.get('properties') or {}
            name = props.get('track_name') or None
            forced = bool(props.get('forced_track', False))
            closed_caption = looks_like_closed_caption(name)
            bitrate = _optional_int(props.get('tag_bps'))
            frame_count = _optional_int(props.get('tag_number_of_frames'))
            language = props.get('language') or props.get('language_ietf') or UNDEFINED_LANGUAGE

            track_id = int(entry['id'])
            tracks.append(TrackDescriptor(
                track_id=track_id,
                codec=props.get('codec_id') or entry.get('codec') or '',
                language=language,
                forced=forced,
                closed_caption=closed_caption,
                name=name,
                extraction_id=track_id,
                bitrate=bitrate,
                frame_count=frame_count,
                duration=parse_tag_duration(props.get('tag_duration')),
                track_type=self.classifier.classify(forced, closed_caption, bitrate, frame_count),
            ))
        return tracks

    def probe(self, path: Path, cancel: Optional[CancellationToken] = None) -> List[TrackDescriptor]:
        """
        List the subtitle tracks of a Matroska file.

        Raises:
            FileNotFoundError: If the file does not exist
            ToolNotFound: If mkvmerge cannot be started
            MalformedContainer: If mkvmerge rejects the file or its JSON is invalid
        """
        if not path.exists():
            raise FileNotFoundError(f"Video file not found: {path}")

        logger.info(f"Probing MKV file: {path.name}")
        result = self.runner.run([self.settings.mkvmerge_path, "-J", str(path)],
                                 timeout=DEFAULT_PROBE_TIMEOUT, cancel=cancel)
        if not result.ok:
            raise MalformedContainer(f"mkvmerge failed with exit code {result.returncode}: "
                                     f"{(result.stderr or result.stdout).strip()[:200]}")
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise MalformedContainer(f"Failed to parse MKV track information: {e}")

        tracks = self.parse_probe_json(data)
        logger.info(f"Found {len(tracks)} subtitle tracks")
        return tracks

    def _extract(self, path: Path, track: TrackDescriptor, output: Path, kind: str,
                 timeout: float, cancel: Optional[CancellationToken]) -> Path:
        output.parent.mkdir(parents=True, exist_ok=True)
        cmd = [self.settings.mkvextract_path, "tracks", str(path), f"{track.extraction_id}:{output}"]
        result = self.runner.run(cmd, timeout=timeout, cancel=cancel)

        if not result.ok:
            logger.error(f"✗ {kind} extraction failed (track {track.track_id})")
            raise ExtractionFailed(f"mkvextract failed with exit code {result.returncode}: "
                                   f"{(result.stderr or result.stdout).strip()[:200]}")
        if not output.exists():
            logger.error(f"✗ {kind} extraction produced no output (track {track.track_id})")
            raise ExtractionFailed(f"Output file was not created: {output}")

        logger.info(f"✓ {kind} extraction (track {track.track_id})")
        return output

    def extract_text(self, path: Path, track: TrackDescriptor, output: Path,
                     cancel: Optional[CancellationToken] = None) -> Path:
        """
        Extract a text subtitle track.

        The file is written in the track's native format; the caller
        normalizes ASS/WebVTT content to SRT.

        Raises:
            ToolNotFound, ProcessTimeout, OperationCancelled, ExtractionFailed
        """
        logger.info(f"Extracting text subtitle track {track.track_id} to: {output.name}")
        timeout = self.compute_timeout(file_size_or_none(path))
        return self._extract(path, track, output, "Text subtitle", timeout, cancel)

    def extract_image(self, path: Path, track: TrackDescriptor, output_sup: Path,
                      cancel: Optional[CancellationToken] = None) -> Path:
        """
        Extract a PGS track to a ``.sup`` file.

        Large remuxes can take a long time, so the timeout scales with
        the source size.

        Raises:
            ToolNotFound, ProcessTimeout, OperationCancelled, ExtractionFailed
        """
        size = file_size_or_none(path)
        timeout = self.compute_timeout(size)
        logger.info(f"Extracting PGS subtitle track {track.track_id} to: {output_sup.name}")
        logger.info(f"Using timeout of {timeout / 60:.0f} minutes for file size "
                    f"{FileHandler.format_file_size(size)}")
        return self._extract(path, track, output_sup, "PGS subtitle", timeout, cancel)
