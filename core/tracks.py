"""
Subtitle track model, codec classification and track selection.

This module provides:
- CodecFamily, the closed set of codec families that drives dispatch
- TrackDescriptor, an immutable description of a probed subtitle track
- TrackTypeClassifier, a replaceable heuristic labelling tracks as
  Full / Forced / CC
- select_best_track, the default automatic track choice
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional
from utils.language_codes import is_english
from utils.logging_config import get_logger

logger = get_logger(__name__)


class CodecFamily(Enum):
    """Codec families a subtitle track can belong to."""
    TEXT_SRT = "text_srt"
    TEXT_ASS = "text_ass"
    TEXT_WEBVTT = "text_webvtt"
    TEXT_GENERIC = "text_generic"
    IMAGE_PGS = "image_pgs"
    IMAGE_VOBSUB = "image_vobsub"
    IMAGE_DVB = "image_dvb"
    UNKNOWN = "unknown"

    @property
    def is_text(self) -> bool:
        return self in _TEXT_FAMILIES

    @property
    def is_image(self) -> bool:
        return self in (CodecFamily.IMAGE_PGS, CodecFamily.IMAGE_VOBSUB, CodecFamily.IMAGE_DVB)

    @classmethod
    def classify(cls, codec: Optional[str]) -> 'CodecFamily':
        """
        Map a raw codec tag to its family.

        Accepts Matroska codec ids (S_TEXT/UTF8, S_HDMV/PGS), mkvmerge
        codec names (SubRip/SRT, HDMV PGS) and ffprobe codec names
        (subrip, hdmv_pgs_subtitle).

        Example:
            >>> CodecFamily.classify("S_HDMV/PGS")
            <CodecFamily.IMAGE_PGS: 'image_pgs'>
        """
        if not codec:
            return cls.UNKNOWN
        tag = codec.strip().lower()

        if tag in _EXACT_CODECS:
            return _EXACT_CODECS[tag]
        if 'pgs' in tag:
            return cls.IMAGE_PGS
        if 'vobsub' in tag or 'dvd_sub' in tag:
            return cls.IMAGE_VOBSUB
        if 'dvb' in tag:
            return cls.IMAGE_DVB
        if 'webvtt' in tag or tag.endswith('/vtt'):
            return cls.TEXT_WEBVTT
        if 'substationalpha' in tag or tag.endswith(('/ass', '/ssa')):
            return cls.TEXT_ASS
        if 'subrip' in tag or tag.endswith('/utf8'):
            return cls.TEXT_SRT
        if tag.startswith('s_text/') or 'text' in tag:
            return cls.TEXT_GENERIC
        return cls.UNKNOWN


_TEXT_FAMILIES = frozenset({
    CodecFamily.TEXT_SRT, CodecFamily.TEXT_ASS,
    CodecFamily.TEXT_WEBVTT, CodecFamily.TEXT_GENERIC,
})

_EXACT_CODECS = {
    's_text/utf8': CodecFamily.TEXT_SRT,
    's_text/ascii': CodecFamily.TEXT_SRT,
    'subrip': CodecFamily.TEXT_SRT,
    'subrip/srt': CodecFamily.TEXT_SRT,
    'srt': CodecFamily.TEXT_SRT,
    's_text/ass': CodecFamily.TEXT_ASS,
    's_text/ssa': CodecFamily.TEXT_ASS,
    's_ass': CodecFamily.TEXT_ASS,
    's_ssa': CodecFamily.TEXT_ASS,
    'ass': CodecFamily.TEXT_ASS,
    'ssa': CodecFamily.TEXT_ASS,
    's_text/webvtt': CodecFamily.TEXT_WEBVTT,
    'webvtt': CodecFamily.TEXT_WEBVTT,
    'vtt': CodecFamily.TEXT_WEBVTT,
    'mov_text': CodecFamily.TEXT_GENERIC,
    'tx3g': CodecFamily.TEXT_GENERIC,
    'timed_text': CodecFamily.TEXT_GENERIC,
    's_hdmv/pgs': CodecFamily.IMAGE_PGS,
    'hdmv pgs': CodecFamily.IMAGE_PGS,
    'hdmv_pgs_subtitle': CodecFamily.IMAGE_PGS,
    'pgs': CodecFamily.IMAGE_PGS,
    'sup': CodecFamily.IMAGE_PGS,
    's_vobsub': CodecFamily.IMAGE_VOBSUB,
    'vobsub': CodecFamily.IMAGE_VOBSUB,
    'dvd_subtitle': CodecFamily.IMAGE_VOBSUB,
    's_dvbsub': CodecFamily.IMAGE_DVB,
    'dvb_subtitle': CodecFamily.IMAGE_DVB,
    'dvbsub': CodecFamily.IMAGE_DVB,
}

CLOSED_CAPTION_MARKERS = ('cc', 'closed caption', 'caption')


def looks_like_closed_caption(name: Optional[str]) -> bool:
    """Check a track name for closed caption markers."""
    if not name:
        return False
    lowered = name.lower()
    return any(marker in lowered for marker in CLOSED_CAPTION_MARKERS)


@dataclass(frozen=True)
class TrackDescriptor:
    """A probed subtitle track; immutable for the lifetime of one extraction."""
    track_id: int
    codec: str
    language: str = ""
    forced: bool = False
    closed_caption: bool = False
    name: Optional[str] = None
    extraction_id: Optional[int] = None   # defaults to track_id
    bitrate: Optional[int] = None         # bits per second
    frame_count: Optional[int] = None
    duration: Optional[float] = None      # seconds
    track_type: Optional[str] = None      # classifier label
    codec_family: CodecFamily = field(init=False)

    def __post_init__(self):
        if self.extraction_id is None:
            object.__setattr__(self, 'extraction_id', self.track_id)
        object.__setattr__(self, 'codec_family', CodecFamily.classify(self.codec))

    @property
    def is_commentary(self) -> bool:
        return bool(self.name) and 'commentary' in self.name.lower()

    def __str__(self) -> str:
        """String representation of the track."""
        parts = [f"Track {self.track_id}"]
        if self.extraction_id != self.track_id:
            parts.append(f"extract={self.extraction_id}")
        if self.language:
            parts.append(f"lang={self.language}")
        if self.name:
            parts.append(f"title='{self.name}'")
        parts.append(f"codec={self.codec}")
        if self.track_type:
            parts.append(f"type={self.track_type}")
        if self.forced:
            parts.append("forced")
        if self.closed_caption:
            parts.append("cc")
        return f"<{' '.join(parts)}>"


@dataclass(frozen=True)
class TrackTypeClassifier:
    """
    Labels tracks as "Full", "Forced", "CC" or "CC Forced".

    Explicit flags win. Otherwise a track below either pair of bitrate and
    frame-count thresholds is taken to be forced; everything else, including
    tracks without statistics, is "Full". The thresholds are an empirical
    policy, so pass a different instance to recalibrate.
    """
    sparse_bitrate: int = 1000
    sparse_frames: int = 50
    light_bitrate: int = 10000
    light_frames: int = 200

    def classify(self, forced: bool, closed_caption: bool,
                 bitrate: Optional[int] = None, frame_count: Optional[int] = None) -> str:
        if closed_caption:
            return "CC Forced" if forced else "CC"
        if forced:
            return "Forced"
        if bitrate is not None and frame_count is not None:
            if bitrate < self.sparse_bitrate and frame_count < self.sparse_frames:
                return "Forced"
            if bitrate < self.light_bitrate and frame_count < self.light_frames:
                return "Forced"
        return "Full"


DEFAULT_CLASSIFIER = TrackTypeClassifier()

# Tracks below these hints are likely partial (signs/songs) rather than dialogue
QUALITY_MIN_BITRATE = 500
QUALITY_MIN_FRAMES = 100


def _best_quality(tracks: List[TrackDescriptor]) -> Optional[TrackDescriptor]:
    if not tracks:
        return None
    qualified = [t for t in tracks
                 if (t.bitrate or 0) >= QUALITY_MIN_BITRATE
                 and (t.frame_count or 0) >= QUALITY_MIN_FRAMES]
    pool = qualified or tracks
    return min(pool, key=lambda t: t.track_id)


def select_best_track(tracks: Iterable[TrackDescriptor],
                      prefer_forced: bool = False,
                      prefer_closed_captions: bool = False) -> Optional[TrackDescriptor]:
    """
    Pick the track to extract when the user has not chosen one.

    English tracks are preferred (any language if none is English) and
    commentary tracks are ignored. Closed captions or forced tracks win
    when requested; otherwise text (SubRip) tracks are preferred over
    image tracks, then full tracks. Among candidates the first track with
    usable quality hints wins.

    Args:
        tracks: Probed tracks
        prefer_forced: Prefer forced tracks
        prefer_closed_captions: Prefer closed caption tracks

    Returns:
        Selected track or None if there are no tracks
    """
    candidates = [t for t in tracks if not t.is_commentary]
    if not candidates:
        return None

    english = [t for t in candidates if is_english(t.language)]
    pool = english or candidates

    if prefer_closed_captions:
        chosen = _best_quality([t for t in pool if t.closed_caption])
        if chosen:
            return chosen

    if prefer_forced:
        chosen = _best_quality([t for t in pool if t.forced or t.track_type == "Forced"])
        if chosen:
            return chosen

    full = [t for t in pool if not t.forced and t.track_type != "Forced"]
    for group in (
        [t for t in full if t.codec_family == CodecFamily.TEXT_SRT],
        [t for t in full if t.codec_family.is_text],
        full,
        pool,
    ):
        chosen = _best_quality(group)
        if chosen:
            logger.debug(f"Selected track {chosen}")
            return chosen

    return None
