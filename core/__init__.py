"""
Core subtitle extraction modules.

This package contains the fundamental components for subtitle extraction:
- Subtitle format handlers (SRT, ASS, VTT) and SRT normalization
- SUP/PGS stream parsing into bitmap frames
- Subtitle track descriptors, codec families and track selection
- Video container probing and extraction with FFmpeg
- External process execution with timeouts and cancellation
- Encoding detection and timing utilities
"""

from .errors import (
    SubtitleExtractionError,
    ToolNotFound,
    MalformedContainer,
    ProcessTimeout,
    ExtractionFailed,
    UnsupportedCodec,
    OcrFrameFailure,
    CorrectionEngineFailure,
    OperationCancelled,
)
from .subtitle_formats import SubtitleEvent, SubtitleFile, SRTParser, SubtitleFormatFactory
from .encoding_detection import EncodingDetector
from .timing_utils import TimeConverter
from .format_normalizer import DetectedFormat, FormatNormalizer
from .sup_parser import BitmapFrame, SupParser
from .tracks import CodecFamily, TrackDescriptor, TrackTypeClassifier, select_best_track
from .process_runner import CancellationToken, ProcessResult, ProcessRunner
from .video_containers import FfmpegContainerAdapter

__all__ = [
    'SubtitleExtractionError',
    'ToolNotFound',
    'MalformedContainer',
    'ProcessTimeout',
    'ExtractionFailed',
    'UnsupportedCodec',
    'OcrFrameFailure',
    'CorrectionEngineFailure',
    'OperationCancelled',
    'SubtitleEvent',
    'SubtitleFile',
    'SRTParser',
    'SubtitleFormatFactory',
    'EncodingDetector',
    'TimeConverter',
    'DetectedFormat',
    'FormatNormalizer',
    'BitmapFrame',
    'SupParser',
    'CodecFamily',
    'TrackDescriptor',
    'TrackTypeClassifier',
    'select_best_track',
    'CancellationToken',
    'ProcessResult',
    'ProcessRunner',
    'FfmpegContainerAdapter',
]
