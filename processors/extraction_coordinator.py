"""
Extraction pipeline coordinator.

Routes one selected subtitle track through extraction, OCR when the track
is a PGS bitmap track, format normalization and OCR correction. Progress
is published as PipelineEvent messages to an optional callback, and the
outcome is returned as an immutable ExtractionResult.

State flow:
    DISPATCHING -> TEXT_EXTRACT | IMAGE_EXTRACT -> [OCR] -> NORMALIZING
                -> CORRECTING -> DONE
with REJECTED for unsupported codecs and CANCELLED/FAILED reachable from
any step.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple
from utils.config import AppSettings
from utils.constants import (
    CLOSED_CAPTION_SUFFIX, DEFAULT_FILE_NAME_PATTERN, FORCED_SUFFIX, PROGRESS_MILESTONES, SUP_EXTENSION
)
from utils.file_operations import FileHandler
from utils.language_codes import to_iso639_1
from utils.logging_config import get_logger
from core.encoding_detection import EncodingDetector
from core.errors import (
    CorrectionEngineFailure, ExtractionFailed, OperationCancelled, SubtitleExtractionError, UnsupportedCodec
)
from core.format_normalizer import FormatNormalizer
from core.process_runner import CancellationToken, check_cancelled
from core.tracks import CodecFamily, TrackDescriptor, select_best_track
from core.video_containers import FfmpegContainerAdapter, uses_ffmpeg
from processors.correction_rules import CorrectionRuleEngine
from processors.multipass_correction import (
    CorrectionMode, MultiPassCorrectionEngine, MultiPassResult, PassStatistics
)
from processors.ocr_pipeline import OcrResult, SupOcrPipeline
from third_party.mkvtoolnix import MkvToolNixAdapter

logger = get_logger(__name__)

VOBSUB_GUIDANCE = ("VobSub subtitles require external OCR. Use Subtitle Edit "
                   "(Tools > Batch Convert) to convert them to SRT.")
DVB_GUIDANCE = "DVB bitmap subtitles cannot be converted to SRT."


class PipelineState(Enum):
    """States of one extraction."""
    DISPATCHING = "dispatching"
    TEXT_EXTRACT = "text_extract"
    IMAGE_EXTRACT = "image_extract"
    OCR = "ocr"
    NORMALIZING = "normalizing"
    CORRECTING = "correcting"
    DONE = "done"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.REJECTED,
                        PipelineState.CANCELLED, PipelineState.FAILED)


@dataclass(frozen=True)
class PipelineEvent:
    """A progress or status message published during an extraction."""
    state: PipelineState
    message: str
    progress: Optional[float] = None   # 0.0 - 1.0


EventCallback = Callable[[PipelineEvent], None]


@dataclass(frozen=True)
class ExtractionResult:
    """Immutable outcome of one extraction."""
    state: PipelineState
    source: Path
    track: Optional[TrackDescriptor]
    output_path: Optional[Path] = None
    codec_family: Optional[CodecFamily] = None
    correction: Optional[MultiPassResult] = None
    ocr: Optional[OcrResult] = None
    events: Tuple[PipelineEvent, ...] = ()
    error_message: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.state == PipelineState.DONE


def generate_output_path(source: Path, track: TrackDescriptor,
                         pattern: str = DEFAULT_FILE_NAME_PATTERN) -> Path:
    """
    Build the output file path for a track, next to the source file.

    Pattern tokens: {basename} (source name without extension), {lang}
    (ISO 639-1 code), {forced} (".forced" or "") and {cc} (".cc" or "").

    Example:
        >>> generate_output_path(Path("/v/Movie.mkv"), track)   # eng, forced
        PosixPath('/v/Movie.en.forced.srt')
    """
    name = (pattern
            .replace('{basename}', source.stem)
            .replace('{lang}', to_iso639_1(track.language))
            .replace('{forced}', FORCED_SUFFIX if track.forced else '')
            .replace('{cc}', CLOSED_CAPTION_SUFFIX if track.closed_caption else ''))
    return source.parent / name


def _file_signature(path: Path) -> Optional[Tuple[int, int, int]]:
    """Identity of the file at ``path`` (inode, mtime, size), or None if absent."""
    try:
        stat = path.stat()
    except OSError:
        return None
    return stat.st_ino, stat.st_mtime_ns, stat.st_size


def _progress_between(start_key: str, end_key: str, done: int, total: int) -> float:
    start = PROGRESS_MILESTONES[start_key]
    end = PROGRESS_MILESTONES[end_key]
    return start + (end - start) * (done / total if total else 1.0)


class ExtractionCoordinator:
    """Runs one extraction at a time through the pipeline."""

    def __init__(self, settings: Optional[AppSettings] = None,
                 mkv_adapter: Optional[MkvToolNixAdapter] = None,
                 mp4_adapter: Optional[FfmpegContainerAdapter] = None,
                 ocr_pipeline: Optional[SupOcrPipeline] = None,
                 rule_engine: Optional[CorrectionRuleEngine] = None,
                 multipass_engine: Optional[MultiPassCorrectionEngine] = None,
                 on_event: Optional[EventCallback] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        """
        Initialize the coordinator.

        Args:
            settings: Application settings
            mkv_adapter: MKVToolNix adapter for Matroska sources
            mp4_adapter: FFmpeg adapter for MP4 sources
            ocr_pipeline: SUP to SRT pipeline
            rule_engine: Single-pass correction engine
            multipass_engine: Multi-pass correction engine
            on_event: Callback receiving every PipelineEvent
            sleep: Sleep function used by cleanup retries (for tests)
        """
        self.settings = settings or AppSettings()
        self.mkv_adapter = mkv_adapter or MkvToolNixAdapter(self.settings)
        self.mp4_adapter = mp4_adapter or FfmpegContainerAdapter(self.settings)
        self.ocr_pipeline = ocr_pipeline or SupOcrPipeline()
        self.rule_engine = rule_engine or CorrectionRuleEngine()
        self.multipass_engine = multipass_engine or MultiPassCorrectionEngine(self.rule_engine)
        self.on_event = on_event
        self._sleep = sleep
        self._busy = threading.Lock()
        self._events: List[PipelineEvent] = []

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    def _emit(self, state: PipelineState, message: str, progress: Optional[float] = None) -> None:
        event = PipelineEvent(state, message, progress)
        self._events.append(event)
        logger.debug(f"[{state.value}] {message}")
        if self.on_event is not None:
            self.on_event(event)

    def _adapter_for(self, source: Path):
        return self.mp4_adapter if uses_ffmpeg(source) else self.mkv_adapter

    # ------------------------------------------------------------------
    # Track discovery
    # ------------------------------------------------------------------

    def probe(self, source: Path, cancel: Optional[CancellationToken] = None) -> List[TrackDescriptor]:
        """List the subtitle tracks of a video file with the matching adapter."""
        return self._adapter_for(source).probe(source, cancel)

    def select_track(self, tracks: List[TrackDescriptor]) -> Optional[TrackDescriptor]:
        """Pick a track using the configured forced/closed caption preferences."""
        return select_best_track(tracks,
                                 prefer_forced=self.settings.prefer_forced,
                                 prefer_closed_captions=self.settings.prefer_closed_captions)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract(self, source: Path, track: TrackDescriptor, output: Path,
                cancel: Optional[CancellationToken] = None) -> ExtractionResult:
        """
        Extract one track to an SRT file.

        Args:
            source: Video file
            track: Track to extract
            output: SRT file to write
            cancel: Optional cancellation token, checked between every step

        Returns:
            ExtractionResult in state DONE

        Raises:
            UnsupportedCodec: For VobSub, DVB and unrecognized codecs
            OperationCancelled: If cancelled; partial output is removed
            ExtractionFailed: If another extraction is running or a tool failed
            SubtitleExtractionError: For the other per-track failures
        """
        if not self._busy.acquire(blocking=False):
            raise ExtractionFailed("Another extraction is already in progress")
        try:
            self._events = []
            return self._run(source, track, output, cancel)
        finally:
            self._busy.release()

    def try_extract(self, source: Path, track: TrackDescriptor, output: Path,
                    cancel: Optional[CancellationToken] = None) -> ExtractionResult:
        """
        Like extract(), but failures are recorded in the result.

        Returns:
            ExtractionResult in state DONE, REJECTED, CANCELLED or FAILED
        """
        started = time.monotonic()
        try:
            return self.extract(source, track, output, cancel)
        except UnsupportedCodec as e:
            state = PipelineState.REJECTED
            message = str(e)
        except OperationCancelled as e:
            state = PipelineState.CANCELLED
            message = str(e)
        except (SubtitleExtractionError, OSError) as e:
            state = PipelineState.FAILED
            message = str(e)

        return ExtractionResult(
            state=state,
            source=source,
            track=track,
            codec_family=track.codec_family,
            events=tuple(self._events),
            error_message=message,
            elapsed_seconds=time.monotonic() - started,
        )

    def process_file(self, source: Path, cancel: Optional[CancellationToken] = None) -> ExtractionResult:
        """
        Probe a video, select the best track and extract it next to the source.

        Raises:
            ExtractionFailed: If the file has no subtitle tracks
            SubtitleExtractionError: As raised by probe() and extract()
        """
        tracks = self.probe(source, cancel)
        track = self.select_track(tracks)
        if track is None:
            raise ExtractionFailed(f"No subtitle tracks found in {source.name}")
        logger.info(f"Selected {track} from {source.name}")
        output = generate_output_path(source, track, self.settings.file_name_pattern)
        return self.extract(source, track, output, cancel)

    def _run(self, source: Path, track: TrackDescriptor, output: Path,
             cancel: Optional[CancellationToken]) -> ExtractionResult:
        started = time.monotonic()
        family = track.codec_family
        adapter = self._adapter_for(source)
        sup_path: Optional[Path] = None
        # Cancellation only removes an output that this run wrote
        existing_output = _file_signature(output)
        ocr_result: Optional[OcrResult] = None

        self._emit(PipelineState.DISPATCHING, f"Track {track.track_id}: {track.codec} ({family.value})", 0.0)

        try:
            check_cancelled(cancel, "Extraction cancelled")

            if family.is_text:
                self._emit(PipelineState.TEXT_EXTRACT, "Extracting text subtitles...",
                           PROGRESS_MILESTONES['text_extraction_start'])
                adapter.extract_text(source, track, output, cancel)
                self._emit(PipelineState.TEXT_EXTRACT, "Text subtitles extracted",
                           PROGRESS_MILESTONES['text_extraction_complete'])

            elif family == CodecFamily.IMAGE_PGS:
                sup_path = output.with_suffix(SUP_EXTENSION)
                self._emit(PipelineState.IMAGE_EXTRACT, "Extracting PGS subtitles...",
                           PROGRESS_MILESTONES['pgs_extraction_start'])
                adapter.extract_image(source, track, sup_path, cancel)
                check_cancelled(cancel, "Extraction cancelled")

                self._emit(PipelineState.OCR, "Running OCR...", PROGRESS_MILESTONES['ocr_start'])
                ocr_result = self.ocr_pipeline.process(
                    sup_path, output, self.settings.ocr_language,
                    progress=lambda done, total: self._emit(
                        PipelineState.OCR, f"OCR frame {done}/{total}",
                        _progress_between('ocr_start', 'ocr_complete', done, total)),
                    cancel=cancel,
                )
                if not ocr_result.has_output:
                    # An empty track still produces an (empty) SRT file
                    FileHandler.atomic_write(output, "")
                self._emit(PipelineState.OCR, f"OCR produced {ocr_result.event_count} subtitles",
                           PROGRESS_MILESTONES['ocr_complete'])

            elif family == CodecFamily.IMAGE_VOBSUB:
                raise UnsupportedCodec(track.codec, VOBSUB_GUIDANCE)
            elif family == CodecFamily.IMAGE_DVB:
                raise UnsupportedCodec(track.codec, DVB_GUIDANCE)
            else:
                raise UnsupportedCodec(track.codec)

            check_cancelled(cancel, "Extraction cancelled")
            self._emit(PipelineState.NORMALIZING, "Checking output format...")
            FormatNormalizer.normalize_file(output)

            check_cancelled(cancel, "Extraction cancelled")
            correction = self._correct(output, cancel)

        except UnsupportedCodec as e:
            logger.error(f"✗ {e}")
            self._emit(PipelineState.REJECTED, str(e))
            raise
        except OperationCancelled:
            logger.warning("Extraction cancelled, cleaning up")
            self._cleanup(sup_path)
            if _file_signature(output) != existing_output:
                self._cleanup(output)
            self._emit(PipelineState.CANCELLED, "Extraction cancelled")
            raise
        except Exception as e:
            logger.error(f"✗ Extraction failed: {e}")
            self._cleanup(sup_path)
            self._emit(PipelineState.FAILED, str(e))
            raise

        if sup_path is not None:
            if self.settings.preserve_sup_files:
                logger.info(f"Keeping intermediate SUP file: {sup_path}")
            else:
                self._cleanup(sup_path)

        self._emit(PipelineState.DONE, f"Saved {output.name}", PROGRESS_MILESTONES['complete'])
        logger.info(f"✓ Extracted track {track.track_id} to {output.name}")
        return ExtractionResult(
            state=PipelineState.DONE,
            source=source,
            track=track,
            output_path=output,
            codec_family=family,
            correction=correction,
            ocr=ocr_result,
            events=tuple(self._events),
            elapsed_seconds=time.monotonic() - started,
        )

    # ------------------------------------------------------------------
    # Correction and cleanup
    # ------------------------------------------------------------------

    def _single_pass(self, content: str) -> MultiPassResult:
        started = time.perf_counter()
        corrected, categories = self.rule_engine.correct_srt_content_by_category(content)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        stats = PassStatistics(1, sum(categories.values()), elapsed_ms, categories)
        return MultiPassResult(content=corrected, passes=[stats],
                               converged=corrected == content, elapsed_ms=elapsed_ms)

    def _correct(self, output: Path, cancel: Optional[CancellationToken]) -> Optional[MultiPassResult]:
        """
        Apply the configured correction to the output file.

        Returns:
            The correction result, or None when correction is disabled

        Raises:
            CorrectionEngineFailure: If the single-pass fallback fails too
        """
        if not self.settings.enable_correction:
            logger.debug("Correction disabled")
            return None

        self._emit(PipelineState.CORRECTING, "Correcting OCR errors...")
        content, _ = EncodingDetector.read_file_with_encoding(output)

        if not self.settings.enable_multi_pass:
            result = self._single_pass(content)
        else:
            mode = CorrectionMode.from_name(self.settings.correction_mode)
            try:
                result = self.multipass_engine.process_srt_content(content, mode, cancel)
            except OperationCancelled:
                raise
            except Exception as e:
                logger.warning(f"Multi-pass correction failed ({e}), using single pass")
                result = None

            if result is None or result.warnings:
                base = result.content if result is not None else content
                try:
                    fallback = self._single_pass(base)
                except Exception as e:
                    raise CorrectionEngineFailure(f"Single-pass correction failed: {e}")
                if result is not None:
                    fallback.warnings.extend(result.warnings)
                result = fallback

        if result.content != content:
            FileHandler.atomic_write(output, result.content)
        self._emit(PipelineState.CORRECTING, f"{result.total_corrections} corrections applied")
        return result

    def _cleanup(self, path: Optional[Path]) -> None:
        if path is None or not path.exists():
            return
        FileHandler.safe_delete(path, policy=self.settings.cleanup_policy, sleep=self._sleep)
