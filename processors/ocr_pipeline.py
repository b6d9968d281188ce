"""
SUP to SRT conversion through OCR.

Each PGS caption is rasterized by the SUP parser, recognized by
Tesseract and turned into a timed subtitle event. Frames are decoded one
at a time and dropped once recognized, so memory stays flat on long tracks. The SRT file is written
in one atomic step once every frame has been processed.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional
from utils.file_operations import FileHandler
from utils.logging_config import get_logger
from core.errors import OcrFrameFailure, OperationCancelled, ToolNotFound
from core.process_runner import CancellationToken, check_cancelled
from core.subtitle_formats import SRTParser, SubtitleEvent
from core.sup_parser import SupParser
from third_party.tesseract_ocr import TesseractRecognizer

logger = get_logger(__name__)

# Receives (frames processed, total frames)
ProgressCallback = Callable[[int, int], None]


@dataclass
class OcrResult:
    """Outcome of converting one SUP file."""
    output_path: Optional[Path]
    frame_count: int = 0
    event_count: int = 0
    skipped_empty: int = 0
    failed_frames: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def has_output(self) -> bool:
        return self.output_path is not None


class SupOcrPipeline:
    """Converts PGS subtitle streams to SRT."""

    def __init__(self, recognizer: Optional[TesseractRecognizer] = None,
                 parser: Optional[SupParser] = None):
        self.recognizer = recognizer or TesseractRecognizer()
        self.parser = parser or SupParser()

    def process(self, sup_path: Path, output_path: Path, language: Optional[str] = None,
                progress: Optional[ProgressCallback] = None,
                cancel: Optional[CancellationToken] = None) -> OcrResult:
        """
        OCR a SUP file and write the recognized captions as SRT.

        Frames whose bitmap is empty or whose text comes back blank are
        skipped. A frame that fails is recorded as a warning and the
        remaining frames are still processed.

        Args:
            sup_path: PGS subtitle stream
            output_path: SRT file to write
            language: Tesseract language code
            progress: Optional callback receiving (processed, total)
            cancel: Optional cancellation token, checked before every frame

        Returns:
            OcrResult; ``output_path`` is None when the stream has no frames

        Raises:
            MalformedContainer: If the SUP stream cannot be parsed
            ToolNotFound: If tesseract is missing
            OperationCancelled: If cancelled; no output file is written
        """
        logger.info(f"Starting OCR of {sup_path.name}")
        total = self.parser.count_frames(sup_path)
        result = OcrResult(output_path=None, frame_count=total)

        if total == 0:
            logger.warning(f"No subtitle frames found in {sup_path.name}")
            return result

        events: List[SubtitleEvent] = []
        processed = 0
        for frame in self.parser.iter_frames(sup_path):
            check_cancelled(cancel, "OCR cancelled")

            if frame.is_empty:
                result.skipped_empty += 1
            else:
                try:
                    text = self._recognize_frame(frame, language, cancel)
                except OcrFrameFailure as e:
                    logger.warning(str(e))
                    result.failed_frames += 1
                    result.warnings.append(str(e))
                    text = ""
                    failed = True
                else:
                    failed = False

                if text.strip():
                    events.append(SubtitleEvent(
                        start=frame.start_seconds,
                        end=frame.end_seconds,
                        text=text.strip(),
                    ))
                elif not failed:
                    result.skipped_empty += 1

            processed += 1
            del frame
            if progress is not None:
                progress(processed, total)

        events.sort(key=lambda e: (e.start, e.end))
        FileHandler.atomic_write(output_path, SRTParser.to_string(events))

        result.output_path = output_path
        result.event_count = len(events)
        logger.info(f"✓ OCR complete: {result.event_count} subtitles from {total} frames "
                    f"({result.skipped_empty} empty, {result.failed_frames} failed)")
        return result

    def _recognize_frame(self, frame, language: Optional[str],
                         cancel: Optional[CancellationToken]) -> str:
        try:
            return self.recognizer.recognize(frame.image, language, cancel)
        except (OperationCancelled, ToolNotFound):
            raise
        except Exception as e:
            raise OcrFrameFailure(frame.index, str(e))
