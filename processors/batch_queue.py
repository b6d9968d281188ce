"""
Batch queue of video files.

Items are processed strictly in queue order. A failing file is marked as
an error and the batch moves on; a cancellation marks the file being
processed as cancelled and stops the batch, which can later be resumed
from that file.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional
from utils.file_operations import FileHandler
from utils.logging_config import get_logger
from core.errors import OperationCancelled
from core.timing_utils import TimeConverter
from core.process_runner import CancellationToken
from core.video_containers import is_video_container

logger = get_logger(__name__)

# Called with (path, cancel); may return an ExtractionResult or an output Path
ItemProcessor = Callable[[Path, Optional[CancellationToken]], Any]


class BatchStatus(Enum):
    """Processing status of a queued file."""
    PENDING = "Pending"
    IN_PROGRESS = "Processing"
    COMPLETED = "Completed"
    ERROR = "Error"
    CANCELLED = "Cancelled"


@dataclass
class BatchItem:
    """A file in the batch queue."""
    path: Path
    status: BatchStatus = BatchStatus.PENDING
    size_bytes: Optional[int] = None
    progress_text: str = ""
    error_message: Optional[str] = None
    output_path: Optional[Path] = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def display_name(self) -> str:
        return f"{self.path.name} ({FileHandler.format_file_size(self.size_bytes)})"


@dataclass
class BatchSummary:
    """Aggregate outcome of a batch run."""
    total: int
    completed: List[Path] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    cancelled: List[Path] = field(default_factory=list)
    pending: List[Path] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    def format(self) -> str:
        """Human-readable summary of the batch."""
        lines = [
            "Batch Processing Summary:",
            f"  Total files: {self.total}",
            f"  Successful: {len(self.completed)}",
        ]
        if self.errors:
            lines.append(f"  Failed: {len(self.errors)}")
        if self.cancelled:
            lines.append(f"  Cancelled: {len(self.cancelled)}")
        if self.pending:
            lines.append(f"  Not processed: {len(self.pending)}")
        if self.elapsed_seconds:
            lines.append(f"  Elapsed: {TimeConverter.format_duration(self.elapsed_seconds)}")
        for error in self.errors:
            lines.append(f"  ✗ {error}")
        return '\n'.join(lines)


class BatchQueueManager:
    """Owns the batch queue and drives its processing."""

    def __init__(self):
        self.items: List[BatchItem] = []
        self.last_processed_index: int = -1
        self._busy = threading.Lock()
        self._elapsed = 0.0

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    def __len__(self) -> int:
        return len(self.items)

    def _ensure_idle(self) -> None:
        if self.is_busy:
            raise RuntimeError("The batch queue cannot be modified while it is being processed")

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    def add_files(self, paths: Iterable[Path]) -> List[BatchItem]:
        """
        Append video files to the queue.

        Files already queued and files that are not supported video
        containers are skipped.

        Returns:
            The newly added items
        """
        self._ensure_idle()
        queued = {item.path.resolve() for item in self.items}
        added = []
        for path in paths:
            path = Path(path)
            if not is_video_container(path):
                logger.debug(f"Skipping non-video file: {path.name}")
                continue
            resolved = path.resolve()
            if resolved in queued:
                logger.debug(f"Already queued: {path.name}")
                continue
            try:
                size = path.stat().st_size
            except OSError:
                size = None
            item = BatchItem(path=path, size_bytes=size)
            self.items.append(item)
            queued.add(resolved)
            added.append(item)

        if added:
            logger.info(f"Added {len(added)} files to the batch queue")
        return added

    def remove(self, index: int) -> BatchItem:
        """Remove and return the item at ``index``."""
        self._ensure_idle()
        item = self.items.pop(index)
        if index <= self.last_processed_index:
            self.last_processed_index -= 1
        return item

    def clear(self) -> None:
        self._ensure_idle()
        self.items.clear()
        self.last_processed_index = -1

    def clear_completed(self) -> int:
        """Remove completed items; returns how many were removed."""
        self._ensure_idle()
        before = len(self.items)
        self.items = [item for item in self.items if item.status != BatchStatus.COMPLETED]
        self.last_processed_index = -1
        return before - len(self.items)

    def move(self, from_index: int, to_index: int) -> None:
        """Move an item to another position in the queue."""
        self._ensure_idle()
        if not 0 <= from_index < len(self.items):
            raise IndexError(f"No batch item at index {from_index}")
        to_index = max(0, min(to_index, len(self.items) - 1))
        item = self.items.pop(from_index)
        self.items.insert(to_index, item)

    def move_to_top(self, index: int) -> None:
        self.move(index, 0)

    def move_to_bottom(self, index: int) -> None:
        self.move(index, len(self.items) - 1)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process(self, processor: ItemProcessor,
                cancel: Optional[CancellationToken] = None) -> BatchSummary:
        """Process the whole queue from the first item."""
        return self.process_from_index(0, processor, cancel)

    def resume(self, processor: ItemProcessor,
               cancel: Optional[CancellationToken] = None) -> BatchSummary:
        """Continue after the last item that finished processing."""
        return self.process_from_index(self.last_processed_index + 1, processor, cancel)

    def process_from_index(self, start_index: int, processor: ItemProcessor,
                           cancel: Optional[CancellationToken] = None) -> BatchSummary:
        """
        Process queued items starting at ``start_index``.

        Args:
            start_index: First queue position to process
            processor: Callable run for every item
            cancel: Optional cancellation token, checked before every item

        Returns:
            BatchSummary of the whole queue

        Raises:
            RuntimeError: If a batch is already running
        """
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("A batch is already being processed")

        started = time.monotonic()
        try:
            if start_index >= len(self.items):
                logger.info("Nothing left to process in the batch queue")
                return self.summary()

            logger.info(f"Starting batch processing of {len(self.items)} files from index {start_index}")
            for index in range(start_index, len(self.items)):
                item = self.items[index]
                if cancel is not None and cancel.is_cancelled:
                    logger.info("Batch cancelled before the next file")
                    break

                if not self._process_item(index, item, processor, cancel):
                    break
        finally:
            self._elapsed = time.monotonic() - started
            self._busy.release()

        summary = self.summary()
        logger.info(f"Batch processing finished: {len(summary.completed)} succeeded, "
                    f"{len(summary.errors)} failed, {len(summary.cancelled)} cancelled")
        return summary

    def _process_item(self, index: int, item: BatchItem, processor: ItemProcessor,
                      cancel: Optional[CancellationToken]) -> bool:
        """Process one item; returns False when the batch must stop."""
        item.status = BatchStatus.IN_PROGRESS
        item.progress_text = "Processing..."
        item.error_message = None
        logger.info(f"[{index + 1}/{len(self.items)}] Processing {item.name}")

        try:
            outcome = processor(item.path, cancel)
        except OperationCancelled:
            item.status = BatchStatus.CANCELLED
            item.progress_text = "Cancelled"
            logger.info(f"Cancelled: {item.name}")
            return False
        except Exception as e:
            item.status = BatchStatus.ERROR
            item.error_message = str(e)
            item.progress_text = f"Error: {e}"
            logger.error(f"✗ {item.name}: {e}")
            self.last_processed_index = index
            return True

        item.status = BatchStatus.COMPLETED
        item.progress_text = "Completed successfully"
        item.output_path = getattr(outcome, 'output_path', outcome if isinstance(outcome, Path) else None)
        logger.info(f"✓ {item.name}")
        self.last_processed_index = index
        return True

    def summary(self) -> BatchSummary:
        """Summarize the current state of the queue."""
        result = BatchSummary(total=len(self.items), elapsed_seconds=self._elapsed)
        for item in self.items:
            if item.status == BatchStatus.COMPLETED:
                result.completed.append(item.path)
            elif item.status == BatchStatus.ERROR:
                result.errors.append(f"{item.name}: {item.error_message}")
            elif item.status == BatchStatus.CANCELLED:
                result.cancelled.append(item.path)
            else:
                result.pending.append(item.path)
        return result
