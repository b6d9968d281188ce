"""
Batch OCR correction of existing SRT files.

This module corrects every SRT file of a folder (or an explicit list of
files) with the multi-pass correction engine, sequentially or with a
thread pool, and reports per-file results.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from concurrent.futures import ThreadPoolExecutor, as_completed
from utils.logging_config import get_logger
from utils.file_operations import FileHandler
from core.process_runner import CancellationToken, check_cancelled
from .multipass_correction import CorrectionMode, MultiPassCorrectionEngine

logger = get_logger(__name__)


class BatchCorrectionProcessor:
    """Corrects many SRT files with one shared correction engine."""

    def __init__(self, max_workers: int = 4, mode: CorrectionMode = CorrectionMode.STANDARD,
                 engine: Optional[MultiPassCorrectionEngine] = None):
        """
        Initialize the batch processor.

        Args:
            max_workers: Maximum number of worker threads for parallel processing
            mode: Correction mode applied to every file
            engine: Correction engine (stateless, shared between threads)
        """
        self.max_workers = max_workers
        self.mode = mode
        self.engine = engine or MultiPassCorrectionEngine()

    def process_directory(self, directory: Path, recursive: bool = True,
                          parallel: bool = False,
                          cancel: Optional[CancellationToken] = None) -> Dict[str, Any]:
        """
        Correct every SRT file below a directory.

        Example:
            >>> processor = BatchCorrectionProcessor()
            >>> results = processor.process_directory(Path("subs"), parallel=True)
            >>> print(processor.get_processing_summary(results))
        """
        srt_files = [p for p in FileHandler.find_subtitle_files(directory, recursive)
                     if p.suffix.lower() == '.srt']
        return self.process_files(srt_files, parallel=parallel, cancel=cancel)

    def process_files(self, srt_paths: List[Path], parallel: bool = False,
                      cancel: Optional[CancellationToken] = None) -> Dict[str, Any]:
        """
        Correct a list of SRT files.

        Args:
            srt_paths: Files to correct
            parallel: Use a thread pool
            cancel: Optional cancellation token, checked before every file

        Returns:
            Dictionary with processing results

        Raises:
            OperationCancelled: If cancelled between files
        """
        logger.info(f"Starting batch correction for {len(srt_paths)} SRT files ({self.mode.value} mode)")

        results: Dict[str, Any] = {
            'total': len(srt_paths),
            'successful': 0,
            'unchanged': 0,
            'failed': 0,
            'errors': [],
            'processed_files': [],
            'corrections': 0,
        }

        if not srt_paths:
            return results

        if parallel and len(srt_paths) > 1:
            return self._process_parallel(srt_paths, results, cancel)
        return self._process_sequential(srt_paths, results, cancel)

    def _correct_file(self, file_path: Path,
                      cancel: Optional[CancellationToken]) -> Tuple[Path, int, bool, Optional[str]]:
        """Correct a single file and return (path, corrections, modified, error)."""
        try:
            check_cancelled(cancel, "Batch correction cancelled")
            result = self.engine.process_file(file_path, self.mode, cancel)
            return file_path, result.total_corrections, result.total_corrections > 0, None
        except (IOError, OSError, ValueError) as e:
            return file_path, 0, False, str(e)

    def _record(self, results: Dict[str, Any], file_path: Path, corrections: int,
                modified: bool, error: Optional[str]) -> None:
        if error:
            results['failed'] += 1
            error_msg = f"Error correcting {file_path.name}: {error}"
            results['errors'].append(error_msg)
            logger.error(f"✗ {error_msg}")
        elif modified:
            results['successful'] += 1
            results['corrections'] += corrections
            results['processed_files'].append(str(file_path))
            logger.info(f"✓ Corrected: {file_path.name} ({corrections} corrections)")
        else:
            results['unchanged'] += 1
            logger.debug(f"- Unchanged: {file_path.name}")

    def _process_parallel(self, srt_paths: List[Path], results: Dict[str, Any],
                          cancel: Optional[CancellationToken]) -> Dict[str, Any]:
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_path = {
                executor.submit(self._correct_file, path, cancel): path
                for path in srt_paths
            }
            for future in as_completed(future_to_path):
                self._record(results, *future.result())
        check_cancelled(cancel, "Batch correction cancelled")
        return results

    def _process_sequential(self, srt_paths: List[Path], results: Dict[str, Any],
                            cancel: Optional[CancellationToken]) -> Dict[str, Any]:
        for i, file_path in enumerate(srt_paths, 1):
            logger.debug(f"Processing {i}/{len(srt_paths)}: {file_path.name}")
            self._record(results, *self._correct_file(file_path, cancel))
        return results

    def get_processing_summary(self, results: Dict[str, Any]) -> str:
        """
        Generate a human-readable summary of processing results.

        Args:
            results: Results dictionary from batch processing

        Returns:
            Formatted summary string
        """
        total = results.get('total', 0)
        successful = results.get('successful', 0)
        failed = results.get('failed', 0)
        unchanged = results.get('unchanged', 0)

        summary_lines = [
            "Batch Correction Summary:",
            f"  Total files: {total}",
            f"  Corrected: {successful}",
            f"  Total corrections: {results.get('corrections', 0)}",
        ]

        if unchanged > 0:
            summary_lines.append(f"  Unchanged: {unchanged}")

        if failed > 0:
            summary_lines.append(f"  Failed: {failed}")

        return '\n'.join(summary_lines)
