"""
File operations for subtitle extraction.

This module provides safe file operations including:
- Atomic and safe file writing
- Directory operations and file discovery
- Best-effort deletion of temporary artifacts with retry
- Human-readable file sizes
"""

import os
import tempfile
from pathlib import Path
from typing import List, Optional
from .backoff import BackoffPolicy, DEFAULT_CLEANUP_POLICY
from .constants import SUBTITLE_EXTENSIONS, VIDEO_EXTENSIONS
from .logging_config import get_logger

logger = get_logger(__name__)

_SIZE_UNITS = (
    (1024 ** 4, "TB"),
    (1024 ** 3, "GB"),
    (1024 ** 2, "MB"),
    (1024, "KB"),
)


class FileHandler:
    """Handles file operations with proper error handling and logging."""

    @staticmethod
    def atomic_write(file_path: Path, content: str, encoding: str = 'utf-8') -> None:
        """
        Write content through a sibling temporary file and rename it into place.

        Readers never observe a half-written file: the target either keeps
        its previous content or receives the complete new content.

        Args:
            file_path: Destination path
            content: Content to write
            encoding: File encoding to use

        Raises:
            IOError: If write operation fails
        """
        file_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{file_path.name}.", suffix=".tmp",
                                        dir=str(file_path.parent))
        try:
            with os.fdopen(fd, 'w', encoding=encoding, newline='\n') as f:
                f.write(content)
            os.replace(tmp_name, file_path)
            logger.debug(f"Atomically wrote file: {file_path}")
        except OSError as e:
            logger.error(f"Failed to write file {file_path}: {e}")
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise IOError(f"Write operation failed: {e}")

    @staticmethod
    def safe_delete(file_path: Path,
                    policy: BackoffPolicy = DEFAULT_CLEANUP_POLICY,
                    sleep=None) -> bool:
        """
        Delete a file, retrying transient failures (locks, access denied).

        Failures are logged and never raised.

        Args:
            file_path: File to delete
            policy: Retry schedule
            sleep: Optional sleep function (for tests)

        Returns:
            True if the file no longer exists
        """
        def _delete():
            try:
                file_path.unlink()
            except FileNotFoundError:
                pass

        kwargs = {'description': f"Delete {file_path.name}"}
        if sleep is not None:
            kwargs['sleep'] = sleep

        deleted = policy.run(_delete, retry_on=(PermissionError, OSError), **kwargs)
        if deleted:
            logger.debug(f"Deleted temporary file: {file_path}")
        else:
            logger.warning(f"Could not delete temporary file (left on disk): {file_path}")
        return deleted

    @staticmethod
    def format_file_size(size_bytes: Optional[int]) -> str:
        """
        Format a byte count for display.

        Example:
            >>> FileHandler.format_file_size(1536)
            '1.5 KB'
        """
        if not size_bytes:
            return "0 B"
        for threshold, unit in _SIZE_UNITS:
            if size_bytes >= threshold:
                return f"{size_bytes / threshold:.1f} {unit}"
        return f"{size_bytes} B"

    @staticmethod
    def find_subtitle_files(directory: Path, recursive: bool = True) -> List[Path]:
        """
        Find all subtitle files in a directory.

        Args:
            directory: Directory to search
            recursive: Whether to search recursively

        Returns:
            Sorted list of subtitle file paths
        """
        return FileHandler._find_files(directory, SUBTITLE_EXTENSIONS, recursive, "subtitle")

    @staticmethod
    def find_video_files(directory: Path, recursive: bool = True) -> List[Path]:
        """
        Find all video files in a directory.

        Args:
            directory: Directory to search
            recursive: Whether to search recursively

        Returns:
            Sorted list of video file paths

        Example:
            >>> videos = FileHandler.find_video_files(Path("/media/movies"))
            >>> print(f"Found {len(videos)} video files")
        """
        return FileHandler._find_files(directory, VIDEO_EXTENSIONS, recursive, "video")

    @staticmethod
    def _find_files(directory: Path, extensions, recursive: bool, kind: str) -> List[Path]:
        if not directory.exists() or not directory.is_dir():
            logger.warning(f"Directory not found or not a directory: {directory}")
            return []

        pattern_func = directory.rglob if recursive else directory.glob
        found = [p for p in pattern_func("*")
                 if p.is_file() and p.suffix.lower() in extensions]

        # Sort for consistent ordering
        found.sort()

        logger.debug(f"Found {len(found)} {kind} files in {directory}")
        return found
