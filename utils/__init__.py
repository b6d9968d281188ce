"""
Utility modules.

This package contains shared utility functions and configurations:
- File I/O operations and temporary file cleanup
- Logging configuration
- Settings loaded from .env and the environment
- Retry/backoff policy
- Language code mapping
- Shared constants and configurations
"""

from .file_operations import FileHandler
from .logging_config import setup_logging
from .backoff import BackoffPolicy, DEFAULT_CLEANUP_POLICY
from .config import AppSettings, load_settings
from .language_codes import to_iso639_1
from .constants import (
    SubtitleFormat,
    VIDEO_EXTENSIONS,
    SUBTITLE_EXTENSIONS,
    SUP_EXTENSION,
    PGS_TICKS_PER_SECOND,
    OCR_FRAME_TIMEOUT,
    DEFAULT_FILE_NAME_PATTERN,
    DEFAULT_LOG_FORMAT,
    DEFAULT_LOG_DATE_FORMAT,
    APP_NAME,
    APP_VERSION,
    APP_DESCRIPTION,
)

__all__ = [
    'FileHandler',
    'setup_logging',
    'BackoffPolicy',
    'DEFAULT_CLEANUP_POLICY',
    'AppSettings',
    'load_settings',
    'to_iso639_1',
    'SubtitleFormat',
    'VIDEO_EXTENSIONS',
    'SUBTITLE_EXTENSIONS',
    'SUP_EXTENSION',
    'PGS_TICKS_PER_SECOND',
    'OCR_FRAME_TIMEOUT',
    'DEFAULT_FILE_NAME_PATTERN',
    'DEFAULT_LOG_FORMAT',
    'DEFAULT_LOG_DATE_FORMAT',
    'APP_NAME',
    'APP_VERSION',
    'APP_DESCRIPTION',
]
