"""
Application settings.

Settings are read from a ``.env`` file (via python-dotenv) and the process
environment, using the ``SRTX_`` prefix:

    SRTX_MKVEXTRACT=/opt/mkvtoolnix/mkvextract
    SRTX_TESSDATA_DIR=/usr/share/tesseract-ocr/5/tessdata
    SRTX_CORRECTION_LEVEL=thorough
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .backoff import BackoffPolicy
from .constants import DEFAULT_OCR_LANGUAGE, DEFAULT_FILE_NAME_PATTERN, ENV_PREFIX
from .logging_config import get_logger

logger = get_logger(__name__)

CORRECTION_MODES = ('fast', 'standard', 'thorough')

# Correction level presets: (enable_correction, enable_multi_pass, correction_mode)
CORRECTION_LEVELS: Dict[str, tuple] = {
    'off': (False, False, 'standard'),
    'standard': (True, False, 'standard'),
    'thorough': (True, True, 'standard'),
}

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off'}


@dataclass(frozen=True)
class AppSettings:
    """Runtime configuration for extraction, OCR and correction."""
    # External tools (bare names resolve through PATH)
    mkvmerge_path: str = "mkvmerge"
    mkvextract_path: str = "mkvextract"
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    tesseract_path: str = "tesseract"
    tessdata_dir: Optional[str] = None

    # Track selection and naming
    ocr_language: str = DEFAULT_OCR_LANGUAGE
    file_name_pattern: str = DEFAULT_FILE_NAME_PATTERN
    prefer_forced: bool = True
    prefer_closed_captions: bool = False

    # Correction
    enable_correction: bool = True
    enable_multi_pass: bool = True
    correction_mode: str = "standard"

    # Temporary artifacts
    preserve_sup_files: bool = False
    cleanup_attempts: int = 5
    cleanup_base_delay_ms: int = 100
    cleanup_multiplier: float = 2.0
    cleanup_max_wait_ms: int = 3300

    def __post_init__(self):
        if self.correction_mode not in CORRECTION_MODES:
            raise ValueError(
                f"Invalid correction mode '{self.correction_mode}', "
                f"expected one of: {', '.join(CORRECTION_MODES)}"
            )

    @property
    def cleanup_policy(self) -> BackoffPolicy:
        """Backoff policy for deleting intermediate files."""
        return BackoffPolicy(
            attempts=self.cleanup_attempts,
            base_delay=self.cleanup_base_delay_ms / 1000.0,
            multiplier=self.cleanup_multiplier,
            max_total_wait=self.cleanup_max_wait_ms / 1000.0,
        )

    def with_correction_level(self, level: str) -> 'AppSettings':
        """
        Apply a correction level preset.

        Args:
            level: One of 'off', 'standard', 'thorough'

        Returns:
            New settings with the correction fields replaced
        """
        try:
            enabled, multi_pass, mode = CORRECTION_LEVELS[level.lower()]
        except KeyError:
            raise ValueError(f"Unknown correction level: {level}")
        return replace(self, enable_correction=enabled,
                       enable_multi_pass=multi_pass, correction_mode=mode)

    def with_overrides(self, **overrides: Any) -> 'AppSettings':
        """Return a copy with the given non-None fields replaced."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def _coerce(value: str, target_type: Any, name: str) -> Any:
    """Convert an environment string to the field's declared type."""
    if target_type in (bool, 'bool'):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"Invalid boolean for {name}: {value}")
    if target_type in (int, 'int'):
        return int(value)
    if target_type in (float, 'float'):
        return float(value)
    return value


def load_settings(env_file: Optional[Path] = None,
                  environ: Optional[Dict[str, str]] = None) -> AppSettings:
    """
    Load settings from a .env file and the environment.

    Args:
        env_file: Optional explicit .env path; defaults to a .env found
            by python-dotenv from the working directory
        environ: Mapping to read from instead of ``os.environ``

    Returns:
        AppSettings instance

    Raises:
        ValueError: If a value cannot be converted
    """
    if environ is None:
        if env_file is not None:
            load_dotenv(dotenv_path=env_file, override=False)
        else:
            load_dotenv(override=False)
        environ = os.environ

    values: Dict[str, Any] = {}
    for field in fields(AppSettings):
        key = f"{ENV_PREFIX}{field.name.upper()}"
        # SRTX_MKVEXTRACT is accepted for SRTX_MKVEXTRACT_PATH
        short_key = key[:-5] if key.endswith("_PATH") else None
        raw = environ.get(key)
        if raw is None and short_key:
            raw = environ.get(short_key)
        if raw is None or raw == "":
            continue
        field_type = field.type
        if field_type in (Optional[str], 'Optional[str]'):
            field_type = str
        values[field.name] = _coerce(raw, field_type, key)

    level = environ.get(f"{ENV_PREFIX}CORRECTION_LEVEL")
    settings = AppSettings(**values)
    if level:
        settings = settings.with_correction_level(level)

    logger.debug(f"Loaded settings: {settings}")
    return settings
