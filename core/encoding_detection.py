"""
Encoding detection utilities for subtitle files.

Extracted text tracks are normally UTF-8, but older MKV files and MP4
tx3g tracks can carry legacy code pages. Detection order is BOM, strict
UTF-8, charset-normalizer and then chardet.
"""

from pathlib import Path
from typing import Optional, Tuple

import chardet
from charset_normalizer import from_bytes

from utils.constants import UTF8_BOM
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Encodings tried after the detectors give up
FALLBACK_ENCODINGS = ('cp1252', 'latin-1')


class EncodingDetector:
    """Handles encoding detection for subtitle files."""

    @staticmethod
    def detect_encoding_bytes(data: bytes) -> Optional[str]:
        """
        Detect the encoding of raw subtitle bytes.

        Args:
            data: File content

        Returns:
            Encoding name or None if detection failed
        """
        if data.startswith(UTF8_BOM):
            return 'utf-8-sig'

        try:
            data.decode('utf-8')
            return 'utf-8'
        except UnicodeDecodeError:
            pass

        try:
            best = from_bytes(data).best()
            if best is not None and best.encoding:
                logger.debug(f"charset-normalizer detected {best.encoding}")
                return best.encoding.lower()
        except (ValueError, LookupError) as e:
            logger.debug(f"charset-normalizer detection failed: {e}")

        result = chardet.detect(data)
        if result and result.get('encoding') and (result.get('confidence') or 0) > 0.7:
            logger.debug(f"chardet detected {result['encoding']} ({result['confidence']:.2f})")
            return result['encoding'].lower()

        return None

    @staticmethod
    def decode(data: bytes) -> Tuple[str, str]:
        """
        Decode subtitle bytes with automatic encoding detection.

        Args:
            data: File content

        Returns:
            Tuple of (text, encoding_used)
        """
        encoding = EncodingDetector.detect_encoding_bytes(data)
        if encoding:
            try:
                return data.decode(encoding), encoding
            except (UnicodeDecodeError, LookupError) as e:
                logger.debug(f"Decoding with detected {encoding} failed: {e}")

        for encoding in FALLBACK_ENCODINGS:
            try:
                return data.decode(encoding), encoding
            except UnicodeDecodeError:
                continue

        logger.warning("Could not detect encoding, using UTF-8 with error replacement")
        return data.decode('utf-8', errors='replace'), 'utf-8'

    @staticmethod
    def read_file_with_encoding(file_path: Path) -> Tuple[str, str]:
        """
        Read a file with automatic encoding detection and BOM handling.

        Args:
            file_path: Path to the file to read

        Returns:
            Tuple of (file_content, encoding_used)

        Raises:
            IOError: If file cannot be read
        """
        try:
            data = file_path.read_bytes()
        except OSError as e:
            raise IOError(f"Cannot read file {file_path}: {e}")

        content, encoding = EncodingDetector.decode(data)
        logger.debug(f"Read {file_path.name} with encoding: {encoding}")
        return content, encoding
