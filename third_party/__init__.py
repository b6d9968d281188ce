"""
Third-party tool integrations.

This package contains adapters for the external command-line tools:
- MKVToolNix: mkvmerge for probing and mkvextract for track extraction
- Tesseract OCR: recognition of rendered PGS bitmap frames
"""

from .mkvtoolnix import MkvToolNixAdapter
from .tesseract_ocr import TesseractRecognizer, prepare_image

__all__ = [
    'MkvToolNixAdapter',
    'TesseractRecognizer',
    'prepare_image',
]
