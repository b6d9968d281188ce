"""
Tesseract OCR integration.

Recognizes the text of a single rendered subtitle bitmap by running the
``tesseract`` command line tool on a temporary PNG. Bitmaps are prepared
the way OCR engines prefer them: dark text on a white background with a
small margin around the glyphs.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps

from utils.config import AppSettings
from utils.constants import OCR_FRAME_TIMEOUT, TESSERACT_PAGE_SEGMENTATION_MODE
from utils.logging_config import get_logger
from core.errors import ProcessTimeout
from core.process_runner import CancellationToken, ProcessRunner

logger = get_logger(__name__)

# White border added around the glyphs (pixels)
OCR_MARGIN = 10

# Luminance below which a grayscale image is treated as light-on-dark
_DARK_BACKGROUND_MEAN = 128


def prepare_image(image: Image.Image, margin: int = OCR_MARGIN) -> Image.Image:
    """
    Flatten a subtitle bitmap for OCR.

    The RGBA bitmap is composited onto black using its alpha channel,
    converted to grayscale, inverted when the result is mostly dark (the
    usual light glyphs) and padded with a white margin.

    Args:
        image: Rendered subtitle bitmap
        margin: Border width in pixels

    Returns:
        Grayscale image ready for Tesseract
    """
    if image.mode != 'RGBA':
        image = image.convert('RGBA')

    background = Image.new('RGB', image.size, (0, 0, 0))
    background.paste(image, mask=image.split()[3])
    grayscale = background.convert('L')

    histogram = grayscale.histogram()
    total = sum(histogram) or 1
    mean = sum(value * count for value, count in enumerate(histogram)) / total
    if mean < _DARK_BACKGROUND_MEAN:
        grayscale = ImageOps.invert(grayscale)

    if margin > 0:
        grayscale = ImageOps.expand(grayscale, border=margin, fill=255)
    return grayscale


class TesseractRecognizer:
    """Runs Tesseract on one bitmap at a time."""

    def __init__(self, settings: Optional[AppSettings] = None,
                 runner: Optional[ProcessRunner] = None,
                 timeout: float = OCR_FRAME_TIMEOUT):
        self.settings = settings or AppSettings()
        self.runner = runner or ProcessRunner()
        self.timeout = timeout

    def build_command(self, image_path: Path, output_base: Path, language: str) -> list:
        cmd = [self.settings.tesseract_path, str(image_path), str(output_base)]
        if self.settings.tessdata_dir:
            cmd.extend(["--tessdata-dir", self.settings.tessdata_dir])
        cmd.extend(["--psm", str(TESSERACT_PAGE_SEGMENTATION_MODE), "-l", language])
        return cmd

    def recognize(self, image: Image.Image, language: Optional[str] = None,
                  cancel: Optional[CancellationToken] = None) -> str:
        """
        Recognize the text of a bitmap.

        Args:
            image: Rendered subtitle bitmap
            language: Tesseract language code (defaults to the configured one)
            cancel: Optional cancellation token

        Returns:
            Recognized text, or "" when Tesseract failed, timed out or
            produced no output file

        Raises:
            ToolNotFound: If tesseract cannot be started
            OperationCancelled: If cancelled while Tesseract was running
        """
        language = language or self.settings.ocr_language
        fd, png_name = tempfile.mkstemp(prefix="srtx_ocr_", suffix=".png")
        os.close(fd)
        image_path = Path(png_name)
        output_base = image_path.with_suffix('')
        text_path = output_base.with_suffix('.txt')

        try:
            prepare_image(image).save(image_path, format='PNG')

            try:
                result = self.runner.run(self.build_command(image_path, output_base, language),
                                         timeout=self.timeout, cancel=cancel)
            except ProcessTimeout as e:
                logger.warning(f"Tesseract timed out: {e}")
                return ""

            if not result.ok:
                logger.warning(f"Tesseract exited with code {result.returncode}: "
                               f"{result.stderr.strip()[:200]}")
                return ""
            if not text_path.exists():
                logger.warning("Tesseract produced no output file")
                return ""

            return text_path.read_text(encoding='utf-8', errors='replace').strip()
        finally:
            for temp_file in (image_path, text_path):
                try:
                    temp_file.unlink()
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.debug(f"Could not remove temporary file {temp_file}: {e}")
