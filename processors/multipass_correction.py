"""
Multi-pass OCR correction.

Runs the correction rule engine repeatedly over SRT content, recording
statistics for every pass, until the output stops changing or the pass
budget of the selected mode is used up.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from utils.file_operations import FileHandler
from utils.logging_config import get_logger
from core.encoding_detection import EncodingDetector
from core.errors import OperationCancelled
from core.process_runner import CancellationToken, check_cancelled
from processors.correction_rules import CorrectionRuleEngine

logger = get_logger(__name__)


class CorrectionMode(Enum):
    """Pass budget and convergence behaviour of a correction run."""
    FAST = "fast"
    STANDARD = "standard"
    THOROUGH = "thorough"

    @property
    def max_passes(self) -> int:
        return _MODE_SETTINGS[self][0]

    @property
    def use_convergence(self) -> bool:
        return _MODE_SETTINGS[self][1]

    @classmethod
    def from_name(cls, name: str) -> 'CorrectionMode':
        """
        Look up a mode by name, case-insensitively.

        Raises:
            ValueError: If the name is not a known mode
        """
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown correction mode: {name}")


# mode -> (max passes, stop when a pass changes nothing)
_MODE_SETTINGS: Dict[CorrectionMode, Tuple[int, bool]] = {
    CorrectionMode.FAST: (1, False),
    CorrectionMode.STANDARD: (3, True),
    CorrectionMode.THOROUGH: (5, False),
}


@dataclass(frozen=True)
class PassStatistics:
    """Statistics of one correction pass."""
    pass_number: int
    corrections: int
    elapsed_ms: float
    categories: Dict[str, int] = field(default_factory=dict)


@dataclass
class MultiPassResult:
    """Outcome of a multi-pass correction run."""
    content: str
    passes: List[PassStatistics] = field(default_factory=list)
    converged: bool = False
    warnings: List[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def passes_completed(self) -> int:
        return len(self.passes)

    @property
    def total_corrections(self) -> int:
        return sum(p.corrections for p in self.passes)

    def get_summary(self) -> str:
        """One-line description of the run."""
        state = "converged" if self.converged else "not converged"
        return (f"{self.total_corrections} corrections in {self.passes_completed} passes "
                f"({state}, {self.elapsed_ms:.0f} ms)")


class MultiPassCorrectionEngine:
    """Applies the rule engine pass after pass."""

    def __init__(self, engine: Optional[CorrectionRuleEngine] = None):
        self.engine = engine or CorrectionRuleEngine()

    def process_with_passes(self, content: str, max_passes: int, use_convergence: bool = True,
                            cancel: Optional[CancellationToken] = None) -> MultiPassResult:
        """
        Correct SRT content with an explicit pass budget.

        Args:
            content: SRT content
            max_passes: Maximum number of passes
            use_convergence: Stop as soon as a pass changes nothing
            cancel: Optional cancellation token, checked before every pass

        Returns:
            MultiPassResult. If a pass raises, the result holds the content
            of the last completed pass and a warning.

        Raises:
            OperationCancelled: If cancelled between passes
        """
        logger.info(f"Starting multi-pass correction (max passes: {max_passes}, "
                    f"convergence: {use_convergence})")
        started = time.perf_counter()
        result = MultiPassResult(content=content)
        current = content

        try:
            for pass_number in range(1, max_passes + 1):
                check_cancelled(cancel, "Correction cancelled")

                pass_started = time.perf_counter()
                corrected, categories = self.engine.correct_srt_content_by_category(current)
                stats = PassStatistics(
                    pass_number=pass_number,
                    corrections=sum(categories.values()),
                    elapsed_ms=(time.perf_counter() - pass_started) * 1000.0,
                    categories=categories,
                )
                result.passes.append(stats)

                unchanged = corrected == current
                current = corrected
                result.content = current
                result.converged = unchanged
                logger.debug(f"Pass {pass_number}: {stats.corrections} corrections "
                             f"in {stats.elapsed_ms:.1f} ms")

                if use_convergence and unchanged:
                    logger.info(f"Convergence reached after {pass_number} passes")
                    break
        except OperationCancelled:
            logger.warning("Multi-pass correction was cancelled")
            raise
        except Exception as e:
            logger.error(f"Error during multi-pass correction: {e}")
            result.content = current
            result.warnings.append(f"Error during processing: {e}")

        result.elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.info(f"✓ Multi-pass correction: {result.get_summary()}")
        return result

    def process_srt_content(self, content: str, mode: CorrectionMode = CorrectionMode.STANDARD,
                            cancel: Optional[CancellationToken] = None) -> MultiPassResult:
        """
        Correct SRT content using the pass budget of a mode.

        Example:
            >>> engine = MultiPassCorrectionEngine()
            >>> result = engine.process_srt_content(srt_text, CorrectionMode.STANDARD)
            >>> print(result.get_summary())
        """
        return self.process_with_passes(content, mode.max_passes, mode.use_convergence, cancel)

    def process_file(self, path: Path, mode: CorrectionMode = CorrectionMode.STANDARD,
                     cancel: Optional[CancellationToken] = None) -> MultiPassResult:
        """
        Correct an SRT file in place, rewriting it only when it changed.

        Raises:
            IOError: If the file cannot be read or written
            OperationCancelled: If cancelled between passes
        """
        content, _ = EncodingDetector.read_file_with_encoding(path)
        result = self.process_srt_content(content, mode, cancel)
        if result.content != content:
            FileHandler.atomic_write(path, result.content)
        return result
