"""
OCR correction rules for subtitle text.

Tesseract output for subtitle bitmaps has a small set of recurring
mistakes: ``|`` or ``l`` read instead of ``I``, curly or split
apostrophes, dropped contraction apostrophes, ``rn`` read as ``m`` and
spacing around punctuation. This module provides an ordered rule set for
those errors and the engine that applies it.

The default rules are ordered so that a single application reaches a
fixed point: running the engine on its own output changes nothing.
Whitespace cleanup runs first because later rules never introduce
runs of spaces. ``|`` becomes ``I`` before apostrophe repair, since it is
the only rule that turns a non-word character into a word character and
``rn_after_apostrophe`` needs a word character in front. Apostrophe
repair runs before contraction repair.
"""

import re
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Pattern, Sequence, Tuple, Union
from utils.file_operations import FileHandler
from utils.logging_config import get_logger
from core.encoding_detection import EncodingDetector

logger = get_logger(__name__)

Replacement = Union[str, Callable[[re.Match], str]]

_LINE_SPLIT = re.compile(r'\r\n|\r|\n')


@dataclass(frozen=True)
class CorrectionRule:
    """A named substitution applied to subtitle text."""
    name: str
    pattern: Pattern
    replacement: Replacement
    category: str

    def apply(self, text: str) -> Tuple[str, int]:
        """
        Apply the rule once over the whole text.

        Returns:
            Tuple of (new_text, substitutions that changed the text)
        """
        changed = 0

        def _replace(match: re.Match) -> str:
            nonlocal changed
            if callable(self.replacement):
                new = self.replacement(match)
            else:
                new = match.expand(self.replacement)
            if new != match.group(0):
                changed += 1
            return new

        return self.pattern.sub(_replace, text), changed


def rule(name: str, pattern: str, replacement: Replacement, category: str, flags: int = 0) -> CorrectionRule:
    """Build a CorrectionRule from a pattern string."""
    return CorrectionRule(name, re.compile(pattern, flags), replacement, category)


# ============================================================================
# DEFAULT RULE SET
# ============================================================================

# Whole-word misreads (rn for m, li or b for h, vv for w).
# Capitalized forms are derived below.
_WORD_FIXES: Dict[str, str] = {
    'tbe': 'the', 'tlie': 'the', 'tbat': 'that', 'tliat': 'that',
    'tbis': 'this', 'tliis': 'this', 'tbey': 'they', 'tliey': 'they',
    'tbere': 'there', 'tliere': 'there', 'wbat': 'what', 'wliat': 'what',
    'wbo': 'who', 'wlio': 'who', 'wben': 'when', 'wlien': 'when',
    'wbere': 'where', 'wliere': 'where', 'witb': 'with', 'witli': 'with',
    'liim': 'him', 'liis': 'his', 'liave': 'have', 'liere': 'here',
    'frorn': 'from', 'sorne': 'some', 'tirne': 'time', 'rnore': 'more',
    'rnust': 'must', 'rnean': 'mean', 'corne': 'come', 'becorne': 'become',
    'horne': 'home', 'narne': 'name', 'sarne': 'same', 'rnuch': 'much',
    'rnaybe': 'maybe', 'rnake': 'make', 'rnother': 'mother', 'rnoney': 'money',
    'rne': 'me', 'rny': 'my', 'rnan': 'man', 'rnen': 'men',
    'rnind': 'mind', 'rnine': 'mine', 'rnade': 'made', 'rnany': 'many',
    'rnight': 'might', 'rnyself': 'myself', 'rnoment': 'moment', 'rnorning': 'morning',
    'sornething': 'something', 'sorneone': 'someone', 'sornetimes': 'sometimes',
    'corning': 'coming', 'forrn': 'form', 'norrnal': 'normal',
    'tben': 'then', 'tlien': 'then', 'tbink': 'think', 'tliink': 'think',
    'tbing': 'thing', 'tliing': 'thing', 'tbese': 'these', 'tliese': 'these',
    'tbose': 'those', 'tliose': 'those', 'notbing': 'nothing', 'notliing': 'nothing',
    'wby': 'why', 'wliy': 'why', 'sbe': 'she', 'slie': 'she',
    'sbould': 'should', 'sliould': 'should', 'liow': 'how', 'lielp': 'help',
    'liead': 'head', 'liurt': 'hurt', 'liand': 'hand', 'liard': 'hard',
    'riglit': 'right', 'niglit': 'night', 'miglit': 'might', 'liglit': 'light',
    'vvhat': 'what', 'vvhen': 'when', 'vvith': 'with', 'vvas': 'was', 'vve': 'we',
}
_WORD_FIXES.update({wrong.capitalize(): right.capitalize() for wrong, right in list(_WORD_FIXES.items())})

_WORD_FIX_PATTERN = r'\b(?:' + '|'.join(sorted(_WORD_FIXES, key=len, reverse=True)) + r')\b'

DEFAULT_RULES: Tuple[CorrectionRule, ...] = (
    # Whitespace
    rule('trim_line_edges', r'^[ \t]+|[ \t]+$', '', 'Whitespace', re.MULTILINE),
    rule('collapse_spaces', r'[ \t]{2,}', ' ', 'Whitespace'),

    # Pipe
    rule('pipe_as_capital_i', r'\|', 'I', 'OCR_Characters'),

    # Apostrophes
    rule('straighten_apostrophes', '[\u2018\u2019`\u00b4]', "'", 'Apostrophes'),
    rule('double_apostrophe_quote', r"''", '"', 'Apostrophes'),
    rule('rn_after_apostrophe', r"(?<=\w)'rn\b", "'m", 'Apostrophes'),
    rule('spaced_apostrophe', r"(\w)[ \t]*'[ \t]*(s|t|re|ve|ll|d|m)\b", r"\1'\2", 'Apostrophes'),

    # Characters
    rule('zero_inside_word', r'(?<=[A-Za-z])0(?=[A-Za-z])', 'o', 'OCR_Characters'),
    rule('one_inside_word', r'(?<=[a-z])1(?=[a-z])', 'l', 'OCR_Characters'),
    rule('five_inside_word', r'(?<=[a-z])5(?=[a-z])', 's', 'OCR_Characters'),
    rule('letter_o_in_number', r'(?<=\d)[Oo](?=\d)', '0', 'OCR_Characters'),
    rule('letter_l_in_number', r'(?<=\d)[lI](?=\d)', '1', 'OCR_Characters'),
    rule('lowercase_l_pronoun', r"(?<![\w'])l(?=\s|'(?:m|ll|ve|d)\b)", 'I', 'OCR_Characters'),
    rule('lowercase_l_word_start', r'\bl([tfns])\b', r'I\1', 'OCR_Characters'),
    rule('lowercase_i_pronoun', r"(?<![\w'])i(?=\s|'(?:m|ll|ve|d)\b)", 'I', 'OCR_Characters'),
    rule('misread_words', _WORD_FIX_PATTERN, lambda m: _WORD_FIXES[m.group(0)], 'Words'),

    # Contractions
    rule('missing_apostrophe_nt',
         r"\b([Dd]o|[Dd]oes|[Dd]id|[Ii]s|[Aa]re|[Ww]as|[Ww]ere|[Hh]as|[Hh]ave|[Hh]ad|"
         r"[Ww]ould|[Cc]ould|[Ss]hould|[Mm]ust|[Nn]eed)nt\b",
         r"\1n't", 'Contractions'),
    rule('missing_apostrophe_im', r'\bIm\b', "I'm", 'Contractions'),
    rule('missing_apostrophe_ive', r'\bIve\b', "I've", 'Contractions'),
    rule('missing_apostrophe_re', r'\b([Yy]ou|[Tt]hey)re\b', r"\1're", 'Contractions'),
    rule('missing_apostrophe_ve', r'\b([Yy]ou|[Ww]e|[Tt]hey|[Ww]ould|[Cc]ould|[Ss]hould|[Mm]ight)ve\b',
         r"\1've", 'Contractions'),
    rule('missing_apostrophe_ll', r'\b([Yy]ou|[Tt]hey)ll\b', r"\1'll", 'Contractions'),
    rule('missing_apostrophe_s', r'\b([Tt]hat|[Ww]hat|[Tt]here|[Hh]e|[Ss]he)s\b', r"\1's", 'Contractions'),

    # Punctuation
    rule('spaced_ellipsis', r'\.[ \t]+\.[ \t]+\.', '...', 'Punctuation'),
    rule('two_dot_ellipsis', r'(?<!\.)\.\.(?!\.)', '...', 'Punctuation'),
    rule('repeated_comma', r',{2,}', ',', 'Punctuation'),
    rule('space_before_punctuation', r'(?<=[A-Za-z])[ \t]+([,.!?;])', r'\1', 'Punctuation'),
    rule('space_after_punctuation', r'([,!?])(?=[A-Za-z])', r'\1 ', 'Punctuation'),
    rule('dialogue_dash_space', r'^-(?=[A-Za-z])', '- ', 'Punctuation', re.MULTILINE),
)


# ============================================================================
# ENGINE
# ============================================================================

def is_structural_line(line: str) -> bool:
    """True for blank lines, cue numbers and timing lines of an SRT file."""
    stripped = line.strip()
    return not stripped or stripped.isdigit() or '-->' in line


def _detect_newline(content: str) -> str:
    if '\r\n' in content:
        return '\r\n'
    if '\r' in content:
        return '\r'
    return '\n'


class CorrectionRuleEngine:
    """
    Applies an ordered rule set to subtitle text.

    The engine holds no mutable state, so one instance can serve several
    threads at once.

    Example:
        >>> engine = CorrectionRuleEngine()
        >>> engine.correct_text("l dont know")
        ("I don't know", 2)
    """

    def __init__(self, rules: Optional[Sequence[CorrectionRule]] = None):
        self.rules: Tuple[CorrectionRule, ...] = tuple(DEFAULT_RULES if rules is None else rules)

    def _apply(self, text: str, counts: Counter) -> str:
        for correction_rule in self.rules:
            text, changed = correction_rule.apply(text)
            if changed:
                counts[correction_rule.category] += changed
        return text

    def correct_text(self, text: str) -> Tuple[str, int]:
        """
        Correct a piece of subtitle text.

        Returns:
            Tuple of (corrected_text, substitutions_applied)
        """
        counts: Counter = Counter()
        corrected = self._apply(text, counts)
        return corrected, sum(counts.values())

    def correct_srt_content_by_category(self, content: str) -> Tuple[str, Dict[str, int]]:
        """
        Correct the text lines of SRT content.

        Cue numbers, timing lines and blank lines are left untouched.

        Returns:
            Tuple of (corrected_content, substitutions per rule category)
        """
        newline = _detect_newline(content)
        counts: Counter = Counter()
        lines: List[str] = []
        for line in _LINE_SPLIT.split(content):
            lines.append(line if is_structural_line(line) else self._apply(line, counts))
        return newline.join(lines), dict(counts)

    def correct_srt_content(self, content: str) -> Tuple[str, int]:
        """
        Correct the text lines of SRT content.

        Returns:
            Tuple of (corrected_content, substitutions_applied)
        """
        corrected, counts = self.correct_srt_content_by_category(content)
        return corrected, sum(counts.values())

    def correct_file(self, path: Path) -> int:
        """
        Correct an SRT file in place.

        The file is only rewritten when a correction changed its content.

        Args:
            path: SRT file to correct

        Returns:
            Number of substitutions applied

        Raises:
            FileNotFoundError: If the file does not exist
            IOError: If the file cannot be read or written
        """
        if not path.exists():
            raise FileNotFoundError(f"SRT file not found: {path}")

        logger.info(f"Correcting OCR errors in SRT file: {path.name}")
        content, _ = EncodingDetector.read_file_with_encoding(path)
        corrected, count = self.correct_srt_content(content)

        if corrected != content:
            FileHandler.atomic_write(path, corrected)
            logger.info(f"✓ {path.name}: {count} corrections applied")
        else:
            logger.info(f"No corrections needed in {path.name}")
        return count
