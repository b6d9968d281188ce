"""
Language code helpers.

Containers tag tracks with ISO 639-2 codes (``eng``, ``fre``/``fra``) or
IETF tags (``en-US``); output file names use ISO 639-1.
"""

from typing import Dict, Optional, Set

UNDEFINED_LANGUAGE: str = "und"

# ISO 639-2 (bibliographic and terminologic) to ISO 639-1
ISO_639_2_TO_1: Dict[str, str] = {
    'eng': 'en',
    'spa': 'es',
    'fra': 'fr', 'fre': 'fr',
    'deu': 'de', 'ger': 'de',
    'ita': 'it',
    'por': 'pt',
    'rus': 'ru',
    'jpn': 'ja',
    'kor': 'ko',
    'zho': 'zh', 'chi': 'zh',
    'ara': 'ar',
    'nld': 'nl', 'dut': 'nl',
    'swe': 'sv',
    'nor': 'no',
    'dan': 'da',
    'fin': 'fi',
    'pol': 'pl',
    'tur': 'tr',
    'heb': 'he', 'iw': 'he',
    'ell': 'el', 'gre': 'el',
    'ces': 'cs', 'cze': 'cs',
    'slk': 'sk', 'slo': 'sk',
    'ron': 'ro', 'rum': 'ro',
    'hun': 'hu',
    'tha': 'th',
    'vie': 'vi',
    'ind': 'id',
    'msa': 'ms', 'zsm': 'ms',
    'hin': 'hi',
    'ben': 'bn',
    'tam': 'ta',
    'tel': 'te',
    'urd': 'ur',
    'fas': 'fa', 'per': 'fa',
    'ukr': 'uk',
    'bul': 'bg',
    'srp': 'sr',
    'hrv': 'hr',
    'slv': 'sl',
    'est': 'et',
    'lav': 'lv',
    'lit': 'lt',
    'isl': 'is',
    'gle': 'ga',
    'afr': 'af',
    'sqi': 'sq',
    'mkd': 'mk',
    'cat': 'ca',
    'eus': 'eu',
    'glg': 'gl',
}

ENGLISH_CODES: Set[str] = {'eng', 'en', 'english'}


def to_iso639_1(language: Optional[str]) -> str:
    """
    Convert a container language tag to a two-letter code.

    Args:
        language: ISO 639-2 code, ISO 639-1 code or IETF tag

    Returns:
        Two-letter code, the lowercased input for short unknown codes,
        or ``"und"``

    Example:
        >>> to_iso639_1("ger")
        'de'
        >>> to_iso639_1("en-US")
        'en'
    """
    if not language or not language.strip():
        return UNDEFINED_LANGUAGE

    trimmed = language.strip()
    lowered = trimmed.lower()

    if len(lowered) == 2:
        return lowered

    if lowered in ISO_639_2_TO_1:
        return ISO_639_2_TO_1[lowered]

    if '-' in lowered:
        primary = lowered.split('-', 1)[0]
        if len(primary) == 2:
            return primary
        if primary in ISO_639_2_TO_1:
            return ISO_639_2_TO_1[primary]

    return lowered if len(lowered) <= 3 else UNDEFINED_LANGUAGE


def is_english(language: Optional[str]) -> bool:
    """Check whether a language tag denotes English."""
    return bool(language) and (language.lower() in ENGLISH_CODES or to_iso639_1(language) == 'en')
