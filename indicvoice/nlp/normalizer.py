"""
indicvoice/nlp/normalizer.py
=============================
Text Normalizer — IndicVoice

Responsibility:
    - Normalize transcribed text to Unicode NFC so composed Indic glyphs
      (nukta, vowel signs) compare equal across backends
    - Collapse whitespace runs and strip leading/trailing whitespace
    - Report whether text contains any Indic script

This module does NOT:
    - Remove fillers, translate or transliterate
    - Change letter case
"""

import logging
import re
import unicodedata

logger = logging.getLogger("indicvoice.nlp.normalizer")

# Devanagari (U+0900) through Malayalam (U+0D7F): every supported Indic block.
_INDIC_PATTERN: re.Pattern[str] = re.compile(r"[\u0900-\u0D7F]")

_WHITESPACE_PATTERN: re.Pattern[str] = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """
    Normalize a single text string.

    Steps (in order):
        1. Unicode NFC normalization
        2. Collapse whitespace runs to a single space
        3. Strip

    Args:
        text: Transcribed text.

    Returns:
        Normalized text.
    """
    if not text:
        return ""

    result = unicodedata.normalize("NFC", text)
    return _WHITESPACE_PATTERN.sub(" ", result).strip()


def contains_indic_script(text: str) -> bool:
    """True if any character falls in the Indic Unicode blocks."""
    return bool(text) and _INDIC_PATTERN.search(text) is not None
