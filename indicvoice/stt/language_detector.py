"""
indicvoice/stt/language_detector.py
====================================
Language Detection — IndicVoice

Responsibility:
    - Guess the language of transcribed text from lexical markers and
      Unicode script ranges
    - Pure and stateless; no network, no model

Algorithm:
    1. Empty / whitespace-only text → (default language, 0.0)
    2. Any lexical marker found as a substring → (marker language, 0.9)
    3. Otherwise count characters per script; the script with the highest
       count wins (ties → earliest in SCRIPT_RANGES); confidence is
       matched characters / non-whitespace characters, clamped to [0, 1]

Hindi and Marathi share Devanagari; without a marker, Devanagari text
resolves to Hindi because it is declared first.

This module does NOT:
    - Use statistical or ML language identification
    - Analyse audio
"""

import logging
import re

from indicvoice.config import DEFAULT_LANGUAGE
from indicvoice.schemas import LanguageDetection

logger = logging.getLogger("indicvoice.stt.language_detector")

MARKER_CONFIDENCE = 0.9


# ---------------------------------------------------------------------------
# Script ranges. Declaration order is the tie-break order.
# ---------------------------------------------------------------------------

SCRIPT_RANGES: dict[str, re.Pattern[str]] = {
    "hi": re.compile(r"[\u0900-\u097F]"),   # Devanagari (Hindi, Marathi, Sanskrit)
    "mr": re.compile(r"[\u0900-\u097F]"),   # Devanagari (shared with Hindi)
    "ta": re.compile(r"[\u0B80-\u0BFF]"),   # Tamil
    "te": re.compile(r"[\u0C00-\u0C7F]"),   # Telugu
    "kn": re.compile(r"[\u0C80-\u0CFF]"),   # Kannada
    "bn": re.compile(r"[\u0980-\u09FF]"),   # Bengali
    "gu": re.compile(r"[\u0A80-\u0AFF]"),   # Gujarati
    "ml": re.compile(r"[\u0D00-\u0D7F]"),   # Malayalam
    "pa": re.compile(r"[\u0A00-\u0A7F]"),   # Gurmukhi (Punjabi)
    "or": re.compile(r"[\u0B00-\u0B7F]"),   # Odia
    "en": re.compile(r"[A-Za-z]"),          # ASCII Latin
}


# ---------------------------------------------------------------------------
# Lexical markers: short function words, checked in declaration order.
# ---------------------------------------------------------------------------

LANGUAGE_MARKERS: dict[str, str] = {
    # Hindi
    "है": "hi", "हैं": "hi", "का": "hi", "की": "hi", "में": "hi", "को": "hi",
    # Marathi
    "आहे": "mr", "होते": "mr", "केले": "mr", "झाले": "mr",
    # Tamil
    "இருக்கிறது": "ta", "என்ன": "ta", "இது": "ta",
    # Telugu
    "ఉంది": "te", "అది": "te", "ఇది": "te",
    # Kannada
    "ಇದೆ": "kn", "ಅದು": "kn", "ಇದು": "kn",
    # Bengali
    "আছে": "bn", "এটা": "bn", "হয়": "bn",
    # Gujarati
    "છે": "gu", "હતું": "gu", "કરે": "gu",
    # Malayalam
    "ആണ്": "ml", "ഉണ്ട്": "ml", "ഇത്": "ml",
    # Punjabi
    "ਹੈ": "pa", "ਦਾ": "pa", "ਦੀ": "pa",
    # Odia
    "ଅଛି": "or", "ଏହା": "or", "ହେଉଛି": "or",
}

_WHITESPACE = re.compile(r"\s")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_language(text: str, default_language: str = DEFAULT_LANGUAGE) -> LanguageDetection:
    """
    Detect the language of a piece of text.

    Args:
        text:             Transcribed text.
        default_language: Returned for empty text or when no script matches.

    Returns:
        LanguageDetection with the language code and a confidence in [0, 1].
    """
    if not text or not text.strip():
        return LanguageDetection(language=default_language, confidence=0.0)

    for marker, language in LANGUAGE_MARKERS.items():
        if marker in text:
            return LanguageDetection(language=language, confidence=MARKER_CONFIDENCE)

    best_language = default_language
    best_count = 0
    for language, pattern in SCRIPT_RANGES.items():
        count = len(pattern.findall(text))
        if count > best_count:
            best_language = language
            best_count = count

    total_chars = len(_WHITESPACE.sub("", text))
    confidence = min(best_count / total_chars, 1.0) if total_chars > 0 else 0.0

    logger.debug(
        "Script detection: %s (%d/%d chars, confidence=%.2f)",
        best_language, best_count, total_chars, confidence,
    )
    return LanguageDetection(language=best_language, confidence=confidence)
