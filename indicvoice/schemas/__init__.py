# indicvoice/schemas/__init__.py
# ===============================
# Result data types — IndicVoice
#
#   - VADResult:         per-frame speech/silence classification
#   - LanguageDetection: heuristic language guess for transcribed text
#   - VoiceSegment:      time-aligned slice of a long transcription
#   - VoiceResult:       transcription of one flushed segment

from indicvoice.schemas.results import (  # noqa: F401
    LanguageDetection,
    VADResult,
    VoiceResult,
    VoiceSegment,
)

__all__ = [
    "LanguageDetection",
    "VADResult",
    "VoiceResult",
    "VoiceSegment",
]
