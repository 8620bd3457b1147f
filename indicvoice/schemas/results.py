"""
indicvoice/schemas/results.py
==============================
Result data types — IndicVoice

All result types are frozen dataclasses. A result is produced once per
flushed segment and handed to callers unchanged; enrichment (detected
language, finality) creates a new instance via ``dataclasses.replace``.
"""

from dataclasses import asdict, dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class VADResult:
    """Classification of a single audio frame."""

    is_speech: bool
    energy: float
    speech_start: bool
    speech_end: bool


@dataclass(frozen=True)
class LanguageDetection:
    """Heuristic language guess for a piece of text."""

    language: str
    confidence: float   # 0.0 – 1.0


@dataclass(frozen=True)
class VoiceSegment:
    """A time-aligned slice of a long transcription (offsets in milliseconds)."""

    text: str
    start: float
    end: float
    confidence: float


@dataclass(frozen=True)
class VoiceResult:
    """Transcription of one segment of audio."""

    text: str
    language: str
    confidence: float
    alternatives: tuple[str, ...] = ()
    is_final: bool | None = None
    detected_language: str | None = None
    duration: float | None = None           # milliseconds
    segments: tuple[VoiceSegment, ...] = field(default_factory=tuple)

    def with_updates(self, **changes: Any) -> "VoiceResult":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["alternatives"] = list(self.alternatives)
        data["segments"] = [asdict(s) for s in self.segments]
        return data
