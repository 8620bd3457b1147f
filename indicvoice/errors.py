"""
indicvoice/errors.py
=====================
Error taxonomy — IndicVoice

Responsibility:
    - Define the exceptions raised across the transcription pipeline
    - Carry the backend / chunk context callers need to decide on recovery

Recovery policy:
    - ConfigurationError    → fatal, surfaced immediately, never retried
    - BackendUnavailable    → triggers fallback to the next candidate backend
    - TranscriptionFailed   → reported for that segment only
    - ChunkProcessingError  → that chunk is omitted from a long transcription
"""


class VoicePipelineError(Exception):
    """Base class for all pipeline errors."""
    pass


class ConfigurationError(VoicePipelineError):
    """Raised when configuration is invalid or a required credential is missing."""
    pass


class BackendUnavailable(VoicePipelineError):
    """Raised when a backend cannot be reached (probe or first call failed)."""

    def __init__(self, backend: str | None, message: str):
        self.backend = backend
        self.message = message
        super().__init__(f"STT backend {backend or 'none'} unavailable: {message}")


class TranscriptionFailed(VoicePipelineError):
    """Raised when a selected backend fails to transcribe a segment."""

    def __init__(self, backend: str, message: str):
        self.backend = backend
        self.message = message
        super().__init__(f"Transcription via {backend} failed: {message}")


class ChunkProcessingError(VoicePipelineError):
    """Raised when one chunk of a long-audio transcription fails."""

    def __init__(self, offset: int, message: str):
        self.offset = offset
        self.message = message
        super().__init__(f"Chunk at byte offset {offset} failed: {message}")
