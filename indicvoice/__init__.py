# indicvoice/__init__.py
# =======================
# IndicVoice — real-time speech-to-text for Indian languages
#
# Layers:
#   - audio/:    PCM helpers, energy VAD, streaming segmenter, long-audio chunker
#   - stt/:      backend adapters (BHASHINI, Whisper, Google, Azure), router,
#                script-based language detection
#   - nlp/:      text normalization and voice command parsing
#   - pipeline:  VoicePipeline orchestrator + ResultChannel streaming
#
# Public API:
#   create_pipeline(config) → VoicePipeline

from indicvoice.config import BackendSettings, VoiceConfig  # noqa: F401
from indicvoice.errors import (  # noqa: F401
    BackendUnavailable,
    ChunkProcessingError,
    ConfigurationError,
    TranscriptionFailed,
    VoicePipelineError,
)
from indicvoice.pipeline import PipelineEvent, VoicePipeline, create_pipeline  # noqa: F401
from indicvoice.schemas import LanguageDetection, VoiceResult, VoiceSegment  # noqa: F401
from indicvoice.streaming import ResultChannel  # noqa: F401
from indicvoice.stt.language_detector import detect_language  # noqa: F401

__all__ = [
    "BackendSettings",
    "BackendUnavailable",
    "ChunkProcessingError",
    "ConfigurationError",
    "LanguageDetection",
    "PipelineEvent",
    "ResultChannel",
    "TranscriptionFailed",
    "VoiceConfig",
    "VoicePipeline",
    "VoicePipelineError",
    "VoiceResult",
    "VoiceSegment",
    "create_pipeline",
    "detect_language",
]
