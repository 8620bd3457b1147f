# indicvoice/stt/__init__.py
# ===========================
# Speech-to-Text Layer — IndicVoice
#
# Backends (one adapter per service, all sharing STTBackend):
#   - bhashini_client.py: BHASHINI ULCA two-step pipeline (Indic-first)
#   - whisper_client.py:  local Whisper service, hosted OpenAI Whisper fallback
#   - google_client.py:   Google Speech-to-Text (explicit configuration only)
#   - azure_client.py:    Azure Speech Services (explicit configuration only)
#
# Selection and post-processing:
#   - router.py:            BackendId, create_backend, BackendProber
#   - language_detector.py: script / marker based language detection

from indicvoice.stt.base import STTBackend  # noqa: F401
from indicvoice.stt.language_detector import detect_language  # noqa: F401
from indicvoice.stt.router import (  # noqa: F401
    BackendId,
    BackendProber,
    create_backend,
)

__all__ = [
    "BackendId",
    "BackendProber",
    "STTBackend",
    "create_backend",
    "detect_language",
]
