"""
indicvoice/config.py
=====================
Configuration — IndicVoice

Responsibility:
    - Define the immutable per-pipeline VoiceConfig snapshot
    - Load backend endpoints and credentials from environment variables
    - Hold the supported-language and BCP-47 code tables

Configuration is never mutated after construction. To change language,
backend or VAD behaviour, build a new VoiceConfig and a new pipeline.

This module does NOT:
    - Read configuration files
    - Probe backends or open network connections
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from indicvoice.errors import ConfigurationError

load_dotenv()

logger = logging.getLogger("indicvoice.config")


# ---------------------------------------------------------------------------
# Languages
# ---------------------------------------------------------------------------

DEFAULT_LANGUAGE = "en"

# Map ISO 639-1 to BCP 47 language codes (Indian locale)
LANGUAGE_CODES: dict[str, str] = {
    "en": "en-IN",
    "hi": "hi-IN",
    "ta": "ta-IN",
    "te": "te-IN",
    "kn": "kn-IN",
    "mr": "mr-IN",
    "bn": "bn-IN",
    "gu": "gu-IN",
    "ml": "ml-IN",
    "pa": "pa-IN",
    "or": "or-IN",
}

SUPPORTED_LANGUAGES: tuple[str, ...] = tuple(LANGUAGE_CODES)

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "hi": "Hindi",
    "ta": "Tamil",
    "te": "Telugu",
    "kn": "Kannada",
    "mr": "Marathi",
    "bn": "Bengali",
    "gu": "Gujarati",
    "ml": "Malayalam",
    "pa": "Punjabi",
    "or": "Odia",
}

AUTO_BACKEND = "auto"
BACKEND_CHOICES: tuple[str, ...] = (AUTO_BACKEND, "bhashini", "whisper", "google", "azure")


# ---------------------------------------------------------------------------
# Audio defaults
# ---------------------------------------------------------------------------

SAMPLE_RATE = 16000
SAMPLE_WIDTH = 2            # 16-bit PCM
FRAME_SIZE = 480            # 30 ms at 16 kHz
VAD_SPEECH_THRESHOLD = 0.5
VAD_HANGOVER_FRAMES = 30    # silent frames before speech end
DEFAULT_SILENCE_TIMEOUT_MS = 2000
MAX_CHUNK_DURATION_MS = 30000


def bcp47(language: str) -> str:
    """Return the BCP 47 code for an ISO 639-1 language (falls back to '<code>-IN')."""
    return LANGUAGE_CODES.get(language, f"{language}-IN")


# ---------------------------------------------------------------------------
# Per-pipeline configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VoiceConfig:
    """
    Immutable configuration snapshot for one pipeline instance.

    Raises:
        ConfigurationError: If the language, backend or a timing value is invalid.
    """

    language: str = DEFAULT_LANGUAGE
    backend: str = AUTO_BACKEND
    continuous: bool = True
    interim_results: bool = False
    auto_detect_language: bool = False
    vad_enabled: bool = True
    vad_threshold: float = VAD_SPEECH_THRESHOLD
    vad_hangover_frames: int = VAD_HANGOVER_FRAMES
    silence_timeout_ms: int = DEFAULT_SILENCE_TIMEOUT_MS
    max_chunk_duration_ms: int = MAX_CHUNK_DURATION_MS
    sample_rate: int = SAMPLE_RATE

    def __post_init__(self):
        if self.language not in LANGUAGE_CODES:
            raise ConfigurationError(
                f"Unsupported language '{self.language}'. "
                f"Allowed: {', '.join(SUPPORTED_LANGUAGES)}"
            )
        if self.backend not in BACKEND_CHOICES:
            raise ConfigurationError(
                f"Unknown backend '{self.backend}'. "
                f"Allowed: {', '.join(BACKEND_CHOICES)}"
            )
        if self.vad_threshold <= 0:
            raise ConfigurationError("vad_threshold must be positive.")
        if self.vad_hangover_frames < 0:
            raise ConfigurationError("vad_hangover_frames must be >= 0.")
        if self.silence_timeout_ms <= 0 or self.max_chunk_duration_ms <= 0:
            raise ConfigurationError(
                "silence_timeout_ms and max_chunk_duration_ms must be positive."
            )
        if self.sample_rate <= 0:
            raise ConfigurationError("sample_rate must be positive.")

    @property
    def is_auto_backend(self) -> bool:
        return self.backend == AUTO_BACKEND

    @property
    def language_code(self) -> str:
        """BCP 47 code for the target language (e.g. 'hi-IN')."""
        return bcp47(self.language)


# ---------------------------------------------------------------------------
# Backend endpoints & credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackendSettings:
    """Endpoints and credentials for every STT backend, one set per backend."""

    bhashini_api_url: str = "https://meity-auth.ulcacontrib.org"
    bhashini_api_key: str | None = None
    bhashini_user_id: str | None = None
    bhashini_pipeline_id: str = "64392f96daac500b55c543cd"
    whisper_api_url: str = "http://localhost:9000"
    openai_api_key: str | None = None
    openai_whisper_model: str = "whisper-1"
    google_api_key: str | None = None
    google_speech_url: str = "https://speech.googleapis.com/v1/speech:recognize"
    azure_speech_key: str | None = None
    azure_speech_region: str = "centralindia"
    request_timeout_s: float = 60.0
    bhashini_probe_timeout_s: float = 3.0
    whisper_probe_timeout_s: float = 2.0

    @staticmethod
    def from_env() -> "BackendSettings":
        """
        Load backend settings from environment variables (.env supported).

        Returns:
            BackendSettings populated from the environment, defaults elsewhere.
        """
        defaults = BackendSettings()
        settings = BackendSettings(
            bhashini_api_url=os.getenv("BHASHINI_API_URL", defaults.bhashini_api_url),
            bhashini_api_key=os.getenv("BHASHINI_API_KEY") or None,
            bhashini_user_id=os.getenv("BHASHINI_USER_ID") or None,
            bhashini_pipeline_id=os.getenv("BHASHINI_PIPELINE_ID", defaults.bhashini_pipeline_id),
            whisper_api_url=os.getenv("WHISPER_API_URL", defaults.whisper_api_url),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_whisper_model=os.getenv("OPENAI_WHISPER_MODEL", defaults.openai_whisper_model),
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            google_speech_url=os.getenv("GOOGLE_SPEECH_URL", defaults.google_speech_url),
            azure_speech_key=os.getenv("AZURE_SPEECH_KEY") or None,
            azure_speech_region=os.getenv("AZURE_SPEECH_REGION", defaults.azure_speech_region),
            request_timeout_s=float(os.getenv("STT_REQUEST_TIMEOUT_S", str(defaults.request_timeout_s))),
        )
        logger.debug(
            "Backend settings loaded: bhashini_key=%s openai_key=%s google_key=%s azure_key=%s",
            bool(settings.bhashini_api_key),
            bool(settings.openai_api_key),
            bool(settings.google_api_key),
            bool(settings.azure_speech_key),
        )
        return settings
