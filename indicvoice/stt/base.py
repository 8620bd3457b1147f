"""
indicvoice/stt/base.py
=======================
STT backend interface — IndicVoice

Every backend adapter translates the internal request (PCM audio + target
language) into its own wire protocol. The protocols are not unified; each
adapter owns its request and response shapes.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

import aiohttp

from indicvoice.config import SUPPORTED_LANGUAGES, BackendSettings
from indicvoice.schemas import VoiceResult

logger = logging.getLogger("indicvoice.stt.base")

# Transport-level failures every adapter maps onto the error taxonomy.
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ValueError,
)


class STTBackend(ABC):
    """Base class for speech-to-text backend adapters."""

    backend_id: str = ""
    supported_languages: tuple[str, ...] = SUPPORTED_LANGUAGES

    def __init__(self, settings: BackendSettings, session: aiohttp.ClientSession) -> None:
        self.settings = settings
        self.session = session

    @property
    def request_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.settings.request_timeout_s)

    @abstractmethod
    async def transcribe(self, audio_bytes: bytes, language: str) -> VoiceResult:
        """Transcribe mono 16 kHz PCM16 audio in the given ISO 639-1 language."""
        ...

    async def probe(self) -> bool:
        """Return True if the backend looks usable. Never raises."""
        return True

    async def aclose(self) -> None:
        """Release clients the adapter created itself. The shared session is not closed."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} backend={self.backend_id}>"
