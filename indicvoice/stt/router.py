"""
indicvoice/stt/router.py
=========================
STT Router — IndicVoice

Responsibility:
    - Enumerate the closed set of STT backends
    - Build backend adapters, checking required credentials
    - Select a backend for a VoiceConfig (explicit or auto-probed)
    - Cache probe results for the lifetime of the pipeline instance

Selection policy:
    1. Explicit backend (not "auto") → used unconditionally, no probing
    2. Auto, non-English target language and BHASHINI key configured
       → BHASHINI if its pipeline endpoint is reachable
    3. Auto → local Whisper service if its health check passes
    4. Otherwise → no backend available

Google and Azure are never auto-selected: they need caller-supplied keys
with billing implications.

This module does NOT:
    - Transcribe audio (adapters do)
    - Re-probe after selection; reconfiguration means a new pipeline
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

import aiohttp

from indicvoice.config import DEFAULT_LANGUAGE, BackendSettings, VoiceConfig
from indicvoice.errors import ConfigurationError
from indicvoice.stt.azure_client import AzureSpeechClient
from indicvoice.stt.base import STTBackend
from indicvoice.stt.bhashini_client import BhashiniClient
from indicvoice.stt.google_client import GoogleSpeechClient
from indicvoice.stt.whisper_client import WhisperClient

logger = logging.getLogger("indicvoice.stt.router")


# ---------------------------------------------------------------------------
# Backend identifiers
# ---------------------------------------------------------------------------


class BackendId(str, Enum):
    """Closed set of STT backends."""

    BHASHINI = "bhashini"
    WHISPER = "whisper"
    GOOGLE = "google"
    AZURE = "azure"


_BACKEND_CLASSES: dict[BackendId, type[STTBackend]] = {
    BackendId.BHASHINI: BhashiniClient,
    BackendId.WHISPER: WhisperClient,
    BackendId.GOOGLE: GoogleSpeechClient,
    BackendId.AZURE: AzureSpeechClient,
}

# Credential each backend cannot work without (None → no hard requirement)
_REQUIRED_CREDENTIALS: dict[BackendId, tuple[str, str] | None] = {
    BackendId.BHASHINI: ("bhashini_api_key", "BHASHINI_API_KEY"),
    BackendId.WHISPER: None,
    BackendId.GOOGLE: ("google_api_key", "GOOGLE_API_KEY"),
    BackendId.AZURE: ("azure_speech_key", "AZURE_SPEECH_KEY"),
}


def create_backend(
    backend_id: BackendId | str,
    settings: BackendSettings,
    session: aiohttp.ClientSession,
) -> STTBackend:
    """
    Build the adapter for a backend.

    Raises:
        ConfigurationError: If the backend is unknown or its required
            credential is missing.
    """
    try:
        backend_id = BackendId(backend_id)
    except ValueError as exc:
        raise ConfigurationError(f"Unknown STT backend '{backend_id}'.") from exc

    required = _REQUIRED_CREDENTIALS[backend_id]
    if required is not None:
        attr, env_name = required
        if not getattr(settings, attr):
            raise ConfigurationError(
                f"{env_name} environment variable is not set "
                f"(required by the '{backend_id.value}' backend)."
            )

    return _BACKEND_CLASSES[backend_id](settings, session)


# ---------------------------------------------------------------------------
# Availability cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackendAvailability:
    """Outcome of one reachability probe."""

    reachable: bool
    probed_at: float


class BackendProber:
    """
    Probes backends for reachability and picks one for a VoiceConfig.

    Probe results are recorded once, during selection. The transcription
    path only reads them (see ``fallback_after``).
    """

    def __init__(
        self,
        settings: BackendSettings,
        session: aiohttp.ClientSession,
        *,
        clock=time.time,
    ) -> None:
        self.settings = settings
        self.session = session
        self._clock = clock
        self._availability: dict[BackendId, BackendAvailability] = {}

    @property
    def availability(self) -> Mapping[BackendId, BackendAvailability]:
        """Read-only view of the probe cache."""
        return MappingProxyType(self._availability)

    def auto_candidates(self, config: VoiceConfig) -> list[BackendId]:
        """Auto-selection candidates in priority order."""
        candidates: list[BackendId] = []
        if config.language != DEFAULT_LANGUAGE and self.settings.bhashini_api_key:
            candidates.append(BackendId.BHASHINI)
        candidates.append(BackendId.WHISPER)
        return candidates

    async def select(self, config: VoiceConfig) -> BackendId | None:
        """
        Choose the backend for a pipeline.

        Returns:
            The selected BackendId, or None if no backend is available.
        """
        if not config.is_auto_backend:
            backend = BackendId(config.backend)
            logger.info("STT backend selected: %s (explicit).", backend.value)
            return backend

        candidates = self.auto_candidates(config)
        await self._probe_all(candidates)

        for backend in candidates:
            if self._availability[backend].reachable:
                logger.info("STT backend selected: %s (auto).", backend.value)
                return backend

        logger.warning(
            "No STT backend available (probed: %s).",
            ", ".join(b.value for b in candidates),
        )
        return None

    def fallback_after(self, config: VoiceConfig, backend: BackendId | str) -> BackendId | None:
        """
        Next reachable auto candidate after ``backend``, from cached probes only.

        Explicit configurations never fall back.
        """
        if not config.is_auto_backend:
            return None

        candidates = self.auto_candidates(config)
        try:
            start = candidates.index(BackendId(backend)) + 1
        except ValueError:
            return None

        for candidate in candidates[start:]:
            entry = self._availability.get(candidate)
            if entry is not None and entry.reachable:
                return candidate
        return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _probe_all(self, candidates: list[BackendId]) -> None:
        to_probe = [b for b in candidates if b not in self._availability]
        if not to_probe:
            return

        results = await asyncio.gather(*(self._probe(b) for b in to_probe))
        now = self._clock()
        for backend, reachable in zip(to_probe, results):
            self._availability[backend] = BackendAvailability(reachable=reachable, probed_at=now)
            logger.info(
                "Probe %s: %s", backend.value, "reachable" if reachable else "unreachable"
            )

    async def _probe(self, backend: BackendId) -> bool:
        adapter = _BACKEND_CLASSES[backend](self.settings, self.session)
        try:
            return await adapter.probe()
        except Exception as exc:
            logger.warning("Probe of %s raised: %s", backend.value, exc)
            return False
