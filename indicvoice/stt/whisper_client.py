"""
indicvoice/stt/whisper_client.py
=================================
Whisper STT Client — IndicVoice

Responsibility:
    - Transcribe audio with a locally hosted open-weights Whisper service
      (multipart upload: audio file + target language)
    - Fall back to the hosted OpenAI Whisper model with the same payload
      shape when the local service fails and OPENAI_API_KEY is configured
    - Probe the local service health endpoint for backend selection

This module does NOT:
    - Translate audio to English
    - Retry a failed hosted call
"""

import io
import logging

import aiohttp
from openai import AsyncOpenAI, OpenAIError

from indicvoice.audio.pcm import pcm_to_wav
from indicvoice.config import SUPPORTED_LANGUAGES
from indicvoice.errors import TranscriptionFailed
from indicvoice.schemas import VoiceResult
from indicvoice.stt.base import TRANSPORT_ERRORS, STTBackend

logger = logging.getLogger("indicvoice.stt.whisper_client")

LOCAL_CONFIDENCE = 0.85
HOSTED_CONFIDENCE = 0.9


class WhisperClient(STTBackend):
    """Open-weights Whisper: local service first, hosted OpenAI model as fallback."""

    backend_id = "whisper"
    supported_languages = SUPPORTED_LANGUAGES

    def __init__(self, settings, session, *, openai_client: AsyncOpenAI | None = None) -> None:
        super().__init__(settings, session)
        self._openai_client = openai_client
        self._owns_openai_client = openai_client is None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def probe(self) -> bool:
        """GET /health on the local service."""
        try:
            async with self.session.get(
                self._local_url("/health"),
                timeout=aiohttp.ClientTimeout(total=self.settings.whisper_probe_timeout_s),
            ) as resp:
                logger.debug("Whisper probe status %d", resp.status)
                return resp.ok
        except TRANSPORT_ERRORS as exc:
            logger.warning("Whisper probe failed: %s", exc)
            return False

    async def transcribe(self, audio_bytes: bytes, language: str) -> VoiceResult:
        """
        Transcribe audio with Whisper.

        Args:
            audio_bytes: Mono 16 kHz PCM16 audio (raw or WAV).
            language:    ISO 639-1 language code.

        Returns:
            VoiceResult (confidence 0.85 local, 0.9 hosted).

        Raises:
            TranscriptionFailed: If the local call fails and the hosted
                fallback is unavailable or also fails.
        """
        wav_bytes = pcm_to_wav(audio_bytes)

        try:
            text = await self._transcribe_local(wav_bytes, language)
            return VoiceResult(text=text, language=language, confidence=LOCAL_CONFIDENCE)
        except TRANSPORT_ERRORS as exc:
            local_error = exc
            logger.warning("Local Whisper failed: %s", exc)

        if not self.settings.openai_api_key:
            raise TranscriptionFailed(
                self.backend_id,
                f"local service failed ({local_error}) and no hosted credential is configured",
            )

        logger.info("Falling back to hosted Whisper (%s).", self.settings.openai_whisper_model)
        try:
            text = await self._transcribe_hosted(wav_bytes, language)
        except OpenAIError as exc:
            raise TranscriptionFailed(self.backend_id, f"hosted Whisper failed: {exc}") from exc

        return VoiceResult(text=text, language=language, confidence=HOSTED_CONFIDENCE)

    async def aclose(self) -> None:
        """Close the hosted Whisper client if this adapter created it."""
        client = self._openai_client
        if client is not None and self._owns_openai_client:
            self._openai_client = None
            await client.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _local_url(self, path: str) -> str:
        return self.settings.whisper_api_url.rstrip("/") + path

    async def _transcribe_local(self, wav_bytes: bytes, language: str) -> str:
        form = aiohttp.FormData()
        form.add_field("file", wav_bytes, filename="audio.wav", content_type="audio/wav")
        form.add_field("language", language)

        async with self.session.post(
            self._local_url("/asr"),
            data=form,
            timeout=self.request_timeout,
        ) as resp:
            if not resp.ok:
                raise aiohttp.ClientError(f"local Whisper returned status {resp.status}")
            body = await resp.json()

        if not isinstance(body, dict):
            raise ValueError("local Whisper returned a non-object response")
        return (body.get("text") or "").strip()

    async def _transcribe_hosted(self, wav_bytes: bytes, language: str) -> str:
        client = self._openai_client
        if client is None:
            client = AsyncOpenAI(api_key=self.settings.openai_api_key)
            self._openai_client = client

        audio_file = io.BytesIO(wav_bytes)
        audio_file.name = "audio.wav"

        response = await client.audio.transcriptions.create(
            model=self.settings.openai_whisper_model,
            file=audio_file,
            language=language,
        )
        return (getattr(response, "text", "") or "").strip()
