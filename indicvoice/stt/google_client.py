"""
indicvoice/stt/google_client.py
================================
Google Speech-to-Text Client — IndicVoice

Single JSON call: base64 audio plus a fixed LINEAR16 / 16 kHz declaration.
The response carries a list of alternatives with confidence scores; the
first alternative of the first result is the transcript, the remaining
alternatives are kept as ``VoiceResult.alternatives``.

Selectable only by explicit configuration (caller-supplied, billed key).
"""

import base64
import logging

from indicvoice.config import SAMPLE_RATE, bcp47
from indicvoice.errors import ConfigurationError, TranscriptionFailed
from indicvoice.schemas import VoiceResult
from indicvoice.stt.base import TRANSPORT_ERRORS, STTBackend

logger = logging.getLogger("indicvoice.stt.google_client")

DEFAULT_CONFIDENCE = 0.8
FALLBACK_LANGUAGE_CODES = ["en-IN"]


class GoogleSpeechClient(STTBackend):
    """Google Cloud Speech-to-Text v1 (speech:recognize)."""

    backend_id = "google"
    supported_languages = ("en", "hi", "ta", "te", "kn", "mr", "bn", "gu", "ml")

    async def probe(self) -> bool:
        return bool(self.settings.google_api_key)

    async def transcribe(self, audio_bytes: bytes, language: str) -> VoiceResult:
        """
        Transcribe audio with Google Speech-to-Text.

        Raises:
            ConfigurationError: If GOOGLE_API_KEY is not set.
            TranscriptionFailed: If the API call fails.
        """
        api_key = self.settings.google_api_key
        if not api_key:
            raise ConfigurationError("GOOGLE_API_KEY environment variable is not set.")

        payload = {
            "config": {
                "encoding": "LINEAR16",
                "sampleRateHertz": SAMPLE_RATE,
                "languageCode": bcp47(language),
                "alternativeLanguageCodes": FALLBACK_LANGUAGE_CODES,
            },
            "audio": {"content": base64.b64encode(audio_bytes).decode("ascii")},
        }

        try:
            async with self.session.post(
                self.settings.google_speech_url,
                params={"key": api_key},
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.request_timeout,
            ) as resp:
                if not resp.ok:
                    raise TranscriptionFailed(
                        self.backend_id, f"Speech API returned status {resp.status}"
                    )
                body = await resp.json()
        except TRANSPORT_ERRORS as exc:
            raise TranscriptionFailed(self.backend_id, f"Speech API request failed: {exc}") from exc

        try:
            return _parse_response(body, language)
        except (AttributeError, TypeError, IndexError, ValueError) as exc:
            raise TranscriptionFailed(
                self.backend_id, f"malformed Speech API response: {exc!r}"
            ) from exc


def _parse_response(body: dict, language: str) -> VoiceResult:
    results = (body or {}).get("results") or []
    alternatives = (results[0].get("alternatives") or []) if results else []

    if not alternatives:
        logger.info("Google returned no alternatives — empty transcript.")
        return VoiceResult(text="", language=language, confidence=DEFAULT_CONFIDENCE)

    best = alternatives[0]
    others = tuple(
        (alt.get("transcript") or "").strip()
        for alt in alternatives[1:]
        if (alt.get("transcript") or "").strip()
    )
    return VoiceResult(
        text=(best.get("transcript") or "").strip(),
        language=language,
        confidence=float(best.get("confidence") or DEFAULT_CONFIDENCE),
        alternatives=others,
    )
