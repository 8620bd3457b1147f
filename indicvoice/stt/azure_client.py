"""
indicvoice/stt/azure_client.py
===============================
Azure Speech Services Client — IndicVoice

Single call: the WAV audio is the raw request body (no base64), language is
a query parameter. The flat response object carries ``DisplayText`` and a
``RecognitionStatus`` enum that is mapped onto a confidence heuristic.

Selectable only by explicit configuration (caller-supplied, billed key).
"""

import logging

from indicvoice.audio.pcm import pcm_to_wav
from indicvoice.config import SAMPLE_RATE, bcp47
from indicvoice.errors import ConfigurationError, TranscriptionFailed
from indicvoice.schemas import VoiceResult
from indicvoice.stt.base import TRANSPORT_ERRORS, STTBackend

logger = logging.getLogger("indicvoice.stt.azure_client")

RECOGNITION_PATH = "/speech/recognition/conversation/cognitiveservices/v1"
SUCCESS_CONFIDENCE = 0.9
OTHER_CONFIDENCE = 0.5


class AzureSpeechClient(STTBackend):
    """Azure Speech-to-Text short-audio REST API."""

    backend_id = "azure"
    supported_languages = ("en", "hi", "ta", "te", "kn", "mr", "bn", "gu", "ml")

    async def probe(self) -> bool:
        return bool(self.settings.azure_speech_key)

    @property
    def endpoint(self) -> str:
        return f"https://{self.settings.azure_speech_region}.stt.speech.microsoft.com{RECOGNITION_PATH}"

    async def transcribe(self, audio_bytes: bytes, language: str) -> VoiceResult:
        """
        Transcribe audio with Azure Speech Services.

        Raises:
            ConfigurationError: If AZURE_SPEECH_KEY is not set.
            TranscriptionFailed: If the API call fails.
        """
        api_key = self.settings.azure_speech_key
        if not api_key:
            raise ConfigurationError("AZURE_SPEECH_KEY environment variable is not set.")

        headers = {
            "Ocp-Apim-Subscription-Key": api_key,
            "Content-Type": f"audio/wav; codecs=audio/pcm; samplerate={SAMPLE_RATE}",
        }

        try:
            async with self.session.post(
                self.endpoint,
                params={"language": bcp47(language)},
                data=pcm_to_wav(audio_bytes),
                headers=headers,
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
        except (AttributeError, TypeError) as exc:
            raise TranscriptionFailed(
                self.backend_id, f"malformed Speech API response: {exc!r}"
            ) from exc


def _parse_response(body: dict, language: str) -> VoiceResult:
    status = body.get("RecognitionStatus")
    if status != "Success":
        logger.info("Azure recognition status: %s", status)

    return VoiceResult(
        text=(body.get("DisplayText") or "").strip(),
        language=language,
        confidence=SUCCESS_CONFIDENCE if status == "Success" else OTHER_CONFIDENCE,
    )
