"""
indicvoice/stt/bhashini_client.py
==================================
BHASHINI ASR Client — IndicVoice

Responsibility:
    - Transcribe Indian-language audio through the BHASHINI (MeitY / ULCA)
      inference pipeline
    - Probe pipeline reachability for automatic backend selection

Protocol (two sequential calls):
    1. POST getModelsPipeline → pipeline descriptor containing the inference
       endpoint (callbackUrl), a per-request inference key and the ASR
       serviceId for the requested source language
    2. POST base64-encoded WAV audio plus that descriptor to the callbackUrl

Failure of either call surfaces as BackendUnavailable so the caller can fall
back to the next candidate backend.

This module does NOT:
    - Translate text
    - Cache pipeline descriptors across requests
"""

import base64
import logging
from dataclasses import dataclass

import aiohttp

from indicvoice.audio.pcm import pcm_to_wav
from indicvoice.config import SAMPLE_RATE, SUPPORTED_LANGUAGES, bcp47
from indicvoice.errors import BackendUnavailable
from indicvoice.schemas import VoiceResult
from indicvoice.stt.base import TRANSPORT_ERRORS, STTBackend

logger = logging.getLogger("indicvoice.stt.bhashini_client")

PIPELINE_CONFIG_PATH = "/ulca/apis/v0/model/getModelsPipeline"
BHASHINI_CONFIDENCE = 0.9


@dataclass(frozen=True)
class PipelineDescriptor:
    """Inference endpoint negotiated for one ASR request."""

    callback_url: str
    key_name: str
    key_value: str
    service_id: str


class BhashiniClient(STTBackend):
    """Government Indic ASR pipeline (BHASHINI)."""

    backend_id = "bhashini"
    supported_languages = SUPPORTED_LANGUAGES

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def probe(self) -> bool:
        """Ask for an ASR pipeline without a language; any 2xx means reachable."""
        if not self.settings.bhashini_api_key:
            return False

        payload = {
            "pipelineTasks": [{"taskType": "asr"}],
            "pipelineRequestConfig": {"pipelineId": self.settings.bhashini_pipeline_id},
        }
        try:
            async with self.session.post(
                self._config_url,
                json=payload,
                headers=self._auth_headers(),
                timeout=self._probe_timeout(),
            ) as resp:
                logger.debug("BHASHINI probe status %d", resp.status)
                return resp.ok
        except TRANSPORT_ERRORS as exc:
            logger.warning("BHASHINI probe failed: %s", exc)
            return False

    async def transcribe(self, audio_bytes: bytes, language: str) -> VoiceResult:
        """
        Transcribe audio via the BHASHINI ASR pipeline.

        Args:
            audio_bytes: Mono 16 kHz PCM16 audio (raw or WAV).
            language:    ISO 639-1 language code (e.g. "hi", "ta").

        Returns:
            VoiceResult with the transcript and a fixed confidence of 0.9.

        Raises:
            BackendUnavailable: If the descriptor or the inference call fails.
        """
        source_language = bcp47(language).split("-")[0]
        descriptor = await self._fetch_descriptor(source_language)

        payload = {
            "pipelineTasks": [
                {
                    "taskType": "asr",
                    "config": {
                        "language": {"sourceLanguage": source_language},
                        "serviceId": descriptor.service_id,
                        "audioFormat": "wav",
                        "samplingRate": SAMPLE_RATE,
                    },
                }
            ],
            "inputData": {
                "audio": [
                    {"audioContent": base64.b64encode(pcm_to_wav(audio_bytes)).decode("ascii")}
                ],
            },
        }
        headers = {
            "Content-Type": "application/json",
            descriptor.key_name: descriptor.key_value,
        }

        try:
            async with self.session.post(
                descriptor.callback_url,
                json=payload,
                headers=headers,
                timeout=self.request_timeout,
            ) as resp:
                if not resp.ok:
                    raise BackendUnavailable(
                        self.backend_id, f"ASR request failed with status {resp.status}"
                    )
                body = await resp.json()
        except TRANSPORT_ERRORS as exc:
            raise BackendUnavailable(self.backend_id, f"ASR request failed: {exc}") from exc

        text = _extract_transcript(body)
        logger.debug("BHASHINI transcript: %d chars (%s).", len(text), source_language)

        return VoiceResult(text=text, language=language, confidence=BHASHINI_CONFIDENCE)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def _config_url(self) -> str:
        return self.settings.bhashini_api_url.rstrip("/") + PIPELINE_CONFIG_PATH

    def _auth_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.bhashini_api_key:
            headers["Authorization"] = self.settings.bhashini_api_key
        if self.settings.bhashini_user_id:
            headers["userID"] = self.settings.bhashini_user_id
        return headers

    def _probe_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.settings.bhashini_probe_timeout_s)

    async def _fetch_descriptor(self, source_language: str) -> PipelineDescriptor:
        payload = {
            "pipelineTasks": [
                {
                    "taskType": "asr",
                    "config": {"language": {"sourceLanguage": source_language}},
                }
            ],
            "pipelineRequestConfig": {"pipelineId": self.settings.bhashini_pipeline_id},
        }

        try:
            async with self.session.post(
                self._config_url,
                json=payload,
                headers=self._auth_headers(),
                timeout=self.request_timeout,
            ) as resp:
                if not resp.ok:
                    raise BackendUnavailable(
                        self.backend_id,
                        f"pipeline config request failed with status {resp.status}",
                    )
                body = await resp.json()
        except TRANSPORT_ERRORS as exc:
            raise BackendUnavailable(
                self.backend_id, f"pipeline config request failed: {exc}"
            ) from exc

        return _parse_descriptor(body)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def _parse_descriptor(body: dict) -> PipelineDescriptor:
    """
    Extract the inference endpoint from a getModelsPipeline response.

    Raises:
        BackendUnavailable: If any required field is missing.
    """
    try:
        endpoint = body["pipelineInferenceAPIEndPoint"]
        api_key = endpoint["inferenceApiKey"]
        service_id = body["pipelineResponseConfig"][0]["config"][0]["serviceId"]
        return PipelineDescriptor(
            callback_url=endpoint["callbackUrl"],
            key_name=api_key.get("name") or "Authorization",
            key_value=api_key["value"],
            service_id=service_id,
        )
    except (KeyError, IndexError, TypeError) as exc:
        raise BackendUnavailable(
            BhashiniClient.backend_id, f"malformed pipeline descriptor: {exc!r}"
        ) from exc


def _extract_transcript(body: dict) -> str:
    """pipelineResponse[0].output[0].source, or "" when absent."""
    try:
        return (body["pipelineResponse"][0]["output"][0].get("source") or "").strip()
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
