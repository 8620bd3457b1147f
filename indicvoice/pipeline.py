"""
indicvoice/pipeline.py
=======================
Voice Pipeline Orchestrator — IndicVoice

Responsibility:
    1. Select an STT backend once per pipeline (explicit or auto-probed)
    2. Transcribe single buffers, with BHASHINI → Whisper fallback in auto mode
    3. Transcribe long buffers in fixed-duration chunks and aggregate them
    4. Run the streaming loop: segmenter flushes → transcription →
       language detection → ``final`` event + ResultChannel
    5. Dispatch pipeline events to registered handlers

This layer MUST NOT:
    - Talk HTTP itself (adapters do)
    - Classify audio frames (VAD does)
    - Re-probe backends after open(); a new configuration means a new pipeline

Streaming flow:
    process_audio_chunk → AudioSegmenter.on_frame
        → flush (speech end / silence / max duration)
        → _handle_segment (background task)
        → transcribe → wait for the previous segment's delivery
        → detect language → emit 'final' → channel.publish
"""

import asyncio
import functools
import inspect
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable

import aiohttp

from indicvoice.audio.chunker import DEFAULT_CHUNK_DURATION_MS, chunk_size_for, split_pcm
from indicvoice.audio.pcm import duration_ms, is_wav, wav_to_pcm
from indicvoice.audio.segmenter import DEFAULT_DRAIN_TIMEOUT_S, AudioSegmenter
from indicvoice.config import DEFAULT_LANGUAGE, BackendSettings, VoiceConfig
from indicvoice.errors import (
    BackendUnavailable,
    ChunkProcessingError,
    VoicePipelineError,
)
from indicvoice.schemas import VoiceResult, VoiceSegment
from indicvoice.streaming import ResultChannel
from indicvoice.stt.base import STTBackend
from indicvoice.stt.language_detector import detect_language
from indicvoice.stt.router import BackendId, BackendProber, create_backend

logger = logging.getLogger("indicvoice.pipeline")

# Detected language must beat this to be reported as a switch.
LANGUAGE_SWITCH_CONFIDENCE = 0.7

EventHandler = Callable[..., Any]


class PipelineEvent(str, Enum):
    """Events a pipeline emits to registered handlers."""

    FINAL = "final"                          # payload: VoiceResult
    PARTIAL = "partial"                      # reserved, never emitted
    SILENCE = "silence"                      # no payload
    SPEECH_START = "speech_start"            # no payload
    SPEECH_END = "speech_end"                # no payload
    ERROR = "error"                          # payload: Exception
    LANGUAGE_DETECTED = "language_detected"  # payload: LanguageDetection


class VoicePipeline:
    """
    One configured speech-to-text pipeline.

    Use ``create_pipeline()`` or ``async with VoicePipeline(config) as p``;
    both open the pipeline (HTTP session + backend selection) before use.

    Args:
        config:          Immutable pipeline configuration.
        settings:        Backend endpoints / credentials. Defaults to
                         ``BackendSettings.from_env()``.
        session:         Optional shared aiohttp session. When omitted the
                         pipeline creates and owns one.
        drain_timeout_s: How long stop_listening() waits for in-flight
                         transcriptions before cancelling them.
        channel_maxsize: Optional bound for the streaming ResultChannel.
    """

    def __init__(
        self,
        config: VoiceConfig | None = None,
        settings: BackendSettings | None = None,
        session: aiohttp.ClientSession | None = None,
        *,
        drain_timeout_s: float = DEFAULT_DRAIN_TIMEOUT_S,
        channel_maxsize: int | None = None,
    ) -> None:
        self.config = config or VoiceConfig()
        self.settings = settings or BackendSettings.from_env()
        self.drain_timeout_s = drain_timeout_s
        self.channel_maxsize = channel_maxsize

        self._session = session
        self._owns_session = session is None
        self._prober: BackendProber | None = None
        self._backend: BackendId | None = None
        self._adapters: dict[BackendId, STTBackend] = {}
        self._opened = False

        self._handlers: dict[PipelineEvent, list[EventHandler]] = defaultdict(list)
        self._handler_tasks: set[asyncio.Task] = set()

        self._segmenter: AudioSegmenter | None = None
        self._channel: ResultChannel | None = None
        self._last_delivery: asyncio.Future | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "VoicePipeline":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def open(self) -> None:
        """
        Create the HTTP session and select the backend.

        Raises:
            ConfigurationError: If the explicitly configured backend lacks
                its required credential.
        """
        if self._opened:
            return

        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

        self._prober = BackendProber(self.settings, self._session)
        try:
            self._backend = await self._prober.select(self.config)
            if self._backend is not None:
                self._adapter_for(self._backend)
        except BaseException:
            await self._close_session()
            raise

        self._opened = True
        logger.info(
            "Pipeline ready (language=%s, backend=%s).",
            self.config.language,
            self._backend.value if self._backend else "none",
        )

    async def aclose(self) -> None:
        """
        Stop listening, wait for event handlers and release backend clients.

        Adapters and the backend selection are discarded, so a later open()
        probes again and binds fresh adapters to its session.
        """
        await self.stop_listening()
        if self._handler_tasks:
            await asyncio.gather(*self._handler_tasks, return_exceptions=True)

        adapters = list(self._adapters.values())
        self._adapters.clear()
        self._prober = None
        self._backend = None
        for adapter in adapters:
            try:
                await adapter.aclose()
            except Exception as exc:
                logger.warning("Closing %r failed: %s", adapter, exc)

        await self._close_session()
        self._opened = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def backend(self) -> BackendId | None:
        return self._backend

    def is_available(self) -> bool:
        return self._backend is not None

    def supported_languages(self) -> list[str]:
        """Languages accepted by the selected backend (["en"] when none)."""
        if self._backend is None:
            return [DEFAULT_LANGUAGE]
        return list(self._adapter_for(self._backend).supported_languages)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: PipelineEvent | str, handler: EventHandler) -> None:
        """Register a handler. Coroutine functions are scheduled as tasks."""
        self._handlers[PipelineEvent(event)].append(handler)

    def off(self, event: PipelineEvent | str, handler: EventHandler) -> None:
        handlers = self._handlers.get(PipelineEvent(event), [])
        if handler in handlers:
            handlers.remove(handler)

    # ------------------------------------------------------------------
    # Batch transcription
    # ------------------------------------------------------------------

    async def transcribe(self, audio_bytes: bytes) -> VoiceResult:
        """
        Transcribe one buffer with the selected backend.

        Raises:
            BackendUnavailable: No backend was selected, or the backend and
                every cached fallback candidate are unreachable.
            TranscriptionFailed: The backend call failed.
        """
        backend = self._require_backend()

        while True:
            adapter = self._adapter_for(backend)
            try:
                return await adapter.transcribe(audio_bytes, self.config.language)
            except BackendUnavailable as exc:
                fallback = self._prober.fallback_after(self.config, backend)
                if fallback is None:
                    raise
                logger.warning(
                    "%s unavailable (%s) — falling back to %s.",
                    backend.value, exc.message, fallback.value,
                )
                backend = fallback

    async def transcribe_with_detection(self, audio_bytes: bytes) -> VoiceResult:
        """Transcribe, then attach the detected language when text is non-empty."""
        result = await self.transcribe(audio_bytes)
        if not result.text:
            return result
        detection = detect_language(result.text)
        return result.with_updates(detected_language=detection.language)

    async def transcribe_long(
        self,
        audio_bytes: bytes,
        chunk_duration_ms: float = DEFAULT_CHUNK_DURATION_MS,
    ) -> VoiceResult:
        """
        Transcribe a long buffer chunk by chunk.

        Chunks are transcribed sequentially. A failing chunk is logged and
        omitted; the remaining chunks still contribute to the result.

        Args:
            audio_bytes:       Mono 16 kHz PCM16 audio (raw or WAV).
            chunk_duration_ms: Duration of each chunk.

        Returns:
            VoiceResult with space-joined text, mean segment confidence,
            total duration (ms) and per-chunk segments.
        """
        self._require_backend()
        sample_rate = self.config.sample_rate
        raw_pcm = wav_to_pcm(audio_bytes) if is_wav(audio_bytes) else audio_bytes

        if len(raw_pcm) <= chunk_size_for(chunk_duration_ms, sample_rate):
            return await self.transcribe(raw_pcm)

        chunks = split_pcm(raw_pcm, chunk_duration_ms, sample_rate)
        logger.info("Long transcription: %d chunk(s).", len(chunks))

        segments: list[VoiceSegment] = []
        for chunk in chunks:
            try:
                result = await self._transcribe_chunk(chunk)
            except ChunkProcessingError as exc:
                logger.warning("Chunk %d omitted: %s", chunk["chunk_id"], exc)
                continue

            if result.text:
                segments.append(
                    VoiceSegment(
                        text=result.text,
                        start=chunk["start_ms"],
                        end=chunk["end_ms"],
                        confidence=result.confidence,
                    )
                )

        text = " ".join(s.text for s in segments)
        confidence = sum(s.confidence for s in segments) / len(segments) if segments else 0.0

        result = VoiceResult(
            text=text,
            language=self.config.language,
            confidence=confidence,
            duration=duration_ms(raw_pcm, sample_rate),
            segments=tuple(segments),
        )
        if self.config.auto_detect_language and text:
            result = result.with_updates(detected_language=detect_language(text).language)
        return result

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def start_listening(self) -> ResultChannel:
        """
        Start a streaming session.

        Returns:
            The ResultChannel that yields one final VoiceResult per flushed
            segment and ends after stop_listening(). Calling this while
            already listening returns the current channel.
        """
        if not self._opened:
            raise VoicePipelineError("Pipeline is not open; use create_pipeline() or 'async with'.")

        if self._segmenter is not None and self._segmenter.is_listening:
            return self._channel

        self._channel = ResultChannel(maxsize=self.channel_maxsize)
        self._last_delivery = None
        self._segmenter = AudioSegmenter(
            self.config,
            self._handle_segment,
            on_event=self._on_segmenter_event,
            on_error=self._on_segmenter_error,
            drain_timeout_s=self.drain_timeout_s,
        )
        self._segmenter.start()
        return self._channel

    def process_audio_chunk(self, chunk: bytes) -> None:
        """Feed one raw PCM chunk. Ignored when not listening."""
        if self._segmenter is None:
            return
        self._segmenter.on_frame(chunk)

    async def stop_listening(self) -> None:
        """Flush, drain in-flight transcriptions and close the channel. Idempotent."""
        segmenter = self._segmenter
        if segmenter is None:
            return
        self._segmenter = None

        await segmenter.stop()
        if self._channel is not None:
            self._channel.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_backend(self) -> BackendId:
        if not self._opened:
            raise VoicePipelineError("Pipeline is not open; use create_pipeline() or 'async with'.")
        if self._backend is None:
            raise BackendUnavailable(None, "no STT backend is reachable or configured")
        return self._backend

    def _adapter_for(self, backend: BackendId) -> STTBackend:
        adapter = self._adapters.get(backend)
        if adapter is None:
            adapter = create_backend(backend, self.settings, self._session)
            self._adapters[backend] = adapter
        return adapter

    async def _transcribe_chunk(self, chunk: dict) -> VoiceResult:
        try:
            return await self.transcribe(chunk["audio_bytes"])
        except VoicePipelineError as exc:
            raise ChunkProcessingError(chunk["offset"], str(exc)) from exc

    async def _handle_segment(self, snapshot: bytes) -> None:
        # Results leave in flush order, whichever transcription finishes first.
        previous = self._last_delivery
        delivered = asyncio.get_running_loop().create_future()
        self._last_delivery = delivered
        channel = self._channel

        try:
            result: VoiceResult | None = None
            error: VoicePipelineError | None = None
            try:
                result = await self.transcribe(snapshot)
            except VoicePipelineError as exc:
                error = exc

            if previous is not None:
                await asyncio.shield(previous)

            if error is not None:
                logger.error("Segment transcription failed: %s", error)
                self._emit(PipelineEvent.ERROR, error)
                return

            self._publish(result, channel)
        finally:
            if not delivered.done():
                delivered.set_result(None)

    def _publish(self, result: VoiceResult, channel: ResultChannel | None) -> None:
        if self.config.auto_detect_language and result.text:
            detection = detect_language(result.text)
            result = result.with_updates(detected_language=detection.language)
            if (
                detection.confidence > LANGUAGE_SWITCH_CONFIDENCE
                and detection.language != self.config.language
            ):
                logger.info(
                    "Language switch detected: %s (confidence=%.2f).",
                    detection.language, detection.confidence,
                )
                self._emit(PipelineEvent.LANGUAGE_DETECTED, detection)

        result = result.with_updates(is_final=True)
        self._emit(PipelineEvent.FINAL, result)
        if channel is not None:
            channel.publish(result)

    def _on_segmenter_event(self, name: str) -> None:
        self._emit(PipelineEvent(name))

    def _on_segmenter_error(self, exc: Exception) -> None:
        self._emit(PipelineEvent.ERROR, exc)

    def _emit(self, event: PipelineEvent, *payload: Any) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                outcome = handler(*payload)
            except Exception as exc:
                logger.warning("Handler for '%s' raised: %s", event.value, exc)
                continue

            if inspect.isawaitable(outcome):
                task = asyncio.ensure_future(outcome)
                self._handler_tasks.add(task)
                task.add_done_callback(functools.partial(self._on_handler_done, event))

    def _on_handler_done(self, event: PipelineEvent, task: asyncio.Task) -> None:
        self._handler_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Async handler for '%s' raised: %s", event.value, exc)

    async def _close_session(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


async def create_pipeline(
    config: VoiceConfig | None = None,
    settings: BackendSettings | None = None,
    session: aiohttp.ClientSession | None = None,
    **kwargs: Any,
) -> VoicePipeline:
    """
    Build and open a pipeline.

    Args:
        config:   Pipeline configuration (defaults: English, auto backend).
        settings: Backend settings (defaults: from environment).
        session:  Optional shared aiohttp session (not closed by the pipeline).
        **kwargs: Forwarded to VoicePipeline (drain_timeout_s, channel_maxsize).

    Returns:
        An opened VoicePipeline. Close it with ``await pipeline.aclose()``.
    """
    pipeline = VoicePipeline(config, settings, session, **kwargs)
    await pipeline.open()
    return pipeline
