"""
indicvoice/audio/segmenter.py
==============================
Audio Segmenter — IndicVoice (streaming)

Responsibility:
    - Accumulate incoming raw PCM chunks into the open segment
    - Feed chunks to the VAD and react to its speech edges
    - Decide when the open segment is flushed for transcription

Flush triggers (independent of each other):
    a. VAD reports speech end
    b. Silence timer: armed on every non-speech frame, disarmed on speech
       start, fires after ``silence_timeout_ms`` of wall-clock time
    c. Max duration: elapsed time since the segment started exceeds
       ``max_chunk_duration_ms``

A flush snapshots and clears the open segment, restarts the duration clock
and hands the snapshot to the flush handler in a background task, so the
next segment starts accumulating while the previous one is transcribed.

All methods must be called from the event loop that owns the segmenter.

This module does NOT:
    - Call any STT backend (the flush handler does)
    - Order or publish transcription results
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable

from indicvoice.audio.vad import EnergyVAD
from indicvoice.config import FRAME_SIZE, SAMPLE_WIDTH, VoiceConfig

logger = logging.getLogger("indicvoice.audio.segmenter")

FlushHandler = Callable[[bytes], Awaitable[None]]
EventHandler = Callable[[str], None]
ErrorHandler = Callable[[Exception], None]

# Chunks shorter than one 30 ms frame are buffered but not classified.
MIN_VAD_BYTES = FRAME_SIZE * SAMPLE_WIDTH

DEFAULT_DRAIN_TIMEOUT_S = 10.0


class SegmenterState(str, Enum):
    """Lifecycle states of the segmenter."""

    IDLE = "idle"
    LISTENING = "listening"


class SegmenterEvent(str, Enum):
    """Edge events reported to the event handler."""

    SPEECH_START = "speech_start"
    SPEECH_END = "speech_end"
    SILENCE = "silence"


class AudioSegmenter:
    """Buffers streaming audio and flushes it on speech end, silence or max duration."""

    def __init__(
        self,
        config: VoiceConfig,
        on_flush: FlushHandler,
        *,
        vad: EnergyVAD | None = None,
        on_event: EventHandler | None = None,
        on_error: ErrorHandler | None = None,
        clock: Callable[[], float] = time.monotonic,
        drain_timeout_s: float = DEFAULT_DRAIN_TIMEOUT_S,
    ) -> None:
        self.config = config
        if vad is None and config.vad_enabled:
            vad = EnergyVAD(
                threshold=config.vad_threshold,
                hangover_frames=config.vad_hangover_frames,
            )
        self.vad = vad
        self._on_flush = on_flush
        self._on_event = on_event
        self._on_error = on_error
        self._clock = clock
        self.drain_timeout_s = drain_timeout_s

        self.state = SegmenterState.IDLE
        self._segment: list[bytes] = []
        self._segment_started = clock()
        self._silence_timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self.flush_count = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def is_listening(self) -> bool:
        return self.state is SegmenterState.LISTENING

    @property
    def buffered_bytes(self) -> int:
        return sum(len(c) for c in self._segment)

    @property
    def silence_timer_armed(self) -> bool:
        return self._silence_timer is not None

    @property
    def pending_flushes(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Enter LISTENING with an empty segment and a fresh duration clock."""
        self._disarm_silence_timer()
        self._segment = []
        self._segment_started = self._clock()
        if self.vad is not None:
            self.vad.reset()
        self.state = SegmenterState.LISTENING
        logger.info(
            "Segmenter listening (vad=%s, silence_timeout=%dms, max_chunk=%dms).",
            self.vad is not None,
            self.config.silence_timeout_ms,
            self.config.max_chunk_duration_ms,
        )

    async def stop(self) -> None:
        """
        Stop listening. Idempotent and never raises.

        Disarms the silence timer, flushes whatever is buffered, waits up to
        ``drain_timeout_s`` for outstanding flushes and cancels the rest.
        """
        if self.state is SegmenterState.IDLE:
            return
        self.state = SegmenterState.IDLE
        self._disarm_silence_timer()

        try:
            self.flush()
        except Exception as exc:
            logger.warning("Final flush failed: %s", exc)
            self._report_error(exc)

        pending = set(self._tasks)
        if pending:
            _, not_done = await asyncio.wait(pending, timeout=self.drain_timeout_s)
            if not_done:
                logger.warning(
                    "%d transcription(s) still running after %.1fs — cancelling.",
                    len(not_done), self.drain_timeout_s,
                )
                for task in not_done:
                    task.cancel()
                await asyncio.gather(*not_done, return_exceptions=True)

        if self.vad is not None:
            self.vad.reset()
        logger.info("Segmenter stopped after %d flush(es).", self.flush_count)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def on_frame(self, chunk: bytes) -> None:
        """
        Ingest one raw PCM chunk.

        Chunks received while IDLE are dropped.
        """
        if self.state is not SegmenterState.LISTENING:
            return

        if self.vad is not None and len(chunk) >= MIN_VAD_BYTES:
            vad_result = self.vad.process(chunk)

            if vad_result.speech_start:
                self._emit(SegmenterEvent.SPEECH_START)
                self._segment_started = self._clock()
                self._disarm_silence_timer()

            if vad_result.speech_end:
                self._emit(SegmenterEvent.SPEECH_END)
                self.flush()

            if not vad_result.is_speech:
                self._arm_silence_timer()

        self._segment.append(bytes(chunk))

        elapsed_ms = (self._clock() - self._segment_started) * 1000
        if elapsed_ms > self.config.max_chunk_duration_ms:
            logger.debug("Segment reached %.0fms — forcing flush.", elapsed_ms)
            self.flush()

    def flush(self) -> asyncio.Task | None:
        """
        Snapshot and clear the open segment and submit it for transcription.

        Returns:
            The background task running the flush handler, or None when the
            segment was empty.
        """
        if not self._segment:
            return None

        snapshot = b"".join(self._segment)
        self._segment = []
        self._segment_started = self._clock()
        self.flush_count += 1

        logger.debug("Flushing segment #%d (%d bytes).", self.flush_count, len(snapshot))
        task = asyncio.ensure_future(self._run_flush(snapshot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_flush(self, snapshot: bytes) -> None:
        try:
            await self._on_flush(snapshot)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Flush handler failed: %s", exc)
            self._report_error(exc)

    def _arm_silence_timer(self) -> None:
        if self._silence_timer is not None:
            return
        loop = asyncio.get_running_loop()
        self._silence_timer = loop.call_later(
            self.config.silence_timeout_ms / 1000, self._on_silence_timeout
        )

    def _disarm_silence_timer(self) -> None:
        if self._silence_timer is not None:
            self._silence_timer.cancel()
            self._silence_timer = None

    def _on_silence_timeout(self) -> None:
        self._silence_timer = None
        if self.state is not SegmenterState.LISTENING:
            return
        self._emit(SegmenterEvent.SILENCE)
        self.flush()

    def _emit(self, event: SegmenterEvent) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event.value)
        except Exception as exc:
            logger.warning("Event handler for %s raised: %s", event.value, exc)

    def _report_error(self, exc: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(exc)
        except Exception as handler_exc:
            logger.warning("Error handler raised: %s", handler_exc)
