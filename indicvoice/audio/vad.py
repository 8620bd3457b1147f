"""
indicvoice/audio/vad.py
========================
Voice Activity Detection — IndicVoice

Responsibility:
    - Classify each audio frame as speech or silence from its RMS energy
    - Adapt to the ambient level with a sliding energy window
    - Report speech start / speech end edges with frame-count hysteresis

The detector is a pure computation over caller-supplied frames; it has no
failure modes and keeps no wall-clock state. The wall-clock silence timeout
lives in the segmenter and is deliberately separate from the hangover
counter kept here.

This module does NOT:
    - Buffer audio or decide when to transcribe (see segmenter.py)
    - Load any ML model
"""

import logging
from collections import deque

import numpy as np

from indicvoice.audio.pcm import pcm16_to_float
from indicvoice.config import VAD_HANGOVER_FRAMES, VAD_SPEECH_THRESHOLD
from indicvoice.schemas import VADResult

logger = logging.getLogger("indicvoice.audio.vad")

DEFAULT_HISTORY_SIZE = 10

# Lower bound on the dynamic threshold.
ENERGY_FLOOR = 0.01


class EnergyVAD:
    """Energy-based voice activity detector with an adaptive threshold."""

    def __init__(
        self,
        threshold: float = VAD_SPEECH_THRESHOLD,
        history_size: int = DEFAULT_HISTORY_SIZE,
        hangover_frames: int = VAD_HANGOVER_FRAMES,
        energy_floor: float = ENERGY_FLOOR,
    ) -> None:
        if history_size < 1:
            raise ValueError("history_size must be at least 1.")
        self.threshold = threshold
        self.hangover_frames = hangover_frames
        self.energy_floor = energy_floor
        self._history: deque[float] = deque(maxlen=history_size)
        self._is_speaking = False
        self._silence_frames = 0

    # ------------------------------------------------------------------
    # State (read-only)
    # ------------------------------------------------------------------

    @property
    def is_speaking(self) -> bool:
        return self._is_speaking

    @property
    def silence_frame_count(self) -> int:
        return self._silence_frames

    @property
    def history(self) -> tuple[float, ...]:
        """Energy history, oldest first."""
        return tuple(self._history)

    @property
    def history_size(self) -> int:
        return self._history.maxlen or 0

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process(self, frame: bytes | np.ndarray) -> VADResult:
        """
        Classify one audio frame.

        Args:
            frame: Raw 16-bit little-endian PCM bytes, an int16 numpy array,
                   or a float numpy array already normalized to [-1.0, 1.0].

        Returns:
            VADResult with the frame energy, the speech decision and the
            speech_start / speech_end edge flags.
        """
        energy = self.frame_energy(frame)

        self._history.append(energy)
        avg_energy = sum(self._history) / len(self._history)
        dynamic_threshold = max(self.threshold * avg_energy, self.energy_floor)

        is_speech = energy > dynamic_threshold
        was_speaking = self._is_speaking

        if is_speech:
            self._silence_frames = 0
            self._is_speaking = True
        else:
            self._silence_frames += 1
            if self._silence_frames > self.hangover_frames:
                self._is_speaking = False

        result = VADResult(
            is_speech=is_speech,
            energy=energy,
            speech_start=not was_speaking and self._is_speaking,
            speech_end=was_speaking and not self._is_speaking,
        )

        if result.speech_start or result.speech_end:
            logger.debug(
                "VAD %s (energy=%.4f threshold=%.4f)",
                "speech start" if result.speech_start else "speech end",
                energy,
                dynamic_threshold,
            )
        return result

    def reset(self) -> None:
        """Clear the energy history, the speaking flag and the silence counter."""
        self._history.clear()
        self._is_speaking = False
        self._silence_frames = 0

    @staticmethod
    def frame_energy(frame: bytes | np.ndarray) -> float:
        """RMS energy of a frame with samples normalized to [-1.0, 1.0]."""
        if isinstance(frame, (bytes, bytearray, memoryview)):
            samples = pcm16_to_float(bytes(frame))
        else:
            samples = np.asarray(frame)
            if samples.dtype == np.int16:
                samples = samples.astype(np.float32) / 32768.0
            else:
                samples = samples.astype(np.float32)

        if samples.size == 0:
            return 0.0
        return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))
