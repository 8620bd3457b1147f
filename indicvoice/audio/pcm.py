"""
indicvoice/audio/pcm.py
========================
PCM framing helpers — IndicVoice

Responsibility:
    - Wrap raw 16-bit PCM into a standalone WAV container for backends that
      expect a file upload
    - Strip a RIFF/WAV header to recover the raw PCM payload
    - Convert PCM bytes to numpy sample arrays normalized to [-1.0, 1.0]

This module does NOT:
    - Decode compressed codecs (mp3, opus, ...)
    - Resample or mix channels
"""

import io
import logging
import wave

import numpy as np

from indicvoice.config import SAMPLE_RATE, SAMPLE_WIDTH

logger = logging.getLogger("indicvoice.audio.pcm")

_INT16_SCALE = 32768.0


def is_wav(audio_bytes: bytes) -> bool:
    """True if the buffer starts with a RIFF/WAVE header."""
    return len(audio_bytes) >= 12 and audio_bytes[:4] == b"RIFF" and audio_bytes[8:12] == b"WAVE"


def pcm_to_wav(
    raw_pcm: bytes,
    sample_rate: int = SAMPLE_RATE,
    n_channels: int = 1,
    sampwidth: int = SAMPLE_WIDTH,
) -> bytes:
    """
    Wrap raw PCM frames into a standalone WAV byte buffer.

    Buffers that already carry a WAV header are returned unchanged.
    """
    if is_wav(raw_pcm):
        return raw_pcm

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(n_channels)
        wf.setsampwidth(sampwidth)
        wf.setframerate(sample_rate)
        wf.writeframes(raw_pcm)
    return buf.getvalue()


def wav_to_pcm(audio_bytes: bytes) -> bytes:
    """
    Return the raw PCM payload of a WAV buffer.

    Non-WAV input is assumed to already be raw PCM and is returned as-is.

    Raises:
        ValueError: If the buffer has a RIFF header but cannot be parsed.
    """
    if not is_wav(audio_bytes):
        return audio_bytes

    try:
        with wave.open(io.BytesIO(audio_bytes), "rb") as wf:
            return wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as exc:
        raise ValueError(f"Failed to read WAV audio: {exc}") from exc


def pcm16_to_float(raw_pcm: bytes) -> np.ndarray:
    """
    Convert little-endian signed 16-bit PCM to a float32 array in [-1.0, 1.0].

    A trailing odd byte (half a sample) is ignored.
    """
    usable = len(raw_pcm) - (len(raw_pcm) % SAMPLE_WIDTH)
    samples = np.frombuffer(raw_pcm[:usable], dtype="<i2")
    return samples.astype(np.float32) / _INT16_SCALE


def duration_ms(raw_pcm: bytes, sample_rate: int = SAMPLE_RATE) -> float:
    """Duration of mono 16-bit PCM in milliseconds."""
    return len(raw_pcm) / (sample_rate * SAMPLE_WIDTH) * 1000
