"""
indicvoice/audio/chunker.py
============================
Audio Chunker — IndicVoice (long-audio transcription)

Responsibility:
    - Split a long mono 16 kHz PCM16 buffer into fixed-duration chunks
    - Report each chunk's byte offset and its start/end time in milliseconds

Chunks are cut at fixed byte boundaries, not at silence. A buffer whose
length is at most one chunk is returned as a single chunk (no splitting).

This module does NOT:
    - Perform STT or VAD
    - Apply overlap between chunks
    - Modify the audio content
"""

import logging
import math

from indicvoice.config import MAX_CHUNK_DURATION_MS, SAMPLE_RATE, SAMPLE_WIDTH

logger = logging.getLogger("indicvoice.audio.chunker")

DEFAULT_CHUNK_DURATION_MS: int = MAX_CHUNK_DURATION_MS


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def bytes_per_second(sample_rate: int = SAMPLE_RATE) -> int:
    """Bytes of mono 16-bit PCM per second of audio."""
    return sample_rate * SAMPLE_WIDTH


def chunk_size_for(chunk_duration_ms: float, sample_rate: int = SAMPLE_RATE) -> int:
    """
    Number of PCM bytes covering ``chunk_duration_ms`` of audio.

    Raises:
        ValueError: If the duration does not yield at least one byte.
    """
    size = math.floor((chunk_duration_ms / 1000) * bytes_per_second(sample_rate))
    if size <= 0:
        raise ValueError(f"chunk_duration_ms={chunk_duration_ms} is too small to split audio.")
    return size


def expected_chunk_count(
    audio_length: int,
    chunk_duration_ms: float = DEFAULT_CHUNK_DURATION_MS,
    sample_rate: int = SAMPLE_RATE,
) -> int:
    """ceil(audio_length / chunk size) — the number of chunks split_pcm produces."""
    if audio_length <= 0:
        return 0
    return math.ceil(audio_length / chunk_size_for(chunk_duration_ms, sample_rate))


def split_pcm(
    raw_pcm: bytes,
    chunk_duration_ms: float = DEFAULT_CHUNK_DURATION_MS,
    sample_rate: int = SAMPLE_RATE,
) -> list[dict]:
    """
    Split raw PCM into consecutive fixed-duration chunks.

    Args:
        raw_pcm:           Mono 16-bit PCM bytes (no container header).
        chunk_duration_ms: Target duration of each chunk in milliseconds.
        sample_rate:       Sample rate of the audio.

    Returns:
        List of chunk dicts, each containing:
            - chunk_id    (int):   Sequential chunk index starting at 0
            - audio_bytes (bytes): The PCM slice for this chunk
            - offset      (int):   Byte offset of the chunk in the buffer
            - start_ms    (float): Start time of the chunk
            - end_ms      (float): End time of the chunk
    """
    chunk_size = chunk_size_for(chunk_duration_ms, sample_rate)
    bps = bytes_per_second(sample_rate)

    chunks: list[dict] = []
    offset = 0
    while offset < len(raw_pcm):
        piece = raw_pcm[offset : offset + chunk_size]
        start_ms = offset / bps * 1000
        chunks.append(
            {
                "chunk_id": len(chunks),
                "audio_bytes": piece,
                "offset": offset,
                "start_ms": start_ms,
                "end_ms": start_ms + len(piece) / bps * 1000,
            }
        )
        offset += chunk_size

    logger.debug(
        "Split %d bytes into %d chunk(s) of up to %d bytes (%.0f ms).",
        len(raw_pcm), len(chunks), chunk_size, chunk_duration_ms,
    )
    return chunks
