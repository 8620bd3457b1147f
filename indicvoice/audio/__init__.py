# indicvoice/audio/__init__.py
# =============================
# Audio Processing Layer — IndicVoice
#
#   - pcm.py:       PCM / WAV framing helpers
#   - vad.py:       energy-based voice activity detection
#   - segmenter.py: streaming buffer with speech-end / silence / max-duration flushes
#   - chunker.py:   fixed-duration splitting for long audio

from indicvoice.audio.vad import EnergyVAD  # noqa: F401
from indicvoice.audio.segmenter import AudioSegmenter, SegmenterState  # noqa: F401

__all__ = [
    "AudioSegmenter",
    "EnergyVAD",
    "SegmenterState",
]
