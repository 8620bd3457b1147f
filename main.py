"""
main.py
========
Central entry point for the IndicVoice pipeline.

Transcribes a mono 16 kHz PCM16 file (raw or WAV), either in one pass
(long-audio chunking) or by replaying it as a live stream through the VAD
and segmenter.

Run with:
    python main.py recording.wav --language hi
    python main.py recording.wav --language ta --stream --detect
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()  # Load .env before any module reads env vars

# Configure logging for the entire application
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Suppress HTTP client / SDK transport logs so only pipeline logs are shown.
for _transport_logger_name in (
    "openai",
    "openai._base_client",
    "httpx",
    "httpcore",
    "aiohttp.access",
    "aiohttp.client",
    "aiohttp.internal",
):
    logging.getLogger(_transport_logger_name).setLevel(logging.CRITICAL)

from indicvoice.audio.pcm import is_wav, wav_to_pcm  # noqa: E402
from indicvoice.config import (  # noqa: E402
    BACKEND_CHOICES,
    FRAME_SIZE,
    LANGUAGE_NAMES,
    SAMPLE_WIDTH,
    SUPPORTED_LANGUAGES,
    VoiceConfig,
)
from indicvoice.errors import VoicePipelineError  # noqa: E402
from indicvoice.nlp import normalize_and_parse  # noqa: E402
from indicvoice.pipeline import PipelineEvent, create_pipeline  # noqa: E402

logger = logging.getLogger("indicvoice.main")

FRAME_BYTES = FRAME_SIZE * SAMPLE_WIDTH
FRAME_SECONDS = FRAME_SIZE / 16000


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="IndicVoice speech-to-text demo")
    parser.add_argument("audio", help="Path to mono 16 kHz PCM16 audio (raw or WAV)")
    parser.add_argument("--language", default="en", choices=SUPPORTED_LANGUAGES)
    parser.add_argument("--backend", default="auto", choices=BACKEND_CHOICES)
    parser.add_argument("--stream", action="store_true", help="Replay the file as a live stream")
    parser.add_argument("--detect", action="store_true", help="Detect the spoken language")
    parser.add_argument("--chunk-ms", type=int, default=30000, help="Chunk size for long audio")
    return parser.parse_args(argv)


async def _run_batch(pipeline, audio_bytes: bytes, chunk_ms: int) -> None:
    result = await pipeline.transcribe_long(audio_bytes, chunk_duration_ms=chunk_ms)
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))


async def _run_stream(pipeline, audio_bytes: bytes) -> None:
    raw_pcm = wav_to_pcm(audio_bytes) if is_wav(audio_bytes) else audio_bytes

    pipeline.on(PipelineEvent.SPEECH_START, lambda: logger.info("… speech started"))
    pipeline.on(PipelineEvent.ERROR, lambda exc: logger.error("Segment failed: %s", exc))
    pipeline.on(
        PipelineEvent.LANGUAGE_DETECTED,
        lambda detection: logger.info("Language switch → %s", detection.language),
    )

    channel = pipeline.start_listening()

    async def feed() -> None:
        for offset in range(0, len(raw_pcm), FRAME_BYTES):
            pipeline.process_audio_chunk(raw_pcm[offset : offset + FRAME_BYTES])
            await asyncio.sleep(FRAME_SECONDS)
        await pipeline.stop_listening()

    feeder = asyncio.create_task(feed())
    async for result in channel:
        command = normalize_and_parse(result.text, pipeline.config.language)
        suffix = f"  [command: {command.command} {command.args}]" if command else ""
        print(f">>> ({result.confidence:.0%}) {result.text}{suffix}")
    await feeder


async def _main(argv: list[str]) -> int:
    args = _parse_args(argv)
    with open(args.audio, "rb") as f:
        audio_bytes = f.read()

    config = VoiceConfig(
        language=args.language,
        backend=args.backend,
        auto_detect_language=args.detect,
    )

    try:
        pipeline = await create_pipeline(config)
    except VoicePipelineError as exc:
        logger.error("Pipeline could not be created: %s", exc)
        return 2

    try:
        if not pipeline.is_available():
            logger.error("No STT backend available. Configure BHASHINI_API_KEY or start a Whisper service.")
            return 1
        logger.info(
            "Transcribing %s as %s via %s.",
            args.audio, LANGUAGE_NAMES[config.language], pipeline.backend.value,
        )
        if args.stream:
            await _run_stream(pipeline, audio_bytes)
        else:
            await _run_batch(pipeline, audio_bytes, args.chunk_ms)
    except VoicePipelineError as exc:
        logger.error("Transcription failed: %s", exc)
        return 1
    finally:
        await pipeline.aclose()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(_main(sys.argv[1:])))
