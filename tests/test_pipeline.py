"""
tests/test_pipeline.py
=======================
VoicePipeline tests — lifecycle, batch and long-audio transcription,
fallback, streaming delivery and events.

Adapters talk to tests.fakes.FakeSession; where exact per-call results are
needed, WhisperClient.transcribe is replaced with an AsyncMock.
"""

import asyncio
import os
import sys
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from indicvoice.audio.pcm import pcm_to_wav
from indicvoice.config import SUPPORTED_LANGUAGES, BackendSettings, VoiceConfig
from indicvoice.errors import (
    BackendUnavailable,
    ConfigurationError,
    TranscriptionFailed,
    VoicePipelineError,
)
from indicvoice.pipeline import PipelineEvent, VoicePipeline, create_pipeline
from indicvoice.schemas import LanguageDetection, VoiceResult
from indicvoice.stt.router import BackendId
from indicvoice.stt.whisper_client import WhisperClient
from tests.fakes import BHASHINI_DESCRIPTOR, FakeResponse, FakeSession, pcm_silence

WHISPER_STREAM = VoiceConfig(backend="whisper", vad_enabled=False)
WITH_BHASHINI = BackendSettings(bhashini_api_key="bhashini-key")


def voice(text: str, confidence: float = 0.8, language: str = "en") -> VoiceResult:
    return VoiceResult(text=text, language=language, confidence=confidence)


async def open_pipeline(config: VoiceConfig, settings: BackendSettings | None = None, session=None, **kwargs):
    return await create_pipeline(config, settings or BackendSettings(), session or FakeSession(), **kwargs)


# ===================================================================
# Lifecycle and selection
# ===================================================================


class TestLifecycle(unittest.IsolatedAsyncioTestCase):
    async def test_explicit_whisper(self):
        pipeline = await open_pipeline(VoiceConfig(backend="whisper"))
        self.assertIs(pipeline.backend, BackendId.WHISPER)
        self.assertTrue(pipeline.is_available())
        self.assertEqual(pipeline.supported_languages(), list(SUPPORTED_LANGUAGES))
        await pipeline.aclose()

    async def test_cloud_backend_language_list(self):
        pipeline = await open_pipeline(
            VoiceConfig(backend="google"), BackendSettings(google_api_key="g")
        )
        self.assertEqual(
            pipeline.supported_languages(),
            ["en", "hi", "ta", "te", "kn", "mr", "bn", "gu", "ml"],
        )
        await pipeline.aclose()

    async def test_missing_credential_fails_at_open(self):
        session = FakeSession()
        with self.assertRaises(ConfigurationError):
            await open_pipeline(VoiceConfig(backend="azure"), session=session)
        self.assertFalse(session.closed)

    async def test_no_backend_available(self):
        pipeline = await open_pipeline(VoiceConfig(language="hi"), WITH_BHASHINI)
        self.assertIsNone(pipeline.backend)
        self.assertFalse(pipeline.is_available())
        self.assertEqual(pipeline.supported_languages(), ["en"])
        with self.assertRaises(BackendUnavailable):
            await pipeline.transcribe(pcm_silence(100))
        await pipeline.aclose()

    async def test_owned_session_closed_on_aclose(self):
        owned = FakeSession()
        with patch("indicvoice.pipeline.aiohttp.ClientSession", return_value=owned):
            async with VoicePipeline(VoiceConfig(backend="whisper"), BackendSettings()) as pipeline:
                self.assertTrue(pipeline.is_available())
        self.assertTrue(owned.closed)

    async def test_injected_session_left_open(self):
        session = FakeSession()
        pipeline = await open_pipeline(VoiceConfig(backend="whisper"), session=session)
        await pipeline.aclose()
        self.assertFalse(session.closed)

    async def test_reopen_after_close_uses_new_session(self):
        body = {"results": [{"alternatives": [{"transcript": "again", "confidence": 0.9}]}]}
        first = FakeSession().route("POST", "speech.googleapis.com", FakeResponse(200, body))
        second = FakeSession().route("POST", "speech.googleapis.com", FakeResponse(200, body))
        pipeline = VoicePipeline(VoiceConfig(backend="google"), BackendSettings(google_api_key="g"))

        with patch("indicvoice.pipeline.aiohttp.ClientSession", side_effect=[first, second]):
            await pipeline.open()
            await pipeline.transcribe(pcm_silence(100))
            await pipeline.aclose()
            self.assertTrue(first.closed)

            await pipeline.open()
            result = await pipeline.transcribe(pcm_silence(100))

        self.assertEqual(result.text, "again")
        self.assertEqual(len(first.calls("POST")), 1)
        self.assertEqual(len(second.calls("POST")), 1)
        self.assertIs(pipeline.backend, BackendId.GOOGLE)
        await pipeline.aclose()

    async def test_aclose_releases_adapters(self):
        pipeline = await open_pipeline(VoiceConfig(backend="whisper"))
        with patch.object(WhisperClient, "aclose", AsyncMock()) as mock_close:
            await pipeline.aclose()
        mock_close.assert_awaited_once()
        self.assertIsNone(pipeline.backend)

    async def test_use_before_open(self):
        pipeline = VoicePipeline(VoiceConfig(backend="whisper"), BackendSettings(), FakeSession())
        with self.assertRaises(VoicePipelineError):
            await pipeline.transcribe(b"")
        with self.assertRaises(VoicePipelineError):
            pipeline.start_listening()


# ===================================================================
# Single-buffer transcription and fallback
# ===================================================================


class TestTranscribe(unittest.IsolatedAsyncioTestCase):
    async def test_auto_bhashini_falls_back_to_whisper(self):
        session = (
            FakeSession()
            # First response answers the probe, the sticky 503 every descriptor request.
            .route("POST", "getModelsPipeline", FakeResponse(200, {}), FakeResponse(503))
            .route("GET", "/health", FakeResponse(200))
            .route("POST", "/asr", FakeResponse(200, {"text": "namaste"}))
        )
        pipeline = await open_pipeline(VoiceConfig(language="hi"), WITH_BHASHINI, session)
        self.assertIs(pipeline.backend, BackendId.BHASHINI)

        result = await pipeline.transcribe(pcm_silence(100))

        self.assertEqual(result.text, "namaste")
        self.assertEqual(result.confidence, 0.85)
        self.assertEqual(len(session.calls("GET", "/health")), 1)
        await pipeline.aclose()

    async def test_auto_bhashini_success(self):
        session = (
            FakeSession()
            .route("POST", "getModelsPipeline", FakeResponse(200, {}), FakeResponse(200, BHASHINI_DESCRIPTOR))
            .route("GET", "/health", FakeResponse(200))
            .route("POST", "dhruva.example", FakeResponse(200, {"pipelineResponse": [{"output": [{"source": "नमस्ते"}]}]}))
        )
        pipeline = await open_pipeline(VoiceConfig(language="hi"), WITH_BHASHINI, session)
        result = await pipeline.transcribe(pcm_silence(100))
        self.assertEqual(result.text, "नमस्ते")
        self.assertEqual(session.calls("POST", "/asr"), [])
        await pipeline.aclose()

    async def test_explicit_backend_does_not_fall_back(self):
        session = (
            FakeSession()
            .route("POST", "getModelsPipeline", FakeResponse(503))
            .route("POST", "/asr", FakeResponse(200, {"text": "unused"}))
        )
        pipeline = await open_pipeline(VoiceConfig(language="hi", backend="bhashini"), WITH_BHASHINI, session)
        with self.assertRaises(BackendUnavailable):
            await pipeline.transcribe(pcm_silence(100))
        self.assertEqual(session.calls("POST", "/asr"), [])
        await pipeline.aclose()

    async def test_transcribe_with_detection(self):
        pipeline = await open_pipeline(VoiceConfig(backend="whisper"))
        with patch.object(WhisperClient, "transcribe", AsyncMock(return_value=voice("यह अच्छा है"))):
            result = await pipeline.transcribe_with_detection(pcm_silence(100))
        self.assertEqual(result.detected_language, "hi")
        await pipeline.aclose()

    async def test_detection_skipped_for_empty_text(self):
        pipeline = await open_pipeline(VoiceConfig(backend="whisper"))
        with patch.object(WhisperClient, "transcribe", AsyncMock(return_value=voice(""))):
            result = await pipeline.transcribe_with_detection(pcm_silence(100))
        self.assertIsNone(result.detected_language)
        await pipeline.aclose()


# ===================================================================
# Long audio
# ===================================================================


class TestTranscribeLong(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.pipeline = await open_pipeline(VoiceConfig(backend="whisper"))

    async def asyncTearDown(self):
        await self.pipeline.aclose()

    async def test_buffer_at_chunk_size_is_single_call(self):
        audio = pcm_silence(30_000)
        mock = AsyncMock(return_value=voice("whole", 0.7))
        with patch.object(WhisperClient, "transcribe", mock):
            result = await self.pipeline.transcribe_long(audio)
        mock.assert_awaited_once_with(audio, "en")
        self.assertEqual(result.text, "whole")
        self.assertEqual(result.segments, ())

    async def test_one_byte_over_splits_in_two(self):
        audio = pcm_silence(30_000) + b"\x00\x00"
        mock = AsyncMock(return_value=voice("part"))
        with patch.object(WhisperClient, "transcribe", mock):
            await self.pipeline.transcribe_long(audio)
        self.assertEqual(mock.await_count, 2)

    async def test_aggregation(self):
        audio = pcm_silence(2500)
        mock = AsyncMock(side_effect=[voice("one", 0.9), voice("", 0.1), voice("three", 0.6)])
        with patch.object(WhisperClient, "transcribe", mock):
            result = await self.pipeline.transcribe_long(audio, chunk_duration_ms=1000)

        self.assertEqual(mock.await_count, 3)
        self.assertEqual(result.text, "one three")
        self.assertAlmostEqual(result.confidence, 0.75)
        self.assertEqual(result.duration, 2500.0)
        self.assertEqual([(s.start, s.end) for s in result.segments], [(0.0, 1000.0), (2000.0, 2500.0)])

    async def test_failed_chunk_is_omitted(self):
        audio = pcm_silence(3000)
        mock = AsyncMock(side_effect=[
            voice("first", 0.8),
            TranscriptionFailed("whisper", "timeout"),
            voice("third", 0.6),
        ])
        with patch.object(WhisperClient, "transcribe", mock):
            result = await self.pipeline.transcribe_long(audio, chunk_duration_ms=1000)

        self.assertEqual(result.text, "first third")
        self.assertAlmostEqual(result.confidence, 0.7)
        self.assertEqual(len(result.segments), 2)

    async def test_all_chunks_empty(self):
        mock = AsyncMock(return_value=voice("", 0.9))
        with patch.object(WhisperClient, "transcribe", mock):
            result = await self.pipeline.transcribe_long(pcm_silence(2000), chunk_duration_ms=1000)
        self.assertEqual(result.text, "")
        self.assertEqual(result.confidence, 0.0)

    async def test_wav_input_is_unwrapped(self):
        raw = pcm_silence(1000)
        mock = AsyncMock(return_value=voice("x"))
        with patch.object(WhisperClient, "transcribe", mock):
            await self.pipeline.transcribe_long(pcm_to_wav(raw))
        mock.assert_awaited_once_with(raw, "en")

    async def test_detected_language_on_aggregate(self):
        pipeline = await open_pipeline(VoiceConfig(backend="whisper", auto_detect_language=True))
        mock = AsyncMock(side_effect=[voice("இது"), voice("நல்லது")])
        with patch.object(WhisperClient, "transcribe", mock):
            result = await pipeline.transcribe_long(pcm_silence(2000), chunk_duration_ms=1000)
        self.assertEqual(result.detected_language, "ta")
        await pipeline.aclose()


# ===================================================================
# Streaming
# ===================================================================


class TestStreaming(unittest.IsolatedAsyncioTestCase):
    async def test_final_result_published_on_stop(self):
        pipeline = await open_pipeline(WHISPER_STREAM)
        finals = []
        pipeline.on(PipelineEvent.FINAL, finals.append)

        with patch.object(WhisperClient, "transcribe", AsyncMock(return_value=voice("hello"))):
            channel = pipeline.start_listening()
            pipeline.process_audio_chunk(pcm_silence(30))
            await pipeline.stop_listening()

        results = [r async for r in channel]
        self.assertEqual([r.text for r in results], ["hello"])
        self.assertTrue(results[0].is_final)
        self.assertEqual(finals, results)
        await pipeline.aclose()

    async def test_results_delivered_in_flush_order(self):
        pipeline = await open_pipeline(WHISPER_STREAM)
        first, second = b"\x01\x00" * 480, b"\x02\x00" * 480

        async def transcribe(audio, language):
            if audio == first:
                await asyncio.sleep(0.05)
                return voice("first")
            return voice("second")

        with patch.object(WhisperClient, "transcribe", AsyncMock(side_effect=transcribe)):
            channel = pipeline.start_listening()
            pipeline.process_audio_chunk(first)
            pipeline._segmenter.flush()
            pipeline.process_audio_chunk(second)
            await pipeline.stop_listening()

        self.assertEqual([r.text async for r in channel], ["first", "second"])
        await pipeline.aclose()

    async def test_failure_emits_error_and_keeps_listening(self):
        pipeline = await open_pipeline(WHISPER_STREAM)
        errors = []
        pipeline.on("error", errors.append)
        mock = AsyncMock(side_effect=[TranscriptionFailed("whisper", "boom"), voice("recovered")])

        with patch.object(WhisperClient, "transcribe", mock):
            channel = pipeline.start_listening()
            pipeline.process_audio_chunk(pcm_silence(30))
            await pipeline._segmenter.flush()
            self.assertTrue(pipeline._segmenter.is_listening)
            pipeline.process_audio_chunk(pcm_silence(30))
            await pipeline.stop_listening()

        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], TranscriptionFailed)
        self.assertEqual([r.text async for r in channel], ["recovered"])
        await pipeline.aclose()

    async def test_language_switch_event(self):
        config = VoiceConfig(backend="whisper", vad_enabled=False, auto_detect_language=True)
        pipeline = await open_pipeline(config)
        seen = []
        pipeline.on(PipelineEvent.LANGUAGE_DETECTED, lambda d: seen.append(("language", d)))
        pipeline.on(PipelineEvent.FINAL, lambda r: seen.append(("final", r.detected_language)))

        with patch.object(WhisperClient, "transcribe", AsyncMock(return_value=voice("यह अच्छा है"))):
            pipeline.start_listening()
            pipeline.process_audio_chunk(pcm_silence(30))
            await pipeline.stop_listening()

        self.assertEqual(seen[0], ("language", LanguageDetection("hi", 0.9)))
        self.assertEqual(seen[1], ("final", "hi"))
        await pipeline.aclose()

    async def test_no_switch_event_for_configured_language(self):
        config = VoiceConfig(language="hi", backend="whisper", vad_enabled=False, auto_detect_language=True)
        pipeline = await open_pipeline(config)
        switches = []
        pipeline.on(PipelineEvent.LANGUAGE_DETECTED, switches.append)

        with patch.object(WhisperClient, "transcribe", AsyncMock(return_value=voice("यह अच्छा है", language="hi"))):
            channel = pipeline.start_listening()
            pipeline.process_audio_chunk(pcm_silence(30))
            await pipeline.stop_listening()

        self.assertEqual(switches, [])
        self.assertEqual([r.detected_language async for r in channel], ["hi"])
        await pipeline.aclose()

    async def test_stop_listening_twice(self):
        pipeline = await open_pipeline(WHISPER_STREAM)
        pipeline.start_listening()
        await pipeline.stop_listening()
        await pipeline.stop_listening()
        await pipeline.aclose()

    async def test_chunks_ignored_when_not_listening(self):
        pipeline = await open_pipeline(WHISPER_STREAM)
        mock = AsyncMock(return_value=voice("x"))
        with patch.object(WhisperClient, "transcribe", mock):
            pipeline.process_audio_chunk(pcm_silence(30))
            await pipeline.aclose()
        mock.assert_not_awaited()

    async def test_start_listening_twice_returns_same_channel(self):
        pipeline = await open_pipeline(WHISPER_STREAM)
        channel = pipeline.start_listening()
        self.assertIs(pipeline.start_listening(), channel)
        await pipeline.aclose()
        self.assertTrue(channel.closed)


# ===================================================================
# Event handlers
# ===================================================================


class TestEventHandlers(unittest.IsolatedAsyncioTestCase):
    async def test_async_handler_and_failing_handler(self):
        pipeline = await open_pipeline(WHISPER_STREAM)
        received = []

        async def async_handler(result):
            received.append(result.text)

        def broken_handler(result):
            raise RuntimeError("handler bug")

        pipeline.on("final", broken_handler)
        pipeline.on("final", async_handler)

        with patch.object(WhisperClient, "transcribe", AsyncMock(return_value=voice("ok"))):
            channel = pipeline.start_listening()
            pipeline.process_audio_chunk(pcm_silence(30))
            await pipeline.stop_listening()
        await pipeline.aclose()

        self.assertEqual(received, ["ok"])
        self.assertEqual([r.text async for r in channel], ["ok"])

    async def test_off_removes_handler(self):
        pipeline = await open_pipeline(WHISPER_STREAM)
        handler = MagicMock()
        pipeline.on(PipelineEvent.FINAL, handler)
        pipeline.off(PipelineEvent.FINAL, handler)
        pipeline.off(PipelineEvent.FINAL, handler)

        with patch.object(WhisperClient, "transcribe", AsyncMock(return_value=voice("ok"))):
            pipeline.start_listening()
            pipeline.process_audio_chunk(pcm_silence(30))
            await pipeline.stop_listening()

        handler.assert_not_called()
        await pipeline.aclose()

    async def test_unknown_event_rejected(self):
        pipeline = VoicePipeline(VoiceConfig(), BackendSettings(), FakeSession())
        with self.assertRaises(ValueError):
            pipeline.on("transcript", print)


if __name__ == "__main__":
    unittest.main()
