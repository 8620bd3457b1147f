"""
tests/test_config.py
=====================
Configuration, chunker and result schema tests.
"""

import os
import sys
import unittest
from unittest.mock import patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from indicvoice.audio.chunker import chunk_size_for, expected_chunk_count, split_pcm
from indicvoice.config import LANGUAGE_NAMES, SUPPORTED_LANGUAGES, BackendSettings, VoiceConfig, bcp47
from indicvoice.errors import ConfigurationError
from indicvoice.schemas import VoiceResult, VoiceSegment


class TestVoiceConfig(unittest.TestCase):
    def test_defaults(self):
        config = VoiceConfig()
        self.assertEqual(config.language, "en")
        self.assertTrue(config.is_auto_backend)
        self.assertEqual(config.silence_timeout_ms, 2000)
        self.assertEqual(config.max_chunk_duration_ms, 30000)
        self.assertEqual(config.sample_rate, 16000)

    def test_language_code(self):
        self.assertEqual(VoiceConfig(language="or").language_code, "or-IN")
        self.assertEqual(bcp47("ta"), "ta-IN")

    def test_every_language_has_a_display_name(self):
        self.assertEqual(set(LANGUAGE_NAMES), set(SUPPORTED_LANGUAGES))
        self.assertEqual(LANGUAGE_NAMES["or"], "Odia")

    def test_invalid_values(self):
        for kwargs in (
            {"language": "fr"},
            {"backend": "deepgram"},
            {"silence_timeout_ms": 0},
            {"max_chunk_duration_ms": -1},
            {"vad_threshold": 0},
        ):
            with self.subTest(**kwargs):
                with self.assertRaises(ConfigurationError):
                    VoiceConfig(**kwargs)

    def test_frozen(self):
        with self.assertRaises(Exception):
            VoiceConfig().language = "hi"


class TestBackendSettings(unittest.TestCase):
    def test_from_env(self):
        env = {
            "BHASHINI_API_KEY": "b-key",
            "BHASHINI_USER_ID": "u-1",
            "WHISPER_API_URL": "http://whisper:9000",
            "AZURE_SPEECH_REGION": "southindia",
            "STT_REQUEST_TIMEOUT_S": "15",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = BackendSettings.from_env()

        self.assertEqual(settings.bhashini_api_key, "b-key")
        self.assertEqual(settings.bhashini_user_id, "u-1")
        self.assertEqual(settings.whisper_api_url, "http://whisper:9000")
        self.assertEqual(settings.azure_speech_region, "southindia")
        self.assertEqual(settings.request_timeout_s, 15.0)
        self.assertIsNone(settings.google_api_key)
        self.assertEqual(settings.bhashini_pipeline_id, "64392f96daac500b55c543cd")

    def test_empty_values_treated_as_unset(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": ""}, clear=True):
            self.assertIsNone(BackendSettings.from_env().openai_api_key)


class TestChunker(unittest.TestCase):
    def test_chunk_size(self):
        self.assertEqual(chunk_size_for(30000), 960000)
        self.assertEqual(chunk_size_for(1000), 32000)

    def test_chunk_size_too_small(self):
        with self.assertRaises(ValueError):
            chunk_size_for(0)

    def test_expected_count_is_ceiling(self):
        self.assertEqual(expected_chunk_count(960000), 1)
        self.assertEqual(expected_chunk_count(960001), 2)
        self.assertEqual(expected_chunk_count(0), 0)

    def test_split_offsets_and_times(self):
        chunks = split_pcm(b"\x00" * 80000, chunk_duration_ms=1000)
        self.assertEqual([c["offset"] for c in chunks], [0, 32000, 64000])
        self.assertEqual([c["chunk_id"] for c in chunks], [0, 1, 2])
        self.assertEqual(chunks[-1]["start_ms"], 2000.0)
        self.assertEqual(chunks[-1]["end_ms"], 2500.0)
        self.assertEqual(sum(len(c["audio_bytes"]) for c in chunks), 80000)


class TestVoiceResult(unittest.TestCase):
    def test_with_updates_returns_copy(self):
        result = VoiceResult(text="hi", language="en", confidence=0.9)
        final = result.with_updates(is_final=True)
        self.assertIsNone(result.is_final)
        self.assertTrue(final.is_final)

    def test_to_dict(self):
        result = VoiceResult(
            text="a b",
            language="hi",
            confidence=0.8,
            alternatives=("ab",),
            segments=(VoiceSegment("a", 0.0, 1000.0, 0.8),),
        )
        data = result.to_dict()
        self.assertEqual(data["alternatives"], ["ab"])
        self.assertEqual(data["segments"][0]["end"], 1000.0)


if __name__ == "__main__":
    unittest.main()
