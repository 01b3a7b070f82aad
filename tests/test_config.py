"""
Configuration loading and display helpers
"""

import os
import sys
import time
import unittest
from pathlib import Path
from unittest.mock import patch

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "host"))

from voice_agent.config import Config
from voice_agent.utils import audio_extension, format_duration, format_timestamp


class TestConfig(unittest.TestCase):
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config.from_env()
        self.assertEqual(config.server_url, "http://localhost:3000")
        self.assertEqual(config.silence_threshold, 15.0)
        self.assertEqual(config.silence_duration, 1.5)
        self.assertEqual(config.min_recording_time, 0.5)
        self.assertEqual(config.exchange_timeout, 60.0)
        self.assertEqual(config.history_playback_timeout, 10.0)
        self.assertEqual(config.response_playback_timeout, 120.0)
        self.assertEqual(config.duration_probe_timeout, 5.0)
        self.assertEqual(config.settle_delay, 0.8)
        self.assertEqual(config.error_resume_delay, 2.0)
        self.assertIsNone(config.input_device)
        self.assertEqual(config.endpoint(config.voice_agent_path), "http://localhost:3000/api/voice-agent")

    def test_environment_overrides(self):
        env = {
            "VOICE_AGENT_SERVER_URL": "https://pizza.example.com/",
            "SILENCE_THRESHOLD": "22",
            "SILENCE_DURATION": "2.5",
            "INPUT_DEVICE": "3",
            "STORAGE_FILE": "/tmp/agent/storage.json",
        }
        with patch.dict(os.environ, env, clear=True):
            config = Config.from_env()
        self.assertEqual(config.server_url, "https://pizza.example.com")
        self.assertEqual(config.silence_threshold, 22.0)
        self.assertEqual(config.silence_duration, 2.5)
        self.assertEqual(config.input_device, 3)
        self.assertEqual(config.storage_file, "/tmp/agent/storage.json")


class TestFormatting(unittest.TestCase):
    def test_format_duration(self):
        self.assertEqual(format_duration(None), "--:--")
        self.assertEqual(format_duration(0), "--:--")
        self.assertEqual(format_duration(4.4), "0:04")
        self.assertEqual(format_duration(75), "1:15")

    def test_format_timestamp(self):
        now = time.mktime((2025, 7, 15, 18, 30, 0, 0, 0, -1))
        earlier_today = time.mktime((2025, 7, 15, 9, 5, 0, 0, 0, -1))
        last_week = time.mktime((2025, 7, 8, 18, 30, 0, 0, 0, -1))
        self.assertEqual(format_timestamp(earlier_today, now=now), "09:05")
        self.assertEqual(format_timestamp(last_week, now=now), "2025-07-08 18:30")

    def test_audio_extension(self):
        self.assertEqual(audio_extension("audio/mpeg"), ".mp3")
        self.assertEqual(audio_extension("audio/wav"), ".wav")
        self.assertEqual(audio_extension("audio/webm;codecs=opus"), ".webm")
        self.assertEqual(audio_extension(None), ".webm")
        self.assertEqual(audio_extension("audio/ogg"), ".webm")


if __name__ == "__main__":
    unittest.main()
