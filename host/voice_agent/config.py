# voice_agent/config.py
"""
Configuration management for the voice agent client
"""

import os
import sys
import logging
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    return int(value)


@dataclass
class Config:
    """Configuration settings for the voice agent"""
    # === SERVER ===
    server_url: str
    voice_agent_path: str
    save_audio_path: str
    clear_audio_path: str

    # === AUDIO CAPTURE ===
    sample_rate: int
    frame_duration: float
    fft_size: int
    analyser_smoothing: float
    input_device: Optional[int]

    # === VAD CONFIGURATION ===
    silence_threshold: float
    silence_duration: float
    min_recording_time: float

    # === TIMEOUTS AND DELAYS ===
    exchange_timeout: float
    persist_timeout: float
    history_playback_timeout: float
    response_playback_timeout: float
    duration_probe_timeout: float
    settle_delay: float
    error_resume_delay: float

    # === LOCAL STORAGE ===
    storage_file: str

    # === LOGGING CONFIGURATION ===
    log_level: str
    log_file: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables"""
        return cls(
            # === SERVER ===
            server_url=os.getenv("VOICE_AGENT_SERVER_URL", "http://localhost:3000").rstrip("/"),
            voice_agent_path=os.getenv("VOICE_AGENT_PATH", "/api/voice-agent"),
            save_audio_path=os.getenv("SAVE_AUDIO_PATH", "/api/save-audio"),
            clear_audio_path=os.getenv("CLEAR_AUDIO_PATH", "/api/audio-clear"),

            # === AUDIO CAPTURE ===
            sample_rate=int(os.getenv("SAMPLE_RATE", "16000")),
            frame_duration=float(os.getenv("FRAME_DURATION", "0.03")),
            fft_size=int(os.getenv("FFT_SIZE", "256")),
            analyser_smoothing=float(os.getenv("ANALYSER_SMOOTHING", "0.8")),
            input_device=_optional_int(os.getenv("INPUT_DEVICE")),

            # === VAD CONFIGURATION ===
            # Byte-scale spectrum magnitude (0-255)
            silence_threshold=float(os.getenv("SILENCE_THRESHOLD", "15")),
            silence_duration=float(os.getenv("SILENCE_DURATION", "1.5")),
            min_recording_time=float(os.getenv("MIN_RECORDING_TIME", "0.5")),

            # === TIMEOUTS AND DELAYS ===
            exchange_timeout=float(os.getenv("EXCHANGE_TIMEOUT", "60")),
            persist_timeout=float(os.getenv("PERSIST_TIMEOUT", "30")),
            history_playback_timeout=float(os.getenv("HISTORY_PLAYBACK_TIMEOUT", "10")),
            # Synthesis plus transfer of the agent reply can be slow
            response_playback_timeout=float(os.getenv("RESPONSE_PLAYBACK_TIMEOUT", "120")),
            duration_probe_timeout=float(os.getenv("DURATION_PROBE_TIMEOUT", "5")),
            settle_delay=float(os.getenv("SETTLE_DELAY", "0.8")),
            error_resume_delay=float(os.getenv("ERROR_RESUME_DELAY", "2.0")),

            # === LOCAL STORAGE ===
            storage_file=os.path.expanduser(
                os.getenv("STORAGE_FILE", "~/.voice_agent/storage.json")
            ),

            # === LOGGING CONFIGURATION ===
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", "voice_agent.log"),
        )

    def endpoint(self, path: str) -> str:
        """Absolute URL for a server path"""
        return f"{self.server_url}{path}"


def setup_logging(config: Config):
    """Configure logging with file and console handlers"""
    # Launched from a wrapper that only shows console output
    force_console = os.getenv("VOICE_AGENT_CONSOLE_OUTPUT") == "1"

    file_handler = logging.FileHandler(config.log_file, encoding='utf-8')
    console_handler = logging.StreamHandler(sys.stdout)
    handlers = [file_handler, console_handler]

    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    if force_console:
        log_format = '%(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format=log_format,
        handlers=handlers,
        force=True  # Reconfigure even if already configured
    )

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
