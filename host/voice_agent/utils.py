# voice_agent/utils.py
"""
Utility functions for the voice agent
"""

import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "audio/webm": ".webm",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
}


def audio_extension(mime_type: Optional[str], default: str = ".webm") -> str:
    """File extension for an audio mime type"""
    if not mime_type:
        return default
    return MIME_EXTENSIONS.get(mime_type.split(";")[0].strip().lower(), default)


def format_duration(seconds: Optional[float]) -> str:
    """m:ss, or --:-- while unknown"""
    if seconds is None or seconds <= 0:
        return "--:--"
    total = int(round(seconds))
    return f"{total // 60}:{total % 60:02d}"


def format_timestamp(created_at: float, now: Optional[float] = None) -> str:
    """Clock time for today's messages, date and time otherwise"""
    now = time.time() if now is None else now
    if time.strftime("%Y-%m-%d", time.localtime(created_at)) == time.strftime("%Y-%m-%d", time.localtime(now)):
        return time.strftime("%H:%M", time.localtime(created_at))
    return time.strftime("%Y-%m-%d %H:%M", time.localtime(created_at))


def signal_handler(signum, frame, agent):
    """Handle Ctrl-C / SIGTERM gracefully."""
    logger.info(f"Received signal {signum}; shutting down…")
    agent.running = False
    loop = agent.loop
    if loop is not None and loop.is_running():
        loop.call_soon_threadsafe(agent.end_conversation)
        loop.call_soon_threadsafe(agent.wake)
