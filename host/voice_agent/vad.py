# voice_agent/vad.py
"""
Energy-gated voice activity detection.

The detector is fed one spectrum level per sampled frame. It decides when an
utterance starts (level above ``silence_threshold``) and when it ends (a
silence countdown of ``silence_duration`` seconds elapses without new speech).
The countdown is a deadline checked at the start of every frame, so it fires
on the first frame at or after it expires.
"""

import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class VADEvent(Enum):
    SPEECH_START = "speech_start"
    UTTERANCE_END = "utterance_end"


class VoiceActivityDetector:
    def __init__(
        self,
        silence_threshold: float = 15.0,
        silence_duration: float = 1.5,
        min_recording_time: float = 0.5,
    ):
        self.silence_threshold = silence_threshold
        self.silence_duration = silence_duration
        self.min_recording_time = min_recording_time
        self.reset()

    def reset(self):
        """Forget any utterance in progress and cancel the silence countdown"""
        self.is_recording = False
        self.speech_started = False
        self.recording_started_at: Optional[float] = None
        self.silence_deadline: Optional[float] = None

    @property
    def silence_timer_armed(self) -> bool:
        return self.silence_deadline is not None

    def process(self, level: float, now: float, suppressed: bool = False) -> Optional[VADEvent]:
        """Feed one frame; returns the transition it caused, if any"""
        if suppressed:
            return None

        if self.silence_deadline is not None and now >= self.silence_deadline:
            self.silence_deadline = None
            elapsed = now - self.recording_started_at
            if elapsed >= self.min_recording_time:
                logger.debug(f"Silence detected, utterance length {elapsed:.2f}s")
                self.is_recording = False
                self.speech_started = False
                self.recording_started_at = None
                return VADEvent.UTTERANCE_END
            # Too short to finalize; the next quiet frame re-arms the countdown
            logger.debug(f"Silence timer fired after only {elapsed:.2f}s, re-arming")

        if level > self.silence_threshold:
            self.silence_deadline = None
            if not self.is_recording:
                logger.debug(f"Speech detected (level: {level:.1f}, threshold: {self.silence_threshold:.1f})")
                self.is_recording = True
                self.speech_started = True
                self.recording_started_at = now
                return VADEvent.SPEECH_START
            return None

        if self.is_recording and self.speech_started and self.silence_deadline is None:
            self.silence_deadline = now + self.silence_duration
        return None
