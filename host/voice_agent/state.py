# voice_agent/state.py
"""
Conversation modes and the live session owned by the state machine
"""

import asyncio
import threading
import time
import uuid
import logging
from enum import Enum
from typing import Optional, Set

logger = logging.getLogger(__name__)


class AgentMode(Enum):
    """Conversation state machine modes"""
    IDLE = "idle"                    # No live session
    LISTENING = "listening"          # VAD armed, waiting for speech
    RECORDING = "recording"          # Speech detected, accumulating audio
    PROCESSING = "processing"        # Utterance sent, awaiting reply
    PLAYING = "playing"              # Reply audio playing


class Session:
    """Ephemeral resources of one live conversation"""

    def __init__(self, capture):
        self.id = uuid.uuid4().hex
        self.capture = capture
        self.started_at = time.time()
        self.is_processing = False
        self.is_playing_response = False
        self.recording_started_at: Optional[float] = None
        self.tasks: Set[asyncio.Task] = set()

    @property
    def busy(self) -> bool:
        """True while the microphone must not open a new utterance"""
        return self.is_processing or self.is_playing_response

    def spawn(self, coro) -> asyncio.Task:
        """Run a coroutine owned by this session"""
        task = asyncio.get_running_loop().create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    def cancel_tasks(self):
        current = asyncio.current_task() if _loop_running() else None
        for task in list(self.tasks):
            if task is not current:
                task.cancel()
        self.tasks.clear()


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
        return True
    except RuntimeError:
        return False


class AgentState:
    """Current mode plus the session it belongs to"""

    def __init__(self):
        self.mode = AgentMode.IDLE
        self.mode_lock = threading.Lock()
        self.session: Optional[Session] = None

    def set_mode(self, new_mode: AgentMode):
        """Thread-safe mode setter with logging"""
        with self.mode_lock:
            old_mode = self.mode
            self.mode = new_mode
        if old_mode != new_mode:
            logger.info(f"Mode transition: {old_mode.value} -> {new_mode.value}")

    def get_mode(self) -> AgentMode:
        """Thread-safe mode getter"""
        with self.mode_lock:
            return self.mode

    def is_current(self, session: Optional[Session]) -> bool:
        """Liveness check for completions that captured a session"""
        return session is not None and self.session is session

    @property
    def active(self) -> bool:
        return self.session is not None
