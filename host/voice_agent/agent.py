# voice_agent/agent.py
"""
The voice agent instance: builds every collaborator once and owns their lifecycle
"""

import asyncio
import logging
from typing import Optional

import requests

from .config import Config
from .conversation_manager import ConversationManager
from .exchange import RemoteExchangeClient
from .history import ChatHistory, LocalStore
from .media import AudioLoader, DurationProbe
from .playback import PlaybackController, SoundDeviceOutput
from .state import AgentState
from .storage import AudioPersistenceClient
from .ui import ConsoleUI, UIPort
from .vad import VoiceActivityDetector

logger = logging.getLogger(__name__)


class VoiceAgent:
    """Explicitly owned agent; create once, ``init()`` before use, ``dispose()`` at exit"""

    def __init__(self, config: Config, ui: Optional[UIPort] = None, output=None, capture_factory=None):
        self.config = config
        self.ui = ui or ConsoleUI()
        self.running = True
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._wake = asyncio.Event()
        self._disposed = False

        self.http = requests.Session()
        self.state = AgentState()
        self.vad = VoiceActivityDetector(
            silence_threshold=config.silence_threshold,
            silence_duration=config.silence_duration,
            min_recording_time=config.min_recording_time,
        )
        self.exchange = RemoteExchangeClient(
            config.endpoint(config.voice_agent_path),
            timeout=config.exchange_timeout,
            session=self.http,
        )
        self.persistence = AudioPersistenceClient(
            config.endpoint(config.save_audio_path),
            config.endpoint(config.clear_audio_path),
            timeout=config.persist_timeout,
            session=self.http,
        )
        self.loader = AudioLoader(config.server_url, session=self.http)
        self.history = ChatHistory(
            LocalStore(config.storage_file),
            persistence=self.persistence,
            probe=DurationProbe(self.loader, timeout=config.duration_probe_timeout),
        )
        self.playback = PlaybackController(
            self.loader,
            output=output or SoundDeviceOutput(),
            ui=self.ui,
        )
        self.manager = ConversationManager(
            config,
            self.state,
            self.vad,
            self.exchange,
            self.persistence,
            self.history,
            self.playback,
            self.ui,
            capture_factory=capture_factory,
        )

    # ------------------------------------------------------------------ #
    def init(self):
        """Load persisted history and show it"""
        self.loop = asyncio.get_running_loop()
        self.history.load()
        self.ui.render_history(self.history.messages)
        self.ui.show_mode(self.state.get_mode())
        logger.info(f"Voice agent ready (server: {self.config.server_url})")

    async def resolve_durations(self):
        """Probe durations of history entries that do not have one yet"""
        pending = [m for m in self.history if not m.duration_seconds]
        if pending:
            await asyncio.gather(*(self.history.resolve_duration(m) for m in pending))

    async def start_conversation(self) -> bool:
        return await self.manager.start()

    def end_conversation(self):
        self.manager.end()

    async def toggle_playback(self, message_id: int) -> bool:
        return await self.manager.toggle_playback(message_id)

    async def clear_history(self):
        await self.manager.clear_history()

    def wake(self):
        """Unblock anyone waiting in ``wait_closed``"""
        self._wake.set()

    async def wait_closed(self):
        await self._wake.wait()

    def dispose(self):
        if self._disposed:
            return
        self._disposed = True
        self.running = False
        self.manager.end()
        self.http.close()
        self.wake()
        logger.info("Voice agent disposed")
