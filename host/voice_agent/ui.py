# voice_agent/ui.py
"""
UI port used by the state machine, plus a console implementation
"""

from abc import ABC, abstractmethod
from typing import List

from .models import Message, Role
from .state import AgentMode
from .utils import format_duration, format_timestamp


class UIPort(ABC):
    """Capabilities the conversation needs from a rendering surface"""

    @abstractmethod
    def show_mode(self, mode: AgentMode):
        pass

    @abstractmethod
    def show_error(self, message: str):
        pass

    @abstractmethod
    def clear_error(self):
        pass

    @abstractmethod
    def show_response_text(self, text: str):
        pass

    @abstractmethod
    def render_history(self, messages: List[Message]):
        pass

    @abstractmethod
    def set_playing(self, message_id: int, playing: bool):
        pass

    def reset(self):
        """Back to the idle layout"""
        self.clear_error()
        self.show_mode(AgentMode.IDLE)


MODE_LABELS = {
    AgentMode.IDLE: "⏹  Idle - type 's' to start a conversation",
    AgentMode.LISTENING: "👂 Listening...",
    AgentMode.RECORDING: "🎙  Recording",
    AgentMode.PROCESSING: "⏳ Processing",
    AgentMode.PLAYING: "🔊 Playing reply",
}


class ConsoleUI(UIPort):
    """Prints conversation status to the terminal"""

    def __init__(self, out=print):
        self.out = out
        self.playing_id = None
        self.error = None

    def show_mode(self, mode: AgentMode):
        self.out(MODE_LABELS[mode])

    def show_error(self, message: str):
        self.error = message
        self.out(f"❌ {message}")

    def clear_error(self):
        self.error = None

    def show_response_text(self, text: str):
        self.out(f"💬 {text}")

    def render_history(self, messages: List[Message]):
        if not messages:
            self.out("No messages yet.")
            return
        for index, message in enumerate(messages, start=1):
            speaker = "You" if message.role is Role.USER else "Agent"
            marker = "▶" if message.id == self.playing_id else " "
            self.out(
                f"{marker} {index:>3}. [{format_timestamp(message.created_at)}] "
                f"{speaker:<5} {format_duration(message.duration_seconds)}"
            )

    def set_playing(self, message_id: int, playing: bool):
        if playing:
            self.playing_id = message_id
        elif self.playing_id == message_id:
            self.playing_id = None
