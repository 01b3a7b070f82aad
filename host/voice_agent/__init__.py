# voice_agent/__init__.py
"""
Voice Agent Client Package
"""

from .config import Config, setup_logging
from .models import (
    AudioBlob,
    DurationProbeError,
    ErrorKind,
    ExchangeResult,
    Message,
    MicrophoneUnavailable,
    PersistedAudio,
    PersistResult,
    PlaybackError,
    Role,
    VoiceAgentError,
)
from .state import AgentMode, AgentState, Session
from .audio import AudioCapture, spectrum_level
from .vad import VADEvent, VoiceActivityDetector
from .exchange import RemoteExchangeClient
from .storage import AudioPersistenceClient
from .media import AudioLoader, DurationProbe
from .history import ChatHistory, LocalStore
from .playback import PlaybackController, SoundDeviceOutput
from .ui import UIPort, ConsoleUI
from .conversation_manager import ConversationManager
from .agent import VoiceAgent

__all__ = [
    'Config',
    'setup_logging',
    'AudioBlob',
    'DurationProbeError',
    'ErrorKind',
    'ExchangeResult',
    'Message',
    'MicrophoneUnavailable',
    'PersistedAudio',
    'PersistResult',
    'PlaybackError',
    'Role',
    'VoiceAgentError',
    'AgentMode',
    'AgentState',
    'Session',
    'AudioCapture',
    'spectrum_level',
    'VADEvent',
    'VoiceActivityDetector',
    'RemoteExchangeClient',
    'AudioPersistenceClient',
    'AudioLoader',
    'DurationProbe',
    'ChatHistory',
    'LocalStore',
    'PlaybackController',
    'SoundDeviceOutput',
    'UIPort',
    'ConsoleUI',
    'ConversationManager',
    'VoiceAgent',
]
