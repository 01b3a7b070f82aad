# voice_agent/models.py
"""
Data types shared by the voice agent components
"""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Dict, Any


class Role(Enum):
    """Who spoke an utterance"""
    USER = "user"
    ASSISTANT = "assistant"


class ErrorKind(Enum):
    """Failure taxonomy used in tagged results"""
    PERMISSION_DENIED = "permission_denied"
    NETWORK = "network"
    TIMEOUT = "timeout"
    PERSISTENCE = "persistence"
    PLAYBACK = "playback"
    DURATION_PROBE = "duration_probe"


class VoiceAgentError(Exception):
    """Base class for voice agent errors, tagged with an ErrorKind"""
    kind = ErrorKind.NETWORK

    def __init__(self, message: str = "", kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class MicrophoneUnavailable(VoiceAgentError):
    """Microphone access was refused or no input device exists"""
    kind = ErrorKind.PERMISSION_DENIED


class PlaybackError(VoiceAgentError):
    """Audio could not be loaded or played"""
    kind = ErrorKind.PLAYBACK


class DurationProbeError(VoiceAgentError):
    """Audio length could not be determined"""
    kind = ErrorKind.DURATION_PROBE


@dataclass
class AudioBlob:
    """Playable audio held in memory"""
    data: bytes
    mime_type: str = "audio/wav"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ExchangeResult:
    """Outcome of one round-trip with the voice agent endpoint"""
    success: bool
    audio: Optional[AudioBlob] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    text: Optional[str] = None

    @classmethod
    def failure(cls, error: str, kind: ErrorKind) -> "ExchangeResult":
        return cls(success=False, error=error, error_kind=kind)


@dataclass
class PersistedAudio:
    """Server-side location of a stored audio blob"""
    url: str
    filename: str
    mime_type: str


@dataclass
class PersistResult:
    success: bool
    audio: Optional[PersistedAudio] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def failure(cls, error: str, kind: ErrorKind) -> "PersistResult":
        return cls(success=False, error=error, error_kind=kind)


@dataclass
class Message:
    """One exchanged utterance with its durable audio reference"""
    id: int
    role: Role
    audio_url: str
    mime_type: str
    filename: str
    created_at: float = field(default_factory=time.time)
    duration_seconds: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["role"] = self.role.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        duration = data.get("duration_seconds")
        return cls(
            id=int(data["id"]),
            role=Role(data["role"]),
            audio_url=data["audio_url"],
            mime_type=data.get("mime_type") or "",
            filename=data.get("filename") or "",
            created_at=float(data.get("created_at") or time.time()),
            duration_seconds=float(duration) if duration else None,
        )
