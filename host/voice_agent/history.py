# voice_agent/history.py
"""
Persisted chat history of stored utterances.

The whole list is re-serialized to the local store on every mutation. Only
messages whose audio already lives on the server are ever added, so every
entry can be replayed.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .models import Message, PersistedAudio, Role

logger = logging.getLogger(__name__)

STORAGE_KEY = "voice_agent_chat_history"


class LocalStore:
    """Small key-value store kept in one JSON document on disk"""

    def __init__(self, path: str):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Local storage unreadable, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str):
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str):
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


class ChatHistory:
    def __init__(self, store: LocalStore, persistence=None, probe=None, key: str = STORAGE_KEY):
        self.store = store
        self.persistence = persistence
        self.probe = probe
        self.key = key
        self._messages: List[Message] = []
        self._last_id = 0

    # ------------------------------------------------------------------ #
    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def get(self, message_id: int) -> Optional[Message]:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    # ------------------------------------------------------------------ #
    def load(self) -> List[Message]:
        """Read the persisted history, dropping entries without an audio URL"""
        raw = self.store.get_item(self.key)
        self._messages = []
        if raw:
            try:
                entries = json.loads(raw)
            except ValueError as e:
                logger.warning(f"Discarding unreadable chat history: {e}")
                entries = []
            if not isinstance(entries, list):
                entries = []

            for entry in entries:
                if not isinstance(entry, dict) or not entry.get("audio_url"):
                    continue
                try:
                    self._messages.append(Message.from_dict(entry))
                except (KeyError, TypeError, ValueError) as e:
                    logger.debug(f"Skipping malformed history entry: {e}")

            dropped = len(entries) - len(self._messages)
            if dropped:
                logger.info(f"Dropped {dropped} incompatible history entries")

        self._last_id = max((m.id for m in self._messages), default=0)
        logger.info(f"Loaded {len(self._messages)} history messages")
        return self.messages

    def save(self):
        payload = json.dumps([m.to_dict() for m in self._messages], ensure_ascii=False)
        self.store.set_item(self.key, payload)

    def next_id(self) -> int:
        """Millisecond timestamp, bumped to stay strictly increasing"""
        candidate = int(time.time() * 1000)
        self._last_id = max(candidate, self._last_id + 1)
        return self._last_id

    def new_message(self, role: Role, stored: PersistedAudio) -> Message:
        return Message(
            id=self.next_id(),
            role=role,
            audio_url=stored.url,
            mime_type=stored.mime_type,
            filename=stored.filename,
        )

    def append(self, message: Message) -> Message:
        if not message.audio_url:
            raise ValueError("Messages need a stored audio URL")
        self._messages.append(message)
        self._last_id = max(self._last_id, message.id)
        self.save()
        return message

    async def clear(self):
        """Empty the history and ask the server to delete its audio files"""
        if self.persistence is not None:
            deleted = await self.persistence.clear_all()
            if deleted is None:
                logger.warning("Server audio could not be deleted; clearing local history anyway")
        self._messages = []
        self.store.remove_item(self.key)
        logger.info("Chat history cleared")

    async def resolve_duration(self, message: Message) -> Optional[float]:
        """Probe and cache the message's audio length"""
        if message.duration_seconds:
            return message.duration_seconds
        if self.probe is None:
            return None

        duration = await self.probe.probe(message.audio_url)
        if duration is None:
            return None

        message.duration_seconds = duration
        if message in self._messages:
            self.save()
        return duration
