# voice_agent/storage.py
"""
Uploads utterance audio to server storage and clears it again
"""

import asyncio
import logging
from typing import Optional

import requests

from .models import AudioBlob, ErrorKind, PersistedAudio, PersistResult, Role
from .utils import audio_extension

logger = logging.getLogger(__name__)

DEFAULT_FILENAMES = {
    Role.USER: "user-audio.webm",
    Role.ASSISTANT: "assistant-audio.mp3",
}


def upload_filename(role: Role, mime_type: Optional[str]) -> str:
    """Role default filename, with the extension matching a known mime type"""
    default = DEFAULT_FILENAMES[role]
    stem, _, ext = default.rpartition(".")
    return stem + audio_extension(mime_type, default="." + ext)


class AudioPersistenceClient:
    """Stores audio blobs on the server and returns their retrieval URL"""

    def __init__(
        self,
        save_url: str,
        clear_url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.save_url = save_url
        self.clear_url = clear_url
        self.timeout = timeout
        self.session = session or requests.Session()

    async def persist(self, role: Role, blob: AudioBlob) -> PersistResult:
        """Upload a blob; never raises"""
        loop = asyncio.get_running_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(None, self._upload, role, blob),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, requests.exceptions.Timeout):
            logger.warning(f"Saving {role.value} audio timed out")
            return PersistResult.failure("timeout", ErrorKind.TIMEOUT)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Saving {role.value} audio failed: {e}")
            return PersistResult.failure(str(e), ErrorKind.NETWORK)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.ok or not body.get("success") or not body.get("url"):
            error = body.get("error") or f"Server rejected upload ({response.status_code})"
            logger.warning(f"Saving {role.value} audio failed: {error}")
            return PersistResult.failure(error, ErrorKind.PERSISTENCE)

        stored = PersistedAudio(
            url=body["url"],
            filename=body.get("filename") or "",
            mime_type=body.get("mimeType") or blob.mime_type,
        )
        logger.info(f"Saved {role.value} audio as {stored.filename or stored.url} ({blob.size} bytes)")
        return PersistResult(success=True, audio=stored)

    def _upload(self, role: Role, blob: AudioBlob) -> requests.Response:
        files = {"audio": (upload_filename(role, blob.mime_type), blob.data, blob.mime_type)}
        return self.session.post(
            self.save_url,
            files=files,
            data={"type": role.value},
            timeout=self.timeout,
        )

    async def clear_all(self) -> Optional[int]:
        """Delete every stored blob; returns the deleted count or None on failure"""
        loop = asyncio.get_running_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(
                    None, lambda: self.session.delete(self.clear_url, timeout=self.timeout)
                ),
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (asyncio.TimeoutError, requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Could not clear server audio: {e}")
            return None

        if not isinstance(body, dict) or not body.get("success"):
            logger.warning(f"Server refused to clear audio: {body}")
            return None

        deleted = int(body.get("deletedCount") or 0)
        logger.info(f"Deleted {deleted} stored audio files")
        return deleted
