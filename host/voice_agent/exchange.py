# voice_agent/exchange.py
"""
Client for the server's voice agent proxy.

One utterance goes up as a multipart upload, a spoken reply comes back either
as raw audio or as JSON carrying a base64 payload. Every failure is turned
into a tagged ExchangeResult; nothing raises past ``exchange``.
"""

import asyncio
import base64
import binascii
import logging
import time
from typing import Optional, Tuple

import requests

from .models import AudioBlob, ErrorKind, ExchangeResult
from .utils import audio_extension

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "timeout"

STATUS_MESSAGES = {
    400: "No audio was received by the server",
    413: "The recording is too large",
    500: "The voice agent is not configured on the server",
    502: "The voice agent connection was reset",
    504: "The voice agent did not answer in time",
}

DEFAULT_REPLY_MIME = "audio/mpeg"


def decode_audio_payload(payload: str) -> Tuple[bytes, str]:
    """Decode bare base64 or a ``data:`` URL into bytes and a mime type"""
    mime_type = DEFAULT_REPLY_MIME
    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        declared = header[len("data:"):].split(";")[0]
        if declared:
            mime_type = declared
    return base64.b64decode(payload.strip(), validate=True), mime_type


class RemoteExchangeClient:
    """Sends utterances to the voice agent endpoint"""

    def __init__(self, url: str, timeout: float = 60.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    async def exchange(self, utterance: AudioBlob) -> ExchangeResult:
        """Deliver an utterance and return the agent's reply"""
        start_time = time.time()
        loop = asyncio.get_running_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(None, self._post, utterance),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, requests.exceptions.Timeout):
            elapsed = time.time() - start_time
            logger.warning(f"Voice agent request timed out after {elapsed:.1f}s")
            return ExchangeResult.failure(TIMEOUT_ERROR, ErrorKind.TIMEOUT)
        except requests.exceptions.ConnectionError as e:
            logger.warning(f"Could not connect to voice agent: {e}")
            return ExchangeResult.failure("Could not reach the server", ErrorKind.NETWORK)
        except requests.exceptions.RequestException as e:
            logger.error(f"Voice agent request failed: {e}")
            return ExchangeResult.failure(str(e), ErrorKind.NETWORK)

        result = self._interpret(response)
        elapsed = time.time() - start_time
        logger.info(
            f"Voice agent answered in {elapsed:.2f}s "
            f"(success={result.success}, audio={'yes' if result.audio else 'no'})"
        )
        return result

    def _post(self, utterance: AudioBlob) -> requests.Response:
        files = {"audio": ("voice-input" + audio_extension(utterance.mime_type), utterance.data, utterance.mime_type)}
        return self.session.post(self.url, files=files, timeout=self.timeout)

    def _interpret(self, response: requests.Response) -> ExchangeResult:
        content_type = response.headers.get("Content-Type", "").split(";")[0].strip().lower()

        if content_type.startswith("audio/") and response.ok:
            return ExchangeResult(success=True, audio=AudioBlob(response.content, content_type))

        if content_type == "application/json":
            try:
                body = response.json()
            except ValueError:
                logger.error("Voice agent returned malformed JSON")
                return ExchangeResult.failure("Malformed server reply", ErrorKind.NETWORK)
            if not isinstance(body, dict):
                body = {}
            return self._interpret_json(response.status_code, response.ok, body)

        if not response.ok:
            return ExchangeResult.failure(_status_message(response.status_code), ErrorKind.NETWORK)

        return ExchangeResult(success=True)

    def _interpret_json(self, status: int, ok: bool, body: dict) -> ExchangeResult:
        if not ok or body.get("success") is False:
            error = body.get("error") or body.get("message") or _status_message(status)
            kind = ErrorKind.TIMEOUT if status == 504 else ErrorKind.NETWORK
            return ExchangeResult.failure(error, kind)

        text = body.get("text_response") or None
        payload = body.get("audio_response")
        if not payload or not str(payload).strip():
            return ExchangeResult(success=True, text=text)

        try:
            data, mime_type = decode_audio_payload(str(payload))
        except (binascii.Error, ValueError) as e:
            logger.error(f"Could not decode audio payload: {e}")
            return ExchangeResult.failure("The reply audio could not be decoded", ErrorKind.NETWORK)
        return ExchangeResult(success=True, audio=AudioBlob(data, mime_type), text=text)


def _status_message(status: int) -> str:
    return STATUS_MESSAGES.get(status, f"Server error ({status})")
