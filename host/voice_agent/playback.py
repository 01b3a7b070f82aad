# voice_agent/playback.py
"""
Audio playback with a single active player
"""

import asyncio
import logging
from typing import Optional, Tuple

import numpy as np
import requests

from .media import AudioLoader, decode_audio
from .models import ErrorKind, PlaybackError

logger = logging.getLogger(__name__)


class SoundDeviceOutput:
    """Plays decoded audio on the default output device"""

    def __init__(self, device: Optional[int] = None):
        self.device = device

    def _sounddevice(self):
        try:
            import sounddevice as sd
        except OSError as e:
            raise PlaybackError(f"PortAudio is not available: {e}") from e
        return sd

    def start(self, samples: np.ndarray, sample_rate: int):
        self._sounddevice().play(samples, sample_rate, device=self.device)

    def wait(self):
        """Blocks until playback ends or is stopped"""
        self._sounddevice().wait()

    def stop(self):
        self._sounddevice().stop()


class PlaybackController:
    """Plays one audio URL at a time and reports which history entry is playing"""

    def __init__(self, loader: AudioLoader, output=None, ui=None):
        self.loader = loader
        self.output = output or SoundDeviceOutput()
        self.ui = ui
        self._active = False
        self._current_id: Optional[int] = None
        self._generation = 0

    @property
    def is_playing(self) -> bool:
        return self._active

    @property
    def current_message_id(self) -> Optional[int]:
        return self._current_id if self._active else None

    def _load(self, url: str, timeout: float) -> Tuple[np.ndarray, int]:
        return decode_audio(self.loader.fetch(url, timeout))

    async def play(self, url: str, timeout: float, message_id: Optional[int] = None) -> bool:
        """
        Play ``url`` to completion.

        Returns True when playback reached its natural end and False when it
        was stopped or superseded. Raises PlaybackError if the audio could not
        be loaded within ``timeout`` or could not be played.
        """
        self.stop()
        self._generation += 1
        generation = self._generation
        self._active = True
        self._current_id = message_id
        if self.ui and message_id is not None:
            self.ui.set_playing(message_id, True)

        loop = asyncio.get_running_loop()
        try:
            try:
                samples, sample_rate = await asyncio.wait_for(
                    loop.run_in_executor(None, self._load, url, timeout),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as e:
                raise PlaybackError(f"Timed out after {timeout:.0f}s loading {url}", ErrorKind.TIMEOUT) from e
            except requests.exceptions.RequestException as e:
                raise PlaybackError(f"Could not load {url}: {e}", ErrorKind.NETWORK) from e
            except RuntimeError as e:
                raise PlaybackError(f"Could not decode {url}: {e}") from e

            if generation != self._generation:
                return False

            try:
                self.output.start(samples, sample_rate)
                await loop.run_in_executor(None, self.output.wait)
            except PlaybackError:
                raise
            except Exception as e:
                raise PlaybackError(f"Could not play {url}: {e}") from e

            finished = generation == self._generation
            if finished:
                logger.info("Audio playback completed")
            return finished
        finally:
            if generation == self._generation:
                self._release()

    def stop(self):
        """Stop the active playback, if any"""
        if not self._active:
            return
        self._generation += 1
        try:
            self.output.stop()
        except Exception as e:
            logger.warning(f"Error stopping playback: {e}")
        self._release()
        logger.debug("Playback stopped")

    def _release(self):
        previous = self._current_id
        self._active = False
        self._current_id = None
        if self.ui and previous is not None:
            self.ui.set_playing(previous, False)

    async def toggle(self, message_id: int, url: str, timeout: float) -> bool:
        """Stop ``message_id`` if it is playing, otherwise play it"""
        if self._active and self._current_id == message_id:
            self.stop()
            return False
        return await self.play(url, timeout, message_id)
