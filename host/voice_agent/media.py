# voice_agent/media.py
"""
Fetching, decoding and measuring stored audio resources
"""

import asyncio
import io
import logging
import math
from typing import Optional, Tuple
from urllib.parse import urljoin

import numpy as np
import requests
import soundfile as sf

from .models import DurationProbeError, ErrorKind

logger = logging.getLogger(__name__)


class AudioLoader:
    """Downloads audio by URL, resolving server-relative paths"""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/") + "/"
        self.session = session or requests.Session()

    def resolve(self, url: str) -> str:
        return urljoin(self.base_url, url)

    def fetch(self, url: str, timeout: float) -> bytes:
        """Blocking download; raises requests exceptions"""
        response = self.session.get(self.resolve(url), timeout=timeout)
        response.raise_for_status()
        return response.content


def decode_audio(data: bytes) -> Tuple[np.ndarray, int]:
    """Decode an audio file held in memory to float32 samples"""
    samples, sample_rate = sf.read(io.BytesIO(data), dtype="float32")
    return samples, sample_rate


def measure_duration(data: bytes) -> Optional[float]:
    """Length in seconds of an encoded audio file"""
    with sf.SoundFile(io.BytesIO(data)) as sound_file:
        sample_rate = sound_file.samplerate
        frames = sound_file.frames
        if not frames or frames < 0:
            # Streaming containers may not carry a length up front; read to
            # the end of the stream to discover it.
            frames = 0
            for block in sound_file.blocks(blocksize=65536):
                frames += len(block)
    if not sample_rate:
        return None
    return frames / sample_rate


class DurationProbe:
    """Resolves audio durations without ever blocking the caller for long"""

    def __init__(self, loader: AudioLoader, timeout: float = 5.0):
        self.loader = loader
        self.timeout = timeout

    async def probe(self, url: str) -> Optional[float]:
        loop = asyncio.get_running_loop()
        try:
            duration = await asyncio.wait_for(
                loop.run_in_executor(None, self._probe_blocking, url),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.debug(f"Duration probe timed out after {self.timeout:.0f}s for {url}")
            return None
        except DurationProbeError as e:
            logger.debug(f"Duration probe failed ({e.kind.value}) for {url}: {e}")
            return None

        if duration is None or not math.isfinite(duration) or duration <= 0:
            return None
        return duration

    def _probe_blocking(self, url: str) -> Optional[float]:
        try:
            data = self.loader.fetch(url, self.timeout)
        except requests.exceptions.RequestException as e:
            raise DurationProbeError(str(e), ErrorKind.NETWORK) from e
        try:
            return measure_duration(data)
        except RuntimeError as e:
            raise DurationProbeError(str(e)) from e
