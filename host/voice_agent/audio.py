# voice_agent/audio.py
"""
Microphone capture and spectrum level sampling
"""

import queue
import threading
import logging
import io
from typing import Optional, List, Tuple
import numpy as np
import soundfile as sf

from .models import AudioBlob, MicrophoneUnavailable

logger = logging.getLogger(__name__)

# Decibel range mapped onto the 0-255 byte scale
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0


def spectrum_level(
    samples: np.ndarray,
    fft_size: int = 256,
    previous: Optional[np.ndarray] = None,
    smoothing: float = 0.8,
) -> Tuple[float, np.ndarray]:
    """
    Average magnitude of the frequency spectrum of the latest ``fft_size``
    int16 samples, on a 0-255 byte scale.

    Returns the level and the smoothed linear magnitudes, which should be
    passed back as ``previous`` on the next call.
    """
    frame = np.zeros(fft_size, dtype=np.float64)
    tail = np.asarray(samples[-fft_size:], dtype=np.float64) / 32768.0
    if len(tail):
        frame[-len(tail):] = tail

    spectrum = np.fft.rfft(frame * np.blackman(fft_size))
    magnitude = np.abs(spectrum[: fft_size // 2]) / fft_size
    if previous is not None and previous.shape == magnitude.shape:
        magnitude = smoothing * previous + (1.0 - smoothing) * magnitude

    with np.errstate(divide="ignore"):
        decibels = 20.0 * np.log10(magnitude)
    scaled = 255.0 * (decibels - MIN_DECIBELS) / (MAX_DECIBELS - MIN_DECIBELS)
    byte_values = np.clip(np.floor(scaled), 0, 255)
    return float(byte_values.mean()), magnitude


class AudioCapture:
    """Wraps the microphone stream; yields levels and recorded segments"""

    def __init__(
        self,
        sample_rate: int = 16000,
        frame_duration: float = 0.03,
        fft_size: int = 256,
        smoothing: float = 0.8,
        device: Optional[int] = None,
    ):
        self.sample_rate = sample_rate
        self.frame_duration = frame_duration
        self.fft_size = fft_size
        self.smoothing = smoothing
        self.device = device
        self.audio_queue = queue.Queue()
        self.recording = False
        self.stream = None
        self._lock = threading.Lock()

        self._window = np.zeros(fft_size, dtype=np.int16)
        self._smoothed: Optional[np.ndarray] = None
        self._segment: Optional[List[bytes]] = None

    def start(self):
        """Open the microphone; raises MicrophoneUnavailable on failure"""
        try:
            import sounddevice as sd
        except OSError as e:
            raise MicrophoneUnavailable(f"PortAudio is not available: {e}") from e

        with self._lock:
            if self.recording:
                return

            try:
                devices = sd.query_devices()
                logger.debug("Available audio devices:")
                for i, device in enumerate(devices):
                    logger.debug(f"  {i}: {device['name']} - In:{device['max_input_channels']}")

                sd.check_input_settings(
                    device=self.device,
                    channels=1,
                    dtype="int16",
                    samplerate=self.sample_rate,
                )
                self.stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    blocksize=int(self.sample_rate * self.frame_duration),
                    device=self.device,
                    dtype="int16",
                    channels=1,
                    callback=self._audio_callback
                )
                self.stream.start()
            except (sd.PortAudioError, ValueError) as e:
                self.stream = None
                raise MicrophoneUnavailable(str(e)) from e

            self.recording = True
            logger.info("Started microphone capture")

    def stop(self):
        """Stop capture and release the stream"""
        with self._lock:
            self.recording = False
            if self.stream:
                try:
                    self.stream.stop()
                    self.stream.close()
                except Exception as e:
                    logger.warning(f"Error closing input stream: {e}")
                self.stream = None
                logger.info("Stopped microphone capture")
        self.discard_segment()
        self._drain()

    def _audio_callback(self, indata, frames, time_info, status):
        """Audio stream callback"""
        if status:
            logger.warning(f"Audio callback status: {status}")
        if self.recording:
            self.audio_queue.put(bytes(indata))

    def _drain(self) -> List[bytes]:
        chunks = []
        while True:
            try:
                chunks.append(self.audio_queue.get_nowait())
            except queue.Empty:
                return chunks

    def read_level(self) -> float:
        """Consume pending audio and return the current spectrum level"""
        chunks = self._drain()
        if chunks:
            if self._segment is not None:
                self._segment.extend(chunks)
            samples = np.frombuffer(b"".join(chunks), dtype=np.int16)
            self._window = np.concatenate([self._window, samples])[-self.fft_size:]

        level, self._smoothed = spectrum_level(
            self._window, self.fft_size, self._smoothed, self.smoothing
        )
        return level

    # ------------------------------------------------------------------ #
    def begin_segment(self):
        self._segment = []

    def discard_segment(self):
        """Drop the open segment without encoding it"""
        self._segment = None

    @property
    def segment_active(self) -> bool:
        return self._segment is not None

    def end_segment(self) -> Optional[AudioBlob]:
        """Close the open segment and encode it as WAV"""
        if self._segment is None:
            return None
        # Pick up audio that arrived since the last level read
        self._segment.extend(self._drain())
        frames, self._segment = self._segment, None
        if not frames:
            return None
        return self._frames_to_wav(frames)

    def _frames_to_wav(self, frames) -> Optional[AudioBlob]:
        """Convert audio frames to WAV format"""
        wav_buffer = io.BytesIO()
        try:
            with sf.SoundFile(
                wav_buffer,
                mode="w",
                samplerate=self.sample_rate,
                channels=1,
                subtype="PCM_16",
                format="WAV"
            ) as sound_file:
                for frame in frames:
                    sound_file.buffer_write(frame, dtype="int16")
        except Exception as e:
            logger.error(f"Error creating WAV file: {e}")
            return None

        return AudioBlob(data=wav_buffer.getvalue(), mime_type="audio/wav")
