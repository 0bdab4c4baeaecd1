"""
Microphone capture and speaker playback using PyAudio.
"""

import logging
import threading

import numpy as np
import pyaudio

from ..core import config
from ..core.audio import pcm16_to_float

logger = logging.getLogger(__name__)


class MicrophoneInput:
    """
    Records a clip from the default microphone.

    Audio is buffered until stop() and capped at the model window;
    samples past MAX_SECONDS are dropped.
    """

    def __init__(
        self,
        sample_rate: int = config.SAMPLE_RATE,
        channels: int = config.CHANNELS,
        chunk_ms: int = 100,
        max_seconds: int = config.MAX_SECONDS,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.frames_per_buffer = int(sample_rate * chunk_ms / 1000)
        self.max_bytes = max_seconds * sample_rate * config.SAMPLE_WIDTH

        self._pa: pyaudio.PyAudio | None = None
        self._stream: pyaudio.Stream | None = None
        self._buffer = bytearray()
        self._lock = threading.Lock()

    def _callback(
        self,
        in_data: bytes | None,
        frame_count: int,
        time_info: dict[str, float],
        status_flags: int,
    ) -> tuple[None, int]:
        """PyAudio callback."""
        if in_data is not None:
            with self._lock:
                room = self.max_bytes - len(self._buffer)
                if room > 0:
                    self._buffer.extend(in_data[:room])
        return (None, pyaudio.paContinue)

    def start(self) -> None:
        """Start capturing audio from microphone."""
        if self._stream is not None:
            return  # Already running

        with self._lock:
            self._buffer = bytearray()

        self._pa = pyaudio.PyAudio()
        self._stream = self._pa.open(
            format=pyaudio.paInt16,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.frames_per_buffer,
            stream_callback=self._callback,
        )
        self._stream.start_stream()
        logger.info("Microphone recording started")

    def stop(self) -> np.ndarray:
        """Stop capturing and return the recorded clip as float32 samples."""
        if self._stream is not None:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None

        if self._pa is not None:
            self._pa.terminate()
            self._pa = None

        with self._lock:
            samples = pcm16_to_float(bytes(self._buffer))
        logger.info(
            "Microphone recording stopped (%.1fs)", len(samples) / self.sample_rate
        )
        return samples

    def __enter__(self) -> "MicrophoneInput":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()


def play_samples(samples: np.ndarray, sample_rate: int) -> None:
    """Play a mono float clip on the default output device (blocking)."""
    pcm = (np.clip(samples, -1.0, 1.0) * 32767.0).astype(np.int16)

    pa = pyaudio.PyAudio()
    try:
        stream = pa.open(
            format=pyaudio.paInt16,
            channels=1,
            rate=sample_rate,
            output=True,
        )
        try:
            stream.write(pcm.tobytes())
        finally:
            stream.stop_stream()
            stream.close()
    finally:
        pa.terminate()
