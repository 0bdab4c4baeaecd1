"""
Audio preprocessing: validate a clip, pad it to the model window and encode it.
This module is independent of any transport or UI.
"""

import logging
from typing import Any, Callable

import numpy as np

from . import config
from .errors import ClipTooLong, InvalidSampleRate, ModelInferenceFailure

logger = logging.getLogger(__name__)

# Tensor in, tensor out
Transform = Callable[[Any], Any]


def pcm16_to_float(audio_bytes: bytes) -> np.ndarray:
    """Convert raw PCM bytes (int16, mono) to float32 samples in [-1, 1]."""
    audio_np = np.frombuffer(audio_bytes, dtype=np.int16).astype(np.float32)
    audio_np /= 32768.0
    return audio_np


def prepare_samples(samples: np.ndarray, sample_rate: int) -> np.ndarray:
    """
    Validate a mono clip and zero-pad it to exactly MAX_SAMPLES.

    Args:
        samples: Mono float samples
        sample_rate: Sample rate of the clip in Hz

    Returns:
        New float32 array of length MAX_SAMPLES

    Raises:
        InvalidSampleRate: sample_rate is not SAMPLE_RATE
        ClipTooLong: the clip is longer than MAX_SECONDS
    """
    if sample_rate != config.SAMPLE_RATE:
        raise InvalidSampleRate(sample_rate, config.SAMPLE_RATE)

    samples = np.asarray(samples)
    if samples.ndim != 1:
        raise ValueError(f"Expected mono samples, got shape {samples.shape}")

    num_samples = samples.shape[0]
    if num_samples > config.MAX_SAMPLES:
        raise ClipTooLong(num_samples, sample_rate, config.MAX_SECONDS)

    data = np.zeros(config.MAX_SAMPLES, dtype=np.float32)
    data[:num_samples] = samples
    return data


class AudioPreprocessor:
    """Turns a raw clip into the encoded audio tensor the decoder consumes."""

    def __init__(self, spectrogram: Transform, encoder: Transform):
        self.spectrogram = spectrogram
        self.encoder = encoder

    def encode(self, samples: np.ndarray, sample_rate: int) -> Any:
        """
        Encode a clip.

        Args:
            samples: Mono float samples
            sample_rate: Sample rate of the clip in Hz

        Returns:
            Encoded audio tensor (opaque, produced by the encoder)
        """
        data = prepare_samples(samples, sample_rate)
        batch = data.reshape(1, config.MAX_SAMPLES)

        try:
            mel = self.spectrogram(batch)
            encoded = self.encoder(mel)
        except Exception as e:
            logger.error("Audio encoding failed: %s", e)
            raise ModelInferenceFailure(f"Audio encoding failed: {e}") from e

        logger.info(
            "Encoded %.1fs of audio", len(samples) / float(config.SAMPLE_RATE)
        )
        return encoded
