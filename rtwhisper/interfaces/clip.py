"""
Audio clip loading.
"""

import logging
from pathlib import Path

import numpy as np
import soundfile as sf

logger = logging.getLogger(__name__)


def load_clip(path: str | Path) -> tuple[np.ndarray, int]:
    """
    Read an audio file as mono float32 samples.

    Multi-channel audio is downmixed by averaging the channels. The sample
    rate is returned as-is; the preprocessor decides whether it is usable.

    Returns:
        (samples, sample_rate)
    """
    audio, sample_rate = sf.read(str(path), dtype="float32")
    if audio.ndim > 1:
        audio = audio.mean(axis=1).astype(np.float32)
    logger.info(
        "Loaded clip %s: %d samples at %dHz", Path(path).name, len(audio), sample_rate
    )
    return audio, sample_rate
