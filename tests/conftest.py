"""
Shared fixtures: a tiny byte-level vocabulary and scripted fake models.
"""

from types import SimpleNamespace

import numpy as np
import pytest

from rtwhisper.core import config
from rtwhisper.core.vocab import Vocabulary

# "Ġ" is the byte-level symbol for a space, "Ċ" for a newline.
# "Ã" + "©" are the two bytes of "é" (0xC3 0xA9) split across tokens.
VOCAB = {
    "Hello": 0,
    "Ġworld": 1,
    "!": 2,
    "Ċ": 3,
    "Ã": 4,
    "©": 5,
    "caf": 6,
    "Ġ": 7,
}
HELLO, WORLD, BANG, NEWLINE, E_ACUTE_1, E_ACUTE_2, CAF, SPACE = range(8)


class ScriptedPredictor:
    """Returns the next scripted token at every position and records inputs."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def __call__(self, tokens, encoded_audio):
        self.calls.append((np.array(tokens), encoded_audio))
        if not self.script:
            raise AssertionError("Predictor called more often than scripted")
        token = self.script.pop(0)
        return np.full(tokens.shape[1], token, dtype=np.int64)


class RecordingTransform:
    """Stand-in for the spectrogram/encoder engines."""

    def __init__(self, name):
        self.name = name
        self.inputs = []

    def __call__(self, x):
        self.inputs.append(x)
        return (self.name, x)


@pytest.fixture
def vocab():
    return Vocabulary(VOCAB)


@pytest.fixture
def fake_bundle(vocab):
    def make(script):
        return SimpleNamespace(
            spectrogram=RecordingTransform("mel"),
            encoder=RecordingTransform("encoded"),
            predictor=ScriptedPredictor(script),
            vocab=vocab,
        )

    return make


@pytest.fixture
def short_clip():
    rng = np.random.default_rng(0)
    return rng.uniform(-0.5, 0.5, config.SAMPLE_RATE * 2).astype(np.float32)
