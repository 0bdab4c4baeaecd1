"""
Greedy autoregressive decode loop.

The loop owns one request at a time and advances one token per step(),
so a UI can call step() from a timer and show the transcript as it grows.
This module is independent of any transport or UI.
"""

import enum
import logging
from typing import Any, Callable

import numpy as np

from . import config
from .errors import ModelInferenceFailure, SequenceCapacityExceeded
from .vocab import Detokenizer

logger = logging.getLogger(__name__)

# (tokens (1, capacity) int64, encoded audio) -> next-token ID per position
Predictor = Callable[[np.ndarray, Any], np.ndarray]


class DecodeState(enum.Enum):
    IDLE = "idle"
    DECODING = "decoding"
    FINISHED = "finished"
    TRUNCATED = "truncated"


TERMINAL_STATES = (DecodeState.FINISHED, DecodeState.TRUNCATED)


def build_prompt(
    language: str = config.DEFAULT_LANGUAGE,
    task: str = config.DEFAULT_TASK,
    timestamps: bool = False,
) -> list[int]:
    """
    Control-token prefix every transcription starts with.

    Args:
        language: Language code, one of config.LANGUAGE_TOKENS
        task: "transcribe" or "translate"
        timestamps: Ask the model for timestamp tokens

    Returns:
        [START_OF_TRANSCRIPT, language, task, NO_TIME_STAMPS | START_TIME]
    """
    if language not in config.LANGUAGE_TOKENS:
        raise ValueError(f"Unsupported language: {language!r}")
    if task not in config.TASK_TOKENS:
        raise ValueError(f"Unsupported task: {task!r}")

    return [
        config.START_OF_TRANSCRIPT,
        config.LANGUAGE_TOKENS[language],
        config.TASK_TOKENS[task],
        config.START_TIME if timestamps else config.NO_TIME_STAMPS,
    ]


class TokenSequence:
    """Fixed-capacity token buffer, zero-padded past the last written token."""

    def __init__(self, prefix: list[int], capacity: int = config.MAX_TOKENS):
        if not prefix:
            raise ValueError("Token prefix must not be empty")
        if len(prefix) >= capacity:
            raise ValueError(
                f"Prefix of {len(prefix)} tokens leaves no room in capacity {capacity}"
            )
        self.capacity = capacity
        self.prefix_len = len(prefix)
        self._buf = np.zeros((1, capacity), dtype=np.int64)
        self._buf[0, : len(prefix)] = prefix
        self._len = len(prefix)

    def __len__(self) -> int:
        return self._len

    @property
    def full(self) -> bool:
        return self._len >= self.capacity

    @property
    def last_index(self) -> int:
        return self._len - 1

    def append(self, token_id: int) -> None:
        if self.full:
            raise SequenceCapacityExceeded(
                f"Output sequence is full ({self.capacity} tokens)"
            )
        self._buf[0, self._len] = token_id
        self._len += 1

    def as_model_input(self) -> np.ndarray:
        """(1, capacity) array handed to the decoder model."""
        return self._buf.copy()

    def tokens(self) -> list[int]:
        return self._buf[0, : self._len].tolist()

    def generated(self) -> list[int]:
        """Tokens written after the prefix."""
        return self._buf[0, self.prefix_len : self._len].tolist()


class DecoderLoop:
    """
    Greedy decoder state machine: IDLE -> DECODING -> FINISHED | TRUNCATED.

    One DecoderLoop serves one in-flight request. A failed model call drops
    the request and returns to IDLE; text already produced is kept.
    """

    def __init__(
        self,
        predict: Predictor,
        detokenizer: Detokenizer,
        capacity: int = config.MAX_TOKENS,
        on_text: Callable[[str], None] | None = None,
    ):
        self.predict = predict
        self.detokenizer = detokenizer
        self.capacity = capacity
        self.on_text = on_text

        self._state = DecodeState.IDLE
        self._sequence: TokenSequence | None = None
        self._encoded_audio: Any = None
        self._transcript = ""
        self._last_tokens: list[int] = []

    @property
    def state(self) -> DecodeState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def tokens(self) -> list[int]:
        """Tokens of the current request, or of the last one that ended."""
        if self._sequence is not None:
            return self._sequence.tokens()
        return list(self._last_tokens)

    def start(self, encoded_audio: Any, prompt: list[int]) -> None:
        """
        Begin decoding a new request.

        Args:
            encoded_audio: Encoder output for the request
            prompt: Control-token prefix, see build_prompt()
        """
        if self._state is DecodeState.DECODING:
            raise RuntimeError("A decode is already in progress; call reset() first")
        if encoded_audio is None:
            raise ValueError("Encoded audio is required to start decoding")

        self._sequence = TokenSequence(prompt, self.capacity)
        self._encoded_audio = encoded_audio
        self._transcript = ""
        self._last_tokens = []
        self.detokenizer.reset()
        self._state = DecodeState.DECODING
        logger.info("Decoding started with prompt %s", prompt)

    def step(self) -> str:
        """
        Run one greedy decode step.

        Returns:
            Text that became displayable in this step (may be empty)

        Raises:
            ModelInferenceFailure: the decoder call failed or returned a
                malformed prediction; the loop is back in IDLE
        """
        if self._state is not DecodeState.DECODING:
            return ""

        sequence = self._sequence
        position = sequence.last_index
        try:
            predictions = np.asarray(
                self.predict(sequence.as_model_input(), self._encoded_audio)
            )
        except Exception as e:
            self._abort(f"Decoder call failed: {e}", e)

        if predictions.ndim != 1 or predictions.shape[0] <= position:
            self._abort(
                f"Decoder returned predictions of shape {predictions.shape}, "
                f"expected ({sequence.capacity},)"
            )

        token_id = int(predictions[position])
        sequence.append(token_id)

        if token_id == config.END_OF_TEXT:
            text = self.detokenizer.flush()
            self._finish(DecodeState.FINISHED)
        else:
            text = self.detokenizer.feed(token_id)
            if sequence.full:
                text += self.detokenizer.flush()
                self._finish(DecodeState.TRUNCATED)

        if text:
            self._transcript += text
            if self.on_text:
                self.on_text(text)
        logger.debug("Transcript: %s", self._transcript)
        return text

    def run(self) -> str:
        """Step until a terminal state and return the transcript."""
        while self._state is DecodeState.DECODING:
            self.step()
        return self._transcript

    def reset(self) -> None:
        """Cancel any in-flight request and return to IDLE."""
        if self._state is DecodeState.DECODING:
            logger.info("Decoding cancelled after %d tokens", len(self._sequence))
        self._release()
        self.detokenizer.reset()
        self._state = DecodeState.IDLE

    def _finish(self, state: DecodeState) -> None:
        self._state = state
        logger.info(
            "Decoding %s after %d tokens", state.value, len(self._sequence.generated())
        )
        self._release()

    def _release(self) -> None:
        if self._sequence is not None:
            self._last_tokens = self._sequence.tokens()
        self._sequence = None
        self._encoded_audio = None

    def _abort(self, message: str, cause: Exception | None = None) -> None:
        logger.error(message)
        self.reset()
        raise ModelInferenceFailure(message) from cause
