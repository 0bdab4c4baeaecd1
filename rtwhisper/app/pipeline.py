"""
Transcription session - orchestrates clip -> encoder -> tick-driven decoding.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from ..core import config
from ..core.audio import AudioPreprocessor
from ..core.decoder import DecodeState, DecoderLoop, build_prompt
from ..core.models import ModelBundle
from ..core.vocab import Detokenizer

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionRequest:
    """One clip to transcribe and the prompt options to use."""

    samples: np.ndarray
    sample_rate: int = config.SAMPLE_RATE
    language: str = config.DEFAULT_LANGUAGE
    task: str = config.DEFAULT_TASK
    timestamps: bool = False

    @property
    def duration_s(self) -> float:
        return len(self.samples) / float(self.sample_rate)


@dataclass
class TranscriptResult:
    """Result of transcription."""

    text: str
    state: DecodeState
    tokens: list[int] = field(default_factory=list)
    duration_s: float = 0.0
    elapsed_s: float = 0.0


class TranscriptionSession:
    """
    Runs transcription requests against a loaded ModelBundle.

    submit() encodes the clip and starts decoding; tick() advances one token.
    This class is independent of any UI - a timer, a task queue or a plain
    loop (run()) can drive it. Model engines are never used concurrently.
    """

    def __init__(
        self,
        bundle: ModelBundle,
        capacity: int = config.MAX_TOKENS,
        on_text: Callable[[str], None] | None = None,
        on_result: Callable[[TranscriptResult], None] | None = None,
    ):
        self.bundle = bundle
        self.on_result = on_result

        self._preprocessor = AudioPreprocessor(bundle.spectrogram, bundle.encoder)
        self._loop = DecoderLoop(
            bundle.predictor,
            Detokenizer(bundle.vocab),
            capacity=capacity,
            on_text=on_text,
        )
        self._lock = threading.Lock()
        self._request: TranscriptionRequest | None = None
        self._started_at = 0.0

    @property
    def state(self) -> DecodeState:
        return self._loop.state

    @property
    def transcript(self) -> str:
        return self._loop.transcript

    @property
    def busy(self) -> bool:
        return self._loop.state is DecodeState.DECODING

    def set_capacity(self, capacity: int) -> None:
        """Change the output sequence capacity for the next request."""
        with self._lock:
            self._loop.capacity = capacity

    def submit(self, request: TranscriptionRequest) -> None:
        """
        Encode a clip and start decoding it.

        A request still in flight is cancelled first. Validation errors
        (InvalidSampleRate, ClipTooLong) are raised before anything changes.
        """
        prompt = build_prompt(request.language, request.task, request.timestamps)

        with self._lock:
            encoded = self._preprocessor.encode(request.samples, request.sample_rate)
            if self._loop.state is DecodeState.DECODING:
                logger.info("Cancelling in-flight transcription")
                self._loop.reset()
            self._loop.start(encoded, prompt)
            self._request = request
            self._started_at = time.time()
            logger.info(
                "Transcribing %.1fs clip (language=%s, task=%s)",
                request.duration_s,
                request.language,
                request.task,
            )

    def tick(self) -> str:
        """Advance decoding by one token; returns the new text."""
        with self._lock:
            if self._loop.state is not DecodeState.DECODING:
                return ""
            text = self._loop.step()
            finished = self._snapshot() if self._loop.done else None
        if finished is not None:
            self._emit_result(finished)
        return text

    def run(self, request: TranscriptionRequest) -> TranscriptResult:
        """Transcribe a clip synchronously (batch setting)."""
        self.submit(request)
        while self.busy:
            self.tick()
        return self.result()

    def cancel(self) -> None:
        """Drop the in-flight request, keeping the transcript shown so far."""
        with self._lock:
            self._loop.reset()
            self._request = None

    def result(self) -> TranscriptResult:
        """Snapshot of the current or last request."""
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> TranscriptResult:
        # caller holds self._lock
        duration = self._request.duration_s if self._request else 0.0
        return TranscriptResult(
            text=self._loop.transcript,
            state=self._loop.state,
            tokens=self._loop.tokens,
            duration_s=duration,
            elapsed_s=time.time() - self._started_at if self._started_at else 0.0,
        )

    def _emit_result(self, result: TranscriptResult) -> None:
        logger.info(
            "Transcription %s in %.2fs: %s",
            result.state.value,
            result.elapsed_s,
            result.text,
        )
        if self.on_result:
            self.on_result(result)
