"""
Gradio UI for tick-driven Whisper transcription.
"""

import logging
import threading
from pathlib import Path

import gradio as gr
import numpy as np

from ..core import config
from ..core.errors import TranscriptionError
from ..core.models import ModelBundle
from ..core.runtime_config import ConfigStore, RuntimeConfig, get_config_store
from ..interfaces.clip import load_clip
from ..interfaces.microphone import MicrophoneInput, play_samples
from .pipeline import TranscriptionRequest, TranscriptionSession

logger = logging.getLogger(__name__)

LANGUAGE_CHOICES = [("English", "en"), ("German", "de"), ("French", "fr")]
TASK_CHOICES = [("Transcribe", "transcribe"), ("Translate to English", "translate")]


class WhisperApp:
    """Button-driven Whisper demo: pick a clip, transcribe, watch it decode."""

    def __init__(
        self,
        bundle: ModelBundle,
        store: ConfigStore | None = None,
        clip_path: str | Path | None = None,
    ):
        self.store = store or get_config_store()
        self.session = TranscriptionSession(
            bundle, capacity=self.store.get().max_tokens
        )
        self.store.add_listener(self._on_config)

        self._mic: MicrophoneInput | None = None
        self._clip: tuple[np.ndarray, int] | None = None
        self._clip_name = ""
        self._status = "⚪ Idle"
        self._lock = threading.Lock()

        if clip_path:
            self.load_clip(clip_path)

    def _on_config(self, cfg: RuntimeConfig) -> None:
        """Apply capacity changes to the next request."""
        self.session.set_capacity(cfg.max_tokens)

    def load_clip(self, path: str | Path | None) -> str:
        """Use an audio file as the current clip."""
        if not path:
            return self.get_status()
        try:
            samples, sample_rate = load_clip(path)
        except Exception as e:
            logger.error("Could not load clip %s: %s", path, e)
            return self._set_status(f"❌ Could not load clip: {e}")
        with self._lock:
            self._clip = (samples, sample_rate)
            self._clip_name = Path(path).name
        return self._set_status(
            f"📂 Loaded {self._clip_name} ({len(samples) / sample_rate:.1f}s)"
        )

    def play_clip(self) -> str:
        """Play the current clip on the default output device."""
        with self._lock:
            clip = self._clip
        if clip is None:
            return self._set_status("No clip loaded.")
        play_samples(*clip)
        return self.get_status()

    def start_recording(self) -> str:
        """Start recording a clip from the microphone."""
        if self._mic is not None:
            return "Already recording..."
        self._mic = MicrophoneInput()
        self._mic.start()
        return self._set_status("🔴 Recording...")

    def stop_recording(self) -> str:
        """Stop recording and keep the recorded clip."""
        if self._mic is None:
            return "Not recording."
        samples = self._mic.stop()
        self._mic = None
        with self._lock:
            self._clip = (samples, config.SAMPLE_RATE)
            self._clip_name = "microphone"
        return self._set_status(f"⏹️ Recorded {len(samples) / config.SAMPLE_RATE:.1f}s")

    def transcribe(self) -> str:
        """Encode the current clip and start decoding it."""
        with self._lock:
            clip = self._clip
        if clip is None:
            return self._set_status("No clip loaded.")

        cfg = self.store.get()
        samples, sample_rate = clip
        request = TranscriptionRequest(
            samples=samples,
            sample_rate=sample_rate,
            language=cfg.language,
            task=cfg.task,
            timestamps=cfg.timestamps,
        )
        try:
            self.session.submit(request)
        except TranscriptionError as e:
            logger.error("Transcription request rejected: %s", e)
            return self._set_status(f"❌ {e}")
        return self._set_status("📝 Transcribing...")

    def tick(self) -> tuple[str, str]:
        """One decode step; returns (transcript, status)."""
        if self.session.busy:
            try:
                self.session.tick()
            except TranscriptionError as e:
                self._set_status(f"❌ {e}")
            else:
                if not self.session.busy:
                    self._set_status(f"✅ {self.session.state.value.capitalize()}")
        return self.session.transcript, self.get_status()

    def update_language(self, value: str) -> None:
        self.store.update(language=value)

    def update_task(self, value: str) -> None:
        self.store.update(task=value)

    def update_timestamps(self, value: bool) -> None:
        self.store.update(timestamps=bool(value))

    def update_max_tokens(self, value: int) -> None:
        self.store.update(max_tokens=int(value))

    def get_status(self) -> str:
        with self._lock:
            return self._status

    def _set_status(self, status: str) -> str:
        with self._lock:
            self._status = status
        return status


def create_ui(app: WhisperApp) -> gr.Blocks:
    """Create the Gradio UI."""
    cfg = app.store.get()

    with gr.Blocks(title="Whisper Speech-to-Text") as demo:
        gr.Markdown("# 🎤 Whisper Speech-to-Text")
        gr.Markdown(
            "Load or record a clip (16kHz mono, up to "
            f"{config.MAX_SECONDS}s) and press Transcribe. "
            "Tokens are decoded one per tick."
        )

        with gr.Row():
            status_text = gr.Textbox(
                label="Status",
                value=app.get_status(),
                interactive=False,
                lines=1,
                scale=1,
            )
            play_btn = gr.Button("▶️ Play Clip", size="lg")
            record_btn = gr.Button("🎙️ Record", size="lg")
            stop_btn = gr.Button("⏹️ Stop", variant="stop", size="lg")
            transcribe_btn = gr.Button("📝 Transcribe", variant="primary", size="lg")

        clip_file = gr.Audio(label="Clip", sources=["upload"], type="filepath")

        transcript_box = gr.Textbox(
            label="Transcript",
            placeholder="Transcript appears here as tokens are decoded...",
            lines=8,
            max_lines=12,
            interactive=False,
            autoscroll=True,
        )

        with gr.Accordion("⚙️ Settings", open=False):
            with gr.Row():
                language_dd = gr.Dropdown(
                    choices=LANGUAGE_CHOICES, value=cfg.language, label="Language"
                )
                task_radio = gr.Radio(choices=TASK_CHOICES, value=cfg.task, label="Task")
                timestamps_cb = gr.Checkbox(value=cfg.timestamps, label="Timestamps")
                max_tokens_slider = gr.Slider(
                    minimum=10,
                    maximum=224,
                    step=1,
                    value=cfg.max_tokens,
                    label="Max Tokens",
                    info="Output sequence capacity, prompt included",
                )

            language_dd.change(fn=app.update_language, inputs=[language_dd])
            task_radio.change(fn=app.update_task, inputs=[task_radio])
            timestamps_cb.change(fn=app.update_timestamps, inputs=[timestamps_cb])
            max_tokens_slider.change(
                fn=app.update_max_tokens, inputs=[max_tokens_slider]
            )

        clip_file.change(fn=app.load_clip, inputs=[clip_file], outputs=[status_text])
        play_btn.click(fn=app.play_clip, outputs=[status_text])
        record_btn.click(fn=app.start_recording, outputs=[status_text])
        stop_btn.click(fn=app.stop_recording, outputs=[status_text])
        transcribe_btn.click(fn=app.transcribe, outputs=[status_text])

        # Decode one token per tick
        timer = gr.Timer(value=config.TICK_SECONDS, active=True)
        timer.tick(fn=app.tick, outputs=[transcript_box, status_text])

    return demo


def launch(
    bundle: ModelBundle,
    clip_path: str | Path | None = None,
    store: ConfigStore | None = None,
    port: int = 7860,
) -> None:
    """Launch the Gradio UI."""
    app = WhisperApp(bundle, store=store, clip_path=clip_path)
    demo = create_ui(app)
    demo.launch(server_name="0.0.0.0", server_port=port, share=False)
