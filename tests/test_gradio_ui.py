"""
Tests for the UI controller (no browser, no audio devices).
"""

import numpy as np
import pytest

pytest.importorskip("gradio")
pytest.importorskip("pyaudio")
sf = pytest.importorskip("soundfile")

from rtwhisper.app.gradio_ui import WhisperApp, create_ui  # noqa: E402
from rtwhisper.core import config  # noqa: E402
from rtwhisper.core.runtime_config import ConfigStore  # noqa: E402

from conftest import HELLO, WORLD  # noqa: E402

EOT = config.END_OF_TEXT


@pytest.fixture
def clip_path(tmp_path, short_clip):
    path = tmp_path / "sample.wav"
    sf.write(str(path), short_clip, config.SAMPLE_RATE)
    return path


def test_transcribe_then_tick(fake_bundle, clip_path):
    app = WhisperApp(fake_bundle([HELLO, WORLD, EOT]), store=ConfigStore(), clip_path=clip_path)

    assert "sample.wav" in app.get_status()
    assert app.transcribe() == "📝 Transcribing..."

    assert app.tick()[0] == "Hello"
    assert app.tick()[0] == "Hello world"
    text, status = app.tick()
    assert text == "Hello world"
    assert status == "✅ Finished"


def test_transcribe_without_clip(fake_bundle):
    app = WhisperApp(fake_bundle([]), store=ConfigStore())

    assert app.transcribe() == "No clip loaded."


def test_wrong_sample_rate_reported(fake_bundle, tmp_path):
    path = tmp_path / "cd.wav"
    sf.write(str(path), np.zeros(4410, dtype=np.float32), 44100)
    bundle = fake_bundle([EOT])
    app = WhisperApp(bundle, store=ConfigStore(), clip_path=path)

    status = app.transcribe()

    assert status.startswith("❌")
    assert "16kHz" in status
    assert bundle.spectrogram.inputs == []


def test_settings_apply_to_next_request(fake_bundle, clip_path):
    bundle = fake_bundle([EOT])
    app = WhisperApp(bundle, store=ConfigStore(), clip_path=clip_path)

    app.update_language("de")
    app.update_task("translate")
    app.update_max_tokens(20)
    app.transcribe()
    app.tick()

    tokens = bundle.predictor.calls[0][0]
    assert tokens.shape == (1, 20)
    assert tokens[0, 1] == config.GERMAN
    assert tokens[0, 2] == config.TRANSLATE


def test_decoder_failure_shown_in_status(fake_bundle, clip_path):
    app = WhisperApp(fake_bundle([HELLO]), store=ConfigStore(), clip_path=clip_path)
    app.transcribe()
    app.tick()

    text, status = app.tick()

    assert text == "Hello"
    assert status.startswith("❌")


def test_create_ui_builds_blocks(fake_bundle):
    import gradio as gr

    app = WhisperApp(fake_bundle([]), store=ConfigStore())

    assert isinstance(create_ui(app), gr.Blocks)
