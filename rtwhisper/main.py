#!/usr/bin/env python3
"""
Whisper speech-to-text with tick-driven greedy decoding.

- spectrogram + encoder -> encoded audio, once per clip
- decoder loop -> one token per tick, transcript grows live
- Gradio UI -> load/record/play a clip and watch it transcribe
- --batch -> transcribe a clip from the command line
"""

import argparse
import logging
import sys

from .core import config
from .core.errors import TranscriptionError
from .core.models import ModelBundle, get_model_bundle, release_model_bundle
from .core.runtime_config import ConfigStore, RuntimeConfig
from .app.gradio_ui import launch
from .app.pipeline import TranscriptionRequest, TranscriptionSession
from .interfaces.clip import load_clip

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    p.add_argument(
        "--models-dir",
        default=config.DEFAULT_MODELS_DIR,
        help="Directory with the exported models and vocab.json",
    )
    p.add_argument("--clip", help="Audio clip to load (16kHz mono, <=30s)")
    p.add_argument(
        "--language", default=config.DEFAULT_LANGUAGE, choices=config.LANGUAGE_TOKENS
    )
    p.add_argument("--task", default=config.DEFAULT_TASK, choices=config.TASK_TOKENS)
    p.add_argument(
        "--timestamps", action="store_true", help="Ask the model for timestamps"
    )
    p.add_argument("--max-tokens", type=int, default=config.MAX_TOKENS)
    p.add_argument(
        "--batch", action="store_true", help="Transcribe --clip and print the text"
    )
    p.add_argument("--port", type=int, default=7860)
    p.add_argument("--log-level", default="INFO")
    return p


def run_batch(bundle: ModelBundle, clip_path: str, cfg: RuntimeConfig) -> int:
    """Transcribe one clip and print the transcript."""
    samples, sample_rate = load_clip(clip_path)
    session = TranscriptionSession(bundle, capacity=cfg.max_tokens)
    request = TranscriptionRequest(
        samples=samples,
        sample_rate=sample_rate,
        language=cfg.language,
        task=cfg.task,
        timestamps=cfg.timestamps,
    )
    try:
        result = session.run(request)
    except TranscriptionError as e:
        logger.error("%s", e)
        return 1
    print(result.text)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the Whisper demo."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = RuntimeConfig(
            language=args.language,
            task=args.task,
            timestamps=args.timestamps,
            max_tokens=args.max_tokens,
        )
        store = ConfigStore(cfg)
    except ValueError as e:
        logger.error("%s", e)
        return 2

    if args.batch and not args.clip:
        logger.error("--batch needs --clip")
        return 2

    try:
        bundle = get_model_bundle(args.models_dir)
    except TranscriptionError as e:
        logger.error("%s", e)
        return 1

    try:
        if args.batch:
            return run_batch(bundle, args.clip, store.get())

        launch(bundle, clip_path=args.clip, store=store, port=args.port)
    finally:
        release_model_bundle()
    return 0


if __name__ == "__main__":
    sys.exit(main())
