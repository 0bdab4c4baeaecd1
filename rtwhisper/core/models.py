"""
Model engines for the exported Whisper networks (TorchScript).
This module is independent of any transport or UI.
"""

import logging
from pathlib import Path
from typing import Any

import numpy as np
import torch

from . import config
from .errors import ModelInferenceFailure, ModelLoadFailure
from .vocab import Vocabulary

logger = logging.getLogger(__name__)


def default_device() -> torch.device:
    """Use the GPU if available."""
    if torch.cuda.is_available():
        return torch.device("cuda")
    return torch.device("cpu")


def greedy_predict(scores: Any) -> np.ndarray:
    """
    Reduce decoder output to one token ID per position.

    Args:
        scores: Logits of shape (1, n, vocab), or IDs of shape (1, n) when
            the model already applies argmax

    Returns:
        1-D int64 array of length n. Ties go to the lowest token ID.
    """
    if isinstance(scores, torch.Tensor):
        if scores.dim() == 3 and scores.shape[0] == 1:
            scores = torch.argmax(scores[0], dim=-1)
        elif scores.dim() == 2 and scores.shape[0] == 1:
            scores = scores[0]
        else:
            raise ModelInferenceFailure(
                f"Unexpected decoder output shape {tuple(scores.shape)}"
            )
        return scores.detach().to("cpu", torch.int64).numpy()

    scores = np.asarray(scores)
    if scores.ndim == 3 and scores.shape[0] == 1:
        return np.argmax(scores[0], axis=-1).astype(np.int64)
    if scores.ndim == 2 and scores.shape[0] == 1:
        return scores[0].astype(np.int64)
    raise ModelInferenceFailure(f"Unexpected decoder output shape {scores.shape}")


class TorchModel:
    """A TorchScript module called with numpy arrays or tensors."""

    def __init__(self, module: torch.nn.Module, device: torch.device | None = None):
        self.device = device or default_device()
        self.module = module.to(self.device)
        self.module.eval()

    def _to_tensor(self, value: Any) -> torch.Tensor:
        if isinstance(value, torch.Tensor):
            return value.to(self.device)
        return torch.from_numpy(np.ascontiguousarray(value)).to(self.device)

    def __call__(self, *inputs: Any) -> torch.Tensor:
        tensors = [self._to_tensor(x) for x in inputs]
        with torch.inference_mode():
            output = self.module(*tensors)
        # some exports return a tuple; the first output is the prediction
        if isinstance(output, (tuple, list)):
            output = output[0]
        return output

    def close(self) -> None:
        self.module = None


def load_model(path: str | Path, device: torch.device | None = None) -> TorchModel:
    """Load a TorchScript model file."""
    path = Path(path)
    if not path.is_file():
        raise ModelLoadFailure(f"Model file not found: {path}")

    device = device or default_device()
    logger.info("Loading model %s on %s...", path.name, device)
    try:
        module = torch.jit.load(str(path), map_location=device)
    except Exception as e:
        raise ModelLoadFailure(f"Could not load model {path}: {e}") from e
    return TorchModel(module, device)


class DecoderPredictor:
    """Decoder model followed by argmax: (tokens, audio) -> IDs per position."""

    def __init__(self, model: TorchModel):
        self.model = model

    def __call__(self, tokens: np.ndarray, encoded_audio: Any) -> np.ndarray:
        return greedy_predict(self.model(tokens, encoded_audio))


class ModelBundle:
    """Spectrogram, encoder and decoder engines plus the vocabulary."""

    def __init__(
        self,
        spectrogram: TorchModel,
        encoder: TorchModel,
        decoder: TorchModel,
        vocab: Vocabulary,
    ):
        self.spectrogram = spectrogram
        self.encoder = encoder
        self.decoder = decoder
        self.vocab = vocab
        self.predictor = DecoderPredictor(decoder)

    @classmethod
    def load(
        cls,
        models_dir: str | Path = config.DEFAULT_MODELS_DIR,
        device: torch.device | None = None,
    ) -> "ModelBundle":
        """Load all engines from a directory holding the exported files."""
        models_dir = Path(models_dir)
        device = device or default_device()

        vocab = Vocabulary.from_json(models_dir / config.VOCAB_FILE)
        loaded: list[TorchModel] = []
        try:
            for name in (
                config.SPECTROGRAM_FILE,
                config.ENCODER_FILE,
                config.DECODER_FILE,
            ):
                loaded.append(load_model(models_dir / name, device))
        except Exception:
            for model in loaded:
                model.close()
            raise
        spectrogram, encoder, decoder = loaded

        logger.info("Whisper models loaded from %s on %s", models_dir, device)
        return cls(spectrogram, encoder, decoder, vocab)

    def close(self) -> None:
        """Release the engines."""
        for model in (self.spectrogram, self.encoder, self.decoder):
            model.close()
        logger.info("Whisper models released")

    def __enter__(self) -> "ModelBundle":
        return self

    def __exit__(self, *args) -> None:
        self.close()


# Global model bundle (lazy loaded)
_model_bundle: ModelBundle | None = None


def get_model_bundle(
    models_dir: str | Path = config.DEFAULT_MODELS_DIR,
    device: torch.device | None = None,
) -> ModelBundle:
    """Get or create the global model bundle."""
    global _model_bundle
    if _model_bundle is None:
        _model_bundle = ModelBundle.load(models_dir, device)
    return _model_bundle


def release_model_bundle() -> None:
    """Close and forget the global model bundle."""
    global _model_bundle
    if _model_bundle is not None:
        _model_bundle.close()
        _model_bundle = None
