"""
Vocabulary and byte-level detokenization.

Fragments in vocab.json use the byte-level BPE trick: every byte 0-255 is
shown as a printable character. Printable bytes stand for themselves; the
rest are shifted to code points 256 and up. Decoding maps each character
back to its byte and then reads the bytes as UTF-8.
"""

import codecs
import json
import logging
from pathlib import Path
from typing import Iterable

from . import config
from .errors import MalformedByteSequence, ModelLoadFailure

logger = logging.getLogger(__name__)


def bytes_to_unicode() -> dict[int, str]:
    """GPT-2 style byte-to-unicode mapping used by the Whisper tokenizer."""
    bs = (
        list(range(ord("!"), ord("~") + 1))
        + list(range(ord("\xa1"), ord("\xac") + 1))
        + list(range(ord("\xae"), ord("\xff") + 1))
    )
    cs = bs[:]
    n = 0
    for b in range(256):
        if b not in bs:
            bs.append(b)
            cs.append(256 + n)
            n += 1
    return dict(zip(bs, [chr(c) for c in cs]))


BYTE_ENCODER = bytes_to_unicode()
BYTE_DECODER = {v: k for k, v in BYTE_ENCODER.items()}

REPLACEMENT = "\ufffd".encode("utf-8")


def fragment_to_bytes(fragment: str, strict: bool = False) -> bytes:
    """
    Map a byte-shifted fragment back to raw bytes.

    Args:
        fragment: Vocabulary fragment
        strict: Raise on characters outside the remap table instead of
            substituting U+FFFD

    Raises:
        MalformedByteSequence: strict is set and the fragment is malformed
    """
    out = bytearray()
    for ch in fragment:
        b = BYTE_DECODER.get(ch)
        if b is None:
            if strict:
                raise MalformedByteSequence(
                    f"Character U+{ord(ch):04X} is not a byte-level BPE symbol"
                )
            out.extend(REPLACEMENT)
        else:
            out.append(b)
    return bytes(out)


def format_timestamp(token_id: int) -> str:
    """Render a timestamp token as a time annotation."""
    seconds = (token_id - config.START_TIME) * config.TIME_STEP_S
    return f"(time={round(seconds, 2):g})"


class Vocabulary:
    """Token ID -> raw fragment lookup, inverted from vocab.json."""

    def __init__(self, mapping: dict[str, int]):
        tokens: list[str | None] = [None] * len(mapping)
        for fragment, token_id in mapping.items():
            if (
                not isinstance(token_id, int)
                or isinstance(token_id, bool)
                or not 0 <= token_id < len(tokens)
            ):
                raise ModelLoadFailure(
                    f"Token ID {token_id} for {fragment!r} is outside "
                    f"[0, {len(tokens)})"
                )
            if tokens[token_id] is not None:
                raise ModelLoadFailure(
                    f"Token ID {token_id} is assigned to both "
                    f"{tokens[token_id]!r} and {fragment!r}"
                )
            tokens[token_id] = fragment
        self._tokens: list[str] = tokens  # type: ignore[assignment]

    @classmethod
    def from_json(cls, path: str | Path) -> "Vocabulary":
        """Load a vocabulary from a JSON file mapping fragment -> ID."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                mapping = json.load(f)
        except (OSError, ValueError) as e:
            raise ModelLoadFailure(f"Could not read vocabulary {path}: {e}") from e
        if not isinstance(mapping, dict):
            raise ModelLoadFailure(f"Vocabulary {path} is not a JSON object")
        vocab = cls(mapping)
        logger.info("Loaded vocabulary with %d tokens from %s", len(vocab), path)
        return vocab

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, token_id: object) -> bool:
        return isinstance(token_id, int) and 0 <= token_id < len(self._tokens)

    def fragment(self, token_id: int) -> str:
        """Raw (byte-shifted) fragment for a token ID."""
        if token_id not in self:
            raise KeyError(token_id)
        return self._tokens[token_id]

    def token_bytes(self, token_id: int) -> bytes:
        """
        Bytes a token contributes to the transcript.

        Timestamp tokens yield their annotation, control tokens yield nothing.
        """
        if token_id >= config.START_TIME:
            return format_timestamp(token_id).encode("ascii")
        if token_id not in self:
            return b""
        return fragment_to_bytes(self._tokens[token_id])


def token_to_text(token_id: int, vocab: Vocabulary) -> str:
    """Visible text for a single token."""
    return vocab.token_bytes(token_id).decode("utf-8", errors="replace")


def decode_tokens(token_ids: Iterable[int], vocab: Vocabulary) -> str:
    """Visible text for a whole token sequence."""
    data = b"".join(vocab.token_bytes(t) for t in token_ids)
    return data.decode("utf-8", errors="replace")


class Detokenizer:
    """
    Incremental token -> text conversion.

    A UTF-8 character can be split across two tokens; its bytes are held
    back until the character is complete.
    """

    def __init__(self, vocab: Vocabulary):
        self.vocab = vocab
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, token_id: int) -> str:
        """Return the text that became displayable after this token."""
        if token_id >= config.START_TIME:
            # flush pending bytes so the annotation lands after them
            pending = self._decoder.decode(b"", final=True)
            return pending + format_timestamp(token_id)
        return self._decoder.decode(self.vocab.token_bytes(token_id))

    def flush(self) -> str:
        """Emit any held-back bytes, malformed ones as U+FFFD."""
        return self._decoder.decode(b"", final=True)

    def reset(self) -> None:
        self._decoder.reset()
