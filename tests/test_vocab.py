"""
Tests for the vocabulary and byte-level detokenization.
"""

import json

import pytest

from rtwhisper.core import config
from rtwhisper.core.errors import MalformedByteSequence, ModelLoadFailure
from rtwhisper.core.vocab import (
    BYTE_DECODER,
    BYTE_ENCODER,
    Detokenizer,
    Vocabulary,
    decode_tokens,
    fragment_to_bytes,
    token_to_text,
)

from conftest import (
    BANG,
    CAF,
    E_ACUTE_1,
    E_ACUTE_2,
    HELLO,
    NEWLINE,
    SPACE,
    VOCAB,
    WORLD,
)


class TestByteRemapTable:
    def test_covers_every_byte_once(self):
        assert sorted(BYTE_ENCODER) == list(range(256))
        assert len(set(BYTE_ENCODER.values())) == 256
        assert sorted(BYTE_DECODER.values()) == list(range(256))

    def test_printable_bytes_map_to_themselves(self):
        for b in range(ord("!"), ord("~") + 1):
            assert BYTE_ENCODER[b] == chr(b)

    def test_whitespace_is_shifted(self):
        assert BYTE_ENCODER[ord(" ")] == "Ġ"
        assert BYTE_ENCODER[ord("\n")] == "Ċ"
        assert BYTE_ENCODER[0] == chr(256)


class TestFragmentToBytes:
    def test_printable_ascii_round_trip(self):
        text = "Hello, world! 123 ~"
        fragment = "".join(BYTE_ENCODER[b] for b in text.encode("ascii"))

        assert fragment_to_bytes(fragment).decode("utf-8") == text

    def test_printable_ascii_fragment_unchanged(self):
        assert fragment_to_bytes("Hello!") == b"Hello!"

    def test_unknown_character_is_replaced(self):
        assert fragment_to_bytes("a中b") == b"a\xef\xbf\xbdb"

    def test_unknown_character_strict_raises(self):
        with pytest.raises(MalformedByteSequence):
            fragment_to_bytes("a中b", strict=True)


class TestVocabulary:
    def test_inverts_mapping(self, vocab):
        assert len(vocab) == len(VOCAB)
        assert vocab.fragment(HELLO) == "Hello"
        assert vocab.fragment(WORLD) == "Ġworld"
        assert WORLD in vocab
        assert len(VOCAB) not in vocab
        assert config.START_TIME not in vocab

    def test_missing_id_raises_key_error(self, vocab):
        with pytest.raises(KeyError):
            vocab.fragment(len(VOCAB))

    def test_gap_in_ids_is_rejected(self):
        with pytest.raises(ModelLoadFailure, match="outside"):
            Vocabulary({"a": 0, "b": 2})

    def test_duplicate_id_is_rejected(self):
        with pytest.raises(ModelLoadFailure, match="assigned to both"):
            Vocabulary({"a": 0, "b": 0, "c": 1})

    @pytest.mark.parametrize("bad_id", [True, False, 1.0, "1"])
    def test_non_integer_id_is_rejected(self, bad_id):
        with pytest.raises(ModelLoadFailure, match="outside"):
            Vocabulary({"a": 0, "b": bad_id})

    def test_from_json(self, tmp_path):
        path = tmp_path / "vocab.json"
        path.write_text(json.dumps(VOCAB), encoding="utf-8")

        vocab = Vocabulary.from_json(path)

        assert vocab.fragment(E_ACUTE_1) == "Ã"

    def test_from_json_missing_file(self, tmp_path):
        with pytest.raises(ModelLoadFailure):
            Vocabulary.from_json(tmp_path / "nope.json")

    def test_from_json_not_an_object(self, tmp_path):
        path = tmp_path / "vocab.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        with pytest.raises(ModelLoadFailure, match="not a JSON object"):
            Vocabulary.from_json(path)


class TestTokenToText:
    def test_plain_and_space_prefixed(self, vocab):
        assert token_to_text(HELLO, vocab) == "Hello"
        assert token_to_text(WORLD, vocab) == " world"
        assert token_to_text(NEWLINE, vocab) == "\n"

    @pytest.mark.parametrize(
        "offset, expected",
        [
            (0, "(time=0)"),
            (1, "(time=0.02)"),
            (50, "(time=1)"),
            (1500, "(time=30)"),
        ],
    )
    def test_timestamp_tokens(self, vocab, offset, expected):
        assert token_to_text(config.START_TIME + offset, vocab) == expected

    def test_control_tokens_render_empty(self, vocab):
        for token_id in (
            config.END_OF_TEXT,
            config.START_OF_TRANSCRIPT,
            config.ENGLISH,
            config.TRANSCRIBE,
            config.NO_TIME_STAMPS,
        ):
            assert token_to_text(token_id, vocab) == ""

    def test_half_character_renders_replacement(self, vocab):
        assert token_to_text(E_ACUTE_1, vocab) == "\ufffd"

    def test_decode_tokens_joins_bytes(self, vocab):
        tokens = [CAF, E_ACUTE_1, E_ACUTE_2, BANG]

        assert decode_tokens(tokens, vocab) == "café!"


class TestDetokenizer:
    def test_multibyte_character_split_across_tokens(self, vocab):
        detok = Detokenizer(vocab)

        assert detok.feed(CAF) == "caf"
        assert detok.feed(E_ACUTE_1) == ""
        assert detok.feed(E_ACUTE_2) == "é"
        assert detok.flush() == ""

    def test_dangling_byte_flushes_as_replacement(self, vocab):
        detok = Detokenizer(vocab)

        assert detok.feed(E_ACUTE_1) == ""
        assert detok.flush() == "\ufffd"

    def test_invalid_continuation_does_not_raise(self, vocab):
        detok = Detokenizer(vocab)

        # 0xA9 without a lead byte
        assert detok.feed(E_ACUTE_2) == "\ufffd"
        assert detok.feed(HELLO) == "Hello"

    def test_timestamp_flushes_pending_bytes_first(self, vocab):
        detok = Detokenizer(vocab)

        detok.feed(E_ACUTE_1)

        assert detok.feed(config.START_TIME + 5) == "\ufffd(time=0.1)"

    def test_reset_drops_pending_bytes(self, vocab):
        detok = Detokenizer(vocab)
        detok.feed(E_ACUTE_1)

        detok.reset()

        assert detok.feed(SPACE) == " "
        assert detok.flush() == ""
