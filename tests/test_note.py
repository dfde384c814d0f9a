"""
zkvoid Note Codec Tests
"""

import base64

import pytest

from zkvoid.constants import FIELD_MODULUS, NOTE_FIELD_HEX_CHARS
from zkvoid.core.types import Note
from zkvoid.errors import NoteDecodeError, NoteDecodeReason
from zkvoid.protocol.note import encode_note, generate_note, parse_note


def _token(payload: bytes, chain: str = "1") -> str:
    return "zkvoid-note-v1-eth-0.1-" + chain + "-" + base64.b64encode(payload).decode()


def _reason(token: str) -> NoteDecodeReason:
    with pytest.raises(NoteDecodeError) as exc_info:
        parse_note(token)
    return exc_info.value.reason


class TestEncode:
    """Tests for encoding."""

    def test_format(self):
        """Test the exact token layout."""
        note = Note(nullifier=1, secret=2, chain_id=11155111)
        token = encode_note(note)
        segments = token.split("-")

        assert segments[:6] == ["zkvoid", "note", "v1", "eth", "0.1", "11155111"]
        payload = base64.b64decode(segments[6]).decode()
        assert payload == "0" * 61 + "1" + ":" + "0" * 61 + "2"

    def test_lowercase_fixed_width(self, sample_note):
        """Test both halves are 62 lowercase hex characters."""
        payload = base64.b64decode(encode_note(sample_note).split("-")[6]).decode()
        nullifier_hex, secret_hex = payload.split(":")
        assert len(nullifier_hex) == NOTE_FIELD_HEX_CHARS
        assert len(secret_hex) == NOTE_FIELD_HEX_CHARS
        assert payload == payload.lower()


class TestGenerate:
    """Tests for note generation."""

    def test_round_trip(self):
        """Test parse(encode(note)) == note for fresh notes."""
        for _ in range(20):
            note, token = generate_note(1)
            assert parse_note(token) == note

    def test_values_are_canonical(self):
        """Test 31-byte values stay below the field modulus."""
        note, _ = generate_note(1, token_bytes=lambda n: b"\xff" * n)
        assert note.nullifier == 2 ** 248 - 1
        assert note.nullifier < FIELD_MODULUS
        assert note.secret < FIELD_MODULUS

    def test_independent_draws(self):
        """Test nullifier and secret come from separate draws."""
        draws = iter([b"\x01" * 31, b"\x02" * 31])
        note, _ = generate_note(5, token_bytes=lambda n: next(draws))
        assert note.nullifier == int.from_bytes(b"\x01" * 31, "big")
        assert note.secret == int.from_bytes(b"\x02" * 31, "big")
        assert note.chain_id == 5

    def test_negative_chain_id(self):
        """Test chain ids must be non-negative."""
        with pytest.raises(ValueError):
            generate_note(-1)


class TestParseErrors:
    """Each malformed token fails with its specific reason."""

    def test_wrong_segment_count(self):
        """Test too few and too many segments."""
        assert _reason("zkvoid-note-v1-eth-0.1-1") == NoteDecodeReason.WRONG_SEGMENT_COUNT
        note, token = generate_note(1)
        assert _reason(token + "-extra") == NoteDecodeReason.WRONG_SEGMENT_COUNT

    def test_malformed_prefix(self):
        """Test literal segment mismatches."""
        _, token = generate_note(1)
        assert _reason(token.replace("zkvoid", "tornado", 1)) == NoteDecodeReason.MALFORMED_PREFIX
        assert _reason(token.replace("-v1-", "-v2-", 1)) == NoteDecodeReason.MALFORMED_PREFIX
        assert _reason(token.replace("-eth-", "-btc-", 1)) == NoteDecodeReason.MALFORMED_PREFIX
        assert _reason(token.replace("-0.1-", "-1.0-", 1)) == NoteDecodeReason.MALFORMED_PREFIX

    def test_non_numeric_chain_id(self):
        """Test chain id must be decimal."""
        payload = ("0" * 62 + ":" + "0" * 62).encode()
        assert _reason(_token(payload, chain="abc")) == NoteDecodeReason.MALFORMED_PREFIX

    def test_truncated_base64(self):
        """Test a 3-character payload never yields a note."""
        token = "zkvoid-note-v1-eth-0.1-1-abc"
        assert _reason(token) in (NoteDecodeReason.BASE64_ERROR, NoteDecodeReason.MALFORMED_PAYLOAD)

    def test_invalid_base64_characters(self):
        """Test strict base64."""
        assert _reason("zkvoid-note-v1-eth-0.1-1-!!!!") == NoteDecodeReason.BASE64_ERROR

    def test_missing_delimiter(self):
        """Test payload without ':'."""
        assert _reason(_token(b"deadbeef")) == NoteDecodeReason.MALFORMED_PAYLOAD

    def test_extra_delimiter(self):
        """Test payload with three fields."""
        assert _reason(_token(b"aa:bb:cc")) == NoteDecodeReason.MALFORMED_PAYLOAD

    def test_non_ascii_payload(self):
        """Test binary payload."""
        assert _reason(_token(b"\xff\xfe\xfd")) == NoteDecodeReason.MALFORMED_PAYLOAD

    def test_non_hex_payload(self):
        """Test correct width but non-hex characters."""
        payload = ("g" * 62 + ":" + "0" * 62).encode()
        assert _reason(_token(payload)) == NoteDecodeReason.MALFORMED_PAYLOAD

    def test_wrong_field_width(self):
        """Test halves must be exactly 62 characters."""
        assert _reason(_token(b"ab:cd")) == NoteDecodeReason.WRONG_FIELD_WIDTH
        payload = ("0" * 64 + ":" + "0" * 62).encode()
        assert _reason(_token(payload)) == NoteDecodeReason.WRONG_FIELD_WIDTH

    def test_error_message_names_reason(self):
        """Test the message is user-surfaceable."""
        with pytest.raises(NoteDecodeError) as exc_info:
            parse_note("garbage")
        assert "wrong_segment_count" in str(exc_info.value)
