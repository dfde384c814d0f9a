"""
zkvoid Note Codec

Token format:

    zkvoid-note-v1-eth-0.1-<chainId>-<base64(nullifierHex:secretHex)>

nullifier and secret are 31 random bytes each, written as exactly 62
lowercase hex characters. 31 bytes is below 2^248, which is below the
field modulus, so both values are canonical field elements without any
reduction.
"""

from __future__ import annotations
import base64
import binascii
import logging
import secrets
from typing import Callable, Tuple

from zkvoid.constants import (
    NOTE_PREFIX,
    NOTE_KIND,
    NOTE_VERSION,
    NOTE_ASSET,
    NOTE_DENOMINATION,
    NOTE_DELIMITER,
    NOTE_PAYLOAD_DELIMITER,
    NOTE_SEGMENT_COUNT,
    NOTE_FIELD_BYTES,
    NOTE_FIELD_HEX_CHARS,
)
from zkvoid.core.types import Note
from zkvoid.errors import NoteDecodeError, NoteDecodeReason

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

# Literal leading segments, in order
_LITERAL_SEGMENTS = (NOTE_PREFIX, NOTE_KIND, NOTE_VERSION, NOTE_ASSET, NOTE_DENOMINATION)


def generate_note(
    chain_id: int,
    token_bytes: Callable[[int], bytes] = secrets.token_bytes,
) -> Tuple[Note, str]:
    """
    Create a fresh note.

    Args:
        chain_id: Chain identifier bound into the nullifier hash
        token_bytes: Randomness source (CSPRNG by default)

    Returns:
        (note, encoded token)
    """
    if chain_id < 0:
        raise ValueError(f"chain_id must be non-negative, got {chain_id}")

    nullifier = int.from_bytes(token_bytes(NOTE_FIELD_BYTES), "big")
    secret = int.from_bytes(token_bytes(NOTE_FIELD_BYTES), "big")
    note = Note(nullifier=nullifier, secret=secret, chain_id=chain_id)
    logger.debug(f"Generated note for chain {chain_id}")
    return note, encode_note(note)


def encode_note(note: Note) -> str:
    """Encode a note as a token string."""
    payload = (
        f"{note.nullifier:0{NOTE_FIELD_HEX_CHARS}x}"
        f"{NOTE_PAYLOAD_DELIMITER}"
        f"{note.secret:0{NOTE_FIELD_HEX_CHARS}x}"
    )
    if len(payload) != 2 * NOTE_FIELD_HEX_CHARS + 1:
        raise ValueError("Note field wider than the token format allows")

    encoded = base64.b64encode(payload.encode("ascii")).decode("ascii")
    return NOTE_DELIMITER.join((
        NOTE_PREFIX,
        NOTE_KIND,
        NOTE_VERSION,
        NOTE_ASSET,
        note.denomination,
        str(note.chain_id),
        encoded,
    ))


def parse_note(token: str) -> Note:
    """
    Decode a token string.

    Either both fields parse or NoteDecodeError is raised.

    Raises:
        NoteDecodeError: With the specific NoteDecodeReason
    """
    segments = token.strip().split(NOTE_DELIMITER)
    if len(segments) != NOTE_SEGMENT_COUNT:
        raise NoteDecodeError(
            NoteDecodeReason.WRONG_SEGMENT_COUNT,
            f"expected {NOTE_SEGMENT_COUNT} segments, got {len(segments)}",
        )

    for position, (actual, expected) in enumerate(zip(segments, _LITERAL_SEGMENTS)):
        if actual != expected:
            raise NoteDecodeError(
                NoteDecodeReason.MALFORMED_PREFIX,
                f"segment {position} is {actual!r}, expected {expected!r}",
            )

    chain_segment = segments[5]
    if not chain_segment.isascii() or not chain_segment.isdigit():
        raise NoteDecodeError(NoteDecodeReason.MALFORMED_PREFIX, f"bad chain id {chain_segment!r}")
    chain_id = int(chain_segment)

    try:
        raw = base64.b64decode(segments[6], validate=True)
    except (binascii.Error, ValueError) as e:
        raise NoteDecodeError(NoteDecodeReason.BASE64_ERROR, str(e)) from e

    try:
        payload = raw.decode("ascii")
    except UnicodeDecodeError as e:
        raise NoteDecodeError(NoteDecodeReason.MALFORMED_PAYLOAD, "payload is not ASCII") from e

    halves = payload.split(NOTE_PAYLOAD_DELIMITER)
    if len(halves) != 2:
        raise NoteDecodeError(
            NoteDecodeReason.MALFORMED_PAYLOAD,
            f"expected 2 payload fields, got {len(halves)}",
        )

    values = []
    for name, half in zip(("nullifier", "secret"), halves):
        if len(half) != NOTE_FIELD_HEX_CHARS:
            raise NoteDecodeError(
                NoteDecodeReason.WRONG_FIELD_WIDTH,
                f"{name} has {len(half)} hex chars, expected {NOTE_FIELD_HEX_CHARS}",
            )
        if not set(half) <= _HEX_DIGITS:
            raise NoteDecodeError(NoteDecodeReason.MALFORMED_PAYLOAD, f"{name} is not hex")
        values.append(int(half, 16))

    return Note(
        nullifier=values[0],
        secret=values[1],
        chain_id=chain_id,
        denomination=NOTE_DENOMINATION,
    )
