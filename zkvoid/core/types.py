"""
zkvoid Core Types

Field elements are plain Python ints in [0, FIELD_MODULUS).
All fixed-width encodings are BIG-ENDIAN.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Tuple

from zkvoid.constants import (
    FIELD_MODULUS,
    FIELD_BYTES,
    NOTE_DENOMINATION,
    PUBLIC_SIGNALS,
)


def is_field_element(value: int) -> bool:
    """Check that value is a canonical field element."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < FIELD_MODULUS


def to_field(value: int) -> int:
    """Reduce an integer into the field."""
    return value % FIELD_MODULUS


def field_to_hex(value: int) -> str:
    """Encode a field element as 0x-prefixed 32-byte hex."""
    return "0x" + value.to_bytes(FIELD_BYTES, "big").hex()


def field_from_hex(hex_string: str) -> int:
    """
    Decode a 0x-prefixed (or bare) hex string into a field element.

    Raises:
        ValueError: If the value is not a canonical field element
    """
    if hex_string.startswith(("0x", "0X")):
        hex_string = hex_string[2:]
    value = int(hex_string, 16)
    if value >= FIELD_MODULUS:
        raise ValueError(f"Non-canonical field element: {hex_string}")
    return value


def address_to_field(address: str) -> int:
    """Map a 20-byte hex account address to a field element."""
    return field_from_hex(address)


@dataclass(frozen=True, slots=True)
class Note:
    """
    Secret deposit note.

    nullifier and secret are 31-byte values, so they are always canonical
    field elements. Never transmitted except inside an encoded token.
    """
    nullifier: int
    secret: int
    chain_id: int
    denomination: str = NOTE_DENOMINATION

    def __repr__(self) -> str:
        # Never expose note secrets
        return (
            f"Note(chain_id={self.chain_id}, denomination={self.denomination}, "
            f"nullifier=<redacted>, secret=<redacted>)"
        )

    def commitment(self, hasher) -> int:
        """Leaf commitment H(nullifier, secret)."""
        return hasher.hash([self.nullifier, self.secret])

    def nullifier_hash(self, hasher) -> int:
        """Published nullifier hash H(nullifier, chain_id)."""
        return hasher.hash([self.nullifier, self.chain_id])


@dataclass(frozen=True, slots=True)
class WithdrawalRequest:
    """
    Withdrawal request, consumed atomically by the proof gate.

    recipient and relayer are field-encoded addresses.
    """
    proof: Any
    root: int
    nullifier_hash: int
    recipient: int
    relayer: int = 0
    fee: int = 0
    refund: int = 0

    def public_signals(self) -> Tuple[int, ...]:
        """Public signals in circuit order."""
        values = {
            "root": self.root,
            "nullifierHash": self.nullifier_hash,
            "recipient": self.recipient,
            "relayer": self.relayer,
            "fee": self.fee,
            "refund": self.refund,
        }
        return tuple(values[name] for name in PUBLIC_SIGNALS)


# ==============================================================================
# EVENTS
# ==============================================================================

@dataclass(frozen=True, slots=True)
class Inserted:
    """A commitment was appended to the accumulator."""
    index: int
    leaf: int
    root: int


@dataclass(frozen=True, slots=True)
class Spent:
    """A nullifier hash was recorded as spent."""
    nullifier_hash: int
    recipient: int = 0
    relayer: int = 0
    fee: int = 0


@dataclass(frozen=True)
class MembershipPath:
    """
    Merkle witness for one leaf.

    path_bits[level] is 0 when the node is the left child at that level,
    1 when it is the right child.
    """
    leaf: int
    index: int
    siblings: Tuple[int, ...] = field(default_factory=tuple)
    path_bits: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def height(self) -> int:
        return len(self.siblings)
