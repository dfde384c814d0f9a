"""
zkvoid Error Types

Every failure surfaced to a caller carries its specific reason.
Withdrawal rejections are recoverable by the note holder and must never be
retried automatically; capacity exhaustion needs an operator.
"""

from __future__ import annotations
from enum import Enum
from typing import Optional


class MixerError(Exception):
    """Base class for all zkvoid errors."""
    pass


# ==============================================================================
# NOTES
# ==============================================================================

class NoteDecodeReason(str, Enum):
    """Why a note token could not be decoded."""
    MALFORMED_PREFIX = "malformed_prefix"
    WRONG_SEGMENT_COUNT = "wrong_segment_count"
    BASE64_ERROR = "base64_error"
    MALFORMED_PAYLOAD = "malformed_payload"
    WRONG_FIELD_WIDTH = "wrong_field_width"


class NoteDecodeError(MixerError):
    """Malformed note token. Always recoverable locally."""

    def __init__(self, reason: NoteDecodeReason, detail: str = ""):
        self.reason = reason
        self.detail = detail
        message = f"Invalid note ({reason.value})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


# ==============================================================================
# ACCUMULATOR
# ==============================================================================

class CapacityExceededError(MixerError):
    """Accumulator is full. Fatal for this pool instance."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        super().__init__(f"Merkle tree is full ({capacity} leaves)")


class InvalidCommitmentError(MixerError):
    """Commitment is zero or not a canonical field element."""

    def __init__(self, commitment: int, detail: str = ""):
        self.commitment = commitment
        super().__init__(f"Invalid commitment {commitment:#x}" + (f": {detail}" if detail else ""))


class DuplicateCommitmentError(MixerError):
    """Commitment has already been deposited."""

    def __init__(self, commitment: int, index: int):
        self.commitment = commitment
        self.index = index
        super().__init__(f"Commitment {commitment:#x} already present at index {index}")


class LeafNotFoundError(MixerError):
    """Commitment is not a leaf of the accumulator."""

    def __init__(self, commitment: int):
        self.commitment = commitment
        super().__init__(f"Commitment {commitment:#x} not found in tree")


# ==============================================================================
# NULLIFIERS
# ==============================================================================

class AlreadySpentError(MixerError):
    """Nullifier hash is already recorded as spent."""

    def __init__(self, nullifier_hash: int):
        self.nullifier_hash = nullifier_hash
        super().__init__(f"Nullifier {nullifier_hash:#x} already spent")


# ==============================================================================
# WITHDRAWAL
# ==============================================================================

class RejectionReason(str, Enum):
    """Reason a withdrawal was rejected by the proof gate."""
    INVALID_FEE = "invalid_fee"
    UNKNOWN_ROOT = "unknown_root"
    ALREADY_SPENT = "already_spent"
    INVALID_PROOF = "invalid_proof"


class WithdrawalRejectedError(MixerError):
    """Withdrawal rejected. State is left as if the request never occurred."""

    def __init__(self, reason: RejectionReason, detail: str = ""):
        self.reason = reason
        self.detail = detail
        message = f"Withdrawal rejected: {reason.value}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class SettlementError(MixerError):
    """Ledger refused to release funds."""
    pass


# ==============================================================================
# HASHER / PROVER
# ==============================================================================

class HasherMismatchError(MixerError):
    """Hasher output differs from a pinned test vector."""

    def __init__(self, name: str, inputs: tuple, expected: int, actual: int):
        self.name = name
        self.inputs = inputs
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{name}{inputs} = {actual:#x}, expected {expected:#x}"
        )


class ProverError(MixerError):
    """Proving backend failed."""
    pass


class ProverUnavailableError(ProverError):
    """Proving backend binary is not installed."""

    def __init__(self, binary: str):
        self.binary = binary
        super().__init__(f"Proving backend not found: {binary}")


# ==============================================================================
# INDEXER / CONFIG
# ==============================================================================

class IndexerDivergenceError(MixerError):
    """Replicated state no longer matches the observed event stream."""

    def __init__(self, message: str, index: Optional[int] = None):
        self.index = index
        super().__init__(message)


class ConfigError(MixerError):
    """Configuration is invalid."""

    def __init__(self, errors: list):
        self.errors = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))
