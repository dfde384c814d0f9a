"""
zkvoid Circuit Input Builder

Builds the withdrawal witness from a note and the current accumulator.
Field elements are rendered as decimal strings; path indices as 0/1 ints.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from zkvoid.core.types import Note, WithdrawalRequest
from zkvoid.crypto.hasher import Hasher
from zkvoid.crypto.merkle import MerkleAccumulator, compute_root_from_path
from zkvoid.errors import LeafNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CircuitInputs:
    """Private witness plus public signals for one withdrawal."""
    nullifier: int
    secret: int
    chain_id: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]
    root: int
    nullifier_hash: int
    recipient: int
    relayer: int = 0
    fee: int = 0
    refund: int = 0
    leaf_index: int = 0

    def public_signals(self) -> Tuple[int, ...]:
        """Public signals in circuit order (PUBLIC_SIGNALS)."""
        return self.to_request(None).public_signals()

    def to_json_dict(self) -> dict:
        """Input JSON for the witness generator."""
        return {
            "root": str(self.root),
            "nullifierHash": str(self.nullifier_hash),
            "recipient": str(self.recipient),
            "relayer": str(self.relayer),
            "fee": str(self.fee),
            "refund": str(self.refund),
            "nullifier": str(self.nullifier),
            "secret": str(self.secret),
            "chainId": str(self.chain_id),
            "pathElements": [str(e) for e in self.path_elements],
            "pathIndices": list(self.path_indices),
        }

    def to_request(self, proof) -> WithdrawalRequest:
        """Pair these public signals with a finished proof."""
        return WithdrawalRequest(
            proof=proof,
            root=self.root,
            nullifier_hash=self.nullifier_hash,
            recipient=self.recipient,
            relayer=self.relayer,
            fee=self.fee,
            refund=self.refund,
        )


def build_withdrawal_inputs(
    note: Note,
    accumulator: MerkleAccumulator,
    recipient: int,
    relayer: int = 0,
    fee: int = 0,
    refund: int = 0,
    hasher: Optional[Hasher] = None,
) -> CircuitInputs:
    """
    Build circuit inputs for withdrawing note.

    Args:
        note: Deposited note
        accumulator: Accumulator holding the note's commitment
        recipient: Field-encoded recipient address
        relayer: Field-encoded relayer address (0 for none)
        fee: Relayer fee
        refund: Native refund forwarded to recipient
        hasher: Defaults to the accumulator's hasher

    Returns:
        CircuitInputs against the accumulator's current root

    Raises:
        LeafNotFoundError: The note's commitment is not in the tree
    """
    if hasher is None:
        hasher = accumulator.hasher

    commitment = note.commitment(hasher)
    index = accumulator.index_of(commitment)
    if index is None:
        raise LeafNotFoundError(commitment)

    path = accumulator.membership_path(index)
    inputs = CircuitInputs(
        nullifier=note.nullifier,
        secret=note.secret,
        chain_id=note.chain_id,
        path_elements=path.siblings,
        path_indices=path.path_bits,
        root=accumulator.root,
        nullifier_hash=note.nullifier_hash(hasher),
        recipient=recipient,
        relayer=relayer,
        fee=fee,
        refund=refund,
        leaf_index=index,
    )
    logger.debug(f"Built withdrawal inputs for leaf {index} against root {inputs.root:#x}")
    return inputs


def recompute_root(inputs: CircuitInputs, hasher: Hasher) -> int:
    """Recompute the root the witness proves membership under."""
    commitment = hasher.hash([inputs.nullifier, inputs.secret])
    return compute_root_from_path(commitment, inputs.path_elements, inputs.path_indices, hasher)
