"""
zkvoid Mixer Pool
Single-writer owner of the accumulator, root history and nullifier registry.
"""

from __future__ import annotations
import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union, TYPE_CHECKING

from zkvoid.constants import (
    DENOMINATION_WEI,
    MERKLE_TREE_HEIGHT,
    ROOT_HISTORY_SIZE,
)
from zkvoid.core.types import Inserted, MembershipPath, Spent, WithdrawalRequest, is_field_element
from zkvoid.crypto.hasher import Hasher, get_hasher
from zkvoid.crypto.merkle import MerkleAccumulator
from zkvoid.errors import (
    DuplicateCommitmentError,
    InvalidCommitmentError,
    LeafNotFoundError,
    SettlementError,
    WithdrawalRejectedError,
)
from zkvoid.protocol.prover import ProofVerifier, get_verifier, load_verification_key
from zkvoid.protocol.withdrawal import Ledger, ProofGate, WithdrawalOutcome
from zkvoid.state.nullifiers import NullifierRegistry
from zkvoid.state.roots import RootHistory

if TYPE_CHECKING:
    from zkvoid.node.config import MixerConfig

logger = logging.getLogger(__name__)

Event = Union[Inserted, Spent]
Subscriber = Callable[[Event], None]


@dataclass
class PoolStats:
    """Pool statistics."""
    deposits: int = 0
    withdrawals: int = 0
    rejections: Counter = field(default_factory=Counter)
    settlement_failures: int = 0


class MixerPool:
    """
    Fixed-denomination pool.

    Every mutation (deposit, settlement) runs under one asyncio.Lock, so
    there is a single authoritative root at any instant. Proof verification
    runs in a worker thread outside the lock; settlement re-checks the
    registry inside it, so of many concurrent withdrawals for one nullifier
    exactly one settles.
    """

    def __init__(
        self,
        verifier: ProofVerifier,
        ledger: Ledger,
        verification_key: Optional[Dict[str, Any]] = None,
        height: int = MERKLE_TREE_HEIGHT,
        root_history_size: int = ROOT_HISTORY_SIZE,
        hasher: Optional[Hasher] = None,
        denomination: int = DENOMINATION_WEI,
    ):
        self.hasher = hasher if hasher is not None else get_hasher()
        self.denomination = denomination

        self._accumulator = MerkleAccumulator(height, self.hasher)
        self._roots = RootHistory(root_history_size)
        self._nullifiers = NullifierRegistry()
        self._gate = ProofGate(
            roots=self._roots,
            nullifiers=self._nullifiers,
            verifier=verifier,
            verification_key=verification_key or {},
            ledger=ledger,
            denomination=denomination,
        )

        self._subscribers: List[Subscriber] = []
        self._lock = asyncio.Lock()
        self.stats = PoolStats()

        # Genesis root
        self._roots.record(self._accumulator.root)
        logger.info(
            f"Pool ready: height={height}, root history={root_history_size}, "
            f"hasher={self.hasher.name}"
        )

    @classmethod
    def from_config(
        cls,
        config: "MixerConfig",
        ledger: Ledger,
        verifier: Optional[ProofVerifier] = None,
        verification_key: Optional[Dict[str, Any]] = None,
        hasher: Optional[Hasher] = None,
    ) -> "MixerPool":
        """
        Build a pool from configuration.

        Without an explicit verifier, one is built for config.prover; the
        verification key is loaded from config.prover.verification_key
        when not passed in.

        Raises:
            ProverError: Verification key cannot be loaded
        """
        prover = config.prover
        if verifier is None:
            verifier = get_verifier(
                prover.backend,
                binary=prover.binary,
                timeout=prover.verify_timeout_sec,
            )
        if verification_key is None and prover.verification_key:
            verification_key = load_verification_key(prover.verification_key)

        return cls(
            verifier=verifier,
            ledger=ledger,
            verification_key=verification_key,
            height=config.tree.height,
            root_history_size=config.tree.root_history_size,
            hasher=hasher if hasher is not None else get_hasher(config.tree.hasher),
            denomination=config.note.denomination_wei,
        )

    # ==========================================================================
    # EVENTS
    # ==========================================================================

    def subscribe(self, callback: Subscriber) -> None:
        """Receive Inserted/Spent events in mutation order."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _emit(self, event: Event) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                # State is already committed
                logger.error(f"Subscriber {callback!r} failed on {type(event).__name__}: {e}")

    # ==========================================================================
    # MUTATIONS
    # ==========================================================================

    async def deposit(self, commitment: int) -> Inserted:
        """
        Append a commitment.

        Raises:
            InvalidCommitmentError: Zero or not a field element
            DuplicateCommitmentError: Already deposited
            CapacityExceededError: Tree is full
        """
        if not is_field_element(commitment):
            raise InvalidCommitmentError(commitment, "not a field element")
        if commitment == 0:
            raise InvalidCommitmentError(commitment, "zero commitment")

        async with self._lock:
            existing = self._accumulator.index_of(commitment)
            if existing is not None:
                raise DuplicateCommitmentError(commitment, existing)

            index, root = self._accumulator.insert(commitment)
            self._roots.record(root)
            self.stats.deposits += 1

            event = Inserted(index=index, leaf=commitment, root=root)
            self._emit(event)

        logger.info(f"Deposit {index}: commitment={commitment:#x}")
        return event

    async def withdraw(self, request: WithdrawalRequest) -> WithdrawalOutcome:
        """
        Run a withdrawal through the proof gate.

        Raises:
            WithdrawalRejectedError: With the first failing reason
            SettlementError: Ledger refused to pay
        """
        gate = self._gate
        try:
            outcome = gate.begin(request)
            gate.check_root(request, outcome)
            gate.check_nullifier(request, outcome)
            await asyncio.to_thread(gate.verify_proof, request, outcome)

            async with self._lock:
                try:
                    event = gate.settle(request, outcome)
                except SettlementError:
                    self.stats.settlement_failures += 1
                    raise
                self.stats.withdrawals += 1
                self._emit(event)
        except WithdrawalRejectedError as e:
            self.stats.rejections[e.reason.value] += 1
            raise

        return outcome

    # ==========================================================================
    # READS
    # ==========================================================================

    @property
    def root(self) -> int:
        return self._accumulator.root

    @property
    def accumulator(self) -> MerkleAccumulator:
        return self._accumulator

    @property
    def root_history(self) -> RootHistory:
        return self._roots

    @property
    def nullifiers(self) -> NullifierRegistry:
        return self._nullifiers

    def is_known_root(self, root: int) -> bool:
        return self._roots.is_valid(root)

    def is_spent(self, nullifier_hash: int) -> bool:
        return self._nullifiers.is_spent(nullifier_hash)

    def membership_path(self, index: int) -> MembershipPath:
        return self._accumulator.membership_path(index)

    def path_for(self, commitment: int) -> MembershipPath:
        """
        Membership path for a deposited commitment.

        Raises:
            LeafNotFoundError: Commitment was never deposited
        """
        index = self._accumulator.index_of(commitment)
        if index is None:
            raise LeafNotFoundError(commitment)
        return self._accumulator.membership_path(index)

    def get_statistics(self) -> dict:
        """Get pool statistics."""
        return {
            "leaf_count": self._accumulator.leaf_count,
            "capacity": self._accumulator.capacity,
            "root": f"{self.root:#x}",
            "root_history": len(self._roots),
            "spent_count": len(self._nullifiers),
            "deposits": self.stats.deposits,
            "withdrawals": self.stats.withdrawals,
            "rejections": dict(self.stats.rejections),
            "settlement_failures": self.stats.settlement_failures,
            "subscribers": len(self._subscribers),
        }


def get_pool_info() -> dict:
    """Get information about pool defaults."""
    return {
        "default_height": MERKLE_TREE_HEIGHT,
        "default_capacity": 1 << MERKLE_TREE_HEIGHT,
        "default_root_history": ROOT_HISTORY_SIZE,
        "denomination_wei": DENOMINATION_WEI,
        "writer_model": "single asyncio.Lock",
    }
