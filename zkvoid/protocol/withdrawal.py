"""
zkvoid Proof Gate
Withdrawal authorization state machine.

    RECEIVED -> ROOT_CHECKED -> NULLIFIER_CHECKED -> PROOF_VERIFIED -> SETTLED

Any step may instead move to REJECTED(reason).

Checks run in this fixed order and stop at the first failure. A rejection
at any step leaves roots, nullifiers and the ledger exactly as they were.
"""

from __future__ import annotations
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, TYPE_CHECKING

from zkvoid.constants import DENOMINATION_WEI
from zkvoid.core.types import Spent, WithdrawalRequest
from zkvoid.errors import (
    RejectionReason,
    SettlementError,
    WithdrawalRejectedError,
)
from zkvoid.protocol.prover import ProofVerifier

if TYPE_CHECKING:
    from zkvoid.state.nullifiers import NullifierRegistry
    from zkvoid.state.roots import RootHistory

logger = logging.getLogger(__name__)


class GateState(str, Enum):
    RECEIVED = "received"
    ROOT_CHECKED = "root_checked"
    NULLIFIER_CHECKED = "nullifier_checked"
    PROOF_VERIFIED = "proof_verified"
    SETTLED = "settled"
    REJECTED = "rejected"


class Ledger(Protocol):
    """
    Settlement ledger. Holds the pooled value.

    release() pays amount to recipient and fee to relayer, and forwards
    refund to recipient. It must raise if it cannot pay.
    """

    def release(
        self,
        recipient: int,
        amount: int,
        relayer: int,
        fee: int,
        refund: int,
    ) -> None:
        ...


@dataclass
class WithdrawalOutcome:
    """Result of one pass through the gate."""
    nullifier_hash: int
    state: GateState = GateState.RECEIVED
    reason: Optional[RejectionReason] = None
    trail: List[GateState] = field(default_factory=lambda: [GateState.RECEIVED])
    amount: int = 0
    event: Optional[Spent] = None

    @property
    def settled(self) -> bool:
        return self.state == GateState.SETTLED

    def advance(self, state: GateState) -> None:
        self.state = state
        self.trail.append(state)

    def to_dict(self) -> dict:
        return {
            "nullifier_hash": f"{self.nullifier_hash:#x}",
            "state": self.state.value,
            "reason": self.reason.value if self.reason else None,
            "trail": [s.value for s in self.trail],
            "amount": self.amount,
        }


class ProofGate:
    """
    Ties a proof's public signals to root and nullifier state.

    Steps are exposed individually so the pool can run verification off
    the writer lock and settle under it. process() runs everything in
    order and may be called from several threads at once.
    """

    def __init__(
        self,
        roots: "RootHistory",
        nullifiers: "NullifierRegistry",
        verifier: ProofVerifier,
        verification_key: Dict[str, Any],
        ledger: Ledger,
        denomination: int = DENOMINATION_WEI,
    ):
        self.roots = roots
        self.nullifiers = nullifiers
        self.verifier = verifier
        self.verification_key = verification_key
        self.ledger = ledger
        self.denomination = denomination

        # Held across re-check, release and mark_spent
        self._settle_lock = threading.Lock()

    def _reject(
        self,
        outcome: WithdrawalOutcome,
        reason: RejectionReason,
        detail: str = "",
    ) -> None:
        outcome.reason = reason
        outcome.advance(GateState.REJECTED)
        logger.warning(
            f"Withdrawal {outcome.nullifier_hash:#x} rejected: {reason.value}"
            + (f" ({detail})" if detail else "")
        )
        raise WithdrawalRejectedError(reason, detail)

    def begin(self, request: WithdrawalRequest) -> WithdrawalOutcome:
        """
        Start a gate pass and validate amounts (still RECEIVED).

        Raises:
            WithdrawalRejectedError: INVALID_FEE
        """
        outcome = WithdrawalOutcome(nullifier_hash=request.nullifier_hash)

        if request.fee < 0 or request.refund < 0:
            self._reject(outcome, RejectionReason.INVALID_FEE, "negative amount")
        if request.fee > self.denomination:
            self._reject(
                outcome,
                RejectionReason.INVALID_FEE,
                f"fee {request.fee} exceeds denomination {self.denomination}",
            )
        return outcome

    def check_root(self, request: WithdrawalRequest, outcome: WithdrawalOutcome) -> None:
        if not self.roots.is_valid(request.root):
            self._reject(outcome, RejectionReason.UNKNOWN_ROOT, f"root {request.root:#x}")
        outcome.advance(GateState.ROOT_CHECKED)

    def check_nullifier(self, request: WithdrawalRequest, outcome: WithdrawalOutcome) -> None:
        if self.nullifiers.is_spent(request.nullifier_hash):
            self._reject(outcome, RejectionReason.ALREADY_SPENT)
        outcome.advance(GateState.NULLIFIER_CHECKED)

    def verify_proof(self, request: WithdrawalRequest, outcome: WithdrawalOutcome) -> None:
        """
        Verify the proof against the fixed key and the request's exact
        public-signal tuple. Pure; may run on any thread.
        """
        signals = request.public_signals()
        if not self.verifier.verify(self.verification_key, signals, request.proof):
            self._reject(outcome, RejectionReason.INVALID_PROOF)
        outcome.advance(GateState.PROOF_VERIFIED)

    def settle(self, request: WithdrawalRequest, outcome: WithdrawalOutcome) -> Spent:
        """
        Release funds and record the nullifier.

        Root and registry are re-checked under the gate's settle lock, which
        stays held through the release and mark_spent, so concurrent
        settlements of one nullifier pay at most once. If the ledger
        refuses, nothing is recorded.

        Raises:
            WithdrawalRejectedError: UNKNOWN_ROOT (root left the window
                during verification) or ALREADY_SPENT (lost a race)
            SettlementError: Ledger refused to pay
        """
        amount = self.denomination - request.fee

        with self._settle_lock:
            if not self.roots.is_valid(request.root):
                self._reject(
                    outcome,
                    RejectionReason.UNKNOWN_ROOT,
                    f"root {request.root:#x} left the window during verification",
                )
            if self.nullifiers.is_spent(request.nullifier_hash):
                self._reject(outcome, RejectionReason.ALREADY_SPENT, "spent during verification")

            try:
                self.ledger.release(
                    request.recipient,
                    amount,
                    request.relayer,
                    request.fee,
                    request.refund,
                )
            except Exception as e:
                logger.error(f"Ledger release failed for {request.nullifier_hash:#x}: {e}")
                raise SettlementError(f"Ledger refused release: {e}") from e

            self.nullifiers.mark_spent(request.nullifier_hash)

        event = Spent(
            nullifier_hash=request.nullifier_hash,
            recipient=request.recipient,
            relayer=request.relayer,
            fee=request.fee,
        )
        outcome.amount = amount
        outcome.event = event
        outcome.advance(GateState.SETTLED)
        logger.info(f"Withdrawal {request.nullifier_hash:#x} settled: {amount} to recipient, fee {request.fee}")
        return event

    def process(self, request: WithdrawalRequest) -> WithdrawalOutcome:
        """
        Run the full gate synchronously.

        Raises:
            WithdrawalRejectedError: On the first failing check
            SettlementError: Ledger refused to pay
        """
        outcome = self.begin(request)
        self.check_root(request, outcome)
        self.check_nullifier(request, outcome)
        self.verify_proof(request, outcome)
        self.settle(request, outcome)
        return outcome
