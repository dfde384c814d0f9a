"""
zkvoid Protocol
Notes, withdrawal gate, proving boundary and circuit inputs.
"""

from zkvoid.protocol.note import generate_note, encode_note, parse_note
from zkvoid.protocol.withdrawal import ProofGate, GateState, WithdrawalOutcome, Ledger
from zkvoid.protocol.prover import (
    ProofVerifier,
    Prover,
    ProofBundle,
    SnarkjsVerifier,
    SnarkjsProver,
    load_verification_key,
    get_verifier,
    get_prover,
)
from zkvoid.protocol.inputs import CircuitInputs, build_withdrawal_inputs, recompute_root

__all__ = [
    # Notes
    "generate_note",
    "encode_note",
    "parse_note",
    # Gate
    "ProofGate",
    "GateState",
    "WithdrawalOutcome",
    "Ledger",
    # Proving
    "ProofVerifier",
    "Prover",
    "ProofBundle",
    "SnarkjsVerifier",
    "SnarkjsProver",
    "load_verification_key",
    "get_verifier",
    "get_prover",
    # Inputs
    "CircuitInputs",
    "build_withdrawal_inputs",
    "recompute_root",
]
