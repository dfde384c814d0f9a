"""
zkvoid Proving Boundary

The constraint system is an opaque oracle. This module defines the two
calls the core consumes and adapters that drive the snarkjs CLI:

    verify(verification_key, public_signals, proof) -> bool
    prove(proving_key, witness, public_signals) -> ProofBundle

Public signals are always the fixed-order tuple
(root, nullifierHash, recipient, relayer, fee, refund).
"""

from __future__ import annotations
import json
import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from zkvoid.constants import (
    PUBLIC_SIGNAL_COUNT,
    SNARKJS_BINARY,
    PROVER_TIMEOUT_SEC,
    VERIFIER_TIMEOUT_SEC,
)
from zkvoid.errors import ProverError, ProverUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProofBundle:
    """
    Proof together with the public signals it was generated for.
    """
    proof: Dict[str, Any]
    public_signals: Tuple[int, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "proof": self.proof,
            "publicSignals": [str(s) for s in self.public_signals],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProofBundle":
        return cls(
            proof=data["proof"],
            public_signals=tuple(int(s) for s in data.get("publicSignals", [])),
        )


class ProofVerifier(Protocol):
    """Verifier oracle. Must be pure."""

    def verify(
        self,
        verification_key: Dict[str, Any],
        public_signals: Sequence[int],
        proof: Any,
    ) -> bool:
        ...


class Prover(Protocol):
    """Prover oracle. Touches no shared state."""

    def prove(
        self,
        proving_key: str,
        witness: Dict[str, Any],
        public_signals: Sequence[int],
    ) -> ProofBundle:
        ...


def load_verification_key(path: str) -> Dict[str, Any]:
    """
    Load a snarkjs verification key JSON.

    Raises:
        ProverError: File missing or not a JSON object
    """
    try:
        with open(path, "r") as f:
            key = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ProverError(f"Cannot load verification key {path}: {e}") from e

    if not isinstance(key, dict):
        raise ProverError(f"Verification key {path} is not a JSON object")

    n_public = key.get("nPublic")
    if n_public is not None and n_public != PUBLIC_SIGNAL_COUNT:
        raise ProverError(
            f"Verification key expects {n_public} public signals, circuit has {PUBLIC_SIGNAL_COUNT}"
        )
    return key


# ==============================================================================
# SNARKJS ADAPTERS
# ==============================================================================

def _resolve_binary(binary: str) -> str:
    path = shutil.which(binary)
    if path is None:
        raise ProverUnavailableError(binary)
    return path


def _write_json(path: Path, data: Any) -> Path:
    with open(path, "w") as f:
        json.dump(data, f)
    return path


def _run(cmd: List[str], timeout: int) -> subprocess.CompletedProcess:
    logger.debug(f"Running {' '.join(cmd[:3])}")
    try:
        return subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise ProverError(f"{cmd[1]} {cmd[2]} timed out after {timeout}s") from e


class SnarkjsVerifier:
    """
    Groth16 verification through `snarkjs groth16 verify`.

    If the proof is a ProofBundle whose embedded public signals differ from
    the supplied tuple, verification fails without invoking snarkjs.
    """

    def __init__(self, binary: str = SNARKJS_BINARY, timeout: int = VERIFIER_TIMEOUT_SEC):
        self.binary = binary
        self.timeout = timeout

    def verify(
        self,
        verification_key: Dict[str, Any],
        public_signals: Sequence[int],
        proof: Any,
    ) -> bool:
        signals = tuple(public_signals)
        if len(signals) != PUBLIC_SIGNAL_COUNT:
            logger.warning(f"Expected {PUBLIC_SIGNAL_COUNT} public signals, got {len(signals)}")
            return False

        if isinstance(proof, ProofBundle):
            if proof.public_signals and proof.public_signals != signals:
                logger.warning("Proof public signals do not match the request")
                return False
            proof = proof.proof

        binary = _resolve_binary(self.binary)

        with tempfile.TemporaryDirectory() as temp_dir:
            temp_path = Path(temp_dir)
            vkey_file = _write_json(temp_path / "vkey.json", verification_key)
            public_file = _write_json(temp_path / "public.json", [str(s) for s in signals])
            proof_file = _write_json(temp_path / "proof.json", proof)

            result = _run(
                [binary, "groth16", "verify", str(vkey_file), str(public_file), str(proof_file)],
                self.timeout,
            )

        is_valid = result.returncode == 0 and "OK" in result.stdout
        if not is_valid:
            logger.info(f"snarkjs rejected proof: {result.stdout.strip() or result.stderr.strip()}")
        return is_valid


class SnarkjsProver:
    """
    Groth16 proving through `snarkjs groth16 fullprove`.

    proving_key is the .zkey path; the circuit's .wasm is fixed per instance.
    Proving is long-running and can be abandoned at any point: it writes
    only to a private temp directory.
    """

    def __init__(
        self,
        wasm_path: str,
        binary: str = SNARKJS_BINARY,
        timeout: int = PROVER_TIMEOUT_SEC,
    ):
        self.wasm_path = wasm_path
        self.binary = binary
        self.timeout = timeout

    def prove(
        self,
        proving_key: str,
        witness: Dict[str, Any],
        public_signals: Sequence[int],
    ) -> ProofBundle:
        """
        Generate a proof.

        Raises:
            ProverUnavailableError: snarkjs not installed
            ProverError: Proving failed or produced different public signals
        """
        binary = _resolve_binary(self.binary)
        expected = tuple(public_signals)

        with tempfile.TemporaryDirectory() as temp_dir:
            temp_path = Path(temp_dir)
            input_file = _write_json(temp_path / "input.json", witness)
            proof_file = temp_path / "proof.json"
            public_file = temp_path / "public.json"

            result = _run(
                [
                    binary, "groth16", "fullprove",
                    str(input_file), self.wasm_path, proving_key,
                    str(proof_file), str(public_file),
                ],
                self.timeout,
            )
            if result.returncode != 0:
                raise ProverError(f"snarkjs fullprove failed: {result.stderr.strip()}")

            with open(proof_file, "r") as f:
                proof = json.load(f)
            with open(public_file, "r") as f:
                produced = tuple(int(s) for s in json.load(f))

        if produced != expected:
            raise ProverError("Prover produced public signals that differ from the request")

        logger.info("Withdrawal proof generated")
        return ProofBundle(proof=proof, public_signals=produced)


def get_verifier(backend: str = "snarkjs", binary: Optional[str] = None, timeout: Optional[int] = None) -> ProofVerifier:
    """Build a verifier for the configured backend."""
    if backend != "snarkjs":
        raise ValueError(f"Unknown proving backend: {backend}")
    return SnarkjsVerifier(
        binary=binary or SNARKJS_BINARY,
        timeout=timeout or VERIFIER_TIMEOUT_SEC,
    )


def get_prover(
    backend: str = "snarkjs",
    wasm_path: Optional[str] = None,
    binary: Optional[str] = None,
    timeout: Optional[int] = None,
) -> Prover:
    """
    Build a prover for the configured backend.

    Raises:
        ValueError: Unknown backend
        ProverError: No circuit wasm configured
    """
    if backend != "snarkjs":
        raise ValueError(f"Unknown proving backend: {backend}")
    if not wasm_path:
        raise ProverError("Circuit wasm path is not configured")
    return SnarkjsProver(
        wasm_path,
        binary=binary or SNARKJS_BINARY,
        timeout=timeout or PROVER_TIMEOUT_SEC,
    )
