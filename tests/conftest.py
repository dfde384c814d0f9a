"""
zkvoid Test Fixtures
"""

import pytest
import asyncio
import threading
from typing import List, Sequence

from zkvoid.constants import FIELD_MODULUS
from zkvoid.crypto.hasher import PoseidonHasher
from zkvoid.core.types import Note
from zkvoid.state.pool import MixerPool


class AdditiveHasher:
    """Toy hasher: sum of inputs. Zero values are all zero."""

    name = "additive"

    def hash(self, inputs: Sequence[int]) -> int:
        return sum(inputs) % FIELD_MODULUS


class WeightedHasher:
    """Toy non-commutative hasher with non-zero zero values."""

    name = "weighted"

    def hash(self, inputs: Sequence[int]) -> int:
        acc = 1
        for i, value in enumerate(inputs):
            acc += (2 * i + 3) * value
        return acc % FIELD_MODULUS


class FakeVerifier:
    """
    Accepts a proof only if it was made for exactly these public signals.

    A fake proof is {"signals": (...)}; {"valid": False} forces rejection.
    """

    def __init__(self):
        self.calls = 0
        self._lock = threading.Lock()

    def verify(self, verification_key, public_signals, proof) -> bool:
        with self._lock:
            self.calls += 1
        if not isinstance(proof, dict) or not proof.get("valid", True):
            return False
        return tuple(proof.get("signals", ())) == tuple(public_signals)


def _make_proof(request_or_signals) -> dict:
    """Fake proof bound to a request's (or tuple's) public signals."""
    if hasattr(request_or_signals, "public_signals"):
        signals = request_or_signals.public_signals()
    else:
        signals = request_or_signals
    return {"signals": tuple(signals)}


class RecordingLedger:
    """Ledger that records releases; fails on demand."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.releases: List[tuple] = []

    def release(self, recipient, amount, relayer, fee, refund) -> None:
        if self.fail:
            raise RuntimeError("insufficient pool balance")
        self.releases.append((recipient, amount, relayer, fee, refund))


@pytest.fixture
def additive_hasher() -> AdditiveHasher:
    return AdditiveHasher()


@pytest.fixture
def weighted_hasher() -> WeightedHasher:
    return WeightedHasher()


@pytest.fixture(scope="session")
def poseidon_hasher() -> PoseidonHasher:
    """Poseidon hasher (parameters are built once per session)."""
    return PoseidonHasher()


@pytest.fixture
def make_proof():
    return _make_proof


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def ledger() -> RecordingLedger:
    return RecordingLedger()


@pytest.fixture
def failing_ledger() -> RecordingLedger:
    return RecordingLedger(fail=True)


@pytest.fixture
def sample_note() -> Note:
    """Deterministic note for testing."""
    return Note(
        nullifier=int.from_bytes(bytes(range(1, 32)), "big"),
        secret=int.from_bytes(bytes(range(100, 131)), "big"),
        chain_id=1,
    )


@pytest.fixture
def make_pool(verifier, ledger, weighted_hasher):
    """Factory for small pools over the weighted toy hasher."""
    def factory(height: int = 3, root_history_size: int = 30, hasher=None, **kwargs) -> MixerPool:
        return MixerPool(
            verifier=kwargs.pop("verifier", verifier),
            ledger=kwargs.pop("ledger", ledger),
            height=height,
            root_history_size=root_history_size,
            hasher=hasher if hasher is not None else weighted_hasher,
            **kwargs,
        )
    return factory


# Async fixtures helper
@pytest.fixture
def async_runner():
    """Helper for running async functions in tests."""
    def runner(coro):
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()
    return runner
