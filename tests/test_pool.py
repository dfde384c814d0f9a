"""
zkvoid Pool Tests
"""

import asyncio
import json
import threading
from dataclasses import replace

import pytest

from zkvoid.core.types import Inserted, Spent, WithdrawalRequest
from zkvoid.errors import (
    CapacityExceededError,
    DuplicateCommitmentError,
    InvalidCommitmentError,
    LeafNotFoundError,
    ProverError,
    RejectionReason,
    SettlementError,
    WithdrawalRejectedError,
)
from zkvoid.node.config import MixerConfig
from zkvoid.protocol.inputs import build_withdrawal_inputs
from zkvoid.protocol.note import generate_note
from zkvoid.protocol.prover import SnarkjsVerifier
from zkvoid.state.pool import MixerPool, get_pool_info

RECIPIENT = 0xAAAA
NULLIFIER_HASH = 0x5151


def _request(root: int, make_proof, nullifier_hash: int = NULLIFIER_HASH, **kwargs) -> WithdrawalRequest:
    request = WithdrawalRequest(
        proof=None, root=root, nullifier_hash=nullifier_hash, recipient=RECIPIENT, **kwargs
    )
    return replace(request, proof=make_proof(request))


class HeldVerifier:
    """Accepts fake proofs, but only once the test lets verification finish."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def verify(self, verification_key, public_signals, proof) -> bool:
        self.entered.set()
        self.release.wait(10)
        return tuple(proof.get("signals", ())) == tuple(public_signals)


class TestDeposit:
    """Tests for MixerPool.deposit."""

    def test_deposit_emits_inserted(self, make_pool, async_runner):
        """Test deposits append in order and emit events."""
        pool = make_pool()
        events = []
        pool.subscribe(events.append)

        async def run():
            first = await pool.deposit(101)
            second = await pool.deposit(202)
            return first, second

        first, second = async_runner(run())
        assert (first.index, second.index) == (0, 1)
        assert events == [first, second]
        assert isinstance(first, Inserted)
        assert pool.root == second.root
        assert pool.is_known_root(first.root)

    def test_genesis_root_is_known(self, make_pool):
        """Test the empty-tree root is valid from the start."""
        pool = make_pool()
        assert pool.is_known_root(pool.root)
        assert pool.root == pool.accumulator.zero_values[3]

    def test_rejects_zero_and_out_of_field(self, make_pool, async_runner):
        """Test invalid commitments."""
        pool = make_pool()
        with pytest.raises(InvalidCommitmentError):
            async_runner(pool.deposit(0))
        with pytest.raises(InvalidCommitmentError):
            async_runner(pool.deposit(-5))
        assert pool.accumulator.leaf_count == 0

    def test_rejects_duplicate(self, make_pool, async_runner):
        """Test a commitment can only be deposited once."""
        pool = make_pool()

        async def run():
            await pool.deposit(7)
            await pool.deposit(7)

        with pytest.raises(DuplicateCommitmentError) as exc_info:
            async_runner(run())
        assert exc_info.value.index == 0
        assert pool.accumulator.leaf_count == 1

    def test_capacity(self, make_pool, async_runner):
        """Test a full pool refuses deposits."""
        pool = make_pool(height=1)

        async def run():
            await pool.deposit(1)
            await pool.deposit(2)
            await pool.deposit(3)

        with pytest.raises(CapacityExceededError):
            async_runner(run())
        assert pool.accumulator.leaf_count == 2

    @pytest.mark.timeout(30)
    def test_concurrent_deposits_serialize(self, make_pool, async_runner):
        """Test concurrent deposits get distinct indices and one final root."""
        pool = make_pool(height=4)

        async def run():
            return await asyncio.gather(*(pool.deposit(c) for c in range(1, 11)))

        events = async_runner(run())
        assert sorted(e.index for e in events) == list(range(10))
        assert pool.root == max(events, key=lambda e: e.index).root
        assert pool.accumulator.leaf_count == 10


class TestWithdraw:
    """Tests for MixerPool.withdraw."""

    def test_withdraw_settles(self, make_pool, make_proof, ledger, async_runner):
        """Test a valid withdrawal pays and emits Spent."""
        pool = make_pool()
        events = []
        pool.subscribe(events.append)

        async def run():
            inserted = await pool.deposit(55)
            return await pool.withdraw(_request(inserted.root, make_proof, fee=5))

        outcome = async_runner(run())
        assert outcome.settled
        assert pool.is_spent(NULLIFIER_HASH)
        assert len(ledger.releases) == 1
        assert isinstance(events[-1], Spent)
        assert events[-1].fee == 5

    def test_rejection_reason_surfaces(self, make_pool, make_proof, async_runner):
        """Test rejections carry their reason and are counted."""
        pool = make_pool()
        with pytest.raises(WithdrawalRejectedError) as exc_info:
            async_runner(pool.withdraw(_request(987654, make_proof)))
        assert exc_info.value.reason == RejectionReason.UNKNOWN_ROOT
        assert pool.get_statistics()["rejections"] == {"unknown_root": 1}

    @pytest.mark.timeout(30)
    def test_concurrent_withdrawals_one_winner(self, make_pool, make_proof, ledger, async_runner):
        """Test racing withdrawals of one nullifier settle exactly once."""
        pool = make_pool()

        async def run():
            inserted = await pool.deposit(99)
            request = _request(inserted.root, make_proof)
            return await asyncio.gather(
                *(pool.withdraw(request) for _ in range(8)),
                return_exceptions=True,
            )

        results = async_runner(run())
        settled = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, WithdrawalRejectedError)]

        assert len(settled) == 1
        assert len(rejected) == 7
        assert all(r.reason == RejectionReason.ALREADY_SPENT for r in rejected)
        assert len(ledger.releases) == 1

    def test_ledger_failure_leaves_state(self, make_pool, make_proof, failing_ledger, async_runner):
        """Test a refused release can be retried later."""
        pool = make_pool(ledger=failing_ledger)

        async def run():
            inserted = await pool.deposit(77)
            request = _request(inserted.root, make_proof)
            with pytest.raises(SettlementError):
                await pool.withdraw(request)
            assert not pool.is_spent(NULLIFIER_HASH)

            failing_ledger.fail = False
            return await pool.withdraw(request)

        outcome = async_runner(run())
        assert outcome.settled
        assert pool.get_statistics()["settlement_failures"] == 1

    def test_root_window(self, make_pool, make_proof, async_runner):
        """Test a proof stays valid inside the window and expires after it."""
        pool = make_pool(root_history_size=4)

        async def run():
            r1 = (await pool.deposit(1000)).root
            for c in (1001, 1002, 1003):
                await pool.deposit(c)
            assert pool.is_known_root(r1)

            await pool.deposit(1004)
            assert not pool.is_known_root(r1)

            with pytest.raises(WithdrawalRejectedError) as exc_info:
                await pool.withdraw(_request(r1, make_proof))
            return exc_info.value.reason

        assert async_runner(run()) == RejectionReason.UNKNOWN_ROOT

    @pytest.mark.timeout(30)
    def test_root_evicted_during_verification(self, make_pool, make_proof, ledger, async_runner):
        """Test deposits landing while a proof verifies can expire its root."""
        verifier = HeldVerifier()
        pool = make_pool(root_history_size=4, verifier=verifier)

        async def run():
            r1 = (await pool.deposit(2000)).root
            task = asyncio.ensure_future(pool.withdraw(_request(r1, make_proof)))

            await asyncio.to_thread(verifier.entered.wait, 10)
            for c in (2001, 2002, 2003, 2004):
                await pool.deposit(c)
            assert not pool.is_known_root(r1)
            verifier.release.set()

            with pytest.raises(WithdrawalRejectedError) as exc_info:
                await task
            return exc_info.value.reason

        assert async_runner(run()) == RejectionReason.UNKNOWN_ROOT
        assert ledger.releases == []
        assert not pool.is_spent(NULLIFIER_HASH)

    def test_failing_subscriber_does_not_block(self, make_pool, async_runner):
        """Test other subscribers still receive events."""
        pool = make_pool()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        pool.subscribe(broken)
        pool.subscribe(received.append)
        async_runner(pool.deposit(5))
        assert len(received) == 1

        pool.unsubscribe(broken)
        assert pool.get_statistics()["subscribers"] == 1


class TestPoolEndToEnd:
    """Poseidon end to end with the input builder."""

    @pytest.mark.timeout(120)
    def test_note_to_settlement(self, verifier, ledger, poseidon_hasher, make_proof, async_runner):
        """Test note, deposit, inputs, proof and settlement agree."""
        pool = MixerPool(verifier=verifier, ledger=ledger, height=4, hasher=poseidon_hasher)
        note, _ = generate_note(1)
        other, _ = generate_note(1)

        async def run():
            await pool.deposit(other.commitment(poseidon_hasher))
            await pool.deposit(note.commitment(poseidon_hasher))

            inputs = build_withdrawal_inputs(note, pool.accumulator, recipient=RECIPIENT)
            request = inputs.to_request(make_proof(inputs.public_signals()))
            return inputs, await pool.withdraw(request)

        inputs, outcome = async_runner(run())
        assert inputs.leaf_index == 1
        assert outcome.settled
        assert pool.is_spent(note.nullifier_hash(poseidon_hasher))
        assert pool.path_for(note.commitment(poseidon_hasher)).index == 1

    def test_path_for_unknown(self, make_pool):
        """Test path lookup for a missing commitment."""
        with pytest.raises(LeafNotFoundError):
            make_pool().path_for(1234)


class TestPoolConfig:
    """Tests for config wiring."""

    def test_from_config(self, verifier, ledger, weighted_hasher):
        """Test sizes come from the config."""
        config = MixerConfig()
        config.tree.height = 5
        config.tree.root_history_size = 7
        pool = MixerPool.from_config(config, ledger, verifier=verifier, hasher=weighted_hasher)

        assert pool.accumulator.capacity == 32
        assert pool.root_history.capacity == 7

    def test_from_config_builds_verifier(self, tmp_path, ledger, weighted_hasher):
        """Test the prover section selects the verifier and loads the key."""
        key_path = tmp_path / "vkey.json"
        key_path.write_text(json.dumps({"protocol": "groth16", "nPublic": 6}))

        config = MixerConfig()
        config.prover.binary = "/opt/snarkjs/bin/snarkjs"
        config.prover.verify_timeout_sec = 7
        config.prover.verification_key = str(key_path)
        pool = MixerPool.from_config(config, ledger, hasher=weighted_hasher)

        gate = pool._gate
        assert isinstance(gate.verifier, SnarkjsVerifier)
        assert gate.verifier.binary == "/opt/snarkjs/bin/snarkjs"
        assert gate.verifier.timeout == 7
        assert gate.verification_key["protocol"] == "groth16"

    def test_from_config_bad_key(self, tmp_path, ledger, weighted_hasher):
        """Test a missing verification key file is reported."""
        config = MixerConfig()
        config.prover.verification_key = str(tmp_path / "missing.json")
        with pytest.raises(ProverError):
            MixerPool.from_config(config, ledger, hasher=weighted_hasher)

    def test_pool_info(self):
        """Test info defaults."""
        info = get_pool_info()
        assert info["default_height"] == 20
        assert info["default_root_history"] == 30
