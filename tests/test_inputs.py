"""
zkvoid Circuit Input Tests
"""

import pytest

from zkvoid.constants import PUBLIC_SIGNALS
from zkvoid.core.types import Note
from zkvoid.crypto.merkle import MerkleAccumulator
from zkvoid.errors import LeafNotFoundError
from zkvoid.protocol.inputs import build_withdrawal_inputs, recompute_root


@pytest.fixture
def filled(weighted_hasher, sample_note):
    acc = MerkleAccumulator(3, weighted_hasher)
    acc.insert(111)
    acc.insert(sample_note.commitment(weighted_hasher))
    acc.insert(333)
    return acc


class TestBuildInputs:
    """Tests for build_withdrawal_inputs."""

    def test_witness_recomputes_root(self, filled, sample_note, weighted_hasher):
        """Test the witness proves membership under the current root."""
        inputs = build_withdrawal_inputs(sample_note, filled, recipient=0xCAFE)
        assert inputs.leaf_index == 1
        assert inputs.path_indices == (1, 0, 0)
        assert recompute_root(inputs, weighted_hasher) == filled.root

    def test_public_signals(self, filled, sample_note, weighted_hasher):
        """Test the public signal order."""
        inputs = build_withdrawal_inputs(
            sample_note, filled, recipient=5, relayer=6, fee=7, refund=8
        )
        assert inputs.public_signals() == (
            filled.root,
            sample_note.nullifier_hash(weighted_hasher),
            5, 6, 7, 8,
        )

    def test_json_dict(self, filled, sample_note):
        """Test field values are decimal strings and indices are ints."""
        data = build_withdrawal_inputs(sample_note, filled, recipient=0xCAFE).to_json_dict()

        assert set(data) == {
            "root", "nullifierHash", "recipient", "relayer", "fee", "refund",
            "nullifier", "secret", "chainId", "pathElements", "pathIndices",
        }
        assert data["recipient"] == str(0xCAFE)
        assert data["nullifier"] == str(sample_note.nullifier)
        assert data["chainId"] == "1"
        assert len(data["pathElements"]) == 3
        assert all(isinstance(e, str) for e in data["pathElements"])
        assert data["pathIndices"] == [1, 0, 0]

    def test_to_request(self, filled, sample_note):
        """Test the request carries the same public signals."""
        inputs = build_withdrawal_inputs(sample_note, filled, recipient=9, fee=3)
        request = inputs.to_request({"proof": True})
        assert request.public_signals() == inputs.public_signals()
        assert request.proof == {"proof": True}

    def test_missing_note(self, filled):
        """Test notes whose commitment was never deposited."""
        stranger = Note(nullifier=1, secret=2, chain_id=1)
        with pytest.raises(LeafNotFoundError):
            build_withdrawal_inputs(stranger, filled, recipient=1)

    def test_stale_after_deposit(self, filled, sample_note, weighted_hasher):
        """Test old inputs no longer match once the tree grows."""
        inputs = build_withdrawal_inputs(sample_note, filled, recipient=1)
        filled.insert(444)
        assert recompute_root(inputs, weighted_hasher) == inputs.root
        assert inputs.root != filled.root

    def test_signal_order_follows_circuit_layout(self, filled, sample_note):
        """Test public_signals() lines up with the circuit's signal names."""
        inputs = build_withdrawal_inputs(
            sample_note, filled, recipient=11, relayer=22, fee=33, refund=44
        )
        data = inputs.to_json_dict()
        assert inputs.public_signals() == tuple(int(data[name]) for name in PUBLIC_SIGNALS)
        assert inputs.public_signals() == inputs.to_request(None).public_signals()
