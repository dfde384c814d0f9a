"""
zkvoid Cryptographic Primitives
"""

from zkvoid.crypto.hasher import (
    Hasher,
    PoseidonHasher,
    KeccakHasher,
    get_hasher,
    hash_pair,
)
from zkvoid.crypto.poseidon import poseidon, get_poseidon_params
from zkvoid.crypto.merkle import (
    MerkleAccumulator,
    compute_zero_values,
    compute_root,
    compute_root_from_path,
    verify_membership,
)

__all__ = [
    # Hashers
    "Hasher",
    "PoseidonHasher",
    "KeccakHasher",
    "get_hasher",
    "hash_pair",
    "poseidon",
    "get_poseidon_params",
    # Merkle accumulator
    "MerkleAccumulator",
    "compute_zero_values",
    "compute_root",
    "compute_root_from_path",
    "verify_membership",
]
