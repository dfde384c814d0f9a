"""
zkvoid
Fixed-denomination privacy pool core.

Commitments go into an append-only Poseidon Merkle accumulator; withdrawals
prove membership in zero knowledge and publish a nullifier hash that can be
spent exactly once.
"""

__version__ = "1.0.0"
__author__ = "zkvoid"

from zkvoid.constants import FIELD_MODULUS, MERKLE_TREE_HEIGHT, ROOT_HISTORY_SIZE

__all__ = [
    "FIELD_MODULUS",
    "MERKLE_TREE_HEIGHT",
    "ROOT_HISTORY_SIZE",
    "__version__",
]
