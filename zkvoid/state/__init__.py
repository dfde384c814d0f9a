"""
zkvoid Pool State
Root history, nullifier registry and the single-writer pool.
"""

from zkvoid.state.roots import RootHistory
from zkvoid.state.nullifiers import NullifierRegistry
from zkvoid.state.pool import MixerPool

__all__ = [
    "RootHistory",
    "NullifierRegistry",
    "MixerPool",
]
