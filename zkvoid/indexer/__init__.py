"""
zkvoid Indexer
Event-driven replica of pool roots and spent nullifiers.
"""

from zkvoid.indexer.indexer import MixerIndexer, open_indexer
from zkvoid.indexer.storage import IndexerStore

__all__ = [
    "MixerIndexer",
    "open_indexer",
    "IndexerStore",
]
