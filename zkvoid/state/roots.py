"""
zkvoid Root History
Bounded FIFO window of recent accumulator roots.
"""

from __future__ import annotations
import logging
from collections import Counter, deque
from typing import Deque, List, Optional

from zkvoid.constants import ROOT_HISTORY_SIZE

logger = logging.getLogger(__name__)


class RootHistory:
    """
    Roots a withdrawal proof may be built against.

    One entry per accumulator mutation, the genesis root included. The
    oldest entry is evicted once capacity is exceeded. The same root may
    appear more than once; it stays valid while any copy is retained.
    """

    def __init__(self, capacity: int = ROOT_HISTORY_SIZE):
        if capacity < 1:
            raise ValueError(f"Root history capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._window: Deque[int] = deque()
        self._counts: Counter = Counter()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def latest(self) -> Optional[int]:
        """Most recently recorded root."""
        return self._window[-1] if self._window else None

    def record(self, root: int) -> Optional[int]:
        """
        Record a new root.

        Returns:
            The evicted root, if any
        """
        self._window.append(root)
        self._counts[root] += 1

        evicted = None
        if len(self._window) > self._capacity:
            evicted = self._window.popleft()
            self._counts[evicted] -= 1
            if self._counts[evicted] <= 0:
                del self._counts[evicted]
            logger.debug(f"Root {evicted:#x} left the history window")
        return evicted

    def is_valid(self, root: int) -> bool:
        return root in self._counts

    def __contains__(self, root: int) -> bool:
        return self.is_valid(root)

    def roots(self) -> List[int]:
        """Retained roots, oldest first."""
        return list(self._window)

    def __len__(self) -> int:
        return len(self._window)
