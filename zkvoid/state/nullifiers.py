"""
zkvoid Nullifier Registry
Append-only set of spent nullifier hashes. Source of double-spend truth.
"""

from __future__ import annotations
import logging
import threading
from typing import FrozenSet, Set

from zkvoid.errors import AlreadySpentError

logger = logging.getLogger(__name__)


class NullifierRegistry:
    """
    Spent nullifier hashes.

    mark_spent is an atomic check-and-set: of any number of concurrent
    callers with the same hash, exactly one succeeds. Entries are never
    removed.
    """

    def __init__(self):
        self._spent: Set[int] = set()
        self._lock = threading.Lock()

    def is_spent(self, nullifier_hash: int) -> bool:
        with self._lock:
            return nullifier_hash in self._spent

    def mark_spent(self, nullifier_hash: int) -> None:
        """
        Record nullifier_hash as spent.

        Raises:
            AlreadySpentError: Already recorded
        """
        with self._lock:
            if nullifier_hash in self._spent:
                raise AlreadySpentError(nullifier_hash)
            self._spent.add(nullifier_hash)
        logger.debug(f"Nullifier {nullifier_hash:#x} marked spent")

    def spent(self) -> FrozenSet[int]:
        """Snapshot of spent hashes."""
        with self._lock:
            return frozenset(self._spent)

    def __contains__(self, nullifier_hash: int) -> bool:
        return self.is_spent(nullifier_hash)

    def __len__(self) -> int:
        with self._lock:
            return len(self._spent)
