"""
zkvoid External Indexer

Replicates the accumulator, root history and nullifier registry purely
from the pool's event feed, without access to pool internals. Used for
off-chain pre-flight checks before a withdrawal is submitted.

Every Inserted event is re-hashed locally; if the recomputed root differs
from the event's root the indexer stops accepting events.
"""

from __future__ import annotations
import logging
from typing import List, Optional, Union, TYPE_CHECKING

from zkvoid.constants import MERKLE_TREE_HEIGHT, ROOT_HISTORY_SIZE
from zkvoid.core.types import Inserted, MembershipPath, Spent, WithdrawalRequest
from zkvoid.crypto.hasher import Hasher, get_hasher
from zkvoid.crypto.merkle import MerkleAccumulator
from zkvoid.errors import AlreadySpentError, IndexerDivergenceError, RejectionReason
from zkvoid.indexer.storage import IndexerStore
from zkvoid.state.nullifiers import NullifierRegistry
from zkvoid.state.roots import RootHistory

if TYPE_CHECKING:
    from zkvoid.node.config import MixerConfig
    from zkvoid.state.pool import MixerPool

logger = logging.getLogger(__name__)

Event = Union[Inserted, Spent]


class MixerIndexer:
    """
    Event-driven replica of pool state.

    apply() is synchronous so it can be attached directly to a pool feed.
    When a store is configured, applied events are queued and written by
    flush().
    """

    def __init__(
        self,
        height: int = MERKLE_TREE_HEIGHT,
        root_history_size: int = ROOT_HISTORY_SIZE,
        hasher: Optional[Hasher] = None,
        store: Optional[IndexerStore] = None,
    ):
        self.hasher = hasher if hasher is not None else get_hasher()
        self.store = store

        self._accumulator = MerkleAccumulator(height, self.hasher)
        self._roots = RootHistory(root_history_size)
        self._nullifiers = NullifierRegistry()
        self._roots.record(self._accumulator.root)

        self._pending: List[Event] = []
        self._genesis_pending = store is not None
        self._diverged: Optional[str] = None
        self._pool: Optional["MixerPool"] = None

    # ==========================================================================
    # REPLICATION
    # ==========================================================================

    @property
    def diverged(self) -> bool:
        return self._diverged is not None

    def _diverge(self, message: str, index: Optional[int] = None) -> None:
        self._diverged = message
        logger.error(f"Indexer diverged: {message}")
        raise IndexerDivergenceError(message, index=index)

    def apply(self, event: Event) -> None:
        """
        Apply one event.

        Raises:
            IndexerDivergenceError: Index gap, root mismatch, double spend,
                or the indexer already diverged
        """
        if self._diverged is not None:
            raise IndexerDivergenceError(f"Indexer halted: {self._diverged}")

        if isinstance(event, Inserted):
            self._apply_inserted(event)
        elif isinstance(event, Spent):
            self._apply_spent(event)
        else:
            raise TypeError(f"Unknown event type: {type(event).__name__}")

        if self.store is not None:
            self._pending.append(event)

    def _apply_inserted(self, event: Inserted) -> None:
        expected = self._accumulator.leaf_count
        if event.index != expected:
            self._diverge(f"Leaf index gap: got {event.index}, expected {expected}", event.index)

        _, root = self._accumulator.insert(event.leaf)
        if root != event.root:
            self._diverge(
                f"Root mismatch at index {event.index}: computed {root:#x}, event {event.root:#x}",
                event.index,
            )
        self._roots.record(root)
        logger.debug(f"Indexed leaf {event.index}")

    def _apply_spent(self, event: Spent) -> None:
        try:
            self._nullifiers.mark_spent(event.nullifier_hash)
        except AlreadySpentError:
            self._diverge(f"Nullifier {event.nullifier_hash:#x} spent twice")
        logger.debug(f"Indexed spent nullifier {event.nullifier_hash:#x}")

    # ==========================================================================
    # PRE-FLIGHT
    # ==========================================================================

    def preflight(self, request: WithdrawalRequest) -> Optional[RejectionReason]:
        """
        Predict the gate's root and nullifier verdict.

        Returns:
            The rejection reason the gate would give, or None
        """
        if not self._roots.is_valid(request.root):
            return RejectionReason.UNKNOWN_ROOT
        if self._nullifiers.is_spent(request.nullifier_hash):
            return RejectionReason.ALREADY_SPENT
        return None

    @property
    def root(self) -> int:
        return self._accumulator.root

    @property
    def accumulator(self) -> MerkleAccumulator:
        return self._accumulator

    def is_known_root(self, root: int) -> bool:
        return self._roots.is_valid(root)

    def is_spent(self, nullifier_hash: int) -> bool:
        return self._nullifiers.is_spent(nullifier_hash)

    def membership_path(self, index: int) -> MembershipPath:
        return self._accumulator.membership_path(index)

    # ==========================================================================
    # FEED / PERSISTENCE
    # ==========================================================================

    def attach(self, pool: "MixerPool") -> None:
        """
        Follow a pool's event feed.

        The pool must not have mutated yet, or the indexer must already
        hold the same prefix of events.
        """
        if pool.accumulator.leaf_count != self._accumulator.leaf_count:
            raise IndexerDivergenceError(
                f"Pool has {pool.accumulator.leaf_count} leaves, indexer has "
                f"{self._accumulator.leaf_count}"
            )
        pool.subscribe(self.apply)
        self._pool = pool
        logger.info("Indexer attached to pool feed")

    def detach(self) -> None:
        if self._pool is not None:
            self._pool.unsubscribe(self.apply)
            self._pool = None

    async def flush(self) -> int:
        """
        Write queued events to the store.

        Returns:
            Number of events written
        """
        if self.store is None:
            return 0

        if self._genesis_pending:
            if await self.store.leaf_count() == 0 and not await self.store.load_roots():
                await self.store.add_root(self._roots.roots()[0])
            self._genesis_pending = False

        written = 0
        while self._pending:
            event = self._pending[0]
            if isinstance(event, Inserted):
                await self.store.append_leaf(event.index, event.leaf, event.root)
                await self.store.add_root(event.root)
            else:
                await self.store.add_nullifier(
                    event.nullifier_hash, event.recipient, event.relayer, event.fee
                )
            self._pending.pop(0)
            written += 1

        if written:
            logger.debug(f"Flushed {written} events to indexer store")
        return written

    async def restore(self, store: IndexerStore) -> int:
        """
        Rebuild state from a store by replaying its leaves and nullifiers.

        Must be called on a fresh indexer.

        Returns:
            Number of leaves replayed

        Raises:
            IndexerDivergenceError: Stored roots do not match recomputation
        """
        if self._accumulator.leaf_count or len(self._nullifiers):
            raise IndexerDivergenceError("restore() requires an empty indexer")

        leaves = await store.load_leaves()
        for index, leaf, root in leaves:
            self._apply_inserted(Inserted(index=index, leaf=leaf, root=root))

        for nullifier_hash in await store.load_nullifiers():
            self._apply_spent(Spent(nullifier_hash=nullifier_hash))

        stored_roots = await store.load_roots()
        if stored_roots and stored_roots[-1] != self._accumulator.root:
            self._diverge(
                f"Stored latest root {stored_roots[-1]:#x} differs from replayed root "
                f"{self._accumulator.root:#x}"
            )

        self._genesis_pending = self.store is not None and not stored_roots
        logger.info(
            f"Indexer restored {len(leaves)} leaves and {len(self._nullifiers)} nullifiers"
        )
        return len(leaves)

    def get_statistics(self) -> dict:
        return {
            "leaf_count": self._accumulator.leaf_count,
            "root": f"{self.root:#x}",
            "root_history": len(self._roots),
            "spent_count": len(self._nullifiers),
            "pending_writes": len(self._pending),
            "diverged": self.diverged,
        }


async def open_indexer(config: "MixerConfig", hasher: Optional[Hasher] = None) -> MixerIndexer:
    """
    Build an indexer for config.

    When storage is enabled the store at config.db_path is opened (the
    data directory is created if needed) and its contents are replayed.
    The caller owns the store and closes it.

    Raises:
        IndexerDivergenceError: Stored state does not replay cleanly
    """
    store = None
    if config.storage.enabled:
        config.data_path.mkdir(parents=True, exist_ok=True)
        store = IndexerStore(str(config.db_path))
        await store.open()

    indexer = MixerIndexer(
        height=config.tree.height,
        root_history_size=config.tree.root_history_size,
        hasher=hasher if hasher is not None else get_hasher(config.tree.hasher),
        store=store,
    )
    if store is not None:
        try:
            await indexer.restore(store)
        except IndexerDivergenceError:
            await store.close()
            raise
    return indexer
