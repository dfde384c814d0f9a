"""
zkvoid Indexer Storage
SQLite persistence for replicated pool state.

Field elements are stored as 32-byte big-endian BLOBs.
"""

from __future__ import annotations
import logging
import sqlite3
from typing import List, Optional, Tuple

import aiosqlite

from zkvoid.constants import FIELD_BYTES
from zkvoid.errors import AlreadySpentError, IndexerDivergenceError

logger = logging.getLogger(__name__)


# ==============================================================================
# SCHEMA
# ==============================================================================

SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Accumulator leaves in insertion order
CREATE TABLE IF NOT EXISTS leaves (
    leaf_index INTEGER PRIMARY KEY,
    leaf BLOB NOT NULL,
    root BLOB NOT NULL
);

-- Every root observed, genesis included
CREATE TABLE IF NOT EXISTS roots (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    root BLOB NOT NULL
);

-- Spent nullifier hashes
CREATE TABLE IF NOT EXISTS nullifiers (
    nullifier_hash BLOB PRIMARY KEY,
    recipient BLOB NOT NULL,
    relayer BLOB NOT NULL,
    fee TEXT NOT NULL
);
"""


def _encode(value: int) -> bytes:
    return value.to_bytes(FIELD_BYTES, "big")


def _decode(data: bytes) -> int:
    return int.from_bytes(data, "big")


class IndexerStore:
    """
    Async SQLite store.

    Usage:
        async with IndexerStore(path) as store:
            await store.append_leaf(0, leaf, root)
    """

    def __init__(self, path: str = ":memory:"):
        self.path = path
        self._db: Optional[aiosqlite.Connection] = None

    @property
    def is_open(self) -> bool:
        return self._db is not None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("IndexerStore is not open")
        return self._db

    async def open(self) -> None:
        if self._db is not None:
            return
        self._db = await aiosqlite.connect(self.path)
        await self._init_schema()
        logger.info(f"Indexer store opened at {self.path}")

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info(f"Indexer store closed ({self.path})")

    async def __aenter__(self) -> "IndexerStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _init_schema(self) -> None:
        db = self._conn()
        async with db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        ) as cursor:
            exists = await cursor.fetchone() is not None

        if not exists:
            await db.executescript(SCHEMA)
            await db.execute("INSERT INTO schema_version VALUES (?)", (SCHEMA_VERSION,))
            await db.commit()
            logger.info(f"Indexer store initialized with schema version {SCHEMA_VERSION}")
            return

        async with db.execute("SELECT version FROM schema_version") as cursor:
            row = await cursor.fetchone()
        if row is None or row[0] != SCHEMA_VERSION:
            raise IndexerDivergenceError(
                f"Unsupported indexer schema version {row[0] if row else None}"
            )

    # ==========================================================================
    # WRITES
    # ==========================================================================

    async def append_leaf(self, index: int, leaf: int, root: int) -> None:
        """
        Store a leaf at index.

        Raises:
            IndexerDivergenceError: index is not the next free slot
        """
        db = self._conn()
        expected = await self.leaf_count()
        if index != expected:
            raise IndexerDivergenceError(
                f"Stored leaf index gap: got {index}, expected {expected}", index=index
            )
        await db.execute(
            "INSERT INTO leaves (leaf_index, leaf, root) VALUES (?, ?, ?)",
            (index, _encode(leaf), _encode(root)),
        )
        await db.commit()

    async def add_root(self, root: int) -> None:
        db = self._conn()
        await db.execute("INSERT INTO roots (root) VALUES (?)", (_encode(root),))
        await db.commit()

    async def add_nullifier(
        self,
        nullifier_hash: int,
        recipient: int = 0,
        relayer: int = 0,
        fee: int = 0,
    ) -> None:
        """
        Record a spent nullifier hash.

        Raises:
            AlreadySpentError: Already stored
        """
        db = self._conn()
        try:
            await db.execute(
                "INSERT INTO nullifiers (nullifier_hash, recipient, relayer, fee) VALUES (?, ?, ?, ?)",
                (_encode(nullifier_hash), _encode(recipient), _encode(relayer), str(fee)),
            )
        except sqlite3.IntegrityError as e:
            raise AlreadySpentError(nullifier_hash) from e
        await db.commit()

    # ==========================================================================
    # READS
    # ==========================================================================

    async def leaf_count(self) -> int:
        async with self._conn().execute("SELECT COUNT(*) FROM leaves") as cursor:
            row = await cursor.fetchone()
        return row[0]

    async def load_leaves(self) -> List[Tuple[int, int, int]]:
        """All leaves as (index, leaf, root), in index order."""
        async with self._conn().execute(
            "SELECT leaf_index, leaf, root FROM leaves ORDER BY leaf_index"
        ) as cursor:
            rows = await cursor.fetchall()
        return [(row[0], _decode(row[1]), _decode(row[2])) for row in rows]

    async def load_roots(self) -> List[int]:
        """All observed roots, oldest first."""
        async with self._conn().execute("SELECT root FROM roots ORDER BY seq") as cursor:
            rows = await cursor.fetchall()
        return [_decode(row[0]) for row in rows]

    async def load_nullifiers(self) -> List[int]:
        async with self._conn().execute("SELECT nullifier_hash FROM nullifiers") as cursor:
            rows = await cursor.fetchall()
        return [_decode(row[0]) for row in rows]

    async def get_statistics(self) -> dict:
        async with self._conn().execute("SELECT COUNT(*) FROM nullifiers") as cursor:
            spent = (await cursor.fetchone())[0]
        async with self._conn().execute("SELECT COUNT(*) FROM roots") as cursor:
            roots = (await cursor.fetchone())[0]
        return {
            "path": self.path,
            "leaf_count": await self.leaf_count(),
            "root_count": roots,
            "spent_count": spent,
            "schema_version": SCHEMA_VERSION,
        }
