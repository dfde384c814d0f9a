"""
zkvoid Merkle Accumulator

Fixed-height, append-only binary Merkle tree of commitments.

Pair ordering is POSITIONAL: at every level the node with the even index is
the left input and its odd-index neighbour the right input. Values are never
sorted. A missing right sibling is the zero value of that level, not zero
itself.
"""

from __future__ import annotations
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from zkvoid.constants import MERKLE_MAX_HEIGHT, ZERO_LEAF
from zkvoid.core.types import MembershipPath, is_field_element
from zkvoid.crypto.hasher import Hasher
from zkvoid.errors import CapacityExceededError, InvalidCommitmentError

logger = logging.getLogger(__name__)


def _check_height(height: int) -> None:
    if not 1 <= height <= MERKLE_MAX_HEIGHT:
        raise ValueError(f"Tree height must be in 1..{MERKLE_MAX_HEIGHT}, got {height}")


def compute_zero_values(height: int, hasher: Hasher) -> Tuple[int, ...]:
    """
    Padding values for empty subtrees.

    zero_values[0] is the empty leaf; zero_values[i] = H(z[i-1], z[i-1]).
    zero_values[height] is the root of the empty tree.

    Args:
        height: Tree height
        hasher: Pair hasher

    Returns:
        Tuple of height + 1 values
    """
    zeros = [ZERO_LEAF]
    for _ in range(height):
        zeros.append(hasher.hash([zeros[-1], zeros[-1]]))
    return tuple(zeros)


def compute_root(leaves: Sequence[int], height: int, hasher: Hasher) -> int:
    """
    Compute the root of the ordered leaf sequence.

    Pure function of (leaves, height, hasher). Levels are padded with the
    per-level zero value when a right sibling does not exist.

    Raises:
        CapacityExceededError: More than 2^height leaves
    """
    _check_height(height)
    capacity = 1 << height
    if len(leaves) > capacity:
        raise CapacityExceededError(capacity)

    zeros = compute_zero_values(height, hasher)
    level = list(leaves)

    for depth in range(height):
        if not level:
            return zeros[height]
        if len(level) % 2 == 1:
            level.append(zeros[depth])
        level = [
            hasher.hash([level[i], level[i + 1]])
            for i in range(0, len(level), 2)
        ]

    return level[0] if level else zeros[height]


def compute_root_from_path(
    leaf: int,
    siblings: Sequence[int],
    path_bits: Sequence[int],
    hasher: Hasher,
) -> int:
    """
    Walk a membership path up to the root.

    path_bits[level] == 0 means the current node is the left child.
    """
    if len(siblings) != len(path_bits):
        raise ValueError(
            f"Path length mismatch: {len(siblings)} siblings, {len(path_bits)} bits"
        )

    current = leaf
    for sibling, bit in zip(siblings, path_bits):
        if bit == 0:
            current = hasher.hash([current, sibling])
        elif bit == 1:
            current = hasher.hash([sibling, current])
        else:
            raise ValueError(f"Path bit must be 0 or 1, got {bit}")
    return current


def verify_membership(path: MembershipPath, root: int, hasher: Hasher) -> bool:
    """Check that a membership path recomputes to root."""
    return compute_root_from_path(path.leaf, path.siblings, path.path_bits, hasher) == root


class MerkleAccumulator:
    """
    Incremental Merkle accumulator.

    Keeps every populated node per level so that inserts cost O(height)
    hashes and membership paths are read directly.

    Not thread-safe: callers serialize mutation (see MixerPool).
    """

    def __init__(self, height: int, hasher: Hasher):
        _check_height(height)
        self._height = height
        self._hasher = hasher
        self._zeros = compute_zero_values(height, hasher)
        # _levels[0] are the leaves, _levels[height] holds the root once populated
        self._levels: List[List[int]] = [[] for _ in range(height + 1)]
        self._index: Dict[int, int] = {}
        self._root = self._zeros[height]

    @property
    def height(self) -> int:
        return self._height

    @property
    def hasher(self) -> Hasher:
        return self._hasher

    @property
    def root(self) -> int:
        """Current root. Empty tree root is zero_values[height]."""
        return self._root

    @property
    def leaf_count(self) -> int:
        return len(self._levels[0])

    @property
    def capacity(self) -> int:
        return 1 << self._height

    @property
    def is_full(self) -> bool:
        return self.leaf_count >= self.capacity

    @property
    def zero_values(self) -> Tuple[int, ...]:
        return self._zeros

    @property
    def leaves(self) -> List[int]:
        """Copy of the ordered leaf sequence."""
        return list(self._levels[0])

    def insert(self, leaf: int) -> Tuple[int, int]:
        """
        Append a leaf at the next free index.

        Args:
            leaf: Field element

        Returns:
            (index, new_root)

        Raises:
            CapacityExceededError: Tree already holds 2^height leaves
            InvalidCommitmentError: Leaf is not a field element
        """
        if self.is_full:
            logger.error(f"Merkle tree full at {self.capacity} leaves")
            raise CapacityExceededError(self.capacity)
        if not is_field_element(leaf):
            raise InvalidCommitmentError(leaf, "not a field element")

        index = self.leaf_count
        self._levels[0].append(leaf)
        self._index.setdefault(leaf, index)

        node = leaf
        position = index
        for depth in range(self._height):
            level = self._levels[depth]
            if position % 2 == 0:
                left, right = node, self._zeros[depth]
            else:
                left, right = level[position - 1], node
            node = self._hasher.hash([left, right])
            position //= 2

            parent = self._levels[depth + 1]
            if position < len(parent):
                parent[position] = node
            else:
                parent.append(node)

        self._root = node
        logger.debug(f"Inserted leaf {leaf:#x} at index {index}, root={node:#x}")
        return index, node

    def index_of(self, leaf: int) -> Optional[int]:
        """Index of the first occurrence of leaf, or None."""
        return self._index.get(leaf)

    def __contains__(self, leaf: int) -> bool:
        return leaf in self._index

    def __len__(self) -> int:
        return self.leaf_count

    def membership_path(self, index: int) -> MembershipPath:
        """
        Build the witness for the leaf at index.

        Unpopulated siblings are the zero value of their level.

        Raises:
            IndexError: No leaf at index
        """
        if not 0 <= index < self.leaf_count:
            raise IndexError(f"No leaf at index {index} (leaf count {self.leaf_count})")

        siblings = []
        path_bits = []
        position = index
        for depth in range(self._height):
            level = self._levels[depth]
            sibling_position = position ^ 1
            if sibling_position < len(level):
                siblings.append(level[sibling_position])
            else:
                siblings.append(self._zeros[depth])
            path_bits.append(position & 1)
            position //= 2

        return MembershipPath(
            leaf=self._levels[0][index],
            index=index,
            siblings=tuple(siblings),
            path_bits=tuple(path_bits),
        )

    def get_statistics(self) -> dict:
        return {
            "height": self._height,
            "leaf_count": self.leaf_count,
            "capacity": self.capacity,
            "root": f"{self._root:#x}",
        }
