"""Binary Merkle tree over field values, using the Poseidon pair hash.

The tree is an arena of levels: level 0 holds the leaves in insertion
order, each higher level holds the parents of the one below, and the last
level holds the root. Nodes are addressed by (level, index), never by
pointer.

Conventions (shared with the ledger-side verifier, bit for bit):
- Leaves are NOT sorted. Position is part of the commitment.
- The left operand of every parent is the node with the lower index.
- A lone node at the end of an odd-sized level is paired with itself.
- A single-leaf tree has root == leaf and an empty proof.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from uniqid.crypto.field_hash import hash_pair, require_field_value
from uniqid.crypto.poseidon import PoseidonEngine


@dataclass(frozen=True)
class MembershipProof:
    """Sibling path from a leaf to the root.

    ``leaf_index`` encodes the left/right position at every level: bit k
    set means the running node is the right child at level k.
    """
    leaf: int
    siblings: tuple[int, ...]
    leaf_index: int
    root: int

    @property
    def depth(self) -> int:
        return len(self.siblings)


class MerkleTree:
    """A deterministic, index-addressed Merkle tree.

    Usage:
        tree = MerkleTree()
        tree.add_leaf(leaf_a)
        tree.add_leaf(leaf_b)
        root = tree.compute_root()
        proof = tree.inclusion_proof(0)
    """

    def __init__(self, engine: Optional[PoseidonEngine] = None) -> None:
        self._engine = engine
        self._leaves: list[int] = []
        self._levels: list[list[int]] = []
        self._computed = False

    def add_leaf(self, leaf: int) -> int:
        """Add a leaf and return its index. Must be called before compute_root."""
        if self._computed:
            raise RuntimeError("Tree already computed. Create a new tree.")
        self._leaves.append(require_field_value(leaf))
        return len(self._leaves) - 1

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    @property
    def depth(self) -> int:
        if not self._computed:
            raise RuntimeError("Must call compute_root before reading depth")
        return len(self._levels) - 1

    def compute_root(self) -> int:
        """Build every level bottom-up and return the root."""
        if not self._leaves:
            raise ValueError("Cannot compute the root of an empty tree")
        if self._computed:
            return self._levels[-1][0]

        self._levels = [list(self._leaves)]
        current = self._levels[0]
        while len(current) > 1:
            parents: list[int] = []
            for i in range(0, len(current), 2):
                left = current[i]
                right = current[i + 1] if i + 1 < len(current) else left
                parents.append(hash_pair(left, right, self._engine))
            self._levels.append(parents)
            current = parents

        self._computed = True
        return current[0]

    def index_of(self, leaf: int) -> Optional[int]:
        """Index of the first occurrence of *leaf*, or None."""
        try:
            return self._leaves.index(leaf)
        except ValueError:
            return None

    def inclusion_proof(self, index: int) -> MembershipProof:
        """Sibling path for the leaf at *index*. Must call compute_root first."""
        if not self._computed:
            raise RuntimeError("Must call compute_root before generating proofs")
        if not 0 <= index < len(self._leaves):
            raise IndexError(f"Leaf index {index} out of range")

        siblings: list[int] = []
        position = index
        for level in self._levels[:-1]:
            if position % 2 == 0:
                sibling = position + 1
                siblings.append(level[sibling] if sibling < len(level) else level[position])
            else:
                siblings.append(level[position - 1])
            position //= 2

        return MembershipProof(
            leaf=self._leaves[index],
            siblings=tuple(siblings),
            leaf_index=index,
            root=self._levels[-1][0],
        )


def fold_proof(
    leaf: int,
    siblings: Sequence[int],
    leaf_index: int = 0,
    engine: Optional[PoseidonEngine] = None,
) -> int:
    """Recompute a root from a leaf and its sibling path.

    Raises ValueError when *leaf_index* cannot describe a path of this depth.
    """
    if leaf_index < 0 or leaf_index >= (1 << len(siblings)):
        raise ValueError(f"Leaf index {leaf_index} invalid for proof depth {len(siblings)}")

    node = require_field_value(leaf)
    position = leaf_index
    for sibling in siblings:
        if position % 2 == 0:
            node = hash_pair(node, sibling, engine)
        else:
            node = hash_pair(sibling, node, engine)
        position //= 2
    return node


def build_tree(leaves: Sequence[int], engine: Optional[PoseidonEngine] = None) -> tuple[int, list[MembershipProof]]:
    """Root plus one proof per leaf, in leaf order."""
    tree = MerkleTree(engine)
    for leaf in leaves:
        tree.add_leaf(leaf)
    root = tree.compute_root()
    return root, [tree.inclusion_proof(i) for i in range(tree.leaf_count)]
