"""Commitment builder: turns identity secrets into a leaf and root.

    email_hash = fieldHash(normalised email)
    para_hash  = fieldHash(passphrase)
    leaf       = Poseidon(email_hash, para_hash)
    root       = Merkle root over the batch of leaves

The builder is deterministic: given the same inputs, it produces the
same commitment. Salt is deliberately not an input; two registrations
of the same (email, passphrase) pair produce the same leaf.
"""

from __future__ import annotations

from typing import Optional

from uniqid.crypto.field_hash import field_hash, hash_pair
from uniqid.crypto.merkle import MerkleTree
from uniqid.crypto.poseidon import PoseidonEngine
from uniqid.identity.email import normalize_email
from uniqid.models.commitment import Commitment


def leaf(email_hash: int, para_hash: int, engine: Optional[PoseidonEngine] = None) -> int:
    """Leaf commitment. Swapping the two inputs yields a different leaf."""
    return hash_pair(email_hash, para_hash, engine)


class CommitmentBuilder:
    """Builds commitments for one or more holders in a single tree.

    Usage:
        builder = CommitmentBuilder()
        builder.add_identity("user@example.com", "Str0ng!Pass")
        commitments = builder.build()
    """

    def __init__(self, engine: Optional[PoseidonEngine] = None) -> None:
        self._engine = engine
        self._pending: list[tuple[int, int]] = []

    def add_identity(self, email: str, passphrase: str) -> int:
        """Hash one holder's secrets and queue the leaf. Returns its index."""
        email_hash = field_hash(normalize_email(email), self._engine)
        para_hash = field_hash(passphrase, self._engine)
        return self.add_field_hashes(email_hash, para_hash)

    def add_field_hashes(self, email_hash: int, para_hash: int) -> int:
        self._pending.append((email_hash, para_hash))
        return len(self._pending) - 1

    def build(self) -> list[Commitment]:
        """Compute every leaf, the shared root and each leaf's proof."""
        if not self._pending:
            raise ValueError("No identities added")

        tree = MerkleTree(self._engine)
        for email_hash, para_hash in self._pending:
            tree.add_leaf(leaf(email_hash, para_hash, self._engine))
        root = tree.compute_root()

        commitments: list[Commitment] = []
        for index, (email_hash, para_hash) in enumerate(self._pending):
            proof = tree.inclusion_proof(index)
            commitments.append(Commitment(
                email_hash=email_hash,
                para_hash=para_hash,
                leaf=proof.leaf,
                root=root,
                proof=proof.siblings,
                leaf_index=index,
            ))
        return commitments


def build_commitment(
    email: str,
    passphrase: str,
    engine: Optional[PoseidonEngine] = None,
) -> Commitment:
    """Single-holder commitment: root == leaf, empty proof."""
    builder = CommitmentBuilder(engine)
    builder.add_identity(email, passphrase)
    return builder.build()[0]
