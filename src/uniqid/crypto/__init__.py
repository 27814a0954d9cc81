"""Cryptographic primitives: field hashing, Merkle trees, commitments, signing, anchoring."""

from uniqid.crypto.poseidon import get_engine, init_engine
from uniqid.crypto.field_hash import field_hash, hash_pair
from uniqid.crypto.merkle import MerkleTree, MembershipProof
from uniqid.crypto.commitment_builder import CommitmentBuilder, build_commitment, leaf

__all__ = [
    "CommitmentBuilder",
    "MembershipProof",
    "MerkleTree",
    "build_commitment",
    "field_hash",
    "get_engine",
    "hash_pair",
    "init_engine",
    "leaf",
]
