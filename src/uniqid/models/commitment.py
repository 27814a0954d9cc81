"""Commitment and registration-state models.

A Commitment is the pure output of hashing an (email, passphrase) pair:
two field hashes, the leaf, and the root with the leaf's proof.

A RegistrationState is everything the anchoring authority signs: the
commitment values plus salt and timestamp. Its canonical field order is
fixed and is the order the canonical encoder serialises.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Commitment:
    """Field hashes, leaf and root for one holder."""
    email_hash: int
    para_hash: int
    leaf: int
    root: int
    proof: tuple[int, ...]
    leaf_index: int = 0


@dataclass(frozen=True)
class RegistrationState:
    """The signed state of one registration attempt.

    Hash values are held as ints; salt as raw bytes; timestamp as the
    exact ISO-8601 string that was signed. ``root`` is None only for a
    pre-anchoring signature variant.
    """
    leaf: int
    email_hash: int
    para_hash: int
    salt: bytes
    timestamp_utc: str
    root: Optional[int] = None

    @staticmethod
    def from_commitment(
        commitment: Commitment,
        salt: bytes,
        timestamp_utc: str,
        include_root: bool = True,
    ) -> RegistrationState:
        return RegistrationState(
            leaf=commitment.leaf,
            email_hash=commitment.email_hash,
            para_hash=commitment.para_hash,
            salt=salt,
            timestamp_utc=timestamp_utc,
            root=commitment.root if include_root else None,
        )

    def canonical_fields(self) -> tuple[tuple[str, object], ...]:
        """Return (name, value) for every present field, in canonical order."""
        fields: tuple[tuple[str, object], ...] = (
            ("leaf", self.leaf),
            ("email_hash", self.email_hash),
            ("parahash", self.para_hash),
            ("salt", self.salt),
            ("timestamp", self.timestamp_utc),
        )
        if self.root is not None:
            fields += (("root", self.root),)
        return fields
