"""The holder-facing identity package.

The package is the only copy of a registration: the system keeps nothing
server-side. It is a flat JSON record; every hash/leaf/root appears as
fixed-width lower-case hex and, for circuit tooling, as a decimal mirror
(``*_dec``). Mirrors carry no independent meaning and must always equal
the hex value read as an unsigned integer.

    {
      "uniq_id": "ID-000001",
      "email_hash": "0x…", "email_hash_dec": "…",
      "parahash": "0x…",   "parahash_dec": "…",
      "salt": "0x…", "timestamp": "2026-10-19T10:00:00Z",
      "root": "0x…", "root_dec": "…",
      "leaf": "0x…", "leaf_dec": "…",
      "proof": [], "leaf_index": 0,
      "signer": "0x…", "signature": "0x…"
    }
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

from uniqid.crypto.canonical import format_salt, parse_salt
from uniqid.crypto.field_hash import parse_field_value, to_decimal, to_hex32
from uniqid.errors import (
    CanonicalEncodingError,
    FieldRangeError,
    InvalidPackageError,
    MissingFieldError,
)
from uniqid.models.commitment import Commitment, RegistrationState


DISPLAY_PREFIX = "ID-"
DISPLAY_WIDTH = 6

# Packages issued before the display prefix was shortened use "UNIQ-".
_DISPLAY_RE = re.compile(r"^(?:ID|UNIQ)-(\d+)$")

REQUIRED_FIELDS = (
    "uniq_id",
    "email_hash",
    "parahash",
    "salt",
    "timestamp",
    "root",
    "leaf",
    "proof",
    "signer",
    "signature",
)

_HASH_FIELDS = ("email_hash", "parahash", "root", "leaf")


def format_display_id(numeric_id: int) -> str:
    if numeric_id < 1:
        raise ValueError(f"Numeric id must be positive, got {numeric_id}")
    return f"{DISPLAY_PREFIX}{numeric_id:0{DISPLAY_WIDTH}d}"


def parse_display_id(display_id: Any) -> Optional[int]:
    """Numeric id from "ID-000123", or None when malformed or non-positive."""
    match = _DISPLAY_RE.match(str(display_id or "").strip())
    if not match:
        return None
    numeric_id = int(match.group(1))
    return numeric_id if numeric_id > 0 else None


@dataclass(frozen=True)
class IdentityPackage:
    uniq_id: Optional[str]
    email_hash: str
    parahash: str
    salt: str
    timestamp: str
    root: str
    leaf: str
    proof: tuple[str, ...]
    signer: Optional[str]
    signature: Optional[str]
    leaf_index: int = 0

    @staticmethod
    def assemble(
        commitment: Commitment,
        salt: bytes,
        timestamp_utc: str,
        signer: Optional[str],
        signature: Optional[str],
        numeric_id: Optional[int] = None,
    ) -> IdentityPackage:
        return IdentityPackage(
            uniq_id=format_display_id(numeric_id) if numeric_id else None,
            email_hash=to_hex32(commitment.email_hash),
            parahash=to_hex32(commitment.para_hash),
            salt=format_salt(salt),
            timestamp=timestamp_utc,
            root=to_hex32(commitment.root),
            leaf=to_hex32(commitment.leaf),
            proof=tuple(to_hex32(s) for s in commitment.proof),
            signer=signer,
            signature=signature,
            leaf_index=commitment.leaf_index,
        )

    @property
    def numeric_id(self) -> Optional[int]:
        return parse_display_id(self.uniq_id)

    def registration_state(self) -> RegistrationState:
        """Re-derive the signed state from the package fields.

        Raises CanonicalEncodingError when a field is not representable.
        """
        try:
            return RegistrationState(
                leaf=parse_field_value(self.leaf),
                email_hash=parse_field_value(self.email_hash),
                para_hash=parse_field_value(self.parahash),
                salt=parse_salt(self.salt),
                timestamp_utc=self.timestamp,
                root=parse_field_value(self.root),
            )
        except FieldRangeError as exc:
            raise CanonicalEncodingError(str(exc)) from exc

    def proof_values(self) -> list[int]:
        return [parse_field_value(s) for s in self.proof]

    def to_dict(self) -> dict[str, Any]:
        return {
            "uniq_id": self.uniq_id,
            "email_hash": self.email_hash,
            "email_hash_dec": to_decimal(self.email_hash),
            "parahash": self.parahash,
            "parahash_dec": to_decimal(self.parahash),
            "salt": self.salt,
            "timestamp": self.timestamp,
            "root": self.root,
            "root_dec": to_decimal(self.root),
            "leaf": self.leaf,
            "leaf_dec": to_decimal(self.leaf),
            "proof": list(self.proof),
            "leaf_index": self.leaf_index,
            "signer": self.signer,
            "signature": self.signature,
        }

    @staticmethod
    def from_dict(data: Any) -> IdentityPackage:
        """Parse a presented package.

        Raises:
            MissingFieldError: a required field is absent or null.
            InvalidPackageError: a field has the wrong shape, or a decimal
                mirror disagrees with its hex value.
        """
        if not isinstance(data, dict):
            raise InvalidPackageError("Package must be a JSON object.")
        for name in REQUIRED_FIELDS:
            if data.get(name) is None:
                raise MissingFieldError(name)

        proof = data["proof"]
        if not isinstance(proof, list) or not all(isinstance(p, str) for p in proof):
            raise InvalidPackageError("Package proof must be a list of hex strings.")

        for name in _HASH_FIELDS + ("salt", "timestamp", "signer", "signature", "uniq_id"):
            if not isinstance(data[name], str):
                raise InvalidPackageError(f"Package field {name} must be a string.")

        for name in _HASH_FIELDS:
            mirror = data.get(f"{name}_dec")
            if mirror is None:
                continue
            try:
                agrees = parse_field_value(str(mirror)) == parse_field_value(data[name])
            except FieldRangeError:
                agrees = False
            if not agrees:
                raise InvalidPackageError(f"Decimal mirror for {name} does not match.")

        leaf_index = data.get("leaf_index", 0)
        if isinstance(leaf_index, bool) or not isinstance(leaf_index, int) or leaf_index < 0:
            raise InvalidPackageError("Package leaf_index must be a non-negative integer.")

        return IdentityPackage(
            uniq_id=data["uniq_id"],
            email_hash=data["email_hash"],
            parahash=data["parahash"],
            salt=data["salt"],
            timestamp=data["timestamp"],
            root=data["root"],
            leaf=data["leaf"],
            proof=tuple(proof),
            signer=data["signer"],
            signature=data["signature"],
            leaf_index=leaf_index,
        )
