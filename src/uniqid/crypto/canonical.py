"""Canonical payload encoder.

The canonical payload is the exact text the anchoring authority signs at
registration and the login path re-derives before recovering the signer.
Both sides must agree byte for byte, so normalisation is part of the
contract:

- field order: leaf | email_hash | parahash | salt | timestamp [| root]
- delimiter: "|"
- hashes: 0x + 64 lower-case hex (re-normalised, so upper-case input or
  missing zero padding encode identically)
- salt: 0x + 32 lower-case hex (16 bytes)
- timestamp: verbatim ISO-8601 string
- root: appended only when known
"""

from __future__ import annotations

from datetime import datetime, timezone

from uniqid.crypto.field_hash import to_hex32
from uniqid.errors import CanonicalEncodingError, FieldRangeError
from uniqid.models.commitment import RegistrationState


DELIMITER = "|"
SALT_BYTES = 16
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def canonical_text(state: RegistrationState) -> str:
    """Join the normalised fields of *state* in canonical order."""
    parts: list[str] = []
    for name, value in state.canonical_fields():
        if name == "salt":
            parts.append(format_salt(value))
        elif name == "timestamp":
            parts.append(_check_timestamp(value))
        else:
            try:
                parts.append(to_hex32(value))
            except FieldRangeError as exc:
                raise CanonicalEncodingError(f"Field {name} is not a valid field value") from exc
    return DELIMITER.join(parts)


def encode_payload(state: RegistrationState) -> bytes:
    """UTF-8 bytes of the canonical text."""
    return canonical_text(state).encode("utf-8")


def format_salt(salt: object) -> str:
    if not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_BYTES:
        raise CanonicalEncodingError(f"Salt must be exactly {SALT_BYTES} bytes")
    return "0x" + bytes(salt).hex()


def parse_salt(text: str) -> bytes:
    """Inverse of format_salt; accepts either hex case."""
    digits = text[2:] if text[:2].lower() == "0x" else text
    try:
        raw = bytes.fromhex(digits)
    except ValueError as exc:
        raise CanonicalEncodingError("Salt is not valid hex") from exc
    if len(raw) != SALT_BYTES:
        raise CanonicalEncodingError(f"Salt must be exactly {SALT_BYTES} bytes")
    return raw


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _check_timestamp(value: object) -> str:
    if not isinstance(value, str) or not value:
        raise CanonicalEncodingError("Timestamp must be a non-empty string")
    if DELIMITER in value:
        raise CanonicalEncodingError("Timestamp must not contain the payload delimiter")
    return value
