"""Field hashing: map text into the commitment field.

fieldHash(text) = Poseidon(keccak256(utf8(text)))

keccak256 gives a fixed-size collision-resistant digest of arbitrary
input; Poseidon then folds that 256-bit integer into the BN254 scalar
field as a single element. The result is a FieldValue that can safely
enter the commitment builder.

FieldValues cross serialisation boundaries as 0x-prefixed, 32-byte,
lower-case hex, and as decimal strings for circuit tooling. Parsing is
strict: out-of-range values are rejected, never reduced a second time.
"""

from __future__ import annotations

from typing import Optional, Union

from web3 import Web3

from uniqid.crypto.poseidon import BN254_SCALAR_FIELD, PoseidonEngine, get_engine
from uniqid.errors import FieldRangeError


FIELD_MODULUS = BN254_SCALAR_FIELD
FIELD_BYTES = 32

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

FieldLike = Union[int, str, bytes]


def field_hash(text: str, engine: Optional[PoseidonEngine] = None) -> int:
    """Hash UTF-8 text to a FieldValue. Accepts the empty string."""
    engine = engine or get_engine()
    digest = Web3.keccak(text.encode("utf-8"))
    wide = int.from_bytes(bytes(digest), "big")
    return engine.hash([wide])


def hash_pair(left: int, right: int, engine: Optional[PoseidonEngine] = None) -> int:
    """Two-input field hash. Order-sensitive: hash_pair(a, b) != hash_pair(b, a)."""
    engine = engine or get_engine()
    return engine.hash([require_field_value(left), require_field_value(right)])


# ---------------------------------------------------------------------------
# FieldValue representation
# ---------------------------------------------------------------------------

def require_field_value(value: int) -> int:
    """Return *value* unchanged if it is a field element, else raise."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise FieldRangeError(f"Field value must be an int, got {type(value).__name__}")
    if value < 0 or value >= FIELD_MODULUS:
        raise FieldRangeError("Value is outside the BN254 scalar field")
    return value


def parse_field_value(value: FieldLike) -> int:
    """Parse an int, 0x-hex string, decimal string or 32-byte value.

    Strings starting with ``0x`` are hex (any case, any padding up to 32
    bytes); other strings must be decimal.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != FIELD_BYTES:
            raise FieldRangeError(f"Expected {FIELD_BYTES} bytes, got {len(value)}")
        return require_field_value(int.from_bytes(value, "big"))

    if isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            digits = text[2:]
            if not digits or len(digits) > FIELD_BYTES * 2:
                raise FieldRangeError("Hex field value has invalid length")
            if any(c not in _HEX_DIGITS for c in digits):
                raise FieldRangeError("Field value is not valid hex")
            return require_field_value(int(digits, 16))
        if not (text.isascii() and text.isdigit()):
            raise FieldRangeError("Decimal field value must contain only digits")
        return require_field_value(int(text, 10))

    return require_field_value(value)


def to_hex32(value: FieldLike) -> str:
    """0x + 64 lower-case hex characters."""
    return "0x" + format(parse_field_value(value), "064x")


def to_bytes32(value: FieldLike) -> bytes:
    return parse_field_value(value).to_bytes(FIELD_BYTES, "big")


def to_decimal(value: FieldLike) -> str:
    return str(parse_field_value(value))
