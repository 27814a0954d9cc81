"""Tests for field hashing and FieldValue representation."""

import pytest
from web3 import Web3

from uniqid.crypto.field_hash import (
    FIELD_MODULUS,
    field_hash,
    hash_pair,
    parse_field_value,
    require_field_value,
    to_bytes32,
    to_decimal,
    to_hex32,
)
from uniqid.crypto.poseidon import get_engine
from uniqid.errors import FieldRangeError


class TestFieldHash:
    def test_deterministic(self) -> None:
        assert field_hash("user@example.com") == field_hash("user@example.com")

    def test_empty_string_known_answer(self) -> None:
        # keccak256("") is a fixed, widely published digest.
        empty_keccak = 0xC5D2460186F7233C927E7DB2DCC703C0E500B653CA82273B7BFAD8045D85A470
        assert field_hash("") == get_engine().hash([empty_keccak])

    def test_email_hash_is_poseidon_of_keccak(self) -> None:
        digest = int.from_bytes(bytes(Web3.keccak(text="user@example.com")), "big")
        assert field_hash("user@example.com") == get_engine().hash([digest])
        assert field_hash("user@example.com") == get_engine().hash([digest % FIELD_MODULUS])

    def test_in_field(self) -> None:
        for text in ("", "a", "Str0ng!Pass", "ünïcødé ✓", "x" * 10_000):
            assert 0 <= field_hash(text) < FIELD_MODULUS

    def test_empty_string_accepted(self) -> None:
        assert isinstance(field_hash(""), int)

    def test_distinct_texts_distinct_hashes(self) -> None:
        assert field_hash("user@example.com") != field_hash("User@example.com")
        assert field_hash("a") != field_hash("b")


class TestHashPair:
    def test_order_sensitive(self) -> None:
        a, b = field_hash("a"), field_hash("b")
        assert hash_pair(a, b) != hash_pair(b, a)

    def test_rejects_out_of_range(self) -> None:
        with pytest.raises(FieldRangeError):
            hash_pair(FIELD_MODULUS, 1)
        with pytest.raises(FieldRangeError):
            hash_pair(-1, 1)


class TestRequireFieldValue:
    def test_bounds(self) -> None:
        assert require_field_value(0) == 0
        assert require_field_value(FIELD_MODULUS - 1) == FIELD_MODULUS - 1
        with pytest.raises(FieldRangeError):
            require_field_value(FIELD_MODULUS)

    def test_rejects_non_int(self) -> None:
        with pytest.raises(FieldRangeError):
            require_field_value(True)
        with pytest.raises(FieldRangeError):
            require_field_value("1")  # type: ignore[arg-type]


class TestRepresentation:
    def test_hex_is_fixed_width_lower_case(self) -> None:
        text = to_hex32(255)
        assert text == "0x" + "0" * 62 + "ff"
        assert len(text) == 66

    def test_parse_accepts_case_and_short_padding(self) -> None:
        assert parse_field_value("0xFF") == 255
        assert parse_field_value("0X00ff") == 255
        assert to_hex32("0xABC") == to_hex32("0x0000abc")

    def test_parse_decimal_string(self) -> None:
        assert parse_field_value("12345") == 12345
        assert to_decimal("0x3039") == "12345"

    def test_parse_bytes32(self) -> None:
        assert parse_field_value(to_bytes32(7)) == 7
        with pytest.raises(FieldRangeError):
            parse_field_value(b"\x01\x02")

    def test_out_of_range_never_reduced(self) -> None:
        with pytest.raises(FieldRangeError):
            parse_field_value(str(FIELD_MODULUS))
        with pytest.raises(FieldRangeError):
            parse_field_value("0x" + "f" * 64)

    @pytest.mark.parametrize("bad", ["", "0x", "0xzz", "-5", "12a", "0x" + "1" * 65, "١٢"])
    def test_malformed_rejected(self, bad: str) -> None:
        with pytest.raises(FieldRangeError):
            parse_field_value(bad)

    def test_decimal_mirror_matches_hex(self) -> None:
        value = field_hash("mirror")
        assert int(to_hex32(value), 16) == int(to_decimal(value))
