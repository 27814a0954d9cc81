"""Tests for the identity package model and display ids."""

import pytest

from uniqid.crypto.canonical import canonical_text
from uniqid.crypto.commitment_builder import build_commitment
from uniqid.crypto.field_hash import to_hex32
from uniqid.errors import CanonicalEncodingError, InvalidPackageError, MissingFieldError
from uniqid.models.commitment import RegistrationState
from uniqid.models.package import (
    REQUIRED_FIELDS,
    IdentityPackage,
    format_display_id,
    parse_display_id,
)


SALT = bytes.fromhex("00112233445566778899aabbccddeeff")
TIMESTAMP = "2026-10-19T10:00:00Z"


def _package(numeric_id=7) -> IdentityPackage:
    commitment = build_commitment("user@example.com", "Str0ng!Pass")
    return IdentityPackage.assemble(
        commitment, SALT, TIMESTAMP, "0xSigner", "0x" + "ab" * 65, numeric_id,
    )


class TestDisplayId:
    def test_format(self) -> None:
        assert format_display_id(1) == "ID-000001"
        assert format_display_id(123) == "ID-000123"
        assert format_display_id(1234567) == "ID-1234567"

    def test_format_rejects_non_positive(self) -> None:
        with pytest.raises(ValueError):
            format_display_id(0)

    def test_parse(self) -> None:
        assert parse_display_id("ID-000123") == 123
        assert parse_display_id(" ID-000001 ") == 1
        assert parse_display_id("UNIQ-000042") == 42

    @pytest.mark.parametrize("bad", [None, "", "ID-", "ID-000000", "ID--1", "ID-12a", "000001", "XX-000001", 5])
    def test_parse_rejects_malformed(self, bad) -> None:
        assert parse_display_id(bad) is None


class TestIdentityPackage:
    def test_assemble(self) -> None:
        package = _package()
        assert package.uniq_id == "ID-000007"
        assert package.numeric_id == 7
        assert package.root == package.leaf
        assert package.proof == ()
        assert package.salt == "0x00112233445566778899aabbccddeeff"

    def test_unresolved_id(self) -> None:
        package = _package(numeric_id=None)
        assert package.uniq_id is None
        assert package.numeric_id is None
        assert package.to_dict()["uniq_id"] is None

    def test_decimal_mirrors(self) -> None:
        data = _package().to_dict()
        for name in ("email_hash", "parahash", "root", "leaf"):
            assert int(data[name], 16) == int(data[f"{name}_dec"])

    def test_dict_round_trip(self) -> None:
        package = _package()
        assert IdentityPackage.from_dict(package.to_dict()) == package

    def test_registration_state_matches_signed_fields(self) -> None:
        commitment = build_commitment("user@example.com", "Str0ng!Pass")
        expected = RegistrationState.from_commitment(commitment, SALT, TIMESTAMP)
        assert _package().registration_state() == expected
        assert canonical_text(_package().registration_state()) == canonical_text(expected)

    @pytest.mark.parametrize("name", REQUIRED_FIELDS)
    def test_missing_field(self, name: str) -> None:
        data = _package().to_dict()
        del data[name]
        with pytest.raises(MissingFieldError) as info:
            IdentityPackage.from_dict(data)
        assert info.value.field_name == name

    def test_mirror_mismatch_rejected(self) -> None:
        data = _package().to_dict()
        data["leaf_dec"] = "1"
        with pytest.raises(InvalidPackageError):
            IdentityPackage.from_dict(data)

    def test_mirrors_optional(self) -> None:
        data = _package().to_dict()
        for name in ("email_hash_dec", "parahash_dec", "root_dec", "leaf_dec", "leaf_index"):
            del data[name]
        assert IdentityPackage.from_dict(data) == _package()

    @pytest.mark.parametrize("field_name,value", [
        ("proof", "0x01"),
        ("proof", [1, 2]),
        ("leaf", 5),
        ("leaf_index", -1),
        ("leaf_index", True),
    ])
    def test_wrong_shapes_rejected(self, field_name: str, value) -> None:
        data = _package().to_dict()
        data[field_name] = value
        with pytest.raises(InvalidPackageError):
            IdentityPackage.from_dict(data)

    def test_not_a_dict(self) -> None:
        with pytest.raises(InvalidPackageError):
            IdentityPackage.from_dict(["nope"])

    def test_unrepresentable_field(self) -> None:
        data = _package().to_dict()
        data["leaf"] = "0xnothex"
        del data["leaf_dec"]
        package = IdentityPackage.from_dict(data)
        with pytest.raises(CanonicalEncodingError):
            package.registration_state()

    def test_hex_case_does_not_change_state(self) -> None:
        data = _package().to_dict()
        data["leaf"] = data["leaf"].upper().replace("0X", "0x")
        assert IdentityPackage.from_dict(data).registration_state().leaf == int(to_hex32(data["leaf"]), 16)
