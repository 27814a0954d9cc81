"""Tests for EIP-191 payload signing and signer recovery."""

import pytest

from uniqid.crypto.signing import PayloadSigner, recover_signer, signed_by
from uniqid.errors import SignatureError


# Well-known local development key (hardhat/anvil account #0). Never funded on a live network.
DEV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"


@pytest.fixture
def signer() -> PayloadSigner:
    return PayloadSigner.from_key(DEV_KEY)


class TestPayloadSigner:
    def test_address(self, signer: PayloadSigner) -> None:
        assert signer.address == DEV_ADDRESS

    def test_signature_shape(self, signer: PayloadSigner) -> None:
        signed = signer.sign("payload")
        assert signed.signature.startswith("0x")
        assert len(signed.signature) == 2 + 130
        assert signed.signer == DEV_ADDRESS
        assert signed.payload == "payload"

    def test_round_trip(self, signer: PayloadSigner) -> None:
        signed = signer.sign("a|b|c")
        assert recover_signer("a|b|c", signed.signature) == DEV_ADDRESS
        assert signed_by("a|b|c", signed.signature, DEV_ADDRESS.lower())

    def test_encoded_and_text_payloads_agree(self, signer: PayloadSigner) -> None:
        signed = signer.sign("ü|b|c".encode("utf-8"))
        assert signed.payload == "ü|b|c"
        assert signed_by("ü|b|c", signed.signature, DEV_ADDRESS)
        assert signed_by("ü|b|c".encode("utf-8"), signed.signature, DEV_ADDRESS)
        assert signed.signature == signer.sign("ü|b|c").signature

    def test_tampered_payload_recovers_other_address(self, signer: PayloadSigner) -> None:
        signed = signer.sign("a|b|c")
        assert not signed_by("a|b|d", signed.signature, DEV_ADDRESS)

    def test_other_key_not_accepted(self) -> None:
        signed = PayloadSigner.from_key(OTHER_KEY).sign("x")
        assert not signed_by("x", signed.signature, DEV_ADDRESS)

    def test_invalid_key_does_not_leak(self) -> None:
        with pytest.raises(SignatureError) as info:
            PayloadSigner.from_key("0xnot-a-key")
        assert "not-a-key" not in str(info.value)
        assert info.value.__cause__ is None


class TestRecoverSigner:
    @pytest.mark.parametrize("bad", ["", "0x", "0xzz", "0x" + "00" * 64, "0x" + "00" * 66])
    def test_malformed_signature(self, bad: str) -> None:
        with pytest.raises(SignatureError):
            recover_signer("payload", bad)

    def test_unrecoverable_signature(self) -> None:
        with pytest.raises(SignatureError):
            recover_signer("payload", "0x" + "11" * 64 + "05")

    def test_signed_by_false_on_garbage(self) -> None:
        assert not signed_by("payload", "garbage", DEV_ADDRESS)
