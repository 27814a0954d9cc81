"""End-to-end: register through the service facade, then log in."""

import json

import pytest

from uniqid.config import Settings
from uniqid.crypto.commitment_builder import leaf
from uniqid.crypto.field_hash import field_hash, to_hex32
from uniqid.identity.email import OutboxEmailSender
from uniqid.ledger import InMemoryLedger
from uniqid.service import UniqIdService


DEV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
EMAIL = "user@example.com"
PASSPHRASE = "Str0ng!Pass"


def _settings(**overrides) -> Settings:
    fields = dict(
        private_key=DEV_KEY,
        jwt_secret="end-to-end-secret-that-is-32-bytes-or-more",
        expected_signer=DEV_ADDRESS,
    )
    fields.update(overrides)
    return Settings(**fields)


@pytest.fixture
def outbox() -> OutboxEmailSender:
    return OutboxEmailSender()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def service(ledger: InMemoryLedger, outbox: OutboxEmailSender) -> UniqIdService:
    return UniqIdService(_settings(), ledger=ledger, email_sender=outbox)


def _register(service: UniqIdService, outbox: OutboxEmailSender) -> dict:
    assert service.register_email(EMAIL).success
    token = outbox.last_token_for(EMAIL)
    assert token is not None
    assert service.verify_email(token).data["email"] == EMAIL
    result = service.complete_registration(token, PASSPHRASE)
    assert result.success, result.errors
    return result.data["package"]


class TestEndToEnd:
    def test_fresh_ledger_scenario(
        self, service: UniqIdService, outbox: OutboxEmailSender, ledger: InMemoryLedger,
    ) -> None:
        package = _register(service, outbox)

        h1 = field_hash(EMAIL)
        h2 = field_hash(PASSPHRASE)
        expected_leaf = leaf(h1, h2)
        assert package["email_hash"] == to_hex32(h1)
        assert package["parahash"] == to_hex32(h2)
        assert package["leaf"] == to_hex32(expected_leaf)
        assert package["root"] == package["leaf"]
        assert package["proof"] == []
        assert package["uniq_id"] == "ID-000001"
        assert package["signer"] == DEV_ADDRESS

        login = service.login(package)
        assert login.success, login.errors
        assert login.data["uniq_num"] == 1
        assert login.data["uniq_id"] == "ID-000001"
        assert login.data["token"]

    def test_never_anchored_id_is_invalid_before_proof_check(
        self, service: UniqIdService, outbox: OutboxEmailSender, ledger: InMemoryLedger, monkeypatch,
    ) -> None:
        package = _register(service, outbox)
        package["uniq_id"] = "ID-000002"

        def proof_check_must_not_run(*args, **kwargs):
            raise AssertionError("proof checked for an unassigned id")

        monkeypatch.setattr(ledger, "verify_user", proof_check_must_not_run)
        result = service.login(package)
        assert not result.success
        assert result.data["reason"] == "invalid_id"
        assert result.errors == ["Invalid UNIQ ID."]

    def test_weak_passphrase_negative_scenario(
        self, service: UniqIdService, outbox: OutboxEmailSender,
    ) -> None:
        service.register_email(EMAIL)
        token = outbox.last_token_for(EMAIL)
        result = service.complete_registration(token, "weak")
        assert not result.success
        assert result.errors == ["Passphrase needs: length, uppercase, digit, symbol"]

    def test_package_survives_json(
        self, service: UniqIdService, outbox: OutboxEmailSender,
    ) -> None:
        package = json.loads(json.dumps(_register(service, outbox)))
        assert service.check_package(package).success
        assert service.login(package).success
