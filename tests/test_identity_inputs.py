"""Tests for email handling, the passphrase policy and signed claims."""

from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest
import requests

from uniqid.errors import (
    ClaimExpiredError,
    ClaimInvalidError,
    InvalidEmailError,
    WeakPassphraseError,
)
from uniqid.identity.claims import EMAIL_CONFIRMATION, SESSION, ClaimIssuer
from uniqid.identity.email import (
    SENDGRID_URL,
    OutboxEmailSender,
    SendGridEmailSender,
    is_valid_email,
    normalize_email,
    require_valid_email,
    verification_link,
)
from uniqid.identity.passphrase import DEFAULT_POLICY, PassphrasePolicy


SECRET = "test-secret-that-is-at-least-32-bytes-long"


class TestEmail:
    def test_normalise(self) -> None:
        assert normalize_email("  User@Example.COM ") == "user@example.com"

    @pytest.mark.parametrize("good", ["user@example.com", "a.b+c@sub.example.org"])
    def test_valid(self, good: str) -> None:
        assert is_valid_email(good)

    @pytest.mark.parametrize("bad", [
        "", "user", "user@", "@example.com", "user@example", "us er@example.com",
        ".user@example.com", "us..er@example.com", "user@-example.com",
    ])
    def test_invalid(self, bad: str) -> None:
        assert not is_valid_email(bad)

    def test_require_valid_email(self) -> None:
        assert require_valid_email(" A@B.io ") == "a@b.io"
        with pytest.raises(InvalidEmailError):
            require_valid_email("nope")

    def test_verification_link(self) -> None:
        link = verification_link("https://uniq.example/", "a+b@c.io", "tok")
        assert link == "https://uniq.example/verify.html?email=a%2Bb%40c.io&token=tok"


class TestOutboxEmailSender:
    def test_records_messages(self) -> None:
        outbox = OutboxEmailSender()
        assert outbox.send("a@b.io", "t1")
        assert outbox.send("a@b.io", "t2")
        assert outbox.last_token_for("a@b.io") == "t2"
        assert outbox.last_token_for("x@y.io") is None

    def test_failure_mode(self) -> None:
        outbox = OutboxEmailSender(fail=True)
        assert not outbox.send("a@b.io", "t")
        assert outbox.messages == []


class TestSendGridEmailSender:
    def _sender(self, session) -> SendGridEmailSender:
        return SendGridEmailSender("SG.key", "noreply@uniq.example", "https://uniq.example", session=session)

    def test_posts_link(self) -> None:
        session = mock.Mock()
        session.post.return_value = mock.Mock(status_code=202)
        assert self._sender(session).send("a@b.io", "tok")
        url = session.post.call_args.args[0]
        body = session.post.call_args.kwargs["json"]
        assert url == SENDGRID_URL
        assert body["personalizations"][0]["to"][0]["email"] == "a@b.io"
        assert "token=tok" in body["content"][0]["value"]
        assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer SG.key"

    def test_http_error_reported_as_failure(self) -> None:
        session = mock.Mock()
        session.post.return_value = mock.Mock(status_code=401)
        assert not self._sender(session).send("a@b.io", "tok")

    def test_network_error_reported_as_failure(self) -> None:
        session = mock.Mock()
        session.post.side_effect = requests.ConnectionError("down")
        assert not self._sender(session).send("a@b.io", "tok")


class TestPassphrasePolicy:
    def test_strong_passphrase(self) -> None:
        assert DEFAULT_POLICY.missing("Str0ng!Pass") == []
        DEFAULT_POLICY.enforce("Str0ng!Pass")

    def test_weak_lists_every_missing_category(self) -> None:
        assert DEFAULT_POLICY.missing("weak") == ["length", "uppercase", "digit", "symbol"]
        with pytest.raises(WeakPassphraseError) as info:
            DEFAULT_POLICY.enforce("weak")
        assert info.value.missing == ["length", "uppercase", "digit", "symbol"]
        assert "weak" not in str(info.value)

    def test_empty_passphrase(self) -> None:
        assert DEFAULT_POLICY.missing("") == ["length", "uppercase", "lowercase", "digit", "symbol"]

    def test_symbol_must_come_from_fixed_set(self) -> None:
        assert DEFAULT_POLICY.missing("Abcdefg1?") == ["symbol"]
        assert DEFAULT_POLICY.missing("Abcdefg1&") == []

    def test_custom_length(self) -> None:
        assert PassphrasePolicy(min_length=12).missing("Str0ng!Pass") == ["length"]


class TestClaimIssuer:
    def test_round_trip(self) -> None:
        issuer = ClaimIssuer(SECRET)
        token = issuer.issue(EMAIL_CONFIRMATION, {"email": "a@b.io"}, ttl_seconds=60)
        claims = issuer.verify(token, EMAIL_CONFIRMATION)
        assert claims["email"] == "a@b.io"
        assert claims["purpose"] == EMAIL_CONFIRMATION

    def test_reusable_until_expiry(self) -> None:
        issuer = ClaimIssuer(SECRET)
        token = issuer.issue(EMAIL_CONFIRMATION, {"email": "a@b.io"}, ttl_seconds=60)
        issuer.verify(token, EMAIL_CONFIRMATION)
        issuer.verify(token, EMAIL_CONFIRMATION)

    def test_expired(self) -> None:
        issuer = ClaimIssuer(SECRET)
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = issuer.issue(EMAIL_CONFIRMATION, {"email": "a@b.io"}, ttl_seconds=60, now=past)
        with pytest.raises(ClaimExpiredError):
            issuer.verify(token, EMAIL_CONFIRMATION)

    def test_wrong_secret(self) -> None:
        token = ClaimIssuer(SECRET).issue(SESSION, {"uniq_num": 1}, ttl_seconds=60)
        with pytest.raises(ClaimInvalidError):
            ClaimIssuer(SECRET + "-other").verify(token, SESSION)

    def test_wrong_purpose(self) -> None:
        issuer = ClaimIssuer(SECRET)
        token = issuer.issue(SESSION, {"uniq_num": 1}, ttl_seconds=60)
        with pytest.raises(ClaimInvalidError):
            issuer.verify(token, EMAIL_CONFIRMATION)

    @pytest.mark.parametrize("token", ["", "not.a.jwt", "abc"])
    def test_garbage(self, token: str) -> None:
        with pytest.raises(ClaimInvalidError):
            ClaimIssuer(SECRET).verify(token, SESSION)

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            ClaimIssuer("")
