"""UNIQ ID service: unified facade over registration, login and the ledger.

This is the primary interface for programmatic access. It wires the
collaborators from Settings:
- ClaimIssuer (shared secret, confirmation and session lifetimes)
- EmailSender (SendGrid when configured, in-memory outbox otherwise)
- PayloadSigner (the anchoring authority key)
- Ledger (the deployed contract when configured, or an injected backend)

Every operation returns a ServiceResult. Rejections and ledger problems
are reported in ``errors``; nothing raises out of the facade except
construction with an unusable configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from uniqid import __version__
from uniqid.config import Settings
from uniqid.crypto.anchor import AnchoringClient
from uniqid.crypto.commitment_builder import build_commitment
from uniqid.crypto.field_hash import parse_field_value, to_decimal, to_hex32
from uniqid.crypto.poseidon import PoseidonEngine
from uniqid.crypto.signing import PayloadSigner
from uniqid.crypto.verification import VerificationClient
from uniqid.errors import FieldRangeError, LedgerError, ValidationError
from uniqid.identity.claims import ClaimIssuer
from uniqid.identity.email import EmailSender, OutboxEmailSender, SendGridEmailSender
from uniqid.identity.login import LoginOrchestrator, package_signature_valid
from uniqid.identity.registration import RegistrationOrchestrator
from uniqid.ledger.base import Ledger
from uniqid.models.package import IdentityPackage, format_display_id


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class UniqIdService:
    """Registration and login facade.

    Usage:
        service = UniqIdService(Settings.from_env())

        service.register_email("user@example.com")
        # ... holder follows the emailed link ...
        result = service.complete_registration(token, "Str0ng!Pass")
        package = result.data["package"]

        result = service.login(package)
        session = result.data["token"]

    Tests inject ``ledger``, ``email_sender`` and ``signer``.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        ledger: Optional[Ledger] = None,
        email_sender: Optional[EmailSender] = None,
        signer: Optional[PayloadSigner] = None,
        engine: Optional[PoseidonEngine] = None,
    ) -> None:
        self._settings = settings
        self._engine = engine
        self._claims = ClaimIssuer(settings.jwt_secret)
        self._email_sender = email_sender or self._default_sender(settings)

        if signer is None and settings.signer_configured:
            signer = PayloadSigner.from_key(str(settings.private_key))
        self._signer = signer

        if ledger is None and settings.ledger_configured:
            from uniqid.ledger.web3_ledger import Web3Ledger
            ledger = Web3Ledger.connect(
                settings.rpc_url,
                settings.contract_address,
                settings.private_key,
                chain_id=settings.chain_id,
            )
        self._ledger = ledger

        self._anchoring: Optional[AnchoringClient] = None
        self._verifier: Optional[VerificationClient] = None
        if ledger is not None:
            self._anchoring = AnchoringClient(
                ledger, receipt_timeout=settings.receipt_timeout, chain_id=settings.chain_id,
            )
            self._verifier = VerificationClient(ledger)

        self._registration: Optional[RegistrationOrchestrator] = None
        if signer is not None:
            self._registration = RegistrationOrchestrator(
                self._claims,
                self._email_sender,
                signer,
                self._anchoring,
                confirmation_ttl=settings.verify_token_ttl,
                engine=engine,
            )

        self._login: Optional[LoginOrchestrator] = None
        if self._verifier is not None:
            self._login = LoginOrchestrator(
                self._claims,
                self._verifier,
                expected_signer=settings.expected_signer,
                session_ttl=settings.session_token_ttl,
            )

    @property
    def email_sender(self) -> EmailSender:
        return self._email_sender

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_email(self, email: str) -> ServiceResult:
        if self._registration is None:
            return ServiceResult(success=False, errors=["Signing key not configured."])
        result = self._registration.request_email_confirmation(email)
        if result.rejected:
            return ServiceResult(success=False, errors=result.errors)
        return ServiceResult(success=True, data={"email": result.email, "message": result.message})

    def verify_email(self, token: str) -> ServiceResult:
        if self._registration is None:
            return ServiceResult(success=False, errors=["Signing key not configured."])
        result = self._registration.confirm_email(token)
        if result.rejected:
            return ServiceResult(success=False, errors=result.errors)
        return ServiceResult(success=True, data={"email": result.email, "message": result.message})

    def complete_registration(self, token: str, passphrase: str) -> ServiceResult:
        """Run the final registration step.

        A signed package is a success even when it could not be anchored;
        ``data["anchored"]`` and ``data["outcome"]`` say which case applies.
        """
        if self._registration is None:
            return ServiceResult(success=False, errors=["Signing key not configured."])
        result = self._registration.complete_registration(token, passphrase)
        if result.rejected:
            return ServiceResult(success=False, errors=result.errors)

        assert result.package is not None
        return ServiceResult(
            success=True,
            errors=result.errors,
            data={
                "stage": result.stage.value,
                "outcome": result.outcome.value if result.outcome else None,
                "anchored": result.anchored,
                "package": result.package.to_dict(),
                "tx_hash": result.tx_hash,
                "explorer_url": result.explorer_url,
                "message": result.message,
            },
        )

    # ------------------------------------------------------------------
    # Login and lookups
    # ------------------------------------------------------------------

    def login(self, package: Any) -> ServiceResult:
        if self._login is None:
            return ServiceResult(success=False, errors=["Ledger not configured."])
        result = self._login.login(package)
        if not result.success:
            assert result.rejection is not None
            return ServiceResult(
                success=False,
                errors=[result.message],
                data={"reason": result.rejection.value},
            )
        return ServiceResult(
            success=True,
            data={
                "uniq_id": result.uniq_id,
                "uniq_num": result.numeric_id,
                "token": result.session_token,
            },
        )

    def check_package(self, package: Any) -> ServiceResult:
        """Offline check: package shape and signature, no ledger access."""
        try:
            parsed = IdentityPackage.from_dict(package)
        except ValidationError as exc:
            return ServiceResult(success=False, errors=[str(exc)])
        if not package_signature_valid(parsed, self._settings.expected_signer):
            return ServiceResult(success=False, errors=["Invalid signature."])
        return ServiceResult(
            success=True,
            data={"uniq_id": parsed.uniq_id, "signer": parsed.signer},
        )

    def lookup_root(self, root: str) -> ServiceResult:
        if self._anchoring is None:
            return ServiceResult(success=False, errors=["Ledger not configured."])
        try:
            value = parse_field_value(root)
            numeric_id = self._anchoring.find_existing(value)
        except FieldRangeError as exc:
            return ServiceResult(success=False, errors=[str(exc)])
        except LedgerError as exc:
            return ServiceResult(success=False, errors=[f"Ledger read failed: {exc}"])
        return ServiceResult(
            success=True,
            data={
                "root": to_hex32(value),
                "uniq_num": numeric_id,
                "uniq_id": format_display_id(numeric_id) if numeric_id else None,
            },
        )

    def hash_identity(self, email: str, passphrase: str) -> ServiceResult:
        """Field hashes, leaf and root for an (email, passphrase) pair."""
        commitment = build_commitment(email, passphrase, self._engine)
        data: dict[str, Any] = {}
        for name, value in (
            ("email_hash", commitment.email_hash),
            ("parahash", commitment.para_hash),
            ("leaf", commitment.leaf),
            ("root", commitment.root),
        ):
            data[name] = to_hex32(value)
            data[f"{name}_dec"] = to_decimal(value)
        return ServiceResult(success=True, data=data)

    def status(self) -> dict[str, Any]:
        """Return configuration presence flags and ledger reachability."""
        ledger: dict[str, Any] = {"configured": self._ledger is not None}
        if self._ledger is not None:
            try:
                ledger["has_anchors"] = self._ledger.get_root(1) != 0
                ledger["reachable"] = True
            except LedgerError as exc:
                logger.warning("Ledger status check failed: %s", exc)
                ledger["reachable"] = False
        return {
            "version": __version__,
            "settings": self._settings.describe(),
            "signer": self._signer.address if self._signer else None,
            "ledger": ledger,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _default_sender(settings: Settings) -> EmailSender:
        if settings.email_configured:
            return SendGridEmailSender(
                str(settings.sendgrid_api_key), str(settings.sender_email), settings.base_url,
            )
        logger.warning("Email delivery not configured; confirmation links stay in the outbox")
        return OutboxEmailSender()
