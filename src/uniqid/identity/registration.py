"""Registration lifecycle.

Drives a holder from an email address to an anchored identity package:

  AWAITING_EMAIL
    → AWAITING_EMAIL_CONFIRMATION   confirmation claim issued and mailed
    → AWAITING_PASSPHRASE           claim redeemed
    → HASHES_COMPUTED               field hashes, leaf and root derived
    → SIGNED                        canonical payload signed
    → ANCHORED | ANCHOR_UNCONFIRMED root submitted to the ledger
    → COMPLETE                      id resolved, package returned

Nothing is stored between steps: the confirmation claim carries the
email. Every step returns a RegistrationResult; failures end in REJECTED
with readable errors and never raise into the caller. Once a payload is
signed the holder always gets the package back, anchored or not.
"""

from __future__ import annotations

import enum
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from uniqid.crypto.anchor import AnchoringClient, AnchorStatus
from uniqid.crypto.canonical import SALT_BYTES, encode_payload, format_timestamp
from uniqid.crypto.commitment_builder import build_commitment
from uniqid.crypto.poseidon import PoseidonEngine
from uniqid.crypto.signing import PayloadSigner
from uniqid.errors import (
    AnchorTimeoutError,
    ClaimExpiredError,
    ClaimInvalidError,
    CryptoError,
    InvalidEmailError,
    LedgerError,
)
from uniqid.identity.claims import EMAIL_CONFIRMATION, ClaimIssuer
from uniqid.identity.email import EmailSender, is_valid_email, require_valid_email
from uniqid.identity.passphrase import DEFAULT_POLICY, PassphrasePolicy
from uniqid.models.commitment import RegistrationState
from uniqid.models.package import IdentityPackage


logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_TTL = 3600


# ---------------------------------------------------------------------------
# Registration state machine
# ---------------------------------------------------------------------------

class RegistrationStage(str, enum.Enum):
    AWAITING_EMAIL = "awaiting_email"
    AWAITING_EMAIL_CONFIRMATION = "awaiting_email_confirmation"
    AWAITING_PASSPHRASE = "awaiting_passphrase"
    HASHES_COMPUTED = "hashes_computed"
    SIGNED = "signed"
    ANCHORED = "anchored"
    ANCHOR_UNCONFIRMED = "anchor_unconfirmed"
    COMPLETE = "complete"
    REJECTED = "rejected"


class AnchoringOutcome(str, enum.Enum):
    """What happened to the root of a signed package."""
    ANCHORED = "anchored"
    ANCHORED_UNRESOLVED = "anchored_unresolved"
    ANCHOR_UNCONFIRMED = "anchor_unconfirmed"
    NOT_ANCHORED = "not_anchored"


@dataclass(frozen=True)
class RegistrationResult:
    stage: RegistrationStage
    outcome: Optional[AnchoringOutcome] = None
    package: Optional[IdentityPackage] = None
    email: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    tx_hash: Optional[str] = None
    explorer_url: Optional[str] = None
    message: str = ""

    @property
    def rejected(self) -> bool:
        return self.stage is RegistrationStage.REJECTED

    @property
    def anchored(self) -> bool:
        return self.outcome in (AnchoringOutcome.ANCHORED, AnchoringOutcome.ANCHORED_UNRESOLVED)


def _rejected(*errors: str) -> RegistrationResult:
    return RegistrationResult(stage=RegistrationStage.REJECTED, errors=list(errors))


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class RegistrationOrchestrator:
    """Runs the registration steps against injected collaborators.

    ``anchoring`` may be None when no ledger is configured; completed
    registrations then return a signed package with outcome NOT_ANCHORED.

    Usage:
        orchestrator = RegistrationOrchestrator(claims, sender, signer, anchoring)
        orchestrator.request_email_confirmation("user@example.com")
        # ... holder clicks the link carrying the token ...
        result = orchestrator.complete_registration(token, "Str0ng!Pass")
        package = result.package.to_dict()
    """

    def __init__(
        self,
        claims: ClaimIssuer,
        email_sender: EmailSender,
        signer: PayloadSigner,
        anchoring: Optional[AnchoringClient] = None,
        *,
        policy: PassphrasePolicy = DEFAULT_POLICY,
        confirmation_ttl: int = DEFAULT_CONFIRMATION_TTL,
        engine: Optional[PoseidonEngine] = None,
        salt_factory: Callable[[], bytes] = lambda: secrets.token_bytes(SALT_BYTES),
    ) -> None:
        self._claims = claims
        self._sender = email_sender
        self._signer = signer
        self._anchoring = anchoring
        self._policy = policy
        self._confirmation_ttl = confirmation_ttl
        self._engine = engine
        self._salt_factory = salt_factory

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def request_email_confirmation(
        self,
        email: str,
        *,
        now: Optional[datetime] = None,
    ) -> RegistrationResult:
        """Issue a confirmation claim for *email* and hand it to the sender.

        A sender that returns False or raises fails this step only.
        """
        try:
            address = require_valid_email(email)
        except InvalidEmailError as exc:
            return _rejected(str(exc))

        token = self._claims.issue(
            EMAIL_CONFIRMATION, {"email": address}, self._confirmation_ttl, now=now,
        )
        try:
            sent = bool(self._sender.send(address, token))
        except Exception as exc:
            logger.error("Email sender raised %s", type(exc).__name__)
            sent = False

        if not sent:
            return _rejected("Failed to send verification email.")

        logger.info("Confirmation claim issued")
        return RegistrationResult(
            stage=RegistrationStage.AWAITING_EMAIL_CONFIRMATION,
            email=address,
            message="Verification email sent.",
        )

    def confirm_email(self, token: str) -> RegistrationResult:
        """Redeem a confirmation claim.

        Claims are checked for signature, expiry and purpose only; the same
        claim can be redeemed again until it expires.
        """
        try:
            body = self._claims.verify(token, EMAIL_CONFIRMATION)
        except ClaimExpiredError:
            return _rejected("Token expired.")
        except ClaimInvalidError:
            return _rejected("Invalid token.")

        email = body.get("email")
        if not isinstance(email, str) or not is_valid_email(email):
            return _rejected("Invalid token.")

        return RegistrationResult(
            stage=RegistrationStage.AWAITING_PASSPHRASE,
            email=email,
            message="Email verified.",
        )

    def check_passphrase(self, passphrase: str) -> RegistrationResult:
        """Report every unmet strength requirement in one result."""
        missing = self._policy.missing(passphrase)
        if missing:
            return _rejected("Passphrase needs: " + ", ".join(missing))
        return RegistrationResult(
            stage=RegistrationStage.AWAITING_PASSPHRASE,
            message="Passphrase accepted.",
        )

    def complete_registration(
        self,
        token: str,
        passphrase: str,
        *,
        now: Optional[datetime] = None,
    ) -> RegistrationResult:
        """Hash, sign and anchor; return the holder's package.

        Outcomes once the payload is signed:
        - ANCHORED: COMPLETE, package carries its display id.
        - ANCHORED_UNRESOLVED: the root is on the ledger but the id could
          not be recovered; package has no display id.
        - ANCHOR_UNCONFIRMED: sent but no receipt in time; tx_hash is set
          and the caller must re-query before retrying.
        - NOT_ANCHORED: no ledger configured or the submission failed.
        """
        confirmation = self.confirm_email(token)
        if confirmation.rejected:
            return confirmation
        email = confirmation.email
        assert email is not None

        checked = self.check_passphrase(passphrase)
        if checked.rejected:
            return checked

        try:
            commitment = build_commitment(email, passphrase, self._engine)
        except CryptoError as exc:
            logger.error("Hash computation failed: %s", type(exc).__name__)
            return _rejected("Hash computation failed.")
        logger.debug("Commitment computed (stage %s)", RegistrationStage.HASHES_COMPUTED.value)

        salt = self._salt_factory()
        timestamp = format_timestamp(now or datetime.now(timezone.utc))
        state = RegistrationState.from_commitment(commitment, salt, timestamp)
        try:
            signed = self._signer.sign(encode_payload(state))
        except CryptoError as exc:
            logger.error("Signing failed: %s", type(exc).__name__)
            return _rejected("Signing failed.")

        def package(numeric_id: Optional[int] = None) -> IdentityPackage:
            return IdentityPackage.assemble(
                commitment, salt, timestamp, signed.signer, signed.signature, numeric_id,
            )

        if self._anchoring is None:
            logger.warning("No ledger configured; returning signed package unanchored")
            return RegistrationResult(
                stage=RegistrationStage.SIGNED,
                outcome=AnchoringOutcome.NOT_ANCHORED,
                package=package(),
                email=email,
                message="Registration signed but not anchored: ledger not configured.",
            )

        self._note_existing_anchor(commitment.root)
        try:
            record = self._anchoring.anchor(commitment.root, now=now)
        except AnchorTimeoutError as exc:
            return RegistrationResult(
                stage=RegistrationStage.ANCHOR_UNCONFIRMED,
                outcome=AnchoringOutcome.ANCHOR_UNCONFIRMED,
                package=package(),
                email=email,
                errors=[str(exc)],
                tx_hash=exc.tx_hash,
                message="Anchor transaction sent but not confirmed. Check it before retrying.",
            )
        except LedgerError as exc:
            logger.error("Anchoring failed: %s", exc)
            return RegistrationResult(
                stage=RegistrationStage.SIGNED,
                outcome=AnchoringOutcome.NOT_ANCHORED,
                package=package(),
                email=email,
                errors=[str(exc)],
                message="Registration signed but not anchored.",
            )

        if record.status is AnchorStatus.ANCHORED_UNRESOLVED:
            return RegistrationResult(
                stage=RegistrationStage.ANCHORED,
                outcome=AnchoringOutcome.ANCHORED_UNRESOLVED,
                package=package(),
                email=email,
                tx_hash=record.tx_hash,
                explorer_url=record.explorer_url,
                message="Root anchored but its id could not be resolved.",
            )

        return RegistrationResult(
            stage=RegistrationStage.COMPLETE,
            outcome=AnchoringOutcome.ANCHORED,
            package=package(record.numeric_id),
            email=email,
            tx_hash=record.tx_hash,
            explorer_url=record.explorer_url,
            message="Registration complete.",
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _note_existing_anchor(self, root: int) -> None:
        assert self._anchoring is not None
        try:
            existing = self._anchoring.find_existing(root)
        except LedgerError as exc:
            logger.debug("Existing-anchor lookup failed: %s", exc)
            return
        if existing:
            logger.info("Root already anchored as id %d; anchoring again", existing)
