"""Login lifecycle.

A holder presents the identity package they received at registration:

  PACKAGE_PRESENTED → SIGNATURE_CHECKED → PROOF_CHECKED → SESSION_ISSUED

Any failed check ends the request in REJECTED with one of a small set of
reasons. Mismatches are expected outcomes, returned rather than raised,
and the reasons never say more than signature-versus-proof.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from uniqid.crypto.canonical import encode_payload
from uniqid.crypto.signing import signed_by
from uniqid.crypto.verification import VerificationClient
from uniqid.errors import (
    CanonicalEncodingError,
    FieldRangeError,
    InvalidPackageError,
    LedgerError,
    MissingFieldError,
)
from uniqid.identity.claims import SESSION, ClaimIssuer
from uniqid.models.package import IdentityPackage


logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = 3600


class LoginStage(str, enum.Enum):
    PACKAGE_PRESENTED = "package_presented"
    SIGNATURE_CHECKED = "signature_checked"
    PROOF_CHECKED = "proof_checked"
    SESSION_ISSUED = "session_issued"
    REJECTED = "rejected"


class LoginRejection(str, enum.Enum):
    MISSING_FIELD = "missing_field"
    INVALID_PACKAGE = "invalid_package"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_ID = "invalid_id"
    NOT_VERIFIED = "not_verified"


_MESSAGES = {
    LoginRejection.INVALID_PACKAGE: "Invalid package.",
    LoginRejection.INVALID_SIGNATURE: "Invalid signature.",
    LoginRejection.INVALID_ID: "Invalid UNIQ ID.",
    LoginRejection.NOT_VERIFIED: "Not verified on-chain.",
}


@dataclass(frozen=True)
class LoginResult:
    stage: LoginStage
    rejection: Optional[LoginRejection] = None
    message: str = ""
    uniq_id: Optional[str] = None
    numeric_id: Optional[int] = None
    session_token: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.stage is LoginStage.SESSION_ISSUED


def _reject(reason: LoginRejection, message: Optional[str] = None) -> LoginResult:
    return LoginResult(
        stage=LoginStage.REJECTED,
        rejection=reason,
        message=message or _MESSAGES[reason],
    )


class LoginOrchestrator:
    """Checks a presented package and issues a session claim.

    ``expected_signer`` pins the anchoring authority's address; when set,
    a package signed by any other key is rejected even if its own
    signature is internally consistent.
    """

    def __init__(
        self,
        claims: ClaimIssuer,
        verifier: VerificationClient,
        *,
        expected_signer: Optional[str] = None,
        session_ttl: int = DEFAULT_SESSION_TTL,
    ) -> None:
        self._claims = claims
        self._verifier = verifier
        self._expected_signer = expected_signer.lower() if expected_signer else None
        self._session_ttl = session_ttl

    def login(self, data: Any, *, now: Optional[datetime] = None) -> LoginResult:
        try:
            package = IdentityPackage.from_dict(data)
        except MissingFieldError as exc:
            return _reject(LoginRejection.MISSING_FIELD, f"Missing field: {exc.field_name}")
        except InvalidPackageError:
            return _reject(LoginRejection.INVALID_PACKAGE)

        if not self._signature_ok(package):
            return _reject(LoginRejection.INVALID_SIGNATURE)

        # Id validity is settled before any proof work.
        numeric_id = package.numeric_id
        if numeric_id is None:
            return _reject(LoginRejection.INVALID_ID)
        try:
            exists = self._verifier.id_exists(numeric_id)
        except LedgerError as exc:
            logger.warning("Id lookup failed: %s", exc)
            return _reject(LoginRejection.NOT_VERIFIED)
        if not exists:
            return _reject(LoginRejection.INVALID_ID)

        try:
            leaf = int(package.registration_state().leaf)
            proof = package.proof_values()
        except (CanonicalEncodingError, FieldRangeError):
            return _reject(LoginRejection.NOT_VERIFIED)

        if not self._verifier.verify(numeric_id, leaf, proof, package.leaf_index):
            return _reject(LoginRejection.NOT_VERIFIED)

        token = self._claims.issue(
            SESSION,
            {"uniq_id": package.uniq_id, "uniq_num": numeric_id},
            self._session_ttl,
            now=now,
        )
        logger.info("Session issued for id %d", numeric_id)
        return LoginResult(
            stage=LoginStage.SESSION_ISSUED,
            message="Login successful.",
            uniq_id=package.uniq_id,
            numeric_id=numeric_id,
            session_token=token,
        )

    def _signature_ok(self, package: IdentityPackage) -> bool:
        return package_signature_valid(package, self._expected_signer)


def package_signature_valid(
    package: IdentityPackage,
    expected_signer: Optional[str] = None,
) -> bool:
    """Re-derive the canonical payload and check it recovers to the signer.

    Works offline: no ledger access is needed.
    """
    try:
        payload = encode_payload(package.registration_state())
    except CanonicalEncodingError:
        return False
    if not signed_by(payload, str(package.signature), str(package.signer)):
        return False
    if expected_signer and str(package.signer).lower() != expected_signer.lower():
        return False
    return True
