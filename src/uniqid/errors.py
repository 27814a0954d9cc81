"""Error taxonomy for the commitment-and-anchoring core.

Four families:
1. Validation errors: bad caller input. Reported immediately, never retried.
2. Cryptographic errors: hashing, encoding and signature failures.
3. Claim errors: expired or forged short-lived claims.
4. Ledger errors: split by what the caller may safely do next:
   submission failures are retryable (nothing changed on-chain),
   confirmation timeouts are ambiguous (re-query before any retry).

Messages never carry secret material (passphrases, keys, tokens).
"""

from __future__ import annotations

from typing import Optional


class UniqIdError(Exception):
    """Base class for all uniqid errors."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationError(UniqIdError):
    """Caller-supplied input is malformed."""


class InvalidEmailError(ValidationError):
    pass


class WeakPassphraseError(ValidationError):
    """Passphrase fails the strength policy.

    ``missing`` lists every unmet category, not just the first.
    """

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__("Passphrase needs: " + ", ".join(self.missing))


class MissingFieldError(ValidationError):
    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Missing package field: {field_name}")


class InvalidPackageError(ValidationError):
    pass


# ---------------------------------------------------------------------------
# Cryptography
# ---------------------------------------------------------------------------

class CryptoError(UniqIdError):
    """Hashing, encoding or signature failure."""


class FieldRangeError(CryptoError, ValueError):
    """A value is not a member of the commitment hash's scalar field."""


class CanonicalEncodingError(CryptoError, ValueError):
    """A canonical payload field cannot be represented."""


class SignatureError(CryptoError):
    """A signature could not be produced or parsed."""


# ---------------------------------------------------------------------------
# Claims
# ---------------------------------------------------------------------------

class ClaimError(UniqIdError):
    pass


class ClaimExpiredError(ClaimError):
    pass


class ClaimInvalidError(ClaimError):
    pass


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class LedgerError(UniqIdError):
    pass


class LedgerNotConfiguredError(LedgerError):
    pass


class LedgerSubmissionError(LedgerError):
    """The anchoring transaction was not accepted. No state changed; safe to retry."""

    retryable = True


class AnchorTimeoutError(LedgerError):
    """The transaction was sent but no receipt arrived in time.

    The anchor may still land. Callers must re-query (for example with
    ``AnchoringClient.find_existing``) before retrying, or they risk a
    duplicate anchor.
    """

    retryable = False

    def __init__(self, tx_hash: Optional[str], timeout: float) -> None:
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(
            f"No receipt for transaction {tx_hash or '<unknown>'} "
            f"after {timeout:g}s; anchor state unknown"
        )


class ZeroRootError(LedgerError, ValueError):
    """The ledger rejects a zero root."""


class LedgerReadError(LedgerError):
    """A read-only view call failed."""
