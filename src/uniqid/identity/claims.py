"""Short-lived signed claims (HS256 JWT).

Two kinds are issued:
- email confirmation: carries the normalised email between the
  "request" and "complete" steps of registration, so no server-side
  record is needed;
- session: issued after a successful on-ledger login, bound to the
  holder's numeric id.

Claims are stateless: one stays valid until it expires and can be
redeemed more than once within its lifetime.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from uniqid.errors import ClaimExpiredError, ClaimInvalidError


EMAIL_CONFIRMATION = "email_confirmation"
SESSION = "session"

_ALGORITHM = "HS256"


class ClaimIssuer:
    """Issues and verifies purpose-scoped claims keyed by a shared secret.

    Usage:
        issuer = ClaimIssuer(secret)
        token = issuer.issue(EMAIL_CONFIRMATION, {"email": email}, ttl_seconds=3600)
        claims = issuer.verify(token, EMAIL_CONFIRMATION)
    """

    def __init__(self, secret: str, leeway_seconds: int = 0) -> None:
        if not secret:
            raise ValueError("Claim secret must not be empty")
        self._secret = secret
        self._leeway = leeway_seconds

    def issue(
        self,
        purpose: str,
        claims: dict[str, Any],
        ttl_seconds: int,
        *,
        now: Optional[datetime] = None,
    ) -> str:
        issued = now or datetime.now(timezone.utc)
        payload = dict(claims)
        payload["purpose"] = purpose
        payload["iat"] = issued
        payload["exp"] = issued + timedelta(seconds=ttl_seconds)
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str, purpose: str) -> dict[str, Any]:
        """Return the claim body, or raise ClaimExpiredError / ClaimInvalidError."""
        if not token:
            raise ClaimInvalidError("Missing token.")
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                leeway=self._leeway,
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise ClaimExpiredError("Token expired.") from exc
        except jwt.InvalidTokenError as exc:
            raise ClaimInvalidError("Invalid token.") from exc

        if claims.get("purpose") != purpose:
            raise ClaimInvalidError("Token issued for a different purpose.")
        return claims
